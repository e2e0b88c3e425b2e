import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.db import Base
from app.models.fleet import RouterNode, RouterStatus
from app.models.subscriber import Client, ConnectionType, Plan
from app.services import subscriber_sync
from app.services.throughput import InMemorySampleStore, ThroughputRateEngine
from tests.mocks import FakeClock, FakeFleet, FakeRouter


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={
            "check_same_thread": False,
        },
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def no_sync_backoff(monkeypatch):
    """Retries happen immediately in tests."""
    monkeypatch.setattr(
        subscriber_sync, "settings", settings.model_copy(update={"sync_retry_backoff_sec": 0})
    )


@pytest.fixture()
def fake_fleet():
    return FakeFleet()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def rate_engine(clock):
    return ThroughputRateEngine(store=InMemorySampleStore(max_entries=100), clock=clock)


@pytest.fixture()
def make_node(db_session, fake_fleet):
    """Register a node in the database and, unless told otherwise, a fake router for it."""
    counter = {"n": 0}

    def _make(
        name: str | None = None,
        status: RouterStatus = RouterStatus.online,
        with_router: bool = True,
        **router_kwargs,
    ) -> RouterNode:
        counter["n"] += 1
        n = counter["n"]
        node = RouterNode(
            id=f"r-test{n}",
            name=name or f"Tower {n}",
            host=f"10.0.0.{n}",
            port=8728,
            username="dartbit",
            password="dartbit123",
            status=status,
        )
        db_session.add(node)
        db_session.commit()
        db_session.refresh(node)
        if with_router:
            fake_fleet.add(FakeRouter(node.host, **router_kwargs))
        return node

    return _make


@pytest.fixture()
def plan(db_session):
    plan = Plan(id="p-gold", name="Gold 10M", type=ConnectionType.pppoe, speed_limit="10M/10M")
    db_session.add(plan)
    db_session.commit()
    db_session.refresh(plan)
    return plan


@pytest.fixture()
def client_record(db_session, plan):
    client = Client(
        id="c-alice",
        username="alice",
        password="s3cret",
        full_name="Alice Wanjiru",
        connection_type=ConnectionType.pppoe,
        plan_id=plan.id,
    )
    db_session.add(client)
    db_session.commit()
    db_session.refresh(client)
    return client


@pytest.fixture()
def api_client(db_session, fake_fleet, rate_engine):
    from app.api.deps import get_db, get_link_factory, get_throughput_engine
    from app.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_link_factory] = lambda: fake_fleet
    app.dependency_overrides[get_throughput_engine] = lambda: rate_engine
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
