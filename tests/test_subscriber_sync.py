"""Tests for subscriber and plan sync."""

import pytest

from app.models.fleet import RouterStatus
from app.models.subscriber import Client, ConnectionType, Plan
from app.schemas.subscriber import ClientUpsert, PlanUpsert
from app.services import subscriber_sync
from app.services.subscriber_sync import (
    PlanProfile,
    RemoteEntry,
    SubscriberSync,
    client_entry,
    plan_entry,
    push_entry,
    push_with_retry,
)
from app.services.routeros_link import NodeUnreachable
from tests.mocks import FakeFleet


def _secrets(fleet, node):
    return fleet[node.host].rows("/ppp/secret")


def test_client_entry_for_pppoe(client_record, plan):
    entry = client_entry(client_record, PlanProfile(plan.name, plan.type, plan.speed_limit))
    assert entry.path == "/ppp/secret"
    assert entry.fields == {
        "name": "alice",
        "password": "s3cret",
        "profile": "Gold 10M",
        "comment": "dartbit:c-alice",
    }
    assert entry.create_fields == {}


def test_client_entry_without_password_or_plan():
    client = Client(id="c-1", username="guest", connection_type=ConnectionType.hotspot)
    entry = client_entry(client, None)
    assert entry.path == "/ip/hotspot/user"
    assert entry.fields["profile"] == "default"
    assert "password" not in entry.fields
    assert entry.create_fields == {"password": "1234"}


def test_plan_entry_paths():
    assert plan_entry(PlanProfile("Gold", ConnectionType.pppoe, "10M/10M")).path == "/ppp/profile"
    hotspot = plan_entry(PlanProfile("Day pass", ConnectionType.hotspot, "2M/2M"))
    assert hotspot.path == "/ip/hotspot/user/profile"
    assert hotspot.fields == {"name": "Day pass", "rate-limit": "2M/2M"}


def test_push_entry_creates_then_updates(make_node, fake_fleet):
    node = make_node()
    state = subscriber_sync.snapshot(node)
    entry = RemoteEntry(
        path="/ppp/secret",
        name="alice",
        fields={"name": "alice", "profile": "Gold"},
        create_fields={"password": "1234"},
    )

    assert push_entry(state, entry, fake_fleet) == "created"
    changed = RemoteEntry(path="/ppp/secret", name="alice", fields={"name": "alice", "profile": "Silver"})
    assert push_entry(state, changed, fake_fleet) == "updated"

    rows = _secrets(fake_fleet, node)
    assert len(rows) == 1
    assert rows[0]["profile"] == "Silver"
    # create-only fields are not rewritten on update
    assert rows[0]["password"] == "1234"


def test_push_with_retry_recovers(make_node, fake_fleet):
    node = make_node()
    fake_fleet[node.host].fail_writes = 1
    entry = plan_entry(PlanProfile("Gold", ConnectionType.pppoe, "10M/10M"))

    outcome = push_with_retry(subscriber_sync.snapshot(node), entry, fake_fleet, attempts=2, backoff=0)

    assert outcome == "created"
    assert len(fake_fleet[node.host].rows("/ppp/profile")) == 1


def test_push_with_retry_gives_up(make_node, fake_fleet, caplog):
    node = make_node()
    fake_fleet[node.host].fail_writes = 5
    entry = plan_entry(PlanProfile("Gold", ConnectionType.pppoe, "10M/10M"))

    with pytest.raises(NodeUnreachable):
        push_with_retry(subscriber_sync.snapshot(node), entry, fake_fleet, attempts=3, backoff=0)

    assert fake_fleet[node.host].fail_writes == 2
    assert any(record.levelname == "ERROR" for record in caplog.records)


@pytest.mark.asyncio
async def test_save_client_pushes_to_online_nodes(db_session, make_node, fake_fleet, plan):
    online = make_node()
    offline = make_node(status=RouterStatus.offline)
    maintenance = make_node(status=RouterStatus.maintenance)

    report = await SubscriberSync.save_client(
        db_session,
        ClientUpsert(id="c-bob", username="bob", password="pw", plan_id=plan.id, full_name="Bob"),
        fake_fleet,
    )

    assert report.success is True
    assert report.record_id == "c-bob"
    assert report.targeted == 1
    assert report.pushed == [online.id]
    assert report.failed == []
    rows = _secrets(fake_fleet, online)
    assert rows[0]["name"] == "bob"
    assert rows[0]["profile"] == "Gold 10M"
    assert rows[0]["comment"] == "dartbit:c-bob"
    assert fake_fleet[offline.host].commands == []
    assert fake_fleet[maintenance.host].commands == []
    assert db_session.get(Client, "c-bob").full_name == "Bob"


@pytest.mark.asyncio
async def test_save_client_twice_keeps_single_remote_entry(db_session, make_node, fake_fleet):
    node = make_node()
    payload = ClientUpsert(id="c-eve", username="eve", password="pw")

    await SubscriberSync.save_client(db_session, payload, fake_fleet)
    await SubscriberSync.save_client(db_session, payload, fake_fleet)

    rows = _secrets(fake_fleet, node)
    assert len(rows) == 1
    assert rows[0]["profile"] == "default"
    assert db_session.query(Client).filter(Client.username == "eve").count() == 1


@pytest.mark.asyncio
async def test_fan_out_survives_unreachable_node(db_session, make_node, fake_fleet):
    first = make_node()
    broken = make_node(reachable=False)
    third = make_node()

    report = await SubscriberSync.save_client(
        db_session, ClientUpsert(id="c-1", username="zed"), fake_fleet
    )

    assert report.success is True
    assert report.targeted == 3
    assert sorted(report.pushed) == sorted([first.id, third.id])
    assert [failure.node_id for failure in report.failed] == [broken.id]
    assert "connect failed" in report.failed[0].error
    assert _secrets(fake_fleet, first)[0]["password"] == "1234"
    assert len(_secrets(fake_fleet, third)) == 1


@pytest.mark.asyncio
async def test_update_without_password_keeps_stored_and_remote(db_session, make_node, fake_fleet, client_record):
    node = make_node()
    await SubscriberSync.save_client(
        db_session, ClientUpsert(id=client_record.id, username="alice"), fake_fleet
    )

    assert db_session.get(Client, client_record.id).password == "s3cret"
    assert _secrets(fake_fleet, node)[0]["password"] == "s3cret"


@pytest.mark.asyncio
async def test_update_without_any_password_never_blanks_remote(db_session, make_node, fake_fleet):
    node = make_node()
    fake_fleet[node.host].rows("/ppp/secret").append(
        {"id": "*A", "name": "frank", "password": "router-side", "profile": "default"}
    )

    await SubscriberSync.save_client(db_session, ClientUpsert(id="c-f", username="frank"), fake_fleet)

    row = _secrets(fake_fleet, node)[0]
    assert row["password"] == "router-side"
    assert row["comment"] == "dartbit:c-f"


@pytest.mark.asyncio
async def test_supplied_plan_is_used_for_profile(db_session, make_node, fake_fleet):
    node = make_node()
    await SubscriberSync.save_client(
        db_session,
        ClientUpsert(
            id="c-h",
            username="henry",
            connection_type=ConnectionType.hotspot,
            plan=PlanUpsert(id="p-day", name="Day Pass", type=ConnectionType.hotspot, speed_limit="2M/2M"),
        ),
        fake_fleet,
    )

    rows = fake_fleet[node.host].rows("/ip/hotspot/user")
    assert rows[0]["profile"] == "Day Pass"
    assert db_session.get(Client, "c-h").plan_id == "p-day"


@pytest.mark.asyncio
async def test_save_plan_creates_and_updates_profile(db_session, make_node, fake_fleet):
    node = make_node()

    await SubscriberSync.save_plan(
        db_session, PlanUpsert(id="p-1", name="Gold", speed_limit="10M/10M"), fake_fleet
    )
    report = await SubscriberSync.save_plan(
        db_session, PlanUpsert(id="p-1", name="Gold", speed_limit="20M/20M"), fake_fleet
    )

    profiles = fake_fleet[node.host].rows("/ppp/profile")
    assert len(profiles) == 1
    assert profiles[0]["rate-limit"] == "20M/20M"
    assert report.pushed == [node.id]
    assert db_session.get(Plan, "p-1").speed_limit == "20M/20M"


@pytest.mark.asyncio
async def test_save_plan_with_no_online_nodes(db_session):
    report = await SubscriberSync.save_plan(db_session, PlanUpsert(name="Bronze"), FakeFleet())
    assert report.success is True
    assert report.targeted == 0
    assert report.record_id.startswith("p-")


@pytest.mark.asyncio
async def test_retry_recovers_during_fan_out(db_session, make_node, fake_fleet):
    node = make_node()
    fake_fleet[node.host].fail_writes = 1

    report = await SubscriberSync.save_plan(
        db_session, PlanUpsert(id="p-2", name="Silver", speed_limit="5M/5M"), fake_fleet
    )

    assert report.pushed == [node.id]
    assert report.failed == []


def test_list_plans_and_clients(db_session, client_record, plan):
    assert [p.id for p in SubscriberSync.list_plans(db_session)] == [plan.id]
    assert [c.id for c in SubscriberSync.list_clients(db_session)] == [client_record.id]

