"""Tests for live session collection."""

import pytest

from app.models.fleet import RouterStatus
from app.models.subscriber import ConnectionType
from app.services.sessions import UNKNOWN_DEVICE, collect_sessions
from tests.mocks import make_row


@pytest.mark.asyncio
async def test_sessions_enriched_with_rates(db_session, make_node, fake_fleet, rate_engine, clock, client_record):
    node = make_node(
        name="Kilimani",
        ppp_active=[make_row(id="*1", name="alice", uptime="1h", bytes_in=1_000_000, bytes_out=200_000, address="10.10.10.9")],
    )

    first = await collect_sessions(db_session, rate_engine, fake_fleet)
    assert len(first) == 1
    assert first[0].download_rate == 0
    assert first[0].upload_rate == 0

    fake_fleet[node.host].tables["/ppp/active"][0].update({"bytes-in": "1125000", "bytes-out": "212500"})
    clock.advance(1)
    second = await collect_sessions(db_session, rate_engine, fake_fleet)

    session = second[0]
    assert session.id == "*1"
    assert session.username == "alice"
    assert session.full_name == "Alice Wanjiru"
    assert session.connection_type == ConnectionType.pppoe
    assert session.uptime == "1h"
    assert session.download_bytes == 1_125_000
    assert session.download_rate == 1_000_000
    assert session.upload_rate == 100_000
    assert session.node_id == node.id
    assert session.connected_node == "Kilimani"
    assert session.address == "10.10.10.9"


@pytest.mark.asyncio
async def test_hotspot_session_uses_user_and_caller_id(db_session, make_node, fake_fleet, rate_engine):
    make_node(hotspot_active=[make_row(user="guest7", caller_id="AA:BB:CC:00:11:22", bytes_in=5)])

    sessions = await collect_sessions(db_session, rate_engine, fake_fleet)

    assert sessions[0].username == "guest7"
    assert sessions[0].connection_type == ConnectionType.hotspot
    assert sessions[0].full_name == UNKNOWN_DEVICE
    assert sessions[0].address == "AA:BB:CC:00:11:22"
    assert sessions[0].upload_bytes == 0


@pytest.mark.asyncio
async def test_only_online_nodes_are_queried(db_session, make_node, fake_fleet, rate_engine):
    online = make_node(ppp_active=[make_row(name="a")])
    offline = make_node(status=RouterStatus.offline, ppp_active=[make_row(name="b")])
    maintenance = make_node(status=RouterStatus.maintenance, ppp_active=[make_row(name="c")])

    sessions = await collect_sessions(db_session, rate_engine, fake_fleet)

    assert [s.username for s in sessions] == ["a"]
    assert fake_fleet[online.host].commands
    assert fake_fleet[offline.host].commands == []
    assert fake_fleet[maintenance.host].commands == []


@pytest.mark.asyncio
async def test_unreachable_node_contributes_nothing(db_session, make_node, fake_fleet, rate_engine):
    make_node(reachable=False)
    healthy = make_node(ppp_active=[make_row(name="dora")])

    sessions = await collect_sessions(db_session, rate_engine, fake_fleet)

    assert [(s.username, s.node_id) for s in sessions] == [("dora", healthy.id)]


@pytest.mark.asyncio
async def test_rows_without_username_are_skipped(db_session, make_node, fake_fleet, rate_engine):
    make_node(ppp_active=[make_row(uptime="5m"), make_row(name="ed", bytes_in="garbage")])

    sessions = await collect_sessions(db_session, rate_engine, fake_fleet)

    assert [s.username for s in sessions] == ["ed"]
    assert sessions[0].download_bytes == 0


@pytest.mark.asyncio
async def test_no_online_nodes(db_session, rate_engine, fake_fleet):
    assert await collect_sessions(db_session, rate_engine, fake_fleet) == []
