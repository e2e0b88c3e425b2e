"""HTTP tests for discovery and the boot endpoint."""

from app.models.fleet import RouterNode


def test_boot_returns_script_and_queues_device(api_client):
    response = api_client.get("/boot", params={"ip": "192.168.88.1"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "/ip service set api disabled=no" in response.text

    queued = api_client.get("/api/discovered").json()
    assert [record["host"] for record in queued] == ["192.168.88.1"]
    assert queued[0]["name"] == "New Node Signal"


def test_boot_twice_from_same_host(api_client):
    api_client.get("/boot", params={"ip": "192.168.88.1"})
    api_client.get("/boot", params={"ip": "192.168.88.1"})

    queued = api_client.get("/api/discovered").json()
    assert len(queued) == 1
    assert queued[0]["checkins"] == 2


def test_boot_without_ip_uses_client_address(api_client):
    api_client.get("/boot")
    queued = api_client.get("/api/discovered").json()
    assert queued[0]["host"] == "testclient"


def test_boot_from_registered_router_is_not_queued(api_client, make_node):
    node = make_node()
    response = api_client.get("/boot", params={"ip": node.host})
    assert response.status_code == 200
    assert api_client.get("/api/discovered").json() == []


def test_onboarding_flow(api_client, db_session):
    assert api_client.post("/api/discovery/clear").json()["success"] is True
    assert api_client.get("/api/discovery/latest").json() is None

    api_client.get("/boot", params={"ip": "192.168.88.5"})
    latest = api_client.get("/api/discovery/latest").json()
    assert latest["host"] == "192.168.88.5"

    response = api_client.post(
        f"/api/discovery/{latest['id']}/finalize", json={"name": "Kitengela"}
    )
    assert response.status_code == 200
    node = response.json()
    assert node["name"] == "Kitengela"
    assert node["host"] == "192.168.88.5"
    assert node["status"] == "OFFLINE"
    assert db_session.get(RouterNode, node["id"]).username == "dartbit"
    assert api_client.get("/api/discovered").json() == []


def test_finalize_unknown_record(api_client):
    response = api_client.post("/api/discovery/d-nope/finalize", json={"name": "X"})
    assert response.status_code == 404
    assert response.json()["message"] == "Discovery record not found"


def test_finalize_requires_name(api_client):
    api_client.get("/boot", params={"ip": "192.168.88.9"})
    record_id = api_client.get("/api/discovery/latest").json()["id"]
    response = api_client.post(f"/api/discovery/{record_id}/finalize", json={})
    assert response.status_code == 422


def test_loader_command(api_client):
    response = api_client.get(
        "/api/discovery/loader-command", params={"server_host": "10.20.0.2"}
    )
    assert response.status_code == 200
    assert response.json()["command"].startswith('/tool fetch url="http://10.20.0.2:5000/boot"')


def test_loader_command_requires_server_host(api_client):
    assert api_client.get("/api/discovery/loader-command").status_code == 422


def test_unknown_route_uses_error_payload(api_client):
    response = api_client.get("/api/nothing-here")
    assert response.status_code == 404
    assert set(response.json()) == {"code", "message", "details", "request_id"}
