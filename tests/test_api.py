"""
Tests for the FastAPI endpoints.
"""

import pytest
import asyncio
from fastapi.testclient import TestClient
import httpx
from httpx import AsyncClient, ASGITransport

from flowrunner.config import Settings
from flowrunner.main import create_app
from flowrunner.workspace import Workspace


@pytest.fixture
def settings():
    return Settings(LOAD_DEMO_WORKFLOW=False)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    return TestClient(app)


def add_node(client, node_type, **fields):
    response = client.post("/graph/nodes", json={"type": node_type, **fields})
    assert response.status_code == 201
    return response.json()


async def wait_until(predicate, timeout=2.0):
    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(poll(), timeout)


# ============================================================
# Sync Tests
# ============================================================

class TestRootEndpoints:
    """Tests for root endpoints."""

    def test_root(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["name"] == "FlowRunner"
        assert "version" in data
        assert "endpoints" in data

    def test_health(self, client):
        """Test health endpoint."""
        add_node(client, "entry")

        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["nodes_count"] == 1
        assert data["connections_count"] == 0
        assert data["phase"] == "idle"


class TestNodeEndpoints:
    """Tests for node endpoints."""

    def test_create_entry_node(self, client):
        data = add_node(client, "entry")
        assert data["id"].startswith("node_")
        assert data["type"] == "entry"
        assert data["name"] == "Start Node"
        assert data["status"] == "idle"
        assert data["config"] is None

    def test_create_action_node_with_config(self, client):
        """Test that supplied config is merged over the defaults."""
        data = add_node(
            client, "action",
            name="Create User",
            config={"url": "http://api.test/users", "method": "post"},
        )
        assert data["name"] == "Create User"
        assert data["config"]["method"] == "POST"
        assert data["config"]["url"] == "http://api.test/users"
        assert data["config"]["headers"] == '{"Content-Type": "application/json"}'
        assert data["config"]["timeout_seconds"] == 30

    def test_create_invalid_nodes(self, client):
        assert client.post("/graph/nodes", json={"type": "bogus"}).status_code == 422

        response = client.post(
            "/graph/nodes",
            json={"type": "action", "config": {"method": "TRACE"}},
        )
        assert response.status_code == 400

        response = client.post(
            "/graph/nodes",
            json={"type": "exit", "config": {"url": "http://api.test/"}},
        )
        assert response.status_code == 400

    def test_get_node(self, client):
        node = add_node(client, "exit")

        response = client.get(f"/graph/nodes/{node['id']}")
        assert response.status_code == 200
        assert response.json()["name"] == "End Node"

        assert client.get("/graph/nodes/node_missing").status_code == 404

    def test_update_node(self, client):
        """Test renaming a node and changing its config."""
        node = add_node(client, "action")

        response = client.patch(
            f"/graph/nodes/{node['id']}",
            json={"name": "Ping", "config": {"url": "http://api.test/ping", "timeout_seconds": 5}},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Ping"
        assert data["config"]["url"] == "http://api.test/ping"
        assert data["config"]["timeout_seconds"] == 5
        assert data["config"]["method"] == "GET"

    def test_update_node_errors(self, client):
        entry = add_node(client, "entry")
        action = add_node(client, "action")

        response = client.patch(f"/graph/nodes/{entry['id']}", json={"config": {"url": "http://x"}})
        assert response.status_code == 400

        response = client.patch(f"/graph/nodes/{action['id']}", json={"name": ""})
        assert response.status_code == 400

        response = client.patch(f"/graph/nodes/{action['id']}", json={"config": {"method": "TRACE"}})
        assert response.status_code == 400

        assert client.patch("/graph/nodes/node_missing", json={"name": "x"}).status_code == 404

    def test_rejected_update_changes_nothing(self, client):
        """Test that a valid name is not kept when the config is invalid."""
        node = add_node(client, "action", name="Fetch")

        response = client.patch(
            f"/graph/nodes/{node['id']}",
            json={"name": "Renamed", "config": {"method": "TRACE"}},
        )
        assert response.status_code == 400

        data = client.get(f"/graph/nodes/{node['id']}").json()
        assert data["name"] == "Fetch"
        assert data["config"]["method"] == "GET"

    def test_delete_node(self, client):
        """Test that deleting a node also removes its connections."""
        start = add_node(client, "entry")
        end = add_node(client, "exit")
        client.post("/graph/connections", json={"source": start["id"], "target": end["id"]})

        assert client.delete(f"/graph/nodes/{end['id']}").status_code == 204
        assert client.get(f"/graph/nodes/{end['id']}").status_code == 404
        assert client.get("/graph").json()["connections"] == []
        assert client.delete(f"/graph/nodes/{end['id']}").status_code == 404


class TestGraphEndpoints:
    """Tests for graph and connection endpoints."""

    def test_empty_graph(self, client):
        response = client.get("/graph")
        assert response.status_code == 200

        data = response.json()
        assert data["nodes"] == []
        assert len(data["validation_errors"]) == 2
        assert data["mermaid_diagram"] == "graph LR"

    def test_connections(self, client):
        """Test connection creation and its guards."""
        start = add_node(client, "entry")
        end = add_node(client, "exit")
        pair = {"source": start["id"], "target": end["id"]}

        response = client.post("/graph/connections", json=pair)
        assert response.status_code == 201
        assert response.json() == pair

        assert client.post("/graph/connections", json=pair).status_code == 400
        self_loop = {"source": start["id"], "target": start["id"]}
        assert client.post("/graph/connections", json=self_loop).status_code == 400
        dangling = {"source": start["id"], "target": "node_missing"}
        assert client.post("/graph/connections", json=dangling).status_code == 400

        data = client.get("/graph").json()
        assert data["connections"] == [pair]
        assert data["entry_nodes"] == [start["id"]]
        assert data["exit_nodes"] == [end["id"]]
        assert data["validation_errors"] == []
        assert f"{start['id']} --> {end['id']}" in data["mermaid_diagram"]

        assert client.delete("/graph/connections", params=pair).status_code == 204
        assert client.delete("/graph/connections", params=pair).status_code == 404

    def test_clear_graph(self, client):
        add_node(client, "entry")
        add_node(client, "exit")

        assert client.delete("/graph").status_code == 204
        assert client.get("/graph").json()["nodes"] == []


class TestExecutionEndpoints:
    """Tests for control endpoints that do not need a live run."""

    def test_idle_state(self, client):
        response = client.get("/execution")
        assert response.status_code == 200

        data = response.json()
        assert data["phase"] == "idle"
        assert data["run_id"] is None
        assert data["steps"] == []

    def test_rejected_transitions(self, client):
        """Test that invalid control calls answer 409."""
        response = client.post("/execution/pause")
        assert response.status_code == 409
        assert response.json() == {
            "ok": False,
            "reason": "No workflow is currently executing",
            "phase": "idle",
        }

        response = client.post("/execution/resume")
        assert response.status_code == 409
        assert response.json()["reason"] == "No paused workflow to resume"

        response = client.post("/execution/start")
        assert response.status_code == 409
        assert response.json()["reason"] == (
            "No entry nodes found. Please add an entry node to begin execution."
        )

    def test_reset(self, client):
        node = add_node(client, "entry")

        response = client.post("/execution/reset")
        assert response.status_code == 200
        assert response.json()["ok"] is True

        statuses = client.get("/execution").json()["statuses"]
        assert statuses == {node["id"]: "idle"}

    def test_events(self, client):
        """Test reading and clearing the terminal."""
        add_node(client, "entry")

        data = client.get("/events").json()
        assert data["total"] == 1
        assert data["events"][0]["level"] == "success"
        assert data["events"][0]["message"] == "Created Start Node"

        assert client.delete("/events").status_code == 204
        data = client.get("/events").json()
        assert [e["message"] for e in data["events"]] == ["Terminal cleared"]


class TestEventStream:
    """Tests for the WebSocket event stream."""

    def test_history_then_snapshot(self, client):
        node = add_node(client, "entry")

        with client.websocket_connect("/ws/events") as websocket:
            first = websocket.receive_json()
            assert first["type"] == "notification"
            assert first["message"] == "Created Start Node"

            snapshot = websocket.receive_json()
            assert snapshot == {
                "type": "snapshot",
                "phase": "idle",
                "statuses": {node["id"]: "idle"},
            }


class TestDemoStartup:
    """Tests for loading the demo workflow at startup."""

    def test_demo_loaded_on_startup(self):
        settings = Settings(LOAD_DEMO_WORKFLOW=True, DEMO_API_URL="http://api.test/todo")
        app = create_app(settings)

        with TestClient(app) as client:
            data = client.get("/graph").json()

        assert [n["name"] for n in data["nodes"]] == ["Start Node", "Fetch Todo", "End Node"]
        assert data["nodes"][1]["config"]["url"] == "http://api.test/todo"
        assert len(data["connections"]) == 2


# ============================================================
# Async Tests (live runs)
# ============================================================

@pytest.mark.asyncio
async def test_run_workflow(settings):
    """Test building and running a workflow over HTTP."""
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"id": 1})

    workspace = Workspace(settings, transport=httpx.MockTransport(handler))
    app = create_app(settings, workspace)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        ids = []
        for node in (
            {"type": "entry"},
            {"type": "action", "config": {"url": "http://api.test/todos/1"}},
            {"type": "exit"},
        ):
            response = await ac.post("/graph/nodes", json=node)
            ids.append(response.json()["id"])
        for source, target in zip(ids, ids[1:]):
            await ac.post("/graph/connections", json={"source": source, "target": target})

        response = await ac.post("/execution/start")
        assert response.status_code == 202
        assert response.json() == {"ok": True, "reason": "started", "phase": "running"}

        result = await workspace.engine.wait()
        assert result.reason == "completed"

        data = (await ac.get("/execution")).json()
        assert data["phase"] == "idle"
        assert set(data["statuses"].values()) == {"completed"}
        assert [s["node_id"] for s in data["steps"]] == ids

        messages = [e["message"] for e in (await ac.get("/events")).json()["events"]]
        assert "API call successful: 200 OK" in messages
        assert messages[-1] == "Workflow execution completed successfully"

    assert [r.url.path for r in requests] == ["/todos/1"]


@pytest.mark.asyncio
async def test_pause_edit_and_resume(settings):
    """Test pausing mid-call, editing the pending config, and resuming."""
    requests = []
    gate = asyncio.Event()

    async def handler(request):
        requests.append(request)
        await gate.wait()
        return httpx.Response(200)

    workspace = Workspace(settings, transport=httpx.MockTransport(handler))
    app = create_app(settings, workspace)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        start = (await ac.post("/graph/nodes", json={"type": "entry"})).json()
        action = (await ac.post(
            "/graph/nodes",
            json={"type": "action", "config": {"url": "http://api.test/v1"}},
        )).json()
        end = (await ac.post("/graph/nodes", json={"type": "exit"})).json()
        await ac.post("/graph/connections", json={"source": start["id"], "target": action["id"]})
        await ac.post("/graph/connections", json={"source": action["id"], "target": end["id"]})

        assert (await ac.post("/execution/start")).status_code == 202
        await wait_until(lambda: len(requests) == 1)

        response = await ac.post("/execution/start")
        assert response.status_code == 409
        assert response.json()["reason"] == "Workflow is already executing"

        response = await ac.post(
            "/graph/connections",
            json={"source": start["id"], "target": end["id"]},
        )
        assert response.status_code == 409

        response = await ac.post("/execution/pause")
        assert response.status_code == 200
        assert response.json()["phase"] == "paused"

        gate.set()
        result = await workspace.engine.wait()
        assert result.reason == "paused"

        data = (await ac.get("/execution")).json()
        assert data["paused_at"] == action["id"]
        assert data["statuses"] == {
            start["id"]: "completed",
            action["id"]: "idle",
            end["id"]: "idle",
        }

        response = await ac.patch(
            f"/graph/nodes/{action['id']}",
            json={"config": {"url": "http://api.test/v2"}},
        )
        assert response.status_code == 200

        response = await ac.post("/execution/resume")
        assert response.status_code == 202
        result = await workspace.engine.wait()
        assert result.reason == "completed"

    assert [r.url.path for r in requests] == ["/v1", "/v2"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
