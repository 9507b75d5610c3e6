"""
Tests for the Workspace and the demo workflow.
"""

import pytest
import asyncio

from flowrunner.config import Settings
from flowrunner.engine.errors import GraphError, NodeExecutionError
from flowrunner.engine.executor import NodeResult
from flowrunner.engine.node import DEFAULT_HEADERS, NodeType
from flowrunner.engine.state import RunPhase
from flowrunner.workflows.demo import create_demo_workflow, load_demo_workflow
from flowrunner.workspace import Workspace, WorkspaceBusyError


class GatedExecutor:
    """Holds every node until released."""

    def __init__(self):
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def execute(self, node, interrupt=None):
        self.entered.set()
        await self.release.wait()
        return NodeResult(node_id=node.id, duration_ms=0.0)


@pytest.fixture
def settings():
    return Settings(LOAD_DEMO_WORKFLOW=False, EVENT_HISTORY_LIMIT=50)


@pytest.fixture
def workspace(settings):
    return Workspace(settings)


def messages(workspace):
    return [n.message for n in workspace.events.history]


class TestWorkspaceEditing:
    """Tests for node and connection editing."""

    def test_create_node_is_announced(self, workspace):
        node = workspace.create_node("entry")
        assert workspace.get_node(node.id) is node
        assert messages(workspace) == ["Created Start Node"]

    def test_rename_node(self, workspace):
        node = workspace.create_node(NodeType.ACTION)
        workspace.rename_node(node.id, "Fetch Users")
        assert node.name == "Fetch Users"

        with pytest.raises(GraphError):
            workspace.rename_node(node.id, "   ")
        with pytest.raises(KeyError):
            workspace.rename_node("node_missing", "x")

    def test_update_config_merges(self, workspace):
        """Test that a partial update keeps the other fields."""
        node = workspace.create_node(NodeType.ACTION)
        workspace.update_config(node.id, {"url": "http://api.test/users", "method": "post"})

        assert node.config.url == "http://api.test/users"
        assert node.config.method == "POST"
        assert node.config.headers == DEFAULT_HEADERS
        assert node.config.timeout_seconds == 30
        assert messages(workspace)[-1] == "Updated API config for API Call Node"

    def test_invalid_config_leaves_node_untouched(self, workspace):
        node = workspace.create_node(NodeType.ACTION, config={"url": "http://api.test/"})

        with pytest.raises(GraphError):
            workspace.update_config(node.id, {"method": "TRACE", "url": "http://other.test/"})

        assert node.config.url == "http://api.test/"
        assert node.config.method == "GET"

    def test_update_node_is_all_or_nothing(self, workspace):
        """Test that name and config are validated before either applies."""
        node = workspace.create_node(NodeType.ACTION, name="Fetch")

        with pytest.raises(GraphError):
            workspace.update_node(node.id, name="Renamed", config={"method": "TRACE"})
        with pytest.raises(GraphError):
            workspace.update_node(node.id, name=" ", config={"url": "http://api.test/"})

        assert node.name == "Fetch"
        assert node.config.url == ""

        workspace.update_node(node.id, name="Renamed", config={"url": "http://api.test/"})
        assert node.name == "Renamed"
        assert node.config.url == "http://api.test/"

    def test_config_on_non_action_node(self, workspace):
        node = workspace.create_node(NodeType.EXIT)
        with pytest.raises(GraphError):
            workspace.update_config(node.id, {"url": "http://api.test/"})

    def test_connect_and_disconnect(self, workspace):
        start = workspace.create_node(NodeType.ENTRY)
        end = workspace.create_node(NodeType.EXIT)

        workspace.connect(start.id, end.id)
        assert messages(workspace)[-1] == 'Connected "Start Node" to "End Node"'
        with pytest.raises(GraphError):
            workspace.connect(start.id, end.id)

        assert workspace.disconnect(start.id, end.id)
        assert not workspace.disconnect(start.id, end.id)

    def test_delete_node(self, workspace):
        start = workspace.create_node(NodeType.ENTRY)
        end = workspace.create_node(NodeType.EXIT)
        workspace.connect(start.id, end.id)

        assert workspace.delete_node(end.id)
        assert workspace.graph.connections == []
        assert messages(workspace)[-1] == "Deleted End Node"
        assert not workspace.delete_node(end.id)

    def test_clear(self, workspace):
        """Test that clearing resets execution and drops the graph."""
        create_demo_workflow(workspace.graph)
        workspace.clear()

        assert len(workspace.graph) == 0
        assert workspace.engine.phase == RunPhase.IDLE
        assert messages(workspace)[-1] == "Workflow reset - all nodes and connections cleared"


class TestWorkspaceWhileRunning:
    """Tests for edits made while a run is in progress."""

    @pytest.mark.asyncio
    async def test_structural_edits_rejected(self, settings):
        executor = GatedExecutor()
        workspace = Workspace(settings, executor=executor)
        start = workspace.create_node(NodeType.ENTRY)
        action = workspace.create_node(NodeType.ACTION)
        end = workspace.create_node(NodeType.EXIT)
        workspace.connect(start.id, end.id)

        assert workspace.engine.start_background().ok
        await executor.entered.wait()

        with pytest.raises(WorkspaceBusyError):
            workspace.delete_node(action.id)
        with pytest.raises(WorkspaceBusyError):
            workspace.connect(start.id, action.id)
        with pytest.raises(WorkspaceBusyError):
            workspace.disconnect(start.id, end.id)

        # Labels and config stay editable
        workspace.rename_node(action.id, "Later")
        workspace.update_config(action.id, {"url": "http://api.test/later"})

        executor.release.set()
        result = await workspace.engine.wait()

        assert result.reason == "completed"
        assert workspace.delete_node(action.id)

    @pytest.mark.asyncio
    async def test_run_messages_reach_the_terminal(self, settings):
        workspace = Workspace(settings)
        start = workspace.create_node(NodeType.ENTRY)
        end = workspace.create_node(NodeType.EXIT)
        workspace.connect(start.id, end.id)

        result = await workspace.engine.start()

        assert result.ok
        log = messages(workspace)
        assert "Starting workflow execution..." in log
        assert "Completed: Start Node" in log
        assert log[-1] == "Workflow execution completed successfully"


class TestDemoWorkflow:
    """Tests for the demo workflow."""

    def test_create_demo_workflow(self):
        graph = create_demo_workflow(url="http://api.test/todo")

        assert len(graph) == 3
        assert graph.validate() == []
        action = next(n for n in graph.nodes.values() if n.type == NodeType.ACTION)
        assert action.name == "Fetch Todo"
        assert action.config.url == "http://api.test/todo"
        assert action.config.timeout_seconds == 10
        assert len(graph.connections) == 2

    def test_load_only_into_empty_workspace(self):
        settings = Settings(DEMO_API_URL="http://api.test/todo")
        workspace = Workspace(settings)

        load_demo_workflow(workspace)
        load_demo_workflow(workspace)

        assert len(workspace.graph) == 3
        urls = [n.config.url for n in workspace.graph.nodes.values() if n.config]
        assert urls == ["http://api.test/todo"]

    @pytest.mark.asyncio
    async def test_demo_failure_is_reported(self, settings):
        """Test that an unreachable demo endpoint fails the run cleanly."""
        class OfflineExecutor:
            async def execute(self, node, interrupt=None):
                if node.type == NodeType.ACTION:
                    raise NodeExecutionError(node.id, "offline")
                return NodeResult(node_id=node.id, duration_ms=0.0)

        workspace = Workspace(settings, executor=OfflineExecutor())
        load_demo_workflow(workspace)

        result = await workspace.engine.start()

        assert result.reason == "offline"
        assert messages(workspace)[-1] == "Workflow execution failed: offline"
