"""
In-Memory Workspace.

The workspace owns the one graph being edited, the engine that runs it and
the terminal log both of them write to. It is created once per application
and handed to the routes explicitly; nothing here is global.
"""

from typing import Any, Dict, Optional, Union
import logging

import httpx

from flowrunner.config import Settings
from flowrunner.engine.engine import ExecutionEngine
from flowrunner.engine.errors import GraphError
from flowrunner.engine.events import (
    CompositeSink,
    EventLog,
    LoggingSink,
    Notification,
    NotificationLevel,
)
from flowrunner.engine.executor import NodeExecutor
from flowrunner.engine.graph import Connection, Graph
from flowrunner.engine.node import ActionConfig, Node, NodeType
from flowrunner.engine.state import RunPhase


logger = logging.getLogger(__name__)


class WorkspaceBusyError(GraphError):
    """Raised when a structural edit is attempted while a run is active."""
    pass


class Workspace:
    """
    The editor-facing side of the system.

    Node names and action configs may change at any time; the engine reads
    config when it dispatches a node, so edits made while paused apply on
    resume. Structural edits (deleting nodes, clearing, connecting) are
    refused while a run is in progress.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        executor: Optional[NodeExecutor] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = settings or Settings()
        self.settings = settings
        self.graph = Graph(name=settings.APP_NAME)
        self.events = EventLog(limit=settings.EVENT_HISTORY_LIMIT)
        self.sink = CompositeSink(self.events, LoggingSink())
        self.executor = executor or NodeExecutor(
            self.sink,
            transport=transport,
            pacing_delay=settings.NODE_PACING_DELAY,
        )
        self.engine = ExecutionEngine(self.graph, self.sink, self.executor)

    # ------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------

    def create_node(
        self,
        node_type: Union[NodeType, str],
        name: str = "",
        config: Optional[Union[ActionConfig, Dict[str, Any]]] = None,
    ) -> Node:
        """Create a node and announce it."""
        node = self.graph.create_node(node_type, name=name, config=config)
        self._notify(NotificationLevel.SUCCESS, f"Created {node.name}")
        return node

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.graph.get_node(node_id)

    def rename_node(self, node_id: str, name: str) -> Node:
        node = self._require(node_id)
        if not name.strip():
            raise GraphError("Node name cannot be empty")
        node.name = name
        return node

    def update_config(self, node_id: str, updates: Dict[str, Any]) -> Node:
        """
        Merge updates into an action node's config.

        The merged config is validated as a whole before it replaces the
        old one, so a bad field leaves the node untouched.
        """
        node = self._require(node_id)
        node.config = self._merged_config(node, updates)
        self._notify(NotificationLevel.INFO, f"Updated API config for {node.name}")
        return node

    def update_node(
        self,
        node_id: str,
        name: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> Node:
        """
        Rename a node and/or update its config as one edit.

        Both parts are validated before either is applied.
        """
        node = self._require(node_id)
        if name is not None and not name.strip():
            raise GraphError("Node name cannot be empty")
        new_config = self._merged_config(node, config) if config is not None else None

        if name is not None:
            node.name = name
        if new_config is not None:
            node.config = new_config
            self._notify(NotificationLevel.INFO, f"Updated API config for {node.name}")
        return node

    def _merged_config(self, node: Node, updates: Dict[str, Any]) -> ActionConfig:
        if node.type != NodeType.ACTION:
            raise GraphError(f"Node '{node.name}' is not an action node and has no config")

        merged = {**node.config.model_dump(), **updates}
        try:
            return ActionConfig(**merged)
        except ValueError as e:
            raise GraphError(f"Invalid config for '{node.name}': {e}") from e

    def delete_node(self, node_id: str) -> bool:
        self._ensure_not_running("delete nodes")
        node = self.graph.get_node(node_id)
        if node is None:
            return False
        self.graph.remove_node(node_id)
        self._notify(NotificationLevel.INFO, f"Deleted {node.name}")
        return True

    # ------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------

    def connect(self, source_id: str, target_id: str) -> Connection:
        self._ensure_not_running("add connections")
        connection = self.graph.add_connection(source_id, target_id)
        source = self.graph.nodes[source_id]
        target = self.graph.nodes[target_id]
        self._notify(NotificationLevel.INFO, f'Connected "{source.name}" to "{target.name}"')
        return connection

    def disconnect(self, source_id: str, target_id: str) -> bool:
        self._ensure_not_running("remove connections")
        return self.graph.remove_connection(source_id, target_id)

    # ------------------------------------------------------------
    # Whole workflow
    # ------------------------------------------------------------

    def clear(self) -> None:
        """Reset execution and drop every node and connection."""
        self.engine.reset()
        self.graph.clear()
        self._notify(
            NotificationLevel.WARNING,
            "Workflow reset - all nodes and connections cleared"
        )
        logger.info("Workspace cleared")

    def _require(self, node_id: str) -> Node:
        node = self.graph.get_node(node_id)
        if node is None:
            raise KeyError(node_id)
        return node

    def _ensure_not_running(self, action: str) -> None:
        if self.engine.phase == RunPhase.RUNNING:
            raise WorkspaceBusyError(f"Cannot {action} while the workflow is executing")

    def _notify(self, level: NotificationLevel, message: str) -> None:
        self.sink.notify(Notification(level, message))

    def __repr__(self) -> str:
        return f"Workspace(graph={self.graph!r}, phase='{self.engine.phase.value}')"
