"""
Engine package - Core workflow execution components.
"""

from flowrunner.engine.node import ActionConfig, Node, NodeStatus, NodeType
from flowrunner.engine.graph import Connection, Graph
from flowrunner.engine.state import ControlResult, ExecutionRun, RunPhase
from flowrunner.engine.events import (
    EventLog,
    EventSink,
    Notification,
    NotificationLevel,
    NullSink,
    StatusChange,
)
from flowrunner.engine.executor import NodeExecutor, NodeResult
from flowrunner.engine.engine import ExecutionEngine
from flowrunner.engine.errors import FlowRunnerError, GraphError, NodeExecutionError

__all__ = [
    "ActionConfig",
    "Node",
    "NodeStatus",
    "NodeType",
    "Connection",
    "Graph",
    "ControlResult",
    "ExecutionRun",
    "RunPhase",
    "EventLog",
    "EventSink",
    "Notification",
    "NotificationLevel",
    "NullSink",
    "StatusChange",
    "NodeExecutor",
    "NodeResult",
    "ExecutionEngine",
    "FlowRunnerError",
    "GraphError",
    "NodeExecutionError",
]
