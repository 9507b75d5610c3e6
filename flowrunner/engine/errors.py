"""
Error types raised by the workflow engine.
"""

from typing import Optional


class FlowRunnerError(Exception):
    """Base exception for all FlowRunner errors."""

    pass


class GraphError(FlowRunnerError, ValueError):
    """Raised when a graph edit or node configuration is invalid."""

    pass


class NodeExecutionError(FlowRunnerError):
    """Raised when a node's side effect fails and the run must stop."""

    def __init__(
        self,
        node_id: str,
        message: str,
        original_error: Optional[Exception] = None
    ):
        self.node_id = node_id
        self.message = message
        self.original_error = original_error
        super().__init__(message)
