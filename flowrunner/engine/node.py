"""
Node Definition for the Workflow Engine.

Nodes are the building blocks of a workflow. Each node has a type that
decides what happens when the engine reaches it: entry and exit nodes mark
where traversal starts and ends, action nodes may call an HTTP endpoint.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass, field
from enum import Enum
import uuid

from pydantic import BaseModel, Field, field_validator

from flowrunner.engine.errors import GraphError


DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_HEADERS = '{"Content-Type": "application/json"}'
HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")
BODY_METHODS = ("POST", "PUT", "PATCH")


class NodeType(str, Enum):
    """Types of nodes in the workflow."""
    ENTRY = "entry"      # Traversal starts here
    ACTION = "action"    # Optional outbound HTTP call
    EXIT = "exit"        # Traversal end point


class NodeStatus(str, Enum):
    """Execution status of a single node."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


# Default labels, matching what the editor shows for a freshly dropped node
DEFAULT_NAMES: Dict[NodeType, str] = {
    NodeType.ENTRY: "Start Node",
    NodeType.ACTION: "API Call Node",
    NodeType.EXIT: "End Node",
}


class ActionConfig(BaseModel):
    """
    HTTP call configuration carried by action nodes.

    `headers` stays a raw string; it is parsed when the node executes so
    that a malformed value only produces a warning at run time.
    """

    url: str = ""
    method: str = "GET"
    headers: str = DEFAULT_HEADERS
    body: str = ""
    timeout_seconds: int = Field(DEFAULT_TIMEOUT_SECONDS)

    class Config:
        validate_assignment = True

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> str:
        method = str(value or "GET").strip().upper()
        if method not in HTTP_METHODS:
            raise ValueError(
                f"Unsupported HTTP method '{value}'. "
                f"Expected one of: {', '.join(HTTP_METHODS)}"
            )
        return method

    @field_validator("timeout_seconds", mode="before")
    @classmethod
    def _default_timeout(cls, value: Any) -> int:
        try:
            timeout = float(value)
        except (TypeError, ValueError):
            return DEFAULT_TIMEOUT_SECONDS
        # Whole positive seconds only; 2.5, inf and nan fall back too
        if not timeout.is_integer() or timeout <= 0:
            return DEFAULT_TIMEOUT_SECONDS
        return int(timeout)

    @field_validator("url", "headers", "body", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> str:
        return "" if value is None else value

    @property
    def sends_body(self) -> bool:
        """Whether the configured request carries a body."""
        return self.method in BODY_METHODS and bool(self.body)


def generate_node_id() -> str:
    return f"node_{uuid.uuid4().hex[:12]}"


@dataclass(eq=False)
class Node:
    """
    A node in the workflow graph.

    Attributes:
        id: Unique identifier, assigned at creation
        type: Entry, action or exit
        name: Human-readable label (not unique)
        config: HTTP call configuration, action nodes only
        status: Execution status, written by the engine only
    """

    type: NodeType
    name: str = ""
    config: Optional[ActionConfig] = None
    id: str = field(default_factory=generate_node_id)
    status: NodeStatus = NodeStatus.IDLE

    def __post_init__(self):
        """Validate the node after initialization."""
        try:
            self.type = NodeType(self.type)
        except ValueError as e:
            raise GraphError(f"Unknown node type '{self.type}'") from e

        if not self.id:
            raise GraphError("Node id cannot be empty")
        if not self.name:
            self.name = DEFAULT_NAMES[self.type]

        if self.type == NodeType.ACTION:
            if self.config is None:
                self.config = ActionConfig()
        elif self.config is not None:
            raise GraphError(
                f"Only action nodes carry a config, got one for {self.type.value} node '{self.name}'"
            )

    @property
    def is_entry(self) -> bool:
        return self.type == NodeType.ENTRY

    @property
    def is_exit(self) -> bool:
        return self.type == NodeType.EXIT

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the node to a dictionary."""
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "status": self.status.value,
            "config": self.config.model_dump() if self.config else None,
        }

    def __repr__(self) -> str:
        return f"Node(id='{self.id}', type='{self.type.value}', name='{self.name}')"
