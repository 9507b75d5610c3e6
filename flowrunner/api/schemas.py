"""
Pydantic Schemas for API Request/Response Models.

These schemas define the structure of data flowing through the API,
providing automatic validation and documentation.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from flowrunner.engine.node import NodeStatus, NodeType
from flowrunner.engine.state import RunPhase


# ============================================================
# Node Schemas
# ============================================================

class ActionConfigModel(BaseModel):
    """HTTP call configuration of an action node."""
    url: str = Field("", description="Endpoint to call; empty means no call")
    method: str = Field("GET", description="GET, POST, PUT, DELETE or PATCH")
    headers: str = Field(
        '{"Content-Type": "application/json"}',
        description="Headers as a JSON object string"
    )
    body: str = Field("", description="Request body, sent for POST/PUT/PATCH only")
    timeout_seconds: int = Field(30, description="Hard timeout for the whole call")


class ActionConfigUpdate(BaseModel):
    """Partial update of an action node's config."""
    url: Optional[str] = None
    method: Optional[str] = None
    headers: Optional[str] = None
    body: Optional[str] = None
    timeout_seconds: Optional[int] = None


class NodeCreateRequest(BaseModel):
    """Request to add a node to the workflow."""
    type: NodeType = Field(..., description="entry, action or exit")
    name: Optional[str] = Field(None, description="Label (defaults per type)")
    config: Optional[ActionConfigUpdate] = Field(
        None,
        description="Initial config, action nodes only"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "type": "action",
                "name": "Fetch Todo",
                "config": {
                    "url": "https://jsonplaceholder.typicode.com/todos/1",
                    "method": "GET",
                    "timeout_seconds": 10
                }
            }
        }


class NodeUpdateRequest(BaseModel):
    """Request to rename a node and/or change its config."""
    name: Optional[str] = None
    config: Optional[ActionConfigUpdate] = None


class NodeResponse(BaseModel):
    """A node as seen by the editor."""
    id: str
    type: NodeType
    name: str
    status: NodeStatus
    config: Optional[ActionConfigModel] = None


# ============================================================
# Connection Schemas
# ============================================================

class ConnectionModel(BaseModel):
    """A directed connection between two nodes."""
    source: str = Field(..., description="Id of the node the connection leaves")
    target: str = Field(..., description="Id of the node the connection enters")


# ============================================================
# Graph Schemas
# ============================================================

class GraphResponse(BaseModel):
    """The whole workflow."""
    graph_id: str
    name: str
    nodes: List[NodeResponse]
    connections: List[ConnectionModel]
    entry_nodes: List[str]
    exit_nodes: List[str]
    validation_errors: List[str] = Field(default_factory=list)
    mermaid_diagram: Optional[str] = Field(None, description="Mermaid diagram of the graph")


# ============================================================
# Execution Schemas
# ============================================================

class ControlResponse(BaseModel):
    """Result of a start/pause/resume/reset call."""
    ok: bool
    reason: str
    phase: RunPhase


class ExecutionLogEntry(BaseModel):
    """A single node dispatch."""
    step: int
    node_id: str
    node_name: str
    started_at: str
    completed_at: Optional[str]
    duration_ms: Optional[float]
    result: str
    error: Optional[str]


class ExecutionStateResponse(BaseModel):
    """Snapshot of the engine."""
    phase: RunPhase
    run_id: Optional[str]
    current_node: Optional[str]
    paused_at: Optional[str]
    statuses: Dict[str, NodeStatus]
    steps: List[ExecutionLogEntry]

    class Config:
        json_schema_extra = {
            "example": {
                "phase": "paused",
                "run_id": "4f1c2a9e-6d0b-4c1e-9a55-0e2b9d1f7c3a",
                "current_node": None,
                "paused_at": "node_3f9a1c2b7d4e",
                "statuses": {
                    "node_a1b2c3d4e5f6": "completed",
                    "node_3f9a1c2b7d4e": "idle",
                    "node_0c9d8e7f6a5b": "idle"
                },
                "steps": []
            }
        }


# ============================================================
# Event Schemas
# ============================================================

class NotificationEntry(BaseModel):
    """A terminal line."""
    level: str
    message: str
    timestamp: str


class EventLogResponse(BaseModel):
    """Terminal history."""
    events: List[NotificationEntry]
    total: int


# ============================================================
# Error Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int
