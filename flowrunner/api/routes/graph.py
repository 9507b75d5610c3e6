"""
Graph API Routes.

Endpoints the editor uses to build the workflow: nodes, their config, and
the connections between them.
"""

from fastapi import APIRouter, Depends, HTTPException, status
import logging

from flowrunner.api.deps import get_workspace
from flowrunner.api.schemas import (
    ConnectionModel,
    ErrorResponse,
    GraphResponse,
    NodeCreateRequest,
    NodeResponse,
    NodeUpdateRequest,
)
from flowrunner.engine.errors import GraphError
from flowrunner.engine.node import Node
from flowrunner.workspace import Workspace, WorkspaceBusyError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/graph", tags=["Graph"])


def _node_response(node: Node) -> NodeResponse:
    return NodeResponse(**node.to_dict())


def _graph_error(e: GraphError) -> HTTPException:
    code = 409 if isinstance(e, WorkspaceBusyError) else 400
    return HTTPException(status_code=code, detail=str(e))


def _node_not_found(node_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Node '{node_id}' not found")


# ============================================================
# Graph
# ============================================================

@router.get("", response_model=GraphResponse)
async def get_graph(workspace: Workspace = Depends(get_workspace)) -> GraphResponse:
    """Get the whole workflow, with a Mermaid diagram."""
    graph = workspace.graph
    data = graph.to_dict()
    return GraphResponse(
        graph_id=data["graph_id"],
        name=data["name"],
        nodes=[_node_response(n) for n in graph.nodes.values()],
        connections=[ConnectionModel(**c) for c in data["connections"]],
        entry_nodes=data["entry_nodes"],
        exit_nodes=data["exit_nodes"],
        validation_errors=graph.validate(),
        mermaid_diagram=graph.to_mermaid(),
    )


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_graph(workspace: Workspace = Depends(get_workspace)):
    """Reset execution and remove every node and connection."""
    workspace.clear()


# ============================================================
# Nodes
# ============================================================

@router.post(
    "/nodes",
    response_model=NodeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "Invalid node definition"}},
)
async def create_node(
    request: NodeCreateRequest,
    workspace: Workspace = Depends(get_workspace),
) -> NodeResponse:
    """
    Add a node.

    Action nodes get the default config (GET, JSON content type, 30s
    timeout) merged with whatever config is supplied.
    """
    config = request.config.model_dump(exclude_none=True) if request.config else None
    try:
        node = workspace.create_node(request.type, name=request.name or "", config=config)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Created node: {node.id} ({node.type.value})")
    return _node_response(node)


@router.get(
    "/nodes/{node_id}",
    response_model=NodeResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_node(node_id: str, workspace: Workspace = Depends(get_workspace)) -> NodeResponse:
    """Get a single node."""
    node = workspace.get_node(node_id)
    if node is None:
        raise _node_not_found(node_id)
    return _node_response(node)


@router.patch(
    "/nodes/{node_id}",
    response_model=NodeResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid name or config"},
        404: {"model": ErrorResponse},
    },
)
async def update_node(
    node_id: str,
    request: NodeUpdateRequest,
    workspace: Workspace = Depends(get_workspace),
) -> NodeResponse:
    """
    Rename a node and/or update its config.

    Allowed while a run is paused: the new config is used when the node
    is dispatched on resume.
    """
    if workspace.get_node(node_id) is None:
        raise _node_not_found(node_id)

    config = request.config.model_dump(exclude_none=True) if request.config else None
    try:
        node = workspace.update_node(node_id, name=request.name, config=config)
    except GraphError as e:
        raise _graph_error(e)

    return _node_response(node)


@router.delete(
    "/nodes/{node_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_node(node_id: str, workspace: Workspace = Depends(get_workspace)):
    """Delete a node and its connections."""
    try:
        deleted = workspace.delete_node(node_id)
    except GraphError as e:
        raise _graph_error(e)
    if not deleted:
        raise _node_not_found(node_id)
    logger.info(f"Deleted node: {node_id}")


# ============================================================
# Connections
# ============================================================

@router.post(
    "/connections",
    response_model=ConnectionModel,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Self, duplicate or dangling connection"},
        409: {"model": ErrorResponse, "description": "Workflow is executing"},
    },
)
async def create_connection(
    request: ConnectionModel,
    workspace: Workspace = Depends(get_workspace),
) -> ConnectionModel:
    """Connect two nodes."""
    try:
        connection = workspace.connect(request.source, request.target)
    except GraphError as e:
        raise _graph_error(e)
    return ConnectionModel(**connection.to_dict())


@router.delete(
    "/connections",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_connection(
    source: str,
    target: str,
    workspace: Workspace = Depends(get_workspace),
):
    """Remove the connection source -> target."""
    try:
        removed = workspace.disconnect(source, target)
    except GraphError as e:
        raise _graph_error(e)
    if not removed:
        raise HTTPException(
            status_code=404,
            detail=f"Connection '{source}' -> '{target}' not found"
        )
