"""
Execution API Routes.

Control endpoints for the engine (start, pause, resume, reset), the
execution snapshot, and the terminal history.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
import logging

from flowrunner.api.deps import get_workspace
from flowrunner.api.schemas import (
    ControlResponse,
    EventLogResponse,
    ExecutionLogEntry,
    ExecutionStateResponse,
    NotificationEntry,
)
from flowrunner.engine.state import ControlResult
from flowrunner.workspace import Workspace


logger = logging.getLogger(__name__)

router = APIRouter(tags=["Execution"])


def _control_response(
    result: ControlResult,
    workspace: Workspace,
    success_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """Rejected transitions are reported as 409 with the same body."""
    body = ControlResponse(**result.to_dict(), phase=workspace.engine.phase)
    code = success_code if result.ok else status.HTTP_409_CONFLICT
    return JSONResponse(status_code=code, content=body.model_dump(mode="json"))


_CONTROL_RESPONSES = {
    409: {"model": ControlResponse, "description": "Transition rejected in the current phase"},
}


@router.post(
    "/execution/start",
    response_model=ControlResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses=_CONTROL_RESPONSES,
)
async def start_execution(workspace: Workspace = Depends(get_workspace)):
    """
    Start the workflow in the background.

    Poll `GET /execution` or subscribe to `/ws/events` to follow it.
    Starting while paused continues the paused run.
    """
    result = workspace.engine.start_background()
    if not result:
        logger.info(f"Start rejected: {result.reason}")
    return _control_response(result, workspace, status.HTTP_202_ACCEPTED)


@router.post("/execution/pause", response_model=ControlResponse, responses=_CONTROL_RESPONSES)
async def pause_execution(workspace: Workspace = Depends(get_workspace)):
    """Pause after the node currently in flight settles."""
    return _control_response(workspace.engine.pause(), workspace)


@router.post(
    "/execution/resume",
    response_model=ControlResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses=_CONTROL_RESPONSES,
)
async def resume_execution(workspace: Workspace = Depends(get_workspace)):
    """Resume a paused run in the background."""
    result = workspace.engine.resume_background()
    return _control_response(result, workspace, status.HTTP_202_ACCEPTED)


@router.post("/execution/reset", response_model=ControlResponse)
async def reset_execution(workspace: Workspace = Depends(get_workspace)):
    """Return every node to idle and drop the current run."""
    return _control_response(workspace.engine.reset(), workspace)


@router.get("/execution", response_model=ExecutionStateResponse)
async def get_execution_state(
    workspace: Workspace = Depends(get_workspace),
) -> ExecutionStateResponse:
    """Get the current phase, node statuses and dispatch log."""
    summary = workspace.engine.get_execution_summary()
    return ExecutionStateResponse(
        phase=summary["phase"],
        run_id=summary["run_id"],
        current_node=summary["current_node"],
        paused_at=summary["paused_at"],
        statuses=summary["statuses"],
        steps=[ExecutionLogEntry(**s) for s in summary["steps"]],
    )


# ============================================================
# Terminal
# ============================================================

@router.get("/events", response_model=EventLogResponse)
async def list_events(workspace: Workspace = Depends(get_workspace)) -> EventLogResponse:
    """Get the terminal history, oldest first."""
    entries = [
        NotificationEntry(
            level=n.level.value,
            message=n.message,
            timestamp=n.timestamp.isoformat(),
        )
        for n in workspace.events.history
    ]
    return EventLogResponse(events=entries, total=len(entries))


@router.delete("/events", status_code=status.HTTP_204_NO_CONTENT)
async def clear_events(workspace: Workspace = Depends(get_workspace)):
    """Clear the terminal."""
    workspace.events.clear()
