"""
WebSocket Routes for Real-time Execution Streaming.

Streams terminal notifications and node status changes to the editor.
"""

from typing import Any, Dict
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
import logging

from flowrunner.api.deps import get_ws_workspace
from flowrunner.workspace import Workspace


logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws/events")
async def websocket_events(
    websocket: WebSocket,
    workspace: Workspace = Depends(get_ws_workspace),
):
    """
    Subscribe to engine events.

    On connect, the terminal history is replayed, followed by a snapshot of
    every node's status. After that, messages arrive as they happen.

    Message format (server -> client):
    ```json
    {"type": "notification", "level": "success", "message": "Completed: Start Node", "timestamp": "..."}
    {"type": "status", "node_id": "node_1a2b3c4d5e6f", "status": "running", "timestamp": "..."}
    ```
    """
    await websocket.accept()
    queue = workspace.events.subscribe()
    logger.info("Event subscriber connected")

    try:
        for notification in workspace.events.history:
            await websocket.send_json(notification.to_dict())
        await websocket.send_json(_snapshot(workspace))

        while True:
            message = await queue.get()
            await websocket.send_json(message)

    except WebSocketDisconnect:
        logger.info("Event subscriber disconnected")
    finally:
        workspace.events.unsubscribe(queue)


def _snapshot(workspace: Workspace) -> Dict[str, Any]:
    summary = workspace.engine.get_execution_summary()
    return {
        "type": "snapshot",
        "phase": summary["phase"],
        "statuses": summary["statuses"],
    }
