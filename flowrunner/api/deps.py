"""
Request dependencies.

The workspace lives on the application state; routes receive it through
FastAPI's dependency injection instead of importing a module global.
"""

from fastapi import Request, WebSocket

from flowrunner.workspace import Workspace


def get_workspace(request: Request) -> Workspace:
    return request.app.state.workspace


def get_ws_workspace(websocket: WebSocket) -> Workspace:
    return websocket.app.state.workspace
