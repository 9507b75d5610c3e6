"""
API package - FastAPI routes and schemas.
"""

from flowrunner.api.routes import execution, graph, websocket

__all__ = ["execution", "graph", "websocket"]
