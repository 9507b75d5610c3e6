"""
FlowRunner - FastAPI Application Entry Point.

An async engine for typed node graphs with pause/resume support.
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from flowrunner.config import Settings, settings as default_settings
from flowrunner.api.routes import execution, graph, websocket
from flowrunner.workflows.demo import load_demo_workflow
from flowrunner.workspace import Workspace


# Configure logging
logging.basicConfig(
    level=getattr(logging, default_settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


DESCRIPTION = """
## FlowRunner API

Build a directed graph of typed nodes and run it.

### Features
- **Nodes**: entry, action (optional HTTP call) and exit nodes
- **Connections**: directed, no self or duplicate connections
- **Traversal**: breadth-first from every entry node, each node at most once
- **Pause/Resume**: completed work is never repeated
- **Real-time Updates**: WebSocket stream of notifications and status changes

### Quick Start
1. Add nodes: `POST /graph/nodes`
2. Connect them: `POST /graph/connections`
3. Run: `POST /execution/start`
4. Follow along: `GET /execution` or `WS /ws/events`
"""


def create_app(
    app_settings: Optional[Settings] = None,
    workspace: Optional[Workspace] = None,
) -> FastAPI:
    """
    Build the application and its workspace.

    Args:
        app_settings: Settings to use (module defaults if omitted)
        workspace: Prebuilt workspace (one is created from the settings if omitted)

    Returns:
        The FastAPI application, with the workspace on `app.state.workspace`
    """
    app_settings = app_settings or default_settings
    workspace = workspace or Workspace(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup
        logger.info(f"Starting {app_settings.APP_NAME} v{app_settings.APP_VERSION}")
        if app_settings.LOAD_DEMO_WORKFLOW:
            load_demo_workflow(workspace)

        yield

        # Shutdown
        await workspace.engine.close()
        logger.info("Shutting down...")

    app = FastAPI(
        title=app_settings.APP_NAME,
        description=DESCRIPTION,
        version=app_settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.workspace = workspace

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(graph.router)
    app.include_router(execution.router)
    app.include_router(websocket.router)

    # ============================================================
    # Root Endpoints
    # ============================================================

    @app.get("/", tags=["Root"])
    async def root():
        """API root - returns basic info and links."""
        return {
            "name": app_settings.APP_NAME,
            "version": app_settings.APP_VERSION,
            "description": "An async engine for typed node graphs",
            "docs": "/docs",
            "redoc": "/redoc",
            "endpoints": {
                "graph": "/graph",
                "execution": "/execution",
                "events": "/events",
                "websocket_events": "/ws/events",
            },
        }

    @app.get("/health", tags=["Root"])
    async def health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": app_settings.APP_VERSION,
            "nodes_count": len(workspace.graph.nodes),
            "connections_count": len(workspace.graph.connections),
            "phase": workspace.engine.phase.value,
        }

    # ============================================================
    # Error Handlers
    # ============================================================

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler for unhandled errors."""
        logger.exception(f"Unhandled error: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": str(exc) if app_settings.DEBUG else "An unexpected error occurred",
            },
        )

    return app


app = create_app()
