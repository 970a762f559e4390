"""
FlowCanvas - FastAPI Application Entry Point.

A visual workflow editor backend: edit a graph of trigger, action and logic
nodes with undo/redo, then run it depth-first from its trigger.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from flowcanvas.config import settings
from flowcanvas.api.dependencies import workflow_controller
from flowcanvas.api.routes import execution, node_types, websocket, workflow
from flowcanvas.exceptions import (
    EdgeNotFoundError,
    InvalidEdgeError,
    NodeNotFoundError,
    PersistenceError,
    WorkflowImportError,
)


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    if workflow_controller.load_workflow():
        logger.info(f"Restored saved workflow ({workflow_controller.node_count} nodes)")

    yield

    # Shutdown
    if workflow_controller.is_running:
        workflow_controller.stop_execution()
    workflow_controller.save_workflow()
    logger.info("Shutting down...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
## Workflow Editor API

Build a workflow graph and run it.

### Features
- **Nodes**: Triggers (Manual, Webhook), actions (HTTP, Email, SMS, End) and logic (Condition, Transform, Delay)
- **Edges**: Directed connections; a run follows them depth-first from the trigger
- **Undo/Redo**: Every edit is recorded in a bounded history
- **Validation**: Node configs and structure are checked before any node runs
- **Real-time Updates**: WebSocket support for live execution streaming

### Quick Start
1. List node types: `GET /node-types`
2. Add nodes and edges: `POST /workflow/nodes`, `POST /workflow/edges`
3. Run the workflow: `POST /execution/start`
4. Check execution state: `GET /execution/state`
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(workflow.router)
app.include_router(execution.router)
app.include_router(node_types.router)
app.include_router(websocket.router)


# ============================================================
# Root Endpoints
# ============================================================

@app.get("/", tags=["Root"])
async def root():
    """API root - returns basic info and links."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "description": "A visual workflow editor with undo/redo and depth-first execution",
        "docs": "/docs",
        "redoc": "/redoc",
        "endpoints": {
            "workflow": "/workflow",
            "execution": "/execution",
            "node_types": "/node-types",
            "websocket_execution": "/ws/execution",
        },
    }


@app.get("/health", tags=["Root"])
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "nodes_count": workflow_controller.node_count,
        "edges_count": workflow_controller.edge_count,
        "is_running": workflow_controller.is_running,
    }


# ============================================================
# Error Handlers
# ============================================================

def _error(status_code: int, error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "detail": str(exc)},
    )


@app.exception_handler(NodeNotFoundError)
@app.exception_handler(EdgeNotFoundError)
async def not_found_handler(request: Request, exc: Exception):
    return _error(404, "Not Found", exc)


@app.exception_handler(InvalidEdgeError)
@app.exception_handler(WorkflowImportError)
@app.exception_handler(ValueError)
async def bad_request_handler(request: Request, exc: Exception):
    return _error(400, "Bad Request", exc)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error(f"Storage failure: {exc}")
    return _error(500, "Storage Error", exc)


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.exception(f"Unhandled error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
        },
    )
