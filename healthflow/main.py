"""
HealthFlow - FastAPI Application Entry Point.

Serves the registered graphs over HTTP and streams runs over WebSocket.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from healthflow.agents.health_agent import HealthAgent
from healthflow.api.routes import graph, websocket
from healthflow.config import load_llm_settings, settings
from healthflow.llm.client import ChatModel
from healthflow.logging_config import configure_logging
from healthflow.storage.memory import graph_storage, run_storage
from healthflow.workflows.health_assistant import (
    HEALTH_ASSISTANT_GRAPH_ID,
    register_health_assistant_workflow,
)


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    # Missing endpoint configuration is fatal here
    llm = ChatModel.from_settings(load_llm_settings())
    await register_health_assistant_workflow(HealthAgent(llm))

    yield

    # Shutdown
    logger.info("Shutting down...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
## HealthFlow API

A small graph runtime running a supervisor / health-assistant workflow.

### Features
- **Channels**: shared state slots merged by reducers
- **Nodes**: sync or async task units returning partial updates
- **Conditional edges**: routing decided from state at run time
- **Streaming**: one full-state snapshot per executed node, live over WebSocket

### Quick Start
1. List graphs: `GET /graph/`
2. Run a graph: `POST /graph/run`
3. Check a run: `GET /graph/state/{run_id}`
4. Stream a run: `WS /ws/run/{graph_id}`
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
app.include_router(graph.router)
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
        "description": "A graph runtime for a health assistant agent",
        "docs": "/docs",
        "redoc": "/redoc",
        "endpoints": {
            "graphs": "/graph",
            "run": "/graph/run",
            "runs": "/graph/runs",
            "websocket_run": "/ws/run/{graph_id}",
        },
        "default_graph": HEALTH_ASSISTANT_GRAPH_ID,
    }


@app.get("/health", tags=["Root"])
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "graphs_count": len(graph_storage),
        "runs_count": len(run_storage),
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
            "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
        },
    )
