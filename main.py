"""
FastAPI backend for the repository analytics dashboard.

Serves CSV ingestion, statistics, histograms, size analysis and panel
computations for a dashboard over repository metadata exports, plus
WebSocket updates for panel state changes.
"""

import os

import uvicorn
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse

from api.shared.logger import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)

from api.analytics import router as analytics_router
from api.datasets import router as datasets_router
from api.jobs import execution_shell
from api.shared.errors import AnalyticsError, CSVFormatError, NoDataError, UnknownFieldError
from api.system import log_error
from api.system import router as system_router
from websocket import panel_channel, ws_manager

app = FastAPI(
    title="Repository Analytics API",
    description="API for the repository metadata analytics dashboard",
    version="1.0.0",
    default_response_class=ORJSONResponse,
)


# ============= Exception Handlers for Error Logging =============


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Log HTTP exceptions and return JSON response."""
    # Only log 5xx errors (server errors)
    if exc.status_code >= 500:
        log_error(
            endpoint=str(request.url.path),
            message=str(exc.detail),
            level="error",
            details=f"Status code: {exc.status_code}",
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(AnalyticsError)
async def analytics_exception_handler(request: Request, exc: AnalyticsError):
    """Map engine errors that escaped a route to HTTP status codes."""
    if isinstance(exc, NoDataError):
        status_code = 404
    elif isinstance(exc, (CSVFormatError, UnknownFieldError)):
        status_code = 400
    else:
        status_code = 500
        log_error(
            endpoint=str(request.url.path),
            message=str(exc),
            level="error",
            details=f"Analytics error: {type(exc).__name__}",
            exc=exc,
        )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Log unexpected exceptions and return JSON response."""
    log_error(
        endpoint=str(request.url.path),
        message=str(exc),
        level="critical",
        details=f"Unhandled exception: {type(exc).__name__}",
        exc=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False when using allow_origins=["*"]
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(system_router, prefix="/api", tags=["system"])
app.include_router(datasets_router, prefix="/api", tags=["datasets"])
app.include_router(analytics_router, prefix="/api", tags=["analytics"])


# ============= Lifecycle Events =============


@app.on_event("startup")
async def startup_event():
    settings = execution_shell.settings
    logger.info("Repository analytics backend starting...")
    logger.info(
        "Execution shell: %d worker(s), offload at %d items, %.1fs timeout",
        settings.max_workers, settings.offload_threshold, settings.worker_timeout,
    )


@app.on_event("shutdown")
async def shutdown_event():
    execution_shell.shutdown(wait=False)
    logger.info("Repository analytics backend stopped")


# ============= WebSocket Endpoints =============


async def _serve(websocket: WebSocket) -> None:
    while True:
        message_text = await websocket.receive_text()
        response = await ws_manager.handle_message(websocket, message_text)
        if response:
            await ws_manager.send_to_connection(websocket, response)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, client_id: str = None):
    """
    Main WebSocket endpoint for real-time updates.

    Clients subscribe to ``panel:{panel_id}`` channels for panel updates.

    Message format (JSON):
    {
        "type": "subscribe" | "unsubscribe" | "ping",
        "channel": "channel_name",
        "data": {}
    }
    """
    await ws_manager.connect(websocket, client_id)
    try:
        await _serve(websocket)
    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)
    except Exception as e:
        logger.error("WebSocket error: %s", e)
        await ws_manager.disconnect(websocket)


@app.websocket("/ws/panel/{panel_id}")
async def panel_websocket_endpoint(websocket: WebSocket, panel_id: str):
    """
    WebSocket endpoint for one panel's updates.

    Automatically subscribes to the panel channel on connection.
    """
    await ws_manager.connect(websocket, f"panel-{panel_id}")
    await ws_manager.subscribe(websocket, panel_channel(panel_id))
    try:
        await _serve(websocket)
    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)
    except Exception as e:
        logger.error("Panel WebSocket error: %s", e)
        await ws_manager.disconnect(websocket)


@app.get("/api/ws/stats")
async def get_websocket_stats():
    """Get WebSocket connection statistics."""
    return {
        "total_connections": ws_manager.get_connection_count(),
    }


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Repository analytics backend server")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("REPO_ANALYTICS_PORT", 8000)),
        help="Port to run the server on (default: 8000 or REPO_ANALYTICS_PORT env var)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Enable auto-reload",
    )
    args = parser.parse_args()

    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )
