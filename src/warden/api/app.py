"""HTTP surface of the running server.

Exposes health and version endpoints with correlation ID tracking.
"""

import logging
import time
import uuid

from fastapi import FastAPI, HTTPException, Request, Response

from warden import __version__
from warden.foundation.config import AppConfig
from warden.util.health import collect_health_snapshot
from warden.util.logging import correlation_id_scope, log_event

# Module logger
_logger = logging.getLogger(__name__)


def create_app(config: AppConfig, mode: str = "production", version: str = __version__) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Resolved server configuration.
        mode: Operating mode reported by ``/version``.
        version: Version string reported by ``/version``.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="Warden",
        version=version,
    )
    app.state.config = config

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        """Add correlation ID to request/response."""
        request_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())
        request.state.correlation_id = request_id

        with correlation_id_scope(request_id):
            start_time = time.perf_counter()
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000

            response.headers["x-correlation-id"] = request_id

            log_event(
                _logger,
                logging.INFO,
                f"{request.method} {request.url.path}",
                "api_request",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

        return response

    # --- Routes ---

    @app.get("/health")
    def health() -> dict:
        """Get system health snapshot."""
        if not config.health_enabled:
            raise HTTPException(status_code=404, detail="Health endpoint is disabled")
        snapshot = collect_health_snapshot(
            data_dir=config.data_dir,
            min_free_disk_mb=config.min_free_disk_mb,
            min_python_major=config.min_python_major,
            min_python_minor=config.min_python_minor,
        )
        return snapshot.model_dump()

    @app.get("/version")
    async def version_info() -> dict:
        return {"version": version, "mode": mode}

    return app
