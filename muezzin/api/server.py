"""
FastAPI server for the Muezzin API. Run with run_api_server(app) in a background thread.
Endpoints: query routes from muezzin.api.routes under /api/, plus GET /api/tasks,
POST /api/tasks/{name}/run and GET /api/cache.
Docs when enabled: http://<host>:<port>/docs
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException

from muezzin.api.routes import get_router

logger = logging.getLogger(__name__)


def _serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Serialize datetime to ISO string (UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def create_app(muezzin_app: Any) -> FastAPI:
    """Create FastAPI app with routes that use the given MuezzinApp instance."""
    app = FastAPI(title="Muezzin API", description="Countries, cities, districts and prayer times")
    app.include_router(get_router(muezzin_app), prefix="/api")

    @app.get("/api/tasks")
    def list_tasks() -> Dict[str, Any]:
        """List background tasks with their state and next run time."""
        tasks = muezzin_app.task_manager.get_active_timers()
        for task in tasks:
            task["next_run_at"] = _serialize_datetime(task.get("next_run_at"))
            task["last_run_at"] = _serialize_datetime(task.get("last_run_at"))
        return {"tasks": tasks}

    @app.post("/api/tasks/{name}/run", status_code=202)
    def run_task(name: str) -> Dict[str, Any]:
        """Trigger a task once now; a trigger while it is running is dropped."""
        if not muezzin_app.task_manager.run_task_now(name):
            raise HTTPException(status_code=404, detail=f"No task named {name}")
        return {"name": name, "triggered": True}

    @app.get("/api/cache")
    def cache_stats() -> Dict[str, Any]:
        return muezzin_app.cache.stats()

    return app


def run_api_server(muezzin_app: Any) -> None:
    """
    Start the API server in a daemon thread if api.enabled is true.
    Reads api.host (default 127.0.0.1) and api.port (default 8765) from config.
    """
    api_config = muezzin_app.config.data.get("api") or {}
    if not api_config.get("enabled", False):
        logger.info("API server not started: set api.enabled to true in your config file to enable.")
        return
    host = api_config.get("host", "127.0.0.1")
    port = int(api_config.get("port", 8765))
    fastapi_app = create_app(muezzin_app)

    def run_uvicorn():
        try:
            import uvicorn
            logger.info(f"API server listening at http://{host}:{port} (docs at /docs)")
            uvicorn.run(fastapi_app, host=host, port=port, log_config=None)
        except Exception as e:
            logger.exception(f"API server thread failed: {e}")

    thread = threading.Thread(target=run_uvicorn, daemon=True)
    thread.start()
    logger.info("API server thread started.")
