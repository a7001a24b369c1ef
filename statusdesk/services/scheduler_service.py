"""
statusdesk
Scheduler Service — background maintenance jobs.

A small thread-based scheduler: job functions register themselves with
``@register_job`` and run inside the Flask app context, either on the
background thread (when ``SCHEDULER_ENABLED`` is set) or on demand through
``POST /api/v1/admin/jobs/<name>/run``.

The outcome of the most recent run of each job is kept in memory per
process; there is no job table.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable

from flask import Flask

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}


def register_job(name: str):
    """Decorator to register a job function.

    Usage:
        @register_job("activity_retention_sweep")
        def sweep_activity(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return all registered job functions."""
    return dict(_job_registry)


class SchedulerService:
    """
    Lightweight scheduler service.

    Jobs are executed within Flask app context.
    """

    _app: Flask | None = None
    _thread: threading.Thread | None = None
    _stop: threading.Event | None = None
    _last_runs: dict[str, dict] = {}
    _lock = threading.Lock()

    @classmethod
    def init_app(cls, app: Flask) -> None:
        """Bind to the app; start the background loop when enabled."""
        cls._app = app
        app.extensions["scheduler"] = cls
        logger.info("SchedulerService initialized with %d registered jobs", len(_job_registry))
        if app.config.get("SCHEDULER_ENABLED") and not app.config.get("TESTING"):
            cls.start(int(app.config.get("SCHEDULER_INTERVAL_SECONDS", 3600)))

    @classmethod
    def start(cls, interval_seconds: int) -> None:
        if cls._thread is not None and cls._thread.is_alive():
            return
        cls._stop = threading.Event()
        cls._thread = threading.Thread(
            target=cls._loop,
            args=(interval_seconds, cls._stop),
            name="statusdesk-scheduler",
            daemon=True,
        )
        cls._thread.start()
        logger.info("Scheduler thread started (interval=%ss)", interval_seconds)

    @classmethod
    def stop(cls) -> None:
        if cls._stop is not None:
            cls._stop.set()
        if cls._thread is not None:
            cls._thread.join(timeout=5)
        cls._thread = None
        cls._stop = None

    @classmethod
    def _loop(cls, interval_seconds: int, stop: threading.Event) -> None:
        while not stop.is_set():
            for name in list(_job_registry):
                cls.run_job(name)
            stop.wait(interval_seconds)

    @classmethod
    def run_job(cls, job_name: str) -> dict:
        """
        Execute a single job by name.

        Returns:
            Dict with status, duration_ms, result or error.
        """
        fn = _job_registry.get(job_name)
        if not fn:
            return {"job_name": job_name, "status": "error", "error": f"Unknown job: {job_name}"}

        if not cls._app:
            return {"job_name": job_name, "status": "error", "error": "Scheduler not initialized"}

        start = time.monotonic()
        result = None
        error = None
        status = "success"

        try:
            with cls._app.app_context():
                result = fn(cls._app)
        except Exception as exc:
            status = "failed"
            error = str(exc)
            logger.exception("Job %s failed: %s", job_name, exc)

        duration_ms = int((time.monotonic() - start) * 1000)
        outcome = {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
            "ran_at": datetime.now(timezone.utc).isoformat(),
        }
        with cls._lock:
            cls._last_runs[job_name] = outcome
        logger.info(
            "Job %s finished: %s",
            job_name,
            status,
            extra={"operation": "run_job", "duration_ms": duration_ms},
        )
        return outcome

    @classmethod
    def list_jobs(cls) -> list[dict]:
        """List all registered jobs with the outcome of their last run."""
        with cls._lock:
            last_runs = dict(cls._last_runs)
        return [
            {
                "job_name": name,
                "description": (fn.__doc__ or "").strip().splitlines()[0] if fn.__doc__ else None,
                "last_run": last_runs.get(name),
            }
            for name, fn in _job_registry.items()
        ]
