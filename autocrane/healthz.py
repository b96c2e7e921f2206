"""
Liveness endpoint served next to a workload.

GET /healthz probes the pod's watchdogs and answers 200 only once the pod
has stayed free of error-level watchdogs for the configured minimum time.
POST /watchdog/{name} lets the workload report one of its own watchdogs.
"""

import logging

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, field_validator

from .models import (
    VALID_LEVELS,
    ForbiddenError,
    PodIdentifier,
    PodNotFoundError,
    WatchdogStatus,
)

logger = logging.getLogger(__name__)


class WatchdogReport(BaseModel):
    level: str
    message: str = ""

    @field_validator("level")
    @classmethod
    def level_must_be_known(cls, value: str) -> str:
        if value.lower() not in VALID_LEVELS:
            raise ValueError(f"level must be one of {sorted(VALID_LEVELS)}")
        return value.lower()


def create_app(monitor, pod_id: PodIdentifier, status_putter=None) -> FastAPI:
    app = FastAPI(title="autocrane-healthz")

    @app.get("/ping", response_class=PlainTextResponse)
    def ping():
        return "ok"

    @app.get("/healthz", response_class=PlainTextResponse)
    def healthz():
        monitor.probe(pod_id)
        if monitor.is_healthy(pod_id):
            logger.info(f"Pod {pod_id} is healthy")
            return "healthy"

        logger.info(f"Pod {pod_id} is not healthy or has not been for long enough")
        return PlainTextResponse("unhealthy", status_code=500)

    @app.post("/watchdog/{name}")
    def put_watchdog(name: str, report: WatchdogReport):
        if status_putter is None:
            raise HTTPException(status_code=404, detail="watchdog reporting is disabled")
        try:
            status_putter.put_status(pod_id, [WatchdogStatus(name, report.level, report.message)])
        except ForbiddenError as e:
            raise HTTPException(status_code=403, detail=str(e))
        except PodNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"name": name, "level": report.level}

    return app
