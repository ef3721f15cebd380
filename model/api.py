# model/api.py
from pydantic import BaseModel
from typing import Literal

SnapshotHealthStatus = Literal["disabled", "configured", "degraded", "misconfigured"]


class SnapshotHealth(BaseModel):
    enabled: bool
    status: SnapshotHealthStatus
    bucket: str | None = None
    prefix: str
    partitionMode: str
    intervalSeconds: int
    retentionCount: int
    strict: bool
    missing: list[str] = []


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    service: str
    containerRouteGeneration: str
    routeStrategy: str
    routeNameTemplate: str
    snapshot: SnapshotHealth


class ErrorResponse(BaseModel):
    ok: Literal[False] = False
    error: str
    message: str
