# service/health_service.py
from config.settings import Settings
from model.api import HealthResponse, SnapshotHealth
from repository import namespaces
from service.tenant_router_service import build_instance_name
from util.constants import ServiceNames


class HealthService:
    """
    Operational metadata for the unauthenticated health endpoints.
    Derived from configuration only: no secrets, no token labels, no store calls.
    """

    def __init__(self, s: Settings) -> None:
        self._s = s

    def _snapshot_status(self, missing: list[str]) -> str:
        if not self._s.snapshot_requested:
            return "disabled"
        if missing:
            # Strict instances refuse to start, relaxed ones run local-only.
            return "misconfigured" if self._s.SERENA_R2_STATE_STRICT else "degraded"
        return "configured"

    def report(self) -> HealthResponse:
        s = self._s
        missing = s.missing_snapshot_settings() if s.snapshot_requested else []
        generation = s.MCP_CONTAINER_ROUTE_GENERATION
        return HealthResponse(
            service=ServiceNames.SERVICE,
            containerRouteGeneration=generation,
            routeStrategy=s.routing_mode.value,
            routeNameTemplate=build_instance_name(s.ROUTE_NAME_PREFIX, "<route-key>", generation),
            snapshot=SnapshotHealth(
                enabled=s.snapshot_requested,
                status=self._snapshot_status(missing),
                bucket=s.R2_BUCKET_NAME,
                prefix=namespaces.partitioned_prefix(
                    s.snapshot_base_prefix,
                    s.SERENA_R2_STATE_PARTITION_MODE,
                    s.SERENA_INSTANCE_NAME,
                ),
                partitionMode=s.SERENA_R2_STATE_PARTITION_MODE.value,
                intervalSeconds=s.SERENA_R2_SNAPSHOT_INTERVAL_SECONDS,
                retentionCount=s.SERENA_R2_SNAPSHOT_RETENTION_COUNT,
                strict=s.SERENA_R2_STATE_STRICT,
                missing=missing,
            ),
        )
