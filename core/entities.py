# core/entities.py
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from config.settings import Settings
from repository import namespaces
from util.enums import PartitionMode, RoutingMode
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    label: str
    secret: str = field(repr=False)


@dataclass(frozen=True)
class CredentialStore:
    """
    Immutable set of accepted bearer tokens, loaded once per process.
    """

    credentials: tuple[Credential, ...]
    mode: RoutingMode


@dataclass(frozen=True)
class AuthOutcome:
    matched: bool
    routing_key: str
    mode: RoutingMode
    label: Optional[str] = None  # for logs only; never the secret


@dataclass(frozen=True)
class SnapshotContext:
    """
    Everything one instance's snapshot lifecycle needs, resolved once at startup
    and passed explicitly to the manager (no process-wide globals).

    `prefix` is the effective (possibly partitioned) object prefix.
    """

    enabled: bool
    strict: bool
    state_dir: Path
    prefix: str
    bucket: Optional[str] = None
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = field(default=None, repr=False)
    region: str = "auto"
    interval_seconds: int = 180
    retention_count: int = 5
    max_attempts: int = 3
    retry_backoff_seconds: float = 1.0
    request_timeout_seconds: float = 60.0
    missing: List[str] = field(default_factory=list)

    @property
    def lock_key(self) -> str:
        return f"{self.bucket or ''}/{self.prefix}"

    @property
    def latest_key(self) -> str:
        return namespaces.latest_key(self.prefix)

    @property
    def snapshots_prefix(self) -> str:
        return namespaces.snapshots_prefix(self.prefix)

    def snapshot_key(self, name: str) -> str:
        return namespaces.snapshot_key(self.prefix, name)

    @classmethod
    def from_settings(cls, s: Settings) -> "SnapshotContext":
        prefix = namespaces.partitioned_prefix(
            s.snapshot_base_prefix,
            s.SERENA_R2_STATE_PARTITION_MODE,
            s.SERENA_INSTANCE_NAME,
        )
        if (
            s.SERENA_R2_STATE_PARTITION_MODE == PartitionMode.PER_INSTANCE
            and not (s.SERENA_INSTANCE_NAME or "").strip()
        ):
            logger.warning(
                "snapshot.partition.missing_key mode=%s fallback=unpartitioned",
                s.SERENA_R2_STATE_PARTITION_MODE.value,
            )
        return cls(
            enabled=s.snapshot_requested,
            strict=s.SERENA_R2_STATE_STRICT,
            state_dir=Path(s.SERENA_LOCAL_STATE_DIR),
            prefix=prefix,
            bucket=s.R2_BUCKET_NAME,
            endpoint_url=s.r2_endpoint_url,
            access_key_id=s.AWS_ACCESS_KEY_ID,
            secret_access_key=s.AWS_SECRET_ACCESS_KEY,
            region=s.AWS_DEFAULT_REGION,
            interval_seconds=s.SERENA_R2_SNAPSHOT_INTERVAL_SECONDS,
            retention_count=s.SERENA_R2_SNAPSHOT_RETENTION_COUNT,
            max_attempts=s.SERENA_R2_SNAPSHOT_MAX_ATTEMPTS,
            retry_backoff_seconds=s.SERENA_R2_SNAPSHOT_RETRY_BACKOFF_SECONDS,
            request_timeout_seconds=s.SERENA_R2_REQUEST_TIMEOUT_SECONDS,
            missing=s.missing_snapshot_settings(),
        )
