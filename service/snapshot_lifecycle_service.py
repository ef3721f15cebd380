# service/snapshot_lifecycle_service.py
import secrets
import shutil
import tarfile
import threading
import time
import zlib
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, TypeVar
from core import archive
from core.entities import SnapshotContext
from core.locks import LockRegistry
from repository import namespaces
from repository.snapshot_store import S3SnapshotStore, SnapshotStore
from util.enums import SnapshotState
from util.errors import ObjectNotFound, SnapshotFatalError, SnapshotStoreError
from util.timing import timed
from util.types import SnapshotStatus
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")
StoreFactory = Callable[[SnapshotContext], SnapshotStore]


def s3_store_factory(ctx: SnapshotContext) -> SnapshotStore:
    return S3SnapshotStore(
        bucket=ctx.bucket or "",
        endpoint_url=ctx.endpoint_url,
        access_key_id=ctx.access_key_id,
        secret_access_key=ctx.secret_access_key,
        region=ctx.region,
        timeout_seconds=ctx.request_timeout_seconds,
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotLifecycleManager:
    """
    Restores, periodically persists and finally persists one instance's state
    directory against an object store.

    Flow:
    - prepare(): decide disabled / idle / degraded from the context (strict mode
      turns missing configuration into SnapshotFatalError).
    - restore(): startup only, before the backend runs. LATEST missing = cold start.
    - snapshot(reason): archive -> upload object -> upload LATEST -> prune.
      Only one snapshot runs at a time per (bucket, prefix); a concurrent trigger
      is skipped, not queued.
    - Degraded behaves like disabled for the rest of the instance's life.
    """

    def __init__(
        self,
        context: SnapshotContext,
        *,
        store: Optional[SnapshotStore] = None,
        store_factory: StoreFactory = s3_store_factory,
        locks: Optional[LockRegistry] = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._ctx = context
        self._store = store
        self._store_factory = store_factory
        self._lock: threading.Lock = (locks or LockRegistry()).get(context.lock_key)
        self._clock = clock
        self._sleep = sleep
        self._state = SnapshotState.DISABLED
        self._last_stamp: Optional[datetime] = None
        self._last_snapshot: Optional[str] = None
        self._last_error: Optional[str] = None

    # ---------------- Introspection ----------------

    @property
    def context(self) -> SnapshotContext:
        return self._ctx

    @property
    def state(self) -> SnapshotState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state not in (SnapshotState.DISABLED, SnapshotState.DEGRADED)

    def describe(self) -> SnapshotStatus:
        return SnapshotStatus(
            state=self._state.value,
            strict=self._ctx.strict,
            bucket=self._ctx.bucket,
            prefix=self._ctx.prefix,
            lastSnapshot=self._last_snapshot,
            lastError=self._last_error,
        )

    # ---------------- Policy ----------------

    def _fail_or_degrade(self, message: str, *, startup: bool) -> None:
        """
        Strict + startup      -> SnapshotFatalError (instance must not start).
        Strict + runtime      -> this attempt is abandoned, manager stays usable.
        Non-strict (any time) -> degraded: local-only state from now on.
        """
        self._last_error = message
        if self._ctx.strict and startup:
            logger.error("snapshot.fatal msg=%s", message)
            raise SnapshotFatalError(message)
        if self._ctx.strict:
            logger.warning("snapshot.attempt.abandoned msg=%s", message)
            return
        logger.warning("snapshot.degraded msg=%s", message)
        logger.warning("Disabling snapshot sync and continuing with local state only")
        self._state = SnapshotState.DEGRADED

    def _with_retries(self, op: str, fn: Callable[[], T]) -> T:
        attempts = max(1, self._ctx.max_attempts)
        delay = self._ctx.retry_backoff_seconds
        for attempt in range(1, attempts + 1):
            try:
                return fn()
            except ObjectNotFound:
                raise
            except SnapshotStoreError as e:
                if attempt >= attempts:
                    raise
                logger.warning(
                    "snapshot.store.retry op=%s attempt=%d/%d err=%s", op, attempt, attempts, e
                )
                self._sleep(delay)
                delay *= 2
        raise AssertionError("unreachable")

    # ---------------- Lifecycle ----------------

    def prepare(self) -> SnapshotState:
        if not self._ctx.enabled:
            logger.info(
                "snapshot.disabled state_dir=%s (local state only)", self._ctx.state_dir
            )
            self._state = SnapshotState.DISABLED
            return self._state

        if self._ctx.missing:
            self._fail_or_degrade(
                "Snapshot sync requested but missing variables: "
                + " ".join(self._ctx.missing),
                startup=True,
            )
            return self._state

        if self._store is None:
            self._store = self._store_factory(self._ctx)
        self._state = SnapshotState.IDLE
        logger.info(
            "snapshot.configured endpoint=%s bucket=%s prefix=%s",
            self._ctx.endpoint_url,
            self._ctx.bucket,
            self._ctx.prefix,
        )
        return self._state

    def restore(self) -> Optional[str]:
        """
        Materialize the snapshot named by LATEST into the state directory.
        Returns the restored snapshot name, or None (cold start / inactive / degraded).
        """
        if self._state != SnapshotState.IDLE or self._store is None:
            return None
        store = self._store
        target = self._ctx.state_dir
        self._state = SnapshotState.RESTORING

        try:
            raw = self._with_retries("get", lambda: store.get(self._ctx.latest_key))
        except ObjectNotFound:
            self._state = SnapshotState.IDLE
            logger.info("No snapshot manifest found; starting with fresh local state")
            return None
        except SnapshotStoreError as e:
            self._fail_or_degrade(f"Failed to read snapshot manifest (LATEST): {e}", startup=True)
            return None

        name = raw.decode("utf-8", errors="replace").strip()
        if not name:
            self._fail_or_degrade("Snapshot manifest (LATEST) is empty", startup=True)
            return None
        if not namespaces.is_snapshot_name(name):
            self._fail_or_degrade(f"Snapshot manifest names an invalid object: {name!r}", startup=True)
            return None

        key = self._ctx.snapshot_key(name)
        try:
            with timed(logger, "snapshot.download", name=name):
                data = self._with_retries("get", lambda: store.get(key))
        except SnapshotStoreError as e:
            self._fail_or_degrade(f"Failed to download snapshot {key}: {e}", startup=True)
            return None

        staging = None
        try:
            staging = archive.make_staging_dir(target)
            archive.extract_archive(data, staging)
        except (tarfile.TarError, OSError, ValueError, EOFError, zlib.error) as e:
            if staging is not None:
                shutil.rmtree(staging, ignore_errors=True)
            self._fail_or_degrade(f"Failed to extract snapshot {name}: {e}", startup=True)
            return None

        try:
            archive.replace_directory(staging, target)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            self._fail_or_degrade(f"Failed to restore snapshot into {target}: {e}", startup=True)
            return None

        self._state = SnapshotState.IDLE
        self._last_snapshot = name
        logger.info("Restored state from snapshot %s", name)
        return name

    def next_snapshot_name(self) -> str:
        # Strictly increasing per manager even if the wall clock steps back.
        stamp = self._clock()
        if self._last_stamp is not None and stamp <= self._last_stamp:
            stamp = self._last_stamp + timedelta(microseconds=1)
        self._last_stamp = stamp
        ts = stamp.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        return (
            f"{namespaces.SNAPSHOT_STEM}-{ts}-{secrets.token_hex(3)}"
            f"{namespaces.SNAPSHOT_SUFFIX}"
        )

    def snapshot(self, reason: str = "periodic") -> Optional[str]:
        """
        Upload one snapshot. Returns its name, or None when skipped/failed.
        Never raises for store/archive failures (runtime failures are not fatal).
        """
        if not self.active or self._store is None:
            return None
        if not self._lock.acquire(blocking=False):
            logger.info("Skipping %s snapshot; another snapshot is already running", reason)
            return None
        try:
            if self._state != SnapshotState.IDLE:
                return None
            self._state = SnapshotState.SNAPSHOTTING
            return self._snapshot_locked(self._store, reason)
        finally:
            if self._state == SnapshotState.SNAPSHOTTING:
                self._state = SnapshotState.IDLE
            self._lock.release()

    def _snapshot_locked(self, store: SnapshotStore, reason: str) -> Optional[str]:
        source = self._ctx.state_dir
        if not source.is_dir():
            logger.warning("Skipping %s snapshot; state directory does not exist: %s", reason, source)
            return None

        name = self.next_snapshot_name()
        try:
            data = archive.build_archive(source)
        except (tarfile.TarError, OSError) as e:
            self._fail_or_degrade(f"Failed to build {reason} snapshot archive: {e}", startup=False)
            return None

        key = self._ctx.snapshot_key(name)
        try:
            with timed(logger, "snapshot.upload", name=name, bytes=len(data)):
                self._with_retries("put", lambda: store.put(key, data))
        except SnapshotStoreError as e:
            self._fail_or_degrade(f"Failed to upload {reason} snapshot ({name}): {e}", startup=False)
            return None

        # Pointer moves only after the object it names exists.
        pointer = f"{name}\n".encode("utf-8")
        try:
            self._with_retries("put", lambda: store.put(self._ctx.latest_key, pointer))
        except SnapshotStoreError as e:
            self._fail_or_degrade(f"Failed to update snapshot pointer (LATEST): {e}", startup=False)
            return None

        self._last_snapshot = name
        self.prune(latest=name)
        logger.info("Uploaded %s snapshot (%s)", reason, name)
        return name

    def prune(self, latest: Optional[str] = None) -> List[str]:
        """
        Best-effort retention sweep: keep the newest `retention_count` snapshot
        objects, never delete `latest`. Failures are logged and swallowed.
        """
        keep = self._ctx.retention_count
        if keep <= 0 or self._store is None:
            return []
        store = self._store
        prefix = self._ctx.snapshots_prefix
        try:
            keys = store.list(prefix)
        except SnapshotStoreError as e:
            logger.warning("snapshot.prune.list_failed err=%s", e)
            return []

        names = sorted(
            (k[len(prefix):] for k in keys if k.startswith(prefix)),
            reverse=True,
        )
        names = [n for n in names if namespaces.is_snapshot_name(n)]

        deleted: List[str] = []
        for name in names[keep:]:
            if name == latest:
                continue
            try:
                store.delete(self._ctx.snapshot_key(name))
                deleted.append(name)
            except SnapshotStoreError as e:
                logger.warning("snapshot.prune.delete_failed name=%s err=%s", name, e)
        if deleted:
            logger.info("snapshot.prune.done kept=%d deleted=%d", keep, len(deleted))
        return deleted
