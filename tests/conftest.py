from __future__ import annotations

import os

# config.settings reads the environment at import time; keep .env files out of tests.
os.environ["APP_ENV"] = "test"

from pathlib import Path
from typing import Callable

import pytest

from core.entities import SnapshotContext
from util.errors import ObjectNotFound, SnapshotStoreError

TEST_PREFIX = "serena-mcp/test/serena-home"


class FakeStore:
    """In-memory SnapshotStore with per-operation failure injection."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self._failures: dict[str, int] = {}

    def fail(self, op: str, times: int = -1) -> None:
        # times=-1 fails every call until reset
        self._failures[op] = times

    def reset_failures(self) -> None:
        self._failures.clear()

    def _maybe_fail(self, op: str, key: str) -> None:
        remaining = self._failures.get(op, 0)
        if remaining == 0:
            return
        if remaining > 0:
            self._failures[op] = remaining - 1
        raise SnapshotStoreError(op, f"{key}: injected failure")

    def put(self, key: str, data: bytes) -> None:
        self.calls.append(("put", key))
        self._maybe_fail("put", key)
        self.objects[key] = bytes(data)

    def get(self, key: str) -> bytes:
        self.calls.append(("get", key))
        self._maybe_fail("get", key)
        if key not in self.objects:
            raise ObjectNotFound(key)
        return self.objects[key]

    def list(self, key_prefix: str) -> list[str]:
        self.calls.append(("list", key_prefix))
        self._maybe_fail("list", key_prefix)
        return sorted(k for k in self.objects if k.startswith(key_prefix))

    def delete(self, key: str) -> None:
        self.calls.append(("delete", key))
        self._maybe_fail("delete", key)
        self.objects.pop(key, None)

    def snapshot_names(self, prefix: str = TEST_PREFIX) -> list[str]:
        base = f"{prefix}/snapshots/"
        return sorted(k[len(base):] for k in self.objects if k.startswith(base))


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    d = tmp_path / "serena-home"
    d.mkdir()
    return d


@pytest.fixture
def make_context(state_dir: Path) -> Callable[..., SnapshotContext]:
    def _make(**overrides: object) -> SnapshotContext:
        base: dict[str, object] = {
            "enabled": True,
            "strict": False,
            "state_dir": state_dir,
            "prefix": TEST_PREFIX,
            "bucket": "serena-test",
            "endpoint_url": "https://example.r2.cloudflarestorage.com",
            "access_key_id": "AKIDEXAMPLE",
            "secret_access_key": "secret",
            "interval_seconds": 0,
            "retention_count": 5,
            "max_attempts": 1,
            "retry_backoff_seconds": 0.0,
        }
        base.update(overrides)
        return SnapshotContext(**base)  # type: ignore[arg-type]

    return _make
