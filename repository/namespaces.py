# repository/namespaces.py
import re
from typing import Final, Optional
from util.enums import PartitionMode
from util.functions import sanitize_key_segment

LATEST: Final[str] = "LATEST"
SNAPSHOTS: Final[str] = "snapshots"

SNAPSHOT_STEM: Final[str] = "serena-home"
SNAPSHOT_SUFFIX: Final[str] = ".tar.gz"
SNAPSHOT_NAME_RE: Final[re.Pattern] = re.compile(r"^serena-home-.*\.tar\.gz$")


def partitioned_prefix(
    base_prefix: str, mode: PartitionMode, partition_key: Optional[str]
) -> str:
    """
    Effective object prefix for one instance.
    - none: the base prefix, shared by every instance using it.
    - per-instance: base + "/" + sanitized instance identity. Without an identity
      the base prefix is used (caller logs the fallback).
    """
    base = base_prefix.strip().strip("/")
    key = (partition_key or "").strip()
    if mode == PartitionMode.PER_INSTANCE and key:
        return f"{base}/{sanitize_key_segment(key)}"
    return base


def latest_key(prefix: str) -> str:
    return f"{prefix}/{LATEST}"


def snapshots_prefix(prefix: str) -> str:
    return f"{prefix}/{SNAPSHOTS}/"


def snapshot_key(prefix: str, name: str) -> str:
    return f"{snapshots_prefix(prefix)}{name}"


def is_snapshot_name(name: str) -> bool:
    return "/" not in name and bool(SNAPSHOT_NAME_RE.match(name))
