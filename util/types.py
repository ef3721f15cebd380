# util/types.py
from typing import Optional, TypedDict


# Flow: Narrow types for lifecycle status reporting (logs + health).
class SnapshotStatus(TypedDict):
    state: str
    strict: bool
    bucket: Optional[str]
    prefix: str
    lastSnapshot: Optional[str]
    lastError: Optional[str]
