# core/locks.py
import threading
from typing import Dict


class LockRegistry:
    """
    Process-local locks keyed by an identity string, e.g. "<bucket>/<prefix>".

    One registry is created at startup and handed to every lifecycle manager that
    should exclude the others. It provides no cross-process exclusion.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def get(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock
