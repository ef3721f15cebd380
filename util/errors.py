# util/errors.py
from typing import Mapping, Optional
from fastapi import HTTPException
from util.enums import ErrorMessage


class AppError(HTTPException):
    # Flow: raise AppError to short-circuit with a typed status & message.
    def __init__(
        self,
        error: ErrorMessage,
        message: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        info = error.value
        super().__init__(
            status_code=info.http_status,
            detail=message or info.message,
            headers=dict(headers) if headers else None,
        )
        self.code = info.code


class CredentialConfigError(Exception):
    """Token configuration is present but unusable (operator error)."""


class CredentialCollisionError(CredentialConfigError):
    """More than one configured credential matched the presented token."""


class BackendUnavailableError(Exception):
    def __init__(self, instance_name: str, reason: str) -> None:
        super().__init__(f"{instance_name}: {reason}")
        self.instance_name = instance_name
        self.reason = reason


class SnapshotStoreError(Exception):
    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class ObjectNotFound(SnapshotStoreError):
    def __init__(self, key: str) -> None:
        super().__init__("get", f"no such key '{key}'")
        self.key = key


class SnapshotFatalError(Exception):
    """Strict mode: a snapshot/restore failure that must abort instance startup."""
