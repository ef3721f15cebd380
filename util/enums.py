# util/enums.py
from enum import Enum
from typing import NamedTuple
from fastapi import status


class Color(str, Enum):
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    BOLD = "\033[1m"

    def __str__(self):
        return self.value


class Environment(str, Enum):
    DEV = "dev"
    PROD = "prod"
    TEST = "test"


class RoutingMode(str, Enum):
    SINGLE = "single-token"
    MULTI = "multi-token"


class PartitionMode(str, Enum):
    NONE = "none"
    PER_INSTANCE = "per-instance"


class SnapshotState(str, Enum):
    DISABLED = "disabled"
    RESTORING = "restoring"
    IDLE = "idle"
    SNAPSHOTTING = "snapshotting"
    DEGRADED = "degraded"


class ErrorInfo(NamedTuple):
    code: str
    message: str
    http_status: int


class ErrorMessage(Enum):
    UNAUTHORIZED = ErrorInfo(
        "unauthorized",
        "Invalid or missing bearer token.",
        status.HTTP_401_UNAUTHORIZED,
    )
    SERVER_MISCONFIGURED = ErrorInfo(
        "server_misconfigured",
        "Authentication is not configured correctly on this server.",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    BACKEND_UNAVAILABLE = ErrorInfo(
        "backend_unavailable",
        "Backend instance unavailable. Retry the request.",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    NOT_FOUND = ErrorInfo(
        "not_found",
        "The MCP endpoint is at /mcp",
        status.HTTP_404_NOT_FOUND,
    )
