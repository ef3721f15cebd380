# core/jsonrpc.py
import json
from typing import Final, Optional

INITIALIZED_NOTIFICATION: Final[str] = "notifications/initialized"


def is_initialized_notification(
    method: str, content_type: Optional[str], body: bytes
) -> bool:
    """
    True only for an exact, id-less JSON-RPC 2.0 notification naming
    `notifications/initialized` sent as a POST with a JSON content type.

    The backend proxy hop for this one notification fails intermittently while
    the session itself stays usable, so the router acknowledges it directly.
    Batches, requests carrying an `id` and anything unparsable are forwarded.
    """
    if method.upper() != "POST":
        return False
    if "application/json" not in (content_type or "").lower():
        return False
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return False
    if not isinstance(payload, dict):
        return False
    return (
        payload.get("jsonrpc") == "2.0"
        and payload.get("method") == INITIALIZED_NOTIFICATION
        and "id" not in payload
    )
