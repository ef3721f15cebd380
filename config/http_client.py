# config/http_client.py
from typing import Optional
import httpx
from config.settings import settings

_client: Optional[httpx.AsyncClient] = None


async def get_backend_client() -> httpx.AsyncClient:
    global _client
    if _client is None:
        _client = httpx.AsyncClient(
            # Reads are unbounded: GET /mcp is a long-lived event stream.
            timeout=httpx.Timeout(None, connect=settings.BACKEND_CONNECT_TIMEOUT_SECONDS),
            follow_redirects=False,
            trust_env=False,
        )
    return _client


async def close_backend_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
