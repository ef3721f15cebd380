# service/tenant_router_service.py
from typing import Dict, Iterable, Tuple
import httpx
from fastapi import Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from core.entities import AuthOutcome
from util.enums import ErrorMessage
from util.errors import AppError, BackendUnavailableError
from util.timing import timed
import logging

logger = logging.getLogger(__name__)

INSTANCE_PLACEHOLDER = "{instance}"

# RFC 7230 hop-by-hop headers plus Host, which httpx sets from the backend URL.
_HOP_BY_HOP = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "host",
    }
)


def _end_to_end(items: Iterable[Tuple[str, str]]) -> Dict[str, str]:
    return {k: v for k, v in items if k.lower() not in _HOP_BY_HOP}


def build_instance_name(prefix: str, routing_key: str, generation: str) -> str:
    return f"{prefix}-{routing_key}-{generation}"


class TenantRouter:
    """
    Maps an authenticated caller to its backend instance and relays traffic there.

    Flow:
    - route(): InstanceName = <prefix>-<routingKey>-<generation>. Pure; the same
      credential always lands on the same instance for a given generation.
    - forward(): request relayed as-is (minus hop-by-hop headers), response
      streamed back chunk by chunk so GET /mcp event streams stay open.
    - Session ids are passed through untouched and never used for routing.
    """

    def __init__(
        self,
        name_prefix: str,
        generation: str,
        url_template: str,
        client: httpx.AsyncClient,
    ) -> None:
        self._prefix = name_prefix
        self._generation = generation
        self._template = url_template
        self._client = client

    def route(self, outcome: AuthOutcome) -> str:
        return build_instance_name(self._prefix, outcome.routing_key, self._generation)

    def backend_url(self, instance_name: str, path: str, query: str = "") -> str:
        base = self._template.replace(INSTANCE_PLACEHOLDER, instance_name).rstrip("/")
        url = f"{base}{path}"
        return f"{url}?{query}" if query else url

    async def forward(self, instance_name: str, request: Request) -> StreamingResponse:
        url = self.backend_url(instance_name, request.url.path, request.url.query)
        headers = _end_to_end(request.headers.items())

        # Bodyless GET/DELETE must not turn into a chunked upload.
        has_body = "content-length" in request.headers or "transfer-encoding" in request.headers
        upstream_req = self._client.build_request(
            request.method,
            url,
            headers=headers,
            content=request.stream() if has_body else None,
        )

        try:
            with timed(logger, "proxy.forward", instance=instance_name, method=request.method):
                upstream = await self._client.send(upstream_req, stream=True)
        except httpx.RequestError as e:
            err = BackendUnavailableError(instance_name, f"{type(e).__name__}: {e}")
            logger.warning("proxy.backend_unavailable instance=%s reason=%s", instance_name, err.reason)
            raise AppError(ErrorMessage.BACKEND_UNAVAILABLE) from err

        logger.debug(
            "proxy.response instance=%s status=%d", instance_name, upstream.status_code
        )
        return StreamingResponse(
            upstream.aiter_raw(),
            status_code=upstream.status_code,
            headers=_end_to_end(upstream.headers.multi_items()),
            background=BackgroundTask(upstream.aclose),
        )
