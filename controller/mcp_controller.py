# controller/mcp_controller.py
from fastapi import APIRouter, Depends, Request, Response, status
from controller.controller_dependencies import get_tenant_router, require_bearer
from core.entities import AuthOutcome
from core.jsonrpc import is_initialized_notification
from service.tenant_router_service import TenantRouter
from util.constants import InternalURIs
from util.enums import ErrorMessage
from util.errors import AppError
import logging

logger = logging.getLogger(__name__)

mcp_router = APIRouter()

MCP_METHODS = ["GET", "POST", "DELETE"]


@mcp_router.api_route(InternalURIs.MCP, methods=MCP_METHODS, include_in_schema=False)
@mcp_router.api_route(InternalURIs.MCP_SUBPATH, methods=MCP_METHODS, include_in_schema=False)
async def mcp_proxy(
    request: Request,
    outcome: AuthOutcome = Depends(require_bearer),
    router: TenantRouter = Depends(get_tenant_router),
) -> Response:
    """
    Flow:
    1) Bearer auth (dependency) -> routing key
    2) POST notifications/initialized -> 202 here, backend untouched
    3) Everything else -> relayed to <prefix>-<routingKey>-<generation>
    """
    if request.method == "POST":
        body = await request.body()
        if is_initialized_notification(
            request.method, request.headers.get("content-type"), body
        ):
            logger.info("mcp.initialized.acknowledged mode=%s", outcome.mode.value)
            return Response(status_code=status.HTTP_202_ACCEPTED)

    instance = router.route(outcome)
    return await router.forward(instance, request)


fallback_router = APIRouter()


@fallback_router.api_route(
    "/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"],
    include_in_schema=False,
    dependencies=[Depends(require_bearer)],
)
async def unknown_path() -> Response:
    # Registered last: only paths no other router claims end up here, after auth.
    raise AppError(ErrorMessage.NOT_FOUND)
