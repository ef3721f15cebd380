# controller/controller_dependencies.py
from functools import lru_cache
from typing import Optional
from fastapi import Depends, Header
from config.http_client import get_backend_client
from config.settings import settings
from core.entities import AuthOutcome
from service.auth_service import AuthService
from service.health_service import HealthService
from service.tenant_router_service import TenantRouter


def get_health_service() -> HealthService:
    return HealthService(settings)


@lru_cache(maxsize=1)
def get_auth_service() -> AuthService:
    # Credential store is parsed once per process.
    return AuthService(settings.API_TOKEN, settings.API_TOKENS_JSON)


async def get_tenant_router() -> TenantRouter:
    client = await get_backend_client()
    return TenantRouter(
        settings.ROUTE_NAME_PREFIX,
        settings.MCP_CONTAINER_ROUTE_GENERATION,
        settings.BACKEND_URL_TEMPLATE,
        client,
    )


def require_bearer(
    authorization: Optional[str] = Header(default=None),
    auth: AuthService = Depends(get_auth_service),
) -> AuthOutcome:
    return auth.authenticate(authorization)
