# service/auth_service.py
from typing import Optional
from core.constant_time import extract_bearer_token, match
from core.credentials import load_credential_store
from core.entities import AuthOutcome, CredentialStore
from util.constants import ServiceNames
from util.enums import ErrorMessage, RoutingMode
from util.errors import AppError, CredentialCollisionError, CredentialConfigError
import logging

logger = logging.getLogger(__name__)

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": f'Bearer realm="{ServiceNames.AUTH_REALM}"'}


def _unauthorized() -> AppError:
    # Same body for missing header, malformed header and unknown token.
    return AppError(ErrorMessage.UNAUTHORIZED, headers=_UNAUTHORIZED_HEADERS)


class AuthService:
    """
    Bearer-token authentication against the credential store.

    The store is parsed once at construction. A broken token configuration does not
    crash the router: every authenticated request is answered with a distinct
    "server misconfigured" error instead.
    """

    def __init__(self, api_token: Optional[str], api_tokens_json: Optional[str]) -> None:
        self._store: Optional[CredentialStore] = None
        self._config_error: Optional[str] = None
        try:
            self._store = load_credential_store(api_token, api_tokens_json)
        except CredentialConfigError as e:
            self._config_error = str(e)
            logger.error("auth.store.invalid reason=%s", self._config_error)

    @property
    def routing_mode(self) -> Optional[RoutingMode]:
        return self._store.mode if self._store else None

    def authenticate(self, authorization: Optional[str]) -> AuthOutcome:
        token = extract_bearer_token(authorization)
        if token is None:
            logger.warning("auth.rejected reason=missing_or_malformed_header")
            raise _unauthorized()

        if self._store is None:
            raise AppError(ErrorMessage.SERVER_MISCONFIGURED, self._config_error)

        try:
            outcome = match(token, self._store)
        except CredentialCollisionError as e:
            logger.error("auth.store.collision reason=%s", e)
            raise AppError(ErrorMessage.SERVER_MISCONFIGURED, str(e))

        if not outcome.matched:
            logger.warning("auth.rejected reason=no_match")
            raise _unauthorized()

        logger.debug("auth.ok mode=%s label=%s", outcome.mode.value, outcome.label)
        return outcome
