# core/constant_time.py
import hashlib
import hmac
from typing import Final, Optional
from core.credentials import SINGLETON_LABEL
from core.entities import AuthOutcome, Credential, CredentialStore
from util.enums import RoutingMode
from util.errors import CredentialCollisionError
from util.functions import short_fingerprint

# Fixed message signed with both the presented and the stored token.
AUTH_CHECK_MESSAGE: Final[bytes] = b"serena-mcp-auth-check"
BEARER_SCHEME: Final[str] = "bearer"
MULTI_ROUTE_KEY_PREFIX: Final[str] = "tok-"


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Return the token from "Authorization: Bearer <token>", or None when the header
    is missing or malformed. Tokens never contain whitespace, so anything after a
    second word makes the header malformed.
    Not timing sensitive: it never looks at stored secrets.
    """
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != BEARER_SCHEME:
        return None
    return parts[1]


def _mac(token: str) -> bytes:
    return hmac.new(token.encode("utf-8"), AUTH_CHECK_MESSAGE, hashlib.sha256).digest()


def tokens_equal(presented: str, candidate: str) -> bool:
    """
    Compare two tokens through their HMACs.

    The XOR accumulator visits every byte pair and also folds in the MAC lengths
    and the raw token lengths, so the loop never exits at the first difference.
    """
    mac_a = _mac(presented)
    mac_b = _mac(candidate)
    diff = len(mac_a) ^ len(mac_b)
    diff |= len(presented.encode("utf-8")) ^ len(candidate.encode("utf-8"))
    for x, y in zip(mac_a, mac_b):
        diff |= x ^ y
    return diff == 0


def routing_key_for(credential: Credential, mode: RoutingMode) -> str:
    if mode == RoutingMode.SINGLE:
        return SINGLETON_LABEL
    return f"{MULTI_ROUTE_KEY_PREFIX}{short_fingerprint(credential.secret)}"


def match(presented: str, store: CredentialStore) -> AuthOutcome:
    """
    Check `presented` against every credential in the store.

    Every candidate is evaluated even after a hit, so latency does not depend on
    which entry matched. More than one hit means two labels share a secret; that
    is reported as a configuration error instead of picking one.
    """
    matched: Optional[Credential] = None
    hits = 0
    for candidate in store.credentials:
        if tokens_equal(presented, candidate.secret):
            matched = candidate
            hits += 1

    if matched is None:
        return AuthOutcome(matched=False, routing_key="", mode=store.mode)
    if hits > 1:
        raise CredentialCollisionError(
            "More than one configured credential matches the same token."
        )
    return AuthOutcome(
        matched=True,
        routing_key=routing_key_for(matched, store.mode),
        mode=store.mode,
        label=matched.label,
    )
