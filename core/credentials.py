# core/credentials.py
import json
from typing import List, Optional
from core.entities import Credential, CredentialStore
from util.enums import RoutingMode
from util.errors import CredentialConfigError
import logging

logger = logging.getLogger(__name__)

SINGLETON_LABEL = "singleton"


def _multi_token_candidates(raw: str) -> List[Credential]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        raise CredentialConfigError(
            "API_TOKENS_JSON is not valid JSON. Expected object or string array."
        )

    candidates: List[Credential] = []
    if isinstance(parsed, list):
        for i, token in enumerate(parsed):
            if not isinstance(token, str) or not token.strip():
                continue
            candidates.append(Credential(label=f"token-{i + 1}", secret=token.strip()))
    elif isinstance(parsed, dict):
        for label, token in parsed.items():
            if not isinstance(token, str) or not token.strip():
                continue
            safe_label = label.strip() or "token"
            candidates.append(Credential(label=safe_label, secret=token.strip()))
    else:
        raise CredentialConfigError(
            "API_TOKENS_JSON must be a JSON object or array of strings."
        )

    if not candidates:
        raise CredentialConfigError(
            "API_TOKENS_JSON is configured but contains no usable tokens."
        )
    return candidates


def load_credential_store(
    api_token: Optional[str], api_tokens_json: Optional[str]
) -> CredentialStore:
    """
    Build the immutable credential store.
    - API_TOKENS_JSON (object label->token, or array of tokens) selects multi-token mode
      and wins over API_TOKEN.
    - Otherwise API_TOKEN selects single-token mode.
    - Nothing usable raises CredentialConfigError (operator error, not caller error).
    """
    raw_multi = (api_tokens_json or "").strip()
    if raw_multi:
        candidates = _multi_token_candidates(raw_multi)
        logger.info("auth.store.loaded mode=%s count=%d", RoutingMode.MULTI.value, len(candidates))
        return CredentialStore(credentials=tuple(candidates), mode=RoutingMode.MULTI)

    legacy = (api_token or "").strip()
    if not legacy:
        raise CredentialConfigError(
            "No auth secrets configured. Set API_TOKEN or API_TOKENS_JSON."
        )
    logger.info("auth.store.loaded mode=%s count=1", RoutingMode.SINGLE.value)
    return CredentialStore(
        credentials=(Credential(label=SINGLETON_LABEL, secret=legacy),),
        mode=RoutingMode.SINGLE,
    )
