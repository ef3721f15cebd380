# util/functions.py
import hashlib
import re

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_key_segment(value: str) -> str:
    """
    - Replace every character outside [A-Za-z0-9._-] with '_'.
    - Used for object-store prefix segments derived from instance identities.
    """
    return _UNSAFE_KEY_CHARS.sub("_", value)


def short_fingerprint(secret: str, length: int = 16) -> str:
    # One-way, stable; only ever used as a routing key.
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()[:length]


def exit_code_from_returncode(returncode: int) -> int:
    """
    Map a subprocess return code to a shell-style exit status
    (killed by signal N -> 128 + N).
    """
    if returncode < 0:
        return 128 + (-returncode)
    return returncode
