"""Link code, session id and token helpers."""

import re
import secrets
import uuid

LINK_CODE_LENGTH = 6
LINK_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

_LINK_CODE_RE = re.compile(rf"^[A-Z0-9]{{{LINK_CODE_LENGTH}}}$")
_BEARER_PREFIX_RE = re.compile(r"^Bearer\s+", re.IGNORECASE)


def generate_link_code() -> str:
    """Random 6-character uppercase alphanumeric link code."""
    return "".join(secrets.choice(LINK_CODE_ALPHABET) for _ in range(LINK_CODE_LENGTH))


def is_valid_link_code(code: str | None) -> bool:
    """Check a link code against the fixed-length format."""
    return bool(code) and _LINK_CODE_RE.match(code) is not None


def new_session_id() -> str:
    """Opaque recording session id (uuid4, drawn from os.urandom)."""
    return str(uuid.uuid4())


def normalize_token(token: str) -> str:
    """Strip a stray 'Bearer ' prefix; monday.com expects the raw token."""
    return _BEARER_PREFIX_RE.sub("", token.strip())
