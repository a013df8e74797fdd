"""Pure functions for the two kinds of tokens DocVault hands out.

Signed tokens (HS256 JWT) carry identity: login sessions and the office
editor configuration. Delivery tokens are opaque random capabilities with
no embedded claims; their meaning lives in the ``delivery_tokens`` table.

No classes with state, just encode/decode/generate.
"""

import base64
import hashlib
import hmac
import json
import re
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

# 32 random bytes = 256 bits of entropy, rendered as 64 lowercase hex chars.
DELIVERY_TOKEN_BYTES = 32
DELIVERY_TOKEN_PATTERN = re.compile(r"[0-9a-f]{64}")

_ISSUER = "docvault"


@dataclass(frozen=True)
class TokenPayload:
    """Decoded JWT payload. Immutable."""
    sub: str
    role: str
    exp: datetime
    claims: dict = field(default_factory=dict)


def create_token(
    subject: str,
    role: str,
    secret: str,
    algorithm: str = "HS256",
    expires_seconds: int = 24 * 3600,
    claims: Optional[dict[str, Any]] = None,
) -> str:
    """Create a signed JWT.

    Args:
        subject: Token subject (user id).
        role: Role claim.
        secret: HMAC signing key.
        algorithm: Only HS256 supported.
        expires_seconds: Seconds until expiry. Negative values produce an
            already-expired token (useful in tests).
        claims: Extra claims merged into the payload.
    """
    if algorithm != "HS256":
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    now = time.time()
    payload = dict(claims or {})
    payload.update({
        "sub": subject,
        "role": role,
        "iat": int(now),
        "exp": int(now + expires_seconds),
        "iss": _ISSUER,
    })
    return sign_payload(payload, secret)


def sign_payload(payload: dict[str, Any], secret: str) -> str:
    """Sign an arbitrary JSON payload as an HS256 JWT."""
    header = {"alg": "HS256", "typ": "JWT"}
    segments = [
        _b64encode(json.dumps(header, separators=(",", ":")).encode()),
        _b64encode(json.dumps(payload, separators=(",", ":"), default=str).encode()),
    ]
    signing_input = b".".join(segments)
    signature = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
    segments.append(_b64encode(signature))
    return b".".join(segments).decode()


def verify_signature(token: str, secret: str) -> Optional[dict[str, Any]]:
    """Return the payload of an HS256 JWT if the signature matches.

    Does not look at ``exp``; callers that need expiry use decode_token().
    """
    try:
        parts = token.encode().split(b".")
        if len(parts) != 3:
            return None

        signing_input = parts[0] + b"." + parts[1]
        expected_sig = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
        actual_sig = _b64decode(parts[2])

        if not hmac.compare_digest(expected_sig, actual_sig):
            return None

        payload = json.loads(_b64decode(parts[1]))
        if not isinstance(payload, dict):
            return None
        return payload
    except (json.JSONDecodeError, ValueError, IndexError, UnicodeError):
        return None


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[TokenPayload]:
    """Decode and validate a JWT.

    Returns ``None`` on any validation failure (bad signature, expired, malformed)
    rather than raising; callers decide what to do with absence.
    """
    if algorithm != "HS256":
        return None

    payload = verify_signature(token, secret)
    if payload is None:
        return None

    exp = payload.get("exp", 0)
    if not isinstance(exp, (int, float)) or time.time() > exp:
        return None

    extra = {k: v for k, v in payload.items() if k not in ("sub", "role", "exp", "iat", "iss")}
    return TokenPayload(
        sub=str(payload.get("sub", "")),
        role=str(payload.get("role", "")),
        exp=datetime.fromtimestamp(exp, tz=timezone.utc),
        claims=extra,
    )


def new_delivery_token() -> str:
    """Generate an opaque, unguessable delivery token."""
    return secrets.token_hex(DELIVERY_TOKEN_BYTES)


def is_delivery_token_format(value: str) -> bool:
    """Cheap shape check run before any database lookup."""
    return bool(value) and DELIVERY_TOKEN_PATTERN.fullmatch(value) is not None


# --- base64url helpers (no padding, URL-safe) ---

def _b64encode(data: bytes) -> bytes:
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64decode(data: bytes) -> bytes:
    padding = 4 - len(data) % 4
    if padding != 4:
        data += b"=" * padding
    return base64.urlsafe_b64decode(data)
