from __future__ import annotations
import base64, hashlib
from typing import Any
import jwt

ISSUER = "Upstash"


class TriggerSignatureError(Exception):
    pass


def body_hash(body: bytes) -> str:
    return base64.urlsafe_b64encode(hashlib.sha256(body).digest()).decode().rstrip("=")


def verify_signature(
    signature: str | None,
    body: bytes,
    *,
    current_key: str,
    next_key: str = "",
    leeway: int = 0,
) -> dict[str, Any]:
    """
    Check an Upstash-Signature header: an HS256 JWT signed with the current
    (or, during rotation, the next) signing key whose `body` claim is the
    base64url SHA-256 of the raw request body. Returns the claims.
    """
    if not signature:
        raise TriggerSignatureError("missing signature")
    last_error: Exception | None = None
    for key in (current_key, next_key):
        if not key:
            continue
        try:
            claims = jwt.decode(
                signature, key, algorithms=["HS256"], issuer=ISSUER, leeway=leeway,
                options={"require": ["iss", "exp", "nbf", "body"], "verify_aud": False},
            )
        except jwt.PyJWTError as e:
            last_error = e
            continue
        if str(claims["body"]).rstrip("=") != body_hash(body):
            raise TriggerSignatureError("body hash mismatch")
        return claims
    raise TriggerSignatureError(f"invalid signature: {last_error}")
