"""Identity token signing and verification.

Tokens have the form ``saga.<payload>.<signature>`` where ``payload`` is
the URL-safe base64 encoding of a JSON claims object and ``signature`` is
the hex HMAC-SHA256 of the JSON text under the shared secret.

Claims understood by the access layer:

``uid``
    Stable identity id (``sub`` is accepted as an alias).
``role``
    ``"user"`` or ``"admin"``.
``subscriptionTier``
    ``"Explorer"``, ``"Growth"``, ``"Transformation"``, or ``"admin"``.
``admin``
    Boolean admin flag written by older back-office tooling.
``exp`` / ``iat``
    UNIX timestamps.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)

TOKEN_PREFIX: str = "saga"
DEFAULT_TOKEN_TTL_SECONDS: int = 3600


class TokenVerifier:
    """Sign and verify identity tokens with a shared HMAC secret.

    Parameters
    ----------
    secret:
        Shared signing secret.  Must be non-empty.
    leeway_seconds:
        Clock skew tolerated when checking ``exp``.
    """

    def __init__(self, secret: str, *, leeway_seconds: float = 30.0) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret.encode("utf-8")
        self._leeway = leeway_seconds

    def _sign(self, payload_json: str) -> str:
        return hmac.new(self._secret, payload_json.encode("utf-8"), hashlib.sha256).hexdigest()

    def issue(self, claims: Mapping[str, Any], ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS) -> str:
        """Return a signed token for *claims* valid for *ttl_seconds*."""
        now = time.time()
        payload: dict[str, Any] = {"iat": now, "exp": now + ttl_seconds}
        payload.update(claims)
        payload_json = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        encoded = base64.urlsafe_b64encode(payload_json.encode("utf-8")).decode("ascii")
        return f"{TOKEN_PREFIX}.{encoded}.{self._sign(payload_json)}"

    def verify(self, token: str) -> dict[str, Any]:
        """Validate *token* and return its claims.

        Raises
        ------
        PermissionError
            If the token is malformed, its signature does not match, or
            it has expired.
        """
        parts = token.split(".")
        if len(parts) != 3 or parts[0] != TOKEN_PREFIX:
            raise PermissionError("Malformed token")

        try:
            payload_json = base64.urlsafe_b64decode(parts[1].encode("ascii")).decode("utf-8")
        except (binascii.Error, UnicodeError, ValueError):
            raise PermissionError("Malformed token payload")

        if not hmac.compare_digest(self._sign(payload_json), parts[2]):
            raise PermissionError("Invalid token signature")

        try:
            claims = json.loads(payload_json)
        except json.JSONDecodeError:
            raise PermissionError("Malformed token payload")
        if not isinstance(claims, dict):
            raise PermissionError("Malformed token payload")

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            raise PermissionError("Token has no expiry")
        if time.time() > exp + self._leeway:
            raise PermissionError("Token has expired")

        return claims
