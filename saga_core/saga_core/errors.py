"""Access-control error taxonomy.

Every rejection the access layer can produce maps onto one of these
exceptions.  Each carries the HTTP-style status code and a stable,
machine-readable ``reason`` string that ends up in the response body.

The composed gate (:mod:`saga_core.access`) catches these and turns them
into :class:`~saga_core.access.AccessDecision` values; they never escape
into endpoint code.
"""

from __future__ import annotations


class AccessError(Exception):
    """Base class for access-layer rejections."""

    status_code: int = 403
    reason: str = "access_denied"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.reason)
        self.message = message or self.reason


class Unauthenticated(AccessError):
    """No resolvable identity.  Always fails closed."""

    status_code = 401
    reason = "unauthenticated"


class Forbidden(AccessError):
    """The identity's tier does not include the requested capability."""

    status_code = 403
    reason = "upgrade_required"


class ConfigurationError(Forbidden):
    """The endpoint asked for a capability that is not in the table.

    This is a programming error in the calling code, not something the
    end user did.  It is surfaced as a 403 but logged at ERROR so it is
    distinguishable from a legitimate :class:`Forbidden`.
    """

    reason = "capability_not_configured"


class RateLimited(AccessError):
    """The identity exhausted its quota for the current window."""

    status_code = 429
    reason = "rate_limited"

    def __init__(self, message: str | None = None, *, retry_after_seconds: int = 1) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds
