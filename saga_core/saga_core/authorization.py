"""Authorization gate: may this identity use this capability?

``authorize`` is a pure function of its inputs -- no I/O, no state --
so it can be called freely from request handlers and tests.
``check_capability`` wraps it and raises the matching
:mod:`saga_core.errors` exception on denial.
"""

from __future__ import annotations

import logging

from saga_core.errors import ConfigurationError, Forbidden
from saga_core.identity import Identity
from saga_core.permissions import Capability, allowed_tiers
from saga_core.tiers import Role, SubscriptionTier

logger = logging.getLogger(__name__)


def authorize(role: Role, tier: SubscriptionTier, capability: Capability | str) -> bool:
    """Return ``True`` if *role*/*tier* may use *capability*.

    Rules, in order:

    1. ``Role.ADMIN`` is always allowed.
    2. Unknown capability names are denied (fail closed).
    3. Otherwise allowed iff *tier* is in the capability's allowed set.
    """
    if role == Role.ADMIN:
        return True

    tiers = allowed_tiers(capability)
    if tiers is None:
        logger.error(
            "Unknown capability '%s' requested; denying (configuration error)",
            getattr(capability, "value", capability),
        )
        return False

    return tier in tiers


def check_capability(identity: Identity, capability: Capability | str) -> None:
    """Raise if *identity* may not use *capability*.

    Raises
    ------
    ConfigurationError
        The capability is not in the permission table and the caller is
        not an admin.
    Forbidden
        The identity's tier does not include the capability.
    """
    name = getattr(capability, "value", capability)
    if identity.is_admin:
        return

    if allowed_tiers(capability) is None:
        logger.error("Endpoint requested unknown capability '%s' (uid=%s)", name, identity.id)
        raise ConfigurationError(f"Capability '{name}' is not configured")

    if not authorize(identity.role, identity.subscription_tier, capability):
        logger.info(
            "Capability denied: uid=%s tier=%s requires %s",
            identity.id,
            identity.subscription_tier.value,
            name,
        )
        raise Forbidden("This feature requires a higher subscription tier.")
