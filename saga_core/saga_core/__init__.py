"""Saga access core.

Subscription tiers, the capability table, identity resolution, the
authorization gate and the tiered rate limiter that sit in front of the
paid coaching endpoints.
"""

__version__ = "0.1.0"
