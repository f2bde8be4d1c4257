"""HTTP service for the Saga coaching platform: identity, tiered access and quotas."""

__version__ = "0.1.0"
