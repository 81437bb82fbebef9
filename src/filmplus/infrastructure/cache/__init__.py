"""Cache Infrastructure - Backend-Implementations."""

from .diskcache_adapter import DiskcacheAdapter

__all__ = ["DiskcacheAdapter"]
