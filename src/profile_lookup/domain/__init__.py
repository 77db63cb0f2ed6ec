"""Pure bookkeeping types with no upstream knowledge."""

from .token_pool import TokenPool

__all__ = ["TokenPool"]
