"""Observability helpers."""

from .logging import get_logger, mask_credential

__all__ = ["get_logger", "mask_credential"]
