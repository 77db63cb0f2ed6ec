"""Application services built on the lookup core."""

from .lookup import CachedResourceFetcher, ProfileLookupService, validate_username

__all__ = ["CachedResourceFetcher", "ProfileLookupService", "validate_username"]
