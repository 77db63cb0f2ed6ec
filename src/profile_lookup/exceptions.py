"""Custom exceptions for profile lookup.

These exceptions carry the structured data callers need to implement their own
backoff or display logic, and enable testing of error paths.
"""

from __future__ import annotations

from datetime import UTC, datetime


class ProfileLookupError(Exception):
    """Base exception for all profile lookup errors."""

    pass


class NoCredentialsConfiguredError(ProfileLookupError):
    """Raised when the credential pool would start empty.

    This is a fatal startup error - the process should stop immediately.
    """

    def __init__(self, env_name: str = "API_BEARER_TOKENS") -> None:
        self.env_name = env_name
        super().__init__(
            f"No API bearer tokens configured.\n"
            f"Set {env_name} in .env to a comma-separated list of tokens."
        )


class UnknownCredentialError(ProfileLookupError):
    """Raised when a credential outside the pool is marked as throttled."""

    def __init__(self, masked_credential: str) -> None:
        super().__init__(f"Credential {masked_credential} is not part of the pool.")


class AllCredentialsThrottled(ProfileLookupError):
    """Raised when every credential in the pool is currently throttled.

    Recoverable once the soonest throttle deadline has passed.
    """

    def __init__(self, retry_after_seconds: int, earliest_retry_at: float) -> None:
        self.retry_after_seconds = retry_after_seconds
        self.earliest_retry_at = earliest_retry_at
        super().__init__(
            f"All API tokens are rate limited. Next reset in {retry_after_seconds} seconds."
        )


class RateLimitExceeded(ProfileLookupError):
    """Raised when the attempt budget ends on a rate-limit response (429).

    The caller should back off until `reset_timestamp`.
    """

    def __init__(self, retry_after_seconds: int, reset_timestamp: float) -> None:
        self.retry_after_seconds = retry_after_seconds
        self.reset_timestamp = reset_timestamp
        super().__init__(
            f"Rate limit exceeded. Retry after {retry_after_seconds} seconds "
            f"(resets at {self.reset_time.isoformat()})."
        )

    @property
    def reset_time(self) -> datetime:
        return datetime.fromtimestamp(self.reset_timestamp, tz=UTC)


class UpstreamRejected(ProfileLookupError):
    """Raised when the upstream API rejects a request with a non-retryable status.

    Passed through to the caller as-is; retrying cannot fix it.
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Upstream API rejected the request ({status_code}): {message}")


class TransientFailure(ProfileLookupError):
    """Raised when network-level failures outlast the attempt budget."""

    def __init__(self, cause: Exception) -> None:
        self.cause = cause
        super().__init__(f"Upstream API unreachable after retries: {cause}")


class InvalidUsernameError(ProfileLookupError):
    """Raised when a username cannot be a valid upstream handle."""

    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__(
            f"Invalid username {username!r}: use 1-15 letters, digits or underscores."
        )


class FlagStoreCorruptError(ProfileLookupError):
    """Raised when the flag store file does not hold a JSON list of strings."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Flag store {path} must contain a JSON list of strings.")


class ConfigFileNotFoundError(ProfileLookupError):
    """Raised when a config file path does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Config file not found: {path}")


class ConfigFileParseError(ProfileLookupError):
    """Raised when a config file is not valid TOML."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Config file {path} is not valid TOML: {detail}")


class ConfigFileValidationError(ProfileLookupError):
    """Raised when a config file fails schema validation."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Config file {path} is invalid: {detail}")
