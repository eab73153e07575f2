"""Provider error taxonomy.

Adapters translate SDK exceptions into these classes so callers can handle
failures without knowing which SDK produced them.
"""

__all__ = [
    "ProviderError",
    "RateLimitError",
    "AuthenticationError",
    "ModelNotFoundError",
    "ContextLengthError",
    "TransientError",
]


class ProviderError(Exception):
    """Base class for all provider errors."""

    pass


class RateLimitError(ProviderError):
    """Upstream rate limit exceeded."""

    def __init__(self, message: str, retry_after_seconds: float | None = None):
        """Initialize RateLimitError.

        Args:
            message: Error description from the provider.
            retry_after_seconds: Optional hint from provider on when to retry.
        """
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class AuthenticationError(ProviderError):
    """Invalid or revoked provider credential. Not retryable."""

    pass


class ModelNotFoundError(ProviderError):
    """Configured model doesn't exist or isn't available to this key."""

    pass


class ContextLengthError(ProviderError):
    """Conversation exceeded the model's context window."""

    pass


class TransientError(ProviderError):
    """Temporary failure (network, timeout, 5xx)."""

    pass
