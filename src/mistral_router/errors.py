from __future__ import annotations


class RouterError(Exception):
    """Base error for broker failures."""


class InvalidInput(RouterError, ValueError):
    """Empty prompt or out-of-range request configuration."""


class ProviderUnavailable(RouterError):
    """Network failure, timeout or non-2xx status from a provider API."""

    def __init__(
        self,
        message: str = "Provider unavailable",
        *,
        provider: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class AuthenticationError(ProviderUnavailable):
    pass


class RateLimitError(ProviderUnavailable):
    def __init__(
        self,
        retry_after_seconds: int | None = None,
        message: str = "Rate limited",
        *,
        provider: str | None = None,
    ):
        super().__init__(message, provider=provider, status_code=429)
        self.retry_after_seconds = retry_after_seconds


class CircuitBreakerOpenError(ProviderUnavailable):
    def __init__(
        self,
        retry_after_seconds: int | None = None,
        message: str = "Upstream temporarily unavailable",
        *,
        provider: str | None = None,
    ):
        super().__init__(message, provider=provider)
        self.retry_after_seconds = retry_after_seconds


class MalformedResponse(RouterError):
    """2xx response whose body does not carry the expected content/usage shape."""

    def __init__(self, message: str = "Malformed provider response", *, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class BothProvidersFailed(RouterError):
    """Primary and substitute provider both failed for one routed request."""

    def __init__(self, primary_error: RouterError, fallback_error: RouterError):
        super().__init__(f"Both providers failed: primary: {primary_error}; fallback: {fallback_error}")
        self.primary_error = primary_error
        self.fallback_error = fallback_error

    @property
    def errors(self) -> tuple[RouterError, RouterError]:
        return self.primary_error, self.fallback_error


class RequestTimeoutError(RouterError):
    """Caller deadline exceeded; never retried on the other provider."""


# Failures that `route` answers by substituting the other provider once.
SUBSTITUTABLE_ERRORS: tuple[type[RouterError], ...] = (ProviderUnavailable, MalformedResponse)
