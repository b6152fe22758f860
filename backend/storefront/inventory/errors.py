"""Typed inventory failures.

Each error carries the ``error_code``/``retryable`` pair the HTTP layer
copies into ErrorResponse. Per-item anomalies (missing nested fields,
missing ids) are not errors; the mapper absorbs them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from storefront.inventory.query import FragileField


class InventoryError(Exception):
    error_code = "inventory_error"
    retryable = False


class ProviderNotConfigured(InventoryError):
    error_code = "provider_not_configured"


class AuthenticationFailure(InventoryError):
    """No usable bearer token. Never retried within a request."""

    error_code = "provider_auth_failed"


class MalformedResponse(InventoryError):
    """Provider body was not JSON or lacked the expected shape."""

    error_code = "provider_malformed_response"


class ProviderCallFailed(InventoryError):
    """One failed provider call, classified by channel.

    channel is "transport" (no response), "status" (non-2xx, body text is the
    diagnostic) or "errors" (2xx carrying a non-empty errors list).
    """

    error_code = "provider_call_failed"

    def __init__(self, channel: str, diagnostic: str, status_code: int | None = None) -> None:
        self.channel = channel
        self.diagnostic = diagnostic
        self.status_code = status_code
        super().__init__(f"{channel} failure ({status_code}): {diagnostic[:200]}")


class ProviderTransportError(ProviderCallFailed):
    error_code = "provider_unavailable"
    retryable = True

    def __init__(self, diagnostic: str) -> None:
        super().__init__("transport", diagnostic)


class QueryRejected(InventoryError):
    """The provider refused the query and no fragile clause could be dropped."""

    error_code = "query_rejected"

    def __init__(self, failure: ProviderCallFailed, clause: FragileField | None = None) -> None:
        self.failure = failure
        self.clause = clause
        self.diagnostic = failure.diagnostic
        super().__init__(f"Provider rejected query: {failure.diagnostic[:200]}")


class QueryRejectedAfterRetry(InventoryError):
    """The degraded retry failed too. Both diagnostics are kept."""

    error_code = "query_rejected_after_retry"

    def __init__(
        self,
        dropped: FragileField,
        original: ProviderCallFailed,
        retry: InventoryError,
    ) -> None:
        self.dropped = dropped
        self.original = original
        self.retry = retry
        self.original_diagnostic = original.diagnostic
        self.retry_diagnostic = getattr(retry, "diagnostic", None) or str(retry)
        super().__init__(
            f"Provider rejected query; retry without {dropped.value} also failed. "
            f"original: {self.original_diagnostic[:200]} | retry: {self.retry_diagnostic[:200]}"
        )


class RequestTimedOut(InventoryError):
    """The caller-scoped budget ran out before the provider answered."""

    error_code = "provider_timeout"
    retryable = True
