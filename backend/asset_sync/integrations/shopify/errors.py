"""Shopify Admin API error types; `transient` tells the sync engine whether a retry can help."""


class ShopifyError(Exception):
    """Base for all Shopify errors."""

    transient = False

    def __init__(self, message: str = "", *, transient: bool | None = None) -> None:
        super().__init__(message)
        if transient is not None:
            self.transient = transient


class ShopifyRateLimitError(ShopifyError):
    """429 / THROTTLED after retries."""

    transient = True


class ShopifyTransportError(ShopifyError):
    """Network failure, timeout or 5xx after retries."""

    transient = True


class ShopifyUserError(ShopifyError):
    """Mutation returned userErrors (validation) or top-level GraphQL errors."""

    def __init__(self, op_name: str, user_errors: list) -> None:
        super().__init__(f"{op_name} userErrors: {user_errors}")
        self.op_name = op_name
        self.user_errors = user_errors
