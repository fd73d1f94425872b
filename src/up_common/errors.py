"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth / caller identity
  2xxx: Merchant
  3xxx: Offer / stock
  4xxx: Bid
  6xxx: Payment gateway
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired token", 401)


class MerchantDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Merchant account is disabled", 403)


class InvalidCronSecretError(AppError):
    def __init__(self) -> None:
        super().__init__(1006, "Invalid cron secret", 401)


class ForbiddenError(AppError):
    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(1007, detail, 403)


# --- 2xxx: Merchant ---

class MerchantNotFoundError(AppError):
    def __init__(self, merchant_id: str) -> None:
        super().__init__(2001, f"Merchant not found: {merchant_id}", 404)


class PaymentNotConfiguredError(AppError):
    def __init__(self, merchant_id: str) -> None:
        super().__init__(
            2002,
            f"Merchant {merchant_id} has not completed payment onboarding",
            422,
        )


# --- 3xxx: Offer / stock ---

class OfferNotFoundError(AppError):
    def __init__(self, offer_id: str) -> None:
        super().__init__(3001, f"Offer not found: {offer_id}", 404)


class OfferUnavailableError(AppError):
    def __init__(
        self,
        offer_id: str,
        reason: str = "not available",
        code: int = 3002,
        http_status: int = 422,
    ) -> None:
        self.offer_id = offer_id
        super().__init__(code, f"Offer {offer_id} is {reason}", http_status)


class StockExhaustedError(OfferUnavailableError):
    """The last unit went to a concurrent bid between validation and reservation."""

    def __init__(self, offer_id: str) -> None:
        super().__init__(offer_id, "just sold out", code=3003, http_status=409)


class InvalidOfferConfigError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3004, f"Invalid offer configuration: {detail}", 422)


# --- 4xxx: Bid ---

class OutOfRangeError(AppError):
    def __init__(self, amount: int, range_min: int, range_max: int) -> None:
        super().__init__(
            4001,
            f"Bid amount {amount} cents outside allowed range [{range_min}, {range_max}]",
            422,
        )


class InvalidAmountError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4002, f"Invalid bid amount: {detail}", 422)


class BidNotFoundError(AppError):
    def __init__(self, bid_id: str) -> None:
        super().__init__(4004, f"Bid not found: {bid_id}", 404)


class AlreadyResolvedError(AppError):
    def __init__(self, bid_id: str, status: str) -> None:
        self.bid_id = bid_id
        self.status = status
        super().__init__(4006, f"Bid {bid_id} is already {status}", 409)


class BidResolutionInProgressError(AppError):
    def __init__(self, bid_id: str) -> None:
        self.bid_id = bid_id
        super().__init__(4007, f"Bid {bid_id} is being resolved, retry shortly", 409)


class ShippingAlreadySetError(AppError):
    def __init__(self, bid_id: str) -> None:
        super().__init__(4008, f"Shipping address already set for bid {bid_id}", 409)


# --- 6xxx: Payment gateway ---

class GatewayError(AppError):
    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(6001, f"Payment gateway {operation} failed: {reason}", 502)


class GatewayTimeoutError(GatewayError):
    def __init__(self, operation: str, seconds: float) -> None:
        super().__init__(operation, f"no response within {seconds:g}s")
        self.code = 6002
        self.http_status = 504


class PaymentAlreadyCapturedError(GatewayError):
    """Cancel refused because the money already moved; refund instead."""

    def __init__(self, operation: str, payment_reference: str) -> None:
        super().__init__(operation, f"payment {payment_reference} is already captured")
        self.code = 6004
        self.http_status = 409


class InvalidWebhookError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(6003, f"Webhook rejected: {detail}", 400)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
