# src/up_payment/domain/gateway.py
"""PaymentGateway Protocol: two-phase card payments on a merchant sub-account.

authorize() places a hold (manual capture) or charges immediately (automatic
capture). A held payment is later captured or cancelled; a captured payment
can only be refunded, and cancel() on one raises PaymentAlreadyCapturedError.
capture() on an already captured payment returns its settlement reference.
Amounts are integer cents.

create_connected_account() opens the merchant sub-account that payments land
on; create_onboarding_link() returns the hosted page where the merchant
finishes it. Completion arrives later as an account update webhook.

Implementations raise GatewayError / GatewayTimeoutError; they never return
an ambiguous result.
"""
from dataclasses import dataclass
from typing import Protocol

from src.up_common.enums import CaptureMode


@dataclass(frozen=True)
class Authorization:
    payment_reference: str  # opaque handle to the held or captured payment
    client_secret: str | None  # handed to the shopper's browser to confirm the card
    captured: bool  # True when capture_mode was automatic


class PaymentGatewayProtocol(Protocol):
    async def authorize(
        self,
        amount: int,
        merchant_account: str,
        platform_fee_amount: int,
        capture_mode: CaptureMode,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> Authorization: ...

    async def capture(self, payment_reference: str, merchant_account: str) -> str | None: ...

    async def cancel(self, payment_reference: str, merchant_account: str) -> None: ...

    async def refund(
        self, payment_reference: str, merchant_account: str | None = None
    ) -> None: ...

    async def create_connected_account(
        self, merchant_id: str, email: str, business_name: str | None
    ) -> str: ...

    async def create_onboarding_link(
        self, merchant_account: str, refresh_url: str, return_url: str
    ) -> str: ...
