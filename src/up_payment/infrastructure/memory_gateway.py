"""InMemoryPaymentGateway: deterministic gateway double.

Used by the test-suite and by PAYMENT_GATEWAY=memory for local runs without
processor credentials. Mirrors the processor's state rules: only a held
payment can be captured or cancelled, only a captured payment refunded.
"""
import asyncio
import itertools
from dataclasses import dataclass, field

from src.up_common.enums import CaptureMode
from src.up_common.errors import GatewayError, PaymentAlreadyCapturedError
from src.up_payment.domain.gateway import Authorization

HELD = "requires_capture"
CAPTURED = "succeeded"
CANCELLED = "canceled"
REFUNDED = "refunded"


@dataclass
class MemoryPayment:
    reference: str
    amount: int
    platform_fee_amount: int
    merchant_account: str
    capture_mode: CaptureMode
    currency: str
    state: str
    metadata: dict[str, str] = field(default_factory=dict)


class InMemoryPaymentGateway:
    def __init__(self, latency: float = 0.0) -> None:
        self._latency = latency
        self._seq = itertools.count(1)
        self.payments: dict[str, MemoryPayment] = {}
        self.accounts: dict[str, str] = {}  # merchant id -> sub-account
        self._by_idempotency_key: dict[str, str] = {}
        self._failures: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []

    # -- failure injection -------------------------------------------------

    def fail_next(self, operation: str, reason: str = "card_declined") -> None:
        """Make the next call of `operation` fail.

        Any protocol method name works, e.g. authorize or create_account.
        """
        self._failures[operation] = reason

    def _maybe_fail(self, operation: str) -> None:
        reason = self._failures.pop(operation, None)
        if reason is not None:
            raise GatewayError(operation, reason)

    async def _tick(self) -> None:
        if self._latency:
            await asyncio.sleep(self._latency)

    def _get(self, operation: str, reference: str, merchant_account: str | None) -> MemoryPayment:
        payment = self.payments.get(reference)
        if payment is None:
            raise GatewayError(operation, f"no such payment {reference}")
        if merchant_account is not None and payment.merchant_account != merchant_account:
            raise GatewayError(operation, "payment belongs to another account")
        return payment

    # -- protocol ----------------------------------------------------------

    async def authorize(
        self,
        amount: int,
        merchant_account: str,
        platform_fee_amount: int,
        capture_mode: CaptureMode,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> Authorization:
        await self._tick()
        self.calls.append(("authorize", idempotency_key))
        self._maybe_fail("authorize")
        existing = self._by_idempotency_key.get(idempotency_key)
        if existing is not None:
            payment = self.payments[existing]
        else:
            reference = f"pi_mem_{next(self._seq):06d}"
            state = CAPTURED if capture_mode == CaptureMode.AUTOMATIC else HELD
            payment = MemoryPayment(
                reference=reference,
                amount=amount,
                platform_fee_amount=platform_fee_amount,
                merchant_account=merchant_account,
                capture_mode=capture_mode,
                currency=currency,
                state=state,
                metadata=dict(metadata),
            )
            self.payments[reference] = payment
            self._by_idempotency_key[idempotency_key] = reference
        return Authorization(
            payment_reference=payment.reference,
            client_secret=f"{payment.reference}_secret",
            captured=payment.state == CAPTURED,
        )

    async def capture(self, payment_reference: str, merchant_account: str) -> str | None:
        await self._tick()
        self.calls.append(("capture", payment_reference))
        self._maybe_fail("capture")
        payment = self._get("capture", payment_reference, merchant_account)
        if payment.state == HELD:
            payment.state = CAPTURED
        elif payment.state != CAPTURED:
            raise GatewayError("capture", f"payment is {payment.state}")
        return f"tr_{payment_reference}"

    async def cancel(self, payment_reference: str, merchant_account: str) -> None:
        await self._tick()
        self.calls.append(("cancel", payment_reference))
        self._maybe_fail("cancel")
        payment = self._get("cancel", payment_reference, merchant_account)
        if payment.state == HELD:
            payment.state = CANCELLED
        elif payment.state == CAPTURED:
            raise PaymentAlreadyCapturedError("cancel", payment_reference)
        elif payment.state != CANCELLED:
            raise GatewayError("cancel", f"payment is {payment.state}")

    async def refund(
        self, payment_reference: str, merchant_account: str | None = None
    ) -> None:
        await self._tick()
        self.calls.append(("refund", payment_reference))
        self._maybe_fail("refund")
        payment = self._get("refund", payment_reference, merchant_account)
        if payment.state == CAPTURED:
            payment.state = REFUNDED
        elif payment.state != REFUNDED:
            raise GatewayError("refund", f"payment is {payment.state}")

    async def create_connected_account(
        self, merchant_id: str, email: str, business_name: str | None
    ) -> str:
        await self._tick()
        self.calls.append(("create_account", merchant_id))
        self._maybe_fail("create_account")
        account = self.accounts.get(merchant_id)
        if account is None:
            account = f"acct_mem_{next(self._seq):06d}"
            self.accounts[merchant_id] = account
        return account

    async def create_onboarding_link(
        self, merchant_account: str, refresh_url: str, return_url: str
    ) -> str:
        await self._tick()
        self.calls.append(("onboarding_link", merchant_account))
        self._maybe_fail("onboarding_link")
        return f"https://connect.example/setup/{merchant_account}?return={return_url}"

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)
