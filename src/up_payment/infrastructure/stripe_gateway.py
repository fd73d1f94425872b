"""StripePaymentGateway: Stripe Connect PaymentIntents on the merchant account.

Charges are created directly on the merchant's connected account
(`stripe_account=`) with the platform fee as `application_fee_amount`.
The Stripe SDK is synchronous; each call runs in a worker thread and is
bounded by GATEWAY_TIMEOUT_SECONDS.
"""
import asyncio
import logging
from typing import Any, Callable

import stripe

from src.up_common.enums import CaptureMode
from src.up_common.errors import (
    GatewayError,
    GatewayTimeoutError,
    PaymentAlreadyCapturedError,
)
from src.up_payment.domain.gateway import Authorization

logger = logging.getLogger(__name__)

_ALREADY_REFUNDED_CODES = {"charge_already_refunded"}


class StripePaymentGateway:
    def __init__(self, api_key: str, timeout_seconds: float, max_network_retries: int = 2) -> None:
        self._api_key = api_key
        self._timeout = timeout_seconds
        stripe.max_network_retries = max_network_retries

    async def _call(self, operation: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        try:
            async with asyncio.timeout(self._timeout):
                return await asyncio.to_thread(fn, api_key=self._api_key, **kwargs)
        except TimeoutError:
            logger.error("stripe %s timed out after %.1fs", operation, self._timeout)
            raise GatewayTimeoutError(operation, self._timeout) from None

    async def _retrieve(self, payment_reference: str, merchant_account: str | None) -> Any:
        return await self._call(
            "retrieve",
            stripe.PaymentIntent.retrieve,
            id=payment_reference,
            stripe_account=merchant_account,
        )

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
        try:
            intent = await self._call(
                "authorize",
                stripe.PaymentIntent.create,
                amount=amount,
                currency=currency,
                capture_method=capture_mode.value,
                application_fee_amount=platform_fee_amount,
                automatic_payment_methods={"enabled": True},
                metadata=metadata,
                stripe_account=merchant_account,
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            raise GatewayError("authorize", e.user_message or str(e)) from e
        return Authorization(
            payment_reference=intent.id,
            client_secret=intent.client_secret,
            captured=capture_mode == CaptureMode.AUTOMATIC,
        )

    async def capture(self, payment_reference: str, merchant_account: str) -> str | None:
        try:
            intent = await self._call(
                "capture",
                stripe.PaymentIntent.capture,
                intent=payment_reference,
                stripe_account=merchant_account,
            )
        except stripe.StripeError as e:
            # A retried capture after a lost response must not look like a failure.
            current = await self._retrieve_quietly(payment_reference, merchant_account)
            if current is not None and current.status == "succeeded":
                logger.info("capture %s: already captured", payment_reference)
                return getattr(current, "latest_charge", None)
            raise GatewayError("capture", e.user_message or str(e)) from e
        return getattr(intent, "latest_charge", None)

    async def cancel(self, payment_reference: str, merchant_account: str) -> None:
        try:
            await self._call(
                "cancel",
                stripe.PaymentIntent.cancel,
                intent=payment_reference,
                stripe_account=merchant_account,
            )
        except stripe.StripeError as e:
            current = await self._retrieve_quietly(payment_reference, merchant_account)
            if current is not None and current.status == "canceled":
                logger.info("cancel %s: already cancelled", payment_reference)
                return
            if current is not None and current.status == "succeeded":
                raise PaymentAlreadyCapturedError("cancel", payment_reference) from e
            raise GatewayError("cancel", e.user_message or str(e)) from e

    async def refund(
        self, payment_reference: str, merchant_account: str | None = None
    ) -> None:
        try:
            await self._call(
                "refund",
                stripe.Refund.create,
                payment_intent=payment_reference,
                reason="requested_by_customer",
                stripe_account=merchant_account,
            )
        except stripe.StripeError as e:
            if e.code in _ALREADY_REFUNDED_CODES:
                logger.info("refund %s: already refunded", payment_reference)
                return
            raise GatewayError("refund", e.user_message or str(e)) from e

    async def _retrieve_quietly(
        self, payment_reference: str, merchant_account: str | None
    ) -> Any | None:
        try:
            return await self._retrieve(payment_reference, merchant_account)
        except (stripe.StripeError, GatewayTimeoutError):
            logger.warning("could not re-read payment %s", payment_reference)
            return None

    async def create_connected_account(
        self, merchant_id: str, email: str, business_name: str | None
    ) -> str:
        params: dict[str, Any] = {"type": "express", "email": email}
        if business_name:
            params["business_profile"] = {"name": business_name}
        try:
            # One sub-account per merchant even if the first response was lost.
            account = await self._call(
                "create_account",
                stripe.Account.create,
                metadata={"merchant_id": merchant_id},
                idempotency_key=f"account-{merchant_id}",
                **params,
            )
        except stripe.StripeError as e:
            raise GatewayError("create_account", e.user_message or str(e)) from e
        return account.id

    async def create_onboarding_link(
        self, merchant_account: str, refresh_url: str, return_url: str
    ) -> str:
        try:
            link = await self._call(
                "onboarding_link",
                stripe.AccountLink.create,
                account=merchant_account,
                refresh_url=refresh_url,
                return_url=return_url,
                type="account_onboarding",
            )
        except stripe.StripeError as e:
            raise GatewayError("onboarding_link", e.user_message or str(e)) from e
        return link.url
