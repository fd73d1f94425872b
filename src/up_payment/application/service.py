# src/up_payment/application/service.py
from config.settings import settings
from src.up_payment.domain.gateway import PaymentGatewayProtocol
from src.up_payment.infrastructure.memory_gateway import InMemoryPaymentGateway
from src.up_payment.infrastructure.stripe_gateway import StripePaymentGateway

_gateway: PaymentGatewayProtocol | None = None


def get_payment_gateway() -> PaymentGatewayProtocol:
    """Process-wide gateway, chosen by PAYMENT_GATEWAY (stripe | memory)."""
    global _gateway  # noqa: PLW0603
    if _gateway is None:
        if settings.PAYMENT_GATEWAY == "memory":
            _gateway = InMemoryPaymentGateway()
        else:
            _gateway = StripePaymentGateway(
                api_key=settings.STRIPE_SECRET_KEY,
                timeout_seconds=settings.GATEWAY_TIMEOUT_SECONDS,
            )
    return _gateway
