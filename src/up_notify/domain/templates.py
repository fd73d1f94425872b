"""Plain-text email content per event and locale."""
from dataclasses import dataclass

from src.up_common.cents import cents_to_display
from src.up_common.enums import Locale
from src.up_notify.domain.events import NotificationEvent, NotificationPayload

_SUBJECTS: dict[NotificationEvent, dict[Locale, str]] = {
    NotificationEvent.BID_SUBMITTED: {
        Locale.EN: "Your bid has been submitted",
        Locale.DE: "Ihr Gebot wurde eingereicht",
    },
    NotificationEvent.BID_ACCEPTED: {
        Locale.EN: "Great news! Your bid was accepted",
        Locale.DE: "Gute Neuigkeiten! Ihr Gebot wurde angenommen",
    },
    NotificationEvent.BID_DECLINED: {
        Locale.EN: "Regarding your bid",
        Locale.DE: "Bezüglich Ihres Gebots",
    },
}

_BODIES: dict[NotificationEvent, dict[Locale, str]] = {
    NotificationEvent.BID_SUBMITTED: {
        Locale.EN: (
            "Hi {name},\n\nwe received your bid of {amount} for {product}. "
            "The shop will review it shortly; your card is only charged if it is accepted."
        ),
        Locale.DE: (
            "Hallo {name},\n\nwir haben Ihr Gebot von {amount} für {product} erhalten. "
            "Der Shop prüft es in Kürze; Ihre Karte wird nur bei Annahme belastet."
        ),
    },
    NotificationEvent.BID_ACCEPTED: {
        Locale.EN: "Hi {name},\n\nyour bid of {amount} for {product} was accepted. "
        "Your order is on its way.",
        Locale.DE: "Hallo {name},\n\nIhr Gebot von {amount} für {product} wurde angenommen. "
        "Ihre Bestellung ist unterwegs.",
    },
    NotificationEvent.BID_DECLINED: {
        Locale.EN: "Hi {name},\n\nunfortunately your bid of {amount} for {product} "
        "was not accepted. The authorization on your card has been released.",
        Locale.DE: "Hallo {name},\n\nleider wurde Ihr Gebot von {amount} für {product} "
        "nicht angenommen. Die Reservierung auf Ihrer Karte wurde aufgehoben.",
    },
}


@dataclass(frozen=True)
class RenderedEmail:
    to: str
    subject: str
    text: str


def _format_address(address: dict | None) -> str:
    if not address:
        return "(not provided yet)"
    return ", ".join(str(v) for v in address.values() if v)


def render(event: NotificationEvent, payload: NotificationPayload) -> RenderedEmail | None:
    """Build the email for an event; None when there is nobody to send it to."""
    amount = cents_to_display(payload.amount)
    if event is NotificationEvent.MERCHANT_ORDER_RECEIVED:
        if not payload.merchant_email:
            return None
        return RenderedEmail(
            to=payload.merchant_email,
            subject=f"New Order: {payload.product_name} - {amount}",
            text=(
                f"New accepted bid {payload.bid_id} for {payload.shop_name or 'your shop'}\n\n"
                f"Product: {payload.product_name} ({payload.product_sku or '-'})\n"
                f"Amount: {amount}\n"
                f"Customer: {payload.customer_name} <{payload.customer_email}>\n"
                f"Ship to: {_format_address(payload.shipping_address)}\n"
            ),
        )
    return RenderedEmail(
        to=payload.customer_email,
        subject=_SUBJECTS[event][payload.locale],
        text=_BODIES[event][payload.locale].format(
            name=payload.customer_name, amount=amount, product=payload.product_name
        ),
    )
