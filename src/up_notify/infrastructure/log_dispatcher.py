"""LogNotificationDispatcher: used when no email API key is configured."""
import logging

from src.up_notify.domain.events import NotificationEvent, NotificationPayload
from src.up_notify.domain.templates import render

logger = logging.getLogger(__name__)


class LogNotificationDispatcher:
    def __init__(self) -> None:
        self.sent: list[tuple[NotificationEvent, NotificationPayload]] = []

    async def send(self, event: NotificationEvent, payload: NotificationPayload) -> None:
        self.sent.append((event, payload))
        email = render(event, payload)
        logger.info(
            "[notify] %s bid=%s to=%s subject=%r",
            event.value,
            payload.bid_id,
            email.to if email else None,
            email.subject if email else None,
        )
