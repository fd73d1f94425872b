"""EmailNotificationDispatcher: transactional email through Resend."""
import asyncio
import logging

import resend

from src.up_notify.domain.events import NotificationEvent, NotificationPayload
from src.up_notify.domain.templates import render

logger = logging.getLogger(__name__)


class EmailNotificationDispatcher:
    def __init__(self, api_key: str, sender: str) -> None:
        resend.api_key = api_key
        self._sender = sender

    async def send(self, event: NotificationEvent, payload: NotificationPayload) -> None:
        email = render(event, payload)
        if email is None:
            logger.info("no recipient for %s on bid %s, skipped", event.value, payload.bid_id)
            return
        params: resend.Emails.SendParams = {
            "from": self._sender,
            "to": [email.to],
            "subject": email.subject,
            "text": email.text,
        }
        # The SDK is synchronous; keep it off the event loop.
        response = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(
            "%s email sent for bid %s (id=%s)",
            event.value,
            payload.bid_id,
            response.get("id") if isinstance(response, dict) else response,
        )
