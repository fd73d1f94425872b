"""NotificationService: best-effort delivery.

A failed or slow notification must never fail the bid operation that
triggered it: dispatch is bounded by NOTIFY_TIMEOUT_SECONDS and every error
is logged and swallowed here.
"""
import asyncio
import logging

from config.settings import settings
from src.up_notify.domain.dispatcher import NotificationDispatcherProtocol
from src.up_notify.domain.events import NotificationEvent, NotificationPayload
from src.up_notify.infrastructure.email_dispatcher import EmailNotificationDispatcher
from src.up_notify.infrastructure.log_dispatcher import LogNotificationDispatcher

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(
        self,
        dispatcher: NotificationDispatcherProtocol,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._dispatcher = dispatcher
        self._timeout = timeout_seconds

    async def notify(self, event: NotificationEvent, payload: NotificationPayload) -> bool:
        """Returns whether the message was handed off; never raises."""
        try:
            async with asyncio.timeout(self._timeout):
                await self._dispatcher.send(event, payload)
        except TimeoutError:
            logger.warning(
                "notification %s for bid %s timed out after %.1fs",
                event.value,
                payload.bid_id,
                self._timeout,
            )
            return False
        except Exception:
            logger.exception("notification %s for bid %s failed", event.value, payload.bid_id)
            return False
        return True


_service: NotificationService | None = None


def get_notification_service() -> NotificationService:
    global _service  # noqa: PLW0603
    if _service is None:
        dispatcher: NotificationDispatcherProtocol
        if settings.RESEND_API_KEY:
            dispatcher = EmailNotificationDispatcher(settings.RESEND_API_KEY, settings.EMAIL_FROM)
        else:
            dispatcher = LogNotificationDispatcher()
        _service = NotificationService(dispatcher, settings.NOTIFY_TIMEOUT_SECONDS)
    return _service
