"""NotificationDispatcher Protocol: one transport for outgoing messages."""
from typing import Protocol

from src.up_notify.domain.events import NotificationEvent, NotificationPayload


class NotificationDispatcherProtocol(Protocol):
    async def send(self, event: NotificationEvent, payload: NotificationPayload) -> None: ...
