"""WidgetViewRepository Protocol."""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.up_widget.domain.models import WidgetView


class WidgetViewRepositoryProtocol(Protocol):
    async def append(self, view: WidgetView, db: AsyncSession) -> None: ...
