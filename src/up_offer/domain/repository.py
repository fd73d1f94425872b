"""OfferRepository Protocol: interface contract for persistence layer."""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.up_offer.domain.models import Offer
from src.up_offer.domain.rules import PriorityShift


class OfferRepositoryProtocol(Protocol):
    async def get_by_id(self, offer_id: str, db: AsyncSession) -> Offer | None: ...

    async def get_widget_offer(self, merchant_id: str, db: AsyncSession) -> Offer | None: ...

    async def count_active(self, merchant_id: str, db: AsyncSession) -> int: ...

    async def lock_merchant_offers(self, merchant_id: str, db: AsyncSession) -> int: ...

    async def insert(self, offer: Offer, db: AsyncSession) -> None: ...

    async def update(self, offer: Offer, db: AsyncSession) -> None: ...

    async def shift_priorities(
        self, merchant_id: str, shift: PriorityShift, exclude_id: str | None, db: AsyncSession
    ) -> None: ...

    async def delete(self, offer_id: str, db: AsyncSession) -> None: ...
