"""Bid / BidIntent repository Protocols: interface contract for persistence."""
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.up_bid.domain.models import Bid, BidIntent, Resolution
from src.up_common.enums import BidStatus


class BidRepositoryProtocol(Protocol):
    async def insert(self, bid: Bid, db: AsyncSession) -> None: ...

    async def get_by_id(self, bid_id: str, db: AsyncSession) -> Bid | None: ...

    async def get_by_payment_reference(
        self, payment_reference: str, db: AsyncSession
    ) -> Bid | None: ...

    async def claim(
        self, bid_id: str, token: str, now: datetime, stale_before: datetime, db: AsyncSession
    ) -> bool: ...

    async def release_claim(self, bid_id: str, token: str, db: AsyncSession) -> None: ...

    async def mark_stock_reserved(
        self, bid_id: str, token: str, reserved: bool, db: AsyncSession
    ) -> None: ...

    async def mark_captured(
        self,
        bid_id: str,
        captured_at: datetime,
        settlement_reference: str | None,
        db: AsyncSession,
    ) -> None: ...

    async def finalize(
        self, bid_id: str, token: str, resolution: Resolution, db: AsyncSession
    ) -> Bid | None: ...

    async def set_shipping_address(
        self, bid_id: str, address: dict[str, Any], db: AsyncSession
    ) -> bool: ...

    async def list_sweep_candidates(
        self,
        window_start: datetime,
        window_end: datetime,
        include_overdue: bool,
        stale_before: datetime,
        limit: int,
        db: AsyncSession,
    ) -> list[Bid]: ...

    async def list_by_merchant(
        self,
        merchant_id: str,
        status: BidStatus | None,
        cursor: str | None,
        limit: int,
        db: AsyncSession,
    ) -> list[Bid]: ...

    async def record_sweep_attempt(self, bid_id: str, error: str, db: AsyncSession) -> None: ...


class IntentRepositoryProtocol(Protocol):
    async def create(self, intent: BidIntent, db: AsyncSession) -> None: ...

    async def mark_finalized(
        self, intent_id: str, payment_reference: str, db: AsyncSession
    ) -> None: ...

    async def mark_authorized(
        self, intent_id: str, payment_reference: str, db: AsyncSession
    ) -> None: ...

    async def mark_failed(self, intent_id: str, reason: str, db: AsyncSession) -> None: ...

    async def mark_orphaned(
        self,
        intent_id: str,
        payment_reference: str | None,
        reason: str,
        stock_reserved: bool,
        db: AsyncSession,
    ) -> None: ...

    async def list_stale(
        self, older_than: datetime, limit: int, db: AsyncSession
    ) -> list[BidIntent]: ...

    async def mark_reconciled(
        self, intent_id: str, payment_reference: str | None, db: AsyncSession
    ) -> None: ...
