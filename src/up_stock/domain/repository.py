# src/up_stock/domain/repository.py
"""StockLedger Protocol: per-offer inventory counter."""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession


class StockLedgerProtocol(Protocol):
    async def try_reserve(self, offer_id: str, db: AsyncSession) -> bool: ...

    async def release(self, offer_id: str, db: AsyncSession) -> None: ...
