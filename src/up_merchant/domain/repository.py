"""MerchantRepository Protocol: dependency inversion for testability."""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.up_merchant.domain.models import Merchant


class MerchantRepositoryProtocol(Protocol):
    async def get_by_id(self, merchant_id: str, db: AsyncSession) -> Merchant | None: ...

    async def set_onboarding_by_account(
        self, payment_account_id: str, complete: bool, db: AsyncSession
    ) -> Merchant | None: ...

    async def set_payment_account(
        self, merchant_id: str, payment_account_id: str, db: AsyncSession
    ) -> Merchant | None: ...
