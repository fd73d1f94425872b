"""Merchant payment onboarding.

The first call opens the merchant's sub-account and stores it as pending;
every call returns a fresh hosted onboarding link (links are single use).
The account.updated webhook marks onboarding complete.
"""
import logging

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.up_merchant.domain.models import Merchant
from src.up_merchant.domain.repository import MerchantRepositoryProtocol
from src.up_merchant.infrastructure.persistence import MerchantRepository
from src.up_payment.application.service import get_payment_gateway
from src.up_payment.domain.gateway import PaymentGatewayProtocol

logger = logging.getLogger(__name__)


class OnboardingResponse(BaseModel):
    url: str
    payment_account_id: str
    created: bool  # a new sub-account was opened by this call


class OnboardingService:
    def __init__(
        self,
        merchant_repo: MerchantRepositoryProtocol | None = None,
        gateway: PaymentGatewayProtocol | None = None,
        refresh_url: str | None = None,
        return_url: str | None = None,
    ) -> None:
        self._merchants: MerchantRepositoryProtocol = merchant_repo or MerchantRepository()
        self._gateway: PaymentGatewayProtocol = gateway or get_payment_gateway()
        self._refresh_url = refresh_url or settings.CONNECT_REFRESH_URL
        self._return_url = return_url or settings.CONNECT_RETURN_URL

    async def start(self, db: AsyncSession, merchant: Merchant) -> OnboardingResponse:
        account = merchant.payment_account_id
        created = False
        if account is None:
            account, created = await self._open_account(db, merchant)
        url = await self._gateway.create_onboarding_link(
            account, self._refresh_url, self._return_url
        )
        return OnboardingResponse(url=url, payment_account_id=account, created=created)

    async def _open_account(self, db: AsyncSession, merchant: Merchant) -> tuple[str, bool]:
        account = await self._gateway.create_connected_account(
            merchant.id, merchant.email, merchant.shop_name
        )
        try:
            updated = await self._merchants.set_payment_account(merchant.id, account, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if updated is None:
            # A concurrent request attached one first; keep that.
            current = await self._merchants.get_by_id(merchant.id, db)
            if current is not None and current.payment_account_id:
                return current.payment_account_id, False
        logger.info("merchant %s opened payment account %s", merchant.id, account)
        return account, True


_service: OnboardingService | None = None


def get_onboarding_service() -> OnboardingService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = OnboardingService()
    return _service
