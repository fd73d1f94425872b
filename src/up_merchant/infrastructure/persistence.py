# src/up_merchant/infrastructure/persistence.py
"""MerchantRepository: raw SQL persistence implementation.

Merchant profile CRUD lives in the dashboard; this service reads merchants,
attaches the payment sub-account on onboarding and flips the onboarding flag
from gateway webhooks.
"""
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.up_merchant.domain.models import Merchant

_SELECT_COLUMNS = """
    id, email, shop_name, platform_fee_bps, payment_account_id,
    payment_account_status, onboarding_complete, is_active,
    preferred_language, created_at, updated_at
"""

_GET_MERCHANT_SQL = text(f"SELECT {_SELECT_COLUMNS} FROM merchants WHERE id = :id")

_SET_ONBOARDING_SQL = text(f"""
    UPDATE merchants
    SET onboarding_complete = :complete,
        payment_account_status = :account_status,
        updated_at = NOW()
    WHERE payment_account_id = :payment_account_id
    RETURNING {_SELECT_COLUMNS}
""")


_SET_PAYMENT_ACCOUNT_SQL = text(f"""
    UPDATE merchants
    SET payment_account_id = :payment_account_id,
        payment_account_status = 'pending',
        onboarding_complete = FALSE,
        updated_at = NOW()
    WHERE id = :id AND payment_account_id IS NULL
    RETURNING {_SELECT_COLUMNS}
""")


def _row_to_merchant(row: Any) -> Merchant:
    return Merchant(
        id=row.id,
        email=row.email,
        shop_name=row.shop_name,
        platform_fee_bps=row.platform_fee_bps,
        payment_account_id=row.payment_account_id,
        payment_account_status=row.payment_account_status,
        onboarding_complete=row.onboarding_complete,
        is_active=row.is_active,
        preferred_language=row.preferred_language,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class MerchantRepository:
    async def get_by_id(self, merchant_id: str, db: AsyncSession) -> Merchant | None:
        result = await db.execute(_GET_MERCHANT_SQL, {"id": merchant_id})
        row = result.fetchone()
        return _row_to_merchant(row) if row else None

    async def set_onboarding_by_account(
        self, payment_account_id: str, complete: bool, db: AsyncSession
    ) -> Merchant | None:
        result = await db.execute(
            _SET_ONBOARDING_SQL,
            {
                "payment_account_id": payment_account_id,
                "complete": complete,
                "account_status": "active" if complete else "pending",
            },
        )
        row = result.fetchone()
        return _row_to_merchant(row) if row else None

    async def set_payment_account(
        self, merchant_id: str, payment_account_id: str, db: AsyncSession
    ) -> Merchant | None:
        """Attach a new sub-account. None if the merchant already has one."""
        result = await db.execute(
            _SET_PAYMENT_ACCOUNT_SQL,
            {"id": merchant_id, "payment_account_id": payment_account_id},
        )
        row = result.fetchone()
        return _row_to_merchant(row) if row else None
