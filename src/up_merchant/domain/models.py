"""Merchant domain model: pure dataclass, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime


@dataclass
class Merchant:
    id: str
    email: str
    shop_name: str | None = None
    platform_fee_bps: int = 0  # 500 = 5%
    payment_account_id: str | None = None  # gateway sub-account
    payment_account_status: str = "none"  # none / pending / active
    onboarding_complete: bool = False
    is_active: bool = True
    preferred_language: str = "en"
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def can_receive_payments(self) -> bool:
        return self.onboarding_complete and bool(self.payment_account_id)
