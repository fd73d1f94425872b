"""Shared test fixtures."""

import os

# Settings() requires JWT_SECRET; set before anything imports config.settings.
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")
os.environ.setdefault("PAYMENT_GATEWAY", "memory")
os.environ.setdefault("CRON_SECRET", "cron-test-secret")
os.environ.setdefault("RESEND_API_KEY", "")

import pytest
from httpx import ASGITransport, AsyncClient

from src.main import app
from src.up_bid.application.service import BidService
from src.up_merchant.domain.models import Merchant
from src.up_notify.application.service import NotificationService
from src.up_notify.infrastructure.log_dispatcher import LogNotificationDispatcher
from src.up_offer.domain.models import Offer
from src.up_payment.infrastructure.memory_gateway import InMemoryPaymentGateway
from src.up_sweep.application.service import ResolutionSweeper
from tests.fakes import (
    FakeBidRepository,
    FakeIntentRepository,
    FakeMerchantRepository,
    FakeOfferRepository,
    FakeSession,
    FakeStockLedger,
    InMemorySweepLock,
    Store,
)


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def store() -> Store:
    return Store()


@pytest.fixture
def db() -> FakeSession:
    return FakeSession()


@pytest.fixture
def merchant(store: Store) -> Merchant:
    m = Merchant(
        id="mer_1",
        email="owner@shop.example",
        shop_name="Test Shop",
        platform_fee_bps=500,
        payment_account_id="acct_1",
        payment_account_status="active",
        onboarding_complete=True,
    )
    store.merchants[m.id] = m
    return m


@pytest.fixture
def offer(store: Store, merchant: Merchant) -> Offer:
    """minSellingPrice 30.00, fixedPrice 37.50, range [27.00, 37.50], stock 5."""
    o = Offer(
        id="off_1",
        merchant_id=merchant.id,
        product_name="Premium Socks",
        product_sku="SOCK-1",
        min_selling_price=3000,
        fixed_price=3750,
        bid_range_min=2700,
        bid_range_max=3750,
        stock_quantity=5,
        priority=1,
    )
    store.offers[o.id] = o
    return o


@pytest.fixture
def gateway() -> InMemoryPaymentGateway:
    return InMemoryPaymentGateway()


@pytest.fixture
def dispatcher() -> LogNotificationDispatcher:
    return LogNotificationDispatcher()


@pytest.fixture
def stock(store: Store) -> FakeStockLedger:
    return FakeStockLedger(store)


@pytest.fixture
def bid_service(
    store: Store,
    gateway: InMemoryPaymentGateway,
    dispatcher: LogNotificationDispatcher,
    stock: FakeStockLedger,
) -> BidService:
    return BidService(
        bid_repo=FakeBidRepository(store),
        intent_repo=FakeIntentRepository(store),
        offer_repo=FakeOfferRepository(store),
        merchant_repo=FakeMerchantRepository(store),
        stock=stock,
        gateway=gateway,
        notifier=NotificationService(dispatcher, timeout_seconds=1.0),
        claim_lease_seconds=120,
        currency="eur",
        auto_resolve_after_seconds=600,
    )


@pytest.fixture
def sweep_lock() -> InMemorySweepLock:
    return InMemorySweepLock()


@pytest.fixture
def sweeper(
    store: Store,
    bid_service: BidService,
    gateway: InMemoryPaymentGateway,
    stock: FakeStockLedger,
    sweep_lock: InMemorySweepLock,
) -> ResolutionSweeper:
    return ResolutionSweeper(
        bid_service=bid_service,
        bid_repo=FakeBidRepository(store),
        intent_repo=FakeIntentRepository(store),
        offer_repo=FakeOfferRepository(store),
        merchant_repo=FakeMerchantRepository(store),
        stock=stock,
        gateway=gateway,
        lock=sweep_lock,
        window_min_seconds=600,
        window_max_seconds=1200,
        batch_size=100,
        include_overdue=True,
    )
