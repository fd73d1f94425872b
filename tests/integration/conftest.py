"""API fixtures: the real app with every service and repository swapped for
the in-memory fakes, so the HTTP layer runs without Postgres or Redis."""

import pytest
from httpx import AsyncClient

from src.main import app
from src.up_bid.application.service import get_bid_service
from src.up_common.database import get_db_session
from src.up_gateway.auth.dependencies import get_merchant_repository
from src.up_gateway.auth.jwt_handler import create_access_token
from src.up_offer.application.service import OfferApplicationService, get_offer_service
from src.up_payment.application.onboarding import OnboardingService, get_onboarding_service
from src.up_payment.application.webhook import (
    WebhookService,
    get_webhook_secret,
    get_webhook_service,
)
from src.up_sweep.application.service import get_sweeper
from src.up_widget.application.service import WidgetService, get_widget_service
from tests.fakes import (
    FakeBidRepository,
    FakeMerchantRepository,
    FakeOfferRepository,
    FakeWidgetViewRepository,
)


@pytest.fixture
async def api(client: AsyncClient, store, db, bid_service, sweeper, gateway) -> AsyncClient:
    offer_service = OfferApplicationService(repo=FakeOfferRepository(store))
    merchants = FakeMerchantRepository(store)

    app.dependency_overrides[get_db_session] = lambda: db
    app.dependency_overrides[get_bid_service] = lambda: bid_service
    app.dependency_overrides[get_offer_service] = lambda: offer_service
    app.dependency_overrides[get_merchant_repository] = lambda: merchants
    app.dependency_overrides[get_sweeper] = lambda: sweeper
    app.dependency_overrides[get_webhook_secret] = lambda: ""
    app.dependency_overrides[get_webhook_service] = lambda: WebhookService(
        bid_service=bid_service,
        bid_repo=FakeBidRepository(store),
        merchant_repo=merchants,
    )
    app.dependency_overrides[get_onboarding_service] = lambda: OnboardingService(
        merchant_repo=merchants, gateway=gateway
    )
    app.dependency_overrides[get_widget_service] = lambda: WidgetService(
        offer_service=offer_service,
        merchant_repo=merchants,
        view_repo=FakeWidgetViewRepository(store),
    )
    return client


@pytest.fixture
def merchant_headers(merchant) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(merchant.id)}"}


@pytest.fixture
def cron_headers() -> dict[str, str]:
    return {"Authorization": "Bearer cron-test-secret"}
