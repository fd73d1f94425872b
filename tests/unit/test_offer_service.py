"""Unit tests for OfferApplicationService: invariants and the priority cascade."""

import pytest

from src.up_common.enums import WidgetViewType
from src.up_common.errors import InvalidOfferConfigError, OfferNotFoundError
from src.up_offer.application.schemas import OfferCreateRequest, OfferUpdateRequest
from src.up_offer.application.service import OfferApplicationService
from src.up_offer.domain.models import Offer
from tests.fakes import FakeOfferRepository, FakeSession, Store


def _create_req(name: str = "Socks", priority: int | None = None, **kwargs) -> OfferCreateRequest:
    data = dict(
        product_name=name,
        min_selling_price_cents=3000,
        fixed_price_cents=3750,
        bid_range_min_cents=2700,
        bid_range_max_cents=3750,
        stock_quantity=5,
        priority=priority,
    )
    data.update(kwargs)
    return OfferCreateRequest(**data)


def _priorities(store: Store) -> dict[str, int]:
    return {o.product_name: o.priority for o in store.offers.values()}


@pytest.fixture
def svc(store: Store) -> OfferApplicationService:
    return OfferApplicationService(repo=FakeOfferRepository(store))


class TestCreateOffer:
    async def test_first_offer_gets_priority_one(self, svc, store, db) -> None:
        result = await svc.create_offer(db, "mer_1", _create_req("Axe"))
        assert result.priority == 1
        assert result.min_selling_price_cents == 3000
        assert db.commits == 1

    async def test_default_appends_last(self, svc, store, db) -> None:
        await svc.create_offer(db, "mer_1", _create_req("Axe"))
        await svc.create_offer(db, "mer_1", _create_req("Bag"))
        await svc.create_offer(db, "mer_1", _create_req("Cap"))
        assert _priorities(store) == {"Axe": 1, "Bag": 2, "Cap": 3}

    async def test_insert_at_front_shifts_siblings(self, svc, store, db) -> None:
        await svc.create_offer(db, "mer_1", _create_req("Axe"))
        await svc.create_offer(db, "mer_1", _create_req("Bag"))
        await svc.create_offer(db, "mer_1", _create_req("Cap", priority=1))
        assert _priorities(store) == {"Cap": 1, "Axe": 2, "Bag": 3}

    async def test_priority_beyond_end_is_clamped(self, svc, store, db) -> None:
        await svc.create_offer(db, "mer_1", _create_req("Axe"))
        result = await svc.create_offer(db, "mer_1", _create_req("Bag", priority=9))
        assert result.priority == 2

    async def test_inactive_offers_count_toward_clamp(self, svc, store, db) -> None:
        await svc.create_offer(db, "mer_1", _create_req("Axe", is_active=False))
        await svc.create_offer(db, "mer_1", _create_req("Bag", is_active=False))
        result = await svc.create_offer(db, "mer_1", _create_req("Cap", priority=9))
        assert result.priority == 3

    async def test_other_merchants_untouched(self, svc, store, db) -> None:
        await svc.create_offer(db, "mer_2", _create_req("Other"))
        await svc.create_offer(db, "mer_1", _create_req("Axe", priority=1))
        assert _priorities(store) == {"Other": 1, "Axe": 1}

    def test_schema_rejects_inverted_range(self) -> None:
        with pytest.raises(ValueError):
            _create_req(bid_range_min_cents=4000, bid_range_max_cents=3000)


class TestUpdateOffer:
    async def _seed(self, svc, db) -> list[str]:
        ids = []
        for name in ("Axe", "Bag", "Cap", "Dye"):
            ids.append((await svc.create_offer(db, "mer_1", _create_req(name))).id)
        return ids

    async def test_move_up(self, svc, store, db) -> None:
        ids = await self._seed(svc, db)
        await svc.update_offer(db, "mer_1", ids[3], OfferUpdateRequest(priority=2))
        assert _priorities(store) == {"Axe": 1, "Dye": 2, "Bag": 3, "Cap": 4}

    async def test_move_down(self, svc, store, db) -> None:
        ids = await self._seed(svc, db)
        await svc.update_offer(db, "mer_1", ids[0], OfferUpdateRequest(priority=3))
        assert _priorities(store) == {"Bag": 1, "Cap": 2, "Axe": 3, "Dye": 4}

    async def test_priorities_stay_dense_and_unique(self, svc, store, db) -> None:
        ids = await self._seed(svc, db)
        await svc.update_offer(db, "mer_1", ids[2], OfferUpdateRequest(priority=1))
        await svc.update_offer(db, "mer_1", ids[0], OfferUpdateRequest(priority=4))
        assert sorted(_priorities(store).values()) == [1, 2, 3, 4]

    async def test_edit_that_inverts_range_rejected(self, svc, store, db) -> None:
        ids = await self._seed(svc, db)
        with pytest.raises(InvalidOfferConfigError):
            await svc.update_offer(
                db, "mer_1", ids[0], OfferUpdateRequest(bid_range_max_cents=2000)
            )
        assert store.offers[ids[0]].bid_range_max == 3750

    async def test_partial_update_keeps_other_fields(self, svc, store, db) -> None:
        ids = await self._seed(svc, db)
        result = await svc.update_offer(
            db, "mer_1", ids[1], OfferUpdateRequest(headline="Only today")
        )
        assert result.headline == "Only today"
        assert result.fixed_price_cents == 3750
        assert result.priority == 2

    async def test_other_merchants_offer_not_found(self, svc, store, db) -> None:
        ids = await self._seed(svc, db)
        with pytest.raises(OfferNotFoundError):
            await svc.update_offer(db, "mer_2", ids[0], OfferUpdateRequest(headline="x"))

    async def test_set_active(self, svc, store, db) -> None:
        ids = await self._seed(svc, db)
        result = await svc.set_active(db, "mer_1", ids[0], False)
        assert result.is_active is False
        assert store.offers[ids[0]].is_active is False


class TestDeleteOffer:
    async def test_closes_gap(self, svc, store, db) -> None:
        ids = []
        for name in ("Axe", "Bag", "Cap"):
            ids.append((await svc.create_offer(db, "mer_1", _create_req(name))).id)
        await svc.delete_offer(db, "mer_1", ids[0])
        assert _priorities(store) == {"Bag": 1, "Cap": 2}

    async def test_unknown_offer(self, svc, db) -> None:
        with pytest.raises(OfferNotFoundError):
            await svc.delete_offer(db, "mer_1", "off_missing")


class TestGetWidgetOffer:
    def _put(self, store: Store, oid: str, priority: int, stock: int, active: bool = True) -> None:
        store.offers[oid] = Offer(
            id=oid,
            merchant_id="mer_1",
            product_name=oid,
            min_selling_price=3000,
            fixed_price=3750,
            bid_range_min=2700,
            bid_range_max=3750,
            stock_quantity=stock,
            priority=priority,
            is_active=active,
        )

    async def test_lowest_priority_with_stock(self, svc, store, db) -> None:
        self._put(store, "off_a", 1, stock=0)
        self._put(store, "off_b", 2, stock=3)
        self._put(store, "off_c", 3, stock=3)
        offer, view_type = await svc.get_widget_offer(db, "mer_1")
        assert offer.id == "off_b"
        assert view_type is WidgetViewType.SHOWN

    async def test_floor_price_not_exposed(self, svc, store, db) -> None:
        self._put(store, "off_a", 1, stock=1)
        offer, _ = await svc.get_widget_offer(db, "mer_1")
        assert "min_selling_price" not in offer.model_dump()
        assert offer.fixed_price_display == "€37.50"

    async def test_out_of_stock(self, svc, store, db) -> None:
        self._put(store, "off_a", 1, stock=0)
        offer, view_type = await svc.get_widget_offer(db, "mer_1")
        assert offer is None
        assert view_type is WidgetViewType.OUT_OF_STOCK

    async def test_no_offers(self, svc, store, db) -> None:
        self._put(store, "off_a", 1, stock=3, active=False)
        offer, view_type = await svc.get_widget_offer(db, "mer_1")
        assert offer is None
        assert view_type is WidgetViewType.NO_OFFERS
