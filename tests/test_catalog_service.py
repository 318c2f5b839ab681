"""
Catalog tests
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fyndak.core.errors import InvalidState, NotFound
from fyndak.models import Bid, ProductStatus
from fyndak.services import BidService, CatalogService


class TestCreateProduct:

    @pytest.mark.asyncio
    async def test_current_price_starts_at_starting_price(self, db, notifier, events, admin):
        product = await CatalogService.create_product(
            db, notifier, {"name": "Teak chair", "starting_price": "250", "category": "furniture"}, seller_id=admin.id
        )

        assert product.status == ProductStatus.ACTIVE
        assert product.starting_price == Decimal("250.00")
        assert product.current_price == Decimal("250.00")
        assert product.seller_id == admin.id
        assert [(e["table"], e["event"]) for e in events] == [("products", "INSERT")]

    @pytest.mark.asyncio
    async def test_pending_listing(self, db, notifier):
        product = await CatalogService.create_product(db, notifier, {"name": "Mirror", "status": "pending"})

        assert product.status == ProductStatus.PENDING

    @pytest.mark.asyncio
    async def test_end_time_is_stored_as_utc(self, db, notifier):
        stockholm = timezone(timedelta(hours=2))
        end_time = datetime(2024, 6, 1, 14, 0, tzinfo=stockholm)

        product = await CatalogService.create_product(db, notifier, {"name": "Rug", "end_time": end_time})

        assert product.end_time == datetime(2024, 6, 1, 12, 0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fields", [
        {"starting_price": "10"},
        {"name": "", "starting_price": "10"},
        {"name": "Vase", "starting_price": "-1"},
        {"name": "Vase", "starting_price": "ten"},
        {"name": "Vase", "starting_price": "10.005"},
        {"name": "Vase", "status": "ended"},
        {"name": "Vase", "status": "sold"},
    ])
    async def test_rejects_invalid_fields(self, db, notifier, fields):
        with pytest.raises(InvalidState):
            await CatalogService.create_product(db, notifier, fields)

        assert CatalogService.list_products(db) == []


class TestUpdateProduct:

    @pytest.mark.asyncio
    async def test_starting_price_rebases_without_bids(self, db, notifier, product):
        updated = await CatalogService.update_product(db, notifier, product.id, {"starting_price": "80"})

        assert updated.starting_price == Decimal("80.00")
        assert updated.current_price == Decimal("80.00")

    @pytest.mark.asyncio
    async def test_starting_price_cannot_exceed_current_once_bid(self, db, notifier, product, alice):
        await BidService.place_bid(db, notifier, product.id, alice.id, "120")

        with pytest.raises(InvalidState):
            await CatalogService.update_product(db, notifier, product.id, {"starting_price": "130"})

        updated = await CatalogService.update_product(db, notifier, product.id, {"starting_price": "90"})
        assert updated.starting_price == Decimal("90.00")
        assert updated.current_price == Decimal("120.00")

    @pytest.mark.asyncio
    async def test_pending_can_be_activated(self, db, notifier, make_product):
        product = make_product(status=ProductStatus.PENDING)

        updated = await CatalogService.update_product(db, notifier, product.id, {"status": "active"})

        assert updated.status == ProductStatus.ACTIVE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start, target", [
        (ProductStatus.ACTIVE, "ended"),
        (ProductStatus.ACTIVE, "pending"),
        (ProductStatus.ENDED, "active"),
    ])
    async def test_other_status_changes_rejected(self, db, notifier, make_product, start, target):
        product = make_product(status=start)

        with pytest.raises(InvalidState):
            await CatalogService.update_product(db, notifier, product.id, {"status": target})

        db.expire_all()
        assert CatalogService.get_product(db, product.id).status == start

    @pytest.mark.asyncio
    async def test_update_publishes_old_and_new(self, db, notifier, events, product):
        await CatalogService.update_product(db, notifier, product.id, {"name": "Brass lamp"})

        assert events[-1]["event"] == "UPDATE"
        assert events[-1]["old"]["name"] == "Vintage lamp"
        assert events[-1]["new"]["name"] == "Brass lamp"

    @pytest.mark.asyncio
    async def test_missing_product(self, db, notifier):
        with pytest.raises(NotFound):
            await CatalogService.update_product(db, notifier, "missing", {"name": "x"})


class TestDeleteProduct:

    @pytest.mark.asyncio
    async def test_delete_removes_bids(self, db, notifier, events, product, alice, add_bid):
        add_bid(product, alice, "120")
        product_id = product.id

        await CatalogService.delete_product(db, notifier, product_id)

        with pytest.raises(NotFound):
            CatalogService.get_product(db, product_id)
        assert db.query(Bid).filter(Bid.product_id == product_id).count() == 0
        assert events[-1]["event"] == "DELETE"
        assert events[-1]["old"]["id"] == product_id

    @pytest.mark.asyncio
    async def test_missing_product(self, db, notifier):
        with pytest.raises(NotFound):
            await CatalogService.delete_product(db, notifier, "missing")


class TestListProducts:

    def test_filters(self, db, make_product):
        make_product(name="Lamp")
        pending = make_product(name="Mirror", status=ProductStatus.PENDING)
        make_product(name="Sofa", status=ProductStatus.ENDED)

        assert [p.id for p in CatalogService.list_products(db, status="pending")] == [pending.id]
        assert len(CatalogService.list_products(db)) == 3
        assert len(CatalogService.list_products(db, limit=2)) == 2

    def test_zero_limit_returns_nothing(self, db, make_product):
        make_product(name="Lamp")
        make_product(name="Mirror")

        assert CatalogService.list_products(db, limit=0) == []

    def test_negative_limit(self, db):
        with pytest.raises(InvalidState):
            CatalogService.list_products(db, limit=-1)

    def test_unknown_status_filter(self, db):
        with pytest.raises(InvalidState):
            CatalogService.list_products(db, status="sold")

    def test_get_missing_product(self, db):
        with pytest.raises(NotFound):
            CatalogService.get_product(db, "missing")


class TestSubscribe:

    @pytest.mark.asyncio
    async def test_subscription_receives_updates_until_unsubscribed(self, db, notifier, product):
        received = []
        unsubscribe = CatalogService.subscribe(notifier, "products", received.append, event="UPDATE")

        await CatalogService.update_product(db, notifier, product.id, {"description": "Brass"})
        unsubscribe()
        await CatalogService.update_product(db, notifier, product.id, {"description": "Copper"})

        assert len(received) == 1
        assert received[0]["new"]["description"] == "Brass"
