import os

# Settings are read from the environment on first use
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REALTIME_ENABLED", "false")
os.environ.setdefault("LOG_JSON", "false")

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from fyndak.core.config import Settings
from fyndak.core.context import build_context
from fyndak.infrastructure.database import init_db
from fyndak.models import Bid, BidStatus, Product, ProductStatus, Profile


@pytest.fixture
def settings():
    return Settings(DATABASE_URL="sqlite://", REALTIME_ENABLED=False, LOG_JSON=False)


@pytest.fixture
def context(settings):
    """Fresh in-memory store per test"""
    ctx = build_context(settings)
    init_db(ctx.engine)
    yield ctx
    ctx.engine.dispose()


@pytest.fixture
def db(context):
    session = context.session()
    yield session
    session.close()


@pytest.fixture
def notifier(context):
    return context.notifier


@pytest.fixture
def events(notifier):
    """Every change event published during the test"""
    received = []
    notifier.subscribe("products", received.append)
    notifier.subscribe("bids", received.append)
    return received


def _profile(db, profile_id, name, is_admin=False):
    profile = Profile(
        id=profile_id,
        email=f"{profile_id}@example.com",
        full_name=name,
        is_admin=is_admin,
    )
    db.add(profile)
    db.commit()
    return profile


@pytest.fixture
def admin(db):
    return _profile(db, "admin-1", "Admin", is_admin=True)


@pytest.fixture
def alice(db):
    return _profile(db, "alice", "Alice Andersson")


@pytest.fixture
def bob(db):
    return _profile(db, "bob", "Bob Berg")


@pytest.fixture
def make_product(db):
    def factory(price="100.00", status=ProductStatus.ACTIVE, end_time=None, name="Vintage lamp"):
        product = Product(
            name=name,
            starting_price=Decimal(price),
            current_price=Decimal(price),
            status=status,
            end_time=end_time,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return factory


@pytest.fixture
def product(make_product):
    return make_product()


@pytest.fixture
def add_bid(db):
    """Insert a bid row directly, with an explicit submission time"""
    base = datetime(2024, 5, 1, 12, 0, 0)

    def factory(product, bidder, amount, seconds=0, status=BidStatus.ACTIVE):
        bid = Bid(
            product_id=product.id,
            bidder_id=bidder.id,
            amount=Decimal(amount),
            status=status,
            created_at=base + timedelta(seconds=seconds),
        )
        db.add(bid)
        db.commit()
        db.refresh(bid)
        return bid
    return factory
