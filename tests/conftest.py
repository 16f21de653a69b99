from decimal import Decimal

import pytest

from modules.products.models import Category, Product, Tag


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


class RecordingHandler:
    """Event handler that keeps every event it receives."""

    def __init__(self):
        self.events = []

    def handle(self, event) -> None:
        self.events.append(event)


@pytest.fixture()
def recorder():
    return RecordingHandler()


@pytest.fixture()
def make_product():
    """Factory creating saved products with sane defaults."""
    counter = {"n": 0}

    def _make(**overrides) -> Product:
        counter["n"] += 1
        defaults = {
            "sku": f"SKU-{counter['n']:03d}",
            "name": f"Product {counter['n']:03d}",
            "price": Decimal("10.00"),
            "stock_quantity": 10,
        }
        defaults.update(overrides)
        return Product.objects.create(**defaults)

    return _make


@pytest.fixture()
def category():
    return Category.objects.create(name="Hardware")


@pytest.fixture()
def tags():
    return [Tag.objects.create(name=name) for name in ("new", "sale", "clearance")]
