"""Django ORM implementation of the Product repository.

Everything generic comes from ``DjangoRepository``; this module only adds
the catalogue-specific look-ups and wires the product event handlers.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from modules.core.repositories.django_repository import DjangoRepository
from modules.products.handlers import (
    product_created_publisher,
    product_deleted_publisher,
    product_updated_publisher,
)
from modules.products.models import Product, ProductStatus
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(DjangoRepository[Product], IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    model = Product

    def boot(self) -> None:
        """Publish lifecycle events to the event bus unless handlers were given."""
        if self.get_event_created() is None:
            self.set_event_created(product_created_publisher)
        if self.get_event_updated() is None:
            self.set_event_updated(product_updated_publisher)
        if self.get_event_deleted() is None:
            self.set_event_deleted(product_deleted_publisher)

    def get_by_sku(self, sku: str) -> Optional[Product]:
        """Retrieve a product by SKU; ``None`` if no product matches."""
        return self._query().filter(sku=sku.strip()).first()

    def check_stock(self, id: Any, quantity: int) -> bool:
        """Check whether sufficient stock exists for the requested quantity.

        Raises ``Product.DoesNotExist`` for unknown IDs.
        """
        product = self.find(id, columns=["stock_quantity"])
        return product.stock_quantity >= quantity

    def active(self) -> "ProductDjangoRepository":
        self._queryset = self._queryset.filter(status=ProductStatus.ACTIVE)
        return self
