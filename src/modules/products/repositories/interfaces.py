"""Product repository interface.

Extends ``IRepository[Product]`` with catalogue look-ups and stock checks.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def get_by_sku(self, sku: str) -> Optional[Product]:
        """Retrieve a product by SKU."""

    @abstractmethod
    def check_stock(self, id: Any, quantity: int) -> bool:
        """Check whether sufficient stock exists for the requested quantity."""

    @abstractmethod
    def active(self) -> "IProductRepository":
        """Narrow the next call to active products."""
