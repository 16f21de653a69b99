"""Event handlers for Product lifecycle events.

Two kinds of handlers live here:

- publishers, registered on ``ProductDjangoRepository``, which forward the
  repository's events to the process-wide event bus;
- subscribers, registered on the bus in ``ProductsConfig.ready``, which
  react to events about products and ignore every other model.
"""

from __future__ import annotations

import structlog

from modules.core.repositories.events import (
    EntityCreated,
    EntityDeleted,
    EntityUpdated,
    RepositoryEvent,
)
from modules.core.repositories.handlers import PublishToBusHandler
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)

PRODUCT_LABEL = "products.Product"


def _is_product_event(event: RepositoryEvent) -> bool:
    return event.model_label == PRODUCT_LABEL


class ProductCreatedHandler(IEventHandler[EntityCreated]):
    def handle(self, event: EntityCreated) -> None:
        if not _is_product_event(event):
            return
        logger.info(
            f"Product {event.model.sku} created",
            product_id=str(event.aggregate_id),
        )


class ProductUpdatedHandler(IEventHandler[EntityUpdated]):
    def handle(self, event: EntityUpdated) -> None:
        if not _is_product_event(event):
            return
        changes = event.changed_fields()
        if "price" in changes:
            old, new = changes["price"]
            logger.info(
                f"Product {event.model.sku} repriced",
                product_id=str(event.aggregate_id),
                old_price=str(old),
                new_price=str(new),
            )
        logger.info(
            f"Product {event.model.sku} updated",
            product_id=str(event.aggregate_id),
            fields=sorted(changes),
            created=event.was_created,
        )


class ProductDeletedHandler(IEventHandler[EntityDeleted]):
    def handle(self, event: EntityDeleted) -> None:
        if not _is_product_event(event):
            return
        logger.info(
            f"{len(event.removed)} product(s) deleted",
            product_ids=[str(product.pk) for product in event.removed],
        )


product_created_handler = ProductCreatedHandler()
product_updated_handler = ProductUpdatedHandler()
product_deleted_handler = ProductDeletedHandler()

product_created_publisher = PublishToBusHandler()
product_updated_publisher = PublishToBusHandler()
product_deleted_publisher = PublishToBusHandler()
