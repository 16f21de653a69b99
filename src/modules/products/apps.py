from django.apps import AppConfig


class ProductsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.products"
    label = "products"

    def ready(self) -> None:
        from modules.core.repositories.events import (
            EntityCreated,
            EntityDeleted,
            EntityUpdated,
        )
        from modules.products.handlers import (
            product_created_handler,
            product_deleted_handler,
            product_updated_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(EntityCreated, product_created_handler)
        event_bus.subscribe(EntityUpdated, product_updated_handler)
        event_bus.subscribe(EntityDeleted, product_deleted_handler)
