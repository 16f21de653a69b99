"""Generic repository layer over the Django ORM."""

from modules.core.repositories.django_repository import DjangoRepository, QueryContext
from modules.core.repositories.events import (
    EntityCreated,
    EntityDeleted,
    EntityUpdated,
    LifecycleEvent,
    RepositoryEvent,
)
from modules.core.repositories.handlers import PublishToBusHandler
from modules.core.repositories.interfaces import IRepository

__all__ = [
    "DjangoRepository",
    "EntityCreated",
    "EntityDeleted",
    "EntityUpdated",
    "IRepository",
    "LifecycleEvent",
    "PublishToBusHandler",
    "QueryContext",
    "RepositoryEvent",
]
