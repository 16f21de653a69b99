"""Lifecycle events dispatched by repositories after a mutation.

``RepositoryEvent`` is a closed union of three variants.  Each variant only
carries the state it needs:

- ``EntityCreated``: the new row.
- ``EntityUpdated``: the new row and a snapshot taken before the change
  (``None`` when ``update_or_create`` inserted the row).
- ``EntityDeleted``: a snapshot of the deleted row.  Bulk deletes carry no
  single row (``model`` is ``None``) and list every removed row instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Tuple, Union

from django.db import models

from shared.domain.events import DomainEvent

if TYPE_CHECKING:
    from modules.core.repositories.django_repository import DjangoRepository


@dataclass(frozen=True, kw_only=True)
class RepositoryEvent(DomainEvent):
    repository: "DjangoRepository"
    model: Optional[models.Model]

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.aggregate_id is None and self.model is not None:
            object.__setattr__(self, "aggregate_id", self.model.pk)

    @property
    def model_label(self) -> str:
        return self.repository.model._meta.label


@dataclass(frozen=True, kw_only=True)
class EntityCreated(RepositoryEvent):
    """Raised after a row is inserted."""


@dataclass(frozen=True, kw_only=True)
class EntityUpdated(RepositoryEvent):
    """Raised after a row is updated."""

    original: Optional[models.Model] = None

    @property
    def was_created(self) -> bool:
        return self.original is None

    def changed_fields(self) -> dict[str, Tuple[Any, Any]]:
        """Map of ``attname -> (old, new)`` for concrete fields that differ."""
        if self.original is None:
            return {}
        changes = {}
        for field in self.model._meta.concrete_fields:
            old = getattr(self.original, field.attname)
            new = getattr(self.model, field.attname)
            if old != new:
                changes[field.attname] = (old, new)
        return changes


@dataclass(frozen=True, kw_only=True)
class EntityDeleted(RepositoryEvent):
    """Raised after one or more rows are deleted."""

    removed: Tuple[models.Model, ...] = ()


LifecycleEvent = Union[EntityCreated, EntityUpdated, EntityDeleted]
