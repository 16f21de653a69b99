"""Django ORM implementation of the generic repository.

``DjangoRepository`` is bound to one model class and forwards every call to
that model's ``QuerySet``.  Query-shaping calls (``with_related``,
``order_by``, ``scope_query``, ...) accumulate on a pending ``QuerySet``;
terminal calls take that pending state as a ``QueryContext``, reset the
repository to a fresh unscoped ``QuerySet`` and only then run against the
database.  The reset therefore happens even when the call fails, and the
scope filter never leaks into the next call.

Mutations wrap the single persistence step in ``transaction.atomic()`` and
dispatch their lifecycle event once that block has exited.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
    Union,
)

import structlog
from django.conf import settings
from django.core.exceptions import FieldError, ValidationError
from django.core.paginator import Page
from django.db import models, transaction
from django.db.models import Count, Q
from django.db.models.constants import LOOKUP_SEP

from modules.core import pagination
from modules.core.exceptions import RepositoryConfigurationError, UnsupportedOperator
from modules.core.repositories import criteria
from modules.core.repositories.events import (
    EntityCreated,
    EntityDeleted,
    EntityUpdated,
    RepositoryEvent,
)
from modules.core.repositories.interfaces import Columns, IRepository, ScopeCallback, T
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)

COUNT_LOOKUPS = ("exact", "gt", "gte", "lt", "lte")


@dataclass(frozen=True)
class QueryContext:
    """Pending state consumed by exactly one terminal call."""

    queryset: models.QuerySet
    scope: Optional[ScopeCallback] = None

    def resolve(self) -> models.QuerySet:
        if self.scope is None:
            return self.queryset
        return self.scope(self.queryset)


class DjangoRepository(IRepository[T]):
    """Concrete repository backed by Django ORM.

    Subclasses set ``model`` and may override ``boot()``::

        class ProductRepository(DjangoRepository[Product]):
            model = Product
    """

    model: Type[T] = None
    validate_on_save: Optional[bool] = None

    def __init__(
        self,
        event_created: Optional[IEventHandler] = None,
        event_updated: Optional[IEventHandler] = None,
        event_deleted: Optional[IEventHandler] = None,
    ) -> None:
        self._queryset: models.QuerySet
        self._scope: Optional[ScopeCallback] = None
        self._handlers: Dict[Type[RepositoryEvent], IEventHandler] = {}
        self.last_event: Optional[RepositoryEvent] = None

        self.make_model()
        self.set_event_created(event_created)
        self.set_event_updated(event_updated)
        self.set_event_deleted(event_deleted)
        self.boot()

    def boot(self) -> None:
        """Hook for subclasses, called once at the end of construction."""

    # ------------------------------------------------------------------
    # Model handle
    # ------------------------------------------------------------------

    def make_model(self) -> models.QuerySet:
        """Validate ``model`` and install a fresh, unscoped ``QuerySet``."""
        model = self.model
        if not (isinstance(model, type) and issubclass(model, models.Model)):
            raise RepositoryConfigurationError(
                f"{type(self).__name__}.model must be a Django model class, "
                f"got {model!r}"
            )
        if model._meta.abstract:
            raise RepositoryConfigurationError(
                f"{model.__name__} is abstract and cannot be queried"
            )
        self._queryset = model._default_manager.all()
        return self._queryset

    def reset_model(self) -> models.QuerySet:
        return self.make_model()

    def get_queryset(self) -> models.QuerySet:
        return self._queryset

    def set_queryset(self, queryset: models.QuerySet) -> "DjangoRepository[T]":
        self._queryset = queryset
        return self

    def _take_context(self) -> QueryContext:
        context = QueryContext(self._queryset, self._scope)
        self.reset_model()
        self.reset_scope()
        return context

    def _query(self) -> models.QuerySet:
        return self._take_context().resolve()

    def _get_by_pk(self, queryset: models.QuerySet, id: Any) -> T:
        """Fetch one row by primary key; unparsable keys count as missing."""
        try:
            return queryset.get(pk=id)
        except (ValueError, ValidationError) as exc:
            raise self.model.DoesNotExist(
                f"{self.model.__name__} matching primary key {id!r} does not exist."
            ) from exc

    @staticmethod
    def _project(queryset: models.QuerySet, columns: Columns) -> models.QuerySet:
        if not columns or "*" in columns:
            return queryset
        return queryset.only(*columns)

    # ------------------------------------------------------------------
    # Scope
    # ------------------------------------------------------------------

    def get_scope(self) -> Optional[ScopeCallback]:
        return self._scope

    def set_scope(self, scope: Optional[ScopeCallback]) -> "DjangoRepository[T]":
        self._scope = scope
        return self

    def scope_query(self, scope: ScopeCallback) -> "DjangoRepository[T]":
        if not callable(scope):
            raise TypeError(f"Scope must be callable, got {scope!r}")
        self._scope = scope
        return self

    def reset_scope(self) -> "DjangoRepository[T]":
        self._scope = None
        return self

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _set_handler(
        self, event_class: Type[RepositoryEvent], handler: Optional[IEventHandler]
    ) -> "DjangoRepository[T]":
        if handler is None:
            self._handlers.pop(event_class, None)
        else:
            self._handlers[event_class] = handler
        return self

    def get_event_created(self) -> Optional[IEventHandler]:
        return self._handlers.get(EntityCreated)

    def set_event_created(self, handler: Optional[IEventHandler]) -> "DjangoRepository[T]":
        return self._set_handler(EntityCreated, handler)

    def get_event_updated(self) -> Optional[IEventHandler]:
        return self._handlers.get(EntityUpdated)

    def set_event_updated(self, handler: Optional[IEventHandler]) -> "DjangoRepository[T]":
        return self._set_handler(EntityUpdated, handler)

    def get_event_deleted(self) -> Optional[IEventHandler]:
        return self._handlers.get(EntityDeleted)

    def set_event_deleted(self, handler: Optional[IEventHandler]) -> "DjangoRepository[T]":
        return self._set_handler(EntityDeleted, handler)

    def notify(self, event: RepositoryEvent) -> "DjangoRepository[T]":
        """Hand ``event`` to the handler registered for its variant, if any."""
        handler = self._handlers.get(type(event))
        if handler is None:
            return self

        self.last_event = event
        logger.debug(
            "repository.event_dispatched",
            event_name=event.event_name,
            model=event.model_label,
            aggregate_id=str(event.aggregate_id),
        )
        handler.handle(event)
        return self

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def all(self, columns: Columns = None) -> List[T]:
        return list(self._project(self._query(), columns))

    def first(self, columns: Columns = None) -> Optional[T]:
        return self._project(self._query(), columns).first()

    def first_or_new(self, attributes: Optional[Dict[str, Any]] = None) -> T:
        attributes = attributes or {}
        instance = self._query().filter(**attributes).first()
        if instance is None:
            instance = self.model(**attributes)
        return instance

    def first_or_create(self, attributes: Optional[Dict[str, Any]] = None) -> T:
        attributes = attributes or {}
        instance = self._query().filter(**attributes).first()
        if instance is None:
            instance = self._save(self.model(**attributes))
        return instance

    def paginate(
        self, limit: Optional[int] = None, columns: Columns = None, page: int = 1
    ) -> Page:
        limit = pagination.default_page_size() if limit is None else limit
        return pagination.paginate(self._project(self._query(), columns), limit, page)

    def simple_paginate(
        self, limit: Optional[int] = None, columns: Columns = None, page: int = 1
    ) -> pagination.SimplePage:
        limit = pagination.default_page_size() if limit is None else limit
        return pagination.simple_paginate(
            self._project(self._query(), columns), limit, page
        )

    def find(self, id: Any, columns: Columns = None) -> T:
        return self._get_by_pk(self._project(self._query(), columns), id)

    def find_by_field(self, field: str, value: Any = None, columns: Columns = None) -> List[T]:
        return list(self._project(self._query().filter(**{field: value}), columns))

    def find_where(self, where: Mapping[str, Any], columns: Columns = None) -> List[T]:
        queryset = criteria.apply_conditions(self._query(), where)
        return list(self._project(queryset, columns))

    def find_where_in(self, field: str, values: Iterable[Any], columns: Columns = None) -> List[T]:
        queryset = self._query().filter(**{f"{field}__in": list(values)})
        return list(self._project(queryset, columns))

    def find_where_not_in(
        self, field: str, values: Iterable[Any], columns: Columns = None
    ) -> List[T]:
        queryset = self._query().exclude(**{f"{field}__in": list(values)})
        return list(self._project(queryset, columns))

    def pluck(self, column: str, key: Optional[str] = None) -> Union[List[Any], Dict[Any, Any]]:
        queryset = self._query()
        if key is None:
            return list(queryset.values_list(column, flat=True))
        return dict(queryset.values_list(key, column))

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def _should_validate(self) -> bool:
        if self.validate_on_save is not None:
            return self.validate_on_save
        return getattr(settings, "REPOSITORY_VALIDATE_ON_SAVE", True)

    def _save(self, instance: T) -> T:
        if self._should_validate():
            instance.full_clean()
        with transaction.atomic():
            instance.save()
        return instance

    @staticmethod
    def _fill(instance: T, attributes: Mapping[str, Any]) -> None:
        for name, value in attributes.items():
            # Raises FieldDoesNotExist for unknown names.
            instance._meta.get_field(name)
            setattr(instance, name, value)

    def create(self, attributes: Dict[str, Any]) -> T:
        self._take_context()
        instance = self._save(self.model(**attributes))

        logger.info(
            "repository.created",
            model=self.model._meta.label,
            pk=str(instance.pk),
        )
        self.notify(EntityCreated(repository=self, model=instance))
        return instance

    def update(self, attributes: Dict[str, Any], id: Any) -> T:
        instance = self._get_by_pk(self._query(), id)
        original = copy.deepcopy(instance)
        self._fill(instance, attributes)
        self._save(instance)

        logger.info(
            "repository.updated",
            model=self.model._meta.label,
            pk=str(instance.pk),
            fields=sorted(attributes),
        )
        self.notify(EntityUpdated(repository=self, model=instance, original=original))
        return instance

    def update_or_create(
        self, attributes: Dict[str, Any], values: Optional[Dict[str, Any]] = None
    ) -> T:
        """Delegate to ``QuerySet.update_or_create``.

        The matching row, if any, is copied first so the ``EntityUpdated``
        event carries its real prior state.  ``original`` is ``None`` when
        the row was inserted.  Model validation is left to the ORM here.
        """
        queryset = self._query()
        existing = queryset.filter(**attributes).first()
        original = copy.deepcopy(existing) if existing is not None else None

        with transaction.atomic():
            instance, created = queryset.update_or_create(
                defaults=values or {}, **attributes
            )
        if created:
            original = None

        logger.info(
            "repository.updated",
            model=self.model._meta.label,
            pk=str(instance.pk),
            created=created,
        )
        self.notify(EntityUpdated(repository=self, model=instance, original=original))
        return instance

    def delete(self, id: Any) -> int:
        instance = self._get_by_pk(self._query(), id)
        snapshot = copy.deepcopy(instance)

        with transaction.atomic():
            _, per_model = instance.delete()
        deleted = per_model.get(self.model._meta.label, 0)

        logger.info(
            "repository.deleted",
            model=self.model._meta.label,
            pk=str(snapshot.pk),
            deleted=deleted,
        )
        self.notify(EntityDeleted(repository=self, model=snapshot, removed=(snapshot,)))
        return deleted

    def delete_where(self, where: Mapping[str, Any]) -> int:
        queryset = criteria.apply_conditions(self._query(), where)
        removed = tuple(queryset)

        with transaction.atomic():
            _, per_model = queryset.delete()
        deleted = per_model.get(self.model._meta.label, 0)

        logger.info(
            "repository.deleted_where",
            model=self.model._meta.label,
            conditions=sorted(where),
            deleted=deleted,
        )
        self.notify(EntityDeleted(repository=self, model=None, removed=removed))
        return deleted

    def sync(
        self, id: Any, relation: str, ids: Iterable[Any], detaching: bool = True
    ) -> Dict[str, List[Any]]:
        """Attach the missing ``ids`` and, when ``detaching``, detach the rest.

        ``ids`` may hold primary keys or model instances.  Keys with no
        matching row are ignored.  Returns the primary keys attached and
        detached.
        """
        instance = self.find(id)
        manager = getattr(instance, relation)
        related = manager.model
        to_pk = related._meta.pk.to_python

        wanted = list(
            dict.fromkeys(
                item.pk if isinstance(item, models.Model) else to_pk(item)
                for item in ids
            )
        )
        current = list(manager.values_list("pk", flat=True))

        missing = [pk for pk in wanted if pk not in current]
        extra = [pk for pk in current if pk not in wanted] if detaching else []

        with transaction.atomic():
            to_detach = list(manager.filter(pk__in=extra)) if extra else []
            if to_detach:
                manager.remove(*to_detach)
            to_attach = list(related._default_manager.filter(pk__in=missing)) if missing else []
            if to_attach:
                manager.add(*to_attach)

        changes = {
            "attached": [obj.pk for obj in to_attach],
            "detached": [obj.pk for obj in to_detach],
        }
        logger.info(
            "repository.synced",
            model=self.model._meta.label,
            pk=str(instance.pk),
            relation=relation,
            attached=len(changes["attached"]),
            detached=len(changes["detached"]),
        )
        return changes

    # ------------------------------------------------------------------
    # Query shaping
    # ------------------------------------------------------------------

    def with_related(self, *relations: str) -> "DjangoRepository[T]":
        self._queryset = self._queryset.prefetch_related(*relations)
        return self

    def with_count(self, *relations: str) -> "DjangoRepository[T]":
        annotations = {
            f"{relation.replace(LOOKUP_SEP, '_')}_count": Count(relation, distinct=True)
            for relation in relations
        }
        self._queryset = self._queryset.annotate(**annotations)
        return self

    def has(self, relation: str, operator: str = ">=", count: int = 1) -> "DjangoRepository[T]":
        lookup, negated = criteria.lookup_for(operator)
        if lookup not in COUNT_LOOKUPS:
            raise UnsupportedOperator(operator)

        matching = (
            self.model._default_manager.annotate(
                related_count=Count(relation, distinct=True)
            )
            .filter(**{f"related_count__{lookup}": count})
            .values("pk")
        )
        condition = Q(pk__in=matching)
        self._queryset = self._queryset.filter(~condition if negated else condition)
        return self

    def where_has(
        self, relation: str, callback: Optional[ScopeCallback] = None
    ) -> "DjangoRepository[T]":
        related = self.model
        for name in relation.split(LOOKUP_SEP):
            related = related._meta.get_field(name).related_model
            if related is None:
                raise FieldError(f"{name!r} in {relation!r} is not a relation")
        related_queryset = related._default_manager.all()
        if callback is not None:
            related_queryset = callback(related_queryset)

        matching = self.model._default_manager.filter(
            **{f"{relation}__in": related_queryset}
        ).values("pk")
        self._queryset = self._queryset.filter(pk__in=matching)
        return self

    def hidden(self, fields: Sequence[str]) -> "DjangoRepository[T]":
        self._queryset = self._queryset.defer(*fields)
        return self

    def visible(self, fields: Sequence[str]) -> "DjangoRepository[T]":
        self._queryset = self._queryset.only(*fields)
        return self

    def order_by(self, column: str, direction: str = "asc") -> "DjangoRepository[T]":
        direction = direction.lower()
        if direction not in ("asc", "desc"):
            raise ValueError(
                f"Order direction must be 'asc' or 'desc', got {direction!r}"
            )
        ordering = column if direction == "asc" else f"-{column}"
        self._queryset = self._queryset.order_by(*self._queryset.query.order_by, ordering)
        return self
