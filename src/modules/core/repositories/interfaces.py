"""Generic repository interface (Dependency Inversion Principle).

Provides ``IRepository[T]``, the abstract contract every repository
implements.  Service-layer code depends on this abstraction, never on the
Django ORM directly.

Methods fall into three families:

- reads (``all``, ``find``, ``find_where``, ``paginate``, ...) return rows
  and never dispatch events;
- writes (``create``, ``update``, ``delete``, ...) persist and dispatch at
  most one lifecycle event;
- query shaping (``scope_query``, ``with_related``, ``order_by``, ...)
  configures the next terminal call and returns the repository.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

from django.core.paginator import Page
from django.db import models

from modules.core.pagination import SimplePage

T = TypeVar("T", bound=models.Model)

Columns = Optional[Sequence[str]]
ScopeCallback = Callable[[models.QuerySet], models.QuerySet]


class IRepository(ABC, Generic[T]):
    """Base generic repository contract.

    Type parameter ``T`` is the model class managed by the repository.
    """

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @abstractmethod
    def all(self, columns: Columns = None) -> List[T]:
        """Retrieve every row in scope."""

    def get(self, columns: Columns = None) -> List[T]:
        """Alias of ``all``."""
        return self.all(columns)

    @abstractmethod
    def first(self, columns: Columns = None) -> Optional[T]:
        """Retrieve the first row in scope, or ``None``."""

    @abstractmethod
    def first_or_new(self, attributes: Optional[Dict[str, Any]] = None) -> T:
        """Retrieve the first matching row or build an unsaved one."""

    @abstractmethod
    def first_or_create(self, attributes: Optional[Dict[str, Any]] = None) -> T:
        """Retrieve the first matching row or create it."""

    @abstractmethod
    def paginate(
        self, limit: Optional[int] = None, columns: Columns = None, page: int = 1
    ) -> Page:
        """Retrieve one page of rows together with the total count."""

    @abstractmethod
    def simple_paginate(
        self, limit: Optional[int] = None, columns: Columns = None, page: int = 1
    ) -> SimplePage:
        """Retrieve one page of rows without counting the total."""

    @abstractmethod
    def find(self, id: Any, columns: Columns = None) -> T:
        """Retrieve a row by primary key; raises ``DoesNotExist`` if absent."""

    @abstractmethod
    def find_by_field(self, field: str, value: Any = None, columns: Columns = None) -> List[T]:
        """Retrieve rows whose ``field`` equals ``value``."""

    @abstractmethod
    def find_where(self, where: Mapping[str, Any], columns: Columns = None) -> List[T]:
        """Retrieve rows matching every condition of ``where``."""

    @abstractmethod
    def find_where_in(self, field: str, values: Iterable[Any], columns: Columns = None) -> List[T]:
        """Retrieve rows whose ``field`` is one of ``values``."""

    @abstractmethod
    def find_where_not_in(
        self, field: str, values: Iterable[Any], columns: Columns = None
    ) -> List[T]:
        """Retrieve rows whose ``field`` is none of ``values``."""

    @abstractmethod
    def pluck(self, column: str, key: Optional[str] = None) -> Union[List[Any], Dict[Any, Any]]:
        """Retrieve the values of one column, optionally keyed by another."""

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    @abstractmethod
    def create(self, attributes: Dict[str, Any]) -> T:
        """Persist a new row."""

    @abstractmethod
    def update(self, attributes: Dict[str, Any], id: Any) -> T:
        """Merge ``attributes`` into the row identified by ``id``."""

    @abstractmethod
    def update_or_create(
        self, attributes: Dict[str, Any], values: Optional[Dict[str, Any]] = None
    ) -> T:
        """Update the row matching ``attributes`` with ``values`` or create it."""

    @abstractmethod
    def delete(self, id: Any) -> int:
        """Delete a row by primary key and return the number of rows removed."""

    @abstractmethod
    def delete_where(self, where: Mapping[str, Any]) -> int:
        """Delete every row matching ``where`` and return the count."""

    @abstractmethod
    def sync(
        self, id: Any, relation: str, ids: Iterable[Any], detaching: bool = True
    ) -> Dict[str, List[Any]]:
        """Make ``relation`` of row ``id`` contain exactly ``ids``."""

    def sync_without_detaching(
        self, id: Any, relation: str, ids: Iterable[Any]
    ) -> Dict[str, List[Any]]:
        """Add ``ids`` to ``relation`` of row ``id`` without removing others."""
        return self.sync(id, relation, ids, detaching=False)

    # ------------------------------------------------------------------
    # Query shaping
    # ------------------------------------------------------------------

    @abstractmethod
    def scope_query(self, scope: ScopeCallback) -> "IRepository[T]":
        """Narrow the next terminal call with ``scope``."""

    @abstractmethod
    def reset_scope(self) -> "IRepository[T]":
        """Drop the pending scope filter."""

    @abstractmethod
    def with_related(self, *relations: str) -> "IRepository[T]":
        """Eager-load ``relations``."""

    @abstractmethod
    def with_count(self, *relations: str) -> "IRepository[T]":
        """Annotate rows with ``<relation>_count``."""

    @abstractmethod
    def has(self, relation: str, operator: str = ">=", count: int = 1) -> "IRepository[T]":
        """Keep rows whose ``relation`` count satisfies ``operator count``."""

    @abstractmethod
    def where_has(
        self, relation: str, callback: Optional[ScopeCallback] = None
    ) -> "IRepository[T]":
        """Keep rows with at least one related row matching ``callback``.

        ``relation`` may span several hops, e.g. ``"category__products"``.
        """

    @abstractmethod
    def hidden(self, fields: Sequence[str]) -> "IRepository[T]":
        """Leave ``fields`` out of the loaded rows."""

    @abstractmethod
    def visible(self, fields: Sequence[str]) -> "IRepository[T]":
        """Load only ``fields`` (plus the primary key)."""

    @abstractmethod
    def order_by(self, column: str, direction: str = "asc") -> "IRepository[T]":
        """Append an ordering."""
