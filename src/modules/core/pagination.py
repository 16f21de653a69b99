"""Pagination helpers for repository reads.

Length-aware pagination is Django's own ``Paginator``/``Page``.
``SimplePage`` covers the cheaper variant that skips the ``COUNT(*)`` query
and only knows whether another page follows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List

from django.conf import settings
from django.core.paginator import EmptyPage, Page, PageNotAnInteger, Paginator
from django.db import models

DEFAULT_PAGE_SIZE = 15


def default_page_size() -> int:
    return getattr(settings, "REPOSITORY_PAGE_SIZE", DEFAULT_PAGE_SIZE)


def _validate(limit: Any, page: Any) -> tuple[int, int]:
    try:
        limit, page = int(limit), int(page)
    except (TypeError, ValueError):
        raise PageNotAnInteger("Page number and size must be integers.")
    if limit < 1:
        raise EmptyPage("Page size must be at least 1.")
    if page < 1:
        raise EmptyPage("That page number is less than 1")
    return limit, page


def _ordered(queryset: models.QuerySet) -> models.QuerySet:
    # Unordered pages are not stable across queries.
    if queryset.ordered:
        return queryset
    return queryset.order_by("pk")


def paginate(queryset: models.QuerySet, limit: int, page: int = 1) -> Page:
    """Return page ``page`` of ``queryset`` with ``limit`` rows per page."""
    limit, page = _validate(limit, page)
    return Paginator(_ordered(queryset), limit).page(page)


@dataclass(frozen=True)
class SimplePage:
    """One page of rows without the total count."""

    object_list: List[Any]
    number: int
    per_page: int
    has_more: bool = field(default=False)

    def __len__(self) -> int:
        return len(self.object_list)

    def __iter__(self):
        return iter(self.object_list)

    def has_next(self) -> bool:
        return self.has_more

    def has_previous(self) -> bool:
        return self.number > 1

    def next_page_number(self) -> int:
        if not self.has_more:
            raise EmptyPage("That page contains no results")
        return self.number + 1

    def previous_page_number(self) -> int:
        if self.number <= 1:
            raise EmptyPage("That page number is less than 1")
        return self.number - 1


def simple_paginate(queryset: models.QuerySet, limit: int, page: int = 1) -> SimplePage:
    """Fetch ``limit + 1`` rows to learn whether a next page exists.

    Like ``paginate``, an empty page past the first raises ``EmptyPage``.
    """
    limit, page = _validate(limit, page)
    offset = (page - 1) * limit
    rows = list(_ordered(queryset)[offset : offset + limit + 1])
    if not rows and page > 1:
        raise EmptyPage("That page contains no results")
    return SimplePage(
        object_list=rows[:limit],
        number=page,
        per_page=limit,
        has_more=len(rows) > limit,
    )
