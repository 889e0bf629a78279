from __future__ import annotations

import math
from typing import Annotated, Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel

T = TypeVar("T")

NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys (``shipperId``) while using snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Page(CamelModel, Generic[T]):
    """One page of a listing. Page numbers start at 0."""

    content: List[T]
    page: int
    size: int
    total_elements: int
    total_pages: int
    has_next: bool
    has_previous: bool

    @classmethod
    def build(cls, content: list, page: int, size: int, total: int) -> "Page[T]":
        total_pages = math.ceil(total / size) if size else 0
        return cls(
            content=content,
            page=page,
            size=size,
            total_elements=total,
            total_pages=total_pages,
            has_next=page + 1 < total_pages,
            has_previous=page > 0,
        )
