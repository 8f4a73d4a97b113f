"""
Result envelopes returned by every strategy.

Each use case returns one member of a small tagged union instead of a dict with
optional keys:

- `PlainResult`      -> ``{data, total, warning?}``
- `PaginatedResult`  -> ``{data, total, page, pageSize, totalPages, warning?}``
- `EntityResult`     -> the bare entity, or ``{data, warning}`` when a warning is set

`kind` is the discriminator; it is not part of the rendered envelope.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_unset=True)
    return value


class _Envelope(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        arbitrary_types_allowed=True,
    )


class PlainResult(_Envelope, Generic[T]):
    kind: Literal["plain"] = "plain"
    data: List[T]
    total: int
    warning: Optional[str] = None

    def to_envelope(self) -> Dict[str, Any]:
        envelope: Dict[str, Any] = {"data": [_dump(item) for item in self.data], "total": self.total}
        if self.warning:
            envelope["warning"] = self.warning
        return envelope


class PaginatedResult(_Envelope, Generic[T]):
    kind: Literal["paginated"] = "paginated"
    data: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    warning: Optional[str] = None

    def to_envelope(self) -> Dict[str, Any]:
        envelope: Dict[str, Any] = {
            "data": [_dump(item) for item in self.data],
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
        }
        if self.warning:
            envelope["warning"] = self.warning
        return envelope


class EntityResult(_Envelope, Generic[T]):
    kind: Literal["entity"] = "entity"
    data: T
    warning: Optional[str] = None

    def to_envelope(self) -> Dict[str, Any]:
        if self.warning:
            return {"data": _dump(self.data), "warning": self.warning}
        return _dump(self.data)


Result = Union[PlainResult, PaginatedResult, EntityResult]


@dataclass(frozen=True)
class Page:
    """
    A resolved, 1-based page request.

    Build with `Page.resolve` so that missing or out-of-range values are
    clamped the same way everywhere.
    """

    number: int
    size: int

    @classmethod
    def resolve(
        cls,
        page: Optional[int],
        page_size: Optional[int],
        default_size: int = 20,
        max_size: int = 100,
    ) -> "Page":
        number = page if page and page > 0 else 1
        size = page_size if page_size and page_size > 0 else default_size
        return cls(number=number, size=min(size, max_size))

    @property
    def offset(self) -> int:
        return (self.number - 1) * self.size

    def total_pages(self, total: int) -> int:
        return math.ceil(total / self.size) if total > 0 else 0

    def result(self, data: List[Any], total: int, warning: Optional[str] = None) -> PaginatedResult:
        return PaginatedResult(
            data=data,
            total=total,
            page=self.number,
            page_size=self.size,
            total_pages=self.total_pages(total),
            warning=warning,
        )


__all__ = ["EntityResult", "Page", "PaginatedResult", "PlainResult", "Result"]
