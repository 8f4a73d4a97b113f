"""
Request models: the logical inputs each use case accepts.

Both variants of a strategy pair receive the same request model. Models accept
snake_case or camelCase keys, so a JSON body such as ``{"userId": 3}`` parses.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from querylab.domain.models import OrderStatus

# Floor of the default search window; the ceiling is "now".
DEFAULT_WINDOW_START = datetime(2020, 1, 1, tzinfo=timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class Request(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class NoParams(Request):
    pass


class PageRequest(Request):
    page: Optional[int] = None
    page_size: Optional[int] = None


class IdRequest(Request):
    id: int


class UserOrdersRequest(Request):
    user_id: int


class DateWindowRequest(Request):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def window(self, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
        """
        Resolve the search window; unset bounds become ``2020-01-01`` and now (UTC).
        """
        start = _aware(self.start_date) if self.start_date else DEFAULT_WINDOW_START
        end = _aware(self.end_date) if self.end_date else (now or datetime.now(timezone.utc))
        return start, end


class OrderSearchRequest(DateWindowRequest):
    status: Optional[OrderStatus] = None
    min_amount: Optional[Decimal] = None

    @property
    def amount_floor(self) -> Optional[Decimal]:
        """Zero or unset means no amount filter."""
        if self.min_amount is None or self.min_amount <= 0:
            return None
        return self.min_amount


class ProductSearchRequest(Request):
    query: Optional[str] = None
    category_id: Optional[int] = Field(None, alias="category")


class DailyReportRequest(Request):
    days: int = Field(30, ge=0)


class OrderLine(Request):
    product_id: int
    quantity: int = Field(..., gt=0)


class CreateOrderRequest(Request):
    user_id: int
    items: List[OrderLine] = Field(..., min_length=1)


__all__ = [
    "CreateOrderRequest",
    "DEFAULT_WINDOW_START",
    "DailyReportRequest",
    "DateWindowRequest",
    "IdRequest",
    "NoParams",
    "OrderLine",
    "OrderSearchRequest",
    "PageRequest",
    "ProductSearchRequest",
    "Request",
    "UserOrdersRequest",
]
