"""
Field-equivalence checks between the two variants of a strategy pair.

Both variants of a pair must return the same data; only cost may differ. A few
pairs differ in shape by construction and are compared on a projection:

- ``users.list``: the naive variant returns every row, the optimized one a
  page, so the page must equal the matching slice of the full list, and both
  must report the same total.
- ``orders.detail``: the naive variant loads a superset of relations; only
  the order columns, its ``user`` and its ``items`` (without their product
  graph) are compared.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional

from querylab.domain.requests import PageRequest
from querylab.domain.results import EntityResult, PaginatedResult, Result
from querylab.strategies.abstract import resolve_page


def _as_dicts(result: Result) -> List[Dict[str, Any]]:
    if isinstance(result, EntityResult):
        return [result.data.comparable()]
    return [item.comparable() for item in result.data]


def _shallow_order(order: Dict[str, Any]) -> Dict[str, Any]:
    shallow = dict(order)
    if isinstance(shallow.get("user"), dict):
        shallow["user"] = {key: value for key, value in shallow["user"].items() if key != "orders"}
    if shallow.get("items") is not None:
        shallow["items"] = [
            {key: value for key, value in item.items() if key not in ("product", "order")}
            for item in shallow["items"]
        ]
    return shallow


def _same_rows(naive: Result, optimized: Result, request: Any) -> bool:
    return _as_dicts(naive) == _as_dicts(optimized)


def _page_of_full_list(naive: Result, optimized: Result, request: Any) -> bool:
    if not isinstance(optimized, PaginatedResult):
        return False
    if isinstance(request, PageRequest):
        page = resolve_page(request.page, request.page_size)
    else:
        params: Mapping[str, Any] = request or {}
        parsed = PageRequest.model_validate(dict(params))
        page = resolve_page(parsed.page, parsed.page_size)
    if naive.total != optimized.total:
        return False
    expected = _as_dicts(naive)[page.offset : page.offset + page.size]
    return expected == _as_dicts(optimized)


def _shallow_detail(naive: Result, optimized: Result, request: Any) -> bool:
    return [_shallow_order(row) for row in _as_dicts(naive)] == [
        _shallow_order(row) for row in _as_dicts(optimized)
    ]


_RULES: Dict[str, Callable[[Result, Result, Any], bool]] = {
    "users.list": _page_of_full_list,
    "orders.detail": _shallow_detail,
}


def outputs_equivalent(use_case: str, naive: Result, optimized: Result, request: Optional[Any] = None) -> bool:
    """
    True when both variants returned the same data for ``use_case``.

    Use cases without a dedicated rule compare the full row lists in order;
    every pair returns its rows in a fully specified order.
    """
    rule = _RULES.get(use_case, _same_rows)
    return rule(naive, optimized, request)


__all__ = ["outputs_equivalent"]
