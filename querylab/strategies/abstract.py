"""
Abstract strategy interfaces for the Query Strategy Lab.

A use case (e.g. ``users.orders``) is served by one or two strategies: a
``naive`` variant that shows a costly access pattern and, where one exists, an
``optimized`` variant with the same output shape. Concrete strategies implement
the QueryStrategy protocol (usually by subclassing AbstractQueryStrategy) so
the orchestrator can run and compare them without knowing which is which.
"""

from __future__ import annotations

import abc
from typing import Any, ClassVar, Literal, Mapping, Optional, Protocol, Type, Union, runtime_checkable

from pydantic import ValidationError

from querylab.config import get_settings
from querylab.domain.requests import Request
from querylab.domain.results import Page, Result
from querylab.errors import BadInputError
from querylab.infrastructure.session import Session

Variant = Literal["naive", "optimized"]
RequestInput = Union[Request, Mapping[str, Any], None]


@runtime_checkable
class QueryStrategy(Protocol):
    """
    Common interface all query strategies must implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier.
    use_case : str
        Dotted key of the use case served, shared by both variants of a pair.
    variant : str
        ``"naive"`` or ``"optimized"``.
    description : str
        A human-friendly summary of the approach.
    """

    name: str
    use_case: str
    variant: Variant
    description: str

    def execute(self, session: Session, request: RequestInput = None) -> Result:
        """
        Run the strategy against the database and return its result envelope.
        """
        ...


class AbstractQueryStrategy(abc.ABC):
    """
    ABC helper for class-based strategies.

    Subclasses set the class attributes and implement `run`; `execute` parses
    the request into `request_model` first, so every strategy accepts either a
    model instance or a plain mapping.
    """

    name: ClassVar[str]
    use_case: ClassVar[str]
    variant: ClassVar[Variant]
    description: ClassVar[str]
    request_model: ClassVar[Type[Request]]
    warning: ClassVar[Optional[str]] = None

    def parse_request(self, request: RequestInput) -> Request:
        if isinstance(request, self.request_model):
            return request
        payload = request.model_dump() if isinstance(request, Request) else dict(request or {})
        try:
            return self.request_model.model_validate(payload)
        except ValidationError as exc:
            raise BadInputError(f"invalid request for {self.use_case}: {exc.errors()[0]['msg']}") from exc

    def execute(self, session: Session, request: RequestInput = None) -> Result:
        return self.run(session, self.parse_request(request))

    @abc.abstractmethod
    def run(self, session: Session, request: Any) -> Result:  # pragma: no cover - interface only
        """Run the strategy with a validated request."""
        raise NotImplementedError


def resolve_page(page: Optional[int], page_size: Optional[int]) -> Page:
    settings = get_settings()
    return Page.resolve(
        page,
        page_size,
        default_size=settings.default_page_size,
        max_size=settings.max_page_size,
    )


__all__ = [
    "AbstractQueryStrategy",
    "QueryStrategy",
    "RequestInput",
    "Variant",
    "resolve_page",
]
