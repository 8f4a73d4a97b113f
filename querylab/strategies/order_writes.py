"""
Order creation, the one write path outside seeding.

The whole operation is a single transaction: product prices are read (and
share-locked), the total is accumulated with `Decimal`, then the order row and
its item rows are inserted. Any failure, including a product that does not
exist, rolls back everything, so an order never becomes visible without its
items.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Mapping, Tuple, Union

from psycopg import errors as pg_errors
from pydantic import ValidationError

from querylab.domain.models import Order, to_money
from querylab.domain.requests import CreateOrderRequest
from querylab.domain.results import EntityResult
from querylab.errors import BadInputError, ReferencedEntityMissingError, StorageError
from querylab.infrastructure.session import Session

_REQUIRED_MESSAGE = "userId and items array are required"


def validate_order_request(payload: Union[CreateOrderRequest, Mapping[str, Any], None]) -> CreateOrderRequest:
    """
    Shape-check an order creation request without touching storage.

    Raises
    ------
    BadInputError
        Missing user id, missing/empty/non-list items, or an item without a
        product id or with a non-positive quantity.
    """
    if isinstance(payload, CreateOrderRequest):
        return payload
    if not isinstance(payload, Mapping):
        raise BadInputError(_REQUIRED_MESSAGE)

    user_id = payload.get("userId", payload.get("user_id"))
    items = payload.get("items")
    if not user_id or not isinstance(items, list) or not items:
        raise BadInputError(_REQUIRED_MESSAGE)

    try:
        return CreateOrderRequest.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise BadInputError(f"invalid order request at {location}: {first['msg']}") from exc


def create_order(
    session: Session,
    payload: Union[CreateOrderRequest, Mapping[str, Any], None],
) -> EntityResult[Order]:
    """
    Persist a new ``pending`` order and its items, pricing each item from the
    product's current price.

    Raises
    ------
    BadInputError
        The request is malformed; nothing was sent to the database.
    ReferencedEntityMissingError
        A product (or the user) does not exist; the transaction was rolled back.
    StorageError
        Any other database failure; the transaction was rolled back.
    """
    request = validate_order_request(payload)

    try:
        with session.transaction(label="orders.create"):
            total = Decimal("0")
            lines: List[Tuple[int, int, Decimal]] = []
            for line in request.items:
                product = session.fetch_one(
                    "SELECT id, price FROM products WHERE id = %s FOR SHARE",
                    (line.product_id,),
                    label="products.price",
                )
                if product is None:
                    raise ReferencedEntityMissingError("Product", line.product_id)
                price = product["price"]
                total += price * line.quantity
                lines.append((line.product_id, line.quantity, price))

            order = session.fetch_one(
                "INSERT INTO orders (user_id, status, total_amount) VALUES (%s, 'pending', %s) RETURNING *",
                (request.user_id, to_money(total)),
                label="orders.insert",
            )
            items = session.insert_many(
                "INSERT INTO order_items (order_id, product_id, quantity, price) "
                "VALUES (%s, %s, %s, %s) RETURNING *",
                [(order["id"], product_id, quantity, price) for product_id, quantity, price in lines],
                label="order_items.insert",
            )
    except StorageError as exc:
        if isinstance(exc.__cause__, pg_errors.ForeignKeyViolation):
            raise ReferencedEntityMissingError("User", request.user_id) from exc
        raise

    return EntityResult(data=Order.model_validate({**order, "items": items}))


__all__ = ["create_order", "validate_order_request"]
