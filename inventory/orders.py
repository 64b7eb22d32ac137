"""
Order status workflow and the stock movements each transition implies.

Confirming a pending order consumes the materials of every ordered product's
recipe (OUT movements). Cancelling an order that already holds stock
(CONFIRMED or PROCESSING) puts them back (RETURN movements). Labour recipe
lines never touch stock.
"""

from dataclasses import dataclass
from typing import Iterable, Mapping

from inventory.errors import InvalidStatusTransition
from inventory.stock import MOVEMENT_OUT, MOVEMENT_RETURN

PENDING = "PENDING"
CONFIRMED = "CONFIRMED"
PROCESSING = "PROCESSING"
SHIPPED = "SHIPPED"
DELIVERED = "DELIVERED"
CANCELLED = "CANCELLED"
REFUNDED = "REFUNDED"
READY_TO_SHIP = "READY_TO_SHIP"

ORDER_STATUSES = {
    PENDING, CONFIRMED, PROCESSING, SHIPPED, DELIVERED, CANCELLED, REFUNDED, READY_TO_SHIP,
}

VALID_TRANSITIONS: dict[str, set[str]] = {
    PENDING: {CONFIRMED, CANCELLED},
    CONFIRMED: {PROCESSING, CANCELLED},
    PROCESSING: {SHIPPED, CANCELLED},
    SHIPPED: {DELIVERED},
    DELIVERED: set(),
    CANCELLED: {REFUNDED},
    REFUNDED: set(),
    READY_TO_SHIP: set(),
}

# Orders in these states have consumed their recipe materials
STOCK_HOLDING_STATUSES = {CONFIRMED, PROCESSING}

# Orders in these states count towards revenue
REVENUE_STATUSES = {CONFIRMED, DELIVERED}


@dataclass
class PlannedMovement:
    raw_material_id: object
    movement_type: str
    quantity: float
    reason: str


def is_valid_transition(current: str, new: str) -> bool:
    return new in VALID_TRANSITIONS.get(current, set())


def check_transition(current: str, new: str) -> None:
    if not is_valid_transition(current, new):
        raise InvalidStatusTransition(current, new)


def plan_stock_movements(
    order_number: str,
    current: str,
    new: str,
    items: Iterable[tuple],
    recipes: Mapping[object, list],
) -> list[PlannedMovement]:
    """
    items: (product_id, quantity) pairs of the order.
    recipes: product_id -> list of (raw_material_id, quantity_per_unit).
    """
    if current == PENDING and new == CONFIRMED:
        movement_type = MOVEMENT_OUT
        label = f"Order {order_number}"
    elif current in STOCK_HOLDING_STATUSES and new == CANCELLED:
        movement_type = MOVEMENT_RETURN
        label = f"Order {order_number} cancelled"
    else:
        return []

    planned = []
    for product_id, item_quantity in items:
        for raw_material_id, per_unit in recipes.get(product_id, []):
            if not raw_material_id or not per_unit:
                continue
            planned.append(PlannedMovement(
                raw_material_id=raw_material_id,
                movement_type=movement_type,
                quantity=float(per_unit) * float(item_quantity),
                reason=f"{label} - {product_id}",
            ))
    return planned


def order_total(items: Iterable[tuple]) -> float:
    """Sum of (quantity, unit_price) pairs."""
    return round(sum(float(qty) * float(price) for qty, price in items), 2)


def revenue(orders: Iterable[tuple]) -> float:
    """Sum of amounts over (status, total_amount) pairs that count as sales."""
    return round(sum(float(amount or 0) for status, amount in orders if status in REVENUE_STATUSES), 2)
