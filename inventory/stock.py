"""
Stock level classification and movement arithmetic for raw materials.

A material is CRITICAL at or below its minimum stock, LOW up to 20% above it,
NORMAL otherwise. Materials without a configured minimum, or with no stock
figure recorded, are always NORMAL.
"""

from typing import Optional

from inventory.errors import ValidationFailed

CRITICAL = "CRITICAL"
LOW = "LOW"
NORMAL = "NORMAL"
STOCK_STATUSES = (CRITICAL, LOW, NORMAL)

CRITICAL_RATIO = 1.0
LOW_RATIO = 1.2   # min stock + 20% buffer

MAX_STOCK_QUANTITY = 999_999

MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"
MOVEMENT_ADJUSTMENT = "ADJUSTMENT"
MOVEMENT_RETURN = "RETURN"
MOVEMENT_TYPES = {MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_ADJUSTMENT, MOVEMENT_RETURN}


def stock_status(quantity: Optional[float], min_quantity: Optional[float]) -> str:
    # no minimum configured, or no stock figure at all: not tracked
    if quantity is None or not min_quantity:
        return NORMAL
    quantity = float(quantity)
    min_quantity = float(min_quantity)
    if quantity <= min_quantity * CRITICAL_RATIO:
        return CRITICAL
    if quantity <= min_quantity * LOW_RATIO:
        return LOW
    return NORMAL


def is_low_stock(quantity: Optional[float], min_quantity: Optional[float]) -> bool:
    return stock_status(quantity, min_quantity) in (LOW, CRITICAL)


def reorder_quantity(quantity: Optional[float], min_quantity: Optional[float]) -> float:
    """How much to order to get back above the LOW threshold."""
    if not min_quantity:
        return 0.0
    target = float(min_quantity) * LOW_RATIO
    missing = target - float(quantity or 0)
    return round(missing, 3) if missing > 0 else 0.0


def check_stock_quantity(quantity: float) -> float:
    quantity = float(quantity)
    if quantity < 0:
        raise ValidationFailed("Stock quantity cannot be negative")
    if quantity > MAX_STOCK_QUANTITY:
        raise ValidationFailed("Stock quantity too large")
    return quantity


def apply_movement(quantity: Optional[float], movement_type: str, amount: float) -> float:
    """Return the stock level after a movement. ADJUSTMENT sets it outright."""
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationFailed(f"Unknown movement type: {movement_type}")
    amount = float(amount)
    if amount < 0:
        raise ValidationFailed("Movement quantity must be a positive number")
    current = float(quantity or 0)

    if movement_type == MOVEMENT_ADJUSTMENT:
        new_quantity = amount
    elif movement_type == MOVEMENT_OUT:
        new_quantity = current - amount
    else:
        new_quantity = current + amount
    return check_stock_quantity(new_quantity)


def status_breakdown(materials) -> dict[str, int]:
    """Count (quantity, min_quantity) pairs per stock status."""
    counts = {status: 0 for status in STOCK_STATUSES}
    for quantity, min_quantity in materials:
        counts[stock_status(quantity, min_quantity)] += 1
    return counts
