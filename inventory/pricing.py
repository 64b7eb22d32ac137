from typing import Iterable, Optional

LABOR = "LABOR"
MATERIAL = "MATERIAL"


def line_cost(quantity, unit_cost) -> float:
    return float(quantity or 0) * float(unit_cost or 0)


def recipe_cost(lines: Iterable[dict]) -> float:
    """
    Total cost of a product recipe.

    Each line is a dict with ``quantity`` and ``unit_cost``; for MATERIAL lines
    unit_cost is the raw material price, for LABOR lines the configured cost
    per unit. Missing prices count as zero.
    """
    return round(sum(line_cost(line.get("quantity"), line.get("unit_cost")) for line in lines), 2)


def margin_percent(price, cost) -> Optional[float]:
    price = float(price or 0)
    if price <= 0:
        return None
    return round((price - float(cost or 0)) / price * 100, 2)


def markup_percent(price, cost) -> Optional[float]:
    cost = float(cost or 0)
    if cost <= 0:
        return None
    return round((float(price or 0) - cost) / cost * 100, 2)


def cost_share_percent(part, total) -> float:
    total = float(total or 0)
    if total <= 0:
        return 0.0
    return round(float(part or 0) / total * 100, 2)
