"""
Sales and stock report aggregation plus tabular export (CSV / Excel).

Aggregations take plain dicts so they can run on ORM rows or test fixtures:
  orders:  {"status", "total_amount", "customer_name", "created_at"}
  items:   {"product_name", "quantity", "price"}
  stock:   (stock_quantity, min_stock_quantity) pairs
"""

import csv
import io
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

from openpyxl import Workbook
from openpyxl.styles import Font

from inventory.stock import status_breakdown

WEEKS_SHOWN = 8
MONTHS_SHOWN = 6
TOP_N = 5


def week_start(day: date) -> date:
    """Sunday on or before ``day``."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _day(value) -> date:
    return value.date() if isinstance(value, datetime) else value


def weekly_sales(orders: Iterable[dict]) -> list[dict]:
    weeks: dict[date, dict] = defaultdict(lambda: {"orders": 0, "revenue": 0.0})
    for order in orders:
        bucket = weeks[week_start(_day(order["created_at"]))]
        bucket["orders"] += 1
        bucket["revenue"] += float(order.get("total_amount") or 0)
    return [
        {"week": week.isoformat(), "orders": data["orders"], "revenue": round(data["revenue"], 2)}
        for week, data in sorted(weeks.items())[-WEEKS_SHOWN:]
    ]


def monthly_revenue(orders: Iterable[dict]) -> list[dict]:
    months: dict[str, float] = defaultdict(float)
    for order in orders:
        day = _day(order["created_at"])
        months[f"{day.year}-{day.month:02d}"] += float(order.get("total_amount") or 0)
    return [
        {"month": month, "revenue": round(total, 2)}
        for month, total in sorted(months.items())[-MONTHS_SHOWN:]
    ]


def status_counts(orders: Iterable[dict]) -> dict[str, int]:
    counts: dict[str, int] = defaultdict(int)
    for order in orders:
        counts[order["status"]] += 1
    return dict(counts)


def top_customers(orders: Iterable[dict], limit: int = TOP_N) -> list[dict]:
    per_customer: dict[str, dict] = defaultdict(lambda: {"orders": 0, "revenue": 0.0})
    for order in orders:
        name = (order.get("customer_name") or "").strip()
        if not name:
            continue
        per_customer[name]["orders"] += 1
        per_customer[name]["revenue"] += float(order.get("total_amount") or 0)
    ranked = sorted(per_customer.items(), key=lambda kv: (-kv[1]["revenue"], -kv[1]["orders"], kv[0]))
    return [
        {"name": name, "orders": data["orders"], "revenue": round(data["revenue"], 2)}
        for name, data in ranked[:limit]
    ]


def top_products(items: Iterable[dict], limit: int = TOP_N) -> list[dict]:
    per_product: dict[str, dict] = defaultdict(lambda: {"quantity": 0, "revenue": 0.0})
    for item in items:
        data = per_product[item["product_name"]]
        data["quantity"] += int(item["quantity"])
        data["revenue"] += int(item["quantity"]) * float(item["price"])
    ranked = sorted(per_product.items(), key=lambda kv: (-kv[1]["revenue"], -kv[1]["quantity"], kv[0]))
    return [
        {"name": name, "quantity": data["quantity"], "revenue": round(data["revenue"], 2)}
        for name, data in ranked[:limit]
    ]


def build_summary(
    orders: list[dict],
    items: list[dict],
    stock: list[tuple],
    now: Optional[datetime] = None,
) -> dict:
    total_sales = round(sum(float(o.get("total_amount") or 0) for o in orders), 2)
    total_orders = len(orders)
    return {
        "generated_at": (now or datetime.now(timezone.utc)).isoformat(),
        "total_sales": total_sales,
        "total_orders": total_orders,
        "average_order_value": round(total_sales / total_orders, 2) if total_orders else 0.0,
        "order_status": status_counts(orders),
        "weekly_sales": weekly_sales(orders),
        "monthly_revenue": monthly_revenue(orders),
        "top_customers": top_customers(orders),
        "top_products": top_products(items),
        "stock_status": status_breakdown(stock),
    }


# ── Export ──────────────────────────────────────────────────────────────────

def _cell(value):
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    return value


def to_csv(header: list[str], rows: Iterable[list]) -> bytes:
    # BOM so spreadsheet apps pick up UTF-8 (Turkish characters)
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(header)
    for row in rows:
        writer.writerow([_cell(v) for v in row])
    return buf.getvalue().encode("utf-8-sig")


def to_xlsx(title: str, header: list[str], rows: Iterable[list]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]
    ws.append(header)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append([_cell(v) for v in row])

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()
