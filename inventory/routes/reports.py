import json
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from inventory.auth import require_api_key
from inventory.cache import QueryClient
from inventory.database import get_db
from inventory.deps import get_query_client
from inventory.models import Order, OrderItem, Product, RawMaterial, Supplier
from inventory.reports import build_summary, to_csv, to_xlsx
from inventory.stock import stock_status

router = APIRouter(prefix="/api/reports", tags=["reports"])

SUMMARY_KEY = "reports:summary"
SUMMARY_STALE_TIME = 120

EXPORT_FORMATS = {
    "csv": "text/csv; charset=utf-8",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

MATERIAL_COLUMNS = ["Name", "Supplier", "Stock", "Unit", "Min Stock", "Status", "Unit Price (TRY)",
                    "Lead Time (days)", "Price Date", "Notes"]
ORDER_COLUMNS = ["Order Number", "Created", "Status", "Customer", "Email", "Phone", "City", "Total (TRY)"]


async def load_summary(db: AsyncSession) -> dict:
    orders = [
        {
            "status": o.status,
            "total_amount": o.total_amount,
            "customer_name": o.customer_name,
            "created_at": o.created_at,
        }
        for o in await db.scalars(select(Order))
    ]
    item_rows = await db.execute(
        select(Product.name, OrderItem.quantity, OrderItem.price)
        .join(Product, OrderItem.product_id == Product.id)
    )
    items = [{"product_name": name, "quantity": qty, "price": price} for name, qty, price in item_rows]
    stock = [
        (qty, min_qty)
        for qty, min_qty in await db.execute(
            select(RawMaterial.stock_quantity, RawMaterial.min_stock_quantity)
        )
    ]
    return build_summary(orders, items, stock)


def _download(body: bytes, fmt: str, stem: str) -> Response:
    filename = f"{stem}-{datetime.now(timezone.utc):%Y-%m-%d}.{fmt}"
    return Response(
        content=body,
        media_type=EXPORT_FORMATS.get(fmt, "application/json"),
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


def _check_format(fmt: str) -> str:
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        raise HTTPException(status_code=400, detail=f"Unsupported format '{fmt}'. Use csv or xlsx.")
    return fmt


@router.get("/summary")
async def get_summary(
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    return await query_client.query(SUMMARY_KEY, lambda: load_summary(db), stale_time=SUMMARY_STALE_TIME)


@router.get("/summary.json")
async def download_summary(
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    summary = await query_client.query(SUMMARY_KEY, lambda: load_summary(db), stale_time=SUMMARY_STALE_TIME)
    body = json.dumps(summary, indent=2, ensure_ascii=False).encode("utf-8")
    return _download(body, "json", "summary-report")


@router.get("/materials.{fmt}")
async def export_materials(
    fmt: str,
    db: AsyncSession = Depends(get_db),
    _key: str = Depends(require_api_key),
):
    fmt = _check_format(fmt)
    rows = (await db.execute(
        select(RawMaterial, Supplier.name)
        .join(Supplier, RawMaterial.supplier_id == Supplier.id, isouter=True)
        .order_by(RawMaterial.name.asc())
    )).all()

    table = [
        [
            m.name,
            supplier_name,
            m.stock_quantity,
            m.stock_unit,
            m.min_stock_quantity,
            stock_status(m.stock_quantity, m.min_stock_quantity),
            m.unit_price_try,
            m.lead_time_days,
            m.price_date.isoformat() if m.price_date else None,
            m.notes,
        ]
        for m, supplier_name in rows
    ]
    if fmt == "csv":
        return _download(to_csv(MATERIAL_COLUMNS, table), fmt, "materials")
    return _download(to_xlsx("Materials", MATERIAL_COLUMNS, table), fmt, "materials")


@router.get("/orders.{fmt}")
async def export_orders(
    fmt: str,
    db: AsyncSession = Depends(get_db),
    _key: str = Depends(require_api_key),
):
    fmt = _check_format(fmt)
    orders = await db.scalars(select(Order).order_by(Order.created_at.desc()))
    table = [
        [
            o.order_number,
            o.created_at,
            o.status,
            o.customer_name,
            o.customer_email,
            o.customer_phone,
            o.shipping_city,
            o.total_amount,
        ]
        for o in orders
    ]
    if fmt == "csv":
        return _download(to_csv(ORDER_COLUMNS, table), fmt, "orders")
    return _download(to_xlsx("Orders", ORDER_COLUMNS, table), fmt, "orders")
