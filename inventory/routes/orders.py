import logging
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from inventory.auth import require_api_key
from inventory.cache import QueryClient
from inventory.database import get_db
from inventory.deps import get_query_client
from inventory.errors import InvalidStatusTransition, ValidationFailed
from inventory.models import Order, OrderItem, Product, ProductRecipe, RawMaterial, StockMovement
from inventory.orders import ORDER_STATUSES, PENDING, check_transition, order_total, plan_stock_movements
from inventory.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, pagination_meta, page_offset
from inventory.pricing import MATERIAL
from inventory.routes.materials import STOCK_CACHE_PREFIXES
from inventory.schemas import (
    OrderIn, OrderItemOut, OrderOut, OrdersResponse, OrderStatusOut, OrderStatusUpdate,
)
from inventory.stock import apply_movement
from inventory.validation import (
    ValidationResult, validate_customer, validate_multiple, validate_positive_number,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])

ORDERS_STALE_TIME = 60


def order_to_out(order: Order, items: list[OrderItem]) -> OrderOut:
    return OrderOut(
        id=order.id,
        order_number=order.order_number,
        status=order.status,
        total_amount=float(order.total_amount or 0),
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        shipping_address=order.shipping_address,
        shipping_city=order.shipping_city,
        admin_notes=order.admin_notes,
        created_at=order.created_at,
        items=[
            OrderItemOut(id=i.id, product_id=i.product_id, quantity=i.quantity, price=float(i.price))
            for i in items
        ],
    )


def new_order_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"ORD-{now:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


def invalidate_orders(query_client: QueryClient) -> None:
    query_client.invalidate_prefix("orders:")
    for prefix in STOCK_CACHE_PREFIXES:
        query_client.invalidate_prefix(prefix)


async def _load_order(db: AsyncSession, order_id: UUID) -> tuple[Order, list[OrderItem]]:
    order = await db.get(Order, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    items = list(await db.scalars(select(OrderItem).where(OrderItem.order_id == order_id)))
    return order, items


@router.get("", response_model=OrdersResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    status: Optional[str] = Query(None, description="Comma-separated: PENDING,CONFIRMED,..."),
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    async def fetch():
        stmt = select(Order)
        count_stmt = select(func.count()).select_from(Order)
        if status:
            status_list = [s.strip().upper() for s in status.split(",") if s.strip().upper() in ORDER_STATUSES]
            if status_list:
                stmt = stmt.where(Order.status.in_(status_list))
                count_stmt = count_stmt.where(Order.status.in_(status_list))

        total = await db.scalar(count_stmt) or 0
        orders = list(await db.scalars(
            stmt.order_by(Order.created_at.desc()).offset(page_offset(page, page_size)).limit(page_size)
        ))

        items_by_order: dict = defaultdict(list)
        if orders:
            items = await db.scalars(select(OrderItem).where(OrderItem.order_id.in_([o.id for o in orders])))
            for item in items:
                items_by_order[item.order_id].append(item)

        return OrdersResponse(
            items=[order_to_out(o, items_by_order[o.id]) for o in orders],
            pagination=pagination_meta(total, page, page_size),
        )

    cache_key = f"orders:list:{page}:{page_size}:{status}"
    return await query_client.query(cache_key, fetch, stale_time=ORDERS_STALE_TIME)


@router.get("/{order_id}", response_model=OrderOut)
async def get_order(
    order_id: UUID,
    db: AsyncSession = Depends(get_db),
    _key: str = Depends(require_api_key),
):
    order, items = await _load_order(db, order_id)
    return order_to_out(order, items)


@router.post("", response_model=OrderOut, status_code=201)
async def create_order(
    payload: OrderIn,
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    checks = [validate_customer(payload.customer_name, payload.customer_email, payload.customer_phone)]
    if not payload.items:
        checks.append(ValidationResult(is_valid=False, errors=["Order must contain at least one item"]))
    for n, item in enumerate(payload.items, start=1):
        if item.price is not None:
            checks.append(validate_positive_number(item.price, f"Item {n} price"))
    result = validate_multiple(checks)
    if not result.is_valid:
        raise HTTPException(status_code=400, detail=result.errors)

    product_ids = {item.product_id for item in payload.items}
    products = {p.id: p for p in await db.scalars(select(Product).where(Product.id.in_(product_ids)))}
    missing = product_ids - products.keys()
    if missing:
        raise HTTPException(status_code=400, detail=[f"Unknown product {pid}" for pid in sorted(map(str, missing))])

    lines = [
        (item.quantity, item.price if item.price is not None else float(products[item.product_id].price or 0))
        for item in payload.items
    ]
    order = Order(
        order_number=new_order_number(),
        status=PENDING,
        total_amount=order_total(lines),
        customer_name=payload.customer_name.strip(),
        customer_email=payload.customer_email,
        customer_phone=payload.customer_phone,
        shipping_address=payload.shipping_address,
        shipping_city=payload.shipping_city,
    )
    db.add(order)
    await db.flush()

    items = []
    for item, (quantity, price) in zip(payload.items, lines):
        row = OrderItem(order_id=order.id, product_id=item.product_id, quantity=quantity, price=price)
        db.add(row)
        items.append(row)
    await db.commit()
    for row in items:
        await db.refresh(row)
    await db.refresh(order)

    invalidate_orders(query_client)
    logger.info("created order %s (%s items, total %s)", order.order_number, len(items), order.total_amount)
    return order_to_out(order, items)


@router.patch("/{order_id}/status", response_model=OrderStatusOut)
async def update_order_status(
    order_id: UUID,
    update: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    """
    Move an order to a new status.

    PENDING -> CONFIRMED consumes recipe materials from stock; cancelling a
    CONFIRMED or PROCESSING order returns them. Movements and the status change
    are committed together.
    """
    new_status = update.status.strip().upper()
    order, items = await _load_order(db, order_id)
    current = order.status

    try:
        check_transition(current, new_status)
    except InvalidStatusTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    recipes: dict = defaultdict(list)
    if items:
        recipe_rows = await db.execute(
            select(ProductRecipe.product_id, ProductRecipe.raw_material_id, ProductRecipe.quantity)
            .where(
                ProductRecipe.product_id.in_({i.product_id for i in items}),
                ProductRecipe.item_type == MATERIAL,
            )
        )
        for product_id, raw_material_id, quantity in recipe_rows:
            recipes[product_id].append((raw_material_id, quantity))

    planned = plan_stock_movements(
        order.order_number, current, new_status,
        [(i.product_id, i.quantity) for i in items], recipes,
    )

    applied = 0
    for movement in planned:
        material = await db.get(RawMaterial, movement.raw_material_id)
        if material is None:
            logger.warning("recipe references missing material %s", movement.raw_material_id)
            continue
        try:
            material.stock_quantity = apply_movement(
                material.stock_quantity, movement.movement_type, movement.quantity,
            )
        except ValidationFailed:
            await db.rollback()
            raise HTTPException(status_code=409, detail=f"Insufficient stock of {material.name}")
        db.add(StockMovement(
            raw_material_id=movement.raw_material_id,
            movement_type=movement.movement_type,
            quantity=movement.quantity,
            reason=movement.reason,
            order_id=order.id,
        ))
        applied += 1

    order.status = new_status
    order.admin_notes = update.admin_notes
    await db.commit()
    await db.refresh(order)
    invalidate_orders(query_client)

    logger.info("order %s %s -> %s, %d stock movements", order.order_number, current, new_status, applied)
    return OrderStatusOut(order=order_to_out(order, items), movements=applied)
