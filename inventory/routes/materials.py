import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from inventory.auth import require_api_key
from inventory.cache import QueryClient
from inventory.database import get_db
from inventory.deps import get_query_client
from inventory.errors import ValidationFailed
from inventory.models import RawMaterial, StockMovement, Supplier
from inventory.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, pagination_meta, page_offset
from inventory.schemas import MaterialOut, MaterialsResponse, MovementIn, MovementOut, StockUpdate
from inventory.stock import (
    LOW_RATIO, MOVEMENT_ADJUSTMENT, apply_movement, check_stock_quantity,
    reorder_quantity, stock_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/materials", tags=["materials"])

LIST_STALE_TIME = 120       # stock lists can be a bit stale
LOW_STOCK_STALE_TIME = 30   # low stock should be fresh
MOVEMENTS_STALE_TIME = 60
MOVEMENTS_LIMIT = 50

# Cache families touched by any stock change
STOCK_CACHE_PREFIXES = ("materials:", "dashboard:", "reports:")


def _num(value) -> Optional[float]:
    return float(value) if value is not None else None


def material_to_out(m: RawMaterial, supplier_name: Optional[str] = None) -> MaterialOut:
    return MaterialOut(
        id=m.id,
        name=m.name,
        unit_price_try=_num(m.unit_price_try),
        stock_quantity=_num(m.stock_quantity),
        stock_unit=m.stock_unit,
        min_stock_quantity=_num(m.min_stock_quantity),
        min_stock_unit=m.min_stock_unit,
        lead_time_days=m.lead_time_days,
        supplier_id=m.supplier_id,
        supplier_name=supplier_name,
        price_date=m.price_date,
        notes=m.notes,
        stock_status=stock_status(m.stock_quantity, m.min_stock_quantity),
        reorder_quantity=reorder_quantity(m.stock_quantity, m.min_stock_quantity),
    )


def invalidate_stock(query_client: QueryClient) -> None:
    for prefix in STOCK_CACHE_PREFIXES:
        query_client.invalidate_prefix(prefix)


def low_stock_condition():
    return and_(
        RawMaterial.stock_quantity.is_not(None),
        RawMaterial.min_stock_quantity > 0,
        RawMaterial.stock_quantity <= RawMaterial.min_stock_quantity * LOW_RATIO,
    )


async def _get_material(db: AsyncSession, material_id: UUID) -> RawMaterial:
    material = await db.get(RawMaterial, material_id)
    if material is None:
        raise HTTPException(status_code=404, detail="Material not found")
    return material


@router.get("", response_model=MaterialsResponse)
async def list_materials(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, description="Substring match on material name"),
    low_stock: bool = Query(False, description="Only materials at or below min stock + 20%"),
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    async def fetch():
        conditions = []
        if search and search.strip():
            conditions.append(RawMaterial.name.ilike(f"%{search.strip()}%"))
        if low_stock:
            conditions.append(low_stock_condition())
        where_clause = and_(*conditions) if conditions else True

        total = await db.scalar(select(func.count()).select_from(RawMaterial).where(where_clause)) or 0
        rows = (await db.execute(
            select(RawMaterial, Supplier.name)
            .join(Supplier, RawMaterial.supplier_id == Supplier.id, isouter=True)
            .where(where_clause)
            .order_by(RawMaterial.name.asc())
            .offset(page_offset(page, page_size))
            .limit(page_size)
        )).all()

        return MaterialsResponse(
            items=[material_to_out(m, supplier_name) for m, supplier_name in rows],
            pagination=pagination_meta(total, page, page_size),
        )

    cache_key = f"materials:list:{page}:{page_size}:{search}:{low_stock}"
    return await query_client.query(cache_key, fetch, stale_time=LIST_STALE_TIME)


@router.get("/low-stock", response_model=list[MaterialOut])
async def list_low_stock(
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    async def fetch():
        rows = (await db.execute(
            select(RawMaterial, Supplier.name)
            .join(Supplier, RawMaterial.supplier_id == Supplier.id, isouter=True)
            .where(low_stock_condition())
            .order_by(RawMaterial.name.asc())
        )).all()
        return [material_to_out(m, supplier_name) for m, supplier_name in rows]

    return await query_client.query("materials:low-stock", fetch, stale_time=LOW_STOCK_STALE_TIME)


@router.get("/{material_id}", response_model=MaterialOut)
async def get_material(
    material_id: UUID,
    db: AsyncSession = Depends(get_db),
    _key: str = Depends(require_api_key),
):
    material = await _get_material(db, material_id)
    supplier_name = None
    if material.supplier_id:
        supplier_name = await db.scalar(select(Supplier.name).where(Supplier.id == material.supplier_id))
    return material_to_out(material, supplier_name)


@router.patch("/{material_id}/stock", response_model=MaterialOut)
async def update_stock(
    material_id: UUID,
    update: StockUpdate,
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    """Set the absolute stock level; the change is recorded as an ADJUSTMENT movement."""
    try:
        quantity = check_stock_quantity(update.quantity)
    except ValidationFailed as exc:
        raise HTTPException(status_code=400, detail=exc.errors)

    material = await _get_material(db, material_id)
    previous = material.stock_quantity
    material.stock_quantity = quantity
    db.add(StockMovement(
        raw_material_id=material.id,
        movement_type=MOVEMENT_ADJUSTMENT,
        quantity=quantity,
        reason=update.reason,
    ))
    await db.commit()
    await db.refresh(material)
    invalidate_stock(query_client)

    logger.info("stock of %s set %s -> %s (%s)", material.name, previous, quantity, update.reason)
    return material_to_out(material)


@router.post("/{material_id}/movements", response_model=MovementOut, status_code=201)
async def record_movement(
    material_id: UUID,
    movement: MovementIn,
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    material = await _get_material(db, material_id)
    movement_type = movement.movement_type.strip().upper()
    try:
        material.stock_quantity = apply_movement(material.stock_quantity, movement_type, movement.quantity)
    except ValidationFailed as exc:
        raise HTTPException(status_code=400, detail=exc.errors)

    row = StockMovement(
        raw_material_id=material.id,
        movement_type=movement_type,
        quantity=movement.quantity,
        reason=movement.reason,
        notes=movement.notes,
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)
    invalidate_stock(query_client)

    logger.info("%s %s of %s (%s)", movement_type, movement.quantity, material.name, movement.reason)
    return row


@router.get("/{material_id}/movements", response_model=list[MovementOut])
async def list_movements(
    material_id: UUID,
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    async def fetch():
        rows = await db.scalars(
            select(StockMovement)
            .where(StockMovement.raw_material_id == material_id)
            .order_by(StockMovement.created_at.desc())
            .limit(MOVEMENTS_LIMIT)
        )
        return [MovementOut.model_validate(m) for m in rows]

    return await query_client.query(
        f"materials:movements:{material_id}", fetch, stale_time=MOVEMENTS_STALE_TIME,
    )
