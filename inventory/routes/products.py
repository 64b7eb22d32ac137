import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from inventory.auth import require_api_key
from inventory.cache import QueryClient
from inventory.database import get_db
from inventory.deps import get_query_client
from inventory.models import Product, ProductRecipe, RawMaterial
from inventory.pricing import (
    LABOR, MATERIAL, cost_share_percent, line_cost, margin_percent, markup_percent, recipe_cost,
)
from inventory.schemas import ProductDetailOut, ProductIn, ProductOut, RecipeLineOut
from inventory.validation import (
    validate_length, validate_multiple, validate_positive_number, validate_required,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])

PRODUCTS_STALE_TIME = 300


def product_to_out(p: Product) -> ProductOut:
    return ProductOut(
        id=p.id,
        name=p.name,
        description=p.description,
        price=float(p.price or 0),
        category=p.category,
        sku=p.sku,
        is_active=p.is_active,
    )


async def load_product_detail(db: AsyncSession, product_id: UUID) -> Optional[ProductDetailOut]:
    product = await db.get(Product, product_id)
    if product is None:
        return None

    rows = (await db.execute(
        select(ProductRecipe, RawMaterial.name, RawMaterial.unit_price_try)
        .join(RawMaterial, ProductRecipe.raw_material_id == RawMaterial.id, isouter=True)
        .where(ProductRecipe.product_id == product_id)
        .order_by(ProductRecipe.item_type.desc(), RawMaterial.name.asc())
    )).all()

    lines = []
    for recipe, material_name, material_price in rows:
        unit_cost = recipe.cost_per_unit if recipe.item_type == LABOR else material_price
        lines.append({
            "recipe": recipe,
            "material_name": material_name,
            "quantity": recipe.quantity,
            "unit_cost": float(unit_cost or 0),
        })

    total = recipe_cost(lines)
    price = float(product.price or 0)
    recipe_out = []
    for line in lines:
        cost = round(line_cost(line["quantity"], line["unit_cost"]), 2)
        recipe_out.append(RecipeLineOut(
            id=line["recipe"].id,
            raw_material_id=line["recipe"].raw_material_id,
            material_name=line["material_name"],
            quantity=float(line["quantity"]),
            unit=line["recipe"].unit,
            item_type=line["recipe"].item_type,
            unit_cost=line["unit_cost"],
            line_cost=cost,
            cost_share_percent=cost_share_percent(cost, total),
        ))

    return ProductDetailOut(
        **product_to_out(product).model_dump(),
        recipe=recipe_out,
        cost=total,
        margin_percent=margin_percent(price, total),
        markup_percent=markup_percent(price, total),
    )


@router.get("", response_model=list[ProductOut])
async def list_products(
    active: Optional[bool] = Query(None, description="Filter by is_active"),
    category: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    async def fetch():
        stmt = select(Product).order_by(Product.name.asc())
        if active is not None:
            stmt = stmt.where(Product.is_active == active)
        if category:
            stmt = stmt.where(Product.category == category)
        return [product_to_out(p) for p in await db.scalars(stmt)]

    return await query_client.query(
        f"products:list:{active}:{category}", fetch, stale_time=PRODUCTS_STALE_TIME,
    )


@router.get("/{product_id}", response_model=ProductDetailOut)
async def get_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    async def fetch():
        detail = await load_product_detail(db, product_id)
        if detail is None:
            # raising keeps the miss out of the cache
            raise HTTPException(status_code=404, detail="Product not found")
        return detail

    return await query_client.query(f"products:detail:{product_id}", fetch, stale_time=PRODUCTS_STALE_TIME)


@router.post("", response_model=ProductDetailOut, status_code=201)
async def create_product(
    payload: ProductIn,
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    checks = [
        validate_required(payload.name, "Name"),
        validate_length(payload.name, field_name="Name"),
        validate_positive_number(payload.price, "Price"),
    ]
    for i, line in enumerate(payload.recipe, start=1):
        checks.append(validate_positive_number(line.quantity, f"Recipe line {i} quantity"))
        if line.item_type not in (MATERIAL, LABOR):
            checks.append(validate_required(None, f"Recipe line {i} item type MATERIAL or LABOR"))
        elif line.item_type == MATERIAL and line.raw_material_id is None:
            checks.append(validate_required(None, f"Recipe line {i} raw material"))
    result = validate_multiple(checks)
    if not result.is_valid:
        raise HTTPException(status_code=400, detail=result.errors)

    product = Product(
        name=payload.name.strip(),
        description=payload.description,
        price=payload.price,
        category=payload.category,
        sku=payload.sku,
        is_active=payload.is_active,
    )
    db.add(product)
    await db.flush()
    for line in payload.recipe:
        db.add(ProductRecipe(
            product_id=product.id,
            raw_material_id=line.raw_material_id,
            quantity=line.quantity,
            unit=line.unit,
            item_type=line.item_type,
            cost_per_unit=line.cost_per_unit,
            notes=line.notes,
        ))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="A product with this SKU already exists")

    query_client.invalidate_prefix("products:")
    logger.info("created product %s with %d recipe lines", product.name, len(payload.recipe))
    return await load_product_detail(db, product.id)
