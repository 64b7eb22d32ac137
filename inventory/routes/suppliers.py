from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from inventory.auth import require_api_key
from inventory.cache import QueryClient
from inventory.database import get_db
from inventory.deps import get_query_client
from inventory.models import RawMaterial, Supplier
from inventory.schemas import SupplierOut

router = APIRouter(prefix="/api/suppliers", tags=["suppliers"])

SUPPLIERS_STALE_TIME = 300  # suppliers rarely change


@router.get("", response_model=list[SupplierOut])
async def list_suppliers(
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    async def fetch():
        material_count = (
            select(func.count(RawMaterial.id))
            .where(RawMaterial.supplier_id == Supplier.id)
            .correlate(Supplier)
            .scalar_subquery()
        )
        rows = (await db.execute(
            select(Supplier, material_count.label("material_count")).order_by(Supplier.name.asc())
        )).all()
        return [
            SupplierOut(
                id=s.id,
                name=s.name,
                contact=s.contact,
                url=s.url,
                notes=s.notes,
                material_count=count or 0,
            )
            for s, count in rows
        ]

    return await query_client.query("suppliers:list", fetch, stale_time=SUPPLIERS_STALE_TIME)
