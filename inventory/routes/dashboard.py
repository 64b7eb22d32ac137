from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from inventory.auth import require_api_key
from inventory.cache import QueryClient
from inventory.database import get_db
from inventory.deps import get_query_client
from inventory.models import Order, RawMaterial
from inventory.orders import CONFIRMED, PENDING, REVENUE_STATUSES
from inventory.routes.materials import low_stock_condition
from inventory.schemas import DashboardAlert, DashboardMetrics, DashboardStats

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

STATS_KEY = "dashboard:stats"
STATS_STALE_TIME = 60   # dashboard stats can be a bit stale


def _percent(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole > 0 else 0


async def load_dashboard_stats(db: AsyncSession, now: Optional[datetime] = None) -> DashboardStats:
    now = now or datetime.now(timezone.utc)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    total_materials = await db.scalar(select(func.count()).select_from(RawMaterial))
    low_stock = await db.scalar(select(func.count()).select_from(RawMaterial).where(low_stock_condition()))
    critical_stock = await db.scalar(
        select(func.count()).select_from(RawMaterial).where(
            and_(
                RawMaterial.stock_quantity.is_not(None),
                RawMaterial.min_stock_quantity > 0,
                RawMaterial.stock_quantity <= RawMaterial.min_stock_quantity,
            )
        )
    )

    status_rows = await db.execute(
        select(Order.status, func.count().label("cnt")).group_by(Order.status)
    )
    by_status = {row.status: row.cnt for row in status_rows}

    total_revenue = await db.scalar(
        select(func.coalesce(func.sum(Order.total_amount), 0)).where(Order.status.in_(REVENUE_STATUSES))
    )
    monthly_revenue = await db.scalar(
        select(func.coalesce(func.sum(Order.total_amount), 0)).where(
            and_(Order.status.in_(REVENUE_STATUSES), Order.created_at >= month_start)
        )
    )

    return DashboardStats(
        total_materials=total_materials or 0,
        low_stock_count=low_stock or 0,
        critical_stock_count=critical_stock or 0,
        total_orders=sum(by_status.values()),
        pending_orders=by_status.get(PENDING, 0),
        confirmed_orders=by_status.get(CONFIRMED, 0),
        total_revenue=float(total_revenue or 0),
        monthly_revenue=float(monthly_revenue or 0),
    )


def derive_metrics(stats: DashboardStats) -> DashboardMetrics:
    alerts = []
    if stats.critical_stock_count > 0:
        alerts.append(DashboardAlert(
            type="critical",
            message=f"{stats.critical_stock_count} materials at critical stock level",
            action="Check stock",
        ))
    if stats.low_stock_count > 0:
        alerts.append(DashboardAlert(
            type="warning",
            message=f"{stats.low_stock_count} materials at low stock level",
            action="Review reorder suggestions",
        ))
    if stats.pending_orders > 0:
        alerts.append(DashboardAlert(
            type="info",
            message=f"{stats.pending_orders} pending orders",
            action="Check orders",
        ))

    if stats.total_orders > 0:
        completion_rate = _percent(stats.total_orders - stats.pending_orders, stats.total_orders)
        average_order_value = round(stats.total_revenue / stats.total_orders, 2)
    else:
        completion_rate = 100
        average_order_value = 0.0

    return DashboardMetrics(
        low_stock_percentage=_percent(stats.low_stock_count, stats.total_materials),
        critical_stock_percentage=_percent(stats.critical_stock_count, stats.total_materials),
        completion_rate=completion_rate,
        orders_in_progress=stats.confirmed_orders,
        average_order_value=average_order_value,
        alerts=alerts,
    )


async def _cached_stats(db: AsyncSession, query_client: QueryClient) -> DashboardStats:
    return await query_client.query(STATS_KEY, lambda: load_dashboard_stats(db), stale_time=STATS_STALE_TIME)


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    return await _cached_stats(db, query_client)


@router.get("/metrics", response_model=DashboardMetrics)
async def get_dashboard_metrics(
    db: AsyncSession = Depends(get_db),
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    return derive_metrics(await _cached_stats(db, query_client))
