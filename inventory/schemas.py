from datetime import datetime, date
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field


class PaginationOut(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_previous: bool


class SupplierOut(BaseModel):
    id: UUID
    name: str
    contact: Optional[str]
    url: Optional[str]
    notes: Optional[str]
    material_count: int = 0

    model_config = {"from_attributes": True}


class MaterialOut(BaseModel):
    id: UUID
    name: str
    unit_price_try: Optional[float]
    stock_quantity: Optional[float]
    stock_unit: Optional[str]
    min_stock_quantity: Optional[float]
    min_stock_unit: Optional[str]
    lead_time_days: Optional[int]
    supplier_id: Optional[UUID]
    supplier_name: Optional[str] = None
    price_date: Optional[date]
    notes: Optional[str]
    stock_status: str          # CRITICAL | LOW | NORMAL
    reorder_quantity: float = 0

    model_config = {"from_attributes": True}


class MaterialsResponse(BaseModel):
    items: list[MaterialOut]
    pagination: PaginationOut


class StockUpdate(BaseModel):
    quantity: float
    reason: str = "Manual update"


class MovementIn(BaseModel):
    movement_type: str          # IN | OUT | ADJUSTMENT | RETURN
    quantity: float
    reason: str
    notes: Optional[str] = None


class MovementOut(BaseModel):
    id: UUID
    raw_material_id: UUID
    movement_type: str
    quantity: float
    reason: str
    order_id: Optional[UUID]
    notes: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class RecipeLineIn(BaseModel):
    raw_material_id: Optional[UUID] = None
    quantity: float
    unit: str = "adet"
    item_type: str = "MATERIAL"     # MATERIAL | LABOR
    cost_per_unit: Optional[float] = None
    notes: Optional[str] = None


class RecipeLineOut(BaseModel):
    id: UUID
    raw_material_id: Optional[UUID]
    material_name: Optional[str]
    quantity: float
    unit: str
    item_type: str
    unit_cost: float
    line_cost: float
    cost_share_percent: float


class ProductIn(BaseModel):
    name: str
    description: Optional[str] = None
    price: float
    category: Optional[str] = None
    sku: Optional[str] = None
    is_active: bool = True
    recipe: list[RecipeLineIn] = []


class ProductOut(BaseModel):
    id: UUID
    name: str
    description: Optional[str]
    price: float
    category: Optional[str]
    sku: Optional[str]
    is_active: bool

    model_config = {"from_attributes": True}


class ProductDetailOut(ProductOut):
    recipe: list[RecipeLineOut] = []
    cost: float = 0
    margin_percent: Optional[float] = None
    markup_percent: Optional[float] = None


class OrderItemIn(BaseModel):
    product_id: UUID
    quantity: int = Field(gt=0)
    price: Optional[float] = None       # defaults to the product's list price


class OrderItemOut(BaseModel):
    id: UUID
    product_id: UUID
    quantity: int
    price: float

    model_config = {"from_attributes": True}


class OrderIn(BaseModel):
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    shipping_address: Optional[str] = None
    shipping_city: Optional[str] = None
    items: list[OrderItemIn]


class OrderOut(BaseModel):
    id: UUID
    order_number: str
    status: str
    total_amount: float
    customer_name: str
    customer_email: Optional[str]
    customer_phone: Optional[str]
    shipping_address: Optional[str]
    shipping_city: Optional[str]
    admin_notes: Optional[str]
    created_at: datetime
    items: list[OrderItemOut] = []


class OrdersResponse(BaseModel):
    items: list[OrderOut]
    pagination: PaginationOut


class OrderStatusUpdate(BaseModel):
    status: str
    admin_notes: Optional[str] = None


class OrderStatusOut(BaseModel):
    order: OrderOut
    movements: int          # stock movements recorded by this transition


class DashboardStats(BaseModel):
    total_materials: int
    low_stock_count: int
    critical_stock_count: int
    total_orders: int
    pending_orders: int
    confirmed_orders: int
    total_revenue: float
    monthly_revenue: float


class DashboardAlert(BaseModel):
    type: str           # critical | warning | info
    message: str
    action: str


class DashboardMetrics(BaseModel):
    low_stock_percentage: int
    critical_stock_percentage: int
    completion_rate: int
    orders_in_progress: int
    average_order_value: float
    alerts: list[DashboardAlert]


class CacheStatsOut(BaseModel):
    size: int
    purged: int
    default_ttl: float
    single_flight: bool
