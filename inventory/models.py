import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, Numeric, Text, Date,
    UniqueConstraint, Index, ForeignKey,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from inventory.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class Supplier(TimestampMixin, Base):
    __tablename__ = "suppliers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    contact = Column(String(255), nullable=True)
    url = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    raw_materials = relationship("RawMaterial", back_populates="supplier", lazy="select")

    __table_args__ = (
        UniqueConstraint("name", name="uq_supplier_name"),
    )


class RawMaterial(TimestampMixin, Base):
    __tablename__ = "raw_materials"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    unit_price_try = Column(Numeric(12, 2), nullable=True)
    stock_quantity = Column(Numeric(12, 3), nullable=True)
    stock_unit = Column(String(20), nullable=True)          # adet | m | kg | ...
    min_stock_quantity = Column(Numeric(12, 3), nullable=True)
    min_stock_unit = Column(String(20), nullable=True)
    lead_time_days = Column(Integer, nullable=True)
    supplier_id = Column(UUID(as_uuid=True), ForeignKey("suppliers.id"), nullable=True)
    contact_or_url = Column(Text, nullable=True)
    price_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    supplier = relationship("Supplier", back_populates="raw_materials", lazy="select")
    movements = relationship("StockMovement", back_populates="raw_material", lazy="select")

    __table_args__ = (
        UniqueConstraint("name", name="uq_raw_material_name"),
        Index("idx_raw_materials_supplier", "supplier_id"),
    )


class Product(TimestampMixin, Base):
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    category = Column(String(100), nullable=True)
    sku = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    recipes = relationship("ProductRecipe", back_populates="product", lazy="select")

    __table_args__ = (
        UniqueConstraint("sku", name="uq_product_sku"),
    )


class ProductRecipe(TimestampMixin, Base):
    __tablename__ = "product_recipes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False)
    raw_material_id = Column(UUID(as_uuid=True), ForeignKey("raw_materials.id"), nullable=True)  # null for LABOR
    quantity = Column(Numeric(12, 3), nullable=False)
    unit = Column(String(20), nullable=False, default="adet")
    item_type = Column(String(20), nullable=False, default="MATERIAL")  # MATERIAL | LABOR
    cost_per_unit = Column(Numeric(12, 2), nullable=True)               # LABOR lines only
    notes = Column(Text, nullable=True)

    product = relationship("Product", back_populates="recipes", lazy="select")
    raw_material = relationship("RawMaterial", lazy="select")

    __table_args__ = (
        Index("idx_product_recipes_product", "product_id"),
    )


class Order(TimestampMixin, Base):
    __tablename__ = "orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_number = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="PENDING")
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(254), nullable=True)
    customer_phone = Column(String(20), nullable=True)
    shipping_address = Column(Text, nullable=True)
    shipping_city = Column(String(100), nullable=True)
    admin_notes = Column(Text, nullable=True)

    items = relationship("OrderItem", back_populates="order", lazy="select")

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_order_number"),
        Index("idx_orders_status_created", "status", "created_at"),
    )


class OrderItem(TimestampMixin, Base):
    __tablename__ = "order_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items", lazy="select")
    product = relationship("Product", lazy="select")

    __table_args__ = (
        Index("idx_order_items_order", "order_id"),
    )


class StockMovement(TimestampMixin, Base):
    __tablename__ = "stock_movements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    raw_material_id = Column(UUID(as_uuid=True), ForeignKey("raw_materials.id"), nullable=False)
    movement_type = Column(String(20), nullable=False)  # IN | OUT | ADJUSTMENT | RETURN
    quantity = Column(Numeric(12, 3), nullable=False)
    reason = Column(String(255), nullable=False)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=True)
    notes = Column(Text, nullable=True)

    raw_material = relationship("RawMaterial", back_populates="movements", lazy="select")

    __table_args__ = (
        Index("idx_stock_movements_material_date", "raw_material_id", "created_at"),
    )
