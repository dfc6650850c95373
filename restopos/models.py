"""
SQLAlchemy Database Models

Outlet-scoped point-of-sale schema:
- Outlets and their tax/receipt settings
- Menu categories and items with fixed or portion-based pricing
- Dine-in tables whose status mirrors the active orders seated at them
- Orders with frozen line prices, billing totals and payment method
- Inventory per (outlet, item) with an append-only change log
- Users, custom roles and per-module permissions
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from restopos.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    NEW = "NEW"
    PREPARING = "PREPARING"
    READY = "READY"
    SERVED = "SERVED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


ACTIVE_ORDER_STATUSES = (
    OrderStatus.NEW,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.SERVED,
)
TERMINAL_ORDER_STATUSES = (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class OrderType(str, enum.Enum):
    DINE_IN = "DINE_IN"
    TAKEAWAY = "TAKEAWAY"


class TableStatus(str, enum.Enum):
    EMPTY = "EMPTY"
    OCCUPIED = "OCCUPIED"
    BILLED = "BILLED"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    UPI = "UPI"
    CARD = "CARD"


class UserRole(str, enum.Enum):
    """Built-in roles; custom roles are stored in the roles table."""
    ADMIN = "admin"
    CASHIER = "cashier"
    STAFF = "staff"


class PricingMode(str, enum.Enum):
    FIXED = "fixed"
    QUANTITY_AUTO = "quantity_auto"
    QUANTITY_MANUAL = "quantity_manual"


class QuantityType(str, enum.Enum):
    QUARTER = "QUARTER"              # 250gm
    HALF = "HALF"                    # 500gm
    THREE_QUARTER = "THREE_QUARTER"  # 750gm
    FULL = "FULL"                    # 1kg
    CUSTOM = "CUSTOM"


# =============================================================================
# OUTLETS
# =============================================================================

class Outlet(Base):
    """A single restaurant location; the tenancy boundary for operational data."""
    __tablename__ = "outlets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Outlet {self.name}>"


class OutletSettings(Base):
    """Tax and receipt configuration, at most one row per outlet."""
    __tablename__ = "outlet_settings"

    outlet_id = Column(Uuid, ForeignKey("outlets.id", ondelete="CASCADE"), primary_key=True)

    gst_enabled = Column(Boolean, default=True, nullable=False)
    gst_percentage = Column(Numeric(5, 2), nullable=True)

    business_name = Column(String(255), nullable=True)
    gstin = Column(String(15), nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String(20), nullable=True)
    receipt_header = Column(Text, nullable=True)
    receipt_footer = Column(Text, nullable=True)
    currency_code = Column(String(3), nullable=True)

    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# =============================================================================
# ACCESS CONTROL
# =============================================================================

class Module(Base):
    """A permission-checked area of the back office (menu, orders, ...)."""
    __tablename__ = "modules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False, unique=True)
    display_name = Column(String(100), nullable=False)


class Role(Base):
    __tablename__ = "roles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    permissions = relationship(
        "RolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class RolePermission(Base):
    __tablename__ = "role_permissions"
    __table_args__ = (UniqueConstraint("role_id", "module_id", name="uq_role_module"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    role_id = Column(Uuid, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    module_id = Column(Uuid, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False)

    can_view = Column(Boolean, default=False, nullable=False)
    can_create = Column(Boolean, default=False, nullable=False)
    can_edit = Column(Boolean, default=False, nullable=False)
    can_delete = Column(Boolean, default=False, nullable=False)

    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    role = relationship("Role", back_populates="permissions")
    module = relationship("Module", lazy="selectin")


class User(Base):
    """
    Staff profile. The id is issued by the external auth service and is the
    subject of the session token.
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)

    role = Column(Enum(UserRole), default=UserRole.STAFF, nullable=False)
    role_id = Column(Uuid, ForeignKey("roles.id", ondelete="SET NULL"), nullable=True)

    outlet_id = Column(Uuid, ForeignKey("outlets.id", ondelete="SET NULL"), nullable=True)
    # Admin-only override selected through /outlets/switch
    current_outlet_id = Column(Uuid, ForeignKey("outlets.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    custom_role = relationship("Role", lazy="selectin")

    @property
    def role_name(self) -> str:
        return self.custom_role.name if self.custom_role else self.role.value

    def __repr__(self):
        return f"<User {self.email} - {self.role.value}>"


# =============================================================================
# MENU & TABLES
# =============================================================================

class Category(Base):
    """Menu section of an outlet. Menu items refer to it by name."""
    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("outlet_id", "name", name="uq_outlet_category"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    outlet_id = Column(Uuid, ForeignKey("outlets.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    display_order = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Category {self.name}>"


class MenuItem(Base):
    __tablename__ = "items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    outlet_id = Column(Uuid, ForeignKey("outlets.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True, index=True)
    available = Column(Boolean, default=True, nullable=False)
    image_url = Column(String(500), nullable=True)

    # =========================================================================
    # PRICING
    # =========================================================================
    price = Column(Numeric(10, 2), nullable=False)
    pricing_mode = Column(Enum(PricingMode), default=PricingMode.FIXED, nullable=False)
    base_price = Column(Numeric(10, 2), nullable=True)
    quarter_price = Column(Numeric(10, 2), nullable=True)
    half_price = Column(Numeric(10, 2), nullable=True)
    three_quarter_price = Column(Numeric(10, 2), nullable=True)
    full_price = Column(Numeric(10, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<MenuItem {self.name} @ {self.price}>"


class DiningTable(Base):
    """
    Physical dine-in seat. ``status`` is derived from the orders seated at
    the table and is repaired on read by the table reconciler.
    """
    __tablename__ = "tables"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    outlet_id = Column(Uuid, ForeignKey("outlets.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    capacity = Column(Integer, nullable=True)
    status = Column(Enum(TableStatus), default=TableStatus.EMPTY, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Table {self.name} - {self.status.value}>"


# =============================================================================
# ORDERS
# =============================================================================

class Order(Base):
    __tablename__ = "orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    outlet_id = Column(Uuid, ForeignKey("outlets.id", ondelete="CASCADE"), nullable=False, index=True)
    table_id = Column(Uuid, ForeignKey("tables.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    order_type = Column(Enum(OrderType), default=OrderType.DINE_IN, nullable=False)
    status = Column(Enum(OrderStatus), default=OrderStatus.NEW, nullable=False, index=True)

    # =========================================================================
    # PRICING
    # =========================================================================
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    payment_method = Column(Enum(PaymentMethod), nullable=True)

    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.created_at",
    )
    table = relationship("DiningTable", lazy="selectin")
    creator = relationship("User", lazy="selectin")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES

    def __repr__(self):
        return f"<Order {self.id} - {self.order_type.value} - {self.status.value}>"


class OrderItem(Base):
    """Order line. Name and unit price are frozen when the line is created."""
    __tablename__ = "order_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Uuid, ForeignKey("items.id", ondelete="SET NULL"), nullable=True)

    item_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    quantity_type = Column(Enum(QuantityType), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    order = relationship("Order", back_populates="items")

    @property
    def line_total(self):
        return self.price * self.quantity


# =============================================================================
# INVENTORY
# =============================================================================

class Inventory(Base):
    __tablename__ = "inventory"
    __table_args__ = (UniqueConstraint("outlet_id", "item_id", name="uq_inventory_outlet_item"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    outlet_id = Column(Uuid, ForeignKey("outlets.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Uuid, ForeignKey("items.id", ondelete="CASCADE"), nullable=False)

    stock = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=10)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    item = relationship("MenuItem", lazy="selectin")

    @property
    def item_name(self):
        return self.item.name if self.item else None

    @property
    def is_low(self) -> bool:
        return self.stock <= self.low_stock_threshold


class InventoryLog(Base):
    """
    Append-only audit trail of stock changes. Rows are never updated or
    deleted, and carry no foreign key so they outlive the item they describe.
    """
    __tablename__ = "inventory_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    outlet_id = Column(Uuid, nullable=False, index=True)
    item_id = Column(Uuid, nullable=False, index=True)
    change = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False)
    created_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<InventoryLog {self.item_id} {self.change:+d}>"
