"""
Pydantic Schemas for Request/Response Validation

Money leaves the API as float (two decimals); it is Decimal everywhere
inside the service.
"""

import uuid
from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from restopos.models import (
    OrderStatus,
    OrderType,
    PaymentMethod,
    PricingMode,
    QuantityType,
    TableStatus,
    UserRole,
)


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# SIDE EFFECTS
# =============================================================================

class SideEffectResponse(BaseModel):
    name: str
    ok: bool
    target: Optional[str] = None
    detail: Optional[str] = None
    skipped: bool = False


# =============================================================================
# OUTLETS & SETTINGS
# =============================================================================

class OutletCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["MG Road"])
    address: Optional[str] = None


class OutletUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = None


class OutletResponse(ORMModel):
    id: uuid.UUID
    name: str
    address: Optional[str] = None
    created_at: datetime


class OutletSwitchRequest(BaseModel):
    outlet_id: uuid.UUID


class OutletSummary(BaseModel):
    total_sales: float
    total_orders: int
    avg_order_value: float
    payment_breakdown: dict[str, float]
    period: str


class OutletSummaryResponse(BaseModel):
    outlet: OutletResponse
    summary: OutletSummary


class OutletSettingsUpdate(BaseModel):
    gst_enabled: Optional[bool] = None
    gst_percentage: Optional[float] = Field(None, ge=0, le=100, examples=[5])
    business_name: Optional[str] = Field(None, max_length=255)
    gstin: Optional[str] = Field(None, max_length=15)
    address: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=20)
    receipt_header: Optional[str] = None
    receipt_footer: Optional[str] = None
    currency_code: Optional[str] = Field(None, min_length=3, max_length=3)


class OutletSettingsResponse(ORMModel):
    outlet_id: uuid.UUID
    gst_enabled: bool = True
    gst_percentage: Optional[float] = None
    business_name: Optional[str] = None
    gstin: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    receipt_header: Optional[str] = None
    receipt_footer: Optional[str] = None
    currency_code: Optional[str] = None


# =============================================================================
# ROLES, MODULES & USERS
# =============================================================================

class ModuleResponse(ORMModel):
    id: uuid.UUID
    name: str
    display_name: str


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["Shift Manager"])
    description: Optional[str] = None


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None


class RolePermissionResponse(ORMModel):
    module_id: uuid.UUID
    module: ModuleResponse
    can_view: bool
    can_create: bool
    can_edit: bool
    can_delete: bool


class RoleResponse(ORMModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    created_at: datetime


class RoleDetailResponse(RoleResponse):
    permissions: List[RolePermissionResponse] = []


class PermissionFlags(BaseModel):
    module_id: uuid.UUID
    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False


class RolePermissionsUpsert(BaseModel):
    role_id: uuid.UUID
    permissions: List[PermissionFlags] = Field(..., min_length=1)


class RolePermissionsResult(BaseModel):
    success: bool
    count: int


class UserCreate(BaseModel):
    """Profile for an account that already exists in the auth service."""
    id: uuid.UUID
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    role: UserRole = UserRole.STAFF
    role_id: Optional[uuid.UUID] = None
    outlet_id: Optional[uuid.UUID] = None


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[UserRole] = None
    role_id: Optional[uuid.UUID] = None
    outlet_id: Optional[uuid.UUID] = None


class UserResponse(ORMModel):
    id: uuid.UUID
    name: str
    email: str
    role: UserRole
    role_id: Optional[uuid.UUID] = None
    role_name: Optional[str] = None
    outlet_id: Optional[uuid.UUID] = None
    current_outlet_id: Optional[uuid.UUID] = None
    created_at: datetime


# =============================================================================
# MENU
# =============================================================================

class CategoryCreate(BaseModel):
    outlet_id: Optional[uuid.UUID] = None
    name: str = Field(..., min_length=1, max_length=255, examples=["Starters"])
    description: Optional[str] = None
    display_order: int = 0


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    display_order: Optional[int] = None


class CategoryResponse(ORMModel):
    id: uuid.UUID
    outlet_id: uuid.UUID
    name: str
    description: Optional[str] = None
    display_order: int
    created_at: datetime


class CategoryListResponse(BaseModel):
    categories: List[CategoryResponse]


class MenuItemBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["Paneer Tikka"])
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100, examples=["Starters"])
    price: float = Field(..., ge=0, examples=[200])
    available: bool = True
    image_url: Optional[str] = Field(None, max_length=500)
    pricing_mode: PricingMode = PricingMode.FIXED
    base_price: Optional[float] = Field(None, ge=0)
    quarter_price: Optional[float] = Field(None, ge=0)
    half_price: Optional[float] = Field(None, ge=0)
    three_quarter_price: Optional[float] = Field(None, ge=0)
    full_price: Optional[float] = Field(None, ge=0)


class MenuItemCreate(MenuItemBase):
    outlet_id: Optional[uuid.UUID] = None
    outlet_ids: Optional[List[uuid.UUID]] = Field(
        None, description="Create the same item in each of these outlets"
    )


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    price: Optional[float] = Field(None, ge=0)
    available: Optional[bool] = None
    image_url: Optional[str] = Field(None, max_length=500)
    pricing_mode: Optional[PricingMode] = None
    base_price: Optional[float] = Field(None, ge=0)
    quarter_price: Optional[float] = Field(None, ge=0)
    half_price: Optional[float] = Field(None, ge=0)
    three_quarter_price: Optional[float] = Field(None, ge=0)
    full_price: Optional[float] = Field(None, ge=0)


class MenuItemResponse(ORMModel):
    id: uuid.UUID
    outlet_id: uuid.UUID
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    price: float
    available: bool
    image_url: Optional[str] = None
    pricing_mode: PricingMode
    base_price: Optional[float] = None
    quarter_price: Optional[float] = None
    half_price: Optional[float] = None
    three_quarter_price: Optional[float] = None
    full_price: Optional[float] = None
    created_at: datetime


class MenuCreateMeta(BaseModel):
    created_count: int
    error_count: int
    errors: List[dict[str, Any]] = []


class MenuCreateResponse(MenuItemResponse):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    meta: Optional[MenuCreateMeta] = Field(None, alias="_meta")


# =============================================================================
# TABLES
# =============================================================================

class TableCreate(BaseModel):
    outlet_id: Optional[uuid.UUID] = None
    name: str = Field(..., min_length=1, max_length=50, examples=["T1"])
    capacity: Optional[int] = Field(None, ge=1, le=100, examples=[4])


class TableUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    capacity: Optional[int] = Field(None, ge=1, le=100)
    status: Optional[TableStatus] = None


class TableResponse(ORMModel):
    id: uuid.UUID
    outlet_id: uuid.UUID
    name: str
    capacity: Optional[int] = None
    status: TableStatus
    updated_at: Optional[datetime] = None


class TableListResponse(BaseModel):
    tables: List[TableResponse]
    corrected: List[uuid.UUID] = []


# =============================================================================
# ORDERS
# =============================================================================

class OrderItemIn(BaseModel):
    """Single line of a new order; the price is taken from the menu."""
    item_id: uuid.UUID
    quantity: int = Field(..., ge=1, le=999, examples=[2])
    quantity_type: Optional[QuantityType] = None
    notes: Optional[str] = Field(None, max_length=500)


class OrderCreate(BaseModel):
    outlet_id: Optional[uuid.UUID] = None
    table_id: Optional[uuid.UUID] = None
    order_type: OrderType = OrderType.DINE_IN
    items: List[OrderItemIn] = Field(..., min_length=1)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    cancellation_reason: Optional[str] = Field(None, max_length=500)


class OrderItemChange(BaseModel):
    order_item_id: uuid.UUID
    quantity: Optional[int] = Field(None, ge=1, le=999)
    notes: Optional[str] = Field(None, max_length=500)


class OrderItemsUpdate(BaseModel):
    items_to_add: List[OrderItemIn] = []
    items_to_remove: List[uuid.UUID] = []
    items_to_update: List[OrderItemChange] = []


class OrderItemResponse(ORMModel):
    id: uuid.UUID
    item_id: Optional[uuid.UUID] = None
    item_name: str
    quantity: int
    quantity_type: Optional[QuantityType] = None
    price: float
    notes: Optional[str] = None


class OrderResponse(ORMModel):
    id: uuid.UUID
    outlet_id: uuid.UUID
    table_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    order_type: OrderType
    status: OrderStatus
    subtotal: float
    tax: float
    total: float
    payment_method: Optional[PaymentMethod] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []


class OrderActionResponse(BaseModel):
    """An order after a workflow, plus the outcome of each secondary write."""
    order: OrderResponse
    previous_status: Optional[OrderStatus] = None
    side_effects: List[SideEffectResponse] = []
    partial_failure: bool = False


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    count: int


# =============================================================================
# BILLING
# =============================================================================

class BillGenerateRequest(BaseModel):
    order_id: uuid.UUID
    payment_method: PaymentMethod
    tax_rate: Optional[float] = Field(
        None, ge=0, le=1, description="Defaults to the outlet's GST rate", examples=[0.05]
    )


class BillReprintRequest(BaseModel):
    order_id: uuid.UUID


class BillLine(BaseModel):
    name: str
    quantity: int
    price: float


class BillResponse(BaseModel):
    order_id: uuid.UUID
    outlet_id: uuid.UUID
    order_type: OrderType
    table_name: Optional[str] = None
    status: OrderStatus
    subtotal: float
    tax: float
    total: float
    payment_method: Optional[PaymentMethod] = None
    items: List[BillLine]
    created_at: Optional[datetime] = None
    billed_at: Optional[datetime] = None
    billed_by: Optional[str] = None
    side_effects: List[SideEffectResponse] = []
    partial_failure: bool = False


# =============================================================================
# INVENTORY
# =============================================================================

class InventoryUpdate(BaseModel):
    item_id: uuid.UUID
    stock: int = Field(..., ge=0, examples=[50])
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    outlet_id: Optional[uuid.UUID] = None


class InventoryResponse(ORMModel):
    id: uuid.UUID
    outlet_id: uuid.UUID
    item_id: uuid.UUID
    item_name: Optional[str] = None
    stock: int
    low_stock_threshold: int
    is_low: bool
    updated_at: Optional[datetime] = None


class InventoryAdjustResponse(BaseModel):
    inventory: InventoryResponse
    change: int
    created: bool


class InventoryLogResponse(ORMModel):
    id: uuid.UUID
    outlet_id: uuid.UUID
    item_id: uuid.UUID
    change: int
    reason: str
    created_by: Optional[uuid.UUID] = None
    created_at: datetime


# =============================================================================
# REPORTS & ANALYTICS
# =============================================================================

class DailyReportResponse(BaseModel):
    date: date
    total_sales: float
    total_orders: int
    orders: List[OrderResponse]


class ItemwiseRow(BaseModel):
    item_id: Optional[uuid.UUID] = None
    item_name: str
    quantity: int
    revenue: float


class ItemwiseReportResponse(BaseModel):
    items: List[ItemwiseRow]


class StaffRow(BaseModel):
    user_id: Optional[uuid.UUID] = None
    user_name: str
    orders: int
    total_sales: float


class StaffReportResponse(BaseModel):
    staff: List[StaffRow]


class SalesSummaryResponse(BaseModel):
    total_sales: float
    total_orders: int
    completed_orders: int
    cancelled_orders: int
    average_order_value: float
    cancellation_rate: float


class PaymentBreakdownRow(BaseModel):
    method: PaymentMethod
    amount: float


class PaymentBreakdownResponse(BaseModel):
    data: List[PaymentBreakdownRow]


class TopItemsResponse(BaseModel):
    top: List[ItemwiseRow]
    low: List[ItemwiseRow]


class TrendPoint(BaseModel):
    date: str
    time: Optional[str] = None
    sales: float
    order_count: int


class SalesTrendResponse(BaseModel):
    data: List[TrendPoint]
    period: str
    total_orders: int
    total_sales: float


class PeakHour(BaseModel):
    hour: str
    orders: int


class PeakHoursResponse(BaseModel):
    data: List[PeakHour]


class StaffPerformanceRow(BaseModel):
    user_id: uuid.UUID
    name: str
    orders: int
    sales: float


class StaffPerformanceResponse(BaseModel):
    data: List[StaffPerformanceRow]


class OrderListLine(BaseModel):
    name: str
    quantity: int
    price: float


class OrderListEntry(BaseModel):
    id: uuid.UUID
    order_number: str
    total: float
    status: OrderStatus
    payment_method: Optional[PaymentMethod] = None
    created_at: datetime
    items: List[OrderListLine]


class OrderListGroup(BaseModel):
    date: date
    orders: List[OrderListEntry]
    total_sales: float
    order_count: int


class OrdersListResponse(BaseModel):
    """``orders`` when ungrouped, ``grouped`` when grouped by date."""
    orders: Optional[List[OrderListEntry]] = None
    grouped: Optional[List[OrderListGroup]] = None
    total_orders: int
    total_sales: float


class OutletwiseRow(BaseModel):
    outlet_id: uuid.UUID
    outlet_name: str
    orders: int
    total_sales: float


class OutletwiseReportResponse(BaseModel):
    outlets: List[OutletwiseRow]


# =============================================================================
# HEALTH
# =============================================================================

class HealthResponse(BaseModel):
    status: str
    environment: str
    version: str
    services: dict[str, str]
    timestamp: datetime
