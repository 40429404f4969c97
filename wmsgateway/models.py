"""Модели данных WMS backend и фронтенда.

На проводе бэкенд использует camelCase, в Python — snake_case.
Лишние поля ответов игнорируются (кроме Company — она ретранслируется
как есть).
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WmsModel(BaseModel):
    """Базовая модель: camelCase алиасы, заполнение и по имени поля."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        """Тело запроса для бэкенда (camelCase, без None)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class OrderType(str, Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    RESERVED = "RESERVED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ScheduleType(str, Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"
    INVENTORY_CHECK = "INVENTORY_CHECK"
    MEETING = "MEETING"
    ETC = "ETC"


class StockStatus(str, Enum):
    """Качественный статус остатка для UI."""

    NORMAL = "정상"
    LOW = "부족"
    CRITICAL = "위험"


# ========== Ответы бэкенда ==========


class ItemResponse(WmsModel):
    item_id: int
    item_name: str
    item_code: str
    item_group: str | None = None
    spec: str | None = None
    unit: str | None = None
    unit_price_in: float | None = None
    unit_price_out: float | None = None
    created_at: str | None = None


class UserResponse(WmsModel):
    user_id: int
    username: str
    email: str | None = None
    full_name: str | None = None
    role: str | None = None
    status: str | None = None
    last_login: str | None = None
    joined_at: str | None = None


class SessionUserResponse(WmsModel):
    """Пользователь из /api/auth/login и /api/auth/me (snake_case поля)."""

    user_id: int
    username: str
    email: str | None = None
    full_name: str | None = None
    role: str | None = None
    joined_at: str | None = None


class LoginResponse(WmsModel):
    message: str | None = None
    user: SessionUserResponse
    # Есть только в развёртываниях с bearer моделью
    token: str | None = None


class InOutOrderItemResponse(WmsModel):
    item_id: int
    item_code: str | None = None
    item_name: str | None = None
    specification: str | None = None
    requested_quantity: int | None = None
    actual_quantity: int | None = None
    processed_quantity: int | None = None


class InOutOrderResponse(WmsModel):
    order_id: int
    type: str
    status: str
    company_id: int | None = None
    company_code: str | None = None
    company_name: str | None = None
    items: list[InOutOrderItemResponse] = Field(default_factory=list)
    expected_date: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class InventoryResponse(WmsModel):
    item_id: int
    item_name: str | None = None
    location_code: str | None = None
    quantity: int
    last_updated: str | None = None


class ScheduleResponse(WmsModel):
    schedule_id: int
    title: str
    start_time: str
    end_time: str
    type: str


class Company(WmsModel):
    """Компания-контрагент. Поля сверх известных сохраняются."""

    model_config = ConfigDict(extra="allow")

    company_id: int | None = None
    company_code: str | None = None
    company_name: str | None = None


class RackInventoryItem(WmsModel):
    id: int
    rack_code: str
    item_id: int
    item_code: str | None = None
    item_name: str | None = None
    quantity: int
    last_updated: str | None = None


class Rack(WmsModel):
    id: int
    rack_code: str
    section: str | None = None
    position: int | None = None
    description: str | None = None
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None
    inventories: list[RackInventoryItem] | None = None


class RackMapResponse(WmsModel):
    id: int
    rack_code: str
    section: str | None = None
    position: int | None = None
    is_active: bool = True
    has_inventory: bool = False


# ========== Дашборд ==========


class DashboardSummary(WmsModel):
    total_items: int = 0
    total_inventory: int = 0
    inbound_pending: int = 0
    outbound_pending: int = 0


class DashboardPayload(WmsModel):
    """Содержимое дашборда без времени загрузки.

    Одинаковая форма для сводного эндпоинта и для fallback.
    """

    items: list[ItemResponse]
    users: list[UserResponse]
    orders: list[InOutOrderResponse]
    inventory: list[InventoryResponse]
    schedules: list[ScheduleResponse]
    summary: DashboardSummary


class DashboardData(DashboardPayload):
    # Миллисекунды от начала первой (сводной) попытки
    total_load_time: int = Field(ge=0)


# ========== Запросы ==========


class InOutOrderLine(WmsModel):
    item_id: int
    quantity: int


class OutboundOrderLine(WmsModel):
    """Строка исходящего заказа, как её заполняет UI."""

    item_id: int
    requested_quantity: int
    location_code: str | None = None


class InOutOrderRequest(WmsModel):
    type: OrderType
    company_id: int
    expected_date: str
    notes: str | None = None
    items: list[InOutOrderLine]
    location_code: str | None = None


class ScheduleRequest(WmsModel):
    title: str
    start_time: str
    end_time: str
    type: ScheduleType


# ========== Модели фронтенда ==========


class User(WmsModel):
    id: int
    username: str
    email: str | None = None
    full_name: str | None = None
    role: str | None = None
    status: str | None = None
    last_login: datetime | None = None
    created_at: date | None = None


class LoginResult(WmsModel):
    message: str | None = None
    user: User


class InOutRecord(WmsModel):
    """Строка заказа для UI. id — составной "<orderId>-<itemIndex>"."""

    id: str
    type: str
    product_name: str
    sku: str
    individual_code: str
    specification: str
    quantity: int
    location: str
    company: str
    company_code: str
    status: str
    destination: str
    date: str
    time: str
    notes: str


class InventoryItem(WmsModel):
    id: int
    name: str | None = None
    sku: str
    specification: str
    quantity: int
    inbound_scheduled: int = 0
    outbound_scheduled: int = 0
    location: str | None = None
    status: StockStatus
    last_update: str | None = None
