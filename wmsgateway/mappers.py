"""Преобразование ответов бэкенда в модели фронтенда."""

from collections.abc import Iterable, Sequence
from datetime import date, datetime

from wmsgateway.models import (
    InOutOrderResponse,
    InOutRecord,
    InventoryItem,
    InventoryResponse,
    OrderStatus,
    SessionUserResponse,
    StockStatus,
    User,
    UserResponse,
)

# Пороги статуса остатка (включительно)
CRITICAL_STOCK_THRESHOLD = 0
LOW_STOCK_THRESHOLD = 10

DEFAULT_LOCATION = "A-01"
NOT_AVAILABLE = "N/A"

STATUS_COMPLETED_LABEL = "완료"
STATUS_IN_PROGRESS_LABEL = "진행 중"


def stock_status(quantity: int) -> StockStatus:
    """Статус остатка по количеству."""
    if quantity <= CRITICAL_STOCK_THRESHOLD:
        return StockStatus.CRITICAL
    if quantity <= LOW_STOCK_THRESHOLD:
        return StockStatus.LOW
    return StockStatus.NORMAL


def to_user(user: UserResponse) -> User:
    return User(
        id=user.user_id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        status=user.status,
        last_login=user.last_login or None,
        created_at=user.joined_at[:10] if user.joined_at else date.today(),
    )


def session_user_to_user(user: SessionUserResponse) -> User:
    """Пользователь текущей сессии: всегда ACTIVE, вход — сейчас."""
    return User(
        id=user.user_id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        status="ACTIVE",
        last_login=datetime.now(),
        created_at=user.joined_at[:10] if user.joined_at else date.today(),
    )


def _split_timestamp(value: str) -> tuple[str, str]:
    day, _, rest = value.partition("T")
    return day, rest[:8] or "00:00:00"


def to_inout_records(orders: Iterable[InOutOrderResponse]) -> list[InOutRecord]:
    """Развернуть выполненные заказы в строки с составными ID.

    ID строки — "<orderId>-<индекс строки в заказе>".
    """
    records: list[InOutRecord] = []
    for order in orders:
        if order.status != OrderStatus.COMPLETED.value:
            continue

        timestamp = order.created_at or order.updated_at or datetime.now().isoformat()
        day, time_of_day = _split_timestamp(timestamp)

        for index, line in enumerate(order.items):
            records.append(
                InOutRecord(
                    id=f"{order.order_id}-{index}",
                    type=(order.type or "inbound").lower(),
                    product_name=line.item_name or NOT_AVAILABLE,
                    sku=line.item_code or NOT_AVAILABLE,
                    individual_code=f"ORDER-{order.order_id}-{line.item_id}",
                    specification=line.specification or NOT_AVAILABLE,
                    quantity=line.requested_quantity or 0,
                    location=DEFAULT_LOCATION,
                    company=order.company_name or NOT_AVAILABLE,
                    company_code=order.company_code or NOT_AVAILABLE,
                    status=(
                        STATUS_COMPLETED_LABEL
                        if order.status == OrderStatus.COMPLETED.value
                        else STATUS_IN_PROGRESS_LABEL
                    ),
                    destination="-",
                    date=day,
                    time=time_of_day,
                    notes="-",
                )
            )
    return records


def to_inventory_items(balances: Sequence[InventoryResponse]) -> list[InventoryItem]:
    return [
        InventoryItem(
            id=index,
            name=balance.item_name,
            sku=f"SKU-{balance.item_id}",
            specification=NOT_AVAILABLE,
            quantity=balance.quantity,
            location=balance.location_code,
            status=stock_status(balance.quantity),
            last_update=balance.last_updated,
        )
        for index, balance in enumerate(balances, start=1)
    ]
