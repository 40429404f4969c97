"""Общие фикстуры для тестов wmsgateway.

Содержит транспорт-заглушку с заранее заданными ответами и
менеджеры для обеих моделей безопасности.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest

from tests.fakes import FakeTransport
from wmsgateway import (
    ApiConnection,
    FileTokenStore,
    SecurityModel,
    WmsApiClientManager,
    get_wms_gateway_config,
)

BACKEND_URL = "http://backend.test"


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
async def session_manager(
    transport: FakeTransport,
) -> AsyncGenerator[WmsApiClientManager, None]:
    """Менеджер с сессионной моделью (cookie + CSRF)."""
    manager = WmsApiClientManager(
        ApiConnection(backend_url=BACKEND_URL, security_model=SecurityModel.SESSION),
        transport=transport,
    )
    yield manager
    await manager.close()


@pytest.fixture
def token_file(tmp_path: Path) -> Path:
    return tmp_path / "wms" / "token"


@pytest.fixture
async def bearer_manager(
    transport: FakeTransport, token_file: Path
) -> AsyncGenerator[WmsApiClientManager, None]:
    """Менеджер с bearer моделью и токеном в файле."""
    manager = WmsApiClientManager(
        ApiConnection(
            backend_url=BACKEND_URL,
            security_model=SecurityModel.BEARER,
            token_file=token_file,
        ),
        transport=transport,
        token_store=FileTokenStore(token_file),
    )
    yield manager
    await manager.close()


# ========== Данные бэкенда ==========


@pytest.fixture
def backend_items() -> list[dict[str, Any]]:
    return [
        {
            "itemId": 1,
            "itemName": "Болт M8",
            "itemCode": "BOLT-M8",
            "itemGroup": "Крепёж",
            "spec": "M8x40",
            "unit": "EA",
            "unitPriceIn": 10.0,
            "unitPriceOut": 15.0,
            "createdAt": "2024-01-10T09:00:00",
        },
        {
            "itemId": 2,
            "itemName": "Гайка M8",
            "itemCode": "NUT-M8",
            "itemGroup": "Крепёж",
            "spec": "M8",
            "unit": "EA",
            "unitPriceIn": 2.0,
            "unitPriceOut": 3.5,
            "createdAt": "2024-01-11T09:00:00",
        },
    ]


@pytest.fixture
def backend_users() -> list[dict[str, Any]]:
    return [
        {
            "userId": 7,
            "username": "operator",
            "email": "operator@example.com",
            "fullName": "Иван Петров",
            "role": "USER",
            "status": "ACTIVE",
            "lastLogin": "2024-02-01T08:30:00",
            "joinedAt": "2023-12-01T00:00:00",
        }
    ]


@pytest.fixture
def backend_orders() -> list[dict[str, Any]]:
    return [
        {
            "orderId": 482,
            "type": "INBOUND",
            "status": "COMPLETED",
            "companyId": 3,
            "companyCode": "C-003",
            "companyName": "ООО Поставщик",
            "items": [
                {
                    "itemId": 1,
                    "itemCode": "BOLT-M8",
                    "itemName": "Болт M8",
                    "specification": "M8x40",
                    "requestedQuantity": 100,
                    "actualQuantity": 100,
                },
                {
                    "itemId": 2,
                    "itemCode": "NUT-M8",
                    "itemName": "Гайка M8",
                    "specification": "M8",
                    "requestedQuantity": 50,
                    "actualQuantity": None,
                },
            ],
            "expectedDate": "2024-02-05",
            "createdAt": "2024-02-01T10:15:30.123",
            "updatedAt": "2024-02-02T11:00:00",
        },
        {
            "orderId": 483,
            "type": "OUTBOUND",
            "status": "PENDING",
            "companyId": 4,
            "companyCode": "C-004",
            "companyName": "ООО Покупатель",
            "items": [
                {
                    "itemId": 1,
                    "itemCode": "BOLT-M8",
                    "itemName": "Болт M8",
                    "specification": "M8x40",
                    "requestedQuantity": 20,
                    "actualQuantity": None,
                }
            ],
            "expectedDate": "2024-02-10",
            "createdAt": "2024-02-03T12:00:00",
            "updatedAt": "2024-02-03T12:00:00",
        },
    ]


@pytest.fixture
def backend_inventory() -> list[dict[str, Any]]:
    return [
        {
            "itemId": 1,
            "itemName": "Болт M8",
            "locationCode": "A-01",
            "quantity": 80,
            "lastUpdated": "2024-02-02T11:00:00",
        },
        {
            "itemId": 2,
            "itemName": "Гайка M8",
            "locationCode": "A-02",
            "quantity": 5,
            "lastUpdated": "2024-02-02T11:00:00",
        },
        {
            "itemId": 3,
            "itemName": "Шайба M8",
            "locationCode": "B-01",
            "quantity": 0,
            "lastUpdated": "2024-02-02T11:00:00",
        },
    ]


@pytest.fixture
def backend_schedules() -> list[dict[str, Any]]:
    return [
        {
            "scheduleId": 11,
            "title": "Приёмка поставки",
            "startTime": "2024-02-05T09:00:00",
            "endTime": "2024-02-05T11:00:00",
            "type": "INBOUND",
        }
    ]


@pytest.fixture
def backend_dashboard(
    backend_items: list[dict[str, Any]],
    backend_users: list[dict[str, Any]],
    backend_orders: list[dict[str, Any]],
    backend_inventory: list[dict[str, Any]],
    backend_schedules: list[dict[str, Any]],
) -> dict[str, Any]:
    """Ответ сводного эндпоинта, согласованный с отдельными ресурсами."""
    return {
        "items": backend_items,
        "users": backend_users,
        "orders": backend_orders,
        "inventory": backend_inventory,
        "schedules": backend_schedules,
        "summary": {
            "totalItems": 2,
            "totalInventory": 85,
            "inboundPending": 0,
            "outboundPending": 1,
        },
    }


# ========== Интеграционные фикстуры ==========


@pytest.fixture
async def live_manager() -> AsyncGenerator[WmsApiClientManager, None]:
    """Менеджер из реальной конфигурации (WMS_GATEWAY_CONFIG)."""
    if not os.getenv("WMS_GATEWAY_CONFIG"):
        pytest.skip("WMS_GATEWAY_CONFIG не задана")

    await WmsApiClientManager.close_all()
    config = get_wms_gateway_config()
    manager = await WmsApiClientManager.from_config(config)
    yield manager
    await WmsApiClientManager.close_all()
