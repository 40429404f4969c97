"""Агрегатор дашборда.

Сначала один сводный запрос. При любой его неудаче — пять параллельных
запросов по ресурсам и запрос сводки, собранные в ту же модель
DashboardPayload, чтобы UI не мог отличить путь получения данных.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Protocol

from wmsgateway.exceptions import WmsGatewayException
from wmsgateway.models import (
    DashboardData,
    DashboardPayload,
    DashboardSummary,
    InOutOrderResponse,
    InventoryResponse,
    ItemResponse,
    ScheduleResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)


class DashboardSources(Protocol):
    """Источники данных дашборда (реализуются фасадом API)."""

    async def fetch_dashboard_consolidated(self) -> DashboardPayload: ...

    async def fetch_items(self) -> list[ItemResponse]: ...

    async def fetch_raw_users(self) -> list[UserResponse]: ...

    async def fetch_raw_inout_orders(self) -> list[InOutOrderResponse]: ...

    async def fetch_raw_inventory(self) -> list[InventoryResponse]: ...

    async def fetch_schedules(self) -> list[ScheduleResponse]: ...

    async def fetch_dashboard_summary(self) -> DashboardSummary: ...


class DashboardAggregator:
    """Снимок дашборда: сводный запрос или fallback по ресурсам.

    Fallback — всё или ничего: при ошибке любого запроса остальные
    отменяются, исключение пробрасывается.
    """

    def __init__(
        self,
        sources: DashboardSources,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        """Инициализация агрегатора.

        Args:
            sources: Источники данных
            clock: Монотонные часы в секундах
        """
        self._sources = sources
        self._clock = clock

    def _elapsed_ms(self, started: float) -> int:
        return max(0, round((self._clock() - started) * 1000))

    async def fetch(self) -> DashboardData:
        """Получить снимок дашборда.

        Время загрузки считается от начала сводного запроса и включает
        неудачную первую попытку, если был fallback.

        Raises:
            WmsGatewayException: Если не удался и сводный запрос,
                и хотя бы один из запросов fallback
        """
        started = self._clock()
        logger.debug("Запрос сводного дашборда")

        try:
            payload = await self._sources.fetch_dashboard_consolidated()
        except WmsGatewayException as exc:
            logger.warning(
                "Сводный дашборд недоступен (%d мс): %s. Переход на отдельные запросы",
                self._elapsed_ms(started),
                exc,
            )
            payload = await self._fetch_fallback(started)
        else:
            logger.info("Сводный дашборд получен за %d мс", self._elapsed_ms(started))

        return DashboardData(
            items=payload.items,
            users=payload.users,
            orders=payload.orders,
            inventory=payload.inventory,
            schedules=payload.schedules,
            summary=payload.summary,
            total_load_time=self._elapsed_ms(started),
        )

    async def _fetch_fallback(self, started: float) -> DashboardPayload:
        tasks = [
            asyncio.ensure_future(self._sources.fetch_items()),
            asyncio.ensure_future(self._sources.fetch_raw_users()),
            asyncio.ensure_future(self._sources.fetch_raw_inout_orders()),
            asyncio.ensure_future(self._sources.fetch_raw_inventory()),
            asyncio.ensure_future(self._sources.fetch_schedules()),
            asyncio.ensure_future(self._sources.fetch_dashboard_summary()),
        ]
        try:
            items, users, orders, inventory, schedules, summary = await asyncio.gather(
                *tasks
            )
        except Exception as exc:
            for task in tasks:
                task.cancel()
            # Отменённые запросы завершаются до выхода из метода
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.error(
                "Fallback дашборда тоже не удался (%d мс): %s",
                self._elapsed_ms(started),
                exc,
            )
            raise

        logger.info("Дашборд собран из отдельных запросов за %d мс", self._elapsed_ms(started))
        return DashboardPayload(
            items=items,
            users=users,
            orders=orders,
            inventory=inventory,
            schedules=schedules,
            summary=summary,
        )
