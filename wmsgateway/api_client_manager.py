"""Фасад WMS backend API.

Реализует Multitone паттерн — один экземпляр на уникальную комбинацию
backend_url + модель безопасности.

Все запросы проходят цепочку:
    RecoveryInterceptor -> RequestPipeline -> Transport
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any, TypeVar
from urllib.parse import quote

from pydantic import BaseModel, TypeAdapter, ValidationError

from wmsgateway.config_reader import WmsGatewayConfig
from wmsgateway.dashboard import DashboardAggregator
from wmsgateway.exceptions import WmsDecodeException, WmsInvalidIdentifierException
from wmsgateway.identifiers import parse_composite_id, parse_numeric_id
from wmsgateway.mappers import (
    DEFAULT_LOCATION,
    session_user_to_user,
    to_inout_records,
    to_inventory_items,
    to_user,
)
from wmsgateway.models import (
    Company,
    DashboardData,
    DashboardPayload,
    DashboardSummary,
    InOutOrderLine,
    InOutOrderRequest,
    InOutOrderResponse,
    InOutRecord,
    InventoryItem,
    InventoryResponse,
    ItemResponse,
    LoginResponse,
    LoginResult,
    OrderStatus,
    OrderType,
    OutboundOrderLine,
    Rack,
    RackInventoryItem,
    RackMapResponse,
    ScheduleRequest,
    ScheduleResponse,
    SessionUserResponse,
    User,
    UserResponse,
)
from wmsgateway.pipeline import RequestPipeline, SecurityModel
from wmsgateway.recovery import RecoveryInterceptor
from wmsgateway.token_manager import DEFAULT_CSRF_TOKEN_PATHS
from wmsgateway.token_store import FileTokenStore, MemoryTokenStore, TokenStore
from wmsgateway.transport import AiohttpTransport, HttpRequest, HttpResponse, Transport
from wmsgateway.verb_fallback import VerbFallbackUpdater

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TOKEN_FILE = Path("~/.wms_gateway/token")

# Компания по умолчанию для приходных заказов из быстрой формы UI
DEFAULT_INBOUND_COMPANY_ID = 1


@dataclass
class ApiConnection:
    """Параметры подключения к WMS backend.

    Attributes:
        backend_url: Адрес бэкенда (например: https://smart-wms-be.p-e.kr)
        security_model: Модель безопасности развёртывания
        token_file: Файл bearer токена
        timeout_seconds: Таймаут транспорта
        csrf_token_paths: Эндпоинты CSRF токена в порядке опроса
    """

    backend_url: str
    security_model: SecurityModel = SecurityModel.SESSION
    token_file: Path | None = None
    timeout_seconds: float = 30.0
    csrf_token_paths: tuple[str, ...] = field(default=DEFAULT_CSRF_TOKEN_PATHS)

    @property
    def key_id(self) -> str:
        """Уникальный идентификатор для multitone паттерна."""
        return f"{self.backend_url.rstrip('/')}:{SecurityModel(self.security_model).value}"


@lru_cache
def _adapter(type_: Any) -> TypeAdapter[Any]:
    return TypeAdapter(type_)


@contextmanager
def _decoding(what: str) -> Iterator[None]:
    """Превратить ошибку валидации pydantic в WmsDecodeException."""
    try:
        yield
    except ValidationError as exc:
        logger.error("Неожиданный формат ответа %s: %s", what, exc)
        raise WmsDecodeException(
            f"Unexpected {what} payload: {exc}", original_error=exc
        ) from exc


def _parse(type_: Any, data: Any, what: str) -> Any:
    with _decoding(what):
        return _adapter(type_).validate_python(data)


def _payload(data: BaseModel | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True, exclude_none=True)
    return dict(data)


def _default_token_store(connection: ApiConnection) -> TokenStore:
    if SecurityModel(connection.security_model) is SecurityModel.BEARER:
        return FileTokenStore(connection.token_file or DEFAULT_TOKEN_FILE)
    return MemoryTokenStore()


class WmsApiClientManager:
    """Multitone-фасад для работы с WMS backend API.

    Содержит: Transport, RequestPipeline, RecoveryInterceptor.
    Предоставляет типизированные методы по ресурсам бэкенда.

    Использование:
        manager = await WmsApiClientManager.get_instance(connection)
        dashboard = await manager.fetch_dashboard_all()
    """

    _instances: dict[str, "WmsApiClientManager"] = {}
    _lock: asyncio.Lock | None = None

    def __init__(
        self,
        connection: ApiConnection,
        transport: Transport | None = None,
        token_store: TokenStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Инициализация менеджера.

        Для общего экземпляра используйте get_instance().

        Args:
            connection: Параметры подключения
            transport: Транспорт (по умолчанию AiohttpTransport)
            token_store: Хранилище токена (по умолчанию по модели безопасности)
            clock: Часы для анти-кэш параметра
        """
        self._connection = connection
        self._transport = transport or AiohttpTransport(
            connection.backend_url, timeout_seconds=connection.timeout_seconds
        )
        self._token_store = token_store or _default_token_store(connection)
        self._pipeline = RequestPipeline(
            self._transport,
            security_model=connection.security_model,
            token_store=self._token_store,
            token_paths=connection.csrf_token_paths,
            clock=clock,
        )
        self._recovery = RecoveryInterceptor(self._pipeline)
        self._inout_updater = VerbFallbackUpdater(self._recovery.send)
        self._dashboard = DashboardAggregator(self)
        logger.debug(
            "Создан экземпляр WmsApiClientManager для key_id=%s", connection.key_id
        )

    @classmethod
    async def get_instance(cls, connection: ApiConnection) -> "WmsApiClientManager":
        """Получить или создать экземпляр менеджера для key_id.

        Args:
            connection: Параметры подключения

        Returns:
            Экземпляр WmsApiClientManager
        """
        if cls._lock is None:
            cls._lock = asyncio.Lock()

        async with cls._lock:
            key = connection.key_id
            if key not in cls._instances:
                cls._instances[key] = cls(connection=connection)
            return cls._instances[key]

    @classmethod
    async def from_config(cls, config: WmsGatewayConfig) -> "WmsApiClientManager":
        """Создать экземпляр из конфигурации шлюза.

        Args:
            config: Конфигурация из YAML-файла

        Returns:
            Экземпляр WmsApiClientManager
        """
        connection = ApiConnection(
            backend_url=config.backend_url,
            security_model=config.security_model,
            token_file=config.token_file,
            timeout_seconds=config.timeout_seconds,
            csrf_token_paths=tuple(config.csrf_token_paths),
        )
        return await cls.get_instance(connection=connection)

    @classmethod
    async def close_all(cls) -> None:
        """Закрыть все соединения и сбросить экземпляры."""
        instance_count = len(cls._instances)
        for manager in cls._instances.values():
            await manager.close()

        cls._instances.clear()
        cls._lock = None
        logger.debug("Закрыты все соединения (%d экземпляров)", instance_count)

    async def close(self) -> None:
        await self._transport.close()

    @property
    def security_model(self) -> SecurityModel:
        return self._pipeline.security_model

    @property
    def token_store(self) -> TokenStore:
        return self._token_store

    # ========== Выполнение запросов ==========

    async def execute_with_retry(self, request: HttpRequest) -> HttpResponse:
        """Выполнить запрос с повтором при 403 (сессионная модель).

        Args:
            request: Запрос с относительным путём

        Returns:
            Ответ 2xx

        Raises:
            WmsGatewayException: Любая неудача после recovery
        """
        result = await self._recovery.send(request)
        if result.failure is not None:
            logger.error("Ошибка API: %s", result.failure.error)
        return result.unwrap()

    async def _request_json(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        response = await self.execute_with_retry(
            HttpRequest(method, path, params=dict(params or {}), json=json)
        )
        return response.json()

    async def get_json(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        """GET и декодированный JSON ответа."""
        return await self._request_json("GET", path, params=params)

    async def post_json(self, path: str, data: Any = None) -> Any:
        """POST и декодированный JSON ответа."""
        return await self._request_json("POST", path, json=data)

    # ========== Аутентификация ==========

    async def login(self, username: str, password: str) -> LoginResult:
        """Войти в систему.

        В bearer модели токен из ответа сохраняется в хранилище.

        Args:
            username: Логин
            password: Пароль

        Returns:
            Сообщение бэкенда и пользователь
        """
        data = await self.post_json(
            "/api/auth/login", {"username": username, "password": password}
        )
        response = _parse(LoginResponse, data, "login")

        if self.security_model is SecurityModel.BEARER and response.token:
            self._token_store.set(response.token)
            logger.info("Bearer токен сохранён после входа %s", username)

        with _decoding("login"):
            user = session_user_to_user(response.user)
        return LoginResult(message=response.message, user=user)

    async def check_session(self) -> User:
        """Получить пользователя текущей сессии."""
        data = await self.get_json("/api/auth/me")
        session_user = _parse(SessionUserResponse, data, "session")
        with _decoding("session"):
            return session_user_to_user(session_user)

    async def logout(self) -> None:
        """Выйти из системы.

        Токен (bearer или CSRF) после выхода больше не действителен
        и удаляется из хранилища.
        """
        await self.execute_with_retry(HttpRequest("POST", "/api/auth/logout"))
        self._token_store.invalidate()

    async def signup(
        self, username: str, password: str, full_name: str, email: str
    ) -> User:
        """Зарегистрировать пользователя с ролью USER."""
        return await self.create_user(
            username=username,
            email=email,
            full_name=full_name,
            role="USER",
            password=password,
        )

    # ========== Компании ==========

    async def fetch_companies(self) -> list[Company]:
        data = await self.get_json("/api/companies")
        return _parse(list[Company], data, "companies")

    async def create_company(self, company: Company | Mapping[str, Any]) -> Company:
        data = await self.post_json("/api/companies", _payload(company))
        return _parse(Company, data, "company")

    async def update_company(
        self, company_id: str | int, company: Company | Mapping[str, Any]
    ) -> Company:
        """Обновить компанию.

        Raises:
            WmsInvalidIdentifierException: Если ID не положительное целое
        """
        numeric_id = parse_numeric_id(company_id, what="company ID")
        data = await self._request_json(
            "PUT", f"/api/companies/{numeric_id}", json=_payload(company)
        )
        return _parse(Company, data, "company")

    async def delete_company(self, company_id: str | int) -> None:
        numeric_id = parse_numeric_id(company_id, what="company ID")
        await self.execute_with_retry(
            HttpRequest("DELETE", f"/api/companies/{numeric_id}")
        )

    # ========== Товары ==========

    async def fetch_items(self) -> list[ItemResponse]:
        data = await self.get_json("/api/items")
        return _parse(list[ItemResponse], data, "items")

    async def create_item(self, item: BaseModel | Mapping[str, Any]) -> ItemResponse:
        data = await self.post_json("/api/items", _payload(item))
        return _parse(ItemResponse, data, "item")

    async def update_item(
        self, item_id: str | int, item: BaseModel | Mapping[str, Any]
    ) -> ItemResponse:
        numeric_id = parse_numeric_id(item_id, what="item ID")
        data = await self._request_json(
            "PUT", f"/api/items/{numeric_id}", json=_payload(item)
        )
        return _parse(ItemResponse, data, "item")

    async def delete_item(self, item_id: str | int) -> None:
        numeric_id = parse_numeric_id(item_id, what="item ID")
        await self.execute_with_retry(HttpRequest("DELETE", f"/api/items/{numeric_id}"))

    # ========== Стеллажи ==========

    async def fetch_racks(self) -> list[Rack]:
        data = await self.get_json("/api/racks")
        return _parse(list[Rack], data, "racks")

    async def fetch_racks_for_map(self) -> list[RackMapResponse]:
        """Стеллажи в облегчённой форме для карты склада."""
        data = await self.get_json("/api/racks")
        return _parse(list[RackMapResponse], data, "racks")

    async def fetch_rack_inventory(self, rack_code: str) -> list[RackInventoryItem]:
        """Получить остатки на стеллаже.

        Args:
            rack_code: Код стеллажа (например: A-01)

        Raises:
            WmsInvalidIdentifierException: Если код пустой
        """
        if not rack_code or not rack_code.strip():
            raise WmsInvalidIdentifierException(
                f"Invalid rack code: {rack_code!r}", rack_code
            )
        data = await self.get_json(f"/api/racks/{quote(rack_code, safe='')}/inventory")
        return _parse(list[RackInventoryItem], data, "rack inventory")

    # ========== Приход / расход ==========

    async def fetch_raw_inout_orders(self) -> list[InOutOrderResponse]:
        data = await self.get_json("/api/inout/orders")
        return _parse(list[InOutOrderResponse], data, "in/out orders")

    async def fetch_inout_records(self) -> list[InOutRecord]:
        """Строки выполненных заказов с составными ID для таблицы UI."""
        orders = await self.fetch_raw_inout_orders()
        with _decoding("in/out orders"):
            return to_inout_records(orders)

    async def _fetch_orders_by_status(
        self, status: OrderStatus
    ) -> list[InOutOrderResponse]:
        data = await self.get_json("/api/inout/orders", params={"status": status.value})
        if not isinstance(data, list):
            return []
        return _parse(list[InOutOrderResponse], data, "in/out orders")

    async def fetch_pending_orders(self) -> list[InOutOrderResponse]:
        return await self._fetch_orders_by_status(OrderStatus.PENDING)

    async def fetch_reserved_orders(self) -> list[InOutOrderResponse]:
        return await self._fetch_orders_by_status(OrderStatus.RESERVED)

    async def create_inbound_order(
        self,
        item_id: int,
        quantity: int,
        company_id: int | None = None,
        expected_date: date | str | None = None,
        notes: str | None = None,
        location_code: str | None = None,
    ) -> Any:
        """Создать приходный заказ на одну позицию.

        Args:
            item_id: ID товара
            quantity: Количество
            company_id: ID поставщика
            expected_date: Ожидаемая дата (по умолчанию сегодня)
            notes: Примечание
            location_code: Код ячейки хранения

        Returns:
            Ответ бэкенда как есть
        """
        request = InOutOrderRequest(
            type=OrderType.INBOUND,
            company_id=company_id or DEFAULT_INBOUND_COMPANY_ID,
            expected_date=str(expected_date or date.today()),
            location_code=location_code or DEFAULT_LOCATION,
            notes=notes,
            items=[InOutOrderLine(item_id=item_id, quantity=quantity)],
        )
        return await self.post_json("/api/inout/orders", request.to_payload())

    async def create_outbound_order(
        self,
        company_id: int,
        expected_date: date | str,
        items: Sequence[OutboundOrderLine],
        notes: str | None = None,
    ) -> Any:
        """Создать расходный заказ.

        Ячейка заказа берётся из первой строки.
        """
        location_code = items[0].location_code if items else None
        request = InOutOrderRequest(
            type=OrderType.OUTBOUND,
            company_id=company_id,
            expected_date=str(expected_date),
            location_code=location_code or DEFAULT_LOCATION,
            notes=notes,
            items=[
                InOutOrderLine(item_id=line.item_id, quantity=line.requested_quantity)
                for line in items
            ],
        )
        return await self.post_json("/api/inout/orders", request.to_payload())

    async def update_order_status(self, record_id: str | int, status: str) -> Any:
        """Изменить статус заказа по составному ID строки.

        Raises:
            WmsInvalidIdentifierException: Если ID не разбирается
        """
        order_id = parse_composite_id(record_id)
        return await self._request_json(
            "PUT",
            f"/api/inout/orders/{order_id}/status",
            json={"status": status.upper()},
        )

    async def cancel_inout_order(self, record_id: str | int) -> Any:
        order_id = parse_composite_id(record_id)
        return await self._request_json("PUT", f"/api/inout/orders/{order_id}/cancel")

    async def update_inout_record(
        self, record_id: str | int, record: Mapping[str, Any]
    ) -> Any:
        """Обновить запись заказа.

        Путь и метод обновления различаются между развёртываниями
        бэкенда, поэтому варианты перебираются при 405
        (см. VerbFallbackUpdater).

        Args:
            record_id: Составной ID строки или ID заказа
            record: Изменяемые поля

        Returns:
            Ответ бэкенда как есть

        Raises:
            WmsInvalidIdentifierException: Если ID не разбирается
            WmsMethodNotAllowedException: Если ни один вариант не поддержан
        """
        order_id = parse_composite_id(record_id)
        result = await self._inout_updater.update(order_id, dict(record))
        if result.failure is not None:
            logger.error("Ошибка обновления заказа %d: %s", order_id, result.failure.error)
        return result.unwrap().json()

    # ========== Остатки ==========

    async def fetch_raw_inventory(self) -> list[InventoryResponse]:
        data = await self.get_json("/api/inventory")
        return _parse(list[InventoryResponse], data or [], "inventory")

    async def fetch_inventory_items(self) -> list[InventoryItem]:
        balances = await self.fetch_raw_inventory()
        if not balances:
            logger.info("На бэкенде нет данных об остатках")
            return []
        with _decoding("inventory"):
            return to_inventory_items(balances)

    # ========== Расписание ==========

    async def fetch_schedules(
        self,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
    ) -> list[ScheduleResponse]:
        params: dict[str, str] = {}
        if start_date:
            params["start_date"] = str(start_date)
        if end_date:
            params["end_date"] = str(end_date)

        data = await self.get_json("/api/schedules", params=params)
        return _parse(list[ScheduleResponse], data, "schedules")

    async def create_schedule(self, schedule: ScheduleRequest) -> ScheduleResponse:
        data = await self.post_json("/api/schedules", schedule.to_payload())
        return _parse(ScheduleResponse, data, "schedule")

    async def delete_schedule(self, schedule_id: str | int) -> None:
        numeric_id = parse_numeric_id(schedule_id, what="schedule ID")
        await self.execute_with_retry(
            HttpRequest("DELETE", f"/api/schedules/{numeric_id}")
        )

    # ========== Пользователи ==========

    async def fetch_raw_users(self) -> list[UserResponse]:
        data = await self.get_json("/api/users")
        return _parse(list[UserResponse], data, "users")

    async def fetch_users(self) -> list[User]:
        users = await self.fetch_raw_users()
        with _decoding("users"):
            return [to_user(user) for user in users]

    async def create_user(
        self,
        username: str,
        email: str,
        full_name: str,
        role: str,
        password: str,
    ) -> User:
        data = await self.post_json(
            "/api/users",
            {
                "username": username,
                "password": password,
                "fullName": full_name,
                "email": email,
                "role": role,
            },
        )
        backend_user = _parse(UserResponse, data, "user")
        with _decoding("user"):
            return to_user(backend_user)

    async def update_user(
        self,
        user_id: str | int,
        username: str | None = None,
        email: str | None = None,
        full_name: str | None = None,
        role: str | None = None,
        status: str | None = None,
    ) -> User:
        """Обновить пользователя. Отправляются только заданные поля."""
        numeric_id = parse_numeric_id(user_id, what="user ID")
        fields = {
            "username": username,
            "email": email,
            "fullName": full_name,
            "role": role,
            "status": status,
        }
        data = await self._request_json(
            "PUT",
            f"/api/users/{numeric_id}",
            json={key: value for key, value in fields.items() if value},
        )
        backend_user = _parse(UserResponse, data, "user")
        with _decoding("user"):
            return to_user(backend_user)

    async def delete_user(self, user_id: str | int) -> None:
        numeric_id = parse_numeric_id(user_id, what="user ID")
        await self.execute_with_retry(HttpRequest("DELETE", f"/api/users/{numeric_id}"))

    # ========== Дашборд ==========

    async def fetch_dashboard_summary(self) -> DashboardSummary:
        data = await self.get_json("/api/dashboard/summary")
        return _parse(DashboardSummary, data, "dashboard summary")

    async def fetch_dashboard_consolidated(self) -> DashboardPayload:
        """Все данные дашборда одним запросом."""
        data = await self.get_json("/api/dashboard/all")
        return _parse(DashboardPayload, data, "dashboard")

    async def fetch_dashboard_all(self) -> DashboardData:
        """Снимок дашборда со сводным запросом и fallback.

        Returns:
            Данные дашборда и время загрузки в мс
        """
        return await self._dashboard.fetch()
