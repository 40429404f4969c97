"""HTTP транспорт шлюза.

Ядро шлюза обращается только к относительным путям. Транспорт
отвечает за привязку к backend_url (контракт reverse-proxy), путь
передаётся без изменений:

    /api/*  -> {backend_url}/api/*   (включая /api/csrf)
    /csrf   -> {backend_url}/csrf
"""

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

import aiohttp

from wmsgateway.exceptions import WmsDecodeException, WmsTransportException

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


@dataclass(frozen=True)
class HttpRequest:
    """Исходящий запрос.

    Attributes:
        method: HTTP-метод в верхнем регистре
        path: Относительный путь (начинается с "/")
        params: Query-параметры
        headers: Заголовки
        json: Тело запроса (сериализуется в JSON)
    """

    method: str
    path: str
    params: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    json: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())

    @property
    def is_mutating(self) -> bool:
        """Запрос меняет состояние (метод не из GET/HEAD/OPTIONS)."""
        return self.method not in SAFE_METHODS

    def with_params(self, **params: Any) -> "HttpRequest":
        return replace(self, params={**self.params, **params})

    def with_headers(self, **headers: str) -> "HttpRequest":
        return replace(self, headers={**self.headers, **headers})


@dataclass(frozen=True)
class HttpResponse:
    """Ответ транспорта: статус, заголовки и сырое тело."""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Декодировать тело как JSON. Пустое тело -> None.

        Raises:
            WmsDecodeException: Если тело не является JSON
        """
        if not self.body:
            return None
        try:
            return json.loads(self.body)
        except ValueError as exc:
            raise WmsDecodeException(
                f"Response body is not valid JSON: {exc}", original_error=exc
            ) from exc


class Transport(Protocol):
    """Любой HTTP-клиент, способный отправить HttpRequest."""

    async def send(self, request: HttpRequest) -> HttpResponse:
        """Отправить запрос.

        Raises:
            WmsTransportException: При сетевой ошибке или таймауте
        """
        ...

    async def close(self) -> None: ...


def resolve_path(path: str) -> str:
    """Проверить, что путь относительный, и вернуть его без изменений.

    Raises:
        ValueError: Если путь абсолютный (содержит схему/хост)
    """
    if "://" in path or path.startswith("//") or not path.startswith("/"):
        raise ValueError(f"Only relative paths starting with '/' are allowed: {path!r}")
    return path


class AiohttpTransport:
    """Транспорт поверх aiohttp.ClientSession.

    Сессия создаётся лениво и хранит cookie сессии бэкенда
    (нужно для сессионной модели с CSRF).
    """

    def __init__(self, backend_url: str, timeout_seconds: float = 30.0) -> None:
        self._backend_url = backend_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: aiohttp.ClientSession | None = None

    @property
    def backend_url(self) -> str:
        return self._backend_url

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
            )
        return self._session

    async def send(self, request: HttpRequest) -> HttpResponse:
        url = self._backend_url + resolve_path(request.path)
        params = {key: str(value) for key, value in request.params.items()}
        session = self._get_session()

        logger.debug("%s %s params=%s", request.method, url, params)
        try:
            async with session.request(
                request.method,
                url,
                params=params,
                headers=dict(request.headers),
                json=request.json,
            ) as response:
                body = await response.read()
                return HttpResponse(
                    status=response.status,
                    headers=dict(response.headers),
                    body=body,
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("Transport error for %s %s: %r", request.method, url, exc)
            raise WmsTransportException(
                f"Transport error for {request.method} {request.path}: {exc!r}",
                original_error=exc,
            ) from exc

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
