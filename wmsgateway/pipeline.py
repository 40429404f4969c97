"""Конвейер запросов: единая точка перед транспортом.

Каждый запрос получает параметр _t (анти-кэш). Токен безопасности
добавляется в зависимости от модели:

- bearer: Authorization на каждый запрос, если токен есть в хранилище;
- session: X-CSRF-TOKEN только на изменяющие запросы, токен
  запрашивается лениво перед первым из них.
"""

import logging
import time
from collections.abc import Callable, Sequence
from enum import Enum

from wmsgateway.exceptions import WmsTokenUnavailableException, WmsTransportException
from wmsgateway.results import FailureKind, RequestAttempt, RequestResult
from wmsgateway.token_manager import DEFAULT_CSRF_TOKEN_PATHS, CsrfTokenManager
from wmsgateway.token_store import TokenStore
from wmsgateway.transport import HttpRequest, Transport

logger = logging.getLogger(__name__)

CACHE_BUSTER_PARAM = "_t"
CSRF_HEADER = "X-CSRF-TOKEN"
AUTHORIZATION_HEADER = "Authorization"


class SecurityModel(str, Enum):
    """Модель безопасности развёртывания."""

    BEARER = "bearer"
    SESSION = "session"


class RequestPipeline:
    """Добавляет анти-кэш параметр и токен, затем отправляет запрос.

    Никогда не выбрасывает исключений транспорта — возвращает RequestResult.
    """

    def __init__(
        self,
        transport: Transport,
        security_model: SecurityModel,
        token_store: TokenStore,
        token_paths: Sequence[str] = DEFAULT_CSRF_TOKEN_PATHS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Инициализация конвейера.

        Args:
            transport: HTTP транспорт
            security_model: Модель безопасности
            token_store: Хранилище токена (bearer — персистентное, session — в памяти)
            token_paths: Эндпоинты CSRF токена (только для session)
            clock: Источник времени в секундах для параметра _t
        """
        self._transport = transport
        self._security_model = SecurityModel(security_model)
        self._token_store = token_store
        self._clock = clock
        self._token_manager: CsrfTokenManager | None = None
        if self._security_model is SecurityModel.SESSION:
            # Запросы токена идут через dispatch, без CSRF заголовка
            self._token_manager = CsrfTokenManager(
                store=token_store,
                fetch=self.dispatch,
                token_paths=token_paths,
            )

    @property
    def security_model(self) -> SecurityModel:
        return self._security_model

    @property
    def token_store(self) -> TokenStore:
        return self._token_store

    @property
    def token_manager(self) -> CsrfTokenManager | None:
        return self._token_manager

    @property
    def transport(self) -> Transport:
        return self._transport

    def _cache_bust(self, request: HttpRequest) -> HttpRequest:
        return request.with_params(**{CACHE_BUSTER_PARAM: int(self._clock() * 1000)})

    async def _secure(self, request: HttpRequest) -> HttpRequest:
        if self._security_model is SecurityModel.BEARER:
            token = self._token_store.get()
            if token:
                return request.with_headers(**{AUTHORIZATION_HEADER: f"Bearer {token}"})
            return request

        if request.is_mutating and self._token_manager is not None:
            token = await self._token_manager.ensure_token()
            return request.with_headers(**{CSRF_HEADER: token})
        return request

    async def dispatch(
        self,
        request: HttpRequest,
        attempt: RequestAttempt = RequestAttempt.FIRST_ATTEMPT,
    ) -> RequestResult:
        """Отправить запрос без токена безопасности (только _t)."""
        sent = self._cache_bust(request)
        try:
            response = await self._transport.send(sent)
        except WmsTransportException as exc:
            return RequestResult.from_error(sent, FailureKind.TRANSPORT, exc, attempt)

        result = RequestResult.from_response(sent, response, attempt)
        if not result.ok:
            logger.debug(
                "%s %s -> %d (%s)", sent.method, sent.path, response.status, attempt.value
            )
        return result

    async def send(
        self,
        request: HttpRequest,
        attempt: RequestAttempt = RequestAttempt.FIRST_ATTEMPT,
    ) -> RequestResult:
        """Добавить токен по модели безопасности и отправить запрос."""
        try:
            secured = await self._secure(request)
        except WmsTokenUnavailableException as exc:
            return RequestResult.from_error(
                request, FailureKind.TOKEN_UNAVAILABLE, exc, attempt
            )
        return await self.dispatch(secured, attempt)
