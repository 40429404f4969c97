"""Менеджер CSRF токенов для сессионной модели безопасности.

Токен запрашивается лениво — при первом изменяющем запросе —
и обновляется только после 403 от бэкенда.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from wmsgateway.exceptions import WmsGatewayException, WmsTokenUnavailableException
from wmsgateway.results import RequestResult
from wmsgateway.token_store import TokenStore
from wmsgateway.transport import HttpRequest

logger = logging.getLogger(__name__)

# Порядок важен: сначала рекомендуемый путь, затем эндпоинт бэкенда по умолчанию
DEFAULT_CSRF_TOKEN_PATHS: tuple[str, ...] = ("/api/csrf", "/csrf")

TOKEN_FIELD = "token"

Fetch = Callable[[HttpRequest], Awaitable[RequestResult]]


class CsrfTokenManager:
    """Получение и обновление CSRF токена.

    Если получение уже идёт — другие корутины ждут на lock и
    используют полученный токен, а не запрашивают свой.
    """

    def __init__(
        self,
        store: TokenStore,
        fetch: Fetch,
        token_paths: Sequence[str] = DEFAULT_CSRF_TOKEN_PATHS,
    ) -> None:
        """Инициализация менеджера токенов.

        Args:
            store: Хранилище токена (общее с конвейером запросов)
            fetch: Отправка запроса без CSRF заголовка
            token_paths: Эндпоинты токена в порядке опроса
        """
        if not token_paths:
            raise ValueError("At least one CSRF token path is required")
        self._store = store
        self._fetch = fetch
        self._token_paths = tuple(token_paths)
        self._lock = asyncio.Lock()

    @property
    def store(self) -> TokenStore:
        return self._store

    async def _fetch_token(self) -> str:
        """Запросить токен у эндпоинтов по очереди.

        Returns:
            Новый токен

        Raises:
            WmsTokenUnavailableException: Если ни один эндпоинт не дал токен
        """
        last_error: WmsGatewayException | None = None

        for path in self._token_paths:
            logger.debug("Запрос CSRF токена: %s", path)
            result = await self._fetch(HttpRequest("GET", path))
            if result.failure is not None:
                logger.debug(
                    "Эндпоинт %s не вернул токен: %s", path, result.failure.error
                )
                last_error = result.failure.error
                continue

            try:
                payload = result.unwrap().json()
            except WmsGatewayException as exc:
                logger.debug("Ответ %s не декодирован: %s", path, exc)
                last_error = exc
                continue

            token = payload.get(TOKEN_FIELD) if isinstance(payload, dict) else None
            if isinstance(token, str) and token:
                return token
            logger.debug("В ответе %s нет поля %r", path, TOKEN_FIELD)

        logger.error("CSRF токен недоступен ни на одном из %s", self._token_paths)
        raise WmsTokenUnavailableException(
            "CSRF token endpoint not reachable", original_error=last_error
        )

    async def ensure_token(self) -> str:
        """Вернуть закэшированный токен или получить новый."""
        token = self._store.get()
        if token is not None:
            return token

        async with self._lock:
            # Double-check после получения lock
            token = self._store.get()
            if token is not None:
                return token

            token = await self._fetch_token()
            self._store.set(token)
            logger.info("CSRF токен получен")
            return token

    async def refresh_after_rejection(self, stale_token: str | None) -> str:
        """Заменить отклонённый токен новым.

        Если пока мы ждали lock токен уже заменила другая корутина,
        возвращается он без повторного запроса.

        Args:
            stale_token: Токен, с которым запрос получил 403

        Returns:
            Актуальный токен

        Raises:
            WmsTokenUnavailableException: При ошибке получения токена
        """
        async with self._lock:
            current = self._store.get()
            if current is not None and current != stale_token:
                logger.debug("CSRF токен уже обновлён другой корутиной")
                return current

            # Инвалидация всегда раньше повторного получения
            self._store.invalidate()
            token = await self._fetch_token()
            self._store.set(token)
            logger.info("CSRF токен обновлён после 403")
            return token
