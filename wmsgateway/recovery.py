"""Повтор изменяющего запроса после 403 с новым CSRF токеном.

Каждый логический запрос проходит не более двух состояний:
first-attempt -> retried. Из retried повтор невозможен, поэтому
бэкенд, постоянно отклоняющий сессию, не вызывает бесконечных повторов.
"""

import logging

from wmsgateway.exceptions import WmsTokenUnavailableException
from wmsgateway.pipeline import CSRF_HEADER, RequestPipeline
from wmsgateway.results import FailureKind, RequestAttempt, RequestResult
from wmsgateway.transport import HttpRequest

logger = logging.getLogger(__name__)


class RecoveryInterceptor:
    """Обёртка над RequestPipeline с одним повтором при 403."""

    def __init__(self, pipeline: RequestPipeline) -> None:
        self._pipeline = pipeline

    @property
    def pipeline(self) -> RequestPipeline:
        return self._pipeline

    def _should_recover(self, result: RequestResult) -> bool:
        return (
            result.kind is FailureKind.AUTHORIZATION
            and result.attempt is RequestAttempt.FIRST_ATTEMPT
            and result.request.is_mutating
        )

    async def send(self, request: HttpRequest) -> RequestResult:
        """Отправить запрос, при 403 обновить токен и повторить один раз.

        Args:
            request: Исходный запрос без токена и _t

        Returns:
            Результат первой попытки или единственного повтора
        """
        result = await self._pipeline.send(request, RequestAttempt.FIRST_ATTEMPT)
        token_manager = self._pipeline.token_manager
        if token_manager is None or not self._should_recover(result):
            return result

        stale_token = result.request.headers.get(CSRF_HEADER)
        logger.debug("403 на %s %s, обновляем CSRF токен", request.method, request.path)

        try:
            await token_manager.refresh_after_rejection(stale_token)
        except WmsTokenUnavailableException as exc:
            logger.warning(
                "Не удалось обновить CSRF токен для %s %s: %s",
                request.method,
                request.path,
                exc,
            )
            return result

        retried = await self._pipeline.send(request, RequestAttempt.RETRIED)
        if retried.kind is FailureKind.AUTHORIZATION:
            logger.error(
                "Повтор %s %s снова отклонён (403)", request.method, request.path
            )
        return retried
