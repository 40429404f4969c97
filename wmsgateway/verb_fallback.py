"""Перебор HTTP-методов для обновления записи заказа.

Разные развёртывания бэкенда принимают обновление заказа по разным
путям/методам. Кандидаты перебираются строго по порядку, переход
к следующему — только при 405. Любой другой исход завершает перебор.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from wmsgateway.results import FailureKind, RequestResult
from wmsgateway.transport import HttpRequest

logger = logging.getLogger(__name__)

Send = Callable[[HttpRequest], Awaitable[RequestResult]]


@dataclass(frozen=True)
class VerbCandidate:
    """Метод и шаблон пути с подстановкой {order_id}."""

    method: str
    path_template: str

    def build(self, order_id: int, body: Any) -> HttpRequest:
        return HttpRequest(
            self.method,
            self.path_template.format(order_id=order_id),
            json=body,
        )


INOUT_RECORD_CANDIDATES: tuple[VerbCandidate, ...] = (
    VerbCandidate("PUT", "/api/inout/orders/{order_id}/status"),
    VerbCandidate("PATCH", "/api/inout/orders/{order_id}"),
    VerbCandidate("PUT", "/api/inout/orders/{order_id}"),
)


class VerbFallbackUpdater:
    """Отправляет обновление, перебирая кандидатов при 405."""

    def __init__(
        self,
        send: Send,
        candidates: Sequence[VerbCandidate] = INOUT_RECORD_CANDIDATES,
    ) -> None:
        if not candidates:
            raise ValueError("At least one verb candidate is required")
        self._send = send
        self._candidates = tuple(candidates)

    @property
    def candidates(self) -> tuple[VerbCandidate, ...]:
        return self._candidates

    async def update(self, order_id: int, body: Any) -> RequestResult:
        """Выполнить обновление.

        Args:
            order_id: Уже провалидированный числовой ID заказа
            body: Тело запроса

        Returns:
            Результат первого кандидата, ответившего не 405,
            либо 405 последнего кандидата
        """
        *earlier, last = self._candidates
        for candidate in earlier:
            request = candidate.build(order_id, body)
            result = await self._send(request)
            if result.kind is not FailureKind.METHOD_NOT_ALLOWED:
                return result
            logger.debug(
                "405 на %s %s, пробуем следующий вариант", request.method, request.path
            )

        result = await self._send(last.build(order_id, body))
        if result.kind is FailureKind.METHOD_NOT_ALLOWED:
            logger.warning("Ни один вариант обновления заказа %d не поддержан", order_id)
        return result
