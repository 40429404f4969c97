"""Явные результаты запросов.

Конвейер, recovery и перебор HTTP-методов передают друг другу
RequestResult и ветвятся по FailureKind, не перехватывая исключения.
Исключение создаётся один раз — на границе фасада (unwrap).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from wmsgateway.exceptions import (
    WmsAuthorizationException,
    WmsGatewayException,
    WmsHttpException,
    WmsMethodNotAllowedException,
)
from wmsgateway.transport import HttpRequest, HttpResponse

AUTHORIZATION_REJECTION_STATUS = 403
METHOD_NOT_ALLOWED_STATUS = 405


class FailureKind(str, Enum):
    """Вид неудачи запроса."""

    TRANSPORT = "transport"
    AUTHORIZATION = "authorization"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    HTTP = "http"
    TOKEN_UNAVAILABLE = "token_unavailable"


class RequestAttempt(str, Enum):
    """Состояние логического запроса в recovery."""

    FIRST_ATTEMPT = "first-attempt"
    RETRIED = "retried"


@dataclass(frozen=True)
class RequestFailure:
    kind: FailureKind
    error: WmsGatewayException


@dataclass(frozen=True)
class RequestResult:
    """Итог одной отправки запроса.

    Attributes:
        request: Фактически отправленный запрос (с токеном и _t)
        attempt: Состояние логического запроса
        response: Ответ 2xx при успехе
        failure: Описание неудачи
    """

    request: HttpRequest
    attempt: RequestAttempt = RequestAttempt.FIRST_ATTEMPT
    response: HttpResponse | None = None
    failure: RequestFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def kind(self) -> FailureKind | None:
        return self.failure.kind if self.failure is not None else None

    def unwrap(self) -> HttpResponse:
        """Вернуть ответ или выбросить исключение неудачи."""
        if self.failure is not None:
            raise self.failure.error
        if self.response is None:
            raise WmsGatewayException(
                f"{self.request.method} {self.request.path}: result has no response"
            )
        return self.response

    @classmethod
    def from_response(
        cls,
        request: HttpRequest,
        response: HttpResponse,
        attempt: RequestAttempt = RequestAttempt.FIRST_ATTEMPT,
    ) -> "RequestResult":
        """Классифицировать ответ транспорта по статусу."""
        if response.ok:
            return cls(request=request, attempt=attempt, response=response)

        kind, error_cls = _classify_status(response.status)
        error = error_cls(
            f"{request.method} {request.path} failed with status {response.status}",
            status=response.status,
            body=_safe_body(response),
        )
        return cls(
            request=request,
            attempt=attempt,
            failure=RequestFailure(kind=kind, error=error),
        )

    @classmethod
    def from_error(
        cls,
        request: HttpRequest,
        kind: FailureKind,
        error: WmsGatewayException,
        attempt: RequestAttempt = RequestAttempt.FIRST_ATTEMPT,
    ) -> "RequestResult":
        return cls(
            request=request,
            attempt=attempt,
            failure=RequestFailure(kind=kind, error=error),
        )


def _classify_status(status: int) -> tuple[FailureKind, type[WmsHttpException]]:
    if status == AUTHORIZATION_REJECTION_STATUS:
        return FailureKind.AUTHORIZATION, WmsAuthorizationException
    if status == METHOD_NOT_ALLOWED_STATUS:
        return FailureKind.METHOD_NOT_ALLOWED, WmsMethodNotAllowedException
    return FailureKind.HTTP, WmsHttpException


def _safe_body(response: HttpResponse) -> Any:
    # Невалидный JSON тела ошибки отдаём текстом
    try:
        return response.json()
    except WmsGatewayException:
        return response.body.decode("utf-8", errors="replace")
