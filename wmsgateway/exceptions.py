"""Исключения для работы с WMS backend API.

Таксономия ошибок шлюза. Вызывающий код различает ошибки валидации
(WmsInvalidIdentifierException) и ошибки связи/бэкенда (всё остальное).
"""

from typing import Any


class WmsGatewayException(Exception):
    """Базовое исключение для ошибок WMS шлюза."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error


class WmsTransportException(WmsGatewayException):
    """Сетевая ошибка: хост недоступен, таймаут, обрыв соединения.

    Никогда не повторяется шлюзом.
    """


class WmsHttpException(WmsGatewayException):
    """Бэкенд ответил статусом вне диапазона 2xx."""

    def __init__(
        self,
        message: str,
        status: int,
        body: Any = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error=original_error)
        self.status = status
        self.body = body


class WmsAuthorizationException(WmsHttpException):
    """Бэкенд отклонил запрос (403).

    В сессионной модели выбрасывается только после неудачного повтора
    с обновлённым CSRF токеном.
    """


class WmsMethodNotAllowedException(WmsHttpException):
    """Бэкенд не поддерживает HTTP-метод для данного пути (405)."""


class WmsTokenUnavailableException(WmsGatewayException):
    """Ни один из эндпоинтов не вернул CSRF токен."""


class WmsInvalidIdentifierException(WmsGatewayException, ValueError):
    """Идентификатор не удалось разобрать в положительное целое.

    Выбрасывается синхронно, до любого сетевого вызова.
    """

    def __init__(self, message: str, identifier: Any = None) -> None:
        super().__init__(message)
        self.identifier = identifier


class WmsDecodeException(WmsGatewayException):
    """Ответ бэкенда не удалось декодировать или провалидировать."""
