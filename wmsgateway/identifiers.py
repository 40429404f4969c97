"""Разбор идентификаторов записей.

UI адресует строку заказа составным идентификатором вида
"<orderId>-<itemIndex>". Бэкенду нужен только числовой orderId.
"""

import re

from wmsgateway.exceptions import WmsInvalidIdentifierException

COMPOSITE_SEPARATOR = "-"

# Идентификаторы на бэкенде: signed 64-bit
MAX_IDENTIFIER = 2**63 - 1

_DIGITS = re.compile(r"[0-9]+")


def parse_numeric_id(value: str | int, what: str = "identifier") -> int:
    """Разобрать положительный числовой идентификатор.

    Args:
        value: Строка из ASCII-цифр или int
        what: Название сущности для текста ошибки

    Returns:
        Идентификатор как int

    Raises:
        WmsInvalidIdentifierException: Если значение не положительное целое
            или выходит за пределы 64-bit
    """
    if isinstance(value, bool):
        raise WmsInvalidIdentifierException(f"Invalid {what}: {value!r}", value)

    if isinstance(value, int):
        numeric = value
    elif isinstance(value, str) and _DIGITS.fullmatch(value):
        numeric = int(value)
    else:
        raise WmsInvalidIdentifierException(f"Invalid {what}: {value!r}", value)

    if numeric <= 0 or numeric > MAX_IDENTIFIER:
        raise WmsInvalidIdentifierException(f"Invalid {what}: {value!r}", value)
    return numeric


def parse_composite_id(record_id: str | int) -> int:
    """Извлечь числовой orderId из составного идентификатора.

    "482-3" -> 482, "482" -> 482. Разделение только по первому "-".

    Raises:
        WmsInvalidIdentifierException: Если ведущий сегмент не положительное целое
    """
    if not isinstance(record_id, str):
        return parse_numeric_id(record_id, what="order ID")

    head, _, _ = record_id.partition(COMPOSITE_SEPARATOR)
    try:
        return parse_numeric_id(head, what="order ID")
    except WmsInvalidIdentifierException as exc:
        raise WmsInvalidIdentifierException(
            f"Invalid order ID: {record_id!r}", record_id
        ) from exc
