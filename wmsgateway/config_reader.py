"""Конфигурация WMS шлюза.

Настройки лежат в YAML-файле под ключом wms_gateway; путь к файлу
задаёт WMS_GATEWAY_CONFIG. Перед чтением подхватывается .env,
а WMS_BACKEND_URL перекрывает backend_url из файла.
"""

from functools import lru_cache
from os import getenv
from pathlib import Path
from typing import Any, TypeVar, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from yaml import CSafeLoader as SafeLoader
from yaml import load

from wmsgateway.pipeline import SecurityModel
from wmsgateway.token_manager import DEFAULT_CSRF_TOKEN_PATHS

# .env читается один раз при импорте
load_dotenv()

SectionModel = TypeVar("SectionModel", bound=BaseModel)

CONFIG_PATH_ENV = "WMS_GATEWAY_CONFIG"
BACKEND_URL_ENV = "WMS_BACKEND_URL"
ROOT_KEY = "wms_gateway"

DEFAULT_BACKEND_URL = "https://smart-wms-be.p-e.kr"


class WmsGatewayConfig(BaseModel):
    """Конфигурация подключения к WMS backend."""

    # Адрес бэкенда, на который проксируются /api/* и /csrf
    backend_url: str = DEFAULT_BACKEND_URL

    # Модель безопасности: session (cookie + CSRF) или bearer
    security_model: SecurityModel = SecurityModel.SESSION

    # Файл с bearer токеном (только для модели bearer)
    token_file: Path | None = None

    # Таймаут запроса транспорта, секунды
    timeout_seconds: float = Field(default=30.0, gt=0)

    # Эндпоинты CSRF токена в порядке опроса
    csrf_token_paths: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CSRF_TOKEN_PATHS), min_length=1
    )

    @field_validator("backend_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


@lru_cache
def parse_config_file() -> dict[str, Any]:
    """Загрузить YAML из файла, указанного в WMS_GATEWAY_CONFIG.

    Returns:
        Содержимое файла (секции верхнего уровня)

    Raises:
        ValueError: Если WMS_GATEWAY_CONFIG не задана или в файле не словарь
        FileNotFoundError: Если файла нет
    """
    config_path = getenv(CONFIG_PATH_ENV)
    if config_path is None:
        raise ValueError(
            f"Не задана переменная окружения {CONFIG_PATH_ENV} "
            "с путём к YAML-конфигурации шлюза."
        )

    with open(config_path, "rb") as stream:
        sections = load(stream, Loader=SafeLoader)

    if not isinstance(sections, dict):
        raise ValueError(f"{config_path}: ожидался словарь секций")
    return sections


@lru_cache
def get_config(model: type[SectionModel], root_key: str) -> SectionModel:  # noqa: UP047
    """Провалидировать одну секцию конфигурации.

    Args:
        model: Pydantic-модель секции
        root_key: Имя секции верхнего уровня

    Returns:
        Экземпляр model

    Raises:
        ValueError: Если секции нет в файле
    """
    sections = parse_config_file()
    if root_key not in sections:
        raise ValueError(f"В конфигурации нет секции '{root_key}'")
    return model.model_validate(sections[root_key])


def get_wms_gateway_config() -> WmsGatewayConfig:
    """Конфигурация шлюза с учётом WMS_BACKEND_URL.

    Returns:
        Экземпляр WmsGatewayConfig
    """
    config = cast(WmsGatewayConfig, get_config(WmsGatewayConfig, ROOT_KEY))
    backend_url = getenv(BACKEND_URL_ENV)
    if backend_url:
        return config.model_copy(update={"backend_url": backend_url.rstrip("/")})
    return config
