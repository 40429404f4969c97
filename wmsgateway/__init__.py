"""Модуль для работы с WMS backend API.

Предоставляет клиента с автоматической подстановкой токенов
безопасности, повтором при 403 и fallback для дашборда.

Пример использования:
    from wmsgateway import get_wms_gateway_config, WmsApiClientManager

    config = get_wms_gateway_config()
    manager = await WmsApiClientManager.from_config(config)

    # Дашборд (сводный запрос или fallback)
    dashboard = await manager.fetch_dashboard_all()

    # Обновление строки заказа по составному ID
    await manager.update_inout_record("482-3", {"status": "COMPLETED"})
"""

from wmsgateway.api_client_manager import (
    ApiConnection,
    WmsApiClientManager,
)
from wmsgateway.config_reader import (
    WmsGatewayConfig,
    get_config,
    get_wms_gateway_config,
    parse_config_file,
)
from wmsgateway.dashboard import DashboardAggregator
from wmsgateway.exceptions import (
    WmsAuthorizationException,
    WmsDecodeException,
    WmsGatewayException,
    WmsHttpException,
    WmsInvalidIdentifierException,
    WmsMethodNotAllowedException,
    WmsTokenUnavailableException,
    WmsTransportException,
)
from wmsgateway.identifiers import parse_composite_id, parse_numeric_id
from wmsgateway.pipeline import RequestPipeline, SecurityModel
from wmsgateway.recovery import RecoveryInterceptor
from wmsgateway.token_manager import CsrfTokenManager
from wmsgateway.token_store import FileTokenStore, MemoryTokenStore, TokenStore
from wmsgateway.transport import AiohttpTransport, HttpRequest, HttpResponse, Transport
from wmsgateway.verb_fallback import VerbCandidate, VerbFallbackUpdater

__all__ = [
    # API Client Manager
    "ApiConnection",
    "WmsApiClientManager",
    # Configuration
    "WmsGatewayConfig",
    "get_config",
    "get_wms_gateway_config",
    "parse_config_file",
    # Exceptions
    "WmsAuthorizationException",
    "WmsDecodeException",
    "WmsGatewayException",
    "WmsHttpException",
    "WmsInvalidIdentifierException",
    "WmsMethodNotAllowedException",
    "WmsTokenUnavailableException",
    "WmsTransportException",
    # Request layer
    "AiohttpTransport",
    "CsrfTokenManager",
    "DashboardAggregator",
    "HttpRequest",
    "HttpResponse",
    "RecoveryInterceptor",
    "RequestPipeline",
    "SecurityModel",
    "Transport",
    "VerbCandidate",
    "VerbFallbackUpdater",
    # Token storage
    "FileTokenStore",
    "MemoryTokenStore",
    "TokenStore",
    # Identifiers
    "parse_composite_id",
    "parse_numeric_id",
]
