"""Тесты для pipeline модуля."""

import pytest

from tests.fakes import FakeTransport, json_response
from wmsgateway.exceptions import WmsTokenUnavailableException, WmsTransportException
from wmsgateway.pipeline import (
    AUTHORIZATION_HEADER,
    CACHE_BUSTER_PARAM,
    CSRF_HEADER,
    RequestPipeline,
    SecurityModel,
)
from wmsgateway.results import FailureKind
from wmsgateway.token_store import MemoryTokenStore
from wmsgateway.transport import HttpRequest

pytestmark = pytest.mark.unit


class FakeClock:
    """Часы, которые идут только вручную."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_pipeline(transport: FakeTransport, clock: FakeClock) -> RequestPipeline:
    return RequestPipeline(transport, SecurityModel.SESSION, MemoryTokenStore(), clock=clock)


@pytest.fixture
def bearer_store() -> MemoryTokenStore:
    return MemoryTokenStore()


@pytest.fixture
def bearer_pipeline(
    transport: FakeTransport, clock: FakeClock, bearer_store: MemoryTokenStore
) -> RequestPipeline:
    return RequestPipeline(transport, SecurityModel.BEARER, bearer_store, clock=clock)


class TestCacheBusting:
    """Анти-кэш параметр _t."""

    @pytest.mark.parametrize("method", ["GET", "POST", "DELETE"])
    async def test_every_request_gets_timestamp(
        self,
        bearer_pipeline: RequestPipeline,
        transport: FakeTransport,
        clock: FakeClock,
        method: str,
    ) -> None:
        """И чтение, и запись получают _t в миллисекундах."""
        await bearer_pipeline.send(HttpRequest(method, "/api/items"))

        assert transport.requests[0].params[CACHE_BUSTER_PARAM] == int(clock.now * 1000)

    async def test_differs_between_timestamps(
        self,
        bearer_pipeline: RequestPipeline,
        transport: FakeTransport,
        clock: FakeClock,
    ) -> None:
        """Одинаковые запросы в разное время различаются параметром _t."""
        request = HttpRequest("POST", "/api/items", json={"itemName": "Болт"})

        await bearer_pipeline.send(request)
        clock.now += 0.002
        await bearer_pipeline.send(request)

        first, second = transport.requests
        assert first.path == second.path
        assert first.json == second.json
        assert first.params[CACHE_BUSTER_PARAM] != second.params[CACHE_BUSTER_PARAM]

    async def test_keeps_caller_params(
        self, bearer_pipeline: RequestPipeline, transport: FakeTransport
    ) -> None:
        await bearer_pipeline.send(
            HttpRequest("GET", "/api/inout/orders", params={"status": "PENDING"})
        )

        assert transport.requests[0].params["status"] == "PENDING"


class TestBearerModel:
    """Bearer модель: токен из хранилища на каждый запрос."""

    @pytest.mark.parametrize("method", ["GET", "POST"])
    async def test_attaches_token_unconditionally(
        self,
        bearer_pipeline: RequestPipeline,
        bearer_store: MemoryTokenStore,
        transport: FakeTransport,
        method: str,
    ) -> None:
        bearer_store.set("jwt-1")

        await bearer_pipeline.send(HttpRequest(method, "/api/items"))

        headers = transport.requests[0].headers
        assert headers[AUTHORIZATION_HEADER] == "Bearer jwt-1"
        assert CSRF_HEADER not in headers

    async def test_no_header_without_token(
        self, bearer_pipeline: RequestPipeline, transport: FakeTransport
    ) -> None:
        """Без токена запрос уходит как есть, без запроса CSRF."""
        await bearer_pipeline.send(HttpRequest("POST", "/api/items"))

        assert [r.path for r in transport.requests] == ["/api/items"]
        assert AUTHORIZATION_HEADER not in transport.requests[0].headers

    def test_has_no_token_manager(self, bearer_pipeline: RequestPipeline) -> None:
        assert bearer_pipeline.token_manager is None


class TestSessionModel:
    """Сессионная модель: CSRF только для изменяющих запросов."""

    @pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS"])
    async def test_safe_methods_skip_csrf(
        self,
        session_pipeline: RequestPipeline,
        transport: FakeTransport,
        method: str,
    ) -> None:
        """Безопасные методы не получают токен и не запускают его получение."""
        await session_pipeline.send(HttpRequest(method, "/api/items"))

        assert [r.path for r in transport.requests] == ["/api/items"]
        assert CSRF_HEADER not in transport.requests[0].headers

    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE"])
    async def test_acquires_once_before_mutating_request(
        self,
        session_pipeline: RequestPipeline,
        transport: FakeTransport,
        method: str,
    ) -> None:
        """Без токена ровно одно получение токена предшествует запросу."""
        transport.add("GET", "/api/csrf", json_response({"token": "csrf-1"}))
        transport.add(method, "/api/items/1", json_response({}))

        result = await session_pipeline.send(HttpRequest(method, "/api/items/1"))

        assert result.ok
        assert [r.path for r in transport.requests] == ["/api/csrf", "/api/items/1"]
        assert transport.requests[1].headers[CSRF_HEADER] == "csrf-1"

    async def test_reuses_cached_token(
        self, session_pipeline: RequestPipeline, transport: FakeTransport
    ) -> None:
        transport.add("GET", "/api/csrf", json_response({"token": "csrf-1"}))

        await session_pipeline.send(HttpRequest("POST", "/api/items"))
        await session_pipeline.send(HttpRequest("DELETE", "/api/items/1"))

        assert len(transport.calls("GET", "/api/csrf")) == 1
        assert transport.requests[-1].headers[CSRF_HEADER] == "csrf-1"

    async def test_token_unavailable_is_tagged_failure(
        self, session_pipeline: RequestPipeline, transport: FakeTransport
    ) -> None:
        """Без токена ресурс не запрашивается, неудача — TOKEN_UNAVAILABLE."""
        result = await session_pipeline.send(HttpRequest("POST", "/api/items"))

        assert result.kind is FailureKind.TOKEN_UNAVAILABLE
        assert transport.calls(path="/api/items") == []
        with pytest.raises(WmsTokenUnavailableException):
            result.unwrap()


class TestDispatchFailures:
    """Классификация неудач транспорта и статусов."""

    async def test_transport_error(
        self, bearer_pipeline: RequestPipeline, transport: FakeTransport
    ) -> None:
        transport.add("GET", "/api/items", WmsTransportException("timeout"))

        result = await bearer_pipeline.send(HttpRequest("GET", "/api/items"))

        assert result.kind is FailureKind.TRANSPORT
        with pytest.raises(WmsTransportException):
            result.unwrap()

    @pytest.mark.parametrize(
        ("status", "kind"),
        [
            (403, FailureKind.AUTHORIZATION),
            (405, FailureKind.METHOD_NOT_ALLOWED),
            (401, FailureKind.HTTP),
            (500, FailureKind.HTTP),
        ],
    )
    async def test_status_classification(
        self,
        bearer_pipeline: RequestPipeline,
        transport: FakeTransport,
        status: int,
        kind: FailureKind,
    ) -> None:
        transport.add("GET", "/api/items", json_response({"error": "x"}, status=status))

        result = await bearer_pipeline.send(HttpRequest("GET", "/api/items"))

        assert result.kind is kind
        assert result.failure is not None
        assert result.failure.error.status == status  # type: ignore[attr-defined]
        assert result.failure.error.body == {"error": "x"}  # type: ignore[attr-defined]
