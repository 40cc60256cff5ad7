"""
Unit tests for the request pipeline stages
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models.api import Principal
from app.models.results import Err, ErrorKind, Ok, UpstreamResult
from app.services.error_responder import ErrorResponder
from app.services.request_handler import RequestHandler, parse_input

from tests.conftest import make_request


@pytest.fixture
def gateway():
    gateway = MagicMock()
    gateway.authenticate = AsyncMock(return_value=Ok(Principal(id="user-123")))
    return gateway


@pytest.fixture
def handler(rate_limiter, gateway, settings):
    return RequestHandler(rate_limiter, gateway, ErrorResponder(settings))


def ok_operation(status_code=200, data=None):
    return AsyncMock(return_value=Ok(UpstreamResult.passthrough(status_code, data, frozenset({200, 201}))))


class TestParseInput:

    async def test_get_reads_query_parameters(self):
        result = await parse_input(make_request("GET", query_string=b"specialty=cardiologia&limit=5"), ("GET",))

        assert result == Ok({"specialty": "cardiologia", "limit": "5"})

    async def test_empty_body_is_empty_object(self):
        result = await parse_input(make_request("POST"), ("POST",))

        assert result == Ok({})

    async def test_json_body(self):
        result = await parse_input(make_request("PUT", body=b'{"id": 3}'), ("PUT",))

        assert result == Ok({"id": 3})

    async def test_rejected_method(self):
        result = await parse_input(make_request("PATCH"), ("GET", "POST", "PUT"))

        assert isinstance(result, Err)
        assert result.kind is ErrorKind.METHOD_NOT_ALLOWED
        assert result.status == 405


class TestRequestHandler:

    async def test_stages_run_in_order(self, handler, gateway):
        operation = ok_operation(200, [{"id": 1}])

        response = await handler.handle(make_request("GET"), operation)

        assert response.status_code == 200
        assert json.loads(response.body) == {"status": True, "data": [{"id": 1}]}
        gateway.authenticate.assert_awaited_once()
        ctx = operation.await_args.args[0]
        assert ctx.principal == Principal(id="user-123")
        assert ctx.request.state.principal.id == "user-123"
        assert ctx.rate_limit.remaining == 99

    async def test_auth_failure_stops_pipeline(self, handler, gateway):
        gateway.authenticate.return_value = Err(ErrorKind.AUTH_REQUIRED, "Authentication token is required")
        operation = ok_operation()

        response = await handler.handle(make_request("GET"), operation)

        assert response.status_code == 401
        operation.assert_not_awaited()
        assert response.headers["X-RateLimit-Remaining"] == "99"

    async def test_rate_limit_checked_before_auth(self, handler, gateway, rate_limiter):
        rate_limiter.default_limit = 1
        await handler.handle(make_request("GET"), ok_operation())
        gateway.authenticate.reset_mock()

        response = await handler.handle(make_request("GET"), ok_operation())

        assert response.status_code == 429
        gateway.authenticate.assert_not_awaited()

    async def test_public_endpoint_skips_auth(self, handler, gateway):
        response = await handler.handle(make_request("POST", body=b'{"email": "a@b.c"}'), ok_operation(), require_auth=False)

        assert response.status_code == 200
        gateway.authenticate.assert_not_awaited()

    async def test_input_sanitized_by_default(self, handler):
        operation = ok_operation()

        await handler.handle(make_request("POST", body=b'{"title": "<script>x</script>"}'), operation)

        assert operation.await_args.args[0].data == {"title": "&lt;script&gt;x&lt;/script&gt;"}

    async def test_sanitize_disabled(self, handler):
        operation = ok_operation()

        await handler.handle(make_request("POST", body=b'{"password": "p<&>"}'), operation, sanitize=False)

        assert operation.await_args.args[0].data == {"password": "p<&>"}

    async def test_operation_error_converted_once(self, handler):
        operation = AsyncMock(return_value=Err(ErrorKind.NOT_FOUND, "Lesson not found"))

        response = await handler.handle(make_request("GET"), operation)

        assert response.status_code == 404
        assert json.loads(response.body)["error"] == {"code": "NOT-FOUND", "message": "Lesson not found"}
        assert "X-RateLimit-Limit" in response.headers
