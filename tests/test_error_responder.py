"""
Tests for error envelopes and the API error log
"""

import json
from datetime import datetime

from app.config import Settings
from app.models.api import Principal
from app.models.results import Err, ErrorKind
from app.services.error_responder import ErrorResponder
from shared.utils.logger import ERROR_LOG_SEPARATOR, ErrorLogWriter

from tests.conftest import make_request


def body_of(response):
    return json.loads(response.body)


class TestErrorEnvelope:

    def test_default_code_from_status(self, settings):
        responder = ErrorResponder(settings)

        response = responder.handle_error(make_request(), 503, "Service Unavailable")

        assert response.status_code == 503
        assert body_of(response) == {
            "status": False,
            "error": {"code": "ERR-503", "message": "Service Unavailable"}
        }

    def test_validation_error(self, settings):
        responder = ErrorResponder(settings)

        response = responder.validation_error(make_request("POST"), {"title": "This field is required"})

        assert response.status_code == 400
        assert body_of(response)["error"] == {
            "code": "VALIDATION-ERROR",
            "message": "Validation failed",
            "details": {"title": "This field is required"}
        }

    def test_auth_and_not_found_variants(self, settings):
        responder = ErrorResponder(settings)

        auth = responder.auth_error(make_request())
        missing = responder.not_found_error(make_request(), "Lesson not found", "lessons")

        assert auth.status_code == 401
        assert body_of(auth)["error"]["code"] == "AUTH-ERROR"
        assert body_of(auth)["error"]["message"] == "Unauthorized access"
        assert missing.status_code == 404
        assert body_of(missing)["error"]["details"] == {"resource": "lessons"}

    def test_db_error_details_only_in_development(self, settings):
        production = settings.model_copy(update={"app_env": "production"})
        exc = RuntimeError("connection lost")

        dev_body = body_of(ErrorResponder(settings).db_error(make_request(), exc, "fetching lessons"))
        prod_body = body_of(ErrorResponder(production).db_error(make_request(), exc, "fetching lessons"))

        assert dev_body["error"]["message"] == "An error occurred during fetching lessons"
        assert dev_body["error"]["details"] == {"error_message": "connection lost", "error_type": "RuntimeError"}
        assert "details" not in prod_body["error"]

    def test_from_error_strips_internal_details_in_production(self, settings):
        production = settings.model_copy(update={"app_env": "production"})
        err = Err(ErrorKind.DB_ERROR, "An error occurred during creating articles", {"error_message": "boom"})

        response = ErrorResponder(production).from_error(make_request(), err)

        assert response.status_code == 500
        assert body_of(response)["error"] == {
            "code": "DB-ERROR",
            "message": "An error occurred during creating articles"
        }

    def test_from_error_keeps_validation_details_in_production(self, settings):
        production = settings.model_copy(update={"app_env": "production"})
        err = Err(ErrorKind.VALIDATION_ERROR, "Validation failed", {"name": "This field is required"})

        response = ErrorResponder(production).from_error(make_request(), err)

        assert body_of(response)["error"]["details"] == {"name": "This field is required"}

    def test_from_error_status_override(self, settings):
        err = Err(ErrorKind.AUTH_INVALID, "Invalid login credentials", status_code=400)

        response = ErrorResponder(settings).from_error(make_request(), err)

        assert response.status_code == 400
        assert body_of(response)["error"]["code"] == "AUTH-ERROR"


class TestErrorLog:

    def test_entry_written_for_each_error(self, settings, tmp_path):
        responder = ErrorResponder(settings)
        request = make_request("POST", "/api/articles", client_host="10.0.0.7")
        request.state.principal = Principal(id="user-123")

        responder.validation_error(request, {"title": "This field is required"})

        contents = (tmp_path / "logs" / "api_errors.log").read_text(encoding="utf-8")
        first_line = contents.splitlines()[0]
        assert first_line.endswith("[400] [VALIDATION-ERROR] [10.0.0.7] [POST /api/articles] Validation failed")
        assert 'Details: {"title": "This field is required"}' in contents
        assert "User ID: user-123" in contents
        assert contents.endswith(ERROR_LOG_SEPARATOR + "\n")

    def test_format_entry(self):
        entry = ErrorLogWriter.format_entry(
            status=429,
            code="ERR-429",
            message="Too Many Requests",
            ip_address="1.2.3.4",
            method="GET",
            path="/api/lessons",
            timestamp=datetime(2024, 3, 1, 14, 5, 9)
        )

        assert entry == (
            "[2024-03-01 14:05:09] [429] [ERR-429] [1.2.3.4] [GET /api/lessons] Too Many Requests\n"
            + "-" * 80 + "\n"
        )

    def test_write_failure_is_swallowed(self, tmp_path):
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("x")
        settings = Settings(app_env="development", error_log_path=str(blocker / "api_errors.log"))

        writer = ErrorLogWriter(settings.error_log_path)
        assert writer.write("entry\n") is False

        response = ErrorResponder(settings).handle_error(make_request(), 500)
        assert response.status_code == 500
        assert body_of(response)["error"]["code"] == "ERR-500"
