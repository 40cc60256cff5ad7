"""
Error Responder
Standardized JSON error responses for the portal API

Every error is logged (structlog event plus an entry in the append-only API
error log) before the response is returned. The returned response is
terminal: handlers return it as-is and do no further work.
"""

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
import structlog

from app.config import Settings
from app.models.api import ErrorBody, ErrorPayload
from app.models.results import Err, ErrorKind
from shared.utils.logger import ErrorLogWriter

logger = structlog.get_logger(__name__)

# Kinds whose details may carry exception internals
VERBOSE_ONLY_KINDS = (ErrorKind.DB_ERROR, ErrorKind.INTERNAL_ERROR)


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class ErrorResponder:
    """Builds, logs and returns error envelopes"""

    def __init__(self, settings: Settings, log_writer: Optional[ErrorLogWriter] = None):
        self.settings = settings
        self.log_writer = log_writer or ErrorLogWriter(settings.error_log_path)

    def handle_error(
        self,
        request: Request,
        status: int = 500,
        message: str = "Internal Server Error",
        details: Optional[Dict[str, Any]] = None,
        code: str = ""
    ) -> JSONResponse:
        """
        Build the `{status: false, error: {...}}` response

        Args:
            request: Current request (for the log entry)
            status: HTTP status code
            message: Human-readable error message
            details: Extra data; omitted from the body when empty
            code: Internal error code, defaults to ERR-<status>
        """
        code = code or f"ERR-{status}"
        details = details or None
        payload = ErrorPayload(error=ErrorBody(code=code, message=message, details=details))

        self.log_error(request, status, code, message, details)

        return JSONResponse(status_code=status, content=payload.to_content())

    def validation_error(self, request: Request, errors: Dict[str, str]) -> JSONResponse:
        return self.handle_error(request, 400, "Validation failed", errors, ErrorKind.VALIDATION_ERROR.code)

    def auth_error(self, request: Request, message: str = "Unauthorized access") -> JSONResponse:
        return self.handle_error(request, 401, message, None, ErrorKind.AUTH_INVALID.code)

    def not_found_error(self, request: Request, message: str = "Resource not found", resource: str = "") -> JSONResponse:
        details = {"resource": resource} if resource else None
        return self.handle_error(request, 404, message, details, ErrorKind.NOT_FOUND.code)

    def db_error(self, request: Request, exc: Exception, operation: str = "database operation") -> JSONResponse:
        details = self.exception_details(exc)
        return self.handle_error(request, 500, f"An error occurred during {operation}", details, ErrorKind.DB_ERROR.code)

    def from_error(self, request: Request, err: Err) -> JSONResponse:
        """Convert a pipeline Err into its response"""
        details = err.details
        if err.kind in VERBOSE_ONLY_KINDS and not self.settings.is_development:
            details = None
        return self.handle_error(request, err.status, err.message, details, err.kind.code)

    def exception_details(self, exc: Exception) -> Optional[Dict[str, Any]]:
        """Exception internals, exposed only in development"""
        if not self.settings.is_development:
            return None
        return {"error_message": str(exc), "error_type": type(exc).__name__}

    def log_error(
        self,
        request: Request,
        status: int,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]]
    ) -> None:
        principal = getattr(request.state, "principal", None)
        user_id = principal.id if principal is not None else None
        ip_address = client_ip(request)

        log = logger.error if status >= 500 else logger.warning
        log(
            "API error",
            status_code=status,
            code=code,
            message=message,
            method=request.method,
            path=request.url.path,
            client_ip=ip_address,
            user_id=user_id
        )

        entry = ErrorLogWriter.format_entry(
            status=status,
            code=code,
            message=message,
            ip_address=ip_address,
            method=request.method,
            path=request.url.path,
            details=details,
            user_id=user_id
        )
        self.log_writer.write(entry)
