"""
Pipeline results
Tagged Ok/Err values returned by request-pipeline stages
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Generic, Optional, TypeVar, Union

from app.models.api import SuccessPayload

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Terminal error taxonomy of the request pipeline"""
    METHOD_NOT_ALLOWED = "method_not_allowed"
    BAD_REQUEST = "bad_request"
    VALIDATION_ERROR = "validation_error"
    AUTH_REQUIRED = "auth_required"
    AUTH_INVALID = "auth_invalid"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    DB_ERROR = "db_error"
    INTERNAL_ERROR = "internal_error"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]

    @property
    def code(self) -> str:
        return _ERROR_CODES.get(self) or f"ERR-{self.status_code}"


_STATUS_CODES = {
    ErrorKind.METHOD_NOT_ALLOWED: 405,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.AUTH_REQUIRED: 401,
    ErrorKind.AUTH_INVALID: 401,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.DB_ERROR: 500,
    ErrorKind.INTERNAL_ERROR: 500,
}

# Kinds without an entry use the generic ERR-<status> code
_ERROR_CODES = {
    ErrorKind.VALIDATION_ERROR: "VALIDATION-ERROR",
    ErrorKind.AUTH_REQUIRED: "AUTH-ERROR",
    ErrorKind.AUTH_INVALID: "AUTH-ERROR",
    ErrorKind.NOT_FOUND: "NOT-FOUND",
    ErrorKind.DB_ERROR: "DB-ERROR",
}


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    # Overrides the kind's default status (e.g. provider status passthrough)
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def status(self) -> int:
        return self.status_code or self.kind.status_code


Result = Union[Ok[T], Err]


@dataclass(frozen=True)
class UpstreamResult:
    """Successful pipeline outcome: status code and JSON body for the client"""
    status_code: int
    body: Dict[str, Any]

    @classmethod
    def passthrough(cls, status_code: int, payload: Any, success: FrozenSet[int]) -> "UpstreamResult":
        """Wrap a data-store payload, keeping the upstream status code"""
        body = SuccessPayload(status=status_code in success, data=payload)
        return cls(status_code=status_code, body=body.model_dump())
