"""
API data models
Pydantic models for principals, rate-limit state and response envelopes
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Principal(BaseModel):
    """Identity verified by the identity provider for a single request"""
    id: str
    email: Optional[str] = None
    role: Optional[str] = None
    is_admin: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_provider(cls, user: Dict[str, Any]) -> "Principal":
        """Build a principal from a `/auth/v1/user` payload"""
        app_metadata = user.get("app_metadata") or {}
        user_metadata = user.get("user_metadata") or {}
        is_admin = app_metadata.get("role") == "admin" or bool(user_metadata.get("is_admin"))
        return cls(
            id=str(user["id"]),
            email=user.get("email"),
            role=user.get("role"),
            is_admin=is_admin,
            metadata=user_metadata,
        )


class RateLimitResult(BaseModel):
    """Outcome of one sliding-window check"""
    limited: bool
    limit: int
    remaining: int = Field(..., ge=0)
    reset: int
    retry_after: int = 0


class ErrorBody(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ErrorPayload(BaseModel):
    """Standard error envelope: `{status: false, error: {...}}`"""
    status: bool = False
    error: ErrorBody

    def to_content(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class SuccessPayload(BaseModel):
    """Data envelope returned by content endpoints"""
    status: bool
    data: Any = None
