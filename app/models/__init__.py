"""
Portal API models
"""

from .api import Principal, RateLimitResult, ErrorBody, ErrorPayload, SuccessPayload
from .results import ErrorKind, Ok, Err, Result, UpstreamResult

__all__ = [
    "Principal",
    "RateLimitResult",
    "ErrorBody",
    "ErrorPayload",
    "SuccessPayload",
    "ErrorKind",
    "Ok",
    "Err",
    "Result",
    "UpstreamResult",
]
