"""
Security utilities for the MedicinaHub portal

Input sanitization and Authorization header parsing.
"""

import html
from typing import Any, Optional

BEARER_PREFIX = "Bearer "


def sanitize_input(value: Any) -> Any:
    """
    HTML-escape every string in a request payload

    Dicts and lists are walked recursively; other scalars pass through.
    Both quote styles are escaped.
    """
    if isinstance(value, dict):
        return {key: sanitize_input(item) for key, item in value.items()}
    if isinstance(value, list):
        return [sanitize_input(item) for item in value]
    if isinstance(value, str):
        return html.escape(value, quote=True)
    return value


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Extract the token from an `Authorization: Bearer <token>` header

    Returns:
        The token, or None when the header is absent, uses another scheme,
        or carries an empty token
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None
