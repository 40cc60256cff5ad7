"""
Error Pages
Jinja2-rendered HTML fallbacks for endpoints that short-circuit to a page
"""

import os
from functools import lru_cache

from fastapi.responses import HTMLResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "..", "templates")


@lru_cache
def get_template_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=select_autoescape(['html', 'xml']),
        trim_blocks=True,
        lstrip_blocks=True
    )


def render_rate_limit_page(retry_after: int) -> HTMLResponse:
    """429 page whose countdown starts at `retry_after` seconds"""
    template = get_template_env().get_template("429.html")
    content = template.render(retry_after=max(1, int(retry_after)))
    return HTMLResponse(content=content, status_code=429)
