"""
Request Handler
Linear per-request pipeline shared by every API endpoint

    ParseInput -> RateLimitCheck -> AuthVerify -> Validate/Execute -> Respond

Each stage returns Ok/Err. The first Err ends the pipeline and is converted
to a response exactly once, in `respond`.
"""

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from fastapi import Request, Response
from fastapi.responses import JSONResponse
import structlog

from app.models.api import Principal, RateLimitResult
from app.models.results import Err, ErrorKind, Ok, Result, UpstreamResult
from app.services.auth_gateway import AuthGateway
from app.services.error_responder import ErrorResponder, client_ip
from app.services.rate_limiter import RateLimiter, apply_rate_limit_headers
from app.utils.supabase_client import SupabaseConfigError
from app.utils.error_pages import render_rate_limit_page
from shared.utils.security import sanitize_input

logger = structlog.get_logger(__name__)

DEFAULT_METHODS = ("GET", "POST", "PUT")


@dataclass
class RequestContext:
    """State accumulated while one request moves through the pipeline"""
    request: Request
    data: Optional[Dict[str, Any]] = None
    rate_limit: Optional[RateLimitResult] = None
    principal: Optional[Principal] = None

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def rate_limit_key(self) -> str:
        return f"api:{client_ip(self.request)}"


Operation = Callable[[RequestContext], Awaitable[Result[UpstreamResult]]]


async def parse_input(request: Request, methods: Sequence[str]) -> Result[Dict[str, Any]]:
    """Read query parameters (GET) or the JSON body (POST/PUT)"""
    if request.method not in methods:
        return Err(ErrorKind.METHOD_NOT_ALLOWED, "Method Not Allowed")

    if request.method == "GET":
        return Ok(dict(request.query_params))

    raw = await request.body()
    if not raw.strip():
        return Ok({})

    try:
        data = json.loads(raw)
    except ValueError as e:
        return Err(ErrorKind.BAD_REQUEST, "Invalid JSON payload", {"error": str(e)})

    if not isinstance(data, dict):
        return Err(ErrorKind.BAD_REQUEST, "Invalid JSON payload", {"error": "Expected a JSON object"})
    return Ok(data)


class RequestHandler:
    """Runs the request pipeline for one endpoint call"""

    def __init__(
        self,
        limiter: RateLimiter,
        gateway: AuthGateway,
        responder: ErrorResponder
    ):
        self.limiter = limiter
        self.gateway = gateway
        self.responder = responder

    async def handle(
        self,
        request: Request,
        operation: Operation,
        methods: Sequence[str] = DEFAULT_METHODS,
        require_auth: bool = True,
        sanitize: bool = True,
        html_rate_limit_page: bool = False
    ) -> Response:
        """
        Run the pipeline and return the terminal response

        Args:
            request: Incoming request
            operation: Validate/Execute stage, called with the populated context
            methods: Accepted HTTP methods; anything else is METHOD_NOT_ALLOWED
            require_auth: Verify the bearer token before running the operation
            sanitize: HTML-escape every string in the parsed input
            html_rate_limit_page: Answer RATE_LIMITED with the HTML 429 page
        """
        ctx = RequestContext(request=request)
        try:
            result = await self._run(ctx, operation, methods, require_auth, sanitize)
        except SupabaseConfigError as e:
            logger.error("Data store is not configured", error=str(e))
            result = Err(ErrorKind.INTERNAL_ERROR, "Internal Server Error", {"message": str(e)})
        return self.respond(ctx, result, html_rate_limit_page)

    async def _run(
        self,
        ctx: RequestContext,
        operation: Operation,
        methods: Sequence[str],
        require_auth: bool,
        sanitize: bool
    ) -> Result[UpstreamResult]:
        parsed = await parse_input(ctx.request, methods)
        if isinstance(parsed, Err):
            return parsed
        ctx.data = sanitize_input(parsed.value) if sanitize else parsed.value

        limited = await self.check_rate_limit(ctx)
        if isinstance(limited, Err):
            return limited

        if require_auth:
            verified = await self.authenticate(ctx)
            if isinstance(verified, Err):
                return verified

        return await operation(ctx)

    async def check_rate_limit(self, ctx: RequestContext) -> Result[RateLimitResult]:
        result = await self.limiter.check(ctx.rate_limit_key)
        ctx.rate_limit = result
        if result.limited:
            return Err(ErrorKind.RATE_LIMITED, "Too Many Requests", {"retry_after": result.retry_after})
        return Ok(result)

    async def authenticate(self, ctx: RequestContext) -> Result[Principal]:
        verified = await self.gateway.authenticate(ctx.request.headers.get("Authorization"))
        if isinstance(verified, Ok):
            ctx.principal = verified.value
            ctx.request.state.principal = verified.value
        return verified

    def respond(
        self,
        ctx: RequestContext,
        result: Result[UpstreamResult],
        html_rate_limit_page: bool = False
    ) -> Response:
        """Convert the pipeline outcome into the response and stop"""
        if isinstance(result, Err):
            if result.kind is ErrorKind.RATE_LIMITED and html_rate_limit_page:
                self.responder.log_error(ctx.request, result.status, result.kind.code, result.message, result.details)
                response: Response = render_rate_limit_page(ctx.rate_limit.retry_after)
            else:
                response = self.responder.from_error(ctx.request, result)
        else:
            response = JSONResponse(status_code=result.value.status_code, content=result.value.body)

        if ctx.rate_limit is not None:
            apply_rate_limit_headers(response, ctx.rate_limit)
        return response
