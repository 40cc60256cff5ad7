"""
Content routes
One endpoint per content collection (lessons, articles, congresses, residencies)

GET lists records, POST creates one, PUT updates one by id. Other methods are
routed too so they get the standard METHOD_NOT_ALLOWED envelope.
"""

from fastapi import APIRouter, Depends, Request

from app.models.resources import RESOURCES, ResourceDefinition
from app.services.content_service import ContentService
from app.services.request_handler import RequestContext, RequestHandler
from app.utils.dependencies import get_content_service, get_request_handler

router = APIRouter()

ROUTED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


def build_endpoint(resource: ResourceDefinition):
    """Create the request handler endpoint for one collection"""

    async def endpoint(
        request: Request,
        handler: RequestHandler = Depends(get_request_handler),
        service: ContentService = Depends(get_content_service)
    ):
        async def operation(ctx: RequestContext):
            if ctx.method == "GET":
                return await service.read(resource, ctx.data)
            if ctx.method == "POST":
                return await service.create(resource, ctx.data)
            return await service.update(resource, ctx.data)

        return await handler.handle(
            request,
            operation,
            html_rate_limit_page=resource.html_rate_limit_page
        )

    endpoint.__doc__ = f"List, create or update {resource.name}"
    return endpoint


for _resource in RESOURCES.values():
    _endpoint = build_endpoint(_resource)
    for _method in ROUTED_METHODS:
        router.add_api_route(
            f"/{_resource.name}",
            _endpoint,
            methods=[_method],
            name=f"{_method.lower()}_{_resource.name}",
            include_in_schema=_method in ("GET", "POST", "PUT"),
            tags=[_resource.name.capitalize()]
        )
