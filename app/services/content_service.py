"""
Content Service
Read, create and update operations on content collections

Each operation performs one data-store call and passes the upstream status
code through to the client.
"""

from typing import Any, Dict, FrozenSet, Mapping

import httpx
import structlog

from app.models.resources import ResourceDefinition
from app.models.results import Err, ErrorKind, Ok, Result, UpstreamResult
from app.utils.supabase_client import SupabaseClient
from app.utils.validators import is_empty, positive_int, validate_required

logger = structlog.get_logger(__name__)

ID_REQUIRED_MESSAGE = "ID is required for updates"

READ_SUCCESS: FrozenSet[int] = frozenset({200})
CREATE_SUCCESS: FrozenSet[int] = frozenset({200, 201})
UPDATE_SUCCESS: FrozenSet[int] = frozenset({200})


def build_query(resource: ResourceDefinition, params: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate client query parameters into PostgREST filters"""
    query: Dict[str, Any] = {}
    for field in resource.filters:
        value = params.get(field)
        if not is_empty(value):
            query[field] = f"eq.{value}"

    limit = positive_int(params.get("limit"))
    if limit:
        query["limit"] = limit
        page = positive_int(params.get("page"))
        if page and page > 1:
            query["offset"] = (page - 1) * limit
    return query


class ContentService:
    """CRUD operations over the Supabase REST data store"""

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def read(self, resource: ResourceDefinition, params: Mapping[str, Any]) -> Result[UpstreamResult]:
        try:
            status_code, payload = await self.client.fetch(resource.table, build_query(resource, params))
        except httpx.HTTPError as e:
            return self._db_error(e, f"fetching {resource.name}")
        return Ok(UpstreamResult.passthrough(status_code, payload, READ_SUCCESS))

    async def create(self, resource: ResourceDefinition, data: Mapping[str, Any]) -> Result[UpstreamResult]:
        validation = validate_required(data, resource.required_fields)
        if isinstance(validation, Err):
            return validation

        try:
            status_code, payload = await self.client.insert(resource.table, [dict(data)])
        except httpx.HTTPError as e:
            return self._db_error(e, f"creating {resource.name}")

        if status_code in CREATE_SUCCESS:
            logger.info("Record created", resource=resource.name, status_code=status_code)
        return Ok(UpstreamResult.passthrough(status_code, payload, CREATE_SUCCESS))

    async def update(self, resource: ResourceDefinition, data: Mapping[str, Any]) -> Result[UpstreamResult]:
        if is_empty(data.get("id")):
            return Err(ErrorKind.VALIDATION_ERROR, "Validation failed", {"id": ID_REQUIRED_MESSAGE})

        changes = dict(data)
        record_id = str(changes.pop("id"))

        try:
            status_code, payload = await self.client.update(resource.table, record_id, changes)
        except httpx.HTTPError as e:
            return self._db_error(e, f"updating {resource.name}")

        if status_code in UPDATE_SUCCESS:
            logger.info("Record updated", resource=resource.name, record_id=record_id)
        return Ok(UpstreamResult.passthrough(status_code, payload, UPDATE_SUCCESS))

    @staticmethod
    def _db_error(exc: Exception, operation: str) -> Err:
        logger.error("Data store request failed", operation=operation, error=str(exc))
        return Err(
            ErrorKind.DB_ERROR,
            f"An error occurred during {operation}",
            {"error_message": str(exc), "error_type": type(exc).__name__}
        )
