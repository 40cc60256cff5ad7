"""
Content resources
Declarative definitions of the CRUD collections exposed under /api
"""

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class ResourceDefinition:
    """One data-store collection and its endpoint rules"""
    name: str
    table: str
    required_fields: Tuple[str, ...] = ()
    filters: Tuple[str, ...] = ()
    # Rate-limited requests get the HTML 429 page instead of JSON
    html_rate_limit_page: bool = False


LESSONS = ResourceDefinition(
    name="lessons",
    table="lessons",
    required_fields=("title",),
    html_rate_limit_page=True,
)

ARTICLES = ResourceDefinition(
    name="articles",
    table="articles",
    required_fields=("title",),
    filters=("flair", "status", "featured", "slug"),
)

CONGRESSES = ResourceDefinition(
    name="congresses",
    table="congresses",
    required_fields=("name", "event_date"),
    filters=("state", "specialty"),
)

RESIDENCIES = ResourceDefinition(
    name="residencies",
    table="residencies",
    required_fields=("title", "institution"),
    filters=("specialty", "status", "location"),
)

RESOURCES: Dict[str, ResourceDefinition] = {
    resource.name: resource
    for resource in (LESSONS, ARTICLES, CONGRESSES, RESIDENCIES)
}
