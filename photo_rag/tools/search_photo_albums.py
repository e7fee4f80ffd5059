"""Tool: search_photo_albums, the agent-facing photo search operation.

Validates the tool arguments, delegates to QueryService.search and renders
the results as text. Failures come back as an error-flagged response
instead of an exception so a calling agent never crashes on them.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from photo_rag.config import settings
from photo_rag.models import SearchResult
from photo_rag.tools.search_photos import QueryService

TOOL_NAME = "search_photo_albums"

TOOL_DESCRIPTION = (
    "Search through our photo albums using natural language queries. Find photos by "
    "description, locations, objects, or any visual content. Optionally filter by location "
    'using place names (e.g., "Paris", "New York", "Tokyo").'
)


class SearchPhotoAlbumsInput(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    query: str = Field(
        min_length=1,
        description=(
            "Natural language description of what you want to find in the photos "
            '(e.g., "sunset over mountains", "people at the beach", "dogs playing")'
        ),
    )
    limit: int = Field(default=5, ge=1, le=10, description="Maximum number of photos to return")
    location: str | None = Field(
        default=None,
        description=(
            'Optional location to filter photos by (e.g., "Paris, France", "Tokyo", '
            '"Central Park New York"). Uses Nominatim geocoding.'
        ),
    )
    radius_km: float = Field(
        default=settings.DEFAULT_SEARCH_RADIUS_KM,
        ge=0.1,
        le=500,
        alias="radiusKm",
        description=(
            "Search radius in kilometers around the location "
            f"(default: {settings.DEFAULT_SEARCH_RADIUS_KM:g}km). Only used when location is specified."
        ),
    )


TOOL_DEFINITION = {
    "name": TOOL_NAME,
    "description": TOOL_DESCRIPTION,
    "inputSchema": SearchPhotoAlbumsInput.model_json_schema(by_alias=True),
}


@dataclass
class ToolResponse:
    """Text content plus the error flag, as returned to the calling agent."""

    text: str
    is_error: bool = False

    def to_dict(self) -> dict:
        response = {"content": [{"type": "text", "text": self.text}]}
        if self.is_error:
            response["isError"] = True
        return response


def format_result(index: int, result: SearchResult) -> str:
    if result.coordinates is not None:
        location = (
            f"Location: {result.coordinates.latitude:.6f}, {result.coordinates.longitude:.6f}"
        )
    else:
        location = "Location: No GPS data available"

    lines = [
        f"{index}. **{result.title}{result.extension}**",
        f"   URL: {result.url}",
        f"   {location}",
    ]
    if result.score is not None:
        lines.append(f"   Similarity: {result.score * 100:.1f}%")
    return "\n".join(lines)


def format_results(query: str, results: list[SearchResult]) -> str:
    if not results:
        return (
            f'No photos found matching "{query}". Try a different search term or check '
            "if photos have been uploaded to the collection."
        )
    entries = "\n\n".join(format_result(i, r) for i, r in enumerate(results, start=1))
    return f'Found {len(results)} photo(s) matching "{query}":\n\n{entries}'


def search_photo_albums(service: QueryService, arguments: dict) -> ToolResponse:
    """Run the search_photo_albums tool against a query service.

    Args:
        service: Performs the similarity search.
        arguments: Raw tool arguments (query, limit, location, radiusKm).

    Returns:
        ToolResponse with the formatted results. Invalid arguments and search
        failures come back with is_error set instead of raising.
    """
    try:
        params = SearchPhotoAlbumsInput.model_validate(arguments)
    except ValidationError as exc:
        logger.warning("Invalid {} arguments: {}", TOOL_NAME, exc)
        return ToolResponse(
            text=f"Invalid arguments for {TOOL_NAME}: {exc}",
            is_error=True,
        )

    location_info = (
        f' near "{params.location}" (radius: {params.radius_km:g}km)' if params.location else ""
    )
    logger.info(
        'Searching photo albums for: "{}"{} (limit: {})',
        params.query,
        location_info,
        params.limit,
    )

    try:
        results = service.search(
            params.query,
            limit=params.limit,
            location=params.location,
            radius_km=params.radius_km,
        )
    except Exception as exc:
        logger.error("Error searching photo albums: {}", exc)
        return ToolResponse(
            text=(
                f"Error searching photo albums: {str(exc) or 'Unknown error'}. "
                "Please check your Qdrant connection and try again."
            ),
            is_error=True,
        )

    return ToolResponse(text=format_results(params.query, results))


class SearchPhotoAlbumsTool:
    """Callable wrapper binding search_photo_albums to one QueryService."""

    name = TOOL_NAME
    definition = TOOL_DEFINITION

    def __init__(self, service: QueryService):
        self._service = service

    def __call__(self, arguments: dict) -> ToolResponse:
        return search_photo_albums(self._service, arguments)
