"""The get_weather tool: resolves a place, fetches current conditions, reports back."""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from weather_chat.core.weather_api import (
    OpenMeteoClient,
    WeatherServiceError,
    describe_weather_code,
)
from weather_chat.models.weather import (
    FailureReason,
    WeatherFound,
    WeatherLookup,
    WeatherNotAvailable,
    WeatherQuery,
    WeatherReport,
)

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class ToolDefinition:
    """A model-invocable operation with typed input and output."""

    name: str
    description: str
    input_model: Type[BaseModel]
    output_model: Type[BaseModel]
    handler: ToolHandler


async def lookup_weather(query: WeatherQuery, client: OpenMeteoClient) -> WeatherLookup:
    """Geocode, fetch, map. Service failures come back as a named failure."""
    try:
        place = await client.geocode(query.location)
        if place is None:
            return WeatherNotAvailable(
                reason=FailureReason.LOCATION_NOT_FOUND, location=query.location
            )

        observation = await client.fetch_current(
            place.latitude, place.longitude, query.unit
        )
    except WeatherServiceError as e:
        logger.error(f"Weather lookup for '{query.location}' failed: {e}")
        return WeatherNotAvailable(
            reason=FailureReason.FETCH_FAILED, location=query.location
        )

    return WeatherFound(
        report=WeatherReport(
            temperature=observation.temperature,
            conditions=describe_weather_code(observation.condition_code),
            location=", ".join(p for p in (place.name, place.country) if p),
        )
    )


async def get_weather(
    arguments: Dict[str, Any], client: OpenMeteoClient
) -> WeatherReport:
    """Tool entry point: raw model arguments in, a well-formed report out."""
    try:
        query = WeatherQuery.model_validate(arguments)
    except ValidationError as e:
        logger.warning(f"Rejected get_weather arguments {arguments!r}: {e}")
        location = arguments.get("location") if isinstance(arguments, dict) else None
        return WeatherNotAvailable(
            reason=FailureReason.FETCH_FAILED,
            location=location if isinstance(location, str) else "",
        ).to_report()

    logger.info(f"Looking up weather for '{query.location}' in {query.unit.value}")
    result = await lookup_weather(query, client)
    return result.to_report()


def make_weather_tool(client: Optional[OpenMeteoClient] = None) -> ToolDefinition:
    """Builds the get_weather tool bound to an Open-Meteo client."""
    weather_client = client or OpenMeteoClient()

    async def handler(arguments: Dict[str, Any]) -> Dict[str, Any]:
        report = await get_weather(arguments, weather_client)
        return report.model_dump()

    return ToolDefinition(
        name="get_weather",
        description=(
            "Get the current weather for a location. Returns the temperature, "
            "a short description of the conditions and the resolved place name."
        ),
        input_model=WeatherQuery,
        output_model=WeatherReport,
        handler=handler,
    )
