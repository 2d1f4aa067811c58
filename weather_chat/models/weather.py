"""Pydantic models for the weather tool: its input, its output and the lookup result."""

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, StringConstraints, field_validator


class TemperatureUnit(str, Enum):
    """Temperature units understood by the forecast service."""

    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"

    @classmethod
    def normalize(cls, value: Any) -> "TemperatureUnit":
        """Anything other than exactly "fahrenheit" means celsius."""
        if isinstance(value, TemperatureUnit):
            return value
        if value == cls.FAHRENHEIT.value:
            return cls.FAHRENHEIT
        return cls.CELSIUS


class WeatherQuery(BaseModel):
    """Tool input: where to look and which unit to report in."""

    location: Annotated[str, StringConstraints(min_length=1)] = Field(
        ..., description="City or place name, e.g. 'San Francisco, CA'"
    )
    unit: TemperatureUnit = Field(
        default=TemperatureUnit.CELSIUS, description="Temperature unit"
    )

    class Config:
        """Queries are built once per tool invocation and never mutated."""

        frozen = True

    @field_validator("unit", mode="before")
    @classmethod
    def _lenient_unit(cls, value: Any) -> TemperatureUnit:
        return TemperatureUnit.normalize(value)


class GeocodeResult(BaseModel):
    """First match of a geocoding lookup."""

    latitude: float
    longitude: float
    name: str
    country: str = ""


class WeatherObservation(BaseModel):
    """Current conditions at a point, as returned by the forecast service."""

    temperature: float = 0.0
    condition_code: int = 0


class WeatherReport(BaseModel):
    """Tool output handed back to the model."""

    temperature: float
    conditions: Annotated[str, StringConstraints(min_length=1)]
    location: str


class FailureReason(str, Enum):
    """Named reasons a weather lookup can come back without data."""

    LOCATION_NOT_FOUND = "Location not found"
    FETCH_FAILED = "Error fetching weather"


class WeatherFound(BaseModel):
    """Successful lookup."""

    status: Literal["found"] = "found"
    report: WeatherReport

    def to_report(self) -> WeatherReport:
        return self.report


class WeatherNotAvailable(BaseModel):
    """Lookup that ended without data; still renders a well-formed report."""

    status: Literal["not_available"] = "not_available"
    reason: FailureReason
    location: str

    def to_report(self) -> WeatherReport:
        return WeatherReport(
            temperature=0, conditions=self.reason.value, location=self.location
        )


WeatherLookup = Union[WeatherFound, WeatherNotAvailable]
