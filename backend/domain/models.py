"""
Domain models - Core business entities.
Following SOLID: Single Responsibility Principle - each model has one clear purpose.
"""
from typing import List, Dict, Any, Optional, Literal, Union, get_args
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


WeatherCondition = Literal["sunny", "cloudy", "rainy", "snowy", "windy", "stormy"]
WEATHER_CONDITIONS = get_args(WeatherCondition)

MIN_TEMPERATURE = 1
MAX_TEMPERATURE = 30


class WeatherPromptRequest(BaseModel):
    """Incoming prompt for the weather agent."""
    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    prompt: str = Field(..., min_length=1, description="Natural-language question for the assistant")


class WeatherBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    temperature: int
    condition: WeatherCondition

    @field_validator("temperature")
    @classmethod
    def temperature_in_range(cls, value: int) -> int:
        if not MIN_TEMPERATURE <= value <= MAX_TEMPERATURE:
            raise ValueError(f"temperature must be between {MIN_TEMPERATURE} and {MAX_TEMPERATURE}")
        return value


class Weather(WeatherBase):
    """Weather fact produced by the get_weather tool."""


class WeatherData(WeatherBase):
    """Weather fact enriched with a remark written by the model."""
    remark: str


class WeatherResponse(BaseModel):
    """
    Response envelope returned to every client, on success and on failure.

    Every field is required (nullable but without a default) so that the JSON
    schema is accepted by strict structured-output mode.
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    success: bool
    weather_data: Optional[WeatherData] = Field(..., alias="weatherData")
    error: Optional[str]

    @model_validator(mode="after")
    def check_envelope(self) -> "WeatherResponse":
        if self.success:
            if self.weather_data is None:
                raise ValueError("weatherData is required when success is true")
            if self.error is not None:
                raise ValueError("error must be null when success is true")
        else:
            if self.weather_data is not None:
                raise ValueError("weatherData must be null when success is false")
            if not self.error:
                raise ValueError("error must be a non-empty string when success is false")
        return self

    @classmethod
    def ok(cls, weather_data: WeatherData) -> "WeatherResponse":
        return cls(success=True, weather_data=weather_data, error=None)

    @classmethod
    def failure(cls, message: str) -> "WeatherResponse":
        return cls(success=False, weather_data=None, error=message)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with the camelCase field names used on the wire."""
        return self.model_dump(mode="json", by_alias=True)


class GetWeatherArgs(BaseModel):
    """Arguments of the get_weather tool."""
    model_config = ConfigDict(extra="forbid")

    city: str = Field(..., description="Name of the city")


class ReturnErrorArgs(BaseModel):
    """Arguments of the return_error tool."""
    model_config = ConfigDict(extra="forbid")

    message: str = Field(..., description="Short explanation shown to the user")


class ToolCallRequest(BaseModel):
    """A tool invocation requested by the model."""
    call_id: str
    name: str
    arguments: str = "{}"  # JSON-encoded object, as sent by the provider


class AssistantReply(BaseModel):
    """Provider-neutral view of the assistant message of a completion."""
    content: Optional[str] = None
    tool_calls: List[ToolCallRequest] = Field(default_factory=list)
    model: Optional[str] = None


class ToolCall(BaseModel):
    """Record of a tool invocation."""
    tool_name: str
    arguments: Union[Dict[str, Any], str]  # raw JSON text when it could not be parsed
    result: Optional[Any] = None
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class AgentStatus(str, Enum):
    """States of a single weather conversation."""
    AWAITING_TOOL_DECISION = "awaiting_tool_decision"
    TOOL_DISPATCHED = "tool_dispatched"
    AWAITING_FINAL_ANSWER = "awaiting_final_answer"
    DONE = "done"
    ERROR = "error"


class AgentOutcome(BaseModel):
    """Result of one agent run."""
    status: AgentStatus
    response: WeatherResponse
    tools_called: List[ToolCall] = Field(default_factory=list)
    error_kind: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status == AgentStatus.ERROR
