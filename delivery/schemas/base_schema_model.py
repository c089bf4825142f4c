"""Base pydantic models for centralized configuration of schema definitions."""

from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from delivery.exceptions import ConfigurationError


class BaseSchemaModel(BaseModel):
    """Base pydantic model for centralized configuration of schema definitions.

    This base model sets common configurations for all schema models
    in the application, ensuring consistency and reducing redundancy.
    """

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )


class ConfigSchemaModel(BaseSchemaModel):
    """Immutable configuration model that fails fast on invalid values.

    Validation errors surface as ``ConfigurationError`` so misconfiguration
    is reported at construction time with the engine's own error type.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid {type(self).__name__}: {e.errors(include_url=False)}"
            ) from e
