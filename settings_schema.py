from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, ValidationError, field_validator

from config import YamlConfig


class SettingsSchema(BaseModel):
    weight_unit: str = "kg"
    timezone: Optional[str] = None
    first_weekday: int = Field(0, ge=0, le=6)
    recovery_lookback_days: int = Field(7, gt=0)
    log_format: str = "text"
    log_level: str = "INFO"

    @field_validator("weight_unit")
    @classmethod
    def _known_unit(cls, value: str) -> str:
        if value not in ("kg", "lbs"):
            raise ValueError("weight_unit must be 'kg' or 'lbs'")
        return value

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value:
            try:
                ZoneInfo(value)
            except (ZoneInfoNotFoundError, ValueError):
                raise ValueError(f"unknown timezone {value!r}")
        return value or None

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        if value not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return value


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))


def load_settings(config: YamlConfig) -> SettingsSchema:
    """Return validated settings from ``config``; missing keys take defaults."""
    return validate_settings(config.load())
