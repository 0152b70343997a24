# src/dealengine/adapters/config.py
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    # App & logging
    ENV: str = Field(default="dev")
    LOG_LEVEL: str = Field(default="INFO")

    # Underwriting defaults (callers can always pass explicit values)
    TARGET_DSCR: float = Field(default=1.25)
    HOLD_YEARS: int = Field(default=5)
    PROJECTION_YEARS: int = Field(default=10)
    SELLING_COST_PCT: float = Field(default=6.0)

    # Sensitivity grid: number of steps on each side of the base value
    SENSITIVITY_STEPS: int = Field(default=4)

    model_config = SettingsConfigDict(
        env_prefix="DEALENGINE_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("SELLING_COST_PCT", mode="before")
    @classmethod
    def _to_percent(cls, v: Any) -> Any:
        if v is None:
            return v
        if isinstance(v, str):
            v = v.strip().replace("%", "")
        try:
            f = float(v)
        except (TypeError, ValueError) as err:
            raise ValueError("rate must be numeric or percent-like") from err
        # 0.06 means 6%
        if 0 < f < 1.0:
            f = f * 100.0
        if f < 0:
            raise ValueError("rate must be non-negative")
        return f

    @field_validator("TARGET_DSCR", mode="before")
    @classmethod
    def _dscr_positive(cls, v: Any) -> Any:
        f = float(v)
        if f <= 0:
            raise ValueError("TARGET_DSCR must be > 0")
        return f

    @field_validator("HOLD_YEARS", "PROJECTION_YEARS", "SENSITIVITY_STEPS", mode="before")
    @classmethod
    def _positive_int(cls, v: Any) -> Any:
        i = int(v)
        if i < 1:
            raise ValueError("must be >= 1")
        return i


config = AppConfig()
