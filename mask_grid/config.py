"""
Configuration loader for the mask grid service.

Environment variables are centralized here to keep the rest of the code
focused on the pipeline and to make operational tuning clear.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL_URL = (
    "https://github.com/raedle/test-some/releases/download/v0.0.2.0/u2netp_small_live_test.ptl"
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MASK_GRID_",
        env_file=".env",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # Model
    model_path: Optional[Path] = None
    model_url: str = DEFAULT_MODEL_URL
    model_cache_dir: Path = Path.home() / ".cache" / "mask_grid"
    input_size: int = Field(224, description="Square spatial size the model expects")

    # Grid layout
    cell_size: int = 100
    gap: int = 10
    columns: int = 3
    canvas_width: Optional[int] = None
    canvas_height: Optional[int] = None

    # API
    request_timeout_seconds: int = 30
    log_level: str = "INFO"

    @field_validator("input_size", "cell_size", "columns")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("gap")
    @classmethod
    def validate_gap(cls, v: int) -> int:
        if v < 0:
            raise ValueError("MASK_GRID_GAP must not be negative")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid reparsing env on every call."""
    return Settings()


def model_location(settings: Optional[Settings] = None) -> str:
    """
    Return where the model should be loaded from.

    A local `model_path` wins over `model_url` so offline deployments can pin
    a file without touching the download cache.
    """
    settings = settings or get_settings()
    if settings.model_path is not None:
        return str(settings.model_path)
    return settings.model_url
