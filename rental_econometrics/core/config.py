"""
Configuration settings for the rental listing regression analysis.
"""

import json
import os
from typing import Annotated, Dict, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Analysis settings."""

    # Data settings
    data_path: str = "./data/listings.csv"
    region: str = "reno / tahoe"
    response: str = "price"

    # Categorical reference levels, e.g. {"type": "apartment"}
    reference_levels: Annotated[Dict[str, str], NoDecode] = {}

    # Control-only model terms
    control_terms: Annotated[List[str], NoDecode] = ["sqfeet", "beds", "baths", "type"]

    # Inference settings
    significance_level: float = 0.05
    confidence_level: float = 0.95
    vif_threshold: float = 5.0

    # Box-Cox profile grid
    boxcox_lambda_min: float = -2.0
    boxcox_lambda_max: float = 2.0
    boxcox_lambda_step: float = 0.1

    # Logging settings
    log_level: str = "INFO"
    log_file: Optional[str] = "analysis.log"

    model_config = SettingsConfigDict(
        env_prefix="RENTAL_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("control_terms", mode="before")
    @classmethod
    def assemble_control_terms(cls, v):
        if isinstance(v, str) and v.startswith("["):
            return json.loads(v)
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        if isinstance(v, (list, tuple)):
            return list(v)
        raise ValueError(v)

    @field_validator("reference_levels", mode="before")
    @classmethod
    def assemble_reference_levels(cls, v):
        if isinstance(v, str) and v.startswith("{"):
            return json.loads(v)
        if isinstance(v, str):
            levels = {}
            for pair in v.split(","):
                if not pair.strip():
                    continue
                column, _, level = pair.partition("=")
                if not level:
                    raise ValueError(f"Expected 'column=level', got '{pair}'")
                levels[column.strip()] = level.strip()
            return levels
        return v

    @field_validator("confidence_level", "significance_level")
    @classmethod
    def check_probability(cls, v):
        if not 0.0 < v < 1.0:
            raise ValueError(f"Expected a value strictly between 0 and 1, got {v}")
        return v

    @field_validator("boxcox_lambda_step")
    @classmethod
    def check_step(cls, v):
        if v <= 0:
            raise ValueError("boxcox_lambda_step must be positive")
        return v


# Global settings instance
settings = Settings()


def get_data_path() -> str:
    """Get the listings CSV path from environment or settings."""
    return os.getenv("RENTAL_DATA_PATH", settings.data_path)


def get_log_level() -> str:
    """Get log level from environment or settings."""
    return os.getenv("LOG_LEVEL", settings.log_level)
