"""Configuration management for the Quantified Insights engine."""

import os
from typing import Any, Dict
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./quantified_insights.db")

    # Correlation discovery defaults
    CORRELATION_DAYS: int = int(os.getenv("CORRELATION_DAYS", "90"))
    CORRELATION_P_VALUE_THRESHOLD: float = float(os.getenv("CORRELATION_P_VALUE_THRESHOLD", "0.1"))
    CORRELATION_MIN_ABS_R: float = float(os.getenv("CORRELATION_MIN_ABS_R", "0.3"))
    CORRELATION_MAX_WORKERS: int = int(os.getenv("CORRELATION_MAX_WORKERS", "1"))

    # Weather: a day counts as sunny when average cloud cover is below this (%)
    SUNNY_CLOUDINESS_THRESHOLD: float = float(os.getenv("SUNNY_CLOUDINESS_THRESHOLD", "30"))

    # Application
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def get_discovery_defaults(cls) -> Dict[str, Any]:
        """Get default discovery options as keyword arguments."""
        return {
            "days": cls.CORRELATION_DAYS,
            "p_value_threshold": cls.CORRELATION_P_VALUE_THRESHOLD,
            "min_abs_r": cls.CORRELATION_MIN_ABS_R,
        }

    @classmethod
    def validate(cls) -> bool:
        """Validate configuration values."""
        if not 0 <= cls.CORRELATION_P_VALUE_THRESHOLD <= 1:
            raise ValueError(
                "CORRELATION_P_VALUE_THRESHOLD must be between 0 and 1"
            )
        if not 0 <= cls.CORRELATION_MIN_ABS_R <= 1:
            raise ValueError("CORRELATION_MIN_ABS_R must be between 0 and 1")
        if cls.CORRELATION_DAYS < 1:
            raise ValueError("CORRELATION_DAYS must be at least 1")
        if cls.CORRELATION_MAX_WORKERS < 1:
            raise ValueError("CORRELATION_MAX_WORKERS must be at least 1")
        return True


config = Config()
