"""
Invoice Matching - Configuration Management

Centralized configuration for the matching engine.
This module ensures:
- Tolerances and thresholds are set in one place
- Values can be overridden from the environment or a .env file
- Inconsistent thresholds are rejected before a run starts
"""

from decimal import Decimal
from functools import lru_cache
from typing import List
import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class MatchingSettings(BaseSettings):
    """
    Engine settings loaded from environment variables.
    Uses pydantic-settings for validation and type coercion.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # ==================== ENVIRONMENT ====================
    ENVIRONMENT: str = Field(
        default="development",
        description="Runtime environment: development, staging, production"
    )

    # ==================== OBSERVABILITY ====================
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR"
    )
    LOG_JSON: bool = Field(
        default=True,
        description="Emit structured JSON logs (disable for local debugging)"
    )
    SERVICE_NAME: str = Field(
        default="invoice-matching",
        description="Service name stamped on every log line"
    )

    # ==================== NORMALISATION ====================
    DEFAULT_DATE_FORMAT: str = Field(
        default="DD/MM/YYYY",
        description="Date-format hint used when a caller does not supply one"
    )

    # ==================== EXACT MATCHING ====================
    AMOUNT_TOLERANCE: Decimal = Field(
        default=Decimal("0.01"),
        description="Absolute amounts must differ by less than this to be exact"
    )
    DATE_MISMATCH_THRESHOLD_DAYS: int = Field(
        default=1,
        description="Perfect matches whose dates differ by more than this are flagged"
    )
    BEST_MATCH_DATE_WINDOW_DAYS: int = Field(
        default=5,
        description="Date proximity window used when ranking multiple candidates"
    )

    # ==================== CONFIDENCE SCORING ====================
    CONFIDENCE_AMOUNT_TOLERANCE: float = Field(
        default=0.01,
        description="Percentage tolerance (0.01 = 1%) for fuzzy amount scoring"
    )
    CONFIDENCE_DATE_TOLERANCE_DAYS: int = Field(
        default=7,
        description="Date window in days for fuzzy date scoring"
    )
    CONFIDENCE_FUZZY_MATCHING: bool = Field(
        default=True,
        description="Allow edit-distance similarity for identifiers and references"
    )
    AUTO_MATCH_THRESHOLD: int = Field(
        default=90,
        description="Confidence at or above which a pair is reported as matched"
    )
    REVIEW_THRESHOLD: int = Field(
        default=50,
        description="Confidence at or above which a pair is reported as mismatched"
    )

    # ==================== COMPUTED PROPERTIES ====================

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    def validate_config(self) -> List[str]:
        """
        Validate tolerances and thresholds.
        Returns list of validation errors.
        """
        errors = []

        if self.AMOUNT_TOLERANCE < 0:
            errors.append("AMOUNT_TOLERANCE cannot be negative")

        if self.DATE_MISMATCH_THRESHOLD_DAYS < 0:
            errors.append("DATE_MISMATCH_THRESHOLD_DAYS cannot be negative")

        if self.BEST_MATCH_DATE_WINDOW_DAYS < 0:
            errors.append("BEST_MATCH_DATE_WINDOW_DAYS cannot be negative")

        if self.CONFIDENCE_AMOUNT_TOLERANCE < 0:
            errors.append("CONFIDENCE_AMOUNT_TOLERANCE cannot be negative")

        if self.CONFIDENCE_DATE_TOLERANCE_DAYS < 0:
            errors.append("CONFIDENCE_DATE_TOLERANCE_DAYS cannot be negative")

        for name, value in (
            ("AUTO_MATCH_THRESHOLD", self.AUTO_MATCH_THRESHOLD),
            ("REVIEW_THRESHOLD", self.REVIEW_THRESHOLD),
        ):
            if not 0 <= value <= 100:
                errors.append(f"{name} must be between 0 and 100")

        if self.REVIEW_THRESHOLD > self.AUTO_MATCH_THRESHOLD:
            errors.append("REVIEW_THRESHOLD cannot exceed AUTO_MATCH_THRESHOLD")

        if "YY" not in self.DEFAULT_DATE_FORMAT.upper():
            errors.append("DEFAULT_DATE_FORMAT must contain a year token")

        return errors


@lru_cache()
def get_settings() -> MatchingSettings:
    """
    Get cached settings instance.
    Settings are loaded once and cached for the process lifetime.
    """
    settings = MatchingSettings()

    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Default date format: {settings.DEFAULT_DATE_FORMAT}")

    errors = settings.validate_config()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        if settings.is_production:
            raise ValueError(f"Matching configuration invalid: {', '.join(errors)}")

    return settings
