"""
Unit Tests for Configuration

Run with: pytest tests/test_config.py -v
"""

from decimal import Decimal

import pytest

from invoice_matching.config import MatchingSettings, get_settings


class TestMatchingSettings:
    """Test settings defaults, overrides and validation."""

    @pytest.fixture(autouse=True)
    def clear_cache(self):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_defaults(self):
        settings = MatchingSettings(_env_file=None)

        assert settings.DEFAULT_DATE_FORMAT == "DD/MM/YYYY"
        assert settings.AMOUNT_TOLERANCE == Decimal("0.01")
        assert settings.DATE_MISMATCH_THRESHOLD_DAYS == 1
        assert settings.BEST_MATCH_DATE_WINDOW_DAYS == 5
        assert settings.CONFIDENCE_DATE_TOLERANCE_DAYS == 7
        assert settings.AUTO_MATCH_THRESHOLD == 90
        assert settings.REVIEW_THRESHOLD == 50
        assert settings.validate_config() == []

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("AUTO_MATCH_THRESHOLD", "95")
        monkeypatch.setenv("AMOUNT_TOLERANCE", "0.05")

        settings = MatchingSettings(_env_file=None)

        assert settings.AUTO_MATCH_THRESHOLD == 95
        assert settings.AMOUNT_TOLERANCE == Decimal("0.05")

    def test_validation_errors(self):
        settings = MatchingSettings(
            _env_file=None,
            AMOUNT_TOLERANCE=Decimal("-1"),
            AUTO_MATCH_THRESHOLD=40,
            REVIEW_THRESHOLD=120,
            DEFAULT_DATE_FORMAT="DD/MM"
        )

        errors = settings.validate_config()

        assert "AMOUNT_TOLERANCE cannot be negative" in errors
        assert "REVIEW_THRESHOLD must be between 0 and 100" in errors
        assert "REVIEW_THRESHOLD cannot exceed AUTO_MATCH_THRESHOLD" in errors
        assert "DEFAULT_DATE_FORMAT must contain a year token" in errors

    def test_environment_flags(self):
        assert MatchingSettings(_env_file=None, ENVIRONMENT="Production").is_production
        assert MatchingSettings(_env_file=None).is_development

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_invalid_production_config_raises(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("REVIEW_THRESHOLD", "95")

        with pytest.raises(ValueError, match="REVIEW_THRESHOLD"):
            get_settings()

    def test_invalid_development_config_only_logs(self, monkeypatch, caplog):
        monkeypatch.setenv("ENVIRONMENT", "development")
        monkeypatch.setenv("REVIEW_THRESHOLD", "95")

        settings = get_settings()

        assert settings.REVIEW_THRESHOLD == 95
        assert "Configuration error" in caplog.text
