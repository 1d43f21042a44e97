"""
Tests for settings and structured logging.
"""

import structlog

from medrecon.config import AppSettings, DedupSettings, FetchSettings, Settings, TerminologySettings
from medrecon.observability import configure_logging, get_logger
from medrecon.observability.logging import REDACTED, phi_redaction_processor


class TestSettings:
    """Tests for environment-driven configuration."""

    def test_defaults(self):
        settings = Settings()

        assert settings.app.include_raw is False
        assert settings.terminology.cache_ttl_seconds == 24 * 60 * 60
        assert settings.terminology.single_flight is True
        assert settings.dedup.medication_window_days == 7
        assert settings.fetch.page_size == 100

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("DEDUP_LAB_NAME_THRESHOLD", "0.9")
        monkeypatch.setenv("TERMINOLOGY_ENABLE_API_LOOKUP", "false")
        monkeypatch.setenv("MEDRECON_ENV", "production")
        monkeypatch.setenv("FETCH_BASE_URLS", '{"epic": "https://fhir.example.org/R4"}')

        assert DedupSettings().lab_name_threshold == 0.9
        assert TerminologySettings().enable_api_lookup is False
        assert AppSettings().env == "production"
        assert FetchSettings().base_urls == {"epic": "https://fhir.example.org/R4"}
        assert Settings().is_production

    def test_loinc_auth(self):
        assert TerminologySettings(loinc_username=None).loinc_auth is None
        settings = TerminologySettings(loinc_username="user", loinc_password="secret")
        assert settings.loinc_auth == ("user", "secret")


class TestLogging:
    """Tests for structlog configuration."""

    def test_phi_fields_redacted(self):
        event = phi_redaction_processor(
            None,
            "info",
            {"event": "Normalized patient", "first_name": "John", "date_of_birth": "1970-01-01", "source": "epic"},
        )

        assert event["first_name"] == REDACTED
        assert event["date_of_birth"] == REDACTED
        assert event["source"] == "epic"

    def test_missing_phi_values_untouched(self):
        event = phi_redaction_processor(None, "info", {"event": "x", "email": None})
        assert event["email"] is None

    def test_configure_and_get_logger(self):
        configure_logging(level="debug", json_output=False)
        logger = get_logger("dedup")

        logger.info("Deduplicated records", input_count=2, output_count=1)
        assert structlog.is_configured()
