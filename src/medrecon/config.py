"""
Medrecon Configuration Module

Centralized configuration management using Pydantic Settings.
Supports environment variables and .env files.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="MEDRECON_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = True

    # Keep the original source record on canonical output
    include_raw: bool = False


class TerminologySettings(BaseSettings):
    """External terminology services (RxNav, LOINC FHIR server) settings."""

    model_config = SettingsConfigDict(
        env_prefix="TERMINOLOGY_",
        env_file=".env",
        extra="ignore",
    )

    rxnorm_base_url: str = "https://rxnav.nlm.nih.gov/REST"
    loinc_base_url: str = "https://fhir.loinc.org"
    loinc_username: str | None = None
    loinc_password: SecretStr | None = None

    # Seconds; external lookups are best-effort
    request_timeout: float = 5.0
    cache_ttl_seconds: int = Field(default=24 * 60 * 60, ge=1)

    enable_api_lookup: bool = True
    single_flight: bool = True

    @property
    def loinc_auth(self) -> tuple[str, str] | None:
        """Basic auth tuple for the LOINC server, if configured."""
        if self.loinc_username and self.loinc_password:
            return self.loinc_username, self.loinc_password.get_secret_value()
        return None


class DedupSettings(BaseSettings):
    """Cross-source deduplication thresholds."""

    model_config = SettingsConfigDict(
        env_prefix="DEDUP_",
        env_file=".env",
        extra="ignore",
    )

    # Medications
    medication_window_days: int = 7
    medication_fuzzy_window_days: int = 14
    medication_name_threshold: float = 0.90
    ndc_window_days: int = 30

    # Labs
    lab_name_threshold: float = 0.95
    lab_value_tolerance: float = 0.05

    # Conditions
    condition_coded_name_threshold: float = 0.95
    condition_name_threshold: float = 0.92
    condition_onset_window_days: int = 90

    # Encounters
    encounter_type_threshold: float = 0.95


class FetchSettings(BaseSettings):
    """Raw FHIR fetch settings."""

    model_config = SettingsConfigDict(
        env_prefix="FETCH_",
        env_file=".env",
        extra="ignore",
    )

    request_timeout: float = 30.0
    page_size: int = Field(default=100, ge=1)

    # Provider key -> FHIR base URL, e.g. FETCH_BASE_URLS='{"epic": "https://..."}'
    base_urls: dict[str, str] = Field(default_factory=dict)


class Settings:
    """
    Aggregated settings container.

    Usage:
        from medrecon.config import get_settings
        settings = get_settings()
        print(settings.terminology.cache_ttl_seconds)
    """

    def __init__(self):
        self.app = AppSettings()
        self.terminology = TerminologySettings()
        self.dedup = DedupSettings()
        self.fetch = FetchSettings()

    @property
    def is_development(self) -> bool:
        return self.app.env == "development"

    @property
    def is_production(self) -> bool:
        return self.app.env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: The application settings
    """
    return Settings()
