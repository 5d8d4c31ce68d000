"""Application configuration via environment variables and .env file."""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings.sources import DotEnvSettingsSource, PydanticBaseSettingsSource

from podwise.intelligence.models import IntelligenceSettings

# Path to .env file (patch in tests to use tmp_path / ".env")
_ENV_FILE: Path = Path(".env")

_SOURCE_MODES = {"mock", "none"}


class Settings(BaseSettings):
    model_config = {
        "env_prefix": "PODWISE_",
        "env_file_encoding": "utf-8",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Load .env from _ENV_FILE (patchable in tests)
        return (
            init_settings,
            env_settings,
            DotEnvSettingsSource(
                settings_cls,
                env_file=_ENV_FILE,
                env_file_encoding="utf-8",
            ),
            file_secret_settings,
        )

    # Storage
    data_dir: Path = Path("./data/battery_intelligence")

    # Logging
    log_level: str = "info"

    # Learning / significance thresholds
    learning_enabled: bool = True
    min_battery_change: int = 5  # percentage points
    min_time_gap_minutes: int = 5
    max_events: int = 200
    max_depletion_samples: int = 100

    # Reading source
    source_mode: str = "none"
    poll_interval: int = 5  # seconds between mock readings
    device_address: str = "00:00:00:00:00:00"
    device_name: str = "Earbuds"

    # Persistence
    autosave_interval: int = 300  # seconds between background saves

    @field_validator("source_mode", mode="before")
    @classmethod
    def parse_source_mode(cls, v: object) -> str:
        """Normalize the source mode; unknown values fall back to "none"."""
        if isinstance(v, str) and v.strip().lower() in _SOURCE_MODES:
            return v.strip().lower()
        return "none"

    @field_validator("min_battery_change", "max_events", "max_depletion_samples")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("min_time_gap_minutes")
    @classmethod
    def must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    def intelligence_settings(self) -> IntelligenceSettings:
        """Build the engine tunables from this configuration."""
        return IntelligenceSettings(
            learning_enabled=self.learning_enabled,
            min_battery_change=self.min_battery_change,
            min_time_gap_minutes=self.min_time_gap_minutes,
            max_events=self.max_events,
            max_depletion_samples=self.max_depletion_samples,
        )


def load_config() -> Settings:
    """Load configuration from .env and environment (env overrides .env)."""
    return Settings()


settings = Settings()
