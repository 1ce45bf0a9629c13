"""Configuration and settings management using pydantic-settings."""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_prefix="FLOWFORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core service settings
    env: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(
        default=True,
        description="Emit JSON log lines (plain text when false)",
    )

    # Traversal limits
    max_steps: int = Field(
        default=1000,
        description="Maximum blocks visited in a single run before truncation",
    )
    run_timeout_s: float | None = Field(
        default=None,
        description="Optional wall-clock limit for a single run in seconds",
    )

    # Wait block
    wait_max_delay_ms: int = Field(
        default=60_000,
        description="Upper bound applied to any Wait block delay",
    )

    # HttpRequest block
    http_timeout_s: float = Field(
        default=30,
        description="Timeout for outbound HTTP calls in seconds",
    )

    # TextReplace block
    regex_max_pattern_length: int = Field(
        default=512,
        description="Regex rules with longer patterns are skipped",
    )
    regex_max_input_length: int = Field(
        default=1_000_000,
        description="Regex rules are skipped for inputs longer than this",
    )
    regex_timeout_ms: int = Field(
        default=250,
        description="Time limit for a single regex rule before it is skipped",
    )

    # Scheduler
    scheduler_poll_interval_s: float = Field(
        default=30,
        description="Seconds between scheduler ticks",
    )

    @field_validator("max_steps", "http_timeout_s", "regex_timeout_ms", "scheduler_poll_interval_s")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate that limits are positive."""
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    @field_validator("wait_max_delay_ms")
    @classmethod
    def validate_wait_cap(cls, v: int) -> int:
        """Validate that the wait cap is not negative."""
        if v < 0:
            raise ValueError("wait_max_delay_ms must not be negative")
        return v


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
