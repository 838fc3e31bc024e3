"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_BASE_URL = "http://localhost:9999"


class FetchConfig(BaseModel):
    """A validated configuration model for the application."""

    # Media server
    base_url: str = DEFAULT_BASE_URL

    # Adaptation
    window_size: int = 3
    queue_capacity: int = 10
    min_transfer_seconds: float = 1e-6

    # Transport
    max_attempts: int = 3
    base_delay: float = 0.5
    fetch_timeout: float = 30.0
    connect_timeout: float = 10.0

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Requires an http(s) URL and drops any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Base URL must start with http:// or https://.")
        v = v.rstrip("/")
        if v in ("http:", "https:"):
            raise ValueError("Base URL must include a host.")
        return v

    @field_validator("window_size")
    @classmethod
    def validate_window(cls, v: int) -> int:
        """Keeps the throughput window small enough to stay reactive."""
        if v < 1 or v > 64:
            raise ValueError("Window size must be between 1 and 64.")
        return v

    @field_validator("queue_capacity")
    @classmethod
    def validate_capacity(cls, v: int) -> int:
        """The output queue must stay bounded."""
        if v < 1 or v > 1000:
            raise ValueError("Queue capacity must be between 1 and 1000.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @field_validator("base_delay")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Base delay cannot be negative.")
        return v

    @field_validator("fetch_timeout", "connect_timeout", "min_transfer_seconds")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts and transfer thresholds must be positive.")
        return v

    @model_validator(mode="after")
    def validate_timeouts(self) -> "FetchConfig":
        """A connect timeout longer than the whole request would never fire."""
        if self.connect_timeout > self.fetch_timeout:
            raise ValueError(
                "connect_timeout cannot be larger than fetch_timeout "
                f"({self.connect_timeout} > {self.fetch_timeout})."
            )
        return self

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
