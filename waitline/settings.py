import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

load_dotenv()


DEFAULT_TRUSTED_API_HOSTS = [
    "api.clockwisemd.com",
    "www.mercy.net",
    "schedule.stlukes-stl.com",
]

DEFAULT_TRUSTED_WEBSITE_HOSTS = [
    "clockwisemd.com",
    "www.clockwisemd.com",
    "gohealthuc.com",
    "www.gohealthuc.com",
    "afcurgentcare.com",
    "www.afcurgentcare.com",
    "stlukes-stl.com",
    "www.stlukes-stl.com",
    "mercy.net",
    "www.mercy.net",
]


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Batching
    batch_size: int = Field(default=10, ge=1, alias="WAITLINE_BATCH_SIZE")
    batch_stagger_seconds: float = Field(
        default=2.0, ge=0, alias="WAITLINE_BATCH_STAGGER"
    )

    # HTTP
    request_timeout: float = Field(default=30.0, alias="WAITLINE_REQUEST_TIMEOUT")
    resource_timeout: float = Field(default=60.0, alias="WAITLINE_RESOURCE_TIMEOUT")
    primary_retries: int = Field(default=2, ge=0, alias="WAITLINE_PRIMARY_RETRIES")
    fallback_retries: int = Field(default=1, ge=0, alias="WAITLINE_FALLBACK_RETRIES")
    retry_base_delay: float = Field(default=0.5, ge=0, alias="WAITLINE_RETRY_DELAY")
    user_agent: str = Field(default="STL-WaitLine/1.0", alias="WAITLINE_USER_AGENT")

    # Circuit breaker / rate limiting
    failure_threshold: int = Field(default=3, ge=1, alias="WAITLINE_FAILURE_THRESHOLD")
    breaker_reset_seconds: float = Field(default=300.0, alias="WAITLINE_BREAKER_RESET")
    min_call_interval: float = Field(default=2.0, alias="WAITLINE_MIN_CALL_INTERVAL")

    # Result store
    stale_after_seconds: float = Field(default=300.0, alias="WAITLINE_STALE_AFTER")

    # Trusted hosts
    trusted_api_hosts: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TRUSTED_API_HOSTS),
        alias="WAITLINE_TRUSTED_API_HOSTS",
    )
    trusted_website_hosts: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TRUSTED_WEBSITE_HOSTS),
        alias="WAITLINE_TRUSTED_WEBSITE_HOSTS",
    )

    # Providers
    synthetic_only_prefixes: list[str] = Field(
        default_factory=lambda: ["ssm-health"],
        alias="WAITLINE_SYNTHETIC_PREFIXES",
    )
    fhir_access_token: str = Field(default="", alias="WAITLINE_FHIR_TOKEN")
    timezone: str = Field(default="America/Chicago", alias="WAITLINE_TIMEZONE")

    # Runtime
    facilities_path: str = Field(
        default="facilities.yaml", alias="WAITLINE_FACILITIES_PATH"
    )
    refresh_interval_minutes: int = Field(
        default=5, ge=1, alias="WAITLINE_REFRESH_INTERVAL"
    )
    log_level: str = Field(default="INFO", alias="WAITLINE_LOG_LEVEL")

    @field_validator(
        "trusted_api_hosts",
        "trusted_website_hosts",
        "synthetic_only_prefixes",
        mode="before",
    )
    @classmethod
    def _split_csv(cls, value):
        if isinstance(value, str):
            return [item.strip().lower() for item in value.split(",") if item.strip()]
        return value

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (after .env is loaded)."""
        data = {
            name: os.environ[name]
            for name in (field.alias for field in cls.model_fields.values())
            if name and name in os.environ
        }
        return cls.model_validate(data)


global_settings = Settings.from_env()
