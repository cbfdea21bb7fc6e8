"""Configuration management for the Stripe Plus gateway."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stripe_plus_gateway import messages
from stripe_plus_gateway.models import GatewayConfigError

STRIPE_API_BASE = "https://api.stripe.com/v1/"

# Gateway meta fields the host must encrypt at rest
ENCRYPTABLE_FIELDS = ("live_api_key", "test_api_key")
ENVIRONMENTS = ENCRYPTABLE_FIELDS


class StripeSettings(BaseSettings):
    """Stripe API settings."""

    live_api_key: SecretStr = Field(default=SecretStr(""), description="Live secret key")
    test_api_key: SecretStr = Field(default=SecretStr(""), description="Test secret key")
    environment: str = Field(
        default="test_api_key",
        description="Name of the key field to use (live_api_key or test_api_key)",
    )
    base_url: str = Field(default=STRIPE_API_BASE, description="Stripe API base URL")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = Field(
        default="sqlite:///stripe_plus_gateway.db",
        description="SQLAlchemy URL of the database holding contact mappings",
    )

    # Application
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Log level")
    log_format_json: bool = Field(default=True, description="Render logs as JSON")

    # Stripe
    stripe: StripeSettings = Field(default_factory=StripeSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
    )


class GatewayMeta(BaseModel):
    """
    Gateway meta (settings) as stored by the billing host.

    Validation mirrors the host settings form: both keys are required and
    `environment` must name one of them.
    """

    model_config = ConfigDict(validate_default=True)

    live_api_key: str = ""
    test_api_key: str = ""
    environment: str = "test_api_key"
    base_url: str = STRIPE_API_BASE

    @field_validator("live_api_key")
    @classmethod
    def live_key_present(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError(messages.LIVE_API_KEY_EMPTY)
        return value

    @field_validator("test_api_key")
    @classmethod
    def test_key_present(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError(messages.TEST_API_KEY_EMPTY)
        return value

    @field_validator("environment")
    @classmethod
    def environment_names_a_key(cls, value: str) -> str:
        if value not in ENVIRONMENTS:
            raise ValueError(messages.ENVIRONMENT_FORMAT)
        return value

    @property
    def api_key(self) -> str:
        """The secret key selected by `environment`."""
        return getattr(self, self.environment)

    @classmethod
    def from_settings(cls, stripe_settings: StripeSettings) -> "GatewayMeta":
        return cls(
            live_api_key=stripe_settings.live_api_key.get_secret_value(),
            test_api_key=stripe_settings.test_api_key.get_secret_value(),
            environment=stripe_settings.environment,
            base_url=stripe_settings.base_url,
        )


def validate_meta(meta: dict[str, Any]) -> dict[str, dict[str, str]]:
    """
    Validate host meta and return errors keyed by field.

    Returns an empty dict when the meta is valid.
    """
    try:
        GatewayMeta.model_validate(meta)
    except ValidationError as e:
        errors: dict[str, dict[str, str]] = {}
        for error in e.errors():
            field_name = str(error["loc"][0]) if error["loc"] else "meta"
            rule = "format" if field_name == "environment" else "empty"
            message = error.get("ctx", {}).get("error", error["msg"])
            errors[field_name] = {rule: str(message)}
        return errors
    return {}


def load_meta(
    meta: dict[str, Any] | None,
    stripe_settings: StripeSettings | None = None,
) -> GatewayMeta:
    """
    Parse host meta into a GatewayMeta.

    Args:
        meta: Gateway meta stored by the host. When None, the keys come from
            `stripe_settings` instead
        stripe_settings: Environment settings to fall back on; defaults to
            the global `settings.stripe`

    Raises:
        GatewayConfigError: If the meta does not validate
    """
    try:
        if meta is None:
            return GatewayMeta.from_settings(
                stripe_settings if stripe_settings is not None else settings.stripe
            )
        return GatewayMeta.model_validate(meta)
    except ValidationError as e:
        raise GatewayConfigError(f"Invalid gateway meta: {e}") from e


# Global settings instance
settings = Settings()
