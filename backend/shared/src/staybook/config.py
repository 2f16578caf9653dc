"""Runtime settings read from environment variables.

Secrets (Stripe keys) are not part of these settings; they are fetched
from SSM Parameter Store by the Stripe service.
"""

from functools import lru_cache
from typing import Annotated, Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide configuration."""

    model_config = SettingsConfigDict(case_sensitive=False, populate_by_name=True)

    environment: str = Field(default="dev", description="Deployment environment")
    table_prefix: str = Field(
        default="",
        validation_alias="DYNAMODB_TABLE_PREFIX",
        description="Prefix for all DynamoDB table names; staybook-<environment> when unset",
    )
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Base URL used to build payment success/cancel redirects",
    )
    allow_group_booking: bool = Field(
        default=True,
        description="Whether parties may be split across several units",
    )
    currency: str = Field(default="eur", description="ISO currency code for payments")
    checkout_session_ttl_minutes: int = Field(
        default=30,
        ge=30,
        le=1440,
        description="Lifetime of a payment session before the processor expires it",
    )
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Comma-separated in the environment; the frontend URL when unset",
    )

    @field_validator("currency")
    @classmethod
    def _lower_currency(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @model_validator(mode="after")
    def _derived_defaults(self) -> "Settings":
        if not self.table_prefix:
            self.table_prefix = f"staybook-{self.environment}"
        if not self.cors_origins:
            self.cors_origins = [self.frontend_url]
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the cached process settings.

    Tests that change environment variables must call
    ``get_settings.cache_clear()`` afterwards.
    """
    return Settings()
