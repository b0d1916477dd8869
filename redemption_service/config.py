"""
config.py — Environment Configuration for the Redemption Service

All settings are read from environment variables by pydantic-settings.
`load_settings()` returns a validated `Settings` object which is then passed
explicitly to `build_services()`.

Missing Shopify or Mongo settings are not fatal: the affected client is left
uninitialized and the pipeline reports a `ConfigurationError` when it reaches
that step.
"""

from typing import Annotated, Dict, Optional

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict, SettingsError

from .errors import ConfigurationError

DEFAULT_QUALIFYING_PRODUCTS = "9805574340930:A,9845248131394:B"
DEFAULT_PARTNER_API_URL = "https://thecomicslounge.com.au"

# Settings whose presence is reported at startup (values are never logged)
REQUIRED_SETTINGS = (
    "SHOP_DOMAIN",
    "ADMIN_API_ACCESS_TOKEN",
    "WEBHOOK_SECRET",
    "MONGODB_URI",
    "MONGODB_DB_NAME",
)


def parse_product_map(raw: str) -> Dict[str, str]:
    """
    Parses a product mapping of the form "<productId>:<prefix>,<productId>:<prefix>".

    Args:
        raw (str): The raw environment value.

    Returns:
        dict: Product ID → prefix, in declaration order.

    Raises:
        ConfigurationError: If an entry is malformed or a prefix is not a single uppercase letter.
    """
    products = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        product_id, sep, prefix = entry.partition(":")
        product_id, prefix = product_id.strip(), prefix.strip()
        if not sep or not product_id:
            raise ConfigurationError(f"Invalid QUALIFYING_PRODUCTS entry: {entry!r}")
        if len(prefix) != 1 or not ("A" <= prefix <= "Z"):
            raise ConfigurationError(f"Prefix for product {product_id} must be one uppercase letter, got {prefix!r}")
        products[product_id] = prefix
    return products


class Settings(BaseSettings):
    """
    Runtime configuration of the service, read from environment variables.

    Field names map to the upper-case variable of the same name unless an
    alias is given. Empty variables count as unset.

    Attributes:
        shop_domain (str): Shopify shop host, e.g. "my-shop.myshopify.com".
        admin_access_token (str): Admin API access token for GraphQL/REST calls.
        api_version (str): Shopify Admin API version used in request paths.
        webhook_secret (str): Shared secret used to sign webhooks.
        verify_webhooks (bool): Reject webhooks whose HMAC header does not match.
        mongodb_uri (str): Connection string of the document store.
        mongodb_db_name (str): Database holding the `codes` collection.
        store_backend (str): "mongo" or "memory".
        partner_api_url (str): Base URL of the partner loyalty API.
        qualifying_products (dict): Product ID → single-letter code prefix.
        skip_test_orders (bool): Skip webhooks flagged with `test: true`.
        http_timeout (float): Timeout in seconds for every outbound HTTP call.
        store_timeout_ms (int): Mongo server selection timeout in milliseconds.
        retry_attempts (int): Attempts for partner/annotation calls (1 = no retry).
        retry_delay (float): Fixed delay between attempts in seconds.
        code_max_attempts (int): Draws allowed before code generation gives up.
        port (int): Listen port of the HTTP server.
        log_level (str): Root log level.
        log_file (str): Optional log file path.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        populate_by_name=True,
    )

    shop_domain: Optional[str] = None
    admin_access_token: Optional[str] = Field(None, validation_alias="ADMIN_API_ACCESS_TOKEN")
    api_version: str = Field("2024-01", validation_alias="SHOPIFY_API_VERSION")
    # Shopify signs custom-app webhooks with the app's API secret key
    webhook_secret: Optional[str] = Field(None, validation_alias=AliasChoices("WEBHOOK_SECRET", "API_SECRET_KEY"))
    verify_webhooks: bool = True
    mongodb_uri: Optional[str] = None
    mongodb_db_name: Optional[str] = None
    store_backend: str = Field("mongo", pattern="^(mongo|memory)$")
    partner_api_url: str = DEFAULT_PARTNER_API_URL
    qualifying_products: Annotated[Dict[str, str], NoDecode] = Field(
        default_factory=lambda: parse_product_map(DEFAULT_QUALIFYING_PRODUCTS))
    skip_test_orders: bool = False
    http_timeout: float = Field(10.0, gt=0, validation_alias="HTTP_TIMEOUT_SECONDS")
    store_timeout_ms: int = Field(5000, gt=0, validation_alias="MONGODB_TIMEOUT_MS")
    retry_attempts: int = Field(3, ge=1, validation_alias="OUTBOUND_RETRY_ATTEMPTS")
    retry_delay: float = Field(1.0, ge=0, validation_alias="OUTBOUND_RETRY_DELAY_SECONDS")
    code_max_attempts: int = Field(20, ge=1)
    port: int = 3000
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @field_validator("store_backend", mode="before")
    @classmethod
    def _lower_backend(cls, value):
        return value.lower() if isinstance(value, str) else value

    @field_validator("partner_api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("qualifying_products", mode="before")
    @classmethod
    def _parse_products(cls, value):
        if isinstance(value, str):
            try:
                return parse_product_map(value)
            except ConfigurationError as e:
                raise ValueError(str(e)) from e
        return value

    @property
    def shopify_configured(self) -> bool:
        return bool(self.shop_domain and self.admin_access_token)

    @property
    def store_configured(self) -> bool:
        if self.store_backend == "memory":
            return True
        return bool(self.mongodb_uri and self.mongodb_db_name)

    def missing_settings(self):
        """Returns the names of required settings that are not set."""
        values = {
            "SHOP_DOMAIN": self.shop_domain,
            "ADMIN_API_ACCESS_TOKEN": self.admin_access_token,
            "WEBHOOK_SECRET": self.webhook_secret,
            "MONGODB_URI": self.mongodb_uri,
            "MONGODB_DB_NAME": self.mongodb_db_name,
        }
        return [name for name in REQUIRED_SETTINGS if not values[name]]


def load_settings() -> Settings:
    """
    Builds the service settings from environment variables (and a `.env`
    file in the working directory, if present).

    Returns:
        Settings: The validated configuration.

    Raises:
        ConfigurationError: If a value is present but malformed.
    """
    try:
        return Settings()
    except (ValidationError, SettingsError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
