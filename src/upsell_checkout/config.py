"""Configuration management for the upsell checkout widget service."""

from __future__ import annotations

from common.config import Settings as BaseSettings

PLACEHOLDER_IMAGE_URL = (
    "https://cdn.shopify.com/s/files/1/0533/2089/files/"
    "placeholder-images-image_medium.png?format=webp&v=1530129081"
)


class Settings(BaseSettings):
    """Upsell checkout configuration.

    Inherits logging and environment settings from ``common.config.Settings``
    and adds the storefront connection and the upsell catalog.
    """

    # Service identity
    service_name: str = "upsell-checkout"
    service_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 8030

    # Storefront API
    storefront_url: str = "http://localhost:8030/storefront/api/graphql"
    storefront_access_token: str = ""
    storefront_timeout: float = 15.0

    # Widget sessions idle longer than this are dropped
    session_ttl_seconds: float = 1800.0

    # Variants offered by the upsell block, in request order
    upsell_variant_ids: list[str] = [
        "gid://shopify/ProductVariant/44293023465684",
        "gid://shopify/ProductVariant/44290921103572",
        "gid://shopify/ProductVariant/44290921332948",
        "gid://shopify/ProductVariant/44290921726164",
    ]
    placeholder_image_url: str = PLACEHOLDER_IMAGE_URL


def get_settings() -> Settings:
    """Return a settings instance built from the environment."""
    return Settings()
