"""Entry point for the upsell checkout service.

Creates the main FastAPI application, mounts the mock storefront sub-app,
configures logging, and starts the uvicorn server.
"""

from __future__ import annotations

import structlog
import uvicorn
from fastapi import FastAPI

from common import setup_logging

from upsell_checkout.api import create_app
from upsell_checkout.config import Settings, get_settings
from upsell_checkout.mock_storefront.storefront_app import MockStorefrontApp

logger = structlog.get_logger(__name__)

STOREFRONT_MOUNT_PATH = "/storefront"


def build_app(settings: Settings | None = None) -> FastAPI:
    """Construct the fully-configured application with the mock storefront.

    The storefront answers GraphQL at ``/storefront/api/graphql``, which is
    the default ``storefront_url``.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level, json_logs=settings.environment == "production")

    app = create_app(settings)

    storefront = MockStorefrontApp.from_catalog()
    app.mount(STOREFRONT_MOUNT_PATH, storefront.app, name="mock-storefront")
    app.state.mock_storefront = storefront
    logger.info(
        "mock_storefront_mounted",
        storefront=storefront.name,
        path=STOREFRONT_MOUNT_PATH,
        variants=len(storefront.variants),
    )

    logger.info(
        "application_ready",
        service=settings.service_name,
        version=settings.service_version,
        storefront_url=settings.storefront_url,
        upsell_variants=len(settings.upsell_variant_ids),
    )
    return app


def main() -> None:
    """Launch the upsell checkout server."""
    settings = get_settings()
    app = build_app(settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
