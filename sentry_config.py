"""Sentry error tracking configuration."""
import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from config import Settings

logger = logging.getLogger(__name__)


def init_sentry(settings: Settings) -> bool:
    """Initialize Sentry for error tracking when a DSN is configured."""
    if not settings.sentry_dsn:
        return False

    production = settings.environment == "production"
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        integrations=[FastApiIntegration(transaction_style="endpoint")],
        traces_sample_rate=0.1 if production else 1.0,
        send_default_pii=False,
        attach_stacktrace=True,
        release=settings.version,
    )
    logger.info(f"Sentry initialized for {settings.environment}")
    return True
