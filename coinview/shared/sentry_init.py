"""
Error tracking for the CoinView API process.
"""
import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.httpx import HttpxIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.redis import RedisIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from .config import settings
from .exceptions import NetworkError

logger = logging.getLogger(__name__)


def _drop_upstream_outages(event, hint):
    # CoinCap and optimizer failures are already reported to the client.
    exc_info = hint.get("exc_info")
    if exc_info and isinstance(exc_info[1], NetworkError):
        return None
    return event


def init_sentry() -> bool:
    """Start the Sentry SDK when SENTRY_DSN is configured. Returns whether it is enabled."""
    if not settings.SENTRY_DSN:
        logger.info("SENTRY_DSN is empty, error tracking stays off")
        return False

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        release=settings.APP_VERSION,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(),
            HttpxIntegration(),
            RedisIntegration(),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        before_send=_drop_upstream_outages,
        send_default_pii=False,
    )
    logger.info(f"Sentry enabled for environment {settings.SENTRY_ENVIRONMENT}")
    return True
