"""
Rate limiting for the data-exchange endpoints.

The Limiter instance is created in buildtrack/__init__.py with no default
limits; this module applies the per-blueprint limits.

Usage:
    from buildtrack.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_LIMIT = "30/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Data exchange:  DATA_EXCHANGE_RATE_LIMIT (default 30/minute);
                          uploads parse whole workbooks in the request

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("data_exchange_bp")
    if bp:
        limit = app.config.get("DATA_EXCHANGE_RATE_LIMIT", DEFAULT_UPLOAD_LIMIT)
        limiter.limit(limit)(bp)
        app.logger.info("Rate limiter configured: data exchange %s", limit)
