import os
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration


def init_sentry(app: Optional[object] = None) -> bool:
    """Initialise Sentry when ``SENTRY_DSN`` is set.

    The FastAPI integration is only added when called for the API app; the
    worker calls this without an app.
    """
    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        return False
    integrations = [FastApiIntegration()] if app is not None else []
    sentry_sdk.init(
        dsn=dsn,
        integrations=integrations,
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
        environment=os.getenv("SENTRY_ENVIRONMENT", "dev"),
        release=os.getenv("SENTRY_RELEASE"),
    )
    return True
