"""Routers package."""

from . import (
    health,
    auth,
    catalog,
    credits,
    subscriptions,
    paddle,
    ai_services,
    content_scheduler,
)
