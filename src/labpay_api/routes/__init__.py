"""API routes package.

Routers are organized by domain:

- checkout: Checkout Session creation
- webhooks: Stripe webhook deliveries
- sessions: Post-checkout lookups

All routers are registered in main.py with /api prefix.
"""

from labpay_api.routes.checkout import router as checkout_router
from labpay_api.routes.sessions import router as sessions_router
from labpay_api.routes.webhooks import router as webhooks_router

__all__ = [
    "checkout_router",
    "sessions_router",
    "webhooks_router",
]
