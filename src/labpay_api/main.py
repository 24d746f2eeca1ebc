"""FastAPI application for the flight lab checkout and settlement API.

Endpoints (all under /api):
- POST /create-checkout: start a Stripe Checkout Session
- POST /stripe-webhook: receive Stripe events and forward settlements
- GET /session-to-lab, GET /checkout-details: post-checkout lookups
- GET /ping: health check
"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from labpay import __version__
from labpay.config import get_settings
from labpay.utils.logging import configure_logging
from labpay_api.exceptions import register_exception_handlers
from labpay_api.middleware.correlation import CORRELATION_ID_HEADER, CorrelationIdMiddleware
from labpay_api.routes import checkout_router, sessions_router, webhooks_router

configure_logging(logging.INFO)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build the application with middleware, handlers and routers."""
    settings = get_settings()

    app = FastAPI(
        title="Flight Lab Checkout API",
        description="Stripe Connect checkout and settlement forwarding for flight labs",
        version=__version__,
    )

    # Browser calls come from the public site only
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", CORRELATION_ID_HEADER],
        expose_headers=[CORRELATION_ID_HEADER],
    )
    app.add_middleware(CorrelationIdMiddleware)

    register_exception_handlers(app)

    # Include routers under /api prefix
    app.include_router(checkout_router, prefix="/api")
    app.include_router(webhooks_router, prefix="/api")
    app.include_router(sessions_router, prefix="/api")

    @app.get("/api/ping")
    async def ping() -> dict[str, Any]:
        """Health check endpoint at /api/ping."""
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
            "service": "labpay-api",
            "environment": settings.environment,
        }

    logger.info(
        "API configured (environment=%s, state_backend=%s)",
        settings.environment,
        settings.state_backend,
    )
    return app


app = create_app()

# Lambda handler - Mangum wraps FastAPI for AWS Lambda + API Gateway
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = True) -> None:
    """Run the FastAPI server.

    Args:
        host: Host to bind to (default: 0.0.0.0)
        port: Port to listen on (default: 8080)
        reload: Enable hot reload for development (default: True)
    """
    import uvicorn

    if reload:
        # Use string reference for reload mode (uvicorn requirement)
        uvicorn.run(
            "labpay_api.main:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["src"],
        )
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
