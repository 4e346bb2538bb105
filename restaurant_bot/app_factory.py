"""
Application factory for Restaurant Bot.

Builds a FastAPI application from explicit collaborators (settings, session
factory, payment gateway) so the server and the test suite assemble the same
app in the same way.
"""

import logging
import os
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm import sessionmaker
from starlette.middleware.sessions import SessionMiddleware

from .config import Settings, load_settings
from .context import AppContext
from .db import create_session_factory, init_db, session_scope
from .errors import NotFoundError
from .middleware import RequestIDMiddleware
from .payments import PaymentGateway, PaystackGateway
from .routes import chat_router, payment_router, limiter
from .routes.chat import CLIENT_KEY
from .services.catalog import seed_sample_menu

logger = logging.getLogger(__name__)

SESSION_COOKIE = "restaurant_bot_session"


def _prepare_database(context: AppContext) -> None:
    init_db(context.session_factory)
    if context.settings.seed_menu:
        with session_scope(context.session_factory) as db:
            seed_sample_menu(db)


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    gateway: Optional[PaymentGateway] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Resolved configuration. Loaded from the environment if None.
        session_factory: SQLAlchemy sessionmaker. Built from
                        ``settings.database_url`` if None.
        gateway: Payment gateway. A PaystackGateway is built if None.

    Returns:
        Configured FastAPI application

    Raises:
        ConfigurationError: A required credential is missing.
    """
    settings = settings or load_settings()
    settings.require()

    if session_factory is None:
        session_factory = create_session_factory(settings.database_url)
    if gateway is None:
        gateway = PaystackGateway(
            settings.paystack_secret_key,
            base_url=settings.paystack_base_url,
            timeout=settings.payment_timeout_seconds,
            default_email=settings.payment_customer_email,
        )

    context = AppContext(settings=settings, session_factory=session_factory, gateway=gateway)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _prepare_database(context)
        logger.info("Restaurant bot ready (Paystack key %s)", settings.masked_secret_key)
        yield
        await context.bus.drain()
        await context.gateway.aclose()
        logger.info("Restaurant bot stopped")

    app = FastAPI(
        title="Restaurant Bot API",
        description="Chat-based restaurant ordering with Paystack checkout",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.context = context

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=SESSION_COOKIE,
        max_age=settings.session_max_age_seconds,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount static files
    static_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), "static")
    if os.path.exists(static_path):
        app.mount("/static", StaticFiles(directory=static_path), name="static")

    app.include_router(chat_router)
    app.include_router(payment_router)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    @app.get("/", include_in_schema=False)
    def root(request: Request):
        """Give the browser a client key, then redirect to the chat page, preserving query parameters."""
        if not request.session.get(CLIENT_KEY):
            request.session[CLIENT_KEY] = uuid.uuid4().hex
        url = "/static/index.html"
        if request.query_params:
            url += f"?{request.query_params}"
        return RedirectResponse(url=url)

    logger.info("Application created")

    return app
