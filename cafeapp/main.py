import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cafeapp.config import Settings, load_settings
from cafeapp.db import Base, make_engine, make_sessionmaker
from cafeapp.errors import install_error_handlers
from cafeapp.middleware import RequestIdMiddleware
from cafeapp.routers import admin, auth, cafes, checkout, coupons, menu, orders, realtime, reports
from cafeapp.routers import settings as settings_router
from cafeapp.services.notify import NotificationRelay, build_relay

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, relay: NotificationRelay | None = None) -> FastAPI:
    """Build the API around one engine, one sessionmaker and one relay.

    All three are created here and hung on ``app.state``; request handlers get
    them through dependencies.
    """
    settings = settings or load_settings()
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=LOG_FORMAT)

    app = FastAPI(title="Cafe Orders API", version="0.1.0")

    engine = make_engine(settings.DB_URL)
    Base.metadata.create_all(bind=engine)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = make_sessionmaker(engine)
    app.state.relay = relay or build_relay(settings)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    app.include_router(auth.router)
    app.include_router(admin.router)
    app.include_router(cafes.router)
    app.include_router(checkout.router)
    app.include_router(menu.router)
    app.include_router(orders.router)
    app.include_router(coupons.router)
    app.include_router(settings_router.router)
    app.include_router(reports.router)
    app.include_router(realtime.router)

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    logger.info("app ready (env=%s, relay=%s)", settings.APP_ENV, type(app.state.relay).__name__)
    return app
