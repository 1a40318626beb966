# storefront/main.py
from contextlib import asynccontextmanager

import redis
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from storefront.api import ROUTERS
from storefront.data.database import Base, make_engine, make_session_factory
from storefront.domain.errors import StorefrontError
from storefront.utils.logging import get_logger
from storefront.utils.settings import REDIS_URL, STORE_TIMEOUT_SECONDS

# IMPORT WSZYSTKICH MODELI (PRZED CREATE_ALL)
import storefront.data.models  # noqa: F401

logger = get_logger(__name__)


def make_redis(url: str | None = None) -> redis.Redis:
    return redis.Redis.from_url(
        url or REDIS_URL,
        decode_responses=True,
        socket_timeout=STORE_TIMEOUT_SECONDS,
        socket_connect_timeout=STORE_TIMEOUT_SECONDS,
    )


def create_app(
    session_factory: sessionmaker | None = None,
    redis_client: redis.Redis | None = None,
    create_tables: bool = True,
) -> FastAPI:
    """
    Klienty bazy i Redis tworzy proces (lifespan) albo podaje wolajacy (testy).
    Nic nie laczy sie przy imporcie.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_engine = None
        owned_redis = None
        if app.state.session_factory is None:
            owned_engine = make_engine()
            app.state.session_factory = make_session_factory(owned_engine)
        if app.state.redis is None:
            owned_redis = app.state.redis = make_redis()

        if create_tables:
            logger.info("Initializing database tables")
            Base.metadata.create_all(bind=app.state.session_factory.kw["bind"])

        yield

        if owned_engine is not None:
            owned_engine.dispose()
        if owned_redis is not None:
            owned_redis.close()

    app = FastAPI(
        title="Storefront Cart Service",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.session_factory = session_factory
    app.state.redis = redis_client

    @app.exception_handler(StorefrontError)
    async def storefront_error(request: Request, exc: StorefrontError):
        # bledy nie przechwycone w routerach, np. StoreUnavailable z odczytu
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})

    @app.exception_handler(OperationalError)
    async def database_unavailable(request: Request, exc: OperationalError):
        logger.error(f"Database unavailable on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=503,
            content={"detail": {"error": "StoreUnavailable", "message": "Database is unavailable"}},
        )

    for router in ROUTERS:
        app.include_router(router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
