# storefront/data/database.py
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from storefront.utils.settings import DATABASE_URL, STORE_TIMEOUT_SECONDS

Base = declarative_base()


def make_engine(url: str | None = None, **kwargs) -> Engine:
    url = url or DATABASE_URL
    if url.startswith("postgresql"):
        # statement_timeout w ms, connect_timeout w s
        kwargs.setdefault(
            "connect_args",
            {
                "connect_timeout": STORE_TIMEOUT_SECONDS,
                "options": f"-c statement_timeout={STORE_TIMEOUT_SECONDS * 1000}",
            },
        )
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
