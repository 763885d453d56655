"""
Database connection setup.

The engine is built once in the application lifespan and the session factory
is stored on ``app.state``; request handlers receive sessions through
:func:`get_db`.
"""
from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def create_db_engine(url: str, echo: bool = False) -> Engine:
    # SQLite needs check_same_thread=False because sessions cross into the threadpool
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    return create_engine(url, connect_args=connect_args, echo=echo)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request):
    """Database session dependency"""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
