"""
Database configuration and session management.
Provides database engine and session factory.
"""
from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from chat_relay.models import Base


def create_db_engine(database_url: str, echo: bool = False):
    """Create an engine, applying the SQLite specific settings when needed."""
    connect_args = {}
    engine_kwargs = {}

    if database_url.startswith("sqlite"):
        # SQLite specific setting for multi-threaded access
        connect_args = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise each checkout sees an empty database
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(
        database_url,
        connect_args=connect_args,
        echo=echo,
        **engine_kwargs
    )

    if database_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_session_factory(engine):
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine
    )


def init_db(engine):
    """Initialize database tables."""
    # This creates tables if they don't exist
    Base.metadata.create_all(bind=engine)


def get_db(request: Request):
    """
    Get database session with automatic cleanup.
    Used as a FastAPI dependency.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
