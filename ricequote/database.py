"""Database configuration and initialization."""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from ricequote.utils.serialization import dumps_json, loads_json

# Create SQLAlchemy base
Base = declarative_base()

# Engine created by init_db
engine = None


def build_engine(database_uri: str, echo: bool = False, **kwargs):
    """
    Create an engine that round-trips Decimals through JSON columns.

    In-memory SQLite shares one connection across threads so the schema
    survives for the lifetime of the process.
    """
    options = dict(
        echo=echo,
        json_serializer=dumps_json,
        json_deserializer=loads_json,
    )
    if database_uri.startswith('sqlite'):
        options['connect_args'] = {'check_same_thread': False, 'timeout': 30}
        if database_uri in ('sqlite://', 'sqlite:///:memory:'):
            options['poolclass'] = StaticPool
    else:
        options.update(
            pool_pre_ping=True,  # Enable connection health checks
            pool_size=10,
            max_overflow=20
        )
    options.update(kwargs)
    return create_engine(database_uri, **options)


def build_session_factory(bind):
    """Session factory used by the document store."""
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=bind)


def init_db(app):
    """Create the engine and the documents table."""
    global engine

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine = build_engine(database_uri, echo=app.config.get('SQLALCHEMY_ECHO', False))

    # Import models so the metadata knows every table
    from ricequote import models  # noqa: F401
    Base.metadata.create_all(engine)
    app.logger.info(f"[DB] Engine ready ({engine.dialect.name})")


def get_engine():
    """Get the engine created by init_db."""
    return engine
