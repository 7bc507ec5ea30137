from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# ---------------------------------------------------------------------------
# Database configuration
# ---------------------------------------------------------------------------

# Declarative base class that the ORM models should inherit from.
Base = declarative_base()


def create_engine_for(url: str, echo: bool = False) -> Engine:
    """Build an engine for ``url``.

    ``check_same_thread`` must be disabled for SQLite because store calls run
    in worker threads (``asyncio.to_thread``). An in-memory SQLite database is
    bound to a single shared connection, otherwise every thread would see its
    own empty database.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(url, echo=echo, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------

def init_db(engine: Engine) -> None:
    """Create tables if they do not yet exist.

    Importing ``travello.memory.models`` registers all subclasses with the Base
    metadata, after which ``metadata.create_all`` will build the schema.
    """
    # The models import needs to stay **inside** the function to avoid circular
    # imports between this module and the models.
    from . import models  # noqa: F401  (side-effect import)

    Base.metadata.create_all(bind=engine)
