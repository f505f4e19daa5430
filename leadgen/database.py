"""
Database engine + session factory.

Always initializes — defaults to SQLite for local dev, Postgres in production.
get_session() always returns a real session. Sessions keep loaded attributes
after commit so gateway methods can hand back detached Lead rows.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from leadgen.config import DATABASE_URL


class Base(DeclarativeBase):
    pass


# Hosted Postgres often injects postgres:// but SQLAlchemy 2.x requires postgresql://
url = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

# SQLite needs different engine kwargs than Postgres
if url.startswith('sqlite'):
    engine = create_engine(url, connect_args={'check_same_thread': False})
else:
    engine = create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)

SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def get_session():
    """Return a new DB session."""
    return SessionLocal()


def init_db():
    """Create tables directly (local SQLite / CLI). Production uses Alembic."""
    import leadgen.models.lead  # noqa: F401
    import leadgen.models.pipeline_run  # noqa: F401
    Base.metadata.create_all(engine)
