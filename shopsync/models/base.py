"""
Engine, sessions and schema bootstrap

SQLite is the default store. File databases get one connection per session
(NullPool) so the scheduler and API requests never share a handle; an
in-memory database has to stay on a single connection or every session
would see an empty schema.
"""
import os
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool, StaticPool
from sqlalchemy.orm import declarative_base, sessionmaker
from shopsync.config import get_settings
from shopsync.utils.logger import log

settings = get_settings()

MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def resolve_database_url(url: str) -> str:
    """Make relative SQLite paths absolute so a cwd change can't open a new file"""
    if url.startswith("sqlite:///") and not url.startswith("sqlite:////"):
        path = url[len("sqlite:///"):]
        if path and path != ":memory:":
            return "sqlite:///" + os.path.abspath(path)
    return url


def build_engine(url: str) -> Engine:
    url = resolve_database_url(url)
    if url in MEMORY_URLS:
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 60},
            poolclass=NullPool,
            pool_pre_ping=True,
        )
    return create_engine(url, pool_pre_ping=True, pool_size=3, max_overflow=5, pool_recycle=300)


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Request-scoped session for read endpoints"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _migrate_missing_columns(bind: Engine):
    """ALTER TABLE ADD COLUMN for model columns an existing table lacks.

    create_all() never touches existing tables, so columns added to a model
    after the first deploy land here. Only additive changes are handled.
    """
    inspector = inspect(bind)
    statements = []
    for name, table in Base.metadata.tables.items():
        if not inspector.has_table(name):
            continue
        present = {column["name"] for column in inspector.get_columns(name)}
        for column in table.columns:
            if column.name not in present:
                col_type = column.type.compile(dialect=bind.dialect)
                statements.append(f"ALTER TABLE {name} ADD COLUMN {column.name} {col_type}")

    if statements:
        with bind.begin() as conn:
            for ddl in statements:
                log.info(f"Auto-migrating: {ddl}")
                conn.execute(text(ddl))
    return len(statements)


def init_db(bind: Engine = None):
    """Create missing tables, then add missing columns"""
    import shopsync.models  # noqa: F401  registers every table on Base.metadata
    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    _migrate_missing_columns(bind)
