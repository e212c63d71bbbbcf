"""Process-wide SQLAlchemy engine and session factory.

Lifecycle: ``init_engine()`` builds the pool (called from the application
lifespan, or lazily by the first ``get_db()``), ``dispose_engine()`` closes
every pooled connection at shutdown. Sessions are per request.
"""
import logging
from typing import Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.event import listen
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from locallink.config.settings import settings, DEFAULT_DATABASE_URL

logger = logging.getLogger(__name__)

SessionLocal = sessionmaker(autocommit=False, autoflush=False)
_engine: Optional[Engine] = None

# Force UTC on every new PostgreSQL connection
def register_postgresql_session(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("SET TIME ZONE UTC")
    cursor.close()

# SQLite ignores FOR UPDATE; file databases take the write lock when the transaction starts instead
def disable_pysqlite_begin(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None

def begin_immediate(conn):
    conn.exec_driver_sql("BEGIN IMMEDIATE")

def init_engine(database_url: Optional[str] = None) -> Engine:
    global _engine
    if _engine is not None:
        return _engine

    url = database_url or settings.DATABASE_URL
    if url == DEFAULT_DATABASE_URL:
        logger.warning("DATABASE_URL not set - using local development database %s", url)

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
    else:
        engine = create_engine(url, pool_pre_ping=True)

    if engine.dialect.name == "postgresql":
        listen(engine, "connect", register_postgresql_session)
    elif engine.dialect.name == "sqlite" and not isinstance(engine.pool, StaticPool):
        listen(engine, "connect", disable_pysqlite_begin)
        listen(engine, "begin", begin_immediate)

    SessionLocal.configure(bind=engine)
    _engine = engine
    logger.info(f"Database engine initialised ({engine.dialect.name})")
    return engine

def get_engine() -> Engine:
    return init_engine()

def dispose_engine():
    global _engine
    if _engine is None:
        return
    _engine.dispose()
    _engine = None
    logger.info("Database engine disposed")

def get_db():
    init_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
