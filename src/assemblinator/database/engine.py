"""Engine factory for the assembly database.

Production deployments point DATABASE_URL at a managed database. Without
it, a local SQLite file is opened with SQLCipher encryption when
available, falling back to unencrypted SQLite only when allowed.

Every SQLite transaction starts with BEGIN IMMEDIATE. The status check
and the write of a ballot, presence or transition then run under one
database write lock, so a concurrent close or cancel cannot commit
between them.
"""

import os
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from ..logging import get_logger

logger = get_logger(__name__)

MIN_KEY_LENGTH = 16
SQLITE_BUSY_TIMEOUT = 30


class ConnectionWrapper:
    """Adapts a pysqlcipher3 connection to what SQLAlchemy expects.

    pysqlcipher3 has no 'deterministic' kwarg on create_function, and
    isolation_level must reach the wrapped connection for the BEGIN
    IMMEDIATE setup to take effect.
    """

    def __init__(self, conn):
        self._conn = conn

    def create_function(self, name, num_params, func, deterministic=False):
        return self._conn.create_function(name, num_params, func)

    @property
    def isolation_level(self):
        return self._conn.isolation_level

    @isolation_level.setter
    def isolation_level(self, value):
        self._conn.isolation_level = value

    def __getattr__(self, name):
        return getattr(self._conn, name)


def configure_sqlite_engine(engine: Engine) -> Engine:
    """Enforce foreign keys and take the write lock when a transaction begins.

    No-op for other dialects, which honour the row locks taken by the
    repository.
    """
    if engine.dialect.name != "sqlite":
        return engine

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # The driver must not emit its own deferred BEGIN.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def validate_encryption_key(encryption_key: Optional[str]) -> str:
    """Return the key, or raise ValueError when it is missing or too short."""
    if not encryption_key:
        raise ValueError(
            "ENCRYPTION_KEY environment variable is required. "
            "Set it in your .env file or pass it directly."
        )
    if len(encryption_key) < MIN_KEY_LENGTH:
        raise ValueError(
            f"ENCRYPTION_KEY must be at least {MIN_KEY_LENGTH} characters (128 bits). "
            "Generate a strong key with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
        )
    return encryption_key


def _plain_sqlite_engine(db_path: str) -> Engine:
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={'check_same_thread': False, 'timeout': SQLITE_BUSY_TIMEOUT},
    )
    return configure_sqlite_engine(engine)


def create_encrypted_engine(
    db_path: str,
    encryption_key: Optional[str] = None,
    require_encryption: bool = True
) -> Engine:
    """Open the assembly database file with SQLCipher encryption.

    Args:
        db_path: Path to the SQLite database file
        encryption_key: Key of at least 16 characters. Defaults to ENCRYPTION_KEY env.
        require_encryption: Raise when pysqlcipher3 is missing instead of
                            falling back to unencrypted SQLite

    Raises:
        ValueError: Missing or short key
        ImportError: require_encryption is set and pysqlcipher3 is missing
    """
    key = validate_encryption_key(encryption_key or os.getenv('ENCRYPTION_KEY'))

    try:
        import pysqlcipher3.dbapi2 as sqlcipher
    except ImportError:
        if require_encryption:
            raise ImportError(
                "pysqlcipher3 is required for database encryption. "
                "Install it with: pip install assemblinator[encryption]"
            )
        logger.warning("SQLCipher not available - assembly database is NOT encrypted!")
        return _plain_sqlite_engine(db_path)

    escaped_key = key.replace("'", "''")

    def connection_creator():
        conn = sqlcipher.connect(db_path, check_same_thread=False, timeout=SQLITE_BUSY_TIMEOUT)
        cursor = conn.cursor()
        cursor.execute(f"PRAGMA key = '{escaped_key}'")
        cursor.close()
        return ConnectionWrapper(conn)

    # URL only selects the dialect; connections come from the creator.
    engine = create_engine("sqlite://", creator=connection_creator, echo=False)
    logger.info("Assembly database opened with SQLCipher encryption")
    return configure_sqlite_engine(engine)


def create_database_engine(
    database_url: Optional[str] = None,
    db_path: Optional[str] = None,
) -> Engine:
    """Create the engine from DATABASE_URL, or from DB_PATH as local SQLite.

    ALLOW_UNENCRYPTED_DB=true permits a plain SQLite file when no key is
    set or pysqlcipher3 is missing.

    Args:
        database_url: SQLAlchemy URL. Defaults to DATABASE_URL env.
        db_path: SQLite file used when no URL is set. Defaults to DB_PATH env.
    """
    database_url = database_url or os.getenv("DATABASE_URL")
    if database_url:
        engine = create_engine(database_url, echo=False, pool_pre_ping=True)
        logger.info(f"Database engine created for {engine.dialect.name}")
        return configure_sqlite_engine(engine)

    db_path = db_path or os.getenv("DB_PATH", "assemblinator.db")
    allow_unencrypted = os.getenv("ALLOW_UNENCRYPTED_DB", "false").lower() in ("true", "1", "yes")
    if allow_unencrypted and not os.getenv("ENCRYPTION_KEY"):
        logger.warning("No ENCRYPTION_KEY set - assembly database is NOT encrypted!")
        return _plain_sqlite_engine(db_path)
    return create_encrypted_engine(db_path, require_encryption=not allow_unencrypted)
