# model_repo/core/database.py
import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Set

from loguru import logger
from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..domain.db_models import Base, RegistryModelVersion
from .errors import CatalogError, RepositoryError


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Catalog:
    """
    Handle on the relational store. Opened once at application startup and
    closed at shutdown; request handlers receive it through ``deps``.
    """

    def __init__(self, db_url: str):
        self.db_url = db_url
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def is_sqlite(self) -> bool:
        return self.db_url.startswith("sqlite")

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Catalog is not open")
        return self._engine

    def open(self) -> "Catalog":
        if self._engine is not None:
            return self
        connect_args = {}
        if self.is_sqlite:
            db_path = self.db_url.replace("sqlite:///", "")
            if db_path and db_path != ":memory:":
                os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
            connect_args = {"check_same_thread": False}
        self._engine = create_engine(self.db_url, connect_args=connect_args)
        if self.is_sqlite:
            event.listen(self._engine, "connect", _enable_sqlite_foreign_keys)
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self._engine
        )
        logger.info("Catalog opened ({})", self._engine.url.render_as_string(hide_password=True))
        return self

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Catalog closed")
        self._engine = None
        self._session_factory = None

    def init_schema(self) -> None:
        """Upgrade tables written by older releases, then create what is missing."""
        migrate_legacy_columns(self.engine)
        Base.metadata.create_all(bind=self.engine)
        ensure_indexes(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Transactional scope: commit on success, roll back on any error."""
        if self._session_factory is None:
            raise RuntimeError("Catalog is not open")
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except RepositoryError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Catalog operation failed")
            raise CatalogError() from exc
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()


def _upgrade_users(conn: Connection, columns: Set[str]) -> None:
    if "invite_token" not in columns:
        conn.execute(text("ALTER TABLE users ADD COLUMN invite_token VARCHAR(64)"))
        # ADD COLUMN cannot carry UNIQUE on SQLite
        conn.execute(
            text("CREATE UNIQUE INDEX IF NOT EXISTS uq_users_invite_token ON users (invite_token)")
        )
        logger.info("Migration: users.invite_token column added")
    if "invite_token_expires" not in columns:
        conn.execute(text("ALTER TABLE users ADD COLUMN invite_token_expires TIMESTAMP"))
        logger.info("Migration: users.invite_token_expires column added")


def _upgrade_models(conn: Connection, columns: Set[str]) -> None:
    if "visibility" not in columns:
        conn.execute(
            text("ALTER TABLE models ADD COLUMN visibility VARCHAR(10) NOT NULL DEFAULT 'private'")
        )
        if "is_public" in columns:
            result = conn.execute(
                text("UPDATE models SET visibility = 'public' WHERE is_public = :flag"),
                {"flag": True},
            )
            logger.info("Migration: {} public model(s) moved to visibility='public'", result.rowcount)
        logger.info("Migration: visibility column added")
    if "zoom_level" not in columns:
        conn.execute(text("ALTER TABLE models ADD COLUMN zoom_level INTEGER NOT NULL DEFAULT 19"))
        logger.info("Migration: zoom_level column added")


def _upgrade_versions(conn: Connection, columns: List[Dict[str, Any]], dialect: str) -> None:
    target = RegistryModelVersion.__table__.c.version.type.length
    version_col = next((c for c in columns if c["name"] == "version"), None)
    length = getattr(version_col["type"], "length", None) if version_col else None
    # SQLite does not enforce VARCHAR lengths
    if dialect != "sqlite" and length is not None and length < target:
        conn.execute(
            text(f"ALTER TABLE model_versions ALTER COLUMN version TYPE VARCHAR({target})")
        )
        logger.info("Migration: model_versions.version widened to {} characters", target)

    # keep the newest active row per model so the one-active index can be built
    result = conn.execute(
        text(
            "UPDATE model_versions SET is_active = :inactive "
            "WHERE is_active = :active AND id NOT IN ("
            "SELECT MAX(id) FROM model_versions WHERE is_active = :active GROUP BY model_id)"
        ),
        {"active": True, "inactive": False},
    )
    if result.rowcount:
        logger.info("Migration: {} extra active version(s) deactivated", result.rowcount)


def migrate_legacy_columns(engine: Engine) -> None:
    """
    One-time upgrades for databases created by earlier releases:

    * ``users.invite_token`` / ``users.invite_token_expires`` are added when
      missing, with a unique index on the token.
    * ``models.is_public`` (boolean) becomes ``models.visibility``; public rows
      map to ``'public'``, everything else to ``'private'``.
    * ``models.zoom_level`` is added when missing.
    * ``model_versions.version`` is widened, and models left with several
      active versions keep only the newest one active.
    """
    inspector = inspect(engine)
    tables = set(inspector.get_table_names())

    with engine.begin() as conn:
        if "users" in tables:
            _upgrade_users(conn, {col["name"] for col in inspector.get_columns("users")})
        if "models" in tables:
            _upgrade_models(conn, {col["name"] for col in inspector.get_columns("models")})
        if "model_versions" in tables:
            _upgrade_versions(conn, inspector.get_columns("model_versions"), engine.dialect.name)


def ensure_indexes(engine: Engine) -> None:
    """Create declared indexes that tables from older releases lack."""
    for table in Base.metadata.sorted_tables:
        for index in table.indexes:
            index.create(bind=engine, checkfirst=True)
