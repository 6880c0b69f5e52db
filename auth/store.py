"""
auth/store.py -- SQLAlchemy Core persistence layer for admin credentials.

Pattern: Repository + Data Mapper.
AdminStore is the repository; _row_to_admin is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Failure mode:
  Opening the store never touches the database. The schema is created on
  first use and retried on every call until it succeeds, so a database that
  is down at startup is picked up once it comes back, without a restart.

  Every SQLAlchemyError is re-raised as StoreUnavailable so the HTTP layer
  can answer 503 instead of pretending the credentials were wrong.
  IntegrityError from create_admin() is the one exception that passes
  through untouched: it means "duplicate identifier", not an outage.

The auth core only ever calls find_by_identifier(), get_by_id() and
update_last_login(). create_admin() exists for provisioning
(scripts/create_admin.py) and tests.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import StoreUnavailable
from auth.models import AdminCredential

logger = logging.getLogger("carz.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_admins = Table(
    "admins",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt hash, never plaintext
    Column("name", String(255), nullable=False),
    Column("role", String(30), nullable=False, server_default="ADMIN"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("last_login", String(32)),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so logins can read while provisioning writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_identifier(identifier: str) -> str:
    """Emails are matched case-insensitively and without surrounding blanks."""
    return identifier.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AdminStore:
    """Repository for AdminCredential records.

    Usage:
        store = AdminStore("sqlite:///carz_admin.db")
        store.create_admin(AdminCredential(identifier="admin@carz.com", secret_hash=h, name="Admin"))
        admin = store.find_by_identifier("admin@carz.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    def _ensure_schema(self) -> None:
        """Create the admins table on first use; retried until it succeeds."""
        if self._schema_ready:
            return
        with self._schema_lock:
            if self._schema_ready:
                return
            try:
                _metadata.create_all(self.engine)
            except SQLAlchemyError as exc:
                logger.error("Admin store schema setup failed: %s", exc.__class__.__name__)
                raise StoreUnavailable("could not initialise admin store") from exc
            self._schema_ready = True

    # ------------------------------------------------------------------
    # Queries used by the auth core
    # ------------------------------------------------------------------

    def find_by_identifier(self, identifier: str) -> AdminCredential | None:
        """Look up an admin by email. Returns None if not found."""
        self._ensure_schema()
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    _admins.select().where(_admins.c.email == normalize_identifier(identifier))
                ).fetchone()
        except SQLAlchemyError as exc:
            logger.error("Admin lookup failed: %s", exc.__class__.__name__)
            raise StoreUnavailable("admin lookup failed") from exc
        return _row_to_admin(row) if row is not None else None

    def get_by_id(self, admin_id: int) -> AdminCredential | None:
        """Look up an admin by primary key. Returns None if not found."""
        self._ensure_schema()
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_admins.select().where(_admins.c.id == admin_id)).fetchone()
        except SQLAlchemyError as exc:
            logger.error("Admin lookup by id failed: %s", exc.__class__.__name__)
            raise StoreUnavailable("admin lookup failed") from exc
        return _row_to_admin(row) if row is not None else None

    def update_last_login(self, admin_id: int) -> None:
        """Stamp the current UTC timestamp as last_login for the given admin."""
        self._ensure_schema()
        try:
            with self.engine.connect() as conn:
                conn.execute(_admins.update().where(_admins.c.id == admin_id).values(last_login=_now_iso()))
                conn.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailable("could not record login") from exc

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    def has_admins(self) -> bool:
        """Return True if at least one admin record exists."""
        self._ensure_schema()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(select(func.count()).select_from(_admins)).scalar()
        except SQLAlchemyError as exc:
            raise StoreUnavailable("admin count failed") from exc
        return (result or 0) > 0

    def create_admin(self, admin: AdminCredential) -> int:
        """Insert a new admin and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        self._ensure_schema()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _admins.insert().values(
                        email=normalize_identifier(admin.identifier),
                        password=admin.secret_hash,
                        name=admin.name,
                        role=admin.role,
                        is_active=1 if admin.is_active else 0,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            raise StoreUnavailable("could not create admin") from exc

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_admin(row) -> AdminCredential:
    return AdminCredential(
        id=row.id,
        identifier=row.email,
        secret_hash=row.password,
        name=row.name,
        role=row.role,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        last_login=row.last_login,
    )
