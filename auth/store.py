"""
auth/store.py -- SQLAlchemy Core persistence layer for users and roles.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
and _row_to_role are the mappers. AuthService never touches SQL directly.

The schema for every auth table lives here on one MetaData object, including
the tokens table that auth/sessions.py reads and writes. Whichever store is
constructed first creates all tables.

Security:
  All queries use bound parameters. No f-strings in SQL.

Atomicity:
  create_user() inserts the user row and its role assignment inside a single
  engine.begin() transaction. Either both rows exist afterwards or neither.

DB path default: auth/tokenward_auth.db (overridden by DATABASE_URL).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine

from auth.models import Role, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt hash
    Column("is_activated", Boolean, nullable=False, server_default="0"),
    Column("activation_link", String(64), unique=True),
    Column("created_at", String(32), nullable=False),
)

_roles = Table(
    "roles",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(50), nullable=False, unique=True),
)

# Join entity for the users <-> roles many-to-many. The autoincrement id
# gives role assignments a stable order.
_user_roles = Table(
    "user_roles",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False),
)

# One refresh token per user. Both columns are UNIQUE: user_id enforces the
# single-session policy, refresh_token makes lookup-by-token an index hit.
tokens = Table(
    "tokens",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
    Column("refresh_token", Text, nullable=False, unique=True),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def create_store_engine(db_url: str) -> Engine:
    """Build an Engine for db_url and make sure the auth schema exists."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _sqlite_pragmas)
    metadata.create_all(engine)
    return engine


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and Role entities.

    Usage:
        store = UserStore("sqlite:///auth.db")
        role = store.ensure_role("USER")
        user_id = store.create_user(User(email=..., hashed_password=..., activation_link=...), role.id)
        user = store.get_by_email("someone@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = create_store_engine(db_url)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User, role_id: int) -> int:
        """Insert a user together with one role assignment and return the new ID.

        Raises sqlalchemy.exc.IntegrityError if the email (or activation link)
        already exists. The transaction is rolled back, so no orphan role
        assignment or half-created user survives.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=user.email,
                    password=user.hashed_password,
                    is_activated=user.is_activated,
                    activation_link=user.activation_link,
                    created_at=now_iso(),
                )
            )
            user_id = result.inserted_primary_key[0]
            conn.execute(_user_roles.insert().values(user_id=user_id, role_id=role_id))
        return user_id

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
            return _row_to_user(row, self._role_names(conn, row.id)) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            return _row_to_user(row, self._role_names(conn, row.id)) if row is not None else None

    def get_by_activation_link(self, link: str) -> User | None:
        """Exact match on the opaque activation token from the emailed link."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.activation_link == link)).fetchone()
            return _row_to_user(row, self._role_names(conn, row.id)) if row is not None else None

    def set_activated(self, user_id: int) -> bool:
        """Mark the user as activated. Re-applying the update is harmless.

        Returns True if the user row exists.
        """
        with self.engine.begin() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(is_activated=True))
        return result.rowcount > 0

    @staticmethod
    def _role_names(conn: Connection, user_id: int) -> list[str]:
        rows = conn.execute(
            select(_roles.c.name)
            .select_from(_user_roles.join(_roles, _user_roles.c.role_id == _roles.c.id))
            .where(_user_roles.c.user_id == user_id)
            .order_by(_user_roles.c.id)
        ).fetchall()
        return [r.name for r in rows]

    # ------------------------------------------------------------------
    # Roles (seed data)
    # ------------------------------------------------------------------

    def get_role_by_name(self, name: str) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.name == name)).fetchone()
        return _row_to_role(row) if row is not None else None

    def ensure_role(self, name: str) -> Role:
        """Create the role if it does not exist yet. Idempotent; used by `main.py seed-roles`."""
        existing = self.get_role_by_name(name)
        if existing is not None:
            return existing
        with self.engine.begin() as conn:
            result = conn.execute(_roles.insert().values(name=name))
        return Role(id=result.inserted_primary_key[0], name=name)

    def list_roles(self) -> list[Role]:
        with self.engine.connect() as conn:
            rows = conn.execute(_roles.select().order_by(_roles.c.id)).fetchall()
        return [_row_to_role(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row, roles: list[str]) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.password,
        is_activated=bool(row.is_activated),
        activation_link=row.activation_link,
        roles=roles,
        created_at=row.created_at,
    )


def _row_to_role(row) -> Role:
    return Role(id=row.id, name=row.name)
