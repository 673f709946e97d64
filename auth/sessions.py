"""
auth/sessions.py -- Server-side record of each user's current refresh token.

A refresh token is only honoured while its exact string is stored here.
Deleting the row is how a token is revoked before its natural expiry, and
overwriting it on every login/refresh is what makes rotation invalidate the
previous token.

Single-session policy: the tokens table has UNIQUE(user_id). save() replaces
the previous token for the user instead of appending a new row, so logging in
on a second device logs the first one out at its next refresh.

Concurrency: save() is one UPDATE-or-INSERT transaction. Two concurrent
saves for the same user leave exactly one row holding whichever write
committed last. If both find no row and race to INSERT, the loser hits the
UNIQUE(user_id) constraint and retries as an UPDATE. If the retry finds no
row either, the original IntegrityError propagates.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import SessionNotFoundError
from auth.models import RefreshSession
from auth.store import create_store_engine, now_iso, tokens


class SessionStore:
    """Repository for RefreshSession records.

    Usage:
        sessions = SessionStore("sqlite:///auth.db")
        sessions.save(user_id, refresh_token)
        sessions.get_by_token(refresh_token)   # RefreshSession or None
        sessions.delete_by_token(refresh_token)
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = create_store_engine(db_url)

    def save(self, user_id: int, refresh_token: str) -> RefreshSession:
        """Bind refresh_token to user_id, replacing any previous token.

        Raises sqlalchemy.exc.IntegrityError if user_id does not exist.
        """
        updated_at = now_iso()
        try:
            with self.engine.begin() as conn:
                if not self._update(conn, user_id, refresh_token, updated_at):
                    conn.execute(
                        tokens.insert().values(user_id=user_id, refresh_token=refresh_token, updated_at=updated_at)
                    )
        except IntegrityError:
            # Lost the first-insert race against a concurrent save for this user.
            # Any other violation (unknown user_id) leaves nothing to update.
            with self.engine.begin() as conn:
                if not self._update(conn, user_id, refresh_token, updated_at):
                    raise
        return RefreshSession(user_id=user_id, refresh_token=refresh_token, updated_at=updated_at)

    @staticmethod
    def _update(conn: Connection, user_id: int, refresh_token: str, updated_at: str) -> bool:
        result = conn.execute(
            tokens.update()
            .where(tokens.c.user_id == user_id)
            .values(refresh_token=refresh_token, updated_at=updated_at)
        )
        return result.rowcount > 0

    def get_by_token(self, refresh_token: str) -> RefreshSession | None:
        """Look up a session by the literal token string. Returns None if revoked or unknown."""
        with self.engine.connect() as conn:
            row = conn.execute(tokens.select().where(tokens.c.refresh_token == refresh_token)).fetchone()
        return _row_to_session(row) if row is not None else None

    def get_by_user(self, user_id: int) -> RefreshSession | None:
        with self.engine.connect() as conn:
            row = conn.execute(tokens.select().where(tokens.c.user_id == user_id)).fetchone()
        return _row_to_session(row) if row is not None else None

    def delete_by_token(self, refresh_token: str) -> RefreshSession:
        """Delete the session holding refresh_token and return it.

        Raises SessionNotFoundError if no session holds that token. Deleting a
        missing session is an error, not a silent no-op.
        """
        with self.engine.begin() as conn:
            row = conn.execute(tokens.select().where(tokens.c.refresh_token == refresh_token)).fetchone()
            if row is None:
                raise SessionNotFoundError()
            conn.execute(tokens.delete().where(tokens.c.id == row.id))
        return _row_to_session(row)

    def close(self) -> None:
        self.engine.dispose()


def _row_to_session(row) -> RefreshSession:
    return RefreshSession(
        id=row.id,
        user_id=row.user_id,
        refresh_token=row.refresh_token,
        updated_at=row.updated_at,
    )
