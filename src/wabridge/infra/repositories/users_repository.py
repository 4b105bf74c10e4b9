"""Users repository - registered WhatsApp users.

Uses raw SQL with psycopg2 (no ORM). Phones are stored normalized (digits
only, no separators) so they match the user part of inbound JIDs.
"""

from __future__ import annotations

from typing import Any

from psycopg2.extensions import cursor as PgCursor

from wabridge.domain.models import User

_USER_COLUMNS = "id, name, phone, email, is_active, created_at, updated_at"

# Columns a PATCH may touch
_UPDATABLE_FIELDS = ("name", "email", "is_active")


def _row_to_user(row: tuple[Any, ...]) -> User:
    return User(
        id=row[0],
        name=row[1],
        phone=row[2],
        email=row[3],
        is_active=row[4],
        created_at=row[5],
        updated_at=row[6],
    )


def create_user(cur: PgCursor, *, name: str, phone: str, email: str) -> User:
    """Insert a new active user.

    Args:
        cur: Database cursor (within transaction).
        name: Display name.
        phone: Normalized phone (digits only).
        email: Contact email.

    Returns:
        The created user.
    """
    cur.execute(
        f"""
        INSERT INTO users (name, phone, email, is_active)
        VALUES (%s, %s, %s, TRUE)
        RETURNING {_USER_COLUMNS}
        """,
        (name, phone, email),
    )
    return _row_to_user(cur.fetchone())


def get_user_by_phone(cur: PgCursor, phone: str) -> User | None:
    """Fetch a user by normalized phone."""
    cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE phone = %s", (phone,))
    row = cur.fetchone()
    return _row_to_user(row) if row else None


def list_users(cur: PgCursor, *, active_only: bool = False) -> list[User]:
    """List users ordered by creation time."""
    query = f"SELECT {_USER_COLUMNS} FROM users"
    if active_only:
        query += " WHERE is_active = TRUE"
    cur.execute(query + " ORDER BY created_at")
    return [_row_to_user(row) for row in cur.fetchall()]


def update_user(cur: PgCursor, phone: str, changes: dict[str, Any]) -> User | None:
    """Apply a partial update.

    Args:
        cur: Database cursor (within transaction).
        phone: Normalized phone of the user to update.
        changes: Subset of name/email/is_active. Other keys are ignored.

    Returns:
        The updated user, or None if no user has that phone.
    """
    fields = [key for key in _UPDATABLE_FIELDS if key in changes]
    if not fields:
        return get_user_by_phone(cur, phone)

    assignments = ", ".join(f"{key} = %s" for key in fields)
    params = [changes[key] for key in fields]
    cur.execute(
        f"""
        UPDATE users SET {assignments}, updated_at = now()
        WHERE phone = %s
        RETURNING {_USER_COLUMNS}
        """,
        (*params, phone),
    )
    row = cur.fetchone()
    return _row_to_user(row) if row else None


def is_user_eligible(cur: PgCursor, phone: str) -> bool:
    """Return True if ``phone`` belongs to an active registered user."""
    cur.execute(
        "SELECT 1 FROM users WHERE phone = %s AND is_active = TRUE",
        (phone,),
    )
    return cur.fetchone() is not None
