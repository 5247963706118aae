# finance_tracker/database.py
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List

from finance_tracker.core.models import ParsedTransaction

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL,
    name TEXT,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS organizations (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS organization_members (
    id INTEGER PRIMARY KEY,
    organization_id INTEGER NOT NULL REFERENCES organizations(id),
    user_id INTEGER NOT NULL REFERENCES users(id),
    role TEXT NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE(organization_id, user_id)
);
CREATE TABLE IF NOT EXISTS sessions (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id),
    token TEXT NOT NULL UNIQUE,
    expires_at TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY,
    amount REAL NOT NULL,
    description TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('income', 'expense')),
    date TEXT NOT NULL,
    confidence REAL NOT NULL,
    raw_text TEXT,
    category_id INTEGER,
    user_id INTEGER NOT NULL REFERENCES users(id),
    organization_id INTEGER NOT NULL REFERENCES organizations(id),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_transactions_owner
    ON transactions (organization_id, user_id, id);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _connect(db_path: str) -> sqlite3.Connection:
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.executescript(_SCHEMA)
    return conn


def init_db(db_path: str) -> None:
    """Create the schema in *db_path* if it does not exist yet."""
    _connect(db_path).close()


def create_user(db_path: str, email: str, password_hash: str, name: str | None = None) -> Dict[str, object]:
    conn = _connect(db_path)
    try:
        created = _now()
        cur = conn.execute(
            "INSERT INTO users (email, password, name, created_at) VALUES (?, ?, ?, ?)",
            (email, password_hash, name, created),
        )
        conn.commit()
        return {"id": cur.lastrowid, "email": email, "name": name, "created_at": created}
    finally:
        conn.close()


def get_user_by_email(db_path: str, email: str) -> Dict[str, object] | None:
    """Return the user row for *email*, including the password hash."""
    conn = _connect(db_path)
    try:
        row = conn.execute(
            "SELECT id, email, password, name, created_at FROM users WHERE email = ?",
            (email,),
        ).fetchone()
        return dict(row) if row else None
    finally:
        conn.close()


def create_organization(db_path: str, name: str, owner_id: int) -> Dict[str, object]:
    """Create an organization and register *owner_id* as its owner."""
    conn = _connect(db_path)
    try:
        created = _now()
        slug = f"org-{owner_id}"
        cur = conn.execute(
            "INSERT INTO organizations (name, slug, created_at) VALUES (?, ?, ?)",
            (name, slug, created),
        )
        org_id = cur.lastrowid
        conn.execute(
            """
            INSERT INTO organization_members (organization_id, user_id, role, created_at)
            VALUES (?, ?, 'owner', ?)
            """,
            (org_id, owner_id, created),
        )
        conn.commit()
        return {"id": org_id, "name": name, "slug": slug}
    finally:
        conn.close()


def get_membership(db_path: str, organization_id: int, user_id: int) -> Dict[str, object] | None:
    conn = _connect(db_path)
    try:
        row = conn.execute(
            """
            SELECT organization_id, user_id, role
            FROM organization_members
            WHERE organization_id = ? AND user_id = ?
            """,
            (organization_id, user_id),
        ).fetchone()
        return dict(row) if row else None
    finally:
        conn.close()


def get_first_organization(db_path: str, user_id: int) -> Dict[str, object] | None:
    """Return the earliest organization *user_id* belongs to."""
    conn = _connect(db_path)
    try:
        row = conn.execute(
            """
            SELECT o.id, o.name, o.slug
            FROM organization_members m
            JOIN organizations o ON o.id = m.organization_id
            WHERE m.user_id = ?
            ORDER BY m.id
            LIMIT 1
            """,
            (user_id,),
        ).fetchone()
        return dict(row) if row else None
    finally:
        conn.close()


def create_session(db_path: str, user_id: int, token: str, expires_at: datetime) -> Dict[str, object]:
    conn = _connect(db_path)
    try:
        conn.execute(
            "INSERT INTO sessions (user_id, token, expires_at, created_at) VALUES (?, ?, ?, ?)",
            (user_id, token, expires_at.isoformat(), _now()),
        )
        conn.commit()
        return {"user_id": user_id, "token": token, "expires_at": expires_at}
    finally:
        conn.close()


def get_session(db_path: str, token: str) -> Dict[str, object] | None:
    """Look up a session by token together with its user's public fields."""
    conn = _connect(db_path)
    try:
        row = conn.execute(
            """
            SELECT s.token, s.expires_at, u.id AS user_id, u.email, u.name
            FROM sessions s
            JOIN users u ON u.id = s.user_id
            WHERE s.token = ?
            """,
            (token,),
        ).fetchone()
    finally:
        conn.close()
    if row is None:
        return None
    return {
        "token": row["token"],
        "expires_at": datetime.fromisoformat(row["expires_at"]),
        "user": {"id": row["user_id"], "email": row["email"], "name": row["name"]},
    }


def save_transactions(
    db_path: str,
    transactions: Iterable[ParsedTransaction],
    raw_text: str,
    user_id: int,
    organization_id: int,
) -> List[Dict[str, object]]:
    """Persist parsed candidates in a single commit.

    Parameters
    ----------
    transactions:
        Candidates produced by the parser, stored in the given order.
    raw_text:
        The full submitted text, kept alongside every row.
    user_id, organization_id:
        Owner of the new rows.
    """
    conn = _connect(db_path)
    try:
        saved = []
        for tx in transactions:
            created = _now()
            cur = conn.execute(
                """
                INSERT INTO transactions
                (amount, description, type, date, confidence, raw_text,
                 user_id, organization_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    float(tx.amount),
                    tx.description,
                    tx.type.value,
                    tx.date.isoformat(),
                    float(tx.confidence),
                    raw_text,
                    user_id,
                    organization_id,
                    created,
                    created,
                ),
            )
            saved.append(
                {
                    "id": cur.lastrowid,
                    "amount": float(tx.amount),
                    "description": tx.description,
                    "type": tx.type.value,
                    "date": tx.date.isoformat(),
                    "confidence": float(tx.confidence),
                    "createdAt": created,
                }
            )
        conn.commit()
        return saved
    finally:
        conn.close()


def list_transactions(
    db_path: str,
    organization_id: int,
    user_id: int,
    cursor: int | None = None,
    limit: int = 20,
) -> Dict[str, object]:
    """Return one page of a user's transactions in an organization, newest first.

    *cursor* is the id of the last row of the previous page. One extra row is
    fetched to tell whether another page follows.
    """
    conn = _connect(db_path)
    try:
        query = (
            "SELECT id, amount, description, type, date, confidence, created_at, updated_at "
            "FROM transactions WHERE organization_id = ? AND user_id = ?"
        )
        params: list[object] = [organization_id, user_id]
        if cursor is not None:
            query += " AND id < ?"
            params.append(cursor)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit + 1)
        rows = conn.execute(query, params).fetchall()
    finally:
        conn.close()

    has_more = len(rows) > limit
    items = rows[:limit]
    next_cursor = items[-1]["id"] if has_more else None
    return {
        "transactions": [
            {
                "id": row["id"],
                "amount": float(row["amount"]),
                "description": row["description"],
                "type": row["type"],
                "date": row["date"],
                "confidence": float(row["confidence"]),
                "category": None,
                "createdAt": row["created_at"],
                "updatedAt": row["updated_at"],
            }
            for row in items
        ],
        "nextCursor": next_cursor,
        "hasMore": has_more,
    }
