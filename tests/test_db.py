import sqlite3
from datetime import date, datetime, timedelta, timezone

from finance_tracker.core.models import ParsedTransaction, TransactionType
from finance_tracker.database import (
    create_organization,
    create_session,
    create_user,
    get_first_organization,
    get_membership,
    get_session,
    get_user_by_email,
    list_transactions,
    save_transactions,
)


def _seed_owner(db_path, email="owner@example.com"):
    user = create_user(str(db_path), email, "hashed", "Owner")
    org = create_organization(str(db_path), "Owner's Organization", user["id"])
    return user, org


def _candidates(count):
    return [
        ParsedTransaction(
            amount=float(i + 1),
            description=f"Item {i + 1}",
            type=TransactionType.EXPENSE,
            date=date(2024, 1, i + 1),
            confidence=0.9,
        )
        for i in range(count)
    ]


def test_users_and_organizations(tmp_path):
    db_path = tmp_path / "txs.db"
    user, org = _seed_owner(db_path)

    stored = get_user_by_email(str(db_path), "owner@example.com")
    assert stored["id"] == user["id"]
    assert stored["password"] == "hashed"
    assert get_user_by_email(str(db_path), "nobody@example.com") is None

    assert org["slug"] == f"org-{user['id']}"
    membership = get_membership(str(db_path), org["id"], user["id"])
    assert membership["role"] == "owner"
    assert get_membership(str(db_path), org["id"] + 1, user["id"]) is None

    assert get_first_organization(str(db_path), user["id"]) == org


def test_sessions_round_trip(tmp_path):
    db_path = tmp_path / "txs.db"
    user, _ = _seed_owner(db_path)
    expires = datetime(2025, 1, 8, tzinfo=timezone.utc)
    create_session(str(db_path), user["id"], "tok-1", expires)

    session = get_session(str(db_path), "tok-1")
    assert session["expires_at"] == expires
    assert session["user"] == {"id": user["id"], "email": "owner@example.com", "name": "Owner"}
    assert get_session(str(db_path), "missing") is None


def test_save_transactions_keeps_order(tmp_path):
    db_path = tmp_path / "txs.db"
    user, org = _seed_owner(db_path)

    saved = save_transactions(str(db_path), _candidates(3), "raw", user["id"], org["id"])
    assert [row["description"] for row in saved] == ["Item 1", "Item 2", "Item 3"]
    assert [row["type"] for row in saved] == ["expense"] * 3
    assert saved[0]["date"] == "2024-01-01"
    assert all(row["id"] and row["createdAt"] for row in saved)


def test_list_transactions_cursor_pagination(tmp_path):
    db_path = tmp_path / "txs.db"
    user, org = _seed_owner(db_path)
    save_transactions(str(db_path), _candidates(5), "raw", user["id"], org["id"])

    first = list_transactions(str(db_path), org["id"], user["id"], limit=2)
    assert [tx["description"] for tx in first["transactions"]] == ["Item 5", "Item 4"]
    assert first["hasMore"] is True
    assert first["nextCursor"] == first["transactions"][-1]["id"]
    assert first["transactions"][0]["category"] is None

    second = list_transactions(str(db_path), org["id"], user["id"], cursor=first["nextCursor"], limit=2)
    assert [tx["description"] for tx in second["transactions"]] == ["Item 3", "Item 2"]
    assert second["hasMore"] is True

    last = list_transactions(str(db_path), org["id"], user["id"], cursor=second["nextCursor"], limit=2)
    assert [tx["description"] for tx in last["transactions"]] == ["Item 1"]
    assert last["hasMore"] is False
    assert last["nextCursor"] is None


def test_list_transactions_scoped_to_user_and_organization(tmp_path):
    db_path = tmp_path / "txs.db"
    owner, org = _seed_owner(db_path)
    other, other_org = _seed_owner(db_path, email="other@example.com")
    save_transactions(str(db_path), _candidates(2), "raw", owner["id"], org["id"])
    save_transactions(str(db_path), _candidates(1), "raw", other["id"], other_org["id"])

    assert len(list_transactions(str(db_path), org["id"], owner["id"])["transactions"]) == 2
    assert len(list_transactions(str(db_path), other_org["id"], other["id"])["transactions"]) == 1
    assert list_transactions(str(db_path), other_org["id"], owner["id"])["transactions"] == []


def test_pagination_follows_insertion_order_when_clock_goes_backwards(tmp_path):
    db_path = tmp_path / "txs.db"
    user, org = _seed_owner(db_path)
    saved = save_transactions(str(db_path), _candidates(4), "raw", user["id"], org["id"])

    conn = sqlite3.connect(db_path)
    conn.execute(
        "UPDATE transactions SET created_at = '2000-01-01T00:00:00+00:00' WHERE id = ?",
        (saved[-1]["id"],),
    )
    conn.commit()
    conn.close()

    seen = []
    cursor = None
    while True:
        page = list_transactions(str(db_path), org["id"], user["id"], cursor=cursor, limit=1)
        seen.extend(tx["id"] for tx in page["transactions"])
        if not page["hasMore"]:
            break
        cursor = page["nextCursor"]

    assert seen == sorted((row["id"] for row in saved), reverse=True)
