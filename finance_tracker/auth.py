# finance_tracker/auth.py
from __future__ import annotations

import logging
import re
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import bcrypt

from finance_tracker.database import (
    create_organization,
    create_session,
    create_user,
    get_first_organization,
    get_session,
    get_user_by_email,
)
from finance_tracker.errors import AuthError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_BCRYPT_ROUNDS = 10
DEFAULT_SESSION_TTL_DAYS = 7
MIN_PASSWORD_LENGTH = 8

_EMAIL_RX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(password: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def extract_bearer_token(header_value: str | None) -> str | None:
    if not header_value or not header_value.startswith("Bearer "):
        return None
    token = header_value[7:].strip()
    return token or None


def _validate_credentials(payload: Any, require_password_length: bool) -> tuple[str, str]:
    if not isinstance(payload, dict):
        raise ValidationError(details=[{"field": "body", "message": "Expected a JSON object"}])

    details = []
    email = payload.get("email")
    password = payload.get("password")
    if not isinstance(email, str) or not _EMAIL_RX.match(email):
        details.append({"field": "email", "message": "Invalid email"})
    if not isinstance(password, str):
        details.append({"field": "password", "message": "Required"})
    elif require_password_length and len(password) < MIN_PASSWORD_LENGTH:
        details.append(
            {
                "field": "password",
                "message": f"Must contain at least {MIN_PASSWORD_LENGTH} character(s)",
            }
        )
    name = payload.get("name")
    if name is not None and not isinstance(name, str):
        details.append({"field": "name", "message": "Expected string"})
    if details:
        raise ValidationError(details=details)
    return email, password


def _issue_session(db_path: str, user_id: int, ttl_days: int, now: datetime | None) -> str:
    now = now or datetime.now(timezone.utc)
    token = str(uuid.uuid4())
    create_session(db_path, user_id, token, now + timedelta(days=ttl_days))
    return token


def register(
    db_path: str,
    payload: Any,
    *,
    rounds: int = DEFAULT_BCRYPT_ROUNDS,
    ttl_days: int = DEFAULT_SESSION_TTL_DAYS,
    now: datetime | None = None,
) -> Dict[str, object]:
    """Create a user with a personal organization and an initial session."""
    email, password = _validate_credentials(payload, require_password_length=True)
    name = payload.get("name")

    if get_user_by_email(db_path, email) is not None:
        raise ValidationError("User already exists")

    try:
        user = create_user(db_path, email, hash_password(password, rounds), name)
    except sqlite3.IntegrityError as exc:
        raise ValidationError("User already exists") from exc

    organization = create_organization(db_path, f"{name or email}'s Organization", user["id"])
    token = _issue_session(db_path, user["id"], ttl_days, now)
    logger.info("Registered user %s with organization %s", user["id"], organization["id"])

    return {
        "user": {"id": user["id"], "email": user["email"], "name": user["name"]},
        "organization": organization,
        "token": token,
    }


def login(
    db_path: str,
    payload: Any,
    *,
    ttl_days: int = DEFAULT_SESSION_TTL_DAYS,
    now: datetime | None = None,
) -> Dict[str, object]:
    email, password = _validate_credentials(payload, require_password_length=False)

    user = get_user_by_email(db_path, email)
    if user is None or not verify_password(password, user["password"]):
        raise AuthError("Invalid credentials")

    organization = get_first_organization(db_path, user["id"])
    token = _issue_session(db_path, user["id"], ttl_days, now)
    return {
        "user": {"id": user["id"], "email": user["email"], "name": user["name"]},
        "organization": organization,
        "token": token,
    }


def authenticate(db_path: str, header_value: str | None, now: datetime | None = None) -> Dict[str, object]:
    """Resolve an ``Authorization`` header to its session.

    Raises :class:`AuthError` when the header is missing, the token is unknown
    or the session has expired.
    """
    token = extract_bearer_token(header_value)
    if token is None:
        raise AuthError("Unauthorized")

    session = get_session(db_path, token)
    if session is None:
        raise AuthError("Invalid token")

    now = now or datetime.now(timezone.utc)
    if session["expires_at"] < now:
        raise AuthError("Token expired")
    return session
