"""
auth.py
Back-office accounts: bcrypt hashing, login, account creation, password change.
"""

from __future__ import annotations

import logging
from datetime import datetime

import bcrypt

import config
import db

logger = logging.getLogger(__name__)

ROLES = ("admin", "staff")


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_to_bcrypt_secret(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_to_bcrypt_secret(password), password_hash.encode("utf-8"))


def validate_new_password(p1: str, p2: str) -> list[str]:
    if len(p1) < 6:
        return ["Password must be at least 6 characters."]
    if p1 != p2:
        return ["Passwords do not match."]
    return []


def get_user(username: str):
    return db.fetch_one("SELECT * FROM users WHERE username = ?", (username,))


def login(username: str, password: str) -> str | None:
    """Returns the user's role on success, None otherwise."""
    user = get_user(username)
    if not user or not verify_password(password, user["password_hash"]):
        logger.warning("Failed login for %r", username)
        return None
    logger.info("User %s logged in", username)
    return user["role"]


def create_user(username: str, password: str, role: str = "staff") -> int:
    if role not in ROLES:
        raise ValueError(f"Unknown role {role!r}")
    if get_user(username.strip()):
        raise ValueError(f"User {username.strip()!r} already exists")
    uid = db.execute(
        "INSERT INTO users(username, password_hash, role, created_at) VALUES(?,?,?,?)",
        (username.strip(), hash_password(password), role, datetime.utcnow().isoformat(timespec="seconds")),
    )
    logger.info("Created %s account %s", role, username.strip())
    return uid


def list_users():
    return db.fetch_all("SELECT id, username, role, created_at FROM users ORDER BY username ASC")


def change_password(username: str, new_password: str) -> None:
    db.execute(
        "UPDATE users SET password_hash = ? WHERE username = ?",
        (hash_password(new_password), username),
    )
    db.clear_force_password_change()
