# Overview: Account registration and password authentication.

"""
Authentication Service

Passwords are hashed with bcrypt; the cost factor comes from
BCRYPT_ROUNDS. Emails are compared lower-cased.
"""

import bcrypt
from flask import current_app

from ..extensions import db
from ..errors import ConflictError
from ..models import User
from ..validation import validate_registration


def hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe via bcrypt.checkpw; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(email: str, password: str, name: str | None = None) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises ConflictError if the email is already registered.
    """
    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("User with this email already exists")

    user = User(email=email, name=name, password_hash=hash_password(password), is_active=True)
    db.session.add(user)
    db.session.commit()
    return user


def register_user(payload: dict) -> User:
    """Validate a self-registration payload and create the account."""
    fields = validate_registration(payload)
    return create_user(fields["email"], fields["password"], fields["name"])


def authenticate(email: str, password: str) -> User | None:
    """Returns the active user for valid credentials, None otherwise."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user
