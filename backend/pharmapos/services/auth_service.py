# Overview: Service-layer operations for auth; encapsulates password hashing and role lookup.

"""
Authentication Service

WHY: Every sale records who sold it and every payment note who took it.
Uses bcrypt for password hashing. Roles live in the document store at
users/<uid>/role; accounts without a role cannot use the API.

ROLES:
- admin: everything, including stock repair and catalog import/export
- user:  billing, sales, payments, dashboard
"""

import logging

import bcrypt

from ..extensions import db
from ..models import User
from pharmapos.time_utils import utcnow
from .document_store import DocumentStore


logger = logging.getLogger(__name__)

USERS = "users"

ROLE_ADMIN = "admin"
ROLE_USER = "user"
VALID_ROLES = (ROLE_ADMIN, ROLE_USER)

MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AuthError(Exception):
    """Raised for account management errors."""
    pass


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against bcrypt hash (timing-safe)."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    email: str,
    password: str,
    role: str = ROLE_USER,
    display_name: str | None = None,
    store: DocumentStore | None = None,
) -> User:
    """
    Create an account and record its role in the document store.

    Raises AuthError for a duplicate email or unknown role, and
    PasswordValidationError for a weak password.
    """
    email = (email or "").strip().lower()
    if not email:
        raise AuthError("Email is required")
    if role not in VALID_ROLES:
        raise AuthError(f"Invalid role: {role}. Must be one of {list(VALID_ROLES)}")
    if db.session.query(User).filter_by(email=email).first():
        raise AuthError(f"User {email} already exists")

    user = User(
        email=email,
        display_name=display_name,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()

    set_role(user, role, store=store)
    return user


def set_role(user: User, role: str, store: DocumentStore | None = None) -> None:
    if role not in VALID_ROLES:
        raise AuthError(f"Invalid role: {role}. Must be one of {list(VALID_ROLES)}")
    (store or DocumentStore()).set(f"{USERS}/{user.uid}", {"email": user.email, "role": role})


def get_role(user: User, store: DocumentStore | None = None) -> str | None:
    role = (store or DocumentStore()).get(f"{USERS}/{user.uid}/role")
    return role if role in VALID_ROLES else None


def authenticate(email: str, password: str) -> User | None:
    """Return the active user for these credentials, or None."""
    email = (email or "").strip().lower()
    user = db.session.query(User).filter_by(email=email).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password or "", user.password_hash):
        logger.info("Failed login for %s", email)
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
