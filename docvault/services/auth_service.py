"""Authentication service: user lifecycle and password hashing.

All password operations use bcrypt via passlib. Passwords are never stored
or logged in plaintext. The service layer owns user lifecycle; endpoints
are thin wrappers.
"""

import logging
import uuid
from typing import Optional

from passlib.hash import bcrypt
from sqlalchemy.orm import Session

from ..core.auth import ANONYMOUS_USER_ID
from ..exceptions import AuthenticationError, UserNotFoundError, ValidationError
from ..models.enums import Role
from ..models.user import User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def register_user(
    db: Session,
    email: str,
    password: str,
    display_name: str,
    role: Role = Role.EMPLOYEE,
) -> User:
    """Create a new user account.

    The first user registered becomes SUPER_ADMIN regardless of *role*.

    Raises ValidationError if email is already taken or inputs are invalid.
    """
    email = email.strip().lower()
    if not email or "@" not in email:
        raise ValidationError("Valid email address required", field="email")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("Password must be at least 8 characters", field="password")
    if not display_name.strip():
        raise ValidationError("Display name required", field="display_name")

    existing = db.query(User).filter(User.email == email).first()
    if existing is not None:
        raise ValidationError("Email already registered", field="email")

    # FOR UPDATE so two concurrent first registrations cannot both see zero.
    user_count = (
        db.query(User)
        .filter(User.id != ANONYMOUS_USER_ID)
        .with_for_update()
        .count()
    )
    is_first_user = user_count == 0
    effective_role = Role.SUPER_ADMIN if is_first_user else role

    user = User(
        id=str(uuid.uuid4()),
        display_name=display_name.strip(),
        email=email,
        password_hash=bcrypt.hash(password),
        role=effective_role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    if is_first_user:
        logger.info("First user registered as SUPER_ADMIN: %s", email)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    """Validate credentials and return the user.

    Raises AuthenticationError on invalid email, wrong password, or inactive account.
    """
    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()

    if user is None or not user.password_hash:
        raise AuthenticationError("Invalid email or password")

    if not bcrypt.verify(password, user.password_hash):
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    return user


def get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise UserNotFoundError(user_id)
    return user


def get_user_optional(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def count_users(db: Session) -> int:
    return db.query(User).filter(User.id != ANONYMOUS_USER_ID).count()


def list_users(db: Session) -> list[User]:
    """List all registered users (excludes the development placeholder)."""
    return (
        db.query(User)
        .filter(User.id != ANONYMOUS_USER_ID)
        .order_by(User.created_at, User.email)
        .all()
    )


def update_user_role(db: Session, user_id: str, new_role: Role) -> User:
    """Change a user's global role."""
    user = get_user(db, user_id)
    user.role = new_role
    db.commit()
    db.refresh(user)
    logger.info("User %s role changed to %s", user_id, new_role.value)
    return user


def deactivate_user(db: Session, user_id: str) -> User:
    user = get_user(db, user_id)
    user.is_active = False
    db.commit()
    db.refresh(user)
    return user


def ensure_dev_user(db: Session) -> None:
    """Create the placeholder row the anonymous development principal acts as.

    Only called when authentication is disabled, so rows it creates
    (companies, tokens, audit entries) have a real user to reference.
    """
    if db.query(User).filter(User.id == ANONYMOUS_USER_ID).first() is not None:
        return
    db.add(User(
        id=ANONYMOUS_USER_ID,
        display_name="Anonymous",
        email="anonymous@localhost",
        password_hash="",
        role=Role.SUPER_ADMIN,
        is_active=True,
    ))
    db.commit()
    logger.warning("Authentication disabled; acting as placeholder user '%s'", ANONYMOUS_USER_ID)
