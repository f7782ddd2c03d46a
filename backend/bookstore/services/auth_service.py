# Overview: Service-layer operations for identity; registration, login and account management.

"""
Authentication and Account Service

WHY: Every order and every stock change must be attributable. Uses bcrypt
for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, upper, lower, digit and special character required
- Session tokens managed separately (see session_service.py)
- Deactivated users cannot authenticate
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..models import User
from ..models.auth import ROLE_CUSTOMER, VALID_ROLES
from bookstore.time_utils import utcnow
from .errors import DuplicateError, NotFoundError, ValidationError
from .session_service import revoke_all_user_sessions


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    code = "WEAK_PASSWORD"


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PROFILE_FIELDS = ("full_name", "email", "phone_number", "address")


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    """Hash password using bcrypt. Password is validated for strength before hashing."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. A malformed stored hash is a
    non-match, not an error.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _normalize_email(email) -> str:
    if not isinstance(email, str) or not EMAIL_RE.match(email.strip()):
        raise ValidationError("A valid email is required", details={"field": "email"})
    return email.strip().lower()


def _ensure_unique(username: str | None, email: str | None, exclude_user_id: int | None = None) -> None:
    if username:
        q = db.session.query(User).filter(User.username == username)
        if exclude_user_id is not None:
            q = q.filter(User.id != exclude_user_id)
        if q.first():
            raise DuplicateError("Username already exists", details={"field": "username"})
    if email:
        q = db.session.query(User).filter(User.email == email)
        if exclude_user_id is not None:
            q = q.filter(User.id != exclude_user_id)
        if q.first():
            raise DuplicateError("Email already exists", details={"field": "email"})


def create_user(
    username: str,
    email: str,
    password: str,
    full_name: str,
    role: str = ROLE_CUSTOMER,
    phone_number: str | None = None,
    address: str | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: bad role, email or blank username/full_name
        PasswordValidationError: weak password
        DuplicateError: username or email already taken
    """
    if role not in VALID_ROLES:
        raise ValidationError(f"Invalid role: {role}", details={"role": role})
    if not isinstance(username, str) or not username.strip():
        raise ValidationError("username is required", details={"field": "username"})
    if not isinstance(full_name, str) or not full_name.strip():
        raise ValidationError("full_name is required", details={"field": "full_name"})

    username = username.strip()
    email = _normalize_email(email)
    _ensure_unique(username, email)

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        full_name=full_name.strip(),
        phone_number=phone_number,
        address=address,
        role=role,
        is_active=True,
        created_at=utcnow(),
    )

    db.session.add(user)
    db.session.commit()
    return user


def register_customer(
    username: str,
    email: str,
    password: str,
    full_name: str,
    phone_number: str | None = None,
    address: str | None = None,
) -> User:
    """Self-service registration. Always creates a CUSTOMER."""
    return create_user(
        username=username,
        email=email,
        password=password,
        full_name=full_name,
        role=ROLE_CUSTOMER,
        phone_number=phone_number,
        address=address,
    )


def authenticate(username_or_email: str, password: str) -> User | None:
    """
    Authenticate user with username or email and password.

    Returns User if credentials valid and account active, None otherwise.
    Updates last_login_at on success.
    """
    if not username_or_email or not password:
        return None

    identifier = username_or_email.strip()
    user = db.session.query(User).filter(
        db.or_(User.username == identifier, User.email == identifier.lower()),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def change_password(user_id: int, current_password: str, new_password: str) -> int:
    """
    Change a user's own password. Revokes every session of the user.

    Returns the number of sessions revoked.
    """
    user = get_user(user_id)
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect", details={"field": "current_password"})

    user.password_hash = hash_password(new_password)
    user.updated_at = utcnow()
    revoked = revoke_all_user_sessions(user.id, reason="Password changed", commit=False)
    db.session.commit()
    return revoked


def update_profile(user_id: int, **fields) -> User:
    """Update full_name, email, phone_number and address. Unknown keys are rejected."""
    unknown = set(fields) - set(PROFILE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Unknown profile fields: {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )

    user = get_user(user_id)
    if "email" in fields:
        email = _normalize_email(fields["email"])
        _ensure_unique(None, email, exclude_user_id=user.id)
        user.email = email
    if "full_name" in fields:
        if not isinstance(fields["full_name"], str) or not fields["full_name"].strip():
            raise ValidationError("full_name cannot be blank", details={"field": "full_name"})
        user.full_name = fields["full_name"].strip()
    if "phone_number" in fields:
        user.phone_number = fields["phone_number"]
    if "address" in fields:
        user.address = fields["address"]

    user.updated_at = utcnow()
    db.session.commit()
    return user


# =============================================================================
# ADMIN USER MANAGEMENT
# =============================================================================

def list_users(*, role: str | None = None, search: str | None = None, include_inactive: bool = True) -> list[User]:
    q = db.session.query(User)
    if role:
        if role not in VALID_ROLES:
            raise ValidationError(f"Invalid role: {role}", details={"role": role})
        q = q.filter(User.role == role)
    if not include_inactive:
        q = q.filter(User.is_active.is_(True))
    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        q = q.filter(db.or_(
            db.func.lower(User.username).like(pattern),
            db.func.lower(User.email).like(pattern),
            db.func.lower(User.full_name).like(pattern),
        ))
    return q.order_by(User.id.asc()).all()


def update_user(user_id: int, *, role: str | None = None, is_active: bool | None = None, **profile) -> User:
    """Admin edit: profile fields plus role and active flag."""
    user = get_user(user_id)
    if profile:
        update_profile(user_id, **profile)

    if role is not None:
        if role not in VALID_ROLES:
            raise ValidationError(f"Invalid role: {role}", details={"role": role})
        user.role = role
    if is_active is not None:
        user.is_active = bool(is_active)
        if not user.is_active:
            revoke_all_user_sessions(user.id, reason="User account deactivated", commit=False)

    user.updated_at = utcnow()
    db.session.commit()
    return user


def deactivate_user(user_id: int, actor_user_id: int) -> User:
    if user_id == actor_user_id:
        raise ValidationError("Cannot deactivate your own account")
    return update_user(user_id, is_active=False)
