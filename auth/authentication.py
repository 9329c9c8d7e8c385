"""
Account functions for CivicLens
Handles registration, login, profile edits and password hashing
"""
from typing import Dict, Optional

import bcrypt
from pymongo.errors import DuplicateKeyError

from database.models import UserModel, as_object_id, public_document
from database.schemas import USER_ROLE_ENUM
from logging_setup import get_logger
from services.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from .session import Identity

log = get_logger("auth")

MIN_PASSWORD_LENGTH = 8
PROFILE_FIELDS = ("name", "email", "profilePicture", "location")


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hashed password

    Args:
        password: Plain text password
        hashed_password: Hashed password string

    Returns:
        True if password matches, False otherwise
    """
    password_bytes = password.encode('utf-8')
    hashed_bytes = hashed_password.encode('utf-8')
    return bcrypt.checkpw(password_bytes, hashed_bytes)


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _check_password(password: Optional[str]) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def register_user(users: UserModel, name: str, email: str, password: str,
                  role: str = "user", location: Optional[Dict] = None) -> Dict:
    """
    Register a new account

    Args:
        users: User model
        name: Display name
        email: Unique email address (stored lowercased)
        password: Plain text password (will be hashed)
        role: 'user', 'admin' or 'authority'
        location: Optional {state, district, pincode}

    Returns:
        The stored user without its password hash
    """
    email = _normalize_email(email)
    if not name or not name.strip() or not email:
        raise ValidationError("Name and email are required")
    if role not in USER_ROLE_ENUM:
        raise ValidationError(f"Invalid role. Must be one of {USER_ROLE_ENUM}")
    _check_password(password)

    if users.find_by_email(email):
        raise ConflictError("Email already registered")

    try:
        user = users.create_user({
            "name": name.strip(),
            "email": email,
            "password": hash_password(password),
            "role": role,
            "location": location,
        })
    except DuplicateKeyError:
        raise ConflictError("Email already registered") from None

    log.info(f"Registered user {user['_id']} with role {role}")
    user = public_document(user)
    user.pop("password", None)
    return user


def login(users: UserModel, email: str, password: str) -> Identity:
    """Check credentials and return the caller identity"""
    user = users.find_by_email(_normalize_email(email), include_password=True)
    stored_password = (user or {}).get("password", "")
    if not user or not stored_password or not verify_password(password or "", stored_password):
        raise UnauthorizedError("Invalid email or password")
    return Identity(user_id=str(user["_id"]), role=user.get("role", "user"))


def update_profile(users: UserModel, user_id: str, data: Dict) -> Dict:
    """Update name, email, profile picture or location of an account"""
    oid = as_object_id(user_id)
    fields = {k: data[k] for k in PROFILE_FIELDS if data.get(k) is not None}
    if "email" in fields:
        fields["email"] = _normalize_email(fields["email"])
        other = users.find_by_email(fields["email"])
        if other and other["_id"] != oid:
            raise ConflictError("Email already registered")
    if "name" in fields and not str(fields["name"]).strip():
        raise ValidationError("Name cannot be empty")

    user = users.update_profile(oid, fields) if oid else None
    if user is None:
        raise NotFoundError("User not found")
    return user


def change_password(users: UserModel, user_id: str, current_password: str, new_password: str) -> None:
    oid = as_object_id(user_id)
    user = users.find_by_id(oid, include_password=True) if oid else None
    if user is None:
        raise NotFoundError("User not found")
    if not verify_password(current_password or "", user.get("password", "")):
        raise UnauthorizedError("Current password is incorrect")
    _check_password(new_password)
    users.set_password(oid, hash_password(new_password))
    log.info(f"Password changed for user {oid}")
