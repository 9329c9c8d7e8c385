"""
Caller identity for CivicLens
The transport layer verifies the token and hands the core an Identity.
"""
from dataclasses import dataclass
from typing import Optional

from database.schemas import PRIVILEGED_ROLES, USER_ROLE_ENUM
from services.errors import ForbiddenError, ValidationError


@dataclass(frozen=True)
class Identity:
    """Verified caller: user id and role"""

    user_id: str
    role: str = "user"

    def __post_init__(self):
        if self.role not in USER_ROLE_ENUM:
            raise ValidationError(f"Invalid role. Must be one of {USER_ROLE_ENUM}")

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


def has_role(identity: Optional[Identity], *roles: str) -> bool:
    """
    Check if the identity holds one of the roles

    Args:
        identity: Caller identity, may be None for anonymous calls
        roles: Accepted roles

    Returns:
        True if the caller has one of the roles, False otherwise
    """
    if identity is None:
        return False
    return identity.role in roles


def require_role(identity: Optional[Identity], *roles: str) -> Identity:
    """Raise ForbiddenError unless the identity holds one of the roles"""
    roles = roles or PRIVILEGED_ROLES
    if not has_role(identity, *roles):
        raise ForbiddenError(f"Requires role: {', '.join(roles)}")
    return identity
