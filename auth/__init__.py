"""
Authentication package for CivicLens
"""
from .authentication import (
    hash_password,
    verify_password,
    login,
    register_user,
    update_profile,
    change_password
)
from .session import (
    Identity,
    has_role,
    require_role
)

__all__ = [
    'hash_password',
    'verify_password',
    'login',
    'register_user',
    'update_profile',
    'change_password',
    'Identity',
    'has_role',
    'require_role'
]
