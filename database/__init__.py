"""
Database package for CivicLens
"""
from .schemas import (
    ISSUE_CATEGORY_ENUM,
    ISSUE_STATUS_ENUM,
    ISSUE_SEVERITY_ENUM,
    UPDATE_TYPE_ENUM,
    UPDATE_STATUS_ENUM,
    UPDATE_SEVERITY_ENUM,
    UPDATE_SOURCE_ENUM,
    USER_ROLE_ENUM,
    COLLECTIONS
)
from .database import (
    connect,
    Database
)
from .models import (
    UserModel,
    IssueModel,
    CivicUpdateModel
)

__all__ = [
    'ISSUE_CATEGORY_ENUM',
    'ISSUE_STATUS_ENUM',
    'ISSUE_SEVERITY_ENUM',
    'UPDATE_TYPE_ENUM',
    'UPDATE_STATUS_ENUM',
    'UPDATE_SEVERITY_ENUM',
    'UPDATE_SOURCE_ENUM',
    'USER_ROLE_ENUM',
    'COLLECTIONS',
    'connect',
    'Database',
    'UserModel',
    'IssueModel',
    'CivicUpdateModel'
]
