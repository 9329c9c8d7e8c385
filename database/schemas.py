"""
MongoDB document shapes and enums for CivicLens
Documents are plain dicts; these constants are the single source of allowed values.
"""
from datetime import datetime
from typing import List, Optional

from bson import ObjectId

# Schema Definitions (Python dictionaries describing stored documents)

# 1. Issue
ISSUE_SCHEMA = {
    "_id": ObjectId,
    "title": str,
    "description": str,
    "category": str,  # ISSUE_CATEGORY_ENUM
    "status": str,  # ISSUE_STATUS_ENUM, default 'reported'
    "severity": str,  # ISSUE_SEVERITY_ENUM, default 'medium'
    "location": {
        "coordinates": list,  # [longitude, latitude]
        "state": str,
        "district": str,
        "pincode": str,
        "address": Optional[str],
        "cell": str,  # grid cell key, internal
    },
    "images": list,  # ordered URLs
    "reportedBy": ObjectId,  # -> users._id
    "assignedTo": Optional[ObjectId],  # -> users._id
    "comments": list,  # [{_id, userId, text, createdAt}]
    "upvotes": list,  # user ids, no duplicates
    "aiAnalysis": Optional[dict],  # {categoryConfidence, severityScore, automatedTags}
    "searchTokens": list,  # token index, internal
    "createdAt": datetime,
    "updatedAt": datetime,
}

# 2. CivicUpdate
CIVIC_UPDATE_SCHEMA = {
    "_id": ObjectId,
    "type": str,  # UPDATE_TYPE_ENUM
    "title": str,
    "description": str,
    "affectedAreas": List[dict],  # [{state, district?, pincode?, areaName?}], at least one
    "startDate": datetime,
    "endDate": Optional[datetime],
    "status": str,  # UPDATE_STATUS_ENUM
    "severity": Optional[str],  # UPDATE_SEVERITY_ENUM
    "source": str,  # UPDATE_SOURCE_ENUM
    "contactInfo": Optional[str],
    "relatedLinks": List[str],
    "searchTokens": list,
    "createdAt": datetime,
    "updatedAt": datetime,
}

# 3. User
USER_SCHEMA = {
    "_id": ObjectId,
    "name": str,
    "email": str,  # Unique, lowercased
    "password": str,  # bcrypt hash, never returned
    "role": str,  # USER_ROLE_ENUM
    "profilePicture": Optional[str],
    "points": int,
    "badges": list,
    "level": int,
    "verified": bool,
    "location": Optional[dict],  # {state, district, pincode}
    "createdAt": datetime,
    "updatedAt": datetime,
}

# Enums
ISSUE_CATEGORY_ENUM = ['pothole', 'light', 'garbage', 'water', 'traffic', 'other']
ISSUE_STATUS_ENUM = ['reported', 'open', 'in-progress', 'resolved', 'rejected']
ISSUE_SEVERITY_ENUM = ['low', 'medium', 'high', 'urgent']

UPDATE_TYPE_ENUM = ['event', 'hazard', 'project', 'alert', 'utility']
UPDATE_STATUS_ENUM = ['upcoming', 'ongoing', 'completed']
UPDATE_SEVERITY_ENUM = ['low', 'medium', 'high']
UPDATE_SOURCE_ENUM = ['government', 'community', 'automated']

USER_ROLE_ENUM = ['user', 'admin', 'authority']
PRIVILEGED_ROLES = ('admin', 'authority')

DEFAULT_ISSUE_STATUS = 'reported'
DEFAULT_ISSUE_SEVERITY = 'medium'
RESOLVED_STATUS = 'resolved'

# Fields kept for indexing only, stripped from every returned document
TOKEN_FIELD = 'searchTokens'
CELL_FIELD = 'cell'

# Collection Names
COLLECTIONS = {
    'Issues': 'issues',
    'CivicUpdates': 'civicupdates',
    'Users': 'users',
}
