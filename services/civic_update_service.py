"""
Civic Update Service - public notices tied to affected areas

Reads are open. Writes go through the admin/authority gate whenever the
caller's identity is passed in.
"""
from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId

from auth.session import Identity, require_role
from database.models import CivicUpdateModel, as_object_id, public_document, utcnow
from database.schemas import (
    PRIVILEGED_ROLES,
    TOKEN_FIELD,
    UPDATE_SEVERITY_ENUM,
    UPDATE_SOURCE_ENUM,
    UPDATE_STATUS_ENUM,
    UPDATE_TYPE_ENUM,
)
from logging_setup import get_logger
from search.tokens import update_tokens
from services.errors import NotFoundError, ValidationError
from services.query_builder import build_update_query
from services.validation import (
    one_of,
    optional_text,
    parse_datetime,
    required_text,
    string_list,
)

log = get_logger("civic_updates")

AREA_KEYS = ("state", "district", "pincode", "areaName")
TEXT_FIELDS = ("title", "description", "affectedAreas")


def _validate_area(raw: Any, index: int) -> Dict:
    if not isinstance(raw, Mapping):
        raise ValidationError(f"affectedAreas[{index}] must be an object")
    area = {"state": required_text(raw.get("state"), f"affectedAreas[{index}].state")}
    for key in AREA_KEYS[1:]:
        value = raw.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        value = optional_text(value, f"affectedAreas[{index}].{key}")
        if value:
            area[key] = value
    return area


def _validate_areas(raw: Any) -> List[Dict]:
    if not isinstance(raw, (list, tuple)) or len(raw) < 1:
        raise ValidationError("At least one affected area is required")
    return [_validate_area(area, i) for i, area in enumerate(raw)]


# field -> validator(value) for every settable field
_VALIDATORS = {
    "type": lambda v: one_of(v, UPDATE_TYPE_ENUM, "type"),
    "title": lambda v: required_text(v, "title"),
    "description": lambda v: required_text(v, "description"),
    "affectedAreas": _validate_areas,
    "startDate": lambda v: parse_datetime(v, "startDate"),
    "endDate": lambda v: parse_datetime(v, "endDate"),
    "status": lambda v: one_of(v, UPDATE_STATUS_ENUM, "status"),
    "severity": lambda v: one_of(v, UPDATE_SEVERITY_ENUM, "severity"),
    "source": lambda v: one_of(v, UPDATE_SOURCE_ENUM, "source"),
    "contactInfo": lambda v: optional_text(v, "contactInfo"),
    "relatedLinks": lambda v: string_list(v, "relatedLinks"),
}

REQUIRED_FIELDS = ("type", "title", "description", "affectedAreas", "startDate", "status", "source")


def _check_dates(doc: Mapping[str, Any]) -> None:
    start, end = doc.get("startDate"), doc.get("endDate")
    if start is not None and end is not None and end < start:
        raise ValidationError("endDate cannot be before startDate")


def validate_new_update(data: Mapping[str, Any]) -> Dict:
    if not isinstance(data, Mapping):
        raise ValidationError("Civic update data must be an object")
    fields = {}
    for field in REQUIRED_FIELDS:
        if data.get(field) is None:
            if field == "affectedAreas":
                raise ValidationError("At least one affected area is required")
            raise ValidationError(f"{field} is required")
    for field, validate in _VALIDATORS.items():
        if data.get(field) is not None:
            fields[field] = validate(data[field])
    fields.setdefault("relatedLinks", [])
    _check_dates(fields)
    return fields


def validate_changes(data: Mapping[str, Any]) -> Dict:
    """Partial update: only fields present (not None) are checked and returned"""
    if not isinstance(data, Mapping):
        raise ValidationError("Civic update data must be an object")
    return {field: validate(data[field]) for field, validate in _VALIDATORS.items()
            if data.get(field) is not None}


class CivicUpdateService:
    def __init__(self, updates: CivicUpdateModel, max_page_size: Optional[int] = None):
        self.updates = updates
        self.max_page_size = max_page_size

    @staticmethod
    def _update_id(update_id: Any) -> ObjectId:
        oid = as_object_id(update_id)
        if oid is None:
            raise NotFoundError("Civic update not found")
        return oid

    @staticmethod
    def _gate(actor: Optional[Identity]) -> None:
        if actor is not None:
            require_role(actor, *PRIVILEGED_ROLES)

    def create_update(self, data: Mapping[str, Any], actor: Optional[Identity] = None) -> Dict:
        self._gate(actor)
        fields = validate_new_update(data)
        now = utcnow()
        doc = {**fields, "createdAt": now, "updatedAt": now}
        doc[TOKEN_FIELD] = update_tokens(doc)
        doc = self.updates.insert(doc)
        log.info(f"Civic update {doc['_id']} created ({doc['type']}, {len(doc['affectedAreas'])} areas)")
        return public_document(doc)

    def get_update(self, update_id: Any) -> Dict:
        doc = self.updates.find_by_id(self._update_id(update_id))
        if doc is None:
            raise NotFoundError("Civic update not found")
        return public_document(doc)

    def update_update(self, update_id: Any, data: Mapping[str, Any], actor: Optional[Identity] = None) -> Dict:
        """Partial update; changes to title, description or areas refresh the token index"""
        self._gate(actor)
        oid = self._update_id(update_id)
        changes = validate_changes(data or {})

        current = self.updates.find_by_id(oid)
        if current is None:
            raise NotFoundError("Civic update not found")
        if not changes:
            return public_document(current)

        merged = {**current, **changes}
        _check_dates(merged)
        if any(field in changes for field in TEXT_FIELDS):
            changes[TOKEN_FIELD] = update_tokens(merged)
        changes["updatedAt"] = utcnow()

        doc = self.updates.update_fields(oid, {"$set": changes})
        if doc is None:
            raise NotFoundError("Civic update not found")
        log.info(f"Civic update {oid} changed: {sorted(k for k in changes if k not in (TOKEN_FIELD, 'updatedAt'))}")
        return public_document(doc)

    def delete_update(self, update_id: Any, actor: Optional[Identity] = None) -> None:
        self._gate(actor)
        oid = self._update_id(update_id)
        if not self.updates.delete(oid):
            raise NotFoundError("Civic update not found")
        log.info(f"Civic update {oid} deleted")

    def list_updates(self, filters: Optional[Mapping[str, Any]] = None,
                     options: Optional[Mapping[str, Any]] = None) -> Dict:
        plan = build_update_query(filters, options, self.max_page_size)
        items = self.updates.find_page(plan.predicate, plan.sort, plan.skip, plan.limit)
        total = self.updates.count(plan.predicate)
        return {"items": [public_document(doc) for doc in items], "totalCount": total}

    def search_by_location(self, state: str, district: Optional[str] = None,
                           pincode: Optional[str] = None, area_name: Optional[str] = None) -> List[Dict]:
        """
        Updates affecting a place, newest start date first.

        Every given part must hold for the same affected area.
        """
        area_filter = {"state": required_text(state, "state")}
        for key, value in (("district", district), ("pincode", pincode), ("areaName", area_name)):
            if value is not None and str(value).strip():
                area_filter[key] = str(value).strip()
        return self.updates.find_by_area(area_filter)
