"""
Query Builder - filter, sort and pagination options to a MongoDB query plan

A plan holds the predicate, the sort specification, skip and limit. Listing
code runs ``find`` with the whole plan and ``count_documents`` with the
predicate alone, so totals ignore pagination.
"""
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, List, Mapping, Optional, Tuple

from bson import ObjectId

from search.tokens import text_predicate
from services.errors import ValidationError

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

MATCH_ALL = {"_id": {"$exists": True}}

# filter key -> document path
ISSUE_FILTER_FIELDS = {
    "category": "category",
    "status": "status",
    "severity": "severity",
    "state": "location.state",
    "district": "location.district",
    "pincode": "location.pincode",
    "userId": "reportedBy",
    "reportedBy": "reportedBy",
}

# Each area key matches on its own, so parts may come from different affected
# areas. CivicUpdateService.search_by_location holds them to a single area.
UPDATE_FILTER_FIELDS = {
    "type": "type",
    "status": "status",
    "severity": "severity",
    "source": "source",
    "state": "affectedAreas.state",
    "district": "affectedAreas.district",
    "pincode": "affectedAreas.pincode",
    "areaName": "affectedAreas.areaName",
}

# values stored as ObjectId references
REFERENCE_PATHS = {"reportedBy"}

# values stored as text even when given as numbers
TEXT_PATHS = {"location.pincode", "affectedAreas.pincode"}

ISSUE_DEFAULT_SORT = "createdAt"
UPDATE_DEFAULT_SORT = "startDate"

SortSpec = List[Tuple[str, int]]


@dataclass
class QueryPlan:
    predicate: Dict[str, Any]
    sort: SortSpec
    skip: int
    limit: int


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def _equality_value(key: str, value: Any) -> Any:
    """Filter values are matched by equality only; operator documents and lists are refused"""
    if isinstance(value, (str, ObjectId)):
        return value
    if isinstance(value, Real) and not isinstance(value, bool):
        return value
    raise ValidationError(f"Invalid {key} filter: expected a plain value")


def _reference_value(value: Any) -> Any:
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def build_predicate(filters: Optional[Mapping[str, Any]], field_map: Mapping[str, str]) -> Dict[str, Any]:
    """AND of one equality term per present filter key, plus the optional text term."""
    filters = filters or {}
    predicate: Dict[str, Any] = {}
    for key, path in field_map.items():
        value = filters.get(key)
        if not _present(value):
            continue
        value = _equality_value(key, value)
        if path in REFERENCE_PATHS:
            value = _reference_value(value)
        elif path in TEXT_PATHS and not isinstance(value, str):
            value = str(value)
        if path in predicate and predicate[path] != value:
            # userId and reportedBy disagree: nothing can match both
            predicate[path] = {"$in": []}
            continue
        predicate[path] = value

    search = filters.get("search")
    if search is not None and not isinstance(search, str):
        raise ValidationError("Invalid search filter: expected text")
    text_term = text_predicate(search)
    if text_term:
        predicate.update(text_term)

    if not predicate:
        return dict(MATCH_ALL)
    return predicate


def parse_sort(sort_by: Optional[str], default_field: str) -> SortSpec:
    """
    ``"field:desc"`` sorts descending, ``"field"`` or ``"field:<other>"`` ascending.
    Without sortBy the default field is sorted descending. ``_id`` follows as a
    tie-breaker in the same direction.
    """
    if sort_by and str(sort_by).strip():
        field, _, direction = str(sort_by).strip().partition(":")
        field = field.strip() or default_field
        order = -1 if direction.strip() == "desc" else 1
    else:
        field, order = default_field, -1
    sort = [(field, order)]
    if field != "_id":
        sort.append(("_id", order))
    return sort


def _positive_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


def parse_pagination(options: Optional[Mapping[str, Any]], max_limit: Optional[int] = None) -> Tuple[int, int, int]:
    """Return (page, limit, skip)."""
    options = options or {}
    page = _positive_int(options.get("page"), DEFAULT_PAGE)
    limit = _positive_int(options.get("limit"), DEFAULT_LIMIT)
    if max_limit is not None and limit > max_limit:
        limit = max_limit
    return page, limit, (page - 1) * limit


def _build(filters, options, field_map, default_sort, max_limit) -> QueryPlan:
    options = options or {}
    _, limit, skip = parse_pagination(options, max_limit)
    return QueryPlan(
        predicate=build_predicate(filters, field_map),
        sort=parse_sort(options.get("sortBy"), default_sort),
        skip=skip,
        limit=limit,
    )


def build_issue_query(filters=None, options=None, max_limit: Optional[int] = None) -> QueryPlan:
    return _build(filters, options, ISSUE_FILTER_FIELDS, ISSUE_DEFAULT_SORT, max_limit)


def build_update_query(filters=None, options=None, max_limit: Optional[int] = None) -> QueryPlan:
    return _build(filters, options, UPDATE_FILTER_FIELDS, UPDATE_DEFAULT_SORT, max_limit)
