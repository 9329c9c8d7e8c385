"""
Token index for free-text search

Every issue and civic update stores the distinct lowercase word tokens of its
text-bearing fields in ``searchTokens``. A multikey index on that field is the
inverted index; a search matches documents holding any of the query tokens.
"""
import re
from typing import Dict, Iterable, List, Optional

from database.schemas import TOKEN_FIELD

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)

ISSUE_LOCATION_FIELDS = ("state", "district", "pincode")
AREA_FIELDS = ("state", "district", "pincode", "areaName")


def tokenize(text: Optional[str]) -> List[str]:
    """Split text into lowercase word tokens, keeping first-seen order."""
    if not text:
        return []
    seen = {}
    for token in _TOKEN_RE.findall(str(text).lower()):
        seen.setdefault(token, None)
    return list(seen)


def _collect(values: Iterable[Optional[str]]) -> List[str]:
    tokens: Dict[str, None] = {}
    for value in values:
        for token in tokenize(value):
            tokens.setdefault(token, None)
    return list(tokens)


def issue_tokens(doc: dict) -> List[str]:
    location = doc.get("location") or {}
    return _collect(
        [doc.get("title"), doc.get("description")]
        + [location.get(field) for field in ISSUE_LOCATION_FIELDS]
    )


def update_tokens(doc: dict) -> List[str]:
    values = [doc.get("title"), doc.get("description")]
    for area in doc.get("affectedAreas") or []:
        values.extend(area.get(field) for field in AREA_FIELDS)
    return _collect(values)


def text_predicate(search: Optional[str]) -> Optional[dict]:
    """
    Predicate term for a free-text search.

    Returns None for a missing or blank search. A non-blank search without any
    word characters yields a term that matches nothing.
    """
    if search is None or not str(search).strip():
        return None
    return {TOKEN_FIELD: {"$in": tokenize(search)}}
