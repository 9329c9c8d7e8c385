"""
Search module: bounding-box filtering and token text search
"""

from search.geo import (
    BoundingBox,
    bbox_predicate,
    grid_cell,
    normalize_coordinates
)

from search.tokens import (
    tokenize,
    issue_tokens,
    update_tokens,
    text_predicate
)

__all__ = [
    'BoundingBox',
    'bbox_predicate',
    'grid_cell',
    'normalize_coordinates',
    'tokenize',
    'issue_tokens',
    'update_tokens',
    'text_predicate',
]
