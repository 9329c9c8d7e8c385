"""
Bounding-box filtering for map views

Issues store a grid cell key (1 degree x 1 degree) next to their coordinates.
A box query lists the cells it covers so the indexed ``location.cell`` field
prunes candidates, then exact inclusive range terms on longitude/latitude
decide containment.
"""
import json
import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, List, Optional, Sequence, Tuple

from database.schemas import CELL_FIELD

CELL_SIZE_DEG = 1.0
MAX_INDEXED_CELLS = 256

LON_PATH = "location.coordinates.0"
LAT_PATH = "location.coordinates.1"
CELL_PATH = f"location.{CELL_FIELD}"


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def is_coordinate_pair(value: Any) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) == 2
        and all(_is_number(v) for v in value)
    )


def _cell_index(value: float) -> int:
    return math.floor(value / CELL_SIZE_DEG)


def grid_cell(lon: float, lat: float) -> str:
    """Cell key stored on each issue for the spatial index."""
    return f"{_cell_index(lon)}:{_cell_index(lat)}"


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box given by its south-west and north-east corners, (lon, lat)."""

    sw: Tuple[float, float]
    ne: Tuple[float, float]

    @classmethod
    def parse(cls, raw: Any) -> Optional["BoundingBox"]:
        """
        Lenient parsing: a missing or malformed box means "no spatial filter".

        Accepts a mapping or a JSON string with ``ne`` and ``sw`` corners, each a
        two-element numeric [longitude, latitude] pair.
        """
        if raw is None:
            return None
        if isinstance(raw, BoundingBox):
            return raw
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except ValueError:
                return None
        if not isinstance(raw, dict):
            return None
        ne, sw = raw.get("ne"), raw.get("sw")
        if not (is_coordinate_pair(ne) and is_coordinate_pair(sw)):
            return None
        return cls(sw=(float(sw[0]), float(sw[1])), ne=(float(ne[0]), float(ne[1])))

    def contains(self, lon: float, lat: float) -> bool:
        return self.sw[0] <= lon <= self.ne[0] and self.sw[1] <= lat <= self.ne[1]

    def is_empty(self) -> bool:
        return self.sw[0] > self.ne[0] or self.sw[1] > self.ne[1]

    def cells(self, limit: int = MAX_INDEXED_CELLS) -> Optional[List[str]]:
        """Grid cells overlapping the box, or None when there are more than ``limit``."""
        if self.is_empty():
            return []
        lon_range = range(_cell_index(self.sw[0]), _cell_index(self.ne[0]) + 1)
        lat_range = range(_cell_index(self.sw[1]), _cell_index(self.ne[1]) + 1)
        if len(lon_range) * len(lat_range) > limit:
            return None
        return [f"{x}:{y}" for x in lon_range for y in lat_range]


def bbox_predicate(box: Optional[BoundingBox]) -> dict:
    """Predicate selecting issues inside the box; empty dict when there is no box."""
    if box is None:
        return {}
    predicate = {
        LON_PATH: {"$gte": box.sw[0], "$lte": box.ne[0]},
        LAT_PATH: {"$gte": box.sw[1], "$lte": box.ne[1]},
    }
    cells = box.cells()
    if cells is not None:
        predicate[CELL_PATH] = {"$in": cells}
    return predicate


def normalize_coordinates(value: Optional[Sequence]) -> List[float]:
    """Coordinates default to [0, 0] when absent; anything else must be a numeric pair."""
    if value is None:
        return [0.0, 0.0]
    if not is_coordinate_pair(value):
        raise ValueError("coordinates must be a [longitude, latitude] pair of numbers")
    return [float(value[0]), float(value[1])]
