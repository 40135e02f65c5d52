from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, Tuple

from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import orient
from shapely.validation import make_valid


XY = Tuple[float, float]


class PolygonOps(Protocol):
    """Simple-polygon algebra used by the sweeper. Coordinates are (lng, lat)."""

    def make_polygon(self, ring: Sequence[XY]) -> Polygon: ...

    def correct(self, polygon: Polygon) -> Polygon: ...

    def union(self, a: Polygon, b: Polygon) -> List[Polygon]: ...

    def exterior(self, polygon: Polygon) -> List[XY]: ...

    def with_exterior(self, polygon: Polygon, ring: Sequence[XY]) -> Optional[Polygon]: ...

    def area(self, polygon: Polygon) -> float: ...

    def intersects(self, a: Polygon, b: Polygon) -> bool: ...

    def intersection_area(self, a: Polygon, b: Polygon) -> float: ...

    def covers(self, outer: Polygon, inner: Polygon) -> bool: ...


def _polygons_of(geom: BaseGeometry) -> List[Polygon]:
    """Flatten a union/repair result into its polygon components."""
    if geom.is_empty:
        return []
    if isinstance(geom, Polygon):
        return [geom]
    out: List[Polygon] = []
    for g in getattr(geom, "geoms", []):
        out.extend(_polygons_of(g))
    return out


class ShapelyPolygonOps:
    """PolygonOps on top of Shapely / GEOS."""

    def make_polygon(self, ring: Sequence[XY]) -> Polygon:
        pts = [(float(x), float(y)) for x, y in ring]
        if pts and pts[0] != pts[-1]:
            pts.append(pts[0])
        return Polygon(pts)

    def correct(self, polygon: Polygon) -> Polygon:
        """Counter-clockwise exterior, closed rings; invalid input keeps its largest valid part."""
        if not polygon.is_valid:
            parts = _polygons_of(make_valid(polygon))
            if not parts:
                return polygon
            polygon = max(parts, key=lambda p: p.area)
        return orient(polygon, sign=1.0)

    def union(self, a: Polygon, b: Polygon) -> List[Polygon]:
        return [self.correct(p) for p in _polygons_of(a.union(b))]

    def exterior(self, polygon: Polygon) -> List[XY]:
        return [(float(x), float(y)) for x, y in polygon.exterior.coords]

    def with_exterior(self, polygon: Polygon, ring: Sequence[XY]) -> Optional[Polygon]:
        """`polygon` with its exterior replaced by `ring`, holes kept; None if invalid."""
        if len(ring) < 4:
            return None
        out = Polygon(ring, [list(r.coords) for r in polygon.interiors])
        return out if out.is_valid else None

    def area(self, polygon: Polygon) -> float:
        return float(polygon.area)

    def intersects(self, a: Polygon, b: Polygon) -> bool:
        return bool(a.intersects(b))

    def intersection_area(self, a: Polygon, b: Polygon) -> float:
        return float(a.intersection(b).area)

    def covers(self, outer: Polygon, inner: Polygon) -> bool:
        return bool(outer.covers(inner))
