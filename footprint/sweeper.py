from __future__ import annotations

import threading
from typing import List, Optional, Sequence

from shapely.geometry import Polygon

from common.config import CoverageConfig
from common.logging_setup import get_logger
from common.types import GeoPoint
from footprint.polygon_ops import PolygonOps, ShapelyPolygonOps, XY


log = get_logger(__name__)


def _dist2(a: XY, b: XY) -> float:
    return (a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2


def refine_locations(ring: Sequence[XY], epsilon: float) -> List[XY]:
    """
    Weld near-duplicate vertices of a closed ring.

    Every vertex that is still kept removes all later vertices closer than
    `epsilon`, its immediate neighbour included, not only non-adjacent ones.
    The closing vertex takes no part in the comparison and is always kept, so
    the ring stays closed.
    """
    pts = list(ring)
    n = len(pts)
    if n < 2:
        return pts
    eps2 = epsilon * epsilon
    remove = [False] * n

    for i in range(n - 1):
        if remove[i]:
            continue
        for j in range(i + 1, n - 1):
            if _dist2(pts[i], pts[j]) < eps2:
                remove[j] = True

    return [p for p, r in zip(pts, remove) if not r]


def _to_geo(ring: Sequence[XY]) -> List[GeoPoint]:
    return [GeoPoint(lat=y, lng=x) for x, y in ring]


class CoverageSweeper:
    """
    Cumulative union of every field-of-view footprint seen during a flight.

    In the default (legacy) mode coverage is a single polygon: when a union
    produces disjoint pieces only the first one is kept. With
    `keep_disjoint=True` every disjoint piece is retained.
    """

    def __init__(self, config: Optional[CoverageConfig] = None, ops: Optional[PolygonOps] = None) -> None:
        self.config = config or CoverageConfig()
        self.ops: PolygonOps = ops or ShapelyPolygonOps()
        self._polygons: List[Polygon] = []
        self.is_first_polygon = True
        self._lock = threading.Lock()

    def update(self, footprint: Sequence[GeoPoint]) -> List[GeoPoint]:
        """
        Merge one footprint (ordered corners, ring closed or not) and return the
        boundary of the coverage it now belongs to.
        """
        new_poly = self.ops.correct(self.ops.make_polygon([p.as_xy() for p in footprint]))

        with self._lock:
            if self.is_first_polygon:
                self._polygons = [new_poly]
                self.is_first_polygon = False
                return list(footprint)

            if self.config.keep_disjoint:
                return self._update_disjoint(new_poly)
            return self._update_single(new_poly)

    def _update_single(self, new_poly: Polygon) -> List[GeoPoint]:
        prev = self._polygons[0]
        parts = self.ops.union(prev, new_poly)
        if not parts:
            return _to_geo(self.ops.exterior(prev))
        if len(parts) > 1:
            log.debug("Disjoint footprint dropped from coverage", extra={"extra": {"components": len(parts)}})
        merged = self._weld(parts[0], self.ops.area(prev))
        self._polygons = [merged]
        return _to_geo(self.ops.exterior(merged))

    def _update_disjoint(self, new_poly: Polygon) -> List[GeoPoint]:
        previous = self._polygons
        pieces = self._dissolve(previous + [new_poly])
        welded: List[Polygon] = []
        for piece in pieces:
            prev_area = sum(self.ops.intersection_area(piece, old) for old in previous)
            welded.append(self._weld(piece, prev_area))
        self._polygons = welded
        host = max(self._polygons, key=lambda p: self.ops.intersection_area(p, new_poly))
        return _to_geo(self.ops.exterior(host))

    def _dissolve(self, polys: List[Polygon]) -> List[Polygon]:
        """Union touching pieces until all remaining pieces are disjoint."""
        out: List[Polygon] = []
        for poly in polys:
            cur = poly
            rest: List[Polygon] = []
            for other in out:
                if self.ops.intersects(cur, other):
                    parts = self.ops.union(cur, other)
                    cur = max(parts, key=self.ops.area)
                    rest.extend(q for q in parts if q is not cur)
                else:
                    rest.append(other)
            out = rest + [cur]
        return out

    def _weld(self, poly: Polygon, prev_area: float) -> Polygon:
        """
        Drop near-duplicate exterior vertices of `poly`.

        The welded ring is kept only when it lies inside `poly` and still covers
        at least `prev_area`, so coverage never shrinks and never grows past the
        footprints that produced it. Otherwise `poly` is returned unchanged.
        """
        exterior = self.ops.exterior(poly)
        ring = refine_locations(exterior, self.config.weld_epsilon_deg)
        if len(ring) == len(exterior):
            return poly
        welded = self.ops.with_exterior(poly, ring)
        if welded is None:
            log.debug("Weld produced invalid ring; keeping unwelded polygon", extra={"extra": {"vertices": len(ring)}})
            return poly
        if not self.ops.covers(poly, welded) or self.ops.area(welded) < prev_area:
            log.debug("Weld would change covered area; keeping unwelded polygon",
                      extra={"extra": {"vertices": len(ring), "prev_area": prev_area}})
            return poly
        return welded

    # -----------------------------
    # Accessors
    # -----------------------------

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._polygons

    @property
    def polygons(self) -> List[Polygon]:
        with self._lock:
            return list(self._polygons)

    @property
    def area(self) -> float:
        """Covered area in square degrees (lng x lat)."""
        with self._lock:
            return float(sum(self.ops.area(p) for p in self._polygons))

    def boundaries(self) -> List[List[GeoPoint]]:
        with self._lock:
            return [_to_geo(self.ops.exterior(p)) for p in self._polygons]
