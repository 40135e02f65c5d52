"""
Coverage sweeping

Tracks the cumulative ground footprint observed during a flight:
- ShapelyPolygonOps: polygon construction, validity repair and union
- CoverageSweeper: merges each frame's field-of-view quadrilateral into the
  covered area and welds near-duplicate vertices
"""
from .polygon_ops import PolygonOps, ShapelyPolygonOps
from .sweeper import CoverageSweeper, refine_locations

__all__ = ["PolygonOps", "ShapelyPolygonOps", "CoverageSweeper", "refine_locations"]
