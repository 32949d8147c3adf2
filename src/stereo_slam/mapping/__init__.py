"""Map accumulation and the keyframe graph."""

from .graph import Graph, GraphEdge, GraphVertex
from .point_map import MapPoint, PointMap

__all__ = [
    "PointMap",
    "MapPoint",
    "Graph",
    "GraphVertex",
    "GraphEdge",
]
