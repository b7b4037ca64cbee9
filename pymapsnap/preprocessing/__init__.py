"""
Trajectory preprocessing module for pymapsnap.

This module provides the per-point correction steps:
- Projection: Nearest point on a road polyline
- Map-matching: Snap GPS points to the nearest road within a radius
- Segmentation: Split a matched point stream into trajectories by track marker
"""

# Projection
from pymapsnap.preprocessing.projection import Projection, project

# Map-matching
from pymapsnap.preprocessing.map_matching import MapMatcher, MatchResult, match, match_points

# Segmentation
from pymapsnap.preprocessing.segmentation import (
    GPSPoint,
    Trajectory,
    TrajectorySegmenter,
    by_marker,
)

__all__ = [
    # Projection
    'Projection',
    'project',
    # Map-matching
    'MapMatcher',
    'MatchResult',
    'match',
    'match_points',
    # Segmentation
    'GPSPoint',
    'Trajectory',
    'TrajectorySegmenter',
    'by_marker',
]
