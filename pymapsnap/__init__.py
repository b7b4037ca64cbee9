"""
pymapsnap - Snap noisy GPS trajectories onto a road network.

pymapsnap corrects recorded GPS tracks by projecting every point onto the nearest
road of a known network, then rebuilds per-track trajectories from the snapped
points.

Components
----------
- **utilities**: Geometry primitives, road network loading, spatial index
- **preprocessing**: Line projection, map matching, marker-based segmentation
- **reconstructing**: End-to-end snapping of a GPS table into trajectories

Quick Start
-----------
```python
import pymapsnap as pms

# Road geometry from any loader (shapely lines, WKT, GeoDataFrame...)
roads = pms.utilities.load_road_network(road_geometries)

# GPS table with x/y columns and a track marker column
outcome = pms.reconstructing.snap_trajectories(gps_df, roads, workers=4)

print(outcome.report)
lines = outcome.trajectory_lines('corrected')
points = outcome.points_frame()
```
"""

from pymapsnap._version import __version__, __version_info__
from pymapsnap import preprocessing, reconstructing, utilities

__all__ = [
    '__version__',
    '__version_info__',
    'preprocessing',
    'reconstructing',
    'utilities',
]
