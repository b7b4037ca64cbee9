"""
Nearest-point projection onto road polylines.

Given a polyline and a query point, `project` finds the closest point on the line and
its linear location (arc length from the start of the line). This is the geometric
kernel of the map matcher.
"""

from typing import NamedTuple

import numpy as np

from pymapsnap.utilities.geometry import Coordinate, Polyline


class Projection(NamedTuple):
    """Closest point on a polyline and where it sits along the line."""

    point: Coordinate
    arc_length: float
    distance: float
    segment_index: int


def project(line: Polyline, point: Coordinate) -> Projection:
    """
    Project a point onto the nearest location of a polyline.

    Every segment of the polyline is tested at once: the query point is projected
    orthogonally onto each segment's supporting line, and the projection parameter is
    clamped to [0, 1] so points beyond a segment's ends snap to its endpoints.

    Parameters
    ----------
    line : Polyline
        The road geometry (two or more vertices).
    point : Coordinate
        The query point, in the same planar unit as the line.

    Returns
    -------
    Projection
        - point: closest Coordinate on the line
        - arc_length: distance along the line from its first vertex to `point`
        - distance: Euclidean distance between the query point and `point`
        - segment_index: index of the segment holding the closest point

    Examples
    --------
    >>> from pymapsnap.utilities.geometry import Coordinate, Polyline
    >>> line = Polyline((Coordinate(0, 0), Coordinate(10, 0)))
    >>> project(line, Coordinate(5, 3)).point
    Coordinate(x=5.0, y=0.0)
    >>> round(project(line, Coordinate(-2, 1)).distance, 3)
    2.236

    Notes
    -----
    - Ties between segments go to the earliest segment (lowest arc length), since
      `np.argmin` returns the first minimum. Results are identical across runs.
    - Zero-length segments (repeated vertices) project onto their single vertex.
    - Pure function, O(number of segments).
    """
    vertices = line.array
    starts = vertices[:-1]
    deltas = vertices[1:] - starts

    # ========== Projection parameter per segment ==========
    px, py = point.x, point.y
    seg_len_sq = np.einsum("ij,ij->i", deltas, deltas)
    dots = (px - starts[:, 0]) * deltas[:, 0] + (py - starts[:, 1]) * deltas[:, 1]

    t = np.zeros_like(seg_len_sq)
    nonzero = seg_len_sq > 0.0
    t[nonzero] = dots[nonzero] / seg_len_sq[nonzero]
    np.clip(t, 0.0, 1.0, out=t)

    # ========== Closest candidate per segment ==========
    cand_x = starts[:, 0] + t * deltas[:, 0]
    cand_y = starts[:, 1] + t * deltas[:, 1]
    dists = np.hypot(cand_x - px, cand_y - py)

    best = int(np.argmin(dists))
    seg_len = float(np.sqrt(seg_len_sq[best]))
    arc_length = float(line.cumulative_lengths[best]) + float(t[best]) * seg_len

    return Projection(
        point=Coordinate(float(cand_x[best]), float(cand_y[best])),
        arc_length=arc_length,
        distance=float(dists[best]),
        segment_index=best,
    )
