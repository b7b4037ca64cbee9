"""
Map-matching module for pymapsnap.

This module snaps individual GPS points onto the nearest road of a network. Matching
is strict nearest projection:

1. A square search box of half-width `radius` is drawn around the point
2. The spatial index returns every road whose bounding box meets the search box
3. The point is projected onto each candidate road
4. The globally nearest projection is kept if it lies strictly within `radius`

Points with no road in reach are not an error: they come back with
`matched=False` and the caller keeps the raw coordinate. Each point is matched
independently of every other, so `match_points` can fan the work out over a thread
pool and still return results in input order.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Hashable, Iterable, List, Optional

from tqdm import tqdm

from pymapsnap.preprocessing.projection import project
from pymapsnap.utilities.geometry import Coordinate, Envelope, as_coordinate
from pymapsnap.utilities.road_network import RoadNetwork, SpatialIndex, search_radius

logger = logging.getLogger(__name__)

# Added to the radius when seeding the running minimum distance
DISTANCE_EPSILON = 1e-6


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of matching one GPS point.

    `matched_point`, `road_id` and `arc_length` are None when no road lies within the
    radius. `distance` is the distance to the nearest candidate examined, or
    infinity when the search box held no road at all.
    """

    query_point: Coordinate
    matched_point: Optional[Coordinate]
    distance: float
    matched: bool
    road_id: Optional[Hashable] = None
    arc_length: Optional[float] = None
    candidates: int = 0

    @property
    def output_point(self) -> Coordinate:
        """The matched coordinate, or the raw one when unmatched."""
        return self.matched_point if self.matched else self.query_point


def _check_radius(radius: float) -> float:
    radius = float(radius)
    if not math.isfinite(radius) or radius < 0:
        raise ValueError(f"radius must be a finite non-negative number, got {radius!r}")
    return radius


def match(point, spatial_index: SpatialIndex, radius: float) -> MatchResult:
    """
    Match one point to the nearest road within `radius`.

    Parameters
    ----------
    point : Coordinate, shapely Point or (x, y)
        The GPS position, in the network's planar unit.
    spatial_index : SpatialIndex
        Index built over the road network.
    radius : float
        Search radius. A road is accepted only if its nearest point is strictly
        closer than `radius`.

    Returns
    -------
    MatchResult

    Raises
    ------
    ValueError
        If `radius` is negative or not finite.

    Notes
    -----
    The running minimum starts at `radius + DISTANCE_EPSILON` so candidates right at
    the box edge are still compared; the final accept test is `distance < radius`.
    Candidates are visited in road-key order and only a strictly smaller distance
    replaces the current best, so equidistant roads resolve to the lowest key.
    """
    radius = _check_radius(radius)
    coord = as_coordinate(point)

    if not (math.isfinite(coord.x) and math.isfinite(coord.y)):
        logger.info("(%s, %s) - not a finite position, left unmatched", coord.x, coord.y)
        return MatchResult(coord, None, math.inf, False)

    # ========== Candidate roads from the index ==========
    search = Envelope.around(coord, radius)
    candidates = spatial_index.query(search)

    # ========== Nearest projection across candidates ==========
    min_dist = radius + DISTANCE_EPSILON
    best = None
    best_road = None
    nearest_seen = math.inf
    for road in candidates:
        proj = project(road.line, coord)
        nearest_seen = min(nearest_seen, proj.distance)
        if proj.distance < min_dist:
            min_dist = proj.distance
            best = proj
            best_road = road

    if best is not None and best.distance < radius:
        return MatchResult(
            query_point=coord,
            matched_point=best.point,
            distance=best.distance,
            matched=True,
            road_id=best_road.road_id,
            arc_length=best.arc_length,
            candidates=len(candidates),
        )

    logger.info("(%s, %s) - too far from road", coord.x, coord.y)
    return MatchResult(
        query_point=coord,
        matched_point=None,
        distance=nearest_seen,
        matched=False,
        candidates=len(candidates),
    )


def match_points(
    points: Iterable,
    spatial_index: SpatialIndex,
    radius: float,
    workers: Optional[int] = None,
    progress: bool = False,
) -> List[MatchResult]:
    """
    Match a sequence of points, returning results in input order.

    Parameters
    ----------
    points : iterable of Coordinate, shapely Point or (x, y)
        GPS positions to match.
    spatial_index : SpatialIndex
        Index built over the road network. It is only read.
    radius : float
        Search radius passed to `match()` for every point.
    workers : int, optional
        Number of threads. None or 1 matches sequentially in the calling thread.
    progress : bool, default=False
        Show a tqdm progress bar.

    Returns
    -------
    list of MatchResult
        One result per input point, position-aligned with the input.
    """
    radius = _check_radius(radius)
    coords = [as_coordinate(p) for p in points]

    if workers is not None and workers < 1:
        raise ValueError("workers must be >= 1")

    if not workers or workers == 1 or len(coords) < 2:
        iterator = tqdm(coords, desc="matching", disable=not progress)
        return [match(c, spatial_index, radius) for c in iterator]

    # executor.map yields in submission order, so results stay position-aligned
    with ThreadPoolExecutor(max_workers=workers) as executor:
        mapped = executor.map(lambda c: match(c, spatial_index, radius), coords)
        return list(tqdm(mapped, total=len(coords), desc="matching", disable=not progress))


class MapMatcher:
    """
    Matcher bound to one road network, its index and a fixed radius.

    Examples
    --------
    >>> from shapely.geometry import LineString
    >>> from pymapsnap.utilities import load_road_network
    >>> matcher = MapMatcher(load_road_network([LineString([(0, 0), (10, 0)])]), radius=0.1)
    >>> matcher.match((1, 0.01)).matched
    True
    """

    def __init__(self, network: RoadNetwork, radius: Optional[float] = None):
        self.network = network
        self.index = SpatialIndex.build(network)
        self.radius = search_radius(network) if radius is None else _check_radius(radius)

    def match(self, point) -> MatchResult:
        return match(point, self.index, self.radius)

    def match_points(self, points, workers=None, progress=False) -> List[MatchResult]:
        return match_points(points, self.index, self.radius, workers=workers, progress=progress)
