"""
Trajectory rebuilding module for pymapsnap.

This module runs the whole correction stage on a GPS point table:

1. Build the road network and its spatial index (once)
2. Derive the search radius from the network extent (unless given)
3. Match every GPS point to the nearest road, optionally in parallel
4. Segment the matched stream into per-track raw and corrected trajectories

The result bundles the trajectories, the per-point correction artifacts and a
report of match counts. Writing files or drawing maps is left to the caller; the
outcome exposes shapely geometries and a DataFrame for that.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd
import polars as pl
from shapely.geometry import LineString, Point

from pymapsnap.preprocessing.map_matching import MatchResult, match_points
from pymapsnap.preprocessing.segmentation import (
    CorrectionArtifacts,
    GPSPoint,
    Trajectory,
    by_marker,
)
from pymapsnap.utilities.geometry import Coordinate
from pymapsnap.utilities.road_network import (
    RoadNetwork,
    SpatialIndex,
    load_road_network,
    search_radius,
)

logger = logging.getLogger(__name__)

# Attribute holding the track marker in the original GPS layers
DEFAULT_MARKER_COL = "LINE_MARKE"


@dataclass(frozen=True)
class MatchReport:
    """Diagnostic counts for one matching run."""

    total_points: int
    matched_points: int
    unmatched_points: int
    points_without_candidates: int
    indexed_roads: int
    skipped_roads: int
    trajectories: int
    discarded_runs: int

    @property
    def empty_network(self) -> bool:
        """True when no road made it into the index, so nothing could match."""
        return self.indexed_roads == 0

    @property
    def all_unmatched(self) -> bool:
        return self.total_points > 0 and self.matched_points == 0

    @property
    def match_ratio(self) -> float:
        if self.total_points == 0:
            return 0.0
        return self.matched_points / self.total_points


@dataclass
class SnapOutcome:
    """Trajectories, correction artifacts and per-point results of one run."""

    raw_trajectories: List[Trajectory]
    corrected_trajectories: List[Trajectory]
    artifacts: CorrectionArtifacts
    results: List[MatchResult]
    radius: float
    report: MatchReport
    source: Optional[object] = field(default=None, repr=False)

    def trajectory_lines(self, kind: str = "corrected") -> List[LineString]:
        """Trajectories as shapely LineStrings; `kind` is 'corrected' or 'raw'."""
        if kind == "corrected":
            trajectories = self.corrected_trajectories
        elif kind == "raw":
            trajectories = self.raw_trajectories
        else:
            raise ValueError("kind must be 'corrected' or 'raw'")
        return [t.to_linestring() for t in trajectories]

    def correction_lines(self) -> List[LineString]:
        return [line.to_linestring() for line in self.artifacts.lines]

    def correction_points(self) -> List[Point]:
        return [p.to_point() for p in self.artifacts.points]

    def points_frame(self):
        """
        Per-point results joined onto the input table.

        Returns the input's DataFrame type with four extra columns: `snapped_x`,
        `snapped_y` (matched coordinate, raw where unmatched), `matched` and
        `distance` (distance to the nearest road examined, NaN if none was).
        """
        snapped = np.array([r.output_point.as_tuple() for r in self.results], dtype=float)
        snapped = snapped.reshape(-1, 2)
        matched = np.array([r.matched for r in self.results], dtype=bool)
        distance = np.array(
            [r.distance if math.isfinite(r.distance) else np.nan for r in self.results],
            dtype=float,
        )

        if isinstance(self.source, pl.DataFrame):
            return self.source.with_columns(
                pl.Series("snapped_x", snapped[:, 0]),
                pl.Series("snapped_y", snapped[:, 1]),
                pl.Series("matched", matched),
                pl.Series("distance", distance),
            )

        if isinstance(self.source, pd.DataFrame):
            base = self.source.copy()
        else:
            base = pd.DataFrame(index=range(len(self.results)))
        base["snapped_x"] = snapped[:, 0]
        base["snapped_y"] = snapped[:, 1]
        base["matched"] = matched
        base["distance"] = distance
        return base


def _read_points(df, x_col: str, y_col: str, marker_col: str) -> List[GPSPoint]:
    if not isinstance(df, (pd.DataFrame, pl.DataFrame)):
        raise ValueError("df must be either a pandas DataFrame or a polars DataFrame.")

    missing = [c for c in (x_col, y_col, marker_col) if c not in df.columns]
    if missing:
        raise ValueError(f"DataFrame missing required columns: {missing}")

    xs = df[x_col].to_numpy().astype(float)
    ys = df[y_col].to_numpy().astype(float)

    bad_rows = np.flatnonzero(~(np.isfinite(xs) & np.isfinite(ys)))
    if bad_rows.size:
        raise ValueError(
            f"Non-finite coordinates in '{x_col}'/'{y_col}' at rows: {bad_rows.tolist()[:20]}"
        )

    markers = df[marker_col].to_list()

    return [
        GPSPoint(Coordinate(float(x), float(y)), marker, order)
        for order, (x, y, marker) in enumerate(zip(xs, ys, markers))
    ]


def snap_trajectories(
    df: pd.DataFrame | pl.DataFrame,
    roads,
    x_col: str = "x",
    y_col: str = "y",
    marker_col: str = DEFAULT_MARKER_COL,
    radius: Optional[float] = None,
    workers: Optional[int] = None,
    progress: bool = False,
) -> SnapOutcome:
    """
    Snap a GPS point table onto a road network and rebuild its trajectories.

    Parameters
    ----------
    df : pd.DataFrame or pl.DataFrame
        GPS points in recording order, one row per point, with coordinate columns
        and a track-marker column. Coordinates must be in the same planar unit as
        the road geometry.
    roads : RoadNetwork or anything accepted by `load_road_network()`
        The road network. Raw geometry is loaded into a RoadNetwork first.
    x_col : str, default='x'
        Column with the x ordinate (easting or longitude).
    y_col : str, default='y'
        Column with the y ordinate (northing or latitude).
    marker_col : str, default='LINE_MARKE'
        Column with the track marker. Consecutive rows with equal markers belong to
        one trajectory.
    radius : float, optional
        Match radius. Defaults to the network's x-extent divided by 100.
    workers : int, optional
        Threads used for matching. None or 1 matches sequentially. Segmentation
        always runs sequentially.
    progress : bool, default=False
        Show a tqdm progress bar while matching.

    Returns
    -------
    SnapOutcome
        - raw_trajectories / corrected_trajectories: one pair per marker run of more
          than two points
        - artifacts: correction lines (matched points) and correction points (all)
        - results: one MatchResult per row, in row order
        - radius: the radius used
        - report: MatchReport with match and segmentation counts

    Raises
    ------
    ValueError
        If `df` is not a DataFrame, lacks one of the named columns, or holds a
        missing or non-finite coordinate.

    Examples
    --------
    >>> import pandas as pd
    >>> from shapely.geometry import LineString
    >>> import pymapsnap as pms
    >>>
    >>> gps = pd.DataFrame({
    ...     'x': [1, 2, 3, 4],
    ...     'y': [0.01, -0.02, 0.05, 5.0],
    ...     'LINE_MARKE': ['A', 'A', 'A', 'A'],
    ... })
    >>> outcome = pms.reconstructing.snap_trajectories(
    ...     gps, [LineString([(0, 0), (10, 0)])], radius=0.1
    ... )
    >>> outcome.report.matched_points
    3
    >>> [c.as_tuple() for c in outcome.corrected_trajectories[0].coordinates]
    [(1.0, 0.0), (2.0, 0.0), (3.0, 0.0), (4.0, 5.0)]

    Notes
    -----
    **Radius:** derived once per call and fixed for every point.

    **Unmatched points:** keep their raw coordinate in the corrected trajectory and
    in the correction points; they get no correction line.

    **Empty inputs:** an empty table gives an empty outcome; an empty network leaves
    every point unmatched and sets `report.empty_network`.
    """
    # ========== Network, index and radius ==========
    network = roads if isinstance(roads, RoadNetwork) else load_road_network(roads)
    spatial_index = SpatialIndex.build(network)
    if radius is None:
        radius = search_radius(network)

    if len(spatial_index) == 0:
        logger.warning("Road network is empty; every point will be left unmatched.")

    # ========== Match ==========
    points = _read_points(df, x_col, y_col, marker_col)
    results = match_points(
        [p.coordinate for p in points], spatial_index, radius,
        workers=workers, progress=progress,
    )

    # ========== Segment (sequential) ==========
    segments = by_marker(points, results)

    matched = sum(1 for r in results if r.matched)
    report = MatchReport(
        total_points=len(results),
        matched_points=matched,
        unmatched_points=len(results) - matched,
        points_without_candidates=sum(1 for r in results if r.candidates == 0),
        indexed_roads=len(spatial_index),
        skipped_roads=network.skipped + spatial_index.skipped,
        trajectories=len(segments.corrected_trajectories),
        discarded_runs=segments.discarded_runs,
    )
    logger.info(
        "Matched %d of %d points (radius %.6g); %d trajectories, %d short runs dropped",
        report.matched_points, report.total_points, radius,
        report.trajectories, report.discarded_runs,
    )

    return SnapOutcome(
        raw_trajectories=segments.raw_trajectories,
        corrected_trajectories=segments.corrected_trajectories,
        artifacts=segments.artifacts,
        results=results,
        radius=float(radius),
        report=report,
        source=df,
    )
