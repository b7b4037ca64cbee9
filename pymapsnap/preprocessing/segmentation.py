"""
Trajectory segmentation module for pymapsnap.

This module groups an ordered GPS point stream into per-track trajectories using the
track marker carried by every point. A run ends whenever the marker changes or the
stream ends. Each closed run yields a raw trajectory (recorded coordinates) and a
corrected trajectory (matched coordinates, raw ones where matching failed), provided
the run holds more than two points.

Segmentation depends on arrival order and must run sequentially, after matching.
"""

import logging
from dataclasses import dataclass, field
from typing import Hashable, List, Optional, Sequence, Tuple

from shapely.geometry import LineString, Point

from pymapsnap.preprocessing.map_matching import MatchResult
from pymapsnap.utilities.geometry import Coordinate, linestring_from

logger = logging.getLogger(__name__)

# Runs with fewer points than this are dropped
MIN_TRAJECTORY_POINTS = 3


@dataclass(frozen=True)
class GPSPoint:
    """A recorded position, its track marker and its position in the input stream."""

    coordinate: Coordinate
    track_marker: Hashable
    order: int = 0


@dataclass(frozen=True)
class Trajectory:
    """Ordered coordinates of one marker run."""

    track_marker: Hashable
    coordinates: Tuple[Coordinate, ...]

    def __len__(self):
        return len(self.coordinates)

    def to_linestring(self) -> LineString:
        return linestring_from(self.coordinates)


@dataclass(frozen=True)
class CorrectionLine:
    """Segment from a raw GPS coordinate to the road point it was snapped to."""

    order: int
    raw: Coordinate
    matched: Coordinate

    def to_linestring(self) -> LineString:
        return linestring_from((self.raw, self.matched))


@dataclass(frozen=True)
class CorrectionPoint:
    """Output position of one GPS point: the matched coordinate, else the raw one."""

    order: int
    coordinate: Coordinate
    matched: bool

    def to_point(self) -> Point:
        return self.coordinate.to_point()


@dataclass
class CorrectionArtifacts:
    """Per-point correction lines (matched points only) and points (every point)."""

    lines: List[CorrectionLine] = field(default_factory=list)
    points: List[CorrectionPoint] = field(default_factory=list)


@dataclass(frozen=True)
class SegmenterState:
    """Snapshot of the run currently being accumulated."""

    current_marker: Optional[Hashable] = None
    raw: Tuple[Coordinate, ...] = ()
    corrected: Tuple[Coordinate, ...] = ()
    started: bool = False


@dataclass
class SegmentationResult:
    """Everything the segmenter emitted for one stream."""

    raw_trajectories: List[Trajectory] = field(default_factory=list)
    corrected_trajectories: List[Trajectory] = field(default_factory=list)
    artifacts: CorrectionArtifacts = field(default_factory=CorrectionArtifacts)
    discarded_runs: int = 0


class TrajectorySegmenter:
    """
    Sequential state machine over (GPSPoint, MatchResult) pairs.

    Feed points in arrival order with `push()`, then call `finish()` once to flush the
    last run. The marker of the first point seeds the current run; there is no
    placeholder marker value.
    """

    def __init__(self):
        self._marker = None
        self._started = False
        self._raw: List[Coordinate] = []
        self._corrected: List[Coordinate] = []
        self._finished = False
        self.result = SegmentationResult()

    @property
    def state(self) -> SegmenterState:
        return SegmenterState(
            current_marker=self._marker,
            raw=tuple(self._raw),
            corrected=tuple(self._corrected),
            started=self._started,
        )

    def push(self, point: GPSPoint, result: MatchResult) -> None:
        if self._finished:
            raise RuntimeError("Segmenter already finished; create a new one.")

        if not self._started:
            self._marker = point.track_marker
            self._started = True
        elif point.track_marker != self._marker:
            self._close_run()
            self._marker = point.track_marker

        # The matched/raw choice is made here, once, before the run sees the point
        output = result.output_point
        self._raw.append(point.coordinate)
        self._corrected.append(output)

        artifacts = self.result.artifacts
        if result.matched:
            artifacts.lines.append(CorrectionLine(point.order, point.coordinate, output))
        artifacts.points.append(CorrectionPoint(point.order, output, result.matched))

    def finish(self) -> SegmentationResult:
        if not self._finished:
            if self._started:
                self._close_run()
            self._finished = True
        return self.result

    def _close_run(self) -> None:
        if len(self._raw) >= MIN_TRAJECTORY_POINTS:
            self.result.raw_trajectories.append(Trajectory(self._marker, tuple(self._raw)))
            self.result.corrected_trajectories.append(
                Trajectory(self._marker, tuple(self._corrected))
            )
        else:
            logger.debug("Dropping run %r with %d point(s)", self._marker, len(self._raw))
            self.result.discarded_runs += 1
        self._raw = []
        self._corrected = []


def by_marker(points: Sequence[GPSPoint], results: Sequence[MatchResult]) -> SegmentationResult:
    """
    Split a matched point stream into trajectories at track-marker changes.

    Parameters
    ----------
    points : sequence of GPSPoint
        GPS points in recording order.
    results : sequence of MatchResult
        Match result for each point, position-aligned with `points`.

    Returns
    -------
    SegmentationResult
        - raw_trajectories / corrected_trajectories: one pair per run of more than
          two points, in stream order
        - artifacts: correction lines for matched points and one correction point
          per input point, in input order
        - discarded_runs: number of runs dropped for being too short

    Raises
    ------
    ValueError
        If `points` and `results` differ in length.

    Notes
    -----
    - A run is every maximal stretch of consecutive points sharing a marker. A marker
      that reappears later starts a new run.
    - Points of a dropped run are never carried into the next run.
    - An empty stream gives an empty result.
    """
    if len(points) != len(results):
        raise ValueError(
            f"Got {len(results)} match results for {len(points)} points."
        )

    segmenter = TrajectorySegmenter()
    for point, result in zip(points, results):
        segmenter.push(point, result)
    return segmenter.finish()
