"""
Reconstructing module for the pymapsnap library.

This module runs matching and segmentation end to end and packages the corrected
trajectories, correction artifacts and match diagnostics.
"""

from pymapsnap.reconstructing.rebuild import MatchReport, SnapOutcome, snap_trajectories

__all__ = [
    'MatchReport',
    'SnapOutcome',
    'snap_trajectories',
]
