"""Run statistics for simulation results.

This module summarizes how well an estimate or a controlled signal tracked
its reference over a run:
- Per-sample position errors
- RMS error
- Tracking summary (RMS, mean, max, final)
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np


@dataclass
class TrackingSummary:
    """Error summary for one run."""

    rms: float  # Root mean square error
    mean: float
    max: float
    final: float  # Error at the last sample
    n: int  # Sample size

    def __str__(self) -> str:
        """Human-readable summary."""
        return (
            f"RMS: {self.rms:.3f} | "
            f"Mean: {self.mean:.3f} | "
            f"Max: {self.max:.3f} | "
            f"Final: {self.final:.3f} | "
            f"N={self.n}"
        )


def position_errors(estimates: Sequence, truths: Sequence) -> np.ndarray:
    """Euclidean distance between estimated and true positions.

    Args:
        estimates: (N, d) estimated states; the first two columns are x, y
        truths: (N, d) true states

    Returns:
        (N,) array of distances
    """
    est = np.asarray(estimates, dtype=np.float64)
    ref = np.asarray(truths, dtype=np.float64)
    if est.ndim != 2 or est.shape[1] < 2 or est.shape[0] != ref.shape[0]:
        raise ValueError(f"Incompatible trajectories: {est.shape} vs {ref.shape}")
    return np.hypot(est[:, 0] - ref[:, 0], est[:, 1] - ref[:, 1])


def rms_error(estimates: Sequence, truths: Sequence) -> float:
    """Root mean square of the position errors (nan for empty input)."""
    errors = position_errors(estimates, truths)
    if errors.size == 0:
        return math.nan
    return float(np.sqrt(np.mean(errors**2)))


def summarize_tracking(errors: Sequence[float]) -> Optional[TrackingSummary]:
    """Compute a TrackingSummary over per-sample errors.

    Non-finite samples are dropped.

    Returns:
        TrackingSummary, or None if no finite samples remain
    """
    values = np.asarray(errors, dtype=np.float64).ravel()
    values = values[np.isfinite(values)]
    if values.size == 0:
        return None

    return TrackingSummary(
        rms=float(np.sqrt(np.mean(values**2))),
        mean=float(np.mean(values)),
        max=float(np.max(values)),
        final=float(values[-1]),
        n=int(values.size),
    )
