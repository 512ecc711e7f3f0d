"""
Dynamics Primitives - Buildups, drops, plateaus, peaks on an energy curve.

The greedy scans move over start frames in Python; the per-start look-ahead
is vectorized with running maxima/minima. Peak detection is fully vectorized
with stride_tricks sliding windows.

All detectors take (timestamps, energy) arrays of equal length with energy in
[0, 1], and window lengths in frames.
"""

import numpy as np
from dataclasses import dataclass, asdict
from typing import List


# ============== Event Types ==============

@dataclass(frozen=True)
class BuildupSegment:
    """Sustained energy rise."""
    start_time: float
    end_time: float
    start_energy: float
    end_energy: float
    rate: float          # energy per second
    intensity: str       # gradual | moderate | intense

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DropSegment:
    """Sharp energy fall."""
    start_time: float
    end_time: float
    start_energy: float
    end_energy: float
    rate: float          # energy per second
    drop_type: str       # gradual | sudden | filter_sweep

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PlateauSegment:
    """Stretch of stable energy."""
    start_time: float
    end_time: float
    energy: float
    stability: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PeakSegment:
    """Local energy maximum."""
    time: float
    energy: float
    prominence: float
    sharpness: float

    def to_dict(self) -> dict:
        return asdict(self)


# ============== Classification ==============

def classify_buildup(rate: float) -> str:
    if rate > 0.15:
        return "intense"
    if rate > 0.08:
        return "moderate"
    return "gradual"


def classify_drop(rate: float) -> str:
    if rate > 0.3:
        return "sudden"
    if rate > 0.15:
        return "filter_sweep"
    return "gradual"


# ============== Detectors ==============

def _scan_extent(segment: np.ndarray, rising: bool, tolerance: float) -> int:
    """
    Offset of the extreme reached before the scan aborts.

    segment[0] is the start value. The running extreme moves on strictly
    larger (rising) or smaller (falling) values; the scan stops at the first
    value that moves more than `tolerance` against the running extreme.
    """
    if rising:
        running = np.maximum.accumulate(segment)
        against = segment[1:] < running[:-1] - tolerance
    else:
        running = np.minimum.accumulate(segment)
        against = segment[1:] > running[:-1] + tolerance

    stop = np.flatnonzero(against)
    limit = int(stop[0]) + 1 if len(stop) else len(segment)
    scanned = segment[:limit]
    # First occurrence of the extreme: the running index only moves on strict improvement
    return int(np.argmax(scanned) if rising else np.argmin(scanned))


def detect_buildups(
    timestamps: np.ndarray,
    energy: np.ndarray,
    window_frames: int,
    min_rise: float = 0.2,
    tolerance: float = 0.1,
) -> List[BuildupSegment]:
    """
    Sustained rises of more than `min_rise` within `window_frames`.

    After a buildup the scan resumes one frame past its end.
    """
    n = len(energy)
    buildups: List[BuildupSegment] = []
    i = 0
    while i < n - 1:
        max_end = min(i + window_frames, n - 1)
        offset = _scan_extent(energy[i:max_end + 1], rising=True, tolerance=tolerance)
        end = i + offset

        if end > i and energy[end] - energy[i] > min_rise:
            duration = float(timestamps[end] - timestamps[i])
            rate = float((energy[end] - energy[i]) / duration) if duration > 0 else 0.0
            buildups.append(BuildupSegment(
                start_time=float(timestamps[i]),
                end_time=float(timestamps[end]),
                start_energy=float(energy[i]),
                end_energy=float(energy[end]),
                rate=rate,
                intensity=classify_buildup(rate),
            ))
            i = end
        i += 1

    return buildups


def detect_drops(
    timestamps: np.ndarray,
    energy: np.ndarray,
    window_frames: int,
    min_fall: float = 0.3,
    tolerance: float = 0.1,
) -> List[DropSegment]:
    """
    Falls of more than `min_fall` within `window_frames`.

    After a drop the scan resumes one frame past its end.
    """
    n = len(energy)
    drops: List[DropSegment] = []
    i = 0
    while i < n - 1:
        max_end = min(i + window_frames, n - 1)
        offset = _scan_extent(energy[i:max_end + 1], rising=False, tolerance=tolerance)
        end = i + offset

        if end > i and energy[i] - energy[end] > min_fall:
            duration = float(timestamps[end] - timestamps[i])
            rate = float((energy[i] - energy[end]) / duration) if duration > 0 else 0.0
            drops.append(DropSegment(
                start_time=float(timestamps[i]),
                end_time=float(timestamps[end]),
                start_energy=float(energy[i]),
                end_energy=float(energy[end]),
                rate=rate,
                drop_type=classify_drop(rate),
            ))
            i = end
        i += 1

    return drops


def detect_plateaus(
    timestamps: np.ndarray,
    energy: np.ndarray,
    min_frames: int,
    tolerance: float = 0.1,
) -> List[PlateauSegment]:
    """
    Stretches of `min_frames` frames all within `tolerance` of the first value.

    stability = 1 - (max - min) over the plateau; energy is its mean.
    """
    n = len(energy)
    plateaus: List[PlateauSegment] = []
    if min_frames <= 0:
        return plateaus

    i = 0
    while i < n:
        end = i + min_frames
        if end > n - 1:
            break

        window = energy[i:end + 1]
        if np.all(np.abs(window[1:] - energy[i]) <= tolerance):
            plateaus.append(PlateauSegment(
                start_time=float(timestamps[i]),
                end_time=float(timestamps[end]),
                energy=float(np.mean(window)),
                stability=float(1.0 - (np.max(window) - np.min(window))),
            ))
            i = end
        i += 1

    return plateaus


def detect_energy_peaks(
    timestamps: np.ndarray,
    energy: np.ndarray,
    window_frames: int,
    min_prominence: float = 0.2,
) -> List[PeakSegment]:
    """
    Strict maxima of a +-window_frames neighbourhood.

    prominence = value - neighbourhood minimum (kept when >= min_prominence);
    sharpness = mean of the one-frame drops to the left and right.
    """
    energy = np.asarray(energy, dtype=np.float64)
    n = len(energy)
    w = int(window_frames)
    if w <= 0 or n < 2 * w + 1:
        return []

    sliding = np.lib.stride_tricks.sliding_window_view
    side_max = sliding(energy, w).max(axis=1)            # side_max[s] = max(e[s:s+w])
    full_min = sliding(energy, 2 * w + 1).min(axis=1)    # full_min[s] = min(e[s:s+2w+1])

    centers = np.arange(w, n - w)
    values = energy[centers]
    left_max = side_max[centers - w]
    right_max = side_max[centers + 1]
    is_peak = (values > left_max) & (values > right_max)

    prominence = values - full_min[centers - w]
    keep = is_peak & (prominence >= min_prominence)

    peaks: List[PeakSegment] = []
    for idx in centers[keep]:
        value = energy[idx]
        sharpness = ((value - energy[idx - 1]) + (value - energy[idx + 1])) / 2.0
        peaks.append(PeakSegment(
            time=float(timestamps[idx]),
            energy=float(value),
            prominence=float(value - full_min[idx - w]),
            sharpness=float(sharpness),
        ))

    return peaks
