"""
Filtering Primitives - Smoothing, normalization, similarity.

Uses scipy.ndimage for efficient filtering.
"""

import numpy as np
from scipy.ndimage import uniform_filter1d


def smooth_moving_average(x: np.ndarray, window: int = 5) -> np.ndarray:
    """
    Centered moving average that leaves the edges untouched.

    Only positions where the full window fits (half = window // 2 on each
    side) are replaced by the window mean; the first and last `half` values
    keep their original values.

    Args:
        x: 1D input
        window: Odd window size

    Returns:
        Smoothed copy of x
    """
    x = np.asarray(x, dtype=np.float64)
    half = window // 2
    smoothed = x.copy()
    if window <= 1 or len(x) <= 2 * half:
        return smoothed

    averaged = uniform_filter1d(x, size=2 * half + 1, mode="nearest")
    smoothed[half:len(x) - half] = averaged[half:len(x) - half]
    return smoothed


def normalize_by_max(x: np.ndarray) -> np.ndarray:
    """Divide by the maximum; all-zero (or empty) input returns zeros."""
    x = np.asarray(x, dtype=np.float64)
    if len(x) == 0:
        return x.copy()
    max_val = float(np.max(x))
    if max_val <= 0:
        return np.zeros_like(x)
    return x / max_val


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """
    Cosine similarity of two vectors; 0 when either norm is 0.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0:
        return 0.0
    return float(np.dot(a, b) / norm)


def clamp01(value: float) -> float:
    """Clamp a scalar to [0, 1]."""
    return float(min(1.0, max(0.0, value)))
