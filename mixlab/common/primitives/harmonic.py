"""
Harmonic Primitives - HPSS, harmonic ratio, chroma descriptors, key detection.

Vectorized: median filters from scipy.ndimage, pre-built rotation matrices
for key profiles.
"""

import numpy as np
from scipy.ndimage import median_filter
from typing import Optional, Tuple


HPSS_KERNEL = 17

# Krumhansl-Schmuckler key profiles
MAJOR_PROFILE = np.array([6.35, 2.23, 3.48, 2.33, 4.38, 4.09,
                          2.52, 5.19, 2.39, 3.66, 2.29, 2.88], dtype=np.float64)
MINOR_PROFILE = np.array([6.33, 2.68, 3.52, 5.38, 2.60, 3.53,
                          2.54, 4.75, 3.98, 2.69, 3.34, 3.17], dtype=np.float64)

KEY_NAMES = ['C', 'C#', 'D', 'D#', 'E', 'F',
             'F#', 'G', 'G#', 'A', 'A#', 'B']


# ============== Harmonic / Percussive ==============

def compute_hpss(
    S: np.ndarray,
    kernel_size: int = HPSS_KERNEL,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Hard-mask harmonic-percussive separation.

    Each bin goes to the harmonic part when it is closer to the median over
    time (kernel_size frames) than to the median over frequency
    (kernel_size bins), otherwise to the percussive part.

    Args:
        S: Magnitude spectrogram (n_bins, n_frames)
        kernel_size: Median window length in frames / bins

    Returns:
        Tuple of (S_harmonic, S_percussive)
    """
    S = np.asarray(S, dtype=np.float32)
    if S.size == 0:
        return S.copy(), S.copy()

    # Median filter along time (harmonic)
    time_median = median_filter(S, size=(1, kernel_size), mode="nearest")

    # Median filter along frequency (percussive)
    freq_median = median_filter(S, size=(kernel_size, 1), mode="nearest")

    harmonic_mask = np.abs(S - time_median) < np.abs(S - freq_median)

    S_harmonic = np.where(harmonic_mask, S, 0.0).astype(np.float32)
    S_percussive = np.where(harmonic_mask, 0.0, S).astype(np.float32)
    return S_harmonic, S_percussive


def compute_harmonic_ratio(
    S_harmonic: np.ndarray,
    S_percussive: np.ndarray,
) -> np.ndarray:
    """
    Harmonic share of frame energy, E_h / (E_h + E_p).

    Returns:
        Ratio per frame in [0, 1]; 0 for silent frames
    """
    h_energy = np.sum(np.asarray(S_harmonic, dtype=np.float64) ** 2, axis=0)
    p_energy = np.sum(np.asarray(S_percussive, dtype=np.float64) ** 2, axis=0)
    total = h_energy + p_energy
    return np.divide(h_energy, total, out=np.zeros_like(total), where=total > 0)


# ============== Chroma Descriptors ==============

def average_chroma(chroma: Optional[np.ndarray]) -> Optional[np.ndarray]:
    """Time-averaged 12-bin chroma, None when chroma is missing or empty."""
    if chroma is None or chroma.ndim != 2 or chroma.shape[1] == 0:
        return None
    avg = np.zeros(12, dtype=np.float64)
    rows = min(12, chroma.shape[0])
    avg[:rows] = np.mean(chroma[:rows], axis=1)
    return avg


def compute_chroma_stability(chroma: Optional[np.ndarray]) -> float:
    """
    Mean of 1 - sum|delta| / 12 over consecutive chroma frames.

    Returns 0 with fewer than 2 frames.
    """
    if chroma is None or chroma.ndim != 2 or chroma.shape[1] < 2:
        return 0.0
    deltas = np.sum(np.abs(np.diff(chroma, axis=1)), axis=0)
    return float(np.mean(1.0 - deltas / 12.0))


def _rotation_indices() -> np.ndarray:
    """(12, 12) indices: row k, column i -> (i + k) % 12."""
    indices = np.arange(12)
    return (indices[np.newaxis, :] + indices[:, np.newaxis]) % 12


def key_strength(avg_chroma: np.ndarray, profile: np.ndarray) -> float:
    """
    Best dot product of the rotated averaged chroma with a key profile.

    For key k the chroma is read as avg[(i + k) % 12]; the best of the 12
    rotations is divided by 100 and capped at 1.
    """
    rotated = avg_chroma[_rotation_indices()]
    correlations = rotated @ profile
    return float(min(1.0, max(0.0, float(np.max(correlations))) / 100.0))


def major_key_strength(avg_chroma: np.ndarray) -> float:
    return key_strength(avg_chroma, MAJOR_PROFILE)


def minor_key_strength(avg_chroma: np.ndarray) -> float:
    return key_strength(avg_chroma, MINOR_PROFILE)


def compute_key(chroma: np.ndarray) -> Tuple[str, float]:
    """
    Estimate musical key from chromagram.

    Vectorized Pearson correlation against all 24 rotated profiles.

    Args:
        chroma: Chromagram (12, n_frames)

    Returns:
        Tuple of (key_name, confidence), e.g. ("Am", 0.71)
    """
    chroma_avg = np.mean(chroma, axis=1).astype(np.float64)

    # Row i is np.roll(profile, i): entry j = profile[(j - i) % 12]
    indices = np.arange(12)
    roll_indices = (indices[np.newaxis, :] - indices[:, np.newaxis]) % 12

    major_rotations = MAJOR_PROFILE[roll_indices]
    minor_rotations = MINOR_PROFILE[roll_indices]

    chroma_centered = chroma_avg - np.mean(chroma_avg)
    chroma_std = np.std(chroma_avg) + 1e-10

    major_centered = major_rotations - np.mean(major_rotations, axis=1, keepdims=True)
    major_std = np.std(major_rotations, axis=1) + 1e-10

    minor_centered = minor_rotations - np.mean(minor_rotations, axis=1, keepdims=True)
    minor_std = np.std(minor_rotations, axis=1) + 1e-10

    major_corrs = np.dot(major_centered, chroma_centered) / (12 * major_std * chroma_std)
    minor_corrs = np.dot(minor_centered, chroma_centered) / (12 * minor_std * chroma_std)

    best_major_idx = int(np.argmax(major_corrs))
    best_minor_idx = int(np.argmax(minor_corrs))

    if major_corrs[best_major_idx] >= minor_corrs[best_minor_idx]:
        return KEY_NAMES[best_major_idx], float(max(0.0, major_corrs[best_major_idx]))
    return f"{KEY_NAMES[best_minor_idx]}m", float(max(0.0, minor_corrs[best_minor_idx]))
