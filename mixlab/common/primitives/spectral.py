"""
Spectral Primitives - Centroid, rolloff, flux, moments, MFCC, chroma, tonnetz, contrast.

All functions take a magnitude spectrogram S of shape (n_bins, n_frames)
and the bin frequencies (n_bins,). Outputs are per-frame arrays of length
n_frames, or (n_features, n_frames) matrices.

Vectorized over frames, no Python loops over bins.
"""

import numpy as np
import scipy.fft
from dataclasses import dataclass
from typing import Dict, List


ROLLOFF_PERCENT = 0.95
N_MFCC = 13
LOG_FLOOR = 1e-10

# A4 = 440 Hz, C0 = A4 * 2^(-4.75)
C0_HZ = 440.0 * 2.0 ** -4.75

CONTRAST_EDGES_HZ = [0, 200, 400, 800, 1600, 3200, 8000]


# ============== Basic Spectral Shape ==============

def compute_centroid(S: np.ndarray, freqs: np.ndarray) -> np.ndarray:
    """
    Magnitude-weighted mean frequency per frame.

    Frames with zero total magnitude get 0.
    """
    S = np.asarray(S, dtype=np.float64)
    mag_sum = np.sum(S, axis=0)
    weighted = freqs @ S
    return np.divide(weighted, mag_sum, out=np.zeros_like(mag_sum), where=mag_sum > 0)


def compute_rolloff(
    S: np.ndarray,
    freqs: np.ndarray,
    roll_percent: float = ROLLOFF_PERCENT,
) -> np.ndarray:
    """
    Frequency of the first bin where cumulative energy reaches roll_percent.

    Energy is squared magnitude. A silent frame rolls off at bin 0.
    """
    if S.shape[1] == 0:
        return np.zeros(0, dtype=np.float64)
    power = np.asarray(S, dtype=np.float64) ** 2
    cumsum = np.cumsum(power, axis=0)
    threshold = roll_percent * cumsum[-1]
    rolloff_idx = np.argmax(cumsum >= threshold, axis=0)
    return freqs[rolloff_idx].astype(np.float64)


def compute_flux(S: np.ndarray) -> np.ndarray:
    """
    Half-wave rectified frame-to-frame magnitude change.

    The first frame has flux 0.
    """
    n_frames = S.shape[1]
    flux = np.zeros(n_frames, dtype=np.float64)
    if n_frames > 1:
        diff = np.diff(np.asarray(S, dtype=np.float64), axis=1)
        flux[1:] = np.sum(np.maximum(diff, 0.0), axis=0)
    return flux


@dataclass
class SpectralMoments:
    """Spread (Hz), skewness and excess kurtosis per frame."""
    spread: np.ndarray
    skewness: np.ndarray
    kurtosis: np.ndarray


def compute_moments(S: np.ndarray, freqs: np.ndarray, centroid: np.ndarray) -> SpectralMoments:
    """
    Higher-order spectral moments around the centroid.

    Weights are magnitude / total magnitude. Central moments are expanded
    from raw moments so the whole spectrogram is handled with four
    matrix-vector products. skewness = m3 / sigma^3, kurtosis = m4 / sigma^4 - 3,
    both 0 when sigma == 0.
    """
    S = np.asarray(S, dtype=np.float64)
    n_frames = S.shape[1]
    if n_frames == 0:
        empty = np.zeros(0, dtype=np.float64)
        return SpectralMoments(spread=empty, skewness=empty.copy(), kurtosis=empty.copy())

    mag_sum = np.sum(S, axis=0)
    safe_sum = np.where(mag_sum > 0, mag_sum, 1.0)
    f = freqs.astype(np.float64)

    r1 = (f @ S) / safe_sum
    r2 = ((f ** 2) @ S) / safe_sum
    r3 = ((f ** 3) @ S) / safe_sum
    r4 = ((f ** 4) @ S) / safe_sum
    c = centroid

    variance = r2 - 2 * c * r1 + c ** 2
    m3 = r3 - 3 * c * r2 + 3 * c ** 2 * r1 - c ** 3
    m4 = r4 - 4 * c * r3 + 6 * c ** 2 * r2 - 4 * c ** 3 * r1 + c ** 4

    # Silent frames have zero weights everywhere
    silent = mag_sum <= 0
    variance = np.where(silent, 0.0, np.maximum(variance, 0.0))
    m3 = np.where(silent, 0.0, m3)
    m4 = np.where(silent, 0.0, m4)

    spread = np.sqrt(variance)
    has_spread = spread > 0
    safe_spread = np.where(has_spread, spread, 1.0)
    skewness = np.where(has_spread, m3 / safe_spread ** 3, 0.0)
    kurtosis = np.where(has_spread, m4 / safe_spread ** 4 - 3.0, 0.0)

    return SpectralMoments(spread=spread, skewness=skewness, kurtosis=kurtosis)


def estimate_zero_crossing_rate(S: np.ndarray, freqs: np.ndarray, sr: int) -> np.ndarray:
    """
    Zero-crossing estimate from the spectrum: centroid over bins >= 1,
    normalized by Nyquist.
    """
    if S.shape[0] < 2:
        return np.zeros(S.shape[1], dtype=np.float64)
    centroid = compute_centroid(S[1:], freqs[1:])
    return centroid / (sr / 2.0)


# ============== Mel / MFCC ==============

def hz_to_mel(hz):
    """HTK mel scale."""
    return 2595.0 * np.log10(1.0 + np.asarray(hz, dtype=np.float64) / 700.0)


def mel_to_hz(mel):
    """Inverse HTK mel scale."""
    return 700.0 * (10.0 ** (np.asarray(mel, dtype=np.float64) / 2595.0) - 1.0)


def mel_filterbank(
    sr: int,
    fft_size: int,
    n_mels: int,
    fmin: float,
    fmax: float,
) -> np.ndarray:
    """
    Triangular mel filterbank.

    n_mels + 2 points spaced linearly in mel between fmin and fmax, mapped to
    bins with floor((fft_size + 1) * hz / sr). Rising edge covers
    [b[i-1], b[i]), falling edge [b[i], b[i+1]).

    Returns:
        (n_mels, fft_size // 2 + 1) weights
    """
    n_fft_bins = fft_size // 2 + 1
    mel_points = np.linspace(hz_to_mel(fmin), hz_to_mel(fmax), n_mels + 2)
    bin_points = np.floor((fft_size + 1) * mel_to_hz(mel_points) / sr).astype(int)

    bins = np.arange(n_fft_bins)
    filterbank = np.zeros((n_mels, n_fft_bins), dtype=np.float64)

    for i in range(1, n_mels + 1):
        left, center, right = bin_points[i - 1], bin_points[i], bin_points[i + 1]

        if center > left:
            rising = (bins >= left) & (bins < center)
            filterbank[i - 1, rising] = (bins[rising] - left) / (center - left)

        if right > center:
            falling = (bins >= center) & (bins < right)
            filterbank[i - 1, falling] = (right - bins[falling]) / (right - center)

    return filterbank


def compute_mfcc(S: np.ndarray, filterbank: np.ndarray, n_mfcc: int = N_MFCC) -> np.ndarray:
    """
    MFCC from magnitude spectrogram.

    log(mel + 1e-10) followed by an unnormalized DCT-II,
    sum_n x[n] * cos(pi * k * (2n + 1) / (2M)).

    Returns:
        (n_mfcc, n_frames)
    """
    n_frames = S.shape[1]
    if n_frames == 0:
        return np.zeros((n_mfcc, 0), dtype=np.float64)

    n_bins = min(S.shape[0], filterbank.shape[1])
    mel = filterbank[:, :n_bins] @ np.asarray(S[:n_bins], dtype=np.float64)
    log_mel = np.log(mel + LOG_FLOOR)

    # scipy's unnormalized DCT-II carries a factor of 2
    return scipy.fft.dct(log_mel, type=2, axis=0, norm=None)[:n_mfcc] / 2.0


# ============== Chroma / Tonnetz ==============

def chroma_filterbank(freqs: np.ndarray, n_chroma: int = 12) -> np.ndarray:
    """
    Hard pitch-class assignment per bin.

    pitch class = round(12 * log2(f / C0)) mod 12; DC is not assigned.

    Returns:
        (n_chroma, n_bins) 0/1 matrix
    """
    filterbank = np.zeros((n_chroma, len(freqs)), dtype=np.float64)
    positive = freqs > 0
    if not np.any(positive):
        return filterbank

    pitch = np.round(12.0 * np.log2(freqs[positive] / C0_HZ)).astype(int) % 12
    valid = pitch < n_chroma
    columns = np.flatnonzero(positive)[valid]
    filterbank[pitch[valid], columns] = 1.0
    return filterbank


def compute_chroma(S: np.ndarray, filterbank: np.ndarray) -> np.ndarray:
    """
    Chroma vectors normalized to sum 1 per frame (all-zero frames stay zero).

    Returns:
        (n_chroma, n_frames)
    """
    chroma = filterbank @ np.asarray(S, dtype=np.float64)
    totals = np.sum(chroma, axis=0)
    return np.divide(chroma, totals, out=chroma.copy(), where=totals > 0)


def _tonnetz_matrix() -> np.ndarray:
    """(6, 12) projection: major thirds, minor thirds, fifths circles."""
    matrix = np.zeros((6, 12), dtype=np.float64)
    angles = 2 * np.pi * np.arange(12) / 12

    for pc in (0, 4, 8):
        matrix[0, pc] = np.cos(angles[pc])
        matrix[1, pc] = np.sin(angles[pc])

    for pc in (3, 7, 11):
        matrix[2, pc] = np.cos(angles[pc])
        matrix[3, pc] = np.sin(angles[pc])

    fifths = [0, 7, 2, 9, 4, 11]
    for index, pc in enumerate(fifths):
        angle = 2 * np.pi * index / len(fifths)
        matrix[4, pc] = np.cos(angle)
        matrix[5, pc] = np.sin(angle)

    return matrix


TONNETZ_MATRIX = _tonnetz_matrix()


def compute_tonnetz(chroma: np.ndarray) -> np.ndarray:
    """
    Tonal centroid coordinates from 12-bin chroma.

    Rows: major-third x/y, minor-third x/y, fifth x/y.

    Returns:
        (6, n_frames)
    """
    if chroma.shape[0] != 12:
        # Non-standard chroma resolution: only the first 12 bins map to the circles
        padded = np.zeros((12, chroma.shape[1]), dtype=np.float64)
        rows = min(12, chroma.shape[0])
        padded[:rows] = chroma[:rows]
        chroma = padded
    return TONNETZ_MATRIX @ chroma


# ============== Contrast ==============

def compute_contrast(S: np.ndarray, sr: int) -> np.ndarray:
    """
    Octave-band spectral contrast.

    For each band the magnitudes are sorted descending; peak = sum of the top
    20%, valley = sum from the 80% position on; contrast =
    log10((peak + 1e-10) / (valley + 1e-10)), or 0 when valley == 0.

    Returns:
        (6, n_frames)
    """
    n_bins, n_frames = S.shape
    n_bands = len(CONTRAST_EDGES_HZ) - 1
    contrast = np.zeros((n_bands, n_frames), dtype=np.float64)
    if n_frames == 0:
        return contrast

    edges = [int(np.floor(f * 2 * n_bins / sr)) for f in CONTRAST_EDGES_HZ]

    for band in range(n_bands):
        start = edges[band]
        end = min(edges[band + 1], n_bins - 1)
        if start >= end:
            continue

        # Ascending sort: top 20% are the last rows
        band_sorted = np.sort(np.asarray(S[start:end + 1], dtype=np.float64), axis=0)
        length = band_sorted.shape[0]
        n_peak = int(np.floor(length * 0.2))
        n_valley = length - int(np.floor(length * 0.8))

        peak = np.sum(band_sorted[length - n_peak:], axis=0) if n_peak > 0 else np.zeros(n_frames)
        valley = np.sum(band_sorted[:n_valley], axis=0)

        has_valley = valley > 0
        ratio = (peak + LOG_FLOOR) / (valley + LOG_FLOOR)
        contrast[band] = np.where(has_valley, np.log10(ratio), 0.0)

    return contrast


# ============== Statistics ==============

@dataclass
class SpectralStatistics:
    """Summary statistics over the pooled spectral descriptors."""
    mean: float = 0.0
    std: float = 0.0
    min: float = 0.0
    max: float = 0.0
    p25: float = 0.0
    p50: float = 0.0
    p75: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    count: int = 0

    def to_dict(self) -> Dict[str, float]:
        return {
            "mean": self.mean,
            "std": self.std,
            "min": self.min,
            "max": self.max,
            "percentiles": {
                "p25": self.p25,
                "p50": self.p50,
                "p75": self.p75,
                "p90": self.p90,
                "p95": self.p95,
            },
            "count": self.count,
        }


def compute_statistics(series: List[np.ndarray]) -> SpectralStatistics:
    """
    Mean, population std, min, max and floor-index percentiles over the
    concatenation of the given series.

    Percentile p is sorted[floor(p / 100 * (n - 1))].
    """
    values = np.concatenate([np.asarray(s, dtype=np.float64).ravel() for s in series]) \
        if series else np.zeros(0)
    if len(values) == 0:
        return SpectralStatistics()

    ordered = np.sort(values)
    n = len(ordered)

    def percentile(p: float) -> float:
        return float(ordered[int(np.floor(p / 100.0 * (n - 1)))])

    return SpectralStatistics(
        mean=float(np.mean(values)),
        std=float(np.std(values)),
        min=float(ordered[0]),
        max=float(ordered[-1]),
        p25=percentile(25),
        p50=percentile(50),
        p75=percentile(75),
        p90=percentile(90),
        p95=percentile(95),
        count=n,
    )
