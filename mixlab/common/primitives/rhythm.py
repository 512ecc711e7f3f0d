"""
Rhythm Primitives - Onset strength, tempo, beat spectrum, bar patterns.

Tempo is estimated from the autocorrelation of the onset-strength series
(spectral flux). All functions are pure numpy.
"""

import numpy as np
import scipy.fft
from typing import Tuple

from .stft import next_power_of_two


DEFAULT_TEMPO = 128.0
MIN_TEMPO = 60.0
MAX_TEMPO = 200.0
MAX_LAG = 200
MIN_ONSET_FRAMES = 10
BEATS_PER_BAR = 4


def autocorrelate(x: np.ndarray, max_lag: int) -> np.ndarray:
    """
    Raw autocorrelation r[lag] = sum_i x[i] * x[i + lag] for lag < max_lag.

    Computed as direct dot products so flat inputs produce exact values.
    """
    x = np.asarray(x, dtype=np.float64)
    n = len(x)
    max_lag = min(max_lag, n)
    return np.array([np.dot(x[:n - lag], x[lag:]) for lag in range(max_lag)], dtype=np.float64)


def fold_tempo(bpm: float, low: float = MIN_TEMPO, high: float = MAX_TEMPO) -> float:
    """Double or halve until bpm lies in [low, high]."""
    if bpm <= 0:
        return bpm
    while bpm < low:
        bpm *= 2
    while bpm > high:
        bpm /= 2
    return bpm


def estimate_tempo(
    onset_strength: np.ndarray,
    sr: int,
    hop_size: int,
    default_tempo: float = DEFAULT_TEMPO,
) -> Tuple[float, float]:
    """
    Tempo from the strongest strict local maximum of the onset autocorrelation.

    Lags up to min(n / 2, 200) are searched. The peak lag is converted to BPM,
    folded into [60, 200] and rounded. Confidence is peak value over the
    autocorrelation maximum.

    Returns:
        (tempo_bpm, confidence); (default_tempo, 0.0) for fewer than 10
        frames, no peak, or an all-zero series
    """
    onset_strength = np.asarray(onset_strength, dtype=np.float64)
    n = len(onset_strength)
    if n < MIN_ONSET_FRAMES:
        return default_tempo, 0.0

    max_lag = min(n // 2, MAX_LAG)
    acf = autocorrelate(onset_strength, max_lag)
    if len(acf) < 3:
        return default_tempo, 0.0

    inner = acf[1:-1]
    is_peak = (inner > acf[:-2]) & (inner > acf[2:])
    peak_lags = np.flatnonzero(is_peak) + 1
    if len(peak_lags) == 0:
        return default_tempo, 0.0

    # First lag wins ties
    best_lag = int(peak_lags[np.argmax(acf[peak_lags])])
    acf_max = float(np.max(acf))
    if acf_max <= 0:
        return default_tempo, 0.0

    period = best_lag * hop_size / sr
    bpm = 60.0 / period if period > 0 else default_tempo
    tempo = float(round(fold_tempo(bpm)))
    confidence = float(acf[best_lag] / acf_max)

    return tempo, confidence


def compute_beat_spectrum(onset_strength: np.ndarray) -> np.ndarray:
    """
    Magnitude spectrum of the onset series zero-padded to a power of two.

    Returns:
        First half of the magnitude spectrum (padded_length / 2 values)
    """
    onset_strength = np.asarray(onset_strength, dtype=np.float64)
    if len(onset_strength) == 0:
        return np.zeros(0, dtype=np.float64)

    padded_length = next_power_of_two(len(onset_strength))
    spectrum = scipy.fft.fft(onset_strength, n=padded_length)
    return np.abs(spectrum[:padded_length // 2])


def compute_rhythm_patterns(
    onset_strength: np.ndarray,
    tempo: float,
    sr: int,
    hop_size: int,
) -> np.ndarray:
    """
    Per-bar beat strengths: mean onset strength of each of 4 beats per bar.

    frames_per_beat = round((60 / tempo) / (hop / sr)). Only whole bars are
    used.

    Returns:
        (n_bars, 4); (0, 4) when not even one bar fits
    """
    onset_strength = np.asarray(onset_strength, dtype=np.float64)
    if tempo <= 0:
        return np.zeros((0, BEATS_PER_BAR), dtype=np.float64)

    frames_per_beat = int(round((60.0 / tempo) / (hop_size / sr)))
    bar_frames = frames_per_beat * BEATS_PER_BAR
    if frames_per_beat <= 0 or bar_frames > len(onset_strength):
        return np.zeros((0, BEATS_PER_BAR), dtype=np.float64)

    n_bars = len(onset_strength) // bar_frames
    bars = onset_strength[:n_bars * bar_frames].reshape(n_bars, BEATS_PER_BAR, frames_per_beat)
    return np.mean(bars, axis=2)


def compute_rhythm_regularity(patterns: np.ndarray) -> float:
    """
    Mean over bars of 1 - min(1, 4 * mean |beat - 0.25|); 0 without bars.
    """
    if len(patterns) == 0:
        return 0.0
    deviation = np.mean(np.abs(patterns - 0.25), axis=1)
    return float(np.mean(1.0 - np.minimum(1.0, deviation * 4)))


def compute_rhythm_complexity(patterns: np.ndarray) -> float:
    """Mean over bars of sum |beat - 0.25|; 0 without bars."""
    if len(patterns) == 0:
        return 0.0
    return float(np.mean(np.sum(np.abs(patterns - 0.25), axis=1)))
