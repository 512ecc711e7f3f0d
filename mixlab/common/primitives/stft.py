"""
STFT Primitives - Foundation for all spectral analysis.

PURE NUMPY/SCIPY IMPLEMENTATION.
No librosa imports in this file. Librosa is only used by the file loader
adapter (mixlab/core/adapters/loader.py) for resampling.

Pipeline:
    preprocess_signal()   # mono -> pre-emphasis -> peak normalize
    frame_signal()        # (n_frames, frame_size) windowed frames
    compute_spectrogram() # zero-padded FFT -> (n_bins, n_frames) magnitude

Frame count: n = floor((len - frame_size) / hop_size) + 1, no centering
padding. A signal shorter than one frame yields zero frames.
"""

import numpy as np
import scipy.fft
import scipy.signal
from dataclasses import dataclass
from typing import Optional


PRE_EMPHASIS = 0.97
KAISER_BETA = 8.6


# ============== Signal Preparation ==============

def to_mono(y: np.ndarray) -> np.ndarray:
    """
    Down-mix to mono by averaging channels.

    Args:
        y: (n_samples,) or (n_channels, n_samples)

    Returns:
        (n_samples,) float32
    """
    y = np.asarray(y, dtype=np.float32)
    if y.ndim == 1:
        return y
    return np.ascontiguousarray(np.mean(y, axis=0), dtype=np.float32)


def apply_pre_emphasis(y: np.ndarray, coefficient: float = PRE_EMPHASIS) -> np.ndarray:
    """y[n] - coef * y[n-1]; the first sample is kept as is."""
    y = np.asarray(y, dtype=np.float32)
    if len(y) == 0:
        return y.copy()
    out = np.empty_like(y)
    out[0] = y[0]
    out[1:] = y[1:] - coefficient * y[:-1]
    return out


def normalize_peak(y: np.ndarray) -> np.ndarray:
    """Scale so max |y| == 1. Silence is returned unchanged."""
    peak = float(np.max(np.abs(y))) if len(y) else 0.0
    if peak <= 0:
        return y
    return (y / peak).astype(np.float32)


def preprocess_signal(y: np.ndarray) -> np.ndarray:
    """Mono down-mix, pre-emphasis, peak normalization."""
    return normalize_peak(apply_pre_emphasis(to_mono(y)))


# ============== Windows ==============

def make_window(window_type: str, size: int) -> np.ndarray:
    """
    Create a symmetric analysis window.

    hann:     0.5 * (1 - cos(2*pi*i / (N-1)))
    hamming:  0.54 - 0.46 * cos(2*pi*i / (N-1))
    blackman: 0.42 - 0.5 * cos(2*pi*i / (N-1)) + 0.08 * cos(4*pi*i / (N-1))
    kaiser:   I0(beta * sqrt(1 - n^2)) / I0(beta), n = 2i/(N-1) - 1, beta = 8.6

    Raises:
        ValueError: unknown window type
    """
    if window_type == "hann":
        window = scipy.signal.windows.hann(size, sym=True)
    elif window_type == "hamming":
        window = scipy.signal.windows.hamming(size, sym=True)
    elif window_type == "blackman":
        window = scipy.signal.windows.blackman(size, sym=True)
    elif window_type == "kaiser":
        window = scipy.signal.windows.kaiser(size, beta=KAISER_BETA, sym=True)
    else:
        raise ValueError(f"Unknown window type: {window_type}")
    return np.ascontiguousarray(window, dtype=np.float32)


# ============== Framing & FFT ==============

def count_frames(n_samples: int, frame_size: int, hop_size: int) -> int:
    """Number of full frames that fit in the signal."""
    if n_samples < frame_size:
        return 0
    return (n_samples - frame_size) // hop_size + 1


def frame_signal(
    y: np.ndarray,
    frame_size: int,
    hop_size: int,
    window: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Slice signal into (optionally windowed) frames.

    Returns:
        (n_frames, frame_size) float32; (0, frame_size) for short input
    """
    y = np.ascontiguousarray(y, dtype=np.float32)
    n_frames = count_frames(len(y), frame_size, hop_size)
    if n_frames == 0:
        return np.zeros((0, frame_size), dtype=np.float32)

    shape = (n_frames, frame_size)
    strides = (hop_size * y.strides[0], y.strides[0])
    frames = np.lib.stride_tricks.as_strided(y, shape=shape, strides=strides)

    if window is not None:
        return (frames * window).astype(np.float32)
    return np.array(frames, dtype=np.float32)


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n (1 for n <= 1)."""
    if n <= 1:
        return 1
    return 1 << (int(n) - 1).bit_length()


@dataclass
class Spectrogram:
    """
    Magnitude (and optionally phase) spectrogram.

    magnitude: (n_bins, n_frames), n_bins = fft_size / 2
    freqs: (n_bins,) bin centre frequencies, k * sr / fft_size
    """
    magnitude: np.ndarray
    freqs: np.ndarray
    fft_size: int
    sr: int
    phase: Optional[np.ndarray] = None

    @property
    def n_bins(self) -> int:
        return self.magnitude.shape[0]

    @property
    def n_frames(self) -> int:
        return self.magnitude.shape[1]


def compute_spectrogram(
    frames: np.ndarray,
    sr: int,
    return_phase: bool = False,
) -> Spectrogram:
    """
    FFT of every frame, zero-padded to the next power of two.

    Only the first fft_size/2 bins are kept (Nyquist bin dropped).

    Args:
        frames: (n_frames, frame_size) windowed frames
        sr: Sample rate
        return_phase: Also keep the phase matrix

    Returns:
        Spectrogram with magnitude (n_bins, n_frames)
    """
    frame_size = frames.shape[1]
    fft_size = next_power_of_two(frame_size)
    n_bins = fft_size // 2
    freqs = np.arange(n_bins, dtype=np.float64) * sr / fft_size

    if frames.shape[0] == 0:
        return Spectrogram(
            magnitude=np.zeros((n_bins, 0), dtype=np.float32),
            freqs=freqs,
            fft_size=fft_size,
            sr=sr,
            phase=np.zeros((n_bins, 0), dtype=np.float32) if return_phase else None,
        )

    spectrum = scipy.fft.rfft(frames, n=fft_size, axis=1)[:, :n_bins].T
    magnitude = np.ascontiguousarray(np.abs(spectrum), dtype=np.float32)
    phase = np.ascontiguousarray(np.angle(spectrum), dtype=np.float32) if return_phase else None
    del spectrum

    return Spectrogram(magnitude=magnitude, freqs=freqs, fft_size=fft_size, sr=sr, phase=phase)


def frames_to_time(n_frames: int, sr: int, hop_size: int) -> np.ndarray:
    """Frame index -> seconds, i * hop / sr."""
    return np.arange(n_frames, dtype=np.float64) * hop_size / sr
