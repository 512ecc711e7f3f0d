"""
Energy Primitives - Frequency bands, time-domain energy, combined energy curve.

All functions are pure mathematical operations on numpy arrays.
Spectrogram orientation is (n_bins, n_frames).
"""

import numpy as np
import scipy.fft
from dataclasses import dataclass, fields
from typing import Dict, Optional, Tuple

from .stft import frame_signal


# Band edges in Hz, DJ-relevant ranges
BAND_RANGES: Dict[str, Tuple[float, float]] = {
    "sub_bass": (20.0, 60.0),
    "bass": (60.0, 250.0),
    "low_mid": (250.0, 500.0),
    "mid": (500.0, 2000.0),
    "high_mid": (2000.0, 4000.0),
    "presence": (4000.0, 6000.0),
    "brilliance": (6000.0, 20000.0),
}

# Combined energy weights
RMS_WEIGHT = 0.30
PEAK_WEIGHT = 0.25
BAND_WEIGHT = 0.30
FLUX_WEIGHT = 0.15


@dataclass
class FrequencyBands:
    """
    Energy in different frequency bands, one value per frame.

    Standard DJ-relevant frequency ranges:
        sub_bass: 20-60 Hz (subwoofer territory)
        bass: 60-250 Hz (kick drums, bass)
        low_mid: 250-500 Hz (warmth)
        mid: 500-2000 Hz (vocals, snares)
        high_mid: 2000-4000 Hz (presence)
        presence: 4000-6000 Hz (definition)
        brilliance: 6000-20000 Hz (air)
    """
    sub_bass: np.ndarray
    bass: np.ndarray
    low_mid: np.ndarray
    mid: np.ndarray
    high_mid: np.ndarray
    presence: np.ndarray
    brilliance: np.ndarray

    @property
    def n_frames(self) -> int:
        return len(self.bass)

    def to_array(self) -> np.ndarray:
        """Stack all bands into (7, n_frames) array."""
        return np.vstack([getattr(self, f.name) for f in fields(self)])

    def mean_per_frame(self) -> np.ndarray:
        """Mean across the 7 bands per frame."""
        return np.mean(self.to_array(), axis=0)

    def as_dict(self) -> Dict[str, np.ndarray]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def empty(cls) -> "FrequencyBands":
        return cls(**{name: np.zeros(0, dtype=np.float64) for name in BAND_RANGES})


def compute_band_energy(
    S: np.ndarray,
    sr: int,
    low: float,
    high: float,
) -> np.ndarray:
    """
    Root of summed squared magnitude in [low, high] Hz.

    Bins floor(low * 2 * n_bins / sr) .. min(ceil(high * 2 * n_bins / sr), n_bins - 1),
    both inclusive.

    Args:
        S: Magnitude spectrogram (n_bins, n_frames)
        sr: Sample rate
        low: Lower frequency bound
        high: Upper frequency bound

    Returns:
        Energy per frame in the specified band
    """
    n_bins = S.shape[0]
    start = int(np.floor(low * 2 * n_bins / sr))
    end = min(int(np.ceil(high * 2 * n_bins / sr)), n_bins - 1)

    if start > end or S.shape[1] == 0:
        return np.zeros(S.shape[1], dtype=np.float64)

    band = np.asarray(S[start:end + 1], dtype=np.float64)
    return np.sqrt(np.sum(band ** 2, axis=0))


def compute_frequency_bands(S: np.ndarray, sr: int) -> FrequencyBands:
    """
    Compute energy in all standard frequency bands.

    Args:
        S: Magnitude spectrogram
        sr: Sample rate

    Returns:
        FrequencyBands dataclass with energy per band
    """
    return FrequencyBands(**{
        name: compute_band_energy(S, sr, low, high)
        for name, (low, high) in BAND_RANGES.items()
    })


# ============== Time-Domain Energy ==============

@dataclass
class TimeDomainEnergy:
    """Per-frame RMS, peak amplitude and raw-spectrum flux."""
    rms: np.ndarray
    peak: np.ndarray
    flux: np.ndarray

    @property
    def n_frames(self) -> int:
        return len(self.rms)


def compute_time_domain_energy(
    y: np.ndarray,
    frame_size: int,
    hop_size: int,
) -> TimeDomainEnergy:
    """
    RMS, peak |x| and spectral flux of unwindowed frames.

    The flux uses the first frame_size/2 FFT bins of each rectangular frame;
    the first frame has flux 0.

    Args:
        y: Mono signal (not pre-emphasized)
        frame_size: Frame length in samples
        hop_size: Hop length in samples
    """
    frames = frame_signal(y, frame_size, hop_size)
    if frames.shape[0] == 0:
        empty = np.zeros(0, dtype=np.float64)
        return TimeDomainEnergy(rms=empty, peak=empty.copy(), flux=empty.copy())

    frames64 = frames.astype(np.float64)
    rms = np.sqrt(np.mean(frames64 ** 2, axis=1))
    peak = np.max(np.abs(frames64), axis=1)

    spectrum = np.abs(scipy.fft.rfft(frames64, axis=1))[:, :frame_size // 2]
    flux = np.zeros(frames.shape[0], dtype=np.float64)
    if frames.shape[0] > 1:
        flux[1:] = np.sum(np.maximum(np.diff(spectrum, axis=0), 0.0), axis=1)

    return TimeDomainEnergy(rms=rms, peak=peak, flux=flux)


def combine_energy(
    time_domain: TimeDomainEnergy,
    bands: Optional[FrequencyBands] = None,
) -> np.ndarray:
    """
    Weighted perceptual energy normalized by its global maximum.

    energy = 0.30*rms + 0.25*peak + 0.30*mean(bands) + 0.15*flux

    Without band energies the RMS stands in for the band term. Bands or flux
    shorter than the frame count contribute 0 beyond their length.

    Returns:
        Energy in [0, 1] per frame (all zeros when the maximum is 0)
    """
    n = time_domain.n_frames
    if n == 0:
        return np.zeros(0, dtype=np.float64)

    if bands is not None and bands.n_frames > 0:
        band_sum = np.zeros(n, dtype=np.float64)
        for values in bands.as_dict().values():
            length = min(n, len(values))
            band_sum[:length] += values[:length]
        band_mean = band_sum / len(BAND_RANGES)
    else:
        band_mean = time_domain.rms

    energy = (
        RMS_WEIGHT * time_domain.rms
        + PEAK_WEIGHT * time_domain.peak
        + BAND_WEIGHT * band_mean
        + FLUX_WEIGHT * time_domain.flux
    )

    max_energy = float(np.max(energy))
    if max_energy <= 0:
        return np.zeros(n, dtype=np.float64)
    return np.clip(energy / max_energy, 0.0, 1.0)
