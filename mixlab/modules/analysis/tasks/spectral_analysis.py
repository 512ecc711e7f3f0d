"""
Spectral Analysis Task - Short-time spectral descriptors of a track.

Turns a decoded signal into a SpectralFeatureSeries:
- Mono down-mix, pre-emphasis, peak normalization
- Windowed frames, zero-padded FFT magnitude spectrogram
- Five feature groups computed concurrently from the shared spectrogram:
    basic     centroid, rolloff, flux, spread/skewness/kurtosis, ZCR estimate
    advanced  MFCC, chroma, tonnetz, contrast
    energy    7 frequency-band energies
    temporal  onset strength, tempo, beat spectrum, bar patterns
    harmonic  HPSS harmonic ratio

A signal shorter than one frame yields SpectralFeatureSeries.empty().
All arrays of the returned series are read-only.
"""

import threading
import numpy as np
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from .base import AudioContext, TaskResult, BaseTask, freeze
from mixlab.common.logging import get_logger
from mixlab.common.primitives.stft import (
    preprocess_signal,
    make_window,
    frame_signal,
    compute_spectrogram,
    next_power_of_two,
    frames_to_time,
)
from mixlab.common.primitives.spectral import (
    N_MFCC,
    SpectralStatistics,
    compute_centroid,
    compute_rolloff,
    compute_flux,
    compute_moments,
    estimate_zero_crossing_rate,
    mel_filterbank,
    compute_mfcc,
    chroma_filterbank,
    compute_chroma,
    compute_tonnetz,
    compute_contrast,
    compute_statistics,
)
from mixlab.common.primitives.energy import FrequencyBands, compute_frequency_bands
from mixlab.common.primitives.rhythm import (
    BEATS_PER_BAR,
    estimate_tempo,
    compute_beat_spectrum,
    compute_rhythm_patterns,
)
from mixlab.common.primitives.harmonic import compute_hpss, compute_harmonic_ratio
from mixlab.core.errors import SpectralAnalysisError
from mixlab.modules.analysis.config import SpectralConfig

logger = get_logger(__name__)

N_TONNETZ = 6
N_CONTRAST = 6


@dataclass
class SpectralFeatureSeries:
    """
    Per-frame spectral descriptors of one track.

    Per-frame arrays have length n_frames; matrices are (n_features, n_frames).
    harmonic_ratio is None when harmonic/percussive separation is disabled.
    phase is the (n_bins, n_frames) STFT phase, kept only with keep_phase.
    """
    # Basic shape
    centroid: np.ndarray
    rolloff: np.ndarray
    flux: np.ndarray
    spread: np.ndarray
    skewness: np.ndarray
    kurtosis: np.ndarray
    zero_crossing_rate: np.ndarray

    # Timbre / pitch
    mfcc: np.ndarray        # (13, n_frames)
    chroma: np.ndarray      # (chroma_bins, n_frames)
    tonnetz: np.ndarray     # (6, n_frames)
    contrast: np.ndarray    # (6, n_frames)

    # Energy
    bands: FrequencyBands

    # Rhythm
    onset_strength: np.ndarray
    tempo: float
    tempo_confidence: float
    beat_spectrum: np.ndarray
    rhythm_patterns: np.ndarray  # (n_bars, 4)

    # Harmonic
    harmonic_ratio: Optional[np.ndarray]
    phase: Optional[np.ndarray] = None

    statistics: SpectralStatistics = field(default_factory=SpectralStatistics)

    # Frame grid
    sample_rate: int = 44100
    frame_size: int = 2048
    hop_size: int = 512
    n_frames: int = 0

    @property
    def frame_rate(self) -> float:
        """Frames per second (sr / hop)."""
        return self.sample_rate / self.hop_size

    @property
    def frame_duration(self) -> float:
        """Seconds between consecutive frames."""
        return self.hop_size / self.sample_rate

    @property
    def timestamps(self) -> np.ndarray:
        return frames_to_time(self.n_frames, self.sample_rate, self.hop_size)

    @property
    def is_empty(self) -> bool:
        return self.n_frames == 0

    def frame_arrays(self) -> Dict[str, np.ndarray]:
        """All per-frame 1D arrays by name."""
        arrays = {
            'centroid': self.centroid,
            'rolloff': self.rolloff,
            'flux': self.flux,
            'spread': self.spread,
            'skewness': self.skewness,
            'kurtosis': self.kurtosis,
            'zero_crossing_rate': self.zero_crossing_rate,
            'onset_strength': self.onset_strength,
        }
        if self.harmonic_ratio is not None:
            arrays['harmonic_ratio'] = self.harmonic_ratio
        for name, values in self.bands.as_dict().items():
            arrays[f'band_{name}'] = values
        return arrays

    def frame_matrices(self) -> Dict[str, np.ndarray]:
        return {
            'mfcc': self.mfcc,
            'chroma': self.chroma,
            'tonnetz': self.tonnetz,
            'contrast': self.contrast,
        }

    def freeze(self) -> 'SpectralFeatureSeries':
        """Mark every array read-only."""
        for values in self.frame_arrays().values():
            freeze(values)
        for values in self.frame_matrices().values():
            freeze(values)
        freeze(self.beat_spectrum)
        freeze(self.rhythm_patterns)
        if self.phase is not None:
            freeze(self.phase)
        return self

    @classmethod
    def empty(cls, config: Optional[SpectralConfig] = None, sample_rate: Optional[int] = None) -> 'SpectralFeatureSeries':
        """Series with zero frames (input shorter than one frame)."""
        config = config or SpectralConfig()

        def zeros(rows: Optional[int] = None) -> np.ndarray:
            if rows is None:
                return np.zeros(0, dtype=np.float64)
            return np.zeros((rows, 0), dtype=np.float64)

        return cls(
            centroid=zeros(),
            rolloff=zeros(),
            flux=zeros(),
            spread=zeros(),
            skewness=zeros(),
            kurtosis=zeros(),
            zero_crossing_rate=zeros(),
            mfcc=zeros(N_MFCC),
            chroma=zeros(config.chroma_bins),
            tonnetz=zeros(N_TONNETZ),
            contrast=zeros(N_CONTRAST),
            bands=FrequencyBands.empty(),
            onset_strength=zeros(),
            tempo=float(config.default_tempo),
            tempo_confidence=0.0,
            beat_spectrum=zeros(),
            rhythm_patterns=np.zeros((0, BEATS_PER_BAR), dtype=np.float64),
            harmonic_ratio=zeros() if config.enable_harmonic_percussive else None,
            phase=zeros(next_power_of_two(config.frame_size) // 2) if config.keep_phase else None,
            statistics=SpectralStatistics(),
            sample_rate=sample_rate or config.sample_rate,
            frame_size=config.frame_size,
            hop_size=config.hop_size,
            n_frames=0,
        ).freeze()

    def to_dict(self) -> Dict[str, Any]:
        """Summary (no per-frame arrays)."""
        return {
            'n_frames': int(self.n_frames),
            'sample_rate': int(self.sample_rate),
            'frame_size': int(self.frame_size),
            'hop_size': int(self.hop_size),
            'frame_rate': float(self.frame_rate),
            'tempo': float(self.tempo),
            'tempo_confidence': float(self.tempo_confidence),
            'n_bars': int(self.rhythm_patterns.shape[0]),
            'has_harmonic_ratio': self.harmonic_ratio is not None,
            'has_phase': self.phase is not None,
            'statistics': self.statistics.to_dict(),
        }


@dataclass
class SpectralAnalysisResult(TaskResult):
    """
    Result of spectral analysis.

    Attributes:
        series: Per-frame spectral descriptors
    """
    # Inherited from TaskResult
    success: bool = True
    task_name: str = "SpectralAnalysis"
    processing_time_sec: float = 0.0
    error: Optional[str] = None

    series: Optional[SpectralFeatureSeries] = None

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base['series'] = self.series.to_dict() if self.series is not None else None
        return base


class SpectralAnalysisTask(BaseTask):
    """
    Extract spectral descriptors from a decoded signal.

    The task instance holds only immutable, precomputed data (window and
    filterbanks) and can be shared across threads.

    Example:
        task = SpectralAnalysisTask(SpectralConfig(window_type="hamming"))
        result = task.execute(context)
        print(result.series.tempo)
    """

    def __init__(self, config: Optional[SpectralConfig] = None):
        """
        Initialize spectral analysis task.

        Args:
            config: Spectral configuration (validated on construction)
        """
        super().__init__()
        self.config = config or SpectralConfig()
        self.fft_size = next_power_of_two(self.config.frame_size)
        self._window = freeze(make_window(self.config.window_type.value, self.config.frame_size))
        self._filterbanks: Dict[int, Tuple[np.ndarray, np.ndarray]] = {}
        self._lock = threading.Lock()
        # Build for the configured rate up front; other rates are built on demand
        self._get_filterbanks(self.config.sample_rate)

    @property
    def name(self) -> str:
        return "SpectralAnalysis"

    def _get_filterbanks(self, sr: int) -> Tuple[np.ndarray, np.ndarray]:
        """(mel, chroma) filterbanks for a sample rate, built once."""
        with self._lock:
            cached = self._filterbanks.get(sr)
            if cached is None:
                fmax = min(self.config.max_freq, sr / 2.0)
                fmin = min(self.config.min_freq, fmax)
                freqs = np.arange(self.fft_size // 2, dtype=np.float64) * sr / self.fft_size
                cached = (
                    freeze(mel_filterbank(sr, self.fft_size, self.config.mel_bands, fmin, fmax)),
                    freeze(chroma_filterbank(freqs, self.config.chroma_bins)),
                )
                self._filterbanks[sr] = cached
            return cached

    def execute(self, context: AudioContext) -> SpectralAnalysisResult:
        """
        Analyze the signal of an audio context.

        Args:
            context: Audio context with signal

        Returns:
            SpectralAnalysisResult with the feature series
        """
        context.report_progress("spectral", 0.0, "Computing spectrogram")
        series = self.analyze(context.y, context.sr, track_id=context.track_id)
        context.report_progress("spectral", 1.0, f"{series.n_frames} frames")
        return SpectralAnalysisResult(success=True, series=series)

    def analyze(self, y: np.ndarray, sr: int, track_id: Optional[str] = None) -> SpectralFeatureSeries:
        """
        Compute the full feature series.

        Args:
            y: Samples (n,) or (channels, n)
            sr: Sample rate of y
            track_id: Used for log context only

        Returns:
            SpectralFeatureSeries (empty when y is shorter than one frame)
        """
        cfg = self.config
        if sr != cfg.sample_rate:
            logger.debug(
                "Signal sample rate differs from config",
                data={"track_id": track_id, "sr": sr, "config_sr": cfg.sample_rate},
            )

        signal = preprocess_signal(y)
        frames = frame_signal(signal, cfg.frame_size, cfg.hop_size, self._window)
        if frames.shape[0] == 0:
            logger.info(
                "Signal shorter than one frame, returning empty series",
                data={"track_id": track_id, "n_samples": int(len(signal)), "frame_size": cfg.frame_size},
            )
            return SpectralFeatureSeries.empty(cfg, sample_rate=sr)

        spec = compute_spectrogram(frames, sr, return_phase=cfg.keep_phase)
        del frames
        S, freqs = spec.magnitude, spec.freqs
        mel_fb, chroma_fb = self._get_filterbanks(sr)

        # Flux doubles as onset strength
        flux = compute_flux(S)

        groups: Dict[str, Callable[[], Dict[str, Any]]] = {
            'basic': lambda: self._basic_features(S, freqs, sr, flux),
            'advanced': lambda: self._advanced_features(S, sr, mel_fb, chroma_fb),
            'energy': lambda: {'bands': compute_frequency_bands(S, sr)},
            'temporal': lambda: self._temporal_features(flux, sr),
            'harmonic': lambda: self._harmonic_features(S),
        }

        features: Dict[str, Any] = {}
        with ThreadPoolExecutor(max_workers=cfg.max_workers) as executor:
            futures = {name: executor.submit(fn) for name, fn in groups.items()}
            # Join in a fixed order so the series is assembled deterministically
            for name, future in futures.items():
                try:
                    features.update(future.result())
                except Exception as e:
                    raise SpectralAnalysisError(
                        f"Feature group '{name}' failed",
                        data={"group": name, "track_id": track_id},
                        cause=e,
                    ) from e

        statistics = compute_statistics([
            features['centroid'], features['rolloff'], features['flux'], features['spread'],
        ])

        series = SpectralFeatureSeries(
            statistics=statistics,
            sample_rate=sr,
            frame_size=cfg.frame_size,
            hop_size=cfg.hop_size,
            n_frames=spec.n_frames,
            phase=spec.phase,
            **features,
        ).freeze()

        logger.info("Spectral analysis complete", data={
            "track_id": track_id,
            "n_frames": series.n_frames,
            "tempo": series.tempo,
            "tempo_confidence": round(series.tempo_confidence, 3),
        })
        return series

    # ============== Feature Groups ==============

    def _basic_features(self, S: np.ndarray, freqs: np.ndarray, sr: int, flux: np.ndarray) -> Dict[str, Any]:
        centroid = compute_centroid(S, freqs)
        moments = compute_moments(S, freqs, centroid)
        return {
            'centroid': centroid,
            'rolloff': compute_rolloff(S, freqs),
            'flux': flux,
            'spread': moments.spread,
            'skewness': moments.skewness,
            'kurtosis': moments.kurtosis,
            'zero_crossing_rate': estimate_zero_crossing_rate(S, freqs, sr),
        }

    def _advanced_features(
        self,
        S: np.ndarray,
        sr: int,
        mel_fb: np.ndarray,
        chroma_fb: np.ndarray,
    ) -> Dict[str, Any]:
        chroma = compute_chroma(S, chroma_fb)
        return {
            'mfcc': compute_mfcc(S, mel_fb),
            'chroma': chroma,
            'tonnetz': compute_tonnetz(chroma),
            'contrast': compute_contrast(S, sr),
        }

    def _temporal_features(self, flux: np.ndarray, sr: int) -> Dict[str, Any]:
        cfg = self.config
        n_frames = len(flux)

        if not cfg.enable_onset_detection:
            return {
                'onset_strength': np.zeros(n_frames, dtype=np.float64),
                'tempo': float(cfg.default_tempo),
                'tempo_confidence': 0.0,
                'beat_spectrum': np.zeros(0, dtype=np.float64),
                'rhythm_patterns': np.zeros((0, BEATS_PER_BAR), dtype=np.float64),
            }

        onset = flux.copy()
        if cfg.enable_beat_tracking:
            tempo, confidence = estimate_tempo(onset, sr, cfg.hop_size, cfg.default_tempo)
            patterns = compute_rhythm_patterns(onset, tempo, sr, cfg.hop_size)
        else:
            tempo, confidence = float(cfg.default_tempo), 0.0
            patterns = np.zeros((0, BEATS_PER_BAR), dtype=np.float64)

        return {
            'onset_strength': onset,
            'tempo': float(tempo),
            'tempo_confidence': float(confidence),
            'beat_spectrum': compute_beat_spectrum(onset),
            'rhythm_patterns': patterns,
        }

    def _harmonic_features(self, S: np.ndarray) -> Dict[str, Any]:
        if not self.config.enable_harmonic_percussive:
            return {'harmonic_ratio': None}
        S_harmonic, S_percussive = compute_hpss(S)
        return {'harmonic_ratio': compute_harmonic_ratio(S_harmonic, S_percussive)}
