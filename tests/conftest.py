"""
Pytest configuration for mixlab tests.

Automatically adds project root to sys.path so that 'from mixlab...' imports work.
Defines markers and shared fixtures.
"""
import sys
import numpy as np
import pytest
from pathlib import Path
from typing import Tuple

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

SR = 44100
HOP = 512


# =============================================================================
# Pytest Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "invariant: Behavioural invariant tests")
    config.addinivalue_line("markers", "integration: Full pipeline tests on synthetic audio")
    config.addinivalue_line("markers", "slow: Slow tests (long synthetic signals)")


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return project root path."""
    return PROJECT_ROOT


@pytest.fixture
def silence_30s() -> Tuple[np.ndarray, int]:
    """30 seconds of digital silence at 44.1 kHz."""
    return np.zeros(30 * SR, dtype=np.float32), SR


@pytest.fixture
def sine_440() -> Tuple[np.ndarray, int]:
    """5 seconds of a pure 440 Hz tone."""
    t = np.arange(5 * SR, dtype=np.float64) / SR
    return (0.5 * np.sin(2 * np.pi * 440 * t)).astype(np.float32), SR


@pytest.fixture
def synthetic_audio_with_beats() -> Tuple[np.ndarray, int]:
    """Create synthetic audio with clear beat pattern (128 BPM, 20 sec)."""
    np.random.seed(42)
    duration = 20.0
    tempo = 128.0
    beat_duration = 60.0 / tempo

    t = np.arange(int(SR * duration), dtype=np.float64) / SR
    y = np.zeros_like(t)

    # Add kicks at beat positions
    decay_samples = int(0.1 * SR)
    for i in range(int(duration / beat_duration)):
        beat_sample = int(i * beat_duration * SR)
        end_sample = min(beat_sample + decay_samples, len(y))
        window_len = end_sample - beat_sample
        y[beat_sample:end_sample] += (
            np.exp(-np.arange(window_len) / (0.02 * SR)) *
            np.sin(2 * np.pi * 100 * np.arange(window_len) / SR)
        )

    y += 0.1 * np.sin(2 * np.pi * 440 * t)
    y += 0.01 * np.random.randn(len(t))
    return y.astype(np.float32), SR


@pytest.fixture
def short_signal() -> Tuple[np.ndarray, int]:
    """Shorter than one 2048-sample frame."""
    return np.random.RandomState(0).randn(1000).astype(np.float32) * 0.1, SR


# =============================================================================
# Synthetic Feature Builders
# =============================================================================

@pytest.fixture
def make_series():
    """
    Factory for a SpectralFeatureSeries with controlled band energies.

    Bands default to 1.0, chroma to a single pitch class and onset strength to
    zeros, so harmonic and rhythmic stability are 1 everywhere.
    """
    from mixlab.common.primitives.energy import FrequencyBands
    from mixlab.common.primitives.rhythm import BEATS_PER_BAR
    from mixlab.modules.analysis.tasks.spectral_analysis import SpectralFeatureSeries

    def _make(n_frames: int, **bands) -> SpectralFeatureSeries:
        def band(name):
            values = bands.get(name)
            if values is None:
                return np.ones(n_frames, dtype=np.float64)
            return np.asarray(values, dtype=np.float64)

        zeros = np.zeros(n_frames, dtype=np.float64)
        # Pure C in every frame: cosine similarity between frames is exactly 1
        chroma = np.zeros((12, n_frames))
        chroma[0] = 1.0
        return SpectralFeatureSeries(
            centroid=np.full(n_frames, 1000.0),
            rolloff=np.full(n_frames, 4000.0),
            flux=zeros.copy(),
            spread=zeros.copy(),
            skewness=zeros.copy(),
            kurtosis=zeros.copy(),
            zero_crossing_rate=zeros.copy(),
            mfcc=np.zeros((13, n_frames)),
            chroma=chroma,
            tonnetz=np.zeros((6, n_frames)),
            contrast=np.zeros((6, n_frames)),
            bands=FrequencyBands(
                sub_bass=band('sub_bass'),
                bass=band('bass'),
                low_mid=band('low_mid'),
                mid=band('mid'),
                high_mid=band('high_mid'),
                presence=band('presence'),
                brilliance=band('brilliance'),
            ),
            onset_strength=zeros.copy(),
            tempo=128.0,
            tempo_confidence=0.0,
            beat_spectrum=np.zeros(0),
            rhythm_patterns=np.zeros((0, BEATS_PER_BAR)),
            harmonic_ratio=zeros.copy(),
            sample_rate=SR,
            hop_size=HOP,
            n_frames=n_frames,
        )

    return _make


@pytest.fixture
def make_curve():
    """Factory for an EnergyCurve on the default 512-sample frame grid."""
    from mixlab.modules.analysis.tasks.mood_analysis import EnergyCurve

    def _make(energy) -> EnergyCurve:
        energy = np.asarray(energy, dtype=np.float64)
        return EnergyCurve(
            timestamps=np.arange(len(energy), dtype=np.float64) * HOP / SR,
            energy=energy,
            smoothed=energy.copy(),
            avg_energy=float(np.mean(energy)) if len(energy) else 0.0,
            max_energy=float(np.max(energy)) if len(energy) else 0.0,
            min_energy=float(np.min(energy)) if len(energy) else 0.0,
        )

    return _make


@pytest.fixture
def make_point():
    """Factory for a MixPoint with sensible defaults."""
    from mixlab.modules.analysis.tasks.mix_point_detection import (
        MixPoint, MixPointType, PointCharacteristics, Complexity,
    )

    def _make(point_type: str = "intro", timestamp: float = 0.0, energy: float = 0.5,
              harmonic: float = 1.0, rhythmic: float = 1.0, suitability: float = 0.9,
              complexity: str = "minimal", mood: str = "neutral", vocals: bool = False) -> MixPoint:
        return MixPoint(
            timestamp=timestamp,
            type=MixPointType(point_type),
            confidence=0.8,
            energy=energy,
            harmonic_stability=harmonic,
            rhythmic_stability=rhythmic,
            transition_suitability=suitability,
            characteristics=PointCharacteristics(
                has_vocals=vocals,
                complexity=Complexity(complexity),
                mood=mood,
            ),
        )

    return _make
