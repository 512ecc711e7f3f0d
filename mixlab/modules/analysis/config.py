"""
Analysis module configuration.

Centralized configuration for all analysis tasks and pipelines.
Supports resolution presets for the spectral front end.
"""

from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import Any, Dict, Optional

from mixlab.core.errors import ConfigurationError


class WindowType(Enum):
    """Analysis window applied to every frame."""
    HANN = "hann"
    HAMMING = "hamming"
    BLACKMAN = "blackman"
    KAISER = "kaiser"


class Resolution(Enum):
    """Spectral resolution presets (frame / hop sizes)."""
    LOW = "low"        # Fast preview
    MEDIUM = "medium"  # Default analysis
    HIGH = "high"      # Fine time-frequency grid


@dataclass
class SpectralConfig:
    """Configuration for the spectral analyzer."""
    sample_rate: int = 44100
    frame_size: int = 2048
    hop_size: int = 512
    window_type: WindowType = WindowType.HANN
    mel_bands: int = 128
    chroma_bins: int = 12
    min_freq: float = 80.0
    max_freq: float = 11025.0
    enable_harmonic_percussive: bool = True
    enable_onset_detection: bool = True
    enable_beat_tracking: bool = True
    # Keep the STFT phase on the series (float32, same shape as the magnitude)
    keep_phase: bool = False
    default_tempo: float = 128.0
    # Feature groups computed concurrently
    max_workers: int = 5

    def __post_init__(self):
        if isinstance(self.window_type, str):
            try:
                self.window_type = WindowType(self.window_type.lower())
            except ValueError:
                raise ConfigurationError(
                    f"Unsupported window type: {self.window_type}",
                    data={"window_type": self.window_type,
                          "supported": [w.value for w in WindowType]},
                )
        self.validate()

    def validate(self) -> None:
        """
        Check sizes and frequency bounds.

        Raises:
            ConfigurationError: on the first inconsistent value
        """
        for name in ("sample_rate", "frame_size", "hop_size", "mel_bands", "chroma_bins", "max_workers"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(
                    f"{name} must be positive",
                    data={name: getattr(self, name)},
                )

        if self.hop_size > self.frame_size:
            raise ConfigurationError(
                "hop_size must not exceed frame_size",
                data={"frame_size": self.frame_size, "hop_size": self.hop_size},
            )

        if self.min_freq < 0 or self.min_freq >= self.max_freq:
            raise ConfigurationError(
                "min_freq must be in [0, max_freq)",
                data={"min_freq": self.min_freq, "max_freq": self.max_freq},
            )

        if self.max_freq > self.sample_rate / 2:
            raise ConfigurationError(
                "max_freq must not exceed the Nyquist frequency",
                data={"max_freq": self.max_freq, "nyquist": self.sample_rate / 2},
            )

        if self.default_tempo <= 0:
            raise ConfigurationError(
                "default_tempo must be positive",
                data={"default_tempo": self.default_tempo},
            )

    @property
    def frame_rate(self) -> float:
        """Analysis frames per second."""
        return self.sample_rate / self.hop_size

    @classmethod
    def for_resolution(cls, resolution: Resolution, **overrides) -> 'SpectralConfig':
        """Get config preset for a spectral resolution."""
        presets = {
            Resolution.LOW: {"frame_size": 1024, "hop_size": 512},
            Resolution.MEDIUM: {"frame_size": 2048, "hop_size": 512},
            Resolution.HIGH: {"frame_size": 4096, "hop_size": 256},
        }
        params = dict(presets[resolution])
        params.update(overrides)
        return cls(**params)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["window_type"] = self.window_type.value
        return data


@dataclass
class MoodConfig:
    """Configuration for energy curve and mood analysis."""
    smoothing_window: int = 5
    buildup_window_sec: float = 5.0
    buildup_min_rise: float = 0.2
    drop_window_sec: float = 2.0
    drop_min_fall: float = 0.3
    # Abort a rise/fall scan when the curve moves this far against it
    scan_tolerance: float = 0.1
    plateau_min_sec: float = 8.0
    plateau_tolerance: float = 0.1
    peak_window_sec: float = 2.0
    peak_min_prominence: float = 0.2
    segment_duration_sec: float = 10.0
    beat_interval_sec: float = 0.5
    secondary_mood_threshold: float = 0.2

    def __post_init__(self):
        if self.smoothing_window <= 0:
            raise ConfigurationError("smoothing_window must be positive",
                                     data={"smoothing_window": self.smoothing_window})
        if self.segment_duration_sec <= 0 or self.beat_interval_sec <= 0:
            raise ConfigurationError(
                "segment_duration_sec and beat_interval_sec must be positive",
                data={"segment_duration_sec": self.segment_duration_sec,
                      "beat_interval_sec": self.beat_interval_sec},
            )


@dataclass
class MixPointConfig:
    """Configuration for mix-point detection."""
    intro_search_sec: float = 60.0
    outro_search_sec: float = 60.0
    intro_low_energy: float = 0.4
    intro_jump_energy: float = 0.6
    intro_min_frames: int = 20
    intro_min_low_frames: int = 10
    outro_decay_ratio: float = 0.7
    outro_fallback_sec: float = 30.0
    outro_fallback_min_duration: float = 90.0
    min_section_duration_sec: float = 8.0
    drop_lookback_frames: int = 10
    drop_dedupe_sec: float = 8.0
    instrumental_window_frames: int = 100
    instrumental_step_frames: int = 50
    harmonic_context_frames: int = 10
    rhythmic_context_frames: int = 20
    # Minimum window duration: window_beats at reference_bpm
    reference_bpm: float = 128.0
    window_beats: int = 16
    min_window_confidence: float = 0.5
    max_optimal_points: int = 3

    @property
    def min_window_sec(self) -> float:
        return self.window_beats * 60.0 / self.reference_bpm


@dataclass
class TransitionConfig:
    """Configuration for transition suggestions."""
    # Beats -> seconds conversion uses a fixed reference tempo
    reference_bpm: float = 128.0
    default_tempo: float = 128.0
    phrase_beats: int = 16
    batch_points: int = 2
    max_alternatives: int = 2


@dataclass
class AnalysisConfig:
    """Configuration for the full track analysis pipeline."""
    spectral: SpectralConfig = field(default_factory=SpectralConfig)
    mood: MoodConfig = field(default_factory=MoodConfig)
    mix_points: MixPointConfig = field(default_factory=MixPointConfig)
    transitions: TransitionConfig = field(default_factory=TransitionConfig)
    # Concurrent sub-extractors per track
    max_workers: int = 4

    @classmethod
    def for_resolution(cls, resolution: Resolution) -> 'AnalysisConfig':
        """Get config preset for a spectral resolution."""
        return cls(spectral=SpectralConfig.for_resolution(resolution))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'AnalysisConfig':
        """
        Build config from a nested dict (e.g. a YAML section).

        Unknown keys raise ConfigurationError so typos fail fast.
        """
        data = dict(data or {})
        sections = {
            "spectral": SpectralConfig,
            "mood": MoodConfig,
            "mix_points": MixPointConfig,
            "transitions": TransitionConfig,
        }

        kwargs: Dict[str, Any] = {}
        for key, section_cls in sections.items():
            section = dict(data.pop(key, None) or {})
            if key == "spectral" and "resolution" in section:
                resolution = _parse_resolution(section.pop("resolution"))
                kwargs[key] = _build_section(section_cls, section, key, resolution=resolution)
            else:
                kwargs[key] = _build_section(section_cls, section, key)

        if "max_workers" in data:
            kwargs["max_workers"] = int(data.pop("max_workers"))

        if data:
            raise ConfigurationError(
                "Unknown analysis config keys",
                data={"keys": sorted(data)},
            )
        return cls(**kwargs)

    @classmethod
    def from_config(cls, config) -> 'AnalysisConfig':
        """Build config from a YAML-backed Config object."""
        return cls.from_dict({
            "spectral": config.spectral,
            "mood": config.mood,
            "mix_points": config.mix_points,
            "transitions": config.transitions,
            "max_workers": config.get("pipeline.max_workers", 4),
        })


def _parse_resolution(value: Any) -> Resolution:
    try:
        return Resolution(str(value).lower())
    except ValueError:
        raise ConfigurationError(
            f"Unknown resolution: {value}",
            data={"supported": [r.value for r in Resolution]},
        )


def _build_section(section_cls, values: Dict[str, Any], section: str, resolution: Optional[Resolution] = None):
    known = {f.name for f in fields(section_cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in '{section}' config",
            data={"section": section, "keys": unknown},
        )
    if resolution is not None:
        return section_cls.for_resolution(resolution, **values)
    return section_cls(**values)


# Default configurations
DEFAULT_SPECTRAL = SpectralConfig()
DEFAULT_ANALYSIS = AnalysisConfig()
