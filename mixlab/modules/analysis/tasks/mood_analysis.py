"""
Mood Analysis Task - Energy curve, mood classification, emotional descriptors.

Combines the spectral series with time-domain features of the raw signal:
- Perceptual energy curve (RMS, peak, band energies, flux), normalized to [0, 1]
- Energy events on the curve: buildups, drops, plateaus, peaks
- Rule-based mood scoring over a fixed mood taxonomy
- Valence / arousal / dominance
- Emotional texture and genre-emotional markers
- Fixed-length mood segments over the whole track

Any missing spectral sub-feature falls back to a neutral default instead of
failing the analysis. An empty curve yields a neutral profile.
"""

import numpy as np
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Any, Optional, List

from .base import AudioContext, TaskResult, BaseTask, freeze
from .spectral_analysis import SpectralFeatureSeries
from mixlab.common.logging import get_logger
from mixlab.common.primitives.stft import to_mono, frames_to_time
from mixlab.common.primitives.energy import compute_time_domain_energy, combine_energy
from mixlab.common.primitives.filtering import smooth_moving_average, clamp01
from mixlab.common.primitives.dynamics import (
    BuildupSegment,
    DropSegment,
    PlateauSegment,
    PeakSegment,
    detect_buildups,
    detect_drops,
    detect_plateaus,
    detect_energy_peaks,
)
from mixlab.common.primitives.harmonic import (
    average_chroma,
    compute_chroma_stability,
    major_key_strength,
    minor_key_strength,
)
from mixlab.common.primitives.rhythm import compute_rhythm_complexity, compute_rhythm_regularity
from mixlab.modules.analysis.config import MoodConfig, SpectralConfig

logger = get_logger(__name__)

# Centroid normalization reference (Hz)
CENTROID_REFERENCE_HZ = 11025.0
BRIGHTNESS_REFERENCE_HZ = 8000.0

PEAK_MOMENT_ENERGY = 0.7
PEAK_MOMENT_PROMINENCE = 0.3


class MoodType(Enum):
    """Mood taxonomy."""
    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    CALM = "calm"
    ENERGETIC = "energetic"
    MELANCHOLIC = "melancholic"
    EUPHORIC = "euphoric"
    AGGRESSIVE = "aggressive"
    PEACEFUL = "peaceful"
    TENSE = "tense"
    ROMANTIC = "romantic"
    MYSTERIOUS = "mysterious"
    UPLIFTING = "uplifting"
    DARK = "dark"
    PLAYFUL = "playful"
    SERIOUS = "serious"
    NOSTALGIC = "nostalgic"
    FUTURISTIC = "futuristic"
    DRAMATIC = "dramatic"
    # No rule fired / segment between calm and energetic
    NEUTRAL = "neutral"


SCORED_MOODS = [m for m in MoodType if m is not MoodType.NEUTRAL]


# ============== Energy Curve ==============

@dataclass
class EnergyCurve:
    """
    Normalized energy over time with detected energy events.

    energy is canonical; smoothed is the width-5 moving average used by the
    rise/fall/plateau detectors. Peaks are found on the raw curve.
    """
    timestamps: np.ndarray
    energy: np.ndarray
    smoothed: np.ndarray
    avg_energy: float = 0.0
    max_energy: float = 0.0
    min_energy: float = 0.0
    std_energy: float = 0.0
    buildups: List[BuildupSegment] = field(default_factory=list)
    drops: List[DropSegment] = field(default_factory=list)
    plateaus: List[PlateauSegment] = field(default_factory=list)
    peaks: List[PeakSegment] = field(default_factory=list)
    rhythm_energy_correlation: float = 0.0
    beat_synced_energy: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float64))

    @property
    def n_frames(self) -> int:
        return len(self.energy)

    @property
    def is_empty(self) -> bool:
        return len(self.energy) == 0

    @property
    def duration(self) -> float:
        """Timestamp of the last frame (0 for an empty curve)."""
        return float(self.timestamps[-1]) if len(self.timestamps) else 0.0

    def energy_at(self, time_sec: float) -> float:
        """Energy at the timestamp nearest to time_sec (0.5 for an empty curve)."""
        if self.is_empty:
            return 0.5
        idx = int(np.argmin(np.abs(self.timestamps - time_sec)))
        return float(self.energy[idx])

    def energy_at_times(self, times: np.ndarray) -> np.ndarray:
        """
        Vectorized energy_at: nearest timestamp per query, the earlier one
        on ties. All 0.5 for an empty curve.
        """
        times = np.asarray(times, dtype=np.float64)
        if self.is_empty:
            return np.full(times.shape, 0.5, dtype=np.float64)

        right = np.clip(np.searchsorted(self.timestamps, times, side="left"), 0, len(self.timestamps) - 1)
        left = np.clip(right - 1, 0, len(self.timestamps) - 1)
        use_left = np.abs(times - self.timestamps[left]) <= np.abs(self.timestamps[right] - times)
        return self.energy[np.where(use_left, left, right)].astype(np.float64)

    @classmethod
    def empty(cls) -> 'EnergyCurve':
        zeros = np.zeros(0, dtype=np.float64)
        return cls(
            timestamps=freeze(zeros.copy()),
            energy=freeze(zeros.copy()),
            smoothed=freeze(zeros.copy()),
            beat_synced_energy=freeze(zeros.copy()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'n_frames': self.n_frames,
            'avg_energy': float(self.avg_energy),
            'max_energy': float(self.max_energy),
            'min_energy': float(self.min_energy),
            'std_energy': float(self.std_energy),
            'buildups': [b.to_dict() for b in self.buildups],
            'drops': [d.to_dict() for d in self.drops],
            'plateaus': [p.to_dict() for p in self.plateaus],
            'peaks': [p.to_dict() for p in self.peaks],
            'rhythm_energy_correlation': float(self.rhythm_energy_correlation),
            'beat_synced_energy': [float(e) for e in self.beat_synced_energy],
        }


# ============== Mood Profile ==============

@dataclass(frozen=True)
class EmotionalTexture:
    """Timbre-level emotional descriptors, each in [0, 1]."""
    warmth: float = 0.5
    brightness: float = 0.5
    roughness: float = 0.5
    tension: float = 0.5
    complexity: float = 0.5

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class GenreEmotionalMarkers:
    """Genre-level emotional markers, each in [0, 1]."""
    danceable: float = 0.0
    aggressive: float = 0.0
    melancholic: float = 0.0
    euphoric: float = 0.0
    atmospheric: float = 0.0
    dramatic: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class MoodSegment:
    """Mood of a fixed-length time window."""
    start_time: float
    end_time: float
    mood: MoodType
    confidence: float
    intensity: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start_time': self.start_time,
            'end_time': self.end_time,
            'mood': self.mood.value,
            'confidence': self.confidence,
            'intensity': self.intensity,
        }


@dataclass
class MoodFeatures:
    """
    Descriptors the mood rules are keyed on.

    None marks a descriptor whose spectral source was unavailable.
    """
    avg_energy: float = 0.0
    std_energy: float = 0.0
    dynamic_range: float = 0.0
    buildup_rate: float = 0.0
    drop_rate: float = 0.0
    centroid_mean: Optional[float] = None    # normalized by 11025 Hz
    centroid_std: Optional[float] = None     # normalized by 11025 Hz
    harmonic_mean: Optional[float] = None
    chroma_mean: Optional[np.ndarray] = None
    chroma_stability: Optional[float] = None
    rhythm_complexity: Optional[float] = None
    tempo_confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['chroma_mean'] = None if self.chroma_mean is None else [float(v) for v in self.chroma_mean]
        return data


@dataclass
class MoodProfile:
    """
    Track-level mood description.

    valence is in [-1, 1]; arousal, dominance and confidence in [0, 1].
    """
    primary_mood: MoodType = MoodType.NEUTRAL
    secondary_mood: Optional[MoodType] = None
    confidence: float = 0.0
    valence: float = 0.0
    arousal: float = 0.0
    dominance: float = 0.0
    texture: EmotionalTexture = field(default_factory=EmotionalTexture)
    markers: GenreEmotionalMarkers = field(default_factory=GenreEmotionalMarkers)
    segments: List[MoodSegment] = field(default_factory=list)
    dynamic_range: float = 0.0
    energy_variability: float = 0.0
    peak_energy_moments: List[float] = field(default_factory=list)
    mood_probabilities: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def neutral(cls) -> 'MoodProfile':
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'primary_mood': self.primary_mood.value,
            'secondary_mood': self.secondary_mood.value if self.secondary_mood else None,
            'confidence': float(self.confidence),
            'valence': float(self.valence),
            'arousal': float(self.arousal),
            'dominance': float(self.dominance),
            'texture': self.texture.to_dict(),
            'markers': self.markers.to_dict(),
            'segments': [s.to_dict() for s in self.segments],
            'dynamic_range': float(self.dynamic_range),
            'energy_variability': float(self.energy_variability),
            'peak_energy_moments': list(self.peak_energy_moments),
            'mood_probabilities': dict(self.mood_probabilities),
        }


@dataclass
class MoodAnalysisResult(TaskResult):
    """
    Result of mood / energy analysis.

    Attributes:
        energy_curve: Normalized energy over time with events
        mood: Mood profile
        features: Descriptors used for mood scoring
    """
    # Inherited from TaskResult
    success: bool = True
    task_name: str = "MoodAnalysis"
    processing_time_sec: float = 0.0
    error: Optional[str] = None

    energy_curve: EnergyCurve = field(default_factory=EnergyCurve.empty)
    mood: MoodProfile = field(default_factory=MoodProfile.neutral)
    features: MoodFeatures = field(default_factory=MoodFeatures)

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base.update({
            'energy_curve': self.energy_curve.to_dict(),
            'mood': self.mood.to_dict(),
            'features': self.features.to_dict(),
        })
        return base


# ============== Mood Rules ==============

def classify_mood(features: MoodFeatures) -> Dict[MoodType, float]:
    """
    Score every mood with fixed rules and normalize to probabilities.

    Rules keyed on a missing descriptor are skipped. All scores stay 0 when
    no rule fires.
    """
    scores = {mood: 0.0 for mood in SCORED_MOODS}

    def add(**weights):
        for name, weight in weights.items():
            scores[MoodType(name)] += weight

    # Energy level
    if features.avg_energy > 0.7:
        add(energetic=0.8, euphoric=0.6, uplifting=0.5)
    elif features.avg_energy < 0.3:
        add(calm=0.7, peaceful=0.6, melancholic=0.4)

    # Dynamic range
    if features.dynamic_range > 0.6:
        add(dramatic=0.7, tense=0.5)

    # Brightness
    if features.centroid_mean is not None:
        if features.centroid_mean > 0.6:
            add(happy=0.6, playful=0.5, uplifting=0.7)
        elif features.centroid_mean < 0.4:
            add(dark=0.6, mysterious=0.5, serious=0.4)

    # Harmonic content
    if features.harmonic_mean is not None:
        if features.harmonic_mean > 0.7:
            add(romantic=0.6, peaceful=0.4)
        elif features.harmonic_mean < 0.4:
            add(aggressive=0.7, tense=0.5)

    total = sum(scores.values())
    if total > 0:
        scores = {mood: score / total for mood, score in scores.items()}
    return scores


def compute_valence(
    harmonic_mean: Optional[float],
    centroid_hz: Optional[float],
    major_strength: Optional[float],
) -> float:
    """
    Pleasantness in [-1, 1]:
    (h - .5) * .4 + (centroid / 11025 - .5) * .3 + (major - .5) * .3,
    each term skipped when its input is missing.
    """
    valence = 0.0
    if harmonic_mean is not None:
        valence += (harmonic_mean - 0.5) * 0.4
    if centroid_hz is not None:
        valence += (centroid_hz / CENTROID_REFERENCE_HZ - 0.5) * 0.3
    if major_strength is not None:
        valence += (major_strength - 0.5) * 0.3
    return float(max(-1.0, min(1.0, valence)))


def _mean_or_none(values: Optional[np.ndarray]) -> Optional[float]:
    if values is None or len(values) == 0:
        return None
    return float(np.mean(values))


class MoodAnalysisTask(BaseTask):
    """
    Derive the energy curve and mood profile of a track.

    Pure business logic, calls NO other Tasks. The spectral series must be
    provided by the Pipeline via execute_with_data() or in
    context.metadata['spectral'].
    """

    def __init__(self, config: Optional[MoodConfig] = None, spectral_config: Optional[SpectralConfig] = None):
        """
        Initialize mood analysis task.

        Args:
            config: Mood / energy configuration
            spectral_config: Frame grid used when no spectral series is given
        """
        super().__init__()
        self.config = config or MoodConfig()
        self.spectral_config = spectral_config or SpectralConfig()

    @property
    def name(self) -> str:
        return "MoodAnalysis"

    def execute(self, context: AudioContext) -> MoodAnalysisResult:
        """
        Standard execute - reads the spectral series from context.metadata.

        Prefer execute_with_data() for explicit data passing.
        """
        spectral = context.metadata.get('spectral')
        context.report_progress("mood", 0.0, "Computing energy curve")
        result = self.execute_with_data(context.y, context.sr, spectral, track_id=context.track_id)
        context.report_progress("mood", 1.0, result.mood.primary_mood.value)
        return result

    def execute_with_data(
        self,
        y: np.ndarray,
        sr: int,
        spectral: Optional[SpectralFeatureSeries],
        track_id: Optional[str] = None,
    ) -> MoodAnalysisResult:
        """
        Analyze energy and mood.

        Args:
            y: Raw samples (mono or multi-channel)
            sr: Sample rate
            spectral: Spectral series of the same signal (None = all
                spectral descriptors missing)
            track_id: Used for log context only

        Returns:
            MoodAnalysisResult
        """
        curve = self.compute_energy_curve(y, sr, spectral)

        if curve.is_empty:
            logger.info("Empty energy curve, returning neutral mood", data={"track_id": track_id})
            return MoodAnalysisResult(success=True, energy_curve=curve, mood=MoodProfile.neutral())

        features = self.extract_mood_features(curve, spectral)
        mood = self.build_profile(curve, spectral, features, hop_size=self._hop_size(spectral), sr=sr)

        logger.info("Mood analysis complete", data={
            "track_id": track_id,
            "primary_mood": mood.primary_mood.value,
            "confidence": round(mood.confidence, 3),
            "buildups": len(curve.buildups),
            "drops": len(curve.drops),
            "peaks": len(curve.peaks),
        })
        return MoodAnalysisResult(success=True, energy_curve=curve, mood=mood, features=features)

    def _hop_size(self, spectral: Optional[SpectralFeatureSeries]) -> int:
        return spectral.hop_size if spectral is not None else self.spectral_config.hop_size

    def _frame_size(self, spectral: Optional[SpectralFeatureSeries]) -> int:
        return spectral.frame_size if spectral is not None else self.spectral_config.frame_size

    # ============== Energy Curve ==============

    def compute_energy_curve(
        self,
        y: np.ndarray,
        sr: int,
        spectral: Optional[SpectralFeatureSeries] = None,
    ) -> EnergyCurve:
        """
        Perceptual energy curve with events.

        Time-domain features use the mono mix of the raw (not pre-emphasized)
        signal on the spectral frame grid.
        """
        cfg = self.config
        frame_size = self._frame_size(spectral)
        hop_size = self._hop_size(spectral)

        time_domain = compute_time_domain_energy(to_mono(y), frame_size, hop_size)
        if time_domain.n_frames == 0:
            return EnergyCurve.empty()

        bands = spectral.bands if spectral is not None and spectral.bands.n_frames > 0 else None
        energy = combine_energy(time_domain, bands)
        timestamps = frames_to_time(len(energy), sr, hop_size)
        smoothed = smooth_moving_average(energy, cfg.smoothing_window)

        frame_dt = hop_size / sr
        buildup_frames = int(np.floor(cfg.buildup_window_sec / frame_dt))
        drop_frames = int(np.floor(cfg.drop_window_sec / frame_dt))
        plateau_frames = int(np.floor(cfg.plateau_min_sec / frame_dt))
        peak_frames = int(np.floor(cfg.peak_window_sec / frame_dt))

        onset = spectral.onset_strength if spectral is not None else None

        return EnergyCurve(
            timestamps=freeze(timestamps),
            energy=freeze(energy),
            smoothed=freeze(smoothed),
            avg_energy=float(np.mean(energy)),
            max_energy=float(np.max(energy)),
            min_energy=float(np.min(energy)),
            std_energy=float(np.std(energy)),
            buildups=detect_buildups(timestamps, smoothed, buildup_frames,
                                     cfg.buildup_min_rise, cfg.scan_tolerance),
            drops=detect_drops(timestamps, smoothed, drop_frames,
                               cfg.drop_min_fall, cfg.scan_tolerance),
            plateaus=detect_plateaus(timestamps, smoothed, plateau_frames, cfg.plateau_tolerance),
            peaks=detect_energy_peaks(timestamps, energy, peak_frames, cfg.peak_min_prominence),
            rhythm_energy_correlation=self._rhythm_energy_correlation(energy, onset),
            beat_synced_energy=freeze(self._beat_synced_energy(energy, timestamps)),
        )

    @staticmethod
    def _rhythm_energy_correlation(energy: np.ndarray, onset: Optional[np.ndarray]) -> float:
        """Mean of energy * onset over the common length; 0 without onsets."""
        if onset is None or len(onset) == 0:
            return 0.0
        n = min(len(energy), len(onset))
        return float(np.dot(energy[:n], onset[:n]) / n)

    def _beat_synced_energy(self, energy: np.ndarray, timestamps: np.ndarray) -> np.ndarray:
        """Energy at the first timestamp >= t for t = 0, interval, ... < last timestamp."""
        grid = np.arange(0.0, timestamps[-1], self.config.beat_interval_sec)
        indices = np.searchsorted(timestamps, grid, side="left")
        indices = indices[indices < len(timestamps)]
        return energy[indices].astype(np.float64)

    # ============== Mood ==============

    def extract_mood_features(
        self,
        curve: EnergyCurve,
        spectral: Optional[SpectralFeatureSeries],
    ) -> MoodFeatures:
        """Collect the descriptors the mood rules are keyed on."""
        duration = curve.duration or 1.0
        features = MoodFeatures(
            avg_energy=curve.avg_energy,
            std_energy=curve.std_energy,
            dynamic_range=curve.max_energy - curve.min_energy,
            buildup_rate=len(curve.buildups) / duration,
            drop_rate=len(curve.drops) / duration,
        )
        if spectral is None:
            return features

        if len(spectral.centroid):
            features.centroid_mean = float(np.mean(spectral.centroid)) / CENTROID_REFERENCE_HZ
            features.centroid_std = float(np.std(spectral.centroid)) / CENTROID_REFERENCE_HZ

        features.harmonic_mean = _mean_or_none(spectral.harmonic_ratio)

        chroma_mean = average_chroma(spectral.chroma)
        if chroma_mean is not None:
            features.chroma_mean = chroma_mean
            features.chroma_stability = compute_chroma_stability(spectral.chroma)

        if len(spectral.rhythm_patterns):
            features.rhythm_complexity = compute_rhythm_complexity(spectral.rhythm_patterns)

        features.tempo_confidence = float(spectral.tempo_confidence)
        return features

    def build_profile(
        self,
        curve: EnergyCurve,
        spectral: Optional[SpectralFeatureSeries],
        features: MoodFeatures,
        hop_size: int,
        sr: int,
    ) -> MoodProfile:
        """Assemble the mood profile from the curve and mood descriptors."""
        probabilities = classify_mood(features)
        ranked = sorted(probabilities.items(), key=lambda item: item[1], reverse=True)

        if ranked[0][1] > 0:
            primary, confidence = ranked[0]
            runner_up, runner_up_p = ranked[1]
            secondary = runner_up if runner_up_p > self.config.secondary_mood_threshold else None
        else:
            primary, confidence, secondary = MoodType.NEUTRAL, 0.0, None

        major = major_key_strength(features.chroma_mean) if features.chroma_mean is not None else None
        centroid_hz = None if features.centroid_mean is None else features.centroid_mean * CENTROID_REFERENCE_HZ
        bass_mean = None
        if spectral is not None and spectral.bands.n_frames > 0:
            bass_mean = float(np.mean(spectral.bands.bass))

        dominance = curve.avg_energy * 0.6
        if bass_mean is not None:
            dominance += bass_mean * 0.4

        return MoodProfile(
            primary_mood=primary,
            secondary_mood=secondary,
            confidence=float(confidence),
            valence=compute_valence(features.harmonic_mean, centroid_hz, major),
            arousal=float(min(1.0, curve.avg_energy + curve.std_energy * 0.5)),
            dominance=float(min(1.0, dominance)),
            texture=self._emotional_texture(spectral),
            markers=self._genre_markers(curve, spectral, features, major),
            segments=self._mood_segments(curve, hop_size, sr),
            dynamic_range=float(curve.max_energy - curve.min_energy),
            energy_variability=float(curve.std_energy),
            peak_energy_moments=[
                p.time for p in curve.peaks
                if p.energy > PEAK_MOMENT_ENERGY and p.prominence > PEAK_MOMENT_PROMINENCE
            ],
            mood_probabilities={mood.value: float(p) for mood, p in probabilities.items()},
        )

    def _emotional_texture(self, spectral: Optional[SpectralFeatureSeries]) -> EmotionalTexture:
        if spectral is None:
            return EmotionalTexture()

        warmth = brightness = roughness = tension = complexity = 0.5

        if spectral.bands.n_frames > 0:
            low_mid = float(np.sum(spectral.bands.low_mid))
            total = float(np.sum(spectral.bands.to_array()))
            if total > 0:
                warmth = min(1.0, low_mid / total * 3)

        if len(spectral.centroid):
            brightness = min(1.0, float(np.mean(spectral.centroid)) / BRIGHTNESS_REFERENCE_HZ)

        if len(spectral.flux):
            roughness = min(1.0, float(np.std(spectral.flux)) * 2)

        harmonic = _mean_or_none(spectral.harmonic_ratio)
        if harmonic is not None:
            tension = min(1.0, (1 - harmonic) * 1.2)

        if spectral.mfcc.shape[1] > 0:
            # Mean per-coefficient std over time; a single frame has no variation
            complexity = 0.0
            if spectral.mfcc.shape[1] >= 2:
                complexity = min(1.0, float(np.mean(np.std(spectral.mfcc, axis=1))))

        return EmotionalTexture(
            warmth=clamp01(warmth),
            brightness=clamp01(brightness),
            roughness=clamp01(roughness),
            tension=clamp01(tension),
            complexity=clamp01(complexity),
        )

    def _genre_markers(
        self,
        curve: EnergyCurve,
        spectral: Optional[SpectralFeatureSeries],
        features: MoodFeatures,
        major: Optional[float],
    ) -> GenreEmotionalMarkers:
        harmonic = features.harmonic_mean

        danceable = 0.0
        if spectral is not None and len(spectral.rhythm_patterns):
            danceable = compute_rhythm_regularity(spectral.rhythm_patterns) * curve.avg_energy

        aggressive = (1 - (harmonic if harmonic is not None else 0.5)) * curve.max_energy

        melancholic = 0.0
        if features.chroma_mean is not None:
            melancholic = minor_key_strength(features.chroma_mean) * (1 - curve.avg_energy)

        euphoric = 0.0
        if harmonic is not None and major is not None:
            euphoric = harmonic * major * curve.avg_energy

        atmospheric = (harmonic if harmonic is not None else 0.0) * (1 - curve.std_energy)
        dramatic = curve.std_energy * (curve.max_energy - curve.min_energy)

        return GenreEmotionalMarkers(
            danceable=clamp01(danceable),
            aggressive=clamp01(aggressive),
            melancholic=clamp01(melancholic),
            euphoric=clamp01(euphoric),
            atmospheric=clamp01(atmospheric),
            dramatic=clamp01(dramatic),
        )

    def _mood_segments(self, curve: EnergyCurve, hop_size: int, sr: int) -> List[MoodSegment]:
        """Fixed-length windows from 0 to the last timestamp, classified by mean energy."""
        segment_sec = self.config.segment_duration_sec
        frame_dt = hop_size / sr
        total = curve.duration

        segments: List[MoodSegment] = []
        start = 0.0
        while start < total:
            end = min(start + segment_sec, total)
            window = curve.energy[int(np.floor(start / frame_dt)):int(np.floor(end / frame_dt))]
            intensity = float(np.mean(window)) if len(window) else 0.0

            if intensity > 0.7:
                mood, confidence = MoodType.ENERGETIC, 0.8
            elif intensity < 0.3:
                mood, confidence = MoodType.CALM, 0.7
            else:
                mood, confidence = MoodType.NEUTRAL, 0.6

            segments.append(MoodSegment(
                start_time=float(start),
                end_time=float(end),
                mood=mood,
                confidence=confidence,
                intensity=intensity,
            ))
            start += segment_sec

        return segments
