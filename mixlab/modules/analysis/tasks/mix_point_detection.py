"""
Mix Point Detection Task - Track structure and transition candidates.

Segments one track into structural sections and scores timestamps as
transition candidates:
- Intro / outro bounds, main section
- Breakdowns (low bass + low energy), drops (bass and energy jumps)
- Mix points at section boundaries, drops and instrumental stretches
- Harmonic / rhythmic stability around each point
- Type-specific transition suitability
- Optimal in/out points and transition windows between adjacent points

Pure business logic, calls NO other Tasks. Spectral series and energy curve
must be provided by Pipeline via execute_with_data().
"""

import numpy as np
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Any, Optional, List, Tuple

from .base import AudioContext, TaskResult, BaseTask
from .spectral_analysis import SpectralFeatureSeries
from .mood_analysis import EnergyCurve, MoodProfile, MoodAnalysisResult
from mixlab.common.logging import get_logger
from mixlab.common.primitives.filtering import cosine_similarity, clamp01
from mixlab.modules.analysis.config import MixPointConfig

logger = get_logger(__name__)


class MixPointType(Enum):
    """Structural role of a mix point."""
    INTRO = "intro"
    OUTRO = "outro"
    BREAKDOWN = "breakdown"
    BUILDUP = "buildup"
    DROP = "drop"
    VOCAL_BREAK = "vocal_break"
    INSTRUMENTAL = "instrumental"


class Complexity(Enum):
    MINIMAL = "minimal"
    MODERATE = "moderate"
    COMPLEX = "complex"


class WindowType(Enum):
    """Character of a transition window."""
    SMOOTH = "smooth"
    ENERGY_SHIFT = "energy_shift"
    BREAKDOWN = "breakdown"
    DROP_SWAP = "drop_swap"
    HARMONIC = "harmonic"


# ============== Value Objects ==============

@dataclass(frozen=True)
class PointCharacteristics:
    """Instrumentation and mood at a mix point."""
    has_kick: bool = False
    has_bass: bool = False
    has_vocals: bool = False
    has_lead: bool = False
    complexity: Complexity = Complexity.MINIMAL
    mood: str = "neutral"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['complexity'] = self.complexity.value
        return data


@dataclass(frozen=True)
class MixPoint:
    """
    Transition candidate at one timestamp.

    All scores are in [0, 1].
    """
    timestamp: float
    type: MixPointType
    confidence: float
    energy: float
    harmonic_stability: float
    rhythmic_stability: float
    transition_suitability: float
    characteristics: PointCharacteristics = field(default_factory=PointCharacteristics)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'type': self.type.value,
            'confidence': self.confidence,
            'energy': self.energy,
            'harmonic_stability': self.harmonic_stability,
            'rhythmic_stability': self.rhythmic_stability,
            'transition_suitability': self.transition_suitability,
            'characteristics': self.characteristics.to_dict(),
        }


@dataclass(frozen=True)
class SectionBounds:
    start: float
    end: float
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'start': self.start, 'end': self.end}
        if self.confidence is not None:
            data['confidence'] = self.confidence
        return data


@dataclass(frozen=True)
class Breakdown:
    start: float
    end: float
    intensity: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class Drop:
    timestamp: float
    impact: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class TrackStructure:
    """Structural summary of a track."""
    intro: Optional[SectionBounds] = None
    outro: Optional[SectionBounds] = None
    main_section: Optional[SectionBounds] = None
    breakdowns: List[Breakdown] = field(default_factory=list)
    drops: List[Drop] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'intro': self.intro.to_dict() if self.intro else None,
            'outro': self.outro.to_dict() if self.outro else None,
            'main_section': self.main_section.to_dict() if self.main_section else None,
            'breakdowns': [b.to_dict() for b in self.breakdowns],
            'drops': [d.to_dict() for d in self.drops],
        }


@dataclass(frozen=True)
class CompatibilityBreakdown:
    """Compatibility components, each in [0, 1]."""
    harmonic: float
    rhythmic: float
    energy: float
    mood: float
    overall: float

    @classmethod
    def from_components(cls, harmonic: float, rhythmic: float, energy: float, mood: float) -> 'CompatibilityBreakdown':
        overall = harmonic * 0.3 + rhythmic * 0.3 + energy * 0.25 + mood * 0.15
        return cls(harmonic=harmonic, rhythmic=rhythmic, energy=energy, mood=mood, overall=overall)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class TransitionWindow:
    """Stable stretch between two adjacent mix points."""
    start_time: float
    end_time: float
    duration: float
    type: WindowType
    confidence: float
    compatibility: CompatibilityBreakdown

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start_time': self.start_time,
            'end_time': self.end_time,
            'duration': self.duration,
            'type': self.type.value,
            'confidence': self.confidence,
            'compatibility': self.compatibility.to_dict(),
        }


@dataclass
class MixPointAnalysis:
    """Per-track mix-point aggregate."""
    track_id: str
    duration: float
    mix_points: List[MixPoint] = field(default_factory=list)
    optimal_in_points: List[MixPoint] = field(default_factory=list)
    optimal_out_points: List[MixPoint] = field(default_factory=list)
    transition_windows: List[TransitionWindow] = field(default_factory=list)
    structure: TrackStructure = field(default_factory=TrackStructure)

    def points_of_type(self, point_type: MixPointType) -> List[MixPoint]:
        return [p for p in self.mix_points if p.type is point_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'track_id': self.track_id,
            'duration': self.duration,
            'mix_points': [p.to_dict() for p in self.mix_points],
            'optimal_in_points': [p.to_dict() for p in self.optimal_in_points],
            'optimal_out_points': [p.to_dict() for p in self.optimal_out_points],
            'transition_windows': [w.to_dict() for w in self.transition_windows],
            'structure': self.structure.to_dict(),
        }


@dataclass
class PointComparison:
    """Point-level comparison of an out-point and an in-point."""
    compatibility: CompatibilityBreakdown
    transition_type: str
    duration_beats: int
    techniques: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'compatibility': self.compatibility.to_dict(),
            'transition_type': self.transition_type,
            'duration_beats': self.duration_beats,
            'techniques': list(self.techniques),
            'warnings': list(self.warnings),
        }


@dataclass
class MixPointDetectionResult(TaskResult):
    """
    Result of mix-point detection.

    Attributes:
        analysis: Mix points, optimal subsets, windows and structure
    """
    # Inherited from TaskResult
    success: bool = True
    task_name: str = "MixPointDetection"
    processing_time_sec: float = 0.0
    error: Optional[str] = None

    analysis: Optional[MixPointAnalysis] = None

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base['analysis'] = self.analysis.to_dict() if self.analysis is not None else None
        return base


# ============== Suitability ==============

def transition_suitability(
    point_type: MixPointType,
    energy: float,
    harmonic: float,
    rhythmic: float,
    complexity: Complexity,
) -> float:
    """Type-specific weighted score, clamped to [0, 1]."""
    if point_type is MixPointType.INTRO:
        score = 0.9 * harmonic + 0.1 * (1 - energy)
    elif point_type is MixPointType.OUTRO:
        score = 0.8 * harmonic + 0.2 * (1 - energy)
    elif point_type is MixPointType.BREAKDOWN:
        score = 0.6 * harmonic + 0.3 * (1 - energy) + 0.1 * rhythmic
    elif point_type is MixPointType.BUILDUP:
        score = 0.5 * rhythmic + 0.3 * harmonic + 0.2 * energy
    elif point_type is MixPointType.DROP:
        score = 0.4 * rhythmic + 0.3 * energy + 0.3 * harmonic
    elif point_type is MixPointType.INSTRUMENTAL:
        score = 0.4 * harmonic + 0.4 * rhythmic + 0.2 * (0.0 if complexity is Complexity.COMPLEX else 1.0)
    else:  # VOCAL_BREAK
        score = 0.5 * harmonic + 0.3 * rhythmic + 0.2 * (1 - energy)
    return clamp01(score)


# ============== Point Comparison ==============

TRANSITION_BASE_BEATS = {
    'classic_blend': 32,
    'breakdown_swap': 16,
    'energy_cut': 4,
    'smooth_blend': 24,
    'drop_mix': 8,
    'standard_transition': 16,
}

TRANSITION_TECHNIQUES = {
    'classic_blend': ['Gradual volume fade', 'Bass swap at halfway point'],
    'breakdown_swap': ['Cut during breakdown', 'Use reverb/delay for smoothing', 'Loop breakdown section'],
    'energy_cut': ['Quick cut on beat', 'Use effects to mask transition', 'Consider using scratch or spin-back'],
    'smooth_blend': ['Long EQ sweep', 'Gradual tempo adjustment if needed', 'Layer elements progressively'],
    'drop_mix': ['Align drops precisely', 'Quick bass swap', 'Use high-pass filter on outgoing'],
    'standard_transition': [],
}


def classify_transition(out_point: MixPoint, in_point: MixPoint, energy: float, rhythmic: float) -> str:
    """Transition family for a point pair, first matching rule wins."""
    if out_point.type is MixPointType.OUTRO and in_point.type is MixPointType.INTRO:
        return 'classic_blend'
    if MixPointType.BREAKDOWN in (out_point.type, in_point.type):
        return 'breakdown_swap'
    if energy < 0.5:
        return 'energy_cut'
    if rhythmic > 0.8 and energy > 0.7:
        return 'smooth_blend'
    if MixPointType.DROP in (out_point.type, in_point.type):
        return 'drop_mix'
    return 'standard_transition'


def compare_points(out_point: MixPoint, in_point: MixPoint) -> PointComparison:
    """
    Compare an out-point and an in-point on point-level descriptors alone.

    Harmonic and rhythmic components average the two stabilities; mood is
    1 for equal point moods, else 0.5.
    """
    compatibility = CompatibilityBreakdown.from_components(
        harmonic=(out_point.harmonic_stability + in_point.harmonic_stability) / 2,
        rhythmic=(out_point.rhythmic_stability + in_point.rhythmic_stability) / 2,
        energy=1 - abs(out_point.energy - in_point.energy),
        mood=1.0 if out_point.characteristics.mood == in_point.characteristics.mood else 0.5,
    )
    overall = compatibility.overall
    transition_type = classify_transition(out_point, in_point, compatibility.energy, compatibility.rhythmic)

    beats = float(TRANSITION_BASE_BEATS[transition_type])
    if overall < 0.5:
        beats *= 0.5
    elif overall > 0.8:
        beats *= 1.5

    techniques = list(TRANSITION_TECHNIQUES[transition_type])
    if transition_type == 'classic_blend' and overall > 0.7:
        techniques.append('Extended blend possible')
    out_chars, in_chars = out_point.characteristics, in_point.characteristics
    if not out_chars.has_vocals and not in_chars.has_vocals:
        techniques.append('Full frequency blend possible')
    if out_chars.complexity is Complexity.MINIMAL and in_chars.complexity is Complexity.MINIMAL:
        techniques.append('Clean mix with minimal EQ needed')

    warnings = []
    if compatibility.harmonic < 0.3:
        warnings.append('Key clash likely - use EQ aggressively')
    if compatibility.rhythmic < 0.4:
        warnings.append('Rhythm mismatch - consider beat matching carefully')
    if compatibility.energy < 0.3:
        warnings.append('Large energy gap - may lose crowd momentum')
    if out_chars.has_vocals and in_chars.has_vocals:
        warnings.append('Vocal clash possible - use EQ to separate')
    if out_point.type is MixPointType.DROP and in_point.type is MixPointType.DROP:
        warnings.append('Double drop - timing is critical')
    if out_chars.complexity is Complexity.COMPLEX and in_chars.complexity is Complexity.COMPLEX:
        warnings.append('Both tracks are busy - careful EQ needed')

    return PointComparison(
        compatibility=compatibility,
        transition_type=transition_type,
        # Python's round() is banker's rounding; halves round up here
        duration_beats=int(np.floor(beats + 0.5)),
        techniques=techniques,
        warnings=warnings,
    )


# ============== Task ==============

class MixPointDetectionTask(BaseTask):
    """
    Detect track structure and mix points.

    Input data (spectral series, energy curve, mood) must be provided
    by Pipeline via execute_with_data(). Any of them may be None; the
    detector then degrades to neutral defaults.
    """

    def __init__(self, config: Optional[MixPointConfig] = None):
        super().__init__()
        self.config = config or MixPointConfig()

    @property
    def name(self) -> str:
        return "MixPointDetection"

    def execute(self, context: AudioContext) -> MixPointDetectionResult:
        """
        Standard execute - requires 'spectral' and 'mood' in context.metadata.

        Prefer execute_with_data() for explicit data passing.
        """
        spectral = context.metadata.get('spectral')
        mood_result: Optional[MoodAnalysisResult] = context.metadata.get('mood')
        context.report_progress("mix_points", 0.0, "Detecting structure")
        result = self.execute_with_data(
            track_id=context.track_id,
            duration_sec=context.duration_sec,
            spectral=spectral,
            energy_curve=mood_result.energy_curve if mood_result is not None else None,
            mood=mood_result.mood if mood_result is not None else None,
        )
        context.report_progress("mix_points", 1.0, f"{len(result.analysis.mix_points)} mix points")
        return result

    def execute_with_data(
        self,
        track_id: str,
        duration_sec: float,
        spectral: Optional[SpectralFeatureSeries],
        energy_curve: Optional[EnergyCurve],
        mood: Optional[MoodProfile] = None,
    ) -> MixPointDetectionResult:
        """
        Detect mix points from spectral and energy data.

        Called by Pipeline after SpectralAnalysisTask and MoodAnalysisTask.
        """
        detector = _Detector(self.config, spectral, energy_curve, mood)

        structure = detector.detect_structure()
        mix_points = detector.detect_mix_points(structure)

        analysis = MixPointAnalysis(
            track_id=track_id,
            duration=float(duration_sec),
            mix_points=mix_points,
            optimal_in_points=self.select_optimal_in_points(mix_points),
            optimal_out_points=self.select_optimal_out_points(mix_points, structure),
            transition_windows=self.identify_transition_windows(mix_points),
            structure=structure,
        )

        logger.info("Mix point detection complete", data={
            "track_id": track_id,
            "mix_points": len(mix_points),
            "optimal_in": len(analysis.optimal_in_points),
            "optimal_out": len(analysis.optimal_out_points),
            "windows": len(analysis.transition_windows),
            "breakdowns": len(structure.breakdowns),
            "drops": len(structure.drops),
        })
        return MixPointDetectionResult(success=True, analysis=analysis)

    # ============== Optimal Points ==============

    def select_optimal_in_points(self, points: List[MixPoint]) -> List[MixPoint]:
        """Intro (> .7), first 2 instrumentals (> .6), first breakdown (> .5); best 3."""
        selected: List[MixPoint] = []

        intro = next((p for p in points if p.type is MixPointType.INTRO), None)
        if intro is not None and intro.transition_suitability > 0.7:
            selected.append(intro)

        instrumentals = [
            p for p in points
            if p.type is MixPointType.INSTRUMENTAL and p.transition_suitability > 0.6
        ]
        selected.extend(instrumentals[:2])

        breakdown = next((p for p in points if p.type is MixPointType.BREAKDOWN), None)
        if breakdown is not None and breakdown.transition_suitability > 0.5:
            selected.append(breakdown)

        return self._rank(selected)

    def select_optimal_out_points(self, points: List[MixPoint], structure: TrackStructure) -> List[MixPoint]:
        """Outro (> .7), latest breakdown (> .6), 2 latest instrumentals before the outro; best 3."""
        selected: List[MixPoint] = []

        outro = next((p for p in points if p.type is MixPointType.OUTRO), None)
        if outro is not None and outro.transition_suitability > 0.7:
            selected.append(outro)

        breakdowns = sorted(
            (p for p in points if p.type is MixPointType.BREAKDOWN),
            key=lambda p: p.timestamp, reverse=True,
        )
        if breakdowns and breakdowns[0].transition_suitability > 0.6:
            selected.append(breakdowns[0])

        outro_start = structure.outro.start if structure.outro else None
        instrumentals = sorted(
            (p for p in points
             if p.type is MixPointType.INSTRUMENTAL and (outro_start is None or p.timestamp < outro_start)),
            key=lambda p: p.timestamp, reverse=True,
        )
        selected.extend(instrumentals[:2])

        return self._rank(selected)

    def _rank(self, points: List[MixPoint]) -> List[MixPoint]:
        ranked = sorted(points, key=lambda p: p.transition_suitability, reverse=True)
        return ranked[:self.config.max_optimal_points]

    # ============== Transition Windows ==============

    def identify_transition_windows(self, points: List[MixPoint]) -> List[TransitionWindow]:
        """Windows between adjacent points at least min_window_sec apart."""
        threshold = self.config.min_window_sec
        windows: List[TransitionWindow] = []

        for start, end in zip(points, points[1:]):
            duration = end.timestamp - start.timestamp
            if duration < threshold:
                continue

            window = self._analyze_window(start, end, duration, threshold)
            if window.confidence > self.config.min_window_confidence:
                windows.append(window)

        return windows

    @staticmethod
    def _analyze_window(start: MixPoint, end: MixPoint, duration: float, threshold: float) -> TransitionWindow:
        energy_gap = abs(start.energy - end.energy)

        if start.type is MixPointType.BREAKDOWN or end.type is MixPointType.BUILDUP:
            window_type = WindowType.BREAKDOWN
        elif energy_gap > 0.4:
            window_type = WindowType.ENERGY_SHIFT
        elif start.harmonic_stability > 0.8 and end.harmonic_stability > 0.8:
            window_type = WindowType.HARMONIC
        elif end.type is MixPointType.DROP:
            window_type = WindowType.DROP_SWAP
        else:
            window_type = WindowType.SMOOTH

        # Mood is not compared inside a single track
        compatibility = CompatibilityBreakdown.from_components(
            harmonic=(start.harmonic_stability + end.harmonic_stability) / 2,
            rhythmic=(start.rhythmic_stability + end.rhythmic_stability) / 2,
            energy=1 - energy_gap,
            mood=1.0,
        )

        return TransitionWindow(
            start_time=start.timestamp,
            end_time=end.timestamp,
            duration=duration,
            type=window_type,
            confidence=compatibility.overall * min(duration / threshold, 1.0),
            compatibility=compatibility,
        )


class _Detector:
    """
    Structure and point detection over one track's data.

    Holds the frame grid and lookups for a single execute_with_data() call.
    """

    def __init__(
        self,
        config: MixPointConfig,
        spectral: Optional[SpectralFeatureSeries],
        curve: Optional[EnergyCurve],
        mood: Optional[MoodProfile],
    ):
        self.config = config
        self.spectral = spectral
        self.curve = curve
        self.mood_label = mood.primary_mood.value if mood is not None else "neutral"

        if spectral is not None:
            self.sr = spectral.sample_rate
            self.hop = spectral.hop_size
            self.n_frames = spectral.n_frames
        else:
            self.sr, self.hop, self.n_frames = 44100, 512, 0
        self.frame_dt = self.hop / self.sr

        has_bands = spectral is not None and spectral.bands.n_frames > 0
        self.bands = spectral.bands if has_bands else None

    # ============== Lookups ==============

    def frame_times(self, n: int, offset: int = 0) -> np.ndarray:
        return (np.arange(n, dtype=np.float64) + offset) * self.frame_dt

    def energy_at(self, times: np.ndarray) -> np.ndarray:
        """Nearest-timestamp energy; 0.5 without a curve."""
        if self.curve is None:
            return np.full(np.shape(times), 0.5, dtype=np.float64)
        return self.curve.energy_at_times(times)

    def frame_index(self, timestamp: float) -> int:
        return int(np.floor(timestamp * self.sr / self.hop))

    @staticmethod
    def band_value(values: Optional[np.ndarray], idx: int) -> float:
        if values is None or idx < 0 or idx >= len(values):
            return 0.0
        return float(values[idx])

    # ============== Structure ==============

    def detect_structure(self) -> TrackStructure:
        duration = self.n_frames * self.frame_dt
        intro = self.detect_intro()
        outro = self.detect_outro(duration)
        main_section = SectionBounds(
            start=intro.end if intro else 0.0,
            end=outro.start if outro else duration,
        )
        return TrackStructure(
            intro=intro,
            outro=outro,
            main_section=main_section,
            breakdowns=self.detect_breakdowns(),
            drops=self.detect_drops(),
        )

    def _has_timeline(self) -> bool:
        return self.spectral is not None and len(self.spectral.centroid) > 0 and self.curve is not None

    def detect_intro(self) -> Optional[SectionBounds]:
        """Low-energy prefix followed by a jump above intro_jump_energy."""
        if not self._has_timeline():
            return None

        cfg = self.config
        max_frames = min(int(np.floor(cfg.intro_search_sec * self.sr / self.hop)), len(self.spectral.centroid))
        energy = self.energy_at(self.frame_times(max_frames))

        low_counts = np.cumsum(energy < cfg.intro_low_energy)
        frames = np.arange(max_frames)
        hits = np.flatnonzero(
            (frames > cfg.intro_min_frames)
            & (energy > cfg.intro_jump_energy)
            & (low_counts > cfg.intro_min_low_frames)
        )
        if len(hits) == 0:
            return None

        i = int(hits[0])
        end = i * self.frame_dt
        if end <= 0:
            return None
        confidence = min(low_counts[i] / 20.0, 1.0) * 0.8
        return SectionBounds(start=0.0, end=float(end), confidence=float(confidence))

    def detect_outro(self, duration: float) -> Optional[SectionBounds]:
        """Sustained decay within the last outro_search_sec, else a fixed fallback."""
        if not self._has_timeline():
            return None

        cfg = self.config
        n = len(self.spectral.centroid)
        lookahead = cfg.drop_lookback_frames
        start_frame = max(0, n - int(np.floor(cfg.outro_search_sec * self.sr / self.hop)))

        outro_start = -1.0
        decreasing = 0
        if n - lookahead > start_frame:
            count = n - lookahead - start_frame
            current = self.energy_at(self.frame_times(count, start_frame))
            future = self.energy_at(self.frame_times(count, start_frame + lookahead))

            decaying = future < current * cfg.outro_decay_ratio
            decreasing = int(np.count_nonzero(decaying))
            starts = np.flatnonzero(decaying & (current < 0.5))
            if len(starts):
                outro_start = (start_frame + int(starts[0])) * self.frame_dt

        if outro_start > 0 and decreasing > 5:
            return SectionBounds(
                start=float(outro_start),
                end=float(duration),
                confidence=float(min(0.7 + decreasing * 0.05, 1.0)),
            )

        if duration > cfg.outro_fallback_min_duration:
            return SectionBounds(start=float(duration - cfg.outro_fallback_sec), end=float(duration), confidence=0.5)

        return None

    def detect_breakdowns(self) -> List[Breakdown]:
        """Regions of low bass and low energy lasting more than min_section_duration_sec."""
        if self.bands is None or self.curve is None:
            return []

        bass = self.bands.bass
        energy = self.energy_at(self.frame_times(len(bass)))

        breakdowns: List[Breakdown] = []
        in_breakdown = False
        start = 0.0
        min_energy = 1.0

        for i in range(len(bass)):
            time = i * self.frame_dt
            if not in_breakdown and bass[i] < 0.3 and energy[i] < 0.5:
                in_breakdown = True
                start = time
                min_energy = float(energy[i])
            elif in_breakdown and (bass[i] > 0.5 or energy[i] > 0.7):
                if time - start > self.config.min_section_duration_sec:
                    breakdowns.append(Breakdown(start=float(start), end=float(time), intensity=float(1 - min_energy)))
                in_breakdown = False

            if in_breakdown:
                min_energy = min(min_energy, float(energy[i]))

        return breakdowns

    def detect_drops(self) -> List[Drop]:
        """Bass and energy jumps against drop_lookback_frames earlier, de-duplicated."""
        if self.bands is None or self.curve is None:
            return []

        cfg = self.config
        lookback = cfg.drop_lookback_frames
        bass = np.asarray(self.bands.bass, dtype=np.float64)
        n = len(bass)
        if n - lookback <= lookback:
            return []

        idx = np.arange(lookback, n - lookback)
        current_bass = bass[idx]
        prev_bass = bass[idx - lookback]
        current_energy = self.energy_at(idx * self.frame_dt)
        prev_energy = self.energy_at((idx - lookback) * self.frame_dt)

        is_drop = (
            (current_bass > prev_bass * 1.5)
            & (current_energy > prev_energy * 1.3)
            & (current_bass > 0.6)
        )

        with np.errstate(divide='ignore', invalid='ignore'):
            bass_ratio = np.where(prev_bass > 0, current_bass / np.where(prev_bass > 0, prev_bass, 1.0), np.inf)
            energy_ratio = np.where(prev_energy > 0, current_energy / np.where(prev_energy > 0, prev_energy, 1.0), np.inf)
            impact = np.minimum(bass_ratio * energy_ratio / 2, 1.0)

        drops: List[Drop] = []
        for k in np.flatnonzero(is_drop):
            time = float(idx[k] * self.frame_dt)
            if not drops or time - drops[-1].timestamp > cfg.drop_dedupe_sec:
                drops.append(Drop(timestamp=time, impact=float(impact[k])))
        return drops

    def detect_instrumentals(self, breakdowns: List[Breakdown]) -> List[Tuple[float, float]]:
        """(start, confidence) of windows with quiet mid and high-mid bands outside breakdowns."""
        if self.bands is None:
            return []

        cfg = self.config
        window = cfg.instrumental_window_frames
        mid = np.asarray(self.bands.mid, dtype=np.float64)
        high = np.asarray(self.bands.high_mid, dtype=np.float64)
        if len(mid) <= window:
            return []

        starts = np.arange(0, len(mid) - window, cfg.instrumental_step_frames)
        mid_cumsum = np.concatenate(([0.0], np.cumsum(mid)))
        high_cumsum = np.concatenate(([0.0], np.cumsum(high)))
        # Window sums are divided by the full window length
        avg_mid = (mid_cumsum[starts + window] - mid_cumsum[starts]) / window
        avg_high = (high_cumsum[starts + window] - high_cumsum[starts]) / window

        sections = []
        for i in starts[(avg_mid < 0.3) & (avg_high < 0.3)]:
            time = float(i * self.frame_dt)
            if not any(b.start <= time <= b.end for b in breakdowns):
                sections.append((time, 0.7))
        return sections

    # ============== Mix Points ==============

    def detect_mix_points(self, structure: TrackStructure) -> List[MixPoint]:
        candidates: List[Tuple[float, MixPointType, float]] = []

        if structure.intro:
            candidates.append((structure.intro.end, MixPointType.INTRO, structure.intro.confidence))
        if structure.outro:
            candidates.append((structure.outro.start, MixPointType.OUTRO, structure.outro.confidence))

        main_end = structure.main_section.end if structure.main_section else 0.0
        for breakdown in structure.breakdowns:
            candidates.append((breakdown.start, MixPointType.BREAKDOWN, 0.8))
            if breakdown.end < main_end:
                candidates.append((
                    breakdown.end - self.config.min_section_duration_sec, MixPointType.BUILDUP, 0.7,
                ))

        for drop in structure.drops:
            candidates.append((drop.timestamp, MixPointType.DROP, drop.impact))

        for start, confidence in self.detect_instrumentals(structure.breakdowns):
            candidates.append((start, MixPointType.INSTRUMENTAL, confidence))

        points: List[MixPoint] = []
        seen = set()
        for timestamp, point_type, confidence in sorted(candidates, key=lambda c: c[0]):
            key = (timestamp, point_type)
            if key in seen:
                continue
            seen.add(key)
            points.append(self.create_mix_point(timestamp, point_type, confidence))
        return points

    def create_mix_point(self, timestamp: float, point_type: MixPointType, confidence: float) -> MixPoint:
        idx = self.frame_index(timestamp)
        characteristics = self.point_characteristics(idx)
        energy = float(self.energy_at(np.array([timestamp]))[0])
        harmonic = self.harmonic_stability(idx)
        rhythmic = self.rhythmic_stability(idx)

        return MixPoint(
            timestamp=float(timestamp),
            type=point_type,
            confidence=clamp01(confidence),
            energy=energy,
            harmonic_stability=harmonic,
            rhythmic_stability=rhythmic,
            transition_suitability=transition_suitability(
                point_type, energy, harmonic, rhythmic, characteristics.complexity,
            ),
            characteristics=characteristics,
        )

    def point_characteristics(self, idx: int) -> PointCharacteristics:
        bands = self.bands
        bass = self.band_value(bands.bass if bands else None, idx)
        mid = self.band_value(bands.mid if bands else None, idx)
        presence = self.band_value(bands.presence if bands else None, idx)

        total = bass + mid + presence
        if total > 2:
            complexity = Complexity.COMPLEX
        elif total > 1:
            complexity = Complexity.MODERATE
        else:
            complexity = Complexity.MINIMAL

        return PointCharacteristics(
            has_kick=bass > 0.6,
            has_bass=bass > 0.3,
            # No vocal detector in the core
            has_vocals=False,
            has_lead=mid > 0.5 and presence > 0.4,
            complexity=complexity,
            mood=self.mood_label,
        )

    def harmonic_stability(self, idx: int) -> float:
        """Mean cosine similarity of the point's chroma to its +-N neighbours."""
        chroma = self.spectral.chroma if self.spectral is not None else None
        if chroma is None or idx < 0 or idx >= chroma.shape[1]:
            return 0.5

        context = self.config.harmonic_context_frames
        start = max(0, idx - context)
        end = min(chroma.shape[1] - 1, idx + context)
        if end == start:
            return 0.5

        current = chroma[:, idx]
        total = sum(cosine_similarity(current, chroma[:, i]) for i in range(start, end + 1) if i != idx)
        return float(total / (end - start))

    def rhythmic_stability(self, idx: int) -> float:
        """max(0, 1 - std of onset strength over +-N frames)."""
        onset = self.spectral.onset_strength if self.spectral is not None else None
        if onset is None or idx < 0 or idx >= len(onset):
            return 0.5

        context = self.config.rhythmic_context_frames
        window = onset[max(0, idx - context):min(len(onset) - 1, idx + context) + 1]
        return float(max(0.0, 1.0 - np.sqrt(np.var(window))))
