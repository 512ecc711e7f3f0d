"""
Transition Suggestion Task - Concrete blend plans between two tracks.

For an (out-point, in-point) pair across two analyzed tracks:
- Compatibility (harmonic, rhythmic, energy, mood, overall)
- Technique selection from a fixed candidate table
- Crossfader curve, EQ automation, effect automation
- Beat timing, tips, confidence and alternative techniques

Pure business logic, calls NO other Tasks. Track analyses must be provided
by Pipeline (or the caller) via suggest() / suggest_batch().
"""

import time
import numpy as np
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List

from .base import AudioContext, TaskResult, BaseTask
from .spectral_analysis import SpectralFeatureSeries
from .mood_analysis import MoodAnalysisResult
from .mix_point_detection import MixPoint, MixPointAnalysis, MixPointType, Complexity, CompatibilityBreakdown
from mixlab.common.logging import get_logger
from mixlab.common.primitives.filtering import clamp01
from mixlab.common.primitives.transition_scoring import (
    camelot_distance,
    score_key_distance,
    chroma_similarity,
    score_tempo_match,
)
from mixlab.core.errors import TransitionSuggestionError
from mixlab.modules.analysis.config import TransitionConfig

logger = get_logger(__name__)


# ============== Inputs ==============

@dataclass
class BasicFeatures:
    """Track-level scalars known before (or estimated during) analysis."""
    duration: float = 0.0
    tempo: Optional[float] = None
    key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'duration': self.duration, 'tempo': self.tempo, 'key': self.key}


@dataclass
class TrackAnalysis:
    """
    Everything the suggestion engine knows about one track.

    spectral and mood may be None; compatibility falls back to defaults.
    """
    track_id: str
    basic: BasicFeatures
    mix_points: MixPointAnalysis
    spectral: Optional[SpectralFeatureSeries] = None
    mood: Optional[MoodAnalysisResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'track_id': self.track_id,
            'basic': self.basic.to_dict(),
            'spectral': self.spectral.to_dict() if self.spectral is not None else None,
            'mood': self.mood.to_dict() if self.mood is not None else None,
            'mix_points': self.mix_points.to_dict(),
        }


# ============== Automation Value Objects ==============

@dataclass(frozen=True)
class KeyPoint:
    """EQ automation point, time normalized to the ramp duration."""
    time: float
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {'time': self.time, 'value': self.value}


@dataclass(frozen=True)
class CrossfaderPoint:
    """Crossfader position at a normalized time, eased into the next point."""
    time: float
    position: float
    easing: str = 'linear'

    def to_dict(self) -> Dict[str, Any]:
        return {'time': self.time, 'position': self.position, 'easing': self.easing}


@dataclass
class CrossfaderCurve:
    """Crossfader position over the transition, -1 = full A, 1 = full B."""
    type: str
    duration: float
    key_points: List[CrossfaderPoint]
    start_position: float = -1.0
    end_position: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'start_position': self.start_position,
            'end_position': self.end_position,
            'duration': self.duration,
            'key_points': [p.to_dict() for p in self.key_points],
        }


@dataclass
class EQAutomation:
    """
    EQ band ramp on one deck.

    Value scale: 0 = kill, 0.5 = unity, 1 = +12 dB.
    """
    band: str
    track: str
    start_value: float
    end_value: float
    duration: float
    curve: str
    key_points: List[KeyPoint]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'band': self.band,
            'track': self.track,
            'start_value': self.start_value,
            'end_value': self.end_value,
            'duration': self.duration,
            'curve': self.curve,
            'key_points': [p.to_dict() for p in self.key_points],
        }


@dataclass
class EffectAutomation:
    effect: str
    track: str
    parameter: str
    start_value: float
    end_value: float
    duration: float
    trigger: str

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class TransitionTiming:
    start_beat: int
    end_beat: int
    total_duration: float
    phrase_locked: bool

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class TechniqueDescriptor:
    name: str
    difficulty: str
    description: str
    tips: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'difficulty': self.difficulty,
            'description': self.description,
            'tips': list(self.tips),
        }


@dataclass(frozen=True)
class AlternativeSuggestion:
    technique: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {'technique': self.technique, 'confidence': self.confidence}


@dataclass
class TransitionSuggestion:
    """Complete plan for mixing from track A's out-point into track B's in-point."""
    id: str
    track_a_id: str
    out_point: MixPoint
    track_b_id: str
    in_point: MixPoint
    compatibility: CompatibilityBreakdown
    crossfader: CrossfaderCurve
    eq_automation: List[EQAutomation]
    effect_automation: List[EffectAutomation]
    timing: TransitionTiming
    technique: TechniqueDescriptor
    technique_key: str
    confidence: float
    alternatives: List[AlternativeSuggestion] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'track_a': {'track_id': self.track_a_id, 'out_point': self.out_point.to_dict()},
            'track_b': {'track_id': self.track_b_id, 'in_point': self.in_point.to_dict()},
            'compatibility': self.compatibility.to_dict(),
            'crossfader': self.crossfader.to_dict(),
            'eq_automation': [a.to_dict() for a in self.eq_automation],
            'effect_automation': [a.to_dict() for a in self.effect_automation],
            'timing': self.timing.to_dict(),
            'technique': self.technique.to_dict(),
            'technique_key': self.technique_key,
            'confidence': self.confidence,
            'alternatives': [a.to_dict() for a in self.alternatives],
        }


@dataclass
class TransitionSuggestionResult(TaskResult):
    """
    Result of batch transition suggestion.

    Attributes:
        suggestions: Ranked by confidence, highest first
    """
    # Inherited from TaskResult
    success: bool = True
    task_name: str = "TransitionSuggestion"
    processing_time_sec: float = 0.0
    error: Optional[str] = None

    suggestions: List[TransitionSuggestion] = field(default_factory=list)

    @property
    def best(self) -> Optional[TransitionSuggestion]:
        return self.suggestions[0] if self.suggestions else None

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base['suggestions'] = [s.to_dict() for s in self.suggestions]
        return base


# ============== Technique Table ==============

@dataclass(frozen=True)
class TechniqueProfile:
    name: str
    difficulty: str
    description: str
    beats: int
    crossfader: str
    eq_strategy: str


TECHNIQUES: Dict[str, TechniqueProfile] = {
    'classic_blend': TechniqueProfile(
        'Classic Blend', 'beginner', 'Smooth crossfade with gradual EQ swap',
        32, 'linear', 'gradual_swap'),
    # 'hold' crossfader falls back to a linear curve
    'bass_swap': TechniqueProfile(
        'Bass Swap', 'intermediate', 'Quick low-frequency exchange at breakdown',
        8, 'hold', 'instant_bass_swap'),
    'echo_out': TechniqueProfile(
        'Echo Out', 'intermediate', 'Use delay/reverb to fade outgoing track',
        16, 'exponential', 'high_pass_fade'),
    'drop_swap': TechniqueProfile(
        'Drop Swap', 'advanced', 'Precise drop-to-drop transition',
        4, 'sharp', 'frequency_cut'),
    'filter_sweep': TechniqueProfile(
        'Filter Sweep', 'intermediate', 'Use filter automation for smooth blend',
        24, 's-curve', 'filter_transition'),
    'loop_layer': TechniqueProfile(
        'Loop & Layer', 'advanced', 'Loop section of track A while bringing in B',
        16, 'logarithmic', 'frequency_layer'),
    'scratch_cut': TechniqueProfile(
        'Scratch Cut', 'expert', 'Use scratch techniques for creative transition',
        2, 'sharp', 'full_kill'),
}

TECHNIQUE_TIPS = {
    'classic_blend': ['Keep the crossfader movement smooth and consistent',
                      'Match the bass swap to the musical phrase'],
    'bass_swap': ['Execute the bass cut precisely on the downbeat',
                  'Consider using the low-EQ kill switch for cleaner swap'],
    'echo_out': ['Start the echo effect 1-2 bars before the transition',
                 'Gradually increase the feedback while cutting the low end'],
    'drop_swap': ['Count beats carefully - timing is critical',
                  'Use the crossfader curve to create impact'],
}


def _xf(*points) -> List[CrossfaderPoint]:
    return [CrossfaderPoint(time=t, position=pos, easing=easing) for t, pos, easing in points]


def _kp(*points) -> List[KeyPoint]:
    return [KeyPoint(time=t, value=v) for t, v in points]


# ============== Curves and Automation ==============

def crossfader_curve(curve_type: str, duration: float, fade_out_faster: bool = False,
                     hold_ratio: float = 0.2) -> CrossfaderCurve:
    """Crossfader key points for one curve family; unknown families are linear."""
    if curve_type == 'exponential':
        if fade_out_faster:
            points = _xf((0, -1, 'ease-out'), (0.3, -0.2, 'ease-out'), (0.6, 0.5, 'ease-in'), (1, 1, 'ease-in'))
        else:
            points = _xf((0, -1, 'ease-in'), (0.4, -0.5, 'ease-in'), (0.7, 0.2, 'ease-out'), (1, 1, 'ease-out'))
    elif curve_type == 's-curve':
        points = _xf((0, -1, 'ease-in'), (0.25, -0.8, 'ease-out'), (0.5, 0, 'linear'),
                     (0.75, 0.8, 'ease-in'), (1, 1, 'ease-out'))
    elif curve_type == 'sharp':
        points = _xf((0, -1, 'hold'), (0.5 - hold_ratio, -1, 'linear'),
                     (0.5 + hold_ratio, 1, 'hold'), (1, 1, 'hold'))
    elif curve_type == 'logarithmic':
        points = _xf((0, -1, 'ease-in'), (0.2, -0.6, 'ease-in'), (0.5, 0, 'ease-out'),
                     (0.8, 0.9, 'ease-out'), (1, 1, 'linear'))
    else:
        curve_type = 'linear'
        points = _xf((0, -1, 'linear'), (0.5, 0, 'linear'), (1, 1, 'linear'))

    return CrossfaderCurve(type=curve_type, duration=duration, key_points=points)


def _ramp(band: str, track: str, start: float, end: float, duration: float,
          curve: str = 'linear', points=None) -> EQAutomation:
    key_points = _kp(*points) if points else _kp((0, start), (1, end))
    return EQAutomation(band=band, track=track, start_value=start, end_value=end,
                        duration=duration, curve=curve, key_points=key_points)


def eq_automation(strategy: str, duration: float) -> List[EQAutomation]:
    """Fixed EQ ramps per strategy; full_kill has none."""
    if strategy == 'gradual_swap':
        return [
            _ramp('low', 'A', 0.5, 0.0, duration, 'logarithmic',
                  [(0, 0.5), (0.5, 0.3), (0.8, 0.1), (1, 0.0)]),
            _ramp('low', 'B', 0.0, 0.5, duration, 'logarithmic',
                  [(0, 0.0), (0.2, 0.1), (0.5, 0.3), (1, 0.5)]),
        ]
    if strategy == 'instant_bass_swap':
        swap = duration * 0.1
        return [
            _ramp('low', 'A', 0.5, 0.0, swap),
            _ramp('low', 'B', 0.0, 0.5, swap),
        ]
    if strategy == 'high_pass_fade':
        return [
            _ramp('low', 'A', 0.5, 0.0, duration * 0.6, 'exponential', [(0, 0.5), (0.5, 0.2), (1, 0.0)]),
            _ramp('mid', 'A', 0.5, 0.2, duration * 0.8),
        ]
    if strategy == 'frequency_cut':
        return [
            _ramp('low', 'A', 0.5, 0.0, duration * 0.2),
            _ramp('high', 'A', 0.5, 0.0, duration * 0.3),
        ]
    if strategy == 'filter_transition':
        return [
            _ramp('mid', 'A', 0.5, 0.7, duration * 0.5),
            _ramp('mid', 'B', 0.3, 0.5, duration * 0.5),
        ]
    if strategy == 'frequency_layer':
        return [
            _ramp('low', 'A', 0.5, 0.5, duration),
            _ramp('low', 'B', 0.0, 0.0, duration * 0.7),
            _ramp('high', 'B', 0.3, 0.5, duration, 'exponential', [(0, 0.3), (0.5, 0.4), (1, 0.5)]),
        ]
    return []


def effect_automation(technique: str, overall: float, out_point: MixPoint) -> List[EffectAutomation]:
    effects = []
    if technique == 'echo_out':
        effects.append(EffectAutomation('delay', 'A', 'feedback', 0.0, 0.7, 2.0, 'manual'))
        effects.append(EffectAutomation('reverb', 'A', 'wetness', 0.0, 0.5, 3.0, 'manual'))
    if technique == 'filter_sweep':
        effects.append(EffectAutomation('filter', 'A', 'frequency', 1.0, 0.2, 4.0, 'beat-sync'))
    if overall < 0.6 and out_point.characteristics.complexity is Complexity.COMPLEX:
        effects.append(EffectAutomation('flanger', 'both', 'depth', 0.0, 0.3, 2.0, 'phrase'))
    return effects


def _round_half_up(value: float) -> int:
    return int(np.floor(value + 0.5))


# ============== Task ==============

class TransitionSuggestionTask(BaseTask):
    """
    Propose transitions between two analyzed tracks.

    execute() expects 'track_a' and 'track_b' TrackAnalysis objects in
    context.metadata; suggest() and suggest_batch() take them directly.
    """

    def __init__(self, config: Optional[TransitionConfig] = None):
        super().__init__()
        self.config = config or TransitionConfig()

    @property
    def name(self) -> str:
        return "TransitionSuggestion"

    def execute(self, context: AudioContext) -> TransitionSuggestionResult:
        track_a = context.metadata.get('track_a')
        track_b = context.metadata.get('track_b')
        if track_a is None or track_b is None:
            raise TransitionSuggestionError(
                "Both 'track_a' and 'track_b' analyses are required",
                data={"track_id": context.track_id},
            )
        return TransitionSuggestionResult(success=True, suggestions=self.suggest_batch(track_a, track_b))

    # ============== Public API ==============

    def suggest(self, track_a: TrackAnalysis, track_b: TrackAnalysis,
                out_point: MixPoint, in_point: MixPoint) -> TransitionSuggestion:
        """Build one transition plan from track A's out_point into track B's in_point."""
        tempo_a = self._tempo(track_a)
        tempo_b = self._tempo(track_b)

        compatibility = self.compatibility(track_a, track_b, out_point, in_point, tempo_a, tempo_b)
        technique = self.select_technique(out_point, in_point, compatibility)
        profile = TECHNIQUES[technique]

        duration = profile.beats * 60.0 / self.config.reference_bpm
        crossfader = crossfader_curve(
            profile.crossfader,
            duration,
            fade_out_faster=out_point.energy > in_point.energy,
            hold_ratio=0.1 if technique == 'drop_swap' else 0.2,
        )
        eq = eq_automation(profile.eq_strategy, duration)
        effects = effect_automation(technique, compatibility.overall, out_point)
        timing = self.timing(out_point, in_point, duration, tempo_a, tempo_b)

        suggestion = TransitionSuggestion(
            id=f"{track_a.track_id}-{track_b.track_id}-{int(time.time() * 1000)}",
            track_a_id=track_a.track_id,
            out_point=out_point,
            track_b_id=track_b.track_id,
            in_point=in_point,
            compatibility=compatibility,
            crossfader=crossfader,
            eq_automation=eq,
            effect_automation=effects,
            timing=timing,
            technique=TechniqueDescriptor(
                name=profile.name,
                difficulty=profile.difficulty,
                description=profile.description,
                tips=self.tips(technique, compatibility, bool(effects)),
            ),
            technique_key=technique,
            confidence=self.confidence(compatibility, technique, out_point, in_point),
            alternatives=self.alternatives(technique, compatibility, out_point),
        )

        logger.debug("Transition suggested", data={
            "track_a": track_a.track_id,
            "track_b": track_b.track_id,
            "out": out_point.timestamp,
            "in": in_point.timestamp,
            "technique": technique,
            "overall": round(compatibility.overall, 3),
            "confidence": round(suggestion.confidence, 3),
        })
        return suggestion

    def suggest_batch(self, track_a: TrackAnalysis, track_b: TrackAnalysis) -> List[TransitionSuggestion]:
        """Top out-points of A x top in-points of B, ranked by confidence."""
        n = self.config.batch_points
        out_points = track_a.mix_points.optimal_out_points[:n]
        in_points = track_b.mix_points.optimal_in_points[:n]

        suggestions = [
            self.suggest(track_a, track_b, out_point, in_point)
            for out_point in out_points
            for in_point in in_points
        ]
        suggestions.sort(key=lambda s: s.confidence, reverse=True)

        logger.info("Transition suggestions ready", data={
            "track_a": track_a.track_id,
            "track_b": track_b.track_id,
            "count": len(suggestions),
            "best": suggestions[0].technique_key if suggestions else None,
        })
        return suggestions

    # ============== Compatibility ==============

    def _tempo(self, track: TrackAnalysis) -> float:
        tempo = track.basic.tempo
        return float(tempo) if tempo else self.config.default_tempo

    def compatibility(self, track_a: TrackAnalysis, track_b: TrackAnalysis,
                      out_point: MixPoint, in_point: MixPoint,
                      tempo_a: float, tempo_b: float) -> CompatibilityBreakdown:
        return CompatibilityBreakdown.from_components(
            harmonic=self.harmonic_compatibility(track_a, track_b),
            rhythmic=self.rhythmic_compatibility(out_point, in_point, tempo_a, tempo_b),
            energy=self.energy_compatibility(track_a, track_b, out_point, in_point),
            mood=self.mood_compatibility(track_a, track_b),
        )

    @staticmethod
    def harmonic_compatibility(track_a: TrackAnalysis, track_b: TrackAnalysis) -> float:
        score = 0.5
        if track_a.basic.key and track_b.basic.key:
            score = score_key_distance(camelot_distance(track_a.basic.key, track_b.basic.key))

        chroma_a = track_a.spectral.chroma if track_a.spectral is not None else None
        chroma_b = track_b.spectral.chroma if track_b.spectral is not None else None
        if chroma_a is not None and chroma_b is not None:
            score = score * 0.6 + chroma_similarity(chroma_a, chroma_b) * 0.4

        return clamp01(score)

    @staticmethod
    def rhythmic_compatibility(out_point: MixPoint, in_point: MixPoint,
                               tempo_a: float, tempo_b: float) -> float:
        stability = (out_point.rhythmic_stability + in_point.rhythmic_stability) / 2
        return score_tempo_match(tempo_a, tempo_b) * 0.7 + stability * 0.3

    @staticmethod
    def energy_compatibility(track_a: TrackAnalysis, track_b: TrackAnalysis,
                             out_point: MixPoint, in_point: MixPoint) -> float:
        score = 1 - abs(out_point.energy - in_point.energy)

        curve_a = track_a.mood.energy_curve if track_a.mood is not None else None
        curve_b = track_b.mood.energy_curve if track_b.mood is not None else None
        if curve_a is not None and curve_b is not None and not curve_a.is_empty and not curve_b.is_empty:
            score = score * 0.6 + (1 - abs(curve_a.avg_energy - curve_b.avg_energy)) * 0.4

        return score

    @staticmethod
    def mood_compatibility(track_a: TrackAnalysis, track_b: TrackAnalysis) -> float:
        def dims(track: TrackAnalysis):
            profile = track.mood.mood if track.mood is not None else None
            if profile is None:
                return 0.5, 0.5, 0.5
            return tuple(0.5 if v is None else v for v in (profile.valence, profile.arousal, profile.dominance))

        diffs = [abs(a - b) for a, b in zip(dims(track_a), dims(track_b))]
        return clamp01(1 - sum(diffs) / 3)

    # ============== Technique ==============

    @staticmethod
    def select_technique(out_point: MixPoint, in_point: MixPoint,
                         compatibility: CompatibilityBreakdown) -> str:
        candidates = []
        if compatibility.overall > 0.8:
            candidates.append(('classic_blend', 0.9))
        if MixPointType.BREAKDOWN in (out_point.type, in_point.type):
            candidates.append(('bass_swap', 0.85))
        if out_point.type is MixPointType.OUTRO:
            candidates.append(('echo_out', 0.8))
        if (out_point.type is MixPointType.DROP and in_point.type is MixPointType.DROP
                and compatibility.rhythmic > 0.8):
            candidates.append(('drop_swap', 0.95))
        if abs(out_point.energy - in_point.energy) > 0.3:
            candidates.append(('filter_sweep', 0.75))
        if (out_point.characteristics.complexity is Complexity.MINIMAL
                and in_point.characteristics.complexity is Complexity.COMPLEX):
            candidates.append(('loop_layer', 0.7))

        if not candidates:
            return 'classic_blend'

        # max() keeps the first of equal scores
        return max(candidates, key=lambda c: c[1])[0]

    def timing(self, out_point: MixPoint, in_point: MixPoint, duration: float,
               tempo_a: float, tempo_b: float) -> TransitionTiming:
        start_beat = _round_half_up(out_point.timestamp * tempo_a / 60)
        end_beat = _round_half_up((in_point.timestamp + duration) * tempo_b / 60)
        phrase = self.config.phrase_beats
        return TransitionTiming(
            start_beat=start_beat,
            end_beat=end_beat,
            total_duration=duration,
            phrase_locked=start_beat % phrase == 0 and end_beat % phrase == 0,
        )

    @staticmethod
    def tips(technique: str, compatibility: CompatibilityBreakdown, has_effects: bool) -> List[str]:
        tips = list(TECHNIQUE_TIPS.get(technique, []))
        if compatibility.harmonic < 0.5:
            tips.append('Key clash detected - use EQ aggressively to separate frequencies')
        if compatibility.rhythmic < 0.6:
            tips.append('Consider using loop mode to align the beats before transitioning')
        if compatibility.energy < 0.4:
            tips.append('Large energy gap - build up track B gradually before the mix')
        if has_effects:
            tips.append('Prepare effects in advance and practice the timing')
        return tips

    @staticmethod
    def confidence(compatibility: CompatibilityBreakdown, technique: str,
                   out_point: MixPoint, in_point: MixPoint) -> float:
        confidence = compatibility.overall
        if out_point.type is MixPointType.OUTRO and in_point.type is MixPointType.INTRO:
            confidence *= 1.2
        if technique in ('drop_swap', 'scratch_cut'):
            confidence *= 0.9
        confidence *= (out_point.transition_suitability + in_point.transition_suitability) / 2
        return clamp01(confidence)

    def alternatives(self, technique: str, compatibility: CompatibilityBreakdown,
                     out_point: MixPoint) -> List[AlternativeSuggestion]:
        options = []
        if technique != 'classic_blend':
            options.append(AlternativeSuggestion('Classic Blend', 0.7))
        if technique != 'bass_swap' and compatibility.rhythmic > 0.7:
            options.append(AlternativeSuggestion('Bass Swap', 0.75))
        if technique != 'echo_out' and out_point.type is MixPointType.OUTRO:
            options.append(AlternativeSuggestion('Echo Out', 0.65))
        if technique != 'filter_sweep' and compatibility.energy < 0.6:
            options.append(AlternativeSuggestion('Filter Sweep', 0.6))
        return options[:self.config.max_alternatives]
