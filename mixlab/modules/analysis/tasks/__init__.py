"""
Layer 2: TASKS - Application Tasks

Tasks combine primitives to solve specific application problems.
Each task:
- Takes an AudioContext (or explicit inputs via execute_with_data)
- Returns a TaskResult subclass
- Contains business logic
- Is reusable and testable

Usage:
    from mixlab.modules.analysis.tasks import SpectralAnalysisTask, MoodAnalysisTask

    context = create_audio_context(y, sr=44100, track_id="a")
    spectral = SpectralAnalysisTask().execute(context)
    mood = MoodAnalysisTask().execute_with_data(context.y, context.sr, spectral.series)
"""

from .base import (
    AudioContext,
    TaskResult,
    BaseTask,
    create_audio_context,
    ProgressCallback,
)

from .spectral_analysis import (
    SpectralFeatureSeries,
    SpectralAnalysisResult,
    SpectralAnalysisTask,
)

from .mood_analysis import (
    MoodType,
    EnergyCurve,
    EmotionalTexture,
    GenreEmotionalMarkers,
    MoodSegment,
    MoodFeatures,
    MoodProfile,
    MoodAnalysisResult,
    MoodAnalysisTask,
    classify_mood,
)

from .mix_point_detection import (
    MixPointType,
    Complexity,
    WindowType,
    PointCharacteristics,
    MixPoint,
    SectionBounds,
    Breakdown,
    Drop,
    TrackStructure,
    CompatibilityBreakdown,
    TransitionWindow,
    MixPointAnalysis,
    PointComparison,
    MixPointDetectionResult,
    MixPointDetectionTask,
    compare_points,
    transition_suitability,
)

from .transition_suggestion import (
    BasicFeatures,
    TrackAnalysis,
    KeyPoint,
    CrossfaderPoint,
    CrossfaderCurve,
    EQAutomation,
    EffectAutomation,
    TransitionTiming,
    TechniqueDescriptor,
    AlternativeSuggestion,
    TransitionSuggestion,
    TransitionSuggestionResult,
    TransitionSuggestionTask,
    TECHNIQUES,
)

__all__ = [
    # Base
    'AudioContext',
    'TaskResult',
    'BaseTask',
    'create_audio_context',
    'ProgressCallback',
    # Spectral Analysis
    'SpectralFeatureSeries',
    'SpectralAnalysisResult',
    'SpectralAnalysisTask',
    # Mood / Energy
    'MoodType',
    'EnergyCurve',
    'EmotionalTexture',
    'GenreEmotionalMarkers',
    'MoodSegment',
    'MoodFeatures',
    'MoodProfile',
    'MoodAnalysisResult',
    'MoodAnalysisTask',
    'classify_mood',
    # Mix Points
    'MixPointType',
    'Complexity',
    'WindowType',
    'PointCharacteristics',
    'MixPoint',
    'SectionBounds',
    'Breakdown',
    'Drop',
    'TrackStructure',
    'CompatibilityBreakdown',
    'TransitionWindow',
    'MixPointAnalysis',
    'PointComparison',
    'MixPointDetectionResult',
    'MixPointDetectionTask',
    'compare_points',
    'transition_suitability',
    # Transition Suggestion
    'BasicFeatures',
    'TrackAnalysis',
    'KeyPoint',
    'CrossfaderPoint',
    'CrossfaderCurve',
    'EQAutomation',
    'EffectAutomation',
    'TransitionTiming',
    'TechniqueDescriptor',
    'AlternativeSuggestion',
    'TransitionSuggestion',
    'TransitionSuggestionResult',
    'TransitionSuggestionTask',
    'TECHNIQUES',
]
