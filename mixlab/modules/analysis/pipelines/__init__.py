"""
Layer 3: PIPELINES - Task orchestration

Usage:
    from mixlab.modules.analysis.pipelines import TrackAnalysisPipeline

    result = TrackAnalysisPipeline().analyze(y, sr, track_id="track-a")
"""

from .base import (
    CancellationToken,
    PipelineContext,
    PipelineStage,
    Pipeline,
    TaskStage,
)

from .track_analysis import (
    Extractor,
    TrackAnalysisResult,
    BasicFeaturesStage,
    FeatureFanOutStage,
    MixPointDetectionStage,
    TrackAnalysisPipeline,
    AnalysisRegistry,
)

__all__ = [
    # Base
    'CancellationToken',
    'PipelineContext',
    'PipelineStage',
    'Pipeline',
    'TaskStage',
    # Track analysis
    'Extractor',
    'TrackAnalysisResult',
    'BasicFeaturesStage',
    'FeatureFanOutStage',
    'MixPointDetectionStage',
    'TrackAnalysisPipeline',
    'AnalysisRegistry',
]
