"""
Track Analysis Pipeline - Complete analysis of a single track.

Combines the analysis tasks into a unified workflow:
BasicFeatures -> FeatureFanOut (spectral -> mood, external extractors) -> MixPointDetection.

AnalysisRegistry keeps at most one in-flight analysis per track id and
exposes cancellation.
"""

import json
import threading
import time
from concurrent.futures import ThreadPoolExecutor, Future
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List, Callable

import numpy as np

from .base import Pipeline, PipelineContext, PipelineStage, CancellationToken
from mixlab.common.logging import get_logger, correlation_context, get_correlation_id
from mixlab.common.primitives.harmonic import compute_key
from mixlab.common.primitives.transition_scoring import key_to_camelot
from mixlab.core.config.settings import RegistryMode
from mixlab.core.errors import AnalysisInProgressError
from mixlab.modules.analysis.config import AnalysisConfig
from mixlab.modules.analysis.tasks import (
    AudioContext,
    ProgressCallback,
    create_audio_context,
    SpectralAnalysisTask,
    SpectralFeatureSeries,
    MoodAnalysisTask,
    MoodAnalysisResult,
    MixPointDetectionTask,
    MixPointAnalysis,
    BasicFeatures,
    TrackAnalysis,
)

logger = get_logger(__name__)

# External sub-extractor: receives the audio context, returns any result
Extractor = Callable[[AudioContext], Any]


@dataclass
class TrackAnalysisResult:
    """
    Complete analysis result for a track.

    spectral / mood are None when their extractor failed; failures maps
    extractor name -> error message.
    """
    track_id: str
    duration_sec: float
    basic: BasicFeatures
    mix_points: MixPointAnalysis
    spectral: Optional[SpectralFeatureSeries] = None
    mood: Optional[MoodAnalysisResult] = None
    extras: Dict[str, Any] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)
    stage_times: Dict[str, float] = field(default_factory=dict)
    processing_time_sec: float = 0.0

    @property
    def success(self) -> bool:
        return not self.failures

    def to_track_analysis(self) -> TrackAnalysis:
        """Input for TransitionSuggestionTask."""
        return TrackAnalysis(
            track_id=self.track_id,
            basic=self.basic,
            mix_points=self.mix_points,
            spectral=self.spectral,
            mood=self.mood,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'track_id': self.track_id,
            'duration_sec': self.duration_sec,
            'basic': self.basic.to_dict(),
            'spectral': self.spectral.to_dict() if self.spectral is not None else None,
            'mood': self.mood.to_dict() if self.mood is not None else None,
            'mix_points': self.mix_points.to_dict(),
            'extras': {k: _to_jsonable(v) for k, v in self.extras.items()},
            'failures': dict(self.failures),
            'stage_times': dict(self.stage_times),
            'processing_time_sec': self.processing_time_sec,
            'success': self.success,
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_context(cls, context: PipelineContext) -> 'TrackAnalysisResult':
        """Create from pipeline context."""
        audio = context.audio_context
        mix_points = context.get_result('mix_points')
        return cls(
            track_id=context.track_id,
            duration_sec=audio.duration_sec,
            basic=context.get_result('basic'),
            mix_points=mix_points.analysis,
            spectral=context.get_result('spectral'),
            mood=context.get_result('mood'),
            extras=dict(context.get_result('extras', {})),
            failures=dict(context.failures),
            stage_times=dict(context.stage_times),
            processing_time_sec=context.total_time,
        )


def _to_jsonable(value: Any) -> Any:
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    if isinstance(value, np.ndarray):
        return value.tolist()
    return value


# ============== Stages ==============

class BasicFeaturesStage(PipelineStage):
    """Duration, tempo and key as provided by the caller."""

    def process(self, context: PipelineContext) -> PipelineContext:
        audio = context.audio_context
        tempo = audio.metadata.get('tempo')
        key = audio.metadata.get('key')

        basic = BasicFeatures(
            duration=audio.duration_sec,
            tempo=float(tempo) if tempo else None,
            key=(key_to_camelot(key) or key) if key else None,
        )
        context.set_result('basic', basic)
        return context


class FeatureFanOutStage(PipelineStage):
    """
    Run the spectral -> mood chain and external extractors concurrently.

    A failing extractor is logged and recorded in context.failures; its
    siblings continue. Tempo and key missing from metadata are estimated
    from the spectral series afterwards.
    """

    def __init__(
        self,
        spectral_task: SpectralAnalysisTask,
        mood_task: MoodAnalysisTask,
        extractors: Optional[Dict[str, Extractor]] = None,
        max_workers: int = 4,
    ):
        self.spectral_task = spectral_task
        self.mood_task = mood_task
        self.extractors = dict(extractors or {})
        self.max_workers = max_workers

    @property
    def name(self) -> str:
        return "FeatureFanOut"

    def _run_guarded(self, name: str, context: PipelineContext, cid: Optional[str],
                     fn: Callable[[], Any]) -> Any:
        """Run fn inside the track's correlation context; None on failure."""
        with correlation_context(track_id=context.track_id, correlation_id=cid):
            context.check_cancelled(name)
            try:
                return fn()
            except Exception as e:
                logger.error(f"Extractor '{name}' failed", data={
                    "extractor": name,
                    "track_id": context.track_id,
                    "error": str(e),
                }, exc_info=True)
                context.record_failure(name, e)
                return None

    def _spectral_mood_chain(self, context: PipelineContext, cid: Optional[str]):
        audio = context.audio_context
        series = self._run_guarded(
            'spectral', context, cid,
            lambda: self.spectral_task.analyze(audio.y, audio.sr, track_id=audio.track_id),
        )
        audio.report_progress('spectral', 1.0, "done" if series is not None else "failed")

        # Mood degrades to the configured frame grid without a series
        mood = self._run_guarded(
            'mood', context, cid,
            lambda: self.mood_task.execute_with_data(audio.y, audio.sr, series, track_id=audio.track_id),
        )
        audio.report_progress('mood', 1.0, "done" if mood is not None else "failed")
        return series, mood

    def process(self, context: PipelineContext) -> PipelineContext:
        # Worker threads do not inherit context vars
        cid = get_correlation_id()
        audio = context.audio_context

        n_jobs = 1 + len(self.extractors)
        with ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, n_jobs))) as executor:
            chain = executor.submit(self._spectral_mood_chain, context, cid)
            external = {
                name: executor.submit(self._run_guarded, name, context, cid, lambda fn=fn: fn(audio))
                for name, fn in self.extractors.items()
            }
            series, mood = chain.result()
            extras = {name: future.result() for name, future in external.items()}

        context.check_cancelled(self.name)

        context.set_result('spectral', series)
        context.set_result('mood', mood)
        context.set_result('extras', {k: v for k, v in extras.items() if v is not None})

        self._estimate_basic(context, series)
        return context

    @staticmethod
    def _estimate_basic(context: PipelineContext, series: Optional[SpectralFeatureSeries]):
        basic: BasicFeatures = context.get_result('basic')
        if basic is None or series is None or series.is_empty:
            return

        if basic.tempo is None and series.tempo > 0:
            basic.tempo = float(series.tempo)
        if basic.key is None and series.chroma is not None and np.any(series.chroma):
            key_name, confidence = compute_key(series.chroma)
            basic.key = key_to_camelot(key_name)
            logger.debug("Key estimated", data={
                "track_id": context.track_id, "key": basic.key, "confidence": round(float(confidence), 3),
            })


class MixPointDetectionStage(PipelineStage):
    """Stage that detects mix points from the fan-out results."""

    def __init__(self, task: MixPointDetectionTask):
        self.task = task

    @property
    def name(self) -> str:
        return "MixPointDetection"

    def process(self, context: PipelineContext) -> PipelineContext:
        spectral = context.get_result('spectral')
        mood: Optional[MoodAnalysisResult] = context.get_result('mood')
        result = self.task.execute_with_data(
            track_id=context.track_id,
            duration_sec=context.audio_context.duration_sec,
            spectral=spectral,
            energy_curve=mood.energy_curve if mood is not None else None,
            mood=mood.mood if mood is not None else None,
        )
        context.set_result('mix_points', result)
        return context


# ============== Pipeline ==============

class TrackAnalysisPipeline(Pipeline):
    """
    Complete track analysis pipeline.

    Stages:
    1. BasicFeatures - duration, tempo, key from metadata
    2. FeatureFanOut - spectral -> mood chain + external extractors
    3. MixPointDetection - structure, mix points, windows

    Task instances are immutable after construction; one pipeline can
    analyze several tracks concurrently.

    Usage:
        pipeline = TrackAnalysisPipeline()
        result = pipeline.analyze(y, sr, track_id="track-a", tempo=126)
        print(len(result.mix_points.mix_points))
    """

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        extractors: Optional[Dict[str, Extractor]] = None,
    ):
        """
        Initialize track analysis pipeline.

        Args:
            config: Analysis configuration
            extractors: Extra named extractors run during fan-out (e.g. vocal, genre)
        """
        self.config = config or AnalysisConfig()
        self.spectral_task = SpectralAnalysisTask(self.config.spectral)
        self.mood_task = MoodAnalysisTask(self.config.mood, self.config.spectral)
        self.mix_point_task = MixPointDetectionTask(self.config.mix_points)

        stages = [
            BasicFeaturesStage(),
            FeatureFanOutStage(
                self.spectral_task,
                self.mood_task,
                extractors=extractors,
                max_workers=self.config.max_workers,
            ),
            MixPointDetectionStage(self.mix_point_task),
        ]
        super().__init__(stages, name="TrackAnalysis")

    def analyze(
        self,
        y: np.ndarray,
        sr: int,
        track_id: str = "track",
        cancel_token: Optional[CancellationToken] = None,
        progress_callback: Optional[ProgressCallback] = None,
        **metadata,
    ) -> TrackAnalysisResult:
        """
        Analyze a single decoded track.

        Args:
            y: Samples, mono or (channels, n)
            sr: Sample rate
            track_id: Track identifier
            cancel_token: Checked at every stage boundary
            progress_callback: (stage, progress, message)
            **metadata: tempo, key

        Returns:
            TrackAnalysisResult

        Raises:
            ValidationError: invalid signal
            AnalysisCancelledError: cancelled before completion
        """
        with correlation_context(track_id=track_id):
            audio = create_audio_context(y, sr, track_id=track_id, progress_callback=progress_callback, **metadata)
            context = PipelineContext(
                audio_context=audio,
                config=self.config,
                cancel_token=cancel_token or CancellationToken(),
            )
            context = self.run(context)
            return TrackAnalysisResult.from_context(context)

    def analyze_batch(self, tracks: Dict[str, tuple]) -> List[TrackAnalysisResult]:
        """
        Analyze multiple tracks sequentially.

        For concurrent processing, use AnalysisRegistry.

        Args:
            tracks: track_id -> (y, sr)
        """
        return [self.analyze(y, sr, track_id=track_id) for track_id, (y, sr) in tracks.items()]


# ============== Registry ==============

@dataclass
class _InFlight:
    future: Future
    token: CancellationToken
    started: float = field(default_factory=time.time)


class AnalysisRegistry:
    """
    Single-flight front end for TrackAnalysisPipeline.

    At most one analysis per track id runs at a time. A second request for
    an in-flight id joins the running future (JOIN) or is rejected with
    AnalysisInProgressError (REJECT).

    Usage:
        with AnalysisRegistry(pipeline, mode=RegistryMode.JOIN) as registry:
            future = registry.submit("track-a", y, sr)
            result = future.result()
    """

    def __init__(
        self,
        pipeline: Optional[TrackAnalysisPipeline] = None,
        mode: RegistryMode = RegistryMode.JOIN,
        max_workers: int = 4,
    ):
        self.pipeline = pipeline or TrackAnalysisPipeline()
        self.mode = RegistryMode(mode)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="mixlab-analysis")
        self._in_flight: Dict[str, _InFlight] = {}
        self._lock = threading.Lock()

    def submit(
        self,
        track_id: str,
        y: np.ndarray,
        sr: int,
        progress_callback: Optional[ProgressCallback] = None,
        **metadata,
    ) -> Future:
        """
        Start (or join) the analysis of a track.

        Returns:
            Future resolving to TrackAnalysisResult

        Raises:
            AnalysisInProgressError: REJECT mode and track already running
        """
        with self._lock:
            entry = self._in_flight.get(track_id)
            if entry is not None:
                if self.mode is RegistryMode.REJECT:
                    raise AnalysisInProgressError(
                        "Analysis already in progress",
                        data={"track_id": track_id, "running_sec": round(time.time() - entry.started, 2)},
                    )
                logger.info("Joining in-flight analysis", data={"track_id": track_id})
                return entry.future

            token = CancellationToken()
            future = self._executor.submit(
                self.pipeline.analyze, y, sr,
                track_id=track_id,
                cancel_token=token,
                progress_callback=progress_callback,
                **metadata,
            )
            self._in_flight[track_id] = _InFlight(future=future, token=token)

        future.add_done_callback(lambda f, tid=track_id: self._release(tid, f))
        return future

    def analyze(self, track_id: str, y: np.ndarray, sr: int, **metadata) -> TrackAnalysisResult:
        """Blocking submit()."""
        return self.submit(track_id, y, sr, **metadata).result()

    def cancel(self, track_id: str) -> bool:
        """
        Request cancellation of an in-flight analysis.

        Returns:
            False if no analysis is running for track_id
        """
        with self._lock:
            entry = self._in_flight.get(track_id)
        if entry is None:
            return False
        entry.token.cancel()
        logger.info("Cancellation requested", data={"track_id": track_id})
        return True

    def is_running(self, track_id: str) -> bool:
        with self._lock:
            return track_id in self._in_flight

    @property
    def in_flight(self) -> List[str]:
        with self._lock:
            return sorted(self._in_flight)

    def _release(self, track_id: str, future: Future):
        with self._lock:
            entry = self._in_flight.get(track_id)
            if entry is not None and entry.future is future:
                del self._in_flight[track_id]

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> 'AnalysisRegistry':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown(wait=True)
