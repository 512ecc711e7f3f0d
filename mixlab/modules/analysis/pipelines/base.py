"""
Pipeline layer: ordered stages over a shared PipelineContext.

Stages run strictly in order. The cancellation token is checked before each
stage and once more before the pipeline returns, so a cancelled run never
hands back a partially filled context.
"""

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

from mixlab.common.logging import get_logger
from mixlab.modules.analysis.config import AnalysisConfig
from mixlab.modules.analysis.tasks import AudioContext
from mixlab.core.errors import (
    AnalysisCancelledError,
    TaskExecutionError,
)

logger = get_logger(__name__)


class CancellationToken:
    """Cooperative cancellation flag shared by a caller and one pipeline run."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, track_id: Optional[str] = None, stage: Optional[str] = None) -> None:
        if self._event.is_set():
            raise AnalysisCancelledError(
                "Analysis cancelled",
                data={"track_id": track_id, "stage": stage},
            )


@dataclass
class PipelineContext:
    """
    State carried through the stages of one track analysis.

    Attributes:
        audio_context: Validated input signal and metadata
        config: Analysis configuration
        results: Stage outputs by key (basic, spectral, mood, extras, mix_points)
        failures: Sub-extractor name -> error message
        cancel_token: Checked at stage boundaries
        stage_times: Stage name -> seconds
        total_time: Wall time of the whole run
    """
    audio_context: AudioContext
    config: AnalysisConfig = field(default_factory=AnalysisConfig)
    results: Dict[str, Any] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    stage_times: Dict[str, float] = field(default_factory=dict)
    total_time: float = 0.0

    @property
    def track_id(self) -> str:
        return self.audio_context.track_id

    def get_result(self, key: str, default: Any = None) -> Any:
        return self.results.get(key, default)

    def set_result(self, key: str, value: Any):
        self.results[key] = value

    def record_failure(self, name: str, error: Exception):
        self.failures[name] = str(error)

    def check_cancelled(self, stage: Optional[str] = None):
        self.cancel_token.raise_if_cancelled(track_id=self.track_id, stage=stage)


class PipelineStage(ABC):
    """One step of a pipeline; returns the (possibly modified) context."""

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    def process(self, context: PipelineContext) -> PipelineContext:
        pass

    def __repr__(self) -> str:
        return f"{self.name}()"


class Pipeline:
    """
    Runs stages in order, timing each one and reporting progress.

    Usage:
        pipeline = Pipeline([TaskStage(SpectralAnalysisTask(), "spectral")], name="Spectral")
        context = pipeline.run(PipelineContext(audio_context=audio))
        series = context.get_result("spectral").series
    """

    def __init__(self, stages: List[PipelineStage], name: Optional[str] = None):
        self.stages = stages
        self.name = name or self.__class__.__name__

    def run(self, context: PipelineContext) -> PipelineContext:
        """
        Raises:
            AnalysisCancelledError: token cancelled before a stage or before returning
        """
        started = time.time()
        n_stages = len(self.stages)
        logger.info(f"[{self.name}] Starting pipeline", data={"track_id": context.track_id, "stages": n_stages})

        for i, stage in enumerate(self.stages):
            context.check_cancelled(stage.name)
            context.audio_context.report_progress(stage.name, i / n_stages, "started")

            stage_start = time.time()
            context = stage.process(context)
            elapsed = time.time() - stage_start
            context.stage_times[stage.name] = elapsed

            logger.info(f"[{self.name}] {i + 1}/{n_stages} {stage.name} done in {elapsed:.2f}s", data={
                "stage": stage.name,
                "duration_sec": round(elapsed, 3),
            })

        context.check_cancelled("complete")

        context.total_time = time.time() - started
        context.audio_context.report_progress("complete", 1.0, f"{context.total_time:.1f}s")
        logger.info(f"[{self.name}] Pipeline complete in {context.total_time:.2f}s", data={
            "failures": sorted(context.failures),
        })
        return context

    def __repr__(self) -> str:
        return f"{self.name}({' -> '.join(s.name for s in self.stages)})"


class TaskStage(PipelineStage):
    """Adapter running a BaseTask as a stage; task errors become TaskExecutionError."""

    def __init__(self, task, result_key: str):
        self.task = task
        self.result_key = result_key

    @property
    def name(self) -> str:
        return f"Task_{self.task.name}"

    def process(self, context: PipelineContext) -> PipelineContext:
        try:
            result = self.task.execute(context.audio_context)
        except Exception as e:
            raise TaskExecutionError(
                f"Task {self.task.name} failed",
                data={"task": self.task.name, "result_key": self.result_key, "track_id": context.track_id},
                cause=e,
            )
        context.set_result(self.result_key, result)
        return context
