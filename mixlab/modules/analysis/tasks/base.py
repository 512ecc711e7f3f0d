"""
Task layer foundations.

create_audio_context validates the decoded signal once; every task then
reads the same read-only AudioContext. Task outputs derive from TaskResult.
"""

import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Callable
import time

from mixlab.common.logging import get_logger
from mixlab.common.primitives.stft import to_mono
from mixlab.core.errors import ValidationError

logger = get_logger(__name__)


# (stage, progress 0-1, message)
ProgressCallback = Callable[[str, float, str], None]


@dataclass
class AudioContext:
    """
    Shared context for all tasks.

    Contains the decoded signal as handed over by the caller. The sample
    buffer is read-only: tasks derive their own working copies.

    Attributes:
        y: Audio samples, (n_samples,) or (n_channels, n_samples), float32
        sr: Sample rate
        duration_sec: Track duration in seconds
        track_id: Track identifier used for logging and result keys
        metadata: Basic track metadata (tempo, key, ...)
        progress_callback: Optional callback for progress updates
    """
    y: np.ndarray
    sr: int
    duration_sec: float
    track_id: str = "track"
    metadata: Dict[str, Any] = field(default_factory=dict)
    progress_callback: Optional[ProgressCallback] = None

    def report_progress(self, stage: str, progress: float, message: str = ""):
        """Report progress to callback if set."""
        if self.progress_callback:
            self.progress_callback(stage, progress, message)

    @property
    def n_channels(self) -> int:
        return 1 if self.y.ndim == 1 else self.y.shape[0]

    @property
    def n_samples(self) -> int:
        return self.y.shape[-1]

    def mono(self) -> np.ndarray:
        """Channel average as float32."""
        return to_mono(self.y)


def create_audio_context(
    y: np.ndarray,
    sr: int,
    track_id: str = "track",
    progress_callback: Optional[ProgressCallback] = None,
    **metadata
) -> AudioContext:
    """
    Create AudioContext from a decoded signal.

    This is the main entry point for processing a track.

    Args:
        y: Samples, mono (n,) or multi-channel (channels, n)
        sr: Sample rate
        track_id: Track identifier
        progress_callback: Optional callback for progress updates (stage, progress, message)
        **metadata: Basic track metadata, e.g. tempo=128.0, key="8A"

    Returns:
        AudioContext ready for task execution

    Raises:
        ValidationError: non-positive sample rate, more than 2 dimensions,
            or non-finite samples

    Example:
        >>> y, sr = load_audio("track.wav")
        >>> ctx = create_audio_context(y, sr, track_id="track-a", tempo=126)
        >>> spectral = SpectralAnalysisTask().execute(ctx)
    """
    if sr is None or sr <= 0:
        raise ValidationError("Sample rate must be positive", data={"sr": sr, "track_id": track_id})

    y = np.asarray(y)
    if y.ndim == 0 or y.ndim > 2:
        raise ValidationError(
            "Audio must be (n_samples,) or (n_channels, n_samples)",
            data={"shape": list(y.shape), "track_id": track_id},
        )

    # Ensure float32 contiguous, owned copy
    y = np.array(y, dtype=np.float32, order="C")

    if y.size and not np.all(np.isfinite(y)):
        raise ValidationError(
            "Audio contains NaN or Inf samples",
            data={"track_id": track_id, "non_finite": int(np.count_nonzero(~np.isfinite(y)))},
        )

    y.flags.writeable = False
    duration_sec = y.shape[-1] / sr

    logger.debug(
        "Audio context created",
        data={"track_id": track_id, "sr": sr, "duration_sec": round(duration_sec, 2),
              "channels": 1 if y.ndim == 1 else y.shape[0]},
    )

    return AudioContext(
        y=y,
        sr=int(sr),
        duration_sec=duration_sec,
        track_id=track_id,
        metadata=metadata,
        progress_callback=progress_callback,
    )


def freeze(array: Optional[np.ndarray]) -> Optional[np.ndarray]:
    """Mark an array read-only (in place) and return it."""
    if array is not None:
        array.flags.writeable = False
    return array


@dataclass
class TaskResult:
    """Common header of every task output; error is set when success is False."""
    success: bool
    task_name: str
    processing_time_sec: float
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'task_name': self.task_name,
            'processing_time_sec': round(self.processing_time_sec, 4),
            'error': self.error,
        }


class BaseTask(ABC):
    """
    A unit of analysis over an AudioContext.

    Tasks keep no per-track state, so one instance may serve several
    tracks from different threads. Most tasks also expose an
    execute_with_data() variant taking explicit upstream results.
    """

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    def execute(self, context: AudioContext) -> TaskResult:
        pass

    def execute_timed(self, context: AudioContext) -> TaskResult:
        """execute() with timing; an unexpected exception becomes a failed TaskResult."""
        start = time.time()
        try:
            result = self.execute(context)
            result.processing_time_sec = time.time() - start
            return result
        except Exception as e:
            logger.error(
                f"{self.name} failed",
                data={"task": self.name, "track_id": context.track_id, "error": str(e)},
                exc_info=True,
            )
            return TaskResult(success=False, task_name=self.name,
                              processing_time_sec=time.time() - start, error=str(e))

    def __repr__(self) -> str:
        return f"{self.name}()"
