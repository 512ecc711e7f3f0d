"""
mixlab error hierarchy.

Every error logs itself on construction together with the correlation,
track and job ids active at that moment, so a failure deep inside a
worker thread still shows up against the right track.

    MixlabError
    ├── AudioProcessingError
    │   ├── AudioLoadError
    │   └── SpectralAnalysisError
    ├── AnalysisError
    │   ├── TaskExecutionError
    │   ├── MoodAnalysisError
    │   ├── MixPointDetectionError
    │   ├── TransitionSuggestionError
    │   ├── AnalysisCancelledError      (logged at INFO)
    │   └── AnalysisInProgressError     (logged at WARNING)
    ├── ConfigurationError
    └── ValidationError
"""

import logging
from typing import Optional, Dict, Any

from mixlab.common.logging import get_logger
from mixlab.common.logging.correlation import get_correlation_id, get_track_id, get_job_id

logger = get_logger(__name__)


class MixlabError(Exception):
    """Base error: message, structured data and the underlying cause."""

    log_level = logging.ERROR

    def __init__(
        self,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.data = data or {}
        self.cause = cause

        self.correlation_id = get_correlation_id()
        self.track_id = get_track_id()
        self.job_id = get_job_id()

        self._log()

    @property
    def context(self) -> Dict[str, Optional[str]]:
        return {
            "correlation_id": self.correlation_id,
            "track_id": self.track_id,
            "job_id": self.job_id,
        }

    def _log(self):
        log_data = {"error_type": type(self).__name__, **self.context, **self.data}
        if self.cause is not None:
            log_data["cause"] = str(self.cause)

        # Traceback only for real failures with an underlying exception
        exc_info = self.cause if self.cause is not None and self.log_level >= logging.ERROR else None
        logger.log(self.log_level, self.message, data=log_data, exc_info=exc_info)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form, used by the CLI for error output."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "data": self.data,
            **self.context,
            "cause": str(self.cause) if self.cause is not None else None,
        }


class AudioProcessingError(MixlabError):
    """Decoding, framing or FFT failure."""


class AudioLoadError(AudioProcessingError):
    """Audio file missing, unsupported or undecodable."""


class SpectralAnalysisError(AudioProcessingError):
    pass


class AnalysisError(MixlabError):
    pass


class TaskExecutionError(AnalysisError):
    """A pipeline stage failed; the stage error is the cause."""


class MoodAnalysisError(AnalysisError):
    pass


class MixPointDetectionError(AnalysisError):
    pass


class TransitionSuggestionError(AnalysisError):
    """Transition requested without both track analyses."""


class AnalysisCancelledError(AnalysisError):
    """Cancellation observed at a stage boundary; no partial result is returned."""
    log_level = logging.INFO


class AnalysisInProgressError(AnalysisError):
    """Same track id already in flight and the registry rejects duplicates."""
    log_level = logging.WARNING


class ConfigurationError(MixlabError):
    pass


class ValidationError(MixlabError):
    """Invalid input signal (sample rate, shape, non-finite samples)."""
