"""JSON log records and a structured-data adapter for analysis logs."""

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any

# Record attributes copied into the JSON entry when set
CONTEXT_FIELDS = ("correlation_id", "track_id", "job_id")


def _exception_payload(exc_info) -> dict[str, Any]:
    exc_type, exc, _ = exc_info
    return {
        "type": exc_type.__name__ if exc_type else None,
        "message": str(exc) if exc else None,
        "traceback": traceback.format_exception(*exc_info),
    }


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Entries carry timestamp, level, component (logger name without the
    ``mixlab.`` / ``modules.`` prefixes), the correlation ids attached by
    CorrelationLogFilter or StructuredLogAdapter, ``data`` from the adapter
    and exception info. Values json cannot encode are rendered with str().
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_path: bool = False,
        extra_fields: dict[str, Any] | None = None,
    ):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_path = include_path
        self.extra_fields = dict(extra_fields or {})

    @staticmethod
    def _extract_component(logger_name: str) -> str:
        """
        mixlab.modules.analysis.tasks.mood_analysis -> analysis.tasks.mood_analysis
        __main__ -> main
        """
        if logger_name == "__main__":
            return "main"

        parts = logger_name.split(".")
        for prefix in ("mixlab", "modules"):
            if parts and parts[0] == prefix:
                parts = parts[1:]
        return ".".join(parts) or logger_name

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {}

        if self.include_timestamp:
            entry["timestamp"] = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
        if self.include_level:
            entry["level"] = record.levelname
        entry["component"] = self._extract_component(record.name)
        if self.include_logger:
            entry["logger"] = record.name
        if self.include_path:
            entry["path"] = f"{record.pathname}:{record.lineno}"

        entry["message"] = (record.getMessage() or "").strip()

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value:
                entry[name] = value

        data = getattr(record, "structured_data", None)
        if data:
            entry["data"] = data

        if record.exc_info:
            entry["exception"] = _exception_payload(record.exc_info)

        entry.update(self.extra_fields)
        return json.dumps(entry, ensure_ascii=False, default=str)


class StructuredLogAdapter(logging.LoggerAdapter):
    """
    Logger adapter accepting a ``data={...}`` keyword on every log call.

    Ids set on the adapter are attached to each record; the ``data`` dict
    ends up as ``record.structured_data``.

    Usage:
        logger = get_logger(__name__)
        logger.info("Spectral analysis complete", data={"n_frames": 2580})
    """

    def __init__(self, logger: logging.Logger, extra: dict | None = None):
        super().__init__(logger, extra or {})
        self._context: dict[str, str] = {}

    def set_correlation_id(self, correlation_id: str):
        self._context["correlation_id"] = correlation_id

    def set_track_id(self, track_id: str):
        self._context["track_id"] = track_id

    def set_job_id(self, job_id: str):
        self._context["job_id"] = job_id

    def clear_context(self):
        self._context.clear()

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = dict(kwargs.get("extra") or {})
        extra.update(self._context)

        data = kwargs.pop("data", None)
        if data:
            extra["structured_data"] = data

        kwargs["extra"] = extra
        return msg, kwargs
