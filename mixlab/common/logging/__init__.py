"""Logging, configuration and formatting utilities for mixlab."""

from .config import Config, get_config
from .logger import setup_logging, get_logger
from .logging_config import LoggingConfig, get_logging_config
from .formatters import JSONFormatter, StructuredLogAdapter
from .correlation import (
    CorrelationLogFilter,
    correlation_context,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
    get_track_id,
    set_track_id,
    get_job_id,
    set_job_id,
)
from .format import (
    format_time,
    format_time_range,
    format_bpm,
    format_confidence,
)

__all__ = [
    # Config
    'Config',
    'get_config',
    # Logger
    'setup_logging',
    'get_logger',
    # Logging config
    'LoggingConfig',
    'get_logging_config',
    # Structured logging
    'JSONFormatter',
    'StructuredLogAdapter',
    # Correlation
    'CorrelationLogFilter',
    'correlation_context',
    'generate_correlation_id',
    'get_correlation_id',
    'set_correlation_id',
    'get_track_id',
    'set_track_id',
    'get_job_id',
    'set_job_id',
    # Format
    'format_time',
    'format_time_range',
    'format_bpm',
    'format_confidence',
]
