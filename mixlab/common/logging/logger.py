"""Root logger setup for the CLI, pipelines and tests."""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

from .formatters import JSONFormatter, StructuredLogAdapter
from .correlation import CorrelationLogFilter
from .logging_config import get_logging_config

TEXT_FORMAT = "%(asctime)s [%(correlation_id)s] %(name)s - %(levelname)s - %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"

_logging_configured = False


def _attach(root: logging.Logger, handler: logging.Handler, level: int, formatter: logging.Formatter):
    handler.setLevel(level)
    handler.addFilter(CorrelationLogFilter())
    handler.setFormatter(formatter)
    root.addHandler(handler)


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    json_format: Optional[bool] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
    component: str = "default",
    force: bool = False,
) -> None:
    """
    Configure the root logger once per process.

    Console output goes to stdout, as text or JSON per component setting.
    The optional rotating log file is always JSON. level and json_format
    default to what logging-config.yaml says for component.

    Args:
        level: DEBUG / INFO / WARNING / ERROR
        log_file: Rotating JSON log file; parent directories are created
        json_format: JSON console output
        max_bytes: Rotation size
        backup_count: Rotated files kept
        component: Section of logging-config.yaml (cli, pipeline, tests)
        force: Replace handlers installed by an earlier call
    """
    global _logging_configured
    if _logging_configured and not force:
        return

    log_config = get_logging_config()
    level = (level or log_config.get_level(component)).upper()
    if json_format is None:
        json_format = log_config.get_json_format(component)
    numeric_level = getattr(logging, level)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()

    console_formatter = JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT)
    _attach(root, logging.StreamHandler(sys.stdout), numeric_level, console_formatter)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        _attach(root, file_handler, numeric_level, JSONFormatter())

    for library, library_level in log_config.get_library_levels().items():
        logging.getLogger(library).setLevel(getattr(logging, library_level))

    _logging_configured = True


def get_logger(name: str) -> StructuredLogAdapter:
    """Structured logger for a module; honours per-module levels from logging-config.yaml."""
    logger = logging.getLogger(name)
    module_level = get_logging_config().get_module_level(name)
    if module_level:
        logger.setLevel(getattr(logging, module_level))
    return StructuredLogAdapter(logger)
