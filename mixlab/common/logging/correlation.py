"""Correlation, track and job ids for tracing one analysis through threads and logs."""

import uuid
import logging
import contextvars
from contextlib import contextmanager
from typing import Iterator, Optional


correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

track_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "track_id", default=None
)

job_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job_id", default=None
)


def generate_correlation_id() -> str:
    """Short random id (8 hex chars)."""
    return uuid.uuid4().hex[:8]


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def set_correlation_id(cid: str | None):
    correlation_id_var.set(cid)


def get_track_id() -> str | None:
    return track_id_var.get()


def set_track_id(tid: str | None):
    track_id_var.set(tid)


def get_job_id() -> str | None:
    return job_id_var.get()


def set_job_id(jid: str | None):
    job_id_var.set(jid)


@contextmanager
def correlation_context(
    track_id: Optional[str] = None,
    job_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> Iterator[str]:
    """
    Bind correlation, track and job IDs for the duration of a block.

    Worker threads do not inherit context vars, so pipelines enter this
    context inside each submitted callable as well.

    Usage:
        with correlation_context(track_id="track-1") as cid:
            pipeline.run(context)
    """
    cid = correlation_id or get_correlation_id() or generate_correlation_id()

    cid_token = correlation_id_var.set(cid)
    track_token = track_id_var.set(track_id if track_id is not None else get_track_id())
    job_token = job_id_var.set(job_id if job_id is not None else get_job_id())
    try:
        yield cid
    finally:
        job_id_var.reset(job_token)
        track_id_var.reset(track_token)
        correlation_id_var.reset(cid_token)


class CorrelationLogFilter(logging.Filter):
    """Copies the current ids onto every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        record.track_id = get_track_id()
        record.job_id = get_job_id()
        return True
