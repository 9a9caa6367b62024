import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | job=%(sync_job)s | %(message)s"
DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# chatty client libraries, keep them at WARNING unless LOG_LEVEL=DEBUG
_NOISY_LOGGERS = ("urllib3", "requests", "kombu", "amqp")

_current_job: ContextVar[Optional[str]] = ContextVar("sync_job", default=None)


class SyncJobFilter(logging.Filter):
    """Stamps record.sync_job with the job bound via job_log_context ('-' outside a job)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "sync_job"):
            record.sync_job = _current_job.get() or "-"
        return True


@contextmanager
def job_log_context(job_id: Optional[str]) -> Iterator[None]:
    """Tag every log line emitted from this thread/task with the sync job id."""
    token = _current_job.set(job_id)
    try:
        yield
    finally:
        _current_job.reset(token)


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Ensure the root logger has handlers and the desired level so INFO logs surface everywhere.
    Uvicorn configures handlers before importing our code, Celery/scripts usually do not;
    only the handler installed here uses the job-aware format.
    """
    resolved_level = (level or DEFAULT_LEVEL).upper()
    root_logger = logging.getLogger()

    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.addFilter(SyncJobFilter())
        logging.basicConfig(level=resolved_level, format=LOG_FORMAT, handlers=[handler])
    else:
        root_logger.setLevel(resolved_level)

    if resolved_level != "DEBUG":
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.captureWarnings(True)
    return logging.getLogger("asset_sync")
