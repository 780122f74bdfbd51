"""
Structured JSON logging for lifecycle sweep observability.

Provides structured logging with trace IDs for correlating the log lines of
one sweep, plus context managers for sweep stages and object store calls.
"""

import json
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone

# Context variables for trace correlation
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)
stage_var: ContextVar[str | None] = ContextVar("stage", default=None)

_EXTRA_FIELDS = (
    "event",
    "operation",
    "key",
    "size_bytes",
    "duration_ms",
    "items_processed",
    "items_total",
    "items_succeeded",
    "items_failed",
    "archive_path",
    "export_path",
)


# -----------------------------------------------------------------------------
# JSON Formatter
# -----------------------------------------------------------------------------


class JSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON.

    Output format:
    {"timestamp": "...", "level": "INFO", "message": "...", "trace_id": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add trace context if available
        trace_id = trace_id_var.get()
        if trace_id:
            log_data["trace_id"] = trace_id

        stage = getattr(record, "stage", None) or stage_var.get()
        if stage:
            log_data["stage"] = stage

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """
    Configure logging for scheduled jobs or local development.

    Args:
        json_format: If True, use JSON format. If False, use human-readable format.
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("s3transfer").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


# -----------------------------------------------------------------------------
# Context Managers
# -----------------------------------------------------------------------------


@contextmanager
def log_stage(stage: str, trace_id: str | None = None):
    """
    Context manager for sweep-level logging.

    Logs stage start and end with duration. A new trace id is generated when
    none is active so every sweep's lines can be correlated.

    Usage:
        with log_stage("archive"):
            # ... sweep logic ...
    """
    trace_token = None
    if trace_id or trace_id_var.get() is None:
        trace_token = trace_id_var.set(trace_id or uuid.uuid4().hex[:12])
    stage_token = stage_var.set(stage)

    start_time = time.time()
    logger = logging.getLogger("lifecycle")

    logger.info(f"Stage {stage} started", extra={"event": "stage_start", "stage": stage})

    try:
        yield
        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Stage {stage} completed",
            extra={
                "event": "stage_complete",
                "stage": stage,
                "duration_ms": duration_ms,
            },
        )
    except BaseException as e:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"Stage {stage} failed: {e!r}",
            extra={
                "event": "stage_failed",
                "stage": stage,
                "duration_ms": duration_ms,
            },
            exc_info=isinstance(e, Exception),
        )
        raise
    finally:
        stage_var.reset(stage_token)
        if trace_token is not None:
            trace_id_var.reset(trace_token)


@contextmanager
def log_storage_operation(operation: str, key: str):
    """
    Context manager for object store call instrumentation.

    Logs operation end with timing and size. Failures are logged at warning
    level because the caller decides whether they are fatal.

    Usage:
        with log_storage_operation("download", "processed/abc.json") as metrics:
            content = storage.download(key)
            metrics["size_bytes"] = len(content)
    """
    start_time = time.time()
    logger = logging.getLogger("lifecycle.storage")
    metrics: dict = {"size_bytes": 0}

    try:
        yield metrics

        duration_ms = int((time.time() - start_time) * 1000)
        logger.debug(
            f"Storage {operation} completed: {key} ({metrics['size_bytes']} bytes, {duration_ms}ms)",
            extra={
                "event": f"storage_{operation}_complete",
                "operation": operation,
                "key": key,
                "duration_ms": duration_ms,
                "size_bytes": metrics["size_bytes"],
            },
        )
    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.warning(
            f"Storage {operation} failed: {key} - {e}",
            extra={
                "event": f"storage_{operation}_failed",
                "operation": operation,
                "key": key,
                "duration_ms": duration_ms,
            },
        )
        raise


# -----------------------------------------------------------------------------
# Progress Tracker
# -----------------------------------------------------------------------------


@dataclass
class ProgressTracker:
    """
    Track progress for per-object sweeps with periodic logging.

    Usage:
        tracker = ProgressTracker(total=100, stage="archive_download", log_every=25)
        for obj in objects:
            ok = await fetch(obj)
            tracker.increment(ok)
        tracker.finish()
    """

    total: int
    stage: str
    log_every: int = 25

    processed: int = field(default=0, init=False)
    succeeded: int = field(default=0, init=False)
    failed: int = field(default=0, init=False)
    _start_time: float = field(default_factory=time.time, init=False)
    _logger: logging.Logger = field(init=False)

    def __post_init__(self):
        self._logger = logging.getLogger("lifecycle.progress")

    def increment(self, success: bool = True) -> None:
        """Increment progress counter."""
        self.processed += 1
        if success:
            self.succeeded += 1
        else:
            self.failed += 1

        if self.processed % self.log_every == 0 and self.processed < self.total:
            self._logger.info(
                f"{self.stage}: {self.processed}/{self.total} "
                f"({self.succeeded} ok, {self.failed} failed)",
                extra={
                    "event": "progress_update",
                    "stage": self.stage,
                    "items_processed": self.processed,
                    "items_total": self.total,
                    "items_succeeded": self.succeeded,
                    "items_failed": self.failed,
                },
            )

    def finish(self) -> dict:
        """Finalize progress tracking and return summary."""
        elapsed = time.time() - self._start_time

        self._logger.info(
            f"{self.stage}: Completed {self.processed}/{self.total} "
            f"({self.succeeded} ok, {self.failed} failed) in {elapsed:.1f}s",
            extra={
                "event": "progress_complete",
                "stage": self.stage,
                "items_processed": self.processed,
                "items_total": self.total,
                "items_succeeded": self.succeeded,
                "items_failed": self.failed,
                "duration_ms": int(elapsed * 1000),
            },
        )

        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "duration_seconds": round(elapsed, 1),
        }
