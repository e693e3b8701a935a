"""
Per-run metrics.

A pipeline run counts its archives by outcome and times every call to an
external store, then emits one summary log line when it ends.
"""

import time
from collections import Counter, defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from archiver.utils.logging import get_logger, log_api_call

logger = get_logger(__name__)

OUTCOMES = ("uploaded", "unchanged", "failed")


def _latency_stats(samples: List[float]) -> Dict[str, float]:
    return {
        "count": len(samples),
        "min_ms": round(min(samples), 2),
        "max_ms": round(max(samples), 2),
        "avg_ms": round(sum(samples) / len(samples), 2),
    }


class RunMetrics:
    """Counters and timings of one (project, repository, branch) run."""

    def __init__(self, project_key: str, repository: str, branch: str):
        self.project_key = project_key
        self.repository = repository
        self.branch = branch

        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.duration_ms: Optional[int] = None
        self._started_at: Optional[float] = None

        self.archives_produced = 0
        self.outcomes: Counter = Counter()

        self.api_calls: Counter = Counter()
        self.api_latencies: Dict[str, List[float]] = defaultdict(list)

        self.status = "running"
        self.error_message: Optional[str] = None

    @property
    def archives_uploaded(self) -> int:
        return self.outcomes["uploaded"]

    @property
    def archives_unchanged(self) -> int:
        return self.outcomes["unchanged"]

    @property
    def archives_failed(self) -> int:
        return self.outcomes["failed"]

    def start(self) -> None:
        self.start_time = datetime.now(timezone.utc)
        self._started_at = time.monotonic()
        self.status = "running"

    def complete(self, status: str = "done", error_message: Optional[str] = None) -> None:
        """
        Close the run and log its summary.

        Args:
            status: Final pipeline state ('done' or 'failed')
            error_message: Why the run failed
        """
        self.end_time = datetime.now(timezone.utc)
        if self._started_at is not None:
            self.duration_ms = int((time.monotonic() - self._started_at) * 1000)
        self.status = status
        self.error_message = error_message

        logger.info(
            f"Run metrics for {self.project_key}/{self.repository}/{self.branch}",
            extra={"run_metrics": self.get_metrics_summary()}
        )

    def record_archives_produced(self, count: int) -> None:
        self.archives_produced = count

    def record_outcome(self, outcome: str) -> None:
        """Count one archive as 'uploaded', 'unchanged' or 'failed'."""
        if outcome in OUTCOMES:
            self.outcomes[outcome] += 1

    def record_api_call(self, service: str, duration_ms: float) -> None:
        self.api_calls[service] += 1
        self.api_latencies[service].append(duration_ms)

    def get_metrics_summary(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "project_key": self.project_key,
            "repository": self.repository,
            "branch": self.branch,
            "status": self.status,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_ms": self.duration_ms,
            "archives_produced": self.archives_produced,
            **{f"archives_{outcome}": self.outcomes[outcome] for outcome in OUTCOMES},
            "api_calls": dict(self.api_calls),
        }

        latencies = {service: _latency_stats(samples) for service, samples in self.api_latencies.items() if samples}
        if latencies:
            summary["api_latencies"] = latencies
        if self.error_message:
            summary["error_message"] = self.error_message

        return summary


@asynccontextmanager
async def track_api_call(
    metrics: Optional[RunMetrics],
    service: str,
    operation: str,
    target: str,
    logger_adapter
):
    """
    Time the enclosed store call and log it, failed or not.

    Usage:
        async with track_api_call(metrics, "s3", "PutObject", key, logger):
            version_id = await run_in_thread(store.put, key, path)
    """
    started = time.monotonic()
    error: Optional[BaseException] = None

    try:
        yield
    except Exception as e:
        error = e
        raise
    finally:
        duration_ms = (time.monotonic() - started) * 1000
        if metrics:
            metrics.record_api_call(service, duration_ms)
        log_api_call(
            logger_adapter,
            service=service,
            operation=operation,
            target=target,
            duration_ms=duration_ms,
            error=str(error) if error else None,
        )
