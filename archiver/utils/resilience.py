"""
Retry and failure-summary helpers.

Retries cover infrastructure plumbing only: connecting to Redis and polling
the queue. Pipeline steps are never retried in-process; redelivery of the
whole notification is how a failed run is retried.
"""

import asyncio
import logging
import traceback
from datetime import datetime, timezone
from functools import wraps
from typing import Awaitable, Callable, List, Optional, ParamSpec, TypeVar

from archiver.models.error import ErrorRecord

logger = logging.getLogger(__name__)

P = ParamSpec('P')
T = TypeVar('T')


def backoff_delay(attempt: int, base_delay: float, max_delay: float, exponential_base: float) -> float:
    """Delay before retry number ``attempt + 1``, capped at ``max_delay``."""
    return min(base_delay * (exponential_base ** attempt), max_delay)


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple = (Exception,)
):
    """
    Retry a coroutine function with exponential backoff.

    Args:
        max_retries: Total attempts, including the first
        base_delay: Delay after the first failure, in seconds
        max_delay: Upper bound for any delay, in seconds
        exponential_base: Growth factor between delays
        exceptions: Exception types that trigger a retry; anything else propagates at once

    Example:
        @retry_with_backoff(max_retries=5, exceptions=(ClientError, BotoCoreError))
        async def receive():
            ...
    """
    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attempt = 0
            while True:
                try:
                    result = await func(*args, **kwargs)
                except exceptions as e:
                    attempt += 1
                    if attempt >= max_retries:
                        logger.error(f"{func.__name__} gave up after {attempt} attempt(s): {e}", exc_info=True)
                        raise

                    delay = backoff_delay(attempt - 1, base_delay, max_delay, exponential_base)
                    logger.warning(
                        f"{func.__name__} attempt {attempt}/{max_retries} failed: {e}; "
                        f"retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue

                if attempt:
                    logger.info(f"{func.__name__} recovered on attempt {attempt + 1}/{max_retries}")
                return result

        return wrapper

    return decorator


class ErrorRecoveryManager:
    """
    Summaries and records for failures of independent archives.
    """

    @staticmethod
    def handle_partial_failure(
        operation_name: str,
        total_items: int,
        successful_items: int,
        errors: List[str],
        context: dict
    ) -> None:
        """
        Log how many of a run's archives succeeded.

        Args:
            operation_name: Step the items went through
            total_items: Archives attempted
            successful_items: Archives that did not fail
            errors: Messages of the failed archives
            context: Run identity (project, repository, branch)
        """
        failed_items = total_items - successful_items

        if not failed_items:
            logger.info(
                f"{operation_name}: all {total_items} archive(s) succeeded",
                extra={"operation": operation_name, "total_items": total_items, "run_context": context}
            )
            return

        logger.warning(
            f"{operation_name}: {failed_items} of {total_items} archive(s) failed",
            extra={
                "operation": operation_name,
                "total_items": total_items,
                "failed_items": failed_items,
                "errors": errors[:10],
                "run_context": context
            }
        )

    @staticmethod
    def build_error_record(error: BaseException, phase: str, object_key: Optional[str] = None) -> ErrorRecord:
        """
        Capture a failed per-archive step.

        Args:
            error: The exception raised by the step
            phase: Step name ('fetch_previous', 'compare', 'upload', 'record_provenance')
            object_key: Key of the archive the step worked on
        """
        return ErrorRecord(
            phase=phase,
            error_type=type(error).__name__,
            message=str(error),
            object_key=object_key,
            stack_trace="".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
            timestamp=datetime.now(timezone.utc),
        )
