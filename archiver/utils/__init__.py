"""
Utility modules for the push archiver.
"""

from archiver.utils.logging import (
    get_logger,
    setup_logging,
    log_notification,
    log_step_transition,
    log_api_call,
    log_error_with_context,
)
from archiver.utils.metrics import (
    RunMetrics,
    track_api_call,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "log_notification",
    "log_step_transition",
    "log_api_call",
    "log_error_with_context",
    "RunMetrics",
    "track_api_call",
]
