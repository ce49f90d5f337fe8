"""
Utilities package initialization.
"""
from .logger import (
    bind_request_id,
    current_request_id,
    get_logger,
    log_business_event,
    log_performance,
    reset_request_id,
    setup_logging,
)
from .time import utc_now, as_utc, days_until

__all__ = [
    "bind_request_id",
    "current_request_id",
    "reset_request_id",
    "get_logger",
    "log_business_event",
    "log_performance",
    "setup_logging",
    "utc_now",
    "as_utc",
    "days_until",
]
