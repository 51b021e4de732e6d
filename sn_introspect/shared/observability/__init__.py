# Observability package
from .logging import (
    get_logger,
    new_correlation_id,
    set_correlation_id,
    setup_logging,
)
from .metrics import setup_metrics

__all__ = [
    "get_logger",
    "setup_logging",
    "set_correlation_id",
    "new_correlation_id",
    "setup_metrics",
]
