"""Observability infrastructure for structured logging and profiling."""

from reelvault.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)
from reelvault.infrastructure.observability.profiling import (
    start_cpu_profiling,
    stop_cpu_profiling,
)

__all__ = [
    "configure_logging",
    "get_correlation_id",
    "set_correlation_id",
    "start_cpu_profiling",
    "stop_cpu_profiling",
]
