"""
Observability for the mapping engine

Provides structured logging with correlation IDs (tenant, connection,
entity, reference key, Temporal workflow/activity).
"""

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    CorrelatedLogger,
    get_correlation_context,
    with_correlation,
)

__all__ = [
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "CorrelatedLogger",
    "get_correlation_context",
    "with_correlation",
]
