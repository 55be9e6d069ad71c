"""
Structured Logging with Correlation IDs

Every record emitted through ``get_logger`` carries the sync context it was
produced under:
- tenant_id: Tenant whose configuration drives the mapping
- connection_id: Target WMS connection resolved for the record
- entity: sale / purchase / transfer / inventory
- reference_key: Human key of the source document (order number, SKU)
- workflow_id / activity_id: Temporal execution that invoked the step

Usage:
    from core.observability.logging import get_logger, with_correlation

    logger = get_logger(__name__)

    with with_correlation(tenant_id="T-001", entity="inventory", reference_key="SKU-1"):
        logger.info("Building adjustments")  # Includes tenant/entity/reference
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional, Dict, Any


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass
class CorrelationContext:
    """Context for correlating logs across one sync step."""
    tenant_id: Optional[str] = None
    connection_id: Optional[str] = None
    entity: Optional[str] = None
    reference_key: Optional[str] = None
    workflow_id: Optional[str] = None
    workflow_run_id: Optional[str] = None
    activity_id: Optional[str] = None
    activity_name: Optional[str] = None
    task_queue: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **kwargs) -> "CorrelationContext":
        """Create a new context with merged values."""
        data = self.to_dict()
        data.update({k: v for k, v in kwargs.items() if v is not None})
        return CorrelationContext(**data)


_correlation_context: ContextVar[CorrelationContext] = ContextVar(
    "correlation_context",
    default=CorrelationContext()
)


def get_correlation_context() -> CorrelationContext:
    """Get the current correlation context."""
    return _correlation_context.get()


def set_correlation_context(ctx: CorrelationContext) -> None:
    """Set the current correlation context."""
    _correlation_context.set(ctx)


@contextmanager
def with_correlation(**kwargs):
    """
    Context manager to set correlation IDs for logging.

    Usage:
        with with_correlation(tenant_id="T-001", connection_id="conn-a"):
            logger.info("Resolving location")
    """
    old_ctx = get_correlation_context()
    new_ctx = old_ctx.merge(**kwargs)
    token = _correlation_context.set(new_ctx)
    try:
        yield new_ctx
    finally:
        _correlation_context.reset(token)


# =============================================================================
# Formatters
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter that includes correlation context.

    Output format:
    {
        "timestamp": "2026-01-09T12:00:00.000000Z",
        "level": "INFO",
        "logger": "reconciliation.engine",
        "message": "Built 2 adjustment(s)",
        "source": "engine:312",
        "tenant_id": "T-001",
        "entity": "inventory",
        "case": "lots_consolidated"
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.lineno}",
        }

        log_data.update(get_correlation_context().to_dict())

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter that includes key correlation IDs.

    Output format:
    2026-01-09 12:00:00 [INFO ] reconciliation.engine [T-001/inventory/SKU-1]: Built 2 adjustment(s)
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_correlation_context()

        correlation_parts = []
        if ctx.tenant_id:
            correlation_parts.append(ctx.tenant_id)
        if ctx.entity:
            correlation_parts.append(ctx.entity)
        if ctx.reference_key:
            correlation_parts.append(ctx.reference_key)
        if ctx.workflow_id:
            wf_short = ctx.workflow_id[:12] if len(ctx.workflow_id) > 12 else ctx.workflow_id
            correlation_parts.append(wf_short)

        correlation = "/".join(correlation_parts) if correlation_parts else "-"
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        msg = f"{timestamp} [{record.levelname:5}] {record.name} [{correlation}]: {record.getMessage()}"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


# =============================================================================
# Logger with Correlation Support
# =============================================================================

class CorrelatedLogger:
    """
    Logger wrapper whose records carry the correlation context.

    Fields passed as ``extra_fields=`` land on the record (and in JSON
    output); ``bind()`` fixes fields for every record of a derived logger.
    """

    def __init__(self, logger: logging.Logger, bound: Optional[Dict[str, Any]] = None):
        self._logger = logger
        self._bound: Dict[str, Any] = dict(bound or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **fields: Any) -> "CorrelatedLogger":
        """Derived logger that adds ``fields`` to every record."""
        merged = dict(self._bound)
        merged.update(fields)
        return CorrelatedLogger(self._logger, merged)

    def _log(self, level: int, msg: str, *args, extra_fields: Optional[Dict[str, Any]] = None, exc_info=False):
        if not self._logger.isEnabledFor(level):
            return
        fields = dict(self._bound)
        fields.update(extra_fields or {})
        # stacklevel 3 attributes the record to the caller of info()/warning()
        self._logger.log(level, msg, *args, exc_info=exc_info, extra={"extra_fields": fields}, stacklevel=3)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs["exc_info"] = True
        self._log(logging.ERROR, msg, *args, **kwargs)

    def isEnabledFor(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)


# =============================================================================
# Logger Factory
# =============================================================================

_loggers: Dict[str, CorrelatedLogger] = {}
_configured = False

# Top-level packages whose loggers follow the configured level
ENGINE_LOGGERS = [
    "activities",
    "core",
    "fulfillment",
    "location_resolver",
    "payloads",
    "reconciliation",
    "workers",
]


def configure_logging(
    level: Optional[int] = None,
    json_format: Optional[bool] = None,
    include_temporal: bool = True,
):
    """
    Configure logging for the engine.

    Args:
        level: Logging level (defaults to LOG_LEVEL env var, then INFO)
        json_format: If True, use JSON format (defaults to LOG_JSON env var)
        include_temporal: If True, also configure Temporal SDK loggers
    """
    global _configured

    if _configured:
        return

    if level is None:
        level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO
    if json_format is None:
        json_format = os.getenv("LOG_JSON", "false").lower() in ("1", "true", "yes")

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    for logger_name in ENGINE_LOGGERS:
        logging.getLogger(logger_name).setLevel(level)

    if include_temporal:
        logging.getLogger("temporalio").setLevel(logging.INFO)

    _configured = True


def get_logger(name: str) -> CorrelatedLogger:
    """
    Get a correlated logger for the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        CorrelatedLogger instance
    """
    if name not in _loggers:
        if not _configured:
            configure_logging()

        _loggers[name] = CorrelatedLogger(logging.getLogger(name))

    return _loggers[name]
