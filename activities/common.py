"""Shared helpers for activity definitions."""

from contextlib import contextmanager
from typing import Any, Dict, Optional

from temporalio import activity

from core.observability.logging import with_correlation


@contextmanager
def activity_correlation(
    tenant_id: Optional[str] = None,
    connection_id: Optional[str] = None,
    entity: Optional[str] = None,
    reference_key: Optional[str] = None,
):
    """Scope engine logs to the running activity and its workflow."""
    info = activity.info()
    with with_correlation(
        tenant_id=tenant_id,
        connection_id=connection_id,
        entity=entity,
        reference_key=reference_key,
        workflow_id=info.workflow_id,
        workflow_run_id=info.workflow_run_id,
        activity_id=info.activity_id,
        activity_name=info.activity_type,
        task_queue=info.task_queue,
    ) as ctx:
        yield ctx


def error_result(message: str, **extra: Any) -> Dict[str, Any]:
    """Error object returned to the workflow instead of raising."""
    activity.logger.warning(message)
    result: Dict[str, Any] = {"error": message}
    result.update(extra)
    return result
