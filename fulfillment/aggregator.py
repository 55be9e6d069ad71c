"""Sync result aggregation.

Combines the results of one shipment's Pick, Pack and Ship calls into a
single SyncOutcome:

- an operation that was never attempted counts as successful
- a 2xx status counts as successful
- an "already authorised" error counts as successful, so re-delivered
  events are idempotent
- the outcome is Success only when all three operations succeed
"""

import json
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.observability.logging import get_logger
from core.settings import EngineSettings, get_settings
from fulfillment.models import SyncOutcome, SyncStatus


logger = get_logger(__name__)

NOTHING_TO_SYNC = "No changes needed to be synced"
ALL_EXISTING = "Pick, Pack and Shipment is already existing."
SOME_EXISTING = "Successfully synced updates (where some operations were already existing)."
SYNCED = "Successfully synced updates"


class OperationResult(BaseModel):
    """Result of one executed sub-operation call."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    status_code: Optional[int] = Field(default=None, alias="statusCode")
    output: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("output", mode="before")
    @classmethod
    def _output_object(cls, value: Any) -> Any:
        # A raw text body is the error message; any other non-object body carries nothing
        if isinstance(value, str):
            return {"message": value}
        return value if isinstance(value, dict) else {}

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300

    @property
    def message(self) -> Any:
        return self.output.get("message") or ""

    @property
    def task_id(self) -> Optional[str]:
        task_id = self.output.get("TaskID")
        return str(task_id) if task_id else None


def _as_result(result: Any) -> Optional[OperationResult]:
    if result is None:
        return None
    if isinstance(result, OperationResult):
        return result
    try:
        return OperationResult.model_validate(result)
    except ValidationError as e:
        logger.warning(f"Unreadable operation result: {e.error_count()} error(s)")
        status = result.get("statusCode") if isinstance(result, dict) else None
        return OperationResult(statusCode=status if isinstance(status, int) else None)


def _parse_message(message: Any) -> Tuple[bool, Any]:
    """Return (parsed, value). Non-string messages are already parsed."""
    if not isinstance(message, str):
        return True, message
    try:
        return True, json.loads(message)
    except ValueError:
        return False, message


def _first_exception(value: Any) -> str:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0].get("Exception") or ""
    return ""


def is_already_authorised(result: Optional[OperationResult], signature: str) -> bool:
    if result is None or result.ok:
        return False
    parsed, value = _parse_message(result.message)
    if parsed:
        return signature in _first_exception(value)
    return signature in value


def failure_reason(label: str, result: OperationResult) -> str:
    parsed, value = _parse_message(result.message)
    if not parsed:
        return f"{label} failed: {value or result.status_code}"
    exception = _first_exception(value)
    if exception:
        return f"{label} failed: {exception}"
    return f"{label} failed with status: {result.status_code}"


def aggregate(
    pick: Any = None,
    pack: Any = None,
    ship: Any = None,
    cin7_key: str = "",
    reference_key: str = "",
    settings: Optional[EngineSettings] = None,
) -> SyncOutcome:
    """Aggregate Pick/Pack/Ship results into one outcome.

    Args:
        pick: Pick call result (``{statusCode, output}``), None if not attempted
        pack: Pack call result, None if not attempted
        ship: Ship call result, None if not attempted
        cin7_key: Caller key; the last 5 chars of the discovered TaskID are prepended
        reference_key: Parent reference key, passed through unchanged
        settings: Engine settings (already-authorised signature)

    Returns:
        SyncOutcome
    """
    settings = settings or get_settings()
    signature = settings.already_authorised_signature
    steps: List[Tuple[str, Optional[OperationResult]]] = [
        ("Pick", _as_result(pick)),
        ("Pack", _as_result(pack)),
        ("Ship", _as_result(ship)),
    ]

    if all(result is None for _, result in steps):
        return SyncOutcome(
            syncStatus=SyncStatus.SUCCESS,
            message=NOTHING_TO_SYNC,
            cin7Key=cin7_key,
            parentReferenceKey=reference_key,
        )

    existing = {label: is_already_authorised(result, signature) for label, result in steps}
    succeeded = {
        label: result is None or result.ok or existing[label]
        for label, result in steps
    }

    if all(succeeded.values()):
        status = SyncStatus.SUCCESS
        attempted = [label for label, result in steps if result is not None]
        if any(existing.values()) and all(existing[label] for label in attempted):
            message = ALL_EXISTING
        elif any(existing.values()):
            message = SOME_EXISTING
        else:
            message = SYNCED
    else:
        status = SyncStatus.FAILED
        message = "; ".join(
            failure_reason(label, result)
            for label, result in steps
            if not succeeded[label]
        )

    source_id = next((result.task_id for _, result in steps if result and result.task_id), None)
    source_key = f"{source_id[-5:]}:{cin7_key}" if source_id else cin7_key

    outcome = SyncOutcome(
        syncStatus=status,
        message=message,
        cin7Id=source_id,
        cin7Key=source_key,
        parentReferenceKey=reference_key,
    )
    log = logger.info if outcome.succeeded else logger.warning
    log(f"Shipment sync {status.value}: {message}", extra_fields={"cin7_key": source_key})
    return outcome
