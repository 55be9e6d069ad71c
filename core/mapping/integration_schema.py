"""Integration schema selection.

Each target integration (per WMS/3PL vendor) stores the operations it
supports with the body fields each one accepts:

    {
        "integration_name": "dear-systems",
        "display_name": "DEAR",
        "data": {"type": "jsonb", "value": "{\"operations\": [...]}"}
    }

An operation lists ``base_schema_fields`` shared by all integrations plus
``integration_specific_fields``; together they are the flat schema the
payload builders project onto.
"""

import json
from typing import Any, Dict, List, Mapping, Optional

from core.mapping.schema_tree import build_tree, leaf_paths, to_placeholders
from core.observability.logging import get_logger


logger = get_logger(__name__)

DEFAULT_ACTION = "create_order"

# Any of these segments means the integration tracks inventory per lot
INVENTORY_FIELD_SEGMENTS = frozenset({"lot_id", "inventory_item_id", "lot_expiration_date"})


def _operations_document(raw: Any) -> Any:
    """Unwrap the stored record down to the ``{"operations": [...]}`` document."""
    if isinstance(raw, (str, bytes)):
        return json.loads(raw)
    if isinstance(raw, Mapping):
        if "operations" in raw:
            return raw
        data = raw.get("data")
        if isinstance(data, Mapping) and "value" in data:
            value = data["value"]
            return json.loads(value) if isinstance(value, (str, bytes)) else value
        if isinstance(data, Mapping) and "operations" in data:
            return data
    return raw


def has_inventory_fields(flat_schema: Mapping) -> bool:
    """True when any schema path carries a lot/inventory-item segment."""
    for path in leaf_paths(build_tree(flat_schema)):
        if INVENTORY_FIELD_SEGMENTS.intersection(path.split(".")):
            return True
    return False


def select_operation_schema(raw: Any, action: Optional[str] = None) -> Dict[str, Any]:
    """Select one operation's schema from a stored integration record.

    Args:
        raw: Stored integration record, its JSON value, or the parsed document
        action: Operation to select (default "create_order")

    Returns:
        {integration_name, display_name, action, url, schema, fields,
        hasInventoryFields}, or {"error": str} when the record is unusable
    """
    action = action or DEFAULT_ACTION

    try:
        document = _operations_document(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Integration schema is not valid JSON: {e.msg}")
        return {"error": f"Integration schema is not valid JSON: {e.msg}"}

    operations: List[Any] = document.get("operations") if isinstance(document, Mapping) else None
    if not isinstance(operations, list):
        keys = ", ".join(document.keys()) if isinstance(document, Mapping) else type(document).__name__
        return {"error": f"Integration data missing operations array. Parsed data keys: {keys}"}

    operation = next(
        (op for op in operations if isinstance(op, Mapping) and op.get("action") == action),
        None,
    )
    if operation is None:
        return {"error": f"Operation '{action}' not found in integration schema"}

    fields: Dict[str, Any] = {}
    fields.update(operation.get("base_schema_fields") or {})
    fields.update(operation.get("integration_specific_fields") or {})

    record = raw if isinstance(raw, Mapping) else {}
    return {
        "integration_name": record.get("integration_name"),
        "display_name": record.get("display_name"),
        "action": action,
        "url": operation.get("url"),
        "schema": to_placeholders(build_tree(fields)),
        "fields": fields,
        "hasInventoryFields": has_inventory_fields(fields),
    }
