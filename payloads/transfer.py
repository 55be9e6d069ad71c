"""Stock transfer payloads.

Outbound: a source-ERP stock transfer becomes a target-WMS inbound shipment
at the receiving location, one box per transfer line.

Inbound: when the target reports receipts, the source transfer is completed
once every line has received stock.
"""

from typing import Any, Dict, List, Optional

from core.mapping.schema_tree import ProjectionOptions, build_tree, project
from core.models.config import NOT_APPLICABLE
from core.observability.logging import get_logger
from payloads.dates import ensure_timezone, transfer_lot_id


logger = get_logger(__name__)

TRANSFER_APPROACH = "STOCK"
DEFAULT_COUNTRY_CODE = "US"
DEFAULT_PACKAGE_TYPE = "Pallet"
DEFAULT_BOX_PACKAGING = "OneSkuPerBox"
NO_TRACKING_NUMBER = "NO-TRACKING-NUMBER"
TRANSFER_ORDER_SUFFIX = ":TO"

PRESENT_ONLY = ProjectionOptions(keep_explicit_blanks=False)


def _box(
    line: Dict[str, Any],
    transfer: Dict[str, Any],
    has_inventory_fields: bool,
    inventory_ids: Dict[str, Any],
) -> Dict[str, Any]:
    item: Dict[str, Any] = {
        "sku": line.get("SKU") or "",
        "expected_quantity": line.get("TransferQuantity") or 0,
    }
    if has_inventory_fields:
        item["lot_id"] = line.get("BatchSN") or transfer_lot_id(
            transfer.get("DepartureDate") or transfer.get("RequiredByDate")
        )
        item["inventory_item_id"] = inventory_ids.get(line.get("SKU")) or ""
        if line.get("ExpiryDate"):
            item["lot_expiration_date"] = ensure_timezone(line["ExpiryDate"])
    return {
        "line_items": [item],
        "tracking_number": line.get("TrackingNumber") or NO_TRACKING_NUMBER,
    }


def build_transfer_inbound_body(
    transfer: Optional[Dict[str, Any]],
    flat_schema: Any,
    warehouse_id: Optional[str],
    has_inventory_fields: bool = False,
    inventory_items: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Build the inbound shipment body for a source-ERP stock transfer.

    Args:
        transfer: Stock transfer (its ``Lines`` carry batch and expiry)
        flat_schema: Integration schema for the inbound action
        warehouse_id: Target location id receiving the transfer
        has_inventory_fields: Schema asks for lot/inventory item fields
        inventory_items: Target inventory items (``sku``, ``id``)

    Returns:
        {"body": {...}}
    """
    transfer = transfer or {}
    lines = transfer.get("Lines") or []
    inventory_ids = {}
    if has_inventory_fields:
        inventory_ids = {item.get("sku"): item.get("id") for item in inventory_items or []}

    number = transfer.get("Number")
    source = {
        "approach": TRANSFER_APPROACH,
        "supplier": transfer.get("FromLocation") or "",
        "warehouse_id": warehouse_id,
        "trackstar_tags": [number] if number else [],
        "reference": transfer.get("Reference") or "",
        "purchase_order_number": number or "",
        "expected_arrival_date": ensure_timezone(transfer.get("RequiredByDate") or transfer.get("DepartureDate")),
        "country_code": DEFAULT_COUNTRY_CODE,
        "package_type": DEFAULT_PACKAGE_TYPE,
        "box_packaging_type": DEFAULT_BOX_PACKAGING,
        "line_items": [
            {
                "sku": line.get("SKU") or "",
                "expected_quantity": line.get("TransferQuantity") or 0,
                "unit_cost": 0,
                "product_name": line.get("ProductName") or "",
                "barcode": line.get("Barcode") or "",
            }
            for line in lines
        ],
        "boxes": [_box(line, transfer, has_inventory_fields, inventory_ids) for line in lines],
    }

    body = project(build_tree(flat_schema or {}), source, PRESENT_ONLY)
    logger.debug(f"Built transfer inbound body for {number}", extra_fields={"lines": len(lines)})
    return {"body": body}


def build_transfer_completion(
    cin7_id: Optional[str],
    line_items: Optional[List[Dict[str, Any]]],
    updated_date: Optional[str] = None,
) -> Dict[str, Any]:
    """Completion update for a source transfer from target receipt lines.

    The transfer is completed only when every line has received stock;
    otherwise ``{"result": False}``.

    Args:
        cin7_id: Stored transfer reference (a ``:TO`` suffix is stripped)
        line_items: Target receipt lines (``expected_quantity``, ``received_quantity``)
        updated_date: When the target last updated the receipt
    """
    task_id = (cin7_id or "").strip()
    if task_id.upper().endswith(TRANSFER_ORDER_SUFFIX):
        task_id = task_id[:-len(TRANSFER_ORDER_SUFFIX)]

    line_items = line_items or []
    received = [item.get("received_quantity") or 0 for item in line_items]
    if not line_items or not all(quantity > 0 for quantity in received):
        return {"result": False}

    fully = all(
        (item.get("expected_quantity") or 0) == (item.get("received_quantity") or 0)
        for item in line_items
    )
    status = "Fully Completed" if fully else "Partially Completed"
    details = "\n".join(
        f"  SKU: {item.get('sku') or NOT_APPLICABLE} - "
        f"Expected: {item.get('expected_quantity') or 0}, Received: {item.get('received_quantity') or 0}"
        for item in line_items
    )

    logger.info(f"Transfer {task_id} receipt {status.lower()}")
    return {
        "TaskID": task_id,
        "Status": "COMPLETED",
        "CompletionDate": updated_date,
        "Comments": f"Transfer Sync Status: {status}\n\nItem Details:\n{details}",
    }
