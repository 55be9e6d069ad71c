"""Purchase payloads (source-ERP purchase order -> target-WMS inbound shipments).

Each invoice of a purchase becomes one inbound shipment. Received
quantities come from the put-away receipt with the invoice's TaskID.
"""

from typing import Any, Dict, List, Optional, Union

from core.mapping.schema_tree import ObjectNode, ProjectionOptions, build_tree, project
from core.observability.logging import get_logger
from payloads.dates import to_iso8601_utc


logger = get_logger(__name__)

DEFAULT_APPROACH = "INVOICE"
DEFAULT_COUNTRY_CODE = "US"

# Only present values are sent on inbound shipments
PRESENT_ONLY = ProjectionOptions(keep_explicit_blanks=False)


def _same_task(left: Optional[str], right: Optional[str]) -> bool:
    return bool(left) and bool(right) and str(left).lower() == str(right).lower()


def _receipt_for(invoice: Dict[str, Any], receipts: List[Dict[str, Any]]) -> Dict[str, Any]:
    return next((r for r in receipts if _same_task(r.get("TaskID"), invoice.get("TaskID"))), {})


def _line_item(line: Dict[str, Any], receipt: Dict[str, Any]) -> Dict[str, Any]:
    put_away = next((p for p in receipt.get("Lines") or [] if p.get("SKU") == line.get("SKU")), {})
    return {
        "sku": line.get("SKU") or "",
        "expected_quantity": line.get("Quantity") or 0,
        "received_quantity": (put_away.get("Quantity") or 0) if put_away.get("Received") else 0,
        "unit_cost": line.get("Price") or 0,
        "product_name": line.get("Name") or "",
        "barcode": put_away.get("BatchSN") or "",
    }


def invoice_payload(
    purchase: Dict[str, Any],
    invoice: Dict[str, Any],
    tree: ObjectNode,
    warehouse_id: Optional[str],
) -> Optional[Dict[str, Any]]:
    """Inbound shipment payload for one invoice, or None if it has no lines."""
    lines = invoice.get("Lines") or []
    if not lines:
        return None

    receipt = _receipt_for(invoice, purchase.get("PutAway") or [])
    order_number = purchase.get("OrderNumber")
    country = (purchase.get("ShippingAddress") or {}).get("Country") or (
        purchase.get("BillingAddress") or {}
    ).get("Country")
    tags = [
        order_number or "",
        f"Invoice-{invoice.get('InvoiceNumber')}",
        f"Receipt-{invoice.get('InvoicingAndReceivingNumber')}",
    ]

    source = {
        "approach": purchase.get("Approach") or DEFAULT_APPROACH,
        "supplier": purchase.get("Supplier") or "",
        "warehouse_id": warehouse_id,
        "purchase_order_number": order_number or "",
        "country_code": country or DEFAULT_COUNTRY_CODE,
        "trackstar_tags": [tag for tag in tags if tag],
        "reference": f"{order_number}-R{invoice.get('InvoicingAndReceivingNumber')}",
        "expected_arrival_date": to_iso8601_utc(invoice.get("InvoiceDate") or purchase.get("OrderDate")),
        "line_items": [_line_item(line, receipt) for line in lines],
    }

    return {
        "body": project(tree, source, PRESENT_ONLY),
        "metadata": {
            "cin7_purchase_id": purchase.get("ID"),
            "purchase_order_number": order_number,
            "invoice_task_id": invoice.get("TaskID"),
            "invoice_number": invoice.get("InvoiceNumber"),
            "invoice_date": invoice.get("InvoiceDate"),
            "invoicing_receiving_number": invoice.get("InvoicingAndReceivingNumber"),
            "invoice_status": invoice.get("Status"),
            "invoice_total": invoice.get("Total"),
        },
    }


def build_purchase_payloads(
    purchase: Optional[Dict[str, Any]],
    flat_schema: Any,
    warehouse_id: Optional[str],
    invoice_id: Optional[str] = None,
) -> Union[List[Dict[str, Any]], Dict[str, Any]]:
    """Build inbound shipment payloads for a purchase.

    Args:
        purchase: Source-ERP advanced purchase (Invoice[], PutAway[])
        flat_schema: Integration schema for the inbound action
        warehouse_id: Target location id receiving the goods
        invoice_id: Only build the invoice with this TaskID

    Returns:
        List of ``{body, metadata}`` payloads (invoices without lines are
        skipped), or ``{"error": ..., "payloads": []}`` when ``invoice_id``
        matches no invoice or an invoice without lines
    """
    purchase = purchase or {}
    tree = build_tree(flat_schema or {})
    invoices = purchase.get("Invoice") or []

    if not invoice_id:
        payloads = [invoice_payload(purchase, invoice, tree, warehouse_id) for invoice in invoices]
        payloads = [p for p in payloads if p is not None]
        logger.info(
            f"Built {len(payloads)} inbound payload(s) for purchase {purchase.get('OrderNumber')}",
            extra_fields={"invoices": len(invoices)},
        )
        return payloads

    invoice = next((inv for inv in invoices if _same_task(inv.get("TaskID"), invoice_id)), None)
    if invoice is None:
        logger.warning(f"Invoice {invoice_id} not found on purchase {purchase.get('OrderNumber')}")
        return {"error": f"Invoice with TaskID {invoice_id} not found", "payloads": []}
    if not invoice.get("Lines"):
        return {"error": f"Invoice with TaskID {invoice_id} has no line items", "payloads": []}

    return [invoice_payload(purchase, invoice, tree, warehouse_id)]
