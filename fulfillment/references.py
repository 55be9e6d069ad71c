"""Sale reference ids and keys.

Each synced source-ERP sale is recorded under a reference id (the sale ID)
and a human key (the sale order number). Advance sales fulfil in several
parts, so each fulfilment gets its own reference:
``{saleId}:{TaskID}`` and ``{orderNumber}-{FulfillmentNumber}``.
"""

from typing import Any, Dict, Optional

from core.observability.logging import get_logger


logger = get_logger(__name__)

ADVANCE_SALE = "Advance Sale"


def sale_references(
    sale: Optional[Dict[str, Any]],
    sale_order_type: Optional[str] = None,
    fulfilment: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build ``{referenceId, referenceKey}`` for a source-ERP sale.

    Args:
        sale: Sale details (``ID`` and ``Order.SaleOrderNumber``)
        sale_order_type: Sale order type; "Advance Sale" adds fulfilment suffixes
        fulfilment: Current fulfilment (``TaskID``, ``FulfillmentNumber``)

    Returns:
        Reference dict, or ``{"error": ...}`` when sale details are missing
    """
    sale = sale or {}
    sale_id = sale.get("ID")
    order_number = (sale.get("Order") or {}).get("SaleOrderNumber")
    if not sale_id or not order_number:
        return {
            "error": (
                "Missing required sale details. "
                f"ID: {sale_id if sale_id is not None else 'undefined'}, "
                f"SaleOrderNumber: {order_number if order_number is not None else 'undefined'}"
            )
        }

    reference_id = str(sale_id)
    reference_key = str(order_number)

    if sale_order_type == ADVANCE_SALE:
        fulfilment = fulfilment or {}
        task_id = fulfilment.get("TaskID")
        fulfilment_number = fulfilment.get("FulfillmentNumber")
        if not task_id or not fulfilment_number:
            logger.warning(
                "Advance Sale without fulfilment data, using sale-level references",
                extra_fields={"sale_id": reference_id},
            )
        else:
            reference_id = f"{reference_id}:{task_id}"
            reference_key = f"{reference_key}-{fulfilment_number}"

    return {"referenceId": reference_id, "referenceKey": reference_key}
