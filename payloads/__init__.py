"""Outbound payload builders, one module per synced entity.

- sale: source sale fulfilment -> target order
- purchase: source purchase invoices -> target inbound shipments
- transfer: source stock transfer -> target inbound shipment, and the
  completion update sent back once received
"""

from payloads.dates import ensure_timezone, to_iso8601_utc, transfer_lot_id
from payloads.purchase import build_purchase_payloads
from payloads.sale import (
    SaleContext,
    build_sale_order_body,
    combine_pick_lines,
    parse_display_address_line2,
    shipping_method_fields,
)
from payloads.transfer import build_transfer_completion, build_transfer_inbound_body

__all__ = [
    "SaleContext",
    "build_sale_order_body",
    "build_purchase_payloads",
    "build_transfer_inbound_body",
    "build_transfer_completion",
    "parse_display_address_line2",
    "shipping_method_fields",
    "combine_pick_lines",
    "ensure_timezone",
    "to_iso8601_utc",
    "transfer_lot_id",
]
