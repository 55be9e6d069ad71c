"""Source-ERP sale updates from target-WMS order changes.

When a target order changes, only the changed fields are carried back to the
source sale. Changes come from the webhook's ``previous_attributes`` (or from
diffing two order versions); a direct trigger treats every field as changed.

When ``shipments`` changed, per-shipment Pick/Pack/Ship operations are built
as well.
"""

from typing import Any, Dict, List, Optional

from core.mapping.diff import ChangeSet
from core.observability.logging import get_logger
from core.settings import EngineSettings
from fulfillment.classifier import as_order, classify
from fulfillment.operations import (
    as_resolver,
    build_shipment_operation,
    normalize_task_id,
    shipping_address,
)
from fulfillment.models import Order


logger = get_logger(__name__)


# Simple order fields: (changed path, sale field). Later entries win when
# several map to the same sale field.
ORDER_FIELDS = [
    ("status", "Status"),
    ("reference_id", "CustomerReference"),
    ("order_number", "CustomerReference"),
    ("trading_partner", "Customer"),
    ("warehouse_customer_id", "CustomerID"),
    ("shipping_notes", "ShippingNotes"),
    ("required_ship_date", "ShipBy"),
    ("created_date", "SaleOrderDate"),
    ("carrier_name", "Carrier"),
    ("shipping_method", "Carrier"),
    ("shipping_method_name", "Carrier"),
    ("service_level", "Carrier"),
]

CONTACT_FIELDS = [
    ("ship_to_address.email_address", "Email", "email_address"),
    ("ship_to_address.phone_number", "Phone", "phone_number"),
    ("ship_to_address.full_name", "Contact", "full_name"),
]

ADDRESS_FIELDS = [
    "ship_to_address.company",
    "ship_to_address.state",
    "ship_to_address.country",
    "ship_to_address.city",
    "ship_to_address.address1",
    "ship_to_address.postal_code",
    "ship_to_address.address2",
    "ship_to_address.address3",
]


def _append_note(changes: Dict[str, Any], note: str) -> None:
    changes["Note"] = f"{changes['Note']} | {note}" if changes.get("Note") else note


def _line_changes(order: Order) -> List[Dict[str, Any]]:
    return [
        {
            "Product": item.sku,
            "Quantity": item.quantity,
            "Price": item.unit_price,
            "Discount": item.discount_amount or 0,
        }
        for item in order.line_items
    ]


def _shipment_changes(order: Order, changes: Dict[str, Any]) -> None:
    tracking_numbers = [
        package.tracking_number
        for shipment in order.shipments
        for package in shipment.packages
        if package.tracking_number
    ]
    if tracking_numbers:
        changes["CombinedTrackingNumbers"] = ", ".join(tracking_numbers)

    first = order.shipments[0]
    if first.packages and first.packages[0].carrier_name and not changes.get("Carrier"):
        changes["Carrier"] = first.packages[0].carrier_name
    if first.status:
        _append_note(changes, f"Shipment Status: {first.status}")


def build_sale_update(data: Dict[str, Any], changed: ChangeSet) -> Dict[str, Any]:
    """Map changed order fields onto source-ERP sale fields.

    Args:
        data: Target-WMS order record
        changed: Change set for the order

    Returns:
        Dict of sale fields to update (empty when nothing mapped changed)
    """
    order = as_order(data)
    changes: Dict[str, Any] = {}

    for path, sale_field in ORDER_FIELDS:
        if changed.has(path):
            changes[sale_field] = data.get(path) or ""

    if changed.has("raw_status") and data.get("raw_status"):
        changes["Note"] = f"Status: {data.get('raw_status')}"
    if changed.has("channel") and data.get("channel"):
        _append_note(changes, f"Channel: {data.get('channel')}")

    address = data.get("ship_to_address") or {}
    for path, sale_field, key in CONTACT_FIELDS:
        if changed.has(path):
            changes[sale_field] = address.get(key) or ""

    if any(changed.has(path) for path in ADDRESS_FIELDS):
        changes["ShippingAddress"] = shipping_address(order.ship_to_address)

    if changed.any_under("line_items"):
        changes["Lines"] = _line_changes(order)

    if changed.has("shipments") and order.shipments:
        _shipment_changes(order, changes)

    return changes


def plan_order_sync(
    order: Any,
    previous_attributes: Optional[Dict[str, Any]] = None,
    reference_id: Optional[str] = None,
    location_mapping: Any = None,
    existing_pick_lines: Optional[List[Dict[str, Any]]] = None,
    direct_trigger: bool = False,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    """Plan the source-ERP sync for one target-WMS order change.

    Args:
        order: Target-WMS order record (new version)
        previous_attributes: Old values of the fields that changed
        reference_id: Stored source sale reference (``prefix:taskId`` or ``taskId``)
        location_mapping: Tenant location mappings
        existing_pick_lines: Pick lines already recorded on the source sale
        direct_trigger: Sync every field, not only changed ones
        settings: Engine settings

    Returns:
        ``{saleId, saleType, saleUpdate?, shipmentOperations?}``, or only
        ``{saleId}`` when the change carries no previous attributes.
    """
    data = order.model_dump() if isinstance(order, Order) else dict(order or {})
    sale_id = normalize_task_id(reference_id)
    plan: Dict[str, Any] = {"saleId": sale_id}

    if previous_attributes is None and not direct_trigger:
        logger.debug(f"Order {data.get('id')}: no previous attributes, nothing to plan")
        return plan

    changed = ChangeSet.all() if direct_trigger else ChangeSet.from_previous_attributes(previous_attributes)
    parsed = as_order(data)
    sale_type = classify(parsed)

    sale_update = build_sale_update(data, changed)
    if sale_update:
        plan["saleUpdate"] = sale_update

    if changed.has("shipments") and parsed.shipments:
        resolver = as_resolver(location_mapping)
        plan["shipmentOperations"] = [
            build_shipment_operation(
                parsed, shipment, resolver, sale_type,
                task_id=sale_id,
                existing_pick_lines=existing_pick_lines,
                settings=settings,
            ).to_dict()
            for shipment in parsed.shipments
        ]

    plan["saleType"] = sale_type.value
    logger.info(
        f"Planned sync for order {parsed.id}",
        extra_fields={
            "sale_type": sale_type.value,
            "updated_fields": sorted(sale_update),
            "shipment_operations": len(plan.get("shipmentOperations", [])),
        },
    )
    return plan
