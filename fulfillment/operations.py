"""Per-shipment Pick -> Pack -> Ship operation building.

For each shipment of an order:
1. Derive the composite id ``{orderId}:{shipmentId}`` and key
   ``{orderNumber}:{last 6 of shipmentId}``
2. Resolve the source warehouse name (shipment warehouse, then order
   warehouse, then the configured default location name)
3. Build Pick, Pack and Ship lines from the shipment's packages
4. Attach the order-level TaskID only for Simple sales

The caller must execute Pick, Pack and Ship serially in that order.
"""

from typing import Any, Dict, List, Optional, Union

from core.observability.logging import get_logger
from core.settings import EngineSettings, get_settings
from fulfillment.classifier import as_order, classify
from fulfillment.models import (
    ENDPOINTS,
    Address,
    Order,
    SaleType,
    Shipment,
    ShipmentOperation,
    SubOperation,
)
from location_resolver import LocationResolver


logger = get_logger(__name__)

AUTHORISED = "AUTHORISED"
MISSING_SHIPMENT_SUFFIX = "000000"


def normalize_task_id(reference: Optional[str]) -> Optional[str]:
    """Stored references may be ``prefix:taskId``; keep the part after the colon."""
    if reference and ":" in reference:
        return reference.split(":")[1]
    return reference


def existing_pick_lines_from_sale(sale: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Pick lines of the first fulfilment of a source-ERP sale, if any."""
    if not isinstance(sale, dict):
        return []
    fulfilments = sale.get("Fulfilments") or []
    if not fulfilments:
        return []
    pick = (fulfilments[0] or {}).get("Pick") or {}
    return list(pick.get("Lines") or [])


def as_resolver(location_mapping: Any) -> LocationResolver:
    if isinstance(location_mapping, LocationResolver):
        return location_mapping
    return LocationResolver(location_mapping or [])


def warehouse_name_for(
    shipment: Shipment,
    order: Order,
    resolver: LocationResolver,
    settings: EngineSettings,
) -> str:
    name = ""
    if shipment.warehouse_id:
        name = resolver.find_source_warehouse_name(shipment.warehouse_id)
    if not name and order.warehouse_id:
        name = resolver.find_source_warehouse_name(order.warehouse_id)
    return name or settings.default_location_name


def _lot_info(
    sku: Optional[str],
    lot_id: Optional[str],
    expiry: Optional[str],
    existing_pick_lines: List[Dict[str, Any]],
) -> Optional[Dict[str, Any]]:
    # Lot already recorded on the source pick wins over the shipment's own
    for line in existing_pick_lines:
        if line.get("SKU") == sku:
            if line.get("BatchSN"):
                return {"BatchSN": line["BatchSN"], "ExpiryDate": line.get("ExpiryDate")}
            break
    if lot_id:
        return {"BatchSN": lot_id, "ExpiryDate": expiry}
    return None


def _pick_lines(shipment: Shipment, warehouse: str) -> List[Dict[str, Any]]:
    return [
        {"SKU": item.sku, "Location": warehouse, "Quantity": item.quantity}
        for package in shipment.packages
        for item in package.line_items
    ]


def _pack_lines(
    shipment: Shipment,
    warehouse: str,
    existing_pick_lines: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    lines = []
    for index, package in enumerate(shipment.packages):
        for item in package.line_items:
            line = {
                "SKU": item.sku,
                "Location": warehouse,
                "Quantity": item.quantity,
                "Box": package.box_label(index),
            }
            lot = _lot_info(item.sku, item.lot_id, item.expiration_date, existing_pick_lines)
            if lot:
                line["BatchSN"] = lot["BatchSN"]
                if lot["ExpiryDate"]:
                    line["ExpiryDate"] = lot["ExpiryDate"]
            lines.append(line)
    return lines


def _ship_lines(shipment: Shipment, order: Order) -> List[Dict[str, Any]]:
    shipment_date = shipment.shipped_date or order.updated_date
    return [
        {
            "ShipmentDate": shipment_date,
            "Carrier": package.carrier_name or "",
            "Box": package.box_label(index),
            "TrackingNumber": package.tracking_number or "",
            "TrackingURL": package.tracking_url or "",
            "IsShipped": True,
        }
        for index, package in enumerate(shipment.packages)
    ]


def display_address_line2(address: Address) -> str:
    parts = [address.city, address.state, address.postal_code, address.country]
    return " ".join(p for p in parts if p)


def shipping_address(address: Address, display: bool = False) -> Dict[str, Any]:
    """Source-ERP shipping address block for a target-WMS ship-to address."""
    block: Dict[str, Any] = {}
    if display:
        block["DisplayAddressLine1"] = address.address1 or ""
        block["DisplayAddressLine2"] = display_address_line2(address)
    block.update({
        "Line1": address.address1 or "",
        "Line2": address.address2 or "",
        "City": address.city or "",
        "State": address.state or "",
        "Postcode": address.postal_code or "",
        "Country": address.country or "",
        "Company": address.company or "",
        "Contact": address.full_name or "",
        "ShipToOther": False,
    })
    return block


def composite_identity(order: Order, shipment: Shipment) -> Dict[str, str]:
    suffix = str(shipment.id)[-6:] if shipment.id else MISSING_SHIPMENT_SUFFIX
    return {
        "trackstarId": f"{order.id}:{shipment.id or ''}",
        "trackstarKey": f"{order.order_number or ''}:{suffix}",
    }


def build_shipment_operation(
    order: Order,
    shipment: Shipment,
    resolver: LocationResolver,
    sale_type: SaleType,
    task_id: Optional[str] = None,
    existing_pick_lines: Optional[List[Dict[str, Any]]] = None,
    settings: Optional[EngineSettings] = None,
) -> ShipmentOperation:
    settings = settings or get_settings()
    existing_pick_lines = existing_pick_lines or []
    warehouse = warehouse_name_for(shipment, order, resolver, settings)

    bodies: Dict[str, Dict[str, Any]] = {
        "salePick": {"Status": AUTHORISED, "Lines": _pick_lines(shipment, warehouse)},
        "salePack": {"Status": AUTHORISED, "Lines": _pack_lines(shipment, warehouse, existing_pick_lines)},
        "saleShip": {
            "Status": AUTHORISED,
            "RequireBy": None,
            "ShippingAddress": shipping_address(order.ship_to_address, display=True),
            "ShippingNotes": f"Shipment Status: {shipment.status or 'shipped'}",
            "Lines": _ship_lines(shipment, order),
        },
    }

    # Per-shipment operations of multi-fulfilment sales must not claim the order task
    if sale_type == SaleType.SIMPLE and task_id:
        for body in bodies.values():
            body["TaskID"] = task_id

    operations = {
        name: SubOperation(endpoint=ENDPOINTS[name], body=body)
        for name, body in bodies.items()
        if body["Lines"]
    }
    identity = composite_identity(order, shipment)
    return ShipmentOperation(
        trackstarId=identity["trackstarId"],
        trackstarKey=identity["trackstarKey"],
        salePick=operations.get("salePick"),
        salePack=operations.get("salePack"),
        saleShip=operations.get("saleShip"),
    )


def build_operations(
    order: Any,
    location_mapping: Any,
    sale_type: Optional[Union[SaleType, str]] = None,
    task_id: Optional[str] = None,
    existing_pick_lines: Optional[List[Dict[str, Any]]] = None,
    settings: Optional[EngineSettings] = None,
) -> List[ShipmentOperation]:
    """Build Pick/Pack/Ship operations for every shipment of an order.

    Args:
        order: Target-WMS order record, including ``shipments``
        location_mapping: Tenant location mappings (or a LocationResolver)
        sale_type: Classification; computed from the order when omitted
        task_id: Source-ERP sale task id, attached for Simple sales only
        existing_pick_lines: Pick lines already on the source sale (lot priority)
        settings: Engine settings (default location name)

    Returns:
        One ShipmentOperation per shipment, in shipment order
    """
    order = as_order(order)
    sale_type = SaleType(sale_type) if sale_type else classify(order)
    resolver = as_resolver(location_mapping)

    operations = [
        build_shipment_operation(
            order, shipment, resolver, sale_type,
            task_id=task_id,
            existing_pick_lines=existing_pick_lines,
            settings=settings,
        )
        for shipment in order.shipments
    ]
    logger.info(
        f"Built {len(operations)} shipment operation(s) for order {order.id}",
        extra_fields={"sale_type": sale_type.value, "shipments": len(operations)},
    )
    return operations
