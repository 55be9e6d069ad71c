"""Sale order payloads (source-ERP sale -> target-WMS order).

Builds the ``create_order`` body for one fulfilment of a source sale:
1. Derive the default order fields from the sale and the fulfilment's pick
2. Choose shipping-method fields by which keys the integration schema has
3. Apply tenant entity mapping overrides
4. Project onto the integration schema
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.mapping.overrides import apply_overrides
from core.mapping.schema_tree import ObjectNode, ProjectionOptions, build_tree, has_field, project
from core.mapping.substitution import substitute
from core.models.config import NOT_APPLICABLE, LocationMapping
from core.models.values import to_quantity
from core.observability.logging import get_logger
from core.settings import EngineSettings, get_settings
from location_resolver import LocationResolver
from payloads.dates import ensure_timezone


logger = get_logger(__name__)

SALE_ENTITY = "sale"
COUNTRY_LIST = "country"
# Integrations that need line tax even when their schema omits it
TAX_PASSTHROUGH_INTEGRATIONS = frozenset({"dear-systems"})


@dataclass
class SaleContext:
    """Everything besides the sale itself that the order body depends on.

    Attributes:
        warehouse_id: Target location id the order ships from
        reference_id: Sale reference id (tagged on the order)
        reference_key: Sale reference key (sent as purchase order number)
        location_mapping: Tenant location mappings
        connection_id: Connection the order is sent to
        fulfilment: Current sale fulfilment (its ``Pick.Lines`` become line items)
        products: Target-WMS products (``sku``, ``id``)
        shipping_country: Country determined for the shipment, if any
        entity_mapping: Tenant entity mapping override config
        integration_name: Target integration (e.g. "dear-systems")
    """
    warehouse_id: Optional[str] = None
    reference_id: Optional[str] = None
    reference_key: Optional[str] = None
    location_mapping: Any = None
    connection_id: Optional[str] = None
    fulfilment: Optional[Dict[str, Any]] = None
    products: List[Dict[str, Any]] = field(default_factory=list)
    shipping_country: Optional[str] = None
    entity_mapping: Optional[Dict[str, Any]] = None
    integration_name: Optional[str] = None


# =============================================================================
# Address parsing
# =============================================================================

_CANADIAN_FSA = re.compile(r"^[A-Z][0-9][A-Z]$", re.IGNORECASE)
_CANADIAN_LDU = re.compile(r"^[A-Z0-9]{3}$", re.IGNORECASE)
_UK_OUTWARD = re.compile(r"^[A-Z]{1,2}[0-9]{1,2}[A-Z]?$", re.IGNORECASE)
_UK_INWARD = re.compile(r"^[0-9][A-Z]{2}$", re.IGNORECASE)
_POSTCODE = re.compile(r"^[A-Z0-9]{3,10}$", re.IGNORECASE)


def parse_display_address_line2(line: Optional[str]) -> Dict[str, str]:
    """Split a "City State Postcode Country" display line.

    Works backwards from the country: the last token is the country, then a
    postcode (Canadian "A1A 1A1" and UK "SW1A 1AA" split forms first, then a
    single token), then a state of at most 4 characters. The rest is the city.

    Returns {} for an empty line or a single token.
    """
    if not line:
        return {}
    parts = line.split()
    if len(parts) < 2:
        return {}

    idx = len(parts) - 1
    country = parts[idx]
    idx -= 1
    postal_code = ""
    state = ""
    city = ""

    if idx >= 1 and _CANADIAN_LDU.match(parts[idx]) and _CANADIAN_FSA.match(parts[idx - 1]):
        postal_code = f"{parts[idx - 1]} {parts[idx]}"
        idx -= 2
    elif idx >= 1 and _UK_INWARD.match(parts[idx]) and _UK_OUTWARD.match(parts[idx - 1]):
        postal_code = f"{parts[idx - 1]} {parts[idx]}"
        idx -= 2
    elif idx >= 0 and _POSTCODE.match(parts[idx]):
        postal_code = parts[idx]
        idx -= 1

    if idx >= 0 and len(parts[idx]) <= 4:
        state = parts[idx]
        idx -= 1

    if idx >= 0:
        city = " ".join(parts[:idx + 1])

    return {"city": city, "state": state, "postalCode": postal_code, "country": country}


def _address(
    address: Optional[Dict[str, Any]],
    sale: Dict[str, Any],
    connection: Optional[LocationMapping],
    fallback_country: str,
) -> Dict[str, Any]:
    address = address or {}
    parsed = parse_display_address_line2(address.get("DisplayAddressLine2"))
    country = address.get("Country") or parsed.get("country") or fallback_country
    result = {
        "full_name": sale.get("Customer"),
        "address1": address.get("Line1") or address.get("DisplayAddressLine1"),
        "address2": address.get("Line2"),
        "city": address.get("City") or parsed.get("city"),
        "state": address.get("State") or parsed.get("state"),
        "postal_code": address.get("Postcode") or parsed.get("postalCode"),
        "company": address.get("Company") or sale.get("Customer"),
        "country": substitute(connection.substitution_list if connection else None, COUNTRY_LIST, country),
    }
    if sale.get("Phone"):
        result["phone_number"] = sale["Phone"]
    return result


# =============================================================================
# Shipping method
# =============================================================================

def shipping_method_fields(
    tree: ObjectNode,
    sale: Dict[str, Any],
    connection: Optional[LocationMapping],
) -> Dict[str, Any]:
    """Carrier/shipping-method fields for the keys the schema declares.

    The connection's default shipping method wins over the sale's carrier.
    ``carrier`` and ``shipping_method`` are legacy keys, only filled when
    their ``_name``/``_id`` replacements are absent from the schema.
    """
    method = connection.shipping_method() if connection else None
    carrier = (method.carrier_name if method else None) or sale.get("Carrier")
    carrier_id = (method.carrier_id if method else None) or sale.get("CarrierID")
    method_name = (method.name if method else None) or sale.get("Carrier")
    method_id = (method.id if method else None) or sale.get("CarrierID")

    has = {key: has_field(tree, key) for key in (
        "carrier_name", "carrier", "carrier_id",
        "shipping_method_name", "shipping_method", "shipping_method_id",
    )}
    fields: Dict[str, Any] = {}

    if has["carrier_name"]:
        fields["carrier_name"] = carrier or NOT_APPLICABLE
    if has["carrier_id"] and carrier_id:
        fields["carrier_id"] = carrier_id
    if has["carrier"] and not has["carrier_name"] and not has["carrier_id"]:
        fields["carrier"] = carrier or NOT_APPLICABLE

    if has["shipping_method_name"]:
        fields["shipping_method_name"] = method_name or NOT_APPLICABLE
    if has["shipping_method_id"]:
        if method_id:
            fields["shipping_method_id"] = method_id
        elif carrier and carrier != NOT_APPLICABLE:
            fields["shipping_method_id"] = carrier
    if has["shipping_method"] and not has["shipping_method_name"] and not has["shipping_method_id"]:
        fields["shipping_method"] = method_name or NOT_APPLICABLE

    return fields


# =============================================================================
# Line items
# =============================================================================

def combine_pick_lines(pick_lines: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Sum pick quantities per SKU (a SKU may be picked from several bins)."""
    combined: Dict[Any, Dict[str, Any]] = {}
    for line in pick_lines:
        sku = line.get("SKU")
        if sku in combined:
            combined[sku]["quantity"] += to_quantity(line.get("Quantity"))
        else:
            combined[sku] = {
                "sku": sku,
                "quantity": to_quantity(line.get("Quantity")),
                "productId": line.get("ProductID"),
            }
    return list(combined.values())


def _line_items(sale: Dict[str, Any], context: SaleContext) -> List[Dict[str, Any]]:
    pick = (context.fulfilment or {}).get("Pick") or {}
    order_lines = (sale.get("Order") or {}).get("Lines") or []
    items = []
    for picked in combine_pick_lines(pick.get("Lines") or []):
        order_line = next(
            (
                line for line in order_lines
                if line.get("SKU") == picked["sku"]
                or (picked["productId"] is not None and line.get("ProductID") == picked["productId"])
            ),
            {},
        )
        product = next((p for p in context.products if p.get("sku") == picked["sku"]), {})
        items.append({
            "sku": picked["sku"],
            "quantity": picked["quantity"],
            "unit_price": order_line.get("Price") or 0,
            "product_id": product.get("id"),
            "tax": order_line.get("Tax") or 0,
        })
    return items


# =============================================================================
# Body
# =============================================================================

def sale_source_data(
    sale: Dict[str, Any],
    tree: ObjectNode,
    context: SaleContext,
    settings: EngineSettings,
) -> Dict[str, Any]:
    """Default field derivation for a sale, before overrides and projection."""
    connection = None
    if context.connection_id:
        connection = LocationResolver(context.location_mapping or []).get_connection(context.connection_id)

    order_number = (sale.get("Order") or {}).get("SaleOrderNumber")
    fallback_country = context.shipping_country or settings.default_ship_country
    tags = [order_number, f"cin7_id:{context.reference_id}"]

    source = {
        "warehouse_id": context.warehouse_id,
        "reference_id": context.reference_id,
        "order_number": order_number,
        "order_date": ensure_timezone(sale.get("SaleOrderDate")),
        "purchase_order_number": context.reference_key,
        "trackstar_tags": [tag for tag in tags if tag],
    }
    source.update(shipping_method_fields(tree, sale, connection))
    source["ship_to_address"] = _address(sale.get("ShippingAddress"), sale, connection, fallback_country)
    source["bill_to_address"] = _address(sale.get("BillingAddress"), sale, connection, fallback_country)
    source["line_items"] = _line_items(sale, context)
    return source


def build_sale_order_body(
    sale: Optional[Dict[str, Any]],
    flat_schema: Any,
    context: Optional[SaleContext] = None,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    """Build the target-WMS order body for a source-ERP sale fulfilment.

    Args:
        sale: Source sale details
        flat_schema: Integration schema for the create-order action
        context: Warehouse, references, connection and fulfilment
        settings: Engine settings (default ship country)

    Returns:
        {"body": {...}}
    """
    sale = sale or {}
    context = context or SaleContext()
    settings = settings or get_settings()
    tree = build_tree(flat_schema or {})

    source = sale_source_data(sale, tree, context, settings)
    source = apply_overrides(source, context.entity_mapping, sale, SALE_ENTITY)

    passthrough = {}
    if context.integration_name in TAX_PASSTHROUGH_INTEGRATIONS:
        passthrough = {"line_items": ("tax",)}

    body = project(tree, source, ProjectionOptions(passthrough=passthrough))
    logger.debug(
        f"Built sale order body for {source.get('order_number')}",
        extra_fields={"line_items": len(body.get("line_items", [])), "connection_id": context.connection_id},
    )
    return {"body": body}
