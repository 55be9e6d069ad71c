"""Inventory reconciliation engine.

Turns target-WMS stock for one SKU into per-location adjustment documents for
the source ERP, then decides whether each adjustment can be approved without
review.

Exposes:
- build_adjustments(settings, snapshot, product) -> AdjustmentBuild
- evaluate_auto_approval(adjustment, availability, threshold) -> ApprovalVerdict
- reconcile(settings, snapshot, product, availability) -> ReconciliationResult
- enrich_adjustment_lines(adjustment, location_list) -> lines | {"error"}
- extract_inventory_settings(tenant_config, connection_id) -> InventorySettings

Case split for building adjustments, in priority order:
1. Lots + FIFO costing: the ERP cannot hold batches, so lots are summed
   ("all": one adjustment; "mapped": one per mapped warehouse)
2. Lots + other costing: one adjustment per mapped lot, carrying the batch
3. No lots + "all": one adjustment from the top-level quantity
4. No lots + "mapped": one adjustment per configured warehouse

Lots whose warehouse has no mapping are dropped, not reported.
"""

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from core.models.config import parse_tenant_config
from core.observability.logging import get_logger
from core.settings import EngineSettings, get_settings
from reconciliation.models import (
    AdjustmentBuild,
    AdjustmentLine,
    ApprovalVerdict,
    AvailabilityRow,
    CatalogProduct,
    InventoryAdjustment,
    InventoryLot,
    InventorySettings,
    InventorySnapshot,
    InventoryWarehouse,
    LocationScope,
    Quantity,
    ReconciliationResult,
)


logger = get_logger(__name__)

INVENTORY_ENTITY = "inventory"

NOTE_CONSOLIDATED_ALL = (
    "Lotted inventory consolidated across all locations: "
    "product costing method (FIFO) does not support batches"
)
NOTE_CONSOLIDATED_MAPPED = (
    "Lotted inventory consolidated per location: "
    "product costing method (FIFO) does not support batches"
)
NOTE_DEFAULT_LOT = "Default lot assigned: product is batch-tracked but inventory is not lotted"


# =============================================================================
# Input coercion
# =============================================================================

def _as_snapshot(snapshot: Any) -> Optional[InventorySnapshot]:
    """Accept a snapshot model, a dict, or a ``{"data": [snapshot]}`` response."""
    if snapshot is None or isinstance(snapshot, InventorySnapshot):
        return snapshot
    if isinstance(snapshot, dict) and "data" in snapshot and "sku" not in snapshot:
        data = snapshot.get("data")
        snapshot = data[0] if isinstance(data, list) and data else None
    if isinstance(snapshot, list):
        snapshot = snapshot[0] if snapshot else None
    if not isinstance(snapshot, dict):
        return None
    return InventorySnapshot.model_validate(snapshot)


def _as_settings(settings: Any) -> Optional[InventorySettings]:
    if settings is None or isinstance(settings, InventorySettings):
        return settings
    if isinstance(settings, dict):
        return InventorySettings.model_validate(settings)
    return None


def match_product(products: Any, sku: str) -> Optional[CatalogProduct]:
    """Find the catalog product with exactly this SKU.

    ``products`` may be one product, a list, or a ``{"Products": [...]}``
    response.
    """
    if products is None:
        return None
    if isinstance(products, CatalogProduct):
        candidates: Iterable[Any] = [products]
    elif isinstance(products, dict) and "Products" in products:
        candidates = products.get("Products") or []
    elif isinstance(products, dict):
        candidates = [products]
    elif isinstance(products, list):
        candidates = products
    else:
        return None

    for candidate in candidates:
        if isinstance(candidate, dict):
            try:
                candidate = CatalogProduct.model_validate(candidate)
            except ValidationError as e:
                logger.warning(f"Skipped unreadable catalog product: {e.error_count()} error(s)")
                continue
        if isinstance(candidate, CatalogProduct) and candidate.sku == sku:
            return candidate
    return None


def _as_availability(availability: Any) -> List[AvailabilityRow]:
    if isinstance(availability, dict):
        availability = availability.get("ProductAvailability")
    if not isinstance(availability, list):
        return []
    rows = []
    for row in availability:
        if isinstance(row, AvailabilityRow):
            rows.append(row)
        elif isinstance(row, dict):
            try:
                rows.append(AvailabilityRow.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipped unreadable availability row: {e.error_count()} error(s)")
    return rows


def _as_adjustment(adjustment: Any) -> Optional[InventoryAdjustment]:
    if adjustment is None or isinstance(adjustment, InventoryAdjustment):
        return adjustment
    if not isinstance(adjustment, dict):
        return None
    try:
        return InventoryAdjustment.model_validate(adjustment)
    except ValidationError as e:
        logger.warning(f"Unreadable inventory adjustment: {e.error_count()} error(s)")
        return None


# =============================================================================
# Building adjustments
# =============================================================================

def _find_warehouse(warehouses: List[InventoryWarehouse], warehouse_id: Optional[str]) -> Optional[InventoryWarehouse]:
    for warehouse in warehouses:
        if warehouse.warehouse_id == warehouse_id:
            return warehouse
    return None


def _lotted_by_warehouse(lots: List[InventoryLot]) -> Dict[str, Quantity]:
    totals: Dict[str, Quantity] = {}
    for lot in lots:
        if not lot.warehouse_id:
            continue
        totals[lot.warehouse_id] = totals.get(lot.warehouse_id, 0) + lot.onhand
    return totals


def _adjustment(
    warehouse: InventoryWarehouse,
    snapshot: InventorySnapshot,
    quantity: Quantity,
    warehouse_id: Optional[str] = None,
    lot_id: Optional[str] = None,
    expiration_date: Optional[str] = None,
    note: Optional[str] = None,
) -> InventoryAdjustment:
    return InventoryAdjustment(
        location_name=warehouse.location_name,
        warehouse_id=warehouse_id if warehouse_id is not None else warehouse.warehouse_id,
        lot_id=lot_id,
        expiration_date=expiration_date,
        note=note,
        lines=[AdjustmentLine.for_snapshot(snapshot, quantity)],
    )


def _unlotted_remainders(
    settings: InventorySettings,
    snapshot: InventorySnapshot,
) -> List[InventoryAdjustment]:
    """Adjustments for on-hand stock not covered by any lot."""
    lotted = _lotted_by_warehouse(snapshot.lots)
    adjustments = []

    if settings.location_scope == LocationScope.ALL.value:
        remainder = snapshot.quantity(settings.quantity_type) - sum(lotted.values())
        if remainder > 0:
            adjustments.append(_adjustment(settings.warehouses[0], snapshot, remainder))
        return adjustments

    for warehouse in settings.warehouses:
        if not warehouse.warehouse_id or not snapshot.has_warehouse_breakdown(warehouse.warehouse_id):
            continue
        total = snapshot.warehouse_quantity(warehouse.warehouse_id, settings.quantity_type)
        remainder = total - lotted.get(warehouse.warehouse_id, 0)
        if remainder > 0:
            adjustments.append(_adjustment(warehouse, snapshot, remainder))
    return adjustments


def _consolidate_lots(settings: InventorySettings, snapshot: InventorySnapshot) -> List[InventoryAdjustment]:
    """Case 1: lots present, FIFO costing."""
    if settings.location_scope == LocationScope.ALL.value:
        total = sum(lot.onhand for lot in snapshot.lots)
        if settings.include_unlotted_remainder:
            remainder = snapshot.quantity(settings.quantity_type) - total
            if remainder > 0:
                total += remainder
        return [_adjustment(settings.warehouses[0], snapshot, total, note=NOTE_CONSOLIDATED_ALL)]

    # location name -> [warehouse, first warehouse id seen, quantity]
    groups: "OrderedDict[Optional[str], list]" = OrderedDict()
    for lot in snapshot.lots:
        if not lot.warehouse_id:
            continue
        warehouse = _find_warehouse(settings.warehouses, lot.warehouse_id)
        if warehouse is None:
            continue
        group = groups.setdefault(warehouse.location_name, [warehouse, lot.warehouse_id, 0])
        group[2] += lot.onhand

    if settings.include_unlotted_remainder:
        for extra in _unlotted_remainders(settings, snapshot):
            key = extra.location_name
            quantity = extra.lines[0].quantity
            warehouse = _find_warehouse(settings.warehouses, extra.warehouse_id)
            group = groups.setdefault(key, [warehouse, extra.warehouse_id, 0])
            group[2] += quantity

    return [
        _adjustment(warehouse, snapshot, quantity, warehouse_id=warehouse_id, note=NOTE_CONSOLIDATED_MAPPED)
        for warehouse, warehouse_id, quantity in groups.values()
    ]


def _per_lot(settings: InventorySettings, snapshot: InventorySnapshot) -> List[InventoryAdjustment]:
    """Case 2: lots present, batch-capable costing."""
    adjustments = []
    for lot in snapshot.lots:
        if not lot.warehouse_id:
            continue
        warehouse = _find_warehouse(settings.warehouses, lot.warehouse_id)
        if warehouse is None:
            continue
        adjustments.append(_adjustment(
            warehouse,
            snapshot,
            lot.onhand,
            warehouse_id=lot.warehouse_id,
            lot_id=lot.lot_id,
            expiration_date=lot.expiration_date,
        ))

    if settings.include_unlotted_remainder:
        adjustments.extend(_unlotted_remainders(settings, snapshot))
    return adjustments


def _without_lots(
    settings: InventorySettings,
    snapshot: InventorySnapshot,
    product: CatalogProduct,
) -> List[InventoryAdjustment]:
    """Cases 3 and 4: no lots."""
    lot_fields: Dict[str, Any] = {}
    if settings.default_lot_id and not product.is_fifo:
        lot_fields = {
            "lot_id": settings.default_lot_id,
            "expiration_date": settings.default_lot_expiry,
            "note": NOTE_DEFAULT_LOT,
        }

    if settings.location_scope == LocationScope.ALL.value:
        quantity = snapshot.quantity(settings.quantity_type)
        return [_adjustment(settings.warehouses[0], snapshot, quantity, **lot_fields)]

    return [
        _adjustment(
            warehouse,
            snapshot,
            snapshot.warehouse_quantity(warehouse.warehouse_id, settings.quantity_type),
            **lot_fields,
        )
        for warehouse in settings.warehouses
        if warehouse.warehouse_id
    ]


def build_adjustments(settings: Any, snapshot: Any, product: Any) -> AdjustmentBuild:
    """Build per-location inventory adjustments for one SKU.

    Args:
        settings: InventorySettings (or its dict form)
        snapshot: Target-side InventorySnapshot (or dict / ``{"data": [...]}``)
        product: Matched catalog product, or the catalog to match against

    Returns:
        AdjustmentBuild; ``error`` is set for data-integrity gaps
    """
    try:
        inventory = _as_snapshot(snapshot)
    except ValidationError as e:
        return AdjustmentBuild(error=f"Unreadable inventory snapshot: {e.error_count()} error(s)")
    if inventory is None:
        return AdjustmentBuild(error="No inventory of this SKU found in 3PL/WMS")

    ids = {"target_id": inventory.id, "target_key": inventory.sku}

    try:
        policy = _as_settings(settings)
    except ValidationError as e:
        return AdjustmentBuild(error=f"Invalid inventory settings: {e.error_count()} error(s)", **ids)
    if policy is None:
        return AdjustmentBuild(error="Tenant configuration not found", **ids)
    if not policy.warehouses:
        return AdjustmentBuild(error="No warehouses configured in tenant settings", **ids)

    matched = match_product(product, inventory.sku)
    if matched is None:
        return AdjustmentBuild(error=f"No product found with exact SKU: {inventory.sku}", **ids)

    ids.update(source_id=matched.id, source_key=matched.sku)
    if not matched.is_stock:
        return AdjustmentBuild(
            error=(
                "Inventory adjustment is not applicable to non-stock items. "
                f"Product {inventory.sku} is of type: {matched.type}"
            ),
            **ids,
        )

    if inventory.has_lots and matched.is_fifo:
        case, adjustments = "lots_consolidated", _consolidate_lots(policy, inventory)
    elif inventory.has_lots:
        case, adjustments = "lots_per_batch", _per_lot(policy, inventory)
    else:
        case, adjustments = f"no_lots_{policy.location_scope}", _without_lots(policy, inventory, matched)

    logger.info(
        f"Built {len(adjustments)} adjustment(s) for {inventory.sku}",
        extra_fields={"case": case, "location_scope": policy.location_scope},
    )
    return AdjustmentBuild(adjustments=adjustments, **ids)


# =============================================================================
# Auto-approval
# =============================================================================

def _with_batch_lines(adjustment: InventoryAdjustment) -> InventoryAdjustment:
    """Copy the adjustment's batch onto every line."""
    result = adjustment.model_copy(deep=True)
    if result.lot_id:
        for line in result.lines:
            line.batch_sn = result.lot_id
            line.expiry_date = result.expiration_date
    return result


def evaluate_auto_approval(
    adjustment: Any,
    availability: Any,
    threshold: Quantity = 0,
    final_should_auto_approve: bool = True,
) -> ApprovalVerdict:
    """Decide whether one adjustment can be approved without review.

    Lines are matched to availability rows by exact SKU and location name.
    A line passes when the threshold is 0 or the absolute difference is
    within the threshold. A line with no availability row does not block
    approval but marks the adjustment as needed.

    The verdict is ANDed with ``final_should_auto_approve``: this can only
    demote a previous pass's approval, never promote it.

    Args:
        adjustment: InventoryAdjustment (or dict)
        availability: Rows of {SKU, Location, OnHand}, or {"ProductAvailability": [...]}
        threshold: Tenant autoAcceptThreshold
        final_should_auto_approve: Approval carried in from earlier passes

    Returns:
        ApprovalVerdict with the (batch-annotated) adjustment
    """
    adj = _as_adjustment(adjustment)
    if adj is None or not adj.lines:
        return ApprovalVerdict(
            success=False,
            should_auto_approve=False,
            adjustment_needed=False,
            message="No inventory adjustment data found",
        )

    adj = _with_batch_lines(adj)
    rows = _as_availability(availability)

    if not rows:
        if not any(line.quantity != 0 for line in adj.lines):
            return ApprovalVerdict(
                success=True,
                should_auto_approve=False,
                adjustment_needed=False,
                message="No product availability data found and all quantities are zero - no adjustment needed",
                adjustment=adj,
            )
        return ApprovalVerdict(
            success=True,
            should_auto_approve=final_should_auto_approve,
            adjustment_needed=True,
            message="No product availability data found - proceeding with adjustment",
            adjustment=adj,
        )

    should_approve = final_should_auto_approve
    adjustment_needed = False
    missing_rows = False

    for line in adj.lines:
        row = next(
            (r for r in rows if r.sku == line.sku and r.location == adj.location_name),
            None,
        )
        if row is None:
            missing_rows = True
            adjustment_needed = True
            continue

        difference = line.quantity - row.on_hand
        if difference != 0:
            adjustment_needed = True
        if threshold != 0 and abs(difference) > threshold:
            should_approve = False
            logger.debug(
                f"{line.sku} at {adj.location_name} differs by {difference}, over threshold {threshold}"
            )

    message = None
    if missing_rows:
        message = "One or more products were not found in the product availability list - those items are auto-approved"

    return ApprovalVerdict(
        success=True,
        should_auto_approve=should_approve,
        adjustment_needed=adjustment_needed,
        message=message,
        adjustment=adj,
    )


def reconcile(
    settings: Any,
    snapshot: Any,
    product: Any,
    availability: Any,
    final_should_auto_approve: bool = True,
) -> ReconciliationResult:
    """Build adjustments for one SKU and compute the overall verdict.

    ``shouldAutoApprove`` is the AND of every adjustment's verdict;
    ``adjustmentNeeded`` is true when any adjustment needs applying.
    """
    build = build_adjustments(settings, snapshot, product)
    if not build.ok:
        logger.warning(f"Inventory reconciliation skipped: {build.error}")
        return ReconciliationResult(message=build.error, error=build.error)
    policy = _as_settings(settings)

    if not build.adjustments:
        return ReconciliationResult(message="No mapped locations hold this SKU - nothing to reconcile")

    threshold = policy.auto_accept_threshold
    verdicts = [
        evaluate_auto_approval(adj, availability, threshold, final_should_auto_approve)
        for adj in build.adjustments
    ]

    messages = []
    for verdict in verdicts:
        if verdict.message and verdict.message not in messages:
            messages.append(verdict.message)

    return ReconciliationResult(
        adjustments=[v.adjustment for v in verdicts],
        verdicts=verdicts,
        should_auto_approve=all(v.should_auto_approve for v in verdicts),
        adjustment_needed=any(v.adjustment_needed for v in verdicts),
        message="; ".join(messages) if messages else None,
    )


# =============================================================================
# Enrichment & settings
# =============================================================================

def enrich_adjustment_lines(adjustment: Any, location_list: Any) -> Union[List[Dict[str, Any]], Dict[str, str]]:
    """Attach the source ERP's LocationId/LocationName to each line.

    Args:
        adjustment: InventoryAdjustment (or dict)
        location_list: [{ID, Name}] or {"LocationList": [...]}

    Returns:
        Enriched line dicts, or {"error": str}
    """
    adj = _as_adjustment(adjustment)
    if adj is None or not adj.lines:
        return {"error": "No inventory adjustment lines found"}

    if isinstance(location_list, dict):
        location_list = location_list.get("LocationList")
    locations = location_list if isinstance(location_list, list) else []

    location = next(
        (loc for loc in locations if isinstance(loc, dict) and loc.get("Name") == adj.location_name),
        None,
    )
    if location is None:
        return {"error": f"Location {adj.location_name} not found in LocationList"}

    enriched = []
    for line in adj.lines:
        data = {"LocationId": location.get("ID"), "LocationName": location.get("Name")}
        data.update(line.model_dump(by_alias=True, exclude={"batch_sn", "expiry_date"}))
        if line.batch_sn:
            data["BatchSN"] = line.batch_sn
        if line.expiry_date:
            data["ExpiryDate"] = line.expiry_date
        enriched.append(data)
    return enriched


def extract_inventory_settings(
    tenant_config: Any,
    connection_id: Optional[str],
    defaults: Optional[EngineSettings] = None,
) -> InventorySettings:
    """Read a tenant's inventory policy for one connection.

    Unparseable configuration yields inactive default settings.
    """
    defaults = defaults or get_settings()
    parsed = parse_tenant_config(tenant_config)
    if not parsed.ok:
        logger.warning(f"Tenant configuration unavailable: {parsed.error}")
        return InventorySettings(
            quantity_type=defaults.default_quantity_type,
            location_scope=defaults.default_location_scope,
        )

    config = parsed.value
    entity = config.entity_config(INVENTORY_ENTITY)
    connection = config.connection(connection_id)

    warehouses = []
    if connection is not None:
        warehouses = [
            InventoryWarehouse(location_name=w.source_warehouse_name, warehouse_id=w.target_location_id)
            for w in connection.warehouses
        ]

    return InventorySettings(
        is_sync_active=bool(entity and entity.is_active),
        quantity_type=(entity and entity.quantity_type) or defaults.default_quantity_type,
        location_scope=(entity and entity.location_scope) or defaults.default_location_scope,
        auto_accept_threshold=entity.auto_accept_threshold if entity else 0,
        warehouses=warehouses,
    )
