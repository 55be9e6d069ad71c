"""Inventory reconciliation data models.

- InventorySettings: Tenant inventory policy for one connection
- InventorySnapshot / InventoryLot: Target-side stock for one SKU
- CatalogProduct: Source catalog entry matched by exact SKU
- InventoryAdjustment / AdjustmentLine: Per-location adjustment document
- AvailabilityRow: Source-side on-hand for one SKU at one location
- ApprovalVerdict / ReconciliationResult: Outcome of reconciliation

Wire names (``SKU``, ``Lines``, ``locationName``...) are kept as aliases so
``to_dict()`` output matches what the source ERP accepts.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from core.models.values import Quantity, to_id as _to_str, to_quantity as _quantity


DIMENSION_DEFAULT = 1
DEFAULT_LOT_EXPIRY = "9999-12-31"


def _or_default(value: Any, default: Quantity = DIMENSION_DEFAULT) -> Any:
    """Falsy values (None, 0, "") become the default."""
    return value if value else default


class LocationScope(str, Enum):
    """Which locations an inventory sync covers."""
    ALL = "all"          # Everything consolidated into the single mapped warehouse
    MAPPED = "mapped"    # Per mapped warehouse


class CostingMethod(str, Enum):
    FIFO = "FIFO"


# =============================================================================
# Inputs
# =============================================================================

class InventoryWarehouse(BaseModel):
    """A mapped warehouse as seen by inventory sync.

    ``location_name`` is the source ERP location name; ``warehouse_id`` is
    the target WMS warehouse id.
    """
    model_config = ConfigDict(populate_by_name=True)

    location_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("locationName", "id", "sourceWarehouseName", "location_name"),
        serialization_alias="id",
    )
    warehouse_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("warehouseId", "targetLocationId", "warehouse_id"),
        serialization_alias="warehouseId",
    )

    @field_validator("location_name", "warehouse_id", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Any:
        return _to_str(value)


class InventorySettings(BaseModel):
    """Tenant inventory policy for one connection."""
    model_config = ConfigDict(populate_by_name=True)

    is_sync_active: bool = Field(default=False, alias="isSyncActive")
    quantity_type: str = Field(default="sellable", alias="quantityType")
    location_scope: str = Field(default=LocationScope.MAPPED.value, alias="locationScope")
    auto_accept_threshold: Quantity = Field(default=0, alias="autoAcceptThreshold")
    warehouses: List[InventoryWarehouse] = Field(default_factory=list)

    # Opt-in corrections; off by default
    include_unlotted_remainder: bool = Field(
        default=False,
        alias="includeUnlottedRemainder",
        description="Also adjust on-hand not covered by any lot",
    )
    default_lot_id: Optional[str] = Field(
        default=None,
        alias="defaultLotId",
        description="Batch attached when a batch-tracked product has no lots",
    )
    default_lot_expiry: str = Field(default=DEFAULT_LOT_EXPIRY, alias="defaultLotExpiry")

    @field_validator("auto_accept_threshold")
    @classmethod
    def _non_negative(cls, value: Quantity) -> Quantity:
        if value < 0:
            raise ValueError("autoAcceptThreshold must be >= 0")
        return value

    @field_validator("warehouses", mode="before")
    @classmethod
    def _legacy_warehouses(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, dict):
            return [{"id": name, "warehouseId": wid} for name, wid in value.items()]
        return value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isSyncActive": self.is_sync_active,
            "quantityType": self.quantity_type,
            "locationScope": self.location_scope,
            "autoAcceptThreshold": self.auto_accept_threshold,
            "warehouses": [w.model_dump(by_alias=True) for w in self.warehouses],
        }


class InventoryLot(BaseModel):
    model_config = ConfigDict(extra="allow")

    lot_id: Optional[str] = None
    warehouse_id: Optional[str] = None
    onhand: Quantity = 0
    expiration_date: Optional[str] = None

    @field_validator("onhand", mode="before")
    @classmethod
    def _onhand(cls, value: Any) -> Quantity:
        return _quantity(value)

    @field_validator("lot_id", "warehouse_id", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Any:
        return _to_str(value)


class InventorySnapshot(BaseModel):
    """Target-side stock for one SKU.

    Top-level quantity fields (``onhand``, ``sellable``, ``committed``...)
    are kept as extra fields and read through ``quantity()``.
    """
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    sku: str = ""
    name: Optional[str] = None
    unit_cost: Optional[Quantity] = None
    measurements: Dict[str, Any] = Field(default_factory=dict)
    inventory_by_warehouse_id: Dict[str, Any] = Field(default_factory=dict)
    lots: List[InventoryLot] = Field(default_factory=list)

    @field_validator("unit_cost", mode="before")
    @classmethod
    def _unit_cost(cls, value: Any) -> Any:
        return None if value is None else _quantity(value)

    @field_validator("measurements", "inventory_by_warehouse_id", mode="before")
    @classmethod
    def _dict(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("lots", mode="before")
    @classmethod
    def _lots(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [lot for lot in value if isinstance(lot, (dict, InventoryLot))]

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _to_str(value)

    @field_validator("sku", mode="before")
    @classmethod
    def _coerce_sku(cls, value: Any) -> Any:
        return "" if value is None else _to_str(value)

    @property
    def has_lots(self) -> bool:
        return bool(self.lots)

    def quantity(self, quantity_type: str) -> Quantity:
        """Top-level aggregate quantity of the given type (0 when absent)."""
        return _quantity((self.model_extra or {}).get(quantity_type))

    def warehouse_quantity(self, warehouse_id: Optional[str], quantity_type: str) -> Quantity:
        """Per-warehouse quantity of the given type (0 when absent)."""
        breakdown = self.inventory_by_warehouse_id.get(warehouse_id or "")
        if not isinstance(breakdown, dict):
            return 0
        return _quantity(breakdown.get(quantity_type))

    def has_warehouse_breakdown(self, warehouse_id: Optional[str]) -> bool:
        return isinstance(self.inventory_by_warehouse_id.get(warehouse_id or ""), dict)


class CatalogProduct(BaseModel):
    """Source ERP catalog entry."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("ID", "id"))
    sku: str = Field(default="", validation_alias=AliasChoices("SKU", "sku"))
    type: Optional[str] = Field(default=None, validation_alias=AliasChoices("Type", "type"))
    costing_method: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CostingMethod", "costingMethod", "costing_method"),
    )

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _to_str(value)

    @field_validator("sku", mode="before")
    @classmethod
    def _coerce_sku(cls, value: Any) -> Any:
        return "" if value is None else _to_str(value)

    @property
    def is_fifo(self) -> bool:
        return self.costing_method == CostingMethod.FIFO.value

    @property
    def is_stock(self) -> bool:
        return not self.type or self.type.upper() == "STOCK"


class AvailabilityRow(BaseModel):
    """Source-side on-hand for one SKU at one location."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    sku: Optional[str] = Field(default=None, validation_alias=AliasChoices("SKU", "sku"))
    location: Optional[str] = Field(default=None, validation_alias=AliasChoices("Location", "location"))
    on_hand: Quantity = Field(default=0, validation_alias=AliasChoices("OnHand", "on_hand", "onHand"))

    @field_validator("on_hand", mode="before")
    @classmethod
    def _on_hand(cls, value: Any) -> Quantity:
        return _quantity(value)

    @field_validator("sku", "location", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Any:
        return _to_str(value)


# =============================================================================
# Outputs
# =============================================================================

class AdjustmentLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sku: str = Field(..., alias="SKU")
    product_name: Optional[str] = Field(default=None, alias="ProductName")
    quantity: Quantity = Field(default=0, alias="Quantity")
    unit_cost: Quantity = Field(default=DIMENSION_DEFAULT, alias="UnitCost")
    product_length: Quantity = Field(default=DIMENSION_DEFAULT, alias="ProductLength")
    product_width: Quantity = Field(default=DIMENSION_DEFAULT, alias="ProductWidth")
    product_height: Quantity = Field(default=DIMENSION_DEFAULT, alias="ProductHeight")
    product_weight: Quantity = Field(default=DIMENSION_DEFAULT, alias="ProductWeight")
    batch_sn: Optional[str] = Field(default=None, alias="BatchSN")
    expiry_date: Optional[str] = Field(default=None, alias="ExpiryDate")

    @field_validator("quantity", mode="before")
    @classmethod
    def _qty(cls, value: Any) -> Quantity:
        return _quantity(value)

    @field_validator("unit_cost", "product_length", "product_width", "product_height", "product_weight", mode="before")
    @classmethod
    def _never_zero(cls, value: Any) -> Quantity:
        return _or_default(_quantity(value))

    @classmethod
    def for_snapshot(cls, snapshot: InventorySnapshot, quantity: Quantity) -> "AdjustmentLine":
        m = snapshot.measurements
        return cls(
            sku=snapshot.sku,
            product_name=snapshot.name,
            quantity=quantity,
            unit_cost=snapshot.unit_cost,
            product_length=m.get("length"),
            product_width=m.get("width"),
            product_height=m.get("height"),
            product_weight=m.get("weight"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True)
        if self.batch_sn is None:
            data.pop("BatchSN")
        if self.expiry_date is None and self.batch_sn is None:
            data.pop("ExpiryDate")
        return data


class InventoryAdjustment(BaseModel):
    """One adjustment document for one location (and optionally one lot)."""
    model_config = ConfigDict(populate_by_name=True)

    location_name: Optional[str] = Field(default=None, alias="locationName")
    warehouse_id: Optional[str] = Field(default=None, alias="warehouseId")
    lot_id: Optional[str] = None
    expiration_date: Optional[str] = None
    note: Optional[str] = None
    lines: List[AdjustmentLine] = Field(default_factory=list, alias="Lines")

    @property
    def has_lot(self) -> bool:
        return bool(self.lot_id)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "locationName": self.location_name,
            "warehouseId": self.warehouse_id,
        }
        if self.lot_id is not None:
            data["lot_id"] = self.lot_id
            data["expiration_date"] = self.expiration_date
        if self.note is not None:
            data["note"] = self.note
        data["Lines"] = [line.to_dict() for line in self.lines]
        return data


class AdjustmentBuild(BaseModel):
    """Adjustments built for one SKU, or the reason none could be built."""
    adjustments: List[InventoryAdjustment] = Field(default_factory=list)
    source_id: Optional[str] = None      # cin7Id
    source_key: Optional[str] = None     # cin7Key
    target_id: Optional[str] = None      # trackstarId
    target_key: Optional[str] = None     # trackstarKey
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reference_key(self) -> Optional[str]:
        return f"inventory:{self.target_id}" if self.target_id is not None else None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.error is not None:
            data["error"] = self.error
        if self.source_id is not None:
            data["cin7Id"] = self.source_id
            data["cin7Key"] = self.source_key
        if self.target_id is not None or self.target_key is not None:
            data["trackstarId"] = self.target_id
            data["trackstarKey"] = self.target_key
            data["referenceKey"] = self.reference_key
        if self.error is None:
            data["adjustments"] = [a.to_dict() for a in self.adjustments]
        return data


class ApprovalVerdict(BaseModel):
    """Auto-approval decision for one adjustment."""
    success: bool
    should_auto_approve: bool
    adjustment_needed: bool
    message: Optional[str] = None
    adjustment: Optional[InventoryAdjustment] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "shouldAutoApprove": self.should_auto_approve,
            "adjustmentNeeded": self.adjustment_needed,
        }
        if self.message is not None:
            data["message"] = self.message
        if self.adjustment is not None:
            data["inventoryAdjustment"] = self.adjustment.to_dict()
        return data


class ReconciliationResult(BaseModel):
    """Combined outcome of build + approval for one SKU."""
    adjustments: List[InventoryAdjustment] = Field(default_factory=list)
    verdicts: List[ApprovalVerdict] = Field(default_factory=list)
    should_auto_approve: bool = False
    adjustment_needed: bool = False
    message: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "adjustments": [a.to_dict() for a in self.adjustments],
            "shouldAutoApprove": self.should_auto_approve,
            "adjustmentNeeded": self.adjustment_needed,
            "message": self.message,
        }
        if self.error is not None:
            data["error"] = self.error
        return data
