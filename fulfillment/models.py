"""Fulfillment data models.

Target-WMS order records as delivered by order webhooks:

    Order
    ├── line_items[]          (ordered SKU quantities)
    ├── ship_to_address
    └── shipments[]
        └── packages[]
            └── line_items[]  (shipped SKU quantities, optional lot)

Unknown fields are kept (``extra="allow"``) so nothing is lost when a record
is re-serialised.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from core.models.values import Quantity, to_id, to_quantity


class SaleType(str, Enum):
    """Whether an order fulfils in one shipment or several."""
    SIMPLE = "Simple"
    ADVANCED = "Advanced"


class SyncStatus(str, Enum):
    SUCCESS = "Success"
    FAILED = "Failed"


class _Record(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class LineItem(_Record):
    sku: Optional[str] = None
    quantity: Quantity = 0
    unit_price: Optional[Quantity] = None
    discount_amount: Optional[Quantity] = None
    lot_id: Optional[str] = None
    expiration_date: Optional[str] = None

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity(cls, value: Any) -> Quantity:
        return to_quantity(value)

    @field_validator("sku", "lot_id", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> Any:
        return to_id(value)


class Address(_Record):
    full_name: Optional[str] = None
    company: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    address3: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    email_address: Optional[str] = None
    phone_number: Optional[str] = None

    @field_validator("postal_code", "phone_number", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> Any:
        return to_id(value)


class Package(_Record):
    package_name: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    carrier_name: Optional[str] = None
    line_items: List[LineItem] = Field(default_factory=list)

    @field_validator("tracking_number", mode="before")
    @classmethod
    def _tracking(cls, value: Any) -> Any:
        return to_id(value)

    @field_validator("line_items", mode="before")
    @classmethod
    def _items(cls, value: Any) -> Any:
        return value or []

    def box_label(self, index: int) -> str:
        """Package name, else tracking number, else "Box N" (1-based)."""
        return self.package_name or self.tracking_number or f"Box {index + 1}"


class Shipment(_Record):
    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "shipment_id"))
    warehouse_id: Optional[str] = None
    status: Optional[str] = None
    shipped_date: Optional[str] = None
    packages: List[Package] = Field(default_factory=list)

    @field_validator("id", "warehouse_id", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> Any:
        return to_id(value)

    @field_validator("packages", mode="before")
    @classmethod
    def _packages(cls, value: Any) -> Any:
        return value or []


class Order(_Record):
    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "order_id"))
    order_number: Optional[str] = None
    warehouse_id: Optional[str] = None
    status: Optional[str] = None
    updated_date: Optional[str] = None
    line_items: List[LineItem] = Field(default_factory=list)
    shipments: List[Shipment] = Field(default_factory=list)
    ship_to_address: Address = Field(default_factory=Address)

    @field_validator("id", "order_number", "warehouse_id", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> Any:
        return to_id(value)

    @field_validator("line_items", "shipments", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return value or []

    @field_validator("ship_to_address", mode="before")
    @classmethod
    def _address(cls, value: Any) -> Any:
        return value or {}


# =============================================================================
# Operations
# =============================================================================

SUB_OPERATIONS = ("salePick", "salePack", "saleShip")

ENDPOINTS = {
    "salePick": "POST /salepick",
    "salePack": "POST /salepack",
    "saleShip": "POST /saleship",
}


class SubOperation(BaseModel):
    endpoint: str
    body: Dict[str, Any]


class ShipmentOperation(BaseModel):
    """Ordered Pick -> Pack -> Ship calls for one shipment.

    Sub-operations with no lines are left unset and omitted from output.
    """
    model_config = ConfigDict(populate_by_name=True)

    target_id: str = Field(..., alias="trackstarId")
    target_key: str = Field(..., alias="trackstarKey")
    sale_pick: Optional[SubOperation] = Field(default=None, alias="salePick")
    sale_pack: Optional[SubOperation] = Field(default=None, alias="salePack")
    sale_ship: Optional[SubOperation] = Field(default=None, alias="saleShip")

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"trackstarId": self.target_id, "trackstarKey": self.target_key}
        for name, operation in zip(SUB_OPERATIONS, (self.sale_pick, self.sale_pack, self.sale_ship)):
            if operation is not None:
                result[name] = operation.model_dump()
        return result


class SyncOutcome(BaseModel):
    """Aggregated result of one shipment's Pick/Pack/Ship calls."""
    model_config = ConfigDict(populate_by_name=True)

    sync_status: SyncStatus = Field(..., alias="syncStatus")
    message: str
    source_id: Optional[str] = Field(default=None, alias="cin7Id")
    source_key: str = Field(default="", alias="cin7Key")
    parent_reference_key: str = Field(default="", alias="parentReferenceKey")

    @property
    def succeeded(self) -> bool:
        return self.sync_status == SyncStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
