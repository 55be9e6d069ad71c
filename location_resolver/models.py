"""Location Resolver Data Models.

- MatchType: How a location was resolved
- LocationResolution: Result of a name or target-id lookup
- TransferLocation: One side ("to"/"from") of a stock transfer
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models.config import LocationMapping, WarehouseMapping, NOT_APPLICABLE


class MatchType(str, Enum):
    """How the location was resolved."""
    EXACT = "exact"                          # Configured value equals query
    NORMALIZED = "normalized"                # Equal after whitespace/case normalization
    PREFERRED_CONNECTION = "preferred"       # No query; caller named the connection
    SINGLE_CONNECTION = "single_connection"  # No query; tenant has one connection
    DEFAULT_CONNECTION = "default"           # Fell back to the "default" connection
    NO_MATCH = "no_match"


class LocationResolution(BaseModel):
    """Result of resolving a source location against tenant mappings.

    ``to_output()`` renders the exact field contract consumed downstream:
    connectionId, mappedWarehouse, mappingKey, default3PLShippingMethod.
    """
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    connection_id: str = Field(default="", alias="connectionId")
    mapped_warehouse: str = Field(default="", alias="mappedWarehouse")
    mapping_key: Optional[str] = Field(default=None, alias="mappingKey")
    default_shipping_method: str = Field(default=NOT_APPLICABLE, alias="default3PLShippingMethod")

    match_type: MatchType = Field(default=MatchType.NO_MATCH, exclude=True)
    connection: Optional[LocationMapping] = Field(default=None, exclude=True)
    warehouse: Optional[WarehouseMapping] = Field(default=None, exclude=True)
    error: Optional[str] = Field(default=None, exclude=True, description="Config parse error, if any")

    @property
    def found(self) -> bool:
        return self.match_type != MatchType.NO_MATCH

    @property
    def is_fallback(self) -> bool:
        return self.match_type == MatchType.DEFAULT_CONNECTION

    @classmethod
    def not_found(cls, error: Optional[str] = None) -> "LocationResolution":
        return cls(error=error)

    @classmethod
    def from_match(
        cls,
        connection: LocationMapping,
        warehouse: Optional[WarehouseMapping],
        match_type: MatchType,
    ) -> "LocationResolution":
        return cls(
            connection_id=connection.connection_id or "",
            mapped_warehouse=(warehouse.target_location_id or "") if warehouse else "",
            mapping_key=warehouse.source_warehouse_name if warehouse else None,
            default_shipping_method=connection.shipping_method_name(),
            match_type=match_type,
            connection=connection,
            warehouse=warehouse,
        )

    def to_output(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class TransferLocation(BaseModel):
    """Resolved mapping for one end of a stock transfer."""
    model_config = ConfigDict(populate_by_name=True)

    location_type: str = Field(..., alias="locationType", description="'to' or 'from'")
    connection_id: str = Field(..., alias="connectionId")
    mapped_warehouse: str = Field(..., alias="mappedWarehouse")
    location_name: Optional[str] = Field(default=None, alias="locationName")
