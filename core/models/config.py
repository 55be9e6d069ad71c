"""Tenant configuration models.

Tenant configuration is authored by the configuration UI and arrives here as
either a JSON string or an already-parsed structure. It is resolved once at
the boundary into a ``ParseResult`` so that engine code only ever sees
validated models:

- TenantConfig: syncConfig[], locationMapping[], notificationRecipient[], apiKey
- SyncEntityConfig: per-entity sync switches and inventory policy
- LocationMapping: one target connection with its warehouse triples
- WarehouseMapping: source warehouse name/id <-> target location id
- SubstitutionList: named value-substitution table

Wire names (camelCase) and the legacy ``cin7*``/``trackstar*`` names are
both accepted; ``model_dump(by_alias=True)`` renders the current wire names.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from core.observability.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

SYNC_ENTITIES = ("sale", "purchase", "inventory", "transfer", "product")
DEFAULT_CONNECTION_ID = "default"
NOT_APPLICABLE = "N/A"


def _to_str(value: Any) -> Any:
    """Coerce numeric identifiers to strings; leave everything else alone."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


# =============================================================================
# Config Source (Raw | Serialized)
# =============================================================================

@dataclass(frozen=True)
class RawConfig:
    """Configuration that is already a parsed structure."""
    value: Any


@dataclass(frozen=True)
class SerializedConfig:
    """Configuration still held as JSON text (str, or UTF-8 bytes)."""
    text: Union[str, bytes]


ConfigSource = Union[RawConfig, SerializedConfig]


def as_config_source(value: Any) -> ConfigSource:
    """Wrap an incoming configuration value in its source variant."""
    if isinstance(value, (RawConfig, SerializedConfig)):
        return value
    if isinstance(value, (str, bytes)):
        return SerializedConfig(text=value)
    return RawConfig(value=value)


@dataclass
class ParseResult(Generic[T]):
    """Outcome of resolving a ConfigSource into a validated model.

    Exactly one of ``value`` and ``error`` is set.
    """
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "ParseResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> "ParseResult[T]":
        return cls(error=error)


def _load(source: ConfigSource) -> ParseResult[Any]:
    if isinstance(source, SerializedConfig):
        text = source.text
        if isinstance(text, bytes):
            try:
                text = text.decode("utf-8")
            except UnicodeDecodeError:
                return ParseResult.failure("configuration is not valid UTF-8")
        if not text.strip():
            return ParseResult.failure("configuration is empty")
        try:
            return ParseResult.success(json.loads(text))
        except json.JSONDecodeError as e:
            return ParseResult.failure(f"configuration is not valid JSON: {e.msg}")
    return ParseResult.success(source.value)


def format_validation_error(error: ValidationError) -> List[str]:
    """Flatten a pydantic error into ``path: message`` strings."""
    messages = []
    for item in error.errors():
        path = ".".join(str(part) for part in item.get("loc", ()))
        messages.append(f"{path}: {item['msg']}" if path else item["msg"])
    return messages


# =============================================================================
# Models
# =============================================================================

class Webhook(BaseModel):
    """A webhook registered with the source ERP for one entity."""
    model_config = ConfigDict(extra="allow")

    url: str
    event: str
    status: str = "Active"


class SyncEntityConfig(BaseModel):
    """Sync switches for a single entity type.

    Inventory entries also carry the reconciliation policy:
    quantityType, locationScope and autoAcceptThreshold.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    entity: str = Field(..., description="sale / purchase / inventory / transfer / product")
    status: str = Field(default="Inactive", description="'Active' enables sync")
    webhook: List[Webhook] = Field(default_factory=list)
    quantity_type: Optional[str] = Field(default=None, alias="quantityType")
    location_scope: Optional[str] = Field(default=None, alias="locationScope")
    auto_accept_threshold: Union[int, float] = Field(
        default=0,
        alias="autoAcceptThreshold",
        description="Largest quantity difference approved without review",
    )

    @field_validator("webhook", mode="before")
    @classmethod
    def _webhook_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("auto_accept_threshold")
    @classmethod
    def _non_negative(cls, value: Union[int, float]) -> Union[int, float]:
        if value < 0:
            raise ValueError("autoAcceptThreshold must be >= 0")
        return value

    @property
    def is_active(self) -> bool:
        return self.status == "Active"


class WarehouseMapping(BaseModel):
    """One source warehouse paired with one target location."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    source_warehouse_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sourceWarehouseId", "cin7WarehouseId", "source_warehouse_id"),
        serialization_alias="sourceWarehouseId",
    )
    source_warehouse_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sourceWarehouseName", "cin7WarehouseName", "source_warehouse_name"),
        serialization_alias="sourceWarehouseName",
    )
    target_location_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("targetLocationId", "trackstarLocationId", "target_location_id"),
        serialization_alias="targetLocationId",
    )

    @field_validator("source_warehouse_id", "source_warehouse_name", "target_location_id", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Any:
        return _to_str(value)


class SubstitutionList(BaseModel):
    """Named table of source value -> target value."""
    model_config = ConfigDict(populate_by_name=True)

    list_name: str = Field(..., alias="listName")
    mapping: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("mapping", mode="before")
    @classmethod
    def _mapping_dict(cls, value: Any) -> Any:
        return {} if value is None else value


class DefaultShippingMethod(BaseModel):
    """Connection-level fallback carrier/method used on outbound orders."""
    model_config = ConfigDict(extra="allow")

    carrier_name: Optional[str] = None
    carrier_id: Optional[str] = None
    name: Optional[str] = None
    id: Optional[str] = None

    @field_validator("carrier_id", "id", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Any:
        return _to_str(value)

    def display_name(self) -> str:
        return self.name or self.carrier_name or NOT_APPLICABLE


class LocationMapping(BaseModel):
    """A tenant's target-system connection and its warehouse mappings."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    connection_id: str = Field(..., alias="connectionId")
    warehouses: List[WarehouseMapping] = Field(default_factory=list)
    substitution_list: List[SubstitutionList] = Field(default_factory=list, alias="substitutionList")
    default_shipping_method: Optional[Union[DefaultShippingMethod, str]] = Field(
        default=None,
        alias="default3PLShippingMethod",
    )

    @field_validator("connection_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _to_str(value)

    @field_validator("warehouses", mode="before")
    @classmethod
    def _legacy_warehouses(cls, value: Any) -> Any:
        """Accept the legacy ``{warehouseName: targetLocationId}`` form."""
        if value is None:
            return []
        if isinstance(value, dict):
            return [
                {"sourceWarehouseName": name, "targetLocationId": location_id}
                for name, location_id in value.items()
            ]
        return value

    @field_validator("substitution_list", mode="before")
    @classmethod
    def _substitution_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def is_default(self) -> bool:
        return self.connection_id == DEFAULT_CONNECTION_ID

    def shipping_method_name(self) -> str:
        """Display name of the default shipping method, ``"N/A"`` when unset."""
        method = self.default_shipping_method
        if method is None:
            return NOT_APPLICABLE
        if isinstance(method, str):
            return method or NOT_APPLICABLE
        return method.display_name()

    def shipping_method(self) -> Optional[DefaultShippingMethod]:
        """Default shipping method as a structured value, if any."""
        method = self.default_shipping_method
        if method is None or method == "":
            return None
        if isinstance(method, str):
            return DefaultShippingMethod(name=method)
        return method


class TenantConfig(BaseModel):
    """Complete per-tenant configuration.

    Invariants:
    - At most one syncConfig entry per entity type
    - autoAcceptThreshold >= 0 (enforced on SyncEntityConfig)
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    tenant_id: Optional[str] = Field(default=None, alias="tenantId")
    api_key: Optional[SecretStr] = Field(default=None, alias="apiKey")
    sync_config: List[SyncEntityConfig] = Field(default_factory=list, alias="syncConfig")
    location_mapping: List[LocationMapping] = Field(default_factory=list, alias="locationMapping")
    notification_recipient: List[Any] = Field(default_factory=list, alias="notificationRecipient")

    @field_validator("sync_config", "location_mapping", "notification_recipient", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _one_entry_per_entity(self) -> "TenantConfig":
        seen = set()
        for entry in self.sync_config:
            if entry.entity in seen:
                raise ValueError(f"duplicate syncConfig entry for entity '{entry.entity}'")
            seen.add(entry.entity)
        return self

    def entity_config(self, entity: str) -> Optional[SyncEntityConfig]:
        for entry in self.sync_config:
            if entry.entity == entity:
                return entry
        return None

    def connection(self, connection_id: Optional[str]) -> Optional[LocationMapping]:
        for mapping in self.location_mapping:
            if mapping.connection_id == connection_id:
                return mapping
        return None

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.get_secret_value())

    def masked_api_key(self) -> str:
        return mask_api_key(self.api_key.get_secret_value() if self.api_key else None)

    def to_public_dict(self) -> Dict[str, Any]:
        """Render for display, with the API key masked."""
        data = self.model_dump(by_alias=True, exclude={"api_key"}, exclude_none=True)
        data["apiKey"] = self.masked_api_key()
        data["hasApiKey"] = self.has_api_key
        return data


def mask_api_key(api_key: Optional[str]) -> str:
    """Show the first and last 4 characters; fully mask short keys."""
    if not api_key or len(api_key) < 12:
        return "********"
    return f"{api_key[:4]}{'*' * (len(api_key) - 8)}{api_key[-4:]}"


# =============================================================================
# Boundary Parsing
# =============================================================================

_LOCATION_MAPPING = TypeAdapter(LocationMapping)


def parse_location_mappings(value: Any) -> ParseResult[List[LocationMapping]]:
    """Resolve a location-mapping ConfigSource into validated models.

    Missing or malformed configuration is an expected state for new
    tenants; it is reported on the result, never raised. Each connection
    is validated on its own: invalid entries are skipped so the remaining
    connections still resolve, and only a list with no usable entry fails.
    """
    loaded = _load(as_config_source(value))
    if not loaded.ok:
        return ParseResult.failure(loaded.error)

    raw = loaded.value
    if raw is None:
        return ParseResult.failure("location mapping is not configured")
    if isinstance(raw, LocationMapping):
        raw = [raw]
    if not isinstance(raw, list):
        return ParseResult.failure("location mapping must be a list")

    mappings: List[LocationMapping] = []
    errors: List[str] = []
    for index, entry in enumerate(raw):
        try:
            mappings.append(_LOCATION_MAPPING.validate_python(entry))
        except ValidationError as e:
            errors.extend(f"{index}.{message}" for message in format_validation_error(e))

    if errors and not mappings:
        return ParseResult.failure("; ".join(errors))
    if errors:
        logger.warning(
            f"Skipped {len(raw) - len(mappings)} invalid location mapping(s)",
            extra_fields={"errors": errors},
        )
    return ParseResult.success(mappings)


def parse_tenant_config(value: Any) -> ParseResult[TenantConfig]:
    """Resolve a tenant-config ConfigSource into a validated TenantConfig."""
    if isinstance(value, TenantConfig):
        return ParseResult.success(value)

    loaded = _load(as_config_source(value))
    if not loaded.ok:
        return ParseResult.failure(loaded.error)
    if not isinstance(loaded.value, dict):
        return ParseResult.failure("tenant configuration must be an object")

    try:
        return ParseResult.success(TenantConfig.model_validate(loaded.value))
    except ValidationError as e:
        return ParseResult.failure("; ".join(format_validation_error(e)))


def validate_tenant_config(value: Any) -> Dict[str, Any]:
    """Validate tenant configuration for the configuration editor.

    Returns:
        {"valid": bool, "errors": [str]}
    """
    loaded = _load(as_config_source(value))
    if not loaded.ok:
        return {"valid": False, "errors": [loaded.error]}
    if not isinstance(loaded.value, dict):
        return {"valid": False, "errors": ["Config is required"]}

    errors: List[str] = []
    if not isinstance(loaded.value.get("apiKey"), str) or not loaded.value.get("apiKey"):
        errors.append("apiKey is required and must be a string")

    try:
        TenantConfig.model_validate(loaded.value)
    except ValidationError as e:
        errors.extend(format_validation_error(e))

    return {"valid": not errors, "errors": errors}
