"""Core data models - tenant configuration and config-source parsing."""

from core.models.config import (
    # Config source
    RawConfig,
    SerializedConfig,
    ConfigSource,
    ParseResult,
    as_config_source,
    parse_location_mappings,
    parse_tenant_config,
    validate_tenant_config,

    # Tenant configuration
    TenantConfig,
    SyncEntityConfig,
    Webhook,
    LocationMapping,
    WarehouseMapping,
    SubstitutionList,
    DefaultShippingMethod,
    mask_api_key,
    DEFAULT_CONNECTION_ID,
    NOT_APPLICABLE,
)

__all__ = [
    # Config source
    "RawConfig",
    "SerializedConfig",
    "ConfigSource",
    "ParseResult",
    "as_config_source",
    "parse_location_mappings",
    "parse_tenant_config",
    "validate_tenant_config",

    # Tenant configuration
    "TenantConfig",
    "SyncEntityConfig",
    "Webhook",
    "LocationMapping",
    "WarehouseMapping",
    "SubstitutionList",
    "DefaultShippingMethod",
    "mask_api_key",
    "DEFAULT_CONNECTION_ID",
    "NOT_APPLICABLE",
]
