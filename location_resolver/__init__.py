"""Location Resolver - warehouse/location identity across systems.

The source ERP names its warehouses; the target WMS identifies locations by
opaque id. Each tenant maps one to the other per connection. This package
resolves:
- Source warehouse name -> connection + target location id
- Target location id -> source warehouse name (reverse lookup)
- Both ends of a stock transfer

Usage:
    from location_resolver import LocationResolver

    resolver = LocationResolver(tenant_config["locationMapping"])
    resolution = resolver.resolve(by_name=sale["Location"])
    output = resolution.to_output()
    # {"connectionId", "mappedWarehouse", "mappingKey", "default3PLShippingMethod"}
"""

from location_resolver.models import LocationResolution, MatchType, TransferLocation
from location_resolver.normalize import (
    normalize_location_name,
    location_key,
    location_names_match,
)
from location_resolver.resolver import LocationResolver, resolve_location

__all__ = [
    # Models
    "LocationResolution",
    "MatchType",
    "TransferLocation",
    # Resolver
    "LocationResolver",
    "resolve_location",
    # Normalization
    "normalize_location_name",
    "location_key",
    "location_names_match",
]
