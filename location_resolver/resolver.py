"""Location Resolver Algorithm.

Resolves source-ERP warehouse names (and target-WMS location ids) against a
tenant's location mappings:
1. Scan connections in configured order, and warehouses in configured order
2. First exact or normalized match wins
3. With no query value, use the preferred connection, or the only connection
4. Otherwise fall back to the first warehouse of the "default" connection

The scan is deliberately linear and order-dependent. Tenant configuration
legitimately contains overlapping names and array order is the tie-break.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple

from core.models.config import (
    LocationMapping,
    ParseResult,
    SubstitutionList,
    WarehouseMapping,
    parse_location_mappings,
    DEFAULT_CONNECTION_ID,
)
from core.observability.logging import get_logger
from location_resolver.models import LocationResolution, MatchType, TransferLocation
from location_resolver.normalize import location_names_match


logger = get_logger(__name__)


class LocationResolver:
    """Resolves locations against one tenant's location mappings.

    The mapping source (JSON string or parsed list) is parsed once on
    construction. A parse failure leaves the resolver empty: every lookup
    returns a not-found result carrying the parse error.

    Example:
        resolver = LocationResolver(tenant_config["locationMapping"])
        resolution = resolver.resolve(by_name="Main Warehouse")
        if resolution.found:
            location_id = resolution.mapped_warehouse
    """

    def __init__(self, location_mapping: Any):
        parsed: ParseResult[List[LocationMapping]] = parse_location_mappings(location_mapping)
        self.connections: List[LocationMapping] = parsed.value or []
        self.error: Optional[str] = parsed.error
        if parsed.error:
            logger.debug(f"Location mapping unavailable: {parsed.error}")

    # =========================================================================
    # Scanning
    # =========================================================================

    def _scan(self, query: str, attribute: str) -> Iterator[Tuple[LocationMapping, WarehouseMapping, MatchType]]:
        """Yield matching (connection, warehouse) pairs in configured order."""
        query_stripped = query.strip()
        for connection in self.connections:
            for warehouse in connection.warehouses:
                configured = getattr(warehouse, attribute)
                if not location_names_match(configured, query_stripped):
                    continue
                match_type = MatchType.EXACT if configured == query_stripped else MatchType.NORMALIZED
                yield connection, warehouse, match_type

    def get_connection(self, connection_id: Optional[str]) -> Optional[LocationMapping]:
        """Find a connection by exact id."""
        if connection_id is None:
            return None
        for connection in self.connections:
            if connection.connection_id == connection_id:
                return connection
        return None

    def _first_warehouse(self, connection: LocationMapping, match_type: MatchType) -> LocationResolution:
        warehouse = connection.warehouses[0] if connection.warehouses else None
        return LocationResolution.from_match(connection, warehouse, match_type)

    # =========================================================================
    # Public lookups
    # =========================================================================

    def resolve(
        self,
        by_name: Optional[str] = None,
        by_target_id: Optional[str] = None,
        preferred_connection_id: Optional[str] = None,
        allow_default: bool = True,
    ) -> LocationResolution:
        """Resolve a location by source name or target location id.

        Args:
            by_name: Source warehouse name
            by_target_id: Target location id (reverse lookup)
            preferred_connection_id: Connection to use when there is no query
            allow_default: Fall back to the "default" connection on a miss

        Returns:
            LocationResolution (``found`` is False when nothing matched)
        """
        if self.error:
            return LocationResolution.not_found(self.error)

        query, attribute = None, None
        if by_name is not None and str(by_name).strip():
            query, attribute = str(by_name), "source_warehouse_name"
        elif by_target_id is not None and str(by_target_id).strip():
            query, attribute = str(by_target_id), "target_location_id"

        if query is not None:
            for connection, warehouse, match_type in self._scan(query, attribute):
                logger.debug(
                    f"Resolved location '{query}' via {match_type.value} match",
                    extra_fields={"connection_id": connection.connection_id},
                )
                return LocationResolution.from_match(connection, warehouse, match_type)
        else:
            preferred = self.get_connection(preferred_connection_id)
            if preferred is not None:
                return self._first_warehouse(preferred, MatchType.PREFERRED_CONNECTION)
            if len(self.connections) == 1:
                return self._first_warehouse(self.connections[0], MatchType.SINGLE_CONNECTION)

        if allow_default:
            default = self.get_connection(DEFAULT_CONNECTION_ID)
            if default is not None:
                logger.debug(f"No mapping for '{query}', using default connection")
                return self._first_warehouse(default, MatchType.DEFAULT_CONNECTION)

        return LocationResolution.not_found()

    def find_source_warehouse_name(self, target_location_id: Optional[str]) -> str:
        """Reverse lookup: target location id -> source warehouse name.

        Returns "" when unmapped; there is no default fallback because the
        caller applies its own fallback chain.
        """
        resolution = self.resolve(by_target_id=target_location_id, allow_default=False)
        if not resolution.found or resolution.warehouse is None:
            return ""
        return resolution.warehouse.source_warehouse_name or ""

    def resolve_transfer_locations(
        self,
        from_name: Optional[str],
        to_name: Optional[str],
    ) -> List[TransferLocation]:
        """Resolve both ends of a stock transfer.

        Only ends that match a configured warehouse are returned, "to" first.
        """
        locations = []
        for location_type, name in (("to", to_name), ("from", from_name)):
            if name is None or not str(name).strip():
                continue
            resolution = self.resolve(by_name=name, allow_default=False)
            if not resolution.found:
                continue
            locations.append(TransferLocation(
                location_type=location_type,
                connection_id=resolution.connection_id,
                mapped_warehouse=resolution.mapped_warehouse,
                location_name=resolution.mapping_key,
            ))
        return locations

    def find_connection(self, connection_id: Optional[str]) -> Dict[str, Any]:
        """Find the connection an inventory event belongs to.

        A tenant with a single connection always uses it; otherwise the
        exact id is matched, then the "default" connection.

        Returns:
            {"connectionId", "warehouse"?, "warehouseId"?}, with
            connectionId None when nothing applies
        """
        if self.error or not self.connections:
            return {"connectionId": None}

        if len(self.connections) == 1:
            connection = self.connections[0]
        else:
            connection = self.get_connection(connection_id) or self.get_connection(DEFAULT_CONNECTION_ID)
        if connection is None:
            return {"connectionId": None}

        result: Dict[str, Any] = {"connectionId": connection.connection_id}
        if connection.warehouses:
            first = connection.warehouses[0]
            result["warehouse"] = first.source_warehouse_name or ""
            result["warehouseId"] = first.target_location_id or ""
        return result

    def warehouses_for_connection(self, connection_id: Optional[str]) -> List[WarehouseMapping]:
        connection = self.get_connection(connection_id)
        return list(connection.warehouses) if connection else []

    def substitution_lists_for(self, connection_id: Optional[str]) -> List[SubstitutionList]:
        connection = self.get_connection(connection_id)
        return list(connection.substitution_list) if connection else []


def resolve_location(
    location_mapping: Any,
    by_name: Optional[str] = None,
    by_target_id: Optional[str] = None,
    preferred_connection_id: Optional[str] = None,
    allow_default: bool = True,
) -> LocationResolution:
    """One-shot resolve; see ``LocationResolver.resolve``."""
    return LocationResolver(location_mapping).resolve(
        by_name=by_name,
        by_target_id=by_target_id,
        preferred_connection_id=preferred_connection_id,
        allow_default=allow_default,
    )
