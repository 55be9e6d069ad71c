"""Location resolver tests.

Covers name and target-id lookups, normalization, first-match-wins order,
preferred/single/default connection fallbacks and malformed configuration.
"""

import json

import pytest

from location_resolver import (
    LocationResolver,
    MatchType,
    location_names_match,
    normalize_location_name,
    resolve_location,
)


MAPPINGS = [
    {
        "connectionId": "conn-a",
        "warehouses": [
            {"sourceWarehouseId": "1", "sourceWarehouseName": "Main Warehouse", "targetLocationId": "LOC-A1"},
            {"sourceWarehouseId": "2", "sourceWarehouseName": "Overflow", "targetLocationId": "LOC-A2"},
        ],
        "default3PLShippingMethod": {"carrier_name": "UPS", "name": "UPS Ground", "id": 12},
    },
    {
        "connectionId": "conn-b",
        "warehouses": [
            {"sourceWarehouseName": "Overflow", "targetLocationId": "LOC-B1"},
            {"sourceWarehouseName": "Sydney DC", "targetLocationId": "LOC-B2"},
        ],
    },
]


class TestNormalization:
    """Whitespace and case normalization of location names."""

    def test_collapses_whitespace(self):
        assert normalize_location_name("  Main   Warehouse ") == "Main Warehouse"

    def test_none_is_empty(self):
        assert normalize_location_name(None) == ""

    def test_match_ignores_case_and_spacing(self):
        assert location_names_match("Main Warehouse", " main  WAREHOUSE ")

    def test_distinct_names_do_not_match(self):
        assert not location_names_match("Warehouse", "Warehouse 2")

    def test_empty_values_never_match(self):
        assert not location_names_match("", "")
        assert not location_names_match(None, "Main")


class TestResolveByName:
    """Source warehouse name -> connection and target location."""

    def test_exact_match(self):
        resolution = LocationResolver(MAPPINGS).resolve(by_name="Main Warehouse")
        assert resolution.found
        assert resolution.match_type == MatchType.EXACT
        assert resolution.to_output() == {
            "connectionId": "conn-a",
            "mappedWarehouse": "LOC-A1",
            "mappingKey": "Main Warehouse",
            "default3PLShippingMethod": "UPS Ground",
        }

    @pytest.mark.parametrize("query", ["main warehouse", "  Main   Warehouse", "MAIN WAREHOUSE "])
    def test_normalized_match(self, query):
        resolution = LocationResolver(MAPPINGS).resolve(by_name=query)
        assert resolution.connection_id == "conn-a"
        assert resolution.mapped_warehouse == "LOC-A1"

    def test_first_match_wins_across_connections(self):
        resolution = LocationResolver(MAPPINGS).resolve(by_name="Overflow")
        assert resolution.connection_id == "conn-a"
        assert resolution.mapped_warehouse == "LOC-A2"

    def test_shipping_method_defaults_to_na(self):
        output = LocationResolver(MAPPINGS).resolve(by_name="Sydney DC").to_output()
        assert output["default3PLShippingMethod"] == "N/A"

    def test_string_shipping_method(self):
        mappings = [{
            "connectionId": "c",
            "warehouses": [{"sourceWarehouseName": "A", "targetLocationId": "1"}],
            "default3PLShippingMethod": "Express",
        }]
        assert LocationResolver(mappings).resolve(by_name="A").default_shipping_method == "Express"

    def test_unknown_name_not_found(self):
        resolution = LocationResolver(MAPPINGS).resolve(by_name="Nowhere")
        assert not resolution.found
        assert resolution.to_output()["connectionId"] == ""


class TestResolveByTargetId:
    """Reverse lookup: target location id -> source warehouse name."""

    def test_reverse_lookup(self):
        resolution = LocationResolver(MAPPINGS).resolve(by_target_id="LOC-B2")
        assert resolution.connection_id == "conn-b"
        assert resolution.mapping_key == "Sydney DC"

    def test_find_source_warehouse_name(self):
        resolver = LocationResolver(MAPPINGS)
        assert resolver.find_source_warehouse_name("LOC-A2") == "Overflow"
        assert resolver.find_source_warehouse_name(" LOC-A1 ") == "Main Warehouse"

    def test_reverse_lookup_has_no_default_fallback(self):
        mappings = MAPPINGS + [
            {"connectionId": "default", "warehouses": [{"sourceWarehouseName": "Fallback", "targetLocationId": "X"}]}
        ]
        assert LocationResolver(mappings).find_source_warehouse_name("unknown") == ""


class TestFallbacks:
    """Preferred, single and default connection behaviour."""

    def test_preferred_connection_without_query(self):
        resolution = LocationResolver(MAPPINGS).resolve(preferred_connection_id="conn-b")
        assert resolution.match_type == MatchType.PREFERRED_CONNECTION
        assert resolution.mapped_warehouse == "LOC-B1"

    def test_single_connection_without_query(self):
        resolution = LocationResolver(MAPPINGS[:1]).resolve()
        assert resolution.match_type == MatchType.SINGLE_CONNECTION
        assert resolution.mapped_warehouse == "LOC-A1"

    def test_default_connection_on_miss(self):
        mappings = MAPPINGS + [
            {"connectionId": "default", "warehouses": [{"sourceWarehouseName": "Fallback", "targetLocationId": "DEF-1"}]}
        ]
        resolution = LocationResolver(mappings).resolve(by_name="Nowhere")
        assert resolution.is_fallback
        assert resolution.connection_id == "default"
        assert resolution.mapped_warehouse == "DEF-1"

    def test_default_fallback_can_be_disabled(self):
        mappings = MAPPINGS + [
            {"connectionId": "default", "warehouses": [{"sourceWarehouseName": "Fallback", "targetLocationId": "DEF-1"}]}
        ]
        assert not LocationResolver(mappings).resolve(by_name="Nowhere", allow_default=False).found


class TestConfigurationSources:
    """Mappings arrive parsed, serialized, legacy-shaped or broken."""

    def test_json_string(self):
        resolution = resolve_location(json.dumps(MAPPINGS), by_name="Sydney DC")
        assert resolution.mapped_warehouse == "LOC-B2"

    def test_legacy_names(self):
        mappings = [{
            "connectionId": "legacy",
            "warehouses": [{"cin7WarehouseName": "Perth", "trackstarLocationId": 42}],
        }]
        resolution = resolve_location(mappings, by_name="perth")
        assert resolution.mapped_warehouse == "42"

    def test_legacy_object_warehouses(self):
        mappings = [{"connectionId": "c1", "warehouses": {"Perth": "P-1", "Darwin": "D-1"}}]
        resolver = LocationResolver(mappings)
        assert resolver.resolve(by_name="Darwin").mapped_warehouse == "D-1"
        assert [w.source_warehouse_name for w in resolver.connections[0].warehouses] == ["Perth", "Darwin"]

    @pytest.mark.parametrize("broken", ["", "not json", "{\"a\": 1}", None, 42, b"\xff\xfe["])
    def test_malformed_mapping_is_not_found(self, broken):
        resolver = LocationResolver(broken)
        assert resolver.error
        resolution = resolver.resolve(by_name="Main Warehouse")
        assert not resolution.found
        assert resolution.error == resolver.error

    def test_invalid_connection_is_skipped(self):
        mappings = [
            {"connectionId": "c1", "warehouses": [{"sourceWarehouseName": "Main", "targetLocationId": "W1"}]},
            {"warehouses": [{"sourceWarehouseName": "Other", "targetLocationId": "W2"}]},
        ]
        resolver = LocationResolver(mappings)
        assert resolver.error is None
        resolution = resolver.resolve(by_name="Main")
        assert (resolution.found, resolution.mapped_warehouse) == (True, "W1")
        assert not resolver.resolve(by_name="Other").found


class TestTransferAndConnectionLookups:
    """Transfer location pairs and inventory connection lookup."""

    def test_transfer_locations_to_first(self):
        locations = LocationResolver(MAPPINGS).resolve_transfer_locations("Main Warehouse", "Sydney DC")
        assert [loc.location_type for loc in locations] == ["to", "from"]
        assert locations[0].model_dump(by_alias=True) == {
            "locationType": "to",
            "connectionId": "conn-b",
            "mappedWarehouse": "LOC-B2",
            "locationName": "Sydney DC",
        }

    def test_transfer_skips_unmapped_end(self):
        locations = LocationResolver(MAPPINGS).resolve_transfer_locations("Nowhere", "Overflow")
        assert len(locations) == 1
        assert locations[0].location_type == "to"

    def test_find_connection_single(self):
        result = LocationResolver(MAPPINGS[:1]).find_connection("anything")
        assert result == {"connectionId": "conn-a", "warehouse": "Main Warehouse", "warehouseId": "LOC-A1"}

    def test_find_connection_by_id(self):
        assert LocationResolver(MAPPINGS).find_connection("conn-b")["warehouseId"] == "LOC-B1"

    def test_find_connection_missing(self):
        assert LocationResolver(MAPPINGS).find_connection("conn-z") == {"connectionId": None}

    def test_warehouses_for_connection(self):
        resolver = LocationResolver(MAPPINGS)
        names = [w.source_warehouse_name for w in resolver.warehouses_for_connection("conn-b")]
        assert names == ["Overflow", "Sydney DC"]
        assert resolver.warehouses_for_connection("conn-z") == []

    def test_substitution_lists_for(self):
        mappings = [dict(MAPPINGS[0], substitutionList=[{"listName": "country", "mapping": {"AU": "Australia"}}])]
        resolver = LocationResolver(mappings)
        lists = resolver.substitution_lists_for("conn-a")
        assert [(s.list_name, s.mapping) for s in lists] == [("country", {"AU": "Australia"})]
        assert resolver.substitution_lists_for(None) == []
