"""Tenant configuration parsing and validation tests."""

import json

import pytest

from core.models import (
    LocationMapping,
    ParseResult,
    RawConfig,
    SerializedConfig,
    TenantConfig,
    as_config_source,
    mask_api_key,
    parse_location_mappings,
    parse_tenant_config,
    validate_tenant_config,
)
from core.settings import EngineSettings, get_settings, reset_settings


TENANT = {
    "tenantId": "t-1",
    "apiKey": "abcd1234efgh5678",
    "syncConfig": [
        {"entity": "sale", "status": "Active", "webhook": None},
        {
            "entity": "inventory",
            "status": "Active",
            "quantityType": "onhand",
            "locationScope": "all",
            "autoAcceptThreshold": 5,
        },
    ],
    "locationMapping": [
        {
            "connectionId": 77,
            "warehouses": [{"cin7WarehouseName": "Main Warehouse", "trackstarLocationId": 9}],
            "substitutionList": [{"listName": "country", "mapping": {"Australia": "AU"}}],
            "default3PLShippingMethod": {"carrier_name": "UPS", "carrier_id": 3},
        }
    ],
}


class TestConfigSource:
    def test_wraps_strings_as_serialized(self):
        assert as_config_source("[]") == SerializedConfig(text="[]")
        assert as_config_source(b"[]") == SerializedConfig(text=b"[]")

    def test_bytes_are_decoded(self):
        assert parse_location_mappings(b"[{\"connectionId\": \"c1\"}]").value[0].connection_id == "c1"

    def test_invalid_utf8_is_a_parse_failure(self):
        assert parse_location_mappings(b"\xff\xfe[").error == "configuration is not valid UTF-8"
        assert parse_tenant_config(b"\xff").error == "configuration is not valid UTF-8"
        assert validate_tenant_config(b"\xff") == {"valid": False, "errors": ["configuration is not valid UTF-8"]}

    def test_wraps_structures_as_raw(self):
        assert as_config_source([]) == RawConfig(value=[])

    def test_parse_result(self):
        assert ParseResult.success(1).ok
        assert not ParseResult.failure("bad").ok


class TestTenantConfig:
    """Parsing into validated models."""

    def test_parses_dict_and_json(self):
        for value in (TENANT, json.dumps(TENANT)):
            result = parse_tenant_config(value)
            assert result.ok
            assert result.value.tenant_id == "t-1"

    def test_legacy_names_and_id_coercion(self):
        mapping = parse_tenant_config(TENANT).value.connection("77")
        assert mapping.warehouses[0].source_warehouse_name == "Main Warehouse"
        assert mapping.warehouses[0].target_location_id == "9"
        assert mapping.shipping_method().carrier_id == "3"
        assert mapping.shipping_method_name() == "UPS"

    def test_entity_lookup(self):
        config = parse_tenant_config(TENANT).value
        inventory = config.entity_config("inventory")
        assert inventory.is_active
        assert inventory.auto_accept_threshold == 5
        assert config.entity_config("sale").webhook == []
        assert config.entity_config("transfer") is None

    def test_duplicate_entity_rejected(self):
        data = dict(TENANT, syncConfig=[{"entity": "sale"}, {"entity": "sale"}])
        result = parse_tenant_config(data)
        assert not result.ok
        assert "duplicate syncConfig entry for entity 'sale'" in result.error

    def test_negative_threshold_rejected(self):
        data = dict(TENANT, syncConfig=[{"entity": "inventory", "autoAcceptThreshold": -1}])
        assert not parse_tenant_config(data).ok

    @pytest.mark.parametrize("value", ["", "{nope", "[1, 2]", 42])
    def test_unusable_sources(self, value):
        result = parse_tenant_config(value)
        assert not result.ok
        assert result.value is None

    def test_api_key_is_secret(self):
        config = TenantConfig.model_validate(TENANT)
        assert "abcd1234efgh5678" not in repr(config)
        public = config.to_public_dict()
        assert public["apiKey"] == "abcd********5678"
        assert public["hasApiKey"] is True


class TestMaskApiKey:
    def test_long_key(self):
        assert mask_api_key("123456789012") == "1234****9012"

    @pytest.mark.parametrize("key", [None, "", "short", "12345678901"])
    def test_short_keys_fully_masked(self, key):
        assert mask_api_key(key) == "********"


class TestLocationMappings:
    def test_single_model_is_wrapped(self):
        mapping = LocationMapping(connectionId="c1")
        assert parse_location_mappings(mapping).value == [mapping]

    def test_not_configured(self):
        assert parse_location_mappings(None).error == "location mapping is not configured"

    def test_wrong_shape(self):
        assert parse_location_mappings({"a": 1}).error == "location mapping must be a list"

    def test_validation_errors_are_reported(self):
        result = parse_location_mappings([{"warehouses": []}])
        assert not result.ok
        assert "connectionId" in result.error

    def test_invalid_entries_are_skipped(self):
        result = parse_location_mappings([{"connectionId": "c1"}, {"warehouses": []}])
        assert result.ok
        assert [m.connection_id for m in result.value] == ["c1"]

    def test_all_entries_invalid(self):
        result = parse_location_mappings([{"warehouses": []}, {"connectionId": None}])
        assert result.error.startswith("0.connectionId")
        assert "1.connectionId" in result.error


class TestValidateTenantConfig:
    """Editor-facing validation result."""

    def test_valid(self):
        assert validate_tenant_config(TENANT) == {"valid": True, "errors": []}

    def test_missing_api_key(self):
        data = {k: v for k, v in TENANT.items() if k != "apiKey"}
        result = validate_tenant_config(data)
        assert result["valid"] is False
        assert "apiKey is required and must be a string" in result["errors"]

    def test_not_an_object(self):
        assert validate_tenant_config([]) == {"valid": False, "errors": ["Config is required"]}

    def test_invalid_json(self):
        result = validate_tenant_config("{")
        assert result["valid"] is False
        assert result["errors"][0].startswith("configuration is not valid JSON")


class TestSettings:
    def test_defaults(self):
        settings = EngineSettings()
        assert settings.default_location_name == "Main Warehouse"
        assert settings.default_quantity_type == "sellable"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_SHIP_COUNTRY", "New Zealand")
        monkeypatch.setenv("TEMPORAL_TASK_QUEUE", "sync-q")
        reset_settings()
        try:
            settings = get_settings()
            assert settings.default_ship_country == "New Zealand"
            assert settings.task_queue == "sync-q"
            assert get_settings() is settings
        finally:
            reset_settings()
