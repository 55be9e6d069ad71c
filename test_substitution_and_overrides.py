"""Value substitution and entity mapping override tests."""

import pytest

from core.mapping import (
    MISSING,
    EntityMappingOverride,
    apply_overrides,
    apply_transform,
    find_substitution_list,
    get_nested_value,
    substitute,
)
from core.models import SubstitutionList


LISTS = [
    {"listName": "country", "mapping": {"Australia": "AU", "New Zealand": "NZ", "Nowhere": ""}},
    {"listName": "carrier", "mapping": {"Aus Post": "AUSPOST"}},
    {"listName": "country", "mapping": {"Australia": "SHADOWED"}},
]


class TestSubstitute:
    """Named lookup tables with pass-through on every miss."""

    def test_mapped_value(self):
        assert substitute(LISTS, "country", "Australia") == "AU"

    def test_first_list_with_name_wins(self):
        assert find_substitution_list(LISTS, "country").mapping["Australia"] == "AU"

    def test_exact_case_only(self):
        assert substitute(LISTS, "country", "australia") == "australia"

    def test_unknown_list(self):
        assert substitute(LISTS, "state", "Victoria") == "Victoria"

    def test_unknown_value(self):
        assert substitute(LISTS, "country", "Fiji") == "Fiji"

    def test_empty_mapped_value_passes_through(self):
        assert substitute(LISTS, "country", "Nowhere") == "Nowhere"

    @pytest.mark.parametrize("value", [None, ""])
    def test_blank_input(self, value):
        assert substitute(LISTS, "country", value) == value

    @pytest.mark.parametrize("lists", [None, []])
    def test_no_lists(self, lists):
        assert substitute(lists, "country", "Australia") == "Australia"

    def test_accepts_models_and_skips_malformed_entries(self):
        lists = [
            {"mapping": {"Australia": "XX"}},
            SubstitutionList(listName="country", mapping={"Australia": "AU"}),
        ]
        assert substitute(lists, "country", "Australia") == "AU"

    def test_non_string_value_passes_through(self):
        assert substitute([{"listName": "n", "mapping": {"1": "one"}}], "n", 1) == 1


SALE = {
    "ID": "sale-1",
    "CustomerReference": "po-778",
    "ShippingAddress": {"Line1": "1 George St", "City": "Sydney"},
    "Lines": [{"SKU": "A"}, {"SKU": "B"}],
    "Note": None,
}


class TestNestedValue:
    """Dot-path reads over dicts and lists."""

    def test_dict_path(self):
        assert get_nested_value(SALE, "ShippingAddress.City") == "Sydney"

    def test_list_index(self):
        assert get_nested_value(SALE, "Lines.1.SKU") == "B"
        assert get_nested_value(SALE, "Lines.-1.SKU") == "B"

    def test_missing(self):
        assert get_nested_value(SALE, "ShippingAddress.Zip") is MISSING
        assert get_nested_value(SALE, "Lines.5.SKU") is MISSING
        assert get_nested_value(SALE, "") is MISSING
        assert get_nested_value(None, "ID") is MISSING

    def test_explicit_none_is_not_missing(self):
        assert get_nested_value(SALE, "Note") is None


class TestTransforms:
    @pytest.mark.parametrize(
        "transform,expected",
        [("uppercase", "PO-778"), ("LOWERCASE", "po-778"), ("reverse", "po-778"), (None, "po-778")],
    )
    def test_named_transforms(self, transform, expected):
        assert apply_transform("po-778", transform) == expected

    def test_none_untouched(self):
        assert apply_transform(None, "uppercase") is None


class TestApplyOverrides:
    """Last-write-wins override layer."""

    CONFIG = {
        "entity": "sale",
        "mapping": [
            {"sourcePath": "CustomerReference", "targetKey": "order_number", "transform": "uppercase"},
            {"cin7": "ShippingAddress.Line1", "trackstar": "address1"},
            {"sourcePath": "Missing.Path", "targetKey": "channel"},
            {"sourcePath": "Note", "targetKey": "notes"},
        ],
    }

    def test_applies_rules_in_order(self):
        derived = {"order_number": "SO-1", "channel": "web"}
        result = apply_overrides(derived, self.CONFIG, SALE, "sale")
        assert result == {
            "order_number": "PO-778",
            "address1": "1 George St",
            "channel": "web",
            "notes": None,
        }

    def test_source_not_mutated(self):
        derived = {"order_number": "SO-1"}
        apply_overrides(derived, self.CONFIG, SALE, "sale")
        assert derived == {"order_number": "SO-1"}

    def test_other_entity_untouched(self):
        derived = {"order_number": "SO-1"}
        assert apply_overrides(derived, self.CONFIG, SALE, "purchase") == derived

    def test_later_rule_wins(self):
        config = {
            "entity": "sale",
            "mapping": [
                {"sourcePath": "ID", "targetKey": "order_number"},
                {"sourcePath": "CustomerReference", "targetKey": "order_number"},
            ],
        }
        assert apply_overrides({}, config, SALE, "sale") == {"order_number": "po-778"}

    def test_accepts_model(self):
        config = EntityMappingOverride.model_validate(self.CONFIG)
        assert apply_overrides({}, config, SALE, "sale")["order_number"] == "PO-778"

    @pytest.mark.parametrize("config", [None, "sale", {"mapping": []}, {"entity": "sale", "mapping": [{"x": 1}]}])
    def test_missing_or_malformed_config_is_noop(self, config):
        assert apply_overrides({"a": 1}, config, SALE, "sale") == {"a": 1}

    def test_copied_values_are_independent(self):
        config = {"entity": "sale", "mapping": [{"sourcePath": "Lines", "targetKey": "lines"}]}
        result = apply_overrides({}, config, SALE, "sale")
        result["lines"][0]["SKU"] = "Z"
        assert SALE["Lines"][0]["SKU"] == "A"
