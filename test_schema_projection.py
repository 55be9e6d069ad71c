"""Schema tree, field-fill projection, integration schema and diff tests."""

import json

import pytest

from core.mapping import (
    ArrayTemplate,
    ChangeSet,
    Leaf,
    ObjectNode,
    ProjectionOptions,
    build_tree,
    changed_field_paths,
    find_node,
    has_field,
    has_inventory_fields,
    leaf_paths,
    project,
    select_operation_schema,
    to_placeholders,
)


ORDER_SCHEMA = {
    "order_number": "",
    "ship_to_address.city": "",
    "ship_to_address.address2": "",
    "line_items.sku": "",
    "line_items.quantity": "",
}


class TestBuildTree:
    """Flat dot paths -> Leaf / ObjectNode / ArrayTemplate."""

    def test_node_kinds(self):
        tree = build_tree(ORDER_SCHEMA)
        assert isinstance(tree.children["order_number"], Leaf)
        assert isinstance(tree.children["ship_to_address"], ObjectNode)
        assert isinstance(tree.children["line_items"], ArrayTemplate)
        assert set(tree.children["line_items"].item.children) == {"sku", "quantity"}

    def test_objects_win_over_leaves_in_any_order(self):
        leaf_first = build_tree({"meta": "", "meta.tag": ""})
        object_first = build_tree({"meta.tag": "", "meta": ""})
        assert leaf_first == object_first
        assert isinstance(leaf_first.children["meta"], ObjectNode)
        assert leaf_first.children["meta"].declared

    def test_nested_input_round_trips(self):
        tree = build_tree(ORDER_SCHEMA)
        assert build_tree(to_placeholders(tree)) == tree

    def test_list_template_input(self):
        tree = build_tree({"boxes": [{"tracking_number": "", "line_items.sku": ""}]})
        boxes = tree.children["boxes"]
        assert isinstance(boxes, ArrayTemplate)
        assert isinstance(boxes.item.children["line_items"], ArrayTemplate)

    def test_lookup_helpers(self):
        tree = build_tree(ORDER_SCHEMA)
        assert has_field(tree, "carrier_name") is False
        assert has_field(tree, "ship_to_address.city")
        assert isinstance(find_node(tree, "line_items.sku"), Leaf)
        assert find_node(tree, "order_number.nope") is None
        assert leaf_paths(tree) == [
            "order_number",
            "ship_to_address.city",
            "ship_to_address.address2",
            "line_items.sku",
            "line_items.quantity",
        ]

    @pytest.mark.parametrize("malformed", [None, "nope", 42, ["a", "b"]])
    def test_malformed_schema_is_empty_tree(self, malformed):
        assert build_tree(malformed) == ObjectNode()


class TestProject:
    """Projection of source data onto a schema tree."""

    def test_only_schema_fields_emitted(self):
        source = {
            "order_number": "SO-1",
            "ship_to_address": {"city": "Perth", "zip": "6000"},
            "line_items": [{"sku": "A", "quantity": 2, "extra": 1}],
            "unused": 5,
        }
        assert project(build_tree(ORDER_SCHEMA), source) == {
            "order_number": "SO-1",
            "ship_to_address": {"city": "Perth"},
            "line_items": [{"sku": "A", "quantity": 2}],
        }

    def test_empty_or_absent_arrays_omitted(self):
        tree = build_tree(ORDER_SCHEMA)
        assert "line_items" not in project(tree, {"order_number": "SO-1", "line_items": []})
        assert "line_items" not in project(tree, {"order_number": "SO-1"})

    def test_absent_leaf_omitted(self):
        assert project(build_tree(ORDER_SCHEMA), {}) == {}

    @pytest.mark.parametrize("blank", ["", None])
    def test_explicit_blank_emitted(self, blank):
        assert project(build_tree(ORDER_SCHEMA), {"order_number": blank}) == {"order_number": ""}

    def test_blank_address2_omitted(self):
        source = {"ship_to_address": {"address2": "", "city": "Perth"}}
        assert project(build_tree(ORDER_SCHEMA), source) == {"ship_to_address": {"city": "Perth"}}

    def test_empty_undeclared_object_omitted(self):
        assert project(build_tree(ORDER_SCHEMA), {"ship_to_address": {"address2": None}}) == {}

    def test_declared_object_kept_when_empty(self):
        tree = build_tree({"meta": "", "meta.tag": ""})
        assert project(tree, {}) == {"meta": {}}

    def test_present_only_option(self):
        options = ProjectionOptions(keep_explicit_blanks=False)
        assert project(build_tree(ORDER_SCHEMA), {"order_number": ""}, options) == {}

    def test_passthrough_keys(self):
        options = ProjectionOptions(passthrough={"line_items": ("tax",)})
        source = {"line_items": [{"sku": "A", "tax": 1.5}, {"sku": "B"}]}
        assert project(build_tree(ORDER_SCHEMA), source, options)["line_items"] == [
            {"sku": "A", "tax": 1.5},
            {"sku": "B"},
        ]

    def test_projection_is_idempotent(self):
        tree = build_tree(ORDER_SCHEMA)
        source = {
            "order_number": "SO-9",
            "ship_to_address": {"city": "Hobart", "address2": ""},
            "line_items": [{"sku": "A", "quantity": 1}, {"sku": "B", "quantity": None}],
        }
        once = project(tree, source)
        assert project(tree, once) == once

    def test_accepts_flat_schema_directly(self):
        assert project({"order_number": ""}, {"order_number": "X"}) == {"order_number": "X"}

    def test_source_is_not_shared(self):
        source = {"line_items": [{"sku": "A", "quantity": 1}]}
        body = project(build_tree(ORDER_SCHEMA), source)
        body["line_items"][0]["sku"] = "Z"
        assert source["line_items"][0]["sku"] == "A"


def _integration_record(operations):
    return {
        "integration_name": "dear-systems",
        "display_name": "DEAR",
        "data": {"type": "jsonb", "value": json.dumps({"operations": operations})},
    }


class TestIntegrationSchema:
    """Selecting one operation's schema from a stored integration record."""

    OPERATIONS = [
        {
            "action": "create_order",
            "url": "/orders",
            "base_schema_fields": {"order_number": "", "line_items.sku": ""},
            "integration_specific_fields": {"line_items.lot_id": ""},
        },
        {
            "action": "create_inbound_shipment",
            "url": "/inbound",
            "base_schema_fields": {"supplier": ""},
        },
    ]

    def test_selects_default_action(self):
        selected = select_operation_schema(_integration_record(self.OPERATIONS))
        assert selected["integration_name"] == "dear-systems"
        assert selected["display_name"] == "DEAR"
        assert selected["action"] == "create_order"
        assert selected["url"] == "/orders"
        assert selected["schema"] == {"order_number": "", "line_items": {"sku": "", "lot_id": ""}}
        assert selected["fields"] == {"order_number": "", "line_items.sku": "", "line_items.lot_id": ""}
        assert selected["hasInventoryFields"] is True

    def test_selects_named_action(self):
        selected = select_operation_schema(_integration_record(self.OPERATIONS), "create_inbound_shipment")
        assert selected["schema"] == {"supplier": ""}
        assert selected["hasInventoryFields"] is False

    def test_accepts_json_document(self):
        selected = select_operation_schema(json.dumps({"operations": self.OPERATIONS}))
        assert selected["url"] == "/orders"
        assert selected["integration_name"] is None

    def test_unknown_action(self):
        result = select_operation_schema(_integration_record(self.OPERATIONS), "cancel_order")
        assert result == {"error": "Operation 'cancel_order' not found in integration schema"}

    def test_missing_operations(self):
        record = {"data": {"value": json.dumps({"foo": 1})}}
        assert select_operation_schema(record) == {
            "error": "Integration data missing operations array. Parsed data keys: foo"
        }

    def test_invalid_json(self):
        result = select_operation_schema({"data": {"value": "{broken"}})
        assert result["error"].startswith("Integration schema is not valid JSON")

    def test_inventory_field_detection(self):
        assert has_inventory_fields({"boxes.line_items.inventory_item_id": ""})
        assert not has_inventory_fields({"boxes.line_items.sku": ""})


class TestChangeSet:
    """Structural diff of record versions."""

    def test_changed_paths(self):
        before = {"status": "open", "ship_to_address": {"city": "A", "state": "WA"}}
        after = {"status": "open", "ship_to_address": {"city": "B", "state": "WA"}}
        assert changed_field_paths(before, after) == {"ship_to_address.city"}

    def test_list_changes(self):
        assert changed_field_paths({"l": [1, 2]}, {"l": [1, 3]}) == {"l.1"}
        assert changed_field_paths({"l": [1]}, {"l": [1, 2]}) == {"l"}

    def test_added_and_removed_keys(self):
        assert changed_field_paths({"a": 1}, {"b": 2}) == {"a", "b"}

    def test_between(self):
        changes = ChangeSet.between({"status": "open"}, {"status": "shipped"})
        assert changes.has("status")
        assert not changes.has("order_number")

    def test_previous_attributes(self):
        changes = ChangeSet.from_previous_attributes({
            "status": "open",
            "ship_to_address": {"city": "A"},
            "line_items": [{"quantity": 1}],
        })
        assert changes.has("status")
        assert changes.has("ship_to_address.city")
        assert changes.has("ship_to_address.country")
        assert changes.any_under("line_items")
        assert not changes.has("shipments")

    def test_everything(self):
        changes = ChangeSet.all()
        assert changes.has("anything.at.all")
        assert changes.any_under("line_items")
        assert changes

    def test_empty(self):
        assert not ChangeSet()
        assert not ChangeSet.from_previous_attributes(None)
