"""Fulfillment classification, Pick/Pack/Ship building and sale update tests."""

import copy

import pytest

from core.settings import EngineSettings
from fulfillment import (
    SaleType,
    build_operations,
    build_sale_update,
    classify,
    existing_pick_lines_from_sale,
    normalize_task_id,
    plan_order_sync,
    sale_references,
)
from core.mapping import ChangeSet


MAPPINGS = [
    {
        "connectionId": "conn-a",
        "warehouses": [
            {"sourceWarehouseName": "Main Warehouse", "targetLocationId": "LOC-A1"},
            {"sourceWarehouseName": "Overflow", "targetLocationId": "LOC-A2"},
        ],
    }
]

ORDER = {
    "id": "ord-1",
    "order_number": "SO-100",
    "warehouse_id": "LOC-A1",
    "status": "shipped",
    "updated_date": "2026-01-02T00:00:00Z",
    "line_items": [
        {"sku": "A", "quantity": 2, "unit_price": 10, "discount_amount": None},
        {"sku": "B", "quantity": 1, "unit_price": 5},
    ],
    "ship_to_address": {
        "full_name": "Jo Smith",
        "address1": "1 George St",
        "city": "Sydney",
        "state": "NSW",
        "postal_code": 2000,
        "country": "AU",
    },
    "shipments": [
        {
            "id": "shp-123456789",
            "warehouse_id": "LOC-A2",
            "status": "shipped",
            "shipped_date": "2026-01-01T10:00:00Z",
            "packages": [
                {
                    "package_name": None,
                    "tracking_number": "TRK1",
                    "tracking_url": "https://track.example/TRK1",
                    "carrier_name": "UPS",
                    "line_items": [
                        {"sku": "A", "quantity": 2, "lot_id": "LOT-A", "expiration_date": "2027-01-01"}
                    ],
                },
                {"carrier_name": "UPS", "line_items": [{"sku": "B", "quantity": 1}]},
            ],
        }
    ],
}


def order(**overrides):
    data = copy.deepcopy(ORDER)
    data.update(overrides)
    return data


def second_shipment():
    shipment = copy.deepcopy(ORDER["shipments"][0])
    shipment["id"] = "shp-2"
    return shipment


class TestClassify:
    """Simple vs Advanced sales."""

    def test_single_full_shipment_is_simple(self):
        assert classify(ORDER) == SaleType.SIMPLE

    def test_partial_shipment_is_advanced(self):
        data = order()
        data["shipments"][0]["packages"].pop()
        assert classify(data) == SaleType.ADVANCED

    def test_multiple_shipments_are_advanced(self):
        data = order(shipments=ORDER["shipments"] + [second_shipment()])
        assert classify(data) == SaleType.ADVANCED

    def test_unshipped_order_is_advanced(self):
        assert classify(order(shipments=[])) == SaleType.ADVANCED

    def test_empty_order_is_simple(self):
        assert classify({}) == SaleType.SIMPLE

    def test_quantities_summed_across_packages(self):
        data = order(line_items=[{"sku": "A", "quantity": "3"}])
        data["shipments"][0]["packages"][1]["line_items"] = [{"sku": "A", "quantity": 1}]
        assert classify(data) == SaleType.SIMPLE

    def test_explicit_shipments(self):
        assert classify(order(shipments=[]), shipments=ORDER["shipments"]) == SaleType.SIMPLE


class TestBuildOperations:
    """Per-shipment Pick -> Pack -> Ship."""

    def build(self, data=None, **kwargs):
        return build_operations(data or order(), MAPPINGS, **kwargs)

    def test_identity(self):
        operation = self.build()[0].to_dict()
        assert operation["trackstarId"] == "ord-1:shp-123456789"
        assert operation["trackstarKey"] == "SO-100:456789"

    def test_missing_shipment_id(self):
        data = order()
        del data["shipments"][0]["id"]
        operation = self.build(data)[0].to_dict()
        assert operation["trackstarId"] == "ord-1:"
        assert operation["trackstarKey"] == "SO-100:000000"

    def test_pick(self):
        pick = self.build()[0].to_dict()["salePick"]
        assert pick["endpoint"] == "POST /salepick"
        assert pick["body"]["Status"] == "AUTHORISED"
        assert pick["body"]["Lines"] == [
            {"SKU": "A", "Location": "Overflow", "Quantity": 2},
            {"SKU": "B", "Location": "Overflow", "Quantity": 1},
        ]

    def test_pack_boxes_and_lots(self):
        lines = self.build()[0].to_dict()["salePack"]["body"]["Lines"]
        assert lines == [
            {
                "SKU": "A",
                "Location": "Overflow",
                "Quantity": 2,
                "Box": "TRK1",
                "BatchSN": "LOT-A",
                "ExpiryDate": "2027-01-01",
            },
            {"SKU": "B", "Location": "Overflow", "Quantity": 1, "Box": "Box 2"},
        ]

    def test_package_name_labels_box(self):
        data = order()
        data["shipments"][0]["packages"][0]["package_name"] = "Carton 1"
        lines = self.build(data)[0].to_dict()["salePack"]["body"]["Lines"]
        assert lines[0]["Box"] == "Carton 1"

    def test_existing_pick_lot_wins(self):
        existing = [{"SKU": "A", "BatchSN": "SRC-LOT", "ExpiryDate": "2028-01-01"}]
        line = self.build(existing_pick_lines=existing)[0].to_dict()["salePack"]["body"]["Lines"][0]
        assert line["BatchSN"] == "SRC-LOT"
        assert line["ExpiryDate"] == "2028-01-01"

    def test_existing_pick_without_lot_falls_back(self):
        existing = [{"SKU": "A", "Quantity": 2}]
        line = self.build(existing_pick_lines=existing)[0].to_dict()["salePack"]["body"]["Lines"][0]
        assert line["BatchSN"] == "LOT-A"

    def test_ship(self):
        ship = self.build()[0].to_dict()["saleShip"]
        body = ship["body"]
        assert ship["endpoint"] == "POST /saleship"
        assert body["RequireBy"] is None
        assert body["ShippingNotes"] == "Shipment Status: shipped"
        assert body["Lines"] == [
            {
                "ShipmentDate": "2026-01-01T10:00:00Z",
                "Carrier": "UPS",
                "Box": "TRK1",
                "TrackingNumber": "TRK1",
                "TrackingURL": "https://track.example/TRK1",
                "IsShipped": True,
            },
            {
                "ShipmentDate": "2026-01-01T10:00:00Z",
                "Carrier": "UPS",
                "Box": "Box 2",
                "TrackingNumber": "",
                "TrackingURL": "",
                "IsShipped": True,
            },
        ]

    def test_ship_address(self):
        address = self.build()[0].to_dict()["saleShip"]["body"]["ShippingAddress"]
        assert address["DisplayAddressLine1"] == "1 George St"
        assert address["DisplayAddressLine2"] == "Sydney NSW 2000 AU"
        assert address["Postcode"] == "2000"
        assert address["Contact"] == "Jo Smith"
        assert address["ShipToOther"] is False

    def test_shipment_date_falls_back_to_order_update(self):
        data = order()
        data["shipments"][0]["shipped_date"] = None
        line = self.build(data)[0].to_dict()["saleShip"]["body"]["Lines"][0]
        assert line["ShipmentDate"] == "2026-01-02T00:00:00Z"

    def test_task_id_only_for_simple_sales(self):
        simple = self.build(task_id="task-9")[0].to_dict()
        assert all(simple[name]["body"]["TaskID"] == "task-9" for name in ("salePick", "salePack", "saleShip"))

        advanced = self.build(task_id="task-9", sale_type=SaleType.ADVANCED)[0].to_dict()
        assert all("TaskID" not in advanced[name]["body"] for name in ("salePick", "salePack", "saleShip"))

    def test_sale_type_string(self):
        operation = self.build(task_id="task-9", sale_type="Advanced")[0].to_dict()
        assert "TaskID" not in operation["salePick"]["body"]

    def test_one_operation_per_shipment(self):
        data = order(shipments=ORDER["shipments"] + [second_shipment()])
        operations = self.build(data, task_id="task-9")
        assert [op.target_id for op in operations] == ["ord-1:shp-123456789", "ord-1:shp-2"]
        # Two shipments make the sale Advanced, so no TaskID is attached
        assert "TaskID" not in operations[0].to_dict()["salePick"]["body"]

    def test_empty_shipment_has_no_sub_operations(self):
        data = order()
        data["shipments"][0]["packages"] = []
        assert self.build(data)[0].to_dict() == {
            "trackstarId": "ord-1:shp-123456789",
            "trackstarKey": "SO-100:456789",
        }


class TestWarehouseFallback:
    def test_order_warehouse_when_shipment_unmapped(self):
        data = order()
        data["shipments"][0]["warehouse_id"] = "LOC-X"
        pick = build_operations(data, MAPPINGS)[0].to_dict()["salePick"]["body"]
        assert pick["Lines"][0]["Location"] == "Main Warehouse"

    def test_configured_default_location(self):
        data = order(warehouse_id=None)
        data["shipments"][0]["warehouse_id"] = None
        settings = EngineSettings(default_location_name="Fallback DC")
        pick = build_operations(data, [], settings=settings)[0].to_dict()["salePick"]["body"]
        assert pick["Lines"][0]["Location"] == "Fallback DC"


class TestHelpers:
    @pytest.mark.parametrize(
        "reference,expected",
        [("sale-1:task-9", "task-9"), ("task-9", "task-9"), (None, None), ("", "")],
    )
    def test_normalize_task_id(self, reference, expected):
        assert normalize_task_id(reference) == expected

    def test_existing_pick_lines(self):
        sale = {"Fulfilments": [{"Pick": {"Lines": [{"SKU": "A", "BatchSN": "L"}]}}]}
        assert existing_pick_lines_from_sale(sale) == [{"SKU": "A", "BatchSN": "L"}]

    @pytest.mark.parametrize("sale", [None, {}, {"Fulfilments": []}, {"Fulfilments": [{"Pick": None}]}])
    def test_no_existing_pick_lines(self, sale):
        assert existing_pick_lines_from_sale(sale) == []


class TestSaleUpdate:
    """Changed order fields -> source sale fields."""

    def test_status(self):
        changes = build_sale_update(order(), ChangeSet.from_previous_attributes({"status": "open"}))
        assert changes == {"Status": "shipped"}

    def test_later_field_wins(self):
        data = order(reference_id="REF-1")
        changes = build_sale_update(data, ChangeSet.from_previous_attributes({"reference_id": "x", "order_number": "y"}))
        assert changes["CustomerReference"] == "SO-100"

    def test_notes(self):
        data = order(raw_status="picked", channel="web")
        changes = build_sale_update(data, ChangeSet.from_previous_attributes({"raw_status": "a", "channel": "b"}))
        assert changes["Note"] == "Status: picked | Channel: web"

    def test_address(self):
        changes = build_sale_update(order(), ChangeSet.from_previous_attributes({"ship_to_address": {"city": "Perth"}}))
        address = changes["ShippingAddress"]
        assert address["City"] == "Sydney"
        assert address["Line1"] == "1 George St"
        assert "DisplayAddressLine1" not in address
        assert changes["Contact"] == "Jo Smith"

    def test_lines(self):
        changes = build_sale_update(order(), ChangeSet.from_previous_attributes({"line_items": [{"quantity": 1}]}))
        assert changes["Lines"] == [
            {"Product": "A", "Quantity": 2, "Price": 10, "Discount": 0},
            {"Product": "B", "Quantity": 1, "Price": 5, "Discount": 0},
        ]

    def test_shipments(self):
        changes = build_sale_update(order(), ChangeSet.from_previous_attributes({"shipments": []}))
        assert changes == {
            "CombinedTrackingNumbers": "TRK1",
            "Carrier": "UPS",
            "Note": "Shipment Status: shipped",
        }

    def test_unmapped_change(self):
        assert build_sale_update(order(), ChangeSet.from_previous_attributes({"tags": []})) == {}


class TestPlanOrderSync:
    def test_without_previous_attributes(self):
        assert plan_order_sync(order(), reference_id="sale-1:task-9") == {"saleId": "task-9"}

    def test_field_change_only(self):
        plan = plan_order_sync(order(), {"status": "open"}, reference_id="task-9", location_mapping=MAPPINGS)
        assert plan == {"saleId": "task-9", "saleUpdate": {"Status": "shipped"}, "saleType": "Simple"}

    def test_shipment_change_builds_operations(self):
        plan = plan_order_sync(order(), {"shipments": []}, reference_id="task-9", location_mapping=MAPPINGS)
        operations = plan["shipmentOperations"]
        assert len(operations) == 1
        assert operations[0]["salePick"]["body"]["TaskID"] == "task-9"
        assert plan["saleUpdate"]["CombinedTrackingNumbers"] == "TRK1"

    def test_direct_trigger_syncs_everything(self):
        plan = plan_order_sync(order(), reference_id="task-9", location_mapping=MAPPINGS, direct_trigger=True)
        update = plan["saleUpdate"]
        assert update["Status"] == "shipped"
        assert update["CustomerReference"] == "SO-100"
        assert update["Carrier"] == "UPS"
        assert update["Note"] == "Shipment Status: shipped"
        assert len(update["Lines"]) == 2
        assert len(plan["shipmentOperations"]) == 1


class TestSaleReferences:
    SALE = {"ID": "s-1", "Order": {"SaleOrderNumber": "SO-1"}}

    def test_simple_sale(self):
        assert sale_references(self.SALE) == {"referenceId": "s-1", "referenceKey": "SO-1"}

    def test_advance_sale(self):
        fulfilment = {"TaskID": "t-7", "FulfillmentNumber": 2}
        assert sale_references(self.SALE, "Advance Sale", fulfilment) == {
            "referenceId": "s-1:t-7",
            "referenceKey": "SO-1-2",
        }

    def test_advance_sale_without_fulfilment(self):
        assert sale_references(self.SALE, "Advance Sale") == {"referenceId": "s-1", "referenceKey": "SO-1"}

    def test_missing_details(self):
        assert sale_references({"ID": "s-1"}) == {
            "error": "Missing required sale details. ID: s-1, SaleOrderNumber: undefined"
        }
        assert sale_references(None)["error"].startswith("Missing required sale details. ID: undefined")
