"""Fulfillment classification.

An order is Advanced when it ships in more than one shipment, or when any
ordered SKU has not yet been shipped in full (more shipments will follow).
Otherwise it is Simple.
"""

from collections import defaultdict
from typing import Any, Dict, Iterable, Optional

from core.models.values import Quantity
from core.observability.logging import get_logger
from fulfillment.models import Order, SaleType, Shipment


logger = get_logger(__name__)


def as_order(order: Any) -> Order:
    if isinstance(order, Order):
        return order
    return Order.model_validate(order or {})


def ordered_quantities(order: Order) -> Dict[str, Quantity]:
    totals: Dict[str, Quantity] = defaultdict(int)
    for item in order.line_items:
        totals[item.sku] += item.quantity
    return dict(totals)


def shipped_quantities(shipments: Iterable[Shipment]) -> Dict[str, Quantity]:
    totals: Dict[str, Quantity] = defaultdict(int)
    for shipment in shipments:
        for package in shipment.packages:
            for item in package.line_items:
                totals[item.sku] += item.quantity
    return dict(totals)


def classify(order: Any, shipments: Optional[Iterable[Any]] = None) -> SaleType:
    """Classify an order as Simple or Advanced.

    Args:
        order: Order record (dict or Order)
        shipments: Shipments to consider; defaults to the order's own

    Returns:
        SaleType.ADVANCED for multi-shipment or partially shipped orders
    """
    order = as_order(order)
    if shipments is None:
        shipment_list = list(order.shipments)
    else:
        shipment_list = [s if isinstance(s, Shipment) else Shipment.model_validate(s) for s in shipments]

    if len(shipment_list) > 1:
        logger.debug(f"Order {order.id}: {len(shipment_list)} shipments, Advanced")
        return SaleType.ADVANCED

    shipped = shipped_quantities(shipment_list)
    for sku, ordered in ordered_quantities(order).items():
        if shipped.get(sku, 0) < ordered:
            logger.debug(f"Order {order.id}: SKU {sku} shipped {shipped.get(sku, 0)} of {ordered}, Advanced")
            return SaleType.ADVANCED

    return SaleType.SIMPLE
