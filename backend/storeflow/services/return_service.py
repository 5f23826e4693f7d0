# Overview: Service-layer operations for order returns and refunds.

"""
Returns

Each return is one ReturnTransaction: the returned lines, their value and the refund
payments that balance it. Quantities are capped per order line by what was sold minus
everything already returned for that line.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import DemandNotice, Order, OrderItem, Product, RefundPayment, ReturnItem, ReturnTransaction, User
from ..statuses import DemandNoticeStatus, OrderStatus, PaymentMethod, ORDER_RETURNABLE
from ..validation import MONEY_QUANT, ValidationError, optional_text, to_int, to_money
from . import catalog_service
from .activity_service import append_activity_event
from .concurrency import get_for_update, run_in_transaction
from storeflow.time_utils import utcnow


class ReturnError(ValidationError):
    """Raised when a return request cannot be applied."""
    pass


REFUND_TOLERANCE = Decimal("0.005")

RETURN_DN_TAG = "Return DN"

REFUND_METHODS = frozenset({PaymentMethod.CASH, PaymentMethod.CARD, PaymentMethod.BANK_TRANSFER})


def returned_quantities(order: Order) -> dict[int, int]:
    """order_item_id -> quantity returned across every previous transaction."""
    totals: dict[int, int] = {}
    for transaction in order.return_transactions:
        for item in transaction.items:
            totals[item.order_item_id] = totals.get(item.order_item_id, 0) + item.quantity_returned
    return totals


def _match_line(order: Order, raw: dict) -> OrderItem:
    if raw.get("order_item_id") is not None:
        item_id = to_int(raw["order_item_id"], "order_item_id")
        for item in order.items:
            if item.id == item_id:
                return item
        raise ReturnError(f"Order item {item_id} is not part of order {order.document_number}")

    product_id = raw.get("product_id")
    sku = raw.get("sku")
    for item in order.items:
        if item.product_id == product_id and (sku is None or item.sku == sku):
            return item
    raise ReturnError(f"Item (SKU: {sku}) not found in original order")


def _tag_demand_notice_product(product: Product) -> None:
    if not product.is_demand_notice_product:
        return
    category = product.category or ""
    if RETURN_DN_TAG in category:
        return
    product.category = f"{category}, {RETURN_DN_TAG}" if category else RETURN_DN_TAG


def process_return(
    order_id: int,
    *,
    items: list,
    refunds: list,
    reason: str | None = None,
    processed_by: User,
) -> Order:
    """
    Record a return and restock the returned products.

    Raises ReturnError when no quantity is selected, a line exceeds its remaining
    returnable quantity, or refunds differ from the returned value by more than 0.005.
    """
    if not isinstance(items, list):
        raise ValidationError("items must be a list")
    if not isinstance(refunds, list):
        raise ValidationError("refunds must be a list")

    def _op():
        order = get_for_update(Order, order_id, label="Order")
        status = OrderStatus(order.status)
        if status not in ORDER_RETURNABLE:
            raise ReturnError(
                f"Order status is {status.value}. Only paid, completed, or partially paid orders can be returned."
            )

        already = returned_quantities(order)
        requested: dict[int, int] = {}
        lines: list[tuple[OrderItem, int]] = []
        for raw in items:
            if not isinstance(raw, dict):
                raise ValidationError("Each return item must be an object")
            quantity = to_int(raw.get("quantity"), "quantity", minimum=0)
            if quantity == 0:
                continue
            line = _match_line(order, raw)
            requested[line.id] = requested.get(line.id, 0) + quantity
            remaining = line.quantity - already.get(line.id, 0)
            if requested[line.id] > remaining:
                raise ReturnError(
                    f"Cannot return more {line.name} than originally purchased "
                    f"({line.quantity} ordered, {already.get(line.id, 0)} already returned)."
                )
            lines.append((line, quantity))

        if not lines:
            raise ReturnError("No items selected for return")

        total_value = sum(
            (Decimal(line.price_per_unit) * quantity for line, quantity in lines),
            Decimal("0"),
        ).quantize(MONEY_QUANT)
        if total_value <= 0:
            raise ReturnError("No items selected for return")

        refund_rows = []
        for raw in refunds:
            try:
                method = PaymentMethod(raw.get("method"))
            except ValueError:
                raise ValidationError(f"Invalid refund method: {raw.get('method')}")
            if method not in REFUND_METHODS:
                raise ValidationError(f"Refunds cannot be paid as {method.value}")
            amount = to_money(raw.get("amount"), "amount")
            refund_rows.append((method, amount))

        refunded = sum((amount for _, amount in refund_rows), Decimal("0"))
        difference = refunded - total_value
        if abs(difference) > REFUND_TOLERANCE:
            if difference < 0:
                raise ReturnError(
                    f"Refund total {refunded:.3f} is short of the returned value {total_value:.3f} by {-difference:.3f}"
                )
            raise ReturnError(
                f"Refund total {refunded:.3f} exceeds the returned value {total_value:.3f} by {difference:.3f}"
            )

        now = utcnow()
        transaction = ReturnTransaction(
            total_value_of_returned_items=total_value,
            reason=optional_text({"reason": reason}, "reason"),
            processed_by_user_id=processed_by.id,
            processed_by_name=processed_by.username,
            created_at=now,
        )
        for line, quantity in lines:
            transaction.items.append(ReturnItem(
                order_item_id=line.id,
                product_id=line.product_id,
                name=line.name,
                sku=line.sku,
                quantity_returned=quantity,
                price_per_unit=line.price_per_unit,
            ))
            if line.product_id is not None:
                product = db.session.get(Product, line.product_id)
                if product:
                    catalog_service.adjust_stock(product, quantity)
                    _tag_demand_notice_product(product)
                else:
                    current_app.logger.warning(
                        "Product %s missing while restocking return on %s", line.product_id, order.document_number
                    )
        for method, amount in refund_rows:
            transaction.refunds.append(RefundPayment(
                method=method.value,
                amount=amount,
                refund_date=now,
                cashier_id=processed_by.id,
                cashier_name=processed_by.username,
            ))
        order.return_transactions.append(transaction)
        db.session.flush()

        totals = returned_quantities(order)
        if all(totals.get(line.id, 0) >= line.quantity for line in order.items):
            order.status = OrderStatus.RETURNED.value
            if order.linked_demand_notice_id:
                notice = db.session.get(DemandNotice, order.linked_demand_notice_id)
                if notice and DemandNoticeStatus(notice.status) != DemandNoticeStatus.CANCELLED:
                    notice.status = DemandNoticeStatus.AWAITING_CUSTOMER_ACTION.value
                    notice.updated_at = now
        order.updated_at = now

        append_activity_event(
            event_type="order.return_processed",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=processed_by.id,
            note=f"{total_value}",
        )
        return order

    order = run_in_transaction(_op)
    current_app.logger.info(
        "Return processed on %s by %s", order.document_number, processed_by.username
    )
    return order
