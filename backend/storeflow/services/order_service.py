# Overview: Service-layer operations for orders and their payment trail; encapsulates business logic and database work.

"""
Order & Payment Reconciliation

WHY: An order collects payments from several cashiers and methods over time, and its
value is credited to one or two salespeople. This module owns both concerns.

DESIGN:
- totals are computed server-side from items, discount and the tax settings passed in
- payment statuses (pending_payment, partial_payment, paid) are derived from the
  payment trail; the remaining statuses are explicit operator actions
- remaining balance may be negative; overpayment is surfaced, never rejected
- every mutation runs through run_in_transaction and leaves no partial state
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from flask import current_app

from ..extensions import db
from ..models import DemandNotice, Order, OrderItem, OrderTax, Payment, Product, User
from ..statuses import (
    DemandNoticeStatus,
    DeliveryStatus,
    OrderStatus,
    PaymentMethod,
    ORDER_PAYMENT_STATUSES,
    DEMAND_NOTICE_TERMINAL,
)
from ..validation import (
    MONEY_QUANT,
    NotFoundError,
    ValidationError,
    optional_text,
    to_fraction,
    to_int,
    to_money,
)
from . import catalog_service
from .activity_service import append_activity_event
from .concurrency import get_for_update, run_in_transaction
from .document_service import next_document_number
from storeflow.time_utils import parse_iso_datetime, utcnow


class OrderError(ValidationError):
    """Raised for invalid order operations."""

    def __init__(self, message, details=None):
        super().__init__(message)
        self.details = details or {}


# =============================================================================
# CONSTANTS
# =============================================================================

# Paid-in-full tolerance in currency units
PAID_TOLERANCE = Decimal("0.005")

SPLIT_TOLERANCE = 1e-9

# Statuses an operator can set directly (payment statuses are derived)
MANUAL_TARGETS = frozenset({
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
})

CLOSED_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.RETURNED})

# Deleting these orders leaves stock untouched
NO_RESTOCK_ON_DELETE = frozenset({OrderStatus.COMPLETED, OrderStatus.RETURNED, OrderStatus.CANCELLED})


@dataclass
class LineSpec:
    """An order line before persistence."""
    product: Optional[Product]
    name: str
    sku: Optional[str]
    quantity: int
    price_per_unit: Decimal

    @property
    def total_price(self) -> Decimal:
        return (self.price_per_unit * self.quantity).quantize(MONEY_QUANT)


@dataclass
class PaymentSpec:
    method: str
    amount: Decimal
    payment_date: datetime
    cashier_id: Optional[int]
    cashier_name: Optional[str]


# =============================================================================
# DERIVED VALUES
# =============================================================================

def latest_payment(payments: Iterable[Payment]) -> Optional[Payment]:
    """Most recent payment by payment_date (later id wins ties)."""
    latest = None
    for payment in payments:
        if payment.payment_date is None:
            continue
        if latest is None or (payment.payment_date, payment.id or 0) > (latest.payment_date, latest.id or 0):
            latest = payment
    return latest


def payment_summary(payments: Iterable[Payment]) -> dict:
    """Per-method totals, overall total and methods in first-seen order."""
    summary = {method.value: Decimal("0") for method in PaymentMethod}
    methods_used: list[str] = []
    total = Decimal("0")
    for payment in payments:
        amount = Decimal(payment.amount)
        summary[payment.method] = summary.get(payment.method, Decimal("0")) + amount
        if payment.method not in methods_used:
            methods_used.append(payment.method)
        total += amount
    summary["total_paid"] = total
    summary["methods_used"] = methods_used
    return summary


def attributed_sales(order: Order, user_id: int) -> Decimal:
    """Share of the order total credited to user_id by the commission split."""
    total = Decimal(order.total_amount)
    share = Decimal("0")
    if order.primary_salesperson_id == user_id:
        fraction = order.primary_salesperson_commission
        share += total * Decimal(str(1.0 if fraction is None else fraction))
    if order.secondary_salesperson_id == user_id:
        fraction = order.secondary_salesperson_commission
        share += total * Decimal(str(0.0 if fraction is None else fraction))
    return share


def is_fully_paid(order: Order) -> bool:
    return order.total_paid >= Decimal(order.total_amount) - PAID_TOLERANCE


# =============================================================================
# VALIDATION HELPERS
# =============================================================================

def _require_user(user_id, label: str) -> User:
    if user_id is None:
        raise ValidationError(f"{label} is required")
    user = db.session.get(User, to_int(user_id, label))
    if not user:
        raise NotFoundError(f"{label.replace('_', ' ').capitalize()} {user_id} not found")
    return user


def validate_commission_split(
    primary: Optional[float],
    secondary: Optional[float],
    *,
    has_secondary: bool,
) -> tuple[float, float]:
    """
    Normalise a commission split.

    Without a secondary salesperson the primary carries the whole order. With one,
    primary + secondary must equal 1 (within 1e-9).
    """
    primary_fraction = 1.0 if primary is None else to_fraction(primary, "primary_salesperson_commission")
    secondary_fraction = 0.0 if secondary is None else to_fraction(secondary, "secondary_salesperson_commission")

    if not has_secondary:
        if secondary_fraction != 0.0 or abs(primary_fraction - 1.0) > SPLIT_TOLERANCE:
            raise OrderError("Commission split requires a secondary salesperson; primary must carry 100%")
        return 1.0, 0.0

    if abs(primary_fraction + secondary_fraction - 1.0) > SPLIT_TOLERANCE:
        raise OrderError(
            "Commission split must total 100%",
            {"primary": primary_fraction, "secondary": secondary_fraction},
        )
    return primary_fraction, secondary_fraction


def _parse_method(value) -> str:
    try:
        return PaymentMethod(value).value
    except ValueError:
        raise ValidationError(f"Invalid payment method: {value}")


def parse_payment_specs(raw_payments, cashier: User) -> list[PaymentSpec]:
    if raw_payments is None:
        return []
    if not isinstance(raw_payments, list):
        raise ValidationError("payments must be a list")
    specs = []
    for raw in raw_payments:
        amount = to_money(raw.get("amount"), "amount")
        if amount <= 0:
            raise ValidationError("Payment amount must be > 0")
        specs.append(PaymentSpec(
            method=_parse_method(raw.get("method")),
            amount=amount,
            payment_date=utcnow(),
            cashier_id=cashier.id,
            cashier_name=cashier.username,
        ))
    return specs


def _parse_lines(raw_items) -> list[LineSpec]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required")
    lines = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise ValidationError("Each item must be an object")
        product = catalog_service.require_product(raw.get("product_id"))
        quantity = to_int(raw.get("quantity"), "quantity", minimum=1)
        if raw.get("price_per_unit") is not None:
            price = to_money(raw["price_per_unit"], "price_per_unit")
        else:
            price = Decimal(product.effective_price)
        lines.append(LineSpec(product=product, name=product.name, sku=product.sku, quantity=quantity, price_per_unit=price))
    return lines


def compute_totals(
    lines: Sequence[LineSpec],
    *,
    discount_amount: Optional[Decimal] = None,
    discount_percentage: Optional[Decimal] = None,
    tax_settings: Iterable = (),
) -> dict:
    """
    subtotal - discount + taxes.

    A percentage discount wins over an amount. Each enabled tax applies to the
    discounted subtotal.
    """
    subtotal = sum((line.total_price for line in lines), Decimal("0"))

    if discount_percentage is not None:
        if discount_percentage > 100:
            raise ValidationError("applied_discount_percentage must be between 0 and 100")
        discount = (subtotal * discount_percentage / Decimal("100")).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
    else:
        discount = discount_amount or Decimal("0")
    if discount > subtotal:
        raise ValidationError("Discount cannot exceed subtotal")

    taxable = subtotal - discount
    taxes = []
    for tax in tax_settings:
        if not getattr(tax, "enabled", True):
            continue
        amount = (taxable * Decimal(tax.rate) / Decimal("100")).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
        taxes.append((tax.name, amount))

    total = taxable + sum((amount for _, amount in taxes), Decimal("0"))
    return {"subtotal": subtotal, "discount": discount, "taxes": taxes, "total": total}


# =============================================================================
# CORE BUILDERS (run inside the caller's transaction)
# =============================================================================

def build_order(
    *,
    lines: Sequence[LineSpec],
    primary: User,
    secondary: Optional[User] = None,
    primary_commission: float = 1.0,
    secondary_commission: float = 0.0,
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
    delivery_address: Optional[str] = None,
    discount_amount: Optional[Decimal] = None,
    discount_percentage: Optional[Decimal] = None,
    tax_settings: Iterable = (),
    payments: Sequence[PaymentSpec] = (),
    deduct_stock: bool = True,
    linked_demand_notice_id: Optional[int] = None,
    source_quotation_id: Optional[int] = None,
    reminder_date: Optional[datetime] = None,
    reminder_notes: Optional[str] = None,
    actor: Optional[User] = None,
) -> Order:
    """
    Persist an order with its lines, taxes and opening payments.

    Stock is checked and deducted per line when deduct_stock is set; an insufficient
    line raises ConflictError before anything is flushed.
    """
    if not lines:
        raise ValidationError("At least one item is required")

    if deduct_stock:
        needed: dict[int, int] = {}
        for line in lines:
            if line.product is not None:
                needed[line.product.id] = needed.get(line.product.id, 0) + line.quantity
        for line in lines:
            if line.product is not None:
                catalog_service.validate_stock_available(line.product, needed[line.product.id])

    totals = compute_totals(
        lines,
        discount_amount=discount_amount,
        discount_percentage=discount_percentage,
        tax_settings=tax_settings,
    )

    now = utcnow()
    order = Order(
        document_number=next_document_number("invoice"),
        subtotal=totals["subtotal"],
        discount_amount=totals["discount"],
        applied_discount_percentage=discount_percentage,
        total_amount=totals["total"],
        customer_name=customer_name,
        customer_phone=customer_phone,
        delivery_address=delivery_address,
        primary_salesperson_id=primary.id,
        primary_salesperson_name=primary.username,
        primary_salesperson_commission=primary_commission,
        secondary_salesperson_id=secondary.id if secondary else None,
        secondary_salesperson_name=secondary.username if secondary else None,
        secondary_salesperson_commission=secondary_commission,
        status=OrderStatus.PENDING_PAYMENT.value,
        delivery_status=DeliveryStatus.PENDING_DISPATCH.value,
        reminder_date=reminder_date,
        reminder_notes=reminder_notes,
        linked_demand_notice_id=linked_demand_notice_id,
        source_quotation_id=source_quotation_id,
        created_by_user_id=actor.id if actor else None,
        created_at=now,
        updated_at=now,
    )
    db.session.add(order)

    for line in lines:
        order.items.append(OrderItem(
            product_id=line.product.id if line.product else None,
            name=line.name,
            sku=line.sku,
            quantity=line.quantity,
            price_per_unit=line.price_per_unit,
            total_price=line.total_price,
        ))
        if deduct_stock and line.product is not None:
            catalog_service.adjust_stock(line.product, -line.quantity)

    for name, amount in totals["taxes"]:
        order.taxes.append(OrderTax(name=name, amount=amount))

    for spec in payments:
        order.payments.append(Payment(
            method=spec.method,
            amount=spec.amount,
            payment_date=spec.payment_date,
            cashier_id=spec.cashier_id,
            cashier_name=spec.cashier_name,
        ))

    db.session.flush()
    if payments:
        apply_payment_status(order, sync_notice=False)

    append_activity_event(
        event_type="order.created",
        entity_type="order",
        entity_id=order.id,
        actor_user_id=actor.id if actor else None,
        note=order.document_number,
    )
    return order


def apply_payment_status(order: Order, *, at: Optional[datetime] = None, sync_notice: bool = True) -> None:
    """
    Re-derive the payment status from the payment trail.

    Only pending_payment / partial_payment orders move; later workflow statuses are
    kept. Becoming paid fulfils a linked demand notice.
    """
    current = OrderStatus(order.status)
    if current not in ORDER_PAYMENT_STATUSES and current != OrderStatus.PAID:
        return

    if is_fully_paid(order):
        new_status = OrderStatus.PAID
    elif order.total_paid > 0:
        new_status = OrderStatus.PARTIAL_PAYMENT
    else:
        new_status = OrderStatus.PENDING_PAYMENT

    if new_status.value != order.status:
        order.status = new_status.value
        order.updated_at = at or utcnow()

    if sync_notice and new_status == OrderStatus.PAID and order.linked_demand_notice_id:
        notice = db.session.get(DemandNotice, order.linked_demand_notice_id)
        if notice and DemandNoticeStatus(notice.status) not in DEMAND_NOTICE_TERMINAL:
            notice.status = DemandNoticeStatus.FULFILLED.value
            notice.quantity_fulfilled = notice.quantity_requested
            notice.updated_at = at or utcnow()


# =============================================================================
# OPERATIONS
# =============================================================================

def create_order(payload: dict, *, actor: User, tax_settings: Iterable = ()) -> Order:
    """Create an order from a request payload; tax settings are supplied by the caller."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    tax_settings = list(tax_settings)

    def _op():
        primary = _require_user(payload.get("primary_salesperson_id"), "primary_salesperson_id")
        secondary = None
        if payload.get("secondary_salesperson_id") is not None:
            secondary = _require_user(payload["secondary_salesperson_id"], "secondary_salesperson_id")
            if secondary.id == primary.id:
                raise OrderError("Secondary salesperson must differ from the primary salesperson")

        primary_commission, secondary_commission = validate_commission_split(
            payload.get("primary_salesperson_commission"),
            payload.get("secondary_salesperson_commission"),
            has_secondary=secondary is not None,
        )

        lines = _parse_lines(payload.get("items"))

        discount_percentage = None
        if payload.get("applied_discount_percentage") is not None:
            discount_percentage = to_money(payload["applied_discount_percentage"], "applied_discount_percentage")
        discount_amount = None
        if payload.get("discount_amount") is not None:
            discount_amount = to_money(payload["discount_amount"], "discount_amount")

        reminder_date = None
        if payload.get("reminder_date"):
            try:
                reminder_date = parse_iso_datetime(payload["reminder_date"])
            except ValueError:
                raise ValidationError("reminder_date must be an ISO-8601 datetime")

        order = build_order(
            lines=lines,
            primary=primary,
            secondary=secondary,
            primary_commission=primary_commission,
            secondary_commission=secondary_commission,
            customer_name=optional_text(payload, "customer_name"),
            customer_phone=optional_text(payload, "customer_phone"),
            delivery_address=optional_text(payload, "delivery_address"),
            discount_amount=discount_amount,
            discount_percentage=discount_percentage,
            tax_settings=tax_settings,
            payments=parse_payment_specs(payload.get("payments"), actor),
            reminder_date=reminder_date,
            reminder_notes=optional_text(payload, "reminder_notes"),
            actor=actor,
        )
        return order

    order = run_in_transaction(_op)
    current_app.logger.info("Order %s created by %s", order.document_number, actor.username)
    return order


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(
    *,
    status: Optional[str] = None,
    salesperson_id: Optional[int] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list[Order]:
    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    if salesperson_id:
        query = query.filter(db.or_(
            Order.primary_salesperson_id == salesperson_id,
            Order.secondary_salesperson_id == salesperson_id,
        ))
    if start:
        query = query.filter(Order.created_at >= start)
    if end:
        query = query.filter(Order.created_at <= end)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def add_payment(
    order_id: int,
    *,
    method,
    amount,
    cashier: User,
    payment_date: Optional[datetime] = None,
) -> Order:
    """
    Append a payment and re-derive the order's payment status.

    Overpayment is accepted; remaining_balance goes negative.
    """
    method_value = _parse_method(method)
    value = to_money(amount, "amount")
    if value <= 0:
        raise ValidationError("Payment amount must be > 0")

    def _op():
        order = get_for_update(Order, order_id, label="Order")
        if OrderStatus(order.status) in CLOSED_STATUSES:
            raise OrderError(f"Cannot add payment to a {order.status} order")

        paid_at = payment_date or utcnow()
        order.payments.append(Payment(
            method=method_value,
            amount=value,
            payment_date=paid_at,
            cashier_id=cashier.id,
            cashier_name=cashier.username,
        ))
        order.updated_at = paid_at
        db.session.flush()
        apply_payment_status(order, at=paid_at)

        append_activity_event(
            event_type="order.payment_recorded",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=cashier.id,
            note=f"{method_value} {value}",
            occurred_at=paid_at,
        )
        return order

    return run_in_transaction(_op)


def update_order_status(order_id: int, status, *, actor: User) -> Order:
    """
    Operator status change.

    preparing needs some payment, ready_for_pickup needs full payment, cancelling
    restores stock of orders that took it. Payment statuses cannot be set by hand.
    """
    try:
        target = OrderStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid order status: {status}")
    if target not in MANUAL_TARGETS:
        raise OrderError(f"Status '{target.value}' is derived and cannot be set directly")

    def _op():
        order = get_for_update(Order, order_id, label="Order")
        current = OrderStatus(order.status)
        if current in CLOSED_STATUSES:
            raise OrderError(f"Order is {current.value}; status can no longer change")
        if target == OrderStatus.PREPARING and order.total_paid <= 0:
            raise OrderError("Order must have at least one payment before preparing")
        if target == OrderStatus.READY_FOR_PICKUP and not is_fully_paid(order):
            raise OrderError("Order must be fully paid before it is ready for pickup")
        if target == OrderStatus.CANCELLED:
            if current == OrderStatus.COMPLETED:
                raise OrderError("Completed orders cannot be cancelled")
            if not order.linked_demand_notice_id:
                _restock_items(order)

        order.status = target.value
        order.updated_at = utcnow()
        append_activity_event(
            event_type="order.status_changed",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=actor.id,
            note=f"{current.value} -> {target.value}",
        )
        return order

    return run_in_transaction(_op)


def update_delivery_status(order_id: int, delivery_status, *, actor: User) -> Order:
    try:
        target = DeliveryStatus(delivery_status)
    except ValueError:
        raise ValidationError(f"Invalid delivery status: {delivery_status}")

    def _op():
        order = get_for_update(Order, order_id, label="Order")
        order.delivery_status = target.value
        order.updated_at = utcnow()
        append_activity_event(
            event_type="order.delivery_status_changed",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=actor.id,
            note=target.value,
        )
        return order

    return run_in_transaction(_op)


def transfer_order(
    order_id: int,
    *,
    primary_salesperson_id,
    secondary_salesperson_id=None,
    primary_commission=None,
    secondary_commission=None,
    actor: User,
) -> Order:
    """
    Reassign an order's salespeople.

    A secondary salesperson without an explicit split defaults to 50/50.
    """
    def _op():
        order = get_for_update(Order, order_id, label="Order")
        primary = _require_user(primary_salesperson_id, "primary_salesperson_id")
        secondary = None
        if secondary_salesperson_id is not None:
            secondary = _require_user(secondary_salesperson_id, "secondary_salesperson_id")
            if secondary.id == primary.id:
                raise OrderError("Secondary salesperson must differ from the primary salesperson")

        p_commission, s_commission = primary_commission, secondary_commission
        if secondary is not None and p_commission is None and s_commission is None:
            p_commission, s_commission = 0.5, 0.5
        p_commission, s_commission = validate_commission_split(
            p_commission, s_commission, has_secondary=secondary is not None
        )

        order.primary_salesperson_id = primary.id
        order.primary_salesperson_name = primary.username
        order.primary_salesperson_commission = p_commission
        order.secondary_salesperson_id = secondary.id if secondary else None
        order.secondary_salesperson_name = secondary.username if secondary else None
        order.secondary_salesperson_commission = s_commission
        order.updated_at = utcnow()

        append_activity_event(
            event_type="order.transferred",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=actor.id,
            note=f"primary={primary.username}" + (f" secondary={secondary.username}" if secondary else ""),
        )
        return order

    return run_in_transaction(_op)


def delete_order(order_id: int, *, actor: User) -> None:
    """
    Remove an order.

    Restores stock unless the order is demand-notice linked or already settled
    (completed/returned/cancelled); a linked notice goes back to full_stock_available
    unless it is already fulfilled or cancelled.
    """
    def _op():
        order = get_for_update(Order, order_id, label="Order")
        status = OrderStatus(order.status)
        if not order.linked_demand_notice_id and status not in NO_RESTOCK_ON_DELETE:
            _restock_items(order)

        if order.linked_demand_notice_id:
            notice = db.session.get(DemandNotice, order.linked_demand_notice_id)
            if notice and notice.notice_status not in DEMAND_NOTICE_TERMINAL:
                notice.linked_order_id = None
                notice.status = DemandNoticeStatus.FULL_STOCK_AVAILABLE.value
                notice.updated_at = utcnow()

        append_activity_event(
            event_type="order.deleted",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=actor.id,
            note=order.document_number,
        )
        db.session.delete(order)

    run_in_transaction(_op)


def _restock_items(order: Order) -> None:
    for item in order.items:
        if item.product_id is None:
            continue
        product = db.session.get(Product, item.product_id)
        if product:
            catalog_service.adjust_stock(product, item.quantity)
