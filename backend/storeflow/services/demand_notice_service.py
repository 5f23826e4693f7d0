# Overview: Service-layer operations for demand notices (customer backorders); encapsulates business logic and database work.

"""
Demand Notice Engine

WHY: A salesperson takes a customer's request (and often an advance) for a product
that is out of stock or not yet in the catalog. The notice follows the product until
stock arrives and the request becomes an order.

FLOW:
1. create_demand_notice: existing product, or a zero-stock placeholder product
2. record_advance_payment: advances accumulate up to the agreed total
3. apply_stock_status / sync_stock_status: stock levels move open notices between
   awaiting_stock, partial_stock_available and full_stock_available
4. prepare_order: a notice with full stock becomes an order carrying its advances
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from flask import current_app

from ..extensions import db
from ..models import DemandNotice, Order, Payment, Product, User
from ..statuses import (
    DemandNoticeStatus,
    PaymentMethod,
    DEMAND_NOTICE_CONVERTIBLE,
    DEMAND_NOTICE_STOCK_TRACKED,
    DEMAND_NOTICE_TERMINAL,
)
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    require_text,
    to_int,
    to_money,
)
from . import catalog_service, order_service
from .activity_service import append_activity_event
from .concurrency import get_for_update, run_in_transaction
from .document_service import next_document_number
from storeflow.time_utils import parse_iso_date, utcnow


class DemandNoticeError(ValidationError):
    """Raised for invalid demand notice operations."""
    pass


# Advances may exceed the agreed total by at most this much
ADVANCE_TOLERANCE = Decimal("0.001")

ADVANCE_METHODS = frozenset({PaymentMethod.CASH, PaymentMethod.CARD, PaymentMethod.BANK_TRANSFER})


def get_demand_notice(notice_id: int) -> DemandNotice:
    notice = db.session.get(DemandNotice, notice_id)
    if not notice:
        raise NotFoundError(f"Demand notice {notice_id} not found")
    return notice


def list_demand_notices(
    *,
    status: Optional[str] = None,
    salesperson_id: Optional[int] = None,
    product_id: Optional[int] = None,
) -> list[DemandNotice]:
    query = db.session.query(DemandNotice)
    if status:
        query = query.filter(DemandNotice.status == status)
    if salesperson_id:
        query = query.filter(DemandNotice.salesperson_id == salesperson_id)
    if product_id:
        query = query.filter(DemandNotice.product_id == product_id)
    return query.order_by(DemandNotice.created_at.desc(), DemandNotice.id.desc()).all()


def _parse_expected_date(value) -> date:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("expected_availability_date is required")
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError("expected_availability_date must be an ISO date (YYYY-MM-DD)")


def _resolve_salesperson(payload: dict, actor: User) -> User:
    if payload.get("salesperson_id") is None:
        return actor
    salesperson = db.session.get(User, to_int(payload["salesperson_id"], "salesperson_id"))
    if not salesperson:
        raise NotFoundError(f"Salesperson {payload['salesperson_id']} not found")
    return salesperson


def build_demand_notice(
    *,
    product: Product,
    product_name: str,
    is_new_product: bool,
    customer_contact_number: str,
    quantity_requested: int,
    agreed_price: Decimal,
    expected_availability_date: date,
    salesperson: User,
    status: DemandNoticeStatus = DemandNoticeStatus.PENDING_REVIEW,
    notes: Optional[str] = None,
    source_quotation_id: Optional[int] = None,
    actor: Optional[User] = None,
) -> DemandNotice:
    """Persist a notice in the caller's transaction."""
    now = utcnow()
    notice = DemandNotice(
        document_number=next_document_number("demand_notice"),
        product_id=product.id,
        product_name=product_name,
        product_sku=product.sku,
        is_new_product=is_new_product,
        customer_contact_number=customer_contact_number,
        quantity_requested=quantity_requested,
        quantity_fulfilled=0,
        agreed_price=agreed_price,
        expected_availability_date=expected_availability_date,
        salesperson_id=salesperson.id,
        salesperson_name=salesperson.username,
        status=status.value,
        notes=notes,
        source_quotation_id=source_quotation_id,
        created_at=now,
        updated_at=now,
    )
    db.session.add(notice)
    db.session.flush()
    append_activity_event(
        event_type="demand_notice.created",
        entity_type="demand_notice",
        entity_id=notice.id,
        actor_user_id=actor.id if actor else salesperson.id,
        note=notice.document_number,
    )
    return notice


def create_demand_notice(payload: dict, *, actor: User) -> DemandNotice:
    """
    Create a notice for an existing product (product_id) or a new one
    (is_new_product with product_name and optional product_sku).

    A new product gets a zero-stock placeholder priced at the agreed price; a blank
    sku is generated. A supplied sku that already exists is a conflict.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    is_new = bool(payload.get("is_new_product"))
    contact = require_text(payload, "customer_contact_number")
    quantity = to_int(payload.get("quantity_requested"), "quantity_requested", minimum=1)
    agreed_price = to_money(payload.get("agreed_price"), "agreed_price")
    expected = _parse_expected_date(payload.get("expected_availability_date"))
    notes = optional_text(payload, "notes")

    def _op():
        salesperson = _resolve_salesperson(payload, actor)
        if is_new:
            name = require_text(payload, "product_name")
            product = catalog_service.create_placeholder_product(
                name=name,
                sku=optional_text(payload, "product_sku"),
                price=agreed_price,
                category=catalog_service.DEMAND_NOTICE_CATEGORY,
                sku_prefix="NEW",
            )
        else:
            if payload.get("product_id") is None:
                raise ValidationError("product_id is required for an existing product")
            product = catalog_service.require_product(to_int(payload["product_id"], "product_id"))
            name = product.name

        return build_demand_notice(
            product=product,
            product_name=name,
            is_new_product=is_new,
            customer_contact_number=contact,
            quantity_requested=quantity,
            agreed_price=agreed_price,
            expected_availability_date=expected,
            salesperson=salesperson,
            notes=notes,
            actor=actor,
        )

    notice = run_in_transaction(_op)
    current_app.logger.info("Demand notice %s created by %s", notice.document_number, actor.username)
    return notice


def record_advance_payment(notice_id: int, *, method, amount, cashier: User) -> DemandNotice:
    """
    Append an advance payment. The status does not change.

    The cumulative advance may not exceed the agreed total by more than 0.001.
    """
    try:
        payment_method = PaymentMethod(method)
    except ValueError:
        raise ValidationError(f"Invalid payment method: {method}")
    if payment_method not in ADVANCE_METHODS:
        raise ValidationError(f"Advances cannot be paid as {payment_method.value}")
    value = to_money(amount, "amount")
    if value <= 0:
        raise ValidationError("Payment amount must be > 0")

    def _op():
        notice = get_for_update(DemandNotice, notice_id, label="Demand notice")
        if notice.notice_status in DEMAND_NOTICE_TERMINAL:
            raise DemandNoticeError(f"Cannot add payment to a {notice.status} demand notice")
        if notice.linked_order_id:
            raise DemandNoticeError("Demand notice already has an order; record the payment on the order")

        new_total = notice.total_advance_paid + value
        if new_total > notice.agreed_total + ADVANCE_TOLERANCE:
            raise DemandNoticeError(
                f"Advance total {new_total:.3f} would exceed the agreed total {notice.agreed_total:.3f}"
            )

        paid_at = utcnow()
        notice.payments.append(Payment(
            method=payment_method.value,
            amount=value,
            payment_date=paid_at,
            cashier_id=cashier.id,
            cashier_name=cashier.username,
        ))
        notice.updated_at = paid_at
        db.session.flush()
        append_activity_event(
            event_type="demand_notice.payment_recorded",
            entity_type="demand_notice",
            entity_id=notice.id,
            actor_user_id=cashier.id,
            note=f"{payment_method.value} {value}",
            occurred_at=paid_at,
        )
        return notice

    return run_in_transaction(_op)


def update_status(notice_id: int, status, *, actor: User) -> DemandNotice:
    """
    Set the status. Who may do it is decided by authorization before this call;
    here only the target is validated. No side effects beyond status + updated_at.
    """
    try:
        target = DemandNoticeStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid demand notice status: {status}")

    def _op():
        notice = get_for_update(DemandNotice, notice_id, label="Demand notice")
        previous = notice.status
        notice.status = target.value
        notice.updated_at = utcnow()
        append_activity_event(
            event_type="demand_notice.status_changed",
            entity_type="demand_notice",
            entity_id=notice.id,
            actor_user_id=actor.id,
            note=f"{previous} -> {target.value}",
        )
        return notice

    return run_in_transaction(_op)


def prepare_order(notice_id: int, *, actor: User) -> Order:
    """
    Turn a notice with full stock into an order.

    The order has one line at the agreed price, no taxes, and the notice's advances
    re-posted as advance_on_dn payments (original date and cashier). Stock is deducted;
    insufficient stock raises ConflictError with nothing written.
    """
    def _op():
        notice = get_for_update(DemandNotice, notice_id, label="Demand notice")
        if notice.notice_status not in DEMAND_NOTICE_CONVERTIBLE:
            raise DemandNoticeError(
                f"Cannot convert demand notice. Status is '{notice.status}'. "
                "Expected 'full_stock_available' or 'customer_notified_stock'."
            )
        if notice.linked_order_id:
            raise ConflictError(
                f"Demand notice {notice.document_number} is already linked to order {notice.linked_order_id}"
            )
        if notice.product_id is None:
            raise DemandNoticeError("Demand notice is not linked to a product")

        product = get_for_update(Product, notice.product_id, label="Product")
        salesperson = db.session.get(User, notice.salesperson_id)
        if not salesperson:
            raise NotFoundError(f"Salesperson {notice.salesperson_id} not found")

        line = order_service.LineSpec(
            product=product,
            name=notice.product_name,
            sku=notice.product_sku,
            quantity=notice.quantity_requested,
            price_per_unit=Decimal(notice.agreed_price),
        )
        advances = [
            order_service.PaymentSpec(
                method=PaymentMethod.ADVANCE_ON_DN.value,
                amount=Decimal(p.amount),
                payment_date=p.payment_date,
                cashier_id=p.cashier_id,
                cashier_name=p.cashier_name,
            )
            for p in notice.payments
        ]

        order = order_service.build_order(
            lines=[line],
            primary=salesperson,
            customer_name=f"DN: {notice.document_number}",
            customer_phone=notice.customer_contact_number,
            payments=advances,
            linked_demand_notice_id=notice.id,
            actor=actor,
        )

        notice.linked_order_id = order.id
        notice.status = DemandNoticeStatus.ORDER_PROCESSING.value
        notice.updated_at = utcnow()
        append_activity_event(
            event_type="demand_notice.converted",
            entity_type="demand_notice",
            entity_id=notice.id,
            actor_user_id=actor.id,
            note=order.document_number,
        )
        return order

    order = run_in_transaction(_op)
    current_app.logger.info(
        "Demand notice %s converted to order %s", order.linked_demand_notice_id, order.document_number
    )
    return order


def stock_status_for(quantity_in_stock: int, quantity_requested: int) -> tuple[DemandNoticeStatus, int]:
    """(status, quantity_fulfilled) implied by the current stock level."""
    if quantity_in_stock >= quantity_requested:
        return DemandNoticeStatus.FULL_STOCK_AVAILABLE, quantity_requested
    if quantity_in_stock > 0:
        return DemandNoticeStatus.PARTIAL_STOCK_AVAILABLE, quantity_in_stock
    return DemandNoticeStatus.AWAITING_STOCK, 0


def apply_stock_status(product: Product) -> list[DemandNotice]:
    """
    Refresh open notices of one product from its stock, in the caller's transaction.

    Only pending_review, awaiting_stock and partial_stock_available notices move.
    Returns the notices whose status or fulfilled quantity changed.
    """
    tracked = [s.value for s in DEMAND_NOTICE_STOCK_TRACKED]
    notices = (
        db.session.query(DemandNotice)
        .filter(DemandNotice.product_id == product.id, DemandNotice.status.in_(tracked))
        .order_by(DemandNotice.created_at, DemandNotice.id)
        .all()
    )
    changed = []
    now = utcnow()
    for notice in notices:
        status, fulfilled = stock_status_for(product.quantity_in_stock, notice.quantity_requested)
        if notice.status == status.value and notice.quantity_fulfilled == fulfilled:
            continue
        notice.status = status.value
        notice.quantity_fulfilled = fulfilled
        notice.updated_at = now
        changed.append(notice)
    return changed


def sync_stock_status(product_id: Optional[int] = None) -> list[DemandNotice]:
    """Re-derive open notice statuses for one product, or for every product with open notices."""
    def _op():
        if product_id is not None:
            products = [catalog_service.require_product(product_id)]
        else:
            tracked = [s.value for s in DEMAND_NOTICE_STOCK_TRACKED]
            products = (
                db.session.query(Product)
                .join(DemandNotice, DemandNotice.product_id == Product.id)
                .filter(DemandNotice.status.in_(tracked))
                .distinct()
                .all()
            )
        changed = []
        for product in products:
            changed.extend(apply_stock_status(product))
        return changed

    return run_in_transaction(_op)
