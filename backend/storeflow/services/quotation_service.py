# Overview: Service-layer operations for quotations and their conversion into orders and demand notices.

"""
Quotation Engine

WHY: A quotation prices a mix of catalog (internal) and sourced (external) items for
a customer. Once accepted, internal items become one order and each external item
becomes its own demand notice. Each item converts at most once.

DESIGN:
- total_amount is recomputed from the items on every write
- editing is limited to draft and revision
- converted is reached only through conversion, never through change_status
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Optional

from flask import current_app

from ..extensions import db
from ..models import DemandNotice, Order, Quotation, QuotationItem, User
from ..statuses import (
    DemandNoticeStatus,
    QuotationStatus,
    QUOTATION_EDITABLE,
    QUOTATION_TRANSITIONS,
)
from ..validation import (
    NotFoundError,
    ValidationError,
    optional_text,
    to_int,
    to_money,
)
from . import catalog_service, order_service
from .activity_service import append_activity_event
from .concurrency import get_for_update, run_in_transaction
from .demand_notice_service import build_demand_notice
from .document_service import next_document_number
from storeflow.time_utils import parse_iso_date, utcnow


class QuotationError(ValidationError):
    """Raised for invalid quotation operations."""
    pass


EXPECTED_AVAILABILITY_DAYS = 7
NOTES_LIMIT = 250
DEFAULT_VALIDITY_DAYS = 30


def get_quotation(quotation_id: int) -> Quotation:
    quotation = db.session.get(Quotation, quotation_id)
    if not quotation:
        raise NotFoundError(f"Quotation {quotation_id} not found")
    return quotation


def list_quotations(*, salesperson_id: Optional[int] = None, status: Optional[str] = None) -> list[Quotation]:
    query = db.session.query(Quotation)
    if salesperson_id:
        query = query.filter(Quotation.salesperson_id == salesperson_id)
    if status:
        query = query.filter(Quotation.status == status)
    return query.order_by(Quotation.created_at.desc(), Quotation.id.desc()).all()


def _build_items(raw_items) -> list[QuotationItem]:
    if not isinstance(raw_items, list) or not raw_items:
        raise QuotationError("Quotation must include at least one item")

    items = []
    for position, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError("Each item must be an object")
        quantity = to_int(raw.get("quantity"), "quantity", minimum=1)

        if raw.get("is_external"):
            name = optional_text(raw, "product_name")
            if not name:
                raise ValidationError("product_name is required for external items")
            items.append(QuotationItem(
                position=position,
                product_id=None,
                product_name=name,
                product_sku=optional_text(raw, "product_sku"),
                price=to_money(raw.get("price"), "price"),
                quantity=quantity,
                is_external=True,
                converted=False,
            ))
            continue

        product = catalog_service.require_product(raw.get("product_id"))
        if raw.get("price") is not None:
            price = to_money(raw["price"], "price")
        else:
            price = Decimal(product.effective_price)
        items.append(QuotationItem(
            position=position,
            product_id=product.id,
            product_name=product.name,
            product_sku=product.sku,
            price=price,
            quantity=quantity,
            is_external=False,
            converted=False,
        ))
    return items


def _apply_header(quotation: Quotation, payload: dict, *, creating: bool) -> None:
    for field in ("customer_name", "customer_phone", "customer_email", "customer_address", "notes"):
        if creating or field in payload:
            setattr(quotation, field, optional_text(payload, field))

    if creating or "preparation_days" in payload:
        raw = payload.get("preparation_days")
        quotation.preparation_days = 0 if raw is None else to_int(raw, "preparation_days", minimum=0)

    if creating or "valid_until" in payload:
        raw = payload.get("valid_until")
        if raw:
            try:
                quotation.valid_until = parse_iso_date(str(raw))
            except ValueError:
                raise ValidationError("valid_until must be an ISO date (YYYY-MM-DD)")
        elif creating:
            quotation.valid_until = utcnow().date() + timedelta(days=DEFAULT_VALIDITY_DAYS)
        else:
            raise ValidationError("valid_until cannot be blank")


def create_quotation(payload: dict, *, actor: User) -> Quotation:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    def _op():
        now = utcnow()
        quotation = Quotation(
            document_number=next_document_number("quotation"),
            salesperson_id=actor.id,
            salesperson_name=actor.username,
            status=QuotationStatus.DRAFT.value,
            created_at=now,
            updated_at=now,
        )
        _apply_header(quotation, payload, creating=True)
        quotation.items = _build_items(payload.get("items"))
        quotation.recalculate_total()
        db.session.add(quotation)
        db.session.flush()
        append_activity_event(
            event_type="quotation.created",
            entity_type="quotation",
            entity_id=quotation.id,
            actor_user_id=actor.id,
            note=quotation.document_number,
        )
        return quotation

    quotation = run_in_transaction(_op)
    current_app.logger.info("Quotation %s created by %s", quotation.document_number, actor.username)
    return quotation


def update_quotation(quotation_id: int, payload: dict, *, actor: User) -> Quotation:
    """Edit header fields and (optionally) replace the items; draft and revision only."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    def _op():
        quotation = get_for_update(Quotation, quotation_id, label="Quotation")
        if quotation.quotation_status not in QUOTATION_EDITABLE:
            raise QuotationError(f"Quotation in status '{quotation.status}' cannot be edited")

        _apply_header(quotation, payload, creating=False)
        if "items" in payload:
            quotation.items = _build_items(payload.get("items"))
        quotation.recalculate_total()
        quotation.updated_at = utcnow()
        append_activity_event(
            event_type="quotation.updated",
            entity_type="quotation",
            entity_id=quotation.id,
            actor_user_id=actor.id,
        )
        return quotation

    return run_in_transaction(_op)


def change_status(quotation_id: int, status, *, actor: User) -> Quotation:
    try:
        target = QuotationStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid quotation status: {status}")
    if target == QuotationStatus.CONVERTED:
        raise QuotationError("A quotation becomes converted only through conversion")

    def _op():
        quotation = get_for_update(Quotation, quotation_id, label="Quotation")
        current = quotation.quotation_status
        if target not in QUOTATION_TRANSITIONS.get(current, frozenset()):
            raise QuotationError(f"Cannot move quotation from '{current.value}' to '{target.value}'")
        quotation.status = target.value
        quotation.updated_at = utcnow()
        append_activity_event(
            event_type="quotation.status_changed",
            entity_type="quotation",
            entity_id=quotation.id,
            actor_user_id=actor.id,
            note=f"{current.value} -> {target.value}",
        )
        return quotation

    return run_in_transaction(_op)


def delete_quotation(quotation_id: int, *, actor: User) -> None:
    def _op():
        quotation = get_for_update(Quotation, quotation_id, label="Quotation")
        db.session.query(Order).filter(Order.source_quotation_id == quotation.id).update(
            {Order.source_quotation_id: None}, synchronize_session=False
        )
        db.session.query(DemandNotice).filter(DemandNotice.source_quotation_id == quotation.id).update(
            {DemandNotice.source_quotation_id: None}, synchronize_session=False
        )
        append_activity_event(
            event_type="quotation.deleted",
            entity_type="quotation",
            entity_id=quotation.id,
            actor_user_id=actor.id,
            note=quotation.document_number,
        )
        db.session.delete(quotation)

    run_in_transaction(_op)


def _require_accepted(quotation: Quotation, target: str) -> None:
    if quotation.quotation_status != QuotationStatus.ACCEPTED:
        raise QuotationError(
            f"Quotation must be 'accepted' to convert to {target}. Current status: {quotation.status}"
        )


def _mark_converted_if_done(quotation: Quotation, now) -> None:
    if all(item.converted for item in quotation.items):
        quotation.status = QuotationStatus.CONVERTED.value
    quotation.updated_at = now


def _salesperson_for(quotation: Quotation) -> User:
    salesperson = db.session.get(User, quotation.salesperson_id)
    if not salesperson:
        raise NotFoundError(f"Salesperson {quotation.salesperson_id} not found")
    return salesperson


def convert_to_order(quotation_id: int, *, actor: User) -> Order:
    """
    Turn every unconverted internal item into one order at the quoted price and quantity.

    Stock is checked and deducted; any shortfall raises ConflictError and nothing is
    written. The order carries no taxes (total = subtotal).
    """
    def _op():
        quotation = get_for_update(Quotation, quotation_id, label="Quotation")
        _require_accepted(quotation, "an order")
        pending = quotation.pending_items(external=False)
        if not pending:
            raise QuotationError("No unconverted internal items in this quotation")

        lines = []
        for item in pending:
            product = catalog_service.require_product(item.product_id)
            lines.append(order_service.LineSpec(
                product=product,
                name=item.product_name,
                sku=item.product_sku or product.sku,
                quantity=item.quantity,
                price_per_unit=Decimal(item.price),
            ))

        order = order_service.build_order(
            lines=lines,
            primary=_salesperson_for(quotation),
            customer_name=quotation.customer_name,
            customer_phone=quotation.customer_phone,
            delivery_address=quotation.customer_address,
            source_quotation_id=quotation.id,
            actor=actor,
        )

        now = utcnow()
        for item in pending:
            item.converted = True
        _mark_converted_if_done(quotation, now)
        append_activity_event(
            event_type="quotation.converted_to_order",
            entity_type="quotation",
            entity_id=quotation.id,
            actor_user_id=actor.id,
            note=order.document_number,
        )
        return order

    order = run_in_transaction(_op)
    current_app.logger.info("Quotation %s converted to order %s", quotation_id, order.document_number)
    return order


def _source_note(quotation: Quotation, item: QuotationItem) -> str:
    note = (
        f"Created from Quotation: {quotation.document_number}. Item: {item.product_name}. "
        f"Customer: {quotation.customer_name or 'N/A'} ({quotation.customer_phone or 'N/A'}). "
        f"Original Quote Notes: {quotation.notes or ''}"
    )
    return note[:NOTES_LIMIT]


def convert_to_demand_notices(quotation_id: int, *, actor: User) -> list[DemandNotice]:
    """
    One demand notice per unconverted external item.

    An item whose sku matches a catalog product reuses it; otherwise a zero-stock
    placeholder is created. Notices start in awaiting_stock, expected in 7 days.
    """
    def _op():
        quotation = get_for_update(Quotation, quotation_id, label="Quotation")
        _require_accepted(quotation, "demand notices")
        pending = quotation.pending_items(external=True)
        if not pending:
            raise QuotationError("No unconverted external items in this quotation")

        salesperson = _salesperson_for(quotation)
        now = utcnow()
        expected = now.date() + timedelta(days=EXPECTED_AVAILABILITY_DAYS)
        notices = []
        for item in pending:
            product = catalog_service.get_product_by_sku(item.product_sku) if item.product_sku else None
            is_new = product is None
            if is_new:
                product = catalog_service.create_placeholder_product(
                    name=item.product_name,
                    sku=item.product_sku,
                    price=Decimal(item.price),
                    category=catalog_service.EXTERNAL_QUOTATION_CATEGORY,
                    sku_prefix="EXT",
                )
            notices.append(build_demand_notice(
                product=product,
                product_name=item.product_name,
                is_new_product=is_new,
                customer_contact_number=quotation.customer_phone or "N/A",
                quantity_requested=item.quantity,
                agreed_price=Decimal(item.price),
                expected_availability_date=expected,
                salesperson=salesperson,
                status=DemandNoticeStatus.AWAITING_STOCK,
                notes=_source_note(quotation, item),
                source_quotation_id=quotation.id,
                actor=actor,
            ))
            item.converted = True

        _mark_converted_if_done(quotation, now)
        append_activity_event(
            event_type="quotation.converted_to_demand_notices",
            entity_type="quotation",
            entity_id=quotation.id,
            actor_user_id=actor.id,
            note=", ".join(n.document_number for n in notices),
        )
        return notices

    notices = run_in_transaction(_op)
    current_app.logger.info("Quotation %s converted to %d demand notice(s)", quotation_id, len(notices))
    return notices
