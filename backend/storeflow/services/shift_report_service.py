# Overview: Cashier shift reconciliation: payments one cashier recorded inside a time window.

"""
Shift Reconciliation

WHY: At the end of a shift a cashier reconciles the drawer against what the system
says they collected. The summary covers payments on orders and advances on demand
notices recorded by that cashier inside one calendar-day window.

WINDOW:
- full day 00:00:00.000 .. 23:59:59.999 by default
- start "HH:MM" opens at HH:MM:00.000, end "HH:MM" closes at HH:MM:59.999
- an end earlier than the start falls back to the full day
- both ends are inclusive

TOTALS:
- one bucket per payment method; advance_on_dn is kept apart from new tender
- grand_total is every qualifying payment regardless of method
- collected_total excludes advance_on_dn (money that changed hands in this window)

A converted demand notice re-posts its advances on the order as advance_on_dn rows
with the original cashier and date, so the same money appears twice in grand_total:
once as the notice's cash/card payment and once as the order's advance_on_dn row.
Reconcile the drawer against collected_total, not grand_total.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..extensions import db
from ..models import DemandNotice, Order, Payment, User
from ..statuses import OrderStatus, PaymentMethod, ORDER_SALES_COUNTED, display_label
from ..validation import NotFoundError
from .order_service import latest_payment
from .reporting_service import ReportError
from storeflow.time_utils import day_window, parse_time_of_day, to_utc_z


def resolve_window(day: date, start_time: Optional[str] = None, end_time: Optional[str] = None) -> tuple[datetime, datetime]:
    try:
        start_hm = parse_time_of_day(start_time)
        end_hm = parse_time_of_day(end_time)
    except ValueError as exc:
        raise ReportError(str(exc))
    return day_window(day, start_hm, end_hm)


def _in_window(moment: Optional[datetime], start: datetime, end: datetime) -> bool:
    return moment is not None and start <= moment <= end


def _qualifying(payments, cashier_id: int, start: datetime, end: datetime) -> list[Payment]:
    return [
        p for p in payments
        if p.cashier_id == cashier_id and _in_window(p.payment_date, start, end)
    ]


def _methods_label(payments: list[Payment]) -> list[str]:
    seen: list[str] = []
    for p in payments:
        if p.method not in seen:
            seen.append(p.method)
    return [display_label(m) for m in seen]


def _sort_key(qualifying: list[Payment], document) -> datetime:
    latest = latest_payment(qualifying)
    if latest is not None:
        return latest.payment_date
    return document.updated_at or document.created_at or datetime.min


def shift_summary(
    cashier_id: int,
    day: date,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
) -> dict:
    """
    Reconcile one cashier's payments for a day or a time range inside it.

    An order is listed when this cashier recorded a qualifying payment on it, or when
    it is paid/completed, its latest payment was recorded by this cashier and its
    updated_at falls in the window (the cashier closed it out on this shift).
    """
    cashier = db.session.get(User, cashier_id)
    if not cashier:
        raise NotFoundError(f"User {cashier_id} not found")
    start, end = resolve_window(day, start_time, end_time)

    totals = {method.value: Decimal("0") for method in PaymentMethod}
    grand_total = Decimal("0")

    paid_order_ids = {
        row.order_id
        for row in db.session.query(Payment.order_id).filter(
            Payment.cashier_id == cashier_id,
            Payment.order_id.isnot(None),
            Payment.payment_date >= start,
            Payment.payment_date <= end,
        )
    }
    closed_candidates = (
        db.session.query(Order)
        .filter(
            Order.status.in_([s.value for s in ORDER_SALES_COUNTED]),
            Order.updated_at >= start,
            Order.updated_at <= end,
        )
        .all()
    )
    orders = {o.id: o for o in closed_candidates}
    if paid_order_ids:
        for order in db.session.query(Order).filter(Order.id.in_(paid_order_ids)).all():
            orders[order.id] = order

    order_rows = []
    fully_paid = 0
    for order in orders.values():
        qualifying = _qualifying(order.payments, cashier_id, start, end)
        last = latest_payment(order.payments)
        closed_here = (
            OrderStatus(order.status) in ORDER_SALES_COUNTED
            and _in_window(order.updated_at, start, end)
            and last is not None
            and last.cashier_id == cashier_id
        )
        if not qualifying and not closed_here:
            continue

        amount = Decimal("0")
        for p in qualifying:
            value = Decimal(p.amount)
            totals[p.method] = totals.get(p.method, Decimal("0")) + value
            grand_total += value
            amount += value
        if closed_here:
            fully_paid += 1

        latest_here = latest_payment(qualifying)
        last_activity = latest_here.payment_date if latest_here else (order.updated_at if closed_here else None)
        order_rows.append((_sort_key(qualifying, order), {
            "order_id": order.id,
            "document_number": order.document_number,
            "order_total_amount": Decimal(order.total_amount),
            "amount_paid_in_window": amount,
            "order_status": order.status,
            "payment_methods": _methods_label(qualifying),
            "closed_in_window": closed_here,
            "last_activity": to_utc_z(last_activity, millis=True),
        }))

    notices = (
        db.session.query(DemandNotice)
        .join(Payment, Payment.demand_notice_id == DemandNotice.id)
        .filter(
            Payment.cashier_id == cashier_id,
            Payment.payment_date >= start,
            Payment.payment_date <= end,
        )
        .distinct()
        .all()
    )
    notice_rows = []
    for notice in notices:
        qualifying = _qualifying(notice.payments, cashier_id, start, end)
        amount = Decimal("0")
        for p in qualifying:
            value = Decimal(p.amount)
            totals[p.method] = totals.get(p.method, Decimal("0")) + value
            grand_total += value
            amount += value
        latest_here = latest_payment(qualifying)
        notice_rows.append((_sort_key(qualifying, notice), {
            "demand_notice_id": notice.id,
            "document_number": notice.document_number,
            "product_name": notice.product_name,
            "customer_contact_number": notice.customer_contact_number,
            "amount_paid_in_window": amount,
            "payment_methods": _methods_label(qualifying),
            "agreed_total": notice.agreed_total,
            "total_advance_paid": notice.total_advance_paid,
            "last_activity": to_utc_z(latest_here.payment_date if latest_here else None, millis=True),
        }))

    order_rows.sort(key=lambda pair: pair[0], reverse=True)
    notice_rows.sort(key=lambda pair: pair[0], reverse=True)

    return {
        "cashier_id": cashier.id,
        "cashier_name": cashier.username,
        "date": day.isoformat(),
        "window_start": to_utc_z(start, millis=True),
        "window_end": to_utc_z(end, millis=True),
        "totals_by_method": totals,
        "grand_total": grand_total,
        "collected_total": grand_total - totals[PaymentMethod.ADVANCE_ON_DN.value],
        "orders_fully_paid": fully_paid,
        "orders": [row for _, row in order_rows],
        "demand_notices": [row for _, row in notice_rows],
    }
