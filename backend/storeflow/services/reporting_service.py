# Overview: Salesperson performance reporting; read-only aggregation over orders.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..extensions import db
from ..models import Order, User
from ..statuses import OrderStatus, ORDER_SALES_COUNTED
from ..validation import NotFoundError, ValidationError
from .commission_service import CommissionPolicy, calculate_commission
from .order_service import attributed_sales


class ReportError(ValidationError):
    """Raised when a report cannot be produced from the given input."""
    pass


def orders_for_salesperson(salesperson_id: int, start: Optional[datetime], end: Optional[datetime]) -> list[Order]:
    """Orders created in [start, end] where the user is primary or secondary, newest first."""
    query = db.session.query(Order).filter(db.or_(
        Order.primary_salesperson_id == salesperson_id,
        Order.secondary_salesperson_id == salesperson_id,
    ))
    if start is not None:
        query = query.filter(Order.created_at >= start)
    if end is not None:
        query = query.filter(Order.created_at <= end)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def salesperson_report(
    salesperson_id: int,
    start: Optional[datetime],
    end: Optional[datetime],
    commission_setting: Optional[CommissionPolicy],
) -> dict:
    """
    Performance summary for one salesperson.

    Attributed sales count only paid/completed orders, at the user's split share.
    Items, returns and cancellations count orders where the user is primary.
    Commission is computed on the attributed total with the supplied policy.
    """
    user = db.session.get(User, salesperson_id)
    if not user:
        raise NotFoundError(f"User {salesperson_id} not found")

    orders = orders_for_salesperson(salesperson_id, start, end)

    total_attributed = Decimal("0")
    orders_as_primary = 0
    items_sold = 0
    orders_with_returns = 0
    value_returned = Decimal("0")
    cancelled = 0

    for order in orders:
        status = OrderStatus(order.status)
        if status in ORDER_SALES_COUNTED:
            total_attributed += attributed_sales(order, salesperson_id)

        if order.primary_salesperson_id != salesperson_id:
            continue
        orders_as_primary += 1
        if status in ORDER_SALES_COUNTED:
            items_sold += sum(item.quantity for item in order.items)
        if status == OrderStatus.CANCELLED:
            cancelled += 1
        if order.return_transactions:
            orders_with_returns += 1
            value_returned += sum(
                (Decimal(rt.total_value_of_returned_items) for rt in order.return_transactions),
                Decimal("0"),
            )

    commission = calculate_commission(total_attributed, commission_setting)

    return {
        "salesperson_id": user.id,
        "salesperson_name": user.username,
        "total_attributed_sales_value": total_attributed,
        "total_orders_created_as_primary": orders_as_primary,
        "total_items_sold_by_primary": items_sold,
        "total_returns_processed_by_primary": orders_with_returns,
        "total_value_returned_from_primary_orders": value_returned,
        "total_cancelled_orders_by_primary": cancelled,
        "total_commission_earned": commission,
        "orders": orders,
    }
