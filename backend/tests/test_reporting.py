"""
Salesperson report tests: attribution by split, primary-only counters, commission.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from storeflow.extensions import db
from storeflow.models import Order
from storeflow.services import order_service, return_service
from storeflow.services.commission_service import CommissionPolicy
from storeflow.services.reporting_service import salesperson_report
from storeflow.validation import NotFoundError


POLICY = CommissionPolicy(
    is_active=True,
    sales_target=Decimal("10"),
    commission_interval=Decimal("2"),
    commission_percentage=Decimal("10"),
)


@pytest.fixture
def book(salesperson, second_salesperson, cashier, manager, widget, gadget):
    """
    shared: 2 widgets split 70/30 with sara, paid, one widget returned
    unpaid: 1 gadget, never paid
    cancelled: 1 widget, cancelled before payment
    """
    shared = order_service.create_order({
        "primary_salesperson_id": salesperson.id,
        "secondary_salesperson_id": second_salesperson.id,
        "primary_salesperson_commission": 0.7,
        "secondary_salesperson_commission": 0.3,
        "items": [{"product_id": widget.id, "quantity": 2}],
    }, actor=salesperson)
    order_service.add_payment(shared.id, method="cash", amount="20", cashier=cashier)
    return_service.process_return(
        shared.id,
        items=[{"order_item_id": shared.items[0].id, "quantity": 1}],
        refunds=[{"method": "cash", "amount": "10"}],
        processed_by=manager,
    )

    unpaid = order_service.create_order({
        "primary_salesperson_id": salesperson.id,
        "items": [{"product_id": gadget.id, "quantity": 1}],
    }, actor=salesperson)

    cancelled = order_service.create_order({
        "primary_salesperson_id": salesperson.id,
        "items": [{"product_id": widget.id, "quantity": 1}],
    }, actor=salesperson)
    order_service.update_order_status(cancelled.id, "cancelled", actor=manager)

    return {"shared": shared, "unpaid": unpaid, "cancelled": cancelled}


class TestSalespersonReport:

    def test_primary_counters(self, book, salesperson):
        report = salesperson_report(salesperson.id, None, None, None)

        assert report["total_attributed_sales_value"] == Decimal("14")
        assert report["total_orders_created_as_primary"] == 3
        assert report["total_items_sold_by_primary"] == 2
        assert report["total_returns_processed_by_primary"] == 1
        assert report["total_value_returned_from_primary_orders"] == Decimal("10")
        assert report["total_cancelled_orders_by_primary"] == 1
        assert report["total_commission_earned"] == 0

    def test_secondary_share_only(self, book, second_salesperson):
        report = salesperson_report(second_salesperson.id, None, None, POLICY)

        assert report["total_attributed_sales_value"] == Decimal("6")
        assert report["total_orders_created_as_primary"] == 0
        assert report["total_items_sold_by_primary"] == 0
        assert [order.id for order in report["orders"]] == [book["shared"].id]
        # 6 is below the target of 10
        assert report["total_commission_earned"] == 0

    def test_commission(self, book, salesperson):
        report = salesperson_report(salesperson.id, None, None, POLICY)
        # 14 attributed: two whole intervals of 2 above 10, each earning 0.2
        assert report["total_commission_earned"] == Decimal("0.4")

    def test_date_window(self, book, salesperson):
        order = db.session.get(Order, book["shared"].id)
        order.created_at = datetime(2024, 1, 5, 10, 0)
        db.session.commit()

        report = salesperson_report(
            salesperson.id,
            datetime(2024, 1, 5),
            datetime(2024, 1, 5, 23, 59, 59, 999000),
            None,
        )
        assert [o.id for o in report["orders"]] == [order.id]
        assert report["total_attributed_sales_value"] == Decimal("14")

    def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            salesperson_report(999, None, None, None)
