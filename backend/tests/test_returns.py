"""
Return processing tests: cumulative caps, refund balancing and status effects.
"""

from decimal import Decimal

import pytest

from storeflow.extensions import db
from storeflow.models import DemandNotice, Order, Product, ReturnTransaction
from storeflow.services import catalog_service, demand_notice_service, order_service, return_service
from storeflow.services.return_service import ReturnError


@pytest.fixture
def paid_order(salesperson, cashier, widget):
    """10 widgets at 10.000, fully paid in cash."""
    order = order_service.create_order({
        "primary_salesperson_id": salesperson.id,
        "items": [{"product_id": widget.id, "quantity": 10}],
    }, actor=salesperson)
    return order_service.add_payment(order.id, method="cash", amount="100", cashier=cashier)


def _line(order):
    return order.items[0].id


class TestReturnCap:

    def test_cumulative_cap(self, paid_order, manager, widget):
        line = _line(paid_order)
        return_service.process_return(
            paid_order.id,
            items=[{"order_item_id": line, "quantity": 6}],
            refunds=[{"method": "cash", "amount": "60"}],
            processed_by=manager,
        )

        with pytest.raises(ReturnError):
            return_service.process_return(
                paid_order.id,
                items=[{"order_item_id": line, "quantity": 5}],
                refunds=[{"method": "cash", "amount": "50"}],
                processed_by=manager,
            )
        assert db.session.get(Product, widget.id).quantity_in_stock == 16

        order = return_service.process_return(
            paid_order.id,
            items=[{"order_item_id": line, "quantity": 4}],
            refunds=[{"method": "cash", "amount": "40"}],
            processed_by=manager,
        )
        assert order.status == "returned"
        assert return_service.returned_quantities(order) == {line: 10}
        assert db.session.get(Product, widget.id).quantity_in_stock == 20

    def test_match_by_product_and_sku(self, paid_order, manager, widget):
        order = return_service.process_return(
            paid_order.id,
            items=[{"product_id": widget.id, "sku": "WID-001", "quantity": 1}],
            refunds=[{"method": "card", "amount": "10"}],
            processed_by=manager,
        )
        assert order.status == "paid"
        assert len(order.return_transactions) == 1

    def test_unknown_sku(self, paid_order, manager, widget):
        with pytest.raises(ReturnError):
            return_service.process_return(
                paid_order.id,
                items=[{"product_id": widget.id, "sku": "NOPE", "quantity": 1}],
                refunds=[{"method": "cash", "amount": "10"}],
                processed_by=manager,
            )


class TestRefundBalancing:

    def test_short_refund_rejected(self, paid_order, manager):
        with pytest.raises(ReturnError):
            return_service.process_return(
                paid_order.id,
                items=[{"order_item_id": _line(paid_order), "quantity": 2}],
                refunds=[{"method": "cash", "amount": "19.990"}],
                processed_by=manager,
            )
        assert db.session.query(ReturnTransaction).count() == 0

    def test_excess_refund_rejected(self, paid_order, manager):
        with pytest.raises(ReturnError):
            return_service.process_return(
                paid_order.id,
                items=[{"order_item_id": _line(paid_order), "quantity": 2}],
                refunds=[{"method": "cash", "amount": "20.010"}],
                processed_by=manager,
            )

    def test_split_refund_within_tolerance(self, paid_order, manager):
        order = return_service.process_return(
            paid_order.id,
            items=[{"order_item_id": _line(paid_order), "quantity": 2}],
            refunds=[{"method": "cash", "amount": "12"}, {"method": "bank_transfer", "amount": "7.996"}],
            reason="Damaged box",
            processed_by=manager,
        )

        transaction = order.return_transactions[0]
        assert transaction.total_value_of_returned_items == Decimal("20.000")
        assert [r.method for r in transaction.refunds] == ["cash", "bank_transfer"]
        assert transaction.reason == "Damaged box"
        assert transaction.processed_by_name == "morgan"

    def test_nothing_selected(self, paid_order, manager):
        with pytest.raises(ReturnError, match="No items selected for return"):
            return_service.process_return(
                paid_order.id,
                items=[{"order_item_id": _line(paid_order), "quantity": 0}],
                refunds=[],
                processed_by=manager,
            )

    def test_advance_is_not_a_refund_method(self, paid_order, manager):
        with pytest.raises(ValueError):
            return_service.process_return(
                paid_order.id,
                items=[{"order_item_id": _line(paid_order), "quantity": 1}],
                refunds=[{"method": "advance_on_dn", "amount": "10"}],
                processed_by=manager,
            )


class TestReturnEligibility:

    def test_unpaid_order_not_returnable(self, salesperson, manager, widget):
        order = order_service.create_order({
            "primary_salesperson_id": salesperson.id,
            "items": [{"product_id": widget.id, "quantity": 1}],
        }, actor=salesperson)

        with pytest.raises(ReturnError):
            return_service.process_return(
                order.id,
                items=[{"order_item_id": order.items[0].id, "quantity": 1}],
                refunds=[{"method": "cash", "amount": "10"}],
                processed_by=manager,
            )

    def test_full_return_of_demand_notice_order(self, salesperson, cashier, manager, db_session):
        product = catalog_service.create_product({
            "sku": "DNP-1",
            "name": "Special Order Chair",
            "category": "Demand Notice Item",
            "price": "15.000",
            "quantity_in_stock": 0,
            "is_demand_notice_product": True,
        })
        notice = demand_notice_service.create_demand_notice({
            "product_id": product.id,
            "customer_contact_number": "555-0102",
            "quantity_requested": 1,
            "agreed_price": "15",
            "expected_availability_date": "2024-04-01",
        }, actor=salesperson)
        catalog_service.receive_stock(product.id, 1)
        order = demand_notice_service.prepare_order(notice.id, actor=manager)
        order_service.add_payment(order.id, method="cash", amount="15", cashier=cashier)

        order = return_service.process_return(
            order.id,
            items=[{"order_item_id": order.items[0].id, "quantity": 1}],
            refunds=[{"method": "cash", "amount": "15"}],
            processed_by=manager,
        )

        assert order.status == "returned"
        notice = db.session.get(DemandNotice, notice.id)
        assert notice.status == "awaiting_customer_action"
        product = db.session.get(Product, product.id)
        assert product.quantity_in_stock == 1
        assert product.category == "Demand Notice Item, Return DN"

    def test_returned_order_is_closed(self, paid_order, manager, cashier):
        return_service.process_return(
            paid_order.id,
            items=[{"order_item_id": _line(paid_order), "quantity": 10}],
            refunds=[{"method": "cash", "amount": "100"}],
            processed_by=manager,
        )
        assert db.session.get(Order, paid_order.id).status == "returned"

        with pytest.raises(ValueError):
            order_service.add_payment(paid_order.id, method="cash", amount="1", cashier=cashier)
