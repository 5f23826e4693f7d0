"""
Order service tests: commission split, totals, payment status and stock.
"""

from decimal import Decimal

import pytest

from storeflow.extensions import db
from storeflow.models import Order, Product
from storeflow.services import order_service, settings_service
from storeflow.services.order_service import OrderError, validate_commission_split
from storeflow.validation import ConflictError, ValidationError


def _payload(salesperson, product, quantity=2, **extra):
    payload = {
        "primary_salesperson_id": salesperson.id,
        "items": [{"product_id": product.id, "quantity": quantity}],
        "customer_name": "Walk-in",
    }
    payload.update(extra)
    return payload


# =============================================================================
# COMMISSION SPLIT
# =============================================================================


class TestCommissionSplit:

    def test_primary_only_carries_everything(self):
        assert validate_commission_split(None, None, has_secondary=False) == (1.0, 0.0)

    def test_split_must_total_one(self):
        with pytest.raises(OrderError):
            validate_commission_split(0.6, 0.3, has_secondary=True)

    def test_split_within_tolerance(self):
        primary, secondary = validate_commission_split(0.7, 0.3, has_secondary=True)
        assert abs(primary + secondary - 1.0) <= 1e-9

    def test_split_without_secondary_rejected(self):
        with pytest.raises(OrderError):
            validate_commission_split(0.5, 0.5, has_secondary=False)

    def test_fraction_out_of_range(self):
        with pytest.raises(ValidationError):
            validate_commission_split(1.5, -0.5, has_secondary=True)

    def test_create_rejects_bad_split(self, salesperson, second_salesperson, widget):
        payload = _payload(
            salesperson,
            widget,
            secondary_salesperson_id=second_salesperson.id,
            primary_salesperson_commission=0.6,
            secondary_salesperson_commission=0.6,
        )
        with pytest.raises(OrderError):
            order_service.create_order(payload, actor=salesperson)

        assert db.session.query(Order).count() == 0
        assert db.session.get(Product, widget.id).quantity_in_stock == 20

    def test_create_accepts_split(self, salesperson, second_salesperson, widget):
        payload = _payload(
            salesperson,
            widget,
            secondary_salesperson_id=second_salesperson.id,
            primary_salesperson_commission=0.7,
            secondary_salesperson_commission=0.3,
        )
        order = order_service.create_order(payload, actor=salesperson)

        assert order.secondary_salesperson_id == second_salesperson.id
        assert order.primary_salesperson_commission == pytest.approx(0.7)
        assert order_service.attributed_sales(order, salesperson.id) == Decimal("14.000")
        assert order_service.attributed_sales(order, second_salesperson.id) == Decimal("6.000")

    def test_secondary_must_differ(self, salesperson, widget):
        payload = _payload(
            salesperson,
            widget,
            secondary_salesperson_id=salesperson.id,
            primary_salesperson_commission=0.5,
            secondary_salesperson_commission=0.5,
        )
        with pytest.raises(OrderError):
            order_service.create_order(payload, actor=salesperson)


# =============================================================================
# TOTALS AND STOCK
# =============================================================================


class TestCreateOrder:

    def test_totals_and_stock(self, salesperson, widget):
        order = order_service.create_order(_payload(salesperson, widget, quantity=3), actor=salesperson)

        assert order.document_number == "INV-000001"
        assert order.subtotal == Decimal("30.000")
        assert order.total_amount == Decimal("30.000")
        assert order.status == "pending_payment"
        assert order.delivery_status == "pending_dispatch"
        assert db.session.get(Product, widget.id).quantity_in_stock == 17

    def test_percentage_discount_and_tax(self, salesperson, widget):
        vat = settings_service.upsert_tax_setting({"name": "VAT", "rate": "5", "enabled": True})
        order = order_service.create_order(
            _payload(salesperson, widget, quantity=10, applied_discount_percentage="10"),
            actor=salesperson,
            tax_settings=[vat],
        )

        # 100 - 10% = 90, VAT 5% of 90 = 4.5
        assert order.discount_amount == Decimal("10.000")
        assert order.total_tax == Decimal("4.500")
        assert order.total_amount == Decimal("94.500")

    def test_disabled_tax_ignored(self, salesperson, widget):
        vat = settings_service.upsert_tax_setting({"name": "VAT", "rate": "5", "enabled": False})
        order = order_service.create_order(_payload(salesperson, widget), actor=salesperson, tax_settings=[vat])
        assert order.total_amount == Decimal("20.000")

    def test_discount_cannot_exceed_subtotal(self, salesperson, widget):
        with pytest.raises(ValidationError):
            order_service.create_order(_payload(salesperson, widget, discount_amount="50"), actor=salesperson)

    def test_insufficient_stock_writes_nothing(self, salesperson, widget, gadget):
        payload = {
            "primary_salesperson_id": salesperson.id,
            "items": [
                {"product_id": widget.id, "quantity": 1},
                {"product_id": gadget.id, "quantity": 6},
            ],
        }
        with pytest.raises(ConflictError):
            order_service.create_order(payload, actor=salesperson)

        assert db.session.query(Order).count() == 0
        assert db.session.get(Product, widget.id).quantity_in_stock == 20

    def test_requires_items(self, salesperson):
        with pytest.raises(ValidationError):
            order_service.create_order({"primary_salesperson_id": salesperson.id, "items": []}, actor=salesperson)

    def test_low_stock_price_applies(self, salesperson, db_session):
        from storeflow.services import catalog_service

        product = catalog_service.create_product({
            "sku": "CLR-1",
            "name": "Clearance",
            "price": "8.000",
            "quantity_in_stock": 3,
            "low_stock_threshold": 5,
            "low_stock_price": "6.000",
        })
        order = order_service.create_order(_payload(salesperson, product, quantity=1), actor=salesperson)
        assert order.items[0].price_per_unit == Decimal("6.000")


# =============================================================================
# PAYMENTS
# =============================================================================


class TestPayments:

    def test_partial_then_paid(self, salesperson, cashier, widget):
        order = order_service.create_order(_payload(salesperson, widget), actor=salesperson)

        order = order_service.add_payment(order.id, method="cash", amount="5", cashier=cashier)
        assert order.status == "partial_payment"
        assert order.remaining_balance == Decimal("15.000")

        order = order_service.add_payment(order.id, method="card", amount="14.996", cashier=cashier)
        assert order.status == "paid"

    def test_overpayment_accepted(self, salesperson, cashier, widget):
        order = order_service.create_order(_payload(salesperson, widget), actor=salesperson)
        order = order_service.add_payment(order.id, method="cash", amount="25", cashier=cashier)

        assert order.status == "paid"
        assert order.remaining_balance == Decimal("-5.000")

    def test_opening_payments(self, salesperson, widget):
        payload = _payload(salesperson, widget, payments=[{"method": "cash", "amount": "20"}])
        order = order_service.create_order(payload, actor=salesperson)

        assert order.status == "paid"
        assert order.payments[0].cashier_id == salesperson.id

    def test_invalid_method(self, salesperson, cashier, widget):
        order = order_service.create_order(_payload(salesperson, widget), actor=salesperson)
        with pytest.raises(ValidationError):
            order_service.add_payment(order.id, method="cheque", amount="5", cashier=cashier)

    def test_non_positive_amount(self, salesperson, cashier, widget):
        order = order_service.create_order(_payload(salesperson, widget), actor=salesperson)
        with pytest.raises(ValidationError):
            order_service.add_payment(order.id, method="cash", amount="0", cashier=cashier)

    def test_payment_summary(self, salesperson, cashier, widget):
        order = order_service.create_order(_payload(salesperson, widget), actor=salesperson)
        order_service.add_payment(order.id, method="card", amount="5", cashier=cashier)
        order = order_service.add_payment(order.id, method="cash", amount="7", cashier=cashier)

        summary = order_service.payment_summary(order.payments)
        assert summary["card"] == Decimal("5.000")
        assert summary["cash"] == Decimal("7.000")
        assert summary["total_paid"] == Decimal("12.000")
        assert summary["methods_used"] == ["card", "cash"]


# =============================================================================
# STATUS, TRANSFER, DELETE
# =============================================================================


class TestOrderLifecycle:

    def test_preparing_needs_payment(self, salesperson, manager, widget):
        order = order_service.create_order(_payload(salesperson, widget), actor=salesperson)
        with pytest.raises(OrderError):
            order_service.update_order_status(order.id, "preparing", actor=manager)

    def test_ready_needs_full_payment(self, salesperson, manager, cashier, widget):
        order = order_service.create_order(_payload(salesperson, widget), actor=salesperson)
        order_service.add_payment(order.id, method="cash", amount="10", cashier=cashier)

        order = order_service.update_order_status(order.id, "preparing", actor=manager)
        assert order.status == "preparing"
        with pytest.raises(OrderError):
            order_service.update_order_status(order.id, "ready_for_pickup", actor=manager)

    def test_payment_status_cannot_be_set(self, salesperson, manager, widget):
        order = order_service.create_order(_payload(salesperson, widget), actor=salesperson)
        with pytest.raises(OrderError):
            order_service.update_order_status(order.id, "paid", actor=manager)

    def test_cancel_restocks(self, salesperson, manager, widget):
        order = order_service.create_order(_payload(salesperson, widget, quantity=4), actor=salesperson)
        order = order_service.update_order_status(order.id, "cancelled", actor=manager)

        assert order.status == "cancelled"
        assert db.session.get(Product, widget.id).quantity_in_stock == 20
        with pytest.raises(OrderError):
            order_service.update_order_status(order.id, "preparing", actor=manager)

    def test_delivery_status(self, salesperson, manager, widget):
        order = order_service.create_order(_payload(salesperson, widget), actor=salesperson)
        order = order_service.update_delivery_status(order.id, "out_for_delivery", actor=manager)
        assert order.delivery_status == "out_for_delivery"

        with pytest.raises(ValidationError):
            order_service.update_delivery_status(order.id, "lost", actor=manager)

    def test_transfer_defaults_to_even_split(self, salesperson, second_salesperson, manager, widget):
        order = order_service.create_order(_payload(salesperson, widget), actor=salesperson)
        order = order_service.transfer_order(
            order.id,
            primary_salesperson_id=salesperson.id,
            secondary_salesperson_id=second_salesperson.id,
            actor=manager,
        )

        assert order.primary_salesperson_commission == pytest.approx(0.5)
        assert order.secondary_salesperson_commission == pytest.approx(0.5)
        assert order.secondary_salesperson_name == "sara"

    def test_transfer_rejects_bad_split(self, salesperson, second_salesperson, manager, widget):
        order = order_service.create_order(_payload(salesperson, widget), actor=salesperson)
        with pytest.raises(OrderError):
            order_service.transfer_order(
                order.id,
                primary_salesperson_id=second_salesperson.id,
                secondary_salesperson_id=salesperson.id,
                primary_commission=0.9,
                secondary_commission=0.2,
                actor=manager,
            )

    def test_delete_restocks(self, salesperson, manager, widget):
        order = order_service.create_order(_payload(salesperson, widget, quantity=5), actor=salesperson)
        order_service.delete_order(order.id, actor=manager)

        assert db.session.get(Order, order.id) is None
        assert db.session.get(Product, widget.id).quantity_in_stock == 20
