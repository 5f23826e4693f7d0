"""
Quotation engine tests: editing, status transitions and idempotent conversion.
"""

from decimal import Decimal

import pytest

from storeflow.extensions import db
from storeflow.models import DemandNotice, Order, Product, Quotation
from storeflow.services import quotation_service
from storeflow.services.quotation_service import QuotationError
from storeflow.validation import ConflictError, ValidationError


def _quotation(salesperson, *items, **header):
    payload = {
        "customer_name": "Acme Trading",
        "customer_phone": "555-0199",
        "notes": "Deliver before Eid",
        "items": list(items),
    }
    payload.update(header)
    return quotation_service.create_quotation(payload, actor=salesperson)


def _accept(quotation_id, actor):
    quotation_service.change_status(quotation_id, "sent", actor=actor)
    return quotation_service.change_status(quotation_id, "accepted", actor=actor)


EXTERNAL_VALVE = {"is_external": True, "product_name": "Imported Valve", "price": "7.500", "quantity": 2}
EXTERNAL_PUMP = {"is_external": True, "product_name": "Pump", "product_sku": "PMP-9", "price": "40", "quantity": 1}


# =============================================================================
# CREATE / EDIT
# =============================================================================


class TestCreateAndEdit:

    def test_total_is_recomputed(self, salesperson, widget):
        quotation = _quotation(
            salesperson,
            {"product_id": widget.id, "quantity": 3},
            EXTERNAL_VALVE,
        )

        assert quotation.document_number == "QUO-000001"
        assert quotation.status == "draft"
        # 3 x 10.000 + 2 x 7.500
        assert quotation.total_amount == Decimal("45.000")
        assert quotation.items[0].price == Decimal("10.000")

    def test_requires_items(self, salesperson, db_session):
        with pytest.raises(QuotationError):
            _quotation(salesperson)

    def test_external_needs_name(self, salesperson, db_session):
        with pytest.raises(ValidationError):
            _quotation(salesperson, {"is_external": True, "price": "1", "quantity": 1})

    def test_edit_replaces_items(self, salesperson, widget):
        quotation = _quotation(salesperson, {"product_id": widget.id, "quantity": 1})
        quotation = quotation_service.update_quotation(
            quotation.id,
            {"items": [{"product_id": widget.id, "quantity": 2, "price": "9.000"}], "customer_name": "Acme LLC"},
            actor=salesperson,
        )

        assert quotation.total_amount == Decimal("18.000")
        assert quotation.customer_name == "Acme LLC"
        assert len(quotation.items) == 1

    def test_sent_quotation_not_editable(self, salesperson, widget):
        quotation = _quotation(salesperson, {"product_id": widget.id, "quantity": 1})
        quotation_service.change_status(quotation.id, "sent", actor=salesperson)

        with pytest.raises(QuotationError):
            quotation_service.update_quotation(quotation.id, {"notes": "late change"}, actor=salesperson)


# =============================================================================
# STATUS
# =============================================================================


class TestStatus:

    def test_draft_cannot_jump_to_accepted(self, salesperson, widget):
        quotation = _quotation(salesperson, {"product_id": widget.id, "quantity": 1})
        with pytest.raises(QuotationError):
            quotation_service.change_status(quotation.id, "accepted", actor=salesperson)

    def test_converted_only_through_conversion(self, salesperson, widget):
        quotation = _quotation(salesperson, {"product_id": widget.id, "quantity": 1})
        _accept(quotation.id, salesperson)
        with pytest.raises(QuotationError):
            quotation_service.change_status(quotation.id, "converted", actor=salesperson)

    def test_revision_round_trip(self, salesperson, widget):
        quotation = _quotation(salesperson, {"product_id": widget.id, "quantity": 1})
        quotation_service.change_status(quotation.id, "sent", actor=salesperson)
        quotation = quotation_service.change_status(quotation.id, "revision", actor=salesperson)
        assert quotation.status == "revision"

        quotation = quotation_service.update_quotation(quotation.id, {"preparation_days": 3}, actor=salesperson)
        assert quotation.preparation_days == 3


# =============================================================================
# CONVERSION
# =============================================================================


class TestConversion:

    def test_must_be_accepted(self, salesperson, widget):
        quotation = _quotation(salesperson, {"product_id": widget.id, "quantity": 1})
        with pytest.raises(QuotationError):
            quotation_service.convert_to_order(quotation.id, actor=salesperson)

    def test_internal_items_become_one_order(self, salesperson, widget, gadget):
        quotation = _quotation(
            salesperson,
            {"product_id": widget.id, "quantity": 2, "price": "9.500"},
            {"product_id": gadget.id, "quantity": 1},
        )
        _accept(quotation.id, salesperson)

        order = quotation_service.convert_to_order(quotation.id, actor=salesperson)

        assert order.source_quotation_id == quotation.id
        assert order.total_amount == Decimal("44.000")
        assert order.primary_salesperson_id == salesperson.id
        assert order.customer_name == "Acme Trading"
        assert db.session.get(Product, widget.id).quantity_in_stock == 18
        assert db.session.get(Quotation, quotation.id).status == "converted"

    def test_order_conversion_needs_stock(self, salesperson, gadget):
        quotation = _quotation(salesperson, {"product_id": gadget.id, "quantity": 9})
        _accept(quotation.id, salesperson)

        with pytest.raises(ConflictError):
            quotation_service.convert_to_order(quotation.id, actor=salesperson)

        quotation = db.session.get(Quotation, quotation.id)
        assert quotation.status == "accepted"
        assert not quotation.items[0].converted
        assert db.session.query(Order).count() == 0

    def test_external_conversion_is_idempotent(self, salesperson, widget):
        quotation = _quotation(salesperson, EXTERNAL_VALVE, EXTERNAL_PUMP)
        _accept(quotation.id, salesperson)

        notices = quotation_service.convert_to_demand_notices(quotation.id, actor=salesperson)
        assert len(notices) == 2
        assert db.session.get(Quotation, quotation.id).status == "converted"

        with pytest.raises(QuotationError):
            quotation_service.convert_to_demand_notices(quotation.id, actor=salesperson)
        assert db.session.query(DemandNotice).count() == 2

    def test_mixed_quotation_converts_once_per_category(self, salesperson, widget):
        quotation = _quotation(salesperson, {"product_id": widget.id, "quantity": 1}, EXTERNAL_VALVE)
        _accept(quotation.id, salesperson)

        quotation_service.convert_to_demand_notices(quotation.id, actor=salesperson)
        assert db.session.get(Quotation, quotation.id).status == "accepted"

        # Nothing external left; no new notices
        with pytest.raises(QuotationError):
            quotation_service.convert_to_demand_notices(quotation.id, actor=salesperson)
        assert db.session.query(DemandNotice).count() == 1

        quotation_service.convert_to_order(quotation.id, actor=salesperson)
        assert db.session.get(Quotation, quotation.id).status == "converted"

        with pytest.raises(QuotationError):
            quotation_service.convert_to_order(quotation.id, actor=salesperson)
        assert db.session.query(Order).count() == 1

    def test_external_notice_details(self, salesperson, db_session):
        existing = Product(sku="PMP-9", name="Pump", price=Decimal("38.000"), quantity_in_stock=0)
        db.session.add(existing)
        db.session.commit()

        quotation = _quotation(salesperson, EXTERNAL_VALVE, EXTERNAL_PUMP)
        _accept(quotation.id, salesperson)
        valve, pump = quotation_service.convert_to_demand_notices(quotation.id, actor=salesperson)

        assert valve.status == "awaiting_stock"
        assert valve.is_new_product is True
        assert valve.customer_contact_number == "555-0199"
        assert valve.source_quotation_id == quotation.id
        assert valve.notes.startswith(f"Created from Quotation: {quotation.document_number}.")
        assert len(valve.notes) <= 250
        assert db.session.get(Product, valve.product_id).sku.startswith("EXT")

        # sku match reuses the catalog product
        assert pump.is_new_product is False
        assert pump.product_id == existing.id

    def test_delete_detaches_documents(self, salesperson, manager, widget):
        quotation = _quotation(salesperson, {"product_id": widget.id, "quantity": 1})
        _accept(quotation.id, salesperson)
        order = quotation_service.convert_to_order(quotation.id, actor=salesperson)

        quotation_service.delete_quotation(quotation.id, actor=manager)

        assert db.session.get(Quotation, quotation.id) is None
        db.session.expire_all()
        assert db.session.get(Order, order.id).source_quotation_id is None
