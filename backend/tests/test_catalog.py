from decimal import Decimal

import pytest

from storeflow.services import catalog_service
from storeflow.validation import ConflictError, NotFoundError, ValidationError


class TestProducts:

    def test_create_requires_fields(self, db_session):
        with pytest.raises(ValidationError, match="Missing required fields: price"):
            catalog_service.create_product({"sku": "A-1", "name": "Anvil"})

    def test_rejects_unknown_fields(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_product({"sku": "A-1", "name": "Anvil", "price": "1", "colour": "red"})

    def test_low_stock_fields_travel_together(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_product({
                "sku": "A-1",
                "name": "Anvil",
                "price": "5",
                "low_stock_threshold": 2,
            })

    def test_sku_lookup_is_case_insensitive(self, widget):
        assert catalog_service.get_product_by_sku("wid-001").id == widget.id
        assert catalog_service.get_product_by_sku("") is None

    def test_duplicate_sku_on_update(self, widget, gadget):
        with pytest.raises(ConflictError):
            catalog_service.update_product(gadget.id, {"sku": "WID-001"})

    def test_update(self, widget):
        product = catalog_service.update_product(widget.id, {"price": "11.5", "expiry_date": "2025-06-30"})
        assert product.price == Decimal("11.500")
        assert product.to_dict()["expiry_date"] == "2025-06-30"

    def test_search(self, widget, gadget):
        assert [p.sku for p in catalog_service.list_products(search="gad")] == ["GAD-001"]
        assert len(catalog_service.list_products()) == 2


class TestStock:

    def test_receive_stock(self, widget):
        product = catalog_service.receive_stock(widget.id, 5)
        assert product.quantity_in_stock == 25

    @pytest.mark.parametrize("quantity", [0, -3, "2.5"])
    def test_receive_rejects_bad_quantity(self, widget, quantity):
        with pytest.raises(ValidationError):
            catalog_service.receive_stock(widget.id, quantity)

    def test_receive_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.receive_stock(404, 1)

    def test_stock_never_negative(self, gadget):
        with pytest.raises(ConflictError):
            catalog_service.adjust_stock(gadget, -6)
        assert gadget.quantity_in_stock == 5

    def test_placeholder_sku(self, db_session):
        product = catalog_service.create_placeholder_product(
            name="lamp shade",
            sku=None,
            price=Decimal("3"),
            category=catalog_service.DEMAND_NOTICE_CATEGORY,
            sku_prefix="NEW",
        )
        assert product.sku.startswith("NEW-LAM")
        assert product.quantity_in_stock == 0
        assert product.is_demand_notice_product
