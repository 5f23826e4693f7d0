from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from storeflow.time_utils import to_iso_date, to_utc_z, utcnow


class Product(db.Model):
    """
    Catalog product.

    SKU is globally unique but mutable. Stock is a plain counter mutated by order
    fulfillment, returns and stock receiving.

    LOW-STOCK PRICING:
    low_stock_threshold and low_stock_price are set together (validation.py
    enforce_rules_product). When stock falls to the threshold the lower price applies.

    PLACEHOLDERS:
    Demand notices for new products and external quotation items create products with
    zero stock and is_demand_notice_product=True so they can be received later.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)

    price = db.Column(db.Numeric(12, 3), nullable=False, default=Decimal("0"))
    quantity_in_stock = db.Column(db.Integer, nullable=False, default=0)

    low_stock_threshold = db.Column(db.Integer, nullable=True)
    low_stock_price = db.Column(db.Numeric(12, 3), nullable=True)

    expiry_date = db.Column(db.Date, nullable=True)
    is_demand_notice_product = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def effective_price(self) -> Decimal:
        if (
            self.low_stock_threshold is not None
            and self.low_stock_price is not None
            and self.low_stock_price > 0
            and self.quantity_in_stock <= self.low_stock_threshold
        ):
            return self.low_stock_price
        return self.price

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "price": str(self.price),
            "effective_price": str(self.effective_price),
            "quantity_in_stock": self.quantity_in_stock,
            "low_stock_threshold": self.low_stock_threshold,
            "low_stock_price": str(self.low_stock_price) if self.low_stock_price is not None else None,
            "expiry_date": to_iso_date(self.expiry_date),
            "is_demand_notice_product": self.is_demand_notice_product,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
