from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from storeflow.statuses import QuotationStatus, display_label
from storeflow.time_utils import to_iso_date, to_utc_z, utcnow


class Quotation(db.Model):
    """
    Priced offer to a customer.

    LIFECYCLE:
    draft -> sent -> (accepted | rejected | revision | hold); accepted -> (hold | sent);
    hold -> (sent | accepted | rejected); revision -> sent.
    converted is reached only when every item has been converted.

    total_amount is a cached projection of the items, rewritten by
    recalculate_total() whenever items change; nothing else writes it.
    """
    __tablename__ = "quotations"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_quotations_document_number"),
        db.Index("ix_quotations_salesperson_status", "salesperson_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_number = db.Column(db.String(32), nullable=False)

    salesperson_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    salesperson_name = db.Column(db.String(64), nullable=False)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_address = db.Column(db.Text, nullable=True)

    preparation_days = db.Column(db.Integer, nullable=False, default=0)
    valid_until = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=QuotationStatus.DRAFT.value, index=True)
    total_amount = db.Column(db.Numeric(12, 3), nullable=False, default=Decimal("0"))
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "QuotationItem",
        backref="quotation",
        lazy=True,
        order_by="QuotationItem.position",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def quotation_status(self) -> QuotationStatus:
        return QuotationStatus(self.status)

    def recalculate_total(self) -> Decimal:
        self.total_amount = sum(
            (Decimal(item.price) * item.quantity for item in self.items),
            Decimal("0"),
        )
        return self.total_amount

    def pending_items(self, *, external: bool) -> list["QuotationItem"]:
        return [i for i in self.items if bool(i.is_external) == external and not i.converted]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "salesperson_id": self.salesperson_id,
            "salesperson_name": self.salesperson_name,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "customer_address": self.customer_address,
            "preparation_days": self.preparation_days,
            "valid_until": to_iso_date(self.valid_until),
            "status": self.status,
            "status_label": display_label(self.status),
            "total_amount": str(self.total_amount),
            "notes": self.notes,
            "items": [item.to_dict() for item in self.items],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class QuotationItem(db.Model):
    """
    Quotation line.

    Internal items reference a catalog product; external items are free text with
    no stock limit. converted flips to True once and never back.
    """
    __tablename__ = "quotation_items"
    __table_args__ = (
        db.Index("ix_quotation_items_quotation", "quotation_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quotation_id = db.Column(db.Integer, db.ForeignKey("quotations.id"), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=True)
    price = db.Column(db.Numeric(12, 3), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    is_external = db.Column(db.Boolean, nullable=False, default=False)
    converted = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "price": str(self.price),
            "quantity": self.quantity,
            "is_external": self.is_external,
            "converted": self.converted,
            "line_total": str(Decimal(self.price) * self.quantity),
        }
