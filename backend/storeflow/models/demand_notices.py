from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from storeflow.statuses import DemandNoticeStatus, display_label
from storeflow.time_utils import to_iso_date, to_utc_z, utcnow


class DemandNotice(db.Model):
    """
    Customer backorder request.

    WHY: Salespeople take advance payments for products that are out of stock or not
    yet in the catalog; the notice tracks the request until it becomes an order.

    LIFECYCLE (canonical order, not forward-only):
    pending_review -> awaiting_stock -> partial_stock_available -> full_stock_available
    -> customer_notified_stock -> awaiting_customer_action -> order_processing
    -> preparing_stock -> ready_for_collection -> fulfilled; cancelled from any
    non-terminal state.

    DESIGN:
    - product_id is null only until a placeholder product is linked
    - linked_order_id is set once when the notice is prepared into an order
    - version_id_col rejects concurrent writers (two conversions of one notice)
    """
    __tablename__ = "demand_notices"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_demand_notices_document_number"),
        db.Index("ix_demand_notices_status_created", "status", "created_at"),
        db.Index("ix_demand_notices_salesperson", "salesperson_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_number = db.Column(db.String(32), nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=True)
    is_new_product = db.Column(db.Boolean, nullable=False, default=False)

    customer_contact_number = db.Column(db.String(64), nullable=False)
    quantity_requested = db.Column(db.Integer, nullable=False)
    quantity_fulfilled = db.Column(db.Integer, nullable=False, default=0)
    agreed_price = db.Column(db.Numeric(12, 3), nullable=False)
    expected_availability_date = db.Column(db.Date, nullable=False)

    salesperson_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    salesperson_name = db.Column(db.String(64), nullable=False)

    status = db.Column(db.String(32), nullable=False, default=DemandNoticeStatus.PENDING_REVIEW.value, index=True)

    # Plain integer: orders.linked_demand_notice_id carries the foreign key
    linked_order_id = db.Column(db.Integer, nullable=True, index=True)
    source_quotation_id = db.Column(db.Integer, db.ForeignKey("quotations.id"), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product")
    payments = db.relationship(
        "Payment",
        backref="demand_notice",
        lazy=True,
        order_by="Payment.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def agreed_total(self) -> Decimal:
        return Decimal(self.agreed_price) * self.quantity_requested

    @property
    def total_advance_paid(self) -> Decimal:
        return sum((Decimal(p.amount) for p in self.payments), Decimal("0"))

    @property
    def notice_status(self) -> DemandNoticeStatus:
        return DemandNoticeStatus(self.status)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "is_new_product": self.is_new_product,
            "customer_contact_number": self.customer_contact_number,
            "quantity_requested": self.quantity_requested,
            "quantity_fulfilled": self.quantity_fulfilled,
            "agreed_price": str(self.agreed_price),
            "agreed_total": str(self.agreed_total),
            "total_advance_paid": str(self.total_advance_paid),
            "expected_availability_date": to_iso_date(self.expected_availability_date),
            "salesperson_id": self.salesperson_id,
            "salesperson_name": self.salesperson_name,
            "status": self.status,
            "status_label": display_label(
                self.status,
                quantity_fulfilled=self.quantity_fulfilled,
                quantity_requested=self.quantity_requested,
            ),
            "linked_order_id": self.linked_order_id,
            "source_quotation_id": self.source_quotation_id,
            "notes": self.notes,
            "payments": [p.to_dict() for p in self.payments],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
