from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from storeflow.statuses import DeliveryStatus, OrderStatus, display_label
from storeflow.time_utils import to_utc_z, utcnow


class Order(db.Model):
    """
    Customer order (invoice).

    STATUS: pending_payment -> partial_payment -> paid -> preparing ->
    ready_for_pickup -> completed; cancelled and returned are side exits.
    delivery_status moves independently.

    ATTRIBUTION:
    primary_salesperson_commission + secondary_salesperson_commission == 1 whenever a
    secondary salesperson is set; otherwise the primary carries 1.

    PAYMENTS:
    remaining_balance = total_amount - total_paid and may go negative (overpayment is
    surfaced, never rejected).
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_orders_document_number"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        db.Index("ix_orders_primary_salesperson", "primary_salesperson_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_number = db.Column(db.String(32), nullable=False)

    subtotal = db.Column(db.Numeric(12, 3), nullable=False, default=Decimal("0"))
    discount_amount = db.Column(db.Numeric(12, 3), nullable=False, default=Decimal("0"))
    applied_discount_percentage = db.Column(db.Numeric(6, 3), nullable=True)
    total_amount = db.Column(db.Numeric(12, 3), nullable=False, default=Decimal("0"))

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)
    delivery_address = db.Column(db.Text, nullable=True)

    primary_salesperson_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    primary_salesperson_name = db.Column(db.String(64), nullable=False)
    primary_salesperson_commission = db.Column(db.Float, nullable=False, default=1.0)
    secondary_salesperson_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    secondary_salesperson_name = db.Column(db.String(64), nullable=True)
    secondary_salesperson_commission = db.Column(db.Float, nullable=False, default=0.0)

    status = db.Column(db.String(32), nullable=False, default=OrderStatus.PENDING_PAYMENT.value, index=True)
    delivery_status = db.Column(db.String(32), nullable=False, default=DeliveryStatus.PENDING_DISPATCH.value)

    reminder_date = db.Column(db.DateTime(timezone=True), nullable=True)
    reminder_notes = db.Column(db.Text, nullable=True)

    linked_demand_notice_id = db.Column(db.Integer, db.ForeignKey("demand_notices.id"), nullable=True, index=True)
    source_quotation_id = db.Column(db.Integer, db.ForeignKey("quotations.id"), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship("OrderItem", backref="order", lazy=True, order_by="OrderItem.id", cascade="all, delete-orphan")
    taxes = db.relationship("OrderTax", backref="order", lazy=True, order_by="OrderTax.id", cascade="all, delete-orphan")
    payments = db.relationship("Payment", backref="order", lazy=True, order_by="Payment.id", cascade="all, delete-orphan")
    return_transactions = db.relationship(
        "ReturnTransaction",
        backref="order",
        lazy=True,
        order_by="ReturnTransaction.id",
        cascade="all, delete-orphan",
    )
    linked_demand_notice = db.relationship("DemandNotice", foreign_keys=[linked_demand_notice_id])

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def order_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def total_tax(self) -> Decimal:
        return sum((Decimal(t.amount) for t in self.taxes), Decimal("0"))

    @property
    def total_paid(self) -> Decimal:
        return sum((Decimal(p.amount) for p in self.payments), Decimal("0"))

    @property
    def remaining_balance(self) -> Decimal:
        return Decimal(self.total_amount) - self.total_paid

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "items": [item.to_dict() for item in self.items],
            "subtotal": str(self.subtotal),
            "discount_amount": str(self.discount_amount),
            "applied_discount_percentage": (
                str(self.applied_discount_percentage) if self.applied_discount_percentage is not None else None
            ),
            "taxes": [t.to_dict() for t in self.taxes],
            "total_amount": str(self.total_amount),
            "total_paid": str(self.total_paid),
            "remaining_balance": str(self.remaining_balance),
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "delivery_address": self.delivery_address,
            "primary_salesperson_id": self.primary_salesperson_id,
            "primary_salesperson_name": self.primary_salesperson_name,
            "primary_salesperson_commission": self.primary_salesperson_commission,
            "secondary_salesperson_id": self.secondary_salesperson_id,
            "secondary_salesperson_name": self.secondary_salesperson_name,
            "secondary_salesperson_commission": self.secondary_salesperson_commission,
            "status": self.status,
            "status_label": display_label(self.status),
            "delivery_status": self.delivery_status,
            "delivery_status_label": display_label(self.delivery_status),
            "payments": [p.to_dict() for p in self.payments],
            "return_transactions": [r.to_dict() for r in self.return_transactions],
            "reminder_date": to_utc_z(self.reminder_date),
            "reminder_notes": self.reminder_notes,
            "linked_demand_notice_id": self.linked_demand_notice_id,
            "source_quotation_id": self.source_quotation_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = (
        db.Index("ix_order_items_order", "order_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    price_per_unit = db.Column(db.Numeric(12, 3), nullable=False)
    total_price = db.Column(db.Numeric(12, 3), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "quantity": self.quantity,
            "price_per_unit": str(self.price_per_unit),
            "total_price": str(self.total_price),
        }


class OrderTax(db.Model):
    __tablename__ = "order_taxes"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    amount = db.Column(db.Numeric(12, 3), nullable=False)

    def to_dict(self) -> dict:
        return {"name": self.name, "amount": str(self.amount)}


class ReturnTransaction(db.Model):
    """
    One return against an order.

    total_value_of_returned_items = sum(quantity_returned * price_per_unit) and must
    equal the refund payments within 0.005 (enforced in return_service).
    """
    __tablename__ = "return_transactions"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    total_value_of_returned_items = db.Column(db.Numeric(12, 3), nullable=False)
    reason = db.Column(db.Text, nullable=True)
    processed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    processed_by_name = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    items = db.relationship("ReturnItem", backref="return_transaction", lazy=True, cascade="all, delete-orphan")
    refunds = db.relationship("RefundPayment", backref="return_transaction", lazy=True, cascade="all, delete-orphan")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "total_value_of_returned_items": str(self.total_value_of_returned_items),
            "reason": self.reason,
            "processed_by_user_id": self.processed_by_user_id,
            "processed_by_name": self.processed_by_name,
            "items": [i.to_dict() for i in self.items],
            "refunds": [r.to_dict() for r in self.refunds],
            "created_at": to_utc_z(self.created_at),
        }


class ReturnItem(db.Model):
    __tablename__ = "return_items"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    return_transaction_id = db.Column(db.Integer, db.ForeignKey("return_transactions.id"), nullable=False, index=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey("order_items.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    quantity_returned = db.Column(db.Integer, nullable=False)
    price_per_unit = db.Column(db.Numeric(12, 3), nullable=False)

    def to_dict(self) -> dict:
        return {
            "order_item_id": self.order_item_id,
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "quantity_returned": self.quantity_returned,
            "price_per_unit": str(self.price_per_unit),
        }


class RefundPayment(db.Model):
    __tablename__ = "refund_payments"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    return_transaction_id = db.Column(db.Integer, db.ForeignKey("return_transactions.id"), nullable=False, index=True)
    method = db.Column(db.String(32), nullable=False)
    amount = db.Column(db.Numeric(12, 3), nullable=False)
    refund_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cashier_name = db.Column(db.String(64), nullable=True)

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "amount": str(self.amount),
            "refund_date": to_utc_z(self.refund_date, millis=True),
            "cashier_id": self.cashier_id,
            "cashier_name": self.cashier_name,
        }
