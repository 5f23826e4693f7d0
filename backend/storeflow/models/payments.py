from __future__ import annotations

from ..extensions import db
from storeflow.time_utils import to_utc_z, utcnow


class Payment(db.Model):
    """
    One entry in a document's payment trail.

    Belongs to exactly one of an Order or a DemandNotice. Immutable once recorded:
    there is no edit or delete path. Refunds issued by returns are stored on the
    ReturnTransaction, not here.

    cashier_id/cashier_name capture who physically took the money; the shift
    summary and "closed by" logic key on it.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint(
            "(order_id IS NOT NULL AND demand_notice_id IS NULL) OR "
            "(order_id IS NULL AND demand_notice_id IS NOT NULL)",
            name="ck_payments_single_owner",
        ),
        db.Index("ix_payments_cashier_date", "cashier_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    demand_notice_id = db.Column(db.Integer, db.ForeignKey("demand_notices.id"), nullable=True, index=True)

    # cash | card | bank_transfer | advance_on_dn
    method = db.Column(db.String(32), nullable=False)
    amount = db.Column(db.Numeric(12, 3), nullable=False)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    cashier_name = db.Column(db.String(64), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "demand_notice_id": self.demand_notice_id,
            "method": self.method,
            "amount": str(self.amount),
            "payment_date": to_utc_z(self.payment_date, millis=True),
            "cashier_id": self.cashier_id,
            "cashier_name": self.cashier_name,
        }
