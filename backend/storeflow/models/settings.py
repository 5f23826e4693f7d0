from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from storeflow.time_utils import to_utc_z, utcnow


class CommissionSetting(db.Model):
    """
    Singleton commission policy (row id 1).

    Commission accrues per whole commission_interval of attributed sales above
    sales_target, at commission_percentage of the interval.
    """
    __tablename__ = "commission_settings"

    id = db.Column(db.Integer, primary_key=True)
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    sales_target = db.Column(db.Numeric(12, 3), nullable=False, default=Decimal("0"))
    commission_interval = db.Column(db.Numeric(12, 3), nullable=False, default=Decimal("0"))
    commission_percentage = db.Column(db.Numeric(6, 3), nullable=False, default=Decimal("0"))
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "is_active": self.is_active,
            "sales_target": str(self.sales_target),
            "commission_interval": str(self.commission_interval),
            "commission_percentage": str(self.commission_percentage),
            "updated_at": to_utc_z(self.updated_at),
        }


class TaxSetting(db.Model):
    """Named tax applied to (subtotal - discount) of new orders while enabled."""
    __tablename__ = "tax_settings"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_tax_settings_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    rate = db.Column(db.Numeric(6, 3), nullable=False)
    enabled = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "rate": str(self.rate),
            "enabled": self.enabled,
        }
