# Overview: Service-layer operations for commission and tax settings.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import CommissionSetting, TaxSetting
from ..validation import NotFoundError, ValidationError, to_money
from .commission_service import CommissionPolicy


COMMISSION_SETTING_ID = 1


class SettingsError(ValidationError):
    """Raised for invalid settings updates."""
    pass


def get_commission_setting() -> CommissionSetting:
    """Return the singleton row, creating an inactive default on first use."""
    setting = db.session.get(CommissionSetting, COMMISSION_SETTING_ID)
    if setting is None:
        setting = CommissionSetting(
            id=COMMISSION_SETTING_ID,
            is_active=False,
            sales_target=Decimal("0"),
            commission_interval=Decimal("0"),
            commission_percentage=Decimal("0"),
        )
        db.session.add(setting)
        db.session.commit()
    return setting


def get_commission_policy() -> CommissionPolicy:
    return CommissionPolicy.from_setting(get_commission_setting())


def update_commission_setting(data: dict, *, updated_by_user_id: int | None = None) -> CommissionSetting:
    setting = get_commission_setting()

    if "is_active" in data:
        setting.is_active = bool(data["is_active"])
    if "sales_target" in data:
        setting.sales_target = to_money(data["sales_target"], "sales_target")
    if "commission_interval" in data:
        setting.commission_interval = to_money(data["commission_interval"], "commission_interval")
    if "commission_percentage" in data:
        percentage = to_money(data["commission_percentage"], "commission_percentage")
        if percentage > 100:
            raise SettingsError("commission_percentage must be between 0 and 100")
        setting.commission_percentage = percentage

    if setting.is_active and Decimal(setting.commission_interval) <= 0:
        raise SettingsError("commission_interval must be > 0 for an active commission setting")

    setting.updated_by_user_id = updated_by_user_id
    db.session.commit()
    return setting


def list_tax_settings(*, enabled_only: bool = False) -> list[TaxSetting]:
    query = db.session.query(TaxSetting)
    if enabled_only:
        query = query.filter(TaxSetting.enabled.is_(True))
    return query.order_by(TaxSetting.id).all()


def upsert_tax_setting(data: dict) -> TaxSetting:
    name = (data.get("name") or "").strip()
    if not name:
        raise SettingsError("name is required")
    rate = to_money(data.get("rate"), "rate")
    if rate > 100:
        raise SettingsError("rate must be between 0 and 100")

    tax = db.session.query(TaxSetting).filter_by(name=name).first()
    if tax is None:
        tax = TaxSetting(name=name)
        db.session.add(tax)
    tax.rate = rate
    tax.enabled = bool(data.get("enabled", True))
    db.session.commit()
    return tax


def delete_tax_setting(tax_id: int) -> None:
    tax = db.session.get(TaxSetting, tax_id)
    if tax is None:
        raise NotFoundError(f"Tax setting {tax_id} not found")
    db.session.delete(tax)
    db.session.commit()
