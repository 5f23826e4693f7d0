# Overview: Commission policy value object and the step-function commission calculator.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


ZERO = Decimal("0")


@dataclass(frozen=True)
class CommissionPolicy:
    """
    Immutable snapshot of the commission setting.

    Callers load it once (settings_service.get_commission_policy) and pass it in, so
    every calculation in a report uses the same policy.
    """
    is_active: bool
    sales_target: Decimal
    commission_interval: Decimal
    commission_percentage: Decimal

    @classmethod
    def from_setting(cls, setting) -> Optional["CommissionPolicy"]:
        if setting is None:
            return None
        return cls(
            is_active=bool(setting.is_active),
            sales_target=Decimal(setting.sales_target),
            commission_interval=Decimal(setting.commission_interval),
            commission_percentage=Decimal(setting.commission_percentage),
        )


def calculate_commission(attributed_sales, setting: Optional[CommissionPolicy]) -> Decimal:
    """
    Commission earned on attributed sales.

    Only whole commission intervals above the sales target earn; each interval earns
    interval * percentage / 100 and the trailing partial interval earns nothing.
    Returns 0 for a missing or inactive policy and never raises.
    """
    if setting is None or not setting.is_active:
        return ZERO

    sales = Decimal(attributed_sales)
    target = Decimal(setting.sales_target)
    interval = Decimal(setting.commission_interval)

    if sales <= target or interval <= 0:
        return ZERO

    intervals = int((sales - target) // interval)
    if intervals <= 0:
        return ZERO

    per_interval = interval * (Decimal(setting.commission_percentage) / Decimal("100"))
    return intervals * per_interval
