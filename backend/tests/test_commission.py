"""
Commission calculator tests.

Only whole intervals above the target earn; the trailing partial interval earns
nothing, and a missing or inactive policy always yields zero.
"""

from decimal import Decimal

import pytest

from storeflow.services.commission_service import CommissionPolicy, calculate_commission


POLICY = CommissionPolicy(
    is_active=True,
    sales_target=Decimal("1000"),
    commission_interval=Decimal("500"),
    commission_percentage=Decimal("10"),
)


@pytest.mark.parametrize(
    "sales,expected",
    [
        ("0", "0"),
        ("999", "0"),
        ("1000", "0"),
        ("1499", "0"),
        ("1499.999", "0"),
        ("1500", "50"),
        ("1999", "50"),
        ("2000", "100"),
        ("2499", "100"),
        ("2500", "150"),
    ],
)
def test_step_function(sales, expected):
    assert calculate_commission(Decimal(sales), POLICY) == Decimal(expected)


def test_partial_interval_earns_nothing():
    # 1.998 intervals above target still pays exactly one
    assert calculate_commission(Decimal("1999"), POLICY) == Decimal("50")


@pytest.mark.parametrize("sales", ["0", "1500", "1000000"])
def test_inactive_policy_pays_nothing(sales):
    inactive = CommissionPolicy(
        is_active=False,
        sales_target=Decimal("1000"),
        commission_interval=Decimal("500"),
        commission_percentage=Decimal("10"),
    )
    assert calculate_commission(Decimal(sales), inactive) == 0
    assert calculate_commission(Decimal(sales), None) == 0


def test_zero_interval_pays_nothing():
    policy = CommissionPolicy(
        is_active=True,
        sales_target=Decimal("0"),
        commission_interval=Decimal("0"),
        commission_percentage=Decimal("10"),
    )
    assert calculate_commission(Decimal("5000"), policy) == 0


def test_policy_from_missing_setting():
    assert CommissionPolicy.from_setting(None) is None
