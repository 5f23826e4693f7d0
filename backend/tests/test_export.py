"""
CSV export tests. The layout is consumed by spreadsheets, so rows are compared as
exact strings.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from storeflow.extensions import db
from storeflow.models import AttendanceLog, BreakLog, Order
from storeflow.services import export_service, order_service
from storeflow.services.commission_service import CommissionPolicy
from storeflow.services.reporting_service import ReportError


POLICY = CommissionPolicy(
    is_active=True,
    sales_target=Decimal("10"),
    commission_interval=Decimal("5"),
    commission_percentage=Decimal("10"),
)


@pytest.fixture
def dated_order(salesperson, cashier, widget):
    """Two widgets paid in cash, created 2024-01-05 09:15:00."""
    order = order_service.create_order({
        "primary_salesperson_id": salesperson.id,
        "items": [{"product_id": widget.id, "quantity": 2}],
        "customer_name": "Walk-in",
    }, actor=salesperson)
    order_service.add_payment(order.id, method="cash", amount="20", cashier=cashier)
    order = db.session.get(Order, order.id)
    order.created_at = datetime(2024, 1, 5, 9, 15, 0)
    db.session.commit()
    return order


class TestFormatting:

    @pytest.mark.parametrize(
        "value,expected",
        [
            (Decimal("1.005"), "1.01"),
            (Decimal("20"), "20.00"),
            (Decimal("-0.001"), "0.00"),
            (None, "0.00"),
        ],
    )
    def test_money(self, value, expected):
        assert export_service.money(value) == expected

    def test_csv_row_quotes_everything(self):
        assert export_service.csv_row([1, 'Say "hi"', None]) == '"1","Say ""hi""",""'

    @pytest.mark.parametrize(
        "duration_ms,ended,expected",
        [
            (3723000, True, "01:02:03"),
            (None, False, "Ongoing"),
            (0, True, "N/A"),
            (90000000, True, "01:00:00"),
        ],
    )
    def test_duration(self, duration_ms, ended, expected):
        assert export_service.fmt_duration(duration_ms, ended) == expected

    def test_filename(self):
        assert (
            export_service.export_filename(date(2024, 1, 1), date(2024, 1, 31))
            == "comprehensive_data_export_(20240101_to_20240131).csv"
        )
        assert export_service.export_filename(None, None) == "comprehensive_data_export_all_dates.csv"
        assert export_service.export_filename(date(2024, 1, 1), None) == "comprehensive_data_export_from_20240101.csv"


class TestSections:

    def test_sales_row(self, dated_order):
        body = export_service.export_csv(["sales"])
        header, row = body.split("\n")

        assert header == ",".join(export_service.SALES_HEADER)
        assert row == (
            '"INV-000001","01/05/2024","09:15:00","paid","pending dispatch","Walk-in","N/A","",'
            '"sam","N/A","casey","20.00","0.00","0.00%","0.00","20.00","20.00","0.00","cash",'
            '"20.00","0.00","0.00","0.00","2","Widget (x2)"'
        )

    def test_sections_follow_fixed_order(self, dated_order, salesperson, cashier, widget):
        body = export_service.export_csv(["users", "products", "sales"])
        sales, products, users = body.split("\n\n")

        assert sales.startswith("OrderID,")
        assert products.split("\n")[1] == (
            f'"{widget.id}","Widget","WID-001","10.00","18","Hardware","N/A","N/A","N/A","No"'
        )
        assert users.split("\n")[0] == "UserID,Username,Role,Permissions"
        assert f'"{salesperson.id}","sam","salesperson",""' in users.split("\n")

    def test_performance_uses_policy(self, dated_order, salesperson, second_salesperson):
        body = export_service.export_csv(["performance"], commission_setting=POLICY)
        lines = body.split("\n")

        assert lines[0] == ",".join(export_service.PERFORMANCE_HEADER)
        # 20 attributed: two whole intervals of 5 above the target of 10
        assert lines[1] == f'"{salesperson.id}","sam","1","20.00","1.00"'
        assert lines[2] == f'"{second_salesperson.id}","sara","0","0.00","0.00"'

    def test_attendance_and_breaks(self, salesperson):
        db.session.add(AttendanceLog(
            user_id=salesperson.id,
            timestamp=datetime(2024, 1, 5, 8, 1, 2),
            method="selfie",
            selfie_image_path="selfies/sam-0105.jpg",
        ))
        db.session.add(BreakLog(
            user_id=salesperson.id,
            start_time=datetime(2024, 1, 5, 12, 0, 0),
            end_time=datetime(2024, 1, 5, 13, 2, 3),
            duration_ms=3723000,
        ))
        db.session.add(BreakLog(user_id=salesperson.id, start_time=datetime(2024, 1, 5, 16, 0, 0)))
        db.session.commit()

        body = export_service.export_csv(["breaks", "attendance"], date(2024, 1, 5), date(2024, 1, 5))
        attendance, breaks = body.split("\n\n")

        assert attendance.split("\n")[1].endswith(
            f'"{salesperson.id}","sam","01/05/2024","08:01:02","selfie","selfies/sam-0105.jpg"'
        )
        closed, still_open = breaks.split("\n")[1:]
        assert closed.endswith('"01/05/2024","12:00:00","01/05/2024","13:02:03","01:02:03"')
        assert still_open.endswith('"01/05/2024","16:00:00","N/A","N/A","Ongoing"')

    def test_date_range_filters_orders(self, dated_order):
        with pytest.raises(ReportError):
            export_service.export_csv(["sales"], date(2024, 2, 1), date(2024, 2, 29))

        body = export_service.export_csv(["sales"], date(2024, 1, 5), date(2024, 1, 5))
        assert len(body.split("\n")) == 2


class TestExportErrors:

    def test_no_sections(self, db_session):
        with pytest.raises(ReportError):
            export_service.export_csv([])

    def test_unknown_section(self, db_session):
        with pytest.raises(ReportError):
            export_service.export_csv(["payroll"])

    def test_inverted_dates(self, db_session):
        with pytest.raises(ReportError):
            export_service.export_csv(["users"], date(2024, 2, 1), date(2024, 1, 1))

    def test_no_data(self, db_session):
        with pytest.raises(ReportError, match="No data available"):
            export_service.export_csv(["attendance", "breaks"])
