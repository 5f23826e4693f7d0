# Overview: Comprehensive CSV export (sales, attendance, breaks, performance, products, users).

"""
CSV Export

Output format (consumed by spreadsheet templates, keep byte-for-byte stable):
- each section is its header line (plain, comma-joined) followed by data rows
- every data cell is double-quoted with embedded quotes doubled; a missing value is ""
- rows are joined with "\\n", sections with "\\n\\n"; empty sections are left out
- money is fixed to 2 decimals, dates MM/dd/yyyy, times HH:mm:ss
- sections always appear in SECTION_ORDER, whatever order they were requested in
"""

from __future__ import annotations

import csv
import io
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from ..extensions import db
from ..models import AttendanceLog, BreakLog, Order, Product, User
from ..statuses import UserRole, spaced
from .commission_service import CommissionPolicy, calculate_commission
from .order_service import latest_payment, payment_summary
from .reporting_service import ReportError
from storeflow.time_utils import end_of_day, start_of_day, to_iso_date


SECTION_ORDER = ("sales", "attendance", "breaks", "performance", "products", "users")

SALES_HEADER = (
    "OrderID", "OrderDate", "OrderTime", "OrderStatus", "DeliveryStatus",
    "CustomerName", "CustomerPhone", "DeliveryAddress",
    "PrimarySalespersonName", "SecondarySalespersonName", "CashierName",
    "Subtotal_OMR", "DiscountAmount_OMR", "AppliedDiscountPercentage", "TotalTax_OMR", "TotalAmount_OMR",
    "TotalPaid_OMR", "RemainingBalance_OMR", "PaymentMethods",
    "PaidBy_Cash_OMR", "PaidBy_Card_OMR", "PaidBy_BankTransfer_OMR", "PaidBy_AdvanceOnDN_OMR",
    "ItemCount", "ItemSummary",
)
ATTENDANCE_HEADER = ("LogID", "UserID", "Username", "Date", "Time", "Method", "SelfieImagePath")
BREAKS_HEADER = ("LogID", "UserID", "Username", "StartDate", "StartTime", "EndDate", "EndTime", "DurationFormatted")
PERFORMANCE_HEADER = (
    "SalespersonID", "SalespersonName", "TotalOrdersContributed",
    "TotalAttributedSalesValue_OMR", "PotentialCommission_OMR",
)
PRODUCTS_HEADER = (
    "ProductID", "ProductName", "SKU", "Price_OMR", "QuantityInStock", "Category",
    "ExpiryDate", "LowStockThreshold", "LowStockPrice_OMR", "IsDemandNoticeProduct",
)
USERS_HEADER = ("UserID", "Username", "Role", "Permissions")

NA = "N/A"
CENT = Decimal("0.01")


# =============================================================================
# CELL FORMATTING
# =============================================================================

def money(value) -> str:
    amount = Decimal(value or 0).quantize(CENT, rounding=ROUND_HALF_UP)
    if amount == 0:
        amount = abs(amount)
    return f"{amount:.2f}"


def fmt_date(moment: datetime) -> str:
    return moment.strftime("%m/%d/%Y")


def fmt_time(moment: datetime) -> str:
    return moment.strftime("%H:%M:%S")


def fmt_duration(duration_ms: Optional[int], ended: bool) -> str:
    """HH:MM:SS of a break; hours wrap at a day. Open breaks are Ongoing."""
    if not duration_ms:
        return NA if ended else "Ongoing"
    total_seconds = int(duration_ms) // 1000
    hours = (total_seconds // 3600) % 24
    minutes = (total_seconds // 60) % 60
    seconds = total_seconds % 60
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def csv_row(values: Iterable) -> str:
    buffer = io.StringIO()
    csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n").writerow(list(values))
    return buffer.getvalue()[:-1]


def _section(header: tuple, rows: list[list]) -> Optional[str]:
    if not rows:
        return None
    return "\n".join([",".join(header)] + [csv_row(row) for row in rows])


def _date_filter(query, column, start_date: Optional[date], end_date: Optional[date]):
    if start_date is not None:
        query = query.filter(column >= start_of_day(start_date))
    if end_date is not None:
        query = query.filter(column <= end_of_day(end_date))
    return query


# =============================================================================
# SECTIONS
# =============================================================================

def _orders_in_range(start_date, end_date) -> list[Order]:
    query = _date_filter(db.session.query(Order), Order.created_at, start_date, end_date)
    return query.order_by(Order.created_at, Order.id).all()


def _sales_rows(orders: list[Order]) -> list[list]:
    rows = []
    for order in orders:
        summary = payment_summary(order.payments)
        last = latest_payment(order.payments)
        item_count = sum(item.quantity for item in order.items)
        item_summary = "; ".join(f"{item.name} (x{item.quantity})" for item in order.items) or NA
        percentage = Decimal(order.applied_discount_percentage or 0)
        rows.append([
            order.document_number or NA,
            fmt_date(order.created_at),
            fmt_time(order.created_at),
            spaced(order.status),
            spaced(order.delivery_status) if order.delivery_status else NA,
            order.customer_name or NA,
            order.customer_phone or NA,
            order.delivery_address or "",
            order.primary_salesperson_name or NA,
            order.secondary_salesperson_name or NA,
            (last.cashier_name if last else None) or NA,
            money(order.subtotal),
            money(order.discount_amount),
            f"{money(percentage)}%",
            money(order.total_tax),
            money(order.total_amount),
            money(summary["total_paid"]),
            money(Decimal(order.total_amount) - summary["total_paid"]),
            "; ".join(summary["methods_used"]),
            money(summary["cash"]),
            money(summary["card"]),
            money(summary["bank_transfer"]),
            money(summary["advance_on_dn"]),
            item_count,
            item_summary,
        ])
    return rows


def _usernames() -> dict[int, str]:
    return {u.id: u.username for u in db.session.query(User).all()}


def _attendance_rows(start_date, end_date) -> list[list]:
    names = _usernames()
    query = _date_filter(db.session.query(AttendanceLog), AttendanceLog.timestamp, start_date, end_date)
    rows = []
    for log in query.order_by(AttendanceLog.timestamp, AttendanceLog.id).all():
        rows.append([
            log.id,
            log.user_id,
            names.get(log.user_id, NA),
            fmt_date(log.timestamp),
            fmt_time(log.timestamp),
            log.method or NA,
            log.selfie_image_path or NA,
        ])
    return rows


def _break_rows(start_date, end_date) -> list[list]:
    names = _usernames()
    query = _date_filter(db.session.query(BreakLog), BreakLog.start_time, start_date, end_date)
    rows = []
    for log in query.order_by(BreakLog.start_time, BreakLog.id).all():
        rows.append([
            log.id,
            log.user_id,
            names.get(log.user_id, NA),
            fmt_date(log.start_time),
            fmt_time(log.start_time),
            fmt_date(log.end_time) if log.end_time else NA,
            fmt_time(log.end_time) if log.end_time else NA,
            fmt_duration(log.duration_ms, log.end_time is not None),
        ])
    return rows


def _performance_rows(orders: list[Order], commission_setting: Optional[CommissionPolicy]) -> list[list]:
    """
    One row per salesperson over every order in range, paid or not.

    A primary contribution always counts; a secondary one only with a positive split.
    """
    salespeople = (
        db.session.query(User)
        .filter(User.role == UserRole.SALESPERSON.value)
        .order_by(User.id)
        .all()
    )
    rows = []
    for person in salespeople:
        contributed = 0
        attributed = Decimal("0")
        for order in orders:
            total = Decimal(order.total_amount or 0)
            if order.primary_salesperson_id == person.id:
                contributed += 1
                fraction = order.primary_salesperson_commission
                attributed += total * Decimal(str(1.0 if fraction is None else fraction))
            elif order.secondary_salesperson_id == person.id:
                fraction = order.secondary_salesperson_commission or 0.0
                if fraction > 0:
                    contributed += 1
                attributed += total * Decimal(str(fraction))
        rows.append([
            person.id,
            person.username,
            contributed,
            money(attributed),
            money(calculate_commission(attributed, commission_setting)),
        ])
    return rows


def _product_rows() -> list[list]:
    rows = []
    for product in db.session.query(Product).order_by(Product.id).all():
        rows.append([
            product.id,
            product.name,
            product.sku,
            money(product.price),
            product.quantity_in_stock,
            product.category or NA,
            to_iso_date(product.expiry_date) or NA,
            product.low_stock_threshold if product.low_stock_threshold is not None else NA,
            money(product.low_stock_price) if product.low_stock_price is not None else NA,
            "Yes" if product.is_demand_notice_product else "No",
        ])
    return rows


def _user_rows() -> list[list]:
    return [
        [user.id, user.username, user.role, "; ".join(user.permissions or [])]
        for user in db.session.query(User).order_by(User.id).all()
    ]


# =============================================================================
# ENTRY POINT
# =============================================================================

def export_csv(
    sections: Iterable[str],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    commission_setting: Optional[CommissionPolicy] = None,
) -> str:
    """
    Build the export for the requested sections.

    Date filters are inclusive whole days on each record's timestamp (orders by
    created_at, attendance by timestamp, breaks by start_time). Products and users
    are not date filtered. Raises ReportError when nothing would be exported.
    """
    requested = set(sections or [])
    if not requested:
        raise ReportError("Select at least one data section to export")
    unknown = requested - set(SECTION_ORDER)
    if unknown:
        raise ReportError(f"Unknown export sections: {', '.join(sorted(unknown))}")
    if start_date and end_date and end_date < start_date:
        raise ReportError("end_date must not be before start_date")

    orders = None
    if requested & {"sales", "performance"}:
        orders = _orders_in_range(start_date, end_date)

    parts = []
    for name in SECTION_ORDER:
        if name not in requested:
            continue
        if name == "sales":
            part = _section(SALES_HEADER, _sales_rows(orders))
        elif name == "attendance":
            part = _section(ATTENDANCE_HEADER, _attendance_rows(start_date, end_date))
        elif name == "breaks":
            part = _section(BREAKS_HEADER, _break_rows(start_date, end_date))
        elif name == "performance":
            part = _section(PERFORMANCE_HEADER, _performance_rows(orders, commission_setting))
        elif name == "products":
            part = _section(PRODUCTS_HEADER, _product_rows())
        else:
            part = _section(USERS_HEADER, _user_rows())
        if part is not None:
            parts.append(part)

    if not parts:
        raise ReportError("No data available for the selected sections and date range")
    return "\n\n".join(parts)


def export_filename(start_date: Optional[date], end_date: Optional[date]) -> str:
    if start_date and end_date:
        suffix = f"_({start_date:%Y%m%d}_to_{end_date:%Y%m%d})"
    elif start_date:
        suffix = f"_from_{start_date:%Y%m%d}"
    elif end_date:
        suffix = f"_until_{end_date:%Y%m%d}"
    else:
        suffix = "_all_dates"
    return f"comprehensive_data_export{suffix}.csv"
