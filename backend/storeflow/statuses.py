# Overview: Closed status vocabularies for each workflow and their display labels.

"""
Workflow status types.

Every status column stores the enum's string value. Display text is produced in one
place (display_label) instead of string-munging status values at each call site.
"""

from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    SALESPERSON = "salesperson"
    STOREKEEPER = "storekeeper"
    CASHIER = "cashier"
    LOGISTICS = "logistics"
    AUDITOR = "auditor"
    EXPRESS = "express"


class DemandNoticeStatus(str, Enum):
    PENDING_REVIEW = "pending_review"
    AWAITING_STOCK = "awaiting_stock"
    PARTIAL_STOCK_AVAILABLE = "partial_stock_available"
    FULL_STOCK_AVAILABLE = "full_stock_available"
    CUSTOMER_NOTIFIED_STOCK = "customer_notified_stock"
    AWAITING_CUSTOMER_ACTION = "awaiting_customer_action"
    ORDER_PROCESSING = "order_processing"
    PREPARING_STOCK = "preparing_stock"
    READY_FOR_COLLECTION = "ready_for_collection"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


class QuotationStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    REVISION = "revision"
    HOLD = "hold"
    CONVERTED = "converted"


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    PARTIAL_PAYMENT = "partial_payment"
    PAID = "paid"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class DeliveryStatus(str, Enum):
    PENDING_DISPATCH = "pending_dispatch"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"
    PICKUP_READY = "pickup_ready"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    ADVANCE_ON_DN = "advance_on_dn"


# =============================================================================
# WORKFLOW ORDERING
# =============================================================================

# Canonical display/sort order; not an enforced forward-only sequence.
DEMAND_NOTICE_WORKFLOW = (
    DemandNoticeStatus.PENDING_REVIEW,
    DemandNoticeStatus.AWAITING_STOCK,
    DemandNoticeStatus.PARTIAL_STOCK_AVAILABLE,
    DemandNoticeStatus.FULL_STOCK_AVAILABLE,
    DemandNoticeStatus.CUSTOMER_NOTIFIED_STOCK,
    DemandNoticeStatus.AWAITING_CUSTOMER_ACTION,
    DemandNoticeStatus.ORDER_PROCESSING,
    DemandNoticeStatus.PREPARING_STOCK,
    DemandNoticeStatus.READY_FOR_COLLECTION,
    DemandNoticeStatus.FULFILLED,
)

DEMAND_NOTICE_TERMINAL = frozenset({DemandNoticeStatus.FULFILLED, DemandNoticeStatus.CANCELLED})

# Statuses refreshed automatically from catalog stock levels
DEMAND_NOTICE_STOCK_TRACKED = frozenset({
    DemandNoticeStatus.PENDING_REVIEW,
    DemandNoticeStatus.AWAITING_STOCK,
    DemandNoticeStatus.PARTIAL_STOCK_AVAILABLE,
})

DEMAND_NOTICE_CONVERTIBLE = frozenset({
    DemandNoticeStatus.FULL_STOCK_AVAILABLE,
    DemandNoticeStatus.CUSTOMER_NOTIFIED_STOCK,
})

QUOTATION_TRANSITIONS = {
    QuotationStatus.DRAFT: frozenset({QuotationStatus.SENT}),
    QuotationStatus.SENT: frozenset({
        QuotationStatus.ACCEPTED,
        QuotationStatus.REJECTED,
        QuotationStatus.REVISION,
        QuotationStatus.HOLD,
    }),
    QuotationStatus.ACCEPTED: frozenset({QuotationStatus.HOLD, QuotationStatus.SENT}),
    QuotationStatus.HOLD: frozenset({
        QuotationStatus.SENT,
        QuotationStatus.ACCEPTED,
        QuotationStatus.REJECTED,
    }),
    QuotationStatus.REVISION: frozenset({QuotationStatus.SENT}),
    QuotationStatus.REJECTED: frozenset(),
    QuotationStatus.CONVERTED: frozenset(),
}

QUOTATION_EDITABLE = frozenset({QuotationStatus.DRAFT, QuotationStatus.REVISION})

# Orders whose value counts toward salesperson attributed sales
ORDER_SALES_COUNTED = frozenset({OrderStatus.PAID, OrderStatus.COMPLETED})

ORDER_PAYMENT_STATUSES = frozenset({OrderStatus.PENDING_PAYMENT, OrderStatus.PARTIAL_PAYMENT})

ORDER_RETURNABLE = frozenset({OrderStatus.PAID, OrderStatus.COMPLETED, OrderStatus.PARTIAL_PAYMENT})


# =============================================================================
# DISPLAY LABELS
# =============================================================================

_LABEL_OVERRIDES = {
    DemandNoticeStatus.CUSTOMER_NOTIFIED_STOCK: "Customer Notified (Stock)",
    OrderStatus.READY_FOR_PICKUP: "Ready for Pickup",
    DeliveryStatus.OUT_FOR_DELIVERY: "Out for Delivery",
    PaymentMethod.ADVANCE_ON_DN: "Advance on DN",
}


def display_label(
    status: Enum | str | None,
    *,
    quantity_fulfilled: int | None = None,
    quantity_requested: int | None = None,
) -> str:
    """
    Human label for any workflow status.

    partial_stock_available embeds "fulfilled/requested" when quantities are known.
    """
    if status is None:
        return "N/A"
    value = status.value if isinstance(status, Enum) else str(status)

    if value == DemandNoticeStatus.PARTIAL_STOCK_AVAILABLE.value:
        if quantity_fulfilled is not None and quantity_requested is not None:
            return f"Partial Stock ({quantity_fulfilled}/{quantity_requested})"
        return "Partial Stock"

    for enum_value, label in _LABEL_OVERRIDES.items():
        if enum_value.value == value:
            return label

    return " ".join(word.capitalize() for word in value.split("_"))


def spaced(value: Enum | str | None) -> str | None:
    """Status with underscores replaced by spaces (export format)."""
    if value is None:
        return None
    raw = value.value if isinstance(value, Enum) else str(value)
    return raw.replace("_", " ")
