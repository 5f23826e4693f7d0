# Overview: Central authorization rules; every mutating service and route asks can().

"""
Authorization

WHY: Routes and services ask one table of actions instead of testing roles inline.

MODEL:
- admin: every action
- manager: actions unlocked by the capabilities granted on the user record
- other roles: fixed built-ins (permissions/roles.py) plus role rules below
- ownership: some actions are open to the salesperson who owns the document

can(user, action, resource=None) never raises; require() raises
PermissionDeniedError and is called before payload validation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from ..permissions import MANAGER_ASSIGNABLE_PERMISSIONS, ROLE_BUILTIN_PERMISSIONS, get_all_permission_codes
from ..statuses import DemandNoticeStatus, QuotationStatus, UserRole, DEMAND_NOTICE_TERMINAL


class PermissionDeniedError(Exception):
    """Raised when a user attempts an action they are not allowed to perform."""

    def __init__(self, action: str, message: str | None = None):
        self.action = action
        super().__init__(message or f"Not allowed to {action.replace('_', ' ')}")


@dataclass(frozen=True)
class StatusChange:
    """Resource for status-change actions: the document and the requested target."""
    document: Any
    target: str


# Transitions a salesperson may apply to their own demand notice
SALESPERSON_DEMAND_NOTICE_TRANSITIONS = frozenset({
    (DemandNoticeStatus.PENDING_REVIEW, DemandNoticeStatus.CANCELLED),
    (DemandNoticeStatus.AWAITING_STOCK, DemandNoticeStatus.CANCELLED),
    (DemandNoticeStatus.FULL_STOCK_AVAILABLE, DemandNoticeStatus.CUSTOMER_NOTIFIED_STOCK),
})

# Fulfilment steps a storekeeper takes once the notice has become an order
STOREKEEPER_DEMAND_NOTICE_TRANSITIONS = frozenset({
    (DemandNoticeStatus.ORDER_PROCESSING, DemandNoticeStatus.PREPARING_STOCK),
    (DemandNoticeStatus.PREPARING_STOCK, DemandNoticeStatus.READY_FOR_COLLECTION),
})

QUOTATION_OWNER_DELETABLE = frozenset({QuotationStatus.DRAFT, QuotationStatus.REJECTED})


def get_user_permissions(user) -> set[str]:
    """Resolve the effective capability set for a user."""
    if user is None or not user.is_active:
        return set()
    role = UserRole(user.role)
    if role == UserRole.ADMIN:
        return set(get_all_permission_codes())
    if role == UserRole.MANAGER:
        return {p for p in (user.permissions or []) if p in MANAGER_ASSIGNABLE_PERMISSIONS}
    return set(ROLE_BUILTIN_PERMISSIONS.get(role, frozenset()))


def has_permission(user, capability: str) -> bool:
    return capability in get_user_permissions(user)


def _role(user) -> UserRole:
    return UserRole(user.role)


def _is_admin(user) -> bool:
    return _role(user) == UserRole.ADMIN


def _owns(user, document) -> bool:
    return document is not None and getattr(document, "salesperson_id", None) == user.id


def _any_capability(*codes: str) -> Callable:
    def rule(user, resource) -> bool:
        perms = get_user_permissions(user)
        return any(code in perms for code in codes)
    return rule


def _roles_or_capability(roles: set[UserRole], *codes: str) -> Callable:
    def rule(user, resource) -> bool:
        if _role(user) in roles:
            return True
        return _any_capability(*codes)(user, resource)
    return rule


def _self_or_capability(code: str) -> Callable:
    """resource is the target user id (report subject)."""
    def rule(user, resource) -> bool:
        if resource is not None and int(resource) == user.id:
            return True
        return has_permission(user, code)
    return rule


def _demand_notice_status_rule(user, resource: StatusChange) -> bool:
    if resource is None:
        return False
    notice = resource.document
    current = DemandNoticeStatus(notice.status)
    target = DemandNoticeStatus(resource.target)

    # Leaving a terminal state is an admin-only correction
    if current in DEMAND_NOTICE_TERMINAL and target != current:
        return _is_admin(user)

    if (current, target) in STOREKEEPER_DEMAND_NOTICE_TRANSITIONS:
        if not notice.linked_order_id:
            return _is_admin(user)
        if _role(user) == UserRole.STOREKEEPER:
            return True

    if has_permission(user, "manage_demand_notices"):
        return True
    if not _owns(user, notice):
        return False
    if target == DemandNoticeStatus.CANCELLED:
        return True
    return (current, target) in SALESPERSON_DEMAND_NOTICE_TRANSITIONS


def _quotation_owner_or_staff(user, quotation) -> bool:
    if _role(user) in {UserRole.ADMIN, UserRole.MANAGER}:
        return True
    return _role(user) == UserRole.SALESPERSON and _owns(user, quotation)


def _quotation_delete_rule(user, quotation) -> bool:
    if _role(user) in {UserRole.ADMIN, UserRole.MANAGER}:
        return True
    return (
        _role(user) == UserRole.SALESPERSON
        and _owns(user, quotation)
        and QuotationStatus(quotation.status) in QUOTATION_OWNER_DELETABLE
    )


_SALES_FLOOR = {UserRole.SALESPERSON, UserRole.ADMIN, UserRole.MANAGER}

ACTION_RULES: dict[str, Callable] = {
    # Demand notices
    "create_demand_notice": _roles_or_capability(_SALES_FLOOR, "manage_demand_notices"),
    "record_demand_notice_payment": _roles_or_capability({UserRole.CASHIER}, "manage_orders", "manage_demand_notices"),
    "update_demand_notice_status": _demand_notice_status_rule,
    "prepare_order_from_demand_notice": _any_capability("manage_demand_notices", "manage_orders"),
    "sync_demand_notice_stock": _any_capability("manage_demand_notices", "manage_products", "receive_stock"),
    # Quotations
    "create_quotation": lambda user, resource: _role(user) in _SALES_FLOOR,
    "edit_quotation": _quotation_owner_or_staff,
    "change_quotation_status": _quotation_owner_or_staff,
    "convert_quotation": _quotation_owner_or_staff,
    "delete_quotation": _quotation_delete_rule,
    # Orders
    "create_order": _roles_or_capability({UserRole.SALESPERSON, UserRole.EXPRESS}, "manage_orders", "express_checkout"),
    "record_order_payment": _roles_or_capability({UserRole.CASHIER, UserRole.EXPRESS}, "manage_orders"),
    "update_order_status": _roles_or_capability({UserRole.STOREKEEPER}, "manage_orders"),
    "update_delivery_status": _roles_or_capability({UserRole.LOGISTICS}, "manage_logistics", "manage_orders"),
    "transfer_order": _any_capability("manage_orders"),
    "delete_order": _any_capability("manage_orders"),
    "process_return": _any_capability("manage_returns"),
    # Catalog
    "manage_products": _any_capability("manage_products"),
    "receive_stock": _any_capability("receive_stock", "manage_products"),
    # Reporting
    "view_shift_summary": _self_or_capability("view_reports"),
    "view_salesperson_report": _self_or_capability("view_salesperson_reports"),
    "export_data": _any_capability("view_reports"),
    "view_activity_logs": _any_capability("view_activity_logs"),
    # Administration
    "manage_users": _any_capability("manage_users"),
    "manage_settings": _any_capability("manage_settings"),
}


def can(user, action: str, resource: Any = None) -> bool:
    """Return True when user may perform action on resource."""
    if user is None or not user.is_active:
        return False
    rule = ACTION_RULES.get(action)
    if rule is None:
        return False
    if _is_admin(user):
        return True
    return bool(rule(user, resource))


def require(user, action: str, resource: Any = None) -> None:
    if not can(user, action, resource):
        raise PermissionDeniedError(action)
