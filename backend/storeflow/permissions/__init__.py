# Overview: Capability system package.
# Re-exports the public API.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    ADMINISTRATION_PERMISSIONS,
    SALES_PERMISSIONS,
    CATALOG_PERMISSIONS,
    REPORTING_PERMISSIONS,
    LOGISTICS_PERMISSIONS,
    AUDIT_PERMISSIONS,
    SUPPLY_CHAIN_PERMISSIONS,
)
from .roles import MANAGER_ASSIGNABLE_PERMISSIONS, ROLE_BUILTIN_PERMISSIONS
from .helpers import (
    get_all_permission_codes,
    get_permissions_by_category,
    get_permission_definition,
    validate_permission_code,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "ADMINISTRATION_PERMISSIONS",
    "SALES_PERMISSIONS",
    "CATALOG_PERMISSIONS",
    "REPORTING_PERMISSIONS",
    "LOGISTICS_PERMISSIONS",
    "AUDIT_PERMISSIONS",
    "SUPPLY_CHAIN_PERMISSIONS",
    "MANAGER_ASSIGNABLE_PERMISSIONS",
    "ROLE_BUILTIN_PERMISSIONS",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permission_definition",
    "validate_permission_code",
]
