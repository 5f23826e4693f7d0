# Overview: Built-in capabilities per role.

"""
Role capability model.

- admin holds every capability.
- manager holds exactly the capabilities granted on the user record; the grantable
  set is MANAGER_ASSIGNABLE_PERMISSIONS (every defined capability).
- every other role has a fixed built-in set and ignores stored permissions.
"""

from ..statuses import UserRole
from .helpers import get_all_permission_codes


MANAGER_ASSIGNABLE_PERMISSIONS = frozenset(get_all_permission_codes())

ROLE_BUILTIN_PERMISSIONS = {
    UserRole.SALESPERSON: frozenset(),
    UserRole.STOREKEEPER: frozenset({"receive_stock"}),
    UserRole.CASHIER: frozenset(),
    UserRole.LOGISTICS: frozenset(),
    UserRole.AUDITOR: frozenset({"conduct_audits"}),
    UserRole.EXPRESS: frozenset({"express_checkout"}),
}
