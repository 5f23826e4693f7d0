# Overview: All capability definitions organized by category.
# Each capability is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- ADMINISTRATION --

ADMINISTRATION_PERMISSIONS = [
    (
        "view_admin_dashboard",
        "View Admin Dashboard",
        "Open the administrative overview",
        PermissionCategory.ADMINISTRATION,
    ),
    (
        "manage_users",
        "Manage Users",
        "Create users, change roles and manager capabilities",
        PermissionCategory.ADMINISTRATION,
    ),
    (
        "manage_settings",
        "Manage Settings",
        "Edit commission and tax settings",
        PermissionCategory.ADMINISTRATION,
    ),
    (
        "view_activity_logs",
        "View Activity Logs",
        "Read attendance, break and workflow activity",
        PermissionCategory.ADMINISTRATION,
    ),
    (
        "manage_cloud_files",
        "Manage Cloud Files",
        "Manage uploaded documents",
        PermissionCategory.ADMINISTRATION,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "manage_orders",
        "Manage Orders",
        "Edit, transfer, delete orders and record payments",
        PermissionCategory.SALES,
    ),
    (
        "manage_demand_notices",
        "Manage Demand Notices",
        "Set any demand notice status and convert notices to orders",
        PermissionCategory.SALES,
    ),
    (
        "manage_returns",
        "Manage Returns",
        "Process order returns and refunds",
        PermissionCategory.SALES,
    ),
    (
        "express_checkout",
        "Express Checkout",
        "Use the express point-of-sale flow",
        PermissionCategory.SALES,
    ),
]


# -- CATALOG --

CATALOG_PERMISSIONS = [
    (
        "manage_products",
        "Manage Products",
        "Create and edit catalog products",
        PermissionCategory.CATALOG,
    ),
    (
        "manage_labels",
        "Manage Labels",
        "Print product labels",
        PermissionCategory.CATALOG,
    ),
]


# -- REPORTING --

REPORTING_PERMISSIONS = [
    (
        "view_reports",
        "View Reports",
        "View sales reports and export CSV data",
        PermissionCategory.REPORTING,
    ),
    (
        "view_salesperson_reports",
        "View Salesperson Reports",
        "View any salesperson's performance and commission",
        PermissionCategory.REPORTING,
    ),
]


# -- LOGISTICS --

LOGISTICS_PERMISSIONS = [
    (
        "manage_logistics",
        "Manage Logistics",
        "Update order delivery status",
        PermissionCategory.LOGISTICS,
    ),
]


# -- AUDITS --

AUDIT_PERMISSIONS = [
    (
        "manage_audits",
        "Manage Audits",
        "Create and assign stock audits",
        PermissionCategory.AUDITS,
    ),
    (
        "conduct_audits",
        "Conduct Audits",
        "Perform assigned stock audits",
        PermissionCategory.AUDITS,
    ),
]


# -- SUPPLY CHAIN --

SUPPLY_CHAIN_PERMISSIONS = [
    (
        "manage_suppliers",
        "Manage Suppliers",
        "Maintain the supplier list",
        PermissionCategory.SUPPLY_CHAIN,
    ),
    (
        "create_pos",
        "Create Purchase Orders",
        "Draft purchase orders",
        PermissionCategory.SUPPLY_CHAIN,
    ),
    (
        "approve_pos",
        "Approve Purchase Orders",
        "Approve purchase orders",
        PermissionCategory.SUPPLY_CHAIN,
    ),
    (
        "receive_stock",
        "Receive Stock",
        "Book incoming stock into the catalog",
        PermissionCategory.SUPPLY_CHAIN,
    ),
]


PERMISSION_DEFINITIONS = (
    ADMINISTRATION_PERMISSIONS
    + SALES_PERMISSIONS
    + CATALOG_PERMISSIONS
    + REPORTING_PERMISSIONS
    + LOGISTICS_PERMISSIONS
    + AUDIT_PERMISSIONS
    + SUPPLY_CHAIN_PERMISSIONS
)
