# Overview: Capability category constants for grouping related capabilities.


class PermissionCategory:
    """Capability categories for organization and UI display."""
    ADMINISTRATION = "ADMINISTRATION"
    SALES = "SALES"
    CATALOG = "CATALOG"
    REPORTING = "REPORTING"
    LOGISTICS = "LOGISTICS"
    AUDITS = "AUDITS"
    SUPPLY_CHAIN = "SUPPLY_CHAIN"
