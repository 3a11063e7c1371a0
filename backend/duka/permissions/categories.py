# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    PAYROLL = "PAYROLL"
    USERS = "USERS"
    ORGANIZATION = "ORGANIZATION"
    REPORTS = "REPORTS"

    ALL = (INVENTORY, SALES, PAYROLL, USERS, ORGANIZATION, REPORTS)
