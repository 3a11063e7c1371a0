# Overview: Default permission sets for the roles created with every organization.

from .definitions import PERMISSION_DEFINITIONS


DEFAULT_ROLES = [
    ("business_owner", "Full access to the organization"),
    ("manager", "Inventory, sales, payroll and member management"),
    ("staff", "Day-to-day inventory and sales"),
    ("cashier", "Point of sale only"),
]

DEFAULT_ROLE_PERMISSIONS = {
    "business_owner": [perm[0] for perm in PERMISSION_DEFINITIONS],
    "manager": [
        "VIEW_INVENTORY",
        "MANAGE_PRODUCTS",
        "ADJUST_STOCK",
        "VIEW_STOCK_AUDIT",
        "CREATE_SALE",
        "VIEW_SALES",
        "INITIATE_PAYMENT",
        "VIEW_EMPLOYEES",
        "MANAGE_EMPLOYEES",
        "VIEW_PAYROLL",
        "PROCESS_PAYROLL",
        "VIEW_USERS",
        "MANAGE_USERS",
        "VIEW_ORGANIZATION",
        "EXPORT_REPORTS",
    ],
    "staff": [
        "VIEW_INVENTORY",
        "ADJUST_STOCK",
        "VIEW_STOCK_AUDIT",
        "CREATE_SALE",
        "VIEW_SALES",
        "VIEW_ORGANIZATION",
    ],
    "cashier": [
        "VIEW_INVENTORY",
        "CREATE_SALE",
        "VIEW_SALES",
        "INITIATE_PAYMENT",
        "VIEW_ORGANIZATION",
    ],
}
