# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View products and stock by status",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create and edit products",
        PermissionCategory.INVENTORY,
    ),
    (
        "ADJUST_STOCK",
        "Adjust Stock",
        "Create stock adjustments (damage, repair, scrap, receive, ...)",
        PermissionCategory.INVENTORY,
    ),
    (
        "VIEW_STOCK_AUDIT",
        "View Stock Audit Log",
        "View stock adjustments and the stock audit trail",
        PermissionCategory.INVENTORY,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "CREATE_SALE",
        "Create Sale",
        "Ring up sales at the point of sale",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_SALES",
        "View Sales",
        "View sales history and sale details",
        PermissionCategory.SALES,
    ),
    (
        "INITIATE_PAYMENT",
        "Initiate Payment",
        "Start mobile-money payment requests",
        PermissionCategory.SALES,
    ),
]


# -- PAYROLL --

PAYROLL_PERMISSIONS = [
    (
        "VIEW_EMPLOYEES",
        "View Employees",
        "View employee records",
        PermissionCategory.PAYROLL,
    ),
    (
        "MANAGE_EMPLOYEES",
        "Manage Employees",
        "Create and edit employee records and salaries",
        PermissionCategory.PAYROLL,
    ),
    (
        "VIEW_PAYROLL",
        "View Payroll",
        "Preview payroll and view processed payroll runs",
        PermissionCategory.PAYROLL,
    ),
    (
        "PROCESS_PAYROLL",
        "Process Payroll",
        "Process a payroll run and write payslips",
        PermissionCategory.PAYROLL,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "VIEW_USERS",
        "View Users",
        "View organization members and roles",
        PermissionCategory.USERS,
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Add members, change member roles and deactivate members",
        PermissionCategory.USERS,
    ),
    (
        "MANAGE_ROLES",
        "Manage Roles",
        "Grant and revoke role permissions",
        PermissionCategory.USERS,
    ),
]


# -- ORGANIZATION --

ORGANIZATION_PERMISSIONS = [
    (
        "VIEW_ORGANIZATION",
        "View Organization",
        "View organization profile and enabled features",
        PermissionCategory.ORGANIZATION,
    ),
    (
        "MANAGE_ORGANIZATION",
        "Manage Organization",
        "Edit organization profile",
        PermissionCategory.ORGANIZATION,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        "EXPORT_REPORTS",
        "Export Reports",
        "Download CSV exports (payroll reports, stock, sales)",
        PermissionCategory.REPORTS,
    ),
    (
        "VIEW_SECURITY_EVENTS",
        "View Security Events",
        "View the security audit trail of the organization",
        PermissionCategory.REPORTS,
    ),
]


PERMISSION_DEFINITIONS = (
    INVENTORY_PERMISSIONS
    + SALES_PERMISSIONS
    + PAYROLL_PERMISSIONS
    + USER_PERMISSIONS
    + ORGANIZATION_PERMISSIONS
    + REPORT_PERMISSIONS
)
