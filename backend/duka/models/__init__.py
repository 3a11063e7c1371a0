from .tenancy import Organization, OrganizationMembership, SUBSCRIPTION_PLANS
from .auth import User, Role, Permission, RolePermission, SessionToken
from .security import SecurityEvent
from .inventory import (
    Product,
    ProductStock,
    StockAdjustment,
    StockAuditLogEntry,
    DocumentSequence,
    STOCK_STATUSES,
    STOCK_STATUS_LABELS,
    ADJUSTMENT_TYPES,
)
from .sales import Sale, SaleItem, PAYMENT_METHODS
from .payroll import Employee, PayrollRun, Payslip
from .platform import ModuleConfig, FeatureConfig, FooterLink, OnboardingContent

__all__ = [
    'Organization', 'OrganizationMembership', 'SUBSCRIPTION_PLANS',
    'User', 'Role', 'Permission', 'RolePermission', 'SessionToken',
    'SecurityEvent',
    'Product', 'ProductStock', 'StockAdjustment', 'StockAuditLogEntry', 'DocumentSequence',
    'STOCK_STATUSES', 'STOCK_STATUS_LABELS', 'ADJUSTMENT_TYPES',
    'Sale', 'SaleItem', 'PAYMENT_METHODS',
    'Employee', 'PayrollRun', 'Payslip',
    'ModuleConfig', 'FeatureConfig', 'FooterLink', 'OnboardingContent',
]
