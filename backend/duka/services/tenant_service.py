"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

SECURITY INVARIANTS:
1. Every authenticated organization request has g.org_id set
2. Row IDs from client input are validated against g.org_id
3. Queries touching tenant data filter by organization_id
4. Cross-tenant access attempts are logged as security events and
   reported as "not found" so other tenants' rows are never revealed

USAGE:
    from duka.services.tenant_service import require_in_org, scoped_query

    product = require_in_org(Product, product_id, g.org_id)
    employees = scoped_query(Employee).filter_by(status="active").all()
"""

from flask import g, has_request_context, request

from ..extensions import db
from ..models import Organization
from .permission_service import log_security_event


class TenantAccessError(Exception):
    """Raised when a row is missing or belongs to another organization."""
    pass


def get_current_org_id() -> int:
    """
    Current tenant's organization id from Flask g.

    Raises TenantAccessError if no organization context is set (for
    example a super admin session that has not entered an organization).
    """
    org_id = getattr(g, "org_id", None)
    if org_id is None:
        raise TenantAccessError("Tenant context not established")
    return org_id


def require_in_org(model, row_id: int, org_id: int, label: str | None = None):
    """
    Load a tenant-owned row and check it belongs to org_id.

    Raises TenantAccessError("<Label> not found") both when the row does
    not exist and when it belongs to another organization.
    """
    label = label or model.__name__
    row = db.session.get(model, row_id) if row_id is not None else None

    if not row:
        raise TenantAccessError(f"{label} not found")

    if row.organization_id != org_id:
        _log_cross_tenant_attempt(
            f"{label} {row_id} belongs to org {row.organization_id}, not {org_id}",
            org_id=org_id,
        )
        raise TenantAccessError(f"{label} not found")

    return row


def scoped_query(model, org_id: int | None = None):
    """Base query over a tenant-owned model, filtered to one organization."""
    if org_id is None:
        org_id = get_current_org_id()
    return db.session.query(model).filter(model.organization_id == org_id)


def validate_org_active(org_id: int) -> Organization:
    org = db.session.get(Organization, org_id)

    if not org:
        raise TenantAccessError("Organization not found")

    if not org.is_active:
        raise TenantAccessError("Organization is not active")

    return org


def _log_cross_tenant_attempt(reason: str, org_id: int | None = None) -> None:
    user = getattr(g, "current_user", None)
    user_id = user.id if user is not None else None

    in_request = has_request_context()
    log_security_event(
        user_id=user_id,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        resource=request.path if in_request else None,
        action=request.method if in_request else None,
        reason=reason,
        ip_address=request.remote_addr if in_request else None,
        user_agent=request.headers.get("User-Agent") if in_request else None,
        org_id=org_id,
    )
