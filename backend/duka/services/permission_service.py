# Overview: Role-based permission checks and the security event trail.

"""
Permission Checking and Security Event Logging

MULTI-TENANT: A user's permissions are those of the role on their
membership in the organization of the current session. The same user can
be a manager in one organization and a cashier in another.

DESIGN PRINCIPLES:
- Fail closed: deny by default, require explicit grant
- Log denials only: grants are not logged
- Super admins hold every permission in every organization
"""

from ..extensions import db
from ..models import (
    User,
    Role,
    RolePermission,
    Permission,
    SecurityEvent,
    OrganizationMembership,
)
from ..permissions import PERMISSION_DEFINITIONS, DEFAULT_ROLE_PERMISSIONS, get_all_permission_codes
from duka.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    org_id: int | None = None,
) -> SecurityEvent:
    """
    Append a security event.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGIN_SUCCESS
    - LOGOUT
    - SUPER_ADMIN_REQUIRED
    - CROSS_TENANT_ACCESS_DENIED
    """
    event = SecurityEvent(
        user_id=user_id,
        organization_id=org_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def list_security_events(org_id: int, *, event_type: str | None = None, limit: int = 100) -> list[SecurityEvent]:
    query = db.session.query(SecurityEvent).filter_by(organization_id=org_id)
    if event_type:
        query = query.filter(SecurityEvent.event_type == event_type)
    limit = max(1, min(limit, 500))
    return query.order_by(SecurityEvent.occurred_at.desc(), SecurityEvent.id.desc()).limit(limit).all()


def get_role_permissions(role_id: int) -> set[str]:
    rows = (
        db.session.query(Permission.code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id == role_id)
        .all()
    )
    return {row.code for row in rows}


def get_user_permissions(user_id: int, org_id: int | None) -> set[str]:
    """
    Permission codes of a user inside one organization.

    Returns every code for super admins, and an empty set when the user has
    no active membership in the organization.
    """
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        return set()

    if user.is_super_admin:
        return set(get_all_permission_codes())

    if org_id is None:
        return set()

    membership = db.session.query(OrganizationMembership).filter_by(
        user_id=user_id,
        organization_id=org_id,
        is_active=True,
    ).first()
    if not membership:
        return set()

    return get_role_permissions(membership.role_id)


def user_has_permission(user_id: int, permission_code: str, org_id: int | None) -> bool:
    return permission_code in get_user_permissions(user_id, org_id)


def require_permission(
    user_id: int,
    permission_code: str,
    org_id: int | None,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Require user to have permission, raise PermissionDeniedError if not.

    Denials are written to security_events with the organization.
    """
    if not user_has_permission(user_id, permission_code, org_id):
        log_security_event(
            user_id=user_id,
            event_type="PERMISSION_DENIED",
            success=False,
            resource=resource,
            action=permission_code,
            reason=f"Missing permission: {permission_code}",
            ip_address=ip_address,
            user_agent=user_agent,
            org_id=org_id,
        )
        raise PermissionDeniedError(f"Permission denied: {permission_code}")


def initialize_permissions() -> int:
    """
    Create Permission rows for every code in PERMISSION_DEFINITIONS.

    Idempotent. Returns the number created.
    """
    created_count = 0

    for code, name, description, category in PERMISSION_DEFINITIONS:
        existing = db.session.query(Permission).filter_by(code=code).first()

        if not existing:
            db.session.add(Permission(
                code=code,
                name=name,
                description=description,
                category=category,
            ))
            created_count += 1

    db.session.commit()
    return created_count


def assign_default_role_permissions(org_id: int) -> int:
    """
    Link the organization's roles to their DEFAULT_ROLE_PERMISSIONS.

    Idempotent: skips existing links. Returns the number created.
    """
    created_count = 0
    permissions = {p.code: p for p in db.session.query(Permission).all()}

    for role_name, permission_codes in DEFAULT_ROLE_PERMISSIONS.items():
        role = db.session.query(Role).filter_by(organization_id=org_id, name=role_name).first()
        if not role:
            continue

        existing = get_role_permissions(role.id)
        for permission_code in permission_codes:
            permission = permissions.get(permission_code)
            if not permission or permission_code in existing:
                continue
            db.session.add(RolePermission(role_id=role.id, permission_id=permission.id))
            created_count += 1

    db.session.commit()
    return created_count


def _role_and_permission(org_id: int, role_name: str, permission_code: str) -> tuple[Role, Permission]:
    role = db.session.query(Role).filter_by(organization_id=org_id, name=role_name).first()
    if not role:
        raise ValueError(f"Role '{role_name}' not found")

    permission = db.session.query(Permission).filter_by(code=permission_code).first()
    if not permission:
        raise ValueError(f"Permission '{permission_code}' not found")

    return role, permission


def grant_permission_to_role(org_id: int, role_name: str, permission_code: str) -> RolePermission:
    role, permission = _role_and_permission(org_id, role_name, permission_code)

    existing = db.session.query(RolePermission).filter_by(
        role_id=role.id,
        permission_id=permission.id,
    ).first()
    if existing:
        return existing

    role_permission = RolePermission(role_id=role.id, permission_id=permission.id)
    db.session.add(role_permission)
    db.session.commit()
    return role_permission


def revoke_permission_from_role(org_id: int, role_name: str, permission_code: str) -> bool:
    """Returns False if the permission was not granted in the first place."""
    role, permission = _role_and_permission(org_id, role_name, permission_code)

    if role.name == "business_owner":
        raise ValueError("Permissions of the business_owner role cannot be revoked")

    role_permission = db.session.query(RolePermission).filter_by(
        role_id=role.id,
        permission_id=permission.id,
    ).first()

    if role_permission:
        db.session.delete(role_permission)
        db.session.commit()
        return True

    return False


def list_roles_with_permissions(org_id: int) -> list[dict]:
    roles = db.session.query(Role).filter_by(organization_id=org_id).order_by(Role.id.asc()).all()
    result = []
    for role in roles:
        data = role.to_dict()
        data["permissions"] = sorted(get_role_permissions(role.id))
        result.append(data)
    return result
