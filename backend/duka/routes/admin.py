# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/duka/routes/admin.py
"""
Admin routes for members, roles and permissions of the caller's organization.

Provides endpoints for:
- Member management (list, add, change role, deactivate)
- Role management (list roles with permissions, grant, revoke)
- Permission catalog and the security event trail

All endpoints require authentication, an organization context and the
permission named on each route.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..models import User, OrganizationMembership
from ..services import auth_service, session_service, permission_service
from ..services.auth_service import PasswordValidationError, MembershipError
from ..decorators import require_auth, require_org, require_permission
from ..permissions import PERMISSION_DEFINITIONS, PermissionCategory, get_permissions_by_category

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _member_dict(membership: OrganizationMembership) -> dict:
    return {**membership.user.to_dict(), "membership": membership.to_dict()}


# =============================================================================
# MEMBER MANAGEMENT
# =============================================================================

@admin_bp.get("/members")
@require_auth
@require_org
@require_permission("VIEW_USERS")
def list_members():
    """
    List members of the caller's organization.

    Query params:
    - include_inactive: bool (default false) - include deactivated memberships
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"

    query = (
        db.session.query(OrganizationMembership)
        .join(User, User.id == OrganizationMembership.user_id)
        .filter(OrganizationMembership.organization_id == g.org_id)
    )
    if not include_inactive:
        query = query.filter(OrganizationMembership.is_active.is_(True))

    members = [_member_dict(m) for m in query.order_by(User.username).all()]
    return jsonify({"members": members, "count": len(members)})


@admin_bp.post("/members")
@require_auth
@require_org
@require_permission("MANAGE_USERS")
def add_member():
    """
    Add a member with a role.

    An existing account is matched by email; otherwise username and
    password are required and the account is created.

    Request body:
    - email: str (required)
    - role: str (required)
    - username: str, password: str, full_name: str, phone: str (new accounts)
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    role_name = data.get("role")

    if not email or not role_name:
        return jsonify({"error": "email and role required"}), 400
    if role_name == "business_owner":
        return jsonify({"error": "The business_owner role cannot be assigned"}), 400

    user = db.session.query(User).filter_by(email=email).first()
    created = False
    if not user:
        username = data.get("username")
        password = data.get("password")
        if not all([username, password]):
            return jsonify({"error": "username and password required for a new account"}), 400
        try:
            user = auth_service.create_user(
                username,
                email,
                password,
                full_name=data.get("full_name"),
                phone=data.get("phone"),
            )
        except PasswordValidationError as e:
            return jsonify({"error": str(e)}), 400
        except ValueError as e:
            return jsonify({"error": str(e)}), 409
        created = True

    try:
        membership = auth_service.add_member(organization_id=g.org_id, user_id=user.id, role_name=role_name)
    except MembershipError as e:
        return jsonify({"error": str(e)}), 409 if "already a member" in str(e) else 400

    current_app.logger.info("Member %s added to org %s by user %s", user.id, g.org_id, g.current_user.id)
    return jsonify({"member": _member_dict(membership), "user_created": created}), 201


@admin_bp.put("/members/<int:user_id>/role")
@require_auth
@require_org
@require_permission("MANAGE_USERS")
def change_member_role(user_id: int):
    data = request.get_json(silent=True) or {}
    role_name = data.get("role")
    if not role_name:
        return jsonify({"error": "role required"}), 400

    try:
        membership = auth_service.change_member_role(organization_id=g.org_id, user_id=user_id, role_name=role_name)
    except MembershipError as e:
        status = 404 if str(e) == "Membership not found" else 400
        return jsonify({"error": str(e)}), status

    return jsonify({"member": _member_dict(membership)})


@admin_bp.post("/members/<int:user_id>/deactivate")
@require_auth
@require_org
@require_permission("MANAGE_USERS")
def deactivate_member(user_id: int):
    """
    Remove a member from the organization. The member's sessions are
    revoked; the account itself stays active for other organizations.
    """
    if user_id == g.current_user.id:
        return jsonify({"error": "You cannot deactivate your own membership"}), 400

    try:
        membership = auth_service.deactivate_member(organization_id=g.org_id, user_id=user_id)
    except MembershipError as e:
        status = 404 if str(e) == "Membership not found" else 400
        return jsonify({"error": str(e)}), status

    session_service.revoke_all_user_sessions(user_id, reason=f"Membership in org {g.org_id} deactivated")
    return jsonify({"member": _member_dict(membership)})


# =============================================================================
# ROLES AND PERMISSIONS
# =============================================================================

@admin_bp.get("/roles")
@require_auth
@require_org
@require_permission("VIEW_USERS")
def list_roles():
    roles = permission_service.list_roles_with_permissions(g.org_id)
    return jsonify({"roles": roles, "count": len(roles)})


@admin_bp.get("/permissions")
@require_auth
@require_org
@require_permission("VIEW_USERS")
def list_permissions():
    """Permission catalog, flat and grouped by category."""
    permissions = [
        {"code": code, "name": name, "description": desc, "category": category}
        for code, name, desc, category in PERMISSION_DEFINITIONS
    ]
    return jsonify({
        "permissions": permissions,
        "by_category": {
            category: [perm[0] for perm in get_permissions_by_category(category)]
            for category in PermissionCategory.ALL
        },
        "count": len(permissions),
    })


@admin_bp.post("/roles/<role_name>/permissions")
@require_auth
@require_org
@require_permission("MANAGE_ROLES")
def grant_permission(role_name: str):
    data = request.get_json(silent=True) or {}
    code = data.get("permission_code")
    if not code:
        return jsonify({"error": "permission_code required"}), 400

    try:
        permission_service.grant_permission_to_role(g.org_id, role_name, code)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"role": role_name, "permission_code": code, "granted": True}), 201


@admin_bp.delete("/roles/<role_name>/permissions/<permission_code>")
@require_auth
@require_org
@require_permission("MANAGE_ROLES")
def revoke_permission(role_name: str, permission_code: str):
    try:
        revoked = permission_service.revoke_permission_from_role(g.org_id, role_name, permission_code)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if not revoked:
        return jsonify({"error": "Permission not granted to role"}), 404
    return jsonify({"role": role_name, "permission_code": permission_code, "revoked": True})


@admin_bp.get("/security-events")
@require_auth
@require_org
@require_permission("VIEW_SECURITY_EVENTS")
def list_security_events():
    """
    Query params:
    - event_type: str (optional)
    - limit: int (default 100, max 500)
    """
    event_type = request.args.get("event_type")
    limit = max(1, min(request.args.get("limit", 100, type=int), 500))
    events = permission_service.list_security_events(g.org_id, event_type=event_type, limit=limit)
    return jsonify({"events": [e.to_dict() for e in events], "count": len(events)})
