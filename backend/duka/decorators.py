# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, permission_service
from .services.permission_service import PermissionDeniedError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'org_id')


def _is_super_admin() -> bool:
    return _is_authenticated() and bool(g.current_user.is_super_admin)


def _log_denial(event_type: str, action: str, reason: str) -> None:
    permission_service.log_security_event(
        user_id=g.current_user.id if hasattr(g, 'current_user') else None,
        event_type=event_type,
        success=False,
        resource=request.path,
        action=action,
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        org_id=getattr(g, 'org_id', None),
    )


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.org_id: The organization of the session (None only for a super admin
      session without an organization)
    - g.membership: The active membership in g.org_id, if any
    - g.session_context: The full SessionContext object

    Returns 401 for a missing, invalid, expired or idle token, a
    deactivated user or organization, and a revoked membership.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.org_id = context.org_id
        g.membership = context.membership
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_org(f):
    """
    Require an organization on the session.

    Only super admin sessions can lack one; they must pass an organization
    when logging in to use tenant routes.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if g.org_id is None:
            return jsonify({"error": "Organization context required"}), 400
        return f(*args, **kwargs)
    return decorated_function


def require_permission(permission_code: str):
    """
    Require a specific permission in the session's organization.

    Denials are written to security_events with the organization id.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if _is_super_admin():
                return f(*args, **kwargs)

            try:
                permission_service.require_permission(
                    user_id=g.current_user.id,
                    permission_code=permission_code,
                    org_id=g.org_id,
                    resource=request.path,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                    "message": str(e)
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_super_admin(f):
    """Require the authenticated user to be a platform super admin."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, 'current_user'):
            return jsonify({"error": "Authentication required"}), 401
        if not g.current_user.is_super_admin:
            _log_denial("SUPER_ADMIN_REQUIRED", request.method, "Super admin access required")
            return jsonify({"error": "Super admin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function
