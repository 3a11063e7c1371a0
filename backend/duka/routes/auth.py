# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/duka/routes/auth.py
"""
Authentication API routes

- Business sign-up creates the owner account and its organization
- Login picks the organization for the session (default: the user's first
  active membership); switching organization means logging in again
- Session management with token-based auth
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..models import Organization
from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..services.auth_service import PasswordValidationError
from ..services.session_service import SessionError
from ..validation import coerce_int, ValidationError
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, token: str, message: str) -> dict:
    permissions = sorted(permission_service.get_user_permissions(user.id, session.organization_id))
    org = db.session.get(Organization, session.organization_id) if session.organization_id else None
    return {
        "user": user.to_dict(),
        "permissions": permissions,
        "token": token,
        "session": session.to_dict(),
        "org_id": session.organization_id,
        "organization": org.to_dict() if org else None,
        "message": message,
    }


@auth_bp.post("/register")
def register_route():
    """
    Sign up a business: creates the owner account and the organization,
    then logs the owner in.

    Request body:
    {
        "username": "...", "email": "...", "password": "...",
        "full_name": "...", "phone": "...",
        "business_name": "...", "business_type": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""
    business_name = (data.get("business_name") or "").strip()

    if not all([username, email, password, business_name]):
        return jsonify({"error": "username, email, password and business_name required"}), 400

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

    org = auth_service.create_organization(
        name=business_name,
        business_type=data.get("business_type"),
        owner_user_id=user.id,
    )

    session, token = session_service.create_session(
        user_id=user.id,
        organization_id=org.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify(_session_payload(user, session, token, "Registration successful")), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body: {"username" | "email": "...", "password": "...", "organization_id": 1 (optional)}

    Token must be included in Authorization header for protected routes.
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username") or data.get("email")
    password = data.get("password")

    if not all([username, password]):
        return jsonify({"error": "username/email and password required"}), 400

    organization_id = data.get("organization_id")
    if organization_id is not None:
        try:
            organization_id = coerce_int("organization_id", organization_id)
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400

    user_agent = request.headers.get("User-Agent")
    ip_address = request.remote_addr

    user = auth_service.authenticate(username, password)
    if not user:
        permission_service.log_security_event(
            user_id=None,
            event_type="LOGIN_FAILED",
            success=False,
            resource=request.path,
            action="LOGIN",
            reason=f"Invalid credentials for {username}",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return jsonify({"error": "Invalid credentials"}), 401

    try:
        session, token = session_service.create_session(
            user_id=user.id,
            organization_id=organization_id,
            user_agent=user_agent,
            ip_address=ip_address,
        )
    except SessionError as e:
        return jsonify({"error": str(e)}), 403

    permission_service.log_security_event(
        user_id=user.id,
        event_type="LOGIN_SUCCESS",
        success=True,
        resource=request.path,
        action="LOGIN",
        ip_address=ip_address,
        user_agent=user_agent,
        org_id=session.organization_id,
    )
    current_app.logger.info("Login: user=%s org=%s", user.id, session.organization_id)

    return jsonify(_session_payload(user, session, token, "Login successful")), 200


@auth_bp.post("/logout")
def logout_route():
    """Revoke session token (logout). Expects Authorization header: Bearer <token>."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return jsonify({"error": "Authorization header required"}), 401

    token = auth_header.split(" ", 1)[1]

    if not session_service.revoke_session(token, reason="User logout"):
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """
    Current user, permission codes in the session's organization and the
    user's active memberships (for the organization switcher).
    """
    user = g.current_user
    memberships = [
        {**m.to_dict(), "organization": m.organization.to_dict()}
        for m in auth_service.get_active_memberships(user.id)
    ]
    org = db.session.get(Organization, g.org_id) if g.org_id else None

    return jsonify({
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(user.id, g.org_id)),
        "org_id": g.org_id,
        "organization": org.to_dict() if org else None,
        "role": g.membership.role.name if g.membership else None,
        "memberships": memberships,
    }), 200
