# Overview: Flask API routes for the platform console and plan gating; parses input and returns JSON responses.

# backend/duka/routes/platform.py
"""
Platform routes.

- /api/platform/admin/...: super admin console (organizations and the
  module, feature, footer link and onboarding configuration tables)
- /api/platform/enabled: modules and features enabled for the caller's
  organization plan
- /api/platform/public/...: unauthenticated reads of active footer links
  and onboarding content
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import Organization
from ..extensions import db
from ..services import platform_service
from ..services.platform_service import NotFoundError, CONFIG_RESOURCES
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_org, require_super_admin

platform_bp = Blueprint("platform", __name__, url_prefix="/api/platform")


# =============================================================================
# PUBLIC
# =============================================================================

@platform_bp.get("/public/footer-links")
def public_footer_links():
    links = platform_service.public_footer_links()
    return jsonify({"footer_links": [link.to_dict() for link in links]})


@platform_bp.get("/public/onboarding")
def public_onboarding():
    content = platform_service.public_onboarding_content()
    return jsonify({"onboarding": [c.to_dict() for c in content]})


# =============================================================================
# PLAN GATING
# =============================================================================

@platform_bp.get("/enabled")
@require_auth
@require_org
def enabled_for_org():
    org = db.session.get(Organization, g.org_id)
    return jsonify({
        "organization_id": org.id,
        "subscription_plan": org.subscription_plan,
        "modules": [m.to_dict() for m in platform_service.enabled_modules_for_org(org)],
        "features": [f.to_dict() for f in platform_service.enabled_features_for_org(org)],
    })


# =============================================================================
# SUPER ADMIN CONSOLE
# =============================================================================

@platform_bp.get("/admin/organizations")
@require_auth
@require_super_admin
def list_organizations():
    orgs = platform_service.list_organizations_with_counts()
    return jsonify({"organizations": orgs, "count": len(orgs)})


@platform_bp.patch("/admin/organizations/<int:org_id>")
@require_auth
@require_super_admin
def update_organization(org_id: int):
    """
    Request body: {"is_active": bool} and/or {"subscription_plan": str}
    """
    data = request.get_json(silent=True) or {}
    if "is_active" not in data and "subscription_plan" not in data:
        return jsonify({"error": "is_active or subscription_plan required"}), 400

    try:
        if "is_active" in data:
            if not isinstance(data["is_active"], bool):
                raise ValidationError("is_active must be a boolean")
            org = platform_service.set_organization_active(org_id, data["is_active"])
        if "subscription_plan" in data:
            org = platform_service.change_organization_plan(org_id, data["subscription_plan"])
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    current_app.logger.info(
        "Organization %s updated by super admin %s: %s", org_id, g.current_user.id, sorted(data)
    )
    return jsonify({"organization": org.to_dict()})


def _check_resource(resource: str):
    if resource not in CONFIG_RESOURCES:
        return jsonify({"error": f"Unknown resource: {resource}"}), 404
    return None


@platform_bp.get("/admin/<resource>")
@require_auth
@require_super_admin
def list_config(resource: str):
    """resource: modules, features, footer-links, onboarding"""
    missing = _check_resource(resource)
    if missing:
        return missing
    rows = platform_service.list_config(resource)
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})


@platform_bp.post("/admin/<resource>")
@require_auth
@require_super_admin
def create_config(resource: str):
    missing = _check_resource(resource)
    if missing:
        return missing
    try:
        row = platform_service.create_config(resource, request.get_json(silent=True) or {})
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"item": row.to_dict()}), 201


@platform_bp.put("/admin/<resource>/<int:row_id>")
@require_auth
@require_super_admin
def update_config(resource: str, row_id: int):
    missing = _check_resource(resource)
    if missing:
        return missing
    try:
        row = platform_service.update_config(resource, row_id, request.get_json(silent=True) or {})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"item": row.to_dict()})


@platform_bp.delete("/admin/<resource>/<int:row_id>")
@require_auth
@require_super_admin
def delete_config(resource: str, row_id: int):
    missing = _check_resource(resource)
    if missing:
        return missing
    try:
        platform_service.delete_config(resource, row_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify({"ok": True})
