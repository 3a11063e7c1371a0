# Overview: Super-admin platform console (organizations, plan-gated modules/features, public content).

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import (
    Organization,
    OrganizationMembership,
    ModuleConfig,
    FeatureConfig,
    FooterLink,
    OnboardingContent,
    SUBSCRIPTION_PLANS,
)
from ..validation import ValidationError, ConflictError


class PlatformError(Exception):
    """Raised for platform console errors."""
    pass


class NotFoundError(PlatformError):
    pass


# Model, unique key column, fields writable through the console.
CONFIG_RESOURCES = {
    "modules": (
        ModuleConfig,
        "module_key",
        {
            "module_key", "module_name", "description", "parent_module_id", "icon",
            "display_order", "is_active",
            "free_enabled", "basic_enabled", "premium_enabled", "enterprise_enabled",
        },
    ),
    "features": (
        FeatureConfig,
        "feature_key",
        {
            "feature_key", "feature_name", "description", "category",
            "free_enabled", "basic_enabled", "premium_enabled", "enterprise_enabled",
        },
    ),
    "footer-links": (
        FooterLink,
        None,
        {"title", "url", "category", "display_order", "is_active"},
    ),
    "onboarding": (
        OnboardingContent,
        "content_key",
        {"content_key", "title", "subtitle", "content", "image_url", "display_order", "is_active"},
    ),
}

_REQUIRED_ON_CREATE = {
    "modules": ("module_key", "module_name"),
    "features": ("feature_key", "feature_name"),
    "footer-links": ("title", "url"),
    "onboarding": ("content_key",),
}

_BOOL_FIELDS = {"is_active", "free_enabled", "basic_enabled", "premium_enabled", "enterprise_enabled"}
_INT_FIELDS = {"display_order", "parent_module_id"}


# -- Organizations --

def list_organizations_with_counts() -> list[dict]:
    counts = dict(
        db.session.query(OrganizationMembership.organization_id, func.count(OrganizationMembership.id))
        .filter(OrganizationMembership.is_active.is_(True))
        .group_by(OrganizationMembership.organization_id)
        .all()
    )
    orgs = db.session.query(Organization).order_by(Organization.created_at.desc(), Organization.id.desc()).all()
    return [{**org.to_dict(), "member_count": counts.get(org.id, 0)} for org in orgs]


def _get_organization(org_id: int) -> Organization:
    org = db.session.get(Organization, org_id)
    if not org:
        raise NotFoundError("Organization not found")
    return org


def set_organization_active(org_id: int, is_active: bool) -> Organization:
    org = _get_organization(org_id)
    org.is_active = bool(is_active)
    db.session.commit()
    return org


def change_organization_plan(org_id: int, plan: str) -> Organization:
    if plan not in SUBSCRIPTION_PLANS:
        raise ValidationError(f"subscription_plan must be one of: {', '.join(SUBSCRIPTION_PLANS)}")
    org = _get_organization(org_id)
    org.subscription_plan = plan
    db.session.commit()
    return org


# -- Config resources --

def _resource(resource: str):
    if resource not in CONFIG_RESOURCES:
        raise NotFoundError(f"Unknown resource: {resource}")
    return CONFIG_RESOURCES[resource]


def _clean_patch(resource: str, payload: dict, *, partial: bool) -> dict:
    _, _, writable = _resource(resource)
    if not isinstance(payload, dict):
        raise ValidationError("JSON body must be an object")

    unknown = sorted(set(payload) - writable)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(unknown)}")

    patch = {}
    for key, value in payload.items():
        if key in _BOOL_FIELDS:
            if not isinstance(value, bool):
                raise ValidationError(f"{key} must be a boolean")
        elif key in _INT_FIELDS:
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise ValidationError(f"{key} must be an integer")
        elif value is not None and not isinstance(value, str):
            raise ValidationError(f"{key} must be a string")
        patch[key] = value.strip() if isinstance(value, str) else value

    if not partial:
        missing = [f for f in _REQUIRED_ON_CREATE[resource] if not patch.get(f)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return patch


def _ensure_key_free(model, key_field: str | None, patch: dict, row_id: int | None = None) -> None:
    if not key_field or key_field not in patch:
        return
    query = db.session.query(model).filter(getattr(model, key_field) == patch[key_field])
    if row_id is not None:
        query = query.filter(model.id != row_id)
    if query.first():
        raise ConflictError(f"{key_field} already exists")


def list_config(resource: str) -> list:
    model, _, _ = _resource(resource)
    query = db.session.query(model)
    if hasattr(model, "display_order"):
        query = query.order_by(model.display_order.asc(), model.id.asc())
    else:
        query = query.order_by(model.id.asc())
    return query.all()


def get_config(resource: str, row_id: int):
    model, _, _ = _resource(resource)
    row = db.session.get(model, row_id)
    if not row:
        raise NotFoundError("Not found")
    return row


def create_config(resource: str, payload: dict):
    model, key_field, _ = _resource(resource)
    patch = _clean_patch(resource, payload, partial=False)
    _ensure_key_free(model, key_field, patch)
    row = model(**patch)
    db.session.add(row)
    db.session.commit()
    return row


def update_config(resource: str, row_id: int, payload: dict):
    model, key_field, _ = _resource(resource)
    row = get_config(resource, row_id)
    patch = _clean_patch(resource, payload, partial=True)
    _ensure_key_free(model, key_field, patch, row_id=row.id)
    if resource == "modules" and patch.get("parent_module_id") == row.id:
        raise ValidationError("A module cannot be its own parent")
    for k, v in patch.items():
        setattr(row, k, v)
    db.session.commit()
    return row


def delete_config(resource: str, row_id: int) -> None:
    row = get_config(resource, row_id)
    if isinstance(row, ModuleConfig) and row.children:
        raise ConflictError("Module has child modules")
    db.session.delete(row)
    db.session.commit()


# -- Plan gating --

def enabled_features_for_org(org: Organization) -> list[FeatureConfig]:
    plan = org.subscription_plan or "free"
    rows = db.session.query(FeatureConfig).order_by(FeatureConfig.category.asc(), FeatureConfig.feature_key.asc()).all()
    return [f for f in rows if f.enabled_for(plan)]


def enabled_modules_for_org(org: Organization) -> list[ModuleConfig]:
    """Active modules enabled for the plan; a child is dropped with its parent."""
    plan = org.subscription_plan or "free"
    rows = (
        db.session.query(ModuleConfig)
        .filter(ModuleConfig.is_active.is_(True))
        .order_by(ModuleConfig.display_order.asc(), ModuleConfig.id.asc())
        .all()
    )
    enabled_ids = {m.id for m in rows if m.enabled_for(plan)}
    return [
        m for m in rows
        if m.id in enabled_ids and (m.parent_module_id is None or m.parent_module_id in enabled_ids)
    ]


def is_feature_enabled(org: Organization, feature_key: str) -> bool:
    feature = db.session.query(FeatureConfig).filter_by(feature_key=feature_key).first()
    return bool(feature and feature.enabled_for(org.subscription_plan or "free"))


# -- Public content --

def public_footer_links() -> list[FooterLink]:
    return (
        db.session.query(FooterLink)
        .filter(FooterLink.is_active.is_(True))
        .order_by(FooterLink.category.asc(), FooterLink.display_order.asc(), FooterLink.id.asc())
        .all()
    )


def public_onboarding_content() -> list[OnboardingContent]:
    return (
        db.session.query(OnboardingContent)
        .filter(OnboardingContent.is_active.is_(True))
        .order_by(OnboardingContent.display_order.asc(), OnboardingContent.id.asc())
        .all()
    )


# -- Subscription pricing --

# Monthly price per plan in whole TZS
PLAN_PRICES_TZS = {
    "basic": 75_000,
    "premium": 200_000,
    "enterprise": 500_000,
}


def plan_price(plan: str) -> int:
    if plan not in PLAN_PRICES_TZS:
        raise ValidationError(f"plan must be one of: {', '.join(PLAN_PRICES_TZS)}")
    return PLAN_PRICES_TZS[plan]
