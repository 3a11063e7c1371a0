from __future__ import annotations

from ..extensions import db
from duka.time_utils import to_utc_z


class _PlanFlagsMixin:
    """Per-plan enablement flags shared by modules and features."""

    free_enabled = db.Column(db.Boolean, nullable=False, default=False)
    basic_enabled = db.Column(db.Boolean, nullable=False, default=False)
    premium_enabled = db.Column(db.Boolean, nullable=False, default=True)
    enterprise_enabled = db.Column(db.Boolean, nullable=False, default=True)

    def enabled_for(self, plan: str) -> bool:
        return bool(getattr(self, f"{plan}_enabled", False))

    def _plan_flags(self) -> dict:
        return {
            "free_enabled": self.free_enabled,
            "basic_enabled": self.basic_enabled,
            "premium_enabled": self.premium_enabled,
            "enterprise_enabled": self.enterprise_enabled,
        }


class ModuleConfig(_PlanFlagsMixin, db.Model):
    __tablename__ = "module_configs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    module_key = db.Column(db.String(64), nullable=False, unique=True, index=True)
    module_name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    parent_module_id = db.Column(db.Integer, db.ForeignKey("module_configs.id"), nullable=True, index=True)
    icon = db.Column(db.String(64), nullable=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    parent = db.relationship("ModuleConfig", remote_side=[id], backref=db.backref("children", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "module_key": self.module_key,
            "module_name": self.module_name,
            "description": self.description,
            "parent_module_id": self.parent_module_id,
            "icon": self.icon,
            "display_order": self.display_order,
            "is_active": self.is_active,
            **self._plan_flags(),
            "created_at": to_utc_z(self.created_at),
        }


class FeatureConfig(_PlanFlagsMixin, db.Model):
    __tablename__ = "feature_configs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    feature_key = db.Column(db.String(64), nullable=False, unique=True, index=True)
    feature_name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=False, default="general", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "feature_key": self.feature_key,
            "feature_name": self.feature_name,
            "description": self.description,
            "category": self.category,
            **self._plan_flags(),
            "created_at": to_utc_z(self.created_at),
        }


class FooterLink(db.Model):
    __tablename__ = "footer_links"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(128), nullable=False)
    url = db.Column(db.String(512), nullable=False)
    category = db.Column(db.String(64), nullable=False, default="general")
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "category": self.category,
            "display_order": self.display_order,
            "is_active": self.is_active,
        }


class OnboardingContent(db.Model):
    __tablename__ = "onboarding_content"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    content_key = db.Column(db.String(64), nullable=False, unique=True, index=True)
    title = db.Column(db.String(255), nullable=True)
    subtitle = db.Column(db.String(255), nullable=True)
    content = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(512), nullable=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content_key": self.content_key,
            "title": self.title,
            "subtitle": self.subtitle,
            "content": self.content,
            "image_url": self.image_url,
            "display_order": self.display_order,
            "is_active": self.is_active,
        }
