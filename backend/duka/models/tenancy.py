from __future__ import annotations

from ..extensions import db
from duka.time_utils import to_utc_z


SUBSCRIPTION_PLANS = ("free", "basic", "premium", "enterprise")


class Organization(db.Model):
    """
    Multi-tenant root: every business is an Organization.

    DESIGN:
    - Organizations are the tenant boundary
    - Products, stock, sales, employees and payroll rows carry organization_id
    - Users reach an organization only through an OrganizationMembership
    - subscription_plan gates modules and features (see platform models)
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)

    business_type = db.Column(db.String(64), nullable=True)
    subscription_plan = db.Column(db.String(16), nullable=False, default="free")

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "business_type": self.business_type,
            "subscription_plan": self.subscription_plan,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrganizationMembership(db.Model):
    """
    A user's seat inside an organization.

    MULTI-TENANT: A user may belong to several organizations, each with its
    own role. The session chosen at login pins exactly one membership.
    """
    __tablename__ = "organization_memberships"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "user_id", name="uq_memberships_org_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=False, index=True)

    is_owner = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("memberships", lazy=True))
    user = db.relationship("User", backref=db.backref("memberships", lazy=True))
    role = db.relationship("Role", backref=db.backref("memberships", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "user_id": self.user_id,
            "role_id": self.role_id,
            "role": self.role.name if self.role else None,
            "is_owner": self.is_owner,
            "is_active": self.is_active,
            "joined_at": to_utc_z(self.joined_at),
        }
