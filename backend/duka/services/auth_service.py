# Overview: User accounts, password hashing, memberships and default roles.

"""
Authentication and membership service.

Users are global accounts; access to an organization comes from an
OrganizationMembership carrying an org-scoped role.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special character
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, Role, Organization, OrganizationMembership
from ..permissions import DEFAULT_ROLES
from duka.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class MembershipError(Exception):
    """Raised when a membership cannot be created or changed."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt (cost factor 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    full_name: str | None = None,
    phone: str | None = None,
    is_super_admin: bool = False,
) -> User:
    """
    Create a global user account.

    Raises:
        ValueError: username or email already taken
        PasswordValidationError: weak password
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email:
        raise ValueError("username and email are required")

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ValueError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        full_name=full_name,
        phone=phone,
        password_hash=hash_password(password),
        is_super_admin=is_super_admin,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate by username or email.

    Returns the active User on success, None otherwise. Updates
    last_login_at on success.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == (username or "").lower()),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def create_default_roles(organization_id: int) -> list[Role]:
    """Create the standard roles for an organization if they don't exist."""
    roles = []
    for name, desc in DEFAULT_ROLES:
        role = db.session.query(Role).filter_by(organization_id=organization_id, name=name).first()
        if not role:
            role = Role(organization_id=organization_id, name=name, description=desc)
            db.session.add(role)
        roles.append(role)

    db.session.commit()
    return roles


def get_role(organization_id: int, role_name: str) -> Role:
    role = db.session.query(Role).filter_by(organization_id=organization_id, name=role_name).first()
    if not role:
        raise MembershipError(f"Role {role_name} not found")
    return role


def get_active_memberships(user_id: int) -> list[OrganizationMembership]:
    """Active memberships of a user in active organizations, oldest first."""
    return (
        db.session.query(OrganizationMembership)
        .join(Organization, Organization.id == OrganizationMembership.organization_id)
        .filter(
            OrganizationMembership.user_id == user_id,
            OrganizationMembership.is_active.is_(True),
            Organization.is_active.is_(True),
        )
        .order_by(OrganizationMembership.id.asc())
        .all()
    )


def get_membership(user_id: int, organization_id: int) -> OrganizationMembership | None:
    return db.session.query(OrganizationMembership).filter_by(
        user_id=user_id,
        organization_id=organization_id,
    ).first()


def add_member(
    *,
    organization_id: int,
    user_id: int,
    role_name: str,
    is_owner: bool = False,
) -> OrganizationMembership:
    """
    Give a user a seat in an organization with the given role.

    Re-adding a deactivated member reactivates the membership with the new
    role.
    """
    org = db.session.query(Organization).filter_by(id=organization_id).first()
    if not org:
        raise MembershipError("Organization not found")
    if not org.is_active:
        raise MembershipError("Organization is not active")

    role = get_role(organization_id, role_name)

    membership = get_membership(user_id, organization_id)
    if membership and membership.is_active:
        raise MembershipError("User is already a member of this organization")

    if membership:
        membership.is_active = True
        membership.role_id = role.id
        membership.is_owner = is_owner
    else:
        membership = OrganizationMembership(
            organization_id=organization_id,
            user_id=user_id,
            role_id=role.id,
            is_owner=is_owner,
        )
        db.session.add(membership)

    db.session.commit()
    current_app.logger.info(
        "Member added: user=%s org=%s role=%s", user_id, organization_id, role_name
    )
    return membership


def change_member_role(*, organization_id: int, user_id: int, role_name: str) -> OrganizationMembership:
    membership = get_membership(user_id, organization_id)
    if not membership or not membership.is_active:
        raise MembershipError("Membership not found")

    role = get_role(organization_id, role_name)
    if membership.is_owner and role.name != "business_owner":
        raise MembershipError("The organization owner must keep the business_owner role")

    membership.role_id = role.id
    db.session.commit()
    return membership


def deactivate_member(*, organization_id: int, user_id: int) -> OrganizationMembership:
    membership = get_membership(user_id, organization_id)
    if not membership or not membership.is_active:
        raise MembershipError("Membership not found")
    if membership.is_owner:
        raise MembershipError("The organization owner cannot be deactivated")

    membership.is_active = False
    db.session.commit()
    return membership


def create_organization(
    *,
    name: str,
    code: str | None = None,
    business_type: str | None = None,
    subscription_plan: str = "free",
    owner_user_id: int | None = None,
) -> Organization:
    """
    Create an organization with its default roles and permissions.

    When owner_user_id is given the user joins as business_owner.
    """
    from . import permission_service

    name = (name or "").strip()
    if not name:
        raise ValueError("Organization name is required")

    if code:
        existing = db.session.query(Organization).filter_by(code=code).first()
        if existing:
            raise ValueError("Organization code already exists")

    org = Organization(
        name=name,
        code=code,
        business_type=business_type,
        subscription_plan=subscription_plan,
        is_active=True,
    )
    db.session.add(org)
    db.session.commit()

    create_default_roles(org.id)
    permission_service.initialize_permissions()
    permission_service.assign_default_role_permissions(org.id)

    if owner_user_id is not None:
        add_member(
            organization_id=org.id,
            user_id=owner_user_id,
            role_name="business_owner",
            is_owner=True,
        )

    current_app.logger.info("Organization created: id=%s name=%s", org.id, org.name)
    return org
