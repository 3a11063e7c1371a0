# Overview: Bearer session tokens carrying the organization chosen at login.

"""
Session Token Management Service with Multi-Tenant Support

MULTI-TENANT: A session pins one organization at creation time. Every
authenticated request is scoped to that organization without further
lookups. Super admins may hold a session without an organization.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout, deactivation or membership loss
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..extensions import db
from ..models import SessionToken, User, Organization, OrganizationMembership
from duka.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


class SessionError(Exception):
    """Raised when a session cannot be created for the requested organization."""
    pass


@dataclass
class SessionContext:
    """
    Complete session context returned by validate_session.

    membership is None only for super admins acting outside any
    organization (org_id is None) or inside one they are not a member of.
    """
    user: User
    session: SessionToken
    org_id: int | None
    membership: OrganizationMembership | None


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy); never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _resolve_organization(user: User, organization_id: int | None) -> int | None:
    if organization_id is not None:
        org = db.session.query(Organization).filter_by(id=organization_id).first()
        if not org or not org.is_active:
            raise SessionError("Organization is not active")
        if user.is_super_admin:
            return org.id
        membership = db.session.query(OrganizationMembership).filter_by(
            user_id=user.id,
            organization_id=org.id,
            is_active=True,
        ).first()
        if not membership:
            raise SessionError("User is not a member of this organization")
        return org.id

    membership = (
        db.session.query(OrganizationMembership)
        .join(Organization, Organization.id == OrganizationMembership.organization_id)
        .filter(
            OrganizationMembership.user_id == user.id,
            OrganizationMembership.is_active.is_(True),
            Organization.is_active.is_(True),
        )
        .order_by(OrganizationMembership.id.asc())
        .first()
    )
    if membership:
        return membership.organization_id
    if user.is_super_admin:
        return None
    raise SessionError("User does not belong to an active organization")


def create_session(
    user_id: int,
    organization_id: int | None = None,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create a session token for a user inside one organization.

    Without organization_id the user's oldest active membership is used.

    Returns (session_record, plaintext_token). The database stores only the
    hash.

    Raises SessionError if the user may not enter the organization.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise SessionError("User not found")

    org_id = _resolve_organization(user, organization_id)

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        organization_id=org_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Validate a session token and return its SessionContext.

    Returns None if the token is unknown, expired, revoked or idle, or if
    the user, organization or membership has been deactivated. Updates
    last_used_at on success.
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    membership = None
    if session.organization_id is not None:
        org = session.organization
        if not org or not org.is_active:
            _revoke(session, "Organization deactivated")
            return None

        membership = db.session.query(OrganizationMembership).filter_by(
            user_id=user.id,
            organization_id=session.organization_id,
            is_active=True,
        ).first()
        if not membership and not user.is_super_admin:
            _revoke(session, "Membership deactivated")
            return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(
        user=user,
        session=session,
        org_id=session.organization_id,
        membership=membership,
    )


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke a session token. Returns False if it was not active."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Revoke every active session of a user. Returns the count revoked."""
    now = utcnow()

    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False,
    ).all()

    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason

    db.session.commit()
    return len(sessions)
