# backend/duka/routes/system.py
"""
System health and version endpoints.

Health reports database reachability and whether the permission catalog
has been initialized; version reports non-sensitive deployment details.
"""

import sys
import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Organization, User, Permission, SessionToken
from duka.time_utils import utcnow, to_utc_z

API_VERSION = "1.0.0"

system_bp = Blueprint("system", __name__, url_prefix="/api")


def _elapsed_ms(start: float) -> float:
    return round((time.time() - start) * 1000, 2)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "organizations": db.session.query(Organization).count(),
            "users": db.session.query(User).count(),
            "active_sessions": db.session.query(SessionToken).filter(
                SessionToken.is_revoked.is_(False),
                SessionToken.expires_at > utcnow(),
            ).count(),
        }
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Database error"}

    return {"status": "healthy", "latency_ms": _elapsed_ms(start_time), "details": details}


def check_permissions_health() -> dict:
    """Degraded until `flask system init` has loaded the permission catalog."""
    start_time = time.time()
    try:
        permission_count = db.session.query(Permission).count()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Permission health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Permission catalog error"}

    if not permission_count:
        return {
            "status": "degraded",
            "latency_ms": _elapsed_ms(start_time),
            "warning": "Permissions not initialized",
        }
    return {
        "status": "healthy",
        "latency_ms": _elapsed_ms(start_time),
        "details": {"permission_count": permission_count},
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: a dependency is unhealthy
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "permissions": check_permissions_health(),
    }

    statuses = {check["status"] for check in checks.values()}
    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": _elapsed_ms(start_time),
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": API_VERSION,
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
