"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Cashier and staff roles are denied privileged operations (403)
- Denials are recorded as security events for the organization
- Role permission changes take effect on the next request
- Super admins need an organization on the session for tenant routes
"""

import pytest

from duka.extensions import db
from duka.models import SecurityEvent
from duka.services import auth_service

from conftest import auth_headers, get_auth_token


# =============================================================================
# UNAUTHENTICATED ACCESS: 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/stock/summary"),
            ("POST", "/api/stock/adjustments"),
            ("GET", "/api/stock/audit-log"),
            ("POST", "/api/sales"),
            ("GET", "/api/sales"),
            ("GET", "/api/payroll/employees"),
            ("POST", "/api/payroll/process"),
            ("GET", "/api/payroll/reports/register"),
            ("GET", "/api/admin/members"),
            ("GET", "/api/admin/security-events"),
            ("POST", "/api/payments/mobile-money/sale"),
            ("GET", "/api/platform/enabled"),
            ("GET", "/api/platform/admin/organizations"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/products", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid or expired token"


# =============================================================================
# ROLE LIMITS: 403
# =============================================================================


class TestCashierDenied:
    """Cashier role is limited to the point of sale."""

    def test_cannot_adjust_stock(self, client, cashier_headers, product_a):
        resp = client.post(
            "/api/stock/adjustments",
            json={"product_id": product_a.id, "adjustment_type": "receive", "quantity": 5},
            headers=cashier_headers,
        )
        assert resp.status_code == 403
        assert resp.get_json()["required_permission"] == "ADJUST_STOCK"

    def test_cannot_process_payroll(self, client, cashier_headers):
        resp = client.post("/api/payroll/process", json={"month": 3, "year": 2026}, headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_list_members(self, client, cashier_headers):
        assert client.get("/api/admin/members", headers=cashier_headers).status_code == 403

    def test_cannot_export(self, client, cashier_headers):
        assert client.get("/api/sales/export", headers=cashier_headers).status_code == 403

    def test_can_sell(self, client, cashier_headers, product_a):
        resp = client.post(
            "/api/sales",
            json={"items": [{"product_id": product_a.id, "quantity": 1}]},
            headers=cashier_headers,
        )
        assert resp.status_code == 201


class TestStaffAndManager:

    def test_staff_can_adjust_stock(self, client, staff_headers, product_a):
        resp = client.post(
            "/api/stock/adjustments",
            json={"product_id": product_a.id, "adjustment_type": "receive", "quantity": 5},
            headers=staff_headers,
        )
        assert resp.status_code == 201, resp.get_json()

    def test_staff_cannot_manage_products(self, client, staff_headers):
        resp = client.post("/api/products", json={"name": "Salt"}, headers=staff_headers)
        assert resp.status_code == 403

    def test_manager_cannot_change_role_permissions(self, client, manager_headers):
        resp = client.post(
            "/api/admin/roles/cashier/permissions",
            json={"permission_code": "ADJUST_STOCK"},
            headers=manager_headers,
        )
        assert resp.status_code == 403


class TestDenialAudit:

    def test_denial_logged_with_org(self, client, cashier_headers, cashier_a, org_a):
        client.get("/api/admin/members", headers=cashier_headers)

        event = (
            db.session.query(SecurityEvent)
            .filter_by(event_type="PERMISSION_DENIED", user_id=cashier_a.id)
            .one()
        )
        assert event.organization_id == org_a.id
        assert event.success is False
        assert event.resource == "/api/admin/members"

    def test_owner_sees_denials(self, client, owner_headers, cashier_headers):
        client.get("/api/admin/members", headers=cashier_headers)

        resp = client.get("/api/admin/security-events?event_type=PERMISSION_DENIED", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.get_json()["count"] == 1


# =============================================================================
# ROLE PERMISSION CHANGES
# =============================================================================


class TestRolePermissionChanges:

    def test_revoke_takes_effect(self, client, owner_headers, staff_headers, product_a):
        resp = client.delete("/api/admin/roles/staff/permissions/ADJUST_STOCK", headers=owner_headers)
        assert resp.status_code == 200

        resp = client.post(
            "/api/stock/adjustments",
            json={"product_id": product_a.id, "adjustment_type": "receive", "quantity": 5},
            headers=staff_headers,
        )
        assert resp.status_code == 403

    def test_grant_takes_effect(self, client, owner_headers, cashier_headers):
        assert client.get("/api/stock/audit-log", headers=cashier_headers).status_code == 403

        resp = client.post(
            "/api/admin/roles/cashier/permissions",
            json={"permission_code": "VIEW_STOCK_AUDIT"},
            headers=owner_headers,
        )
        assert resp.status_code == 201

        assert client.get("/api/stock/audit-log", headers=cashier_headers).status_code == 200

    def test_revoke_missing_grant(self, client, owner_headers):
        resp = client.delete("/api/admin/roles/cashier/permissions/PROCESS_PAYROLL", headers=owner_headers)
        assert resp.status_code == 404

    def test_unknown_permission_code(self, client, owner_headers):
        resp = client.post(
            "/api/admin/roles/cashier/permissions",
            json={"permission_code": "LAUNCH_ROCKETS"},
            headers=owner_headers,
        )
        assert resp.status_code == 400


# =============================================================================
# SUPER ADMIN AND MEMBERSHIP STATE
# =============================================================================


class TestSuperAdmin:

    def test_without_org_is_rejected_on_tenant_routes(self, client, super_admin):
        headers = auth_headers(get_auth_token(client, super_admin.username))
        resp = client.get("/api/products", headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Organization context required"

    def test_with_org_bypasses_permissions(self, client, super_admin, org_a, product_a):
        headers = auth_headers(get_auth_token(client, super_admin.username, organization_id=org_a.id))
        resp = client.get("/api/products", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["count"] == 1


class TestMembershipState:

    def test_deactivated_member_token_rejected(self, client, staff_headers, staff_a, org_a):
        assert client.get("/api/products", headers=staff_headers).status_code == 200

        auth_service.deactivate_member(organization_id=org_a.id, user_id=staff_a.id)

        assert client.get("/api/products", headers=staff_headers).status_code == 401

    def test_deactivated_user_token_rejected(self, client, cashier_headers, cashier_a):
        cashier_a.is_active = False
        db.session.commit()
        assert client.get("/api/sales", headers=cashier_headers).status_code == 401
