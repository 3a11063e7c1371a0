# Overview: Pytest coverage for employees, payroll processing and statutory reports.

"""
Payroll service tests.

Verifies:
- Preview uses active employees only and writes nothing
- SDL switches on at 10 active employees
- Processing upserts one run per period and replaces its payslips
- Statutory reports end with a TOTAL row and carry the period in the filename
"""

import pytest

from duka.extensions import db
from duka.models import PayrollRun, Payslip
from duka.services import payroll_service
from duka.services.payroll_service import PayrollError
from duka.services.tenant_service import TenantAccessError


def _hire(org, first, last, salary, **extra):
    patch = {"first_name": first, "last_name": last, "salary": salary, **extra}
    return payroll_service.create_employee(patch=patch, org_id=org.id)


@pytest.fixture
def staff_roster(org_a):
    """Two active employees and one inactive one in Organization A."""
    return [
        _hire(org_a, "Neema", "Mushi", 1_000_000, position="Store Manager"),
        _hire(org_a, "Baraka", "Kileo", 300_000, position="Cashier"),
        _hire(org_a, "Old", "Timer", 900_000, status="inactive"),
    ]


class TestEmployees:

    def test_list_by_status(self, org_a, staff_roster):
        names = [e.last_name for e in payroll_service.list_employees(org_a.id)]
        assert names == ["Kileo", "Mushi", "Timer"]

        active = payroll_service.list_employees(org_a.id, status="active")
        assert {e.last_name for e in active} == {"Kileo", "Mushi"}

    def test_update_employee(self, org_a, staff_roster):
        employee = payroll_service.update_employee(
            employee_id=staff_roster[1].id,
            patch={"salary": 350_000, "department": "Front"},
            org_id=org_a.id,
        )
        assert employee.salary == 350_000
        assert employee.department == "Front"

    def test_employee_cross_tenant(self, org_a, org_b):
        foreign = _hire(org_b, "Other", "Person", 500_000)
        with pytest.raises(TenantAccessError, match="Employee not found"):
            payroll_service.get_employee(foreign.id, org_a.id)
        with pytest.raises(TenantAccessError):
            payroll_service.update_employee(employee_id=foreign.id, patch={"salary": 1}, org_id=org_a.id)


class TestPreview:

    def test_preview_active_only(self, org_a, staff_roster):
        preview = payroll_service.preview_payroll(org_a.id, 3, 2026)

        assert [row["employee_name"] for row in preview["employees"]] == ["Baraka Kileo", "Neema Mushi"]
        totals = preview["totals"]
        assert totals["employee_count"] == 2
        assert totals["gross"] == 1_300_000
        assert totals["paye"] == 103_000
        assert totals["sdl"] == 0
        assert totals["net"] == 797_000 + 270_000

        assert db.session.query(PayrollRun).count() == 0

    def test_sdl_applies_at_ten_active_employees(self, org_a):
        for i in range(10):
            _hire(org_a, f"Worker{i}", "Temba", 400_000)

        preview = payroll_service.preview_payroll(org_a.id)
        assert all(row["sdl_employer"] == 14_000 for row in preview["employees"])
        assert preview["totals"]["sdl"] == 140_000

    def test_invalid_period(self, org_a):
        with pytest.raises(PayrollError, match="period_month"):
            payroll_service.preview_payroll(org_a.id, 13, 2026)


class TestProcess:

    def test_process_creates_run_and_payslips(self, org_a, owner_a, staff_roster):
        run = payroll_service.process_payroll(org_id=org_a.id, month=3, year=2026, processed_by=owner_a.id)

        assert run.status == "completed"
        assert run.employee_count == 2
        assert run.total_gross == 1_300_000
        assert run.total_net == 1_067_000
        assert run.processed_by == owner_a.id
        assert run.processed_at is not None

        payslips = db.session.query(Payslip).filter_by(payroll_run_id=run.id).all()
        assert len(payslips) == 2
        assert sum(p.net_salary for p in payslips) == run.total_net
        assert all(p.organization_id == org_a.id for p in payslips)

    def test_reprocess_replaces_payslips(self, org_a, staff_roster):
        first = payroll_service.process_payroll(org_id=org_a.id, month=3, year=2026)

        payroll_service.update_employee(
            employee_id=staff_roster[1].id, patch={"salary": 400_000}, org_id=org_a.id,
        )
        second = payroll_service.process_payroll(org_id=org_a.id, month=3, year=2026)

        assert second.id == first.id
        assert db.session.query(PayrollRun).count() == 1
        payslips = db.session.query(Payslip).filter_by(payroll_run_id=second.id).all()
        assert len(payslips) == 2
        assert second.total_gross == 1_400_000

    def test_no_active_employees(self, org_a):
        with pytest.raises(PayrollError, match="No active employees"):
            payroll_service.process_payroll(org_id=org_a.id, month=3, year=2026)
        assert db.session.query(PayrollRun).count() == 0

    def test_runs_latest_first(self, org_a, staff_roster):
        payroll_service.process_payroll(org_id=org_a.id, month=12, year=2025)
        payroll_service.process_payroll(org_id=org_a.id, month=2, year=2026)
        payroll_service.process_payroll(org_id=org_a.id, month=1, year=2026)

        periods = [(r.period_year, r.period_month) for r in payroll_service.list_payroll_runs(org_a.id)]
        assert periods == [(2026, 2), (2026, 1), (2025, 12)]

    def test_employee_payslip_history(self, org_a, staff_roster):
        payroll_service.process_payroll(org_id=org_a.id, month=1, year=2026)
        payroll_service.process_payroll(org_id=org_a.id, month=2, year=2026)

        payslips = payroll_service.list_employee_payslips(staff_roster[0].id, org_a.id)
        assert len(payslips) == 2
        assert all(p.paye == 103_000 for p in payslips)

    def test_run_cross_tenant(self, org_a, org_b):
        _hire(org_b, "Other", "Person", 500_000)
        run = payroll_service.process_payroll(org_id=org_b.id, month=3, year=2026)
        with pytest.raises(TenantAccessError, match="Payroll run not found"):
            payroll_service.get_payroll_run(run.id, org_a.id)


class TestReports:

    @pytest.mark.parametrize(
        "report_type,prefix,amount_column,expected_total",
        [
            ("register", "Payroll_Register", "Net Salary", 1_067_000),
            ("tra_paye", "TRA_PAYE_Report", "PAYE (TZS)", 103_000),
            ("nssf", "NSSF_Report", "Total Contribution", 260_000),
            ("sdl_wcf", "SDL_WCF_Report", "WCF (0.5%)", 6_500),
        ],
    )
    def test_report_rows(self, org_a, staff_roster, report_type, prefix, amount_column, expected_total):
        rows, filename = payroll_service.build_report(org_a.id, report_type, 3, 2026)

        assert filename == f"{prefix}_March_2026"
        assert len(rows) == 3
        total = rows[-1]
        assert "TOTAL" in total.values()
        assert total[amount_column] == expected_total
        assert total[amount_column] == sum(row[amount_column] for row in rows[:-1])

    def test_tra_paye_columns(self, org_a, staff_roster):
        rows, _ = payroll_service.build_report(org_a.id, "tra_paye", 3, 2026)
        assert list(rows[0].keys()) == [
            "Employee Name",
            "Gross Salary (TZS)",
            "NSSF Employee (TZS)",
            "Taxable Income (TZS)",
            "PAYE (TZS)",
        ]

    def test_unknown_report(self, org_a, staff_roster):
        with pytest.raises(PayrollError, match="Unknown report type") as exc:
            payroll_service.build_report(org_a.id, "bonus", 3, 2026)
        assert exc.value.details["allowed"] == ["register", "tra_paye", "nssf", "sdl_wcf"]

    def test_report_without_employees(self, org_a):
        with pytest.raises(PayrollError):
            payroll_service.build_report(org_a.id, "register", 3, 2026)
