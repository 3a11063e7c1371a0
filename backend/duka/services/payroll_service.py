# Overview: Employees, payroll preview/processing and statutory payroll reports.

"""
Payroll service.

Preview computes a PayrollResult for every active employee of an
organization; nothing is written. Processing upserts the PayrollRun for
(organization, month, year) and replaces its payslips in one transaction.

SDL applies when the organization has at least 10 active employees, so the
employee count passed to the calculator is the number of active employees.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Employee, PayrollRun, Payslip
from duka.time_utils import utcnow, validate_pay_period, period_label
from .payroll_calculator import (
    PayrollInput,
    PayrollResult,
    PayrollValidationError,
    calculate_payroll,
    summarize_results,
)
from .concurrency import lock_for_update, run_with_retry
from .tenant_service import require_in_org

EMPLOYEE_MUTABLE_FIELDS = {
    "first_name",
    "last_name",
    "email",
    "phone",
    "position",
    "department",
    "salary",
    "housing_allowance",
    "transport_allowance",
    "other_allowances",
    "other_deductions",
    "status",
}


class PayrollError(Exception):
    """Raised for payroll operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass
class PayrollLine:
    employee: Employee
    result: PayrollResult

    def to_dict(self) -> dict:
        return {
            "employee_id": self.employee.id,
            "employee_name": self.employee.full_name,
            "position": self.employee.position,
            "department": self.employee.department,
            **self.result.to_dict(),
        }


# -- Employees --

def list_employees(org_id: int, *, status: str | None = None) -> list[Employee]:
    query = db.session.query(Employee).filter(Employee.organization_id == org_id)
    if status and status != "all":
        query = query.filter(Employee.status == status)
    return query.order_by(Employee.last_name.asc(), Employee.first_name.asc(), Employee.id.asc()).all()


def get_employee(employee_id: int, org_id: int) -> Employee:
    return require_in_org(Employee, employee_id, org_id, label="Employee")


def create_employee(*, patch: dict, org_id: int) -> Employee:
    employee = Employee(organization_id=org_id)
    for k, v in patch.items():
        if k in EMPLOYEE_MUTABLE_FIELDS:
            setattr(employee, k, v)
    db.session.add(employee)
    db.session.commit()
    return employee


def update_employee(*, employee_id: int, patch: dict, org_id: int) -> Employee:
    employee = get_employee(employee_id, org_id)
    for k, v in patch.items():
        if k in EMPLOYEE_MUTABLE_FIELDS:
            setattr(employee, k, v)
    db.session.commit()
    return employee


# -- Preview / processing --

def _payroll_input(employee: Employee, total_employees: int) -> PayrollInput:
    return PayrollInput(
        basic_salary=employee.salary or 0,
        housing_allowance=employee.housing_allowance or 0,
        transport_allowance=employee.transport_allowance or 0,
        other_allowances=employee.other_allowances or 0,
        other_deductions=employee.other_deductions or 0,
        total_employees=total_employees,
    )


def compute_payroll(org_id: int) -> list[PayrollLine]:
    """PayrollResult for every active employee, ordered by name."""
    employees = list_employees(org_id, status="active")
    count = len(employees)
    lines = []
    for employee in employees:
        try:
            result = calculate_payroll(_payroll_input(employee, count))
        except PayrollValidationError as exc:
            raise PayrollError(
                f"Invalid salary data for {employee.full_name}: {exc}",
                details={"employee_id": employee.id},
            )
        lines.append(PayrollLine(employee=employee, result=result))
    return lines


def preview_payroll(org_id: int, month: int | None = None, year: int | None = None) -> dict:
    """Preview for a period; nothing is written."""
    if month is not None and year is not None:
        _validate_period(month, year)
    lines = compute_payroll(org_id)
    return {
        "organization_id": org_id,
        "period_month": month,
        "period_year": year,
        "employees": [line.to_dict() for line in lines],
        "totals": summarize_results(line.result for line in lines),
    }


def _validate_period(month, year) -> None:
    try:
        validate_pay_period(month, year)
    except ValueError as exc:
        raise PayrollError(str(exc))


def process_payroll(*, org_id: int, month: int, year: int, processed_by: int | None = None) -> PayrollRun:
    """
    Write the payroll run for a period.

    Re-processing a period overwrites its totals and payslips.
    """
    _validate_period(month, year)

    def _op() -> PayrollRun:
        try:
            lines = compute_payroll(org_id)
            if not lines:
                raise PayrollError("No active employees to process")

            totals = summarize_results(line.result for line in lines)

            run = lock_for_update(
                db.session.query(PayrollRun).filter_by(
                    organization_id=org_id,
                    period_month=month,
                    period_year=year,
                )
            ).first()
            if run is None:
                run = PayrollRun(organization_id=org_id, period_month=month, period_year=year)
                db.session.add(run)
            else:
                for payslip in list(run.payslips):
                    db.session.delete(payslip)
                db.session.flush()

            run.status = "completed"
            run.employee_count = totals["employee_count"]
            run.total_gross = totals["gross"]
            run.total_paye = totals["paye"]
            run.total_nssf_employee = totals["nssf_employee"]
            run.total_nssf_employer = totals["nssf_employer"]
            run.total_wcf = totals["wcf"]
            run.total_sdl = totals["sdl"]
            run.total_net = totals["net"]
            run.processed_at = utcnow()
            run.processed_by = processed_by
            db.session.flush()

            for line in lines:
                r = line.result
                db.session.add(Payslip(
                    payroll_run_id=run.id,
                    employee_id=line.employee.id,
                    organization_id=org_id,
                    basic_salary=r.basic_salary,
                    housing_allowance=r.housing_allowance,
                    transport_allowance=r.transport_allowance,
                    other_allowances=r.other_allowances,
                    gross_salary=r.gross_salary,
                    taxable_income=r.taxable_income,
                    paye=r.paye,
                    nssf_employee=r.nssf_employee,
                    nssf_employer=r.nssf_employer,
                    wcf_employer=r.wcf_employer,
                    sdl_employer=r.sdl_employer,
                    other_deductions=r.other_deductions,
                    total_deductions=r.total_deductions,
                    net_salary=r.net_salary,
                ))

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            "Payroll processed: org=%s period=%s employees=%s net=%s",
            org_id, period_label(month, year), run.employee_count, run.total_net,
        )
        return run

    return run_with_retry(_op)


def list_payroll_runs(org_id: int) -> list[PayrollRun]:
    return (
        db.session.query(PayrollRun)
        .filter(PayrollRun.organization_id == org_id)
        .order_by(PayrollRun.period_year.desc(), PayrollRun.period_month.desc())
        .all()
    )


def get_payroll_run(run_id: int, org_id: int) -> PayrollRun:
    return require_in_org(PayrollRun, run_id, org_id, label="Payroll run")


def list_employee_payslips(employee_id: int, org_id: int) -> list[Payslip]:
    get_employee(employee_id, org_id)
    return (
        db.session.query(Payslip)
        .join(PayrollRun, PayrollRun.id == Payslip.payroll_run_id)
        .filter(Payslip.employee_id == employee_id, Payslip.organization_id == org_id)
        .order_by(PayrollRun.period_year.desc(), PayrollRun.period_month.desc())
        .all()
    )


# -- Reports (rows for CSV export) --

REPORT_TYPES = ("register", "tra_paye", "nssf", "sdl_wcf")

REPORT_FILENAMES = {
    "register": "Payroll_Register",
    "tra_paye": "TRA_PAYE_Report",
    "nssf": "NSSF_Report",
    "sdl_wcf": "SDL_WCF_Report",
}


def _register_rows(lines: list[PayrollLine], totals: dict) -> list[dict]:
    rows = []
    for line in lines:
        r = line.result
        rows.append({
            "Employee": line.employee.full_name,
            "Position": line.employee.position,
            "Basic Salary": r.basic_salary,
            "Gross Salary": r.gross_salary,
            "NSSF (Employee)": r.nssf_employee,
            "PAYE": r.paye,
            "Total Deductions": r.total_deductions,
            "Net Salary": r.net_salary,
            "NSSF (Employer)": r.nssf_employer,
            "WCF": r.wcf_employer,
            "SDL": r.sdl_employer,
        })
    rows.append({
        "Employee": "TOTAL",
        "Position": "",
        "Basic Salary": sum(line.result.basic_salary for line in lines),
        "Gross Salary": totals["gross"],
        "NSSF (Employee)": totals["nssf_employee"],
        "PAYE": totals["paye"],
        "Total Deductions": totals["total_deductions"],
        "Net Salary": totals["net"],
        "NSSF (Employer)": totals["nssf_employer"],
        "WCF": totals["wcf"],
        "SDL": totals["sdl"],
    })
    return rows


def _tra_paye_rows(lines: list[PayrollLine], totals: dict) -> list[dict]:
    rows = [
        {
            "Employee Name": line.employee.full_name,
            "Gross Salary (TZS)": line.result.gross_salary,
            "NSSF Employee (TZS)": line.result.nssf_employee,
            "Taxable Income (TZS)": line.result.taxable_income,
            "PAYE (TZS)": line.result.paye,
        }
        for line in lines
    ]
    rows.append({
        "Employee Name": "TOTAL",
        "Gross Salary (TZS)": totals["gross"],
        "NSSF Employee (TZS)": totals["nssf_employee"],
        "Taxable Income (TZS)": totals["gross"] - totals["nssf_employee"],
        "PAYE (TZS)": totals["paye"],
    })
    return rows


def _nssf_rows(lines: list[PayrollLine], totals: dict) -> list[dict]:
    rows = [
        {
            "Employee Name": line.employee.full_name,
            "Gross Salary (TZS)": line.result.gross_salary,
            "Employee Contribution (10%)": line.result.nssf_employee,
            "Employer Contribution (10%)": line.result.nssf_employer,
            "Total Contribution": line.result.nssf_employee + line.result.nssf_employer,
        }
        for line in lines
    ]
    rows.append({
        "Employee Name": "TOTAL",
        "Gross Salary (TZS)": totals["gross"],
        "Employee Contribution (10%)": totals["nssf_employee"],
        "Employer Contribution (10%)": totals["nssf_employer"],
        "Total Contribution": totals["nssf_employee"] + totals["nssf_employer"],
    })
    return rows


def _sdl_wcf_rows(lines: list[PayrollLine], totals: dict) -> list[dict]:
    rows = [
        {
            "Employee Name": line.employee.full_name,
            "Gross Salary (TZS)": line.result.gross_salary,
            "SDL (3.5%)": line.result.sdl_employer,
            "WCF (0.5%)": line.result.wcf_employer,
        }
        for line in lines
    ]
    rows.append({
        "Employee Name": "TOTAL",
        "Gross Salary (TZS)": totals["gross"],
        "SDL (3.5%)": totals["sdl"],
        "WCF (0.5%)": totals["wcf"],
    })
    return rows


_REPORT_BUILDERS = {
    "register": _register_rows,
    "tra_paye": _tra_paye_rows,
    "nssf": _nssf_rows,
    "sdl_wcf": _sdl_wcf_rows,
}


def build_report(org_id: int, report_type: str, month: int, year: int) -> tuple[list[dict], str]:
    """
    Rows and download filename for a statutory report, from the current
    employee data. The last row is the TOTAL row.
    """
    if report_type not in _REPORT_BUILDERS:
        raise PayrollError(
            f"Unknown report type: {report_type}",
            details={"allowed": list(REPORT_TYPES)},
        )
    _validate_period(month, year)

    lines = compute_payroll(org_id)
    if not lines:
        raise PayrollError("No active employees to report")

    totals = summarize_results(line.result for line in lines)
    rows = _REPORT_BUILDERS[report_type](lines, totals)
    filename = f"{REPORT_FILENAMES[report_type]}_{period_label(month, year, sep='_')}"
    return rows, filename
