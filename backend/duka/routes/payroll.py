# Overview: Flask API routes for employees and payroll; parses input and returns JSON responses.

# backend/duka/routes/payroll.py
"""
Payroll routes.

MULTI-TENANT: Employees, runs and payslips are scoped to the caller's
organization.

SECURITY:
- Employees: VIEW_EMPLOYEES / MANAGE_EMPLOYEES
- Preview, runs and the calculator: VIEW_PAYROLL
- Processing a period: PROCESS_PAYROLL
- Statutory reports (CSV): EXPORT_REPORTS
"""

from flask import Blueprint, request, jsonify, g

from ..models import Employee
from ..services import payroll_service
from ..services.payroll_service import PayrollError
from ..services.payroll_calculator import PayrollInput, PayrollValidationError, calculate_payroll
from ..services.tenant_service import TenantAccessError
from ..services.export_service import csv_response, ExportError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_employee,
    coerce_int,
    ValidationError,
)
from ..decorators import require_auth, require_org, require_permission
from duka.time_utils import current_pay_period

EMPLOYEE_POLICY = ModelValidationPolicy(
    writable_fields=set(payroll_service.EMPLOYEE_MUTABLE_FIELDS),
    required_on_create={"first_name", "last_name", "salary"},
)

payroll_bp = Blueprint("payroll", __name__, url_prefix="/api/payroll")


def _period_from(source) -> tuple[int, int]:
    """(month, year) from a mapping, defaulting to the current period."""
    default_month, default_year = current_pay_period()
    month = source.get("month", default_month)
    year = source.get("year", default_year)
    return coerce_int("month", month), coerce_int("year", year)


# =============================================================================
# EMPLOYEES
# =============================================================================

@payroll_bp.get("/employees")
@require_auth
@require_org
@require_permission("VIEW_EMPLOYEES")
def list_employees():
    """Query params: status (active, inactive, all; default all)"""
    employees = payroll_service.list_employees(g.org_id, status=request.args.get("status"))
    return jsonify({"employees": [e.to_dict() for e in employees], "count": len(employees)})


@payroll_bp.get("/employees/<int:employee_id>")
@require_auth
@require_org
@require_permission("VIEW_EMPLOYEES")
def get_employee(employee_id: int):
    try:
        employee = payroll_service.get_employee(employee_id, g.org_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"employee": employee.to_dict()})


@payroll_bp.post("/employees")
@require_auth
@require_org
@require_permission("MANAGE_EMPLOYEES")
def create_employee():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=False)
        enforce_rules_employee(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    employee = payroll_service.create_employee(patch=patch, org_id=g.org_id)
    return jsonify({"employee": employee.to_dict()}), 201


@payroll_bp.put("/employees/<int:employee_id>")
@require_auth
@require_org
@require_permission("MANAGE_EMPLOYEES")
def update_employee(employee_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=True)
        enforce_rules_employee(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        employee = payroll_service.update_employee(employee_id=employee_id, patch=patch, org_id=g.org_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"employee": employee.to_dict()})


@payroll_bp.get("/employees/<int:employee_id>/payslips")
@require_auth
@require_org
@require_permission("VIEW_PAYROLL")
def employee_payslips(employee_id: int):
    try:
        payslips = payroll_service.list_employee_payslips(employee_id, g.org_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"payslips": [p.to_dict() for p in payslips], "count": len(payslips)})


# =============================================================================
# CALCULATOR / PREVIEW / PROCESSING
# =============================================================================

@payroll_bp.post("/calculate")
@require_auth
@require_org
@require_permission("VIEW_PAYROLL")
def calculate():
    """
    Stand-alone calculator.

    Request body: basic_salary (required), housing_allowance,
    transport_allowance, other_allowances, other_deductions, total_employees
    """
    data = request.get_json(silent=True) or {}
    if "basic_salary" not in data:
        return jsonify({"error": "basic_salary required"}), 400

    fields = (
        "basic_salary",
        "housing_allowance",
        "transport_allowance",
        "other_allowances",
        "other_deductions",
        "total_employees",
    )
    try:
        values = {name: coerce_int(name, data[name]) for name in fields if name in data}
        result = calculate_payroll(PayrollInput(**values))
    except (ValidationError, PayrollValidationError) as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"result": result.to_dict()})


@payroll_bp.get("/preview")
@require_auth
@require_org
@require_permission("VIEW_PAYROLL")
def preview():
    """Query params: month, year (default: current period). Nothing is saved."""
    try:
        month, year = _period_from(request.args)
        result = payroll_service.preview_payroll(g.org_id, month, year)
    except (ValidationError, PayrollError) as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(result)


@payroll_bp.post("/process")
@require_auth
@require_org
@require_permission("PROCESS_PAYROLL")
def process():
    """
    Process the payroll for a period.

    Request body: {"month": 3, "year": 2026} (default: current period)
    Re-processing a period replaces its payslips.
    """
    data = request.get_json(silent=True) or {}
    try:
        month, year = _period_from(data)
        run = payroll_service.process_payroll(
            org_id=g.org_id,
            month=month,
            year=year,
            processed_by=g.current_user.id,
        )
    except (ValidationError, PayrollError) as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "payroll_run": run.to_dict(),
        "payslips": [p.to_dict() for p in run.payslips],
    }), 201


@payroll_bp.get("/runs")
@require_auth
@require_org
@require_permission("VIEW_PAYROLL")
def list_runs():
    runs = payroll_service.list_payroll_runs(g.org_id)
    return jsonify({"payroll_runs": [r.to_dict() for r in runs], "count": len(runs)})


@payroll_bp.get("/runs/<int:run_id>")
@require_auth
@require_org
@require_permission("VIEW_PAYROLL")
def get_run(run_id: int):
    try:
        run = payroll_service.get_payroll_run(run_id, g.org_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({
        "payroll_run": run.to_dict(),
        "payslips": [p.to_dict() for p in run.payslips],
    })


# =============================================================================
# STATUTORY REPORTS
# =============================================================================

@payroll_bp.get("/reports/<report_type>")
@require_auth
@require_org
@require_permission("EXPORT_REPORTS")
def report(report_type: str):
    """
    CSV report for a period: register, tra_paye, nssf, sdl_wcf.

    Query params: month, year (default: current period)
    """
    try:
        month, year = _period_from(request.args)
        rows, filename = payroll_service.build_report(g.org_id, report_type, month, year)
        return csv_response(rows, filename)
    except (ValidationError, PayrollError, ExportError) as e:
        return jsonify({"error": str(e)}), 400
