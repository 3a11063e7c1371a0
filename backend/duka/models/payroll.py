from __future__ import annotations

from ..extensions import db
from duka.time_utils import to_utc_z


class Employee(db.Model):
    """
    Employee master data. Salary and allowances are monthly, whole TZS.
    """
    __tablename__ = "employees"
    __table_args__ = (
        db.Index("ix_employees_org_status", "organization_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    position = db.Column(db.String(128), nullable=True)
    department = db.Column(db.String(128), nullable=True)

    salary = db.Column(db.Integer, nullable=False, default=0)
    housing_allowance = db.Column(db.Integer, nullable=False, default=0)
    transport_allowance = db.Column(db.Integer, nullable=False, default=0)
    other_allowances = db.Column(db.Integer, nullable=False, default=0)
    other_deductions = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="active")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "user_id": self.user_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "position": self.position,
            "department": self.department,
            "salary": self.salary,
            "housing_allowance": self.housing_allowance,
            "transport_allowance": self.transport_allowance,
            "other_allowances": self.other_allowances,
            "other_deductions": self.other_deductions,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PayrollRun(db.Model):
    """
    One processed payroll per organization per month.

    Processing the same period again overwrites the totals and replaces the
    payslips (upsert on organization_id + period).
    """
    __tablename__ = "payroll_runs"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "period_month", "period_year", name="uq_payroll_runs_org_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    period_month = db.Column(db.Integer, nullable=False)
    period_year = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="draft")

    employee_count = db.Column(db.Integer, nullable=False, default=0)
    total_gross = db.Column(db.Integer, nullable=False, default=0)
    total_paye = db.Column(db.Integer, nullable=False, default=0)
    total_nssf_employee = db.Column(db.Integer, nullable=False, default=0)
    total_nssf_employer = db.Column(db.Integer, nullable=False, default=0)
    total_wcf = db.Column(db.Integer, nullable=False, default=0)
    total_sdl = db.Column(db.Integer, nullable=False, default=0)
    total_net = db.Column(db.Integer, nullable=False, default=0)

    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    processed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "period_month": self.period_month,
            "period_year": self.period_year,
            "status": self.status,
            "employee_count": self.employee_count,
            "total_gross": self.total_gross,
            "total_paye": self.total_paye,
            "total_nssf_employee": self.total_nssf_employee,
            "total_nssf_employer": self.total_nssf_employer,
            "total_wcf": self.total_wcf,
            "total_sdl": self.total_sdl,
            "total_net": self.total_net,
            "processed_at": to_utc_z(self.processed_at) if self.processed_at else None,
            "processed_by": self.processed_by,
            "created_at": to_utc_z(self.created_at),
        }


class Payslip(db.Model):
    """Snapshot of one employee's PayrollResult at processing time."""
    __tablename__ = "payslips"
    __table_args__ = (
        db.UniqueConstraint("payroll_run_id", "employee_id", name="uq_payslips_run_employee"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payroll_run_id = db.Column(db.Integer, db.ForeignKey("payroll_runs.id"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    basic_salary = db.Column(db.Integer, nullable=False)
    housing_allowance = db.Column(db.Integer, nullable=False, default=0)
    transport_allowance = db.Column(db.Integer, nullable=False, default=0)
    other_allowances = db.Column(db.Integer, nullable=False, default=0)
    gross_salary = db.Column(db.Integer, nullable=False)
    taxable_income = db.Column(db.Integer, nullable=False)
    paye = db.Column(db.Integer, nullable=False)
    nssf_employee = db.Column(db.Integer, nullable=False)
    nssf_employer = db.Column(db.Integer, nullable=False)
    wcf_employer = db.Column(db.Integer, nullable=False)
    sdl_employer = db.Column(db.Integer, nullable=False)
    other_deductions = db.Column(db.Integer, nullable=False, default=0)
    total_deductions = db.Column(db.Integer, nullable=False)
    net_salary = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    payroll_run = db.relationship(
        "PayrollRun",
        backref=db.backref("payslips", lazy=True, cascade="all, delete-orphan"),
    )
    employee = db.relationship("Employee")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payroll_run_id": self.payroll_run_id,
            "employee_id": self.employee_id,
            "employee_name": self.employee.full_name if self.employee else None,
            "organization_id": self.organization_id,
            "basic_salary": self.basic_salary,
            "housing_allowance": self.housing_allowance,
            "transport_allowance": self.transport_allowance,
            "other_allowances": self.other_allowances,
            "gross_salary": self.gross_salary,
            "taxable_income": self.taxable_income,
            "paye": self.paye,
            "nssf_employee": self.nssf_employee,
            "nssf_employer": self.nssf_employer,
            "wcf_employer": self.wcf_employer,
            "sdl_employer": self.sdl_employer,
            "other_deductions": self.other_deductions,
            "total_deductions": self.total_deductions,
            "net_salary": self.net_salary,
            "created_at": to_utc_z(self.created_at),
        }
