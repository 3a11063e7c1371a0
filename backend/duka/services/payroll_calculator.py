# Overview: Tanzania payroll calculator (PAYE, NSSF, WCF, SDL); pure functions, no database access.

"""
Tanzania Payroll Calculator

Monthly amounts in whole TZS. Every computed amount is rounded half-up to a
whole shilling.

gross        = basic + housing + transport + other allowances
nssf         = 10% of gross (employee) and 10% of gross (employer)
taxable      = gross - nssf employee
paye         = bracket base + rate * (taxable - bracket lower bound),
               capped at the next bracket's base
wcf          = 0.5% of gross (employer)
sdl          = 3.5% of gross (employer), only with >= 10 employees
deductions   = nssf employee + paye + other deductions
net          = gross - deductions
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from decimal import Decimal, ROUND_HALF_UP


@dataclass(frozen=True)
class PayeBracket:
    lower: int
    upper: int | None  # None = no upper bound
    rate: Decimal
    base: int

    def contains(self, income: int) -> bool:
        # lower bound is exclusive except for the first bracket
        if self.lower and income <= self.lower:
            return False
        return self.upper is None or income <= self.upper

    @property
    def label(self) -> str:
        low = f"{self.lower + 1:,}" if self.lower else "0"
        high = f"{self.upper:,}" if self.upper is not None else "Above"
        return f"{low} - {high} TZS"


# Monthly PAYE table (TRA)
PAYE_BRACKETS: tuple[PayeBracket, ...] = (
    PayeBracket(lower=0, upper=270_000, rate=Decimal("0"), base=0),
    PayeBracket(lower=270_000, upper=520_000, rate=Decimal("0.08"), base=0),
    PayeBracket(lower=520_000, upper=760_000, rate=Decimal("0.20"), base=20_000),
    PayeBracket(lower=760_000, upper=1_040_000, rate=Decimal("0.25"), base=68_000),
    PayeBracket(lower=1_040_000, upper=None, rate=Decimal("0.30"), base=128_000),
)

NSSF_EMPLOYEE_RATE = Decimal("0.10")
NSSF_EMPLOYER_RATE = Decimal("0.10")
WCF_EMPLOYER_RATE = Decimal("0.005")
SDL_EMPLOYER_RATE = Decimal("0.035")
SDL_EMPLOYEE_THRESHOLD = 10


class PayrollValidationError(ValueError):
    """Raised for invalid salary inputs."""


@dataclass(frozen=True)
class PayrollInput:
    basic_salary: int
    housing_allowance: int = 0
    transport_allowance: int = 0
    other_allowances: int = 0
    other_deductions: int = 0
    total_employees: int = SDL_EMPLOYEE_THRESHOLD


@dataclass(frozen=True)
class PayeBreakdownLine:
    bracket: str
    rate: str
    amount: int


@dataclass(frozen=True)
class PayrollResult:
    basic_salary: int
    housing_allowance: int
    transport_allowance: int
    other_allowances: int
    gross_salary: int

    nssf_employee: int
    taxable_income: int
    paye: int
    other_deductions: int
    total_deductions: int

    nssf_employer: int
    wcf_employer: int
    sdl_employer: int
    total_employer_contributions: int

    net_salary: int

    paye_breakdown: list[PayeBreakdownLine] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def round_tzs(value) -> int:
    """Round half-up to a whole shilling."""
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _percent(rate: Decimal) -> str:
    return f"{(rate * 100).normalize():f}%"


def calculate_paye(taxable_income: int, brackets=PAYE_BRACKETS) -> tuple[int, list[PayeBreakdownLine]]:
    """
    PAYE for a monthly taxable income.

    Returns (paye, breakdown) where breakdown names the applied bracket.
    Non-positive income pays nothing and has an empty breakdown.
    """
    if taxable_income <= 0:
        return 0, []

    for index, bracket in enumerate(brackets):
        if not bracket.contains(taxable_income):
            continue

        tax = Decimal(bracket.base) + bracket.rate * (taxable_income - bracket.lower)
        # Capped at the next bracket's base, so PAYE stays flat at 128,000 from
        # 1,000,000 up to the 1,040,000 ceiling of the 25% band.
        if index + 1 < len(brackets):
            tax = min(tax, Decimal(brackets[index + 1].base))

        paye = round_tzs(tax)
        return paye, [PayeBreakdownLine(bracket=bracket.label, rate=_percent(bracket.rate), amount=paye)]

    return 0, []


def calculate_nssf(gross_salary: int) -> tuple[int, int]:
    """(employee, employer) NSSF contributions."""
    return (
        round_tzs(gross_salary * NSSF_EMPLOYEE_RATE),
        round_tzs(gross_salary * NSSF_EMPLOYER_RATE),
    )


def calculate_wcf(gross_salary: int) -> int:
    return round_tzs(gross_salary * WCF_EMPLOYER_RATE)


def calculate_sdl(gross_salary: int, total_employees: int) -> int:
    """Skills Development Levy; zero below the employee threshold."""
    if total_employees < SDL_EMPLOYEE_THRESHOLD:
        return 0
    return round_tzs(gross_salary * SDL_EMPLOYER_RATE)


def validate_payroll_input(payroll_input: PayrollInput) -> None:
    for name in (
        "basic_salary",
        "housing_allowance",
        "transport_allowance",
        "other_allowances",
        "other_deductions",
        "total_employees",
    ):
        value = getattr(payroll_input, name)
        if isinstance(value, bool) or not isinstance(value, int):
            raise PayrollValidationError(f"{name} must be a whole number")
        if value < 0:
            raise PayrollValidationError(f"{name} cannot be negative")


def calculate_payroll(payroll_input: PayrollInput) -> PayrollResult:
    """Full monthly breakdown for one employee."""
    validate_payroll_input(payroll_input)

    gross = (
        payroll_input.basic_salary
        + payroll_input.housing_allowance
        + payroll_input.transport_allowance
        + payroll_input.other_allowances
    )

    nssf_employee, nssf_employer = calculate_nssf(gross)
    taxable = gross - nssf_employee
    paye, breakdown = calculate_paye(taxable)

    wcf = calculate_wcf(gross)
    sdl = calculate_sdl(gross, payroll_input.total_employees)

    total_deductions = nssf_employee + paye + payroll_input.other_deductions

    return PayrollResult(
        basic_salary=payroll_input.basic_salary,
        housing_allowance=payroll_input.housing_allowance,
        transport_allowance=payroll_input.transport_allowance,
        other_allowances=payroll_input.other_allowances,
        gross_salary=gross,
        nssf_employee=nssf_employee,
        taxable_income=taxable,
        paye=paye,
        other_deductions=payroll_input.other_deductions,
        total_deductions=total_deductions,
        nssf_employer=nssf_employer,
        wcf_employer=wcf,
        sdl_employer=sdl,
        total_employer_contributions=nssf_employer + wcf + sdl,
        net_salary=gross - total_deductions,
        paye_breakdown=breakdown,
    )


def summarize_results(results) -> dict:
    """Totals over an iterable of PayrollResult."""
    totals = {
        "employee_count": 0,
        "gross": 0,
        "paye": 0,
        "nssf_employee": 0,
        "nssf_employer": 0,
        "wcf": 0,
        "sdl": 0,
        "total_deductions": 0,
        "employer_contributions": 0,
        "net": 0,
    }
    for result in results:
        totals["employee_count"] += 1
        totals["gross"] += result.gross_salary
        totals["paye"] += result.paye
        totals["nssf_employee"] += result.nssf_employee
        totals["nssf_employer"] += result.nssf_employer
        totals["wcf"] += result.wcf_employer
        totals["sdl"] += result.sdl_employer
        totals["total_deductions"] += result.total_deductions
        totals["employer_contributions"] += result.total_employer_contributions
        totals["net"] += result.net_salary
    return totals
