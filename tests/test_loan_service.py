"""
PeopleCore HR Assistant
Tests — Loan eligibility engine.

Covers:
    - EMI amortisation (Decimal, half-up to cents)
    - per-loan rule table (grade, salary, tenure, existing loan, status)
    - store-backed fact gathering and check_all
"""

from datetime import date
from decimal import Decimal

import pytest

from peoplecore.models import db as _db
from peoplecore.models.hr import Loan
from peoplecore.services.loan_service import (
    LoanFacts,
    LoanService,
    calculate_emi,
    evaluate_loan,
    normalize_loan_type,
)


def _facts(grade=10, salary="10000", tenure=3.0, active=False, status="Active"):
    return LoanFacts(
        grade_number=grade,
        base_salary=Decimal(salary),
        tenure_years=tenure,
        has_active_loan_of_type=active,
        employment_status=status,
    )


# ═════════════════════════════════════════════════════════════════════════════
# EMI
# ═════════════════════════════════════════════════════════════════════════════

class TestCalculateEmi:

    def test_car_loan_reference_value(self):
        assert calculate_emi(Decimal("50000"), Decimal("0.04"), 48) == Decimal("1128.95")

    def test_zero_rate_divides_evenly(self):
        assert calculate_emi(12000, 0, 12) == Decimal("1000.00")

    def test_round_trip_covers_principal_plus_interest(self):
        principal, rate, months = Decimal("100000"), Decimal("0.03"), 120
        payment = calculate_emi(principal, rate, months)
        r = rate / 12
        # Balance after n payments must be ~0 (within rounding of one cent per month)
        balance = principal
        for _ in range(months):
            balance = balance * (1 + r) - payment
        assert abs(balance) < Decimal("1.00")
        assert payment * months > principal

    def test_invalid_term(self):
        with pytest.raises(ValueError):
            calculate_emi(1000, 0.05, 0)


# ═════════════════════════════════════════════════════════════════════════════
# RULES
# ═════════════════════════════════════════════════════════════════════════════

class TestEvaluateLoan:

    def test_car_eligible(self):
        result = evaluate_loan("car", _facts(grade=10, salary="10000"))
        assert result.is_eligible
        assert result.loan_type == "Car"
        assert result.max_amount == Decimal("50000")
        assert result.suggested_tenure_months == 48
        assert result.suggested_monthly_deduction == Decimal("1128.95")
        assert result.reason == "Eligible for car loan up to AED 50,000 based on grade and salary"
        assert result.requirements_missing == []

    def test_car_cap(self):
        assert evaluate_loan("Car", _facts(salary="30000")).max_amount == Decimal("100000")

    def test_grade_9_salary_7000_misses_both(self):
        result = evaluate_loan("Car", _facts(grade=9, salary="7000"))
        assert not result.is_eligible
        assert "Grade 9 below minimum (Grade 10)" in result.requirements_missing
        assert "Salary AED 7,000 below minimum (AED 8,000)" in result.requirements_missing
        assert result.reason.startswith("Not eligible for car loan: Grade 9 below minimum")
        assert result.max_amount is None
        assert result.suggested_monthly_deduction is None

    def test_existing_active_loan_blocks(self):
        result = evaluate_loan("Car", _facts(active=True))
        assert not result.is_eligible
        assert result.requirements_missing == ["Already has active car loan"]

    def test_housing_tenure(self):
        result = evaluate_loan("Housing", _facts(grade=12, salary="20000", tenure=1.5))
        assert not result.is_eligible
        assert "Tenure 1.5 years below minimum (2 years)" in result.requirements_missing

    def test_housing_eligible_and_capped(self):
        result = evaluate_loan("Housing", _facts(grade=14, salary="60000", tenure=5))
        assert result.is_eligible
        assert result.max_amount == Decimal("500000")
        assert result.suggested_tenure_months == 120

    def test_personal_requires_active_status(self):
        ok = evaluate_loan("Personal", _facts(grade=1, salary="3000"))
        assert ok.is_eligible
        assert ok.max_amount == Decimal("3000")
        assert ok.reason == "Eligible for personal loan up to AED 3,000 (1x salary)"

        archived = evaluate_loan("Personal", _facts(status="Archived"))
        assert not archived.is_eligible
        assert archived.reason == "Not eligible for personal loan"

    def test_unknown_type(self):
        result = evaluate_loan("Boat", _facts())
        assert not result.is_eligible
        assert result.reason == "Unknown loan type: Boat. Supported: Car, Housing, Personal"

    def test_deterministic(self):
        facts = _facts(grade=12, salary="16000", tenure=2.5)
        assert evaluate_loan("Housing", facts) == evaluate_loan("Housing", facts)

    def test_requirements_recorded_regardless_of_verdict(self):
        result = evaluate_loan("Car", _facts(grade=9, salary="9000"))
        assert "Salary AED 9,000 meets minimum (AED 8,000)" in result.requirements_met
        assert "No existing active car loan" in result.requirements_met

    def test_to_dict_keys(self):
        body = evaluate_loan("Car", _facts()).to_dict()
        assert body["loanType"] == "Car"
        assert body["isEligible"] is True
        assert body["maxAmount"] == 50000.0
        assert body["suggestedMonthlyDeduction"] == 1128.95

    @pytest.mark.parametrize("raw,expected", [
        ("car", "Car"), (" HOUSING ", "Housing"), ("Personal", "Personal"), ("boat", None), ("", None),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_loan_type(raw) == expected


# ═════════════════════════════════════════════════════════════════════════════
# SERVICE
# ═════════════════════════════════════════════════════════════════════════════

class TestLoanService:

    def test_check_eligibility_from_store(self, employees):
        result = LoanService().check_eligibility(employees["john"].id, "Car", as_of=date(2026, 1, 1))
        assert result.is_eligible
        assert result.max_amount == Decimal("50000")

    def test_active_loan_in_store_blocks(self, employees):
        john = employees["john"]
        _db.session.add(Loan(
            employee_id=john.id, loan_type="Car", amount=Decimal("30000"),
            interest_rate=Decimal("0.04"), tenure_months=48, monthly_deduction=Decimal("677.37"),
            status="Active", start_date=date(2025, 1, 1),
        ))
        _db.session.commit()
        result = LoanService().check_eligibility(john.id, "car")
        assert not result.is_eligible
        assert "Already has active car loan" in result.requirements_missing

    def test_paid_off_loan_does_not_block(self, employees):
        john = employees["john"]
        _db.session.add(Loan(
            employee_id=john.id, loan_type="Car", amount=Decimal("30000"),
            interest_rate=Decimal("0.04"), tenure_months=48, monthly_deduction=Decimal("677.37"),
            status="PaidOff", start_date=date(2020, 1, 1),
        ))
        _db.session.commit()
        assert LoanService().check_eligibility(john.id, "Car").is_eligible

    def test_low_grade_low_salary_employee(self, employee_factory):
        junior = employee_factory(
            "EMP010", "Junior Dev", "junior@hr.com", grade="Grade 9", salary=Decimal("7000"),
        )
        result = LoanService().check_eligibility(junior.id, "Car")
        assert not result.is_eligible
        assert len(result.requirements_missing) == 2

    def test_housing_tenure_from_hire_date(self, employees, employee_factory):
        senior = employee_factory(
            "EMP011", "New Senior", "senior@hr.com", grade="Grade 13",
            salary=Decimal("20000"), hire_date=date(2025, 6, 1),
        )
        result = LoanService().check_eligibility(senior.id, "Housing", as_of=date(2026, 6, 1))
        assert not result.is_eligible
        assert result.requirements_missing == ["Tenure 1.0 years below minimum (2 years)"]

    def test_check_all(self, employees):
        results = LoanService().check_all(employees["jane"].id, as_of=date(2026, 1, 1))
        assert [r.loan_type for r in results] == ["Car", "Housing", "Personal"]
        assert [r.is_eligible for r in results] == [True, False, True]

    def test_unknown_employee(self, employees):
        result = LoanService().check_eligibility("no-such-id", "Car")
        assert not result.is_eligible
        assert result.reason == "Employee not found"
