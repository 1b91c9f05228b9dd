"""
PeopleCore HR Assistant
Tests — Employee service (create / promote / lookup, code generation).
"""

from decimal import Decimal

import pytest

from peoplecore.core.exceptions import ConflictError, NotFoundError, ValidationError
from peoplecore.models.hr import Employee, Salary
from peoplecore.services import employee_service


class TestFieldCoercion:

    @pytest.mark.parametrize("raw,expected", [
        ("Grade 11", "Grade 11"), ("11", "Grade 11"), ("grade 9", "Grade 9"), (12, "Grade 12"),
    ])
    def test_normalize_grade(self, raw, expected):
        assert employee_service.normalize_grade(raw) == expected

    def test_normalize_grade_rejects_text(self):
        with pytest.raises(ValidationError):
            employee_service.normalize_grade("senior")

    @pytest.mark.parametrize("raw,expected", [
        (12000, Decimal("12000.00")), ("12,500", Decimal("12500.00")), ("AED 9000", Decimal("9000.00")),
    ])
    def test_parse_salary(self, raw, expected):
        assert employee_service.parse_salary(raw) == expected

    @pytest.mark.parametrize("raw", ["", "lots", "-5", "0", None])
    def test_parse_salary_rejects(self, raw):
        with pytest.raises(ValidationError):
            employee_service.parse_salary(raw)


class TestCreateEmployee:

    def test_next_code_and_opening_salary(self, employees):
        emp = employee_service.create_employee("Sara Ali", "Sara.Ali@HR.com", "11", "14,000", "Finance")
        assert emp.employee_code == "EMP003"
        assert emp.email == "sara.ali@hr.com"
        assert emp.grade == "Grade 11"
        assert emp.grade_number == 11
        salary = employee_service.current_salary(emp)
        assert salary.base_salary == Decimal("14000.00")
        assert salary.currency == "AED"

    def test_first_code_on_empty_table(self):
        assert employee_service.create_employee("A B", "a@b.co", 5, 5000).employee_code == "EMP001"

    def test_duplicate_email(self, employees):
        with pytest.raises(ConflictError):
            employee_service.create_employee("Another John", "JOHN.DOE@hr.com", 10, 9000)

    @pytest.mark.parametrize("bad", [
        "not-an-email", "a@b..c", "john@.hr.com", "x@y.z.", "jo hn@x.com",
    ])
    def test_invalid_email(self, employees, bad):
        with pytest.raises(ValidationError):
            employee_service.create_employee("X", bad, 10, 9000)
        assert Employee.query.count() == 3

    def test_normalize_email_lowercases(self):
        assert employee_service.normalize_email("  Sara.Ali@HR.com ") == "sara.ali@hr.com"

    def test_lock_released_after_failure(self, employees, monkeypatch):
        monkeypatch.setattr(employee_service, "_next_employee_code", lambda: "EMP001")
        with pytest.raises(ConflictError):
            employee_service.create_employee("Clash", "clash@hr.com", 9, 8000)
        assert not employee_service._code_lock.locked()
        assert Employee.query.count() == 3

    def test_lock_held_during_code_generation(self, employees, monkeypatch):
        seen = []
        original = employee_service._next_employee_code

        def _spy():
            seen.append(employee_service._code_lock.locked())
            return original()

        monkeypatch.setattr(employee_service, "_next_employee_code", _spy)
        employee_service.create_employee("Lock Check", "lock@hr.com", 9, 8000)
        assert seen == [True]
        assert not employee_service._code_lock.locked()


class TestLookupAndPromote:

    def test_find_by_name_case_insensitive(self, employees):
        assert employee_service.find_employee_by_name("  jane SMITH ").employee_code == "EMP002"

    def test_find_by_name_missing(self, employees):
        with pytest.raises(NotFoundError):
            employee_service.find_employee_by_name("Nobody Here")

    def test_promote_grade_and_salary(self, employees):
        emp, changes = employee_service.promote_employee("John Doe", new_grade="Grade 11", new_salary=12000)
        assert changes == {
            "grade": {"old": "Grade 10", "new": "Grade 11"},
            "salary": {"old": 10000.0, "new": 12000.0},
        }
        assert emp.grade_number == 11
        rows = Salary.query.filter_by(employee_id=emp.id).all()
        assert len(rows) == 2
        assert sum(1 for r in rows if r.effective_to is None) == 1
        assert employee_service.current_salary(emp).base_salary == Decimal("12000.00")

    def test_promote_grade_only_keeps_salary_history(self, employees):
        emp, changes = employee_service.promote_employee("jane smith", new_grade="12")
        assert list(changes) == ["grade"]
        assert Salary.query.filter_by(employee_id=emp.id).count() == 1

    def test_promote_same_values_is_noop(self, employees):
        _, changes = employee_service.promote_employee("John Doe", new_grade="Grade 10", new_salary="10000")
        assert changes == {}

    def test_promote_requires_a_change(self, employees):
        with pytest.raises(ValidationError):
            employee_service.promote_employee("John Doe")
