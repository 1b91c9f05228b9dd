"""
PeopleCore HR Assistant
Action dispatcher for non-query chat intents.

Each handler re-checks authorization itself and raises ``AuthorizationError``;
``dispatch`` turns a denial into an error reply. The system prompt asks the
model to refuse, but nothing here assumes it did.

    CreateEmployee       → HR only; fullName, email, grade, salary required
    PromoteEmployee      → HR only; employeeName + newGrade and/or newSalary
    GenerateCertificate  → employees may only name themselves, HR anyone
    PolicyLookup         → anyone; fixed handbook text, never model prose
"""

import logging
from datetime import datetime, timezone

from peoplecore.ai.intents import CreateEmployee, GenerateCertificate, PolicyLookup, PromoteEmployee
from peoplecore.ai.replies import (
    KIND_ACTION_SUCCESS,
    KIND_CERTIFICATE,
    KIND_CHAT,
    KIND_ERROR,
    KIND_UNKNOWN,
    ChatReply,
)
from peoplecore.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from peoplecore.models import db
from peoplecore.models.hr import Employee
from peoplecore.services import employee_service
from peoplecore.services.policy_service import lookup_policy

logger = logging.getLogger(__name__)

CREATE_REQUIRED = ("fullName", "email", "grade", "salary")
SELF_REFERENCES = {"", "me", "my", "myself", "i", "mine"}
CERTIFICATE_PATH = "/api/v1/salary-certificates/{employee_id}"
OWN_CERTIFICATE_ONLY = "You can only request your own salary certificate."


def _money(value) -> str:
    return f"AED {value:,.0f}" if value is not None else "N/A"


def certificate_reference(employee: Employee, year: int | None = None) -> str:
    """Reference number printed on the certificate, e.g. ``PC/EMP001/2026``."""
    year = year or datetime.now(timezone.utc).year
    return f"PC/{employee.employee_code}/{year}"


class ActionDispatcher:
    """Routes action intents to the employee service."""

    def dispatch(self, intent, identity) -> ChatReply:
        handlers = {
            CreateEmployee: self.create_employee,
            PromoteEmployee: self.promote_employee,
            GenerateCertificate: self.generate_certificate,
            PolicyLookup: self.lookup_policy,
        }
        handler = handlers.get(type(intent))
        if handler is None:
            logger.warning("No action handler for %s", type(intent).__name__)
            return ChatReply("I can't perform that action.", kind=KIND_UNKNOWN)
        try:
            return handler(intent, identity)
        except AuthorizationError as exc:
            logger.warning("%s denied for %s (%s): %s", type(intent).__name__, identity.id, identity.role, exc)
            return ChatReply(str(exc), kind=KIND_ERROR)

    @staticmethod
    def _require_hr(identity, message: str) -> None:
        if not identity.is_hr:
            raise AuthorizationError(message)

    # ── Create ────────────────────────────────────────────────────────────

    def create_employee(self, intent: CreateEmployee, identity) -> ChatReply:
        self._require_hr(identity, "Only HR can create employee records.")

        fields = intent.fields
        missing = [name for name in CREATE_REQUIRED if not fields.get(name)]
        if missing:
            return ChatReply(
                "I need a bit more information to create the employee. "
                f"Missing: {', '.join(missing)}.",
                kind=KIND_CHAT,
            )

        try:
            employee = employee_service.create_employee(
                full_name=fields["fullName"],
                email=fields["email"],
                grade=fields["grade"],
                salary=fields["salary"],
                department=fields.get("department", ""),
            )
        except ValidationError as exc:
            return ChatReply(f"I couldn't create the employee: {exc}", kind=KIND_ERROR)
        except ConflictError:
            return ChatReply(
                f"An employee with email {fields['email']} already exists.", kind=KIND_ERROR,
            )

        salary = employee_service.current_salary(employee)
        amount = salary.base_salary if salary is not None else None
        return ChatReply(
            f"Employee {employee.full_name} created with code {employee.employee_code} "
            f"({employee.grade}, {_money(amount)}"
            f"{', ' + employee.department if employee.department else ''}).",
            kind=KIND_ACTION_SUCCESS,
            data=[employee.to_dict()],
        )

    # ── Promote ───────────────────────────────────────────────────────────

    def promote_employee(self, intent: PromoteEmployee, identity) -> ChatReply:
        self._require_hr(identity, "Only HR can promote employees.")

        fields = intent.fields
        missing = []
        if not fields.get("employeeName"):
            missing.append("employeeName")
        if not fields.get("newGrade") and not fields.get("newSalary"):
            missing.append("newGrade or newSalary")
        if missing:
            return ChatReply(
                "I need a bit more information for the promotion. "
                f"Missing: {', '.join(missing)}.",
                kind=KIND_CHAT,
            )

        name = fields["employeeName"]
        try:
            employee, changes = employee_service.promote_employee(
                name, new_grade=fields.get("newGrade"), new_salary=fields.get("newSalary"),
            )
        except NotFoundError:
            return ChatReply(f"I couldn't find an employee named {name}.", kind=KIND_ERROR)
        except ValidationError as exc:
            return ChatReply(f"I couldn't apply the promotion: {exc}", kind=KIND_ERROR)

        if not changes:
            return ChatReply(
                f"No changes were needed: {employee.full_name} already has that grade and salary.",
                kind=KIND_ACTION_SUCCESS,
                data=[employee.to_dict()],
            )

        parts = []
        if "grade" in changes:
            parts.append(f"grade {changes['grade']['old']} → {changes['grade']['new']}")
        if "salary" in changes:
            parts.append(
                f"salary {_money(changes['salary']['old'])} → {_money(changes['salary']['new'])}"
            )
        return ChatReply(
            f"{employee.full_name} has been updated: {'; '.join(parts)}.",
            kind=KIND_ACTION_SUCCESS,
            data=[{**employee.to_dict(), "changes": changes}],
        )

    # ── Certificate ───────────────────────────────────────────────────────

    def generate_certificate(self, intent: GenerateCertificate, identity) -> ChatReply:
        hint = (intent.employee_name_hint or "").strip()
        display_name = (identity.display_name or "").strip()
        is_self = hint.lower() in SELF_REFERENCES or (
            bool(display_name) and hint.lower() == display_name.lower()
        )

        if not is_self:
            self._require_hr(identity, OWN_CERTIFICATE_ONLY)

        try:
            if is_self:
                employee = db.session.get(Employee, identity.id)
                if employee is None:
                    employee = employee_service.find_employee_by_name(display_name)
                    if employee.id != identity.id:
                        self._require_hr(identity, OWN_CERTIFICATE_ONLY)
            else:
                employee = employee_service.find_employee_by_name(hint)
        except NotFoundError:
            who = "your employee record" if is_self else f"an employee named {hint}"
            return ChatReply(f"I couldn't find {who}.", kind=KIND_ERROR)

        path = CERTIFICATE_PATH.format(employee_id=employee.id)
        subject = "Your" if is_self else f"{employee.full_name}'s"
        return ChatReply(
            f"{subject} salary certificate is ready. Download it here: {path}",
            kind=KIND_CERTIFICATE,
            data=[{
                "employeeId": employee.id,
                "employeeCode": employee.employee_code,
                "fullName": employee.full_name,
                "referenceNumber": certificate_reference(employee),
                "downloadUrl": path,
            }],
        )

    # ── Policy ────────────────────────────────────────────────────────────

    def lookup_policy(self, intent: PolicyLookup, identity) -> ChatReply:
        found = lookup_policy(intent.query)
        logger.info("Policy lookup by %s: %r → %s", identity.id, intent.query, found.topic)
        data = [found.entry.to_dict()] if found.matched else [{"topic": found.topic}]
        return ChatReply(found.text, kind=KIND_CHAT, data=data)
