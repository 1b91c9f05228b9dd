"""
PeopleCore HR Assistant
HR policy handbook lookup.

Policy questions are answered from a small fixed catalog instead of free
model text. Matching is keyword overlap on the lower-cased question; the
best-scoring entry wins, catalog order breaks ties, and a question that
matches nothing gets the handbook referral.

    lookup_policy("What is the remote work policy?").topic   # "remote_work"
"""

import logging
import re
from dataclasses import dataclass

from peoplecore.services.loan_service import LOAN_RULES, loan_rules_digest

logger = logging.getLogger(__name__)

HANDBOOK_TOPIC = "handbook"
HANDBOOK_ANSWER = (
    "I couldn't find a specific policy on that. Please refer to the Employee Handbook "
    "or contact HR for the details."
)


@dataclass(frozen=True)
class PolicyEntry:
    topic: str
    title: str
    keywords: frozenset
    text: str

    def to_dict(self) -> dict:
        return {"topic": self.topic, "title": self.title, "source": "Employee Handbook"}


def _loan_terms() -> str:
    terms = []
    for loan_type, rule in LOAN_RULES.items():
        limit = f"{rule.salary_multiple} x monthly salary"
        if rule.cap is not None:
            limit += f" (capped at AED {rule.cap:,.0f})"
        terms.append(
            f"{loan_type}: up to {limit}, repaid over {rule.tenure_months} months "
            f"at {float(rule.annual_rate) * 100:g}% a year"
        )
    return "; ".join(terms)


POLICY_CATALOG = (
    PolicyEntry(
        "remote_work",
        "Remote work",
        frozenset({"remote", "wfh", "home", "hybrid", "telework", "telecommute"}),
        "Employees can work remotely up to 2 days per week with their manager's approval.",
    ),
    PolicyEntry(
        "staff_loans",
        "Staff loans",
        frozenset({"loan", "loans", "borrow", "car", "housing", "mortgage", "advance"}),
        f"{loan_rules_digest()} Limits: {_loan_terms()}. Only one active loan of each "
        "type is allowed. Ask \"Am I eligible for a car loan?\" to check your own eligibility.",
    ),
    PolicyEntry(
        "annual_leave",
        "Annual leave",
        frozenset({"leave", "vacation", "holiday", "holidays", "annual", "pto", "off"}),
        "Full-time employees are entitled to 30 days of annual leave per calendar year. "
        "Leave requests need manager approval; your remaining balance is shown in your "
        "leave summary.",
    ),
    PolicyEntry(
        "salary_certificate",
        "Salary certificates",
        frozenset({"certificate", "certificates", "letter", "embassy", "bank"}),
        "Salary certificates are issued on request. Employees may request their own; HR "
        "may request one for any employee. Each certificate carries a reference number "
        "of the form PC/<employee code>/<year>.",
    ),
)

_WORD = re.compile(r"\b\w+\b")


@dataclass(frozen=True)
class PolicyAnswer:
    topic: str
    text: str
    entry: PolicyEntry | None = None

    @property
    def matched(self) -> bool:
        return self.entry is not None


def lookup_policy(query: str, catalog=POLICY_CATALOG) -> PolicyAnswer:
    """Best keyword match from ``catalog``, or the handbook referral."""
    words = set(_WORD.findall((query or "").lower()))
    best, best_score = None, 0
    for entry in catalog:
        score = len(words & entry.keywords)
        if score > best_score:
            best, best_score = entry, score

    if best is None:
        logger.info("No policy entry for %r; referring to the handbook", query)
        return PolicyAnswer(HANDBOOK_TOPIC, HANDBOOK_ANSWER)
    return PolicyAnswer(best.topic, best.text, best)
