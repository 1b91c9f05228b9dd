"""
Service-wide exception hierarchy.

Services raise these types; the chat orchestrator turns them into reply
envelopes and the app factory maps the ones that escape to HTTP status
codes in one place.

Usage:
    from peoplecore.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Employee", resource_id="Jane Doe")
    raise ValidationError("Salary must be a positive number", details={"salary": "-5"})
"""


class PeopleCoreError(Exception):
    """Base for every error raised by PeopleCore services."""


class NotFoundError(PeopleCoreError):
    """Raised when a requested record does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Employee").
        resource_id: The key that was looked up. Included in logs, not in replies.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" {resource_id!r}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(PeopleCoreError):
    """Raised when input is well-formed but violates a business rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(PeopleCoreError):
    """Raised when an operation would duplicate a unique value (HTTP 409)."""

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class AuthorizationError(PeopleCoreError):
    """Raised when the caller's role does not permit the requested operation.

    Maps to HTTP 403. The message is safe to show to the caller.
    """

    def __init__(self, message: str = "You are not authorised to perform this action") -> None:
        super().__init__(message)


class QueryExecutionError(PeopleCoreError):
    """Raised when the store rejects or aborts a model-authored statement.

    ``detail`` carries the driver message; only HR callers ever see it.
    """

    def __init__(self, detail: str, sql: str | None = None) -> None:
        self.detail = detail
        self.sql = sql
        super().__init__(f"Query execution failed: {detail}")


class LLMGatewayError(PeopleCoreError):
    """Raised when a language-model call fails (transport, timeout, provider error)."""

    def __init__(self, message: str, provider: str | None = None, model: str | None = None) -> None:
        self.provider = provider
        self.model = model
        super().__init__(message)
