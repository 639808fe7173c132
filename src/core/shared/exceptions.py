"""
Domain exceptions for the engagement core.

Every layer talks about failures through this hierarchy, so the request
layer can map them to responses without knowing where they were raised.

Hierarchy:
    DomainException (base)
    ├── ValidationError (malformed input)
    ├── EntityNotFoundError (no document for the given id)
    ├── AuthorizationError (caller may not perform the operation)
    ├── BusinessRuleViolationError (lifecycle rule violated)
    └── ConcurrencyError (conflicting write)
"""


class DomainException(Exception):
    """
    Base class for every domain error.

    Example:
        try:
            ticket.add_rating(5)
        except DomainException as e:
            logger.warning("Rejected: %s", e)
    """

    def __init__(self, message: str, code: str = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict:
        """Serialize the error for API payloads."""
        return {
            "error": self.code,
            "message": self.message,
        }


class ValidationError(DomainException):
    """
    Input does not meet the minimum requirements for processing.

    Example:
        if not subject:
            raise ValidationError("Subject is required", field="subject")
    """

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        return result


class EntityNotFoundError(DomainException):
    """
    Lookup by id returned nothing.

    Kept separate from AuthorizationError so callers can tell
    "does not exist" from "not yours".
    """

    def __init__(self, message: str, entity_type: str = None, entity_id: str = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message, "ENTITY_NOT_FOUND")

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.entity_type:
            result["entity_type"] = self.entity_type
        if self.entity_id:
            result["entity_id"] = self.entity_id
        return result


class AuthorizationError(DomainException):
    """
    The calling actor lacks the role or ownership the operation requires.

    Example:
        if not actor.is_admin:
            raise AuthorizationError("Only admins can resolve tickets", action="resolve")
    """

    def __init__(self, message: str, action: str = None):
        self.action = action
        super().__init__(message, "ACCESS_DENIED")

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.action:
            result["action"] = self.action
        return result


class BusinessRuleViolationError(DomainException):
    """
    A lifecycle rule was violated.

    The ``rule`` slug is stable and safe to branch on in clients.

    Example:
        if self.status not in RATEABLE_STATUSES:
            raise BusinessRuleViolationError(
                "Can only rate resolved or closed tickets",
                rule="rating_requires_resolution",
            )
    """

    def __init__(self, message: str, rule: str = None):
        self.rule = rule
        super().__init__(message, "BUSINESS_RULE_VIOLATION")

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.rule:
            result["rule"] = self.rule
        return result


class ConcurrencyError(DomainException):
    """
    Conflicting write detected, e.g. a duplicated unique number.
    """

    def __init__(self, message: str):
        super().__init__(message, "CONCURRENCY_ERROR")
