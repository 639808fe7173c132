"""
Shared Domain Components.

Pieces used by every domain:
- Domain exceptions
- Interfaces (Ports)
- Base class for Domain Events
- Actor (caller identity and role)
"""

from .exceptions import (
    DomainException,
    ValidationError,
    EntityNotFoundError,
    AuthorizationError,
    BusinessRuleViolationError,
    ConcurrencyError,
)
from .events import DomainEvent
from .interfaces import UnitOfWork, SequenceGenerator, InMemorySequenceGenerator
from .actor import Actor, Role

__all__ = [
    "DomainException",
    "ValidationError",
    "EntityNotFoundError",
    "AuthorizationError",
    "BusinessRuleViolationError",
    "ConcurrencyError",
    "DomainEvent",
    "UnitOfWork",
    "SequenceGenerator",
    "InMemorySequenceGenerator",
    "Actor",
    "Role",
]
