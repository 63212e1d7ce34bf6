"""
Error taxonomy for paycadence.

Every error carries two messages: the developer message (``str(err)``) that
goes to logs and the audit trail, and a generic ``user_message`` suitable
for display.
"""

from __future__ import annotations

from typing import Any


class PaycadenceError(Exception):
    """Base class for all paycadence errors."""

    default_user_message = "Something went wrong. Please try again."

    def __init__(self, message: str, *, user_message: str | None = None, **context: Any) -> None:
        super().__init__(message)
        self.user_message = user_message or self.default_user_message
        self.context = context


class ValidationError(PaycadenceError, ValueError):
    """Input failed an invariant. Nothing was persisted."""

    default_user_message = "Please check the values you entered and try again."

    def __init__(
        self,
        message: str,
        *,
        errors: list[str] | None = None,
        user_message: str | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, user_message=user_message, **context)
        self.errors = errors or [message]


class NotFoundError(PaycadenceError, LookupError):
    """A referenced id does not exist."""

    default_user_message = "The requested item could not be found."

    def __init__(self, entity_type: str, entity_id: Any, *, user_message: str | None = None) -> None:
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            user_message=user_message,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ConflictError(PaycadenceError):
    """Uniqueness or referential rule violated."""

    default_user_message = "That change conflicts with existing data."


class StorageError(PaycadenceError):
    """The underlying store failed."""

    default_user_message = "Failed to save your changes. Please try again."


class GenerationError(PaycadenceError):
    """A single recurring template failed to produce its next instance."""

    default_user_message = "A recurring expense could not be generated."

    def __init__(self, template_id: int, reason: str) -> None:
        super().__init__(
            f"Failed to generate expense for template {template_id}: {reason}",
            template_id=template_id,
        )
        self.template_id = template_id
