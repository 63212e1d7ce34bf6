"""Data models — persisted records and the export document."""
from paycadence.models.financial import (
    Account,
    AccountType,
    AuditAction,
    AuditLogEntry,
    Category,
    CreditCard,
    DataSnapshot,
    EntityType,
    FixedExpense,
    Frequency,
    PaycheckSettings,
    PendingTransaction,
    RecurringTemplate,
)

__all__ = [
    "Account",
    "AccountType",
    "AuditAction",
    "AuditLogEntry",
    "Category",
    "CreditCard",
    "DataSnapshot",
    "EntityType",
    "FixedExpense",
    "Frequency",
    "PaycheckSettings",
    "PendingTransaction",
    "RecurringTemplate",
]
