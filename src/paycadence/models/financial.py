"""
Financial data models — accounts, credit cards, categories, expenses,
recurring templates, pending transactions, paycheck settings and audit entries.

These are the records the stores persist. Derived values (statuses,
projected balances, summaries) are never stored on them.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Literal, TypeVar

import pydantic
from pydantic import BaseModel, Field, field_validator, model_validator

from paycadence.errors import ValidationError

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"

M = TypeVar("M", bound=BaseModel)


class AccountType(str, Enum):
    """Kinds of money holders a payment can be drawn from."""

    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT_CARD = "credit_card"
    OTHER = "other"


class Frequency(str, Enum):
    """Recurrence cadence of a template. Monthly or coarser only."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BIANNUALLY = "biannually"
    ANNUALLY = "annually"
    CUSTOM = "custom"


FREQUENCY_MONTHS: dict[Frequency, int] = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.BIANNUALLY: 6,
    Frequency.ANNUALLY: 12,
}

FREQUENCY_LABELS: dict[Frequency, str] = {
    Frequency.MONTHLY: "Every month",
    Frequency.QUARTERLY: "Every 3 months",
    Frequency.BIANNUALLY: "Every 6 months",
    Frequency.ANNUALLY: "Every year",
    Frequency.CUSTOM: "Custom interval",
}


class AuditAction(str, Enum):
    """Types of audited mutations."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RESET = "RESET"
    PAYMENT = "PAYMENT"
    GENERATE = "GENERATE"
    IMPORT = "IMPORT"
    EXPORT = "EXPORT"


class EntityType(str, Enum):
    """Collections named in audit entries."""

    ACCOUNT = "accounts"
    CREDIT_CARD = "creditCards"
    CATEGORY = "categories"
    FIXED_EXPENSE = "fixedExpenses"
    RECURRING_TEMPLATE = "recurringTemplates"
    PENDING_TRANSACTION = "pendingTransactions"
    PAYCHECK_SETTINGS = "paycheckSettings"
    DATABASE = "database"


class Account(BaseModel):
    """A checking, savings or other cash account."""

    id: int | None = None
    name: str = Field(min_length=1, max_length=50)
    type: AccountType = AccountType.CHECKING
    current_balance: float = 0.0
    is_default: bool = False
    created_at: datetime | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Account name is required")
        return v


class CreditCard(BaseModel):
    """A credit card. ``balance`` is outstanding debt."""

    id: int | None = None
    name: str = Field(min_length=1, max_length=50)
    balance: float = Field(default=0.0, ge=0)
    credit_limit: float | None = Field(default=None, ge=0)
    interest_rate: float | None = Field(default=None, ge=0, le=100)
    due_date: date | None = None
    statement_closing_date: date | None = None
    minimum_payment: float | None = Field(default=None, ge=0)
    created_at: datetime | None = None


class Category(BaseModel):
    """An expense category. ``name_lower`` is its case-insensitive identity."""

    id: int | None = None
    name: str = Field(min_length=1, max_length=30)
    name_lower: str = ""
    color: str = Field(default="#6B7280", pattern=HEX_COLOR_PATTERN)
    icon: str = "📦"
    is_default: bool = False
    created_at: datetime | None = None

    @model_validator(mode="after")
    def _normalize_name(self) -> Category:
        self.name = self.name.strip()
        if not self.name:
            raise ValueError("Category name is required")
        self.name_lower = self.name.lower()
        return self


class FixedExpense(BaseModel):
    """A bill with a due date, possibly produced by a recurring template."""

    id: int | None = None
    name: str = Field(min_length=1)
    amount: float = Field(gt=0)
    paid_amount: float = Field(default=0.0, ge=0)
    due_date: date
    category: str = "Other"
    account_id: int | None = None
    credit_card_id: int | None = None
    recurring_template_id: int | None = None
    created_at: datetime | None = None

    @model_validator(mode="after")
    def _paid_within_amount(self) -> FixedExpense:
        if self.paid_amount > self.amount:
            raise ValueError(
                f"paid_amount {self.paid_amount} exceeds amount {self.amount}"
            )
        if self.account_id is not None and self.credit_card_id is not None:
            raise ValueError("an expense is paid from an account or a credit card, not both")
        return self

    @property
    def remaining_amount(self) -> float:
        return self.amount - self.paid_amount

    @property
    def is_generated(self) -> bool:
        return self.recurring_template_id is not None


class RecurringTemplate(BaseModel):
    """Blueprint for a repeating expense. Owns the ``next_due_date`` cursor."""

    id: int | None = None
    name: str = Field(min_length=1)
    base_amount: float = Field(gt=0)
    frequency: Frequency = Frequency.MONTHLY
    interval_value: int = Field(default=1, ge=1)
    start_date: date
    next_due_date: date
    category: str = "Other"
    account_id: int | None = None
    notes: str = ""
    is_active: bool = True
    is_variable_amount: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _cursor_after_start(self) -> RecurringTemplate:
        if self.next_due_date < self.start_date:
            raise ValueError("next_due_date cannot precede start_date")
        return self

    @property
    def interval_months(self) -> int:
        if self.frequency == Frequency.CUSTOM:
            return self.interval_value
        return FREQUENCY_MONTHS[self.frequency]

    @property
    def frequency_label(self) -> str:
        if self.frequency == Frequency.CUSTOM:
            return f"Every {self.interval_value} months"
        return FREQUENCY_LABELS[self.frequency]


class PendingTransaction(BaseModel):
    """A not-yet-cleared transaction; contributes to projected balance."""

    id: int | None = None
    account_id: int
    amount: float
    description: str = ""
    category: str = ""
    date: date
    created_at: datetime | None = None


class PaycheckSettings(BaseModel):
    """Reference paycheck. The cadence is fixed at biweekly."""

    id: int | None = None
    last_paycheck_date: date | None = None
    frequency: Literal["biweekly"] = "biweekly"

    @field_validator("last_paycheck_date", mode="before")
    @classmethod
    def _blank_is_unset(cls, v: Any) -> Any:
        if v == "":
            return None
        return v


class AuditLogEntry(BaseModel):
    """An append-only record of one mutation."""

    id: int | None = None
    timestamp: datetime
    action_type: str
    entity_type: str
    entity_id: int | str
    details: dict[str, Any] = Field(default_factory=dict)


class DataSnapshot(BaseModel):
    """Everything in a store, as one document. Produced by export, consumed by import."""

    version: str = "1.0"
    exported_at: datetime | None = None
    accounts: list[Account] = Field(default_factory=list)
    credit_cards: list[CreditCard] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    fixed_expenses: list[FixedExpense] = Field(default_factory=list)
    recurring_templates: list[RecurringTemplate] = Field(default_factory=list)
    pending_transactions: list[PendingTransaction] = Field(default_factory=list)
    paycheck_settings: PaycheckSettings | None = None
    audit: list[AuditLogEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _consistent(self) -> DataSnapshot:
        defaults = [a for a in self.accounts if a.is_default]
        if len(defaults) > 1:
            raise ValueError("snapshot has more than one default account")
        if self.accounts and not defaults:
            raise ValueError("snapshot accounts have no default")
        names = [c.name_lower for c in self.categories]
        if len(names) != len(set(names)):
            raise ValueError("snapshot has duplicate category names")
        return self


def coerce(model: type[M], data: dict[str, Any]) -> M:
    """Validate ``data`` into ``model``, raising our ValidationError on failure."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        messages = [
            f"{'.'.join(str(p) for p in err['loc']) or model.__name__}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError(
            f"Invalid {model.__name__}: {'; '.join(messages)}",
            errors=messages,
        ) from e


def merge(record: M, changes: dict[str, Any]) -> M:
    """Apply ``changes`` to ``record`` and re-validate the result."""
    data = record.model_dump()
    data.update(changes)
    return coerce(type(record), data)
