"""
Recurring Engine — templates that produce fixed-expense instances.

A template owns a ``next_due_date`` cursor. Whenever the cursor has reached
today, the engine:
1. **Creates one instance**: a fixed expense due on the cursor date.
2. **Advances the cursor** by the template's interval, only after the
   instance write has landed.

Generation is idempotent per cursor value: if an instance for
``(template_id, next_due_date)`` already exists, it is reused instead of
created again, so an interrupted run can be retried safely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from paycadence.dates import add_months, format_short_date, is_month_end
from paycadence.errors import GenerationError, NotFoundError, PaycadenceError, ValidationError
from paycadence.models.financial import (
    EntityType,
    FixedExpense,
    Frequency,
    RecurringTemplate,
    coerce,
)
from paycadence.stores.base import BaseExpenseStore

logger = logging.getLogger("paycadence.recurring")


class TemplateDraft(BaseModel):
    """User input for a new recurring template."""

    name: str = Field(min_length=1)
    base_amount: float = Field(gt=0)
    frequency: Frequency = Frequency.MONTHLY
    interval_value: int = Field(default=1, ge=1)
    start_date: date
    category: str = "Other"
    account_id: int | None = None
    notes: str = ""
    is_variable_amount: bool = False

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Template name is required")
        return v

    @model_validator(mode="after")
    def _custom_needs_interval(self) -> TemplateDraft:
        if self.frequency == Frequency.CUSTOM and "interval_value" not in self.model_fields_set:
            raise ValueError("interval_value is required for a custom frequency")
        return self


class ConversionDraft(BaseModel):
    """How to turn an existing expense into a recurring template.

    ``name`` defaults to the expense's name. ``start_date`` defaults to one
    interval after the expense's due date, so the expense itself stays the
    only instance for its own period.
    """

    name: str | None = None
    frequency: Frequency = Frequency.MONTHLY
    interval_value: int = Field(default=1, ge=1)
    start_date: date | None = None
    notes: str = ""
    is_variable_amount: bool = False

    @model_validator(mode="after")
    def _custom_needs_interval(self) -> ConversionDraft:
        if self.frequency == Frequency.CUSTOM and "interval_value" not in self.model_fields_set:
            raise ValueError("interval_value is required for a custom frequency")
        return self


@dataclass
class GenerationResult:
    """Outcome of generating one template's next instance."""

    template_id: int
    template_name: str = ""
    success: bool = True
    expense_id: int | None = None
    due_date: date | None = None
    error: str | None = None


@dataclass
class UpcomingRecurring:
    """A template's next occurrences, for display only."""

    template_id: int
    name: str
    amount: float
    next_due_date: date
    frequency: Frequency
    frequency_label: str
    category: str
    is_variable_amount: bool = False
    occurrences: list[date] = field(default_factory=list)

    @property
    def short_dates(self) -> list[str]:
        return [format_short_date(d) for d in self.occurrences]


def interval_months(template: RecurringTemplate) -> int:
    """Months between instances: the frequency's fixed span, or ``interval_value`` for custom."""
    return template.interval_months


def next_due_after(template: RecurringTemplate, current: date) -> date:
    """The cursor value that follows ``current``.

    Month arithmetic clamps to the end of short months. A series clamped to a
    month end returns to the template's original day once the month allows it:
    a series started on Jan 31 runs Jan 31, Feb 28, Mar 31.
    """
    anchor = current.day
    if is_month_end(current) and template.start_date.day > current.day:
        anchor = template.start_date.day
    return add_months(current, interval_months(template), anchor_day=anchor)


def upcoming_occurrences(template: RecurringTemplate, count: int = 3) -> list[date]:
    """The next ``count`` due dates starting at the cursor. Nothing is persisted."""
    occurrences: list[date] = []
    current = template.next_due_date
    for _ in range(max(count, 0)):
        occurrences.append(current)
        current = next_due_after(template, current)
    return occurrences


class RecurringEngine:
    """Create templates and generate their instances.

    Usage::

        engine = RecurringEngine(store)
        template_id = await engine.create_template(
            {"name": "Internet", "base_amount": 60, "start_date": "2025-01-15"}
        )
        results = await engine.auto_generate_due(date(2025, 1, 20))
    """

    def __init__(self, store: BaseExpenseStore, *, max_catch_up: int = 120) -> None:
        self.store = store
        self.max_catch_up = max_catch_up

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def validate_template(self, draft: TemplateDraft | dict[str, Any]) -> TemplateDraft:
        """Check a draft against the store. Raises ValidationError; writes nothing."""
        if not isinstance(draft, TemplateDraft):
            draft = coerce(TemplateDraft, draft)
        category = await self.store.resolve_category(draft.category)
        await self.store.check_funding(draft.account_id)
        if draft.frequency != Frequency.CUSTOM:
            # the interval is implied by the frequency
            draft = draft.model_copy(update={"interval_value": 1})
        return draft.model_copy(update={"category": category})

    async def create_template(self, draft: TemplateDraft | dict[str, Any]) -> int:
        """Persist a new active template whose cursor starts at ``start_date``."""
        draft = await self.validate_template(draft)
        template = RecurringTemplate(
            **draft.model_dump(),
            next_due_date=draft.start_date,
            is_active=True,
        )
        template_id = await self.store.add_recurring_template(template)
        logger.info(
            "Created recurring template %s (%d): %s from %s",
            template.name,
            template_id,
            template.frequency_label,
            template.start_date,
        )
        return template_id

    async def get_template(self, template_id: int) -> RecurringTemplate:
        template = await self.store.get_recurring_template(template_id)
        if template is None:
            raise NotFoundError(EntityType.RECURRING_TEMPLATE.value, template_id)
        return template

    async def due_templates(self, today: date) -> list[RecurringTemplate]:
        return await self.store.due_templates(today)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_next_occurrence(self, template_id: int) -> GenerationResult | None:
        """Produce the instance for the template's current cursor and advance it by one period.

        Returns None when the template is inactive. When an instance for the
        cursor date already exists it is reused and only the cursor moves.
        """
        template = await self.get_template(template_id)
        if not template.is_active:
            logger.debug("Template %d is inactive; nothing to generate", template_id)
            return None

        due = template.next_due_date
        async with self.store.transaction():
            existing = await self.store.find_template_instance(template_id, due)
            if existing is not None:
                expense_id = existing.id
                logger.debug("Template %d already has an instance for %s", template_id, due)
            else:
                expense_id = await self.store.add_fixed_expense(
                    FixedExpense(
                        name=template.name,
                        amount=template.base_amount,
                        paid_amount=0,
                        due_date=due,
                        category=template.category,
                        account_id=template.account_id,
                        recurring_template_id=template_id,
                    )
                )
            # cursor moves only once the instance exists
            await self.store.update_recurring_template(
                template_id, {"next_due_date": next_due_after(template, due)}
            )

        logger.info("Generated %s for %s (template %d)", template.name, due, template_id)
        return GenerationResult(
            template_id=template_id,
            template_name=template.name,
            expense_id=expense_id,
            due_date=due,
        )

    async def auto_generate_due(self, today: date, *, catch_up: bool = False) -> list[GenerationResult]:
        """Generate for every due template, one after another.

        Each template advances one period, or, with ``catch_up``, until its
        cursor passes ``today``. A failing template is reported in the results
        and does not stop the others.
        """
        results: list[GenerationResult] = []
        for template in await self.due_templates(today):
            assert template.id is not None
            rounds = self.max_catch_up if catch_up else 1
            for _ in range(rounds):
                try:
                    result = await self.generate_next_occurrence(template.id)
                except PaycadenceError as e:
                    error = GenerationError(template.id, str(e))
                    logger.error(str(error))
                    results.append(
                        GenerationResult(
                            template_id=template.id,
                            template_name=template.name,
                            success=False,
                            error=str(error),
                        )
                    )
                    break
                if result is None:
                    break
                results.append(result)
                current = await self.store.get_recurring_template(template.id)
                if current is None or current.next_due_date > today:
                    break

        generated = sum(1 for r in results if r.success)
        if results:
            logger.info("Auto-generated %d recurring expenses (%d failed)", generated, len(results) - generated)
        return results

    # ------------------------------------------------------------------
    # Projections and conversion
    # ------------------------------------------------------------------

    async def upcoming_recurring(self, count: int = 3) -> list[UpcomingRecurring]:
        """Next occurrences of every active template, soonest first."""
        upcoming = [
            UpcomingRecurring(
                template_id=t.id or 0,
                name=t.name,
                amount=t.base_amount,
                next_due_date=t.next_due_date,
                frequency=t.frequency,
                frequency_label=t.frequency_label,
                category=t.category,
                is_variable_amount=t.is_variable_amount,
                occurrences=upcoming_occurrences(t, count),
            )
            for t in await self.store.list_recurring_templates(active_only=True)
        ]
        return sorted(upcoming, key=lambda u: (u.next_due_date, u.template_id))

    async def convert_to_recurring(
        self,
        expense_id: int,
        draft: ConversionDraft | dict[str, Any],
    ) -> int:
        """Create a template from an existing expense and link the expense to it."""
        if not isinstance(draft, ConversionDraft):
            draft = coerce(ConversionDraft, draft)
        expense = await self.store.get_fixed_expense(expense_id)
        if expense is None:
            raise NotFoundError(EntityType.FIXED_EXPENSE.value, expense_id)
        if expense.recurring_template_id is not None:
            raise ValidationError(
                f"Expense {expense_id} already belongs to template {expense.recurring_template_id}",
                user_message="This expense is already recurring.",
            )

        months = draft.interval_value if draft.frequency == Frequency.CUSTOM else 1
        probe = RecurringTemplate(
            name=expense.name,
            base_amount=expense.amount,
            frequency=draft.frequency,
            interval_value=months,
            start_date=expense.due_date,
            next_due_date=expense.due_date,
        )
        start = draft.start_date or next_due_after(probe, expense.due_date)

        template_draft = await self.validate_template(
            {
                "name": draft.name or expense.name,
                "base_amount": expense.amount,
                "frequency": draft.frequency,
                "interval_value": draft.interval_value,
                "start_date": start,
                "category": expense.category,
                "account_id": expense.account_id,
                "notes": draft.notes,
                "is_variable_amount": draft.is_variable_amount,
            }
        )
        async with self.store.transaction():
            template_id = await self.create_template(template_draft)
            await self.store.update_fixed_expense(expense_id, {"recurring_template_id": template_id})

        logger.info("Converted expense %d to recurring template %d", expense_id, template_id)
        return template_id
