"""Tests for recurring templates and instance generation."""

from datetime import date, datetime
from typing import Any

import pytest

from paycadence.errors import NotFoundError, StorageError, ValidationError
from paycadence.models.financial import FixedExpense, Frequency, RecurringTemplate
from paycadence.recurring import RecurringEngine, next_due_after, upcoming_occurrences
from paycadence.stores.base import FIXED_EXPENSES
from paycadence.stores.memory import InMemoryStore


def fixed_now() -> datetime:
    return datetime(2025, 1, 10, 9, 30)


class FlakyStore(InMemoryStore):
    """Fails to write any expense named ``Broken``."""

    async def _insert(self, collection: str, record: dict[str, Any], record_id: int | None = None) -> int:
        if collection == FIXED_EXPENSES and record.get("name") == "Broken":
            raise StorageError("disk full")
        return await super()._insert(collection, record, record_id)


def _template(start: date, frequency: Frequency = Frequency.MONTHLY, interval: int = 1) -> RecurringTemplate:
    return RecurringTemplate(
        name="Rent",
        base_amount=1200,
        frequency=frequency,
        interval_value=interval,
        start_date=start,
        next_due_date=start,
    )


class TestCursorArithmetic:
    def test_month_end_series_returns_to_31st(self) -> None:
        template = _template(date(2025, 1, 31))
        assert next_due_after(template, date(2025, 1, 31)) == date(2025, 2, 28)
        assert next_due_after(template, date(2025, 2, 28)) == date(2025, 3, 31)
        assert next_due_after(template, date(2025, 3, 31)) == date(2025, 4, 30)

    def test_mid_month_series(self) -> None:
        template = _template(date(2025, 1, 15))
        assert next_due_after(template, date(2025, 1, 15)) == date(2025, 2, 15)

    def test_frequencies(self) -> None:
        start = date(2025, 1, 15)
        assert next_due_after(_template(start, Frequency.QUARTERLY), start) == date(2025, 4, 15)
        assert next_due_after(_template(start, Frequency.BIANNUALLY), start) == date(2025, 7, 15)
        assert next_due_after(_template(start, Frequency.ANNUALLY), start) == date(2026, 1, 15)
        assert next_due_after(_template(start, Frequency.CUSTOM, 2), start) == date(2025, 3, 15)

    def test_upcoming_occurrences(self) -> None:
        template = _template(date(2025, 1, 31))
        assert upcoming_occurrences(template, 3) == [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31)]
        assert upcoming_occurrences(template, 0) == []


class TestCreateTemplate:
    @pytest.mark.asyncio
    async def test_cursor_starts_at_start_date(self, seeded_memory_store: InMemoryStore) -> None:
        engine = RecurringEngine(seeded_memory_store)
        template_id = await engine.create_template(
            {"name": "Internet", "base_amount": 60, "start_date": "2025-01-15", "category": "utilities"}
        )
        template = await engine.get_template(template_id)
        assert template.next_due_date == date(2025, 1, 15)
        assert template.is_active
        assert template.category == "Utilities"
        assert template.created_at is not None and template.updated_at is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "draft",
        [
            {"name": "", "base_amount": 60, "start_date": "2025-01-15"},
            {"name": "Gym", "base_amount": 0, "start_date": "2025-01-15"},
            {"name": "Gym", "base_amount": 20, "start_date": "2025-02-30"},
            {"name": "Gym", "base_amount": 20, "start_date": "2025-01-15", "frequency": "weekly"},
            {"name": "Gym", "base_amount": 20, "start_date": "2025-01-15", "frequency": "custom", "interval_value": 0},
            {"name": "Gym", "base_amount": 20, "start_date": "2025-01-15", "frequency": "custom"},
            {"name": "Gym", "base_amount": 20, "start_date": "2025-01-15", "category": "Nope"},
            {"name": "Gym", "base_amount": 20, "start_date": "2025-01-15", "account_id": 99},
        ],
    )
    async def test_invalid_drafts_write_nothing(
        self, seeded_memory_store: InMemoryStore, draft: dict[str, Any]
    ) -> None:
        engine = RecurringEngine(seeded_memory_store)
        with pytest.raises(ValidationError):
            await engine.create_template(draft)
        assert await seeded_memory_store.list_recurring_templates() == []


class TestGeneration:
    @pytest.mark.asyncio
    async def test_generates_one_instance_and_advances(self, seeded_memory_store: InMemoryStore) -> None:
        engine = RecurringEngine(seeded_memory_store)
        template_id = await engine.create_template({"name": "Gym", "base_amount": 20, "start_date": "2025-01-15"})

        results = await engine.auto_generate_due(date(2025, 1, 20))

        assert len(results) == 1 and results[0].success
        expenses = await seeded_memory_store.list_fixed_expenses()
        assert len(expenses) == 1
        assert expenses[0].due_date == date(2025, 1, 15)
        assert expenses[0].amount == 20
        assert expenses[0].paid_amount == 0
        assert expenses[0].recurring_template_id == template_id
        assert (await engine.get_template(template_id)).next_due_date == date(2025, 2, 15)

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, seeded_memory_store: InMemoryStore) -> None:
        engine = RecurringEngine(seeded_memory_store)
        await engine.create_template({"name": "Gym", "base_amount": 20, "start_date": "2025-01-15"})
        await engine.auto_generate_due(date(2025, 1, 20))

        assert await engine.auto_generate_due(date(2025, 1, 20)) == []
        assert len(await seeded_memory_store.list_fixed_expenses()) == 1

    @pytest.mark.asyncio
    async def test_month_clamp_across_generations(self, seeded_memory_store: InMemoryStore) -> None:
        engine = RecurringEngine(seeded_memory_store)
        template_id = await engine.create_template({"name": "Rent", "base_amount": 900, "start_date": "2025-01-31"})

        await engine.generate_next_occurrence(template_id)
        assert (await engine.get_template(template_id)).next_due_date == date(2025, 2, 28)
        await engine.generate_next_occurrence(template_id)
        assert (await engine.get_template(template_id)).next_due_date == date(2025, 3, 31)

        due_dates = [e.due_date for e in await seeded_memory_store.list_fixed_expenses()]
        assert due_dates == [date(2025, 1, 31), date(2025, 2, 28)]

    @pytest.mark.asyncio
    async def test_existing_instance_is_not_duplicated(self, seeded_memory_store: InMemoryStore) -> None:
        engine = RecurringEngine(seeded_memory_store)
        template_id = await engine.create_template({"name": "Gym", "base_amount": 20, "start_date": "2025-01-15"})
        # an earlier run wrote the instance but never advanced the cursor
        existing_id = await seeded_memory_store.add_fixed_expense(
            FixedExpense(name="Gym", amount=20, due_date=date(2025, 1, 15), recurring_template_id=template_id)
        )

        result = await engine.generate_next_occurrence(template_id)

        assert result is not None and result.expense_id == existing_id
        assert len(await seeded_memory_store.get_expenses_by_template(template_id)) == 1
        assert (await engine.get_template(template_id)).next_due_date == date(2025, 2, 15)

    @pytest.mark.asyncio
    async def test_inactive_template_never_generates(self, seeded_memory_store: InMemoryStore) -> None:
        engine = RecurringEngine(seeded_memory_store)
        template_id = await engine.create_template({"name": "Gym", "base_amount": 20, "start_date": "2025-01-15"})
        await seeded_memory_store.update_recurring_template(template_id, {"is_active": False})

        assert await engine.generate_next_occurrence(template_id) is None
        assert await engine.auto_generate_due(date(2025, 3, 1)) == []
        assert await seeded_memory_store.list_fixed_expenses() == []

    @pytest.mark.asyncio
    async def test_missing_template(self, seeded_memory_store: InMemoryStore) -> None:
        with pytest.raises(NotFoundError):
            await RecurringEngine(seeded_memory_store).generate_next_occurrence(42)

    @pytest.mark.asyncio
    async def test_dormant_template_advances_one_period_per_run(self, seeded_memory_store: InMemoryStore) -> None:
        engine = RecurringEngine(seeded_memory_store)
        template_id = await engine.create_template({"name": "Gym", "base_amount": 20, "start_date": "2024-10-15"})

        await engine.auto_generate_due(date(2025, 1, 20))

        assert len(await seeded_memory_store.list_fixed_expenses()) == 1
        assert (await engine.get_template(template_id)).next_due_date == date(2024, 11, 15)

    @pytest.mark.asyncio
    async def test_catch_up_generates_every_missed_period(self, seeded_memory_store: InMemoryStore) -> None:
        engine = RecurringEngine(seeded_memory_store)
        template_id = await engine.create_template({"name": "Gym", "base_amount": 20, "start_date": "2024-10-15"})

        results = await engine.auto_generate_due(date(2025, 1, 20), catch_up=True)

        assert [r.due_date for r in results] == [
            date(2024, 10, 15),
            date(2024, 11, 15),
            date(2024, 12, 15),
            date(2025, 1, 15),
        ]
        assert (await engine.get_template(template_id)).next_due_date == date(2025, 2, 15)


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(self) -> None:
        store = FlakyStore(now=fixed_now)
        await store.initialize_default_categories()
        engine = RecurringEngine(store)
        broken_id = await engine.create_template({"name": "Broken", "base_amount": 10, "start_date": "2025-01-05"})
        good_id = await engine.create_template({"name": "Phone", "base_amount": 45, "start_date": "2025-01-06"})

        results = await engine.auto_generate_due(date(2025, 1, 10))

        by_template = {r.template_id: r for r in results}
        assert by_template[broken_id].success is False
        assert "disk full" in (by_template[broken_id].error or "")
        assert by_template[good_id].success is True
        # the failed template's cursor must not move past the missing instance
        assert (await engine.get_template(broken_id)).next_due_date == date(2025, 1, 5)
        assert (await engine.get_template(good_id)).next_due_date == date(2025, 2, 6)
        assert [e.name for e in await store.list_fixed_expenses()] == ["Phone"]


class TestUpcomingAndConversion:
    @pytest.mark.asyncio
    async def test_upcoming_recurring(self, seeded_memory_store: InMemoryStore) -> None:
        engine = RecurringEngine(seeded_memory_store)
        await engine.create_template({"name": "Insurance", "base_amount": 300, "start_date": "2025-03-01", "frequency": "quarterly"})
        await engine.create_template({"name": "Gym", "base_amount": 20, "start_date": "2025-01-15"})

        upcoming = await engine.upcoming_recurring(count=2)

        assert [u.name for u in upcoming] == ["Gym", "Insurance"]
        assert upcoming[1].occurrences == [date(2025, 3, 1), date(2025, 6, 1)]
        assert upcoming[1].frequency_label == "Every 3 months"
        assert upcoming[0].short_dates == ["Jan 15, 2025", "Feb 15, 2025"]
        # projecting persists nothing
        assert await seeded_memory_store.list_fixed_expenses() == []

    @pytest.mark.asyncio
    async def test_convert_expense(self, seeded_memory_store: InMemoryStore) -> None:
        engine = RecurringEngine(seeded_memory_store)
        expense_id = await seeded_memory_store.add_fixed_expense(
            FixedExpense(name="Water", amount=80, due_date=date(2025, 1, 5), category="Utilities")
        )

        template_id = await engine.convert_to_recurring(expense_id, {"frequency": "monthly"})

        template = await engine.get_template(template_id)
        assert template.name == "Water"
        assert template.base_amount == 80
        assert template.category == "Utilities"
        assert template.next_due_date == date(2025, 2, 5)
        expense = await seeded_memory_store.get_fixed_expense(expense_id)
        assert expense is not None and expense.recurring_template_id == template_id

    @pytest.mark.asyncio
    async def test_convert_twice_is_rejected(self, seeded_memory_store: InMemoryStore) -> None:
        engine = RecurringEngine(seeded_memory_store)
        expense_id = await seeded_memory_store.add_fixed_expense(
            FixedExpense(name="Water", amount=80, due_date=date(2025, 1, 5))
        )
        await engine.convert_to_recurring(expense_id, {})
        with pytest.raises(ValidationError):
            await engine.convert_to_recurring(expense_id, {})
        assert len(await seeded_memory_store.list_recurring_templates()) == 1

    @pytest.mark.asyncio
    async def test_convert_custom_needs_interval(self, seeded_memory_store: InMemoryStore) -> None:
        engine = RecurringEngine(seeded_memory_store)
        expense_id = await seeded_memory_store.add_fixed_expense(
            FixedExpense(name="Water", amount=80, due_date=date(2025, 1, 5))
        )
        with pytest.raises(ValidationError):
            await engine.convert_to_recurring(expense_id, {"frequency": "custom"})

        template_id = await engine.convert_to_recurring(expense_id, {"frequency": "custom", "interval_value": 2})
        assert (await engine.get_template(template_id)).next_due_date == date(2025, 3, 5)
