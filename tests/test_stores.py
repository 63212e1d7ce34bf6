"""Tests for the store contract, run against every backend."""

from datetime import date
from pathlib import Path

import pytest

from paycadence.errors import ConflictError, NotFoundError, ValidationError
from paycadence.models.financial import (
    Account,
    AccountType,
    Category,
    CreditCard,
    DataSnapshot,
    FixedExpense,
    PaycheckSettings,
    PendingTransaction,
    RecurringTemplate,
)
from paycadence.stores.base import ACCOUNTS, DEFAULT_CATEGORIES, PAYCHECK_SETTINGS, BaseExpenseStore
from paycadence.stores.memory import InMemoryStore
from paycadence.stores.sql import SQLStore, build_metadata, sequence_resets


class TestAccounts:
    @pytest.mark.asyncio
    async def test_first_account_is_default(self, store: BaseExpenseStore) -> None:
        first = await store.add_account(Account(name="Checking", current_balance=1000))
        await store.add_account(Account(name="Savings", type=AccountType.SAVINGS))

        default = await store.get_default_account()
        assert default is not None and default.id == first
        assert sum(a.is_default for a in await store.list_accounts()) == 1

    @pytest.mark.asyncio
    async def test_set_default_keeps_exactly_one(self, store: BaseExpenseStore) -> None:
        await store.add_account(Account(name="Checking"))
        savings = await store.add_account(Account(name="Savings"))

        await store.set_default_account(savings)

        accounts = await store.list_accounts()
        assert [a.id for a in accounts if a.is_default] == [savings]

    @pytest.mark.asyncio
    async def test_deleting_default_reelects(self, store: BaseExpenseStore) -> None:
        first = await store.add_account(Account(name="Checking"))
        second = await store.add_account(Account(name="Savings"))

        await store.delete_account(first)

        default = await store.get_default_account()
        assert default is not None and default.id == second

    @pytest.mark.asyncio
    async def test_referenced_account_cannot_be_deleted(self, store: BaseExpenseStore) -> None:
        account_id = await store.add_account(Account(name="Checking"))
        await store.add_pending_transaction(
            PendingTransaction(account_id=account_id, amount=-20, date=date(2025, 1, 9))
        )

        with pytest.raises(ConflictError):
            await store.delete_account(account_id)
        assert await store.get_account(account_id) is not None

    @pytest.mark.asyncio
    async def test_account_referenced_by_expense(self, store: BaseExpenseStore) -> None:
        account_id = await store.add_account(Account(name="Checking"))
        await store.add_fixed_expense(
            FixedExpense(name="Rent", amount=900, due_date=date(2025, 2, 1), account_id=account_id)
        )
        with pytest.raises(ConflictError):
            await store.delete_account(account_id)

    @pytest.mark.asyncio
    async def test_account_referenced_by_template(self, store: BaseExpenseStore) -> None:
        account_id = await store.add_account(Account(name="Checking"))
        await store.add_recurring_template(
            RecurringTemplate(
                name="Gym",
                base_amount=20,
                start_date=date(2025, 2, 1),
                next_due_date=date(2025, 2, 1),
                account_id=account_id,
            )
        )
        with pytest.raises(ConflictError):
            await store.delete_account(account_id)
        assert await store.get_account(account_id) is not None

    @pytest.mark.asyncio
    async def test_missing_account(self, store: BaseExpenseStore) -> None:
        with pytest.raises(NotFoundError):
            await store.delete_account(404)
        with pytest.raises(NotFoundError):
            await store.add_pending_transaction(PendingTransaction(account_id=404, amount=1, date=date(2025, 1, 1)))


class TestCategories:
    @pytest.mark.asyncio
    async def test_defaults_seeded_once(self, store: BaseExpenseStore) -> None:
        assert len(await store.list_categories()) == len(DEFAULT_CATEGORIES)
        assert await store.initialize_default_categories() == 0

    @pytest.mark.asyncio
    async def test_names_are_case_insensitive(self, store: BaseExpenseStore) -> None:
        with pytest.raises(ConflictError):
            await store.add_category(Category(name="  housing "))

    @pytest.mark.asyncio
    async def test_rename_clash(self, store: BaseExpenseStore) -> None:
        pets = await store.add_category(Category(name="Pets", color="#112233"))
        with pytest.raises(ConflictError):
            await store.update_category(pets, {"name": "DEBT"})
        renamed = await store.update_category(pets, {"name": "Animals"})
        assert renamed.name_lower == "animals"

    @pytest.mark.asyncio
    async def test_delete_reports_and_reassign_moves_items(self, store: BaseExpenseStore) -> None:
        account_id = await store.add_account(Account(name="Checking"))
        await store.add_fixed_expense(FixedExpense(name="Netflix", amount=15, due_date=date(2025, 1, 20), category="Subscriptions"))
        await store.add_pending_transaction(
            PendingTransaction(account_id=account_id, amount=-9.99, category="Subscriptions", date=date(2025, 1, 8))
        )

        usage = await store.category_usage("Subscriptions")
        assert (usage.expense_count, usage.transaction_count) == (1, 1)
        assert usage.total_expense_amount == 15

        moved = await store.reassign_category_items("Subscriptions", "Other")
        assert moved.count == 2
        category = await store.get_category_by_name("subscriptions")
        assert category is not None and category.id is not None
        affected = await store.delete_category(category.id)
        assert affected.count == 0
        assert (await store.category_usage("Other")).expense_count == 1


class TestExpensesAndTemplates:
    @pytest.mark.asyncio
    async def test_expenses_ordered_by_due_date(self, store: BaseExpenseStore) -> None:
        for day in (20, 3, 11):
            await store.add_fixed_expense(FixedExpense(name=f"Bill {day}", amount=10, due_date=date(2025, 1, day)))
        assert [e.due_date.day for e in await store.list_fixed_expenses()] == [3, 11, 20]

    @pytest.mark.asyncio
    async def test_paid_amount_cannot_exceed_amount(self, store: BaseExpenseStore) -> None:
        expense_id = await store.add_fixed_expense(FixedExpense(name="Rent", amount=900, due_date=date(2025, 2, 1)))
        with pytest.raises(ValidationError):
            await store.update_fixed_expense(expense_id, {"paid_amount": 901})
        expense = await store.get_fixed_expense(expense_id)
        assert expense is not None and expense.paid_amount == 0

    @pytest.mark.asyncio
    async def test_template_delete_keeps_instances(self, store: BaseExpenseStore) -> None:
        template_id = await store.add_recurring_template(
            RecurringTemplate(name="Gym", base_amount=20, start_date=date(2025, 1, 15), next_due_date=date(2025, 1, 15))
        )
        await store.add_fixed_expense(
            FixedExpense(name="Gym", amount=20, due_date=date(2025, 1, 15), recurring_template_id=template_id)
        )

        await store.delete_recurring_template(template_id)

        assert await store.get_recurring_template(template_id) is None
        instance = await store.find_template_instance(template_id, date(2025, 1, 15))
        assert instance is not None and instance.name == "Gym"

    @pytest.mark.asyncio
    async def test_active_filter_and_due(self, store: BaseExpenseStore) -> None:
        active = await store.add_recurring_template(
            RecurringTemplate(name="A", base_amount=1, start_date=date(2025, 1, 5), next_due_date=date(2025, 1, 5))
        )
        await store.add_recurring_template(
            RecurringTemplate(name="B", base_amount=1, start_date=date(2025, 1, 5), next_due_date=date(2025, 1, 5), is_active=False)
        )
        await store.add_recurring_template(
            RecurringTemplate(name="C", base_amount=1, start_date=date(2025, 1, 5), next_due_date=date(2025, 2, 5))
        )
        assert len(await store.list_recurring_templates()) == 3
        assert len(await store.list_recurring_templates(active_only=True)) == 2
        assert [t.id for t in await store.due_templates(date(2025, 1, 10))] == [active]


class TestAuditAndSettings:
    @pytest.mark.asyncio
    async def test_audit_is_newest_first(self, store: BaseExpenseStore) -> None:
        await store.append_audit("CREATE", "accounts", 1, {"name": "a"})
        await store.append_audit("DELETE", "accounts", 1)
        assert [e.action_type for e in await store.list_audit()] == ["DELETE", "CREATE"]
        await store.clear_audit()
        assert await store.list_audit() == []

    @pytest.mark.asyncio
    async def test_paycheck_settings_single_record(self, store: BaseExpenseStore) -> None:
        assert (await store.get_paycheck_settings()).last_paycheck_date is None
        await store.save_paycheck_settings(PaycheckSettings(last_paycheck_date=date(2025, 1, 3)))
        await store.save_paycheck_settings(PaycheckSettings(last_paycheck_date=date(2025, 1, 17)))
        settings = await store.get_paycheck_settings()
        assert settings.last_paycheck_date == date(2025, 1, 17)
        assert len(await store._fetch_all(PAYCHECK_SETTINGS)) == 1


class TestTransactions:
    @pytest.mark.asyncio
    async def test_failed_unit_of_work_leaves_nothing(self, store: BaseExpenseStore) -> None:
        with pytest.raises(RuntimeError):
            async with store.transaction():
                await store.add_account(Account(name="Checking"))
                raise RuntimeError("boom")
        assert await store.list_accounts() == []

    @pytest.mark.asyncio
    async def test_nested_transactions_commit_together(self, store: BaseExpenseStore) -> None:
        async with store.transaction():
            await store.add_account(Account(name="Checking"))
            async with store.transaction():
                await store.add_account(Account(name="Savings"))
        assert len(await store.list_accounts()) == 2


class TestSnapshots:
    @pytest.mark.asyncio
    async def test_export_wipe_import_round_trip(self, store: BaseExpenseStore) -> None:
        checking = await store.add_account(Account(name="Checking", current_balance=1200))
        card = await store.add_credit_card(CreditCard(name="Visa", balance=300, credit_limit=2000))
        template_id = await store.add_recurring_template(
            RecurringTemplate(name="Gym", base_amount=20, start_date=date(2025, 1, 15), next_due_date=date(2025, 2, 15))
        )
        await store.add_fixed_expense(
            FixedExpense(name="Gym", amount=20, due_date=date(2025, 1, 15), recurring_template_id=template_id, account_id=checking)
        )
        await store.add_fixed_expense(FixedExpense(name="Books", amount=50, due_date=date(2025, 1, 22), credit_card_id=card))
        await store.add_pending_transaction(PendingTransaction(account_id=checking, amount=-12.5, date=date(2025, 1, 9)))
        await store.save_paycheck_settings(PaycheckSettings(last_paycheck_date=date(2025, 1, 3)))
        await store.append_audit("CREATE", "accounts", checking)

        snapshot = await store.export_snapshot()
        document = snapshot.model_dump(mode="json")
        await store.wipe()
        assert await store.list_accounts() == []

        await store.import_snapshot(document)

        restored = await store.export_snapshot()
        assert restored.model_dump(exclude={"exported_at"}) == snapshot.model_dump(exclude={"exported_at"})
        # ids carry over, and new records never collide with them
        new_id = await store.add_fixed_expense(FixedExpense(name="New", amount=1, due_date=date(2025, 3, 1)))
        assert new_id not in {e.id for e in snapshot.fixed_expenses}

    @pytest.mark.asyncio
    async def test_invalid_snapshot_changes_nothing(self, store: BaseExpenseStore) -> None:
        await store.add_account(Account(name="Checking"))
        bad = DataSnapshot(
            fixed_expenses=[FixedExpense(id=1, name="Orphan", amount=5, due_date=date(2025, 1, 1), account_id=77)]
        )
        with pytest.raises(ValidationError):
            await store.import_snapshot(bad)
        with pytest.raises(ValidationError):
            await store.import_snapshot({"accounts": [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}]})
        orphan_template = RecurringTemplate(
            id=1, name="Gym", base_amount=20, start_date=date(2025, 1, 5), next_due_date=date(2025, 1, 5), account_id=77
        )
        with pytest.raises(ValidationError):
            await store.import_snapshot(DataSnapshot(recurring_templates=[orphan_template]))
        assert [a.name for a in await store.list_accounts()] == ["Checking"]

    @pytest.mark.asyncio
    async def test_fix_schema_backfills_default(self, memory_store: InMemoryStore) -> None:
        await memory_store._insert(ACCOUNTS, {"name": "Legacy", "type": "checking", "current_balance": 10})
        # reads report the gap without repairing it
        assert [a.is_default for a in await memory_store.list_accounts()] == [False]
        assert await memory_store.get_default_account() is None
        assert "is_default" not in (await memory_store._fetch_all(ACCOUNTS))[0]

        await memory_store.fix_schema()
        accounts = await memory_store.list_accounts()
        assert accounts[0].is_default is True
        assert len(await memory_store.list_categories()) == len(DEFAULT_CATEGORIES)


class TestSQLStore:
    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, tmp_path: Path) -> None:
        url = f"sqlite:///{tmp_path / 'reopen.db'}"
        first = SQLStore(url=url)
        await first.add_account(Account(name="Checking", current_balance=42))
        await first.close()

        second = SQLStore(url=url)
        accounts = await second.list_accounts()
        assert [(a.name, a.current_balance, a.is_default) for a in accounts] == [("Checking", 42, True)]
        await second.close()

    @pytest.mark.asyncio
    async def test_in_memory_url(self) -> None:
        store = SQLStore(url="sqlite://")
        await store.add_category(Category(name="Pets"))
        assert [c.name for c in await store.list_categories()] == ["Pets"]
        assert (await store.health_check())["healthy"] is True
        await store.close()

    def test_postgres_sequences_reset_after_import(self) -> None:
        _, tables = build_metadata("pc_")
        statements = [str(s) for s in sequence_resets(tables.values(), "postgresql")]
        assert len(statements) == len(tables)
        assert "pg_get_serial_sequence('pc_fixed_expenses', 'id')" in " ".join(statements)
        assert all("MAX(id)" in s for s in statements)
        assert sequence_resets(tables.values(), "sqlite") == []

