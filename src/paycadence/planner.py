"""
Planner — main orchestrator.

The Planner class is the entry point a UI or the CLI talks to. It wires the
store, the paycheck projector, the classifier, the recurring engine and the
cycle controller together, audits every mutation, and serializes user
actions so there is only ever one writer.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from paycadence.classifier import ClassifiedExpense, SummaryTotals, classify_all, summarize
from paycadence.config import PaycadenceConfig
from paycadence.credit import (
    CardMapping,
    ExpenseMatcher,
    FundingSource,
    MappingResult,
    funding_sources,
    suggest_card_mappings,
)
from paycadence.cycle import should_prompt_reset, start_new_cycle
from paycadence.dates import Clock, parse_date, system_clock
from paycadence.errors import NotFoundError, PaycadenceError, ValidationError
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
    PaycheckSettings,
    PendingTransaction,
    RecurringTemplate,
    coerce,
    merge,
)
from paycadence.paycheck import PaycheckProjection, PaycheckProjector
from paycadence.recurring import (
    ConversionDraft,
    GenerationResult,
    RecurringEngine,
    TemplateDraft,
    UpcomingRecurring,
    upcoming_occurrences,
)
from paycadence.stores.base import AffectedItems, BaseExpenseStore
from paycadence.stores.registry import create_store

logger = logging.getLogger("paycadence")

# template fields a caller may not edit directly
_TEMPLATE_PROTECTED_FIELDS = {"id", "created_at", "updated_at"}


@dataclass
class DashboardView:
    """Everything the main screen shows for one day."""

    today: date
    projection: PaycheckProjection = field(default_factory=PaycheckProjection)
    expenses: list[ClassifiedExpense] = field(default_factory=list)
    summary: SummaryTotals = field(default_factory=SummaryTotals)
    upcoming_recurring: list[UpcomingRecurring] = field(default_factory=list)
    generated: list[GenerationResult] = field(default_factory=list)
    prompt_reset: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Planner:
    """Top-level orchestrator for Paycadence.

    Usage::

        from paycadence import Planner

        planner = Planner.from_config("paycadence.yaml")
        await planner.initialize()
        view = await planner.load_view()
        await planner.apply_payment(expense_id=3, new_paid_amount=120.0)

    The Planner coordinates:
    - **Store**: where accounts, expenses and templates live.
    - **Projector**: where today sits in the biweekly pay rhythm.
    - **Classifier**: which paycheck covers each bill.
    - **Recurring engine**: instances generated from templates.
    - **Cycle controller**: when to zero payments for a new month.
    """

    config: PaycadenceConfig = field(default_factory=PaycadenceConfig)
    store: BaseExpenseStore | None = None
    clock: Clock | None = None
    _engine: RecurringEngine | None = field(default=None, init=False, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        self._setup()

    @classmethod
    def from_config(
        cls,
        config_path: str | None = None,
        *,
        clock: Clock | None = None,
        store: BaseExpenseStore | None = None,
        **overrides: Any,
    ) -> Planner:
        """Create a Planner from a config file or keyword arguments."""
        config = PaycadenceConfig.load(config_path, **overrides)
        return cls(config=config, store=store, clock=clock)

    def _setup(self) -> None:
        if self.store is None:
            self.store = create_store(self.config.store)
        if self.clock is None:
            self.clock = system_clock(self.config.timezone)
        self._engine = RecurringEngine(self.store, max_catch_up=self.config.max_catch_up)
        logger.info("Planner initialized with %s store", self.store.name)

    @property
    def db(self) -> BaseExpenseStore:
        assert self.store is not None
        return self.store

    @property
    def engine(self) -> RecurringEngine:
        assert self._engine is not None
        return self._engine

    def today(self) -> date:
        assert self.clock is not None
        return self.clock()

    async def close(self) -> None:
        await self.db.close()

    async def _audit(
        self,
        action: AuditAction,
        entity: EntityType,
        entity_id: int | str | None,
        details: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        return await self.db.append_audit(action, entity, entity_id if entity_id is not None else "", details)

    async def initialize(self) -> None:
        """Repair older data and seed the default categories."""
        async with self._lock:
            await self.db.fix_schema()
            if not self.config.seed_default_categories:
                return
            added = await self.db.initialize_default_categories()
            if added:
                await self._audit(AuditAction.CREATE, EntityType.CATEGORY, "all", {"defaults_added": added})

    # ------------------------------------------------------------------
    # Paycheck
    # ------------------------------------------------------------------

    async def set_last_paycheck(self, value: date | str) -> PaycheckSettings:
        paid_on = parse_date(value)
        async with self._lock:
            previous = await self.db.get_paycheck_settings()
            settings = await self.db.save_paycheck_settings(
                previous.model_copy(update={"last_paycheck_date": paid_on})
            )
            await self._audit(
                AuditAction.UPDATE,
                EntityType.PAYCHECK_SETTINGS,
                settings.id,
                {
                    "last_paycheck_date": {
                        "old": previous.last_paycheck_date.isoformat() if previous.last_paycheck_date else None,
                        "new": paid_on.isoformat(),
                    }
                },
            )
        return settings

    async def projection(self, today: date | None = None) -> PaycheckProjection:
        settings = await self.db.get_paycheck_settings()
        return PaycheckProjector(settings).project(today or self.today())

    # ------------------------------------------------------------------
    # The main view
    # ------------------------------------------------------------------

    async def load_view(self, today: date | None = None) -> DashboardView:
        """Compute today's dashboard.

        1. Read paycheck settings and project the next two pay dates.
        2. Generate instances for due templates (best effort; failures are logged).
        3. Read fixed expenses and classify, summarize and check for a reset.

        Read failures produce an empty view with ``error`` set instead of raising.
        """
        today = today or self.today()
        async with self._lock:
            try:
                settings = await self.db.get_paycheck_settings()
            except PaycadenceError as e:
                logger.warning("Could not read paycheck settings: %s", e)
                return DashboardView(today=today, error=e.user_message)
            projection = PaycheckProjector(settings).project(today)

            generated = await self._generate_due(today)

            try:
                expenses = await self.db.list_fixed_expenses()
                upcoming = await self.engine.upcoming_recurring(self.config.upcoming_count)
            except PaycadenceError as e:
                logger.warning("Could not load expenses: %s", e)
                return DashboardView(today=today, projection=projection, generated=generated, error=e.user_message)

        return DashboardView(
            today=today,
            projection=projection,
            expenses=classify_all(expenses, projection, today),
            summary=summarize(expenses, projection, today),
            upcoming_recurring=upcoming,
            generated=generated,
            prompt_reset=should_prompt_reset(expenses, projection, today),
        )

    async def _generate_due(self, today: date) -> list[GenerationResult]:
        try:
            results = await self.engine.auto_generate_due(today, catch_up=self.config.catch_up_missed)
            for result in results:
                if result.success:
                    await self._audit(
                        AuditAction.GENERATE,
                        EntityType.FIXED_EXPENSE,
                        result.expense_id,
                        {"template_id": result.template_id, "due_date": result.due_date.isoformat() if result.due_date else None},
                    )
        except PaycadenceError as e:
            logger.error("Recurring generation failed: %s", e)
            return []
        return results

    async def regenerate_due(self, today: date | None = None) -> list[GenerationResult]:
        """Run template generation on its own, e.g. at startup."""
        async with self._lock:
            return await self._generate_due(today or self.today())

    # ------------------------------------------------------------------
    # Payments and cycles
    # ------------------------------------------------------------------

    async def apply_payment(
        self,
        expense_id: int,
        new_paid_amount: float,
        *,
        adjust_balance: bool = False,
    ) -> FixedExpense:
        """Set an expense's paid amount.

        With ``adjust_balance``, the difference is also taken out of the
        expense's account (or off its credit card balance) and a PAYMENT
        entry is audited.

        Raises:
            ValidationError: if the amount is negative, above the expense amount or not a number.
            NotFoundError: if the expense does not exist.
        """
        try:
            new_paid = float(new_paid_amount)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid payment amount: {new_paid_amount!r}") from e
        if math.isnan(new_paid) or math.isinf(new_paid):
            raise ValidationError(f"Invalid payment amount: {new_paid_amount!r}")

        async with self._lock:
            expense = await self.db.get_fixed_expense(expense_id)
            if expense is None:
                raise NotFoundError(EntityType.FIXED_EXPENSE.value, expense_id)
            if not 0 <= new_paid <= expense.amount:
                raise ValidationError(
                    f"Payment {new_paid} outside [0, {expense.amount}] for expense {expense_id}",
                    user_message=f"Payment must be between 0 and {expense.amount:.2f}.",
                )

            delta = new_paid - expense.paid_amount
            async with self.db.transaction():
                updated = await self.db.update_fixed_expense(expense_id, {"paid_amount": new_paid})
                await self._audit(
                    AuditAction.UPDATE,
                    EntityType.FIXED_EXPENSE,
                    expense_id,
                    {"paid_amount": {"old": expense.paid_amount, "new": new_paid}},
                )
                if adjust_balance and delta:
                    await self._adjust_funding(expense, delta)

        logger.info("Payment applied to %s: %.2f of %.2f", expense.name, new_paid, expense.amount)
        return updated

    async def _adjust_funding(self, expense: FixedExpense, delta: float) -> None:
        if expense.account_id is not None:
            account = await self.db.get_account(expense.account_id)
            if account is None:
                raise NotFoundError(EntityType.ACCOUNT.value, expense.account_id)
            balance = account.current_balance - delta
            await self.db.update_account(expense.account_id, {"current_balance": balance})
            await self._audit(
                AuditAction.PAYMENT,
                EntityType.ACCOUNT,
                expense.account_id,
                {"expense_id": expense.id, "amount": delta, "balance": {"old": account.current_balance, "new": balance}},
            )
        elif expense.credit_card_id is not None:
            card = await self.db.get_credit_card(expense.credit_card_id)
            if card is None:
                raise NotFoundError(EntityType.CREDIT_CARD.value, expense.credit_card_id)
            # charging a bill to a card adds to its debt
            balance = max(card.balance + delta, 0.0)
            await self.db.update_credit_card(expense.credit_card_id, {"balance": balance})
            await self._audit(
                AuditAction.PAYMENT,
                EntityType.CREDIT_CARD,
                expense.credit_card_id,
                {"expense_id": expense.id, "amount": delta, "balance": {"old": card.balance, "new": balance}},
            )

    async def start_new_cycle(self, confirmed: bool = False, today: date | None = None) -> AuditLogEntry:
        """Zero every expense's paid amount. Requires ``confirmed=True``."""
        if not confirmed:
            raise ValidationError(
                "start_new_cycle requires explicit confirmation",
                user_message="Please confirm before starting a new cycle.",
            )
        async with self._lock:
            expenses = await self.db.list_fixed_expenses()
            return await start_new_cycle(self.db, expenses, today or self.today())

    # ------------------------------------------------------------------
    # Fixed expenses
    # ------------------------------------------------------------------

    async def _validate_expense(self, expense: FixedExpense) -> FixedExpense:
        category = await self.db.resolve_category(expense.category)
        await self.db.check_funding(expense.account_id, expense.credit_card_id)
        if expense.recurring_template_id is not None:
            if await self.db.get_recurring_template(expense.recurring_template_id) is None:
                raise ValidationError(f"Unknown recurring template: {expense.recurring_template_id}")
        return expense.model_copy(update={"category": category})

    async def add_expense(self, data: FixedExpense | dict[str, Any]) -> int:
        if not isinstance(data, FixedExpense):
            data = coerce(FixedExpense, {k: v for k, v in data.items() if k != "id"})
        async with self._lock:
            expense = await self._validate_expense(data.model_copy(update={"id": None}))
            async with self.db.transaction():
                expense_id = await self.db.add_fixed_expense(expense)
                await self._audit(
                    AuditAction.CREATE,
                    EntityType.FIXED_EXPENSE,
                    expense_id,
                    {"name": expense.name, "amount": expense.amount, "due_date": expense.due_date.isoformat()},
                )
        return expense_id

    async def update_expense(self, expense_id: int, changes: dict[str, Any]) -> FixedExpense:
        changes = {k: v for k, v in changes.items() if k not in ("id", "created_at")}
        async with self._lock:
            expense = await self.db.get_fixed_expense(expense_id)
            if expense is None:
                raise NotFoundError(EntityType.FIXED_EXPENSE.value, expense_id)
            candidate = await self._validate_expense(merge(expense, changes))
            async with self.db.transaction():
                updated = await self.db.update_fixed_expense(expense_id, candidate.model_dump(exclude={"id"}))
                await self._audit(AuditAction.UPDATE, EntityType.FIXED_EXPENSE, expense_id, _changed(expense, updated))
        return updated

    async def delete_expense(self, expense_id: int) -> None:
        async with self._lock:
            expense = await self.db.get_fixed_expense(expense_id)
            if expense is None:
                raise NotFoundError(EntityType.FIXED_EXPENSE.value, expense_id)
            async with self.db.transaction():
                await self.db.delete_fixed_expense(expense_id)
                await self._audit(AuditAction.DELETE, EntityType.FIXED_EXPENSE, expense_id, {"name": expense.name})

    async def describe_expense(self, expense_id: int) -> str:
        """One-line human description, e.g. ``Rent ($1,200.00 due 2025-02-01)``."""
        expense = await self.db.get_fixed_expense(expense_id)
        if expense is None:
            raise NotFoundError(EntityType.FIXED_EXPENSE.value, expense_id)
        return f"{expense.name} (${expense.amount:,.2f} due {expense.due_date.isoformat()})"

    # ------------------------------------------------------------------
    # Recurring templates
    # ------------------------------------------------------------------

    async def create_template(self, draft: TemplateDraft | dict[str, Any]) -> int:
        async with self._lock:
            async with self.db.transaction():
                template_id = await self.engine.create_template(draft)
                template = await self.engine.get_template(template_id)
                await self._audit(
                    AuditAction.CREATE,
                    EntityType.RECURRING_TEMPLATE,
                    template_id,
                    {"name": template.name, "frequency": template.frequency.value},
                )
        return template_id

    async def update_template(self, template_id: int, changes: dict[str, Any]) -> RecurringTemplate:
        changes = {k: v for k, v in changes.items() if k not in _TEMPLATE_PROTECTED_FIELDS}
        async with self._lock:
            template = await self.engine.get_template(template_id)
            candidate = merge(template, changes)
            if "category" in changes:
                changes["category"] = await self.db.resolve_category(candidate.category)
            if "account_id" in changes:
                await self.db.check_funding(candidate.account_id)
            if candidate.next_due_date < template.next_due_date and "next_due_date" in changes:
                raise ValidationError(
                    f"Cannot move template {template_id} cursor backwards",
                    user_message="The next due date cannot move into the past.",
                )
            async with self.db.transaction():
                updated = await self.db.update_recurring_template(template_id, changes)
                await self._audit(
                    AuditAction.UPDATE, EntityType.RECURRING_TEMPLATE, template_id, _changed(template, updated)
                )
        return updated

    async def deactivate_template(self, template_id: int) -> RecurringTemplate:
        return await self.update_template(template_id, {"is_active": False})

    async def delete_template(self, template_id: int) -> None:
        """Delete a template. Expenses it generated are kept."""
        async with self._lock:
            template = await self.engine.get_template(template_id)
            async with self.db.transaction():
                await self.db.delete_recurring_template(template_id)
                await self._audit(AuditAction.DELETE, EntityType.RECURRING_TEMPLATE, template_id, {"name": template.name})

    async def convert_to_recurring(self, expense_id: int, draft: ConversionDraft | dict[str, Any]) -> int:
        async with self._lock:
            async with self.db.transaction():
                template_id = await self.engine.convert_to_recurring(expense_id, draft)
                await self._audit(
                    AuditAction.CREATE,
                    EntityType.RECURRING_TEMPLATE,
                    template_id,
                    {"converted_from": expense_id},
                )
                await self._audit(
                    AuditAction.UPDATE,
                    EntityType.FIXED_EXPENSE,
                    expense_id,
                    {"recurring_template_id": {"old": None, "new": template_id}},
                )
        return template_id

    async def upcoming(self, template_id: int, count: int | None = None) -> list[date]:
        template = await self.engine.get_template(template_id)
        return upcoming_occurrences(template, count or self.config.upcoming_count)

    # ------------------------------------------------------------------
    # Accounts, cards and pending transactions
    # ------------------------------------------------------------------

    async def add_account(self, data: Account | dict[str, Any]) -> int:
        if not isinstance(data, Account):
            data = coerce(Account, data)
        async with self._lock:
            async with self.db.transaction():
                account_id = await self.db.add_account(data.model_copy(update={"id": None}))
                await self._audit(AuditAction.CREATE, EntityType.ACCOUNT, account_id, {"name": data.name})
        return account_id

    async def set_default_account(self, account_id: int) -> None:
        async with self._lock:
            async with self.db.transaction():
                await self.db.set_default_account(account_id)
                await self._audit(AuditAction.UPDATE, EntityType.ACCOUNT, account_id, {"is_default": True})

    async def delete_account(self, account_id: int) -> None:
        async with self._lock:
            async with self.db.transaction():
                await self.db.delete_account(account_id)
                await self._audit(AuditAction.DELETE, EntityType.ACCOUNT, account_id)

    async def add_credit_card(self, data: CreditCard | dict[str, Any]) -> int:
        if not isinstance(data, CreditCard):
            data = coerce(CreditCard, data)
        async with self._lock:
            async with self.db.transaction():
                card_id = await self.db.add_credit_card(data.model_copy(update={"id": None}))
                await self._audit(AuditAction.CREATE, EntityType.CREDIT_CARD, card_id, {"name": data.name})
        return card_id

    async def add_pending(self, data: PendingTransaction | dict[str, Any]) -> int:
        if not isinstance(data, PendingTransaction):
            data = coerce(PendingTransaction, data)
        async with self._lock:
            async with self.db.transaction():
                txn_id = await self.db.add_pending_transaction(data.model_copy(update={"id": None}))
                await self._audit(
                    AuditAction.CREATE,
                    EntityType.PENDING_TRANSACTION,
                    txn_id,
                    {"account_id": data.account_id, "amount": data.amount},
                )
        return txn_id

    async def complete_pending(self, txn_id: int) -> Account:
        """Clear a pending transaction into its account's balance."""
        async with self._lock:
            txn = await self.db.get_pending_transaction(txn_id)
            if txn is None:
                raise NotFoundError(EntityType.PENDING_TRANSACTION.value, txn_id)
            account = await self.db.get_account(txn.account_id)
            if account is None:
                raise NotFoundError(EntityType.ACCOUNT.value, txn.account_id)
            balance = account.current_balance + txn.amount
            async with self.db.transaction():
                await self.db.delete_pending_transaction(txn_id)
                updated = await self.db.update_account(txn.account_id, {"current_balance": balance})
                await self._audit(AuditAction.DELETE, EntityType.PENDING_TRANSACTION, txn_id, {"completed": True})
                await self._audit(
                    AuditAction.UPDATE,
                    EntityType.ACCOUNT,
                    txn.account_id,
                    {"current_balance": {"old": account.current_balance, "new": balance}},
                )
        return updated

    async def projected_account_balance(self, account_id: int) -> float:
        """Current balance plus every pending transaction on the account."""
        account = await self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(EntityType.ACCOUNT.value, account_id)
        pending = await self.db.list_pending_transactions()
        return account.current_balance + sum(t.amount for t in pending if t.account_id == account_id)

    async def projected_balances(self) -> dict[int, float]:
        accounts = await self.db.list_accounts()
        pending = await self.db.list_pending_transactions()
        balances = {a.id or 0: a.current_balance for a in accounts}
        for txn in pending:
            if txn.account_id in balances:
                balances[txn.account_id] += txn.amount
        return balances

    async def liquid_balance(self) -> float:
        """Sum of cash account balances (credit-card type accounts excluded)."""
        accounts = await self.db.list_accounts()
        return sum(a.current_balance for a in accounts if a.type != AccountType.CREDIT_CARD)

    async def funding_sources(self) -> list[FundingSource]:
        return funding_sources(await self.db.list_accounts(), await self.db.list_credit_cards())

    async def suggest_card_mappings(self, matcher: ExpenseMatcher, threshold: float = 0.5) -> list[CardMapping]:
        return suggest_card_mappings(
            await self.db.list_fixed_expenses(),
            await self.db.list_credit_cards(),
            matcher,
            threshold,
        )

    async def apply_card_mappings(self, mappings: list[CardMapping]) -> list[MappingResult]:
        """Move each mapped expense onto its card. One failure does not stop the rest."""
        results: list[MappingResult] = []
        async with self._lock:
            for mapping in mappings:
                try:
                    if await self.db.get_credit_card(mapping.card_id) is None:
                        raise NotFoundError(EntityType.CREDIT_CARD.value, mapping.card_id)
                    async with self.db.transaction():
                        await self.db.update_fixed_expense(
                            mapping.expense_id, {"credit_card_id": mapping.card_id, "account_id": None}
                        )
                        await self._audit(
                            AuditAction.UPDATE,
                            EntityType.FIXED_EXPENSE,
                            mapping.expense_id,
                            {"credit_card_id": mapping.card_id},
                        )
                except PaycadenceError as e:
                    logger.warning("Could not map expense %d to card %d: %s", mapping.expense_id, mapping.card_id, e)
                    results.append(MappingResult(mapping, success=False, error=str(e)))
                else:
                    results.append(MappingResult(mapping, success=True))
        return results

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def add_category(self, data: Category | dict[str, Any]) -> int:
        if not isinstance(data, Category):
            data = coerce(Category, data)
        async with self._lock:
            async with self.db.transaction():
                category_id = await self.db.add_category(data.model_copy(update={"id": None}))
                await self._audit(AuditAction.CREATE, EntityType.CATEGORY, category_id, {"name": data.name})
        return category_id

    async def delete_category(self, category_id: int, reassign_to: str | None = None) -> AffectedItems:
        """Delete a category, optionally moving its items to ``reassign_to`` first."""
        async with self._lock:
            category = await self.db.get_category(category_id)
            if category is None:
                raise NotFoundError(EntityType.CATEGORY.value, category_id)
            async with self.db.transaction():
                if reassign_to is not None:
                    target = await self.db.resolve_category(reassign_to)
                    if target.lower() == category.name_lower:
                        raise ValidationError("Cannot reassign a category to itself")
                    await self.db.reassign_category_items(category.name, target)
                affected = await self.db.delete_category(category_id)
                await self._audit(
                    AuditAction.DELETE,
                    EntityType.CATEGORY,
                    category_id,
                    {"name": category.name, "reassigned_to": reassign_to, "affected": affected.count},
                )
        return affected

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    async def export_snapshot(self) -> DataSnapshot:
        async with self._lock:
            snapshot = await self.db.export_snapshot()
            await self._audit(AuditAction.EXPORT, EntityType.DATABASE, "all", {"version": snapshot.version})
        return snapshot

    async def import_snapshot(self, document: DataSnapshot | dict[str, Any]) -> None:
        async with self._lock:
            await self.db.import_snapshot(document)
            await self._audit(AuditAction.IMPORT, EntityType.DATABASE, "all")

    async def export_to_file(self, path: str | Path) -> Path:
        snapshot = await self.export_snapshot()
        target = Path(path)
        target.write_text(snapshot.model_dump_json(indent=2))
        logger.info("Exported data to %s", target)
        return target

    async def import_from_file(self, path: str | Path) -> None:
        source = Path(path)
        try:
            document = json.loads(source.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ValidationError(f"Cannot read snapshot {source}: {e}", user_message="That file is not a valid export.") from e
        await self.import_snapshot(document)
        logger.info("Imported data from %s", source)


def _changed(before: Any, after: Any) -> dict[str, Any]:
    """Field-level ``{"old", "new"}`` diff of two records, JSON-safe."""
    old = before.model_dump(mode="json")
    new = after.model_dump(mode="json")
    return {
        key: {"old": old.get(key), "new": value}
        for key, value in new.items()
        if old.get(key) != value and key != "updated_at"
    }
