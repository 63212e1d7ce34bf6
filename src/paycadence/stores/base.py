"""
Base store — the persistence contract the engine calls into.

Every domain operation (accounts, credit cards, categories, fixed expenses,
recurring templates, pending transactions, paycheck settings, audit log,
snapshots) is implemented once here, on top of a handful of async storage
primitives. A backend only has to provide those primitives and a unit of work.

Example::

    class MyBackend(BaseExpenseStore):
        name = "my_backend"

        async def _insert(self, collection, record, record_id=None): ...
        async def _fetch(self, collection, record_id): ...
        async def _fetch_all(self, collection): ...
        async def _update(self, collection, record_id, record): ...
        async def _delete(self, collection, record_id): ...
        async def _clear(self, collection): ...
        def transaction(self): ...
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, AsyncContextManager, Callable, TypeVar

from pydantic import BaseModel

from paycadence.errors import ConflictError, NotFoundError, ValidationError
from paycadence.models.financial import (
    Account,
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

logger = logging.getLogger("paycadence.stores")

M = TypeVar("M", bound=BaseModel)

ACCOUNTS = "accounts"
CREDIT_CARDS = "credit_cards"
CATEGORIES = "categories"
FIXED_EXPENSES = "fixed_expenses"
RECURRING_TEMPLATES = "recurring_templates"
PENDING_TRANSACTIONS = "pending_transactions"
PAYCHECK_SETTINGS = "paycheck_settings"
AUDIT_LOGS = "audit_logs"

COLLECTIONS: tuple[str, ...] = (
    ACCOUNTS,
    CREDIT_CARDS,
    CATEGORIES,
    FIXED_EXPENSES,
    RECURRING_TEMPLATES,
    PENDING_TRANSACTIONS,
    PAYCHECK_SETTINGS,
    AUDIT_LOGS,
)

DEFAULT_CATEGORIES: list[dict[str, Any]] = [
    {"name": "Housing", "color": "#3B82F6", "icon": "🏠"},
    {"name": "Utilities", "color": "#10B981", "icon": "⚡"},
    {"name": "Insurance", "color": "#F59E0B", "icon": "🛡️"},
    {"name": "Transportation", "color": "#8B5CF6", "icon": "🚗"},
    {"name": "Subscriptions", "color": "#EC4899", "icon": "📱"},
    {"name": "Credit Card", "color": "#F97316", "icon": "💳"},
    {"name": "Debt", "color": "#EF4444", "icon": "📊"},
    {"name": "Healthcare", "color": "#06B6D4", "icon": "🏥"},
    {"name": "Education", "color": "#84CC16", "icon": "🎓"},
    {"name": "Other", "color": "#6B7280", "icon": "📦"},
]


@dataclass
class AffectedItems:
    """Records that reference a category by name."""

    fixed_expenses: list[FixedExpense] = field(default_factory=list)
    pending_transactions: list[PendingTransaction] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.fixed_expenses) + len(self.pending_transactions)


@dataclass
class CategoryUsage:
    """How much a category is used."""

    expense_count: int = 0
    transaction_count: int = 0
    total_expense_amount: float = 0.0
    total_transaction_amount: float = 0.0


class BaseExpenseStore(ABC):
    """Abstract base class for all stores.

    Reads return a consistent snapshot for a single call. There are no
    cross-call transactional guarantees; multi-record writes that must land
    together go through :meth:`transaction`.
    """

    name: str = "base"
    description: str = "Base store"

    def __init__(self, now: Callable[[], datetime] | None = None, **options: Any) -> None:
        self._now = now or datetime.now
        self.options = options

    # ------------------------------------------------------------------
    # Storage primitives
    # ------------------------------------------------------------------

    @abstractmethod
    async def _insert(self, collection: str, record: dict[str, Any], record_id: int | None = None) -> int:
        """Insert ``record`` and return its id. ``record_id`` forces the id (imports)."""
        ...

    @abstractmethod
    async def _fetch(self, collection: str, record_id: int) -> dict[str, Any] | None:
        """Return the raw record (including ``id``) or None."""
        ...

    @abstractmethod
    async def _fetch_all(self, collection: str) -> list[dict[str, Any]]:
        """Return all raw records ordered by id."""
        ...

    @abstractmethod
    async def _update(self, collection: str, record_id: int, record: dict[str, Any]) -> None:
        """Replace the stored record."""
        ...

    @abstractmethod
    async def _delete(self, collection: str, record_id: int) -> bool:
        """Delete a record. Returns False when it did not exist."""
        ...

    @abstractmethod
    async def _clear(self, collection: str) -> None:
        ...

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        """Unit of work: writes inside either all land or none do. Nests."""
        ...

    async def close(self) -> None:
        """Release backend resources."""

    async def health_check(self) -> dict[str, Any]:
        try:
            await self._fetch_all(PAYCHECK_SETTINGS)
            return {"store": self.name, "healthy": True, "error": None}
        except Exception as e:
            return {"store": self.name, "healthy": False, "error": str(e)}

    # ------------------------------------------------------------------
    # Record helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _dump(model: BaseModel) -> dict[str, Any]:
        return model.model_dump(mode="json", exclude={"id"})

    async def _add(self, collection: str, model: BaseModel) -> int:
        if "created_at" in type(model).model_fields and getattr(model, "created_at") is None:
            model = model.model_copy(update={"created_at": self._now()})
        return await self._insert(collection, self._dump(model))

    async def _get(self, collection: str, model: type[M], record_id: int) -> M | None:
        raw = await self._fetch(collection, record_id)
        return coerce(model, raw) if raw is not None else None

    async def _require(self, collection: str, model: type[M], record_id: int, entity: EntityType) -> M:
        record = await self._get(collection, model, record_id)
        if record is None:
            raise NotFoundError(entity.value, record_id)
        return record

    async def _all(self, collection: str, model: type[M]) -> list[M]:
        return [coerce(model, raw) for raw in await self._fetch_all(collection)]

    async def _save(self, collection: str, record: BaseModel) -> None:
        assert record.id is not None  # type: ignore[attr-defined]
        await self._update(collection, record.id, self._dump(record))  # type: ignore[attr-defined]

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def add_account(self, account: Account) -> int:
        """Add an account. The first account ever added becomes the default."""
        async with self.transaction():
            existing = await self._fetch_all(ACCOUNTS)
            account = account.model_copy(update={"is_default": not existing})
            account_id = await self._add(ACCOUNTS, account)
        logger.info("Account added: %s (%d)", account.name, account_id)
        return account_id

    async def get_account(self, account_id: int) -> Account | None:
        return await self._get(ACCOUNTS, Account, account_id)

    async def list_accounts(self) -> list[Account]:
        return await self._all(ACCOUNTS, Account)

    async def update_account(self, account_id: int, changes: dict[str, Any]) -> Account:
        changes = dict(changes)
        make_default = changes.pop("is_default", None)
        account = await self._require(ACCOUNTS, Account, account_id, EntityType.ACCOUNT)
        updated = merge(account, changes)
        async with self.transaction():
            await self._save(ACCOUNTS, updated)
            if make_default:
                await self.set_default_account(account_id)
        logger.info("Account updated: %d", account_id)
        return await self._require(ACCOUNTS, Account, account_id, EntityType.ACCOUNT)

    async def delete_account(self, account_id: int) -> None:
        """Delete an account nothing references. Re-elects a default if needed."""
        account = await self._require(ACCOUNTS, Account, account_id, EntityType.ACCOUNT)
        expenses = [e for e in await self.list_fixed_expenses() if e.account_id == account_id]
        pending = [t for t in await self.list_pending_transactions() if t.account_id == account_id]
        templates = [t for t in await self.list_recurring_templates() if t.account_id == account_id]
        if expenses or pending or templates:
            raise ConflictError(
                f"Cannot delete account {account_id}: referenced by {len(expenses)} expenses, "
                f"{len(pending)} pending transactions and {len(templates)} recurring templates",
                user_message="Cannot delete an account that still has expenses, pending transactions or recurring templates.",
            )
        async with self.transaction():
            await self._delete(ACCOUNTS, account_id)
            if account.is_default:
                remaining = await self._all(ACCOUNTS, Account)
                if remaining:
                    assert remaining[0].id is not None
                    await self.set_default_account(remaining[0].id)
        logger.info("Account deleted: %d", account_id)

    async def set_default_account(self, account_id: int) -> None:
        """Make ``account_id`` the only default, as one unit of work."""
        await self._require(ACCOUNTS, Account, account_id, EntityType.ACCOUNT)
        async with self.transaction():
            for account in await self._all(ACCOUNTS, Account):
                should_be_default = account.id == account_id
                if account.is_default != should_be_default:
                    await self._save(ACCOUNTS, account.model_copy(update={"is_default": should_be_default}))
        logger.info("Default account set: %d", account_id)

    async def get_default_account(self) -> Account | None:
        for account in await self.list_accounts():
            if account.is_default:
                return account
        return None

    async def check_funding(self, account_id: int | None, credit_card_id: int | None = None) -> None:
        """Raise ValidationError unless the referenced account and card exist."""
        if account_id is not None and await self.get_account(account_id) is None:
            raise ValidationError(f"Unknown account: {account_id}")
        if credit_card_id is not None and await self.get_credit_card(credit_card_id) is None:
            raise ValidationError(f"Unknown credit card: {credit_card_id}")

    # ------------------------------------------------------------------
    # Credit cards
    # ------------------------------------------------------------------

    async def add_credit_card(self, card: CreditCard) -> int:
        card_id = await self._add(CREDIT_CARDS, card)
        logger.info("Credit card added: %s (%d)", card.name, card_id)
        return card_id

    async def get_credit_card(self, card_id: int) -> CreditCard | None:
        return await self._get(CREDIT_CARDS, CreditCard, card_id)

    async def list_credit_cards(self) -> list[CreditCard]:
        cards = await self._all(CREDIT_CARDS, CreditCard)
        return sorted(cards, key=lambda c: c.name.lower())

    async def update_credit_card(self, card_id: int, changes: dict[str, Any]) -> CreditCard:
        card = await self._require(CREDIT_CARDS, CreditCard, card_id, EntityType.CREDIT_CARD)
        updated = merge(card, changes)
        await self._save(CREDIT_CARDS, updated)
        return updated

    async def delete_credit_card(self, card_id: int) -> None:
        await self._require(CREDIT_CARDS, CreditCard, card_id, EntityType.CREDIT_CARD)
        charged = [e for e in await self.list_fixed_expenses() if e.credit_card_id == card_id]
        if charged:
            raise ConflictError(
                f"Cannot delete credit card {card_id}: referenced by {len(charged)} expenses",
                user_message="Cannot delete a credit card that still has expenses.",
            )
        await self._delete(CREDIT_CARDS, card_id)
        logger.info("Credit card deleted: %d", card_id)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def add_category(self, category: Category) -> int:
        """Add a category. Fails with ConflictError when the name is taken (any case)."""
        if await self.get_category_by_name(category.name) is not None:
            raise ConflictError(
                f"Category already exists: {category.name}",
                user_message="A category with this name already exists.",
            )
        category_id = await self._add(CATEGORIES, category)
        logger.info("Category added: %s (%d)", category.name, category_id)
        return category_id

    async def get_category(self, category_id: int) -> Category | None:
        return await self._get(CATEGORIES, Category, category_id)

    async def get_category_by_name(self, name: str) -> Category | None:
        key = name.strip().lower()
        for category in await self._all(CATEGORIES, Category):
            if category.name_lower == key:
                return category
        return None

    async def list_categories(self) -> list[Category]:
        return await self._all(CATEGORIES, Category)

    async def resolve_category(self, name: str) -> str:
        """Return the stored spelling of category ``name``.

        Raises:
            ValidationError: if no such category exists.
        """
        category = await self.get_category_by_name(name)
        if category is None:
            raise ValidationError(
                f"Unknown category: {name!r}",
                user_message="Please choose an existing category.",
            )
        return category.name

    async def update_category(self, category_id: int, changes: dict[str, Any]) -> Category:
        category = await self._require(CATEGORIES, Category, category_id, EntityType.CATEGORY)
        changes = {k: v for k, v in changes.items() if k != "name_lower"}
        updated = merge(category, changes)
        clash = await self.get_category_by_name(updated.name)
        if clash is not None and clash.id != category_id:
            raise ConflictError(
                f"Category already exists: {updated.name}",
                user_message="A category with this name already exists.",
            )
        await self._save(CATEGORIES, updated)
        return updated

    async def delete_category(self, category_id: int) -> AffectedItems:
        """Delete a category and report what still references it by name."""
        category = await self._require(CATEGORIES, Category, category_id, EntityType.CATEGORY)
        affected = await self.items_in_category(category.name)
        await self._delete(CATEGORIES, category_id)
        logger.info("Category deleted: %s (%d affected items)", category.name, affected.count)
        return affected

    async def items_in_category(self, name: str) -> AffectedItems:
        return AffectedItems(
            fixed_expenses=[e for e in await self.list_fixed_expenses() if e.category == name],
            pending_transactions=[t for t in await self.list_pending_transactions() if t.category == name],
        )

    async def reassign_category_items(self, old_name: str, new_name: str) -> AffectedItems:
        """Move every expense and pending transaction from ``old_name`` to ``new_name``."""
        affected = await self.items_in_category(old_name)
        async with self.transaction():
            for expense in affected.fixed_expenses:
                await self._save(FIXED_EXPENSES, expense.model_copy(update={"category": new_name}))
            for txn in affected.pending_transactions:
                await self._save(PENDING_TRANSACTIONS, txn.model_copy(update={"category": new_name}))
        logger.info(
            "Reassigned %d expenses and %d transactions from %s to %s",
            len(affected.fixed_expenses),
            len(affected.pending_transactions),
            old_name,
            new_name,
        )
        return affected

    async def category_usage(self, name: str) -> CategoryUsage:
        affected = await self.items_in_category(name)
        return CategoryUsage(
            expense_count=len(affected.fixed_expenses),
            transaction_count=len(affected.pending_transactions),
            total_expense_amount=sum(e.amount for e in affected.fixed_expenses),
            total_transaction_amount=sum(t.amount for t in affected.pending_transactions),
        )

    async def initialize_default_categories(self) -> int:
        """Add whichever default categories are missing. Returns how many were added."""
        existing = {c.name_lower for c in await self._all(CATEGORIES, Category)}
        to_add = [
            Category(**spec, is_default=True)
            for spec in DEFAULT_CATEGORIES
            if spec["name"].lower() not in existing
        ]
        async with self.transaction():
            for category in to_add:
                await self._add(CATEGORIES, category)
        if to_add:
            logger.info("Added %d default categories", len(to_add))
        else:
            logger.debug("All default categories already exist")
        return len(to_add)

    # ------------------------------------------------------------------
    # Fixed expenses
    # ------------------------------------------------------------------

    async def add_fixed_expense(self, expense: FixedExpense) -> int:
        expense_id = await self._add(FIXED_EXPENSES, expense)
        logger.info("Fixed expense added: %s (%d)", expense.name, expense_id)
        return expense_id

    async def get_fixed_expense(self, expense_id: int) -> FixedExpense | None:
        return await self._get(FIXED_EXPENSES, FixedExpense, expense_id)

    async def list_fixed_expenses(self) -> list[FixedExpense]:
        """All fixed expenses ordered by due date."""
        expenses = await self._all(FIXED_EXPENSES, FixedExpense)
        return sorted(expenses, key=lambda e: (e.due_date, e.id or 0))

    async def update_fixed_expense(self, expense_id: int, changes: dict[str, Any]) -> FixedExpense:
        expense = await self._require(FIXED_EXPENSES, FixedExpense, expense_id, EntityType.FIXED_EXPENSE)
        updated = merge(expense, changes)
        await self._save(FIXED_EXPENSES, updated)
        logger.debug("Fixed expense updated: %d", expense_id)
        return updated

    async def delete_fixed_expense(self, expense_id: int) -> None:
        if not await self._delete(FIXED_EXPENSES, expense_id):
            raise NotFoundError(EntityType.FIXED_EXPENSE.value, expense_id)
        logger.info("Fixed expense deleted: %d", expense_id)

    async def get_expenses_by_template(self, template_id: int) -> list[FixedExpense]:
        return [e for e in await self.list_fixed_expenses() if e.recurring_template_id == template_id]

    async def find_template_instance(self, template_id: int, due_date: date) -> FixedExpense | None:
        """The instance a template produced for ``due_date``, if any."""
        for expense in await self.get_expenses_by_template(template_id):
            if expense.due_date == due_date:
                return expense
        return None

    # ------------------------------------------------------------------
    # Recurring templates
    # ------------------------------------------------------------------

    async def add_recurring_template(self, template: RecurringTemplate) -> int:
        if template.updated_at is None:
            template = template.model_copy(update={"updated_at": self._now()})
        template_id = await self._add(RECURRING_TEMPLATES, template)
        logger.info("Recurring template added: %s (%d)", template.name, template_id)
        return template_id

    async def get_recurring_template(self, template_id: int) -> RecurringTemplate | None:
        return await self._get(RECURRING_TEMPLATES, RecurringTemplate, template_id)

    async def list_recurring_templates(self, active_only: bool = False) -> list[RecurringTemplate]:
        templates = await self._all(RECURRING_TEMPLATES, RecurringTemplate)
        if active_only:
            templates = [t for t in templates if t.is_active]
        return templates

    async def update_recurring_template(self, template_id: int, changes: dict[str, Any]) -> RecurringTemplate:
        template = await self._require(
            RECURRING_TEMPLATES, RecurringTemplate, template_id, EntityType.RECURRING_TEMPLATE
        )
        updated = merge(template, {**changes, "updated_at": self._now()})
        await self._save(RECURRING_TEMPLATES, updated)
        logger.debug("Recurring template updated: %d", template_id)
        return updated

    async def delete_recurring_template(self, template_id: int) -> None:
        """Delete a template. Instances it produced are left untouched."""
        if not await self._delete(RECURRING_TEMPLATES, template_id):
            raise NotFoundError(EntityType.RECURRING_TEMPLATE.value, template_id)
        logger.info("Recurring template deleted: %d", template_id)

    async def due_templates(self, today: date) -> list[RecurringTemplate]:
        """Active templates whose cursor has reached ``today``."""
        return [t for t in await self.list_recurring_templates(active_only=True) if t.next_due_date <= today]

    # ------------------------------------------------------------------
    # Pending transactions
    # ------------------------------------------------------------------

    async def add_pending_transaction(self, transaction: PendingTransaction) -> int:
        if await self.get_account(transaction.account_id) is None:
            raise NotFoundError(EntityType.ACCOUNT.value, transaction.account_id)
        txn_id = await self._add(PENDING_TRANSACTIONS, transaction)
        logger.info("Pending transaction added: %d", txn_id)
        return txn_id

    async def get_pending_transaction(self, txn_id: int) -> PendingTransaction | None:
        return await self._get(PENDING_TRANSACTIONS, PendingTransaction, txn_id)

    async def list_pending_transactions(self) -> list[PendingTransaction]:
        """Newest first."""
        txns = await self._all(PENDING_TRANSACTIONS, PendingTransaction)
        return sorted(txns, key=lambda t: (t.created_at or datetime.min, t.id or 0), reverse=True)

    async def update_pending_transaction(self, txn_id: int, changes: dict[str, Any]) -> PendingTransaction:
        txn = await self._require(
            PENDING_TRANSACTIONS, PendingTransaction, txn_id, EntityType.PENDING_TRANSACTION
        )
        updated = merge(txn, changes)
        await self._save(PENDING_TRANSACTIONS, updated)
        return updated

    async def delete_pending_transaction(self, txn_id: int) -> None:
        if not await self._delete(PENDING_TRANSACTIONS, txn_id):
            raise NotFoundError(EntityType.PENDING_TRANSACTION.value, txn_id)
        logger.info("Pending transaction deleted: %d", txn_id)

    # ------------------------------------------------------------------
    # Paycheck settings
    # ------------------------------------------------------------------

    async def get_paycheck_settings(self) -> PaycheckSettings:
        """The single settings record, or an empty one if none was saved."""
        rows = await self._all(PAYCHECK_SETTINGS, PaycheckSettings)
        return rows[0] if rows else PaycheckSettings()

    async def save_paycheck_settings(self, settings: PaycheckSettings) -> PaycheckSettings:
        rows = await self._fetch_all(PAYCHECK_SETTINGS)
        if rows:
            settings = settings.model_copy(update={"id": rows[0]["id"]})
            await self._save(PAYCHECK_SETTINGS, settings)
        else:
            settings = settings.model_copy(update={"id": await self._insert(PAYCHECK_SETTINGS, self._dump(settings))})
        logger.info("Paycheck settings saved: last paycheck %s", settings.last_paycheck_date)
        return settings

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    async def append_audit(
        self,
        action_type: AuditAction | str,
        entity_type: EntityType | str,
        entity_id: int | str,
        details: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            timestamp=self._now(),
            action_type=action_type.value if isinstance(action_type, AuditAction) else action_type,
            entity_type=entity_type.value if isinstance(entity_type, EntityType) else entity_type,
            entity_id=entity_id,
            details=details or {},
        )
        entry_id = await self._insert(AUDIT_LOGS, self._dump(entry))
        return entry.model_copy(update={"id": entry_id})

    async def list_audit(self) -> list[AuditLogEntry]:
        """Newest first."""
        entries = await self._all(AUDIT_LOGS, AuditLogEntry)
        return sorted(entries, key=lambda e: (e.timestamp, e.id or 0), reverse=True)

    async def clear_audit(self) -> None:
        await self._clear(AUDIT_LOGS)
        logger.info("Audit log cleared")

    # ------------------------------------------------------------------
    # Maintenance, import and export
    # ------------------------------------------------------------------

    async def fix_schema(self) -> None:
        """Backfill fields older records may lack and restore the default invariants."""
        async with self.transaction():
            raw_accounts = await self._fetch_all(ACCOUNTS)
            for raw in raw_accounts:
                if "is_default" not in raw:
                    record = {k: v for k, v in raw.items() if k != "id"}
                    record["is_default"] = False
                    await self._update(ACCOUNTS, raw["id"], record)
            accounts = await self._all(ACCOUNTS, Account)
            if accounts and not any(a.is_default for a in accounts):
                assert accounts[0].id is not None
                await self.set_default_account(accounts[0].id)
            if not await self._fetch_all(PAYCHECK_SETTINGS):
                await self._insert(PAYCHECK_SETTINGS, self._dump(PaycheckSettings()))
        await self.initialize_default_categories()
        logger.info("Schema fixed")

    async def export_snapshot(self) -> DataSnapshot:
        settings_rows = await self._all(PAYCHECK_SETTINGS, PaycheckSettings)
        return DataSnapshot(
            exported_at=self._now(),
            accounts=await self._all(ACCOUNTS, Account),
            credit_cards=await self._all(CREDIT_CARDS, CreditCard),
            categories=await self._all(CATEGORIES, Category),
            fixed_expenses=await self._all(FIXED_EXPENSES, FixedExpense),
            recurring_templates=await self._all(RECURRING_TEMPLATES, RecurringTemplate),
            pending_transactions=await self._all(PENDING_TRANSACTIONS, PendingTransaction),
            paycheck_settings=settings_rows[0] if settings_rows else None,
            audit=await self._all(AUDIT_LOGS, AuditLogEntry),
        )

    async def wipe(self) -> None:
        async with self.transaction():
            for collection in COLLECTIONS:
                await self._clear(collection)
        logger.info("Store wiped")

    async def import_snapshot(self, snapshot: DataSnapshot | dict[str, Any]) -> None:
        """Replace everything with ``snapshot``, keeping record ids.

        The document is validated before anything is cleared.
        """
        if not isinstance(snapshot, DataSnapshot):
            snapshot = coerce(DataSnapshot, snapshot)
        self._check_references(snapshot)

        groups: list[tuple[str, list[Any]]] = [
            (ACCOUNTS, snapshot.accounts),
            (CREDIT_CARDS, snapshot.credit_cards),
            (CATEGORIES, snapshot.categories),
            (FIXED_EXPENSES, snapshot.fixed_expenses),
            (RECURRING_TEMPLATES, snapshot.recurring_templates),
            (PENDING_TRANSACTIONS, snapshot.pending_transactions),
            (PAYCHECK_SETTINGS, [snapshot.paycheck_settings] if snapshot.paycheck_settings else []),
            (AUDIT_LOGS, snapshot.audit),
        ]
        async with self.transaction():
            for collection in COLLECTIONS:
                await self._clear(collection)
            for collection, records in groups:
                for record in records:
                    await self._insert(collection, self._dump(record), record_id=record.id)
        logger.info(
            "Imported snapshot: %d accounts, %d expenses, %d templates",
            len(snapshot.accounts),
            len(snapshot.fixed_expenses),
            len(snapshot.recurring_templates),
        )

    @staticmethod
    def _check_references(snapshot: DataSnapshot) -> None:
        account_ids = {a.id for a in snapshot.accounts}
        card_ids = {c.id for c in snapshot.credit_cards}
        errors: list[str] = []
        for expense in snapshot.fixed_expenses:
            if expense.account_id is not None and expense.account_id not in account_ids:
                errors.append(f"expense {expense.id} references missing account {expense.account_id}")
            if expense.credit_card_id is not None and expense.credit_card_id not in card_ids:
                errors.append(f"expense {expense.id} references missing credit card {expense.credit_card_id}")
        for txn in snapshot.pending_transactions:
            if txn.account_id not in account_ids:
                errors.append(f"pending transaction {txn.id} references missing account {txn.account_id}")
        for template in snapshot.recurring_templates:
            if template.account_id is not None and template.account_id not in account_ids:
                errors.append(f"template {template.id} references missing account {template.account_id}")
        if errors:
            raise ValidationError("Invalid snapshot: " + "; ".join(errors), errors=errors)

