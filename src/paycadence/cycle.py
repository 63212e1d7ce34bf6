"""
Cycle Controller — decides when a new pay cycle should start, and starts it.

A reset is suggested only when every expense is settled one way or another
(paid or overdue) and the next paycheck already lands in a later month than
today. Starting a new cycle zeroes paid amounts; nothing else is touched.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Sequence

from paycadence.classifier import classify
from paycadence.dates import month_label
from paycadence.models.financial import AuditAction, AuditLogEntry, EntityType, FixedExpense
from paycadence.paycheck import PaycheckProjection
from paycadence.stores.base import BaseExpenseStore

logger = logging.getLogger("paycadence.cycle")


def should_prompt_reset(
    expenses: Sequence[FixedExpense],
    projection: PaycheckProjection,
    today: date,
) -> bool:
    """True when all expenses are Paid or Overdue and the next pay date is in a later month.

    Month and year are compared together, so a December today with a January
    paycheck counts as later.
    """
    if not expenses or projection.next_pay_date is None:
        return False
    if not all(classify(e, projection, today).is_terminal for e in expenses):
        return False
    next_pay = projection.next_pay_date
    return (next_pay.year, next_pay.month) > (today.year, today.month)


def reset_message(today: date) -> str:
    return f"Reset Fixed Expenses for {month_label(today)}"


async def start_new_cycle(
    store: BaseExpenseStore,
    expenses: Sequence[FixedExpense],
    today: date,
) -> AuditLogEntry:
    """Zero ``paid_amount`` on every expense and append a single RESET audit entry.

    Templates, accounts and categories are left alone. Callers must have the
    user's confirmation before calling this.
    """
    async with store.transaction():
        for expense in expenses:
            if expense.id is None:
                continue
            if expense.paid_amount != 0:
                await store.update_fixed_expense(expense.id, {"paid_amount": 0})
        entry = await store.append_audit(
            AuditAction.RESET,
            EntityType.FIXED_EXPENSE,
            "all",
            {"message": reset_message(today), "expense_count": len(expenses)},
        )
    logger.info("Started new cycle: reset %d expenses", len(expenses))
    return entry
