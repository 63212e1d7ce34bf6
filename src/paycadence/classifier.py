"""
Expense classification — which paycheck should cover each bill.

Maps an expense plus a paycheck projection onto exactly one status, and
rolls the remaining amounts up into per-bucket totals.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable

from paycadence.models.financial import FixedExpense
from paycadence.paycheck import PaycheckProjection


class ExpenseStatus(str, Enum):
    """Payment status of an expense relative to the pay rhythm."""

    PAID = "Paid"
    PARTIALLY_PAID = "Partially Paid"
    OVERDUE = "Overdue"
    PAY_THIS_WEEK = "Pay This Week"
    PAY_WITH_NEXT_CHECK = "Pay with Next Check"
    PAY_WITH_FOLLOWING_CHECK = "Pay with Following Check"
    UNKNOWN = "Unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (ExpenseStatus.PAID, ExpenseStatus.OVERDUE)


@dataclass
class SummaryTotals:
    """Remaining money owed per bucket."""

    pay_this_week: float = 0.0
    pay_next_check: float = 0.0
    pay_following_check: float = 0.0
    overdue: float = 0.0

    @property
    def total(self) -> float:
        return self.pay_this_week + self.pay_next_check + self.pay_following_check + self.overdue


@dataclass
class ClassifiedExpense:
    """An expense paired with its computed status."""

    expense: FixedExpense
    status: ExpenseStatus

    @property
    def remaining_amount(self) -> float:
        return self.expense.remaining_amount


def classify(expense: FixedExpense, projection: PaycheckProjection, today: date) -> ExpenseStatus:
    """Return the status of ``expense``. Rules are checked in order; first match wins.

    Payment dominates scheduling, and a past due date with money still owed
    dominates the forward-looking buckets.
    """
    amount = expense.amount
    paid = expense.paid_amount

    if paid >= amount:
        return ExpenseStatus.PAID
    if 0 < paid < amount:
        return ExpenseStatus.PARTIALLY_PAID
    if expense.due_date < today:
        return ExpenseStatus.OVERDUE

    next_pay = projection.next_pay_date
    following_pay = projection.following_pay_date
    if paid == 0 and next_pay is not None:
        if expense.due_date <= next_pay:
            return ExpenseStatus.PAY_THIS_WEEK
        if following_pay is not None:
            if expense.due_date <= following_pay:
                return ExpenseStatus.PAY_WITH_NEXT_CHECK
            return ExpenseStatus.PAY_WITH_FOLLOWING_CHECK

    return ExpenseStatus.UNKNOWN


def classify_all(
    expenses: Iterable[FixedExpense],
    projection: PaycheckProjection,
    today: date,
) -> list[ClassifiedExpense]:
    return [ClassifiedExpense(e, classify(e, projection, today)) for e in expenses]


def summarize(
    expenses: Iterable[FixedExpense],
    projection: PaycheckProjection,
    today: date,
) -> SummaryTotals:
    """Sum ``amount - paid_amount`` per forward bucket and for overdue bills.

    Paid and partially paid expenses contribute nowhere.
    """
    totals = SummaryTotals()
    for expense in expenses:
        status = classify(expense, projection, today)
        remaining = expense.remaining_amount
        if status == ExpenseStatus.PAY_THIS_WEEK:
            totals.pay_this_week += remaining
        elif status == ExpenseStatus.PAY_WITH_NEXT_CHECK:
            totals.pay_next_check += remaining
        elif status == ExpenseStatus.PAY_WITH_FOLLOWING_CHECK:
            totals.pay_following_check += remaining
        elif status == ExpenseStatus.OVERDUE:
            totals.overdue += remaining
    return totals


def group_by_status(classified: Iterable[ClassifiedExpense]) -> dict[ExpenseStatus, list[ClassifiedExpense]]:
    groups: dict[ExpenseStatus, list[ClassifiedExpense]] = {status: [] for status in ExpenseStatus}
    for item in classified:
        groups[item.status].append(item)
    return groups
