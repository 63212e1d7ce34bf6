"""
Credit helpers — funding sources, utilization, minimum payments and payoff math.

Also exposes the hook used to map existing expenses onto credit cards. No
scoring heuristic ships with the package; callers supply an ``ExpenseMatcher``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable

from paycadence.dates import add_months
from paycadence.models.financial import Account, AccountType, CreditCard, FixedExpense

logger = logging.getLogger("paycadence.credit")

MAX_PAYOFF_MONTHS = 600
PAID_OFF_THRESHOLD = 0.01

# Score in [0, 1] of how likely ``expense`` is charged to ``card``
ExpenseMatcher = Callable[[FixedExpense, CreditCard], float]


@dataclass
class FundingSource:
    """Anything an expense can be paid from: a cash account or a credit card."""

    kind: AccountType
    id: int
    name: str
    balance: float
    credit_limit: float | None = None
    interest_rate: float | None = None
    minimum_payment: float | None = None

    @property
    def is_credit(self) -> bool:
        return self.kind == AccountType.CREDIT_CARD

    @classmethod
    def from_account(cls, account: Account) -> FundingSource:
        return cls(
            kind=account.type,
            id=account.id or 0,
            name=account.name,
            balance=account.current_balance,
        )

    @classmethod
    def from_card(cls, card: CreditCard) -> FundingSource:
        return cls(
            kind=AccountType.CREDIT_CARD,
            id=card.id or 0,
            name=card.name,
            balance=card.balance,
            credit_limit=card.credit_limit,
            interest_rate=card.interest_rate,
            minimum_payment=card.minimum_payment,
        )


def funding_sources(accounts: Iterable[Account], cards: Iterable[CreditCard]) -> list[FundingSource]:
    """Accounts first, then credit cards."""
    return [FundingSource.from_account(a) for a in accounts] + [FundingSource.from_card(c) for c in cards]


@dataclass
class CreditAvailability:
    available: float
    utilization: float  # percent of the limit in use
    is_over_limit: bool
    utilization_level: str  # none, excellent, good, fair, high, critical


def utilization_level(utilization: float) -> str:
    if utilization == 0:
        return "none"
    if utilization <= 10:
        return "excellent"
    if utilization <= 30:
        return "good"
    if utilization <= 50:
        return "fair"
    if utilization <= 90:
        return "high"
    return "critical"


def available_credit(balance: float, credit_limit: float) -> CreditAvailability:
    """Available credit and utilization. A negative balance (credit) counts as zero debt."""
    debt = max(balance, 0.0)
    utilization = (debt / credit_limit) * 100 if credit_limit > 0 else (100.0 if debt > 0 else 0.0)
    return CreditAvailability(
        available=credit_limit - debt,
        utilization=utilization,
        is_over_limit=balance > credit_limit,
        utilization_level=utilization_level(utilization),
    )


@dataclass
class MinimumPaymentStatus:
    needed: bool
    amount: float
    remaining: float
    status: str  # not_needed, pending, complete


def minimum_payment_status(balance: float, minimum_payment: float, paid_amount: float = 0.0) -> MinimumPaymentStatus:
    if balance <= 0:
        return MinimumPaymentStatus(needed=False, amount=0.0, remaining=0.0, status="not_needed")
    remaining = max(minimum_payment - paid_amount, 0.0)
    return MinimumPaymentStatus(
        needed=True,
        amount=minimum_payment,
        remaining=remaining,
        status="complete" if paid_amount >= minimum_payment else "pending",
    )


@dataclass
class PayoffPlan:
    """Result of amortizing a balance with a fixed monthly payment.

    ``months`` is -1 when the payment never covers the monthly interest.
    """

    success: bool
    months: int
    total_interest: float
    total_paid: float
    monthly_interest: float
    payoff_date: date | None = None


def debt_payoff(
    balance: float,
    monthly_payment: float,
    annual_rate: float,
    start: date | None = None,
) -> PayoffPlan:
    """Months and interest needed to clear ``balance`` at ``monthly_payment``.

    Interest accrues monthly at ``annual_rate / 12`` percent. Capped at 600 months.
    """
    monthly_rate = annual_rate / 100 / 12
    first_interest = max(balance, 0.0) * monthly_rate

    if balance <= 0:
        return PayoffPlan(True, 0, 0.0, 0.0, 0.0, start)
    if monthly_payment <= first_interest or monthly_payment <= 0:
        logger.debug("Payment %.2f does not cover interest %.2f", monthly_payment, first_interest)
        return PayoffPlan(False, -1, 0.0, 0.0, first_interest)

    remaining = balance
    months = 0
    total_interest = 0.0
    total_paid = 0.0
    while remaining > PAID_OFF_THRESHOLD and months < MAX_PAYOFF_MONTHS:
        interest = remaining * monthly_rate
        payment = min(monthly_payment, remaining + interest)
        total_interest += interest
        total_paid += payment
        remaining = remaining + interest - payment
        months += 1

    if remaining > PAID_OFF_THRESHOLD:
        return PayoffPlan(False, -1, total_interest, total_paid, first_interest)
    return PayoffPlan(
        success=True,
        months=months,
        total_interest=total_interest,
        total_paid=total_paid,
        monthly_interest=first_interest,
        payoff_date=add_months(start, months) if start else None,
    )


@dataclass
class CardMapping:
    """A suggestion that ``expense_id`` is charged to ``card_id``."""

    expense_id: int
    card_id: int
    score: float
    expense_name: str = ""
    card_name: str = ""


@dataclass
class MappingResult:
    mapping: CardMapping
    success: bool
    error: str | None = None


def suggest_card_mappings(
    expenses: Iterable[FixedExpense],
    cards: Iterable[CreditCard],
    matcher: ExpenseMatcher,
    threshold: float = 0.5,
) -> list[CardMapping]:
    """Best-scoring card per expense, where the score reaches ``threshold``.

    Expenses already charged to a card are skipped. Highest scores first.
    """
    cards = list(cards)
    suggestions: list[CardMapping] = []
    for expense in expenses:
        if expense.credit_card_id is not None or expense.id is None:
            continue
        best: CardMapping | None = None
        for card in cards:
            if card.id is None:
                continue
            score = matcher(expense, card)
            if score >= threshold and (best is None or score > best.score):
                best = CardMapping(expense.id, card.id, score, expense.name, card.name)
        if best is not None:
            suggestions.append(best)
    return sorted(suggestions, key=lambda m: m.score, reverse=True)
