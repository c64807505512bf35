"""Core balance computation for equal-split trip expenses."""

import logging
from collections import defaultdict
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction

from .exceptions import InvalidExpenseError
from .models import BalanceMap, ExpenseRecord

logger = logging.getLogger(__name__)

ZERO_SUM_TOLERANCE = Decimal("1e-9")  # per expense


def validate_expense(expense: ExpenseRecord) -> None:
    """
    Check that an expense can take part in a balance computation.

    Args:
        expense: The expense record to check

    Raises:
        InvalidExpenseError: If the amount is negative or non-finite, the payer
            is empty, a name repeats in split_with, or the payer is also listed
            in split_with
    """
    if not expense.amount.is_finite():
        raise InvalidExpenseError(expense.id, f"amount {expense.amount} is not finite")
    if expense.amount < 0:
        raise InvalidExpenseError(expense.id, f"amount {expense.amount} is negative")
    if not expense.payer:
        raise InvalidExpenseError(expense.id, "payer name is empty")
    if len(set(expense.split_with)) != len(expense.split_with):
        raise InvalidExpenseError(expense.id, "split_with lists a name more than once")
    if expense.payer in expense.split_with:
        raise InvalidExpenseError(
            expense.id, f"payer '{expense.payer}' is also listed in split_with"
        )


def compute_balances(expenses: Iterable[ExpenseRecord]) -> BalanceMap:
    """
    Fold expense records into a signed balance per participant.

    Each expense is split equally between the payer and everyone in
    split_with. The payer is credited ``amount - share`` and each split
    participant is debited ``share``. Amounts accumulate as exact fractions
    and are converted to Decimal once at the end, so the result is identical
    for any ordering of the input.

    Args:
        expenses: Expense records belonging to one trip

    Returns:
        New mapping of participant name to balance. Names that never appear
        have no entry.

    Raises:
        InvalidExpenseError: If any record is malformed. No partial map is
            returned.
    """
    records = list(expenses)
    for expense in records:
        validate_expense(expense)

    totals: dict[str, Fraction] = defaultdict(Fraction)
    for expense in records:
        amount = Fraction(expense.amount)
        share = amount / (len(expense.split_with) + 1)

        totals[expense.payer] += amount - share
        for person in expense.split_with:
            totals[person] -= share

    balances = {name: _to_decimal(total) for name, total in sorted(totals.items())}

    logger.debug(
        f"Computed balances for {len(balances)} participants "
        f"from {len(records)} expenses"
    )

    return balances


def _to_decimal(value: Fraction) -> Decimal:
    """Convert an exact fraction to a Decimal at the current context precision."""
    return Decimal(value.numerator) / Decimal(value.denominator)


def balance_total(balances: BalanceMap) -> Decimal:
    """Sum of all balances; zero for a consistent ledger."""
    return sum(balances.values(), Decimal(0))


def is_balanced(balances: BalanceMap, expense_count: int) -> bool:
    """
    Check the zero-sum property within rounding tolerance.

    Args:
        balances: Computed balance map
        expense_count: Number of expenses the map was computed from

    Returns:
        True if the balances sum to zero within tolerance
    """
    tolerance = ZERO_SUM_TOLERANCE * max(1, expense_count)
    return abs(balance_total(balances)) <= tolerance


def round_for_display(amount: Decimal) -> Decimal:
    """
    Round a balance to cents for rendering.

    Never feed the result back into a computation.
    """
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
