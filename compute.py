import logging
from abc import ABC, abstractmethod
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Sequence, Tuple

import settings
from schemas import (
    Balance,
    ExpenseSnapshot,
    ParticipantSnapshot,
    SettlementStatus,
    SplitResult,
    Subset,
    Transaction,
    share_scope,
)

logger = logging.getLogger(__name__)

# Balances within this many currency units of zero count as settled.
# Absorbs the drift left by dividing expenses into per-head shares.
TOLERANCE = 0.01


class InvalidReference(ValueError):
    """An expense points at a participant id that does not exist."""

    def __init__(self, expense_id: int, participant_id: int, role: str):
        self.expense_id = expense_id
        self.participant_id = participant_id
        self.role = role
        super().__init__(
            f"Expense {expense_id} references unknown participant {participant_id} ({role})."
        )


def round_unit(x: float) -> int:
    """Round to a whole currency unit, halves away from zero."""
    return int(Decimal(str(x)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def has_enough_data(participants: Sequence[ParticipantSnapshot], expenses: Sequence[ExpenseSnapshot]) -> bool:
    return len(participants) >= 2 and len(expenses) > 0


def aggregate(
    participants: Sequence[ParticipantSnapshot],
    expenses: Sequence[ExpenseSnapshot],
    strict: Optional[bool] = None,
) -> Optional[Tuple[float, List[Balance]]]:
    """
    Fold expenses into per-participant totals.

    Returns (total_spent, balances) with balances in participant order,
    or None when there are fewer than two participants or no expenses.

    An expense shared by AllParticipants is divided among the participants
    passed in *now*, not the ones present when it was recorded.

    Unknown payer / sharer ids are dropped silently unless strict is on
    (strict=None falls back to settings.STRICT_REFERENCES), in which case
    InvalidReference is raised.
    """
    if not has_enough_data(participants, expenses):
        logger.debug("not enough data: %d participants, %d expenses", len(participants), len(expenses))
        return None
    if strict is None:
        strict = settings.STRICT_REFERENCES

    member_ids = [p.id for p in participants]
    paid: Dict[int, float] = {pid: 0.0 for pid in member_ids}
    owes: Dict[int, float] = {pid: 0.0 for pid in member_ids}
    total_spent = 0.0

    for exp in expenses:
        shared_by = exp.share_scope.resolve(member_ids)
        split_amount = exp.amount / len(shared_by)
        total_spent += exp.amount

        if exp.paid_by in paid:
            paid[exp.paid_by] += exp.amount
        elif strict:
            raise InvalidReference(exp.id, exp.paid_by, "paid_by")
        else:
            logger.debug("expense %s: payer %s unknown, dropped", exp.id, exp.paid_by)

        for pid in shared_by:
            if pid in owes:
                owes[pid] += split_amount
            elif strict:
                raise InvalidReference(exp.id, pid, "shared_by")
            else:
                logger.debug("expense %s: sharer %s unknown, dropped", exp.id, pid)

    balances = [
        Balance(id=p.id, name=p.name, payment_info=p.payment_info, paid=paid[p.id], owes=owes[p.id])
        for p in participants
    ]
    return total_spent, balances


# ============== Settlement strategies ==============
class SettlementStrategy(ABC):
    """Turns net balances into transfers that bring them to zero."""

    name = "abstract"

    @abstractmethod
    def settle(self, balances: Sequence[Balance]) -> List[Transaction]:
        pass


class GreedySettlement(SettlementStrategy):
    """
    Largest debtor pays largest creditor first.

    Not guaranteed to use the fewest transfers, but in practice it gives a
    handful of large payments. Remainders are tracked unrounded; only the
    emitted amounts are rounded to whole units, so each transfer is off by
    at most one unit.
    """

    name = "greedy"

    def settle(self, balances: Sequence[Balance]) -> List[Transaction]:
        debtors = []
        creditors = []
        for b in balances:
            if b.balance < -TOLERANCE:
                debtors.append([b, -b.balance])  # mutable remaining, stored positive
            elif b.balance > TOLERANCE:
                creditors.append([b, b.balance])

        # sorted() is stable, so ties keep participant order
        debtors = sorted(debtors, key=lambda x: x[1], reverse=True)
        creditors = sorted(creditors, key=lambda x: x[1], reverse=True)

        transactions = []
        for debtor in debtors:
            for creditor in creditors:
                if debtor[1] <= TOLERANCE:
                    break
                if creditor[1] <= TOLERANCE:
                    continue
                amount = min(debtor[1], creditor[1])
                rounded = round_unit(amount)
                if rounded > TOLERANCE:
                    d, c = debtor[0], creditor[0]
                    transactions.append(Transaction(
                        from_id=d.id,
                        from_name=d.name,
                        to_id=c.id,
                        to_name=c.name,
                        amount=rounded,
                        to_payment_info=c.payment_info,
                    ))
                debtor[1] -= amount
                creditor[1] -= amount
        logger.debug("%s settlement: %d debtors, %d creditors -> %d transfers",
                     self.name, len(debtors), len(creditors), len(transactions))
        return transactions


DEFAULT_STRATEGY = GreedySettlement()


def settle(balances: Sequence[Balance], strategy: Optional[SettlementStrategy] = None) -> List[Transaction]:
    return (strategy or DEFAULT_STRATEGY).settle(balances)


def calculate_splits(
    participants: Sequence[ParticipantSnapshot],
    expenses: Sequence[ExpenseSnapshot],
    strategy: Optional[SettlementStrategy] = None,
    strict: Optional[bool] = None,
) -> Optional[SplitResult]:
    """Aggregate then settle. None means there is not enough data yet."""
    aggregated = aggregate(participants, expenses, strict=strict)
    if aggregated is None:
        return None
    total_spent, balances = aggregated
    return SplitResult(
        total_spent=total_spent,
        balances=balances,
        transactions=settle(balances, strategy),
    )


def settlement_status(result: Optional[SplitResult]) -> SettlementStatus:
    if result is None:
        return SettlementStatus.INSUFFICIENT_DATA
    return result.status


# ============== Participant removal ==============
def remove_participant(
    participants: Sequence[ParticipantSnapshot],
    expenses: Sequence[ExpenseSnapshot],
    participant_id: int,
) -> Tuple[List[ParticipantSnapshot], List[ExpenseSnapshot]]:
    """
    Drop a participant and everything that depends on them:
      - expenses they paid for are deleted outright
      - their id is stripped from every Subset share scope; a subset that
        ends up empty falls back to AllParticipants
    """
    kept_participants = [p for p in participants if p.id != participant_id]
    kept_expenses = []
    for exp in expenses:
        if exp.paid_by == participant_id:
            continue
        scope = exp.share_scope
        if isinstance(scope, Subset) and participant_id in scope.ids:
            remaining = [pid for pid in scope.ids if pid != participant_id]
            exp = exp.model_copy(update={"share_scope": share_scope(remaining)})
        kept_expenses.append(exp)
    return kept_participants, kept_expenses
