from datetime import date
from typing import Dict, Optional, Sequence

from compute import round_unit
from schemas import (
    AllParticipants,
    ExpenseSnapshot,
    ParticipantSnapshot,
    SplitResult,
)


def format_money(amount: float) -> str:
    """1234.5 -> "$1,235" (whole units, half rounded up)."""
    n = round_unit(amount)
    sign = "-" if n < 0 else ""
    return f"{sign}${abs(n):,}"


def sharers_label(expense: ExpenseSnapshot, participants: Sequence[ParticipantSnapshot]) -> str:
    scope = expense.share_scope
    names: Dict[int, str] = {p.id: p.name for p in participants}
    if isinstance(scope, AllParticipants) or set(scope.ids) == set(names):
        return "Everyone"
    return ", ".join(names.get(pid, "?") for pid in scope.ids)


def share_text(
    participants: Sequence[ParticipantSnapshot],
    expenses: Sequence[ExpenseSnapshot],
    result: SplitResult,
    event_name: Optional[str] = None,
    on: Optional[date] = None,
) -> str:
    """Plain-text recap meant for pasting into a chat."""
    on = on or date.today()
    names = {p.id: p.name for p in participants}

    lines = [f"💰 *{event_name or 'Expense split'}*", f"📅 {on:%d/%m/%Y}", "", "📋 *Expenses:*"]
    for exp in expenses:
        payer = names.get(exp.paid_by, "?")
        lines.append(
            f"• {exp.description}: {format_money(exp.amount)} (paid by {payer}) - {sharers_label(exp, participants)}"
        )
    lines += ["", f"💵 *Total:* {format_money(result.total_spent)}", ""]

    if result.transactions:
        lines.append("💸 *Payments:*")
        for t in result.transactions:
            line = f"→ {t.from_name} pays {format_money(t.amount)} to {t.to_name}"
            if t.to_payment_info:
                line += f" ({t.to_payment_info})"
            lines.append(line)
    else:
        lines.append("✅ All settled!")

    return "\n".join(lines) + "\n"
