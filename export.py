from datetime import date
from io import BytesIO
from typing import Optional, Sequence

import pandas as pd

from compute import round_unit
from schemas import ExpenseSnapshot, ParticipantSnapshot, SplitResult
from summary import sharers_label


def export_filename(event_name: Optional[str] = None, on: Optional[date] = None) -> str:
    on = on or date.today()
    return f"{event_name or 'expenses'}-{on:%d-%m-%Y}.xlsx"


def expenses_frame(participants: Sequence[ParticipantSnapshot], expenses: Sequence[ExpenseSnapshot]) -> pd.DataFrame:
    names = {p.id: p.name for p in participants}
    rows = []
    for exp in expenses:
        head_count = len(exp.share_scope.resolve([p.id for p in participants]))
        rows.append({
            "Description": exp.description,
            "Amount": exp.amount,
            "Paid by": names.get(exp.paid_by, ""),
            "Shared by": sharers_label(exp, participants),
            "People": head_count,
        })
    return pd.DataFrame(rows, columns=["Description", "Amount", "Paid by", "Shared by", "People"])


def balances_frame(result: SplitResult) -> pd.DataFrame:
    rows = [{
        "Participant": b.name,
        "Paid": b.paid,
        "Owes": round_unit(b.owes),
        "Balance": round_unit(b.balance),
        "Payment info": b.payment_info or "",
    } for b in result.balances]
    return pd.DataFrame(rows, columns=["Participant", "Paid", "Owes", "Balance", "Payment info"])


def transactions_frame(result: SplitResult) -> pd.DataFrame:
    rows = [{
        "From": t.from_name,
        "To": t.to_name,
        "Amount": t.amount,
        "Payment info": t.to_payment_info or "",
    } for t in result.transactions]
    return pd.DataFrame(rows, columns=["From", "To", "Amount", "Payment info"])


def export_workbook(
    participants: Sequence[ParticipantSnapshot],
    expenses: Sequence[ExpenseSnapshot],
    result: SplitResult,
    event_name: Optional[str] = None,
    on: Optional[date] = None,
) -> bytes:
    """Four-sheet xlsx: Summary, Expenses, Balances, Transactions. Rows keep engine order."""
    on = on or date.today()
    summary = pd.DataFrame([
        ["EXPENSE SPLIT", None],
        [event_name or "Untitled", None],
        ["Date:", on.strftime("%d/%m/%Y")],
        [None, None],
        ["SUMMARY", None],
        ["Total spent:", result.total_spent],
        ["Participants:", len(participants)],
        ["Average per person:", round_unit(result.total_spent / len(participants))],
    ])

    buf = BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        summary.to_excel(writer, sheet_name="Summary", index=False, header=False)
        expenses_frame(participants, expenses).to_excel(writer, sheet_name="Expenses", index=False)
        balances_frame(result).to_excel(writer, sheet_name="Balances", index=False)
        transactions_frame(result).to_excel(writer, sheet_name="Transactions", index=False)
    return buf.getvalue()
