from datetime import date
from io import BytesIO

import pandas as pd

from compute import calculate_splits
from export import balances_frame, export_filename, export_workbook, transactions_frame
from schemas import ExpenseSnapshot, ParticipantSnapshot, share_scope

ANA = ParticipantSnapshot(id=1, name="Ana", payment_info="alias.ana")
BRUNO = ParticipantSnapshot(id=2, name="Bruno")
CARO = ParticipantSnapshot(id=3, name="Caro")
PARTICIPANTS = [ANA, BRUNO, CARO]
EXPENSES = [
    ExpenseSnapshot(id=1, description="Dinner", amount=300, paid_by=1, share_scope=share_scope()),
    ExpenseSnapshot(id=2, description="Wine", amount=40, paid_by=2, share_scope=share_scope([2, 3])),
]


def test_export_filename():
    assert export_filename("Trip", date(2026, 1, 5)) == "Trip-05-01-2026.xlsx"
    assert export_filename(None, date(2026, 1, 5)) == "expenses-05-01-2026.xlsx"


def test_frames_follow_engine_order():
    result = calculate_splits(PARTICIPANTS, EXPENSES)

    balances = balances_frame(result)
    assert list(balances["Participant"]) == ["Ana", "Bruno", "Caro"]
    assert list(balances["Balance"]) == [200, -80, -120]

    tx = transactions_frame(result)
    assert list(zip(tx["From"], tx["To"], tx["Amount"])) == [("Caro", "Ana", 120), ("Bruno", "Ana", 80)]
    assert list(tx["Payment info"]) == ["alias.ana", "alias.ana"]


def test_workbook_sheets():
    result = calculate_splits(PARTICIPANTS, EXPENSES)
    data = export_workbook(PARTICIPANTS, EXPENSES, result, "Trip", on=date(2026, 10, 19))

    sheets = pd.read_excel(BytesIO(data), sheet_name=None)
    assert list(sheets) == ["Summary", "Expenses", "Balances", "Transactions"]

    expenses = sheets["Expenses"]
    assert list(expenses["Description"]) == ["Dinner", "Wine"]
    assert list(expenses["Shared by"]) == ["Everyone", "Bruno, Caro"]
    assert list(expenses["People"]) == [3, 2]

    assert list(sheets["Transactions"]["Amount"]) == [120, 80]

    summary = pd.read_excel(BytesIO(data), sheet_name="Summary", header=None)
    rows = {r[0]: r[1] for r in summary.itertuples(index=False) if isinstance(r[0], str)}
    assert rows["Total spent:"] == 340
    assert rows["Participants:"] == 3
    assert rows["Average per person:"] == 113
