from datetime import date

from compute import calculate_splits
from schemas import ExpenseSnapshot, ParticipantSnapshot, share_scope
from summary import format_money, share_text, sharers_label

ANA = ParticipantSnapshot(id=1, name="Ana", payment_info="alias.ana")
BRUNO = ParticipantSnapshot(id=2, name="Bruno")
CARO = ParticipantSnapshot(id=3, name="Caro")
ON = date(2026, 10, 19)


def expense(eid, description, amount, paid_by, shared_by=None):
    return ExpenseSnapshot(
        id=eid, description=description, amount=amount, paid_by=paid_by, share_scope=share_scope(shared_by)
    )


def test_format_money():
    assert format_money(0) == "$0"
    assert format_money(1234.5) == "$1,235"
    assert format_money(1000000) == "$1,000,000"
    assert format_money(-100) == "-$100"


def test_sharers_label():
    participants = [ANA, BRUNO, CARO]
    assert sharers_label(expense(1, "a", 10, 1), participants) == "Everyone"
    assert sharers_label(expense(1, "a", 10, 1, [3, 2, 1]), participants) == "Everyone"
    assert sharers_label(expense(1, "a", 10, 1, [1, 3]), participants) == "Ana, Caro"


def test_share_text_with_payments():
    participants = [ANA, BRUNO, CARO]
    expenses = [expense(1, "Dinner", 300, 1)]
    result = calculate_splits(participants, expenses)

    text = share_text(participants, expenses, result, "Friday dinner", on=ON)

    assert text == (
        "💰 *Friday dinner*\n"
        "📅 19/10/2026\n"
        "\n"
        "📋 *Expenses:*\n"
        "• Dinner: $300 (paid by Ana) - Everyone\n"
        "\n"
        "💵 *Total:* $300\n"
        "\n"
        "💸 *Payments:*\n"
        "→ Bruno pays $100 to Ana (alias.ana)\n"
        "→ Caro pays $100 to Ana (alias.ana)\n"
    )


def test_share_text_when_settled():
    participants = [ANA, BRUNO]
    expenses = [expense(1, "Taxi", 100, 1, [1, 2]), expense(2, "Snacks", 100, 2, [1, 2])]
    result = calculate_splits(participants, expenses)

    text = share_text(participants, expenses, result, on=ON)

    assert text.startswith("💰 *Expense split*\n")
    assert "• Taxi: $100 (paid by Ana) - Everyone\n" in text
    assert text.endswith("✅ All settled!\n")
    assert "Payments" not in text
