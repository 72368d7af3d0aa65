from compute import calculate_splits, remove_participant
from schemas import AllParticipants, ExpenseSnapshot, ParticipantSnapshot, Subset, share_scope

ANA = ParticipantSnapshot(id=1, name="Ana")
BRUNO = ParticipantSnapshot(id=2, name="Bruno")
CARO = ParticipantSnapshot(id=3, name="Caro")


def expense(eid, amount, paid_by, shared_by=None):
    return ExpenseSnapshot(id=eid, amount=amount, paid_by=paid_by, share_scope=share_scope(shared_by))


def test_expenses_paid_by_removed_participant_are_deleted():
    participants, expenses = remove_participant(
        [ANA, BRUNO, CARO],
        [expense(1, 100, 1), expense(2, 60, 2)],
        1,
    )
    assert [p.id for p in participants] == [2, 3]
    assert [e.id for e in expenses] == [2]


def test_removed_id_is_stripped_from_subsets():
    _, expenses = remove_participant([ANA, BRUNO, CARO], [expense(1, 90, 2, [1, 2, 3])], 1)
    assert expenses[0].share_scope == Subset(ids=[2, 3])


def test_subset_left_empty_means_everyone():
    _, expenses = remove_participant([ANA, BRUNO, CARO], [expense(1, 90, 2, [1])], 1)
    assert isinstance(expenses[0].share_scope, AllParticipants)


def test_everyone_scope_shrinks_with_the_group():
    participants, expenses = remove_participant(
        [ANA, BRUNO, CARO],
        [expense(1, 90, 2)],
        3,
    )
    result = calculate_splits(participants, expenses)
    assert [b.owes for b in result.balances] == [45, 45]
    assert [(t.from_id, t.to_id, t.amount) for t in result.transactions] == [(1, 2, 45)]


def test_inputs_are_not_modified():
    participants = [ANA, BRUNO]
    expenses = [expense(1, 90, 2, [1, 2])]
    remove_participant(participants, expenses, 1)
    assert len(participants) == 2
    assert expenses[0].share_scope == Subset(ids=[1, 2])


def test_unknown_id_is_a_no_op():
    participants, expenses = remove_participant([ANA, BRUNO], [expense(1, 90, 2)], 99)
    assert participants == [ANA, BRUNO]
    assert expenses == [expense(1, 90, 2)]
