# tests/test_sequencer.py

import pytest

from exam_core.errors import SequencingTimeout
from exam_core.schema import ItemFormat, Relaxation, Subject
from exam_core.sequencer import (
    FORMAT_ADJACENCY,
    STATEMENT_SPACING,
    SUBJECT_RUN,
    TRAP_GAP,
    TRAP_POSITION,
    sequence_items,
    spacing_violations,
)
from exam_core.settings import SequencingRules

from conftest import make_item

SUBJECTS = [Subject.POLITY, Subject.HISTORY, Subject.GEOGRAPHY, Subject.ECONOMY, Subject.ENVIRONMENT]
PLAIN_FORMATS = [
    ItemFormat.SINGLE_CORRECT,
    ItemFormat.MULTIPLE_CORRECT,
    ItemFormat.MATCH_PAIRS,
    ItemFormat.ASSERTION_REASON,
    ItemFormat.SEQUENCE,
]


def _assert_spacing(items):
    for prev, cur in zip(items, items[1:]):
        assert prev.format != cur.format
    traps = [i for i, it in enumerate(items) if it.is_trap]
    assert 0 not in traps and len(items) - 1 not in traps
    assert all(b - a > 1 for a, b in zip(traps, traps[1:]))


def test_same_format_items_relax_adjacency_in_input_order():
    items = [
        make_item(f"q{i}", subject, ItemFormat.SINGLE_CORRECT)
        for i, subject in enumerate(SUBJECTS[:4])
    ]
    result = sequence_items(items)

    assert [it.id for it in result.items] == ["q0", "q1", "q2", "q3"]
    assert result.relaxations == (
        Relaxation(FORMAT_ADJACENCY, 1),
        Relaxation(FORMAT_ADJACENCY, 2),
        Relaxation(FORMAT_ADJACENCY, 3),
    )


def test_traps_are_spaced_and_kept_off_the_ends():
    items = [
        make_item(f"q{i}", SUBJECTS[i % 5], PLAIN_FORMATS[i % 5], trap=(i < 2))
        for i in range(10)
    ]
    result = sequence_items(items)

    assert result.relaxations == ()
    assert sorted(it.id for it in result.items) == sorted(it.id for it in items)
    _assert_spacing(result.items)


def test_curve_breaks_ties():
    easy = make_item("e", Subject.POLITY, ItemFormat.SINGLE_CORRECT, score=20)
    medium = make_item("m", Subject.HISTORY, ItemFormat.MULTIPLE_CORRECT, score=50)
    hard = make_item("h", Subject.GEOGRAPHY, ItemFormat.ASSERTION_REASON, score=85)

    result = sequence_items([easy, medium, hard], curve=["hard", "easy", "medium"])
    assert [it.id for it in result.items] == ["h", "e", "m"]


def test_curve_length_must_match():
    items = [make_item("a", Subject.POLITY, ItemFormat.SINGLE_CORRECT)]
    with pytest.raises(ValueError):
        sequence_items(items, curve=["easy", "hard"])


def test_iteration_limit_raises_timeout():
    items = [make_item(f"q{i}", SUBJECTS[i % 5], PLAIN_FORMATS[i % 5]) for i in range(10)]
    with pytest.raises(SequencingTimeout) as exc:
        sequence_items(items, rules=SequencingRules(max_iterations=3))
    assert exc.value.total == 10


def test_statement_gap():
    sb = ItemFormat.STATEMENT_BASED
    placed = [
        make_item("s1", Subject.POLITY, sb),
        make_item("p1", Subject.HISTORY, ItemFormat.SINGLE_CORRECT),
    ]
    nxt = make_item("s2", Subject.GEOGRAPHY, sb)
    assert spacing_violations(placed, nxt, 10) == [STATEMENT_SPACING]

    placed.append(make_item("p2", Subject.ECONOMY, ItemFormat.MULTIPLE_CORRECT))
    assert spacing_violations(placed, nxt, 10) == []


def test_statement_run_limit():
    rules = SequencingRules(max_statement_run=1)
    placed = [make_item("s1", Subject.POLITY, ItemFormat.STATEMENT_BASED)]
    nxt = make_item("s2", Subject.HISTORY, ItemFormat.STATEMENT_BASED)
    assert spacing_violations(placed, nxt, 10, rules) == [FORMAT_ADJACENCY, STATEMENT_SPACING]


def test_subject_run():
    placed = [
        make_item("a", Subject.POLITY, ItemFormat.SINGLE_CORRECT),
        make_item("b", Subject.POLITY, ItemFormat.MULTIPLE_CORRECT),
    ]
    third = make_item("c", Subject.POLITY, ItemFormat.SEQUENCE)
    assert spacing_violations(placed, third, 10) == [SUBJECT_RUN]
    assert spacing_violations(placed, third, 10, SequencingRules(max_subject_run=3)) == []


def test_trap_positions():
    trap = make_item("t", Subject.POLITY, ItemFormat.SINGLE_CORRECT, trap=True)
    assert spacing_violations([], trap, 5) == [TRAP_POSITION]

    placed = [make_item(f"p{i}", Subject.HISTORY, PLAIN_FORMATS[i + 1]) for i in range(4)]
    assert spacing_violations(placed, trap, 5) == [TRAP_POSITION]  # last slot

    placed = [
        make_item("p0", Subject.HISTORY, ItemFormat.MULTIPLE_CORRECT),
        make_item("t0", Subject.ECONOMY, ItemFormat.SEQUENCE, trap=True),
    ]
    assert spacing_violations(placed, trap, 5) == [TRAP_GAP]


def test_unknown_sibling_order_rejected():
    with pytest.raises(ValueError):
        SequencingRules(sibling_order="random")


def test_smallest_subject_bucket_goes_first():
    items = [
        make_item("h1", Subject.HISTORY, ItemFormat.MULTIPLE_CORRECT),
        make_item("h2", Subject.HISTORY, ItemFormat.SEQUENCE),
        make_item("p", Subject.POLITY, ItemFormat.SINGLE_CORRECT),
    ]
    result = sequence_items(items)
    assert [it.id for it in result.items] == ["p", "h1", "h2"]

    most = sequence_items(items, rules=SequencingRules(sibling_order="most"))
    assert [it.id for it in most.items][0] == "h1"


def test_recorded_relaxations_are_real_violations():
    # three traps cannot be spread over six slots without touching an end or each other
    items = [
        make_item(f"q{i}", SUBJECTS[i % 5], PLAIN_FORMATS[i % 5], trap=(i % 2 == 0))
        for i in range(6)
    ]
    result = sequence_items(items)
    ordered = list(result.items)

    assert result.relaxations
    for r in result.relaxations:
        assert r.rule in spacing_violations(ordered[:r.position], ordered[r.position], len(ordered))
