# tests/test_bank.py

import json

import pytest

from exam_core import compose_test, prepare_pool
from exam_core.bank import (
    AttemptLog,
    InMemoryQuestionBank,
    generate_sample_records,
    load_attempts,
    load_records,
    save_records,
)
from exam_core.schema import AttemptRecord, Subject, make_prelims_config


def test_sample_bank_shape():
    records = generate_sample_records()
    assert len(records) == 220
    assert len({r.id for r in records}) == 220
    assert generate_sample_records() == records


def test_every_sample_record_passes_the_gate():
    report = prepare_pool(generate_sample_records())
    assert report.summary() == {"total": 220, "accepted": 220, "rejected": 0}
    assert min(c.quality_score for c in report.accepted) >= 90


def test_threaded_preparation_keeps_order():
    records = generate_sample_records()
    ticks = []
    report = prepare_pool(records, workers=4, on_done=ticks.append)
    assert [c.id for c in report.accepted] == [r.id for r in records]
    assert len(ticks) == 220


def test_sample_bank_composes_a_valid_test():
    pool = prepare_pool(generate_sample_records()).accepted
    test = compose_test(pool, make_prelims_config(), seed=2024)
    assert test.report.valid
    assert test.size == 100


def test_bank_fetch_filters():
    bank = InMemoryQuestionBank(generate_sample_records())
    assert len(bank) == 220
    polity = bank.fetch(subject=Subject.POLITY)
    assert len(polity) == 40
    parliament = bank.fetch(subject="Polity", topic="Parliament")
    assert parliament and all(r.topic == "Parliament" for r in parliament)


def test_records_round_trip_through_disk(tmp_path):
    records = generate_sample_records()[:5]
    path = tmp_path / "bank" / "records.json"
    save_records(str(path), records)
    assert load_records(str(path)) == records

    wrapped = tmp_path / "wrapped.json"
    wrapped.write_text(json.dumps({"questions": [r.to_dict() for r in records]}), encoding="utf-8")
    assert load_records(str(wrapped)) == records


def test_attempt_log_is_append_only_in_time():
    log = AttemptLog()
    log.record("l1", AttemptRecord("a", Subject.POLITY, "Parliament", True, 30.0, attempted_at=100.0))
    log.record("l1", AttemptRecord("b", Subject.POLITY, "Parliament", False, 30.0, attempted_at=200.0))
    with pytest.raises(ValueError):
        log.record("l1", AttemptRecord("c", Subject.POLITY, "Parliament", True, 30.0, attempted_at=150.0))
    assert [a.item_id for a in log.history("l1")] == ["a", "b"]
    assert log.learners() == ["l1"]


def test_load_attempts(tmp_path):
    path = tmp_path / "asha.json"
    rows = [{"item_id": "x", "subject": "History", "topic": "Modern", "correct": True, "time_spent": 40}]
    path.write_text(json.dumps(rows), encoding="utf-8")
    learner, attempts = load_attempts(str(path))
    assert learner == "asha"
    assert attempts[0].subject == Subject.HISTORY
