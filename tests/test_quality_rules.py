# tests/test_quality_rules.py

from dataclasses import replace

from exam_core.quality_rules import (
    AMBIGUITY,
    DEFAULT_RULES,
    FACTUAL,
    RULE_TABLE_VERSION,
    run_rules,
)


def _ids(hits):
    return [h.rule_id for h in hits]


def test_rule_table_is_versioned_and_ids_unique():
    assert RULE_TABLE_VERSION
    ids = [r.rule_id for r in DEFAULT_RULES]
    assert len(ids) == len(set(ids))
    assert {r.check for r in DEFAULT_RULES} == {FACTUAL, AMBIGUITY}


def test_article_range(clean_record):
    ok = replace(clean_record, text="Which of the following is correct about Article 395?")
    bad = replace(clean_record, text="Which of the following is correct about Article 396?")
    assert run_rules(ok, FACTUAL) == []
    assert _ids(run_rules(bad, FACTUAL)) == ["F001-article-range"]


def test_amendment_range(clean_record):
    bad = replace(clean_record, text="Which of the following was added by the 150th Amendment?")
    assert _ids(run_rules(bad, FACTUAL)) == ["F002-amendment-range"]


def test_pre_independence_constitution_date(clean_record):
    bad = replace(clean_record, text="Which of the following is true of the Constitution adopted in 1935?")
    later = replace(clean_record, text="Which of the following is true of the Constitution adopted in 1950?")
    assert "F003-constitution-date" in _ids(run_rules(bad, FACTUAL))
    assert run_rules(later, FACTUAL) == []


def test_institutional_contradictions(clean_record):
    rec = replace(clean_record, text="Which of the following lets the President dissolve Parliament at will?")
    assert _ids(run_rules(rec, FACTUAL)) == ["F010-president-dissolves-parliament"]
    rec = replace(clean_record, text="Why is the Prime Minister called the constitutional head of India?")
    assert _ids(run_rules(rec, FACTUAL)) == ["F011-pm-constitutional-head"]


def test_hedge_density(clean_record):
    rec = replace(clean_record, text="Which of the following could possibly be true of some rivers that might often flood?")
    assert "A001-hedge-density" in _ids(run_rules(rec, AMBIGUITY))


def test_unclear_pronouns(clean_record):
    rec = replace(clean_record, text="It says it is what it claims, so which of the following explains it?")
    assert "A002-unclear-pronoun" in _ids(run_rules(rec, AMBIGUITY))


def test_missing_list_and_context(clean_record):
    no_options = replace(clean_record, options=())
    assert "A004-missing-list" in _ids(run_rules(no_options, AMBIGUITY))

    above = replace(clean_record, text="Based on the facts given above, identify the correct option.")
    assert "A005-missing-context" in _ids(run_rules(above, AMBIGUITY))


def test_clean_record_hits_nothing(clean_record):
    assert run_rules(clean_record, FACTUAL) == []
    assert run_rules(clean_record, AMBIGUITY) == []
