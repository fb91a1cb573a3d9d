# exam_core/quality_rules.py

"""
Versioned rule table for the factual-consistency and ambiguity checks.

Each row is one rule: what it looks at, when it fires and the penalty it
costs. Rules are plain objects so they can be unit-tested one at a time and
the gate's behaviour can be audited by listing DEFAULT_RULES.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Callable, List, Optional, Pattern, Tuple

from .schema import QuestionRecord

RULE_TABLE_VERSION = "2024.2"

FACTUAL = "factual"
AMBIGUITY = "ambiguity"

# Which text a rule reads
SCOPE_QUESTION = "question"
SCOPE_FULL = "question+explanation"


@dataclass(frozen=True)
class RuleHit:
    rule_id: str
    check: str
    penalty: float
    message: str


def _scoped_text(record: QuestionRecord, scope: str) -> str:
    if scope == SCOPE_FULL:
        return f"{record.text} {record.explanation}".lower()
    return record.text.lower()


# ============================
# Rule kinds
# ============================

@dataclass(frozen=True)
class PatternRule:
    """Fires once when the pattern matches."""
    rule_id: str
    check: str
    pattern: Pattern
    penalty: float
    message: str
    scope: str = SCOPE_QUESTION

    def evaluate(self, record: QuestionRecord) -> List[RuleHit]:
        if self.pattern.search(_scoped_text(record, self.scope)):
            return [RuleHit(self.rule_id, self.check, self.penalty, self.message)]
        return []


@dataclass(frozen=True)
class NumericRangeRule:
    """Every captured number must fall in [low, high]; one hit per offending number."""
    rule_id: str
    check: str
    pattern: Pattern
    low: int
    high: int
    penalty: float
    message: str  # formatted with {value}
    scope: str = SCOPE_FULL
    requires: Optional[Pattern] = None

    def evaluate(self, record: QuestionRecord) -> List[RuleHit]:
        text = _scoped_text(record, self.scope)
        if self.requires is not None and not self.requires.search(text):
            return []
        hits = []
        for match in self.pattern.finditer(text):
            value = int(match.group(1))
            if not self.low <= value <= self.high:
                hits.append(RuleHit(self.rule_id, self.check, self.penalty, self.message.format(value=value)))
        return hits


@dataclass(frozen=True)
class CoOccurrenceRule:
    """Fires when all patterns match the same text (contradictory institutional claims)."""
    rule_id: str
    check: str
    patterns: Tuple[Pattern, ...]
    penalty: float
    message: str
    scope: str = SCOPE_QUESTION

    def evaluate(self, record: QuestionRecord) -> List[RuleHit]:
        text = _scoped_text(record, self.scope)
        if all(p.search(text) for p in self.patterns):
            return [RuleHit(self.rule_id, self.check, self.penalty, self.message)]
        return []


@dataclass(frozen=True)
class DensityRule:
    """Fires when listed words make up more than `threshold` of the words."""
    rule_id: str
    check: str
    words: Tuple[str, ...]
    threshold: float
    penalty: float
    message: str
    scope: str = SCOPE_QUESTION

    def density(self, record: QuestionRecord) -> float:
        tokens = re.findall(r"[a-z']+", _scoped_text(record, self.scope))
        if not tokens:
            return 0.0
        vocab = set(self.words)
        return sum(1 for t in tokens if t in vocab) / len(tokens)

    def evaluate(self, record: QuestionRecord) -> List[RuleHit]:
        d = self.density(record)
        if d > self.threshold:
            return [RuleHit(self.rule_id, self.check, self.penalty, self.message.format(density=d))]
        return []


@dataclass(frozen=True)
class RepeatRule:
    """Fires when any listed word appears more than `max_repeats` times."""
    rule_id: str
    check: str
    words: Tuple[str, ...]
    max_repeats: int
    penalty: float
    message: str  # formatted with {word}
    scope: str = SCOPE_QUESTION

    def evaluate(self, record: QuestionRecord) -> List[RuleHit]:
        counts = Counter(re.findall(r"[a-z']+", _scoped_text(record, self.scope)))
        offenders = [w for w in self.words if counts[w] > self.max_repeats]
        if offenders:
            return [RuleHit(self.rule_id, self.check, self.penalty, self.message.format(word=offenders[0]))]
        return []


@dataclass(frozen=True)
class PredicateRule:
    """Rule that needs the record's structure, not just its text."""
    rule_id: str
    check: str
    predicate: Callable[[QuestionRecord], bool]
    penalty: float
    message: str

    def evaluate(self, record: QuestionRecord) -> List[RuleHit]:
        if self.predicate(record):
            return [RuleHit(self.rule_id, self.check, self.penalty, self.message)]
        return []


# ============================
# Predicates
# ============================

def _has_choice_structure(record: QuestionRecord) -> bool:
    return bool(
        record.options or record.statements or record.match_pairs
        or record.sequence_items or record.assertion
    )


def refers_to_missing_list(record: QuestionRecord) -> bool:
    return "the following" in record.text.lower() and not _has_choice_structure(record)


def refers_to_missing_context(record: QuestionRecord) -> bool:
    text = record.text.lower()
    return (
        re.search(r"\babove\b", text) is not None
        and "statement" not in text
        and "passage" not in text
        and not record.passage
    )


# ============================
# Default table
# ============================

HEDGE_WORDS = (
    "some", "many", "often", "usually", "generally", "typically",
    "probably", "possibly", "might", "could", "sometimes",
)
UNCLEAR_PRONOUNS = ("it", "this", "that", "these", "those")

DEFAULT_RULES = (
    # --- factual consistency ---
    NumericRangeRule(
        "F001-article-range", FACTUAL, re.compile(r"\barticle\s+(\d+)"), 1, 395, 25.0,
        "Invalid article number: {value}",
    ),
    NumericRangeRule(
        "F002-amendment-range", FACTUAL, re.compile(r"\b(\d+)(?:st|nd|rd|th)\s+amendment"), 1, 106, 25.0,
        "Invalid amendment number: {value}",
    ),
    NumericRangeRule(
        "F003-constitution-date", FACTUAL, re.compile(r"\b((?:19|20)\d{2})\b"), 1947, 9999, 25.0,
        "Constitutional reference with pre-independence date: {value}",
        scope=SCOPE_QUESTION, requires=re.compile(r"constitution"),
    ),
    CoOccurrenceRule(
        "F010-president-dissolves-parliament", FACTUAL,
        (re.compile(r"\bpresident\b"), re.compile(r"dissolve parliament")), 25.0,
        "President cannot dissolve Parliament directly",
    ),
    CoOccurrenceRule(
        "F011-pm-constitutional-head", FACTUAL,
        (re.compile(r"prime minister"), re.compile(r"constitutional head")), 25.0,
        "Prime Minister is not the constitutional head of state",
    ),
    # --- ambiguity ---
    DensityRule(
        "A001-hedge-density", AMBIGUITY, HEDGE_WORDS, 0.03, 10.0,
        "Hedge-word density too high ({density:.0%})",
    ),
    RepeatRule(
        "A002-unclear-pronoun", AMBIGUITY, UNCLEAR_PRONOUNS, 2, 5.0,
        'Excessive use of unclear reference: "{word}"',
    ),
    PatternRule(
        "A003-multiple-interpretations", AMBIGUITY,
        re.compile(r"which is better|which is more important|what should be done"), 15.0,
        "Question allows multiple valid interpretations",
    ),
    PredicateRule(
        "A004-missing-list", AMBIGUITY, refers_to_missing_list, 10.0,
        "Question refers to 'the following' but lists nothing",
    ),
    PredicateRule(
        "A005-missing-context", AMBIGUITY, refers_to_missing_context, 10.0,
        "Question refers to context 'above' that is not provided",
    ),
)


def run_rules(record: QuestionRecord, check: str, rules=DEFAULT_RULES) -> List[RuleHit]:
    hits: List[RuleHit] = []
    for rule in rules:
        if rule.check == check:
            hits.extend(rule.evaluate(record))
    return hits
