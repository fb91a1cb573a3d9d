# exam_core/validation.py

"""
Post-hoc certification of a composed test.

Everything is re-derived from the test itself (items, plan, recorded
relaxations); nothing is cached, so validating the same test twice gives
the same report.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import List, Optional, Set, Tuple

from .schema import (
    DIFFICULTY_LABELS,
    ComposedTest,
    ValidationReport,
    Violation,
    label_for_score,
)
from .selector import trap_bounds
from .sequencer import TRAP_POSITION, spacing_violations
from .settings import EngineSettings

logger = logging.getLogger(__name__)

SIZE = "size"
DUPLICATE_ID = "duplicate_id"
SUBJECT_COUNT = "subject_count"
SUBJECT_RANGE = "subject_range"
DIFFICULTY_COUNT = "difficulty_count"
QUALITY_GATE = "quality_gate"
LABEL_CONSISTENCY = "label_consistency"
TRAP_RATIO = "trap_ratio"


def _count_checks(test: ComposedTest) -> List[Violation]:
    plan = test.plan
    out: List[Violation] = []

    if test.size != plan.target_size:
        out.append(Violation(SIZE, plan.target_size, test.size))

    subjects = Counter(it.subject.value for it in test.items)
    for key in list(plan.subject_counts) + sorted(set(subjects) - set(plan.subject_counts)):
        expected = plan.subject_counts.get(key, 0)
        if subjects.get(key, 0) != expected:
            out.append(Violation(SUBJECT_COUNT, {key: expected}, {key: subjects.get(key, 0)}))
    for c in plan.subject_constraints:
        actual = subjects.get(c.key, 0)
        if not c.min_count <= actual <= c.max_count:
            out.append(Violation(SUBJECT_RANGE, {c.key: [c.min_count, c.max_count]}, {c.key: actual}))

    labels = Counter(it.difficulty_label for it in test.items)
    for label in DIFFICULTY_LABELS:
        expected = plan.difficulty_counts.get(label, 0)
        if labels.get(label, 0) != expected:
            out.append(Violation(DIFFICULTY_COUNT, {label: expected}, {label: labels.get(label, 0)}))

    low, _, high = trap_bounds(plan.target_size, plan.trap_ratio_range)
    traps = sum(1 for it in test.items if it.is_trap)
    if not low <= traps <= high:
        out.append(Violation(TRAP_RATIO, [low, high], traps))
    return out


def _item_checks(test: ComposedTest, pass_score: float) -> List[Violation]:
    out: List[Violation] = []
    seen: Set[str] = set()
    for pos, it in enumerate(test.items):
        if it.id in seen:
            out.append(Violation(DUPLICATE_ID, "unique", it.id, pos))
        seen.add(it.id)
        if it.quality_score < pass_score:
            out.append(Violation(QUALITY_GATE, f">= {pass_score:g}", it.quality_score, pos))
        expected_label = label_for_score(it.raw_difficulty_score)
        if it.difficulty_label != expected_label:
            out.append(Violation(LABEL_CONSISTENCY, expected_label, it.difficulty_label, pos))
    return out


def _spacing_checks(test: ComposedTest, settings: EngineSettings) -> Tuple[List[Violation], List[Violation]]:
    # a trap on the first or last slot is never excused by a recorded relaxation
    relaxed_at = {(r.rule, r.position) for r in test.relaxations if r.rule != TRAP_POSITION}
    violations: List[Violation] = []
    relaxed: List[Violation] = []
    items = list(test.items)
    for pos, it in enumerate(items):
        for rule in spacing_violations(items[:pos], it, len(items), settings.sequencing):
            v = Violation(rule, "satisfied", f"{it.id} ({it.subject.value}, {it.format.value})", pos)
            (relaxed if (rule, pos) in relaxed_at else violations).append(v)
    return violations, relaxed


def _advisories(test: ComposedTest, settings: EngineSettings) -> List[str]:
    notes: List[str] = []
    formats = {it.format for it in test.items}
    if len(formats) < settings.min_format_diversity:
        notes.append(f"Format diversity {len(formats)} below recommended {settings.min_format_diversity}")
    concepts: Set[str] = set()
    for it in test.items:
        concepts |= it.concept_tags
    if len(concepts) < settings.min_concept_coverage:
        notes.append(f"Concept coverage {len(concepts)} below recommended {settings.min_concept_coverage}")
    return notes


def validate_test(test: ComposedTest, settings: Optional[EngineSettings] = None) -> ValidationReport:
    settings = settings or EngineSettings()

    violations = _count_checks(test) + _item_checks(test, settings.gate.pass_score)
    spacing, relaxed = _spacing_checks(test, settings)
    violations.extend(spacing)

    report = ValidationReport(
        valid=not violations,
        violations=tuple(violations),
        relaxed=tuple(relaxed),
        advisories=tuple(_advisories(test, settings)),
    )
    if not report.valid:
        logger.warning("Test %s failed validation: %s", test.test_id, ", ".join(report.rules_violated()))
    return report
