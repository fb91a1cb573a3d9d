# exam_core/quality_gate.py

"""
Quality gate for candidate questions.

Four independent checks each take a penalty off a starting score of 100:

    1) structural completeness
    2) factual consistency   (rule table, see quality_rules)
    3) ambiguity             (rule table, see quality_rules)
    4) difficulty appropriateness (independent structural estimate vs label)

quality_score = max(0, 100 - sum(penalties)); passed = quality_score >= pass_score.
Pure classification: nothing is mutated or logged above DEBUG.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .difficulty import DifficultyResult, score_difficulty
from .quality_rules import AMBIGUITY, DEFAULT_RULES, FACTUAL, run_rules
from .schema import DIFFICULTY_LABELS, ItemFormat, QuestionRecord, Subject
from .settings import GateSettings

logger = logging.getLogger(__name__)

DEFAULT_GATE = GateSettings()

STRUCTURAL = "structural"
DIFFICULTY = "difficulty"

# expected structural score per declared label
EXPECTED_DIFFICULTY_SCORE = {"easy": 35.0, "medium": 55.0, "hard": 80.0}

ESTIMATE_FORMAT_SCORES = {
    ItemFormat.SINGLE_CORRECT: 15,
    ItemFormat.MULTIPLE_CORRECT: 25,
    ItemFormat.STATEMENT_BASED: 30,
    ItemFormat.ASSERTION_REASON: 35,
    ItemFormat.CASE_STUDY: 45,
    ItemFormat.DATA_BASED: 40,
}
ESTIMATE_DEFAULT_FORMAT_SCORE = 25

ALIGNMENT_KEYWORDS = {
    Subject.POLITY: ("constitution", "parliament", "court", "president", "article"),
    Subject.HISTORY: ("ancient", "medieval", "modern", "independence", "colonial"),
    Subject.GEOGRAPHY: ("climate", "river", "mountain", "plateau", "monsoon"),
    Subject.ECONOMY: ("gdp", "inflation", "budget", "trade", "industrial"),
    Subject.ENVIRONMENT: ("ecosystem", "pollution", "conservation", "biodiversity"),
}
STANDARD_STEMS = (
    re.compile(r"^which of the following"),
    re.compile(r"^consider the following"),
    re.compile(r"^with reference to"),
    re.compile(r"select.*correct"),
    re.compile(r"identify.*correct"),
)
CURRENT_LINK_KEYWORDS = ("recent", "current", "contemporary", "2020", "2021", "2022", "2023", "2024")


@dataclass(frozen=True)
class GateResult:
    item_id: str
    quality_score: float
    passed: bool
    penalties: Dict[str, float]
    issues: Tuple[str, ...] = ()
    suggestions: Tuple[str, ...] = ()
    factual_ok: bool = True
    ambiguity_free: bool = True
    difficulty_appropriate: bool = True
    estimated_difficulty: float = 0.0


@dataclass
class _CheckOutcome:
    penalty: float = 0.0
    issues: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def add(self, penalty: float, issue: str, suggestion: Optional[str] = None):
        self.penalty += penalty
        self.issues.append(issue)
        if suggestion:
            self.suggestions.append(suggestion)


# ============================
# 1) Structural completeness
# ============================

def _check_format_structure(record: QuestionRecord, out: _CheckOutcome) -> None:
    fmt = record.format
    correct = sum(1 for o in record.options if o.is_correct)

    if fmt == ItemFormat.SINGLE_CORRECT:
        if not record.options:
            out.add(30, "Missing single correct MCQ options", "Provide options with one correct answer")
            return
        if len(record.options) != 4:
            out.add(15, "Must have exactly 4 options", "Provide exactly 4 multiple choice options")
        if correct != 1:
            out.add(20, "Must have exactly 1 correct option", "Mark exactly one option as correct")
    elif fmt == ItemFormat.MULTIPLE_CORRECT:
        if not record.options:
            out.add(30, "Missing multiple correct MCQ options")
            return
        if not 2 <= correct <= 3:
            out.add(15, "Must have 2-3 correct options", "Mark 2-3 options as correct for multiple correct MCQ")
    elif fmt == ItemFormat.STATEMENT_BASED:
        if not record.statements:
            out.add(30, "Missing statements")
            return
        if len(record.statements) < 2:
            out.add(15, "Must have at least 2 statements", "Provide at least 2 statements for evaluation")
    elif fmt == ItemFormat.MATCH_PAIRS:
        if len(record.match_pairs) < 2:
            out.add(30, "Match-the-following needs at least 2 pairs", "Provide the left and right columns")
    elif fmt == ItemFormat.ASSERTION_REASON:
        if not record.assertion or not record.reason:
            out.add(30, "Assertion-reason item needs both assertion and reason")
    elif fmt == ItemFormat.SEQUENCE:
        if len(record.sequence_items) < 3:
            out.add(15, "Sequence item needs at least 3 entries to arrange")
    elif fmt == ItemFormat.ODD_ONE_OUT:
        if len(record.options) < 3:
            out.add(15, "Odd-one-out needs at least 3 options")
    elif fmt in (ItemFormat.CASE_STUDY, ItemFormat.DATA_BASED, ItemFormat.MAP_BASED):
        if not record.passage:
            out.add(15, f"{fmt.value} item needs its passage / data / map description")


def check_structure(record: QuestionRecord, gate: GateSettings = DEFAULT_GATE) -> _CheckOutcome:
    out = _CheckOutcome()
    text = record.text or ""

    if len(text.strip()) < gate.min_text_length:
        out.add(20, "Question text too short",
                f"Provide meaningful question text (minimum {gate.min_text_length} characters)")
    if len(text) > gate.max_text_length:
        out.add(10, "Question text too long",
                f"Keep question text concise (maximum {gate.max_text_length} characters)")
    if not record.id:
        out.add(5, "Missing question ID", "Provide unique question identifier")
    if not record.topic:
        out.add(10, "Missing topic", "Classify the question under a syllabus topic")
    if not record.base_fact:
        out.add(5, "Missing base fact", "Link the question to its source fact")
    if record.declared_difficulty is not None and record.declared_difficulty not in DIFFICULTY_LABELS:
        out.add(10, "Invalid difficulty level", "Use valid difficulty: easy, medium, or hard")
    if not gate.min_solve_time <= record.time_to_solve <= gate.max_solve_time:
        out.add(5, "Invalid time to solve",
                f"Set realistic time between {gate.min_solve_time}-{gate.max_solve_time} seconds")
    if not gate.min_marks <= record.marks <= gate.max_marks:
        out.add(5, "Invalid marks allocation",
                f"Set appropriate marks between {gate.min_marks:g}-{gate.max_marks:g}")
    if not record.explanation.strip():
        out.add(20, "Missing explanation", "Provide comprehensive explanation")
    if not record.concepts:
        out.add(10, "No concepts tested specified", "List the concepts being tested")
    if not record.tags:
        out.add(5, "No tags specified", "Add relevant tags for categorization")

    _check_format_structure(record, out)
    return out


# ============================
# 2) & 3) Rule-table checks
# ============================

def _check_rules(record: QuestionRecord, check: str, cap: float, rules) -> _CheckOutcome:
    out = _CheckOutcome()
    for hit in run_rules(record, check, rules):
        out.penalty += hit.penalty
        out.issues.append(hit.message)
    out.penalty = min(out.penalty, cap)
    return out


# ============================
# 4) Difficulty appropriateness
# ============================

def structural_difficulty_estimate(record: QuestionRecord) -> float:
    """Difficulty estimate from structure alone, independent of the weighted scorer."""
    words = record.text.split()
    long_words = sum(1 for w in words if len(w) > 8)
    vocab = (long_words / len(words) * 100.0) if words else 0.0

    score = min(len(record.concepts) * 8, 30)
    score += min(record.time_to_solve / 3.0, 30)
    score += ESTIMATE_FORMAT_SCORES.get(record.format, ESTIMATE_DEFAULT_FORMAT_SCORE)
    score += vocab * 0.3
    return min(float(score), 100.0)


def difficulty_appropriate(record: QuestionRecord, label: str, tolerance: float) -> Tuple[bool, float]:
    estimate = structural_difficulty_estimate(record)
    expected = EXPECTED_DIFFICULTY_SCORE.get(label, 50.0)
    return abs(estimate - expected) <= expected * tolerance, estimate


# ============================
# Exam alignment (suggestions only)
# ============================

def alignment_suggestions(record: QuestionRecord) -> List[str]:
    text = record.text.lower()
    notes: List[str] = []
    keywords = ALIGNMENT_KEYWORDS.get(record.subject)
    if keywords and not any(k in text for k in keywords):
        notes.append("Review subject classification and content alignment")
    if not any(p.search(text) for p in STANDARD_STEMS):
        notes.append("Adapt question to standard exam stems ('Which of the following', 'Consider the following', ...)")
    if record.subject in (Subject.CURRENT_AFFAIRS, Subject.ENVIRONMENT, Subject.SCIENCE):
        if not any(k in text for k in CURRENT_LINK_KEYWORDS):
            notes.append("Add a current affairs or contemporary application angle")
    return notes


# ============================
# Gate
# ============================

def evaluate_quality(
    record: QuestionRecord,
    difficulty: Optional[DifficultyResult] = None,
    gate: GateSettings = DEFAULT_GATE,
    rules=DEFAULT_RULES,
) -> GateResult:
    """
    Score one record and decide whether it may enter the selectable pool.

    The declared label is the bank's own label when present, otherwise the
    label derived by the difficulty scorer.
    """
    if difficulty is None:
        difficulty = score_difficulty(record)

    structural = check_structure(record, gate)
    factual = _check_rules(record, FACTUAL, gate.factual_penalty_cap, rules)
    ambiguity = _check_rules(record, AMBIGUITY, gate.ambiguity_penalty_cap, rules)

    label = record.declared_difficulty if record.declared_difficulty in DIFFICULTY_LABELS else difficulty.label
    appropriate, estimate = difficulty_appropriate(record, label, gate.difficulty_tolerance)
    difficulty_penalty = 0.0 if appropriate else gate.difficulty_penalty

    penalties = {
        STRUCTURAL: structural.penalty,
        FACTUAL: factual.penalty,
        AMBIGUITY: ambiguity.penalty,
        DIFFICULTY: difficulty_penalty,
    }
    score = max(0.0, 100.0 - sum(penalties.values()))

    issues = structural.issues + factual.issues + ambiguity.issues
    if not appropriate:
        issues.append(
            f"Difficulty level '{label}' inappropriate for question complexity (estimate {estimate:.0f})"
        )
    suggestions = structural.suggestions + alignment_suggestions(record)

    result = GateResult(
        item_id=record.id,
        quality_score=score,
        passed=score >= gate.pass_score,
        penalties=penalties,
        issues=tuple(dict.fromkeys(issues)),
        suggestions=tuple(dict.fromkeys(suggestions)),
        factual_ok=not factual.issues,
        ambiguity_free=not ambiguity.issues,
        difficulty_appropriate=appropriate,
        estimated_difficulty=estimate,
    )
    if not result.passed:
        logger.debug("Gate rejected %s (score=%.0f): %s", record.id, score, "; ".join(result.issues))
    return result
