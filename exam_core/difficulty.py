# exam_core/difficulty.py

"""
Difficulty scoring for one question.

Eight qualitative factors are scored 0-100 from fixed thresholds and
combined with a weight vector (see ScoringWeights). Everything here is a
pure function of the record: the same record always gets the same score.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Dict, Iterable, Set

from .schema import ItemFormat, QuestionRecord, label_for_score
from .settings import ScoringWeights

DEFAULT_WEIGHTS = ScoringWeights()


# ============================
# Keyword tables
# ============================

# Bloom levels in taxonomy order; the first level with a match wins
COGNITIVE_KEYWORDS = (
    ("remember", 15, ("what", "when", "where", "who", "list", "identify", "define", "recall")),
    ("understand", 30, ("explain", "describe", "summarize", "interpret", "classify")),
    ("apply", 45, ("apply", "implement", "use", "demonstrate", "solve", "show")),
    ("analyze", 65, ("analyze", "examine", "compare", "contrast", "distinguish", "differentiate")),
    ("evaluate", 80, ("evaluate", "assess", "judge", "critique", "justify", "defend")),
    ("create", 95, ("create", "design", "construct", "develop", "formulate", "synthesize")),
)
_COGNITIVE_SCORES = {level: score for level, score, _ in COGNITIVE_KEYWORDS}

FORMAT_COMPLEXITY: Dict[ItemFormat, int] = {
    ItemFormat.SINGLE_CORRECT: 25,
    ItemFormat.MULTIPLE_CORRECT: 40,
    ItemFormat.ODD_ONE_OUT: 35,
    ItemFormat.STATEMENT_BASED: 50,
    ItemFormat.ASSERTION_REASON: 60,
    ItemFormat.MATCH_PAIRS: 55,
    ItemFormat.SEQUENCE: 65,
    ItemFormat.MAP_BASED: 45,
    ItemFormat.DATA_BASED: 70,
    ItemFormat.CASE_STUDY: 85,
}

SUBJECT_KEYWORDS = {
    "polity": ("constitution", "parliament", "judicial", "president", "article", "amendment", "fundamental rights"),
    "history": ("ancient", "medieval", "modern", "independence", "colonial", "dynasty", "empire"),
    "geography": ("climate", "soil", "river", "mountain", "plateau", "coastal", "monsoon"),
    "economy": ("gdp", "inflation", "monetary", "fiscal", "budget", "trade", "industrial"),
    "environment": ("ecosystem", "biodiversity", "pollution", "conservation", "climate change"),
    "science": ("technology", "biotechnology", "space", "nuclear", "renewable", "innovation"),
}

LEGAL_TERMS = frozenset({
    "constitutional", "judicial", "legislature", "jurisdiction", "adjudication",
    "jurisprudence", "precedent", "sovereignty", "federalism", "amendment",
})
ACADEMIC_TERMS = frozenset({
    "administration", "implementation", "comprehensive", "contemporary",
    "fundamental", "institutional", "systematic", "philosophical", "theoretical",
})

CURRENT_AFFAIRS_KEYWORDS = ("contemporary", "current", "recent", "modern", "2020", "2021", "2022", "2023", "2024")
APPLICATION_KEYWORDS = ("implement", "apply", "practice", "real-world", "scenario", "case")
ETHICAL_KEYWORDS = ("ethical", "moral", "values", "integrity", "justice", "fairness")
GOVERNANCE_KEYWORDS = (
    "governance", "administration", "policy", "public", "government",
    "bureaucracy", "civil service", "implementation",
)
CASE_KEYWORDS = ("case", "vs", "judgment", "ruling", "decision")
ACT_KEYWORDS = ("act", "statute", "law", "code", "ordinance")

_ARTICLE_RE = re.compile(r"\barticle\s+\d+", re.IGNORECASE)
_WORD_RE = re.compile(r"[^a-z]")


def _contains_word(text: str, keyword: str) -> bool:
    return re.search(r"\b" + re.escape(keyword) + r"\b", text) is not None


def _any_word(text: str, keywords: Iterable[str]) -> bool:
    return any(_contains_word(text, k) for k in keywords)


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


# ============================
# Factor scores (0-100 each)
# ============================

def concept_count_score(record: QuestionRecord) -> int:
    n = len(record.concepts)
    if n <= 1:
        return 20
    if n <= 3:
        return 50
    if n <= 5:
        return 75
    return 90


def cognitive_level(record: QuestionRecord) -> str:
    text = record.text.lower()
    explanation = record.explanation.lower()
    for level, _, keywords in COGNITIVE_KEYWORDS:
        if _any_word(text, keywords) or _any_word(explanation, keywords):
            return level
    return "understand"


def cognitive_level_score(record: QuestionRecord) -> int:
    return _COGNITIVE_SCORES[cognitive_level(record)]


def format_complexity_score(record: QuestionRecord) -> int:
    return FORMAT_COMPLEXITY.get(record.format, 50)


def time_score(record: QuestionRecord) -> int:
    t = record.time_to_solve
    if t <= 30:
        return 20
    if t <= 60:
        return 40
    if t <= 90:
        return 60
    if t <= 120:
        return 80
    return 90


def subjects_touched(concepts: Iterable[str]) -> Set[str]:
    """Distinct subjects whose keywords appear in the concept tags."""
    found: Set[str] = set()
    for concept in concepts:
        lowered = concept.lower()
        for subject, keywords in SUBJECT_KEYWORDS.items():
            if any(k in lowered for k in keywords):
                found.add(subject)
                break
    return found


def subject_integration_score(record: QuestionRecord) -> int:
    n = len(subjects_touched(record.concepts))
    if n <= 1:
        return 20
    if n == 2:
        return 50
    return 75


def vocabulary_ratio(text: str) -> float:
    words = text.split()
    if not words:
        return 0.0
    complex_words = 0
    for word in words:
        clean = _WORD_RE.sub("", word.lower())
        if len(clean) > 8 or clean in LEGAL_TERMS or clean in ACADEMIC_TERMS:
            complex_words += 1
    return complex_words / len(words)


def vocabulary_score(record: QuestionRecord) -> int:
    ratio = vocabulary_ratio(f"{record.text} {record.explanation}")
    if ratio < 0.1:
        return 20
    if ratio < 0.2:
        return 40
    if ratio < 0.3:
        return 60
    return 80


def pattern_matches(record: QuestionRecord) -> int:
    """How many of the five exam-pattern characteristics the question shows."""
    text = record.text.lower()
    full = f"{record.text} {record.explanation}".lower()
    correct = sum(1 for o in record.options if o.is_correct)
    checks = (
        any(k in text for k in CURRENT_AFFAIRS_KEYWORDS),
        record.format in (ItemFormat.CASE_STUDY, ItemFormat.ASSERTION_REASON)
        or (record.format == ItemFormat.MULTIPLE_CORRECT and correct > 1),
        _any_word(text, APPLICATION_KEYWORDS),
        _any_word(full, ETHICAL_KEYWORDS),
        _any_word(text, GOVERNANCE_KEYWORDS),
    )
    return sum(1 for c in checks if c)


def pattern_alignment_score(record: QuestionRecord) -> int:
    return 20 + pattern_matches(record) * 15


def cross_reference_count(record: QuestionRecord) -> int:
    full = f"{record.text} {record.explanation}"
    lowered = full.lower()
    articles = min(len(_ARTICLE_RE.findall(full)), 5)
    cases = sum(1 for k in CASE_KEYWORDS if _contains_word(lowered, k))
    acts = sum(1 for k in ACT_KEYWORDS if _contains_word(lowered, k))
    return articles + cases + acts


def cross_reference_score(record: QuestionRecord) -> int:
    n = cross_reference_count(record)
    if n == 0:
        return 20
    if n <= 2:
        return 40
    if n <= 4:
        return 60
    return 80


# ============================
# Combined score
# ============================

@dataclass(frozen=True)
class DifficultyResult:
    score: float
    label: str
    factors: Dict[str, int]


def difficulty_breakdown(record: QuestionRecord) -> Dict[str, int]:
    """Per-factor scores, keyed like ScoringWeights fields."""
    return {
        "concept_count": concept_count_score(record),
        "cognitive_level": cognitive_level_score(record),
        "format_complexity": format_complexity_score(record),
        "time_requirement": time_score(record),
        "subject_integration": subject_integration_score(record),
        "vocabulary": vocabulary_score(record),
        "pattern_alignment": pattern_alignment_score(record),
        "cross_reference": cross_reference_score(record),
    }


def combine_factors(factors: Dict[str, int], weights: ScoringWeights = DEFAULT_WEIGHTS) -> int:
    total = 0.0
    for name, weight in weights.as_dict().items():
        total += factors[name] * weight
    return round_half_up(total)


def score_difficulty(record: QuestionRecord, weights: ScoringWeights = DEFAULT_WEIGHTS) -> DifficultyResult:
    """
    Raw difficulty score (0-100) and its label.

    A precomputed score on the record takes precedence over the factor model.
    """
    factors = difficulty_breakdown(record)
    if record.raw_difficulty_score is not None:
        score = float(record.raw_difficulty_score)
    else:
        score = float(combine_factors(factors, weights))
    return DifficultyResult(score=score, label=label_for_score(score), factors=factors)
