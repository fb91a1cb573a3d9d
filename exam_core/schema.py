# exam_core/schema.py

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple


# ============================
# Enums & difficulty labels
# ============================

class Subject(str, Enum):
    POLITY = "Polity"
    HISTORY = "History"
    GEOGRAPHY = "Geography"
    ECONOMY = "Economy"
    ENVIRONMENT = "Environment"
    SCIENCE = "Science & Technology"
    CURRENT_AFFAIRS = "Current Affairs"

    @classmethod
    def parse(cls, value: Any) -> "Subject":
        """Accept the display value ("Current Affairs") or the member name ("CURRENT_AFFAIRS", "CurrentAffairs")."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text == member.value or text.upper() == member.name:
                return member
        squashed = text.replace(" ", "").replace("_", "").replace("&", "").lower()
        for member in cls:
            if squashed in (member.name.replace("_", "").lower(), member.value.replace(" ", "").replace("&", "").lower()):
                return member
        raise ValueError(f"Unknown subject: {value!r}")


class ItemFormat(str, Enum):
    SINGLE_CORRECT = "SingleCorrect"
    MULTIPLE_CORRECT = "MultipleCorrect"
    MATCH_PAIRS = "MatchPairs"
    ASSERTION_REASON = "AssertionReason"
    STATEMENT_BASED = "StatementBased"
    SEQUENCE = "Sequence"
    ODD_ONE_OUT = "OddOneOut"
    CASE_STUDY = "CaseStudy"
    MAP_BASED = "MapBased"
    DATA_BASED = "DataBased"

    @classmethod
    def parse(cls, value: Any) -> "ItemFormat":
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text == member.value or text.upper() == member.name:
                return member
        raise ValueError(f"Unknown item format: {value!r}")


EASY, MEDIUM, HARD = "easy", "medium", "hard"
DIFFICULTY_LABELS: Tuple[str, str, str] = (EASY, MEDIUM, HARD)

# score <= 35 -> easy, <= 70 -> medium, else hard
EASY_MAX_SCORE = 35.0
MEDIUM_MAX_SCORE = 70.0


def label_for_score(score: float) -> str:
    if score <= EASY_MAX_SCORE:
        return EASY
    if score <= MEDIUM_MAX_SCORE:
        return MEDIUM
    return HARD


# ============================
# Raw bank record
# ============================

@dataclass(frozen=True)
class OptionSpec:
    text: str
    is_correct: bool = False


@dataclass(frozen=True)
class QuestionRecord:
    """
    A question as stored in the bank, before scoring and gating.

    Only the metadata the engine needs is modelled; presentation fields
    (memory tricks, related PYQs, ...) stay with the bank.
    """
    id: str
    subject: Subject
    topic: str
    format: ItemFormat
    text: str

    options: Tuple[OptionSpec, ...] = ()
    statements: Tuple[str, ...] = ()
    match_pairs: Tuple[Tuple[str, str], ...] = ()
    assertion: Optional[str] = None
    reason: Optional[str] = None
    sequence_items: Tuple[str, ...] = ()
    passage: Optional[str] = None

    explanation: str = ""
    concepts: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    base_fact: Optional[str] = None
    time_to_solve: int = 60  # seconds
    marks: float = 2.0

    # Supplied by the bank when already known
    raw_difficulty_score: Optional[float] = None
    declared_difficulty: Optional[str] = None
    is_trap: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QuestionRecord":
        options = tuple(
            OptionSpec(text=o["text"], is_correct=bool(o.get("is_correct", False)))
            if isinstance(o, Mapping) else OptionSpec(text=str(o))
            for o in data.get("options", ())
        )
        return cls(
            id=str(data["id"]),
            subject=Subject.parse(data["subject"]),
            topic=str(data.get("topic", "")),
            format=ItemFormat.parse(data["format"]),
            text=str(data.get("text", "")),
            options=options,
            statements=tuple(data.get("statements", ())),
            match_pairs=tuple(tuple(p) for p in data.get("match_pairs", ())),
            assertion=data.get("assertion"),
            reason=data.get("reason"),
            sequence_items=tuple(data.get("sequence_items", ())),
            passage=data.get("passage"),
            explanation=str(data.get("explanation", "")),
            concepts=tuple(data.get("concepts", ())),
            tags=tuple(data.get("tags", ())),
            base_fact=data.get("base_fact"),
            time_to_solve=int(data.get("time_to_solve", 60)),
            marks=float(data.get("marks", 2.0)),
            raw_difficulty_score=data.get("raw_difficulty_score"),
            declared_difficulty=data.get("declared_difficulty"),
            is_trap=data.get("is_trap"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject.value,
            "topic": self.topic,
            "format": self.format.value,
            "text": self.text,
            "options": [{"text": o.text, "is_correct": o.is_correct} for o in self.options],
            "statements": list(self.statements),
            "match_pairs": [list(p) for p in self.match_pairs],
            "assertion": self.assertion,
            "reason": self.reason,
            "sequence_items": list(self.sequence_items),
            "passage": self.passage,
            "explanation": self.explanation,
            "concepts": list(self.concepts),
            "tags": list(self.tags),
            "base_fact": self.base_fact,
            "time_to_solve": self.time_to_solve,
            "marks": self.marks,
            "raw_difficulty_score": self.raw_difficulty_score,
            "declared_difficulty": self.declared_difficulty,
            "is_trap": self.is_trap,
        }


# ============================
# Candidate item (engine input)
# ============================

@dataclass(frozen=True)
class CandidateItem:
    """
    Immutable unit offered to the composition engine.

    difficulty_label must agree with raw_difficulty_score
    (<=35 easy, <=70 medium, else hard).
    """
    id: str
    subject: Subject
    topic: str
    format: ItemFormat
    raw_difficulty_score: float
    difficulty_label: str
    concept_tags: FrozenSet[str]
    quality_score: float
    is_trap: bool = False

    def __post_init__(self):
        if not 0.0 <= self.raw_difficulty_score <= 100.0:
            raise ValueError(f"{self.id}: raw_difficulty_score out of range: {self.raw_difficulty_score}")
        if self.difficulty_label != label_for_score(self.raw_difficulty_score):
            raise ValueError(
                f"{self.id}: label {self.difficulty_label!r} inconsistent with score {self.raw_difficulty_score}"
            )
        if not self.concept_tags:
            raise ValueError(f"{self.id}: concept_tags must not be empty")
        if not 0.0 <= self.quality_score <= 100.0:
            raise ValueError(f"{self.id}: quality_score out of range: {self.quality_score}")
        # Accept any iterable of tags, store a frozenset
        if not isinstance(self.concept_tags, frozenset):
            object.__setattr__(self, "concept_tags", frozenset(self.concept_tags))

    @classmethod
    def create(
        cls,
        id: str,
        subject: Any,
        topic: str,
        format: Any,
        raw_difficulty_score: float,
        concept_tags,
        quality_score: float,
        is_trap: bool = False,
    ) -> "CandidateItem":
        """Build an item and derive its label from the score."""
        return cls(
            id=str(id),
            subject=Subject.parse(subject),
            topic=topic,
            format=ItemFormat.parse(format),
            raw_difficulty_score=float(raw_difficulty_score),
            difficulty_label=label_for_score(float(raw_difficulty_score)),
            concept_tags=frozenset(concept_tags),
            quality_score=float(quality_score),
            is_trap=bool(is_trap),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject.value,
            "topic": self.topic,
            "format": self.format.value,
            "raw_difficulty_score": self.raw_difficulty_score,
            "difficulty_label": self.difficulty_label,
            "concept_tags": sorted(self.concept_tags),
            "quality_score": self.quality_score,
            "is_trap": self.is_trap,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CandidateItem":
        return cls(
            id=str(data["id"]),
            subject=Subject.parse(data["subject"]),
            topic=str(data.get("topic", "")),
            format=ItemFormat.parse(data["format"]),
            raw_difficulty_score=float(data["raw_difficulty_score"]),
            difficulty_label=str(data["difficulty_label"]),
            concept_tags=frozenset(data["concept_tags"]),
            quality_score=float(data["quality_score"]),
            is_trap=bool(data.get("is_trap", False)),
        )


# ============================
# Quota configuration
# ============================

@dataclass(frozen=True)
class BucketConstraint:
    """Count range for one bucket (a subject or a difficulty label)."""
    key: str
    min_count: int
    max_count: int

    def __post_init__(self):
        if self.min_count < 0:
            raise ValueError(f"{self.key}: min_count must be >= 0")
        if self.min_count > self.max_count:
            raise ValueError(f"{self.key}: min_count {self.min_count} > max_count {self.max_count}")


@dataclass(frozen=True)
class DifficultyMix:
    """Easy/medium/hard ratio; must sum to 1."""
    easy: float
    medium: float
    hard: float

    def __post_init__(self):
        if min(self.easy, self.medium, self.hard) < 0:
            raise ValueError("difficulty ratios must be non-negative")
        if abs(self.easy + self.medium + self.hard - 1.0) > 1e-6:
            raise ValueError("difficulty ratios must sum to 1.0")

    def as_dict(self) -> Dict[str, float]:
        return {EASY: self.easy, MEDIUM: self.medium, HARD: self.hard}


@dataclass(frozen=True)
class CompositionConfig:
    target_size: int
    subject_constraints: Tuple[BucketConstraint, ...]
    difficulty_ratio: DifficultyMix = DifficultyMix(0.25, 0.55, 0.20)
    trap_ratio_range: Tuple[float, float] = (0.08, 0.12)

    def __post_init__(self):
        if self.target_size <= 0:
            raise ValueError("target_size must be positive")
        object.__setattr__(self, "subject_constraints", tuple(self.subject_constraints))
        keys = [c.key for c in self.subject_constraints]
        if len(keys) != len(set(keys)):
            raise ValueError("duplicate subject constraint keys")
        lo, hi = self.trap_ratio_range
        if not 0.0 <= lo <= hi <= 1.0:
            raise ValueError(f"invalid trap_ratio_range: {self.trap_ratio_range}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_size": self.target_size,
            "subject_constraints": [
                {"key": c.key, "min_count": c.min_count, "max_count": c.max_count}
                for c in self.subject_constraints
            ],
            "difficulty_ratio": self.difficulty_ratio.as_dict(),
            "trap_ratio_range": list(self.trap_ratio_range),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CompositionConfig":
        ratio = data.get("difficulty_ratio", {EASY: 0.25, MEDIUM: 0.55, HARD: 0.20})
        return cls(
            target_size=int(data["target_size"]),
            subject_constraints=tuple(
                BucketConstraint(Subject.parse(c["key"]).value, int(c["min_count"]), int(c["max_count"]))
                for c in data["subject_constraints"]
            ),
            difficulty_ratio=DifficultyMix(float(ratio[EASY]), float(ratio[MEDIUM]), float(ratio[HARD])),
            trap_ratio_range=tuple(data.get("trap_ratio_range", (0.08, 0.12))),
        )


def make_prelims_config(target_size: int = 100) -> CompositionConfig:
    """
    Standard Prelims paper: 100 items, 25/55/20 difficulty mix and the
    usual per-subject ranges.
    """
    ranges = [
        (Subject.POLITY, 17, 22),
        (Subject.HISTORY, 15, 18),
        (Subject.GEOGRAPHY, 12, 15),
        (Subject.ECONOMY, 13, 17),
        (Subject.ENVIRONMENT, 10, 12),
        (Subject.SCIENCE, 7, 10),
        (Subject.CURRENT_AFFAIRS, 22, 27),
    ]
    return CompositionConfig(
        target_size=target_size,
        subject_constraints=tuple(BucketConstraint(s.value, lo, hi) for s, lo, hi in ranges),
        difficulty_ratio=DifficultyMix(easy=0.25, medium=0.55, hard=0.20),
        trap_ratio_range=(0.08, 0.12),
    )


# ============================
# Plan, report, composed test
# ============================

@dataclass(frozen=True)
class CompositionPlan:
    """
    Allocator output. subject_counts and difficulty_counts are two
    independent partitions of the same target_size.
    """
    target_size: int
    subject_constraints: Tuple[BucketConstraint, ...]
    subject_counts: Mapping[str, int]
    difficulty_counts: Mapping[str, int]
    trap_ratio_range: Tuple[float, float] = (0.08, 0.12)

    def __post_init__(self):
        # read-only views so a composed test cannot be edited through its plan
        object.__setattr__(self, "subject_counts", MappingProxyType(dict(self.subject_counts)))
        object.__setattr__(self, "difficulty_counts", MappingProxyType(dict(self.difficulty_counts)))
        object.__setattr__(self, "trap_ratio_range", tuple(self.trap_ratio_range))

    def constraint_for(self, key: str) -> Optional[BucketConstraint]:
        for c in self.subject_constraints:
            if c.key == key:
                return c
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_size": self.target_size,
            "subject_constraints": [
                {"key": c.key, "min_count": c.min_count, "max_count": c.max_count}
                for c in self.subject_constraints
            ],
            "subject_counts": dict(self.subject_counts),
            "difficulty_counts": dict(self.difficulty_counts),
            "trap_ratio_range": list(self.trap_ratio_range),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CompositionPlan":
        return cls(
            target_size=int(data["target_size"]),
            subject_constraints=tuple(
                BucketConstraint(c["key"], int(c["min_count"]), int(c["max_count"]))
                for c in data["subject_constraints"]
            ),
            subject_counts={k: int(v) for k, v in data["subject_counts"].items()},
            difficulty_counts={k: int(v) for k, v in data["difficulty_counts"].items()},
            trap_ratio_range=tuple(data.get("trap_ratio_range", (0.08, 0.12))),
        )


@dataclass(frozen=True)
class Violation:
    rule: str
    expected: Any
    actual: Any
    position: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {"rule": self.rule, "expected": self.expected, "actual": self.actual}
        if self.position is not None:
            out["position"] = self.position
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Violation":
        return cls(data["rule"], data.get("expected"), data.get("actual"), data.get("position"))


@dataclass(frozen=True)
class Relaxation:
    """A spacing rule the sequencer had to drop at one position."""
    rule: str
    position: int

    def to_dict(self) -> Dict[str, Any]:
        return {"rule": self.rule, "position": self.position}


@dataclass(frozen=True)
class ValidationReport:
    valid: bool
    violations: Tuple[Violation, ...] = ()
    relaxed: Tuple[Violation, ...] = ()
    advisories: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "violations": [v.to_dict() for v in self.violations],
            "relaxed": [v.to_dict() for v in self.relaxed],
            "advisories": list(self.advisories),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ValidationReport":
        return cls(
            valid=bool(data["valid"]),
            violations=tuple(Violation.from_dict(v) for v in data.get("violations", ())),
            relaxed=tuple(Violation.from_dict(v) for v in data.get("relaxed", ())),
            advisories=tuple(data.get("advisories", ())),
        )

    def rules_violated(self) -> List[str]:
        return sorted({v.rule for v in self.violations})


def make_test_id(seed: int, item_ids: List[str]) -> str:
    digest = hashlib.sha256(f"{seed}::{','.join(item_ids)}".encode()).hexdigest()
    return f"test-{digest[:16]}"


@dataclass(frozen=True)
class ComposedTest:
    """
    One composed test instance. Never mutated after creation;
    re-validation produces a new report.
    """
    test_id: str
    seed: int
    items: Tuple[CandidateItem, ...]
    plan: CompositionPlan
    report: ValidationReport
    relaxations: Tuple[Relaxation, ...] = ()
    difficulty_curve: Tuple[str, ...] = ()
    focus_areas: Tuple[str, ...] = ()

    @property
    def size(self) -> int:
        return len(self.items)

    def subject_breakdown(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for it in self.items:
            out[it.subject.value] = out.get(it.subject.value, 0) + 1
        return out

    def difficulty_breakdown(self) -> Dict[str, int]:
        out = {label: 0 for label in DIFFICULTY_LABELS}
        for it in self.items:
            out[it.difficulty_label] += 1
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_id": self.test_id,
            "seed": self.seed,
            "items": [it.to_dict() for it in self.items],
            "plan": self.plan.to_dict(),
            "report": self.report.to_dict(),
            "relaxations": [r.to_dict() for r in self.relaxations],
            "difficulty_curve": list(self.difficulty_curve),
            "focus_areas": list(self.focus_areas),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, ensure_ascii=False, indent=2)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ComposedTest":
        return cls(
            test_id=str(data["test_id"]),
            seed=int(data["seed"]),
            items=tuple(CandidateItem.from_dict(d) for d in data["items"]),
            plan=CompositionPlan.from_dict(data["plan"]),
            report=ValidationReport.from_dict(data["report"]),
            relaxations=tuple(Relaxation(r["rule"], int(r["position"])) for r in data.get("relaxations", ())),
            difficulty_curve=tuple(data.get("difficulty_curve", ())),
            focus_areas=tuple(data.get("focus_areas", ())),
        )


# ============================
# Learner history & profile
# ============================

@dataclass(frozen=True)
class AttemptRecord:
    item_id: str
    subject: Subject
    topic: str
    correct: bool
    time_spent: float  # seconds
    attempted_at: Optional[float] = None  # epoch seconds

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AttemptRecord":
        return cls(
            item_id=str(data["item_id"]),
            subject=Subject.parse(data["subject"]),
            topic=str(data.get("topic", "General")),
            correct=bool(data["correct"]),
            time_spent=float(data.get("time_spent", 0.0)),
            attempted_at=data.get("attempted_at"),
        )


@dataclass(frozen=True)
class AreaSummary:
    subject: Subject
    topics: Tuple[str, ...]
    average_score: float  # percent
    attempts: int


@dataclass(frozen=True)
class LearnerProfile:
    """Pure function of the attempt log; rebuilt, never patched."""
    learner_id: str
    weak_areas: Tuple[AreaSummary, ...] = ()
    strong_areas: Tuple[AreaSummary, ...] = ()
    overall_accuracy: float = 0.0  # percent
    average_time_per_item: float = 0.0
    topic_accuracy: Dict[Tuple[str, str], float] = field(default_factory=dict)
    attempt_history: Tuple[AttemptRecord, ...] = ()

    @property
    def weak_subjects(self) -> List[Subject]:
        return [a.subject for a in self.weak_areas]

    @property
    def strong_subjects(self) -> List[Subject]:
        return [a.subject for a in self.strong_areas]
