# exam_core/settings.py

"""
Explicit configuration passed into every engine call.

Nothing here is process-wide: `EngineSettings()` gives the defaults,
`load_settings()` layers overrides from the environment (and an optional
.env file) on top of them.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Optional, Tuple

from dotenv import load_dotenv

from .schema import ItemFormat

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoringWeights:
    """Weight vector of the eight difficulty factors (sum = 1)."""
    concept_count: float = 0.15
    cognitive_level: float = 0.20
    format_complexity: float = 0.15
    time_requirement: float = 0.10
    subject_integration: float = 0.10
    vocabulary: float = 0.10
    pattern_alignment: float = 0.10
    cross_reference: float = 0.10

    def __post_init__(self):
        total = sum(self.as_dict().values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"scoring weights must sum to 1.0, got {total:.4f}")

    def as_dict(self) -> Dict[str, float]:
        return {
            "concept_count": self.concept_count,
            "cognitive_level": self.cognitive_level,
            "format_complexity": self.format_complexity,
            "time_requirement": self.time_requirement,
            "subject_integration": self.subject_integration,
            "vocabulary": self.vocabulary,
            "pattern_alignment": self.pattern_alignment,
            "cross_reference": self.cross_reference,
        }


@dataclass(frozen=True)
class GateSettings:
    pass_score: float = 70.0
    difficulty_tolerance: float = 0.20
    min_text_length: int = 10
    max_text_length: int = 500
    min_solve_time: int = 15
    max_solve_time: int = 300
    min_marks: float = 1.0
    max_marks: float = 10.0
    # per-check ceilings on the penalty each check may contribute
    factual_penalty_cap: float = 25.0
    ambiguity_penalty_cap: float = 15.0
    difficulty_penalty: float = 10.0


@dataclass(frozen=True)
class SequencingRules:
    max_subject_run: int = 2
    statement_formats: FrozenSet[ItemFormat] = frozenset({ItemFormat.STATEMENT_BASED})
    max_statement_run: int = 3
    min_statement_gap: int = 2
    trap_min_gap: int = 1  # non-trap items required between two traps
    # "fewest" places the smallest remaining subject bucket first; "most" the largest
    sibling_order: str = "fewest"
    backtrack_depth: int = 3
    backtrack_budget: int = 400
    max_iterations: int = 50_000

    def __post_init__(self):
        if self.sibling_order not in ("most", "fewest"):
            raise ValueError(f"sibling_order must be 'most' or 'fewest', got {self.sibling_order!r}")
        object.__setattr__(self, "statement_formats", frozenset(self.statement_formats))


@dataclass(frozen=True)
class AdaptiveSettings:
    weak_threshold: float = 60.0
    strong_threshold: float = 75.0
    min_attempts: int = 3
    weak_uplift: float = 0.30
    adjust_difficulty_mix: bool = False

    def __post_init__(self):
        if not 0.0 < self.weak_uplift <= 0.30:
            raise ValueError("weak_uplift must be in (0, 0.30]")


@dataclass(frozen=True)
class EngineSettings:
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    gate: GateSettings = field(default_factory=GateSettings)
    sequencing: SequencingRules = field(default_factory=SequencingRules)
    adaptive: AdaptiveSettings = field(default_factory=AdaptiveSettings)
    # advisory quality standards (never affect validity)
    min_format_diversity: int = 8
    min_concept_coverage: int = 50


# ============================
# Environment overrides
# ============================

_ENV_PREFIX = "EXAM_CORE_"


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(_ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{_ENV_PREFIX + name} must be a number, got {raw!r}")


def _env_int(name: str) -> Optional[int]:
    value = _env_float(name)
    return int(value) if value is not None else None


def load_settings(env_path: Optional[str] = None, base: Optional[EngineSettings] = None) -> EngineSettings:
    """
    Build EngineSettings from defaults plus EXAM_CORE_* environment variables.

    Recognised variables:
        EXAM_CORE_PASS_SCORE, EXAM_CORE_DIFFICULTY_TOLERANCE,
        EXAM_CORE_MAX_SUBJECT_RUN, EXAM_CORE_MAX_ITERATIONS,
        EXAM_CORE_WEAK_THRESHOLD, EXAM_CORE_STRONG_THRESHOLD,
        EXAM_CORE_WEAK_UPLIFT
    """
    if env_path:
        load_dotenv(dotenv_path=env_path)
    else:
        load_dotenv()

    settings = base or EngineSettings()
    gate = settings.gate
    seq = settings.sequencing
    adaptive = settings.adaptive

    pass_score = _env_float("PASS_SCORE")
    if pass_score is not None:
        gate = replace(gate, pass_score=pass_score)
    tolerance = _env_float("DIFFICULTY_TOLERANCE")
    if tolerance is not None:
        gate = replace(gate, difficulty_tolerance=tolerance)

    subject_run = _env_int("MAX_SUBJECT_RUN")
    if subject_run is not None:
        seq = replace(seq, max_subject_run=subject_run)
    max_iterations = _env_int("MAX_ITERATIONS")
    if max_iterations is not None:
        seq = replace(seq, max_iterations=max_iterations)

    weak = _env_float("WEAK_THRESHOLD")
    if weak is not None:
        adaptive = replace(adaptive, weak_threshold=weak)
    strong = _env_float("STRONG_THRESHOLD")
    if strong is not None:
        adaptive = replace(adaptive, strong_threshold=strong)
    uplift = _env_float("WEAK_UPLIFT")
    if uplift is not None:
        adaptive = replace(adaptive, weak_uplift=uplift)

    loaded = replace(settings, gate=gate, sequencing=seq, adaptive=adaptive)
    logger.debug("Loaded engine settings: pass_score=%s max_iterations=%s", gate.pass_score, seq.max_iterations)
    return loaded


def trap_range_from_env(default: Tuple[float, float] = (0.08, 0.12)) -> Tuple[float, float]:
    """Trap ratio range lives on CompositionConfig; the CLI reads its override here."""
    lo = _env_float("TRAP_MIN")
    hi = _env_float("TRAP_MAX")
    return (lo if lo is not None else default[0], hi if hi is not None else default[1])
