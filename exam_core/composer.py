# exam_core/composer.py

"""
Pipeline entry points.

    compose_test           gate -> allocate -> select -> sequence -> validate
    compose_adaptive_test  same, with quotas biased by a learner profile and
                           a difficulty curve guiding the order
    validate               re-certify an existing ComposedTest

All randomness comes from one random.Random(seed) created per call.
"""

from __future__ import annotations

import logging
import random
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from .adaptive_profile import adaptive_config, difficulty_progression, focus_areas
from .errors import ValidationFailed
from .quota import allocate_quotas
from .schema import (
    CandidateItem,
    ComposedTest,
    CompositionConfig,
    LearnerProfile,
    ValidationReport,
    make_test_id,
)
from .selector import select_items
from .sequencer import sequence_items
from .settings import EngineSettings
from .validation import validate_test

logger = logging.getLogger(__name__)


def gate_pool(pool: Sequence[CandidateItem], pass_score: float) -> List[CandidateItem]:
    """Items below the pass score never reach selection."""
    kept = [it for it in pool if it.quality_score >= pass_score]
    if len(kept) < len(pool):
        logger.info("Quality gate excluded %d of %d items", len(pool) - len(kept), len(pool))
    return kept


def _compose(
    pool: Sequence[CandidateItem],
    config: CompositionConfig,
    seed: int,
    settings: EngineSettings,
    best_effort: bool,
    curve_for=None,
    focus: Tuple[str, ...] = (),
) -> ComposedTest:
    rng = random.Random(seed)

    gated = gate_pool(pool, settings.gate.pass_score)
    plan = allocate_quotas(
        config.target_size, config.subject_constraints, config.difficulty_ratio, config.trap_ratio_range
    )
    selection = select_items(gated, plan, config.trap_ratio_range, rng, best_effort=best_effort)

    drawn = list(selection.items)
    rng.shuffle(drawn)
    curve = tuple(curve_for(len(drawn))) if curve_for else ()
    ordered = sequence_items(drawn, settings.sequencing, curve or None)

    test = ComposedTest(
        test_id=make_test_id(seed, [it.id for it in ordered.items]),
        seed=seed,
        items=ordered.items,
        plan=plan,
        report=ValidationReport(valid=False),  # replaced below
        relaxations=ordered.relaxations,
        difficulty_curve=curve,
        focus_areas=focus,
    )
    report = validate_test(test, settings)
    test = replace(test, report=report)

    if not report.valid:
        if not best_effort:
            raise ValidationFailed(report, test)
        logger.warning("Returning best-effort test %s with %d violations", test.test_id, len(report.violations))
    else:
        logger.info(
            "Composed test %s: %d items, %d relaxations", test.test_id, test.size, len(test.relaxations)
        )
    return test


def compose_test(
    pool: Sequence[CandidateItem],
    config: CompositionConfig,
    seed: int,
    settings: Optional[EngineSettings] = None,
    best_effort: bool = False,
) -> ComposedTest:
    """
    Compose one test from a gated candidate pool.

    Strict mode returns a valid test or raises a CompositionError;
    best_effort=True returns whatever could be built with the report
    marking it invalid.
    """
    return _compose(pool, config, seed, settings or EngineSettings(), best_effort)


def compose_adaptive_test(
    pool: Sequence[CandidateItem],
    profile: LearnerProfile,
    base_config: CompositionConfig,
    seed: int,
    settings: Optional[EngineSettings] = None,
    best_effort: bool = False,
) -> ComposedTest:
    settings = settings or EngineSettings()
    config = adaptive_config(profile, base_config, settings.adaptive)
    logger.info(
        "Adaptive test for %s: weak=%s", profile.learner_id, [s.value for s in profile.weak_subjects] or "none"
    )
    return _compose(
        pool,
        config,
        seed,
        settings,
        best_effort,
        curve_for=lambda n: difficulty_progression(profile, n),
        focus=focus_areas(profile),
    )


def validate(test: ComposedTest, settings: Optional[EngineSettings] = None) -> ValidationReport:
    """Re-validate a composed test; returns a new ValidationReport."""
    return validate_test(test, settings)
