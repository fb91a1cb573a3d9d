# exam_core/__init__.py

"""
Exam composition engine

Includes:
- Difficulty scoring of a question from eight weighted factors
- Quality gate (structural, factual, ambiguity and difficulty checks)
- Quota allocation across subject and difficulty buckets
- Selection, sequencing and post-hoc validation of a test instance
- Adaptive variant driven by a learner's weak/strong areas

Common exports:
    CandidateItem, CompositionConfig, ComposedTest, make_prelims_config
    compose_test, compose_adaptive_test, validate
    build_profile, prepare_pool, load_settings
"""

# Schema models
from .schema import (
    Subject,
    ItemFormat,
    QuestionRecord,
    CandidateItem,
    BucketConstraint,
    DifficultyMix,
    CompositionConfig,
    CompositionPlan,
    ComposedTest,
    ValidationReport,
    AttemptRecord,
    LearnerProfile,
    make_prelims_config,
)

# Errors
from .errors import (
    CompositionError,
    QuotaInfeasible,
    InsufficientPool,
    SequencingTimeout,
    ValidationFailed,
)

# Configuration
from .settings import (
    EngineSettings,
    load_settings,
)

# Scoring & gating
from .difficulty import score_difficulty
from .quality_gate import evaluate_quality
from .pool import prepare_pool

# Allocation
from .quota import (
    allocate_quotas,
    bias_constraints,
)

# Adaptive profile
from .adaptive_profile import (
    build_profile,
    difficulty_progression,
    adaptive_config,
)

# Pipeline
from .composer import (
    compose_test,
    compose_adaptive_test,
    validate,
)


__all__ = [
    # Schema
    "Subject",
    "ItemFormat",
    "QuestionRecord",
    "CandidateItem",
    "BucketConstraint",
    "DifficultyMix",
    "CompositionConfig",
    "CompositionPlan",
    "ComposedTest",
    "ValidationReport",
    "AttemptRecord",
    "LearnerProfile",
    "make_prelims_config",

    # Errors
    "CompositionError",
    "QuotaInfeasible",
    "InsufficientPool",
    "SequencingTimeout",
    "ValidationFailed",

    # Configuration
    "EngineSettings",
    "load_settings",

    # Scoring & gating
    "score_difficulty",
    "evaluate_quality",
    "prepare_pool",

    # Allocation
    "allocate_quotas",
    "bias_constraints",

    # Adaptive profile
    "build_profile",
    "difficulty_progression",
    "adaptive_config",

    # Pipeline
    "compose_test",
    "compose_adaptive_test",
    "validate",
]
