# exam_core/adaptive_profile.py

"""
Learner profile from attempt history, and what the adaptive pipeline
derives from it: biased quotas, a difficulty curve and focus areas.

The profile is always rebuilt from the whole attempt log, never patched.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Sequence, Tuple

from .quota import bias_constraints
from .schema import (
    EASY,
    HARD,
    MEDIUM,
    AreaSummary,
    AttemptRecord,
    CompositionConfig,
    DifficultyMix,
    LearnerProfile,
    Subject,
)
from .settings import AdaptiveSettings

logger = logging.getLogger(__name__)

DEFAULT_ADAPTIVE = AdaptiveSettings()
_SUBJECT_ORDER = {s: i for i, s in enumerate(Subject)}


def _percent(correct: int, total: int) -> float:
    return correct / total * 100.0 if total else 0.0


def build_profile(
    learner_id: str,
    attempts: Sequence[AttemptRecord],
    settings: AdaptiveSettings = DEFAULT_ADAPTIVE,
) -> LearnerProfile:
    subject_tally: Dict[Subject, List[int]] = {}
    topic_tally: Dict[Tuple[Subject, str], List[int]] = {}
    for a in attempts:
        s = subject_tally.setdefault(a.subject, [0, 0])
        t = topic_tally.setdefault((a.subject, a.topic), [0, 0])
        s[0] += int(a.correct)
        s[1] += 1
        t[0] += int(a.correct)
        t[1] += 1

    topic_accuracy = {
        (subject.value, topic): _percent(c, n) for (subject, topic), (c, n) in topic_tally.items()
    }

    def summary(subject: Subject) -> AreaSummary:
        correct, total = subject_tally[subject]
        topics = sorted(
            (topic for (s, topic) in topic_tally if s == subject),
            key=lambda topic: (topic_accuracy[(subject.value, topic)], topic),
        )
        return AreaSummary(subject, tuple(topics), _percent(correct, total), total)

    areas = [summary(s) for s in sorted(subject_tally, key=_SUBJECT_ORDER.get)]
    weak = [a for a in areas if a.attempts >= settings.min_attempts and a.average_score < settings.weak_threshold]
    strong = [a for a in areas if a.attempts >= settings.min_attempts and a.average_score > settings.strong_threshold]
    weak.sort(key=lambda a: a.average_score)
    strong.sort(key=lambda a: -a.average_score)

    total = len(attempts)
    profile = LearnerProfile(
        learner_id=learner_id,
        weak_areas=tuple(weak),
        strong_areas=tuple(strong),
        overall_accuracy=_percent(sum(int(a.correct) for a in attempts), total),
        average_time_per_item=(sum(a.time_spent for a in attempts) / total) if total else 0.0,
        topic_accuracy=topic_accuracy,
        attempt_history=tuple(attempts),
    )
    logger.debug(
        "Profile %s: accuracy=%.1f weak=%s strong=%s", learner_id, profile.overall_accuracy,
        [s.value for s in profile.weak_subjects], [s.value for s in profile.strong_subjects],
    )
    return profile


def difficulty_progression(profile: LearnerProfile, n: int) -> Tuple[str, ...]:
    """
    Target difficulty label per position.

    Below 50% accuracy the curve starts easy, 50-70% cycles evenly through
    the three labels, above 70% it starts hard.
    """
    accuracy = profile.overall_accuracy
    curve: List[str] = []
    for i in range(n):
        ratio = i / n
        if accuracy < 50:
            curve.append(EASY if ratio < 0.6 else MEDIUM if ratio < 0.9 else HARD)
        elif accuracy <= 70:
            curve.append((EASY, MEDIUM, HARD)[i % 3])
        else:
            curve.append(HARD if ratio < 0.6 else MEDIUM if ratio < 0.8 else EASY)
    return tuple(curve)


def adaptive_difficulty_mix(profile: LearnerProfile) -> DifficultyMix:
    if profile.overall_accuracy < 50:
        return DifficultyMix(easy=0.5, medium=0.35, hard=0.15)
    if profile.overall_accuracy < 70:
        return DifficultyMix(easy=0.3, medium=0.5, hard=0.2)
    return DifficultyMix(easy=0.2, medium=0.4, hard=0.4)


def adaptive_config(
    profile: LearnerProfile,
    base_config: CompositionConfig,
    settings: AdaptiveSettings = DEFAULT_ADAPTIVE,
) -> CompositionConfig:
    """base_config with weak subjects' quotas raised (and the mix shifted when enabled)."""
    keys = {c.key for c in base_config.subject_constraints}
    weak = [s.value for s in profile.weak_subjects if s.value in keys]

    config = base_config
    if weak:
        config = replace(
            config,
            subject_constraints=bias_constraints(
                base_config.subject_constraints, weak, base_config.target_size, settings.weak_uplift
            ),
        )
    if settings.adjust_difficulty_mix:
        config = replace(config, difficulty_ratio=adaptive_difficulty_mix(profile))
    return config


def focus_areas(profile: LearnerProfile, limit: int = 3) -> Tuple[str, ...]:
    areas = [f"Improve {a.subject.value} (Current: {a.average_score:.1f}%)" for a in profile.weak_areas[:limit]]
    if profile.overall_accuracy < 60:
        areas.append("Build foundational concepts")
    elif profile.overall_accuracy < 80:
        areas.append("Enhance analytical skills")
    else:
        areas.append("Master advanced concepts")
    return tuple(areas)


def profile_summary(profile: LearnerProfile) -> Dict[str, object]:
    """Plain dict for CLI / JSON output."""
    def area(a: AreaSummary) -> Dict[str, object]:
        return {
            "subject": a.subject.value,
            "topics": list(a.topics),
            "average_score": round(a.average_score, 1),
            "attempts": a.attempts,
        }

    return {
        "learner_id": profile.learner_id,
        "overall_accuracy": round(profile.overall_accuracy, 1),
        "average_time_per_item": round(profile.average_time_per_item, 1),
        "weak_areas": [area(a) for a in profile.weak_areas],
        "strong_areas": [area(a) for a in profile.strong_areas],
        "focus_areas": list(focus_areas(profile)),
    }
