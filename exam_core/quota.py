# exam_core/quota.py

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Sequence, Tuple

from .difficulty import round_half_up
from .errors import QuotaInfeasible
from .schema import DIFFICULTY_LABELS, BucketConstraint, CompositionPlan, DifficultyMix

logger = logging.getLogger(__name__)


# ============================
# Feasibility
# ============================

def check_feasible(target_size: int, constraints: Sequence[BucketConstraint]) -> None:
    total_min = sum(c.min_count for c in constraints)
    total_max = sum(c.max_count for c in constraints)
    if total_min > target_size:
        raise QuotaInfeasible(
            f"Subject minimums sum to {total_min}, more than the target size {target_size}",
            bucket="subject_min", target_size=target_size,
        )
    if total_max < target_size:
        raise QuotaInfeasible(
            f"Subject maximums sum to {total_max}, less than the target size {target_size}",
            bucket="subject_max", target_size=target_size,
        )


# ============================
# Allocation
# ============================

def allocate_subjects(target_size: int, constraints: Sequence[BucketConstraint]) -> Dict[str, int]:
    """
    Every bucket gets its minimum, then the remainder goes round-robin in
    declaration order to buckets still below their maximum.
    """
    check_feasible(target_size, constraints)
    counts = {c.key: c.min_count for c in constraints}
    remaining = target_size - sum(counts.values())

    while remaining > 0:
        progressed = False
        for c in constraints:
            if remaining == 0:
                break
            if counts[c.key] < c.max_count:
                counts[c.key] += 1
                remaining -= 1
                progressed = True
        if not progressed:
            # unreachable after check_feasible, kept as a guard against an endless loop
            raise QuotaInfeasible("No bucket can absorb the remaining items", target_size=target_size)
    return counts


def allocate_difficulty(target_size: int, ratio: DifficultyMix) -> Dict[str, int]:
    """round(N x ratio) per label; the last label takes the remainder."""
    shares = ratio.as_dict()
    counts: Dict[str, int] = {}
    for label in DIFFICULTY_LABELS[:-1]:
        counts[label] = round_half_up(target_size * shares[label])

    # rounding up can overshoot N; take the excess back from the largest buckets
    overshoot = sum(counts.values()) - target_size
    while overshoot > 0:
        largest = max(counts, key=lambda k: (counts[k], -DIFFICULTY_LABELS.index(k)))
        counts[largest] -= 1
        overshoot -= 1

    counts[DIFFICULTY_LABELS[-1]] = target_size - sum(counts.values())
    return counts


def allocate_quotas(
    target_size: int,
    subject_constraints: Sequence[BucketConstraint],
    difficulty_ratio: DifficultyMix,
    trap_ratio_range: Tuple[float, float] = (0.08, 0.12),
) -> CompositionPlan:
    subject_counts = allocate_subjects(target_size, subject_constraints)
    difficulty_counts = allocate_difficulty(target_size, difficulty_ratio)
    logger.debug("Allocated subjects=%s difficulty=%s", subject_counts, difficulty_counts)
    return CompositionPlan(
        target_size=target_size,
        subject_constraints=tuple(subject_constraints),
        subject_counts=subject_counts,
        difficulty_counts=difficulty_counts,
        trap_ratio_range=tuple(trap_ratio_range),
    )


# ============================
# Weak-area bias
# ============================

def _shave_minimums(mins: Dict[str, int], keys: List[str], excess: int) -> Dict[str, int]:
    """Lower the given buckets' minimums by `excess` in total, proportionally to their size."""
    pool = sum(mins[k] for k in keys)
    out = dict(mins)
    taken = 0
    for k in keys:
        cut = math.floor(excess * mins[k] / pool) if pool else 0
        out[k] -= cut
        taken += cut
    # leftover units go one at a time to the largest remaining minimums
    leftover = excess - taken
    while leftover > 0:
        candidates = [k for k in keys if out[k] > 0]
        if not candidates:
            break
        k = max(candidates, key=lambda key: (out[key], -keys.index(key)))
        out[k] -= 1
        leftover -= 1
    return out


def bias_constraints(
    constraints: Sequence[BucketConstraint],
    weak_subjects: Iterable[str],
    target_size: int,
    uplift: float = 0.30,
) -> Tuple[BucketConstraint, ...]:
    """
    Raise each weak subject's minimum by max(1, floor(min x uplift)) and relax
    its maximum by the same amount. If the minimums then exceed target_size,
    the other subjects' minimums are scaled down proportionally.
    """
    if not 0.0 < uplift <= 0.30:
        raise ValueError("uplift must be in (0, 0.30]")

    weak = set(weak_subjects)
    mins: Dict[str, int] = {}
    maxs: Dict[str, int] = {}
    for c in constraints:
        if c.key in weak:
            inc = max(1, math.floor(c.min_count * uplift))
            mins[c.key] = min(c.min_count + inc, target_size)
            maxs[c.key] = min(c.max_count + inc, target_size)
        else:
            mins[c.key] = c.min_count
            maxs[c.key] = c.max_count

    excess = sum(mins.values()) - target_size
    if excess > 0:
        others = [c.key for c in constraints if c.key not in weak]
        if sum(mins[k] for k in others) < excess:
            raise QuotaInfeasible(
                f"Weak-area uplift needs {excess} more items than the other subjects can give up",
                bucket=",".join(sorted(weak)), target_size=target_size,
            )
        mins = _shave_minimums(mins, others, excess)
        logger.info("Renormalised non-weak minimums down by %d to fit target size %d", excess, target_size)

    biased = tuple(BucketConstraint(c.key, mins[c.key], maxs[c.key]) for c in constraints)
    check_feasible(target_size, biased)
    return biased
