# exam_core/selector.py

"""
Draw items from the gated pool so that both plan partitions (subject and
difficulty) are met exactly.

    1) dedupe the pool by id
    2) solve the subject x difficulty cell counts (proportional seed, then
       augmenting paths bounded by what the pool actually holds)
    3) fill every cell: most new concept tags first, then quality, then
       insertion order; seeded random choice once nothing adds a new tag
    4) swap items inside their cell until the trap count is in range
"""

from __future__ import annotations

import logging
import math
import random
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .difficulty import round_half_up
from .errors import InsufficientPool
from .schema import DIFFICULTY_LABELS, CandidateItem, CompositionPlan

logger = logging.getLogger(__name__)

Cell = Tuple[str, str]  # (subject key, difficulty label)


@dataclass(frozen=True)
class Selection:
    items: Tuple[CandidateItem, ...]
    cell_counts: Dict[Cell, int]
    trap_count: int
    trap_target: int
    trap_in_range: bool


def dedupe_pool(pool: Sequence[CandidateItem]) -> List[CandidateItem]:
    """First occurrence of every id wins; order is preserved."""
    seen: Set[str] = set()
    out: List[CandidateItem] = []
    dropped = 0
    for item in pool:
        if item.id in seen:
            dropped += 1
            continue
        seen.add(item.id)
        out.append(item)
    if dropped:
        logger.warning("Dropped %d duplicate item ids from the pool", dropped)
    return out


def _cells_by_key(pool: Sequence[CandidateItem]) -> Dict[Cell, List[Tuple[int, CandidateItem]]]:
    cells: Dict[Cell, List[Tuple[int, CandidateItem]]] = {}
    for idx, item in enumerate(pool):
        cells.setdefault((item.subject.value, item.difficulty_label), []).append((idx, item))
    return cells


# ============================
# Cell matrix
# ============================

def _check_bucket_supply(plan: CompositionPlan, avail: Dict[Cell, int]) -> None:
    for subject, need in plan.subject_counts.items():
        have = sum(avail.get((subject, d), 0) for d in DIFFICULTY_LABELS)
        if have < need:
            raise InsufficientPool(subject, need, have)
    for label, need in plan.difficulty_counts.items():
        have = sum(n for (s, d), n in avail.items() if d == label and s in plan.subject_counts)
        if have < need:
            raise InsufficientPool(label, need, have)


def _augment(
    start: str,
    subjects: List[str],
    x: Dict[Cell, int],
    avail: Dict[Cell, int],
    col_deficit: Dict[str, int],
) -> bool:
    """
    Push one unit from subject `start` to some difficulty label with spare
    demand, rerouting other subjects' units along the way (BFS, fixed order).
    """
    parent: Dict[Tuple[str, str], Optional[Tuple[str, str]]] = {("s", start): None}
    queue = deque([("s", start)])
    end = None
    while queue and end is None:
        kind, key = queue.popleft()
        if kind == "s":
            for label in DIFFICULTY_LABELS:
                node = ("d", label)
                if node in parent or x[(key, label)] >= avail.get((key, label), 0):
                    continue
                parent[node] = (kind, key)
                if col_deficit[label] > 0:
                    end = node
                    break
                queue.append(node)
        else:
            for subject in subjects:
                node = ("s", subject)
                if node in parent or x[(subject, key)] <= 0:
                    continue
                parent[node] = (kind, key)
                queue.append(node)

    if end is None:
        return False

    col_deficit[end[1]] -= 1
    node = end
    while parent[node] is not None:
        prev = parent[node]
        if node[0] == "d":  # forward edge subject -> label
            x[(prev[1], node[1])] += 1
        else:               # backward edge label -> subject
            x[(node[1], prev[1])] -= 1
        node = prev
    return True


def solve_cell_counts(plan: CompositionPlan, avail: Dict[Cell, int]) -> Dict[Cell, int]:
    """
    Integer matrix x[subject, label] with row sums = subject_counts,
    column sums = difficulty_counts and x <= avail.
    """
    _check_bucket_supply(plan, avail)
    subjects = list(plan.subject_counts)
    n = plan.target_size

    x: Dict[Cell, int] = {}
    for s in subjects:
        for d in DIFFICULTY_LABELS:
            share = plan.subject_counts[s] * plan.difficulty_counts.get(d, 0) // n if n else 0
            x[(s, d)] = min(share, avail.get((s, d), 0))

    col_deficit = {
        d: plan.difficulty_counts.get(d, 0) - sum(x[(s, d)] for s in subjects)
        for d in DIFFICULTY_LABELS
    }
    for s in subjects:
        while sum(x[(s, d)] for d in DIFFICULTY_LABELS) < plan.subject_counts[s]:
            if not _augment(s, subjects, x, avail, col_deficit):
                placed = sum(x[(s, d)] for d in DIFFICULTY_LABELS)
                raise InsufficientPool(s, plan.subject_counts[s], placed)
    return x


# ============================
# Per-cell draw
# ============================

def _draw_cell(
    candidates: List[Tuple[int, CandidateItem]],
    k: int,
    covered: Set[str],
    rng: random.Random,
) -> List[Tuple[int, CandidateItem]]:
    remaining = list(candidates)
    picked: List[Tuple[int, CandidateItem]] = []
    while len(picked) < k:
        best = max(len(item.concept_tags - covered) for _, item in remaining)
        if best > 0:
            choice = min(
                remaining,
                key=lambda pair: (-len(pair[1].concept_tags - covered), -pair[1].quality_score, pair[0]),
            )
        else:
            choice = rng.choice(remaining)
        remaining.remove(choice)
        picked.append(choice)
        covered |= choice[1].concept_tags
    return picked


# ============================
# Trap balancing
# ============================

def trap_bounds(target_size: int, trap_range: Tuple[float, float]) -> Tuple[int, int, int]:
    """(lowest allowed, target, highest allowed) trap counts."""
    lo, hi = trap_range
    low = math.ceil(target_size * lo - 1e-9)
    high = math.floor(target_size * hi + 1e-9)
    target = round_half_up(target_size * (lo + hi) / 2)
    return low, min(max(target, low), high), high


def _balance_traps(
    picked: Dict[Cell, List[Tuple[int, CandidateItem]]],
    cells: Dict[Cell, List[Tuple[int, CandidateItem]]],
    target: int,
) -> int:
    def count() -> int:
        return sum(1 for chosen in picked.values() for _, it in chosen if it.is_trap)

    traps = count()
    want_more = traps < target
    for cell, chosen in picked.items():
        if traps == target:
            break
        chosen_ids = {it.id for _, it in chosen}
        # swap-in pool: unselected items of the needed kind, best quality first
        incoming = sorted(
            (pair for pair in cells[cell] if pair[1].id not in chosen_ids and pair[1].is_trap == want_more),
            key=lambda pair: (-pair[1].quality_score, pair[0]),
        )
        # swap-out: selected items of the other kind, weakest quality first
        outgoing = sorted(
            (pair for pair in chosen if pair[1].is_trap != want_more),
            key=lambda pair: (pair[1].quality_score, -pair[0]),
        )
        for new, old in zip(incoming, outgoing):
            if traps == target:
                break
            chosen[chosen.index(old)] = new
            traps += 1 if want_more else -1
    return traps


# ============================
# Entry point
# ============================

def select_items(
    pool: Sequence[CandidateItem],
    plan: CompositionPlan,
    trap_range: Tuple[float, float],
    rng: random.Random,
    best_effort: bool = False,
) -> Selection:
    items = dedupe_pool(pool)
    cells = _cells_by_key(items)
    avail = {cell: len(members) for cell, members in cells.items()}

    counts = solve_cell_counts(plan, avail)

    covered: Set[str] = set()
    picked: "OrderedDict[Cell, List[Tuple[int, CandidateItem]]]" = OrderedDict()
    for subject in plan.subject_counts:
        for label in DIFFICULTY_LABELS:
            k = counts[(subject, label)]
            if k:
                picked[(subject, label)] = _draw_cell(cells[(subject, label)], k, covered, rng)

    low, target, high = trap_bounds(plan.target_size, trap_range)
    traps = _balance_traps(picked, cells, target)
    in_range = low <= traps <= high
    if not in_range:
        if not best_effort:
            raise InsufficientPool("trap", low if traps < low else high, traps)
        logger.warning("Trap count %d outside [%d, %d]; continuing in best-effort mode", traps, low, high)

    selected = tuple(it for chosen in picked.values() for _, it in chosen)
    logger.info(
        "Selected %d items across %d cells (%d traps, %d concept tags)",
        len(selected), len(picked), traps, len(covered),
    )
    return Selection(
        items=selected,
        cell_counts={cell: n for cell, n in counts.items() if n},
        trap_count=traps,
        trap_target=target,
        trap_in_range=in_range,
    )
