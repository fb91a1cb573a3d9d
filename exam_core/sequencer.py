# exam_core/sequencer.py

"""
Order a selection so that it reads like a real paper.

Spacing rules (all limits come from SequencingRules):
    format_adjacency   no two adjacent items share a format
    subject_run        at most `max_subject_run` consecutive items per subject
    statement_spacing  statement-structured runs <= `max_statement_run`,
                       and >= `min_statement_gap` other items between runs
    trap_position      traps never first or last
    trap_gap           traps never within `trap_min_gap` of another trap

Placement is greedy with a trap look-ahead. When no item fits, the last
few placements are re-tried by a bounded depth-first search; if that fails
too, rules are relaxed one at a time (statement_spacing, subject_run,
format_adjacency, trap_gap, trap_position) and every rule actually broken
is recorded. A trap on the first or last position is never accepted by
validation, relaxed or not.
"""

from __future__ import annotations

import bisect
import logging
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .errors import SequencingTimeout
from .schema import CandidateItem, Relaxation
from .settings import SequencingRules

logger = logging.getLogger(__name__)

FORMAT_ADJACENCY = "format_adjacency"
SUBJECT_RUN = "subject_run"
STATEMENT_SPACING = "statement_spacing"
TRAP_POSITION = "trap_position"
TRAP_GAP = "trap_gap"

RELAXATION_ORDER = (STATEMENT_SPACING, SUBJECT_RUN, FORMAT_ADJACENCY, TRAP_GAP, TRAP_POSITION)

DEFAULT_RULES = SequencingRules()


def _trailing(placed: Sequence[CandidateItem], pred) -> int:
    n = 0
    for item in reversed(placed):
        if not pred(item):
            break
        n += 1
    return n


def spacing_violations(
    placed: Sequence[CandidateItem],
    item: CandidateItem,
    total: int,
    rules: SequencingRules = DEFAULT_RULES,
) -> List[str]:
    """
    Rules broken by putting `item` right after `placed` in a test of
    `total` items. Shared with validation so both judge positions the same way.
    """
    position = len(placed)
    broken: List[str] = []

    if placed and placed[-1].format == item.format:
        broken.append(FORMAT_ADJACENCY)

    if _trailing(placed, lambda it: it.subject == item.subject) >= rules.max_subject_run:
        broken.append(SUBJECT_RUN)

    statement = rules.statement_formats
    if item.format in statement:
        run = _trailing(placed, lambda it: it.format in statement)
        if run >= rules.max_statement_run:
            broken.append(STATEMENT_SPACING)
        elif run == 0:
            gap = _trailing(placed, lambda it: it.format not in statement)
            if gap < len(placed) and gap < rules.min_statement_gap:
                broken.append(STATEMENT_SPACING)

    if item.is_trap:
        if position == 0 or position == total - 1:
            broken.append(TRAP_POSITION)
        elif rules.trap_min_gap > 0 and any(it.is_trap for it in placed[-rules.trap_min_gap:]):
            broken.append(TRAP_GAP)

    return broken


@dataclass(frozen=True)
class SequenceResult:
    items: Tuple[CandidateItem, ...]
    relaxations: Tuple[Relaxation, ...]
    iterations: int


class _Sequencer:
    def __init__(self, items: Sequence[CandidateItem], rules: SequencingRules, curve: Optional[Sequence[str]]):
        self.total = len(items)
        self.rules = rules
        self.curve = list(curve) if curve else None
        self.placed: List[CandidateItem] = []
        self.order: List[int] = []  # insertion index of each placed item
        self.remaining: List[Tuple[int, CandidateItem]] = list(enumerate(items))
        self.relaxations: List[Relaxation] = []
        self.iterations = 0
        self.trap_total = sum(1 for it in items if it.is_trap)

    # --- bookkeeping ---

    def _tick(self) -> None:
        self.iterations += 1
        if self.iterations > self.rules.max_iterations:
            raise SequencingTimeout(self.iterations, len(self.placed), self.total)

    def _place(self, entry: Tuple[int, CandidateItem]) -> None:
        self.remaining.remove(entry)
        self.placed.append(entry[1])
        self.order.append(entry[0])

    def _unplace(self) -> None:
        item = self.placed.pop()
        idx = self.order.pop()
        keys = [e[0] for e in self.remaining]
        self.remaining.insert(bisect.bisect_left(keys, idx), (idx, item))

    # --- candidate handling ---

    def _candidates(self) -> List[Tuple[int, CandidateItem]]:
        """One representative per interchangeable kind of item, best first."""
        position = len(self.placed)
        subject_left = Counter(it.subject for _, it in self.remaining)
        format_left = Counter(it.format for _, it in self.remaining)
        sibling_sign = -1 if self.rules.sibling_order == "most" else 1
        wanted = self.curve[position] if self.curve and position < len(self.curve) else None
        # spread traps through the test instead of leaving them all for the end
        traps_placed = sum(1 for it in self.placed if it.is_trap)
        traps_behind = traps_placed * self.total < self.trap_total * position

        seen = set()
        ranked = []
        for idx, item in self.remaining:
            kind = (item.subject, item.format, item.difficulty_label, item.is_trap)
            if kind in seen:
                continue
            seen.add(kind)
            key = (
                0 if wanted is None or item.difficulty_label == wanted else 1,
                0 if item.is_trap == traps_behind else 1,
                sibling_sign * subject_left[item.subject],
                -format_left[item.format],
                idx,
            )
            ranked.append((key, (idx, item)))
        ranked.sort(key=lambda pair: pair[0])
        return [entry for _, entry in ranked]

    def _violations(self, item: CandidateItem) -> List[str]:
        return spacing_violations(self.placed, item, self.total, self.rules)

    def _starves_traps(self, item: CandidateItem) -> bool:
        """Placing `item` would leave too few non-trap items to space the remaining traps."""
        traps_left = sum(1 for _, it in self.remaining if it.is_trap) - (1 if item.is_trap else 0)
        if traps_left <= 0:
            return False
        plain_left = len(self.remaining) - 1 - traps_left
        gap = max(1, self.rules.trap_min_gap)
        return plain_left < (traps_left + (1 if item.is_trap else 0)) * gap

    def _strict(self) -> List[Tuple[int, CandidateItem]]:
        return [
            entry for entry in self._candidates()
            if not self._violations(entry[1]) and not self._starves_traps(entry[1])
        ]

    # --- recovery ---

    def _backtrack(self) -> bool:
        depth = min(self.rules.backtrack_depth, len(self.placed))
        if depth == 0:
            return False
        target = len(self.placed) + 1
        snapshot = (list(self.placed), list(self.order), list(self.remaining), list(self.relaxations))
        for _ in range(depth):
            self._unplace()
        # relaxations recorded for the re-tried positions no longer apply
        self.relaxations = [r for r in self.relaxations if r.position < len(self.placed)]

        budget = [self.rules.backtrack_budget]

        def dfs() -> bool:
            if len(self.placed) == target:
                return True
            for entry in self._strict():
                if budget[0] <= 0:
                    return False
                budget[0] -= 1
                self._tick()
                self._place(entry)
                if dfs():
                    return True
                self._unplace()
            return False

        if dfs():
            logger.debug("Backtracked %d placements at position %d", depth, target - 1)
            return True
        self.placed, self.order, self.remaining, self.relaxations = snapshot
        return False

    def _place_relaxed(self) -> None:
        position = len(self.placed)
        candidates = self._candidates()
        allowed: set = set()
        for rule in RELAXATION_ORDER:
            allowed.add(rule)
            for entry in candidates:
                broken = self._violations(entry[1])
                # the look-ahead counts as trap spacing when gating, but only rules
                # actually broken at this position are recorded
                blocking = set(broken)
                if self._starves_traps(entry[1]):
                    blocking.add(TRAP_GAP)
                if blocking <= allowed:
                    self._tick()
                    self._place(entry)
                    for name in dict.fromkeys(broken):
                        self.relaxations.append(Relaxation(name, position))
                    if broken:
                        logger.warning("Relaxed %s at position %d", ", ".join(broken), position)
                    else:
                        logger.debug("Dropped the trap look-ahead at position %d", position)
                    return

    # --- main loop ---

    def run(self) -> SequenceResult:
        while self.remaining:
            self._tick()
            strict = self._strict()
            if strict:
                self._place(strict[0])
                continue
            if self._backtrack():
                continue
            self._place_relaxed()

        return SequenceResult(
            items=tuple(self.placed),
            relaxations=tuple(self.relaxations),
            iterations=self.iterations,
        )


def sequence_items(
    items: Sequence[CandidateItem],
    rules: SequencingRules = DEFAULT_RULES,
    curve: Optional[Sequence[str]] = None,
) -> SequenceResult:
    """
    Order `items` under the spacing rules.

    curve, when given, is a target difficulty label per position; it only
    breaks ties between items that satisfy the rules.
    """
    if curve is not None and len(curve) != len(items):
        raise ValueError(f"difficulty curve has {len(curve)} entries for {len(items)} items")
    result = _Sequencer(items, rules, curve).run()
    logger.info(
        "Sequenced %d items in %d iterations (%d relaxations)",
        len(result.items), result.iterations, len(result.relaxations),
    )
    return result
