# exam_core/pool.py

"""
Turn raw bank records into gated CandidateItems.

Each record is scored (difficulty.py) and gated (quality_gate.py)
independently, so the work can be fanned out over a thread pool; results
always come back in input order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .difficulty import DifficultyResult, score_difficulty
from .quality_gate import GateResult, evaluate_quality
from .schema import CandidateItem, QuestionRecord
from .settings import EngineSettings

logger = logging.getLogger(__name__)

# Option / stem phrases that mark a deliberate trap question
TRAP_INDICATORS = (
    "none of the above",
    "all of the above",
    "both 1 and 2",
    "neither 1 nor 2",
    "except",
    "incorrect",
)


def is_trap_question(record: QuestionRecord) -> bool:
    """A declared flag on the record wins; otherwise look for trap phrasing."""
    if record.is_trap is not None:
        return bool(record.is_trap)
    texts = [record.text.lower()] + [o.text.lower() for o in record.options]
    return any(ind in t for t in texts for ind in TRAP_INDICATORS)


def concept_tags_for(record: QuestionRecord) -> frozenset:
    tags = {c.strip().lower() for c in record.concepts if c.strip()}
    if not tags:
        tags = {t.strip().lower() for t in record.tags if t.strip()}
    if not tags:
        tags = {(record.topic or record.subject.value).strip().lower()}
    return frozenset(tags)


@dataclass(frozen=True)
class PreparedRecord:
    record: QuestionRecord
    difficulty: DifficultyResult
    gate: GateResult
    candidate: Optional[CandidateItem]  # None when the gate rejected the record


@dataclass(frozen=True)
class PoolReport:
    prepared: List[PreparedRecord]

    @property
    def accepted(self) -> List[CandidateItem]:
        return [p.candidate for p in self.prepared if p.candidate is not None]

    @property
    def rejected(self) -> List[PreparedRecord]:
        return [p for p in self.prepared if p.candidate is None]

    def summary(self) -> dict:
        return {
            "total": len(self.prepared),
            "accepted": len(self.accepted),
            "rejected": len(self.rejected),
        }


def prepare_record(record: QuestionRecord, settings: Optional[EngineSettings] = None) -> PreparedRecord:
    settings = settings or EngineSettings()
    difficulty = score_difficulty(record, settings.weights)
    gate = evaluate_quality(record, difficulty, settings.gate)

    candidate = None
    if gate.passed:
        candidate = CandidateItem(
            id=record.id,
            subject=record.subject,
            topic=record.topic,
            format=record.format,
            raw_difficulty_score=difficulty.score,
            difficulty_label=difficulty.label,
            concept_tags=concept_tags_for(record),
            quality_score=gate.quality_score,
            is_trap=is_trap_question(record),
        )
    return PreparedRecord(record=record, difficulty=difficulty, gate=gate, candidate=candidate)


def prepare_pool(
    records: Sequence[QuestionRecord],
    settings: Optional[EngineSettings] = None,
    workers: int = 1,
    on_done: Optional[Callable[[int], None]] = None,
) -> PoolReport:
    """
    Score and gate every record.

    workers > 1 uses a thread pool; output order always matches input order.
    on_done(1) is called after each record (hook for a progress bar).
    """
    settings = settings or EngineSettings()
    results: List[Optional[PreparedRecord]] = [None] * len(records)

    if workers <= 1:
        for i, record in enumerate(records):
            results[i] = prepare_record(record, settings)
            if on_done:
                on_done(1)
    else:
        with ThreadPoolExecutor(max_workers=workers) as ex:
            futs = {ex.submit(prepare_record, record, settings): i for i, record in enumerate(records)}
            for fut in as_completed(futs):
                results[futs[fut]] = fut.result()
                if on_done:
                    on_done(1)

    report = PoolReport(prepared=[r for r in results if r is not None])
    logger.info(
        "Prepared pool: %d records, %d passed the quality gate, %d rejected",
        len(records), len(report.accepted), len(report.rejected),
    )
    return report
