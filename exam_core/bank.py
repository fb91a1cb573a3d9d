# exam_core/bank.py

"""
Collaborators around the engine: the question bank it reads from and the
attempt log a learner profile is built from.

Storage is deliberately simple (in memory, JSON files on disk); a real
deployment puts a database behind the same two interfaces.
"""

from __future__ import annotations

import json
import logging
import os
import random
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .schema import AttemptRecord, ItemFormat, OptionSpec, QuestionRecord, Subject

logger = logging.getLogger(__name__)


# ============================
# Question bank
# ============================

class QuestionBank(ABC):
    @abstractmethod
    def fetch(self, subject: Optional[Subject] = None, topic: Optional[str] = None) -> List[QuestionRecord]:
        """Records matching the filters, in bank order."""


class InMemoryQuestionBank(QuestionBank):
    def __init__(self, records: Iterable[QuestionRecord] = ()):
        self._records: List[QuestionRecord] = list(records)

    def __len__(self) -> int:
        return len(self._records)

    def add(self, record: QuestionRecord) -> None:
        self._records.append(record)

    def fetch(self, subject: Optional[Subject] = None, topic: Optional[str] = None) -> List[QuestionRecord]:
        subject = Subject.parse(subject) if subject is not None else None
        return [
            r for r in self._records
            if (subject is None or r.subject == subject) and (topic is None or r.topic == topic)
        ]


def load_records(path: str) -> List[QuestionRecord]:
    """Read a JSON bank: either a list of records or {"questions": [...]}."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    rows = data.get("questions", []) if isinstance(data, dict) else data
    records = [QuestionRecord.from_dict(row) for row in rows]
    logger.info("Loaded %d records from %s", len(records), path)
    return records


def save_records(path: str, records: Sequence[QuestionRecord]) -> None:
    folder = os.path.dirname(path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump([r.to_dict() for r in records], f, ensure_ascii=False, indent=2)
    logger.info("Saved %d records to %s", len(records), path)


# ============================
# Attempt log
# ============================

class AttemptLog:
    """Append-only attempt history per learner."""

    def __init__(self):
        self._history: Dict[str, List[AttemptRecord]] = {}

    def record(self, learner_id: str, attempt: AttemptRecord) -> None:
        history = self._history.setdefault(learner_id, [])
        if history and attempt.attempted_at is not None:
            last = history[-1].attempted_at
            if last is not None and attempt.attempted_at < last:
                raise ValueError(
                    f"attempt on {attempt.item_id} at {attempt.attempted_at} is older than the last one ({last})"
                )
        history.append(attempt)

    def history(self, learner_id: str) -> Tuple[AttemptRecord, ...]:
        return tuple(self._history.get(learner_id, ()))

    def learners(self) -> List[str]:
        return sorted(self._history)


def load_attempts(path: str) -> Tuple[str, List[AttemptRecord]]:
    """
    Read an attempts file.

    Accepts {"learner_id": "...", "attempts": [...]} or a bare list
    (learner id then defaults to the file name).
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        learner_id = str(data.get("learner_id", "learner"))
        rows = data.get("attempts", [])
    else:
        learner_id = os.path.splitext(os.path.basename(path))[0]
        rows = data
    log = AttemptLog()
    for row in rows:
        log.record(learner_id, AttemptRecord.from_dict(row))
    return learner_id, list(log.history(learner_id))


# ============================
# Sample bank
# ============================

SAMPLE_TOPICS: Dict[Subject, List[Tuple[str, str]]] = {
    Subject.POLITY: [
        ("Fundamental Rights", "Article 32 lets a citizen move the Supreme Court for enforcement of rights"),
        ("Parliament", "A money bill can be introduced only in the Lok Sabha"),
        ("Judiciary", "The Supreme Court has original jurisdiction in disputes between states"),
        ("Federalism", "The Seventh Schedule divides powers into Union, State and Concurrent lists"),
        ("Directive Principles", "Directive Principles are not enforceable by any court"),
        ("Local Government", "The 73rd Amendment gave constitutional status to Panchayati Raj"),
    ],
    Subject.HISTORY: [
        ("Indus Valley", "Lothal had a dockyard used for maritime trade"),
        ("Mauryan Empire", "Ashoka's edicts were written mostly in Prakrit using Brahmi script"),
        ("Mughal Period", "Akbar introduced the mansabdari system of ranks"),
        ("Freedom Struggle", "The Non-Cooperation Movement was withdrawn after Chauri Chaura"),
        ("Colonial Economy", "The Permanent Settlement fixed land revenue with zamindars"),
        ("Bhakti Movement", "Kabir rejected ritual and caste distinctions in his verses"),
    ],
    Subject.GEOGRAPHY: [
        ("Monsoon", "The south-west monsoon brings most of India's annual rainfall"),
        ("Rivers", "The Godavari is the longest river flowing entirely within peninsular India"),
        ("Soils", "Black soil is well suited to cotton cultivation"),
        ("Plateaus", "The Deccan Plateau is made largely of basaltic lava flows"),
        ("Coastal Plains", "The western coastal plain is narrower than the eastern plain"),
    ],
    Subject.ECONOMY: [
        ("Monetary Policy", "The repo rate is set by the Monetary Policy Committee"),
        ("Fiscal Policy", "Fiscal deficit is total expenditure minus revenue receipts and non-debt capital receipts"),
        ("Inflation", "CPI inflation is the nominal anchor for monetary policy targeting"),
        ("External Sector", "The current account records trade in goods and services"),
        ("Banking", "Priority sector lending targets are prescribed by the central bank"),
        ("Budget", "The Union Budget is presented as the Annual Financial Statement"),
    ],
    Subject.ENVIRONMENT: [
        ("Biodiversity", "Biodiversity hotspots have high endemism and severe habitat loss"),
        ("Climate Change", "The Paris Agreement relies on nationally determined contributions"),
        ("Wetlands", "The Ramsar Convention protects wetlands of international importance"),
        ("Pollution", "Ground-level ozone is a secondary pollutant"),
        ("Protected Areas", "Biosphere reserves have core, buffer and transition zones"),
    ],
    Subject.SCIENCE: [
        ("Space Technology", "Chandrayaan-3 achieved a soft landing near the lunar south pole"),
        ("Biotechnology", "CRISPR-Cas9 edits genes at targeted DNA sequences"),
        ("Nuclear Energy", "Pressurised heavy water reactors use natural uranium as fuel"),
        ("Renewable Energy", "Green hydrogen is produced by electrolysis powered by renewable energy"),
    ],
    Subject.CURRENT_AFFAIRS: [
        ("International Relations", "India held the G20 presidency in 2023"),
        ("Government Schemes", "PM-KISAN provides direct income support to farmer families"),
        ("Economy Updates", "UPI transactions have grown rapidly in recent years"),
        ("Environment Updates", "India announced a net-zero target for 2070"),
        ("Science Updates", "Aditya-L1 studies the Sun from the first Lagrange point"),
        ("Awards and Reports", "The Human Development Report is published by UNDP"),
    ],
}

SAMPLE_COUNTS = {
    Subject.POLITY: 40,
    Subject.HISTORY: 35,
    Subject.GEOGRAPHY: 30,
    Subject.ECONOMY: 35,
    Subject.ENVIRONMENT: 25,
    Subject.SCIENCE: 20,
    Subject.CURRENT_AFFAIRS: 35,
}

# precomputed calibration scores cycled over the bank: 2 easy, 6 medium, 3 hard
SAMPLE_SCORES = (22, 30, 42, 48, 52, 58, 63, 67, 76, 84, 91)

FORMATS = list(ItemFormat)


def _options(fact: str, distractors: Sequence[str], correct: int = 1) -> Tuple[OptionSpec, ...]:
    opts = [OptionSpec(fact, True)] + [OptionSpec(d, False) for d in distractors]
    for i in range(1, correct):
        opts[i] = OptionSpec(opts[i].text, True)
    return tuple(opts)


def _build(fmt: ItemFormat, topic: str, fact: str, rng: random.Random) -> Dict[str, Any]:
    distractors = [
        f"{topic} has no link with the subject matter described",
        f"{topic} was abolished by an executive order",
        f"{topic} is governed only by customary practice",
    ]
    if fmt == ItemFormat.SINGLE_CORRECT:
        return {"text": f"Which of the following statements about {topic} is correct?",
                "options": _options(fact, distractors)}
    if fmt == ItemFormat.MULTIPLE_CORRECT:
        return {"text": f"Which of the following are correct regarding {topic}? Select all correct options.",
                "options": _options(fact, [f"{topic} appears in the standard syllabus"] + distractors[:2], correct=2)}
    if fmt == ItemFormat.STATEMENT_BASED:
        return {"text": f"Consider the following statements regarding {topic}. Select the correct answer.",
                "statements": (fact, distractors[1]),
                "options": tuple(OptionSpec(t, t == "1 only") for t in ("1 only", "2 only", "Both 1 and 2", "Neither 1 nor 2"))}
    if fmt == ItemFormat.MATCH_PAIRS:
        return {"text": f"Match the following items related to {topic} and select the correct code.",
                "match_pairs": ((topic, fact), ("Origin", "Historical background"), ("Authority", "Responsible body"))}
    if fmt == ItemFormat.ASSERTION_REASON:
        return {"text": f"Consider the assertion and reason given on {topic} and select the correct code.",
                "assertion": fact, "reason": f"{topic} is part of the core syllabus framework"}
    if fmt == ItemFormat.SEQUENCE:
        steps = ["Proposal", "Deliberation", "Approval", "Implementation"]
        return {"text": f"Arrange the stages of {topic} in the correct order.",
                "sequence_items": tuple(steps)}
    if fmt == ItemFormat.ODD_ONE_OUT:
        return {"text": f"Which of the following does not belong with the others in {topic}?",
                "options": _options(distractors[2], [fact, f"{topic} core feature", f"{topic} related principle"])}
    if fmt == ItemFormat.CASE_STUDY:
        return {"text": f"Read the passage on {topic} and identify the correct inference.",
                "passage": f"A district administration studied {topic}. Finding: {fact}."}
    if fmt == ItemFormat.MAP_BASED:
        return {"text": f"With reference to the map description, identify the region linked to {topic}.",
                "passage": f"Map shows four marked regions; region {rng.choice('ABCD')} relates to {topic}."}
    return {"text": f"Examine the data table on {topic} and select the correct conclusion.",
            "passage": f"Table: five year trend for {topic} with values 12, 15, 19, 24, 31."}


def generate_sample_records(seed: int = 7, counts: Optional[Dict[Subject, int]] = None) -> List[QuestionRecord]:
    """
    Deterministic demo bank (220 records with the default counts).

    Scores are precomputed calibration values, so the difficulty mix of
    the bank is known in advance; roughly one item in nine is a trap.
    """
    rng = random.Random(seed)
    counts = counts or SAMPLE_COUNTS
    records: List[QuestionRecord] = []
    index = 0
    for subject, n in counts.items():
        topics = SAMPLE_TOPICS[subject]
        for k in range(n):
            topic, fact = topics[k % len(topics)]
            fmt = FORMATS[index % len(FORMATS)]
            body = _build(fmt, topic, fact, rng)
            slug = subject.name.lower()
            records.append(QuestionRecord(
                id=f"{slug}-{k + 1:03d}",
                subject=subject,
                topic=topic,
                format=fmt,
                explanation=f"{fact}. The other choices misstate how {topic} works.",
                concepts=(topic.lower(), f"{topic.lower()} / aspect {k // len(topics) + 1}"),
                tags=(slug, topic.lower().replace(" ", "-")),
                base_fact=fact,
                time_to_solve=45 + 15 * (index % 5),
                marks=2.0,
                raw_difficulty_score=float(SAMPLE_SCORES[index % len(SAMPLE_SCORES)]),
                is_trap=(index % 9 == 4),
                **body,
            ))
            index += 1
    logger.debug("Generated %d sample records (seed=%d)", len(records), seed)
    return records
