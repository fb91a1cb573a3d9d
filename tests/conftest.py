# tests/conftest.py

import pytest

from exam_core.schema import (
    CandidateItem,
    ItemFormat,
    QuestionRecord,
    OptionSpec,
    Subject,
)

# Block sizes of the reference pool (220 items)
POOL_BLOCKS = [
    (Subject.POLITY, 40),
    (Subject.HISTORY, 35),
    (Subject.GEOGRAPHY, 30),
    (Subject.ECONOMY, 35),
    (Subject.ENVIRONMENT, 25),
    (Subject.SCIENCE, 20),
    (Subject.CURRENT_AFFAIRS, 35),
]

# 2 easy, 6 medium, 3 hard -> 40 / 120 / 60 over 220 items
SCORE_PATTERN = [20, 30, 45, 50, 55, 60, 62, 66, 80, 85, 90]

FORMATS = list(ItemFormat)


def make_item(item_id, subject, fmt, score=50, trap=False, quality=90, tags=None, topic="General"):
    return CandidateItem.create(
        id=item_id,
        subject=subject,
        topic=topic,
        format=fmt,
        raw_difficulty_score=score,
        concept_tags=tags or {f"tag-{item_id}"},
        quality_score=quality,
        is_trap=trap,
    )


def build_pool():
    items = []
    i = 0
    for subject, n in POOL_BLOCKS:
        for k in range(n):
            items.append(make_item(
                f"{subject.name.lower()}-{k:03d}",
                subject,
                FORMATS[i % len(FORMATS)],
                score=SCORE_PATTERN[i % len(SCORE_PATTERN)],
                trap=(i % 9 == 4),
                quality=75 + (i * 7) % 25,
                tags={f"{subject.name.lower()}-topic-{k % 6}", f"concept-{i}"},
                topic=f"Topic {k % 6}",
            ))
            i += 1
    return items


@pytest.fixture
def pool():
    return build_pool()


@pytest.fixture
def clean_record():
    return QuestionRecord(
        id="polity-rs-001",
        subject=Subject.POLITY,
        topic="Parliament",
        format=ItemFormat.SINGLE_CORRECT,
        text="Which of the following statements about the Rajya Sabha is correct?",
        options=(
            OptionSpec("It is a permanent body not subject to dissolution", True),
            OptionSpec("Its members are directly elected", False),
            OptionSpec("It can be dissolved by the Prime Minister", False),
            OptionSpec("It has no role in constitutional amendments", False),
        ),
        explanation="The Rajya Sabha is a permanent body and is not subject to dissolution.",
        concepts=("rajya sabha", "parliament"),
        tags=("polity",),
        base_fact="One third of Rajya Sabha members retire every second year",
        time_to_solve=60,
        marks=2.0,
        declared_difficulty="medium",
    )
