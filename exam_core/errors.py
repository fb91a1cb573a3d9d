# exam_core/errors.py

"""
Structured error kinds raised by the composition pipeline.

None of them are transient: there is no I/O to retry. Each carries the
bucket/rule it is about so callers can tell the operator exactly why a test
could not be generated with the given constraints.
"""

from typing import Optional


class CompositionError(Exception):
    """Base class for every failure of a composition call."""


class QuotaInfeasible(CompositionError):
    """Bucket constraints cannot sum to the target size."""

    def __init__(self, message: str, bucket: Optional[str] = None, target_size: Optional[int] = None):
        super().__init__(message)
        self.bucket = bucket
        self.target_size = target_size


class InsufficientPool(CompositionError):
    """A bucket cannot be filled from the gated pool."""

    def __init__(self, bucket: str, required: int, available: int):
        super().__init__(f"Insufficient pool for bucket '{bucket}': required {required}, available {available}")
        self.bucket = bucket
        self.required = required
        self.available = available


class SequencingTimeout(CompositionError):
    """Ordering did not converge within the iteration cap."""

    def __init__(self, iterations: int, placed: int, total: int):
        super().__init__(
            f"Sequencing gave up after {iterations} iterations ({placed}/{total} items placed)"
        )
        self.iterations = iterations
        self.placed = placed
        self.total = total


class ValidationFailed(CompositionError):
    """Post-hoc validation found violations in a composed test."""

    def __init__(self, report, test=None):
        rules = ", ".join(report.rules_violated()) or "unknown"
        super().__init__(f"Composed test failed validation: {rules}")
        self.report = report
        self.test = test
