# dailyhistory/errors.py
from __future__ import annotations

from typing import Any, Optional


class PuzzleError(Exception):
    """Base class for every puzzle engine failure."""


class SelectionExhausted(PuzzleError):
    def __init__(self, attempts: int, min_span: int, max_span: int, reason: str = ""):
        self.attempts = attempts
        self.min_span = min_span
        self.max_span = max_span
        self.reason = reason or f"no subset with span {min_span}-{max_span} after {attempts} attempts"
        super().__init__(self.reason)


class ValidationFailed(PuzzleError):
    """A submitted play did not survive server-side recomputation."""

    step = "invalid"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"{self.step}: {message}")


class MalformedSubmission(ValidationFailed):
    step = "malformed"


class IdentityMismatch(ValidationFailed):
    step = "identity"
    status_code = 403


class NotSolved(ValidationFailed):
    step = "not_solved"


class AttemptFeedbackMismatch(ValidationFailed):
    step = "feedback_mismatch"

    def __init__(self, attempt: int):
        self.attempt = attempt
        super().__init__(f"attempt {attempt} feedback mismatch")


class AttemptPairsMismatch(ValidationFailed):
    step = "pairs_mismatch"

    def __init__(self, attempt: int):
        self.attempt = attempt
        super().__init__(f"attempt {attempt} pair counts incorrect")


class AttemptOrderingInvalid(ValidationFailed):
    step = "invalid_ordering"

    def __init__(self, attempt: int, detail: str = ""):
        self.attempt = attempt
        message = f"attempt {attempt} is not an ordering of the puzzle's events"
        super().__init__(f"{message}: {detail}" if detail else message)


class FinalAttemptNotSolved(ValidationFailed):
    step = "final_not_solved"


class ScoreMismatch(ValidationFailed):
    step = "score_mismatch"


class RangeRejected(ValidationFailed):
    step = "range_rejected"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class PlaySealed(ValidationFailed):
    step = "sealed"
    status_code = 409


class CompositionRejected(PuzzleError):
    def __init__(self, reason: str, judgment: Optional[Any] = None):
        self.reason = reason
        self.judgment = judgment
        super().__init__(reason)


class CompositionExhausted(PuzzleError):
    def __init__(self, result: Any):
        self.result = result
        super().__init__(getattr(result, "reason", "composition exhausted"))


class JudgeError(PuzzleError):
    """The quality judge failed or answered with something unusable."""


class DateOutOfWindow(PuzzleError):
    pass


class RecordNotFound(PuzzleError):
    status_code = 404
