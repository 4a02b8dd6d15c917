import pytest

from dailyhistory.engine.scoring import W_MAX, evaluate_ordering
from dailyhistory.engine.validation import (
    RangeGuess,
    parse_order_submission,
    parse_range_guess,
    validate_order_submission,
    validate_range_guess,
)
from dailyhistory.errors import (
    AttemptFeedbackMismatch,
    AttemptOrderingInvalid,
    AttemptPairsMismatch,
    FinalAttemptNotSolved,
    MalformedSubmission,
    NotSolved,
    RangeRejected,
    ScoreMismatch,
)

EVENTS = [
    {"id": "e1", "year": 1066, "text": "Hastings"},
    {"id": "e2", "year": 1215, "text": "Magna Carta"},
    {"id": "e3", "year": 1492, "text": "Columbus"},
    {"id": "e4", "year": 1776, "text": "Declaration"},
    {"id": "e5", "year": 1969, "text": "Moon landing"},
    {"id": "e6", "year": 1989, "text": "Berlin Wall"},
]
SOLVED = ["e1", "e2", "e3", "e4", "e5", "e6"]
FIRST_TRY = ["e2", "e1", "e3", "e4", "e6", "e5"]


def _attempt(ordering, ts=1):
    honest = evaluate_ordering(ordering, EVENTS).to_dict()
    honest["timestamp"] = ts
    return honest


def _payload(attempts, ordering=SOLVED, score=None):
    return {
        "ordering": ordering,
        "attempts": attempts,
        "score": {"attempts": len(attempts) if score is None else score},
    }


def test_honest_history_is_accepted():
    submission = parse_order_submission(_payload([_attempt(FIRST_TRY), _attempt(SOLVED, 2)]))
    evaluations = validate_order_submission(submission, EVENTS)
    assert len(evaluations) == 2
    assert evaluations[-1].solved
    assert evaluations[0].feedback == ["incorrect", "incorrect", "correct", "correct", "incorrect", "incorrect"]


def test_wrong_final_ordering_is_not_solved():
    submission = parse_order_submission(_payload([_attempt(SOLVED)], ordering=FIRST_TRY))
    with pytest.raises(NotSolved):
        validate_order_submission(submission, EVENTS)


def test_single_fabricated_feedback_entry_is_caught():
    forged = _attempt(FIRST_TRY)
    forged["feedback"][0] = "correct"
    submission = parse_order_submission(_payload([forged, _attempt(SOLVED, 2)]))
    with pytest.raises(AttemptFeedbackMismatch) as err:
        validate_order_submission(submission, EVENTS)
    assert err.value.attempt == 1
    assert err.value.step == "feedback_mismatch"


def test_forged_pair_counts_are_caught():
    forged = _attempt(SOLVED, 2)
    honest = _attempt(FIRST_TRY)
    honest["pairsCorrect"] += 1
    submission = parse_order_submission(_payload([honest, forged]))
    with pytest.raises(AttemptPairsMismatch) as err:
        validate_order_submission(submission, EVENTS)
    assert err.value.attempt == 1


def test_last_attempt_must_be_solved():
    submission = parse_order_submission(_payload([_attempt(SOLVED), _attempt(FIRST_TRY, 2)]))
    with pytest.raises(FinalAttemptNotSolved):
        validate_order_submission(submission, EVENTS)


def test_partial_trailing_attempt_is_rejected():
    forged = {"ordering": ["e1"], "feedback": ["correct"], "pairsCorrect": 0, "totalPairs": 0, "timestamp": 1}
    submission = parse_order_submission(_payload([forged]))
    with pytest.raises(AttemptOrderingInvalid) as err:
        validate_order_submission(submission, EVENTS)
    assert err.value.attempt == 1
    assert err.value.step == "invalid_ordering"


def test_attempts_with_unknown_or_repeated_ids_are_rejected():
    unknown = {
        "ordering": ["x", "e2", "e3", "e4", "e5", "e6"],
        "feedback": ["incorrect", "correct", "correct", "correct", "correct", "correct"],
        "pairsCorrect": 15,
        "totalPairs": 15,
    }
    submission = parse_order_submission(_payload([unknown, _attempt(SOLVED, 2)]))
    with pytest.raises(AttemptOrderingInvalid) as err:
        validate_order_submission(submission, EVENTS)
    assert err.value.attempt == 1

    repeated = dict(unknown, ordering=["e2", "e2", "e3", "e4", "e5", "e6"])
    submission = parse_order_submission(_payload([_attempt(FIRST_TRY), repeated]))
    with pytest.raises(AttemptOrderingInvalid) as err:
        validate_order_submission(submission, EVENTS)
    assert err.value.attempt == 2


def test_empty_history_fails_closed():
    submission = parse_order_submission(_payload([]))
    with pytest.raises(FinalAttemptNotSolved):
        validate_order_submission(submission, EVENTS)


def test_score_must_match_attempt_count():
    submission = parse_order_submission(_payload([_attempt(SOLVED)], score=0))
    with pytest.raises(ScoreMismatch):
        validate_order_submission(submission, EVENTS)


def test_malformed_payloads():
    with pytest.raises(MalformedSubmission):
        parse_order_submission({"ordering": "e1,e2", "attempts": [], "score": {"attempts": 0}})
    with pytest.raises(MalformedSubmission):
        parse_order_submission({"ordering": SOLVED, "attempts": [{"ordering": SOLVED}], "score": {"attempts": 1}})
    with pytest.raises(MalformedSubmission):
        parse_order_submission({"ordering": SOLVED, "attempts": [], "score": {"attempts": "0"}})
    with pytest.raises(MalformedSubmission):
        parse_range_guess({"start": "1900", "end": 1950})


def test_range_guess_scored_from_stored_truth():
    result = validate_range_guess(RangeGuess(1960, 1979, 0), 1969)
    assert result.contained and result.score > 0
    miss = validate_range_guess(RangeGuess(1900, 1909, 0), 1969)
    assert miss.score == 0


def test_range_guess_limits():
    with pytest.raises(RangeRejected) as err:
        validate_range_guess(RangeGuess(1000, 1000 + W_MAX, 0), 1100)
    assert err.value.field == "width"

    with pytest.raises(RangeRejected) as err:
        validate_range_guess(RangeGuess(1900, 1910, 7), 1905)
    assert err.value.field == "hintsUsed"

    previous = [{"start": 1800, "end": 1810, "hintsUsed": 3, "score": 0}]
    with pytest.raises(RangeRejected) as err:
        validate_range_guess(RangeGuess(1900, 1910, 2), 1905, previous)
    assert err.value.field == "hintsUsed"

    six = previous * 6
    with pytest.raises(RangeRejected) as err:
        validate_range_guess(RangeGuess(1900, 1910, 3), 1905, six)
    assert err.value.field == "rangeCount"
