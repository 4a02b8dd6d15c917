import json

import pytest

from dailyhistory.composition import judge as judge_module
from dailyhistory.composition.judge import (
    PuzzleJudgment,
    build_judge_user_prompt,
    enforce_approval_thresholds,
    era_for_year,
    judge_puzzle_composition,
    parse_judgment,
    validate_judge_input,
)
from dailyhistory.errors import JudgeError

EVENTS = [f"Event number {i}" for i in range(1, 7)]


def _verdict(**overrides):
    data = {
        "approved": True,
        "qualityScore": 0.9,
        "ordering": {"recommended": list(reversed(EVENTS)), "rationale": "obscure first"},
        "composition": {
            "topicDiversity": 0.8,
            "geographicSpread": 0.7,
            "difficultyGradient": 0.9,
            "guessability": 0.8,
        },
        "issues": [],
        "suggestions": ["more science"],
    }
    data.update(overrides)
    return data


def test_parse_judgment_reads_the_contract():
    judgment = parse_judgment(json.dumps(_verdict()), EVENTS)
    assert judgment.approved
    assert judgment.recommended == list(reversed(EVENTS))
    assert judgment.rationale == "obscure first"
    assert judgment.suggestions == ["more science"]


def test_parse_judgment_extracts_json_from_prose():
    content = "Here you go:\n" + json.dumps(_verdict()) + "\nThanks"
    assert parse_judgment(content, EVENTS).approved


def test_recommended_order_must_be_a_permutation():
    bad = _verdict(ordering={"recommended": EVENTS[:5] + ["Invented event"], "rationale": ""})
    with pytest.raises(JudgeError):
        parse_judgment(json.dumps(bad), EVENTS)
    with pytest.raises(JudgeError):
        parse_judgment("no json here", EVENTS)


def test_thresholds_override_a_generous_model():
    judgment = parse_judgment(json.dumps(_verdict(composition={
        "topicDiversity": 0.3,
        "geographicSpread": 0.5,
        "difficultyGradient": 0.6,
        "guessability": 0.6,
    })), EVENTS)
    enforced = enforce_approval_thresholds(judgment)
    assert not enforced.approved
    assert enforced.quality_score == 0.52
    assert "Quality score 0.52 below 0.6 threshold" in enforced.issues
    assert "Low scores: topicDiversity" in enforced.issues


def test_thresholds_recompute_score_for_approvals():
    enforced = enforce_approval_thresholds(parse_judgment(json.dumps(_verdict()), EVENTS))
    assert enforced.approved
    assert enforced.quality_score == 0.81
    assert enforced.issues == []


def test_rejections_are_not_annotated():
    judgment = PuzzleJudgment(
        approved=False,
        quality_score=0.1,
        recommended=EVENTS,
        rationale="",
        composition={"topicDiversity": 0.1, "geographicSpread": 0.1, "difficultyGradient": 0.1, "guessability": 0.1},
        issues=["all war"],
    )
    assert enforce_approval_thresholds(judgment).issues == ["all war"]


def test_input_validation_and_prompt():
    assert era_for_year(-44) == "BCE"
    assert era_for_year(1969) == "CE"
    with pytest.raises(ValueError, match="at least 6"):
        validate_judge_input(1969, "CE", EVENTS[:5])
    with pytest.raises(ValueError, match="Invalid era"):
        validate_judge_input(1969, "AD", EVENTS)
    prompt = build_judge_user_prompt(44, "BCE", EVENTS)
    assert prompt.startswith("Target year: 44 BCE")
    assert "6. Event number 6" in prompt


class _Message:
    def __init__(self, content):
        self.content = content


class _Choice:
    def __init__(self, content):
        self.message = _Message(content)


class _Result:
    def __init__(self, content):
        self.choices = [_Choice(content)]


class _FakeClient:
    def __init__(self, content=None, error=None):
        self.calls = []
        self.content = content
        self.error = error
        self.chat = self
        self.completions = self

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return _Result(self.content)


def test_judge_calls_the_model_and_enforces(monkeypatch):
    client = _FakeClient(content=json.dumps(_verdict()))
    monkeypatch.setattr(judge_module, "_get_client", lambda: client)
    judgment = judge_puzzle_composition(1969, "CE", EVENTS + ["Seventh event"])
    assert judgment.approved
    assert len(client.calls) == 1
    assert "Seventh event" not in client.calls[0]["messages"][1]["content"]


def test_judge_wraps_transport_errors(monkeypatch):
    client = _FakeClient(error=TimeoutError("upstream timed out"))
    monkeypatch.setattr(judge_module, "_get_client", lambda: client)
    with pytest.raises(JudgeError, match="upstream timed out"):
        judge_puzzle_composition(1969, "CE", EVENTS)
