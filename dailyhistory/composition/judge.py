# dailyhistory/composition/judge.py
"""
Puzzle quality judge backed by an OpenAI chat model.

The model proposes a verdict; the thresholds below have the final word. A
model that approves a weak composition gets overridden, and the override
reason is appended to the judgment's issues.
"""
from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import openai

from dailyhistory.errors import JudgeError

log = logging.getLogger(__name__)

JUDGE_MODEL = os.getenv("OPENAI_MODEL", "gpt-4.1-mini")

JUDGE_SYSTEM_PROMPT = """You are the Puzzle Judge for a daily history game, evaluating whether a set of 6 historical event clues makes a high-quality puzzle.

GAME RULES:
- Players guess a historical year based on event clues
- Hints are revealed one at a time (Hint 1 first, then 2, 3, 4, 5, 6)
- Players should be able to guess correctly by hint 4-6

PUZZLE QUALITY CRITERIA:

1. DIFFICULTY GRADIENT (Hard -> Easy)
   - Hint 1: obscure, requires deep history knowledge
   - Hints 2-5: progressively more famous
   - Hint 6: an iconic event most people know
   Score 1.0 if the gradient is perfect, 0.0 if inverted

2. TOPIC DIVERSITY
   - Mix war, politics, science, culture, sports, technology, economy, religion, arts
   - Avoid 3+ clues from the same domain
   Score 1.0 if well mixed, 0.0 if all one topic

3. GEOGRAPHIC SPREAD
   - Include events from several regions
   Score 1.0 if global, 0.0 if single region

4. GUESSABILITY
   - By hint 4-6 a history enthusiast should deduce the year
   Score 1.0 if clearly guessable, 0.0 if impossible

APPROVAL THRESHOLD:
- qualityScore >= 0.6 to approve
- All composition scores >= 0.4

OUTPUT FORMAT:
Return ONLY a JSON object with:
- approved: boolean
- qualityScore: 0-1 (weighted average of composition scores)
- ordering: {"recommended": [6 event texts ordered HARD -> EASY], "rationale": "brief"}
- composition: {"topicDiversity", "geographicSpread", "difficultyGradient", "guessability"} (0-1 each)
- issues: array of brief problems (if any)
- suggestions: array of brief improvements (if any)

BE CONCISE. Keep issues/suggestions to 1-5 words each."""

QUALITY_WEIGHTS = {
    "topicDiversity": 0.2,
    "geographicSpread": 0.2,
    "difficultyGradient": 0.3,
    "guessability": 0.3,
}
APPROVAL_THRESHOLD = 0.6
MIN_COMPONENT_SCORE = 0.4
PUZZLE_SIZE = 6
ERAS = ("BCE", "CE")

_client: Optional[openai.OpenAI] = None


@dataclass
class PuzzleJudgment:
    approved: bool
    quality_score: float
    recommended: List[str]
    rationale: str
    composition: Dict[str, float]
    issues: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "approved": self.approved,
            "qualityScore": self.quality_score,
            "ordering": {"recommended": list(self.recommended), "rationale": self.rationale},
            "composition": dict(self.composition),
            "issues": list(self.issues),
            "suggestions": list(self.suggestions),
        }


def _get_client() -> openai.OpenAI:
    global _client
    if _client is None:
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise JudgeError("OPENAI_API_KEY is not set")
        _client = openai.OpenAI(api_key=api_key)
    return _client


def normalize_text(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def era_for_year(year: int) -> str:
    return "BCE" if year < 0 else "CE"


def validate_judge_input(year: int, era: str, events: Sequence[str]) -> None:
    if len(events) < PUZZLE_SIZE:
        raise ValueError(f"Need at least {PUZZLE_SIZE} events for a puzzle, got {len(events)}")
    if era not in ERAS:
        raise ValueError(f"Invalid era: {era}")
    if year < 0:
        raise ValueError("year must be given as a positive display year alongside its era")


def build_judge_user_prompt(year: int, era: str, events: Sequence[str]) -> str:
    event_list = "\n".join(f"{i}. {text}" for i, text in enumerate(events, start=1))
    return (
        f"Target year: {abs(year)} {era}\n\n"
        "Evaluate this puzzle and reorder the events from HARDEST to EASIEST:\n\n"
        f"{event_list}\n\n"
        "IMPORTANT:\n"
        "1. Return the events in your recommended order (hard -> easy)\n"
        "2. Use the EXACT event text from the input\n"
        "3. Score each composition dimension 0-1\n"
        f"4. Approve only if qualityScore >= {APPROVAL_THRESHOLD} and all components >= {MIN_COMPONENT_SCORE}"
    )


def _extract_json_object(text: str) -> Optional[str]:
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start: end + 1]


def _score(value: Any, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise JudgeError(f"composition.{label} must be a number")
    return min(1.0, max(0.0, float(value)))


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if isinstance(item, str) and item.strip()]


def parse_judgment(content: str, events: Sequence[str]) -> PuzzleJudgment:
    """
    Parse the model's JSON verdict. The recommended ordering must be a
    permutation of ``events``; anything else raises JudgeError.
    """
    try:
        data = json.loads(content)
    except (TypeError, json.JSONDecodeError):
        extracted = _extract_json_object(content or "")
        if not extracted:
            raise JudgeError("judge returned no JSON object")
        try:
            data = json.loads(extracted)
        except json.JSONDecodeError as exc:
            raise JudgeError(f"judge returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise JudgeError("judge response must be a JSON object")

    ordering = data.get("ordering") or {}
    if not isinstance(ordering, dict):
        raise JudgeError("ordering must be an object")
    recommended = ordering.get("recommended")
    if not isinstance(recommended, list) or not all(isinstance(x, str) for x in recommended):
        raise JudgeError("ordering.recommended must be a list of event texts")
    recommended = [normalize_text(x) for x in recommended]
    expected = [normalize_text(x) for x in events]
    if sorted(recommended) != sorted(expected):
        raise JudgeError("ordering.recommended is not a permutation of the submitted events")

    composition = data.get("composition")
    if not isinstance(composition, dict):
        raise JudgeError("composition must be an object")

    quality = data.get("qualityScore", 0)
    if isinstance(quality, bool) or not isinstance(quality, (int, float)):
        quality = 0.0

    return PuzzleJudgment(
        approved=bool(data.get("approved")),
        quality_score=float(quality),
        recommended=recommended,
        rationale=str(ordering.get("rationale") or "").strip(),
        composition={key: _score(composition.get(key), key) for key in QUALITY_WEIGHTS},
        issues=_str_list(data.get("issues")),
        suggestions=_str_list(data.get("suggestions")),
    )


def enforce_approval_thresholds(judgment: PuzzleJudgment) -> PuzzleJudgment:
    """Recompute the weighted score and approve only when every threshold holds."""
    comp = judgment.composition
    computed = sum(weight * comp[key] for key, weight in QUALITY_WEIGHTS.items())

    meets_overall = computed >= APPROVAL_THRESHOLD
    low = [key for key in QUALITY_WEIGHTS if comp[key] < MIN_COMPONENT_SCORE]
    should_approve = meets_overall and not low

    issues = list(judgment.issues)
    if judgment.approved and not should_approve:
        if not meets_overall:
            issues.append(f"Quality score {computed:.2f} below {APPROVAL_THRESHOLD} threshold")
        if low:
            issues.append(f"Low scores: {', '.join(low)}")

    return PuzzleJudgment(
        approved=should_approve,
        quality_score=round(computed, 3),
        recommended=list(judgment.recommended),
        rationale=judgment.rationale,
        composition=dict(comp),
        issues=issues,
        suggestions=list(judgment.suggestions),
    )


def judge_puzzle_composition(year: int, era: str, events: Sequence[str]) -> PuzzleJudgment:
    """
    Ask the model for a verdict on ``events`` (first six are judged) and apply
    the approval thresholds. Transport failures surface as JudgeError.
    """
    validate_judge_input(year, era, events)
    events = list(events)[:PUZZLE_SIZE]

    try:
        result = _get_client().chat.completions.create(
            model=JUDGE_MODEL,
            messages=[
                {"role": "system", "content": JUDGE_SYSTEM_PROMPT},
                {"role": "user", "content": build_judge_user_prompt(year, era, events)},
            ],
            response_format={"type": "json_object"},
            max_tokens=900,
            temperature=0.3,
            timeout=30,
        )
        content = (result.choices[0].message.content or "").strip()
    except JudgeError:
        raise
    except Exception as exc:
        raise JudgeError(f"OpenAI request failed: {exc}") from exc

    judgment = enforce_approval_thresholds(parse_judgment(content, events))
    log.info(
        "[judge] %s %s approved=%s quality=%.3f",
        year, era, judgment.approved, judgment.quality_score,
    )
    return judgment
