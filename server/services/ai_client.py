"""
AI Client using LiteLLM

Optional AI-assisted re-ranking of scored classes and schedule slots.
The model only orders and explains candidates the engine already scored; any
id it returns that is not a known candidate is dropped.

Failure modes are distinguished so the orchestrator can log them apart:
- AIRateLimitError: HTTP 429 or provider code RATE_LIMIT_EXCEEDED
- AIUnavailableError: timeout, missing credentials, any other provider error
- AIMalformedResponseError: no parseable JSON or no usable entries
"""

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import litellm
import openai
from litellm import acompletion

from recommender.models.member import MemberProfile
from recommender.models.results import AIRecommendation, Priority, SchedulePatterns, ScheduleSuggestion
from recommender.models.schedule import ScheduleOccurrence
from recommender.models.scoring import CandidateCard
from recommender.stages.schedule_suggestions import to_suggestion

from ..errors import AIMalformedResponseError, AIRateLimitError, AIUnavailableError

logger = logging.getLogger(__name__)

# Suppress LiteLLM's verbose logging
litellm.suppress_debug_info = True

# Drop unsupported params for models with restrictions
litellm.drop_params = True

RATE_LIMIT_CODE = "RATE_LIMIT_EXCEEDED"


def parse_json_response(content: str) -> Dict[str, Any]:
    """
    Parse JSON from LLM response, handling various formats.

    LLMs may return JSON in different formats:
    - Direct JSON object
    - JSON wrapped in markdown code blocks
    - JSON with surrounding text

    Raises:
        AIMalformedResponseError: If no valid JSON found
    """
    content = (content or "").strip()

    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass

    match = re.search(r'```(?:json)?\s*(\{[\s\S]*?\})\s*```', content)
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            pass

    match = re.search(r'\{[\s\S]*\}', content)
    if match:
        try:
            return json.loads(match.group())
        except json.JSONDecodeError:
            pass

    raise AIMalformedResponseError(f"Could not parse JSON from response: {content[:200]}...")


def _priority(value: Any) -> Priority:
    try:
        return Priority(str(value).upper())
    except ValueError:
        return Priority.MEDIUM


class AIClient:
    """Thin async client over litellm.acompletion with JSON-only responses."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        temperature: float = 0.3,
    ):
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.temperature = temperature

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def complete_json(self, prompt: str) -> Dict[str, Any]:
        """Call the model and return its parsed JSON object."""
        if not self.api_key:
            raise AIUnavailableError("No API key configured for AI recommendations")
        try:
            response = await asyncio.wait_for(
                acompletion(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=self.temperature,
                    response_format={"type": "json_object"},
                    api_key=self.api_key,
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise AIUnavailableError(f"AI request timed out after {self.timeout}s") from e
        except openai.RateLimitError as e:
            # litellm exceptions subclass the openai ones
            raise AIRateLimitError(f"AI provider rate limit: {e}") from e
        except openai.OpenAIError as e:
            if getattr(e, "status_code", None) == 429:
                raise AIRateLimitError(f"AI provider rate limit: {e}") from e
            raise AIUnavailableError(f"AI provider error: {e}") from e

        try:
            content = response.choices[0].message.content
        except (IndexError, AttributeError, TypeError) as e:
            raise AIMalformedResponseError(f"AI response has no message content: {e}") from e
        result = parse_json_response(content)
        if not isinstance(result, dict):
            raise AIMalformedResponseError("AI response is not a JSON object")
        if result.get("errorCode") == RATE_LIMIT_CODE:
            raise AIRateLimitError("AI provider reported RATE_LIMIT_EXCEEDED")
        return result

    async def rerank_classes(
        self,
        member: MemberProfile,
        cards: Sequence[CandidateCard],
        limit: int,
    ) -> List[AIRecommendation]:
        """Ask the model to order and explain already scored class candidates."""
        by_id = {c.gym_class.id: c for c in cards}
        prompt = _class_prompt(member, cards, limit)
        result = await self.complete_json(prompt)
        entries = result.get("recommendations")
        if not isinstance(entries, list):
            raise AIMalformedResponseError("AI response missing 'recommendations' list")

        recs: List[AIRecommendation] = []
        seen = set()
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            class_id = str(entry.get("class_id") or "")
            card = by_id.get(class_id)
            if card is None or class_id in seen:
                continue
            seen.add(class_id)
            recs.append(
                AIRecommendation(
                    class_id=class_id,
                    name=card.gym_class.name,
                    category=card.gym_class.category,
                    reason=str(entry.get("reason") or ""),
                    priority=_priority(entry.get("priority")),
                    final_score=round(card.final_score, 4),
                )
            )
            if len(recs) >= limit:
                break
        if not recs:
            raise AIMalformedResponseError("AI response referenced no known classes")
        return recs

    async def suggest_schedules(
        self,
        member: MemberProfile,
        patterns: SchedulePatterns,
        ranked: Sequence[Tuple[ScheduleOccurrence, int]],
        limit: int,
    ) -> List[ScheduleSuggestion]:
        """Ask the model to pick and explain schedule slots among scored occurrences."""
        by_id = {s.id: (s, score) for s, score in ranked}
        prompt = _schedule_prompt(member, patterns, ranked)
        result = await self.complete_json(prompt)
        entries = result.get("suggestions")
        if not isinstance(entries, list):
            raise AIMalformedResponseError("AI response missing 'suggestions' list")

        suggestions: List[ScheduleSuggestion] = []
        seen = set()
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            schedule_id = str(entry.get("schedule_id") or "")
            if schedule_id not in by_id or schedule_id in seen:
                continue
            seen.add(schedule_id)
            schedule, score = by_id[schedule_id]
            suggestions.append(
                to_suggestion(
                    schedule,
                    score,
                    str(entry.get("reason") or "Recommended for you."),
                    _priority(entry.get("priority")),
                )
            )
            if len(suggestions) >= limit:
                break
        if not suggestions:
            raise AIMalformedResponseError("AI response referenced no known schedules")
        return suggestions


def _member_block(member: MemberProfile) -> Dict[str, Any]:
    return {
        "id": member.id,
        "full_name": member.full_name or "Unknown",
        "fitness_goals": member.fitness_goals,
        "medical_conditions": member.medical_conditions,
        "membership_type": member.membership_type.value,
    }


def _class_prompt(member: MemberProfile, cards: Sequence[CandidateCard], limit: int) -> str:
    candidates = [
        {**c.gym_class.summary(), "score": round(c.final_score, 4)}
        for c in cards
    ]
    payload = {"member": _member_block(member), "candidates": candidates}
    return (
        "You recommend gym classes. Choose up to "
        f"{limit} classes from the candidates for this member, best first. "
        "Respect medical conditions. Only use class ids from the candidates.\n"
        'Respond with JSON: {"recommendations": [{"class_id": str, "reason": str, '
        '"priority": "HIGH"|"MEDIUM"|"LOW"}]}\n\n'
        f"{json.dumps(payload, default=str)}"
    )


def _schedule_prompt(
    member: MemberProfile,
    patterns: SchedulePatterns,
    ranked: Sequence[Tuple[ScheduleOccurrence, int]],
) -> str:
    schedules = [{**s.summary(), "score": score} for s, score in list(ranked)[:20]]
    payload = {
        "member": _member_block(member),
        "patterns": patterns.summary(),
        "available_schedules": schedules,
    }
    return (
        "You suggest gym class time slots. Pick the best slots for this member "
        "from available_schedules, using their attendance patterns. Only use schedule "
        "ids from the list.\n"
        'Respond with JSON: {"suggestions": [{"schedule_id": str, "reason": str, '
        '"priority": "HIGH"|"MEDIUM"}]}\n\n'
        f"{json.dumps(payload, default=str)}"
    )
