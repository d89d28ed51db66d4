"""
AI client tests: JSON parsing and candidate-restricted re-ranking.

litellm.acompletion is replaced with a local coroutine; no provider is called.
"""

import asyncio
import json
from types import SimpleNamespace

import pytest

from recommender.models.gym_class import GymClass
from recommender.models.member import MemberProfile
from recommender.models.results import Priority
from recommender.models.scoring import CandidateCard
from server.errors import AIMalformedResponseError, AIRateLimitError, AIUnavailableError
from server.services import ai_client as ai_module
from server.services.ai_client import AIClient, parse_json_response


def card(class_id, score):
    return CandidateCard(
        gym_class=GymClass(id=class_id, name=class_id.title(), category="YOGA"),
        similarity=0.0,
        popularity=0.0,
        recency=0.5,
        diversity=1.0,
        final_score=score,
    )


def fake_completion(content):
    async def _acompletion(**kwargs):
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    return _acompletion


CARDS = [card("a", 0.9), card("b", 0.8), card("c", 0.7)]
MEMBER = MemberProfile(id="m", membership_type="PREMIUM", ai_class_recommendations_enabled=True)


class TestParseJsonResponse:
    def test_plain(self):
        assert parse_json_response('{"a": 1}') == {"a": 1}

    def test_markdown_block(self):
        assert parse_json_response('Here you go:\n```json\n{"a": 2}\n```') == {"a": 2}

    def test_surrounding_text(self):
        assert parse_json_response('Sure! {"a": 3} hope that helps') == {"a": 3}

    def test_garbage(self):
        with pytest.raises(AIMalformedResponseError):
            parse_json_response("no json here")


class TestRerankClasses:
    def test_unknown_and_duplicate_ids_dropped(self, monkeypatch):
        content = json.dumps({"recommendations": [
            {"class_id": "c", "reason": "Calm", "priority": "high"},
            {"class_id": "zzz", "reason": "Invented"},
            {"class_id": "c", "reason": "Again"},
            {"class_id": "a", "priority": "urgent"},
        ]})
        monkeypatch.setattr(ai_module, "acompletion", fake_completion(content))
        recs = asyncio.run(AIClient(api_key="sk-test").rerank_classes(MEMBER, CARDS, 10))
        assert [r.class_id for r in recs] == ["c", "a"]
        assert recs[0].priority == Priority.HIGH
        assert recs[1].priority == Priority.MEDIUM
        assert recs[0].final_score == 0.7

    def test_limit(self, monkeypatch):
        content = json.dumps({"recommendations": [{"class_id": i} for i in ("a", "b", "c")]})
        monkeypatch.setattr(ai_module, "acompletion", fake_completion(content))
        recs = asyncio.run(AIClient(api_key="sk-test").rerank_classes(MEMBER, CARDS, 2))
        assert len(recs) == 2

    def test_no_known_ids_is_malformed(self, monkeypatch):
        monkeypatch.setattr(ai_module, "acompletion", fake_completion('{"recommendations": [{"class_id": "x"}]}'))
        with pytest.raises(AIMalformedResponseError):
            asyncio.run(AIClient(api_key="sk-test").rerank_classes(MEMBER, CARDS, 5))

    def test_empty_choices_is_malformed(self, monkeypatch):
        async def _acompletion(**kwargs):
            return SimpleNamespace(choices=[])

        monkeypatch.setattr(ai_module, "acompletion", _acompletion)
        with pytest.raises(AIMalformedResponseError):
            asyncio.run(AIClient(api_key="sk-test").rerank_classes(MEMBER, CARDS, 5))

    def test_choice_without_message_is_malformed(self, monkeypatch):
        async def _acompletion(**kwargs):
            return SimpleNamespace(choices=[SimpleNamespace()])

        monkeypatch.setattr(ai_module, "acompletion", _acompletion)
        with pytest.raises(AIMalformedResponseError):
            asyncio.run(AIClient(api_key="sk-test").rerank_classes(MEMBER, CARDS, 5))

    def test_rate_limit_error_code(self, monkeypatch):
        monkeypatch.setattr(ai_module, "acompletion", fake_completion('{"errorCode": "RATE_LIMIT_EXCEEDED"}'))
        with pytest.raises(AIRateLimitError):
            asyncio.run(AIClient(api_key="sk-test").rerank_classes(MEMBER, CARDS, 5))

    def test_missing_key(self):
        client = AIClient(api_key=None)
        assert client.is_configured is False
        with pytest.raises(AIUnavailableError):
            asyncio.run(client.rerank_classes(MEMBER, CARDS, 5))
