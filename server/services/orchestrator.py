"""
Suggestion Orchestrator

Runs a recommendation request end to end:
    CACHE_CHECK -> (hit) return
                -> (miss) RETRIEVE -> FILTER -> SCORE_METRICS -> RANK -> CACHE_STORE -> return

Class recommendations try the named strategies in STRATEGY_ORDER; each returns
a result or a skip reason and the first result wins. Every external call runs
under its own timeout and degrades instead of failing the request. Only input
errors, a missing member and an unreadable data store reach the caller.

Also serves schedule-slot suggestions and semantic class search.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from pydantic import ValidationError

from recommender.embedding import EMBEDDING_DIMENSIONS
from recommender.models.config import DEFAULT_CONFIG, RecommendationConfig
from recommender.models.gym_class import ClassCategory, GymClass
from recommender.models.history import AttendanceRecord, BookingRecord
from recommender.models.member import EmbeddingDimensionError, MemberProfile
from recommender.models.results import (
    AIBasedResult,
    CachedRecommendation,
    RecommendationResult,
    RuleBasedResult,
    VectorBasedResult,
)
from recommender.models.scoring import CandidateCard
from recommender.stages.cold_start import getting_started_set
from recommender.stages.patterns import analyze_patterns, rank_schedules
from recommender.stages.pipeline import affinity_bonus, rank_recommendations, rule_based_candidates
from recommender.stages.schedule_suggestions import rule_based_suggestions, select_available_schedules

from ..errors import (
    AIMalformedResponseError,
    AIRateLimitError,
    AIUnavailableError,
    DataStoreUnavailableError,
    EmbeddingUnavailableError,
    InputError,
    MemberNotFoundError,
)
from .ai_client import AIClient
from .cache import CacheLayer
from .embedding_client import EmbeddingClient
from .gym_store import GymStore
from .metrics import MetricsCollector
from .vector_index import VectorIndex

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Degradation order for class recommendations; the first strategy with a result wins
STRATEGY_ORDER = ("ai_based", "vector_embedding", "rule_based", "cold_start")

SEMANTIC_SEARCH_LIMIT = 10
MAX_DATE_RANGE_DAYS = 90


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StrategyOutcome:
    """A strategy either produced a result or explains why it was skipped."""

    name: str
    result: Optional[RecommendationResult] = None
    skip_reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None


def _skip(name: str, reason: str) -> StrategyOutcome:
    return StrategyOutcome(name=name, skip_reason=reason)


@dataclass
class RecommendationRequest:
    """Per-request working state shared by the strategies (never cached)."""

    member: MemberProfile
    use_ai: bool
    use_vector: bool
    now: datetime
    attendance: List[AttendanceRecord] = field(default_factory=list)
    bookings: List[BookingRecord] = field(default_factory=list)
    recent_categories: List[ClassCategory] = field(default_factory=list)

    # Filled lazily so the AI strategy can reuse vector / rule scoring
    embedding: Optional[List[float]] = None
    vector_attempted: bool = False
    vector_cards: Optional[List[CandidateCard]] = None
    vector_skip_reason: Optional[str] = None
    candidates_retrieved: int = 0
    candidates_filtered: int = 0
    active_classes: Optional[List[GymClass]] = None
    rule_cards: Optional[List[CandidateCard]] = None

    @property
    def has_history(self) -> bool:
        return bool(self.attendance or self.bookings)

    @property
    def is_cold_start(self) -> bool:
        """No history and no profile vector to rank with."""
        return not self.has_history and not self.member.has_embedding and self.embedding is None


class SuggestionOrchestrator:
    """Wires stores, clients and the pure ranking stages into request flows."""

    def __init__(
        self,
        store: GymStore,
        vector_index: VectorIndex,
        metrics: MetricsCollector,
        cache: CacheLayer,
        embedding_client: EmbeddingClient,
        ai_client: AIClient,
        config: RecommendationConfig = DEFAULT_CONFIG,
        db_timeout: float = 5.0,
        recommendation_ttl: int = 3600,
        tz=None,
        embedding_dimensions: int = EMBEDDING_DIMENSIONS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.vector_index = vector_index
        self.metrics = metrics
        self.cache = cache
        self.embedding_client = embedding_client
        self.ai_client = ai_client
        self.config = config
        self.db_timeout = db_timeout
        self.recommendation_ttl = recommendation_ttl
        self.tz = tz
        self.embedding_dimensions = embedding_dimensions
        self.clock = clock

        # Scored lists are kept long enough to feed the AI re-ranker
        self._scoring_config = config.model_copy(
            update={"recommendation_limit": max(config.recommendation_limit, config.ai_candidate_limit)}
        )
        self._strategies: Dict[str, Callable[[RecommendationRequest], Awaitable[StrategyOutcome]]] = {
            "ai_based": self._ai_based,
            "vector_embedding": self._vector_embedding,
            "rule_based": self._rule_based,
            "cold_start": self._cold_start,
        }

    # ------------------------------------------------------------------
    # Bounded data-store calls
    # ------------------------------------------------------------------

    async def _db(self, call: Awaitable[T], stage: str, entity_id: str, default: T) -> T:
        """Store call under the DB timeout; failures are logged and give `default`."""
        try:
            return await asyncio.wait_for(call, timeout=self.db_timeout)
        except asyncio.TimeoutError:
            logger.warning("[orchestrator] DB_TIMEOUT stage=%s entity_id=%s", stage, entity_id)
        except Exception as e:
            logger.warning("[orchestrator] DB_FAILED stage=%s entity_id=%s error=%s", stage, entity_id, e)
        return default

    async def _db_required(self, call: Awaitable[T], stage: str, entity_id: str) -> T:
        """Store call that cannot degrade; failure means the data store is unavailable."""
        try:
            return await asyncio.wait_for(call, timeout=self.db_timeout)
        except asyncio.TimeoutError as e:
            logger.error("[orchestrator] DB_TIMEOUT stage=%s entity_id=%s fatal=true", stage, entity_id)
            raise DataStoreUnavailableError(
                f"Data store timed out during {stage}", entity_id=entity_id
            ) from e
        except Exception as e:
            logger.error("[orchestrator] DB_FAILED stage=%s entity_id=%s error=%s fatal=true", stage, entity_id, e)
            raise DataStoreUnavailableError(
                f"Data store unavailable during {stage}", entity_id=entity_id
            ) from e

    async def _load_member(self, member_id: str) -> MemberProfile:
        member = await self._db_required(self.store.get_member(member_id), "get_member", member_id)
        if member is None:
            raise MemberNotFoundError(f"Member not found: {member_id}", entity_id=member_id)
        return member

    # ------------------------------------------------------------------
    # Class recommendations
    # ------------------------------------------------------------------

    async def recommend_classes(
        self,
        member_id: str,
        use_ai: bool = False,
        use_vector: bool = True,
        skip_cache: bool = False,
    ) -> Dict[str, Any]:
        """
        Ranked class recommendations for one member.

        Returns {recommendations, method, cached, cold_start, generated_at}.
        """
        if not member_id or not member_id.strip():
            raise InputError("member_id is required")
        member_id = member_id.strip()
        key = CacheLayer.recommendation_key(member_id, {"useAI": use_ai, "useVector": use_vector})

        if not skip_cache:
            cached = await self.cache.get(key)
            if cached is not None:
                try:
                    entry = CachedRecommendation.model_validate(cached)
                except ValidationError as e:
                    logger.warning("[orchestrator] CACHE_ENTRY_INVALID key=%s error=%s", key, e)
                else:
                    logger.info("[orchestrator] CACHE_HIT member_id=%s method=%s", member_id, entry.result.method)
                    return _recommendation_response(entry, cached=True)

        member = await self._load_member(member_id)
        now = self.clock()
        attendance, bookings, recent = await asyncio.gather(
            self._db(
                self.store.attendance_history(member_id, limit=self.config.history_limit),
                "attendance_history", member_id, [],
            ),
            self._db(
                self.store.booking_history(member_id, limit=self.config.history_limit),
                "booking_history", member_id, [],
            ),
            self.cache.recent_categories(member_id),
        )
        req = RecommendationRequest(
            member=member,
            use_ai=use_ai,
            use_vector=use_vector,
            now=now,
            attendance=attendance,
            bookings=bookings,
            recent_categories=[ClassCategory(c) for c in recent if c in ClassCategory.__members__],
        )

        outcome = await self.run_strategies(req)
        entry = CachedRecommendation(result=outcome.result, generated_at=now)
        await self.cache.set(key, entry.model_dump(mode="json"), self.recommendation_ttl)
        await self.cache.remember_categories(
            member_id,
            [r.category.value for r in outcome.result.recommendations],
            self.config.diversity_window,
        )
        return _recommendation_response(entry, cached=False)

    async def run_strategies(self, req: RecommendationRequest) -> StrategyOutcome:
        """Try each strategy in STRATEGY_ORDER; return the first that produced a result."""
        for name in STRATEGY_ORDER:
            outcome = await self._strategies[name](req)
            if outcome.succeeded:
                logger.info(
                    "[orchestrator] STRATEGY_SELECTED member_id=%s strategy=%s count=%d",
                    req.member.id, name, len(outcome.result.recommendations),
                )
                return outcome
            logger.info(
                "[orchestrator] STRATEGY_SKIPPED member_id=%s strategy=%s reason=%s",
                req.member.id, name, outcome.skip_reason,
            )
        raise RuntimeError("cold_start strategy produced no result")

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    async def _ai_based(self, req: RecommendationRequest) -> StrategyOutcome:
        name = "ai_based"
        if not req.use_ai:
            return _skip(name, "not requested")
        if not req.member.ai_allowed:
            return _skip(name, "membership tier or opt-in does not permit AI")
        if not self.ai_client.is_configured:
            return _skip(name, "AI provider not configured")

        cards = await self._vector_cards(req) if req.use_vector else None
        if not cards:
            if req.is_cold_start:
                return _skip(name, "no history and no embedding")
            cards = await self._rule_cards(req)
        if not cards:
            return _skip(name, "no scored candidates")

        try:
            recs = await self.ai_client.rerank_classes(
                req.member, cards[: self.config.ai_candidate_limit], self.config.recommendation_limit
            )
        except AIRateLimitError as e:
            logger.warning("[ai_path] RATE_LIMITED member_id=%s error=%s", req.member.id, e)
            return _skip(name, "rate limited")
        except AIMalformedResponseError as e:
            logger.warning("[ai_path] MALFORMED_RESPONSE member_id=%s error=%s", req.member.id, e)
            return _skip(name, "malformed response")
        except AIUnavailableError as e:
            logger.warning("[ai_path] FAILED member_id=%s error=%s", req.member.id, e)
            return _skip(name, "provider unavailable")
        return StrategyOutcome(name, AIBasedResult(recommendations=recs, model=self.ai_client.model))

    async def _vector_embedding(self, req: RecommendationRequest) -> StrategyOutcome:
        name = "vector_embedding"
        if not req.use_vector:
            return _skip(name, "not requested")
        cards = await self._vector_cards(req)
        if cards is None:
            return _skip(name, req.vector_skip_reason or "unavailable")
        if not cards:
            return _skip(name, "no safe candidates after filtering")
        return StrategyOutcome(
            name,
            VectorBasedResult(
                recommendations=[c.to_recommended() for c in cards[: self.config.recommendation_limit]],
                candidates_retrieved=req.candidates_retrieved,
                candidates_filtered=req.candidates_filtered,
            ),
        )

    async def _rule_based(self, req: RecommendationRequest) -> StrategyOutcome:
        name = "rule_based"
        if req.is_cold_start:
            return _skip(name, "no history and no embedding")
        cards = await self._rule_cards(req)
        if not cards:
            return _skip(name, "no active classes to score")
        return StrategyOutcome(
            name,
            RuleBasedResult(recommendations=[c.to_recommended() for c in cards[: self.config.recommendation_limit]]),
        )

    async def _cold_start(self, req: RecommendationRequest) -> StrategyOutcome:
        classes = await self._active_classes(req)
        recs = getting_started_set(classes, req.member, self.config)
        return StrategyOutcome("cold_start", RuleBasedResult(recommendations=recs, cold_start=True))

    # ------------------------------------------------------------------
    # Candidate sources
    # ------------------------------------------------------------------

    async def _member_embedding(self, req: RecommendationRequest) -> Optional[List[float]]:
        """Stored profile vector; a missing or wrong-length one disables the vector path."""
        member = req.member
        try:
            return member.checked_embedding(self.embedding_dimensions)
        except EmbeddingDimensionError as e:
            logger.warning("[vector_path] EMBEDDING_DIMENSION_MISMATCH member_id=%s error=%s", member.id, e)
            return None

    async def _vector_cards(self, req: RecommendationRequest) -> Optional[List[CandidateCard]]:
        """
        Nearest classes to the member's vector, filtered and scored.

        None means the vector path is unavailable (reason on req); [] means every
        retrieved candidate was filtered out.
        """
        if req.vector_attempted:
            return req.vector_cards
        req.vector_attempted = True
        member = req.member

        req.embedding = await self._member_embedding(req)
        if req.embedding is None:
            req.vector_skip_reason = "no usable member embedding"
            return None

        hits = await self._db(
            self.vector_index.search(req.embedding, self.config.vector_top_k),
            "vector_search", member.id, [],
        )
        if not hits:
            logger.info("[vector_path] RETRIEVAL_EMPTY member_id=%s index=%s", member.id, self.vector_index.name)
            req.vector_skip_reason = "vector retrieval returned no candidates"
            return None

        classes = await self._db(
            self.store.get_classes([class_id for class_id, _ in hits]), "get_classes", member.id, []
        )
        by_id = {c.id: c for c in classes}
        candidates = [(by_id[class_id], sim) for class_id, sim in hits if class_id in by_id]
        if not candidates:
            req.vector_skip_reason = "retrieved classes could not be loaded"
            return None

        metrics = await self.metrics.collect([c.id for c, _ in candidates], req.now)
        cards, filtered = rank_recommendations(
            candidates,
            member,
            metrics,
            req.recent_categories,
            self._scoring_config,
            now=req.now,
        )
        req.candidates_retrieved = len(hits)
        req.candidates_filtered = filtered
        req.vector_cards = cards
        return cards

    async def _active_classes(self, req: RecommendationRequest) -> List[GymClass]:
        if req.active_classes is None:
            req.active_classes = await self._db_required(
                self.store.list_active_classes(), "list_active_classes", req.member.id
            )
        return req.active_classes

    async def _rule_cards(self, req: RecommendationRequest) -> List[CandidateCard]:
        """Every active class at neutral similarity, boosted toward goal / attended categories."""
        if req.rule_cards is not None:
            return req.rule_cards
        classes = await self._active_classes(req)
        if not classes:
            req.rule_cards = []
            return req.rule_cards
        attended = [
            a.schedule.category.value
            for a in req.attendance
            if a.schedule is not None and a.schedule.category is not None
        ]
        bonus = affinity_bonus(classes, req.member, attended, self.config)
        metrics = await self.metrics.collect([c.id for c in classes], req.now)
        req.rule_cards, _ = rank_recommendations(
            rule_based_candidates(classes),
            req.member,
            metrics,
            req.recent_categories,
            self._scoring_config,
            now=req.now,
            bonus_by_id=bonus,
        )
        return req.rule_cards

    # ------------------------------------------------------------------
    # Schedule suggestions
    # ------------------------------------------------------------------

    async def schedule_suggestions(
        self,
        member_id: str,
        class_id: Optional[str] = None,
        category: Optional[str] = None,
        trainer_id: Optional[str] = None,
        date_range: int = 30,
        use_ai: bool = False,
    ) -> Dict[str, Any]:
        """
        Bookable occurrences ranked against the member's attendance patterns.

        Returns {suggestions, patterns, method, available_count, generated_at}.
        """
        if not member_id or not member_id.strip():
            raise InputError("member_id is required")
        if date_range < 1 or date_range > MAX_DATE_RANGE_DAYS:
            raise InputError(f"dateRange must be between 1 and {MAX_DATE_RANGE_DAYS} days")
        if category:
            category = category.strip().upper()
            if category not in ClassCategory.__members__:
                raise InputError(f"Unknown category: {category}")
        member_id = member_id.strip()

        member = await self._load_member(member_id)
        now = self.clock()
        attendance, bookings, upcoming = await asyncio.gather(
            self._db(
                self.store.attendance_history(member_id, limit=self.config.history_limit),
                "attendance_history", member_id, [],
            ),
            self._db(
                self.store.booking_history(member_id, limit=self.config.history_limit),
                "booking_history", member_id, [],
            ),
            self._db(self.store.upcoming_bookings(member_id, now), "upcoming_bookings", member_id, []),
        )
        patterns = analyze_patterns(
            attendance, bookings, upcoming, tz=self.tz, history_limit=self.config.history_limit
        )

        booked_ids = {b.schedule_id for b in upcoming}
        schedules = await self._db_required(
            self.store.list_schedules(
                now,
                now + timedelta(days=date_range),
                class_id=class_id,
                category=category,
                trainer_id=trainer_id,
                exclude_ids=booked_ids,
                limit=self.config.available_schedule_limit,
            ),
            "list_schedules",
            member_id,
        )
        available = select_available_schedules(
            schedules, now, date_range, booked_ids, class_id, category, trainer_id, self.config
        )
        ranked = rank_schedules(available, patterns, self.tz)

        method = "rule_based"
        suggestions = None
        limit = self.config.schedule_suggestion_limit
        if use_ai and member.ai_allowed and self.ai_client.is_configured and ranked:
            try:
                suggestions = await self.ai_client.suggest_schedules(member, patterns, ranked, limit)
                method = "ai_based"
            except AIRateLimitError as e:
                logger.warning("[ai_path] SCHEDULE_RATE_LIMITED member_id=%s error=%s", member_id, e)
            except AIMalformedResponseError as e:
                logger.warning("[ai_path] SCHEDULE_MALFORMED_RESPONSE member_id=%s error=%s", member_id, e)
            except AIUnavailableError as e:
                logger.warning("[ai_path] SCHEDULE_FAILED member_id=%s error=%s", member_id, e)
        if suggestions is None:
            suggestions = rule_based_suggestions(ranked, patterns, self.tz, limit)

        logger.info(
            "[schedules] SUGGESTED member_id=%s method=%s available=%d returned=%d",
            member_id, method, len(available), len(suggestions),
        )
        return {
            "suggestions": [s.model_dump(mode="json") for s in suggestions],
            "patterns": patterns.summary(),
            "method": method,
            "available_count": len(available),
            "generated_at": now.isoformat(),
        }

    # ------------------------------------------------------------------
    # Semantic search
    # ------------------------------------------------------------------

    async def semantic_search(self, query: str, limit: int = SEMANTIC_SEARCH_LIMIT) -> Dict[str, Any]:
        """Embed free text and return the most similar active classes."""
        if not query or not query.strip():
            raise InputError("query is required")
        query = query.strip()
        try:
            vector = await self.embedding_client.generate_embedding(query)
        except EmbeddingUnavailableError as e:
            logger.error("[search] EMBEDDING_FAILED query=%r error=%s", query[:80], e)
            raise

        hits = await self._db(self.vector_index.search(vector, limit), "vector_search", "semantic_search", [])
        similarity = dict(hits)
        classes = await self._db_required(
            self.store.get_classes([class_id for class_id, _ in hits]), "get_classes", "semantic_search"
        )
        results = [
            {**c.summary(), "similarity": round(similarity[c.id], 4)}
            for c in classes
            if c.is_active is not False
        ]
        logger.info("[search] SEMANTIC query=%r hits=%d returned=%d", query[:80], len(hits), len(results))
        return {"query": query, "results": results, "count": len(results)}


def _recommendation_response(entry: CachedRecommendation, cached: bool) -> Dict[str, Any]:
    result = entry.result
    return {
        "recommendations": [r.model_dump(mode="json") for r in result.recommendations],
        "method": result.method,
        "cached": cached,
        "cold_start": isinstance(result, RuleBasedResult) and result.cold_start,
        "generated_at": entry.generated_at.isoformat(),
    }
