"""Explicitly wired service container for the scoring engine."""

from __future__ import annotations

from dataclasses import dataclass

import asyncpg
from redis.asyncio import Redis

from safetrail.infra.postgres import close_pool, create_pool
from safetrail.infra.redis import close_redis, create_redis
from safetrail.scoring.domain.caching import ScoreCache
from safetrail.scoring.domain.city import CityRollup
from safetrail.scoring.domain.moderation import ReportModerationService
from safetrail.scoring.domain.place_score import PlaceSafetyScorer
from safetrail.scoring.domain.repository import ScoringRepository
from safetrail.scoring.domain.rules import ScoringRules, load_scoring_rules
from safetrail.scoring.domain.strategies import ScoringStrategy, resolve_strategy
from safetrail.scoring.domain.trust import TrustScorer
from safetrail.scoring.domain.weighted import WeightedSafetyAggregator
from safetrail.scoring.infra.postgres_repo import PostgresScoringRepository
from safetrail.settings import Settings


@dataclass
class ScoringContainer:
    repository: ScoringRepository
    rules: ScoringRules
    cache: ScoreCache | None
    place_scorer: PlaceSafetyScorer
    weighted_scorer: WeightedSafetyAggregator
    trust_scorer: TrustScorer
    city_rollup: CityRollup
    strategy: ScoringStrategy
    moderation: ReportModerationService
    pool: asyncpg.Pool | None = None
    redis: Redis | None = None

    @classmethod
    async def connect(cls, config: Settings) -> "ScoringContainer":
        """Open the pool and Redis client described by ``config`` and wire services over them."""

        pool = await create_pool(config)
        redis = create_redis(config)
        rules = load_scoring_rules(config.scoring_rules_path)
        return build_container(
            PostgresScoringRepository(pool),
            redis=redis,
            rules=rules,
            strategy_name=config.place_scoring_strategy,
            cache_ttl=config.cache_ttl_seconds,
            pool=pool,
        )

    async def close(self) -> None:
        await close_redis(self.redis)
        await close_pool(self.pool)


def build_container(
    repository: ScoringRepository,
    *,
    redis: Redis | None = None,
    rules: ScoringRules | None = None,
    strategy_name: str = "simple",
    cache_ttl: int = 300,
    pool: asyncpg.Pool | None = None,
) -> ScoringContainer:
    rules = rules or ScoringRules.default()
    cache = ScoreCache(redis, default_ttl=cache_ttl) if redis is not None else None
    strategy = resolve_strategy(strategy_name, repository, rules=rules)
    return ScoringContainer(
        repository=repository,
        rules=rules,
        cache=cache,
        place_scorer=PlaceSafetyScorer(repository, rules=rules),
        weighted_scorer=WeightedSafetyAggregator(repository, rules=rules),
        trust_scorer=TrustScorer(repository, rules=rules),
        city_rollup=CityRollup(repository, rules=rules),
        strategy=strategy,
        moderation=ReportModerationService(repository, cache=cache, rules=rules, strategy=strategy),
        pool=pool,
        redis=redis,
    )
