"""Central registry for Prometheus metrics used by the scoring engine."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

SCORE_RECOMPUTES = Counter(
	"safetrail_score_recomputes_total",
	"Score recomputations by kind and outcome",
	["kind", "outcome"],
)

SCORE_FALLBACKS = Counter(
	"safetrail_score_fallbacks_total",
	"Fail-soft score computations that returned the neutral default",
	["kind"],
)

SCORE_LATENCY = Histogram(
	"safetrail_score_recompute_seconds",
	"Latency of score recomputations in seconds",
	["kind"],
	buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0),
)

CACHE_INVALIDATIONS = Counter(
	"safetrail_cache_invalidations_total",
	"Cache keys invalidated after score changes",
	["outcome"],
)

REPORT_TRANSITIONS = Counter(
	"safetrail_report_transitions_total",
	"Report moderation transitions applied",
	["status"],
)


def record_recompute(kind: str, *, fallback: bool) -> None:
	SCORE_RECOMPUTES.labels(kind=kind, outcome="fallback" if fallback else "ok").inc()
	if fallback:
		SCORE_FALLBACKS.labels(kind=kind).inc()


def record_invalidation(ok: bool, count: int = 1) -> None:
	CACHE_INVALIDATIONS.labels(outcome="ok" if ok else "error").inc(count)


__all__ = [
	"CACHE_INVALIDATIONS",
	"REPORT_TRANSITIONS",
	"SCORE_FALLBACKS",
	"SCORE_LATENCY",
	"SCORE_RECOMPUTES",
	"record_invalidation",
	"record_recompute",
]
