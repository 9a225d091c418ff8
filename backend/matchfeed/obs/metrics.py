"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


REQUEST_COUNTER = Counter(
	"matchfeed_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"matchfeed_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SEARCH_REQUESTS = Counter(
	"matchfeed_search_requests_total",
	"Discovery search requests by outcome",
	["outcome"],
)

SEARCH_LATENCY = Histogram(
	"matchfeed_search_duration_seconds",
	"Discovery search latency in seconds",
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0),
)

SEARCH_POOL_SIZE = Histogram(
	"matchfeed_search_pool_size",
	"Candidates returned by the index-narrowing stage",
	buckets=(0, 10, 50, 100, 250, 500),
)

BLOCK_LOOKUP_FAILURES = Counter(
	"matchfeed_block_lookup_failures_total",
	"Block registry reads that failed and forced a fail-closed result",
	["path"],
)

REPUTATION_FALLBACKS = Counter(
	"matchfeed_reputation_fallbacks_total",
	"Private partition reads that fell back to the lowest tier",
)

FEED_FANOUT_EVENTS = Counter(
	"matchfeed_feed_fanout_events_total",
	"Post fanout passes by visibility",
	["visibility"],
)

FEED_ITEMS_WRITTEN = Counter(
	"matchfeed_feed_items_written_total",
	"Feed items upserted by reason",
	["reason"],
)

FEED_FANOUT_TRUNCATED = Counter(
	"matchfeed_feed_fanout_truncated_total",
	"Public fanouts that stopped scanning at the recipient cap",
)

FEED_FANOUT_FAILURES = Counter(
	"matchfeed_feed_fanout_failures_total",
	"Fanout passes that raised",
)

BACKFILL_RUNS = Counter(
	"matchfeed_backfill_runs_total",
	"Backfill passes by trigger and outcome",
	["trigger", "outcome"],
)

FEED_EVENTS_PUBLISH_FAILURES = Counter(
	"matchfeed_feed_events_publish_failures_total",
	"Feed events that could not be appended to the stream",
	["event"],
)

BLOCK_ACTIONS = Counter(
	"matchfeed_block_actions_total",
	"Block and unblock actions",
	["action"],
)

POST_ACTIONS = Counter(
	"matchfeed_post_actions_total",
	"Post lifecycle and engagement actions",
	["action"],
)


def observe_request(route: str, method: str, status: int, latency_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(latency_seconds)


def inc_search(outcome: str) -> None:
	SEARCH_REQUESTS.labels(outcome=outcome).inc()


def inc_items_written(reason: str, count: int) -> None:
	if count > 0:
		FEED_ITEMS_WRITTEN.labels(reason=reason).inc(count)


def inc_backfill(trigger: str, outcome: str) -> None:
	BACKFILL_RUNS.labels(trigger=trigger, outcome=outcome).inc()


def inc_block(action: str) -> None:
	BLOCK_ACTIONS.labels(action=action).inc()


def inc_post_action(action: str) -> None:
	POST_ACTIONS.labels(action=action).inc()
