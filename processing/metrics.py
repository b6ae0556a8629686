"""
Prometheus metrics for the alerter.
"""

from prometheus_client import Counter, Gauge, Histogram

POLLS_TOTAL = Counter(
    'alerter_polls_total',
    'Feed poll attempts',
    ['feed', 'status']
)

POLL_LATENCY = Histogram(
    'alerter_poll_latency_seconds',
    'Feed fetch duration',
    ['feed'],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

FEED_RECORDS_REJECTED = Counter(
    'alerter_feed_records_rejected_total',
    'Feed records that failed validation',
    ['feed']
)

ALERTS_FIRED = Counter(
    'alerter_alerts_fired_total',
    'Alerts decided by the rule evaluator',
    ['kind']
)

ENRICHMENT_LOOKUPS = Counter(
    'alerter_enrichment_lookups_total',
    'Enrichment cache lookups by outcome',
    ['result']  # hit, miss, shared, error
)

DISPATCH_TOTAL = Counter(
    'alerter_dispatch_total',
    'Notification deliveries',
    ['kind', 'status']
)

STATE_REAPED = Counter(
    'alerter_state_reaped_total',
    'Alert states removed by the reaper'
)

TRACKED_AIRCRAFT = Gauge(
    'alerter_tracked_aircraft',
    'Identifiers currently holding alert state'
)

WATCHLIST_SIZE = Gauge(
    'alerter_watchlist_size',
    'Entries in the active watchlist'
)

WATCHLIST_REFRESHES = Counter(
    'alerter_watchlist_refresh_total',
    'Watchlist refresh attempts',
    ['status']
)
