#!/usr/bin/env python3
"""
Entry point for the SkyWatch ADS-B alerter.
"""

import logging
import signal
import sys
import threading
from datetime import timedelta
from typing import Dict, List

import psycopg
import requests
from prometheus_client import start_http_server

from ingestion.adsbdb_client import AdsbDbClient
from ingestion.feed_client import AdsbFeedClient, point_feed_url
from ingestion.watchlist_source import WatchlistRefresher, WatchlistSource
from processing.config import Settings, load_settings
from processing.db_writer import PostgresDetailStore
from processing.dispatcher import AlertSink, DiscordWebhookSink, LogSink, NotificationDispatcher
from processing.enrichment import DetailStore, EnrichmentCache, NullDetailStore
from processing.errors import ConfigError
from processing.geofence import Geofence
from processing.kafka_publisher import KafkaAlertSink
from processing.models import TriggerKind
from processing.pipeline import AlertPipeline, FeedPoller
from processing.reaper import StateReaper
from processing.rule_evaluator import RuleEvaluator
from processing.state_store import AlertStateStore
from processing.watchlist import WatchlistSet

logger = logging.getLogger(__name__)


def build_dispatcher(settings: Settings, session: requests.Session) -> NotificationDispatcher:
    """Routing table for the configured alert sink."""
    if settings.alert_sink == "log":
        return NotificationDispatcher(default=LogSink())

    if settings.alert_sink == "kafka":
        return NotificationDispatcher(
            default=KafkaAlertSink.from_broker(settings.redpanda_broker, settings.kafka_topic_alerts)
        )

    # One sink per distinct webhook URL
    sinks: Dict[str, AlertSink] = {}
    routes = {}
    for kind in TriggerKind:
        url = settings.webhook_for(kind)
        if url is None:
            continue
        if url not in sinks:
            sinks[url] = DiscordWebhookSink(
                url,
                session=session,
                timeout=settings.http_timeout_seconds,
                proximity_radius_nm=settings.proximity_radius_nm,
            )
        routes[kind] = sinks[url]
    return NotificationDispatcher(routes=routes)


def build_detail_store(settings: Settings) -> DetailStore:
    if not settings.database_url:
        logger.info("DATABASE_URL not set, aircraft details will not be cached")
        return NullDetailStore()

    store = PostgresDetailStore(settings.database_url)
    store.ensure_schema()
    return store


def build_pollers(settings: Settings, pipeline: AlertPipeline, session: requests.Session) -> List[FeedPoller]:
    primary = AdsbFeedClient(
        point_feed_url(settings.home_lat, settings.home_lon, settings.feed_radius_nm),
        name="primary",
        timeout=settings.http_timeout_seconds,
        session=session,
    )
    pollers = [FeedPoller("primary", primary, pipeline, settings.poll_interval_seconds)]

    if settings.secondary_feed_url:
        secondary = AdsbFeedClient(
            settings.secondary_feed_url,
            name="secondary",
            timeout=settings.http_timeout_seconds,
            session=session,
        )
        pollers.append(FeedPoller("secondary", secondary, pipeline, settings.secondary_poll_interval_seconds))

    return pollers


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    logger.info("=" * 50)
    logger.info("SkyWatch ADS-B Alerter - Starting")
    logger.info("=" * 50)

    try:
        settings = load_settings()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logging.getLogger().setLevel(settings.log_level)

    try:
        start_http_server(settings.metrics_port)
        logger.info(f"Prometheus metrics server started on port {settings.metrics_port}")
    except OSError as e:
        logger.error(f"Failed to start metrics server: {e}")

    session = requests.Session()
    try:
        detail_store = build_detail_store(settings)
    except psycopg.Error as e:
        logger.error(f"Database unavailable: {e}")
        return 1
    dispatcher = build_dispatcher(settings, session)

    geofence = Geofence(
        settings.home_lat,
        settings.home_lon,
        settings.proximity_radius_nm,
        settings.proximity_altitude_ft,
    )
    logger.info(f"Proximity zone: {geofence}")

    adsbdb = AdsbDbClient(settings.adsbdb_api_url, timeout=settings.http_timeout_seconds, session=session)
    enrichment = EnrichmentCache(adsbdb.fetch, detail_store)
    store = AlertStateStore()
    watchlist = WatchlistSet()

    pipeline = AlertPipeline(
        evaluator=RuleEvaluator(geofence, enrichment),
        watchlist=watchlist,
        store=store,
        dispatcher=dispatcher,
        reaper=StateReaper(store, timedelta(seconds=settings.state_ttl_seconds)),
    )

    refresher = WatchlistRefresher(
        WatchlistSource(settings.watchlist_url, session=requests.Session()),
        watchlist,
        settings.watchlist_interval_seconds,
    )
    pollers = build_pollers(settings, pipeline, session)

    shutdown = threading.Event()

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        shutdown.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    refresher.start()
    for poller in pollers:
        poller.start()

    shutdown.wait()

    for poller in pollers:
        poller.stop()
    refresher.stop()
    if isinstance(dispatcher.default, KafkaAlertSink):
        dispatcher.default.flush()
    if isinstance(detail_store, PostgresDetailStore):
        detail_store.close()

    logger.info("SkyWatch ADS-B Alerter stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
