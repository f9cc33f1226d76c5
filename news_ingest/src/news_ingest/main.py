"""
Ingestion orchestration.

One cycle:
1. Build the source plan (feeds, then API topics)
2. For each source: fetch -> normalize -> resolve Source -> upsert Articles
3. Record the run in the run log

Cycles are single-flight: a trigger arriving while a cycle runs is ignored.
Nothing raised inside a cycle escapes run().
"""

import asyncio
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx

from .catalog import Catalog, UpsertOutcome, resolve_source, upsert_article
from .config import Settings, get_settings
from .db import Database, get_database
from .errors import ConfigurationError, FetchError, ParseError
from .logging_conf import bind_context, get_logger, unbind_context
from .sources import FeedSource, Harvest, SourceRegistry

logger = get_logger(__name__)

ClientFactory = Callable[[bool], httpx.AsyncClient]


class RunReport:
    """Tracks counters and errors for one ingestion cycle."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        self.started_at = datetime.now(timezone.utc)
        self.completed_at: Optional[datetime] = None
        self.status = "RUNNING"
        self.stats = defaultdict(int)
        self.errors: list[str] = []
        self.skipped_sources: list[str] = []

    def source_failed(self, label: str, error: Exception) -> None:
        self.stats["sources_failed"] += 1
        self.errors.append(f"{label}: {error}")

    def record_outcome(self, outcome: UpsertOutcome) -> None:
        self.stats[f"articles_{outcome.value}"] += 1

    def finish(self) -> None:
        self.completed_at = datetime.now(timezone.utc)
        if self.status == "RUNNING":
            self.status = "PARTIAL" if self.errors else "SUCCESS"

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "sources_total": self.stats["sources_total"],
            "sources_failed": self.stats["sources_failed"],
            "entries_seen": self.stats["entries_seen"],
            "entries_dropped": self.stats["entries_dropped"],
            "entries_failed": self.stats["entries_failed"],
            "articles_created": self.stats["articles_created"],
            "articles_updated": self.stats["articles_updated"],
            "articles_unchanged": self.stats["articles_unchanged"],
            "skipped_sources": list(self.skipped_sources),
            "errors": list(self.errors),
        }


class IngestionRunner:
    """
    Runs ingestion cycles against the catalog.

    Holds the single-flight lock, so the scheduler, the HTTP trigger and
    the CLI should share one instance per process (see get_runner).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        database: Optional[Database] = None,
        registry: Optional[SourceRegistry] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.settings = settings or get_settings()
        self._database = database
        self.registry = registry or SourceRegistry(self.settings)
        self.client_factory = client_factory or self._default_client
        self._lock = asyncio.Lock()

        logger.info("ingestion_runner_initialized")

    @property
    def database(self) -> Database:
        if self._database is None:
            self._database = get_database()
        return self._database

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def _default_client(self, verify_tls: bool) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(
                self.settings.fetch_timeout,
                connect=self.settings.fetch_connect_timeout,
            ),
            verify=verify_tls,
            follow_redirects=True,
            headers={"User-Agent": self.settings.user_agent},
        )

    def generate_run_id(self) -> str:
        """Generate a unique run ID."""
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        return f"run_{timestamp}_{uuid.uuid4().hex[:8]}"

    async def run(self) -> Optional[RunReport]:
        """
        Execute one ingestion cycle unless one is already in progress.

        Returns:
            The run report, or None when the trigger was ignored
        """
        # No await between the check and the acquire
        if self._lock.locked():
            logger.info("ingestion_already_running")
            return None

        async with self._lock:
            report = RunReport(self.generate_run_id())
            bind_context(run_id=report.run_id)
            try:
                await self._run_cycle(report)
            except Exception as e:
                report.status = "FAILED"
                report.errors.append(f"run: {e}")
                logger.exception("ingestion_run_failed", error=str(e))
            finally:
                report.finish()
                self._record_completion(report)
                summary = report.to_dict()
                logger.info(
                    "ingestion_run_completed",
                    status=summary["status"],
                    sources_failed=summary["sources_failed"],
                    articles_created=summary["articles_created"],
                    articles_updated=summary["articles_updated"],
                    entries_dropped=summary["entries_dropped"],
                )
                unbind_context("run_id")
            return report

    async def _run_cycle(self, report: RunReport) -> None:
        plan = self.registry.plan()
        report.stats["sources_total"] = len(plan.sources)
        if plan.api_disabled_reason:
            logger.warning("newsapi_ingestion_disabled", reason=plan.api_disabled_reason)
            report.skipped_sources.append(f"newsapi: {plan.api_disabled_reason}")

        logger.info("ingestion_run_started", feeds=plan.feed_count, topics=plan.topic_count)

        session = self.database.get_session()
        clients: dict[bool, httpx.AsyncClient] = {}
        try:
            self._record_start(session, report)
            catalog = self.database.catalog(session)
            api_disabled = False

            for source in plan.sources:
                if source.kind == "newsapi" and api_disabled:
                    report.skipped_sources.append(source.label)
                    continue

                if source.verify_tls not in clients:
                    clients[source.verify_tls] = self.client_factory(source.verify_tls)

                try:
                    harvest = await self.harvest_source(source, clients[source.verify_tls])
                except ConfigurationError as e:
                    # Logged once; later topics are skipped silently
                    logger.warning("newsapi_ingestion_disabled", reason=str(e))
                    report.source_failed(source.label, e)
                    api_disabled = True
                    continue
                except (FetchError, ParseError) as e:
                    logger.error("source_skipped", source=source.label, error=str(e))
                    report.source_failed(source.label, e)
                    continue
                except Exception as e:
                    logger.exception("source_failed_unexpectedly", source=source.label, error=str(e))
                    report.source_failed(source.label, e)
                    continue

                self.store_harvest(catalog, harvest, report, label=source.label)
        finally:
            for client in clients.values():
                await client.aclose()
            session.close()

    async def harvest_source(self, source: FeedSource, client: httpx.AsyncClient) -> Harvest:
        """Fetch and normalize one source."""
        payload = await source.fetch(client)
        return source.normalize(payload)

    def store_harvest(
        self,
        catalog: Catalog,
        harvest: Harvest,
        report: RunReport,
        label: str,
    ) -> None:
        """Resolve sources and upsert every harvested article, isolating failures per entry."""
        report.stats["entries_seen"] += harvest.entries_seen
        report.stats["entries_dropped"] += harvest.entries_dropped

        for item in harvest.items:
            try:
                source_row = resolve_source(catalog, item.source.name, lambda: item.source)
                _, outcome = upsert_article(catalog, item.draft, source_row)
                report.record_outcome(outcome)
            except Exception as e:
                self._rollback(catalog)
                report.stats["entries_failed"] += 1
                logger.exception(
                    "entry_store_failed",
                    source=label,
                    url=item.draft.url,
                    error=str(e),
                )

    def _rollback(self, catalog: Catalog) -> None:
        session = getattr(catalog, "session", None)
        if session is not None:
            session.rollback()

    def _record_start(self, session, report: RunReport) -> None:
        try:
            self.database.start_run(session, report.run_id)
        except Exception as e:
            session.rollback()
            logger.warning("run_log_start_failed", error=str(e))

    def _record_completion(self, report: RunReport) -> None:
        try:
            session = self.database.get_session()
        except Exception as e:
            logger.warning("run_log_complete_failed", error=str(e))
            return
        try:
            summary = report.to_dict()
            self.database.complete_run(
                session,
                report.run_id,
                status=report.status,
                counters=summary,
                error_message="\n".join(report.errors)[:4000] or None,
            )
        except Exception as e:
            session.rollback()
            logger.warning("run_log_complete_failed", error=str(e))
        finally:
            session.close()


# Singleton instance
_runner_instance: Optional[IngestionRunner] = None


def get_runner() -> IngestionRunner:
    """Get or create the process-wide runner."""
    global _runner_instance
    if _runner_instance is None:
        _runner_instance = IngestionRunner()
    return _runner_instance


async def run_ingestion() -> Optional[dict]:
    """Run one cycle with the shared runner; None when one was already running."""
    report = await get_runner().run()
    return report.to_dict() if report else None
