"""
Database models and operations using SQLAlchemy.

Supports both SQLite and PostgreSQL backends.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Index,
    func,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import (
    declarative_base,
    sessionmaker,
    relationship,
    Session,
)

from .config import get_settings
from .errors import CatalogConflictError
from .logging_conf import get_logger

logger = get_logger(__name__)
Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Source(Base):
    """
    A named origin of articles (a feed or an API provider).
    """
    __tablename__ = "sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    base_url = Column(String(1024), nullable=True)
    rss_feed_url = Column(String(1024), nullable=True)
    # Name of the setting holding the credential, never the secret
    api_key_ref = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    articles = relationship("Article", back_populates="source")

    def __repr__(self) -> str:
        return f"Source(name={self.name!r})"


class Article(Base):
    """
    A catalog article, identified by its canonical URL.
    """
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    url = Column(String(1024), nullable=False, unique=True)
    image_url = Column(String(2048), nullable=True)
    published_date = Column(DateTime(timezone=True), nullable=False)
    category = Column(String(255), nullable=True)
    author = Column(String(512), nullable=True)
    view_count = Column(Integer, nullable=False, default=0)
    source_id = Column(Integer, ForeignKey("sources.id"), nullable=False)

    source = relationship("Source", back_populates="articles")

    __table_args__ = (
        Index("idx_article_publisheddate", "published_date"),
        Index("idx_article_category", "category"),
        Index("idx_article_sourceid", "source_id"),
    )

    def __repr__(self) -> str:
        return f"Article(url={self.url!r})"


class RunLog(Base):
    """
    Log of ingestion runs for monitoring.
    """
    __tablename__ = "run_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(50), nullable=False, unique=True, index=True)

    started_at = Column(DateTime(timezone=True), default=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), default="RUNNING")  # RUNNING, SUCCESS, PARTIAL, FAILED

    sources_total = Column(Integer, default=0)
    sources_failed = Column(Integer, default=0)
    entries_seen = Column(Integer, default=0)
    entries_dropped = Column(Integer, default=0)
    entries_failed = Column(Integer, default=0)
    articles_created = Column(Integer, default=0)
    articles_updated = Column(Integer, default=0)
    articles_unchanged = Column(Integer, default=0)

    error_message = Column(Text, nullable=True)


class SqlCatalog:
    """
    Catalog operations backed by a SQLAlchemy session.

    Every save commits on its own; a uniqueness violation is rolled back and
    reported as CatalogConflictError.
    """

    def __init__(self, session: Session):
        self.session = session

    def find_source_by_name(self, name: str) -> Optional[Source]:
        return self.session.query(Source).filter(Source.name == name).first()

    def save_source(self, source: Source) -> Source:
        return self._save(source)

    def find_article_by_url(self, url: str) -> Optional[Article]:
        return self.session.query(Article).filter(Article.url == url).first()

    def save_article(self, article: Article) -> Article:
        return self._save(article)

    def _save(self, row):
        self.session.add(row)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise CatalogConflictError(f"{row!r} violates a uniqueness constraint: {e.orig}")
        return row


class Database:
    """Database connection and operation manager."""

    def __init__(self, url: Optional[str] = None):
        """
        Initialize database connection.

        Args:
            url: Database URL (defaults to settings)
        """
        self.url = url or get_settings().effective_database_url

        connect_args = {}
        if "sqlite" in self.url:
            connect_args["check_same_thread"] = False

        self.engine = create_engine(
            self.url,
            connect_args=connect_args,
            echo=False,
        )

        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
        )

        logger.info("database_initialized", url=self.url[:50])

    def create_tables(self) -> None:
        """Create all tables if they don't exist."""
        Base.metadata.create_all(self.engine)
        logger.info("database_tables_created")

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def catalog(self, session: Session) -> SqlCatalog:
        return SqlCatalog(session)

    # Run logs
    def start_run(self, session: Session, run_id: str) -> RunLog:
        """Record the start of an ingestion run."""
        run = RunLog(run_id=run_id)
        session.add(run)
        session.commit()
        return run

    def complete_run(
        self,
        session: Session,
        run_id: str,
        status: str,
        counters: dict,
        error_message: Optional[str] = None,
    ) -> None:
        """Record completion of an ingestion run."""
        values = {
            "completed_at": _utcnow(),
            "status": status,
            "error_message": error_message,
        }
        for key in (
            "sources_total",
            "sources_failed",
            "entries_seen",
            "entries_dropped",
            "entries_failed",
            "articles_created",
            "articles_updated",
            "articles_unchanged",
        ):
            values[key] = counters.get(key, 0)

        session.query(RunLog).filter(RunLog.run_id == run_id).update(values)
        session.commit()

    def get_latest_run(self, session: Session) -> Optional[RunLog]:
        return session.query(RunLog).order_by(RunLog.id.desc()).first()

    def get_stats(self, session: Session) -> dict:
        """Get database statistics."""
        return {
            "total_sources": session.query(func.count(Source.id)).scalar(),
            "total_articles": session.query(func.count(Article.id)).scalar(),
            "total_runs": session.query(func.count(RunLog.id)).scalar(),
            "successful_runs": session.query(func.count(RunLog.id)).filter(
                RunLog.status == "SUCCESS"
            ).scalar(),
        }

    def get_articles_per_source(self, session: Session) -> list[tuple[str, int]]:
        rows = (
            session.query(Source.name, func.count(Article.id))
            .outerjoin(Article)
            .group_by(Source.name)
            .order_by(func.count(Article.id).desc())
            .all()
        )
        return [(name, count) for name, count in rows]


# Singleton instance
_db_instance: Optional[Database] = None


def get_database() -> Database:
    """Get or create database instance."""
    global _db_instance
    if _db_instance is None:
        _db_instance = Database()
        _db_instance.create_tables()
    return _db_instance

