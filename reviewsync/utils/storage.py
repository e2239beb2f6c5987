"""
Storage utility.

Review store gateway: typed reads and writes against the reviews table,
over a bounded SQLAlchemy connection pool.
"""

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, List, Optional, Sequence, Set

from sqlalchemy import (
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    func,
    insert,
    select,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from reviewsync.errors import PartialInsertFailure, StoreUnavailable
from reviewsync.models.review import IdentityStrategy, Review

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class ReviewRecord(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("place_id", "dedup_key", name="uq_reviews_place_dedup_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    place_id: Mapped[str] = mapped_column(String(255), index=True)
    review_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # review_id or published_iso_at, per the deployment's IdentityStrategy
    dedup_key: Mapped[str] = mapped_column(String(255))
    author_name: Mapped[str] = mapped_column(String(255), default="")
    rating: Mapped[float] = mapped_column(Float)
    text: Mapped[str] = mapped_column(Text, default="")
    published_at: Mapped[str] = mapped_column(String(64), default="")
    published_iso_at: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


REVIEWS = ReviewRecord.__table__


@dataclass
class InsertResult:
    """What one insert batch did, per review."""
    inserted: List[Review] = field(default_factory=list)
    skipped: int = 0  # Already stored, possibly by a concurrent sync
    failed_keys: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.inserted)


def create_store_engine(
    database_url: str,
    pool_size: int = 10,
    pool_timeout: float = 2.0,
    statement_timeout: float = 10.0
) -> Engine:
    """
    Create the process-wide engine (bounded pool, no overflow).

    Args:
        database_url: SQLAlchemy URL (sqlite:///..., postgresql://...)
        pool_size: Maximum number of pooled connections
        pool_timeout: Seconds to wait for a free connection
        statement_timeout: Per-statement timeout in seconds

    Returns:
        Engine; dispose it with ReviewStore.close() at shutdown
    """
    url = make_url(database_url)
    backend = url.get_backend_name()
    kwargs = {"pool_pre_ping": True}

    if backend == "sqlite":
        kwargs["connect_args"] = {"timeout": statement_timeout}
        if url.database in (None, "", ":memory:"):
            # One shared connection, otherwise every checkout sees a new empty db
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"]["check_same_thread"] = False
        else:
            db_dir = os.path.dirname(url.database)
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)
            kwargs.update(pool_size=pool_size, max_overflow=0, pool_timeout=pool_timeout)
    else:
        if backend == "postgresql":
            kwargs["connect_args"] = {
                "options": f"-c statement_timeout={int(statement_timeout * 1000)}"
            }
        kwargs.update(pool_size=pool_size, max_overflow=0, pool_timeout=pool_timeout)

    engine = create_engine(url, **kwargs)
    logger.info(f"Created store engine for {url.render_as_string(hide_password=True)}")
    return engine


class ReviewStore:
    """
    Gateway to the persistent review set.

    Every operation borrows one connection from the pool and returns it
    on every exit path. Connectivity failures surface as StoreUnavailable.

    Usage:
        store = ReviewStore(create_store_engine(settings.DATABASE_URL))
        store.init_schema()
        existing = store.list_reviews(place_id)
        store.close()
    """

    def __init__(
        self,
        engine: Engine,
        identity: IdentityStrategy = IdentityStrategy.REVIEW_ID
    ):
        """
        Initialize review store.

        Args:
            engine: SQLAlchemy engine owning the connection pool
            identity: Dedup key used for every write and comparison
        """
        self.engine = engine
        self.identity = IdentityStrategy(identity)

        logger.info(f"Initialized ReviewStore with identity={self.identity.value}")

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Borrow one pooled connection; translate connectivity errors."""
        try:
            with self.engine.connect() as conn:
                yield conn
        except (OperationalError, PoolTimeoutError) as e:
            logger.error(f"Review store unavailable: {e}")
            raise StoreUnavailable(str(e)) from e
        except DBAPIError as e:
            if e.connection_invalidated:
                logger.error(f"Review store connection lost: {e}")
                raise StoreUnavailable(str(e)) from e
            raise

    def init_schema(self) -> None:
        """Create the reviews table if it does not exist."""
        try:
            Base.metadata.create_all(self.engine)
        except OperationalError as e:
            raise StoreUnavailable(str(e)) from e
        logger.info("Review store schema ready")

    def close(self) -> None:
        """Close every pooled connection."""
        self.engine.dispose()
        logger.info("Review store closed")

    def count_reviews(self, place_id: str) -> int:
        """Number of stored reviews for place_id."""
        with self._connect() as conn:
            return conn.execute(
                select(func.count()).select_from(REVIEWS).where(REVIEWS.c.place_id == place_id)
            ).scalar_one()

    def list_reviews(self, place_id: str) -> List[Review]:
        """
        All stored reviews for place_id, newest first.

        Returns:
            List of Review objects (empty if none stored)
        """
        with self._connect() as conn:
            rows = conn.execute(
                select(REVIEWS)
                .where(REVIEWS.c.place_id == place_id)
                .order_by(REVIEWS.c.published_iso_at.desc().nulls_last(), REVIEWS.c.id.desc())
            ).fetchall()

        logger.debug(f"Loaded {len(rows)} stored reviews for {place_id}")
        return [self._row_to_review(row) for row in rows]

    def list_published_iso_dates(self, place_id: str) -> Set[str]:
        """Sortable publish timestamps of stored reviews for place_id."""
        with self._connect() as conn:
            rows = conn.execute(
                select(REVIEWS.c.published_iso_at).where(
                    REVIEWS.c.place_id == place_id,
                    REVIEWS.c.published_iso_at.is_not(None)
                )
            ).fetchall()
        return {row[0] for row in rows}

    def insert_reviews(self, reviews: Sequence[Review], place_id: str) -> int:
        """Insert reviews for place_id and return how many rows landed."""
        return self.insert_reviews_detailed(reviews, place_id).count

    def insert_reviews_detailed(self, reviews: Sequence[Review], place_id: str) -> InsertResult:
        """
        Insert reviews for place_id, skipping ones already stored.

        Each review is written in its own transaction. A review that fails is
        logged and skipped; the rest still land. Connectivity loss aborts the
        whole call with StoreUnavailable.

        Args:
            reviews: Reviews to insert
            place_id: Place the reviews belong to

        Returns:
            InsertResult with the reviews that landed, the number already
            stored and the keys that failed
        """
        result = InsertResult()
        if not reviews:
            return result

        with self._connect() as conn:
            for review in reviews:
                key = review.identity(self.identity)
                if key is None:
                    logger.warning(
                        f"Review by '{review.author_name}' has no {self.identity.value}, skipping"
                    )
                    result.failed_keys.append(f"<missing {self.identity.value}>")
                    continue

                try:
                    with conn.begin():
                        outcome = conn.execute(self._insert_statement(review, place_id, key))
                except IntegrityError as e:
                    if self._supports_upsert:
                        # Conflicts never raise here, so this is a rejected row
                        logger.error(f"Review {key} rejected by the store: {e.orig}")
                        result.failed_keys.append(key)
                    else:
                        result.skipped += 1
                        logger.debug(f"Review {key} already exists, skipping")
                    continue
                except OperationalError:
                    raise
                except SQLAlchemyError as e:
                    logger.error(f"Failed to insert review {key} for {place_id}: {e}")
                    result.failed_keys.append(key)
                    continue

                if outcome.rowcount == 1:
                    result.inserted.append(review)
                    logger.debug(f"Inserted review {key}")
                else:
                    result.skipped += 1
                    logger.debug(f"Review {key} already exists, skipping")

        if result.failed_keys:
            logger.warning(str(PartialInsertFailure(place_id, result.failed_keys, result.count)))

        logger.info(
            f"Inserted {result.count}/{len(reviews)} reviews for {place_id} "
            f"({result.skipped} already stored, {len(result.failed_keys)} failed)"
        )
        return result

    @property
    def _supports_upsert(self) -> bool:
        return self.engine.dialect.name in ("sqlite", "postgresql")

    def _insert_statement(self, review: Review, place_id: str, key: str):
        """Conflict-tolerant INSERT where the dialect supports it."""
        values = {
            "place_id": place_id,
            "review_id": review.review_id,
            "dedup_key": key,
            "author_name": review.author_name,
            "rating": review.rating,
            "text": review.text,
            "published_at": review.published_at,
            "published_iso_at": review.published_iso_at,
        }

        dialect = self.engine.dialect.name
        if dialect == "sqlite":
            return sqlite.insert(REVIEWS).values(**values).on_conflict_do_nothing(
                index_elements=["place_id", "dedup_key"]
            )
        if dialect == "postgresql":
            return postgresql.insert(REVIEWS).values(**values).on_conflict_do_nothing(
                index_elements=["place_id", "dedup_key"]
            )
        return insert(REVIEWS).values(**values)

    @staticmethod
    def _row_to_review(row) -> Review:
        """Convert database row to Review object."""
        return Review(
            place_id=row.place_id,
            author_name=row.author_name or "",
            rating=row.rating,
            text=row.text or "",
            published_at=row.published_at or "",
            published_iso_at=row.published_iso_at,
            review_id=row.review_id,
            created_at=row.created_at,
        )
