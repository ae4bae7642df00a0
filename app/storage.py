import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.errors import StoreError

logger = logging.getLogger(__name__)

# Base class for SQLAlchemy models
Base = declarative_base()

# Fixed window returned by the listing endpoint
LISTING_LIMIT = 200


class Database:
    """
    Shared database handle.

    The engine is created on first use and reused for the lifetime of
    the process; sessions are opened per request or per background task.
    """

    def __init__(self, url: str):
        self.url = url
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            logger.debug(f"Creating database engine for {self.url}")
            connect_args = {}
            if self.url.startswith("sqlite"):
                # SQLite connections are shared between the event loop and
                # the threads FastAPI runs sync code in
                connect_args["check_same_thread"] = False
            self._engine = create_engine(self.url, connect_args=connect_args, echo=False)
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        return self._session_factory

    def init_db(self) -> None:
        """
        Create all tables.
        Called during application startup.
        """
        logger.debug(f"Initializing database with URL: {self.url}")
        try:
            # Import models to register them with Base.metadata
            from app.models import Submission  # noqa: F401

            Base.metadata.create_all(bind=self.engine)
            logger.info("Database initialized successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to initialize database: {e}")
            raise StoreError(str(e)) from e

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Open a session and make sure it is closed after use."""
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def check_health(self) -> bool:
        """
        Check if the database is reachable and the submissions table exists.

        Returns:
            True if DB is healthy and schema exists, False otherwise.
        """
        logger.debug("Checking database health...")
        try:
            with self.session() as db:
                db.execute(text("SELECT 1"))
            if not inspect(self.engine).has_table("submissions"):
                logger.error("Database schema not applied: 'submissions' table not found")
                return False
            logger.debug("Database health check passed")
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency to get a database session from the app's shared Database.
    Yields a session and ensures it's closed after use.
    """
    with request.app.state.database.session() as db:
        yield db


# =============================================================================
# Submission Repository Functions
# =============================================================================

def create_submission(db: Session, record: dict) -> str:
    """
    Insert a shaped submission and return its id.

    Args:
        db: Database session
        record: Output of shape_submission()

    Returns:
        The generated identifier as text

    Raises:
        StoreError: the insert failed
    """
    from app.models import Submission

    logger.info(f"Creating submission for phone={record['phone']}")

    try:
        submission = Submission(
            name=record["name"],
            phone=record["phone"],
            business_title=record["business_title"],
            address=record["address"],
            address_version=record["address_version"],
            rating=record["rating"],
            created_at=datetime.now(timezone.utc),
        )
        db.add(submission)
        db.commit()
        db.refresh(submission)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to create submission: {e}")
        raise StoreError(str(e)) from e

    logger.info(f"Submission created successfully: {submission.id}")
    return str(submission.id)


def get_recent_submissions(db: Session, limit: int = LISTING_LIMIT) -> list:
    """
    Return the newest submissions, newest first.

    Ordering is created_at DESC, id DESC so rows created within the same
    clock tick still come back in insertion order reversed.

    Raises:
        StoreError: the query failed
    """
    from app.models import Submission

    limit = min(limit, LISTING_LIMIT)
    logger.info(f"Querying recent submissions: limit={limit}")

    try:
        rows = (
            db.query(Submission)
            .order_by(Submission.created_at.desc(), Submission.id.desc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to query submissions: {e}")
        raise StoreError(str(e)) from e

    logger.info(f"Retrieved {len(rows)} submissions")
    return rows


def update_sms_status(db: Session, submission_id: str, sms_status: dict) -> bool:
    """
    Attach the SMS outcome to a submission.

    The write only applies while sms_status is still unset, so a record
    gets at most one status.

    Returns:
        True if the row was updated, False if it was missing or already set

    Raises:
        StoreError: the update failed
    """
    from app.models import Submission

    logger.info(f"Updating sms_status for submission {submission_id}: ok={sms_status.get('ok')}")

    try:
        updated = (
            db.query(Submission)
            .filter(Submission.id == int(submission_id), Submission.sms_status.is_(None))
            .update({Submission.sms_status: sms_status}, synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to update sms_status for submission {submission_id}: {e}")
        raise StoreError(str(e)) from e

    if not updated:
        logger.warning(f"sms_status not applied for submission {submission_id} (missing or already set)")
    return bool(updated)
