import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Response, Request, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.errors import MissingFieldError, StoreError, ValidationError
from app.logging_utils import setup_logging, RequestLoggingMiddleware, log_submission_data
from app.metrics import record_submission_outcome, get_metrics, get_metrics_content_type
from app.notifier import NotificationTracker
from app.schemas import (
    ErrorResponse,
    HealthResponse,
    SubmissionsListResponse,
    SubmitResponse,
)
from app.shaping import shape_submission
from app.sms import SmsDispatcher, build_provider
from app.storage import Database, get_db, create_submission, get_recent_submissions, LISTING_LIMIT
from app.utils import submission_to_row


logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def create_app(
    settings: Optional[Settings] = None,
    dispatcher: Optional[SmsDispatcher] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted
        dispatcher: SMS dispatcher; built from settings when omitted
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    database = Database(settings.DATABASE_URL)
    if dispatcher is None:
        dispatcher = SmsDispatcher(build_provider(settings), timeout=settings.SMS_TIMEOUT_SECONDS)
    notifier = NotificationTracker(dispatcher, database)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        - Startup: create tables, report missing SMS configuration
        - Shutdown: wait for pending notifications, release connections
        """
        database.init_db()
        try:
            settings.SMS_MESSAGE_TEMPLATE.format(name="")
        except Exception as e:
            logger.warning(f"SMS_MESSAGE_TEMPLATE cannot be rendered, notifications will be skipped: {e!r}")
        missing = settings.missing_sms_settings()
        if missing:
            logger.warning(f"SMS settings not configured, notifications will fail: {', '.join(missing)}")
        yield
        await notifier.drain()
        database.dispose()

    app = FastAPI(
        title="Membership Registration API",
        description="Collects membership registrations and notifies members by SMS",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.notifier = notifier

    app.add_middleware(RequestLoggingMiddleware)

    # =========================================================================
    # Error Handlers
    # =========================================================================

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return error_response(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error(f"Store error on {request.url.path}: {exc}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.url.path}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "Server error")

    # =========================================================================
    # Health Check Routes
    # =========================================================================

    @app.get("/health/live", response_model=HealthResponse)
    async def health_live() -> HealthResponse:
        """Liveness probe - always returns 200 once the app is running."""
        return HealthResponse(status="ok")

    @app.get("/health/ready", response_model=HealthResponse)
    async def health_ready(response: Response) -> HealthResponse:
        """
        Readiness probe - returns 200 only if the database is reachable and
        the submissions table exists, 503 otherwise.
        """
        if not database.check_health():
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return HealthResponse(
                status="not_ready",
                reason="Database not reachable or schema not applied"
            )
        return HealthResponse(status="ready")

    # =========================================================================
    # Submission Routes
    # =========================================================================

    @app.post(
        "/api/submit",
        response_model=SubmitResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Missing required fields"},
            500: {"model": ErrorResponse, "description": "Unexpected failure"},
        }
    )
    async def submit(request: Request, db: Session = Depends(get_db)):
        """
        Store a membership registration and notify the member by SMS.

        The SMS is sent in a detached task; the response does not wait
        for it and its outcome is written to the record's smsStatus later.
        """
        logger.info("Submission received")

        try:
            payload = json.loads(await request.body())
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Invalid JSON body: {e}")
            record_submission_outcome("validation_error")
            log_submission_data(request, result="validation_error")
            return error_response(status.HTTP_400_BAD_REQUEST, "Invalid JSON body")

        try:
            record = shape_submission(payload)
            submission_id = create_submission(db, record)
        except MissingFieldError as e:
            logger.warning(f"Submission rejected: missing {', '.join(e.fields)}")
            record_submission_outcome("validation_error")
            log_submission_data(request, result="validation_error")
            return error_response(status.HTTP_400_BAD_REQUEST, str(e))
        except StoreError as e:
            record_submission_outcome("error")
            log_submission_data(request, result="error")
            return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))
        except Exception as e:
            logger.exception("Unexpected error while storing submission")
            record_submission_outcome("error")
            log_submission_data(request, result="error")
            return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Server error")

        record_submission_outcome("created")
        log_submission_data(request, submission_id=submission_id, result="created")

        try:
            message = settings.SMS_MESSAGE_TEMPLATE.format(name=record["name"])
        except Exception as e:
            logger.error(f"SMS_MESSAGE_TEMPLATE cannot be rendered, skipping notification: {e!r}")
        else:
            notifier.schedule(submission_id, record["phone"], message)

        return SubmitResponse(id=submission_id)

    @app.get(
        "/api/submit",
        response_model=SubmissionsListResponse,
        responses={500: {"model": ErrorResponse, "description": "Query failed"}},
    )
    async def list_submissions(db: Session = Depends(get_db)):
        """
        List the most recent submissions, newest first.

        Returns at most 200 rows; there is no pagination.
        """
        try:
            submissions = get_recent_submissions(db, limit=LISTING_LIMIT)
            rows = [submission_to_row(s).to_response() for s in submissions]
        except StoreError as e:
            return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))
        except Exception as e:
            logger.exception("Unexpected error while listing submissions")
            return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Server error")

        logger.info(f"GET /api/submit: returned {len(rows)} submissions")
        return SubmissionsListResponse(rows=rows)

    # =========================================================================
    # Metrics Route
    # =========================================================================

    @app.get("/metrics")
    async def metrics() -> Response:
        """Expose Prometheus-style metrics."""
        return Response(
            content=get_metrics(),
            media_type=get_metrics_content_type()
        )

    return app
