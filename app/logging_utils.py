import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from pythonjsonlogger.json import JsonFormatter

from app.metrics import record_http_request


request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

REQUEST_LOGGER = "app.requests"


class CustomJsonFormatter(JsonFormatter):
    """Adds ts, level and the current request_id to every record."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault(
            'ts',
            datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z'),
        )
        log_record['level'] = record.levelname

        request_id = log_record.get('request_id') or request_id_ctx.get()
        if request_id:
            log_record['request_id'] = request_id


def setup_logging(log_level: str = "INFO"):
    """Send root and uvicorn logs to stdout as JSON lines."""
    root = logging.getLogger()
    root.setLevel(log_level.upper())
    root.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter('%(ts)s %(level)s %(name)s %(message)s'))
    root.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.propagate = False

    # RequestLoggingMiddleware writes the access line
    logging.getLogger("uvicorn.access").disabled = True

    return root


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request, with an X-Request-ID echoed on the response.

    Submission routes can attach submission_id and result through
    log_submission_data(); they are merged into the line.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            elapsed = time.perf_counter() - started

            if request.url.path != "/metrics":
                record_http_request(request.method, request.url.path, response.status_code, elapsed)

            fields = {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_ms": round(elapsed * 1000, 2),
            }
            fields.update(getattr(request.state, "submission_log_data", {}))

            if response.status_code >= 500:
                level = logging.ERROR
            elif response.status_code >= 400:
                level = logging.WARNING
            else:
                level = logging.INFO
            logging.getLogger(REQUEST_LOGGER).log(level, "Request completed", extra=fields)

            return response
        finally:
            request_id_ctx.reset(token)


def log_submission_data(request: Request, submission_id: str = None, result: str = None):
    """Stash submission fields for the request log line."""
    data = {}
    if submission_id is not None:
        data["submission_id"] = submission_id
    if result is not None:
        data["result"] = result
    request.state.submission_log_data = data
