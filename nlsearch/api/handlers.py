"""
API handlers: call services, map results/errors to HTTP.

Responsibility: Bridge HTTP types and services. Runs the blocking search in the
threadpool, cancels it when the HTTP client goes away, and maps service errors to
status codes. Lives in the API layer so services stay free of FastAPI/HTTP types.
"""

import asyncio
import contextlib
import logging

from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from nlsearch.core.cancellation import CancellationSignal
from nlsearch.core.config import QUERY_TIMEOUT
from nlsearch.core.errors import PollTimeoutError, QueryFailedError, RequestCancelledError
from nlsearch.schemas.query import QueryResponse
from nlsearch.services.deepsearch_client import DeepSearchClient
from nlsearch.services.search_service import submit_query

logger = logging.getLogger(__name__)

DISCONNECT_CHECK_INTERVAL = 0.5
# Client closed the request (nginx convention)
STATUS_CLIENT_CLOSED_REQUEST = 499


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=QueryResponse(error=message).model_dump(exclude_none=True),
    )


def status_for(error: QueryFailedError) -> int:
    if isinstance(error.cause, PollTimeoutError):
        return 504
    if isinstance(error.cause, RequestCancelledError):
        return STATUS_CLIENT_CLOSED_REQUEST
    return 502


async def handle_invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Undecodable request bodies get the same error shape as every other failure."""
    logger.info("[api:invalid_body] path=%s errors=%d", request.url.path, len(exc.errors()))
    return error_response(400, "Invalid request body")


async def _cancel_on_disconnect(request: Request, cancel: CancellationSignal) -> None:
    while not cancel.is_cancelled():
        if await request.is_disconnected():
            cancel.cancel("client disconnected")
            return
        await asyncio.sleep(DISCONNECT_CHECK_INTERVAL)


async def handle_query(
    request: Request,
    client: DeepSearchClient,
    query: str,
    timeout: float = QUERY_TIMEOUT,
) -> QueryResponse | JSONResponse:
    """Run one search for `query`; 400 on empty input, 502/504/499 on upstream failure."""
    if not query.strip():
        return error_response(400, "Query is required")

    cancel = CancellationSignal()
    watcher = asyncio.create_task(_cancel_on_disconnect(request, cancel))
    try:
        result = await run_in_threadpool(submit_query, client, query, timeout, cancel)
    except QueryFailedError as e:
        return error_response(status_for(e), e.message)
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher

    return QueryResponse(answer=result.answer, sources=result.sources)
