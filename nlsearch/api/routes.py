"""
API route aggregator: register endpoints; no logic, only delegate to handlers.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from nlsearch.api.handlers import handle_query
from nlsearch.schemas.query import QueryRequest, QueryResponse
from nlsearch.services.deepsearch_client import DeepSearchClient

logger = logging.getLogger(__name__)
router = APIRouter()


def get_deepsearch_client(request: Request) -> DeepSearchClient:
    """The shared client created at startup (see main.lifespan)."""
    return request.app.state.deepsearch_client


# --- System ---

@router.get("/health", tags=["system"], response_class=PlainTextResponse)
def health() -> str:
    return "OK"


# --- Query ---

@router.post(
    "/api/query",
    response_model=QueryResponse,
    response_model_exclude_none=True,
    tags=["query"],
    summary="Convert a natural-language request into a Sourcegraph search query",
    description="Runs one Deep Search conversation (up to 60s) and returns the extracted query and its sources. "
                "Errors come back as {\"error\": ...}: 400 on invalid input, 502 on upstream failure, 504 on timeout.",
)
async def post_query(
    body: QueryRequest,
    request: Request,
    client: DeepSearchClient = Depends(get_deepsearch_client),
) -> QueryResponse | JSONResponse:
    logger.info("[api:post_query] IN  query=%r", body.query)
    response = await handle_query(request, client, body.query)
    if isinstance(response, QueryResponse):
        logger.info("[api:post_query] OUT answer=%r", response.answer)
    return response
