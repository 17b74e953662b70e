"""
Search service: turn a natural-language request into a Sourcegraph search query.

Responsibility: Wrap the request in the query-conversion prompt, run one Deep Search
conversation within a single time budget, and extract the query line from the
answer. Called by the API and the CLI; no HTTP types here.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from nlsearch.core.cancellation import CancellationSignal
from nlsearch.core.config import QUERY_TIMEOUT
from nlsearch.core.errors import DeepSearchError, PollTimeoutError, QueryFailedError, RequestCancelledError
from nlsearch.services.answer_extractor import extract_query
from nlsearch.services.deepsearch_client import DeepSearchClient

logger = logging.getLogger(__name__)

# Files in github.com/sourcegraph/sourcegraph that define the query language
SYNTAX_REFERENCE_FILES = [
    "internal/search/query/parser.go",
    "internal/search/query/validate.go",
    "internal/search/query/parser_test.go",
    "internal/search/query/validate_test.go",
    "client/branded/src/search-ui/components/QueryExamples.constants.ts",
]

PROMPT_TEMPLATE = """Convert this natural language request into a valid Sourcegraph search query.

For guidance on proper syntax, refer to these files in github.com/sourcegraph/sourcegraph:
{references}

CRITICAL: Your response must be ONLY the search query itself. No explanations, no markdown, no code blocks, no additional text. Just the raw query string.

Request: {query}"""


@dataclass
class SearchResult:
    """Generated query plus the source records Deep Search cited."""

    answer: str
    sources: list[dict[str, Any]] = field(default_factory=list)


def build_prompt(query: str) -> str:
    """Wrap a user request in the instructions that make Deep Search answer with a bare query."""
    references = "\n".join(f"- {path}" for path in SYNTAX_REFERENCE_FILES)
    return PROMPT_TEMPLATE.format(references=references, query=query)


def submit_query(
    client: DeepSearchClient,
    query: str,
    timeout: float = QUERY_TIMEOUT,
    cancel: CancellationSignal | None = None,
) -> SearchResult:
    """
    Ask Deep Search for a search query matching `query`.

    `timeout` bounds conversation creation and the answer wait together: creation is
    cut off at the budget and the wait gets whatever is left. The caller validates
    that `query` is non-empty.
    Raises QueryFailedError naming the stage that failed, with the typed client error
    as its cause.
    """
    logger.info("[search:submit_query] IN  query=%r timeout=%.1fs", query, timeout)
    started = time.monotonic()

    try:
        conversation = client.create_conversation(build_prompt(query), timeout=timeout)
    except DeepSearchError as e:
        logger.error("[search:submit_query] error creating conversation: %s", e)
        raise QueryFailedError(f"Failed to create conversation: {e}", e) from e

    remaining = timeout - (time.monotonic() - started)
    try:
        if cancel is not None and cancel.is_cancelled():
            raise RequestCancelledError(cancel.reason)
        if remaining <= 0:
            raise PollTimeoutError()
        question = client.wait_for_completion(conversation.id, remaining, cancel=cancel)
    except DeepSearchError as e:
        logger.error("[search:submit_query] error waiting for completion: %s", e)
        raise QueryFailedError(f"Failed to get response: {e}", e) from e

    answer = extract_query(question.answer)
    sources = question.sources or []
    logger.info("[search:submit_query] OUT conversation_id=%d answer=%r sources=%d",
                conversation.id, answer, len(sources))
    return SearchResult(answer=answer, sources=sources)
