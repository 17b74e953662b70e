"""
Deep Search client: create a conversation, read it back, and poll until the
latest question reaches a terminal status.

Responsibility: Own the HTTP protocol and poll timing for Sourcegraph Deep Search
and translate remote failures into typed errors. No FastAPI here.
"""

import logging
import time

import httpx
from pydantic import ValidationError

from nlsearch.core.cancellation import CancellationSignal
from nlsearch.core.config import CLIENT_IDENTIFIER, DEEPSEARCH_HTTP_TIMEOUT, POLL_INTERVAL
from nlsearch.core.errors import (
    DecodeError,
    PollTimeoutError,
    QuestionCancelledError,
    QuestionFailedError,
    RequestCancelledError,
    TransportError,
    UnexpectedStatusError,
)
from nlsearch.schemas.deepsearch import Conversation, CreateConversationRequest, Question, QuestionStatus

logger = logging.getLogger(__name__)

DEEPSEARCH_PATH = "/.api/deepsearch/v1"


class DeepSearchClient:
    """
    Client for one Sourcegraph instance. Holds only static configuration and the
    httpx transport, so a single instance is safe to share across requests.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        http_client: httpx.Client | None = None,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self._access_token = access_token
        self._http = http_client or httpx.Client(timeout=DEEPSEARCH_HTTP_TIMEOUT)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "DeepSearchClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _headers(self, with_body: bool = False) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Authorization": f"token {self._access_token}",
            "X-Requested-With": CLIENT_IDENTIFIER,
        }
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _decode(self, response: httpx.Response) -> Conversation:
        try:
            return Conversation.model_validate_json(response.content)
        except ValidationError as e:
            raise DecodeError(f"decode response: {e}") from e

    @staticmethod
    def _call_timeout(budget: float | None):
        """Per-call timeout: the transport default, capped by what is left of the caller's budget."""
        if budget is None:
            return httpx.USE_CLIENT_DEFAULT
        return min(DEEPSEARCH_HTTP_TIMEOUT, max(budget, 0.0))

    def create_conversation(self, question: str, timeout: float | None = None) -> Conversation:
        """
        Start a conversation whose first question is `question`. One attempt, no retries.
        Accepts 200 or 202; anything else raises UnexpectedStatusError with the raw body.
        `timeout` caps this call below the 30s transport timeout.
        """
        url = f"{self.base_url}{DEEPSEARCH_PATH}"
        body = CreateConversationRequest(question=question).model_dump_json()
        logger.info("[deepsearch:create_conversation] IN  question_len=%d", len(question))
        try:
            response = self._http.post(
                url,
                content=body,
                headers=self._headers(with_body=True),
                timeout=self._call_timeout(timeout),
            )
        except httpx.HTTPError as e:
            raise TransportError(f"send request: {e}") from e
        if response.status_code not in (httpx.codes.OK, httpx.codes.ACCEPTED):
            logger.warning("[deepsearch:create_conversation] status=%d body=%r",
                           response.status_code, response.text[:200])
            raise UnexpectedStatusError(response.status_code, response.text)
        conversation = self._decode(response)
        logger.info("[deepsearch:create_conversation] OUT conversation_id=%d status=%d",
                    conversation.id, response.status_code)
        return conversation

    def get_conversation(self, conversation_id: int, timeout: float | None = None) -> Conversation:
        """Read the conversation. Only 200 is a success here."""
        url = f"{self.base_url}{DEEPSEARCH_PATH}/{conversation_id}"
        try:
            response = self._http.get(url, headers=self._headers(), timeout=self._call_timeout(timeout))
        except httpx.HTTPError as e:
            raise TransportError(f"send request: {e}") from e
        if response.status_code != httpx.codes.OK:
            logger.warning("[deepsearch:get_conversation] conversation_id=%d status=%d body=%r",
                           conversation_id, response.status_code, response.text[:200])
            raise UnexpectedStatusError(response.status_code, response.text)
        return self._decode(response)

    def _wait_tick(self, cancel: CancellationSignal | None) -> bool:
        """Sleep one poll interval. Returns True as soon as the caller cancels."""
        if cancel is None:
            time.sleep(self.poll_interval)
            return False
        if cancel.is_cancelled():
            return True
        return cancel.wait(self.poll_interval)

    def wait_for_completion(
        self,
        conversation_id: int,
        max_wait: float,
        cancel: CancellationSignal | None = None,
    ) -> Question:
        """
        Poll the conversation every poll_interval seconds until its latest question
        is terminal.

        Returns the question on `completed`. Raises QuestionFailedError or
        QuestionCancelledError for the other terminal statuses, PollTimeoutError once
        more than max_wait seconds have passed, and RequestCancelledError when the
        caller's signal fires, including while a read is in flight. Each read is cut
        off at the deadline. Other errors from get_conversation abort polling.
        """
        logger.info("[deepsearch:wait_for_completion] IN  conversation_id=%d max_wait=%.1fs",
                    conversation_id, max_wait)
        deadline = time.monotonic() + max_wait
        polls = 0
        while True:
            if self._wait_tick(cancel):
                logger.info("[deepsearch:wait_for_completion] cancelled after polls=%d", polls)
                raise RequestCancelledError(cancel.reason)
            if time.monotonic() > deadline:
                logger.warning("[deepsearch:wait_for_completion] timeout conversation_id=%d polls=%d",
                               conversation_id, polls)
                raise PollTimeoutError()

            try:
                conversation = self.get_conversation(conversation_id, timeout=deadline - time.monotonic())
            except TransportError as e:
                if isinstance(e.__cause__, httpx.TimeoutException) and time.monotonic() >= deadline:
                    logger.warning("[deepsearch:wait_for_completion] read cut off at deadline polls=%d", polls)
                    raise PollTimeoutError() from e
                raise
            polls += 1
            if cancel is not None and cancel.is_cancelled():
                logger.info("[deepsearch:wait_for_completion] cancelled during poll=%d", polls)
                raise RequestCancelledError(cancel.reason)
            if time.monotonic() > deadline:
                # The read finished past the deadline; its result is too late to use
                raise PollTimeoutError()

            question = conversation.latest_question()
            if question is None:
                logger.debug("[deepsearch:wait_for_completion] poll=%d no questions yet", polls)
                continue
            logger.debug("[deepsearch:wait_for_completion] poll=%d status=%s", polls, question.status)

            if question.status == QuestionStatus.COMPLETED:
                logger.info("[deepsearch:wait_for_completion] OUT completed polls=%d answer_len=%d",
                            polls, len(question.answer))
                return question
            if question.status == QuestionStatus.FAILED:
                raise QuestionFailedError()
            if question.status == QuestionStatus.CANCELLED:
                raise QuestionCancelledError()
