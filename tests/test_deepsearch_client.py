"""
Tests for DeepSearchClient against a fake Deep Search API (httpx.MockTransport).

No network access; poll intervals are shortened except in the timing test.
"""

import json
import threading
import time
from collections.abc import Callable

import httpx
import pytest

from nlsearch.core.cancellation import CancellationSignal
from nlsearch.core.errors import (
    DecodeError,
    PollTimeoutError,
    QuestionCancelledError,
    QuestionFailedError,
    RequestCancelledError,
    TransportError,
    UnexpectedStatusError,
)
from nlsearch.services.deepsearch_client import DeepSearchClient

BASE_URL = "https://sourcegraph.example.com"
FAST_POLL = 0.01


def make_client(handler: Callable[[httpx.Request], httpx.Response], poll_interval: float = FAST_POLL) -> DeepSearchClient:
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return DeepSearchClient(BASE_URL + "/", "secret-token", http_client=http_client, poll_interval=poll_interval)


def conversation(questions: list[dict] | None = None, conversation_id: int = 42) -> dict:
    return {"id": conversation_id, "questions": questions if questions is not None else []}


def question(status: str, answer: str = "", **extra) -> dict:
    return {"id": 1, "conversation_id": 42, "question": "q", "status": status, "answer": answer, "stats": {}, **extra}


class PollSequence:
    """Handler returning one prepared response per GET, repeating the last one."""

    def __init__(self, responses: list[httpx.Response]) -> None:
        self.responses = responses
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        response = self.responses[min(self.calls, len(self.responses) - 1)]
        self.calls += 1
        return response


# --- create_conversation ---

def test_create_conversation_sends_question_and_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=conversation([question("processing")]))

    conv = make_client(handler).create_conversation("find main functions")

    assert conv.id == 42
    assert conv.questions[0].status == "processing"
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == f"{BASE_URL}/.api/deepsearch/v1"
    assert json.loads(request.content) == {"question": "find main functions"}
    assert request.headers["Accept"] == "application/json"
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["Authorization"] == "token secret-token"
    assert request.headers["X-Requested-With"] == "nlsearch-app 1.0.0"


def test_create_conversation_accepts_202() -> None:
    client = make_client(lambda request: httpx.Response(202, json=conversation()))
    assert client.create_conversation("q").id == 42


def test_create_conversation_unexpected_status_keeps_body() -> None:
    client = make_client(lambda request: httpx.Response(500, text="internal error"))
    with pytest.raises(UnexpectedStatusError) as exc_info:
        client.create_conversation("q")
    assert "500" in str(exc_info.value)
    assert "internal error" in str(exc_info.value)
    assert exc_info.value.status_code == 500
    assert exc_info.value.body == "internal error"


def test_create_conversation_transport_error_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError) as exc_info:
        make_client(handler).create_conversation("q")
    assert "connection refused" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@pytest.mark.parametrize("body", ["not json", '{"questions": []}', '{"id": "abc"}'])
def test_create_conversation_bad_body_is_decode_error(body: str) -> None:
    client = make_client(lambda request: httpx.Response(200, text=body))
    with pytest.raises(DecodeError):
        client.create_conversation("q")


def test_unknown_fields_are_ignored() -> None:
    payload = conversation([question("completed", answer="repo:foo", extra_field=True)])
    payload["created_at"] = "2024-01-01T00:00:00Z"
    client = make_client(lambda request: httpx.Response(200, json=payload))
    assert client.create_conversation("q").questions[0].answer == "repo:foo"


# --- get_conversation ---

def test_get_conversation_reads_by_id() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=conversation([question("completed", answer="a")], conversation_id=7))

    conv = make_client(handler).get_conversation(7)

    assert conv.id == 7
    assert str(seen[0].url) == f"{BASE_URL}/.api/deepsearch/v1/7"
    assert seen[0].method == "GET"
    assert "Content-Type" not in seen[0].headers
    assert seen[0].headers["Authorization"] == "token secret-token"


def test_get_conversation_rejects_202() -> None:
    client = make_client(lambda request: httpx.Response(202, json=conversation()))
    with pytest.raises(UnexpectedStatusError) as exc_info:
        client.get_conversation(42)
    assert exc_info.value.status_code == 202


def test_get_conversation_not_found() -> None:
    client = make_client(lambda request: httpx.Response(404, text='{"error":"not found"}'))
    with pytest.raises(UnexpectedStatusError, match="404"):
        client.get_conversation(42)


# --- wait_for_completion ---

def test_wait_returns_on_second_poll_when_completed() -> None:
    handler = PollSequence([
        httpx.Response(200, json=conversation([question("processing")])),
        httpx.Response(200, json=conversation([question("completed", answer="repo:foo", sources=[{"repo": "x"}])])),
        httpx.Response(500, text="should not be reached"),
    ])
    result = make_client(handler).wait_for_completion(42, max_wait=5)

    assert handler.calls == 2
    assert result.answer == "repo:foo"
    assert result.sources == [{"repo": "x"}]


def test_wait_failed_status() -> None:
    handler = PollSequence([httpx.Response(200, json=conversation([question("failed")]))])
    with pytest.raises(QuestionFailedError, match="question processing failed"):
        make_client(handler).wait_for_completion(42, max_wait=5)


def test_wait_cancelled_status_is_not_a_timeout() -> None:
    handler = PollSequence([httpx.Response(200, json=conversation([question("cancelled")]))])
    with pytest.raises(QuestionCancelledError) as exc_info:
        make_client(handler).wait_for_completion(42, max_wait=5)
    assert not isinstance(exc_info.value, PollTimeoutError)
    assert "cancelled" in str(exc_info.value)


def test_wait_only_inspects_last_question() -> None:
    handler = PollSequence([
        httpx.Response(200, json=conversation([question("completed", answer="old"), question("processing")])),
        httpx.Response(200, json=conversation([question("completed", answer="old"), question("failed")])),
    ])
    with pytest.raises(QuestionFailedError):
        make_client(handler).wait_for_completion(42, max_wait=5)
    assert handler.calls == 2


def test_wait_treats_empty_or_null_questions_as_pending() -> None:
    handler = PollSequence([
        httpx.Response(200, json=conversation([])),
        httpx.Response(200, json={"id": 42, "questions": None}),
        httpx.Response(200, json=conversation([question("completed", answer="done")])),
    ])
    assert make_client(handler).wait_for_completion(42, max_wait=5).answer == "done"
    assert handler.calls == 3


def test_wait_get_error_aborts_polling() -> None:
    handler = PollSequence([
        httpx.Response(200, json=conversation([question("processing")])),
        httpx.Response(401, text="bad token"),
        httpx.Response(200, json=conversation([question("completed")])),
    ])
    with pytest.raises(UnexpectedStatusError, match="bad token"):
        make_client(handler).wait_for_completion(42, max_wait=5)
    assert handler.calls == 2


def test_wait_times_out_short_interval() -> None:
    handler = PollSequence([httpx.Response(200, json=conversation([question("processing")]))])
    with pytest.raises(PollTimeoutError, match="timeout waiting for response"):
        make_client(handler).wait_for_completion(42, max_wait=0.05)
    assert handler.calls >= 1


def test_wait_times_out_within_one_interval_of_max_wait() -> None:
    handler = PollSequence([httpx.Response(200, json=conversation([]))])
    started = time.monotonic()
    with pytest.raises(PollTimeoutError):
        make_client(handler, poll_interval=1.0).wait_for_completion(42, max_wait=2)
    elapsed = time.monotonic() - started
    assert 2.0 <= elapsed < 3.5


def test_wait_already_cancelled_makes_no_requests() -> None:
    handler = PollSequence([httpx.Response(200, json=conversation([question("completed")]))])
    cancel = CancellationSignal()
    cancel.cancel("caller went away")
    with pytest.raises(RequestCancelledError) as exc_info:
        make_client(handler).wait_for_completion(42, max_wait=5, cancel=cancel)
    assert exc_info.value.reason == "caller went away"
    assert handler.calls == 0


def test_wait_cancel_interrupts_the_interval() -> None:
    handler = PollSequence([httpx.Response(200, json=conversation([question("processing")]))])
    cancel = CancellationSignal()
    timer = threading.Timer(0.1, cancel.cancel, args=("stop",))
    timer.start()
    started = time.monotonic()
    try:
        with pytest.raises(RequestCancelledError, match="stop"):
            make_client(handler, poll_interval=10.0).wait_for_completion(42, max_wait=60, cancel=cancel)
    finally:
        timer.cancel()
    assert time.monotonic() - started < 2.0
    assert handler.calls == 0


def test_cancellation_keeps_first_reason() -> None:
    cancel = CancellationSignal()
    assert not cancel.is_cancelled()
    cancel.cancel("first")
    cancel.cancel("second")
    assert cancel.is_cancelled()
    assert cancel.reason == "first"


def test_client_context_manager_closes_transport() -> None:
    http_client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    with DeepSearchClient(BASE_URL, "t", http_client=http_client):
        pass
    assert http_client.is_closed


# --- null fields from the remote ---

def test_null_question_fields_take_defaults() -> None:
    payload = {
        "id": 42,
        "questions": [{"id": None, "conversation_id": None, "question": None, "status": None,
                       "answer": None, "sources": None, "stats": None}],
    }
    client = make_client(lambda request: httpx.Response(200, json=payload))
    q = client.get_conversation(42).questions[0]
    assert (q.id, q.conversation_id, q.question, q.status, q.answer) == (0, 0, "", "", "")
    assert q.sources is None


def test_wait_keeps_polling_while_answer_is_null() -> None:
    handler = PollSequence([
        httpx.Response(200, json=conversation([question("processing", answer=None, sources=None)])),
        httpx.Response(200, json=conversation([question("completed", answer="repo:foo")])),
    ])
    assert make_client(handler).wait_for_completion(42, max_wait=5).answer == "repo:foo"
    assert handler.calls == 2


# --- reads bounded by the deadline and the caller's signal ---

def test_cancel_during_read_beats_completed_answer() -> None:
    cancel = CancellationSignal()

    def handler(request: httpx.Request) -> httpx.Response:
        cancel.cancel("client disconnected")
        time.sleep(0.05)
        return httpx.Response(200, json=conversation([question("completed", answer="repo:x")]))

    with pytest.raises(RequestCancelledError, match="client disconnected"):
        make_client(handler).wait_for_completion(42, max_wait=5, cancel=cancel)


def test_read_finishing_after_deadline_is_a_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        time.sleep(0.3)
        return httpx.Response(200, json=conversation([question("completed", answer="repo:x")]))

    with pytest.raises(PollTimeoutError):
        make_client(handler).wait_for_completion(42, max_wait=0.1)


def test_read_timing_out_at_deadline_is_a_poll_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        time.sleep(0.2)
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(PollTimeoutError) as exc_info:
        make_client(handler).wait_for_completion(42, max_wait=0.1)
    assert isinstance(exc_info.value.__cause__, TransportError)


def test_read_timeout_capped_by_remaining_wait() -> None:
    timeouts: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        timeouts.append(request.extensions["timeout"]["read"])
        return httpx.Response(200, json=conversation([question("completed", answer="a")]))

    make_client(handler).wait_for_completion(42, max_wait=0.5)
    assert 0 < timeouts[0] <= 0.5


@pytest.mark.parametrize(("budget", "expected"), [(5.0, 5.0), (120.0, 30.0)])
def test_create_timeout_capped_by_budget(budget: float, expected: float) -> None:
    timeouts: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        timeouts.append(request.extensions["timeout"]["read"])
        return httpx.Response(200, json=conversation())

    make_client(handler).create_conversation("q", timeout=budget)
    assert timeouts == [expected]
