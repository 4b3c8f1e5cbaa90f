"""
Unit tests for RequestContext deadline and cancellation handling.
"""

import time

import pytest

from src.domain.context import RequestContext
from src.domain.exceptions import DeadlineExceeded


class TestRequestContext:
    def test_no_deadline_never_expires(self) -> None:
        ctx = RequestContext()
        assert ctx.remaining() is None
        assert ctx.done() is False
        ctx.check()

    def test_request_ids_are_unique(self) -> None:
        assert RequestContext().request_id != RequestContext().request_id

    def test_with_timeout_sets_remaining(self) -> None:
        ctx = RequestContext.with_timeout(30)
        remaining = ctx.remaining()
        assert remaining is not None
        assert 0 < remaining <= 30

    def test_with_timeout_keeps_request_id(self) -> None:
        ctx = RequestContext.with_timeout(30, request_id="req-1")
        assert ctx.request_id == "req-1"
        assert ctx.as_dict() == {"request_id": "req-1"}

    def test_expired_deadline_fails_check(self) -> None:
        ctx = RequestContext(deadline=time.monotonic() - 1)
        assert ctx.remaining() == 0
        assert ctx.done() is True
        with pytest.raises(DeadlineExceeded, match="deadline exceeded"):
            ctx.check()

    def test_cancel_fails_check(self) -> None:
        ctx = RequestContext.with_timeout(30)
        ctx.cancel()
        assert ctx.done() is True
        with pytest.raises(DeadlineExceeded, match="cancelled"):
            ctx.check()

    def test_cancel_runs_registered_callbacks_once(self) -> None:
        ctx = RequestContext()
        calls: list[str] = []
        ctx.on_cancel(lambda: calls.append("abort"))

        ctx.cancel()
        ctx.cancel()

        assert calls == ["abort"]
        assert ctx.cancelled() is True

    def test_unregistered_callback_not_run(self) -> None:
        ctx = RequestContext()
        calls: list[str] = []
        unregister = ctx.on_cancel(lambda: calls.append("abort"))

        unregister()
        ctx.cancel()

        assert calls == []

    def test_on_cancel_after_cancel_runs_immediately(self) -> None:
        ctx = RequestContext()
        ctx.cancel()
        calls: list[str] = []

        ctx.on_cancel(lambda: calls.append("abort"))

        assert calls == ["abort"]

    def test_expired_deadline_is_not_cancelled(self) -> None:
        ctx = RequestContext(deadline=time.monotonic() - 1)
        assert ctx.done() is True
        assert ctx.cancelled() is False
