"""Integration tests for the EventBus."""

from __future__ import annotations

from typing import Any

import pytest

from site_toolbox.core.events import ERROR, WARNING, EventBus


class TestEventBusSubscribeEmit:
    """Tests for basic subscribe/emit behaviour."""

    def test_handler_receives_emitted_kwargs(self) -> None:
        """A subscribed handler receives all keyword arguments."""
        bus = EventBus()
        received: list[dict[str, Any]] = []
        bus.subscribe("progress", lambda **kw: received.append(kw))

        bus.emit("progress", current=1, total=3, message="Planned a.png (1/3)")

        assert received == [{"current": 1, "total": 3, "message": "Planned a.png (1/3)"}]

    def test_multiple_handlers_called_in_order(self) -> None:
        """All handlers subscribed to the same event are called in order."""
        bus = EventBus()
        calls: list[str] = []
        bus.subscribe(WARNING, lambda **_kw: calls.append("a"))
        bus.subscribe(WARNING, lambda **_kw: calls.append("b"))

        bus.emit(WARNING, message="too large")

        assert calls == ["a", "b"]

    def test_emit_without_subscribers_is_noop(self) -> None:
        """Emitting an event with no subscribers does not raise."""
        EventBus().emit(ERROR, message="nobody listens")

    def test_warning_and_error_are_independent(self) -> None:
        """Subscribing to warnings does not receive errors."""
        bus = EventBus()
        received: list[str] = []
        bus.subscribe(WARNING, lambda **_kw: received.append(WARNING))

        bus.emit(ERROR, message="corrupt image")

        assert received == []


class TestEventBusUnsubscribe:
    """Tests for handler removal."""

    def test_unsubscribed_handler_not_called(self) -> None:
        """After unsubscribe, the handler is no longer invoked."""
        bus = EventBus()
        calls: list[int] = []

        def handler(**_kw: Any) -> None:
            calls.append(1)

        bus.subscribe("tick", handler)
        bus.unsubscribe("tick", handler)
        bus.emit("tick")

        assert calls == []

    def test_unsubscribe_during_emit(self) -> None:
        """A handler may unsubscribe itself while the event is dispatched."""
        bus = EventBus()
        calls: list[str] = []

        def once(**_kw: Any) -> None:
            calls.append("once")
            bus.unsubscribe("tick", once)

        bus.subscribe("tick", once)
        bus.subscribe("tick", lambda **_kw: calls.append("always"))

        bus.emit("tick")
        bus.emit("tick")

        assert calls == ["once", "always", "always"]

    def test_unsubscribe_unknown_handler_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        """Removing a handler that was never subscribed logs a warning."""
        bus = EventBus()
        bus.unsubscribe("tick", lambda **_kw: None)

        assert "was not subscribed" in caplog.text


class TestEventBusErrorHandling:
    """Tests for handler error isolation."""

    def test_failing_handler_does_not_break_others(self, caplog: pytest.LogCaptureFixture) -> None:
        """A handler that raises does not prevent subsequent handlers."""
        bus = EventBus()
        results: list[str] = []

        def bad_handler(**_kw: Any) -> None:
            msg = "boom"
            raise RuntimeError(msg)

        bus.subscribe("go", bad_handler)
        bus.subscribe("go", lambda **_kw: results.append("ok"))

        bus.emit("go")

        assert results == ["ok"]
        assert "boom" in caplog.text
