from __future__ import annotations

import threading

import pytest

from careerscan.crawler.control import ActivityLog, ScrapeController
from careerscan.crawler.errors import (
    HandoffBusyError,
    HandoffCancelledError,
    HandoffNotPendingError,
    StopRequested,
)
from careerscan.crawler.handoff import HandoffPurpose, HumanHandoffGate

from conftest import FakePage


class _Waiter:
    """Runs `wait_for_human` on a worker thread and keeps the outcome."""

    def __init__(self, gate: HumanHandoffGate, page: FakePage, **kwargs) -> None:
        self.result: str | None = None
        self.error: BaseException | None = None
        self._thread = threading.Thread(target=self._run, args=(gate, page), kwargs=kwargs, daemon=True)
        self._thread.start()

    def _run(self, gate, page, **kwargs) -> None:
        try:
            self.result = gate.wait_for_human(page, **kwargs)
        except BaseException as exc:  # surfaced to the test thread
            self.error = exc

    def join(self) -> None:
        self._thread.join(timeout=5)
        assert not self._thread.is_alive()


def test_signal_releases_waiter_with_page_html():
    gate = HumanHandoffGate(HandoffPurpose.LOGIN)
    waiter = _Waiter(gate, FakePage("<html>logged in</html>"))

    assert gate.wait_until_pending(timeout=5)
    assert gate.is_waiting
    assert gate.signal() == "<html>logged in</html>"
    waiter.join()

    assert waiter.result == "<html>logged in</html>"
    assert waiter.error is None
    assert not gate.is_waiting


def test_signal_with_explicit_html_overrides_page_source():
    gate = HumanHandoffGate(HandoffPurpose.CAPTCHA)
    waiter = _Waiter(gate, FakePage("stale"))

    assert gate.wait_until_pending(timeout=5)
    gate.signal("<html>solved</html>")
    waiter.join()

    assert waiter.result == "<html>solved</html>"


def test_signal_without_pending_wait_raises():
    gate = HumanHandoffGate(HandoffPurpose.LOGIN)

    with pytest.raises(HandoffNotPendingError):
        gate.signal()
    assert gate.cancel() is False


def test_second_concurrent_wait_is_rejected():
    gate = HumanHandoffGate(HandoffPurpose.LOGIN)
    waiter = _Waiter(gate, FakePage("first"))
    assert gate.wait_until_pending(timeout=5)

    with pytest.raises(HandoffBusyError):
        gate.wait_for_human(FakePage("second"))

    gate.signal()
    waiter.join()
    assert waiter.result == "first"


def test_cancel_rejects_waiter_and_gate_is_reusable():
    gate = HumanHandoffGate(HandoffPurpose.LOGIN)
    waiter = _Waiter(gate, FakePage("x"))
    assert gate.wait_until_pending(timeout=5)

    assert gate.cancel() is True
    waiter.join()
    assert isinstance(waiter.error, HandoffCancelledError)

    again = _Waiter(gate, FakePage("y"))
    assert gate.wait_until_pending(timeout=5)
    gate.signal()
    again.join()
    assert again.result == "y"


def test_should_stop_abandons_wait():
    gate = HumanHandoffGate(HandoffPurpose.CAPTCHA)

    with pytest.raises(StopRequested):
        gate.wait_for_human(FakePage("x"), should_stop=lambda: True)
    assert not gate.is_waiting


def test_controller_stop_releases_pending_handoffs():
    controller = ScrapeController()
    waiter = _Waiter(controller.login_gate, FakePage("x"))
    assert controller.login_gate.wait_until_pending(timeout=5)
    assert controller.pending_handoffs() == [HandoffPurpose.LOGIN]

    controller.stop()
    waiter.join()

    assert isinstance(waiter.error, StopRequested)
    assert controller.stop_requested
    assert controller.pending_handoffs() == []
    assert controller.sleep(10) is True


def test_controller_routes_operator_signals():
    controller = ScrapeController()
    waiter = _Waiter(controller.captcha_gate, FakePage("<html>ok</html>"))
    assert controller.gate_for(HandoffPurpose.CAPTCHA).wait_until_pending(timeout=5)

    with pytest.raises(HandoffNotPendingError):
        controller.login_completed()
    assert controller.captcha_solved() == "<html>ok</html>"
    waiter.join()


def test_activity_log_is_bounded_and_renders_snippet():
    log = ActivityLog(capacity=2)
    log.add("planner", "visit a")
    log.add("classifier", "listing", source="acme")
    log.add("extractor", "3 jobs", level="ok")

    assert len(log) == 2
    assert log.snippet() == "[classifier] listing\n[extractor] 3 jobs"
    assert [event.agent for event in log.recent(1)] == ["extractor"]

    log.clear()
    assert log.snippet() == ""
    with pytest.raises(ValueError):
        ActivityLog(capacity=0)
