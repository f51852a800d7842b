import threading

import pytest

from topo.wait import jitter, jitter_until


class RecordingEvent:
    """Stop event that reports the requested waits and stops after `limit` of them."""

    def __init__(self, limit):
        self.limit = limit
        self.waits = []
        self._set = False

    def is_set(self):
        return self._set

    def wait(self, timeout):
        self.waits.append(timeout)
        if len(self.waits) >= self.limit:
            self._set = True
        return self._set


def test_jitter_bounds():
    assert jitter(10.0, 1.2, rng=lambda: 0.0) == 10.0
    assert jitter(10.0, 1.2, rng=lambda: 0.5) == pytest.approx(16.0)
    assert jitter(10.0, 0.0, rng=lambda: 0.9) == 10.0


def test_first_call_is_immediate_and_waits_are_jittered():
    calls = []
    event = RecordingEvent(limit=3)

    jitter_until(lambda: calls.append(len(event.waits)), 10.0, 1.2, True, event, rng=lambda: 0.5)

    assert calls == [0, 1, 2]
    assert event.waits == [pytest.approx(16.0)] * 3


def test_non_sliding_wait_subtracts_run_time():
    ticks = iter([0.0, 4.0])
    event = RecordingEvent(limit=1)

    jitter_until(lambda: None, 10.0, 0.0, False, event, clock=lambda: next(ticks))

    assert event.waits == [pytest.approx(6.0)]


def test_nothing_runs_once_stopped():
    calls = []
    stop_event = threading.Event()
    stop_event.set()

    jitter_until(lambda: calls.append(1), 0.0, 1.2, True, stop_event)

    assert calls == []


def test_failures_do_not_stop_the_loop():
    calls = []
    event = RecordingEvent(limit=2)

    def flaky():
        calls.append(1)
        raise RuntimeError("boom")

    jitter_until(flaky, 0.0, 0.0, True, event)

    assert len(calls) == 2


def test_negative_period_is_rejected():
    with pytest.raises(ValueError):
        jitter_until(lambda: None, -1.0, 0.0, True, threading.Event())
