"""Cancellable periodic execution with jitter."""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


def jitter(period: float, max_factor: float, rng: Callable[[], float] = random.random) -> float:
	"""Return a duration in [period, period + max_factor * period)."""
	if max_factor <= 0.0:
		return period
	return period + rng() * max_factor * period


def jitter_until(
	fn: Callable[[], None],
	period: float,
	jitter_factor: float,
	sliding: bool,
	stop_event: threading.Event,
	rng: Callable[[], float] = random.random,
	clock: Callable[[], float] = time.monotonic,
) -> None:
	"""
	Call fn every jittered period until stop_event is set.

	The first call happens immediately. With sliding=True the period is
	measured from the end of fn, otherwise from its start. The stop event is
	checked before every call, so no call starts once it is set; a running
	call is never interrupted.

	Args:
		fn: Work to repeat
		period: Nominal period in seconds
		jitter_factor: Maximum extra fraction of period added per wait
		sliding: Whether the period starts after fn returns
		stop_event: Set to stop the loop
	"""
	if period < 0:
		raise ValueError(f"period must be >= 0, got {period}")

	while not stop_event.is_set():
		wait_s = jitter(period, jitter_factor, rng)
		started = clock()

		try:
			fn()
		except Exception as e:
			logger.exception(f"Periodic function failed: {e}")

		if not sliding:
			wait_s = max(0.0, wait_s - (clock() - started))

		if stop_event.wait(wait_s):
			return
