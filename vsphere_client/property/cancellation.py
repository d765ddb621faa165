#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

from __future__ import annotations

import math
import threading
import time
from typing import Final

from vsphere_client.exceptions import WatchCancelled

__all__ = ["Cancellation", "WatchCancelled"]


class Cancellation:
    """Cooperative cancellation of a watch, by deadline or by an explicit cancel()

    The watcher checks the token whenever it is about to wait for the server
    and right after the server answered. cancel() may be called from any thread.
    A poll already in flight is not interrupted, so an explicit cancel() takes
    effect after at most max_wait_seconds plus the network round trip.
    """

    def __init__(self, deadline: float | None = None) -> None:
        # deadline is a time.monotonic() value
        self.deadline: Final = deadline
        self._event = threading.Event()

    @classmethod
    def after(cls, seconds: float) -> Cancellation:
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> int | None:
        """Whole seconds left until the deadline (at least one), None without deadline"""
        if self.deadline is None:
            return None
        return max(1, math.ceil(self.deadline - time.monotonic()))

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise WatchCancelled("Watch cancelled")
        if self.cancelled:
            raise WatchCancelled("Watch deadline exceeded")
