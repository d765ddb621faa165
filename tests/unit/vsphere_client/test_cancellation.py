#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

import threading
import time

import pytest

from vsphere_client.property import Cancellation
from vsphere_client.property.cancellation import WatchCancelled


def test_not_cancelled() -> None:
    cancellation = Cancellation()

    assert not cancellation.cancelled
    assert cancellation.remaining() is None
    cancellation.raise_if_cancelled()


def test_cancel_from_other_thread() -> None:
    cancellation = Cancellation()
    thread = threading.Thread(target=cancellation.cancel)
    thread.start()
    thread.join()

    assert cancellation.cancelled
    with pytest.raises(WatchCancelled, match="Watch cancelled"):
        cancellation.raise_if_cancelled()


def test_deadline_exceeded() -> None:
    cancellation = Cancellation(deadline=time.monotonic() - 1)

    assert cancellation.cancelled
    assert cancellation.remaining() == 1
    with pytest.raises(WatchCancelled, match="deadline exceeded"):
        cancellation.raise_if_cancelled()


def test_remaining() -> None:
    cancellation = Cancellation.after(30)

    assert not cancellation.cancelled
    assert 29 <= (cancellation.remaining() or 0) <= 30
