#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

from __future__ import annotations

from vsphere_client.config import DEFAULT_MAX_WAIT_SECONDS
from vsphere_client.log import logger as _logger
from vsphere_client.soap import Invoker
from vsphere_client.types import FilterHandle, UpdateBatch

logger = _logger.getChild("poller")


class UpdatePoller:
    """Long polls the server for changes of one filter

    Errors are passed on as they are, retrying is up to the caller.
    """

    def __init__(
        self, invoker: Invoker, *, max_wait_seconds: int = DEFAULT_MAX_WAIT_SECONDS
    ) -> None:
        if max_wait_seconds < 1:
            raise ValueError(f"max_wait_seconds must be positive, got {max_wait_seconds}")
        self._invoker = invoker
        self.max_wait_seconds = max_wait_seconds

    def poll(
        self, handle: FilterHandle, cursor: str, max_wait_seconds: int | None = None
    ) -> UpdateBatch:
        """Block until the server has changes newer than cursor

        Returns an empty batch carrying the unchanged cursor if the server ended
        the wait without changes. That is no reason to stop polling.
        """
        wait = self._max_wait(max_wait_seconds)
        batch = self._invoker.wait_for_updates(handle, cursor, wait)
        if batch is None:
            logger.debug("No updates for %s within %ss", handle.filter, wait)
            return UpdateBatch(version=cursor)

        if batch.truncated:
            logger.debug("Truncated update set for %s, continuing with next poll", handle.filter)
        return batch

    def _max_wait(self, requested: int | None) -> int:
        # Every poll is capped, a cancellation is seen at the latest when it returns
        if requested is None:
            return self.max_wait_seconds
        return min(requested, self.max_wait_seconds)
