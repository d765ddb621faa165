#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""Wait until a condition over property changes holds

A ChangeWatcher registers a filter for the observed properties, long polls for
updates and hands every batch of relevant changes to a predicate supplied by
the caller. The watch ends when

 * the predicate returns True (SATISFIED),
 * polling, the predicate or anything else raises (FAILED) or
 * the Cancellation passed in is triggered (CANCELLED).

The filter is destroyed on every one of these paths. There is no built in
timeout, pass a Cancellation with a deadline for that:

    watcher = ChangeWatcher(FilterRegistry(invoker), UpdatePoller(invoker))
    watcher.watch(vm, ["guest.ipAddress"], has_ip, Cancellation.after(300))
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable, Sequence
from typing import NamedTuple

from vsphere_client.log import logger as _logger
from vsphere_client.log import VERBOSE
from vsphere_client.property.cancellation import Cancellation, WatchCancelled
from vsphere_client.property.filter import FilterRegistry
from vsphere_client.property.poller import UpdatePoller
from vsphere_client.types import (
    FilterHandle,
    ManagedObjectReference,
    PropertyChange,
    PropertyFilterSpec,
    UpdateBatch,
)

logger = _logger.getChild("watcher")

Predicate = Callable[[Sequence[PropertyChange]], bool]


class WatchState(enum.Enum):
    CREATED = "created"
    SUBSCRIBED = "subscribed"
    POLLING = "polling"
    EVALUATING = "evaluating"
    SATISFIED = "satisfied"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (WatchState.SATISFIED, WatchState.FAILED, WatchState.CANCELLED)


class WatchResult(NamedTuple):
    state: WatchState
    # The observed changes of the batch that satisfied the predicate
    changes: Sequence[PropertyChange]
    polls: int
    version: str


class ChangeWatcher:
    def __init__(self, registry: FilterRegistry, poller: UpdatePoller) -> None:
        self._registry = registry
        self._poller = poller
        self.state = WatchState.CREATED

    def watch(
        self,
        obj: ManagedObjectReference,
        paths: Iterable[str],
        predicate: Predicate,
        cancellation: Cancellation | None = None,
    ) -> WatchResult:
        return self.watch_spec(PropertyFilterSpec.for_object(obj, paths), predicate, cancellation)

    def watch_spec(
        self,
        spec: PropertyFilterSpec,
        predicate: Predicate,
        cancellation: Cancellation | None = None,
    ) -> WatchResult:
        if self.state is not WatchState.CREATED:
            raise RuntimeError(f"A watcher can only be used once (state: {self.state.value})")
        if cancellation is None:
            cancellation = Cancellation()

        try:
            handle = self._registry.create(spec)
        except BaseException:
            self._transition(WatchState.FAILED)
            raise

        self._transition(WatchState.SUBSCRIBED)
        try:
            return self._poll_until(handle, spec, predicate, cancellation)
        except WatchCancelled:
            self._transition(WatchState.CANCELLED)
            raise
        except BaseException:
            self._transition(WatchState.FAILED)
            raise
        finally:
            self._registry.release(handle)

    def _poll_until(
        self,
        handle: FilterHandle,
        spec: PropertyFilterSpec,
        predicate: Predicate,
        cancellation: Cancellation,
    ) -> WatchResult:
        cursor = ""
        polls = 0
        while True:
            cancellation.raise_if_cancelled()
            self._transition(WatchState.POLLING)
            batch = self._poller.poll(handle, cursor, cancellation.remaining())
            polls += 1
            # A batch arriving after the cancellation is dropped unseen
            cancellation.raise_if_cancelled()
            cursor = batch.version

            self._transition(WatchState.EVALUATING)
            changes = observed_changes(handle, spec, batch)
            logger.log(
                VERBOSE,
                "Poll %d on %s: %d observed changes, version %r",
                polls,
                handle.filter,
                len(changes),
                cursor,
            )
            if not changes:
                continue

            if predicate(changes):
                self._transition(WatchState.SATISFIED)
                return WatchResult(WatchState.SATISFIED, changes, polls, cursor)

    def _transition(self, state: WatchState) -> None:
        logger.debug("%s -> %s", self.state.value, state.value)
        self.state = state


def observed_changes(
    handle: FilterHandle, spec: PropertyFilterSpec, batch: UpdateBatch
) -> Sequence[PropertyChange]:
    """The changes of batch the caller asked for, in delivery order

    A later change of the same property replaces an earlier one. Updates of
    other filters or of objects that are not part of the filter specification are
    logged and dropped.
    """
    latest: dict[tuple[ManagedObjectReference, str], PropertyChange] = {}
    for filter_update in batch.filter_updates:
        if filter_update.filter != handle.filter:
            logger.warning(
                "Malformed response: update for unknown filter %s, ignoring it",
                filter_update.filter,
            )
            continue

        for object_update in filter_update.object_updates:
            if spec.paths_for(object_update.obj) is None:
                logger.warning(
                    "Malformed response: update for unregistered object %s, ignoring it",
                    object_update.obj,
                )
                continue

            for change in object_update.changes:
                if not spec.observes(object_update.obj, change.name):
                    continue
                key = (change.obj, change.name)
                latest.pop(key, None)
                latest[key] = change

    return list(latest.values())
