#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from vsphere_client.config import DEFAULT_MAX_WAIT_SECONDS
from vsphere_client.property.cancellation import Cancellation
from vsphere_client.property.filter import FilterRegistry
from vsphere_client.property.poller import UpdatePoller
from vsphere_client.property.reader import PropertyReader
from vsphere_client.property.watcher import ChangeWatcher, Predicate, WatchResult
from vsphere_client.soap import Invoker
from vsphere_client.types import ManagedObjectReference, ObjectContent


class PropertyCollector:
    """Reads and waits for properties through one invoker

    Every wait() runs on a fresh ChangeWatcher, so concurrent waits from
    different threads do not interfere.
    """

    def __init__(
        self, invoker: Invoker, *, max_wait_seconds: int = DEFAULT_MAX_WAIT_SECONDS
    ) -> None:
        self._registry = FilterRegistry(invoker)
        self._poller = UpdatePoller(invoker, max_wait_seconds=max_wait_seconds)
        self._reader = PropertyReader(invoker)

    def watcher(self) -> ChangeWatcher:
        return ChangeWatcher(self._registry, self._poller)

    def wait(
        self,
        obj: ManagedObjectReference,
        paths: Iterable[str],
        predicate: Predicate,
        cancellation: Cancellation | None = None,
    ) -> WatchResult:
        return self.watcher().watch(obj, paths, predicate, cancellation)

    def retrieve_one(self, obj: ManagedObjectReference, paths: Iterable[str]) -> Mapping[str, Any]:
        return self._reader.read_one(obj, paths)

    def retrieve(
        self, objs: Iterable[ManagedObjectReference], paths: Iterable[str]
    ) -> Sequence[ObjectContent]:
        return self._reader.read_many(objs, paths)
