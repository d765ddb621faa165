#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from vsphere_client.config import ConnectionConfig, DEFAULT_MAX_WAIT_SECONDS
from vsphere_client.property import Cancellation, Predicate, PropertyCollector, WatchResult
from vsphere_client.soap import SoapInvoker
from vsphere_client.types import ManagedObjectReference, ObjectContent


class Client:
    """Entry point: a connection to one vSphere server"""

    def __init__(
        self, invoker: SoapInvoker, *, max_wait_seconds: int = DEFAULT_MAX_WAIT_SECONDS
    ) -> None:
        self._invoker = invoker
        self.property_collector = PropertyCollector(invoker, max_wait_seconds=max_wait_seconds)

    @classmethod
    def connect(cls, config: ConnectionConfig) -> Client:
        """Connect to the server, log in if the config contains a user"""
        invoker = SoapInvoker.from_config(config)
        if config.user:
            invoker.login(config.user, config.secret or "")
        return cls(invoker, max_wait_seconds=config.max_wait_seconds)

    @property
    def system_info(self) -> Mapping[str, str]:
        return self._invoker.system_info

    def logout(self) -> None:
        self._invoker.logout()

    def properties(self, obj: ManagedObjectReference, paths: Iterable[str]) -> Mapping[str, Any]:
        return self.property_collector.retrieve_one(obj, paths)

    def properties_n(
        self, objs: Iterable[ManagedObjectReference], paths: Iterable[str]
    ) -> Sequence[ObjectContent]:
        return self.property_collector.retrieve(objs, paths)

    def wait_for_properties(
        self,
        obj: ManagedObjectReference,
        paths: Iterable[str],
        predicate: Predicate,
        cancellation: Cancellation | None = None,
    ) -> WatchResult:
        return self.property_collector.wait(obj, paths, predicate, cancellation)
