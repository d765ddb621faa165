#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from typing import Any, Union

from vsphere_client.types import (
    FilterHandle,
    FilterUpdate,
    ManagedObjectReference,
    ObjectUpdate,
    PropertyChange,
    PropertyChangeOp,
    PropertyFilterSpec,
    RetrieveResult,
    UpdateBatch,
)

VM = ManagedObjectReference("VirtualMachine", "vm-42")


def filter_handle(number: int) -> FilterHandle:
    return FilterHandle(
        ManagedObjectReference("PropertyCollector", f"session[1]pc-{number}"),
        ManagedObjectReference("PropertyFilter", f"session[1]filter-{number}"),
    )


HANDLE = filter_handle(1)
COLLECTOR, FILTER = HANDLE

# A scripted wait_for_updates answer: a batch, None (server side timeout),
# an exception to raise or a callable producing one of those.
Script = Union[UpdateBatch, None, BaseException, Callable[[], Any]]


def assign(path: str, val: Any, obj: ManagedObjectReference = VM) -> PropertyChange:
    return PropertyChange(obj, path, PropertyChangeOp.ASSIGN, val)


def batch(
    version: str,
    *changes: PropertyChange,
    filter_ref: ManagedObjectReference = FILTER,
) -> UpdateBatch:
    by_obj: dict[ManagedObjectReference, list[PropertyChange]] = {}
    for change in changes:
        by_obj.setdefault(change.obj, []).append(change)
    return UpdateBatch(
        version=version,
        filter_updates=(
            FilterUpdate(
                filter=filter_ref,
                object_updates=tuple(
                    ObjectUpdate("modify", obj, tuple(obj_changes))
                    for obj, obj_changes in by_obj.items()
                ),
            ),
        ),
    )


class FakeInvoker:
    """Records every call and answers wait_for_updates from a script

    Every create_filter hands out a new handle, the first one is HANDLE.
    Updates scripted with script_for() only answer polls of that handle, all
    other polls are answered from the shared script.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.updates: list[Script] = []
        self.handle_updates: dict[FilterHandle, list[Script]] = {}
        self._created = 0
        self._lock = threading.Lock()
        self.retrieve_results: list[RetrieveResult] = []
        self.create_error: BaseException | None = None
        self.destroy_error: BaseException | None = None

    def script(self, *updates: Script) -> None:
        self.updates.extend(updates)

    def script_for(self, handle: FilterHandle, *updates: Script) -> None:
        self.handle_updates.setdefault(handle, []).extend(updates)

    def calls_to(self, name: str) -> list[Any]:
        return [args for call, args in self.calls if call == name]

    def create_filter(self, spec: PropertyFilterSpec) -> FilterHandle:
        self.calls.append(("create_filter", spec))
        if self.create_error is not None:
            raise self.create_error
        with self._lock:
            self._created += 1
            return filter_handle(self._created)

    def destroy_filter(self, handle: FilterHandle) -> None:
        self.calls.append(("destroy_filter", handle))
        if self.destroy_error is not None:
            raise self.destroy_error

    def wait_for_updates(
        self, handle: FilterHandle, version: str, max_wait_seconds: int
    ) -> UpdateBatch | None:
        self.calls.append(("wait_for_updates", (handle, version, max_wait_seconds)))
        updates = self.handle_updates.get(handle, self.updates)
        if not updates:
            raise AssertionError(f"wait_for_updates on {handle} called more often than scripted")
        answer = updates.pop(0)
        if callable(answer):
            answer = answer()
        if isinstance(answer, BaseException):
            raise answer
        return answer

    def retrieve_properties(self, spec: PropertyFilterSpec) -> RetrieveResult:
        self.calls.append(("retrieve_properties", spec))
        return self.retrieve_results.pop(0)

    def continue_retrieve_properties(self, token: str) -> RetrieveResult:
        self.calls.append(("continue_retrieve_properties", token))
        return self.retrieve_results.pop(0)


def versions_polled(invoker: FakeInvoker) -> Iterable[str]:
    return [version for _handle, version, _wait in invoker.calls_to("wait_for_updates")]
