#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""The usual "wait until" calls, all of them a predicate for the change watcher"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from vsphere_client.exceptions import MalformedResponse, TaskFailed
from vsphere_client.property import Cancellation, PropertyCollector
from vsphere_client.types import ManagedObjectReference, PropertyChange

TASK_TERMINAL_STATES = frozenset({"success", "error"})


def wait_for_value(
    collector: PropertyCollector,
    obj: ManagedObjectReference,
    path: str,
    condition: Callable[[Any], bool],
    cancellation: Cancellation | None = None,
) -> Any:
    """Block until the value of path on obj satisfies condition and return that value

    A removed property is passed to condition as None.
    """
    found: list[Any] = []

    def _predicate(changes: Sequence[PropertyChange]) -> bool:
        for change in changes:
            if change.name != path:
                continue
            value = change.val if change.op.is_assignment else None
            if condition(value):
                found.append(value)
                return True
        return False

    collector.wait(obj, [path], _predicate, cancellation)
    return found[-1]


def _is_address(value: Any) -> bool:
    """
    >>> _is_address("")
    False
    >>> _is_address("10.0.0.5")
    True
    """
    return isinstance(value, str) and bool(value)


def wait_for_ip(
    collector: PropertyCollector,
    vm: ManagedObjectReference,
    cancellation: Cancellation | None = None,
) -> str:
    # An empty string is assigned while the guest tools have not reported yet
    return wait_for_value(collector, vm, "guest.ipAddress", _is_address, cancellation)


def wait_for_task(
    collector: PropertyCollector,
    task: ManagedObjectReference,
    cancellation: Cancellation | None = None,
) -> Mapping[str, Any]:
    """Wait for the task to finish and return its TaskInfo

    Raises TaskFailed if the task ended in state "error" and MalformedResponse
    if its info cannot be read afterwards.
    """
    wait_for_value(
        collector, task, "info.state", lambda state: state in TASK_TERMINAL_STATES, cancellation
    )
    info = collector.retrieve_one(task, ["info"]).get("info")
    if not isinstance(info, Mapping):
        raise MalformedResponse(f"Cannot read the info of task {task.value}")
    if info.get("state") == "error":
        raise TaskFailed(_task_error_message(task, info))
    return info


def _task_error_message(task: ManagedObjectReference, info: Mapping[str, Any]) -> str:
    """
    >>> _task_error_message(
    ...     ManagedObjectReference("Task", "task-1"),
    ...     {"error": {"localizedMessage": "Insufficient disk space"}},
    ... )
    'Task task-1 failed: Insufficient disk space'
    """
    error = info.get("error")
    if isinstance(error, Mapping) and error.get("localizedMessage"):
        reason = error["localizedMessage"]
    else:
        reason = "unknown error"
    return f"Task {task.value} failed: {reason}"
