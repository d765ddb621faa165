#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""Data types of the vim25 property collector protocol"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any, Final, NamedTuple


class ManagedObjectReference(NamedTuple):
    type: str
    value: str

    def __str__(self) -> str:
        """
        >>> str(ManagedObjectReference("VirtualMachine", "vm-42"))
        'VirtualMachine:vm-42'
        """
        return f"{self.type}:{self.value}"


class ObjectSpec(NamedTuple):
    """The property paths to observe on one object. No paths means all properties."""

    obj: ManagedObjectReference
    paths: tuple[str, ...] = ()


class PropertyFilterSpec:
    """An ordered, non-empty set of objects and the property paths observed on them

    >>> vm = ManagedObjectReference("VirtualMachine", "vm-42")
    >>> PropertyFilterSpec.for_object(vm, ["guest.ipAddress"]).paths_for(vm)
    ('guest.ipAddress',)
    """

    def __init__(self, object_specs: Iterable[ObjectSpec]) -> None:
        self.object_specs: Final = tuple(object_specs)
        if not self.object_specs:
            raise ValueError("A filter specification needs at least one object")

        self._paths: Final[dict[ManagedObjectReference, tuple[str, ...]]] = {}
        for spec in self.object_specs:
            if spec.obj in self._paths:
                raise ValueError(f"{spec.obj} appears more than once in the filter specification")
            self._paths[spec.obj] = spec.paths

    @classmethod
    def for_object(cls, obj: ManagedObjectReference, paths: Iterable[str]) -> PropertyFilterSpec:
        return cls([ObjectSpec(obj, tuple(paths))])

    @property
    def objects(self) -> Sequence[ManagedObjectReference]:
        return [spec.obj for spec in self.object_specs]

    def paths_for(self, obj: ManagedObjectReference) -> tuple[str, ...] | None:
        """The observed paths of obj, None if obj is not part of this specification"""
        return self._paths.get(obj)

    def observes(self, obj: ManagedObjectReference, path: str) -> bool:
        paths = self._paths.get(obj)
        if paths is None:
            return False
        return not paths or path in paths

    def property_sets(self) -> Mapping[str, tuple[str, ...] | None]:
        """Group the observed paths by object type, the way the server expects them

        None stands for "all properties" of that type.

        >>> spec = PropertyFilterSpec([
        ...     ObjectSpec(ManagedObjectReference("VirtualMachine", "vm-1"), ("name",)),
        ...     ObjectSpec(ManagedObjectReference("VirtualMachine", "vm-2"), ("name", "guest")),
        ...     ObjectSpec(ManagedObjectReference("Task", "task-7"), ()),
        ... ])
        >>> dict(spec.property_sets())
        {'VirtualMachine': ('name', 'guest'), 'Task': None}
        """
        by_type: dict[str, tuple[str, ...] | None] = {}
        for spec in self.object_specs:
            known = by_type.get(spec.obj.type, ())
            if known is None or not spec.paths:
                by_type[spec.obj.type] = None
                continue
            by_type[spec.obj.type] = tuple(dict.fromkeys(known + spec.paths))
        return by_type

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PropertyFilterSpec):
            return NotImplemented
        return self.object_specs == other.object_specs

    def __hash__(self) -> int:
        return hash(self.object_specs)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self.object_specs)!r})"


class FilterHandle(NamedTuple):
    """A filter registered on the server, together with the collector owning it"""

    collector: ManagedObjectReference
    filter: ManagedObjectReference


class PropertyChangeOp(enum.Enum):
    ADD = "add"
    REMOVE = "remove"
    ASSIGN = "assign"
    INDIRECT_REMOVE = "indirectRemove"

    @property
    def is_assignment(self) -> bool:
        """Whether a scalar waiter should look at the value of the change

        Only a plain remove means "the property is no longer set". The operations
        on collection valued properties count as assignments.

        >>> PropertyChangeOp.ADD.is_assignment
        True
        >>> PropertyChangeOp.REMOVE.is_assignment
        False
        """
        return self is not PropertyChangeOp.REMOVE


class PropertyChange(NamedTuple):
    obj: ManagedObjectReference
    name: str
    op: PropertyChangeOp
    val: Any = None


class ObjectUpdate(NamedTuple):
    kind: str
    obj: ManagedObjectReference
    changes: tuple[PropertyChange, ...]


class FilterUpdate(NamedTuple):
    filter: ManagedObjectReference
    object_updates: tuple[ObjectUpdate, ...]


class UpdateBatch(NamedTuple):
    version: str
    filter_updates: tuple[FilterUpdate, ...] = ()
    truncated: bool = False

    def changes(self) -> Iterator[PropertyChange]:
        for filter_update in self.filter_updates:
            for object_update in filter_update.object_updates:
                yield from object_update.changes


class ObjectContent(NamedTuple):
    obj: ManagedObjectReference
    properties: Mapping[str, Any]
    # path -> type of the fault that prevented reading it
    missing: Mapping[str, str]


class RetrieveResult(NamedTuple):
    objects: tuple[ObjectContent, ...]
    token: str | None = None
