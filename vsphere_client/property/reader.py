#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from vsphere_client.exceptions import ObjectNotFound
from vsphere_client.log import logger as _logger
from vsphere_client.soap import Invoker
from vsphere_client.types import (
    ManagedObjectReference,
    ObjectContent,
    ObjectSpec,
    PropertyFilterSpec,
)

logger = _logger.getChild("reader")


class PropertyReader:
    """Single shot reads of current property values. No paths means all properties."""

    def __init__(self, invoker: Invoker) -> None:
        self._invoker = invoker

    def read_one(self, obj: ManagedObjectReference, paths: Iterable[str]) -> Mapping[str, Any]:
        (content,) = self.read_many([obj], paths)
        return content.properties

    def read_many(
        self, objs: Iterable[ManagedObjectReference], paths: Iterable[str]
    ) -> Sequence[ObjectContent]:
        objs = list(dict.fromkeys(objs))
        if not objs:
            return []
        paths = tuple(paths)

        by_obj = {content.obj: content for content in self._retrieve(objs, paths)}
        for obj in objs:
            if obj not in by_obj:
                raise ObjectNotFound(f"{obj} not found", obj)
            if missing := by_obj[obj].missing:
                logger.debug("Could not read %s of %s", ", ".join(sorted(missing)), obj)

        return [by_obj[obj] for obj in objs]

    def _retrieve(
        self, objs: Sequence[ManagedObjectReference], paths: tuple[str, ...]
    ) -> list[ObjectContent]:
        result = self._invoker.retrieve_properties(
            PropertyFilterSpec(ObjectSpec(obj, paths) for obj in objs)
        )
        contents = list(result.objects)
        # The server hands out large results in chunks. As long as there is a
        # token, not all data was transmitted yet.
        while result.token:
            result = self._invoker.continue_retrieve_properties(result.token)
            contents.extend(result.objects)
        return contents
