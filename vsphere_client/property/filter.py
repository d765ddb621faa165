#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

from vsphere_client.exceptions import VSphereException
from vsphere_client.log import logger as _logger
from vsphere_client.soap import Invoker
from vsphere_client.types import FilterHandle, PropertyFilterSpec

logger = _logger.getChild("filter")


class FilterRegistry:
    """Creates and destroys filters on the server

    Every created filter holds server side state until it is destroyed or the
    session ends. Whoever calls create() owns the handle and has to destroy it.
    """

    def __init__(self, invoker: Invoker) -> None:
        self._invoker = invoker

    def create(self, spec: PropertyFilterSpec) -> FilterHandle:
        handle = self._invoker.create_filter(spec)
        logger.debug("Registered %r as %s", spec, handle.filter)
        return handle

    def destroy(self, handle: FilterHandle) -> None:
        self._invoker.destroy_filter(handle)

    def release(self, handle: FilterHandle) -> None:
        """Destroy the filter, but only log errors reported by the server

        Used on cleanup paths: the filter has done its job or the caller is
        already leaving with another result, which must not be replaced.
        """
        try:
            self.destroy(handle)
        except VSphereException as exc:
            logger.warning("Cannot destroy filter %s: %s", handle.filter, exc)
