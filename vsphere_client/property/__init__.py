#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""Property collector: read properties and wait for their changes"""

from vsphere_client.property.cancellation import Cancellation
from vsphere_client.property.collector import PropertyCollector
from vsphere_client.property.filter import FilterRegistry
from vsphere_client.property.poller import UpdatePoller
from vsphere_client.property.reader import PropertyReader
from vsphere_client.property.watcher import ChangeWatcher, Predicate, WatchResult, WatchState

__all__ = [
    "Cancellation",
    "ChangeWatcher",
    "FilterRegistry",
    "Predicate",
    "PropertyCollector",
    "PropertyReader",
    "UpdatePoller",
    "WatchResult",
    "WatchState",
]
