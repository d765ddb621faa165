#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

import pytest

from tests.unit.mocks_and_helpers import FakeInvoker

from vsphere_client.property import FilterRegistry, UpdatePoller


@pytest.fixture(name="invoker")
def fixture_invoker() -> FakeInvoker:
    return FakeInvoker()


@pytest.fixture(name="registry")
def fixture_registry(invoker: FakeInvoker) -> FilterRegistry:
    return FilterRegistry(invoker)


@pytest.fixture(name="poller")
def fixture_poller(invoker: FakeInvoker) -> UpdatePoller:
    return UpdatePoller(invoker, max_wait_seconds=10)
