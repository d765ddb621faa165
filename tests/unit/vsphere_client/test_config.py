#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

import argparse

import pydantic
import pytest

from vsphere_client.config import ConnectionConfig


def test_defaults() -> None:
    config = ConnectionConfig(address="vcenter.local")

    assert config.port == 443
    assert config.timeout == 60
    assert config.max_wait_seconds == 10
    assert not config.no_cert_check
    assert config.user is None


@pytest.mark.parametrize(
    "kwargs",
    [
        pytest.param({"address": ""}, id="empty address"),
        pytest.param({"address": "vcenter.local", "port": 0}, id="port too small"),
        pytest.param({"address": "vcenter.local", "port": 65536}, id="port too large"),
        pytest.param({"address": "vcenter.local", "timeout": 0}, id="timeout"),
        pytest.param({"address": "vcenter.local", "max_wait_seconds": 0}, id="max wait"),
    ],
)
def test_invalid(kwargs: dict[str, object]) -> None:
    with pytest.raises(pydantic.ValidationError):
        ConnectionConfig(**kwargs)


def test_frozen() -> None:
    config = ConnectionConfig(address="vcenter.local")

    with pytest.raises(pydantic.ValidationError):
        config.port = 8443  # type: ignore[misc]


def test_from_args() -> None:
    config = ConnectionConfig.from_args(
        argparse.Namespace(
            host_address="esx01",
            port=8443,
            no_cert_check=True,
            timeout=30,
            max_wait=5,
            user="root",
            secret="secret",
        )
    )

    assert config == ConnectionConfig(
        address="esx01",
        port=8443,
        no_cert_check=True,
        timeout=30,
        max_wait_seconds=5,
        user="root",
        secret="secret",
    )
    assert config.url == "https://esx01:8443/sdk"
