#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

import datetime
import logging
from collections.abc import Iterator
from pathlib import Path
from unittest import mock

import pytest

from tests.unit.mocks_and_helpers import assign, batch, FakeInvoker, VM

from vsphere_client import cli, log
from vsphere_client.client import Client
from vsphere_client.exceptions import AuthenticationExpired, ObjectNotFound
from vsphere_client.property import PropertyCollector

PROPERTIES = {
    "name": "web01",
    "config.uuid": "4215a8e1-0b2c-6d43-9f8e-21c1f0a3b4d5",
    "config.guestFullName": "Ubuntu Linux (64-bit)",
    "summary.config.memorySizeMB": 4096,
    "summary.config.numCpu": 2,
    "runtime.powerState": "poweredOn",
    "runtime.bootTime": datetime.datetime(2024, 3, 1, 10, 15, tzinfo=datetime.timezone.utc),
    "guest.ipAddress": "10.0.0.5",
}


@pytest.fixture(name="client")
def fixture_client(invoker: FakeInvoker) -> Iterator[mock.Mock]:
    client = mock.Mock(spec=Client)
    client.property_collector = PropertyCollector(invoker)
    client.properties.return_value = PROPERTIES
    with mock.patch.object(cli.Client, "connect", return_value=client) as connect:
        client.connect = connect
        yield client


def test_parse_arguments_defaults() -> None:
    opt = cli.parse_arguments(["vcenter.local", "vm-42"])

    assert opt.host_address == "vcenter.local"
    assert opt.vm_id == "vm-42"
    assert opt.port == 443
    assert opt.timeout == 60
    assert opt.max_wait == 10
    assert opt.verbose == 0
    assert opt.log_file is None
    assert not opt.waitip
    assert not opt.debug


def test_main_prints_vm_info(client: mock.Mock, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["-u", "root", "-s", "secret", "vcenter.local", "vm-42"]) == 0

    out = capsys.readouterr().out
    assert out.splitlines() == [
        "Name:         web01",
        "UUID:         4215a8e1-0b2c-6d43-9f8e-21c1f0a3b4d5",
        "Guest name:   Ubuntu Linux (64-bit)",
        "Memory:       4096MB",
        "CPU:          2 vCPU(s)",
        "Power state:  poweredOn",
        "Boot time:    2024-03-01 10:15:00+00:00",
        "IP address:   10.0.0.5",
    ]
    ((config,), _kwargs) = client.connect.call_args
    assert config.url == "https://vcenter.local:443/sdk"
    assert config.user == "root"
    client.properties.assert_called_once_with(VM, [path for _label, path in cli.VM_INFO_FIELDS])
    client.logout.assert_called_once_with()


def test_main_without_user_does_not_log_out(client: mock.Mock) -> None:
    assert cli.main(["vcenter.local", "vm-42"]) == 0
    client.logout.assert_not_called()


def test_main_waits_for_ip(
    invoker: FakeInvoker, client: mock.Mock, capsys: pytest.CaptureFixture[str]
) -> None:
    client.properties.side_effect = [{**PROPERTIES, "guest.ipAddress": None}, PROPERTIES]
    invoker.script(
        batch("1", assign("guest.ipAddress", "")),
        batch("2", assign("guest.ipAddress", "10.0.0.5")),
    )

    assert cli.main(["--waitip", "vcenter.local", "vm-42"]) == 0

    assert client.properties.call_count == 2
    assert len(invoker.calls_to("destroy_filter")) == 1
    assert "IP address:   10.0.0.5" in capsys.readouterr().out


def test_main_error(client: mock.Mock, capsys: pytest.CaptureFixture[str]) -> None:
    client.properties.side_effect = ObjectNotFound("vm-42 not found", VM)

    assert cli.main(["-u", "root", "vcenter.local", "vm-42"]) == 1

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "vm-42 not found" in captured.err
    client.logout.assert_called_once_with()


def test_main_debug_raises(client: mock.Mock) -> None:
    client.properties.side_effect = ObjectNotFound("vm-42 not found", VM)

    with pytest.raises(ObjectNotFound):
        cli.main(["--debug", "vcenter.local", "vm-42"])


def test_main_logs_in_again(client: mock.Mock) -> None:
    client.properties.side_effect = [AuthenticationExpired("session timed out"), PROPERTIES]

    assert cli.main(["-u", "root", "vcenter.local", "vm-42"]) == 0
    assert client.connect.call_count == 2


def test_main_invalid_config(client: mock.Mock, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["-p", "0", "vcenter.local", "vm-42"]) == 1
    assert "port" in capsys.readouterr().err
    client.connect.assert_not_called()


def test_main_log_file(invoker: FakeInvoker, client: mock.Mock, tmp_path: Path) -> None:
    path = tmp_path / "vsphere-vm-info.log"
    client.properties.side_effect = [{**PROPERTIES, "guest.ipAddress": None}, PROPERTIES]
    invoker.script(batch("1", assign("guest.ipAddress", "10.0.0.5")))

    assert cli.main(["--log-file", str(path), "--waitip", "vcenter.local", "vm-42"]) == 0

    for handler in log.logger.handlers:
        handler.close()
    assert log.logger.level == logging.INFO
    assert "Waiting for VirtualMachine:vm-42 to report an IP address" in path.read_text()
