#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""Show the basic information about one virtual machine of a vSphere server"""

from __future__ import annotations

import argparse
import pathlib
import sys
from collections.abc import Mapping, Sequence
from typing import Any

from vsphere_client.client import Client
from vsphere_client.config import (
    ConnectionConfig,
    DEFAULT_MAX_WAIT_SECONDS,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
)
from vsphere_client.exceptions import AuthenticationExpired, VSphereException
from vsphere_client.log import (
    configure_logger,
    logger,
    setup_console_logging,
    verbosity_to_log_level,
)
from vsphere_client.property import Cancellation
from vsphere_client.types import ManagedObjectReference
from vsphere_client.waiters import wait_for_ip

# label, property path
VM_INFO_FIELDS: Sequence[tuple[str, str]] = (
    ("Name", "name"),
    ("UUID", "config.uuid"),
    ("Guest name", "config.guestFullName"),
    ("Memory", "summary.config.memorySizeMB"),
    ("CPU", "summary.config.numCpu"),
    ("Power state", "runtime.powerState"),
    ("Boot time", "runtime.bootTime"),
    ("IP address", "guest.ipAddress"),
)

_UNITS = {
    "summary.config.memorySizeMB": "%sMB",
    "summary.config.numCpu": "%s vCPU(s)",
}


def parse_arguments(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)

    # flags
    parser.add_argument(
        "--debug", action="store_true", help="""Debug mode: let Python exceptions come through"""
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="""Log to stderr. Repeat for more details (-vv shows every state transition).""",
    )
    parser.add_argument(
        "--log-file",
        type=pathlib.Path,
        default=None,
        help="""Also write the log messages to this file.""",
    )
    parser.add_argument(
        "--no-cert-check",
        action="store_true",
        help="""Disables the checking of the servers ssl certificate""",
    )
    parser.add_argument(
        "--waitip",
        action="store_true",
        help="""Wait for the virtual machine to report an IP address before printing.""",
    )

    # optional arguments
    parser.add_argument(
        "-t",
        "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT,
        help="""Set the network timeout to vSphere to SECS seconds.""",
    )
    parser.add_argument(
        "--max-wait",
        type=int,
        default=DEFAULT_MAX_WAIT_SECONDS,
        help="""Maximum number of seconds a single wait for updates may block on the server
        (default is %d).""" % DEFAULT_MAX_WAIT_SECONDS,
    )
    parser.add_argument(
        "--waitip-timeout",
        type=int,
        default=None,
        help="""Give up waiting for the IP address after this many seconds
        (default: wait forever).""",
    )
    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help="""Alternative port number (default is 443 for the https connection).""",
    )
    parser.add_argument("-u", "--user", default=None, help="""Username for vSphere login""")
    parser.add_argument(
        "-s", "--secret", default=None, help="""Secret/Password for vSphere login"""
    )

    # positional arguments
    parser.add_argument(
        "host_address", metavar="HOST", help="""Host name or IP address of the vSphere server"""
    )
    parser.add_argument(
        "vm_id", metavar="VM_ID", help="""Managed object id of the virtual machine, e.g. vm-42"""
    )

    return parser.parse_args(argv)


def fetch_vm_info(
    client: Client, vm: ManagedObjectReference, waitip: bool, waitip_timeout: int | None
) -> Mapping[str, Any]:
    paths = [path for _label, path in VM_INFO_FIELDS]
    while True:
        properties = client.properties(vm, paths)
        if not waitip or properties.get("guest.ipAddress"):
            return properties

        logger.info("Waiting for %s to report an IP address", vm)
        cancellation = None if waitip_timeout is None else Cancellation.after(waitip_timeout)
        wait_for_ip(client.property_collector, vm, cancellation)
        # The IP is there now, read everything again
        waitip = False


def format_vm_info(properties: Mapping[str, Any]) -> list[str]:
    """
    >>> lines = format_vm_info({"name": "web01", "summary.config.numCpu": 2})
    >>> lines[0], lines[1], lines[4]
    ('Name:         web01', 'UUID:         ', 'CPU:          2 vCPU(s)')
    """
    width = max(len(label) for label, _path in VM_INFO_FIELDS) + 3
    lines = []
    for label, path in VM_INFO_FIELDS:
        value = properties.get(path)
        if value is None:
            rendered = ""
        else:
            rendered = _UNITS.get(path, "%s") % value
        lines.append(f"{label + ':':<{width}}{rendered}")
    return lines


def main(argv: Sequence[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    opt = parse_arguments(argv)

    _setup_logging(opt)

    try:
        config = ConnectionConfig.from_args(opt)
        vm = ManagedObjectReference("VirtualMachine", opt.vm_id)
        client = Client.connect(config)
        try:
            try:
                properties = fetch_vm_info(client, vm, opt.waitip, opt.waitip_timeout)
            except AuthenticationExpired:
                if not config.user:
                    raise
                logger.info("Session expired, logging in again")
                client = Client.connect(config)
                properties = fetch_vm_info(client, vm, opt.waitip, opt.waitip_timeout)
        finally:
            if config.user:
                _logout(client)

    except Exception as exc:
        if opt.debug:
            raise
        sys.stderr.write("%s\n" % exc)
        return 1

    sys.stdout.writelines("%s\n" % line for line in format_vm_info(properties))
    return 0


def _setup_logging(opt: argparse.Namespace) -> None:
    if opt.verbose:
        setup_console_logging()
    if opt.log_file:
        configure_logger(opt.log_file)
    if opt.verbose:
        logger.setLevel(verbosity_to_log_level(opt.verbose))


def _logout(client: Client) -> None:
    try:
        client.logout()
    except VSphereException as exc:
        logger.warning("Logout failed: %s", exc)


if __name__ == "__main__":
    sys.exit(main())
