#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

from __future__ import annotations

import argparse

from pydantic import BaseModel, Field

DEFAULT_PORT = 443
DEFAULT_TIMEOUT = 60
# Upper bound for one WaitForUpdatesEx call. A watcher only notices a
# cancellation once the call returns, so this is also its reaction time.
DEFAULT_MAX_WAIT_SECONDS = 10


class ConnectionConfig(BaseModel, frozen=True):
    address: str = Field(min_length=1)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    no_cert_check: bool = False
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    max_wait_seconds: int = Field(default=DEFAULT_MAX_WAIT_SECONDS, ge=1)
    user: str | None = None
    secret: str | None = None

    @classmethod
    def from_args(cls, opt: argparse.Namespace) -> ConnectionConfig:
        return cls(
            address=opt.host_address,
            port=opt.port,
            no_cert_check=opt.no_cert_check,
            timeout=opt.timeout,
            max_wait_seconds=opt.max_wait,
            user=opt.user,
            secret=opt.secret,
        )

    @property
    def url(self) -> str:
        """
        >>> ConnectionConfig(address="vcenter.local").url
        'https://vcenter.local:443/sdk'
        """
        return f"https://{self.address}:{self.port}/sdk"
