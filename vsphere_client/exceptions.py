#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""Exceptions raised by the vSphere client"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vsphere_client.types import ManagedObjectReference

__all__ = [
    "AuthenticationExpired",
    "MalformedResponse",
    "ObjectNotFound",
    "SoapFault",
    "TaskFailed",
    "TransportError",
    "VSphereException",
    "WatchCancelled",
]


# never used directly in the code. Just some wrapper to make all of our
# exceptions handleable with one call
class VSphereException(Exception):
    pass


class TransportError(VSphereException):
    """The remote call did not produce a SOAP response

    Connection resets, timeouts and HTTP errors without a fault body end up here.
    Nothing in this package retries these.
    """


class MalformedResponse(VSphereException):
    pass


class SoapFault(VSphereException):
    """The server answered with a SOAP fault we have no dedicated class for"""

    def __init__(self, fault_type: str, message: str) -> None:
        super().__init__(f"{fault_type}: {message}" if message else fault_type)
        self.fault_type = fault_type
        self.message = message


class ObjectNotFound(SoapFault):
    def __init__(self, message: str, obj: ManagedObjectReference | None = None) -> None:
        super().__init__("ManagedObjectNotFound", message)
        self.obj = obj


# Raised on NotAuthenticated faults. The session cookie is gone or timed out,
# the caller has to log in again and restart what it was doing.
class AuthenticationExpired(SoapFault):
    def __init__(self, message: str) -> None:
        super().__init__("NotAuthenticated", message)


class WatchCancelled(VSphereException):
    pass


class TaskFailed(VSphereException):
    pass
