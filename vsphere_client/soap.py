#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""SOAP transport for the vim25 API

Only the requests needed by the property collector are implemented. Every
remote call goes through SoapInvoker.call, which turns SOAP faults and
transport problems into the exceptions of vsphere_client.exceptions.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final, Protocol
from xml.dom import minidom  # type: ignore[import]

import requests
import urllib3

from vsphere_client.config import ConnectionConfig
from vsphere_client.exceptions import (
    AuthenticationExpired,
    MalformedResponse,
    ObjectNotFound,
    SoapFault,
    TransportError,
)
from vsphere_client.log import logger as _logger
from vsphere_client.marshal import (
    child_elements,
    child_text,
    decode_object_content,
    decode_reference,
    decode_update_set,
    encode_filter_spec,
    encode_reference,
    escape_xml,
    first_child,
    parse_xml,
    xsi_type,
)
from vsphere_client.types import (
    FilterHandle,
    ManagedObjectReference,
    PropertyFilterSpec,
    RetrieveResult,
    UpdateBatch,
)

logger = _logger.getChild("soap")


class Invoker(Protocol):
    """The remote operations the property collector depends on"""

    def create_filter(self, spec: PropertyFilterSpec) -> FilterHandle:
        ...

    def destroy_filter(self, handle: FilterHandle) -> None:
        ...

    def wait_for_updates(
        self, handle: FilterHandle, version: str, max_wait_seconds: int
    ) -> UpdateBatch | None:
        ...

    def retrieve_properties(self, spec: PropertyFilterSpec) -> RetrieveResult:
        ...

    def continue_retrieve_properties(self, token: str) -> RetrieveResult:
        ...


#   .--templates-----------------------------------------------------------.
#   |              _                       _       _                       |
#   |             | |_ ___ _ __ ___  _ __ | | __ _| |_ ___  ___            |
#   |             | __/ _ \ '_ ` _ \| '_ \| |/ _` | __/ _ \/ __|           |
#   |             | ||  __/ | | | | | |_) | | (_| | ||  __/\__ \           |
#   |              \__\___|_| |_| |_| .__/|_|\__,_|\__\___||___/           |
#   |                               |_|                                    |
#   '----------------------------------------------------------------------'


class SoapTemplates:
    # yapf: disable
    SYSTEMINFO = (
        '<ns1:RetrieveServiceContent xsi:type="ns1:RetrieveServiceContentRequestType">'
        '  <ns1:_this type="ServiceInstance">ServiceInstance</ns1:_this>'
        '</ns1:RetrieveServiceContent>'
    )
    LOGIN = (
        '<ns1:Login xsi:type="ns1:LoginRequestType">'
        '  <ns1:_this type="SessionManager">%(sessionManager)s</ns1:_this>'
        '  <ns1:userName>%%(username)s</ns1:userName>'
        '  <ns1:password>%%(password)s</ns1:password>'
        '</ns1:Login>'
    )
    LOGOUT = (
        '<ns1:Logout xsi:type="ns1:LogoutRequestType">'
        '  <ns1:_this type="SessionManager">%(sessionManager)s</ns1:_this>'
        '</ns1:Logout>'
    )
    CREATEPROPERTYCOLLECTOR = (
        '<ns1:CreatePropertyCollector xsi:type="ns1:CreatePropertyCollectorRequestType">'
        '  <ns1:_this type="PropertyCollector">%(propertyCollector)s</ns1:_this>'
        '</ns1:CreatePropertyCollector>'
    )
    DESTROYPROPERTYCOLLECTOR = (
        '<ns1:DestroyPropertyCollector xsi:type="ns1:DestroyPropertyCollectorRequestType">'
        '  %(collector)s'
        '</ns1:DestroyPropertyCollector>'
    )
    CREATEFILTER = (
        '<ns1:CreateFilter xsi:type="ns1:CreateFilterRequestType">'
        '  %(collector)s'
        '  <ns1:spec>%(spec)s</ns1:spec>'
        '  <ns1:partialUpdates>false</ns1:partialUpdates>'
        '</ns1:CreateFilter>'
    )
    WAITFORUPDATESEX = (
        '<ns1:WaitForUpdatesEx xsi:type="ns1:WaitForUpdatesExRequestType">'
        '  %(collector)s'
        '  <ns1:version>%(version)s</ns1:version>'
        '  <ns1:options>%(options)s</ns1:options>'
        '</ns1:WaitForUpdatesEx>'
    )
    RETRIEVEPROPERTIESEX = (
        '<ns1:RetrievePropertiesEx xsi:type="ns1:RetrievePropertiesExRequestType">'
        '  <ns1:_this type="PropertyCollector">%(propertyCollector)s</ns1:_this>'
        '  <ns1:specSet>%%(spec)s</ns1:specSet>'
        '  <ns1:options></ns1:options>'
        '</ns1:RetrievePropertiesEx>'
    )
    CONTINUETOKEN = (
        '<ns1:ContinueRetrievePropertiesEx xsi:type="ns1:ContinueRetrievePropertiesExRequestType">'
        '  <ns1:_this type="PropertyCollector">%(propertyCollector)s</ns1:_this>'
        '  <ns1:token>%%(token)s</ns1:token>'
        '</ns1:ContinueRetrievePropertiesEx>'
    )
    # yapf: enable

    def __init__(self, system_fields: Mapping[str, str]) -> None:
        super().__init__()
        self.login = SoapTemplates.LOGIN % system_fields
        self.logout = SoapTemplates.LOGOUT % system_fields
        self.createpropertycollector = SoapTemplates.CREATEPROPERTYCOLLECTOR % system_fields
        self.retrievepropertiesex = SoapTemplates.RETRIEVEPROPERTIESEX % system_fields
        self.continuetoken = SoapTemplates.CONTINUETOKEN % system_fields


# .
#   .--Connection----------------------------------------------------------.
#   |             ____                       _   _                         |
#   |            / ___|___  _ __  _ __   ___| |_(_) ___  _ __              |
#   |           | |   / _ \| '_ \| '_ \ / _ \ __| |/ _ \| '_ \             |
#   |           | |__| (_) | | | | | | |  __/ |_| | (_) | | | |            |
#   |            \____\___/|_| |_|_| |_|\___|\__|_|\___/|_| |_|            |
#   |                                                                      |
#   '----------------------------------------------------------------------'


class SoapSession(requests.Session):
    """Encapsulates the HTTP session with the vSphere server"""

    ENVELOPE = (
        "<SOAP-ENV:Envelope"
        ' xmlns:SOAP-ENC="http://schemas.xmlsoap.org/soap/encoding/"'
        ' xmlns:SOAP-ENV="http://schemas.xmlsoap.org/soap/envelope/"'
        ' xmlns:soapenc="http://schemas.xmlsoap.org/soap/encoding/"'
        ' xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/"'
        ' xmlns:xsd="http://www.w3.org/2001/XMLSchema"'
        ' xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">'
        "<SOAP-ENV:Header></SOAP-ENV:Header>"
        '<SOAP-ENV:Body xmlns:ns1="urn:vim25">%s</SOAP-ENV:Body>'
        "</SOAP-ENV:Envelope>"
    )

    def __init__(self, config: ConnectionConfig) -> None:
        super().__init__()
        if config.no_cert_check:
            # Watch out: we must provide the verify keyword to every individual request call!
            # Else it will be overwritten by the REQUESTS_CA_BUNDLE env variable
            self.verify = False
            urllib3.disable_warnings(category=urllib3.exceptions.InsecureRequestWarning)

        self._post_url: Final = config.url
        self._timeout: Final = config.timeout
        self.headers.update(
            {
                "Content-Type": 'text/xml; charset="utf-8"',
                "SOAPAction": "urn:vim25/6.0",
                "User-Agent": "vsphere-client",
            }
        )

    def postsoap(self, request: str, timeout: float | None = None) -> requests.Response:
        soapdata = SoapSession.ENVELOPE % request
        # Watch out: we must provide the verify keyword to every individual request call!
        # Else it will be overwritten by the REQUESTS_CA_BUNDLE env variable
        return super().post(
            self._post_url,
            data=soapdata.encode("utf-8"),
            verify=self.verify,
            timeout=self._timeout if timeout is None else timeout,
        )

    @property
    def timeout(self) -> float:
        return self._timeout


def raise_for_fault(fault: minidom.Element) -> None:
    message = child_text(fault, "faultstring")
    detail = first_child(fault, "detail")
    fault_element = None if detail is None else next(child_elements(detail), None)
    if fault_element is None:
        raise SoapFault("ServerFault", message)

    fault_type = xsi_type(fault_element) or fault_element.localName.removesuffix("Fault")
    if fault_type == "ManagedObjectNotFound":
        obj = first_child(fault_element, "obj")
        raise ObjectNotFound(message, None if obj is None else decode_reference(obj))
    if fault_type == "NotAuthenticated":
        raise AuthenticationExpired(message)
    raise SoapFault(fault_type, message)


class SoapInvoker:
    """Encapsulates the API calls to the vSphere server

    Safe to share between threads as long as every thread works on its own
    filters: no cursor or filter state is kept here.
    """

    SYSTEMFIELDS = (
        "rootFolder",
        "propertyCollector",
        "sessionManager",
    )
    ABOUTFIELDS = (
        "apiVersion",
        "name",
        "version",
        "build",
        "vendor",
        "osType",
    )

    def __init__(self, session: SoapSession) -> None:
        super().__init__()
        self._session = session
        self.system_info = self._fetch_systeminfo()
        self._soap_templates = SoapTemplates(self.system_info)

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> SoapInvoker:
        return cls(SoapSession(config))

    def _fetch_systeminfo(self) -> dict[str, str]:
        """Retrieve basic data, which requires no login"""
        returnval = self.call(SoapTemplates.SYSTEMINFO)
        if returnval is None:
            raise MalformedResponse("Cannot get system info from vSphere server")

        system_info = {
            entry: value for entry in self.SYSTEMFIELDS if (value := child_text(returnval, entry))
        }
        if (about := first_child(returnval, "about")) is not None:
            system_info.update(
                {entry: value for entry in self.ABOUTFIELDS if (value := child_text(about, entry))}
            )

        if "propertyCollector" not in system_info or "sessionManager" not in system_info:
            raise MalformedResponse(
                "Cannot get system info from vSphere server. Please check the address and "
                "SSL certificate (if applicable) and try again."
            )
        return system_info

    def call(self, payload: str, timeout: float | None = None) -> minidom.Element | None:
        """Send one request, return the returnval element of the response (if any)"""
        try:
            response = self._session.postsoap(payload, timeout=timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Request to vSphere server failed: {exc}") from exc

        content_type = response.headers.get("Content-Type", "")
        if response.status_code != 200 and "xml" not in content_type:
            raise TransportError(f"[{response.status_code}] {response.reason}")

        document = parse_xml(response.content)
        body = first_child(document.documentElement, "Body")
        if body is None:
            raise MalformedResponse("SOAP response without body")

        result = next(child_elements(body), None)
        if result is None:
            raise MalformedResponse("SOAP response with empty body")
        if result.localName == "Fault":
            raise_for_fault(result)

        return first_child(result, "returnval")

    def login(self, user: str, password: str) -> None:
        auth = {"username": escape_xml(user), "password": escape_xml(password)}
        self.call(self._soap_templates.login % auth)
        logger.info("Logged in to %s as %s", self.system_info.get("name", "vSphere"), user)

    def logout(self) -> None:
        self.call(self._soap_templates.logout)

    def create_filter(self, spec: PropertyFilterSpec) -> FilterHandle:
        # The version passed to WaitForUpdatesEx belongs to a collector, not to a
        # filter. Every filter gets a collector of its own, so that independent
        # watchers never see each other's updates or versions.
        collector = decode_reference(
            self._require(self.call(self._soap_templates.createpropertycollector))
        )
        try:
            returnval = self.call(
                SoapTemplates.CREATEFILTER
                % {
                    "collector": encode_reference("_this", collector),
                    "spec": encode_filter_spec(spec),
                }
            )
            property_filter = decode_reference(self._require(returnval))
        except BaseException:
            self._destroy_collector(collector)
            raise

        logger.debug("Created filter %s on collector %s", property_filter, collector)
        return FilterHandle(collector=collector, filter=property_filter)

    def _destroy_collector(self, collector: ManagedObjectReference) -> None:
        try:
            self.call(
                SoapTemplates.DESTROYPROPERTYCOLLECTOR
                % {"collector": encode_reference("_this", collector)}
            )
        except (TransportError, SoapFault, MalformedResponse) as exc:
            logger.warning("Cannot destroy property collector %s: %s", collector, exc)

    def destroy_filter(self, handle: FilterHandle) -> None:
        # Destroying the collector removes its filters on the server as well
        self.call(
            SoapTemplates.DESTROYPROPERTYCOLLECTOR
            % {"collector": encode_reference("_this", handle.collector)}
        )
        logger.debug("Destroyed filter %s", handle.filter)

    def wait_for_updates(
        self, handle: FilterHandle, version: str, max_wait_seconds: int
    ) -> UpdateBatch | None:
        returnval = self.call(
            SoapTemplates.WAITFORUPDATESEX
            % {
                "collector": encode_reference("_this", handle.collector),
                "version": escape_xml(version),
                "options": "<ns1:maxWaitSeconds>%d</ns1:maxWaitSeconds>" % max_wait_seconds,
            },
            # The HTTP request must outlive the server side wait
            timeout=self._session.timeout + max_wait_seconds,
        )
        if returnval is None:
            return None
        return decode_update_set(returnval)

    def retrieve_properties(self, spec: PropertyFilterSpec) -> RetrieveResult:
        request = self._soap_templates.retrievepropertiesex % {"spec": encode_filter_spec(spec)}
        return self._decode_retrieve_result(self.call(request))

    def continue_retrieve_properties(self, token: str) -> RetrieveResult:
        return self._decode_retrieve_result(
            self.call(self._soap_templates.continuetoken % {"token": escape_xml(token)})
        )

    @staticmethod
    def _decode_retrieve_result(returnval: minidom.Element | None) -> RetrieveResult:
        if returnval is None:
            return RetrieveResult(objects=())
        return RetrieveResult(
            objects=tuple(
                decode_object_content(element) for element in child_elements(returnval, "objects")
            ),
            token=child_text(returnval, "token") or None,
        )

    @staticmethod
    def _require(returnval: minidom.Element | None) -> minidom.Element:
        if returnval is None:
            raise MalformedResponse("Response without returnval")
        return returnval
