#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""Translation between vim25 XML fragments and the types of this package

The vim25 schema is not available at runtime, so values are decoded by their
xsi:type only. Typed leaves (xsd:int, xsd:dateTime, ...) become the matching
Python objects, complex types become dicts and untyped leaves inside complex
types stay strings.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any
from xml.dom import minidom  # type: ignore[import]
from xml.parsers.expat import ExpatError

import dateutil.parser

from vsphere_client.exceptions import MalformedResponse
from vsphere_client.types import (
    FilterUpdate,
    ManagedObjectReference,
    ObjectContent,
    ObjectUpdate,
    PropertyChange,
    PropertyChangeOp,
    PropertyFilterSpec,
    UpdateBatch,
)

XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

ESCAPED_CHARS = {"&": "&amp;", ">": "&gt;", "<": "&lt;", "'": "&apos;", '"': "&quot;"}


#   .--encode--------------------------------------------------------------.
#   |                                          _                           |
#   |                 ___ _ __   ___ ___   __| | ___                       |
#   |                / _ \ '_ \ / __/ _ \ / _` |/ _ \                      |
#   |               |  __/ | | | (_| (_) | (_| |  __/                      |
#   |                \___|_| |_|\___\___/ \__,_|\___|                      |
#   |                                                                      |
#   '----------------------------------------------------------------------'


def escape_xml(text: str) -> str:
    """
    >>> escape_xml("<b>&'")
    '&lt;b&gt;&amp;&apos;'
    """
    return "".join(ESCAPED_CHARS.get(c, c) for c in text)


def encode_reference(tag: str, ref: ManagedObjectReference) -> str:
    """
    >>> encode_reference("obj", ManagedObjectReference("VirtualMachine", "vm-42"))
    '<ns1:obj type="VirtualMachine">vm-42</ns1:obj>'
    """
    return '<ns1:%s type="%s">%s</ns1:%s>' % (
        tag,
        escape_xml(ref.type),
        escape_xml(ref.value),
        tag,
    )


def encode_filter_spec(spec: PropertyFilterSpec) -> str:
    """The content of a vim25 PropertyFilterSpec element"""
    prop_sets = []
    for type_name, paths in spec.property_sets().items():
        if paths is None:
            selection = "<ns1:all>true</ns1:all>"
        else:
            selection = "".join(
                "<ns1:pathSet>%s</ns1:pathSet>" % escape_xml(path) for path in paths
            )
        prop_sets.append(
            "<ns1:propSet><ns1:type>%s</ns1:type>%s</ns1:propSet>"
            % (escape_xml(type_name), selection)
        )

    object_sets = [
        "<ns1:objectSet>%s<ns1:skip>false</ns1:skip></ns1:objectSet>" % encode_reference("obj", obj)
        for obj in spec.objects
    ]
    return "".join(prop_sets + object_sets)


# .
#   .--decode--------------------------------------------------------------.
#   |                    _                    _                            |
#   |                 __| | ___  ___ ___   __| | ___                       |
#   |                / _` |/ _ \/ __/ _ \ / _` |/ _ \                      |
#   |               | (_| |  __/ (_| (_) | (_| |  __/                      |
#   |                \__,_|\___|\___\___/ \__,_|\___|                      |
#   |                                                                      |
#   '----------------------------------------------------------------------'


def parse_xml(raw: bytes | str) -> minidom.Document:
    try:
        return minidom.parseString(raw)
    except (ExpatError, ValueError) as exc:
        raise MalformedResponse("Cannot parse response: %s" % exc) from exc


def child_elements(node: minidom.Node, name: str | None = None) -> Iterator[minidom.Element]:
    for child in node.childNodes:
        if child.nodeType != child.ELEMENT_NODE:
            continue
        if name is None or child.localName == name:
            yield child


def first_child(node: minidom.Node, name: str) -> minidom.Element | None:
    return next(child_elements(node, name), None)


def required_child(node: minidom.Node, name: str) -> minidom.Element:
    if (child := first_child(node, name)) is None:
        raise MalformedResponse(f"<{node.localName}> has no <{name}>")
    return child


def text(node: minidom.Node) -> str:
    return "".join(
        child.data
        for child in node.childNodes
        if child.nodeType in (child.TEXT_NODE, child.CDATA_SECTION_NODE)
    )


def child_text(node: minidom.Node, name: str, default: str = "") -> str:
    if (child := first_child(node, name)) is None:
        return default
    return text(child).strip()


def xsi_type(element: minidom.Element) -> str:
    """The xsi:type of an element without its namespace prefix"""
    return element.getAttributeNS(XSI_NS, "type").rpartition(":")[2]


def decode_reference(element: minidom.Element) -> ManagedObjectReference:
    if not element.hasAttribute("type"):
        raise MalformedResponse(f"<{element.localName}> is not a managed object reference")
    return ManagedObjectReference(element.getAttribute("type"), text(element).strip())


def _decode_bool(raw: str) -> bool:
    return raw.strip() in ("true", "1")


def _decode_datetime(raw: str) -> datetime.datetime:
    return dateutil.parser.isoparse(raw.strip())


_SCALARS: Mapping[str, Callable[[str], Any]] = {
    "string": str,
    "anyURI": str,
    "base64Binary": str,
    "boolean": _decode_bool,
    "byte": int,
    "short": int,
    "int": int,
    "long": int,
    "float": float,
    "double": float,
    "dateTime": _decode_datetime,
}


def decode_value(element: minidom.Element) -> Any:
    # Array items carry no xsi:type, their tag names the type: <int>3</int>
    type_name = xsi_type(element)
    if not type_name and element.localName in _SCALARS:
        type_name = element.localName

    if type_name == "ManagedObjectReference":
        return decode_reference(element)
    if type_name.startswith("ArrayOf"):
        return [decode_value(item) for item in child_elements(element)]
    if type_name in _SCALARS:
        try:
            return _SCALARS[type_name](text(element))
        except ValueError as exc:
            raise MalformedResponse(f"Invalid {type_name} value: {text(element)!r}") from exc

    fields = list(child_elements(element))
    if not fields:
        if element.hasAttribute("type"):
            return decode_reference(element)
        return text(element)
    return _decode_complex(fields)


def _decode_complex(fields: Iterable[minidom.Element]) -> dict[str, Any]:
    # Without the schema a repeated field with a single entry is
    # indistinguishable from a plain field, it is decoded as the latter.
    grouped: dict[str, list[Any]] = {}
    for field in fields:
        grouped.setdefault(field.localName, []).append(decode_value(field))
    return {name: values[0] if len(values) == 1 else values for name, values in grouped.items()}


def decode_change(obj: ManagedObjectReference, element: minidom.Element) -> PropertyChange:
    raw_op = child_text(element, "op")
    try:
        op = PropertyChangeOp(raw_op)
    except ValueError as exc:
        raise MalformedResponse(f"Unknown property change operation: {raw_op!r}") from exc

    val = first_child(element, "val")
    return PropertyChange(
        obj=obj,
        name=child_text(element, "name"),
        op=op,
        val=None if val is None else decode_value(val),
    )


def decode_update_set(returnval: minidom.Element) -> UpdateBatch:
    """Decode the returnval of WaitForUpdatesEx (a vim25 UpdateSet)"""
    filter_updates = []
    for filter_set in child_elements(returnval, "filterSet"):
        object_updates = []
        for object_set in child_elements(filter_set, "objectSet"):
            obj = decode_reference(required_child(object_set, "obj"))
            object_updates.append(
                ObjectUpdate(
                    kind=child_text(object_set, "kind"),
                    obj=obj,
                    changes=tuple(
                        decode_change(obj, change)
                        for change in child_elements(object_set, "changeSet")
                    ),
                )
            )
        filter_updates.append(
            FilterUpdate(
                filter=decode_reference(required_child(filter_set, "filter")),
                object_updates=tuple(object_updates),
            )
        )

    return UpdateBatch(
        version=text(required_child(returnval, "version")).strip(),
        filter_updates=tuple(filter_updates),
        truncated=_decode_bool(child_text(returnval, "truncated", "false")),
    )


def decode_object_content(element: minidom.Element) -> ObjectContent:
    properties = {}
    for prop_set in child_elements(element, "propSet"):
        val = first_child(prop_set, "val")
        properties[child_text(prop_set, "name")] = None if val is None else decode_value(val)

    missing = {}
    for missing_set in child_elements(element, "missingSet"):
        fault = first_child(missing_set, "fault")
        inner = None if fault is None else first_child(fault, "fault")
        missing[child_text(missing_set, "path")] = "" if inner is None else xsi_type(inner)

    return ObjectContent(
        obj=decode_reference(required_child(element, "obj")),
        properties=properties,
        missing=missing,
    )
