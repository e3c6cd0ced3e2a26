# -*- coding: utf-8 -*-
#
# SPDX-FileCopyrightText: © 2023 The dexrcvrutils Authors
# SPDX-License-Identifier: MIT
"""Decoders for the XML payloads returned by Dexcom receivers.

Some responses (the firmware header, the database partition info, and the
manufacturing parameters) are not binary structures, but a single XML element
carrying its information as attributes, for instance:

  <FirmwareHeader SchemaVersion='1' ApiVersion='3.0.0.0' ProductName='...' />

The text is usually followed by NUL (or erased-flash 0xFF) padding.
"""

import xml.etree.ElementTree as ElementTree
from collections.abc import Sequence
from typing import Optional

import attr

from dexrcvrutils import exceptions


def parse_element(payload: bytes, tag: Optional[str] = None) -> ElementTree.Element:
    text = payload.split(b"\x00", 1)[0].rstrip(b"\xff")
    if not text.strip():
        raise exceptions.DecodeError(f"Empty XML payload: {payload[:32]!r}")

    try:
        element = ElementTree.fromstring(text)
    except ElementTree.ParseError as e:
        raise exceptions.DecodeError(f"Malformed XML payload {text!r}: {e}") from e

    if tag is not None and element.tag != tag:
        raise exceptions.DecodeError(f"Expected <{tag}> element, received <{element.tag}>")

    return element


def parse_attributes(payload: bytes, tag: Optional[str] = None) -> dict[str, str]:
    return dict(parse_element(payload, tag).attrib)


@attr.s(auto_attribs=True, frozen=True)
class FirmwareHeader:
    schema_version: Optional[str] = None
    api_version: Optional[str] = None
    test_api_version: Optional[str] = None
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    software_number: Optional[str] = None
    firmware_version: Optional[str] = None
    port_version: Optional[str] = None
    rf_version: Optional[str] = None
    ble_software_version: Optional[str] = None
    ble_hardware_version: Optional[str] = None
    ble_device_address: Optional[str] = None
    dex_boot_version: Optional[str] = None


_FIRMWARE_HEADER_ATTRIBUTES = {
    "schema_version": "SchemaVersion",
    "api_version": "ApiVersion",
    "test_api_version": "TestApiVersion",
    "product_id": "ProductId",
    "product_name": "ProductName",
    "software_number": "SoftwareNumber",
    "firmware_version": "FirmwareVersion",
    "port_version": "PortVersion",
    "rf_version": "RFVersion",
    "ble_software_version": "BLESoftwareVersion",
    "ble_hardware_version": "BLEHardwareVersion",
    "ble_device_address": "BLEDeviceAddress",
    "dex_boot_version": "DexBootVersion",
}


def parse_firmware_header(payload: bytes) -> FirmwareHeader:
    attributes = parse_attributes(payload, "FirmwareHeader")
    return FirmwareHeader(
        **{
            field: attributes.get(xml_name)
            for field, xml_name in _FIRMWARE_HEADER_ATTRIBUTES.items()
        }
    )


@attr.s(auto_attribs=True, frozen=True)
class Partition:
    name: str
    id: int
    record_revision: int
    record_length: int


@attr.s(auto_attribs=True, frozen=True)
class PartitionInfo:
    schema_version: Optional[str]
    page_header_version: Optional[str]
    page_data_length: Optional[int]
    partitions: Sequence[Partition] = ()


def _int_attribute(element: ElementTree.Element, name: str) -> Optional[int]:
    value = element.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as e:
        raise exceptions.DecodeError(
            f"Attribute {name} of <{element.tag}> is not a number: {value!r}"
        ) from e


def _parse_partition(element: ElementTree.Element) -> Partition:
    name = element.get("Name")
    partition_id = _int_attribute(element, "Id")
    record_revision = _int_attribute(element, "RecordRevision")
    record_length = _int_attribute(element, "RecordLength")
    if (
        name is None
        or partition_id is None
        or record_revision is None
        or record_length is None
    ):
        raise exceptions.DecodeError(
            f"Incomplete partition description: {element.attrib!r}"
        )

    return Partition(name, partition_id, record_revision, record_length)


def parse_partition_info(payload: bytes) -> PartitionInfo:
    element = parse_element(payload, "PartitionInfo")
    return PartitionInfo(
        schema_version=element.get("SchemaVersion"),
        page_header_version=element.get("PageHeaderVersion"),
        page_data_length=_int_attribute(element, "PageDataLength"),
        partitions=tuple(
            _parse_partition(partition) for partition in element.iter("Partition")
        ),
    )
