# -*- coding: utf-8 -*-
#
# SPDX-FileCopyrightText: © 2023 The dexrcvrutils Authors
# SPDX-License-Identifier: MIT
"""Driver for Dexcom G5/G6 receivers.

Supported features:
    - get estimated glucose values (EGV), with system and display time;
    - get manufacturing parameters;
    - get firmware header and database partition information;
    - get battery level, transmitter ID and glucose unit;
    - get date and time.

Writing to the receiver (transmitter ID, date and time, unit) is not supported.

Expected device path: /dev/ttyACM0 or similar serial port device.
"""

import binascii
import datetime
import logging
from typing import Any

import construct

from dexrcvrutils import common, driver, exceptions
from dexrcvrutils.support import dexcom_protocol, dexcom_xml, serial

_DEFAULT_MODEL = "Dexcom receiver"


def _parse(struct: construct.Construct, payload: bytes, description: str) -> Any:
    try:
        return struct.parse(payload)
    except (construct.ConstructError, UnicodeDecodeError) as e:
        raise exceptions.DecodeError(
            f"Unable to decode {description} from {payload!r}: {e}"
        ) from e


class Device(serial.SerialDevice, driver.ReceiverDevice):
    BAUDRATE = 115200
    TIMEOUT = 5

    def connect(self) -> None:
        if not self.ping():
            raise exceptions.ConnectionFailed("Receiver did not acknowledge ping.")

    def disconnect(self) -> None:
        self.close()

    def execute(
        self, command: dexcom_protocol.Command, payload: bytes = b""
    ) -> bytes:
        """Send a command to the receiver, and return its response payload.

        Raises:
          ProtocolError: if the receiver replies with anything but an ACK.
        """
        pkt = dexcom_protocol.build_packet(command, payload)
        logging.debug(
            "sending packet %s: %s", command.display_name, binascii.hexlify(pkt)
        )
        serial.write_frame(self.serial_, pkt)

        raw_pkt = serial.read_frame(self.serial_)
        logging.debug("received packet: %s", binascii.hexlify(raw_pkt))
        response = dexcom_protocol.parse_packet(raw_pkt)

        if response.command != dexcom_protocol.Command.ACK:
            raise exceptions.ProtocolError(
                f"{command.display_name} not acked: received "
                f"{dexcom_protocol.describe_command(response.command)}"
            )

        return response.payload

    def ping(self) -> bool:
        try:
            self.execute(dexcom_protocol.Command.PING)
        except exceptions.ProtocolError as e:
            logging.debug("ping failed: %s", e)
            return False
        return True

    def get_battery_level(self) -> int:
        payload = self.execute(dexcom_protocol.Command.READ_BATTERY_LEVEL)
        return _parse(dexcom_protocol.BATTERY_LEVEL, payload, "battery level")

    def get_transmitter_id(self) -> str:
        payload = self.execute(dexcom_protocol.Command.READ_TRANSMITTER_ID)
        transmitter_id = _parse(
            dexcom_protocol.TRANSMITTER_ID, payload, "transmitter ID"
        )
        return transmitter_id.rstrip("\x00")

    def get_glucose_unit(self) -> common.Unit:
        payload = self.execute(dexcom_protocol.Command.READ_GLUCOSE_UNIT)
        try:
            return dexcom_protocol.GLUCOSE_UNIT.parse(payload)
        except construct.MappingError as e:
            raise exceptions.InvalidGlucoseUnit(payload[:1]) from e
        except construct.ConstructError as e:
            raise exceptions.DecodeError(
                f"Unable to decode glucose unit from {payload!r}: {e}"
            ) from e

    def read_firmware_header(self) -> bytes:
        return self.execute(dexcom_protocol.Command.READ_FIRMWARE_HEADER)

    def get_firmware_header(self) -> dexcom_xml.FirmwareHeader:
        return dexcom_xml.parse_firmware_header(self.read_firmware_header())

    def read_database_partition_info(self) -> bytes:
        return self.execute(dexcom_protocol.Command.READ_DATABASE_PARTITION_INFO)

    def get_partition_info(self) -> dexcom_xml.PartitionInfo:
        return dexcom_xml.parse_partition_info(self.read_database_partition_info())

    def get_system_time(self) -> datetime.datetime:
        payload = self.execute(dexcom_protocol.Command.READ_SYSTEM_TIME)
        return _parse(dexcom_protocol.DEXCOM_TIMESTAMP, payload, "system time")

    def get_display_time_offset(self) -> datetime.timedelta:
        payload = self.execute(dexcom_protocol.Command.READ_DISPLAY_TIME_OFFSET)
        offset = _parse(
            dexcom_protocol.DISPLAY_TIME_OFFSET, payload, "display time offset"
        )
        return datetime.timedelta(seconds=offset)

    def get_datetime(self) -> datetime.datetime:
        return self.get_system_time() + self.get_display_time_offset()

    def get_meter_info(self) -> common.ReceiverInfo:
        firmware_header = self.get_firmware_header()
        return common.ReceiverInfo(
            firmware_header.product_name or _DEFAULT_MODEL,
            firmware_version=firmware_header.firmware_version or "N/A",
            transmitter_id=self.get_transmitter_id(),
            battery_level=self.get_battery_level(),
            native_unit=self.get_glucose_unit(),
        )

    def _read_page_range(
        self, record_type: dexcom_protocol.RecordType
    ) -> construct.Container:
        payload = self.execute(
            dexcom_protocol.Command.READ_DATA_PAGE_RANGE,
            dexcom_protocol.PAGE_RANGE_REQUEST.build({"record_type": record_type}),
        )
        page_range = _parse(dexcom_protocol.PAGE_RANGE, payload, "page range")
        if page_range.start > page_range.end:
            raise exceptions.DecodeError(
                f"Invalid page range for {record_type.name}: "
                f"{page_range.start} > {page_range.end}"
            )

        logging.debug(
            "page range for %s: %d-%d",
            record_type.name,
            page_range.start,
            page_range.end,
        )
        return page_range

    def _read_records(
        self,
        record_type: dexcom_protocol.RecordType,
        record_format: construct.Construct,
    ) -> list[construct.Container]:
        """Read every record of the given type from the receiver database.

        Pages are requested one at a time, in order, from the first to the last
        of the partition. Each page must contain exactly as many records as its
        header declares.
        """
        header_size = dexcom_protocol.DATABASE_PAGE_HEADER.sizeof()
        record_size = record_format.sizeof()

        page_range = self._read_page_range(record_type)

        records: list[construct.Container] = []
        for page in range(page_range.start, page_range.end + 1):
            payload = self.execute(
                dexcom_protocol.Command.READ_DATA_PAGES,
                dexcom_protocol.READ_DATA_PAGES_REQUEST.build(
                    {"record_type": record_type, "page": page}
                ),
            )

            header = _parse(
                dexcom_protocol.DATABASE_PAGE_HEADER, payload, f"header of page {page}"
            )
            logging.debug(
                "page %d: index %d, %d records of type %d",
                page,
                header.index,
                header.record_count,
                header.record_type,
            )
            if header.record_type != record_type:
                raise exceptions.DecodeError(
                    f"Page {page} contains records of type {header.record_type}, "
                    f"expected {record_type.name}"
                )

            record_data = payload[header_size:]
            if len(record_data) < header.record_count * record_size:
                raise exceptions.DecodeError(
                    f"truncated record on page {page}: {header.record_count} records "
                    f"of {record_size} bytes declared, {len(record_data)} bytes received"
                )

            records.extend(
                _parse(
                    record_format[header.record_count],
                    record_data,
                    f"records on page {page}",
                )
            )

        return records

    def get_egv_records(self) -> list[common.EgvRecord]:
        return [
            common.EgvRecord(record.system_time, record.display_time, record.value)
            for record in self._read_records(
                dexcom_protocol.RecordType.EGV_DATA, dexcom_protocol.EGV_RECORD
            )
        ]

    def get_manufacturing_data(self) -> list[common.ManufacturingRecord]:
        return [
            common.ManufacturingRecord(
                record.system_time,
                record.display_time,
                dexcom_xml.parse_attributes(record.parameters),
            )
            for record in self._read_records(
                dexcom_protocol.RecordType.MANUFACTURING_DATA,
                dexcom_protocol.MANUFACTURING_RECORD,
            )
        ]
