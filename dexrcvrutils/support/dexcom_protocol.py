# -*- coding: utf-8 -*-
#
# SPDX-FileCopyrightText: © 2023 The dexrcvrutils Authors
# SPDX-License-Identifier: MIT
"""Support module for the Dexcom receiver binary protocol.

Every request and response is wrapped in the same packet:

  sync (0x01), length (u16le), command (u8), payload, CRC-16/XMODEM (u16le)

where the length counts the whole packet, including the six bytes of framing.
The receiver answers every command with an ACK packet carrying the response
payload, or with one of the error commands (NAK, INVALID_COMMAND, ...).

The record database is split in partitions (one per record type), each made of
pages. Each page starts with a fixed header followed by fixed-width records.
"""

import datetime
import enum
from typing import NamedTuple, Union

import construct
import crcmod.predefined

from dexrcvrutils import common, exceptions
from dexrcvrutils.support import construct_extras

SYNC_BYTE = 0x01

# sync + length + command + checksum
PACKET_OVERHEAD = 6

DEXCOM_EPOCH = 1230768000  # 2009-01-01T00:00:00Z

_crc_xmodem = crcmod.predefined.mkPredefinedCrcFun("xmodem")


def crc_xmodem(data: bytes) -> int:
    """Calculate the CRC-16/XMODEM used by the receiver.

    Polynomial 0x1021, zero seed, no reflection and no final XOR.
    """
    return _crc_xmodem(bytes(data))


class Command(enum.IntEnum):
    NULL = 0x00
    ACK = 0x01
    NAK = 0x02
    INVALID_COMMAND = 0x03
    INVALID_PARAM = 0x04
    INCOMPLETE_PACKET_RECEIVED = 0x05
    RECEIVER_ERROR = 0x06
    INVALID_MODE = 0x07
    PING = 0x0A
    READ_FIRMWARE_HEADER = 0x0B
    READ_DATABASE_PARTITION_INFO = 0x0F
    READ_DATA_PAGE_RANGE = 0x10
    READ_DATA_PAGES = 0x11
    READ_DATA_PAGE_HEADER = 0x12
    READ_TRANSMITTER_ID = 0x19
    WRITE_TRANSMITTER_ID = 0x1A
    READ_LANGUAGE = 0x1B
    WRITE_LANGUAGE = 0x1C
    READ_DISPLAY_TIME_OFFSET = 0x1D
    WRITE_DISPLAY_TIME_OFFSET = 0x1E
    READ_RTC = 0x1F
    RESET_RECEIVER = 0x20
    READ_BATTERY_LEVEL = 0x21
    READ_SYSTEM_TIME = 0x22
    READ_SYSTEM_TIME_OFFSET = 0x23
    WRITE_SYSTEM_TIME = 0x24
    READ_GLUCOSE_UNIT = 0x25
    WRITE_GLUCOSE_UNIT = 0x26
    READ_BLINDED_MODE = 0x27
    WRITE_BLINDED_MODE = 0x28
    READ_CLOCK_MODE = 0x29
    WRITE_CLOCK_MODE = 0x2A
    READ_DEVICE_MODE = 0x2B
    ERASE_DATABASE = 0x2D
    SHUTDOWN_RECEIVER = 0x2E
    WRITE_PC_PARAMETERS = 0x2F
    READ_BATTERY_STATE = 0x30
    READ_HARDWARE_BOARD_ID = 0x31
    READ_FIRMWARE_SETTINGS = 0x36
    READ_ENABLE_SETUP_WIZARD_FLAG = 0x37
    READ_SETUP_WIZARD_STATE = 0x39
    READ_CHARGER_CURRENT_SETTING = 0x3B
    WRITE_CHARGER_CURRENT_SETTING = 0x3C

    @property
    def display_name(self) -> str:
        return "Cmd" + "".join(word.capitalize() for word in self.name.split("_"))


class RecordType(enum.IntEnum):
    MANUFACTURING_DATA = 0x00
    EGV_DATA = 0x04


AnyCommand = Union[Command, int]


def describe_command(command: AnyCommand) -> str:
    """Returns a printable name for a command code, known or not."""
    try:
        return Command(command).display_name
    except ValueError:
        return f"CmdUnknown(0x{command:02x})"


class Packet(NamedTuple):
    command: AnyCommand
    payload: bytes


PACKET_HEADER = construct.Struct(
    sync=construct.Const(SYNC_BYTE, construct.Byte),
    length=construct.Int16ul,
    command=construct.Byte,
)

_PACKET = construct.Struct(
    data=construct.RawCopy(
        construct.Struct(
            sync=construct.Const(SYNC_BYTE, construct.Byte),
            length=construct.Rebuild(
                construct.Int16ul, lambda this: len(this.payload) + PACKET_OVERHEAD
            ),
            command=construct.Byte,
            payload=construct.Bytes(lambda this: this.length - PACKET_OVERHEAD),
        ),
    ),
    checksum=construct.Checksum(
        construct.Int16ul, crc_xmodem, construct.this.data.data
    ),
)


def build_packet(command: AnyCommand, payload: bytes = b"") -> bytes:
    return _PACKET.build(
        {
            "data": {
                "value": {
                    "command": int(command),
                    "payload": bytes(payload),
                },
            }
        }
    )


def parse_packet(data: bytes) -> Packet:
    """Validate and decode a complete packet.

    Args:
      data: the full packet as read from the wire, checksum included.

    Returns:
      The command and payload carried by the packet. Commands that are not
      known are returned as plain integers.

    Raises:
      FramingError: if the packet does not start with the sync byte, is shorter
        than the minimum packet, or has a length field not matching its size.
      ChecksumError: if the trailing checksum does not match the content.
    """
    if not data or data[0] != SYNC_BYTE:
        raise exceptions.FramingError(
            f"packet does not start with sync byte: {bytes(data[:1])!r}"
        )
    if len(data) < PACKET_OVERHEAD:
        raise exceptions.FramingError(f"packet too short: {bytes(data)!r}")

    wire_checksum = construct.Int16ul.parse(data[-2:])
    calculated_checksum = crc_xmodem(data[:-2])
    if wire_checksum != calculated_checksum:
        raise exceptions.ChecksumError(wire_checksum, calculated_checksum)

    length = construct.Int16ul.parse(data[1:3])
    if length != len(data):
        raise exceptions.FramingError(
            f"length field {length} does not match packet size {len(data)}"
        )

    try:
        packet = _PACKET.parse(data).data.value
    except construct.ConstructError as e:
        raise exceptions.FramingError(str(e)) from e

    try:
        command: AnyCommand = Command(packet.command)
    except ValueError:
        command = packet.command

    return Packet(command, packet.payload)


DEXCOM_TIMESTAMP = construct_extras.Timestamp(construct.Int32ul, epoch=DEXCOM_EPOCH)


def decode_timestamp(seconds: int) -> datetime.datetime:
    """Convert seconds since the receiver epoch (2009-01-01 UTC) to a datetime."""
    return DEXCOM_TIMESTAMP.parse(construct.Int32ul.build(seconds))


PAGE_RANGE_REQUEST = construct.Struct(
    record_type=construct.Byte,
)

PAGE_RANGE = construct.Struct(
    start=construct.Int32ul,
    end=construct.Int32ul,
)

READ_DATA_PAGES_REQUEST = construct.Struct(
    record_type=construct.Byte,
    page=construct.Int32ul,
    page_count=construct.Default(construct.Byte, 1),
)

DATABASE_PAGE_HEADER = construct.Struct(
    index=construct.Int32ul,
    record_count=construct.Int32ul,
    record_type=construct.Byte,
    revision=construct.Byte,
    page_number=construct.Int32ul,
    reserved=construct.Int32ul[3],
    crc=construct.Int16ul,
)

EGV_RECORD = construct.Struct(
    system_time=DEXCOM_TIMESTAMP,
    display_time=DEXCOM_TIMESTAMP,
    value=construct.Int16ul,
    reserved=construct.Bytes(15),
)

MANUFACTURING_RECORD = construct.Struct(
    system_time=DEXCOM_TIMESTAMP,
    display_time=DEXCOM_TIMESTAMP,
    parameters=construct.Bytes(500),
    crc=construct.Int16ul,
)

_GLUCOSE_UNIT_MAPPING_TABLE = {
    common.Unit.MMOL_L: 0x01,
    common.Unit.MG_DL: 0x02,
}

GLUCOSE_UNIT = construct.Mapping(construct.Byte, _GLUCOSE_UNIT_MAPPING_TABLE)

BATTERY_LEVEL = construct.Byte

TRANSMITTER_ID = construct.GreedyString(encoding="ascii")

DISPLAY_TIME_OFFSET = construct.Int32sl
