# -*- coding: utf-8 -*-
#
# SPDX-FileCopyrightText: © 2023 The dexrcvrutils Authors
# SPDX-License-Identifier: MIT
"""Tests for the Dexcom G5/G6 receiver driver."""

# pylint: disable=protected-access,missing-docstring

import datetime
from collections.abc import Sequence
from typing import Optional
from unittest import mock

import construct
import serial as pyserial
from absl.testing import absltest, parameterized

from dexrcvrutils import common, exceptions
from dexrcvrutils.drivers import dexcomg6
from dexrcvrutils.support import dexcom_protocol

_UTC = datetime.timezone.utc
_Command = dexcom_protocol.Command
_RecordType = dexcom_protocol.RecordType


class _FakeReceiver:
    """Serial port answering each written packet with the next scripted reply.

    Replies are returned at most chunk_size bytes per read, to simulate the
    short reads of a real serial port.
    """

    def __init__(self, replies: Sequence[bytes], chunk_size: Optional[int] = None):
        self.replies = list(replies)
        self.chunk_size = chunk_size
        self.written: list[bytes] = []
        self.closed = False
        self._pending = b""

    def write(self, data: bytes) -> int:
        self.written.append(bytes(data))
        if self.replies:
            self._pending += self.replies.pop(0)
        return len(data)

    def flush(self) -> None:
        pass

    def read(self, size: int) -> bytes:
        if self.chunk_size is not None:
            size = min(size, self.chunk_size)
        chunk, self._pending = self._pending[:size], self._pending[size:]
        return chunk

    def close(self) -> None:
        self.closed = True


def _ack(payload: bytes = b"") -> bytes:
    return dexcom_protocol.build_packet(_Command.ACK, payload)


def _nak() -> bytes:
    return dexcom_protocol.build_packet(_Command.NAK)


def _time(seconds: int) -> datetime.datetime:
    return datetime.datetime(2009, 1, 1, tzinfo=_UTC) + datetime.timedelta(
        seconds=seconds
    )


def _egv(system_seconds: int, display_seconds: int, value: int) -> bytes:
    return dexcom_protocol.EGV_RECORD.build(
        {
            "system_time": _time(system_seconds),
            "display_time": _time(display_seconds),
            "value": value,
            "reserved": b"\x00" * 15,
        }
    )


def _page(
    page_number: int,
    records: Sequence[bytes],
    record_type: int = _RecordType.EGV_DATA,
    record_count: Optional[int] = None,
    padding: bytes = b"",
) -> bytes:
    header = dexcom_protocol.DATABASE_PAGE_HEADER.build(
        {
            "index": page_number * 2,
            "record_count": len(records) if record_count is None else record_count,
            "record_type": record_type,
            "revision": 1,
            "page_number": page_number,
            "reserved": [0, 0, 0],
            "crc": 0,
        }
    )
    return _ack(header + b"".join(records) + padding)


def _page_range(start: int, end: int) -> bytes:
    return _ack(dexcom_protocol.PAGE_RANGE.build({"start": start, "end": end}))


_TWO_PAGES = [
    _page_range(0, 1),
    _page(0, [_egv(100, 3700, 120), _egv(400, 4000, 125)]),
    _page(1, [_egv(700, 4300, 131), _egv(1000, 4600, 140)]),
]


class TestDevice(parameterized.TestCase):
    def _make_device(self, replies, chunk_size=None):
        fake = _FakeReceiver(replies, chunk_size)
        with mock.patch.object(pyserial, "serial_for_url", return_value=fake):
            device = dexcomg6.Device("/dev/ttyACM0")
        return device, fake

    def test_battery_level(self):
        device, fake = self._make_device([_ack(b"\x4d")])
        self.assertEqual(77, device.get_battery_level())
        self.assertEqual([b"\x01\x06\x00\x21\x57\xf0"], fake.written)

    def test_battery_level_empty(self):
        device, _ = self._make_device([_ack()])
        with self.assertRaises(exceptions.DecodeError):
            device.get_battery_level()

    def test_not_acked(self):
        device, _ = self._make_device([_nak()])
        with self.assertRaisesRegex(exceptions.ProtocolError, "CmdNak"):
            device.get_battery_level()

    def test_ping(self):
        device, fake = self._make_device([_ack()])
        self.assertTrue(device.ping())
        self.assertEqual([b"\x01\x06\x00\x0a\x5e\x65"], fake.written)

    def test_ping_not_acked(self):
        device, _ = self._make_device(
            [dexcom_protocol.build_packet(_Command.INVALID_COMMAND)]
        )
        self.assertFalse(device.ping())

    def test_ping_no_response(self):
        device, _ = self._make_device([])
        with self.assertRaises(exceptions.TransportError):
            device.ping()

    def test_connect_failed(self):
        device, _ = self._make_device([_nak()])
        with self.assertRaises(exceptions.ConnectionFailed):
            device.connect()

    def test_disconnect(self):
        device, fake = self._make_device([])
        device.disconnect()
        self.assertTrue(fake.closed)

    def test_open_failed(self):
        with mock.patch.object(
            pyserial,
            "serial_for_url",
            side_effect=pyserial.SerialException("could not open port"),
        ):
            with self.assertRaises(exceptions.ConnectionFailed):
                dexcomg6.Device("/dev/ttyACM9")

    def test_no_device(self):
        with self.assertRaises(exceptions.CommandLineError):
            dexcomg6.Device(None)

    def test_corrupted_reply(self):
        reply = bytearray(_ack(b"\x4d"))
        reply[4] ^= 0x01
        device, _ = self._make_device([bytes(reply)])
        with self.assertRaises(exceptions.ChecksumError):
            device.get_battery_level()

    def test_transmitter_id(self):
        device, _ = self._make_device([_ack(b"8G1234\x00")])
        self.assertEqual("8G1234", device.get_transmitter_id())

    def test_transmitter_id_not_ascii(self):
        device, _ = self._make_device([_ack(b"8G\xff\xfe")])
        with self.assertRaises(exceptions.DecodeError):
            device.get_transmitter_id()

    @parameterized.parameters(
        (b"\x01", common.Unit.MMOL_L),
        (b"\x02", common.Unit.MG_DL),
    )
    def test_glucose_unit(self, payload, unit):
        device, _ = self._make_device([_ack(payload)])
        self.assertEqual(unit, device.get_glucose_unit())

    def test_glucose_unit_invalid(self):
        device, _ = self._make_device([_ack(b"\x03")])
        with self.assertRaises(exceptions.InvalidGlucoseUnit):
            device.get_glucose_unit()

    def test_glucose_unit_empty(self):
        device, _ = self._make_device([_ack()])
        with self.assertRaises(exceptions.DecodeError):
            device.get_glucose_unit()

    def test_raw_payloads(self):
        device, fake = self._make_device([_ack(b"<FirmwareHeader />"), _ack(b"xyz")])
        self.assertEqual(b"<FirmwareHeader />", device.read_firmware_header())
        self.assertEqual(b"xyz", device.read_database_partition_info())
        self.assertEqual(
            [
                dexcom_protocol.build_packet(_Command.READ_FIRMWARE_HEADER),
                dexcom_protocol.build_packet(_Command.READ_DATABASE_PARTITION_INFO),
            ],
            fake.written,
        )

    def test_partition_info_malformed(self):
        device, _ = self._make_device([_ack(b"<PartitionInfo")])
        with self.assertRaises(exceptions.DecodeError):
            device.get_partition_info()

    def test_datetime(self):
        device, _ = self._make_device(
            [
                _ack(construct.Int32ul.build(86400)),
                _ack(construct.Int32sl.build(-3600)),
            ]
        )
        self.assertEqual(
            datetime.datetime(2009, 1, 1, 23, 0, tzinfo=_UTC), device.get_datetime()
        )

    def test_meter_info(self):
        device, _ = self._make_device(
            [
                _ack(
                    b"<FirmwareHeader ProductName='Dexcom G6 Receiver' "
                    b"FirmwareVersion='5.0.1.043' />\x00\x00"
                ),
                _ack(b"8G1234"),
                _ack(b"\x4d"),
                _ack(b"\x01"),
            ]
        )
        info = device.get_meter_info()
        self.assertEqual(
            common.ReceiverInfo(
                "Dexcom G6 Receiver",
                firmware_version="5.0.1.043",
                transmitter_id="8G1234",
                battery_level=77,
                native_unit=common.Unit.MMOL_L,
            ),
            info,
        )


class TestEgvRecords(parameterized.TestCase):
    def _make_device(self, replies, chunk_size=None):
        fake = _FakeReceiver(replies, chunk_size)
        with mock.patch.object(pyserial, "serial_for_url", return_value=fake):
            device = dexcomg6.Device("/dev/ttyACM0")
        return device, fake

    @parameterized.parameters(None, 1, 7)
    def test_two_pages(self, chunk_size):
        device, fake = self._make_device(_TWO_PAGES, chunk_size)

        records = device.get_egv_records()

        self.assertEqual(
            [
                common.EgvRecord(_time(100), _time(3700), 120),
                common.EgvRecord(_time(400), _time(4000), 125),
                common.EgvRecord(_time(700), _time(4300), 131),
                common.EgvRecord(_time(1000), _time(4600), 140),
            ],
            records,
        )
        self.assertEqual(
            [
                dexcom_protocol.build_packet(_Command.READ_DATA_PAGE_RANGE, b"\x04"),
                dexcom_protocol.build_packet(
                    _Command.READ_DATA_PAGES, b"\x04\x00\x00\x00\x00\x01"
                ),
                dexcom_protocol.build_packet(
                    _Command.READ_DATA_PAGES, b"\x04\x01\x00\x00\x00\x01"
                ),
            ],
            fake.written,
        )

    def test_page_offset(self):
        device, fake = self._make_device(
            [_page_range(7, 7), _page(7, [_egv(0, 0, 99)])]
        )
        self.assertEqual(
            [common.EgvRecord(_time(0), _time(0), 99)], device.get_egv_records()
        )
        self.assertEqual(
            dexcom_protocol.build_packet(
                _Command.READ_DATA_PAGES, b"\x04\x07\x00\x00\x00\x01"
            ),
            fake.written[-1],
        )

    def test_empty_page(self):
        device, _ = self._make_device([_page_range(0, 0), _page(0, [])])
        self.assertEqual([], device.get_egv_records())

    def test_record_count_limits_decoding(self):
        # Page padding after the declared records must not be decoded.
        device, _ = self._make_device(
            [
                _page_range(0, 0),
                _page(
                    0,
                    [_egv(100, 100, 120), _egv(400, 400, 125)],
                    record_count=1,
                    padding=b"\xff" * 100,
                ),
            ]
        )
        self.assertEqual(
            [common.EgvRecord(_time(100), _time(100), 120)], device.get_egv_records()
        )

    def test_truncated_record(self):
        device, _ = self._make_device(
            [_page_range(0, 0), _page(0, [_egv(100, 100, 120)], record_count=2)]
        )
        with self.assertRaisesRegex(exceptions.DecodeError, "truncated record"):
            device.get_egv_records()

    def test_truncated_header(self):
        device, _ = self._make_device([_page_range(0, 0), _ack(b"\x00" * 10)])
        with self.assertRaises(exceptions.DecodeError):
            device.get_egv_records()

    def test_wrong_record_type(self):
        device, _ = self._make_device(
            [
                _page_range(0, 0),
                _page(0, [], record_type=_RecordType.MANUFACTURING_DATA),
            ]
        )
        with self.assertRaises(exceptions.DecodeError):
            device.get_egv_records()

    def test_invalid_page_range(self):
        device, _ = self._make_device([_page_range(5, 4)])
        with self.assertRaises(exceptions.DecodeError):
            device.get_egv_records()

    def test_short_page_range(self):
        device, _ = self._make_device([_ack(b"\x00\x00\x00\x00")])
        with self.assertRaises(exceptions.DecodeError):
            device.get_egv_records()

    def test_failure_on_second_page(self):
        device, fake = self._make_device([_TWO_PAGES[0], _TWO_PAGES[1], _nak()])
        with self.assertRaises(exceptions.ProtocolError):
            device.get_egv_records()
        self.assertLen(fake.written, 3)

    def test_timeout_on_second_page(self):
        device, _ = self._make_device(_TWO_PAGES[:2])
        with self.assertRaises(exceptions.TransportError):
            device.get_egv_records()


class TestManufacturingData(absltest.TestCase):
    def test_manufacturing_data(self):
        parameters = b"<ManufacturingParameters SerialNumber='SM12345678' />"
        record = dexcom_protocol.MANUFACTURING_RECORD.build(
            {
                "system_time": _time(86400),
                "display_time": _time(86400),
                "parameters": parameters.ljust(500, b"\x00"),
                "crc": 0,
            }
        )
        fake = _FakeReceiver(
            [
                _page_range(0, 0),
                _page(0, [record], record_type=_RecordType.MANUFACTURING_DATA),
            ]
        )
        with mock.patch.object(pyserial, "serial_for_url", return_value=fake):
            device = dexcomg6.Device("/dev/ttyACM0")

        self.assertEqual(
            [
                common.ManufacturingRecord(
                    _time(86400), _time(86400), {"SerialNumber": "SM12345678"}
                )
            ],
            device.get_manufacturing_data(),
        )
        self.assertEqual(
            dexcom_protocol.build_packet(_Command.READ_DATA_PAGE_RANGE, b"\x00"),
            fake.written[0],
        )
