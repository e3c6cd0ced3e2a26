# -*- coding: utf-8 -*-
#
# SPDX-FileCopyrightText: © 2023 The dexrcvrutils Authors
# SPDX-License-Identifier: MIT
"""Common routines and base driver class for serial-based receivers.
"""

import logging
from typing import Optional

import construct
import serial

from dexrcvrutils import exceptions
from dexrcvrutils.support import dexcom_protocol

# Largest single read issued to the port.
_READ_CHUNK_SIZE = 128


def read_exactly(
    port, size: int, underflow_error: type[exceptions.Error] = exceptions.TransportError
) -> bytes:
    """Read exactly size bytes from the port, tolerating short reads.

    Args:
      port: a serial.Serial-like object, with a blocking read(size) bounded by
        its own timeout.
      size: the number of bytes to read.
      underflow_error: the exception to raise if the port stops returning data
        (a read timeout) after some, but not all, of the bytes were collected.

    Raises:
      TransportError: if the port fails to read, or times out before returning
        any data.
    """
    chunks = []
    remaining = size
    while remaining > 0:
        try:
            chunk = port.read(min(remaining, _READ_CHUNK_SIZE))
        except (serial.SerialException, OSError) as e:
            raise exceptions.TransportError(f"Error reading from receiver: {e}") from e

        if not chunk:
            if remaining == size:
                raise exceptions.TransportError(
                    f"Timeout waiting for {size} bytes from receiver."
                )
            raise underflow_error(
                f"underflow: received {size - remaining} of {size} bytes"
            )

        chunks.append(chunk)
        remaining -= len(chunk)

    return b"".join(chunks)


def read_frame(port) -> bytes:
    """Read one full packet from the port, checksum included.

    The packet is read in two steps: the header (sync byte, length and command)
    first, then the rest of the packet as described by the length field. The
    packet is not validated beyond its header, see
    dexcom_protocol.parse_packet.
    """
    header_data = read_exactly(
        port, dexcom_protocol.PACKET_HEADER.sizeof(), exceptions.FramingError
    )
    try:
        header = dexcom_protocol.PACKET_HEADER.parse(header_data)
    except construct.ConstError as e:
        raise exceptions.FramingError(f"bad sync: {header_data!r}") from e

    if header.length < dexcom_protocol.PACKET_OVERHEAD:
        raise exceptions.FramingError(
            f"packet length {header.length} shorter than the minimum packet"
        )

    return header_data + read_exactly(port, header.length - len(header_data))


def write_frame(port, data: bytes) -> None:
    try:
        port.write(data)
        port.flush()
    except (serial.SerialException, OSError) as e:
        raise exceptions.TransportError(f"Error writing to receiver: {e}") from e


class SerialDevice:
    """A Serial-connected receiver driver base.

    This class does not implement an actual driver by itself, but provides an
    easier access to the boilerplate code required for pyserial.

    This helper assumes that communication happens on a standard 8n1
    configuration, with variable baudrate and no hardware flow control.

    The actual drivers should set the following parameters:

      BAUDRATE: (int) the speed the serial port should be opened at.

    Optional parameters available:

      TIMEOUT: (float, default: 1) the read timeout in seconds as defined by
        pyserial.

    After initialization, the following attributes can be used by the driver:
      serial_: (serial.Serial) the open Serial object.

    """

    BAUDRATE: Optional[int] = None

    TIMEOUT: float = 1

    def __init__(self, device: Optional[str]) -> None:
        assert self.BAUDRATE is not None

        if not device:
            raise exceptions.CommandLineError("No --device parameter provided.")

        logging.info("Opening %s at %d baud.", device, self.BAUDRATE)
        try:
            self.serial_ = serial.serial_for_url(
                device,
                baudrate=self.BAUDRATE,
                timeout=self.TIMEOUT,
                write_timeout=self.TIMEOUT,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
            )
        except serial.SerialException as e:
            raise exceptions.ConnectionFailed(f"Unable to open {device}: {e}") from e

    def close(self) -> None:
        self.serial_.close()
