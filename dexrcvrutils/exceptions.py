# -*- coding: utf-8 -*-
#
# SPDX-FileCopyrightText: © 2023 The dexrcvrutils Authors
# SPDX-License-Identifier: MIT
"""Common exceptions for dexrcvrutils."""

from typing import Any, Optional


class Error(Exception):
    """Base class for the errors."""


class CommandLineError(Error):
    """Error with commandline parameters provided."""


class ConnectionFailed(Error):
    """It was not possible to connect to the receiver."""

    def __init__(self, message: str = "Unable to connect to the receiver.") -> None:
        super().__init__(message)


class TransportError(Error):
    """Reading from or writing to the receiver failed, or timed out."""

    def __init__(self, message: str = "Unable to communicate with receiver.") -> None:
        super().__init__(message)


class InvalidResponse(Error):
    """The response received from the receiver was not understood"""

    def __init__(self, response: str) -> None:
        super().__init__(f"Invalid response received:\n{response}")


class FramingError(InvalidResponse):
    """The packet is not framed correctly (sync byte, length, short read)."""


class ChecksumError(InvalidResponse):
    def __init__(self, wire: int, calculated: Optional[int]) -> None:
        if calculated is not None:
            message = f"Response checksum not matching: {wire:04x} (wire) != {calculated:04x} (calculated)"
        else:
            message = f"Unable to calculate checksum. Expected {wire:04x}."

        super().__init__(message)
        self.wire = wire
        self.calculated = calculated


class ProtocolError(InvalidResponse):
    """The receiver did not acknowledge the command."""

    def __init__(self, message: str = "not acked") -> None:
        super().__init__(message)


class DecodeError(InvalidResponse):
    """The payload could not be decoded as the expected structure."""


class InvalidGlucoseUnit(DecodeError):
    """Unable to parse the given glucose unit"""

    def __init__(self, unit: Any) -> None:
        super().__init__(f"Invalid glucose unit received: {unit!r}")
