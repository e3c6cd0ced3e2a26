# -*- coding: utf-8 -*-
#
# SPDX-FileCopyrightText: © 2023 The dexrcvrutils Authors
# SPDX-License-Identifier: MIT
"""Common routines for data in CGM receivers."""

import datetime
import enum
import textwrap
from typing import Optional

import attr


class Unit(enum.Enum):
    MG_DL = "mg/dL"
    MMOL_L = "mmol/L"


def convert_glucose_unit(value: float, from_unit: Unit, to_unit: Unit) -> float:
    """Convert the given value of glucose level between units.

    Args:
      value: The value of glucose in the current unit
      from_unit: The unit value is currently expressed in
      to_unit: The unit to conver the value to: the other if empty.

    Returns:
      The converted representation of the blood glucose level.
    """
    from_unit = Unit(from_unit)
    to_unit = Unit(to_unit)

    if from_unit == to_unit:
        return value

    if from_unit == Unit.MG_DL:
        return round(value / 18.0, 2)

    return round(value * 18.0, 1)


@attr.s(auto_attribs=True, frozen=True)
class EgvRecord:
    """One estimated glucose value, as stored in the receiver database.

    Attributes:
      system_time: Receiver clock time the value was recorded at (UTC).
      display_time: Time as shown to the user on the receiver.
      value: Glucose value in mg/dL.
    """

    system_time: datetime.datetime
    display_time: datetime.datetime
    value: int

    def get_value_as(self, to_unit: Unit) -> float:
        return convert_glucose_unit(self.value, Unit.MG_DL, to_unit)

    def as_csv(self, unit: Unit) -> str:
        """Returns the record as a formatted comma-separated value string."""
        return '"%s","%s","%.2f"' % (
            self.system_time,
            self.display_time,
            self.get_value_as(unit),
        )


@attr.s(auto_attribs=True, frozen=True)
class ManufacturingRecord:
    system_time: datetime.datetime
    display_time: datetime.datetime
    parameters: dict[str, str] = attr.Factory(dict)


@attr.s(auto_attribs=True)
class ReceiverInfo:
    """General information about the receiver.

    Attributes:
      model: Human readable model name, as reported by the firmware header.
      firmware_version: Firmware version string (or N/A if not reported.)
      transmitter_id: Identifier of the transmitter paired with the receiver.
      battery_level: Battery charge level in percent, if known.
      native_unit: One of the Unit values to identify the display unit.
    """

    model: str
    firmware_version: str = "N/A"
    transmitter_id: str = "N/A"
    battery_level: Optional[int] = None
    native_unit: Unit = attr.ib(default=Unit.MG_DL, validator=attr.validators.in_(Unit))

    def __str__(self) -> str:
        battery_string = "N/A"
        if self.battery_level is not None:
            battery_string = f"{self.battery_level}%"

        return textwrap.dedent(
            f"""\
            {self.model}
            Firmware Version: {self.firmware_version}
            Transmitter ID: {self.transmitter_id}
            Battery Level: {battery_string}
            Native Unit: {self.native_unit.value}
        """
        )
