# -*- coding: utf-8 -*-
#
# SPDX-FileCopyrightText: © 2023 The dexrcvrutils Authors
# SPDX-License-Identifier: MIT

import abc
import datetime
from collections.abc import Sequence
from typing import Optional

from dexrcvrutils import common


class ReceiverDevice(abc.ABC):
    def __init__(self, device_path: Optional[str]) -> None:
        pass

    def connect(self) -> None:
        pass

    def disconnect(self) -> None:
        pass

    @abc.abstractmethod
    def get_meter_info(self) -> common.ReceiverInfo:
        """Return the device information in structured form."""
        pass

    @abc.abstractmethod
    def ping(self) -> bool:
        """Returns whether the receiver acknowledged a ping."""
        pass

    @abc.abstractmethod
    def get_battery_level(self) -> int:
        pass

    @abc.abstractmethod
    def get_transmitter_id(self) -> str:
        pass

    @abc.abstractmethod
    def get_glucose_unit(self) -> common.Unit:
        """Returns the glucose unit the receiver displays values in."""
        pass

    @abc.abstractmethod
    def read_firmware_header(self) -> bytes:
        """Returns the undecoded firmware header payload."""
        pass

    @abc.abstractmethod
    def read_database_partition_info(self) -> bytes:
        """Returns the undecoded database partition info payload."""
        pass

    @abc.abstractmethod
    def get_datetime(self) -> datetime.datetime:
        pass

    @abc.abstractmethod
    def get_egv_records(self) -> Sequence[common.EgvRecord]:
        """Returns all the glucose values stored in the receiver, in storage order.

        Either all the records are returned, or an exception is raised: there is
        no partial result.
        """
        pass
