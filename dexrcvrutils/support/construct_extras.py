# -*- coding: utf-8 -*-
#
# SPDX-FileCopyrightText: © 2023 The dexrcvrutils Authors
# SPDX-License-Identifier: MIT
"""Extra classes for Construct."""

import datetime

import construct

_UNIX_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


class Timestamp(construct.Adapter):
    """Adapter for converting datetime object into timestamps.

    Take two parameters: the subcon object to output the resulting timestamp as,
    and an optional epoch offset to the UNIX Epoch.

    Parsed values are timezone-aware UTC datetimes. Naive datetimes are
    accepted when building, and are taken to be in UTC.
    """

    __slots__ = ["epoch"]

    def __init__(self, subcon, epoch: int = 0) -> None:
        super().__init__(subcon)
        self.epoch = epoch

    @property
    def epoch_date(self) -> datetime.datetime:
        return _UNIX_EPOCH + datetime.timedelta(seconds=self.epoch)

    def _encode(self, obj: datetime.datetime, context, path) -> int:
        assert isinstance(obj, datetime.datetime)
        if obj.tzinfo is None:
            obj = obj.replace(tzinfo=datetime.timezone.utc)
        delta = obj - self.epoch_date
        return int(delta.total_seconds())

    def _decode(self, obj: int, context, path) -> datetime.datetime:
        return self.epoch_date + datetime.timedelta(seconds=obj)
