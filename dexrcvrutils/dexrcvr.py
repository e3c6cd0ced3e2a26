#!/usr/bin/env python3
# -*- coding: utf-8 -*-
#
# SPDX-FileCopyrightText: © 2023 The dexrcvrutils Authors
# SPDX-License-Identifier: MIT
"""Utility to read data out of Dexcom receivers."""

import argparse
import logging
import sys

import attr

from dexrcvrutils import common, exceptions
from dexrcvrutils.drivers import dexcomg6


def _print_partition_info(device: dexcomg6.Device) -> None:
    info = device.get_partition_info()
    print(f"Schema Version: {info.schema_version}")
    print(f"Page Header Version: {info.page_header_version}")
    print(f"Page Data Length: {info.page_data_length}")
    for partition in info.partitions:
        print(
            f"Partition {partition.id}: {partition.name} "
            f"(revision {partition.record_revision}, "
            f"{partition.record_length} bytes per record)"
        )


def _run_action(device: dexcomg6.Device, args: argparse.Namespace) -> int:
    if args.action == "info":
        print(device.get_meter_info(), end="")
        try:
            time_str = str(device.get_datetime())
        except exceptions.DecodeError:
            time_str = "INVALID"
        print(f"Time: {time_str}")
    elif args.action == "ping":
        if not device.ping():
            print("Receiver did not acknowledge ping.")
            return 1
        print("Receiver acknowledged ping.")
    elif args.action == "battery":
        print(f"Battery Level: {device.get_battery_level()}%")
    elif args.action == "transmitter":
        print(f"Transmitter ID: {device.get_transmitter_id()}")
    elif args.action == "unit":
        print(f"Glucose Unit: {device.get_glucose_unit().value}")
    elif args.action == "firmware":
        for name, value in attr.asdict(device.get_firmware_header()).items():
            print(f"{name}: {value if value is not None else 'N/A'}")
    elif args.action == "partitions":
        _print_partition_info(device)
    elif args.action == "manufacturing":
        for record in device.get_manufacturing_data():
            print(f"System Time: {record.system_time}")
            for name, value in record.parameters.items():
                print(f"    {name}: {value}")
    elif args.action == "datetime":
        print(device.get_datetime())
    elif args.action == "dump":
        unit = common.Unit(args.unit) if args.unit else device.get_glucose_unit()
        for record in device.get_egv_records():
            print(record.as_csv(unit))
    else:
        return 1

    return 0


def main():
    if sys.version_info < (3, 9):
        raise Exception("Unsupported Python version, please use at least Python 3.9")

    parser = argparse.ArgumentParser()
    subparsers = parser.add_subparsers(dest="action")

    parser.add_argument(
        "--device",
        action="store",
        required=True,
        help="Select the path to the receiver serial port (e.g. /dev/ttyACM0).",
    )

    parser.add_argument(
        "--vlog",
        action="store",
        required=False,
        type=int,
        help=(
            "Python logging level. See the levels at "
            "https://docs.python.org/3/library/logging.html#logging-levels"
        ),
    )

    subparsers.add_parser("info", help="Display information about the receiver.")
    subparsers.add_parser("ping", help="Check that the receiver is responding.")
    subparsers.add_parser("battery", help="Display the battery level.")
    subparsers.add_parser("transmitter", help="Display the paired transmitter ID.")
    subparsers.add_parser("unit", help="Display the glucose unit of the receiver.")
    subparsers.add_parser("firmware", help="Display the firmware header.")
    subparsers.add_parser(
        "partitions", help="Display the database partitions of the receiver."
    )
    subparsers.add_parser(
        "manufacturing", help="Display the manufacturing parameters."
    )
    subparsers.add_parser("datetime", help="Display the receiver date and time.")

    parser_dump = subparsers.add_parser(
        "dump", help="Dump the glucose values stored in the receiver."
    )
    parser_dump.add_argument(
        "--unit",
        action="store",
        choices=[unit.value for unit in common.Unit],
        help="Select the unit to use for the dumped data.",
    )

    args = parser.parse_args()

    logging.basicConfig(level=args.vlog)

    if not args.action:
        parser.print_help()
        return 1

    try:
        device = dexcomg6.Device(args.device)
    except exceptions.Error as err:
        print(f"Unable to connect to the receiver: {err}")
        return 1

    try:
        device.connect()
        return _run_action(device, args)
    except exceptions.Error as err:
        print(f"Error while executing '{args.action}': {err}")
        return 1
    finally:
        device.disconnect()


if __name__ == "__main__":
    sys.exit(main())
