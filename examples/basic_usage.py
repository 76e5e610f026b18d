#!/usr/bin/env python
"""
Basic usage examples for the DSY-RS servo driver.

This script demonstrates common operations on one or more drives sharing a
single RS-485 port.
"""

import asyncio
import logging
import time

import dsyrs
from dsyrs.core.config import (
    HomingConfig, MultiSegmentConfig, SegmentConfig, ServoConfig
)
from dsyrs.core.constants import (
    ControlMode, HomingEnableMode, HomingMode, MultiSegmentMode,
    PositionCommandSource
)
from dsyrs.core.exceptions import CommunicationError, PartialWriteError

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

PORT = 'COM3'


def example_connection():
    """Example: Initialization and status check."""
    print("\n" + "=" * 60)
    print("Example 1: Initialization")
    print("=" * 60)

    with dsyrs.open_bus(PORT) as bus:
        servo = dsyrs.ServoDriver.on_bus(bus, 1)
        try:
            info = servo.init(apply_config=False)
        except CommunicationError as e:
            print(f"Servo not reachable: {e}")
            return

        print(f"Software {info.software_version}, FPGA {info.fpga_version}, state {info.state.value}")

        status = servo.get_status()
        print(f"Speed: {status.speed} rpm")
        print(f"Position: {status.position} pulses")
        print(f"Bus voltage: {status.bus_voltage:.1f} V")


def example_multi_segment():
    """Example: Program a three-step position profile."""
    print("\n" + "=" * 60)
    print("Example 2: Multi-segment Position")
    print("=" * 60)

    config = ServoConfig(control_mode=ControlMode.POSITION, max_speed=3000)

    with dsyrs.open_bus(PORT) as bus:
        servo = dsyrs.ServoDriver.on_bus(bus, 1, config)
        servo.init()
        servo.set_position_command_source(PositionCommandSource.MULTI_SEGMENT)

        profile = [
            SegmentConfig(segment=1, displacement=100000, speed=500, accel_decel_time=100),
            SegmentConfig(segment=2, displacement=-50000, speed=300, wait_time=200),
            SegmentConfig(segment=3, displacement=-50000, speed=800),
        ]
        try:
            for segment in profile:
                servo.configure_segment(segment)
        except PartialWriteError as e:
            print(f"Stopped: {e}")
            return

        servo.configure_multi_segment(MultiSegmentConfig(
            mode=MultiSegmentMode.CYCLE, start_segment=1, end_segment=3
        ))
        servo.save_to_eeprom()
        print("Profile stored")


def example_homing():
    """Example: Homing on the reverse limit switch."""
    print("\n" + "=" * 60)
    print("Example 3: Homing")
    print("=" * 60)

    with dsyrs.open_bus(PORT) as bus:
        servo = dsyrs.ServoDriver.on_bus(bus, 1)
        servo.apply_homing_config(HomingConfig(
            mode=HomingMode.REVERSE_LIMIT_Z,
            high_speed=300,
            low_speed=20,
            enable_mode=HomingEnableMode.IMMEDIATE,
        ))

        for _ in range(10):
            print(f"Position: {servo.get_position()} pulses")
            time.sleep(0.5)


def example_change_baudrate():
    """Example: Move a drive to 57600 baud, even parity."""
    print("\n" + "=" * 60)
    print("Example 4: Communication Settings")
    print("=" * 60)

    target = dsyrs.SerialSettings(PORT, baudrate=57600, parity='E')
    with dsyrs.open_bus(PORT) as bus:
        servo = dsyrs.ServoDriver.on_bus(bus, 1)
        servo.apply_comm_config(target.to_comm_config(address=1))
        servo.save_to_eeprom()

    # New settings apply after the drive restarts
    print(f"Reconnect with {target}")


def example_async_monitor():
    """Example: Poll two drives concurrently."""
    print("\n" + "=" * 60)
    print("Example 5: asyncio Monitoring")
    print("=" * 60)

    async def monitor():
        async with dsyrs.open_async_bus(PORT) as bus:
            drives = [dsyrs.AsyncServoDriver.on_bus(bus, n) for n in (1, 2)]
            await asyncio.gather(*(d.init(apply_config=False) for d in drives))

            for _ in range(5):
                statuses = await asyncio.gather(*(d.get_status() for d in drives))
                for drive, status in zip(drives, statuses):
                    print(f"Servo {drive.slave_id}: {status.state.value}, {status.speed} rpm")
                await asyncio.sleep(0.5)

    asyncio.run(monitor())


def main():
    """Run all examples."""
    print("\nDSY-RS Servo Driver Examples")
    print("=" * 60)

    examples = [
        ("Initialization", example_connection),
        ("Multi-segment Position", example_multi_segment),
        ("Homing", example_homing),
        ("Communication Settings", example_change_baudrate),
        ("asyncio Monitoring", example_async_monitor),
    ]

    for i, (name, _) in enumerate(examples, 1):
        print(f"{i}. {name}")

    choice = input("\nSelect example (1-5) or 0 to run all: ")
    try:
        choice = int(choice)
    except ValueError:
        print("Invalid choice")
        return

    if choice == 0:
        for _, func in examples:
            func()
    elif 1 <= choice <= len(examples):
        examples[choice - 1][1]()
    else:
        print("Invalid choice")


if __name__ == '__main__':
    main()
