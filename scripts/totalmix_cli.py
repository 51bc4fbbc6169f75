#!/usr/bin/env python3
"""Watch or nudge the TotalMix FX main volume from a terminal.

Enable OSC in TotalMix FX (Options > Settings > OSC) and make sure the ports
match the endpoints passed here.

Usage
-----
::

    python scripts/totalmix_cli.py watch
    python scripts/totalmix_cli.py up --fine
    python scripts/totalmix_cli.py down --decibels
    python scripts/totalmix_cli.py dim

Options::

    --send HOST:PORT     Where TotalMix listens (default 127.0.0.1:7001)
    --listen HOST:PORT   Where to receive from TotalMix (default 127.0.0.1:9001)
    --decibels           Step in decibels instead of percent
    --timeout SECONDS    How long to wait for the device
    --debug              Enable debug logging

Endpoint and stepping defaults can also come from ``TOTALMIX_*`` environment
variables (see :meth:`pytotalmix.TotalMixConfig.from_env`).
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from typing import Any

from pytotalmix import (
    ConnectionStatus,
    DeviceSnapshot,
    TotalMixConfig,
    TotalMixConfigError,
    TotalMixError,
    TotalMixTransportError,
    VolumeManager,
    VolumeMonitor,
    value_to_decibels,
)
from pytotalmix.config import DEFAULT_INCOMING_PORT, DEFAULT_OUTGOING_PORT, parse_endpoint


def _format_snapshot(snapshot: DeviceSnapshot) -> str:
    dim = " [DIM]" if snapshot.is_dimmed else ""
    return (
        f"{snapshot.volume * 100:5.1f}%  {snapshot.volume_decibels:>9}  "
        f"(curve {value_to_decibels(snapshot.volume):+.1f} dB){dim}"
    )


def _build_config(args: argparse.Namespace) -> TotalMixConfig:
    overrides: dict[str, Any] = {}
    if args.send:
        host, port = parse_endpoint(args.send, DEFAULT_OUTGOING_PORT)
        overrides["outgoing_host"] = host
        overrides["outgoing_port"] = port
    if args.listen:
        host, port = parse_endpoint(args.listen, DEFAULT_INCOMING_PORT)
        overrides["incoming_host"] = host
        overrides["incoming_port"] = port
    if args.timeout is not None:
        overrides["receive_timeout"] = args.timeout

    config = TotalMixConfig.from_env(**overrides)
    if args.decibels:
        config = dataclasses.replace(config, volume=dataclasses.replace(config.volume, use_decibels=True))
    return config


async def _wait_for_state(manager: VolumeManager, attempts: int) -> DeviceSnapshot:
    for _ in range(attempts):
        await manager.request_volume()
        snapshot = await manager.receive_volume()
        if snapshot is not None:
            return snapshot
    raise TotalMixError("Device did not report a complete volume state")


async def _watch(manager: VolumeManager) -> None:
    def on_update(snapshot: DeviceSnapshot, initialized_before: bool) -> None:
        prefix = "changed" if initialized_before else "synced "
        print(f"{prefix}  {_format_snapshot(snapshot)}", flush=True)

    def on_status(status: ConnectionStatus) -> None:
        print(f"status   {status.value}", flush=True)

    async with VolumeMonitor(manager, on_update=on_update, on_status=on_status):
        await asyncio.Event().wait()


async def _one_shot(manager: VolumeManager, command: str, fine: bool, attempts: int) -> int:
    before = await _wait_for_state(manager, attempts)
    print(f"before   {_format_snapshot(before)}")

    if command == "up":
        changed = await manager.increase_volume(fine=fine)
    elif command == "down":
        changed = await manager.decrease_volume(fine=fine)
    else:
        changed = await manager.toggle_dim()

    after = await manager.get_snapshot()
    if not changed or after is None:
        print("no change (already at the limit)")
        return 1
    print(f"after    {_format_snapshot(after)}")
    return 0


async def run(args: argparse.Namespace) -> int:
    config = _build_config(args)
    async with VolumeManager(config) as manager:
        if args.command == "watch":
            await _watch(manager)
            return 0
        return await _one_shot(manager, args.command, args.fine, args.attempts)


def main() -> None:
    parser = argparse.ArgumentParser(description="Control the RME TotalMix FX main volume over OSC.")
    parser.add_argument("command", choices=("watch", "up", "down", "dim"), help="Action to perform")
    parser.add_argument("--fine", action="store_true", help="Use the fine increment for up/down")
    parser.add_argument("--decibels", action="store_true", help="Step in decibels instead of percent")
    parser.add_argument("--send", metavar="HOST:PORT", help="Endpoint TotalMix receives OSC on")
    parser.add_argument("--listen", metavar="HOST:PORT", help="Endpoint to receive OSC from TotalMix on")
    parser.add_argument("--timeout", type=float, help="Seconds to wait for a device packet")
    parser.add_argument("--attempts", type=int, default=3, help="State requests before giving up (one-shot commands)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    try:
        exit_code = asyncio.run(run(args))
    except KeyboardInterrupt:
        exit_code = 0
    except TotalMixConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        exit_code = 2
    except TotalMixTransportError as exc:
        print(f"Unable to reach TotalMix: {exc}", file=sys.stderr)
        exit_code = 1
    except TotalMixError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
