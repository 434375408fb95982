#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0
"""Pretend to be the embedded runtime: boot slowly, then announce readiness."""
from __future__ import annotations

import argparse
import asyncio
import random

import aiohttp
from asyncio_mqtt import Client


async def announce_mqtt(args) -> None:
    async with Client(hostname=args.host, port=args.port, username=args.username, password=args.password) as client:
        if args.clear_first:
            await client.publish(args.topic, b"", qos=1)
        await asyncio.sleep(boot_delay(args))
        await client.publish(args.topic, args.token.encode("utf-8"), qos=1)


async def announce_http(args) -> None:
    url = f"http://{args.host}:{args.port}{args.path}"
    async with aiohttp.ClientSession() as session:
        if args.clear_first:
            async with session.delete(url) as resp:
                resp.raise_for_status()
        await asyncio.sleep(boot_delay(args))
        async with session.put(url, data=args.token) as resp:
            resp.raise_for_status()
            print(await resp.text())


def boot_delay(args) -> float:
    return max(0.0, args.delay + random.uniform(-args.jitter, args.jitter))


async def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("host")
    ap.add_argument("--mode", choices=["http", "mqtt"], default="http")
    ap.add_argument("--port", type=int)
    ap.add_argument("--path", default="/signal")
    ap.add_argument("--topic", default="runtime/ready")
    ap.add_argument("--username")
    ap.add_argument("--password")
    ap.add_argument("--token", default="ready-token")
    ap.add_argument("--delay", type=float, default=2.0)
    ap.add_argument("--jitter", type=float, default=0.0)
    ap.add_argument("--clear-first", action="store_true")
    args = ap.parse_args()

    if args.mode == "mqtt":
        args.port = args.port or 1883
        await announce_mqtt(args)
    else:
        args.port = args.port or 8765
        await announce_http(args)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
