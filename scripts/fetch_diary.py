#!/usr/bin/env python3
"""Log in and print the diary of the current week as JSON."""

from __future__ import annotations

import argparse
import asyncio
import datetime as dt
from pathlib import Path

from sgoclient import ClientSettings, ProtectedClient, SgoError
from sgoclient.utils.logging import get_logger


logger = get_logger("FetchDiary")


def _week_bounds(today: dt.date) -> tuple[dt.date, dt.date]:
    start = today - dt.timedelta(days=today.weekday())
    return start, start + dt.timedelta(days=6)


async def close_session(client: ProtectedClient) -> None:
    """Log out if still logged in; a failed logout is logged, not raised."""
    if client.needs_authentication():
        return
    try:
        await client.log_out()
    except SgoError as exc:
        logger.warning("Logout failed: %s", exc)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Print the SGO diary for one week.")
    parser.add_argument("--config", type=Path, default=None, help="Path to client YAML (defaults to SGO_* env vars)")
    parser.add_argument("--date", type=dt.date.fromisoformat, default=dt.date.today(), help="Any day of the wanted week")
    args = parser.parse_args()

    settings = ClientSettings.from_file(args.config) if args.config else ClientSettings.from_env()
    start, end = _week_bounds(args.date)

    async with ProtectedClient.from_settings(settings) as client:
        try:
            await client.log_in()
            week = await client.diary(start, end)
        except SgoError as exc:
            logger.error("Diary request failed: %s", exc)
            return 1
        finally:
            await close_session(client)

    print(week.model_dump_json(by_alias=True, indent=2))
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
