#!/usr/bin/env python
"""
Run the membership expiry sweep once.

Meant to be invoked by an external scheduler (cron, a platform job, ...).
Safe to run repeatedly: a second run with no intervening change expires
nothing.

Usage:
    uv run python run_sweep.py
"""

import argparse
import asyncio
import logging
import sys

from rich.console import Console

from shared.config import get_settings
from api.dependencies import ServiceContainer

console = Console()


async def run() -> int:
    container = ServiceContainer(get_settings())
    try:
        result = await container.memberships.sweep_expire()
    finally:
        await container.dispose()

    console.print(
        f"Expired [cyan]{result.expired_count}[/cyan] membership(s), "
        f"downgraded [cyan]{result.downgraded_count}[/cyan] profile(s), "
        f"closed [cyan]{result.closed_purchases}[/cyan] purchase(s)."
    )
    if result.claims_warnings:
        console.print(
            f"[yellow]Warning:[/yellow] claims not refreshed for "
            f"{len(result.claims_warnings)} identit(ies); they converge on next reconcile."
        )
    return 0


def main():
    parser = argparse.ArgumentParser(description="Expire lapsed memberships")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level="DEBUG" if args.verbose else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
