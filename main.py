"""
Booking engine entry point.

Runs the engine in the terminal. Field extraction uses OpenAI when
OPENAI_API_KEY is set and falls back to offline keyword matching otherwise.

Usage:
    Interactive:  python main.py console
    Scripted:     python main.py scenario booking
    Opening hours: python main.py hours
"""

import asyncio
import logging
import sys

from booking_engine.config import settings
from booking_engine.tools.business_hours import DEFAULT_HOURS
from booking_engine.tools.services import get_all_services

logger = logging.getLogger(__name__)


def _print_shop() -> None:
    """Print the catalog and weekly hours the engine validates against."""
    print(f"{settings.business.name} ({settings.business.timezone})")
    for service in get_all_services():
        print(f"  {service['name']}: {service['duration_minutes']} min")
    for line in DEFAULT_HOURS.describe():
        print(f"  {line}")


def _run_console_mode(scenario: str = "") -> None:
    from console_demo import ConsoleSession

    session = ConsoleSession()
    if scenario:
        asyncio.run(session.run_scenario(scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    mode = sys.argv[1] if len(sys.argv) > 1 else "console"
    if mode == "hours":
        _print_shop()
    elif mode == "scenario":
        _run_console_mode(sys.argv[2] if len(sys.argv) > 2 else "booking")
    else:
        logger.info("Starting console mode")
        _run_console_mode()
