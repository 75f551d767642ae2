"""
Offline console demo: runs booking conversations in the terminal.

Drives the real BookingEngine (field extraction, rules, availability,
commit) against the in-memory store. Without OPENAI_API_KEY the keyword
extractor stands in for the LLM, so no network calls are needed.

Usage:
    python console_demo.py
    python console_demo.py --scenario booking
    python console_demo.py --scenario conflict
"""

import argparse
import asyncio
from typing import Optional

from booking_engine.config import settings
from booking_engine.conversation.slot_manager import SlotManager
from booking_engine.engine import (
    BookingEngine,
    ConversationClosedError,
    InvalidTurnError,
    build_engine,
)
from booking_engine.schemas.conversation_schema import DraftState, TurnResponse
from booking_engine.tools.business_hours import DEFAULT_HOURS
from booking_engine.tools.notifications import ConfirmationNotifier
from booking_engine.tools.services import get_all_services
from booking_engine.utils import format_time_label

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"


class ConsoleSession:
    """Plays customer turns against a BookingEngine in the terminal."""

    # Each scenario is a list of conversations; each conversation a list of turns.
    SCENARIOS: dict[str, list[list[str]]] = {
        "booking": [[
            "Hi, I'd like a haircut",
            "tomorrow at 2pm",
            "my name is Sam Patel",
            "416-555-0199",
            "confirm",
        ]],
        "conflict": [
            [
                "Can I get a beard trim tomorrow at 11am? My name is Ana Silva",
                "647 555 0101",
                "yes",
            ],
            [
                "Beard trim tomorrow at 11:00 please, this is Leo Park",
                "905-555-0142",
                "yes",
                "11:30",
                "confirm",
            ],
        ],
    }

    def __init__(self, engine: Optional[BookingEngine] = None) -> None:
        self.notifier = ConfirmationNotifier()
        self.engine = engine or build_engine(notifier=self.notifier)
        self.slots = SlotManager()
        self.conversation_id: Optional[str] = None
        self.state = DraftState.COLLECTING

    def agent_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[BookingAgent]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _banner(self, title: str, *extra: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  BOOKING ENGINE - {title}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        for line in extra:
            print(f"{BOLD}  {line}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    def _greet(self) -> None:
        self.conversation_id = None
        self.state = DraftState.COLLECTING
        self.agent_say(
            f"Hi, thanks for reaching {settings.business.name}. "
            f"We offer {', '.join(s['name'] for s in get_all_services())}. "
            "What can I book for you?"
        )

    async def send(self, text: str) -> Optional[TurnResponse]:
        try:
            response = await self.engine.handle_turn(
                conversation_id=self.conversation_id, message_text=text
            )
        except InvalidTurnError:
            print(f"{RED}Message must be 1-{settings.rules.max_message_length} characters.{RESET}")
            return None
        except ConversationClosedError:
            print(f"{YELLOW}That conversation is no longer open.{RESET}")
            return None

        self.conversation_id = response.conversation_id
        self.state = response.state
        self.agent_say(response.reply_text)
        if response.suggestions:
            labels = [format_time_label(s.timetz()) for s in response.suggestions]
            self.system_log(f"Suggestions: {', '.join(labels)}")
        self.system_log(f"State: {response.state.value}")
        if response.draft is not None:
            self.system_log(f"Slot stats: {self.slots.get_stats(response.draft)}")
        return response

    # ------------------------------------------------------------------ #
    # Scripted and interactive modes
    # ------------------------------------------------------------------ #

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        conversations = self.SCENARIOS.get(scenario)
        if not conversations:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        for steps in conversations:
            self._greet()
            for step in steps:
                if self.state == DraftState.CLOSED:
                    break
                print(f"\n{BLUE}[Customer] {RESET}{step}")
                await self.send(step)
            print()

        await self.notifier.drain()
        reservations = await self.engine.store.list_reservations()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        for r in reservations:
            print(
                f"{DIM}  {r.id}: {r.service_name} for {r.customer_name} "
                f"{r.start_at:%Y-%m-%d %H:%M}-{r.end_at:%H:%M} ({r.status.value}){RESET}"
            )
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run(self) -> None:
        self._banner("Console Demo", *DEFAULT_HOURS.describe(), "Type 'quit' to exit")
        self._greet()

        while self.state != DraftState.CLOSED:
            user_input = (await asyncio.to_thread(input, f"\n{BLUE}[Customer] {RESET}")).strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                break
            await self.send(user_input)

        await self.notifier.drain()


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
