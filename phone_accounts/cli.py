"""
Console front end for the phone account service.

A line-oriented menu: create an account, log in with an SMS code, delete
an account, and view the profile once logged in. Each menu is a loop that
acts on the outcome returned by the account service; screens never call
each other recursively.

Usage:
    python -m phone_accounts.cli [--timeout-minutes N] [--max-attempts N]
"""

import argparse
import asyncio
import sys
import threading
from typing import Callable, Optional, TextIO, TypeVar

from phone_accounts.config import settings
from phone_accounts.models.internal_models import (
    CreateOutcome,
    DeleteOutcome,
    LoginOutcome,
    ProfileView,
    parse_confirmation
)
from phone_accounts.observability import configure_logging
from phone_accounts.services.account_service import AccountService
from phone_accounts.services.exceptions import PersistenceFailure
from phone_accounts.services.verification_service import VerificationService
from phone_accounts.utils.validators import (
    FieldValidationError,
    validate_date_of_birth,
    validate_gender,
    validate_name,
    validate_phone_number
)

T = TypeVar("T")

DIVIDER = "------------------------------------------"

MAIN_MENU = """
** Main menu **
1. Create an account
2. Log in
3. Delete an account
0. Exit"""

ACCOUNT_MENU = """
** Account menu **
1. View profile
2. Delete account
0. Log out"""

STORE_UNAVAILABLE = "The account store is unavailable, try again later."


class InputClosed(Exception):
    """Raised when the input stream ends."""
    pass


class ConsoleIO:
    """
    Reads lines from stdin and writes lines to stdout.

    A single daemon thread reads the input stream and hands each line to an
    asyncio queue. A prompt whose await is cancelled (e.g. by a timeout)
    consumes nothing, so the next line goes to the next prompt.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdin
        self._lines: Optional[asyncio.Queue] = None
        self._closed = False

    def _start_reader(self) -> None:
        loop = asyncio.get_running_loop()
        self._lines = asyncio.Queue()

        def pump() -> None:
            for line in iter(self.stream.readline, ""):
                try:
                    loop.call_soon_threadsafe(self._lines.put_nowait, line.rstrip("\r\n"))
                except RuntimeError:
                    return  # loop already closed
            try:
                loop.call_soon_threadsafe(self._lines.put_nowait, None)
            except RuntimeError:
                return

        threading.Thread(target=pump, name="console-input", daemon=True).start()

    async def read_line(self, prompt: str) -> Optional[str]:
        """Return the next input line, or None once input has ended."""
        if self._closed:
            return None
        if self._lines is None:
            self._start_reader()

        print(prompt, end="", flush=True)
        line = await self._lines.get()
        if line is None:
            self._closed = True
        return line

    def write(self, text: str = "") -> None:
        print(text, flush=True)


class ConsoleApp:
    """Menu loop driving an AccountService."""

    def __init__(self, service: AccountService, io: Optional[ConsoleIO] = None):
        self.service = service
        self.io = io or ConsoleIO()

    async def run(self) -> None:
        """Run the main menu until the user exits or input ends."""
        try:
            while True:
                self.io.write(MAIN_MENU)
                choice = await self._read("Your response: ")
                if choice == "1":
                    await self.create_account()
                elif choice == "2":
                    phone_number = await self.login()
                    if phone_number is not None:
                        await self.account_menu(phone_number)
                elif choice == "3":
                    self.io.write("** Deleting an account **")
                    phone_number = await self._prompt_field("Phone number (10 digits): ", validate_phone_number)
                    await self.delete_account(phone_number)
                elif choice == "0":
                    break
                else:
                    self.io.write("Make a valid selection")
        except InputClosed:
            self.io.write()
        self.io.write("Have a nice day")

    async def create_account(self) -> CreateOutcome:
        self.io.write("** Creating an account **")
        name = await self._prompt_field("Name: ", validate_name)
        self.io.write("--------------")
        date_of_birth = await self._prompt_field("Date of birth (YYYY-MM-DD): ", validate_date_of_birth)
        self.io.write("--------------")
        phone_number = await self._prompt_field("Phone number (10 digits): ", validate_phone_number)
        self.io.write("--------------")
        gender = await self._prompt_field("Gender: ", validate_gender)

        outcome = await self.service.create_account(name, date_of_birth, phone_number, gender)
        if outcome is CreateOutcome.CREATED:
            self.io.write(DIVIDER)
            self.io.write("Account created successfully")
            self.io.write("Log in to your account")
            self.io.write(DIVIDER)
        elif outcome is CreateOutcome.ALREADY_EXISTS:
            self.io.write("You already have an account. Log in instead.")
        else:
            self.io.write(f"Account could not be created. {STORE_UNAVAILABLE}")
        return outcome

    async def login(self) -> Optional[str]:
        """Log in; returns the phone number on success, None otherwise."""
        self.io.write("** Login to an existing account **")
        phone_number = await self._prompt_field("Phone number (10 digits): ", validate_phone_number)

        first_prompt = True

        async def read_code(attempts_remaining: int) -> Optional[str]:
            nonlocal first_prompt
            if first_prompt:
                first_prompt = False
                self.io.write("Your session has timed out, log in again")
            else:
                self.io.write(f"Wrong code. {attempts_remaining} attempts left.")
            return await self.io.read_line("Enter the verification code that was sent: ")

        outcome = await self.service.login(phone_number, read_code)

        if outcome is LoginOutcome.VERIFIED_SUCCESS:
            self.io.write("Account found, log in successful")
            return phone_number
        if outcome is LoginOutcome.STILL_IN_SESSION:
            self.io.write("Still in session, no need to log in.")
            return phone_number

        messages = {
            LoginOutcome.NOT_FOUND: "Account not found. Log in failed",
            LoginOutcome.VERIFIED_FAILURE: "Wrong code. Log in failed.",
            LoginOutcome.DELIVERY_FAILED: "The verification code could not be sent. Log in failed.",
            LoginOutcome.VERIFICATION_CANCELLED: "Verification cancelled. Log in failed.",
            LoginOutcome.PERSISTENCE_FAILED: f"Log in failed. {STORE_UNAVAILABLE}",
        }
        self.io.write(messages[outcome])
        return None

    async def account_menu(self, phone_number: str) -> None:
        while True:
            self.io.write(ACCOUNT_MENU)
            choice = await self._read("Your response: ")
            if choice == "1":
                await self.show_profile(phone_number)
            elif choice == "2":
                self.io.write("** Deleting an account **")
                if await self.delete_account(phone_number) is DeleteOutcome.DELETED:
                    return
            elif choice == "0":
                self.io.write("Logged out")
                return
            else:
                self.io.write("Make a valid selection")

    async def show_profile(self, phone_number: str) -> Optional[ProfileView]:
        try:
            profile = await self.service.view_profile(phone_number)
        except PersistenceFailure:
            self.io.write(STORE_UNAVAILABLE)
            return None

        if profile is None:
            self.io.write("Account not found")
            return None

        self.io.write(f"** Showing profile for {profile.name}: **")
        self.io.write(f"Phone number: {profile.phone_number}")
        self.io.write(f"Date of birth (Age): {profile.date_of_birth.isoformat()} ({profile.age})")
        self.io.write(f"Gender: {profile.gender}")
        self.io.write(f"Date registered: {profile.registered_display}")
        return profile

    async def delete_account(self, phone_number: str) -> DeleteOutcome:
        try:
            exists = await self.service.account_exists(phone_number)
        except PersistenceFailure:
            self.io.write(f"Delete failed. {STORE_UNAVAILABLE}")
            return DeleteOutcome.PERSISTENCE_FAILED

        if not exists:
            self.io.write("Account not found. Delete failed")
            return DeleteOutcome.NOT_FOUND

        answer = None
        while answer is None:
            self.io.write("YOUR ACCOUNT CANNOT BE RECOVERED AFTER DELETION")
            answer = parse_confirmation(
                await self._read("Are you sure you want to delete your account? This process is IRREVERSIBLE (y/n): ")
            )

        outcome = await self.service.delete_account(phone_number, answer)
        messages = {
            DeleteOutcome.DELETED: "Account deleted successfully",
            DeleteOutcome.NOT_CONFIRMED: "Account not deleted",
            DeleteOutcome.NOT_FOUND: "Account not found. Delete failed",
            DeleteOutcome.PERSISTENCE_FAILED: f"Delete failed. {STORE_UNAVAILABLE}",
        }
        self.io.write(messages[outcome])
        return outcome

    async def _read(self, prompt: str) -> str:
        line = await self.io.read_line(prompt)
        if line is None:
            raise InputClosed()
        return line.strip()

    async def _prompt_field(self, prompt: str, validator: Callable[[str], T]) -> T:
        """Prompt until the validator accepts the input."""
        while True:
            raw = await self._read(prompt)
            try:
                return validator(raw)
            except FieldValidationError as e:
                self.io.write(f"{e}. Try again.")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Phone account console: create, log in and delete accounts.")
    p.add_argument("--timeout-minutes", type=int, default=None,
                   help=f"Session window in minutes (default: {settings.session_timeout_minutes})")
    p.add_argument("--max-attempts", type=int, default=None,
                   help=f"Verification code attempts per login (default: {settings.verification_max_attempts})")
    p.add_argument("--log-level", default="WARNING", help="Log level for diagnostics written to stderr")
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.timeout_minutes is not None and args.timeout_minutes <= 0:
        print("--timeout-minutes must be greater than 0", file=sys.stderr)
        return 2
    if args.max_attempts is not None and args.max_attempts <= 0:
        print("--max-attempts must be greater than 0", file=sys.stderr)
        return 2

    configure_logging(args.log_level, stream=sys.stderr)

    service = AccountService(
        verification_service=VerificationService(max_attempts=args.max_attempts),
        session_timeout_minutes=args.timeout_minutes
    )

    if not asyncio.run(service.db.health_check()):
        print("Connection failed.", file=sys.stderr)
        return 1

    asyncio.run(ConsoleApp(service).run())
    return 0


if __name__ == "__main__":
    sys.exit(main())
