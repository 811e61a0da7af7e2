"""Operator prompts that keep working when stdin is a pipe.

When the tool is run as ``curl ... | sudo node-bootstrap``, stdin carries the
downloaded script rather than the operator's keyboard, so prompts are read
from the controlling terminal instead.
"""

import getpass
import sys

from rich.prompt import Prompt

from nodesetup.core.errors import TerminalUnavailableError
from nodesetup.utils.output import console

TTY_PATH = "/dev/tty"


class RawPrompt(Prompt):
    """Prompt that prints the text as given, without a trailing colon."""

    prompt_suffix = ""


def _read_from_tty(prompt: str, secret: bool) -> str:
    if secret:
        # getpass opens the controlling terminal itself
        try:
            return getpass.getpass(prompt)
        except (OSError, EOFError) as e:
            raise TerminalUnavailableError(f"Cannot read from {TTY_PATH}: {e}") from e

    try:
        with open(TTY_PATH, "r+") as tty:
            tty.write(prompt)
            tty.flush()
            line = tty.readline()
    except OSError as e:
        raise TerminalUnavailableError(f"Cannot open {TTY_PATH}: {e}") from e
    if not line:
        raise TerminalUnavailableError(f"End of input on {TTY_PATH}")
    return line.rstrip("\n")


def read_input(prompt: str, *, secret: bool = False) -> str:
    """Prompt the operator and return the raw answer (may be empty).

    Args:
        prompt: Text shown before the cursor.
        secret: Do not echo the input.
    """
    if sys.stdin.isatty():
        return RawPrompt.ask(
            prompt, console=console, password=secret, default="", show_default=False
        )
    return _read_from_tty(prompt, secret)
