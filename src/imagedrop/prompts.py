"""
Interactive console prompting used during startup configuration.

The prompter is a scoped resource: it is opened around configuration
resolution and closed before the HTTP listener starts. Nothing past
startup holds a reference to it.
"""

import getpass
import logging
import sys
from typing import Optional, TextIO

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class ConsolePrompter:
    """Line-oriented prompter over a pair of text streams."""

    def __init__(
        self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None
    ):
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout
        self._open = False

    def __enter__(self) -> "ConsolePrompter":
        self._open = True
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._open:
            self._open = False
            logger.debug("Console prompter released")

    @property
    def is_interactive(self) -> bool:
        """True when input comes from a terminal."""
        isatty = getattr(self._stdin, "isatty", None)
        return bool(isatty and isatty())

    def say(self, message: str) -> None:
        """Write a line of text to the user."""
        self._ensure_open()
        self._stdout.write(f"{message}\n")
        self._stdout.flush()

    def ask(self, question: str, secret: bool = False) -> str:
        """
        Ask a question and return the answer without surrounding whitespace.

        Args:
            question: Prompt text
            secret: Read without echo when attached to a terminal

        Returns:
            The answer line

        Raises:
            ConfigurationError: If input is closed before an answer arrives
        """
        self._ensure_open()

        if secret and self.is_interactive and self._stdin is sys.stdin:
            try:
                return getpass.getpass(question, stream=self._stdout).strip()
            except EOFError as e:
                raise ConfigurationError(
                    "Input closed while reading configuration"
                ) from e

        self._stdout.write(question)
        self._stdout.flush()
        line = self._stdin.readline()
        if not line:
            raise ConfigurationError("Input closed while reading configuration")
        return line.strip()

    def confirm(self, question: str) -> bool:
        """Ask a yes/no question; only ``y`` or ``yes`` count as yes."""
        return self.ask(question).lower() in ("y", "yes")

    def _ensure_open(self) -> None:
        if not self._open:
            raise RuntimeError("Prompter used outside of its 'with' block")
