"""Yes/no confirmation channels used before repairing a stack."""

import logging
from typing import TextIO

from rich.console import Console
from rich.prompt import Confirm

logger = logging.getLogger(__name__)


class ConsoleConfirmation:
    """Asks questions on the terminal.

    The channel is opened on the first prompt and released by ``close()``,
    which may be called any number of times. When ``input_path`` is given
    (for example ``/dev/tty``) answers are read from that file, which this
    object opens and closes itself. A caller-supplied ``stream`` is never
    closed.
    """

    def __init__(
        self,
        input_path: str | None = None,
        stream: TextIO | None = None,
        console: Console | None = None,
    ):
        self._input_path = input_path
        self._given_stream = stream
        self._given_console = console
        self._console: Console | None = None
        self._stream: TextIO | None = None
        self._owns_stream = False

    @property
    def is_open(self) -> bool:
        return self._console is not None

    def _open(self) -> Console:
        if self._console is None:
            if self._input_path:
                self._stream = open(self._input_path, encoding="utf-8")
                self._owns_stream = True
            else:
                self._stream = self._given_stream
            self._console = self._given_console or Console(stderr=True)
        return self._console

    def prompt(self, question: str) -> bool:
        console = self._open()
        return Confirm.ask(question, console=console, default=False, stream=self._stream)

    def close(self) -> None:
        if self._owns_stream and self._stream is not None:
            self._stream.close()
        self._stream = None
        self._owns_stream = False
        self._console = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class AutoConfirmation:
    """Answers every question with a fixed value, for unattended runs."""

    def __init__(self, answer: bool):
        self.answer = answer

    def prompt(self, question: str) -> bool:
        logger.info("Auto-answering %r with %s", question, "yes" if self.answer else "no")
        return self.answer

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
