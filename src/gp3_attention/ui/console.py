import asyncio
import logging
import sys
from typing import Any, Callable, Optional, Sequence, TextIO

logger = logging.getLogger(__name__)


class ConsoleHost:
    """
    HostUI for terminals (`--headless`).

    Prompts are answered by number or by name; end of input dismisses
    them. The calibration text is printed rather than swapped in, so there
    is always an active context.
    """
    def __init__(
        self,
        stream: TextIO = sys.stdout,
        read_line: Callable[[str], str] = input,
        log_stream: TextIO = sys.stderr,
    ):
        self._stream = stream
        self._read_line = read_line
        self._log_stream = log_stream

    async def notify(self, message: str, choices: Sequence[str] = ()) -> Optional[str]:
        print(message, file=self._stream)
        if not choices:
            return None

        options = "  ".join(f"[{i}] {choice}" for i, choice in enumerate(choices, 1))
        while True:
            try:
                raw = (await asyncio.to_thread(self._read_line, f"{options} > ")).strip()
            except EOFError:
                return None

            if raw.isdigit() and 1 <= int(raw) <= len(choices):
                return choices[int(raw) - 1]
            for choice in choices:
                if raw.lower() == choice.lower():
                    return choice
            print(f"Please answer one of: {', '.join(choices)}", file=self._stream)

    def log(self, line: str) -> None:
        print(line, file=self._log_stream)

    def has_active_context(self) -> bool:
        return True

    async def open_material(self, content: str) -> Any:
        print("-" * 72, file=self._stream)
        print(content, file=self._stream)
        print("-" * 72, file=self._stream)
        return None

    async def restore_material(self, handle: Any) -> None:
        print("(calibration text closed)", file=self._stream)
