import asyncio
import logging
import tkinter as tk
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

if TYPE_CHECKING:
    from .main_window import Gp3App

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _SavedEditor:
    text: str
    state: str


class TkinterHost:
    """
    HostUI backed by the launcher window.

    The session runs on the bridge's loop thread; every widget access is
    marshalled to the Tk main thread through root.after().
    """
    def __init__(self, window: "Gp3App"):
        self._window = window

    # --- HostUI ---

    async def notify(self, message: str, choices: Sequence[str] = ()) -> Optional[str]:
        logger.info("Notice: %s", message)
        if not choices:
            self._schedule(self._window.set_status, message)
            return None

        loop = asyncio.get_running_loop()
        answer = loop.create_future()

        def _set(value: Optional[str]) -> None:
            if not answer.done():
                answer.set_result(value)

        def resolve(value: Optional[str]) -> None:
            loop.call_soon_threadsafe(_set, value)

        self._schedule(self._open_dialog, message, tuple(choices), resolve)
        return await answer

    def log(self, line: str) -> None:
        self._schedule(self._window.append_log, line)

    def has_active_context(self) -> bool:
        return not self._window.is_closing

    async def open_material(self, content: str) -> Any:
        return await self._run_on_ui(self._swap_in, content)

    async def restore_material(self, handle: Any) -> None:
        await self._run_on_ui(self._swap_out, handle)

    # --- Thread Bridge Helpers ---

    def _schedule(self, func: Callable, *args) -> None:
        try:
            self._window.after(0, func, *args)
        except (RuntimeError, tk.TclError):
            logger.debug("Window gone, dropped UI call %s", getattr(func, "__name__", func))

    def _run_on_ui(self, func: Callable, *args) -> asyncio.Future:
        """Runs a sync UI function on the Main Thread; the future carries its result."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def _ui_task():
            try:
                result = func(*args)
                loop.call_soon_threadsafe(future.set_result, result)
            except Exception as e:
                loop.call_soon_threadsafe(future.set_exception, e)

        self._window.after(0, _ui_task)
        return future

    # --- Private Sync Methods (Main Thread) ---

    def _open_dialog(self, message: str, choices: tuple[str, ...], resolve: Callable[[Optional[str]], None]) -> None:
        dialog = tk.Toplevel(self._window)
        dialog.title("Gaze calibration")
        dialog.transient(self._window)
        dialog.attributes("-topmost", True)

        tk.Label(dialog, text=message, wraplength=380, justify="left", padx=20, pady=15).pack()
        row = tk.Frame(dialog, pady=10)
        row.pack()

        def choose(value: Optional[str]) -> None:
            dialog.destroy()
            resolve(value)

        for choice in choices:
            tk.Button(row, text=choice, width=16, command=lambda c=choice: choose(c)).pack(side="left", padx=5)
        dialog.protocol("WM_DELETE_WINDOW", lambda: choose(None))
        dialog.focus_force()

    def _swap_in(self, content: str) -> _SavedEditor:
        editor = self._window.editor
        saved = _SavedEditor(editor.get("1.0", "end-1c"), str(editor.cget("state")))

        editor.config(state="normal")
        editor.delete("1.0", "end")
        editor.insert("1.0", content)
        editor.config(state="disabled")
        editor.see("1.0")
        return saved

    def _swap_out(self, saved: _SavedEditor) -> None:
        editor = self._window.editor
        editor.config(state="normal")
        editor.delete("1.0", "end")
        editor.insert("1.0", saved.text)
        editor.config(state=saved.state)
