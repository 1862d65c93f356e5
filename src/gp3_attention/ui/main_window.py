import concurrent.futures
import logging
import tkinter as tk
from tkinter import scrolledtext
from typing import Optional

from ..app.bridge import AsyncioTkinterBridge
from ..configs import AppSettings
from ..core import SessionManager
from ..sim import SimulatedGazepointServer
from ..utils.logging import HostLogHandler
from .host import TkinterHost

logger = logging.getLogger(__name__)

_PLACEHOLDER = "Your notes. They are put back after the calibration.\n"


class Gp3App(tk.Tk):
    """
    Launcher window: an editable text area (the context the calibration
    text is swapped into), a launch button and, with debug on, a log pane.
    """
    def __init__(
        self,
        bridge: AsyncioTkinterBridge,
        settings: AppSettings,
        server: Optional[SimulatedGazepointServer] = None,
    ):
        super().__init__()
        self.bridge = bridge
        self.settings = settings
        self.server = server
        self.is_closing = False

        self.title(f"GP3 Attention v{settings.__version__}")
        self.geometry("760x620")

        self._build_ui()
        self.host = TkinterHost(self)
        self.manager = SessionManager(self.host, settings)

        self._log_handler: Optional[HostLogHandler] = None
        if settings.connection.debug:
            self._log_handler = HostLogHandler(self.host.log)
            logging.getLogger("gp3_attention").addHandler(self._log_handler)

        self.protocol("WM_DELETE_WINDOW", self.on_closing)
        self.bridge.submit(self.manager.start())
        self.set_status(f"Ready. Gazepoint Control at {settings.connection.host}:{settings.connection.port}")

    # --- Actions ---

    def launch(self) -> None:
        if self.manager.is_busy:
            return

        self.btn_launch.config(state="disabled")
        future = self.bridge.submit(self.manager.launch_tracking_session())
        future.add_done_callback(lambda f: self.after(0, self._on_session_done, f))

    def _on_session_done(self, future: concurrent.futures.Future) -> None:
        self.btn_launch.config(state="normal")
        if future.cancelled() or future.exception() is not None:
            self.set_status("Tracking session crashed, see the log.")
            return
        self.set_status(f"Tracking session: {future.result().name.lower()}")

    # --- UI Boilerplate ---

    def _build_ui(self) -> None:
        f_main = tk.Frame(self, padx=12, pady=12)
        f_main.pack(fill="both", expand=True)

        f_top = tk.Frame(f_main)
        f_top.pack(fill="x")
        tk.Label(f_top, text="GP3 Attention", font=("Helvetica", 16, "bold")).pack(side="left")
        self.btn_launch = tk.Button(f_top, text="Launch tracking session", bg="#ddffdd", command=self.launch)
        self.btn_launch.pack(side="right")

        self.editor = scrolledtext.ScrolledText(f_main, wrap="word", height=20, font=("Courier", 12))
        self.editor.pack(fill="both", expand=True, pady=10)
        self.editor.insert("1.0", _PLACEHOLDER)

        self.log_view: Optional[scrolledtext.ScrolledText] = None
        if self.settings.connection.debug:
            tk.Label(f_main, text="Output", anchor="w").pack(fill="x")
            self.log_view = scrolledtext.ScrolledText(f_main, height=8, state="disabled", font=("Courier", 9))
            self.log_view.pack(fill="both")

        self.lbl_status = tk.Label(self, text="Init...", relief=tk.SUNKEN, anchor="w")
        self.lbl_status.pack(side="bottom", fill="x")

    def set_status(self, text: str) -> None:
        self.lbl_status.config(text=text)

    def append_log(self, line: str) -> None:
        if self.log_view is None:
            return
        self.log_view.config(state="normal")
        self.log_view.insert("end", line + "\n")
        self.log_view.see("end")
        self.log_view.config(state="disabled")

    def on_closing(self) -> None:
        self.is_closing = True
        if self._log_handler is not None:
            logging.getLogger("gp3_attention").removeHandler(self._log_handler)

        # Shutdown Sequence
        try:
            self.bridge.run(self.manager.shutdown(), timeout=5)
            if self.server is not None:
                self.bridge.run(self.server.stop(), timeout=5)
        except Exception:
            logger.exception("Error during shutdown")
        self.bridge.stop()
        self.destroy()
