import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Coroutine, Optional

logger = logging.getLogger(__name__)


def _log_crash(future: concurrent.futures.Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error("Background Task Crash: %s", error, exc_info=error)


class AsyncioTkinterBridge:
    """
    Hosts the session's event loop on a daemon thread beside Tk's mainloop.

    Socket reads, acknowledgement waits and calibration timers all run on
    this loop. The Tk thread hands work over with submit() (fire and
    forget) or run() (block until done, for shutdown paths).
    """

    def __init__(self, name: str = "gp3-asyncio"):
        self._loop = asyncio.new_event_loop()
        self._ready = threading.Event()
        self._worker = threading.Thread(target=self._serve, name=name, daemon=True)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def is_running(self) -> bool:
        return self._ready.is_set() and self._worker.is_alive()

    def start(self) -> None:
        if self._worker.is_alive():
            logger.warning("Session loop thread already started.")
            return
        self._worker.start()
        self._ready.wait()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> concurrent.futures.Future:
        """
        Schedules `coro` from any thread; the returned future is thread-safe.
        A crash in it is logged here, so nobody has to wait on the result.
        """
        future = self._schedule(coro)
        future.add_done_callback(_log_crash)
        return future

    def run(self, coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
        """Blocks the calling thread until `coro` finishes on the loop. Errors propagate."""
        return self._schedule(coro).result(timeout)

    def _schedule(self, coro: Coroutine[Any, Any, Any]) -> concurrent.futures.Future:
        if not self.is_running:
            coro.close()
            raise RuntimeError("Session loop is not running.")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def stop(self, timeout: float = 5.0) -> None:
        """Cancels what is still pending (e.g. an unanswered prompt) and joins the thread."""
        if not self.is_running:
            return
        self._loop.call_soon_threadsafe(self._cancel_all)
        self._worker.join(timeout)
        if self._worker.is_alive():
            logger.error("Session loop thread did not stop within %.1fs", timeout)

    # --- Loop thread ---

    def _serve(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._ready.set)
        try:
            self._loop.run_forever()
        finally:
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            self._loop.close()
            self._ready.clear()
            logger.info("Session event loop closed.")

    def _cancel_all(self) -> None:
        pending = [t for t in asyncio.all_tasks(self._loop) if not t.done()]
        for task in pending:
            task.cancel()

        if not pending:
            self._loop.stop()
            return

        logger.debug("Cancelling %d pending task(s).", len(pending))
        gathered = asyncio.gather(*pending, return_exceptions=True)
        gathered.add_done_callback(lambda _: self._loop.stop())
