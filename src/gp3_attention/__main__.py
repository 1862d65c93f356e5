import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from gp3_attention.configs import AppSettings
from gp3_attention.core import SessionManager, SessionOutcome
from gp3_attention.sim import SimulatedGazepointServer
from gp3_attention.ui import ConsoleHost
from gp3_attention.utils import HostLogHandler

logger = logging.getLogger("gp3_attention.main")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gp3-attention",
        description="Calibrate a Gazepoint GP3 against the visible text and stream gaze telemetry.",
    )
    parser.add_argument("--headless", action="store_true", help="Prompt on the terminal instead of opening a window.")
    parser.add_argument("--dummy", action="store_true", help="Talk to an in-process simulated Gazepoint server.")
    parser.add_argument("--host", help="Gazepoint Control address (overrides GP3__CONNECTION__HOST).")
    parser.add_argument("--port", type=int, help="Gazepoint Control port (overrides GP3__CONNECTION__PORT).")
    parser.add_argument("--debug", action="store_true", help="Log protocol traffic and mirror logs into the host.")
    return parser.parse_args(argv)


def apply_overrides(settings: AppSettings, args: argparse.Namespace) -> AppSettings:
    if args.host:
        settings.connection.host = args.host
    if args.port:
        settings.connection.port = args.port
    if args.debug:
        settings.connection.debug = True
    if args.dummy:
        settings.use_dummy_mode = True
    return settings


async def run_headless(settings: AppSettings, host: Optional[ConsoleHost] = None) -> SessionOutcome:
    """One tracking session on the terminal, against the simulator in dummy mode."""
    host = host or ConsoleHost()
    server: Optional[SimulatedGazepointServer] = None

    if settings.use_dummy_mode:
        logger.warning("Using the SIMULATED Gazepoint server (dummy mode)")
        server = SimulatedGazepointServer(host=settings.connection.host, port=0)
        await server.start()
        settings.connection.port = server.port

    handler: Optional[HostLogHandler] = None
    if settings.connection.debug:
        handler = HostLogHandler(host.log)
        logging.getLogger("gp3_attention").addHandler(handler)

    manager = SessionManager(host, settings)
    try:
        await manager.start()
        return await manager.launch_tracking_session()
    finally:
        await manager.shutdown()
        if server is not None:
            await server.stop()
        if handler is not None:
            logging.getLogger("gp3_attention").removeHandler(handler)


def run_window(settings: AppSettings) -> None:
    from gp3_attention.app import AsyncioTkinterBridge
    from gp3_attention.ui.main_window import Gp3App

    bridge = AsyncioTkinterBridge()
    bridge.start()

    server: Optional[SimulatedGazepointServer] = None
    try:
        if settings.use_dummy_mode:
            logger.warning("Using the SIMULATED Gazepoint server (dummy mode)")
            server = SimulatedGazepointServer(host=settings.connection.host, port=0)
            bridge.run(server.start(), timeout=5)
            settings.connection.port = server.port

        app = Gp3App(bridge, settings, server)
        app.mainloop()
    except Exception:
        logger.exception("Fatal Application Error")
    finally:
        # Emergency cleanup if UI crashes without closing
        logger.info("Shutdown sequence initiated.")
        if bridge.is_running:
            bridge.stop()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    # 1. Load Configuration
    try:
        settings = apply_overrides(AppSettings(), args)
    except Exception as e:
        print(f"Configuration Error: {e}")
        return 2

    # 2. Setup Logging
    logging.basicConfig(
        level="DEBUG" if settings.connection.debug else settings.logging.level,
        format=settings.logging.format,
        stream=sys.stdout,
    )
    logger.info(f"Starting GP3 Attention v{settings.__version__}")

    # 3. Launch
    if args.headless:
        outcome = asyncio.run(run_headless(settings))
        logger.info("Session finished: %s", outcome.name)
        return 0 if outcome is SessionOutcome.COMPLETED else 1

    run_window(settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
