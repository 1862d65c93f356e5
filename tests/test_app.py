"""Tests for the console host and the command-line entry point."""

import io
import logging

import pytest

from gp3_attention.__main__ import apply_overrides, parse_args, run_headless
from gp3_attention.app import AsyncioTkinterBridge
from gp3_attention.configs import AppSettings, CalibrationTimings
from gp3_attention.core import SessionOutcome
from gp3_attention.ui import ConsoleHost


def scripted(*answers):
    """A read_line that replays `answers`, then behaves like a closed stdin."""
    queue = list(answers)

    def read_line(prompt: str) -> str:
        if not queue:
            raise EOFError
        return queue.pop(0)

    return read_line


def console(*answers) -> tuple[ConsoleHost, io.StringIO]:
    out = io.StringIO()
    return ConsoleHost(stream=out, read_line=scripted(*answers), log_stream=io.StringIO()), out


class TestConsoleHost:
    @pytest.mark.asyncio
    async def test_answer_by_number(self):
        host, out = console("2")
        assert await host.notify("Ready?", ("Open", "Cancel")) == "Cancel"
        assert "Ready?" in out.getvalue()

    @pytest.mark.asyncio
    async def test_answer_by_name(self):
        host, _ = console("start calibration")
        assert await host.notify("Go", ("Start Calibration", "Cancel")) == "Start Calibration"

    @pytest.mark.asyncio
    async def test_reasks_until_valid(self):
        host, out = console("9", "maybe", "1")
        assert await host.notify("Go", ("Open", "Cancel")) == "Open"
        assert out.getvalue().count("Please answer one of") == 2

    @pytest.mark.asyncio
    async def test_end_of_input_dismisses(self):
        host, _ = console()
        assert await host.notify("Go", ("Open", "Cancel")) is None

    @pytest.mark.asyncio
    async def test_plain_notice(self):
        host, out = console()
        assert await host.notify("Calibration done!") is None
        assert out.getvalue() == "Calibration done!\n"

    @pytest.mark.asyncio
    async def test_material_is_printed(self):
        host, out = console()
        handle = await host.open_material("Letter 1")
        await host.restore_material(handle)
        assert "Letter 1" in out.getvalue()
        assert host.has_active_context()


class TestCommandLine:
    def test_overrides(self, monkeypatch):
        monkeypatch.chdir("/")
        args = parse_args(["--host", "10.1.1.1", "--port", "4343", "--debug", "--dummy", "--headless"])
        settings = apply_overrides(AppSettings(), args)

        assert args.headless
        assert settings.connection.host == "10.1.1.1"
        assert settings.connection.port == 4343
        assert settings.connection.debug
        assert settings.use_dummy_mode

    def test_no_overrides_keep_settings(self, monkeypatch):
        monkeypatch.setenv("GP3__CONNECTION__PORT", "4545")
        settings = apply_overrides(AppSettings(), parse_args([]))
        assert settings.connection.port == 4545
        assert not settings.use_dummy_mode


class TestAsyncioTkinterBridge:
    """The loop thread that the window hands session work to."""

    @pytest.fixture
    def bridge(self):
        bridge = AsyncioTkinterBridge(name="test-loop")
        bridge.start()
        yield bridge
        bridge.stop()

    @staticmethod
    async def boom():
        raise ValueError("boom")

    def test_run_returns_the_result(self, bridge):
        async def answer():
            return 42

        assert bridge.run(answer(), timeout=2) == 42

    def test_run_propagates_errors(self, bridge):
        with pytest.raises(ValueError):
            bridge.run(self.boom(), timeout=2)

    def test_submitted_crash_is_logged(self, bridge, caplog):
        with caplog.at_level(logging.ERROR, logger="gp3_attention.app.bridge"):
            future = bridge.submit(self.boom())
            assert isinstance(future.exception(timeout=2), ValueError)
            bridge.stop()

        assert "Background Task Crash: boom" in caplog.text

    def test_submit_after_stop_is_refused(self, bridge):
        bridge.stop()
        assert not bridge.is_running

        coro = self.boom()
        with pytest.raises(RuntimeError):
            bridge.submit(coro)
        assert coro.cr_frame is None


@pytest.mark.slow
class TestHeadlessSession:
    """A whole session on the terminal host against the simulator."""

    @pytest.fixture
    def settings(self, monkeypatch):
        monkeypatch.chdir("/")
        return AppSettings(
            use_dummy_mode=True,
            calibration=CalibrationTimings(
                start_delay_s=0.01,
                hide_delay_s=0.05,
                stare_window_s=0.2,
                step_pause_s=0,
                material_settle_s=0,
            ),
        )

    @pytest.mark.asyncio
    async def test_completes(self, settings):
        host, out = console("1", "1", "1", "1")

        outcome = await run_headless(settings, host)

        assert outcome is SessionOutcome.COMPLETED
        text = out.getvalue()
        assert "Upper left calibrated." in text
        assert "Lower right calibrated." in text
        assert text.rstrip().endswith("Calibration done!")

    @pytest.mark.asyncio
    async def test_cancelled(self, settings):
        host, out = console("1", "2")

        outcome = await run_headless(settings, host)

        assert outcome is SessionOutcome.CANCELLED
        assert "(calibration text closed)" in out.getvalue()

    @pytest.mark.asyncio
    async def test_debug_mirrors_logs_into_host(self, settings, caplog):
        settings.connection.debug = True
        lines = []
        host, _ = console("2")
        host.log = lines.append

        with caplog.at_level(logging.DEBUG, logger="gp3_attention"):
            await run_headless(settings, host)
            mirrored = len(lines)
            logging.getLogger("gp3_attention.test").info("after the session")

        assert any("TelemetryRunner" in line for line in lines)
        assert len(lines) == mirrored
