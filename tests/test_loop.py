"""Tests for the main loop and shutdown."""

from __future__ import annotations

import os
from pathlib import Path

import anyio
import pytest

from soundboard.commands import CommandDispatcher
from soundboard.console import StdinReader
from soundboard.loop import Shutdown, disconnect_all, run_main_loop
from tests.voice_fakes import FakeBot, FakeSession, ready_registry


class TestShutdown:
    """Test Shutdown."""

    def test_first_request_wins(self) -> None:
        shutdown = Shutdown()
        assert shutdown.requested is False
        assert shutdown.request("console.exit") is True
        assert shutdown.request("console.exit") is False
        assert shutdown.request("signal.SIGTERM") is False
        assert shutdown.reason == "console.exit"
        assert shutdown.requested is True

    @pytest.mark.anyio
    async def test_wait_returns_after_request(self) -> None:
        shutdown = Shutdown()
        with anyio.fail_after(1):
            async with anyio.create_task_group() as tg:
                tg.start_soon(shutdown.wait)
                shutdown.request("test")


class TestDisconnectAll:
    """Test disconnect_all."""

    @pytest.mark.anyio
    async def test_leaves_every_session(self) -> None:
        registry, _ = await ready_registry()
        sessions = [FakeSession(), FakeSession()]
        await registry.put(1, sessions[0])
        await registry.put(2, sessions[1])

        assert await disconnect_all(registry) == 2
        assert [session.left for session in sessions] == [1, 1]
        assert await registry.find_active_session() is None

    @pytest.mark.anyio
    async def test_failing_leave_does_not_stop_the_rest(self) -> None:
        registry, _ = await ready_registry()
        broken, healthy = FakeSession(), FakeSession()
        broken.leave_error = RuntimeError("boom")
        await registry.put(1, broken)
        await registry.put(2, healthy)

        assert await disconnect_all(registry) == 2
        assert healthy.left == 1


class TestRunMainLoop:
    """Test run_main_loop."""

    @pytest.mark.anyio
    async def test_console_exit_shuts_everything_down(self, sounds_dir: Path) -> None:
        registry, _ = await ready_registry()
        session = FakeSession(100)
        await registry.put(1, session)
        dispatcher = CommandDispatcher(registry, sounds_dir)
        bot = FakeBot()
        lines = ["appla\n", "exit\n", "exit\n"]
        output: list[str] = []

        async def read_line() -> str | None:
            return lines.pop(0) if lines else None

        with anyio.fail_after(5):
            shutdown = await run_main_loop(
                bot,
                dispatcher,
                read_line=read_line,
                write=output.append,
                handle_signals=False,
            )

        assert shutdown.reason == "console.exit"
        assert output == ["Playing applause.wav"]
        assert bot.closed == 1
        assert session.left == 1
        assert await registry.get(1) is None

    @pytest.mark.anyio
    async def test_external_request_stops_console(self, sounds_dir: Path) -> None:
        registry, _ = await ready_registry()
        dispatcher = CommandDispatcher(registry, sounds_dir)
        bot = FakeBot()
        shutdown = Shutdown()

        async def read_line() -> str | None:
            shutdown.request("signal.SIGTERM")
            await anyio.sleep_forever()

        with anyio.fail_after(5):
            await run_main_loop(
                bot,
                dispatcher,
                read_line=read_line,
                handle_signals=False,
                shutdown=shutdown,
            )

        assert shutdown.reason == "signal.SIGTERM"
        assert bot.closed == 1

    @pytest.mark.anyio
    async def test_bot_failure_shuts_down(self, sounds_dir: Path) -> None:
        registry, _ = await ready_registry()
        dispatcher = CommandDispatcher(registry, sounds_dir)
        bot = FakeBot()
        bot.run_error = RuntimeError("improper token")

        with anyio.fail_after(5):
            shutdown = await run_main_loop(
                bot, dispatcher, console=False, handle_signals=False
            )

        assert shutdown.reason == "bot.stopped"
        assert bot.closed == 1

    @pytest.mark.anyio
    async def test_exit_racing_play(self, sounds_dir: Path) -> None:
        """A play in flight when shutdown starts still completes."""
        registry, _ = await ready_registry()
        session = FakeSession(100)
        await registry.put(1, session)
        dispatcher = CommandDispatcher(registry, sounds_dir)
        bot = FakeBot()
        shutdown = Shutdown()
        lines = ["appla\n"]
        output: list[str] = []

        async def read_line() -> str | None:
            if lines:
                shutdown.request("signal.SIGINT")
                return lines.pop(0)
            await anyio.sleep_forever()

        with anyio.fail_after(5):
            await run_main_loop(
                bot,
                dispatcher,
                read_line=read_line,
                write=output.append,
                handle_signals=False,
                shutdown=shutdown,
            )

        assert shutdown.reason == "signal.SIGINT"
        assert bot.closed == 1
        assert output == ["Playing applause.wav"]
        assert len(session.played) == 1

    @pytest.mark.anyio
    async def test_bot_stop_with_idle_stdin(self, sounds_dir: Path) -> None:
        """The gateway stopping ends the loop while stdin stays open and silent."""
        registry, _ = await ready_registry()
        dispatcher = CommandDispatcher(registry, sounds_dir)
        bot = FakeBot()
        read_fd, write_fd = os.pipe()
        stream = os.fdopen(read_fd, "r", encoding="utf-8")
        reader = StdinReader(stream)

        async def stop_bot() -> None:
            await anyio.sleep(0.2)
            await bot.close()

        try:
            with anyio.fail_after(5):
                async with anyio.create_task_group() as tg:
                    tg.start_soon(stop_bot)
                    shutdown = await run_main_loop(
                        bot,
                        dispatcher,
                        read_line=reader.readline,
                        handle_signals=False,
                    )

            assert shutdown.reason == "bot.stopped"
            assert reader._thread is not None
            assert reader._thread.daemon
            assert reader._thread.is_alive()
        finally:
            os.close(write_fd)
            if reader._thread is not None:
                await anyio.to_thread.run_sync(reader._thread.join, 5)
            stream.close()
