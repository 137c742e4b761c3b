"""Main loop: chat client and console side by side over one registry."""

from __future__ import annotations

import signal
from typing import Protocol

import anyio

from .commands import CommandDispatcher
from .console import ReadLine, WriteLine, run_console
from .logging import get_logger
from .registry import SessionRegistry

logger = get_logger(__name__)

__all__ = ["ChatClient", "Shutdown", "disconnect_all", "run_main_loop"]


class ChatClient(Protocol):
    async def run(self) -> None: ...

    async def close(self) -> None: ...


class Shutdown:
    """One-shot shutdown request; later requests are ignored."""

    def __init__(self) -> None:
        self._event = anyio.Event()
        self.reason: str | None = None

    @property
    def requested(self) -> bool:
        return self._event.is_set()

    def request(self, reason: str) -> bool:
        if self._event.is_set():
            logger.debug("shutdown.ignored", reason=reason)
            return False
        self.reason = reason
        self._event.set()
        logger.info("shutdown.requested", reason=reason)
        return True

    async def wait(self) -> None:
        await self._event.wait()


async def disconnect_all(registry: SessionRegistry) -> int:
    """Drain the registry and leave every voice session."""
    sessions = await registry.drain()
    for room_id, session in sessions:
        try:
            await session.leave()
        except Exception:
            logger.exception("shutdown.leave_failed", room_id=room_id)
    return len(sessions)


async def _watch_signals(shutdown: Shutdown) -> None:
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            shutdown.request(f"signal.{signal.Signals(signum).name}")
            return


async def run_main_loop(
    bot: ChatClient,
    dispatcher: CommandDispatcher,
    *,
    console: bool = True,
    read_line: ReadLine | None = None,
    write: WriteLine | None = None,
    handle_signals: bool = True,
    shutdown: Shutdown | None = None,
) -> Shutdown:
    """Run until the console, a signal or the chat client asks to stop."""
    shutdown = shutdown or Shutdown()

    async def run_bot() -> None:
        try:
            await bot.run()
        except Exception:
            logger.exception("bot.failed")
        finally:
            shutdown.request("bot.stopped")

    async with anyio.create_task_group() as tg:
        tg.start_soon(run_bot)
        if console:
            console_kwargs = {}
            if read_line is not None:
                console_kwargs["read_line"] = read_line
            if write is not None:
                console_kwargs["write"] = write

            async def run_console_task() -> None:
                await run_console(dispatcher, shutdown, **console_kwargs)

            tg.start_soon(run_console_task)
        if handle_signals:
            tg.start_soon(_watch_signals, shutdown)

        await shutdown.wait()
        with anyio.CancelScope(shield=True):
            left = await disconnect_all(dispatcher.registry)
            logger.info("shutdown.sessions_closed", count=left)
            await bot.close()
        tg.cancel_scope.cancel()

    logger.info("shutdown.done", reason=shutdown.reason)
    return shutdown
