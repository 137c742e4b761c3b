"""Line-oriented local console: every line is a sound to play."""

from __future__ import annotations

import sys
import threading
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TextIO

import anyio
import anyio.from_thread
import anyio.lowlevel
import typer

from .logging import get_logger

if TYPE_CHECKING:
    from anyio.abc import ObjectSendStream
    from anyio.streams.memory import MemoryObjectReceiveStream

    from .commands import CommandDispatcher
    from .loop import Shutdown

logger = get_logger(__name__)

__all__ = ["EXIT_COMMAND", "StdinReader", "run_console"]

EXIT_COMMAND = "exit"

ReadLine = Callable[[], Awaitable[str | None]]
WriteLine = Callable[[str], None]


class StdinReader:
    """Reads lines on a daemon thread and hands them to the event loop.

    A read still pending at shutdown stays parked on the daemon thread, so it
    never holds up interpreter exit.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream
        self._receive: MemoryObjectReceiveStream[str] | None = None
        self._thread: threading.Thread | None = None

    def _start(self) -> MemoryObjectReceiveStream[str]:
        send, receive = anyio.create_memory_object_stream[str]()
        stream = self._stream
        if stream is None:
            # own buffer, so sys.stdin is never locked by the parked thread at exit
            stream = open(  # noqa: SIM115
                sys.stdin.fileno(),
                encoding=sys.stdin.encoding or "utf-8",
                errors="replace",
                closefd=False,
            )
        self._thread = threading.Thread(
            target=_pump_lines,
            args=(stream, send, anyio.lowlevel.current_token()),
            name="soundboard-stdin",
            daemon=True,
        )
        self._thread.start()
        self._receive = receive
        return receive

    async def readline(self) -> str | None:
        """Next line including its newline; None on EOF."""
        receive = self._receive if self._receive is not None else self._start()
        try:
            return await receive.receive()
        except anyio.EndOfStream:
            return None


def _pump_lines(
    stream: TextIO,
    send: ObjectSendStream[str],
    token: anyio.lowlevel.EventLoopToken,
) -> None:
    try:
        for line in iter(stream.readline, ""):
            anyio.from_thread.run(send.send, line, token=token)
        anyio.from_thread.run_sync(send.close, token=token)
    except (
        anyio.RunFinishedError,
        anyio.BrokenResourceError,
        anyio.ClosedResourceError,
    ):
        # event loop or console already gone
        return


async def run_console(
    dispatcher: CommandDispatcher,
    shutdown: Shutdown,
    *,
    read_line: ReadLine | None = None,
    write: WriteLine = typer.echo,
) -> None:
    if read_line is None:
        read_line = StdinReader().readline
    logger.info("console.started")
    while not shutdown.requested:
        line = await read_line()
        if line is None:
            shutdown.request("console.eof")
            return
        text = line.strip()
        if not text:
            continue
        if text == EXIT_COMMAND:
            shutdown.request("console.exit")
            return
        # a play that already started finishes even if shutdown cancels us
        with anyio.CancelScope(shield=True):
            reply = await dispatcher.play(text)
        write(reply)
