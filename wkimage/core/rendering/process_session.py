"""
Process Session
===============

Lifecycle of a single wkhtmltoimage process: launch with the requested stdio
wiring, stderr monitoring, stdin feeding, stdout draining and a bounded wait
for exit with forced termination on timeout.
"""

import asyncio
import subprocess
import sys
from contextlib import suppress
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, Optional, Sequence

import psutil  # type: ignore

from wkimage.config.logging import get_logger
from wkimage.models.schemas import ExitOutcome, ProcessPriority
from .exceptions import RenderTimeoutError, ToolNotFoundError
from .stream_pump import StreamPump

logger = get_logger(__name__)

LineCallback = Callable[[str], None]

# Longer stderr lines are truncated to their last STDERR_LINE_LIMIT bytes
STDERR_LINE_LIMIT = 1024 * 1024

# Seconds to wait for a killed process to be reaped
KILL_WAIT_TIMEOUT = 5

_POSIX_NICENESS: Dict[ProcessPriority, int] = {
    ProcessPriority.BELOW_NORMAL: 10,
    ProcessPriority.NORMAL: 0,
    ProcessPriority.ABOVE_NORMAL: -5,
    ProcessPriority.HIGH: -10,
    ProcessPriority.REALTIME: -20,
}

_WINDOWS_PRIORITY_CLASSES: Dict[ProcessPriority, str] = {
    ProcessPriority.BELOW_NORMAL: "BELOW_NORMAL_PRIORITY_CLASS",
    ProcessPriority.NORMAL: "NORMAL_PRIORITY_CLASS",
    ProcessPriority.ABOVE_NORMAL: "ABOVE_NORMAL_PRIORITY_CLASS",
    ProcessPriority.HIGH: "HIGH_PRIORITY_CLASS",
    ProcessPriority.REALTIME: "REALTIME_PRIORITY_CLASS",
}


async def read_stderr_line(
    reader: asyncio.StreamReader, keep: int = STDERR_LINE_LIMIT
) -> Optional[bytes]:
    """
    Read the next line without its newline, or None at end of stream.

    Lines longer than the reader limit are consumed in pieces and only their
    last ``keep`` bytes are returned.
    """
    overflow = b""
    while True:
        try:
            line = (await reader.readuntil(b"\n"))[:-1]
        except asyncio.IncompleteReadError as e:
            if not e.partial and not overflow:
                return None
            line = e.partial
        except asyncio.LimitOverrunError as e:
            overflow = (overflow + await reader.readexactly(e.consumed))[-keep:]
            continue
        return (overflow + line)[-keep:]


def apply_priority(pid: int, priority: ProcessPriority) -> None:
    """Set the scheduling priority of a running process."""
    if sys.platform == "win32":
        value = getattr(psutil, _WINDOWS_PRIORITY_CLASSES[priority])
    else:
        value = _POSIX_NICENESS[priority]

    try:
        psutil.Process(pid).nice(value)
    except psutil.NoSuchProcess:
        # Already exited, nothing left to reschedule
        pass


class StderrMonitor:
    """Keeps the most recent non-empty stderr line and forwards every line."""

    def __init__(self, line_callback: Optional[LineCallback] = None):
        self.line_callback = line_callback
        self.last_error_line = ""

    def handle_line(self, line: Optional[str]) -> None:
        """Handle one stderr line; None marks the end of the stream."""
        if line is None:
            return
        if line:
            self.last_error_line = line
        if self.line_callback is not None:
            self.line_callback(line)


class ExitSignallingProtocol(asyncio.subprocess.SubprocessStreamProtocol):
    """
    Stream protocol that resolves ``exited`` as soon as the process ends.

    ``Process.wait()`` only returns once every pipe is closed as well, which a
    child process still holding stdout can delay indefinitely.
    """

    def __init__(self, limit: int, loop: asyncio.AbstractEventLoop):
        super().__init__(limit, loop)
        self.exited: "asyncio.Future[None]" = loop.create_future()

    def process_exited(self) -> None:
        super().process_exited()
        if not self.exited.done():
            self.exited.set_result(None)


class ProcessSession:
    """
    One wkhtmltoimage process per render call.

    stdin is redirected only for literal content and stdout only when the
    output goes to a stream; otherwise the tool reads/writes the paths given
    on its command line. ``close()`` must be awaited on every path, it
    terminates a still running process and releases the pipes.
    """

    def __init__(
        self,
        tool_path: Path,
        executable_name: str,
        arguments: Sequence[str],
        *,
        redirect_stdin: bool,
        redirect_stdout: bool,
        priority: ProcessPriority = ProcessPriority.NORMAL,
        line_callback: Optional[LineCallback] = None,
    ):
        self.tool_path = Path(tool_path)
        self.executable = self.tool_path / executable_name
        self.arguments = list(arguments)
        self.redirect_stdin = redirect_stdin
        self.redirect_stdout = redirect_stdout
        self.priority = priority
        self.monitor = StderrMonitor(line_callback)

        self.process: Optional[asyncio.subprocess.Process] = None
        self.pump: Optional[StreamPump] = None
        self._transport: Optional[asyncio.SubprocessTransport] = None
        self._protocol: Optional[ExitSignallingProtocol] = None
        self._stderr_task: Optional["asyncio.Task[None]"] = None
        self.logger: Any = logger.bind(component="process_session")

    @property
    def last_error_line(self) -> str:
        return self.monitor.last_error_line

    @property
    def returncode(self) -> Optional[int]:
        if self._transport is None:
            return None
        return self._transport.get_returncode()

    async def start(self) -> None:
        """
        Launch the renderer.

        Raises:
            ToolNotFoundError: If the executable does not exist
        """
        if not self.executable.exists():
            raise ToolNotFoundError(self.executable)

        kwargs: Dict[str, Any] = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW

        loop = asyncio.get_running_loop()
        self._transport, self._protocol = await loop.subprocess_exec(
            lambda: ExitSignallingProtocol(STDERR_LINE_LIMIT, loop),
            str(self.executable),
            *self.arguments,
            stdin=subprocess.PIPE if self.redirect_stdin else None,
            stdout=subprocess.PIPE if self.redirect_stdout else None,
            stderr=subprocess.PIPE,
            cwd=str(self.tool_path),
            **kwargs,
        )
        self.process = asyncio.subprocess.Process(self._transport, self._protocol, loop)
        self.logger.info(
            "Started wkhtmltoimage",
            executable=str(self.executable),
            arguments=self.arguments,
            pid=self.process.pid,
        )

        self._stderr_task = loop.create_task(self._read_stderr())

        if self.priority != ProcessPriority.NORMAL:
            apply_priority(self.process.pid, self.priority)

    async def _read_stderr(self) -> None:
        assert self.process is not None and self.process.stderr is not None
        stderr = self.process.stderr
        while True:
            raw = await read_stderr_line(stderr)
            if raw is None:
                self.monitor.handle_line(None)
                return
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            self.logger.debug("wkhtmltoimage stderr", line=line)
            self.monitor.handle_line(line)

    def attach_output(self, sink: BinaryIO) -> StreamPump:
        """Start draining stdout into ``sink``."""
        assert self.process is not None and self.process.stdout is not None
        if self.pump is not None:
            raise RuntimeError("stdout is already being drained")
        self.pump = StreamPump(self.process.stdout, sink, on_close=lambda: self._close_pipe(1))
        return self.pump

    async def feed_input(self, data: bytes) -> None:
        """Write ``data`` to stdin and close it to signal end of input."""
        assert self.process is not None and self.process.stdin is not None
        stdin = self.process.stdin
        try:
            stdin.write(data)
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            # The exit code decides whether the run failed
            self.logger.warning("wkhtmltoimage closed its input early", error=str(e))
        finally:
            stdin.close()

    async def wait_for_exit(
        self, timeout: Optional[float] = None, input_data: Optional[bytes] = None
    ) -> int:
        """
        Feed stdin (if given) and wait for the process to exit.

        Raises:
            RenderTimeoutError: If the process is still running after ``timeout``;
                the process is killed first
        """
        assert self._protocol is not None and self._transport is not None
        exited = self._protocol.exited

        async def feed_and_wait() -> None:
            if input_data is not None:
                await self.feed_input(input_data)
            # Shielded: a timeout must not cancel the shared exit future
            await asyncio.shield(exited)

        if timeout is None:
            await feed_and_wait()
        else:
            try:
                await asyncio.wait_for(feed_and_wait(), timeout)
            except asyncio.TimeoutError:
                self.logger.warning(
                    "wkhtmltoimage timed out, killing", pid=self._transport.get_pid(), timeout=timeout
                )
                self.kill()
                raise RenderTimeoutError(
                    timeout,
                    f"WkHtmlToImage process exceeded execution timeout ({timeout}s) and was aborted",
                )

        returncode = self._transport.get_returncode()
        assert returncode is not None
        return returncode

    async def run(
        self,
        input_data: Optional[bytes] = None,
        output_stream: Optional[BinaryIO] = None,
        output_path: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> ExitOutcome:
        """
        Drive a started process to completion.

        Args:
            input_data: Content piped through stdin
            output_stream: Sink for stdout
            output_path: File the tool writes itself (when no stream is used)
            timeout: Bound for the exit wait and, separately, for the stdout drain

        Returns:
            ExitOutcome of the finished run
        """
        if output_stream is not None:
            self.attach_output(output_stream)

        exit_code = await self.wait_for_exit(timeout, input_data)

        # stderr closes with the process; wait so the last line is final
        if self._stderr_task is not None:
            await asyncio.wait([self._stderr_task], timeout=timeout)
            if self._stderr_task.done():
                # Surfaces unexpected reader failures
                self._stderr_task.result()

        if self.pump is None:
            output_size = 0
            if output_path is not None and output_path.exists():
                output_size = output_path.stat().st_size
        else:
            output_size = await self.pump.wait(timeout)

        return ExitOutcome(
            exit_code=exit_code,
            last_error_line=self.monitor.last_error_line,
            output_size=output_size,
        )

    def kill(self) -> None:
        """Kill the process if it is still running, ignoring errors."""
        if self._transport is None or self._transport.get_returncode() is not None:
            return
        with suppress(OSError):
            self._transport.kill()

    def _close_pipe(self, fd: int) -> None:
        if self._transport is None:
            return
        pipe = self._transport.get_pipe_transport(fd)
        if pipe is not None:
            pipe.close()

    async def close(self) -> None:
        """Terminate the process if needed and release every stream. Idempotent."""
        if self.pump is not None:
            self.pump.close()

        if self._stderr_task is not None and not self._stderr_task.done():
            self._stderr_task.cancel()

        if self._transport is None or self._protocol is None:
            return

        if self._transport.get_returncode() is None:
            self.kill()
            await asyncio.wait([self._protocol.exited], timeout=KILL_WAIT_TIMEOUT)

        self._transport.close()
