"""
Stream Pump
===========

Background copy of the renderer's stdout into the caller's output stream.
"""

import asyncio
from typing import Any, BinaryIO, Callable, Optional

from wkimage.config.logging import get_logger
from .exceptions import RenderTimeoutError

logger = get_logger(__name__)

COPY_BUFFER_SIZE = 32768


class StreamPump:
    """
    Copies an async byte source into a binary sink until EOF.

    The copy starts as soon as the pump is created, so it must be built inside
    a running event loop. The pump owns the source from then on: ``close()``
    cancels a pending copy and releases the source through ``on_close``.
    """

    def __init__(
        self,
        source: asyncio.StreamReader,
        sink: BinaryIO,
        on_close: Optional[Callable[[], None]] = None,
        buffer_size: int = COPY_BUFFER_SIZE,
    ):
        self._source: Optional[asyncio.StreamReader] = source
        self._sink = sink
        self._on_close = on_close
        self._buffer_size = buffer_size
        self._total_read = 0
        self.logger: Any = logger.bind(component="stream_pump")
        self._task: Optional["asyncio.Task[int]"] = asyncio.get_running_loop().create_task(
            self._copy()
        )

    @property
    def total_read(self) -> int:
        """Bytes copied so far."""
        return self._total_read

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    async def _copy(self) -> int:
        source = self._source
        assert source is not None
        while True:
            chunk = await source.read(self._buffer_size)
            if not chunk:
                break
            self._sink.write(chunk)
            self._total_read += len(chunk)
        self.logger.debug("Output copy completed", bytes=self._total_read)
        return self._total_read

    async def wait(self, timeout: Optional[float] = None) -> int:
        """
        Wait for the copy to finish.

        Args:
            timeout: Seconds to wait, None waits until EOF

        Returns:
            Total bytes copied

        Raises:
            RenderTimeoutError: If the copy is still running after ``timeout``
        """
        if self._task is None:
            raise RuntimeError("Stream pump is closed")

        if timeout is None:
            return await self._task

        try:
            # Shielded: running out of time must not cancel the copy itself
            return await asyncio.wait_for(asyncio.shield(self._task), timeout)
        except asyncio.TimeoutError:
            raise RenderTimeoutError(
                timeout,
                f"WkHtmlToImage output read operation exceeded the timeout ({timeout}s) "
                "and was aborted",
            )

    def close(self) -> None:
        """Cancel any pending copy and release the source. Safe to call repeatedly."""
        if self._source is not None:
            self._source = None
            if self._on_close is not None:
                self._on_close()

        if self._task is not None:
            task, self._task = self._task, None
            if task.done():
                if not task.cancelled():
                    # Mark a failed copy's exception as retrieved
                    task.exception()
            else:
                task.cancel()
