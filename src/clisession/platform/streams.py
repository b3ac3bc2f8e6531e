"""
Standard stream handles.

StreamHandle names the three standard streams symbolically. StandardStreams
resolves each one to the real file object at most once and raises
StreamOpenError if a stream cannot be opened.
"""

import enum
import sys
import threading
from typing import Any, Callable, Dict, Optional, TextIO

from clisession.errors import StreamOpenError


class StreamHandle(enum.IntEnum):
    """Symbolic identifiers for the process's standard streams."""

    STD_OUT = 0
    STD_ERR = 1
    STD_IN = 2

    @property
    def attr_name(self) -> str:
        """Attribute name on the ``sys`` module."""
        return _SYS_ATTRS[self]

    @property
    def fileno(self) -> int:
        return _FILENOS[self]

    @property
    def mode(self) -> str:
        return "r" if self is StreamHandle.STD_IN else "w"


_SYS_ATTRS = {
    StreamHandle.STD_OUT: "stdout",
    StreamHandle.STD_ERR: "stderr",
    StreamHandle.STD_IN: "stdin",
}

_FILENOS = {
    StreamHandle.STD_IN: 0,
    StreamHandle.STD_OUT: 1,
    StreamHandle.STD_ERR: 2,
}


def open_standard_stream(handle: StreamHandle) -> TextIO:
    """
    Return the live ``sys`` stream for a handle.

    When the interpreter started without one (``pythonw``, detached
    services) the underlying file descriptor is opened directly.
    """
    stream = getattr(sys, handle.attr_name, None)
    if stream is not None:
        return stream
    return open(handle.fileno, handle.mode, closefd=False)


class StandardStreams:
    """
    Lazily resolved standard streams.

    Args:
        opener: Callable returning the stream for a handle
            (defaults to open_standard_stream)
    """

    def __init__(self, opener: Optional[Callable[[StreamHandle], TextIO]] = None):
        self._opener = opener or open_standard_stream
        self._resolved: Dict[StreamHandle, TextIO] = {}
        self._lock = threading.Lock()

    def get(self, handle: Any) -> Any:
        """
        Resolve a handle to its stream.

        Values that are not standard stream handles are returned unchanged,
        so callers may pass an already-open stream.

        Raises:
            StreamOpenError: If the stream cannot be opened
        """
        if not isinstance(handle, int) or isinstance(handle, bool):
            return handle
        try:
            handle = StreamHandle(handle)
        except ValueError:
            return handle

        stream = self._resolved.get(handle)
        if stream is not None:
            return stream

        with self._lock:
            stream = self._resolved.get(handle)
            if stream is None:
                stream = self._try_open(handle)
                self._resolved[handle] = stream
        return stream

    def open_all(self) -> None:
        """Resolve all three standard streams."""
        for handle in (StreamHandle.STD_IN, StreamHandle.STD_OUT, StreamHandle.STD_ERR):
            self.get(handle)

    def is_resolved(self, handle: StreamHandle) -> bool:
        return handle in self._resolved

    def _try_open(self, handle: StreamHandle) -> TextIO:
        name = f"<{handle.attr_name}>"
        try:
            stream = self._opener(handle)
        except (OSError, ValueError) as e:
            raise StreamOpenError(name, handle.mode, e) from e

        if stream is None:
            raise StreamOpenError(name, handle.mode)
        return stream
