"""
Cross-platform terminal capability and geometry detection.

CapabilityDetector answers "does this stream take color / ANSI escapes" and
GeometryDetector answers "how big is the terminal". Both probe once and
remember the answer for the lifetime of their owning Session.
"""

import logging
import re
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, TextIO, Tuple

from .proc import first_result, parse_int
from .streams import StandardStreams, StreamHandle

logger = logging.getLogger(__name__)

# TERM substrings of terminals known to understand ANSI escapes
KNOWN_ANSI_TERMINALS = ("xterm", "xterm-color", "screen", "screen-256color", "tmux", "linux")

COLOR_DISABLE_VAR = "NO_COLOR"
ANSI_DISABLE_VAR = "DISABLE_ANSI"

# SetConsoleMode flags
ENABLE_VIRTUAL_TERMINAL_PROCESSING = 0x0004
ENABLE_VIRTUAL_TERMINAL_INPUT = 0x0200

POWERSHELL_SIZE_COMMAND = (
    'powershell -command "Get-Host | ForEach-Object '
    '{ $_.UI.RawUI.WindowSize.Height; $_.UI.RawUI.WindowSize.Width }"'
)

_STTY_SIZE_RE = re.compile(r"(\d+)\s+(\d+)")
_MODE_COLUMNS_RE = re.compile(r"Columns:\s+(\d+)", re.IGNORECASE)
_MODE_LINES_RE = re.compile(r"Lines:\s+(\d+)", re.IGNORECASE)


def is_tty(stream: Optional[TextIO]) -> bool:
    """Check if the given stream is a TTY."""
    try:
        return bool(stream.isatty())
    except (AttributeError, ValueError):
        return False


def is_color_disabled(environ: Mapping[str, str]) -> bool:
    """True when ``NO_COLOR`` is present, whatever its value."""
    return COLOR_DISABLE_VAR in environ


def is_ansi_disabled(environ: Mapping[str, str]) -> bool:
    """True when ``DISABLE_ANSI`` is present, whatever its value."""
    return ANSI_DISABLE_VAR in environ


def is_linux_ansi(environ: Mapping[str, str]) -> bool:
    """Check ``TERM`` against the terminals known to handle ANSI escapes."""
    term = environ.get("TERM")
    if term is None:
        return False
    return any(name in term for name in KNOWN_ANSI_TERMINALS)


def windows_vt_supported(stream: Any, is_input: bool = False) -> bool:
    """
    Query whether a Windows console handle has virtual terminal mode enabled.

    Returns False off Windows, for redirected streams, and for anything that
    is not a console.
    """
    try:
        import ctypes
        import msvcrt

        handle = msvcrt.get_osfhandle(stream.fileno())
        mode = ctypes.c_ulong()
        if not ctypes.windll.kernel32.GetConsoleMode(handle, ctypes.byref(mode)):
            return False
    except (ImportError, AttributeError, OSError, ValueError):
        return False

    flag = ENABLE_VIRTUAL_TERMINAL_INPUT if is_input else ENABLE_VIRTUAL_TERMINAL_PROCESSING
    return bool(mode.value & flag)


def _is_input_stream(stream: Any) -> bool:
    try:
        return StreamHandle(stream) is StreamHandle.STD_IN
    except ValueError:
        return getattr(stream, "mode", "").startswith("r")


class CapabilityDetector:
    """
    Per-stream color and ANSI support, resolved at most once per stream.

    Args:
        runner: Command runner used for ``tput colors``
        environ: Environment mapping
        windows: Whether the host is Windows
        streams: Standard stream resolver for the Windows console query
        lock: Lock guarding first computation
        vt_query: Windows console VT query (defaults to windows_vt_supported)
    """

    def __init__(
        self,
        runner: Any,
        environ: Mapping[str, str],
        windows: bool,
        streams: StandardStreams,
        lock: Optional[threading.RLock] = None,
        vt_query: Optional[Callable[[Any, bool], bool]] = None,
    ):
        self.runner = runner
        self.environ = environ
        self.windows = windows
        self.streams = streams
        self._lock = lock or threading.RLock()
        self._vt_query = vt_query or windows_vt_supported
        self.support: Dict[str, Dict[StreamHandle, Optional[bool]]] = {
            "color": {handle: None for handle in StreamHandle},
            "ansi": {handle: None for handle in StreamHandle},
        }

    def is_color_disabled(self) -> bool:
        return is_color_disabled(self.environ)

    def is_ansi_disabled(self) -> bool:
        return is_ansi_disabled(self.environ)

    def is_color_supported(self, stream: StreamHandle = StreamHandle.STD_OUT) -> bool:
        return self._resolve("color", StreamHandle(stream), self._detect_color)

    def is_ansi_supported(self, stream: StreamHandle = StreamHandle.STD_OUT) -> bool:
        return self._resolve("ansi", StreamHandle(stream), self._detect_ansi)

    def is_windows_terminal(self, stream: Any = StreamHandle.STD_IN) -> bool:
        """
        Check whether a Windows console stream understands ANSI escapes.

        Accepts a StreamHandle or an already-open stream. Looks at the
        console's VT mode first, then at the variables set by ANSICON, ConEmu
        and xterm-compatible hosts.
        """
        if self._vt_query(self.streams.get(stream), _is_input_stream(stream)):
            return True
        return (
            "ANSICON" in self.environ
            or self.environ.get("ConEmuANSI") == "ON"
            or self.environ.get("TERM") == "xterm"
        )

    def _resolve(
        self,
        kind: str,
        stream: StreamHandle,
        detect: Callable[[StreamHandle], bool],
    ) -> bool:
        table = self.support[kind]
        value = table[stream]
        if value is not None:
            return value

        with self._lock:
            value = table[stream]
            if value is None:
                value = detect(stream)
                table[stream] = value
                logger.debug("%s support on %s: %s", kind, stream.name, value)
        return value

    def _detect_color(self, stream: StreamHandle) -> bool:
        if self.is_color_disabled():
            return False

        if self.windows:
            return "WT_SESSION" in self.environ or self.is_windows_terminal(stream)

        output = self.runner.run_captured("tput colors")
        if output is None:
            return False
        return parse_int(output.last_line) > 0

    def _detect_ansi(self, stream: StreamHandle) -> bool:
        if self.is_ansi_disabled():
            return False

        if self.windows:
            return self.environ.get("ANSICON") == "ON" or "WT_SESSION" in self.environ

        return is_linux_ansi(self.environ)


class GeometryDetector:
    """
    Terminal width and height, probed together on first access.

    A dimension that no probe could determine is stored as 0 and reported
    as the caller's default.

    Args:
        runner: Command runner used for the size probes
        windows: Whether the host is Windows
        lock: Lock guarding the probe
    """

    def __init__(self, runner: Any, windows: bool, lock: Optional[threading.RLock] = None):
        self.runner = runner
        self.windows = windows
        self._lock = lock or threading.RLock()
        self.width: Optional[int] = None
        self.height: Optional[int] = None

    def get_width(self, default: int = 80) -> int:
        if self.width is None:
            self.probe()
        return self.width or default

    def get_height(self, default: int = 24) -> int:
        if self.height is None:
            self.probe()
        return self.height or default

    def probe(self) -> None:
        """Run the platform probes once and store both dimensions."""
        with self._lock:
            if self.width is not None and self.height is not None:
                return

            width, height = first_result(self._strategies()) or (0, 0)

            if height == 0:
                height = self._tput("lines")
            if width == 0:
                width = self._tput("cols")

            self.width, self.height = width, height
            logger.debug("Terminal geometry: %dx%d", width, height)

    def _strategies(self) -> List[Callable[[], Optional[Tuple[int, int]]]]:
        if self.windows:
            return [self._probe_powershell, self._probe_mode_con]
        return [self._probe_stty]

    def _probe_powershell(self) -> Optional[Tuple[int, int]]:
        output = self.runner.run_raw(POWERSHELL_SIZE_COMMAND)
        if not output:
            return None

        values = output.strip().splitlines()
        height = parse_int(values[0]) if len(values) > 0 else 0
        width = parse_int(values[1]) if len(values) > 1 else 0
        return _dimensions(width, height)

    def _probe_mode_con(self) -> Optional[Tuple[int, int]]:
        output = self.runner.run_captured("mode con")
        if output is None:
            return None

        text = "\n".join(output.lines)
        columns = _MODE_COLUMNS_RE.search(text)
        lines = _MODE_LINES_RE.search(text)
        width = int(columns.group(1)) if columns else 0
        height = int(lines.group(1)) if lines else 0
        return _dimensions(width, height)

    def _probe_stty(self) -> Optional[Tuple[int, int]]:
        output = self.runner.run_captured("stty size")
        if output is None:
            return None

        match = _STTY_SIZE_RE.search(output.last_line)
        if not match:
            return None
        # stty prints "rows columns"
        return _dimensions(int(match.group(2)), int(match.group(1)))

    def _tput(self, capability: str) -> int:
        output = self.runner.run_captured(f"tput {capability}")
        if output is None:
            return 0
        return parse_int(output.last_line)


def _dimensions(width: int, height: int) -> Optional[Tuple[int, int]]:
    if width <= 0 and height <= 0:
        return None
    return (max(width, 0), max(height, 0))


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    GREEN = "\033[32m"
    CYAN = "\033[36m"

    BRIGHT_RED = "\033[91m"


class ColorPrinter:
    """Helper class for printing colored output."""

    def __init__(self, enabled: bool):
        self.enabled = enabled

    def _wrap(self, text: str, *codes: str) -> str:
        """Wrap text with color codes if enabled."""
        if not self.enabled:
            return text
        return "".join(codes) + text + Colors.RESET

    def green(self, text: str) -> str:
        return self._wrap(text, Colors.GREEN)

    def cyan(self, text: str) -> str:
        return self._wrap(text, Colors.CYAN)

    def bold(self, text: str) -> str:
        return self._wrap(text, Colors.BOLD)

    def dim(self, text: str) -> str:
        return self._wrap(text, Colors.DIM)

    def error(self, text: str) -> str:
        return self._wrap(text, Colors.BRIGHT_RED, Colors.BOLD)
