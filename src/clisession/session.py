"""
Command-line session helper.

A Session owns every cached probe result for one process: the color/ANSI
support table, the terminal geometry and the identity snapshot. Callers
normally create one Session (or use get_session()) and query it; each fact
is probed on first access and reused afterwards.

The system identifier is a digest of host, hardware, user and terminal facts.
It stays the same across runs on the same machine, user and terminal, so it
can serve as a key for resuming a CLI session.
"""

import hashlib
import logging
import os
import platform as _platform
import threading
from typing import Any, List, Mapping, Optional, Union

from clisession.config import SessionConfig
from clisession.errors import UnsupportedAlgorithmError
from clisession.identity import IdentityCollector, InfoTable
from clisession.platform import Platform, is_platform, users
from clisession.platform.proc import CommandRunner
from clisession.platform.streams import StandardStreams, StreamHandle
from clisession.platform.tty import CapabilityDetector, GeometryDetector, is_linux_ansi

logger = logging.getLogger(__name__)

SYSTEM_ID_SEPARATOR = "|"


class Session:
    """
    Cached view of the terminal and host a CLI process runs in.

    Args:
        runner: Object with ``run_captured(cmd)`` and ``run_raw(cmd)``
            (defaults to a CommandRunner using the configured timeout)
        system: OS name as ``platform.system()`` reports it
        environ: Environment mapping (defaults to ``os.environ``)
        config: Session configuration
        streams: Standard stream resolver
        auto_init: Call init() immediately
    """

    def __init__(
        self,
        runner: Any = None,
        system: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        config: Optional[SessionConfig] = None,
        streams: Optional[StandardStreams] = None,
        auto_init: bool = False,
    ):
        self.config = config or SessionConfig()
        self.system = system if system is not None else _platform.system()
        self.platform = Platform.detect(self.system)
        self.environ = environ if environ is not None else os.environ
        self.runner = runner or CommandRunner(
            timeout=self.config.command_timeout,
            windows=self.platform.is_windows,
        )
        self.streams = streams or StandardStreams()

        self._lock = threading.RLock()
        self._initialized = False

        self.capabilities = CapabilityDetector(
            self.runner, self.environ, self.platform.is_windows, self.streams, self._lock
        )
        self.geometry = GeometryDetector(self.runner, self.platform.is_windows, self._lock)
        self.identity = IdentityCollector(self.runner, self.platform, self.environ, self._lock)

        if auto_init:
            self.init()

    def init(self) -> None:
        """
        Open the standard streams and prime color detection for stdout.

        Only the first call does anything.

        Raises:
            StreamOpenError: If a standard stream cannot be opened
        """
        with self._lock:
            if self._initialized:
                return
            self.streams.open_all()
            self.is_color_supported(StreamHandle.STD_OUT)
            self._initialized = True

    @property
    def initialized(self) -> bool:
        return self._initialized

    def is_platform(self, tag: str) -> bool:
        """Check the session's OS (or cloud runtime) against a platform tag."""
        return is_platform(tag, self.system, self.environ)

    # Terminal capabilities

    def is_color_supported(self, stream: StreamHandle = StreamHandle.STD_OUT) -> bool:
        """
        Check if a stream can display ANSI colors.

        ``NO_COLOR`` turns this off everywhere. Otherwise Windows looks for
        Windows Terminal or a VT-capable console and other systems ask
        ``tput colors``. Cached per stream.
        """
        return self.capabilities.is_color_supported(stream)

    def is_ansi_supported(self, stream: StreamHandle = StreamHandle.STD_OUT) -> bool:
        """
        Check if a stream understands ANSI escape codes.

        ``DISABLE_ANSI`` turns this off everywhere. Cached per stream.
        """
        return self.capabilities.is_ansi_supported(stream)

    def is_color_disabled(self) -> bool:
        return self.capabilities.is_color_disabled()

    def is_ansi_disabled(self) -> bool:
        return self.capabilities.is_ansi_disabled()

    def is_windows_terminal(self, stream: Any = StreamHandle.STD_IN) -> bool:
        return self.capabilities.is_windows_terminal(stream)

    def is_linux_ansi(self) -> bool:
        return is_linux_ansi(self.environ)

    # Terminal geometry

    def get_width(self, default: Optional[int] = None) -> int:
        """Terminal width in columns, or ``default`` if undetectable."""
        if default is None:
            default = self.config.default_width
        return self.geometry.get_width(default)

    def get_height(self, default: Optional[int] = None) -> int:
        """Terminal height in lines, or ``default`` if undetectable."""
        if default is None:
            default = self.config.default_height
        return self.geometry.get_height(default)

    # Identity

    def whoami(self) -> str:
        """Username reported by the shell. Not cached."""
        return users.whoami(self.runner, self.environ, self.platform.is_windows)

    def get_current_user(self) -> str:
        """Username reported by the OS account database."""
        return users.get_current_user(self.environ, self.platform.is_windows)

    def get_mac_address(self) -> Optional[str]:
        return self.identity.get_mac_address()

    def get_system_model(self) -> str:
        return self.identity.get_system_model()

    def get_terminal_name(self) -> str:
        return self.identity.get_terminal_name()

    def get_pid(self) -> str:
        """Parent process id of this process, "0" if undetermined."""
        return self.identity.get_pid()

    def get_shell(self) -> str:
        return self.environ.get("SHELL") or self.environ.get("ComSpec") or "Unknown"

    def get_term(self) -> str:
        return self.environ.get("TERM") or "Unknown"

    def get_system_info(self) -> InfoTable:
        """
        Diagnostic facts about the runtime, host and terminal.

        Returns an ordered list of ``(name, value)`` pairs, computed once.
        """
        return self.identity.cached("system_info", self._build_system_info)

    def _build_system_info(self) -> InfoTable:
        host = self.identity.host_facts()
        return [
            ("Python Version", _platform.python_version()),
            ("OS Name", self.system),
            ("OS Version", host.os_version),
            ("OS Model", self.get_system_model()),
            ("Machine Type", host.machine),
            ("Host Name", host.host_name),
            ("MAC Address", self.get_mac_address() or "Unknown"),
            ("Process Id", self.get_pid()),
            ("Current User", self.get_current_user() or "Unknown"),
            ("Whoami", self.whoami() or "Unavailable"),
            ("Terminal Name", self.get_terminal_name()),
            ("Terminal Width", str(self.get_width())),
            ("Terminal Height", str(self.get_height())),
            ("Color Supported", "Yes" if self.is_color_supported() else "No"),
            ("ANSI Supported", "Likely Yes" if self.is_ansi_supported() else "Unknown/No"),
            ("Shell", self.get_shell()),
            ("TERM Variable", self.get_term()),
        ]

    def get_system_id(
        self,
        prefix: Optional[str] = None,
        algorithm: Optional[str] = None,
        binary: bool = False,
    ) -> Union[str, bytes]:
        """
        Generate a stable identifier for this machine, user and terminal.

        The digest covers host name, OS version, machine type, MAC address,
        system model, parent pid, current user, shell, ``TERM`` and the
        prefix. The prefix is also prepended to the result.

        With the default ``system_id_cache="first"`` the first computed id is
        returned for every later call, whatever arguments those calls pass.
        ``system_id_cache="per-args"`` caches one id per argument combination.

        Args:
            prefix: Optional prefix for the hash input and the result
            algorithm: hashlib algorithm name (defaults to config.algorithm)
            binary: Return ``prefix`` bytes + raw digest instead of hex text

        Raises:
            UnsupportedAlgorithmError: If hashlib does not know the algorithm
        """
        algorithm = algorithm or self.config.algorithm
        if self.config.system_id_cache == "per-args":
            key: Any = (prefix, algorithm, binary)
        else:
            key = None

        cache = self.identity.snapshot.system_ids
        if key in cache:
            return cache[key]

        with self._lock:
            if key not in cache:
                cache[key] = self._compute_system_id(prefix or "", algorithm, binary)
            return cache[key]

    def system_id_facts(self, prefix: str = "") -> List[str]:
        """The ordered facts hashed into the system identifier."""
        host = self.identity.host_facts()
        return [
            host.host_name,
            host.os_version,
            host.machine,
            self.get_mac_address() or "",
            self.get_system_model(),
            self.get_pid(),
            self.get_current_user() or self.whoami(),
            self.get_shell(),
            self.get_term(),
            prefix,
        ]

    def _compute_system_id(self, prefix: str, algorithm: str, binary: bool) -> Union[str, bytes]:
        # shake_* digests need an explicit length and would not be stable here
        if algorithm.lower().startswith("shake"):
            raise UnsupportedAlgorithmError(algorithm)
        try:
            digest = hashlib.new(algorithm)
        except ValueError as e:
            raise UnsupportedAlgorithmError(algorithm) from e

        digest.update(SYSTEM_ID_SEPARATOR.join(self.system_id_facts(prefix)).encode("utf-8"))
        logger.debug("Computed system id with %s", algorithm)

        if binary:
            return prefix.encode("utf-8") + digest.digest()
        return prefix + digest.hexdigest()


# Default process-wide session
_session: Optional[Session] = None
_session_lock = threading.Lock()


def get_session() -> Session:
    """Get the process-wide default Session, creating it on first use."""
    global _session
    if _session is None:
        with _session_lock:
            if _session is None:
                _session = Session()
    return _session


def set_session(session: Optional[Session]) -> None:
    """Replace the default Session (None discards it)."""
    global _session
    with _session_lock:
        _session = session


def init() -> Session:
    """Initialize and return the default Session."""
    session = get_session()
    session.init()
    return session
