"""
Host identity facts.

IdentityCollector gathers the facts that make up a session fingerprint:
MAC address, hardware model, terminal device, parent process id and the
basic uname fields. Each fact has its own ordered list of probe strategies
chosen by platform; the first strategy that produces a value wins and the
result is cached on the collector's IdentitySnapshot.
"""

import logging
import ntpath
import os
import platform as _platform
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from clisession.platform import Platform
from clisession.platform.proc import first_result

logger = logging.getLogger(__name__)

DMI_PRODUCT_NAME = Path("/sys/devices/virtual/dmi/id/product_name")

UNKNOWN = "Unknown"
NOT_AVAILABLE = "N/A"

MAC_ADDRESS_RE = re.compile(r"(?:[a-f0-9]{2}[:-]){5}[a-f0-9]{2}", re.IGNORECASE)
_WMIC_MODEL_RE = re.compile(r"Model=(.*)", re.IGNORECASE)
_WMIC_PPID_RE = re.compile(r"ParentProcessId=(\d+)")

# Ordered (name, value) rows of the diagnostic table
InfoTable = List[Tuple[str, str]]


class _NotComputed:
    def __repr__(self) -> str:
        return "<not computed>"


NOT_COMPUTED: Any = _NotComputed()


@dataclass
class IdentitySnapshot:
    """Identity facts, each filled in once on first request."""

    parent_process_id: Any = NOT_COMPUTED
    system_model: Any = NOT_COMPUTED
    terminal_name: Any = NOT_COMPUTED
    mac_address: Any = NOT_COMPUTED
    system_info: Any = NOT_COMPUTED
    system_ids: Dict[Any, Any] = field(default_factory=dict)


@dataclass
class HostFacts:
    """The uname fields used in the fingerprint."""

    host_name: str
    os_name: str
    os_version: str
    machine: str

    @classmethod
    def current(cls) -> "HostFacts":
        uname = _platform.uname()
        return cls(
            host_name=uname.node,
            os_name=uname.system,
            os_version=uname.version,
            machine=uname.machine,
        )


class IdentityCollector:
    """
    Cached host identity probes.

    Args:
        runner: Command runner
        platform: Host platform
        environ: Environment mapping
        lock: Lock guarding first computation of each fact
        dmi_path: Linux DMI product name file
    """

    def __init__(
        self,
        runner: Any,
        platform: Platform,
        environ: Mapping[str, str],
        lock: Optional[threading.RLock] = None,
        dmi_path: Path = DMI_PRODUCT_NAME,
    ):
        self.runner = runner
        self.platform = platform
        self.environ = environ
        self.dmi_path = dmi_path
        self.snapshot = IdentitySnapshot()
        self._lock = lock or threading.RLock()

    def cached(self, name: str, compute: Callable[[], Any]) -> Any:
        """Return a snapshot field, computing it on first access."""
        value = getattr(self.snapshot, name)
        if value is not NOT_COMPUTED:
            return value

        with self._lock:
            value = getattr(self.snapshot, name)
            if value is NOT_COMPUTED:
                value = compute()
                setattr(self.snapshot, name, value)
        return value

    def host_facts(self) -> HostFacts:
        return HostFacts.current()

    # ------------------------------------------------------------------
    # MAC address
    # ------------------------------------------------------------------

    def get_mac_address(self) -> Optional[str]:
        """First MAC address found in the interface listing, or None."""
        return self.cached("mac_address", self._detect_mac_address)

    def _detect_mac_address(self) -> Optional[str]:
        if self.platform.is_windows:
            commands = ["getmac"]
        else:
            commands = ["ifconfig -a", "ip link"]
        return first_result(self._mac_from(command) for command in commands)

    def _mac_from(self, command: str) -> Callable[[], Optional[str]]:
        def probe() -> Optional[str]:
            return extract_mac_address(self.runner.run_raw(command))
        return probe

    # ------------------------------------------------------------------
    # System model
    # ------------------------------------------------------------------

    def get_system_model(self) -> str:
        """Hardware model name such as "MacBookPro18,3", or "Unknown"."""
        return self.cached("system_model", self._detect_system_model)

    def _detect_system_model(self) -> str:
        model = first_result(self._model_strategies())
        return model or UNKNOWN

    def _model_strategies(self) -> List[Callable[[], Optional[str]]]:
        if self.platform is Platform.MAC:
            return [self._model_sysctl]
        if self.platform is Platform.WINDOWS:
            return [self._model_wmic]
        if self.platform is Platform.LINUX:
            return [self._model_dmi_file, self._model_dmidecode]
        return []

    def _model_sysctl(self) -> Optional[str]:
        output = self.runner.run_captured("sysctl -n hw.model")
        return output.last_line.strip() if output else None

    def _model_wmic(self) -> Optional[str]:
        output = self.runner.run_raw("wmic computersystem get model /value")
        if not output:
            return None
        match = _WMIC_MODEL_RE.search(output)
        return match.group(1).strip() if match else None

    def _model_dmi_file(self) -> Optional[str]:
        try:
            return self.dmi_path.read_text(encoding="utf-8", errors="replace").strip()
        except OSError as e:
            logger.debug("Cannot read %s: %s", self.dmi_path, e)
            return None

    def _model_dmidecode(self) -> Optional[str]:
        output = self.runner.run_captured("dmidecode -s system-product-name")
        return output.last_line.strip() if output else None

    # ------------------------------------------------------------------
    # Terminal name
    # ------------------------------------------------------------------

    def get_terminal_name(self) -> str:
        """
        Name of the terminal running the process.

        PowerShell or the ComSpec shell on Windows, the tty device path
        elsewhere. "N/A" when there is none.
        """
        return self.cached("terminal_name", self._detect_terminal_name)

    def _detect_terminal_name(self) -> str:
        if self.platform.is_windows:
            if "PSModulePath" in self.environ:
                return "PowerShell"
            comspec = self.environ.get("ComSpec")
            return ntpath.basename(comspec) if comspec else NOT_AVAILABLE

        output = self.runner.run_captured("tty")
        # tty exits non-zero and prints "not a tty" when stdin is redirected
        if output is None or output.returncode != 0:
            return NOT_AVAILABLE
        return output.last_line.strip() or NOT_AVAILABLE

    # ------------------------------------------------------------------
    # Parent process id
    # ------------------------------------------------------------------

    def get_pid(self) -> str:
        """Parent process id as a string, "0" if it cannot be determined."""
        return self.cached("parent_process_id", self._detect_pid)

    def _detect_pid(self) -> str:
        pid = os.getpid()

        if self.platform.is_windows:
            output = self.runner.run_captured(
                f"wmic process where (ProcessId={pid}) get ParentProcessId /value"
            )
            if output is None:
                return "0"
            match = _WMIC_PPID_RE.search("\n".join(output.lines))
            return match.group(1) if match else "0"

        output = self.runner.run_captured(f"ps -o ppid= -p {pid}")
        if output is None:
            return "0"
        return output.last_line.strip() or "0"


def extract_mac_address(text: Optional[str]) -> Optional[str]:
    """Return the first colon or hyphen separated MAC address in text."""
    if not text:
        return None
    match = MAC_ADDRESS_RE.search(text)
    return match.group(0) if match else None


