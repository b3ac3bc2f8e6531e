"""
Platform classification for cross-platform probing.

Maps the running OS to a canonical platform tag so every probe can pick the
commands that work on the host. Cloud runtimes are recognized through the
environment variables they export rather than through the OS name.
"""

import enum
import os
import platform as _platform
from typing import Mapping, Optional

# Detect current platform
SYSTEM_NAME = _platform.system()
IS_WINDOWS = SYSTEM_NAME == "Windows"

BSD_SYSTEMS = ("FreeBSD", "OpenBSD", "NetBSD", "DragonFly")
SOLARIS_SYSTEMS = ("SunOS", "Solaris")

AWS_ENV_VARS = ("AWS_EXECUTION_ENV",)
AZURE_ENV_VARS = ("WEBSITE_INSTANCE_ID", "AZURE_FUNCTIONS_ENVIRONMENT")


class Platform(enum.Enum):
    """Canonical OS families a session can run on."""

    WINDOWS = "windows"
    MAC = "mac"
    LINUX = "linux"
    FREEBSD = "freebsd"
    OPENBSD = "openbsd"
    BSD = "bsd"
    SOLARIS = "solaris"
    OTHER = "other"

    @classmethod
    def detect(cls, system: Optional[str] = None) -> "Platform":
        """Classify an OS name as reported by ``platform.system()``."""
        if system is None:
            system = _platform.system()

        if system == "Windows":
            return cls.WINDOWS
        if system == "Darwin":
            return cls.MAC
        if system == "Linux":
            return cls.LINUX
        if system == "FreeBSD":
            return cls.FREEBSD
        if system == "OpenBSD":
            return cls.OPENBSD
        if system in BSD_SYSTEMS:
            return cls.BSD
        if system in SOLARIS_SYSTEMS:
            return cls.SOLARIS
        return cls.OTHER

    @property
    def is_windows(self) -> bool:
        return self is Platform.WINDOWS

    @property
    def is_bsd(self) -> bool:
        return self in (Platform.FREEBSD, Platform.OPENBSD, Platform.BSD)


def is_platform(
    tag: str,
    system: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> bool:
    """
    Check whether the current environment matches a platform tag.

    Recognized tags are ``mac``, ``windows``, ``freebsd``, ``openbsd``,
    ``bsd``, ``solaris``, ``linux``, ``aws`` and ``azure``. Any other tag is
    matched case-insensitively as a substring of the OS name.

    Args:
        tag: Platform keyword to test
        system: OS name override (defaults to ``platform.system()``)
        environ: Environment mapping override (defaults to ``os.environ``)
    """
    if system is None:
        system = _platform.system()
    if environ is None:
        environ = os.environ

    tag = tag.lower()
    current = Platform.detect(system)

    if tag == "mac":
        return current is Platform.MAC
    if tag == "windows":
        return current is Platform.WINDOWS
    if tag == "freebsd":
        return current is Platform.FREEBSD
    if tag == "openbsd":
        return current is Platform.OPENBSD
    if tag == "bsd":
        return current.is_bsd
    if tag == "solaris":
        return current is Platform.SOLARIS
    if tag == "linux":
        return current is Platform.LINUX
    if tag == "aws":
        return any(name in environ for name in AWS_ENV_VARS)
    if tag == "azure":
        return any(name in environ for name in AZURE_ENV_VARS)

    return tag in system.lower()
