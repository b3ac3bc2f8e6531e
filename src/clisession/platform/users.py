"""
Cross-platform current-user lookup.

Two notions of "current user" exist: what the OS account database reports
for this process, and what the shell's ``whoami`` prints. They usually agree
but can differ under sudo, su, or containers with synthetic users.
"""

import os
from typing import Any, Mapping, Optional

from . import IS_WINDOWS


def get_current_user(
    environ: Optional[Mapping[str, str]] = None,
    windows: bool = IS_WINDOWS,
) -> str:
    """
    Get the OS-reported username of this process.

    Returns an empty string if it cannot be determined.
    """
    if environ is None:
        environ = os.environ

    if windows:
        return environ.get("USERNAME", environ.get("USER", ""))

    try:
        import pwd
        return pwd.getpwuid(os.getuid()).pw_name
    except (ImportError, KeyError):
        return environ.get("USER", environ.get("LOGNAME", ""))


def whoami(
    runner: Any,
    environ: Optional[Mapping[str, str]] = None,
    windows: bool = IS_WINDOWS,
) -> str:
    """
    Get the username the shell reports, falling back to get_current_user().

    On Windows this runs ``echo %USERNAME%``, elsewhere ``whoami``. The
    result is stripped of surrounding whitespace.
    """
    user = runner.run_raw("echo %USERNAME%" if windows else "whoami")
    if not user or not user.strip():
        user = get_current_user(environ, windows)
    return user.strip()
