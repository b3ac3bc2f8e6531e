# Copyright (c) 2024 clisession Contributors
# MIT License

"""
clisession: terminal capability and host fingerprint probes for CLI tools.

Detects terminal geometry, color/ANSI support and host identity facts, and
derives a stable session identifier from them.

Features:
    - Pure Python, no compiled extensions
    - Works on Windows, macOS, Linux and the BSDs
    - Every probe is cached per Session after the first computation
    - Probe failures degrade to documented defaults instead of raising

Typical use::

    from clisession import get_session

    session = get_session()
    session.init()
    key = session.get_system_id()
"""

from __future__ import annotations

import logging

from clisession.release import __version__, __author__, __codename__
from clisession.platform.streams import StreamHandle
from clisession.session import Session, get_session, init

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    "__author__",
    "__codename__",
    "Session",
    "StreamHandle",
    "get_session",
    "init",
]
