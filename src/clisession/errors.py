# Copyright (c) 2024 clisession Contributors
# MIT License

"""
clisession Error Classes.

Probe failures never surface as exceptions; they degrade to sentinel values.
The classes here cover the few conditions that do raise: standard streams
that cannot be opened, bad configuration, and caller mistakes.
"""

from __future__ import annotations

import enum
import hashlib


class ExitCode(enum.IntEnum):
    """Exit codes used by the clisession CLI."""

    SUCCESS = 0
    GENERIC_ERROR = 1
    STREAM_ERROR = 2
    CONFIG_ERROR = 3
    KEYBOARD_INTERRUPT = 130


class SessionError(Exception):
    """Base exception for all clisession errors."""

    exit_code: int = ExitCode.GENERIC_ERROR

    def __init__(self, message: str, details: str | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}\n  Details: {self.details}"
        return self.message


class StreamOpenError(SessionError):
    """A standard stream could not be opened during initialization."""

    exit_code: int = ExitCode.STREAM_ERROR

    def __init__(self, name: str, mode: str, cause: BaseException | None = None) -> None:
        self.name = name
        self.mode = mode
        self.cause = cause
        message = f'Failed to open stream "{name}" with mode "{mode}"'
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class ConfigError(SessionError):
    """Error reading or validating a configuration file."""

    exit_code: int = ExitCode.CONFIG_ERROR

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        details: str | None = None,
    ) -> None:
        self.file_path = file_path
        location = f" in {file_path}" if file_path else ""
        super().__init__(f"Config error{location}: {message}", details)


class UnsupportedAlgorithmError(SessionError, ValueError):
    """Requested digest algorithm is not available in hashlib."""

    def __init__(self, algorithm: str) -> None:
        self.algorithm = algorithm
        super().__init__(
            f"Unsupported hash algorithm: {algorithm}",
            "Available: " + ", ".join(sorted(hashlib.algorithms_available)),
        )
