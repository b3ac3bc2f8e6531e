"""
Shared fixtures for clisession unit tests.
"""

import io
from typing import Dict, List, Optional, Tuple, Union

import pytest

from clisession.platform.proc import CapturedOutput
from clisession.platform.streams import StandardStreams
from clisession.session import Session

Response = Union[None, str, Tuple[str, int]]


class FakeRunner:
    """
    Command runner returning canned output.

    ``responses`` maps a command prefix to its stdout, to a ``(stdout, rc)``
    pair, or to None for a command that cannot run. Unknown commands behave
    like commands that cannot run.
    """

    def __init__(self, responses: Optional[Dict[str, Response]] = None):
        self.responses = dict(responses or {})
        self.commands: List[str] = []

    def _lookup(self, command: str) -> Optional[Tuple[str, int]]:
        self.commands.append(command)
        for key in sorted(self.responses, key=len, reverse=True):
            if command.startswith(key):
                response = self.responses[key]
                if response is None:
                    return None
                if isinstance(response, tuple):
                    return response
                return (response, 0)
        return None

    def run_captured(self, command: str) -> Optional[CapturedOutput]:
        response = self._lookup(command)
        if response is None:
            return None
        stdout, rc = response
        lines = [line.rstrip() for line in stdout.splitlines()]
        return CapturedOutput(lines[-1] if lines else "", lines, rc)

    def run_raw(self, command: str) -> Optional[str]:
        response = self._lookup(command)
        if response is None or not response[0]:
            return None
        return response[0]

    def count(self, prefix: str) -> int:
        return sum(1 for command in self.commands if command.startswith(prefix))


def fake_streams() -> StandardStreams:
    """Stream resolver handing out in-memory streams."""
    return StandardStreams(opener=lambda handle: io.StringIO())


@pytest.fixture
def make_session():
    """Build a Session around a FakeRunner and an explicit environment."""

    def factory(
        system: str = "Linux",
        responses: Optional[Dict[str, Response]] = None,
        environ: Optional[Dict[str, str]] = None,
        **kwargs,
    ) -> Session:
        runner = FakeRunner(responses)
        return Session(
            runner=runner,
            system=system,
            environ=environ if environ is not None else {},
            streams=fake_streams(),
            **kwargs,
        )

    return factory
