"""Unit tests for Session: system id, system info, init and whoami."""

import hashlib
import threading

import pytest
from clisession import session as session_module
from clisession.config import SessionConfig
from clisession.errors import StreamOpenError, UnsupportedAlgorithmError
from clisession.platform.streams import StandardStreams, StreamHandle
from clisession.session import Session, get_session, set_session

LINUX_RESPONSES = {
    "tput colors": "256\n",
    "stty size": "50 200\n",
    "ifconfig -a": "eth0: flags=4163\n        ether aa:bb:cc:dd:ee:ff  txqueuelen 1000\n",
    "dmidecode": "Test Machine\n",
    "tty": "/dev/pts/1\n",
    "ps -o ppid=": "999\n",
    "whoami": "tester\n",
}

LINUX_ENV = {"TERM": "xterm-256color", "SHELL": "/bin/bash", "USER": "tester"}


@pytest.fixture
def linux_session(make_session, tmp_path):
    def factory(**kwargs):
        session = make_session("Linux", dict(LINUX_RESPONSES), dict(LINUX_ENV), **kwargs)
        session.identity.dmi_path = tmp_path / "missing"
        return session
    return factory


class TestInit:
    """Tests for Session.init()."""

    def test_init_opens_streams_and_primes_color(self, linux_session):
        session = linux_session()
        assert not session.initialized
        session.init()
        assert session.initialized
        for handle in StreamHandle:
            assert session.streams.is_resolved(handle)
        assert session.capabilities.support["color"][StreamHandle.STD_OUT] is True

    def test_init_runs_once(self, linux_session):
        session = linux_session()
        session.init()
        session.init()
        assert session.runner.count("tput colors") == 1

    def test_auto_init(self, make_session):
        session = make_session("Linux", {"tput colors": "8\n"}, auto_init=True)
        assert session.initialized

    def test_stream_failure_raises(self):
        def opener(handle):
            raise OSError("closed")

        session = Session(
            runner=object(),
            system="Linux",
            environ={},
            streams=StandardStreams(opener=opener),
        )
        with pytest.raises(StreamOpenError):
            session.init()
        assert not session.initialized


class TestSystemId:
    """Tests for Session.get_system_id()."""

    def test_matches_sha256_of_facts(self, linux_session):
        session = linux_session()
        facts = session.system_id_facts("")
        expected = hashlib.sha256("|".join(facts).encode("utf-8")).hexdigest()
        assert session.get_system_id() == expected

    def test_facts_order(self, linux_session):
        session = linux_session()
        facts = session.system_id_facts("pre-")
        assert facts[3:] == [
            "aa:bb:cc:dd:ee:ff",
            "Test Machine",
            "999",
            session.get_current_user() or "tester",
            "/bin/bash",
            "xterm-256color",
            "pre-",
        ]

    def test_prefix_prepended(self, linux_session):
        session = linux_session()
        facts = session.system_id_facts("app-")
        digest = hashlib.sha256("|".join(facts).encode("utf-8")).hexdigest()
        assert session.get_system_id("app-") == "app-" + digest

    def test_deterministic_across_sessions(self, linux_session):
        assert linux_session().get_system_id("x") == linux_session().get_system_id("x")

    def test_first_call_wins(self, linux_session):
        session = linux_session()
        first = session.get_system_id("a")
        assert session.get_system_id("b") == first
        assert session.get_system_id("c", "md5", True) == first

    def test_per_args_cache(self, linux_session):
        session = linux_session(config=SessionConfig(system_id_cache="per-args"))
        a = session.get_system_id("a")
        b = session.get_system_id("b")
        assert a != b
        assert a.startswith("a") and b.startswith("b")
        assert session.get_system_id("a") == a

    def test_algorithm(self, linux_session):
        session = linux_session()
        facts = session.system_id_facts("")
        assert session.get_system_id(algorithm="md5") == hashlib.md5("|".join(facts).encode("utf-8")).hexdigest()

    def test_config_algorithm(self, linux_session):
        session = linux_session(config=SessionConfig(algorithm="sha1"))
        assert len(session.get_system_id()) == 40

    def test_binary(self, linux_session):
        session = linux_session()
        result = session.get_system_id("p", binary=True)
        assert isinstance(result, bytes)
        assert result.startswith(b"p")
        assert len(result) == 1 + 32

    def test_unsupported_algorithm(self, linux_session):
        session = linux_session()
        with pytest.raises(UnsupportedAlgorithmError):
            session.get_system_id(algorithm="no-such-hash")
        with pytest.raises(ValueError):
            session.get_system_id(algorithm="shake_128")

    def test_concurrent_first_access(self, linux_session):
        session = linux_session()
        results = []

        def worker():
            results.append(session.get_system_id())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(set(results)) == 1
        assert session.runner.count("ifconfig -a") == 1


class TestSystemInfo:
    """Tests for Session.get_system_info()."""

    def test_rows(self, linux_session):
        session = linux_session()
        info = dict(session.get_system_info())
        assert info["OS Name"] == "Linux"
        assert info["OS Model"] == "Test Machine"
        assert info["MAC Address"] == "aa:bb:cc:dd:ee:ff"
        assert info["Process Id"] == "999"
        assert info["Whoami"] == "tester"
        assert info["Terminal Name"] == "/dev/pts/1"
        assert info["Terminal Width"] == "200"
        assert info["Terminal Height"] == "50"
        assert info["Color Supported"] == "Yes"
        assert info["ANSI Supported"] == "Likely Yes"
        assert info["Shell"] == "/bin/bash"
        assert info["TERM Variable"] == "xterm-256color"

    def test_order(self, linux_session):
        names = [name for name, _ in linux_session().get_system_info()]
        assert names == [
            "Python Version", "OS Name", "OS Version", "OS Model", "Machine Type",
            "Host Name", "MAC Address", "Process Id", "Current User", "Whoami",
            "Terminal Name", "Terminal Width", "Terminal Height", "Color Supported",
            "ANSI Supported", "Shell", "TERM Variable",
        ]

    def test_fallback_values(self, make_session, tmp_path):
        session = make_session("Linux", {}, {})
        session.identity.dmi_path = tmp_path / "missing"
        info = dict(session.get_system_info())
        assert info["MAC Address"] == "Unknown"
        assert info["OS Model"] == "Unknown"
        assert info["Process Id"] == "0"
        assert info["Terminal Name"] == "N/A"
        assert info["Terminal Width"] == "80"
        assert info["Terminal Height"] == "24"
        assert info["Color Supported"] == "No"
        assert info["ANSI Supported"] == "Unknown/No"
        assert info["Shell"] == "Unknown"
        assert info["TERM Variable"] == "Unknown"

    def test_windows_shell_from_comspec(self, make_session):
        session = make_session("Windows", {}, {"ComSpec": "C:\\Windows\\system32\\cmd.exe"})
        assert session.get_shell() == "C:\\Windows\\system32\\cmd.exe"

    def test_cached_as_unit(self, linux_session):
        session = linux_session()
        assert session.get_system_info() is session.get_system_info()


class TestQueries:
    """Tests for the remaining Session queries."""

    def test_whoami_shell(self, make_session):
        session = make_session("Linux", {"whoami": "  root \n"})
        assert session.whoami() == "root"

    def test_whoami_windows_fallback(self, make_session):
        session = make_session("Windows", {}, {"USERNAME": "alice"})
        assert session.whoami() == "alice"
        assert session.runner.commands == ["echo %USERNAME%"]

    def test_whoami_not_cached(self, make_session):
        session = make_session("Linux", {"whoami": "root\n"})
        session.whoami()
        session.whoami()
        assert session.runner.count("whoami") == 2

    def test_geometry_defaults_from_config(self, make_session):
        session = make_session("Linux", {}, config=SessionConfig(default_width=100, default_height=40))
        assert session.get_width() == 100
        assert session.get_height() == 40
        assert session.get_width(72) == 72

    def test_is_platform(self, make_session):
        session = make_session("Darwin", environ={"AWS_EXECUTION_ENV": "x"})
        assert session.is_platform("mac")
        assert session.is_platform("aws")
        assert session.is_platform("darwin")
        assert not session.is_platform("windows")

    def test_disable_flags(self, make_session):
        session = make_session("Linux", environ={"NO_COLOR": "1"})
        assert session.is_color_disabled()
        assert not session.is_ansi_disabled()
        assert session.is_color_supported(StreamHandle.STD_ERR) is False

    def test_linux_ansi(self, make_session):
        assert make_session("Linux", environ={"TERM": "screen"}).is_linux_ansi()


class TestDefaultSession:
    """Tests for the process-wide default session."""

    def test_get_session_is_shared(self):
        set_session(None)
        try:
            assert get_session() is get_session()
        finally:
            set_session(None)

    def test_set_session(self, make_session):
        custom = make_session("Linux")
        set_session(custom)
        try:
            assert get_session() is custom
            assert session_module.init() is custom
            assert custom.initialized
        finally:
            set_session(None)
