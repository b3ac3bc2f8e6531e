"""Unit tests for the clisession CLI."""

import json

import pytest
from clisession import __version__
from clisession.cli import main
from clisession.errors import ExitCode


@pytest.fixture
def cli_session(make_session):
    return make_session(
        "Linux",
        {"tput colors": "0\n", "stty size": "30 100\n", "whoami": "tester\n"},
        {"TERM": "xterm", "NO_COLOR": "1"},
    )


class TestMainCLI:
    """Tests for main CLI."""

    def test_create_parser(self):
        parser = main.create_parser()
        assert parser.prog == "clisession"

    def test_version_string(self):
        version = main.get_version_string()
        assert __version__ in version
        assert "python" in version

    def test_main_no_args_shows_help(self, capsys):
        result = main.main([])
        assert result == 0
        assert "clisession" in capsys.readouterr().out

    def test_size(self, cli_session, capsys):
        assert main.main(["size"], session=cli_session) == ExitCode.SUCCESS
        assert capsys.readouterr().out.strip() == "100x30"

    def test_id(self, cli_session, capsys):
        assert main.main(["id", "--prefix", "app-"], session=cli_session) == 0
        out = capsys.readouterr().out.strip()
        assert out == cli_session.get_system_id()
        assert out.startswith("app-")

    def test_id_binary_prints_hex(self, cli_session, capsys):
        assert main.main(["id", "--prefix", "p", "--binary"], session=cli_session) == 0
        out = capsys.readouterr().out.strip()
        assert out.startswith("p")
        assert len(out) == 1 + 64
        int(out[1:], 16)

    def test_info_json(self, cli_session, capsys):
        assert main.main(["info", "--json"], session=cli_session) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["Terminal Width"] == "100"
        assert data["Whoami"] == "tester"

    def test_info_table_plain_without_color(self, cli_session, capsys):
        assert main.main(["info"], session=cli_session) == 0
        out = capsys.readouterr().out
        assert "Terminal Height" in out
        assert "\033[" not in out

    def test_caps_json(self, cli_session, capsys):
        assert main.main(["caps", "--json"], session=cli_session) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["disabled"] == {"color": True, "ansi": False}
        assert data["streams"]["STD_OUT"] == {"color": False, "ansi": True}

    def test_caps_text(self, cli_session, capsys):
        assert main.main(["caps"], session=cli_session) == 0
        out = capsys.readouterr().out
        assert "STD_ERR" in out
        assert "NO_COLOR is set" in out

    def test_bad_config_exit_code(self, tmp_path, capsys):
        missing = tmp_path / "missing.yml"
        result = main.main(["--config", str(missing), "size"])
        assert result == ExitCode.CONFIG_ERROR
        assert "not found" in capsys.readouterr().err

    def test_unsupported_algorithm_exit_code(self, cli_session, capsys):
        result = main.main(["id", "--algorithm", "rot13"], session=cli_session)
        assert result == ExitCode.GENERIC_ERROR
        assert "Unsupported hash algorithm" in capsys.readouterr().err
