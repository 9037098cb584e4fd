"""Tests for the interactive command line layer."""
import tomllib
from argparse import Namespace
from unittest.mock import patch

import pytest

from telegraf_provisioner import cli
from telegraf_provisioner.config import ProvisionerSettings
from telegraf_provisioner.errors import AuthError


def scripted(*answers):
    """Prompt replacement returning canned answers in order."""
    replies = iter(answers)
    asked = []

    def prompt(question):
        asked.append(question)
        return next(replies)

    prompt.asked = asked
    return prompt


def _args(**flags) -> Namespace:
    defaults = {"send": False, "backup_influx": False, "backup_grafana": False}
    defaults.update(flags)
    return Namespace(**defaults)


def _settings(folder, **extra) -> ProvisionerSettings:
    values = dict(
        folder=folder,
        token_folder=folder,
        ip="10.0.0.5",
        username="opc",
        password="pw",
        iot_host="10.0.0.6:22",
        iot_password="rootpw",
    )
    values.update(extra)
    return ProvisionerSettings(**values)


class TestHelpers:
    """Tests for small prompt helpers."""

    def test_listener_indices(self):
        """1-based input becomes 0-based, junk and out-of-range dropped."""
        assert cli.parse_listener_indices("1, 3,x,0,9", 3) == {0, 2}

    def test_listener_indices_empty(self):
        """Empty answer means no listeners."""
        assert cli.parse_listener_indices("", 2) == set()

    def test_confirm(self):
        """Only y/Y confirms."""
        assert cli.confirm(scripted(" Y "), "Go?") is True
        assert cli.confirm(scripted("yes"), "Go?") is False
        assert cli.confirm(scripted(""), "Go?") is False

    def test_token_from_file(self, tmp_path):
        """token.txt is read and stripped without prompting."""
        (tmp_path / "token.txt").write_text("abc123\n")
        prompt = scripted()
        assert cli.load_token(tmp_path, prompt) == "abc123"
        assert prompt.asked == []

    def test_token_prompted(self, tmp_path):
        """Without token.txt the token is asked for."""
        assert cli.load_token(tmp_path, scripted(" typed \n")) == "typed"

    def test_wrap_up_waits_on_windows(self, monkeypatch):
        """Windows waits for enter before exiting."""
        monkeypatch.setattr(cli.sys, "platform", "win32")
        prompt = scripted("")
        assert cli.wrap_up(1, prompt) == 1
        assert prompt.asked == ["Press enter to exit"]

    def test_wrap_up_other_platforms(self, monkeypatch):
        """Elsewhere it returns immediately."""
        monkeypatch.setattr(cli.sys, "platform", "linux")
        prompt = scripted()
        assert cli.wrap_up(0, prompt) == 0
        assert prompt.asked == []


class TestRun:
    """Tests for cli.run flows."""

    def test_invalid_ip(self, tmp_path):
        """Bad OPC IP exits 1 before anything else."""
        assert cli.run(_args(), _settings(tmp_path, ip="10.0.0"), scripted()) == 1

    def test_invalid_iot_host(self, tmp_path):
        """Bad gateway host exits 1."""
        assert cli.run(_args(), _settings(tmp_path, iot_host="10.0.0.6:0"), scripted()) == 1

    def test_no_xml_files(self, tmp_path):
        """Empty folder exits 1."""
        assert cli.run(_args(), _settings(tmp_path), scripted()) == 1

    def test_declined(self, tmp_path, line_xml):
        """Answering no to the file list aborts."""
        assert cli.run(_args(), _settings(tmp_path), scripted("n")) == 1
        assert not (tmp_path / "telegraf.conf").exists()

    def test_generate_two_poll_files(self, tmp_path, line_xml, plain_xml):
        """Two files, no listeners: two opcua blocks in scan order."""
        (tmp_path / "token.txt").write_text("tok\n")
        prompt = scripted(
            "y",        # use these files
            "",         # no listeners
            "2", "",    # line1.xml namespace, interval
            "3", "2s",  # press.xml namespace, interval
            "n",        # don't send
        )

        assert cli.run(_args(), _settings(tmp_path), prompt) == 0

        content = (tmp_path / "telegraf.conf").read_text()
        assert content.count("[[inputs.opcua]]") == 2
        assert "[[inputs.opcua_listener]]" not in content
        parsed = tomllib.loads(content)
        inputs = parsed["inputs"]["opcua"]
        assert [p["group"][0]["name"] for p in inputs] == ["Packaging Line", "press"]
        assert [p["interval"] for p in inputs] == ["1000ms", "2s"]
        assert parsed["outputs"]["influxdb_v2"][0]["token"] == "tok"

    def test_generate_with_listener(self, tmp_path, line_xml, plain_xml):
        """Selected indexes become listener blocks."""
        (tmp_path / "token.txt").write_text("tok")
        prompt = scripted("y", "2", "2", "", "2", "", "n")

        assert cli.run(_args(), _settings(tmp_path), prompt) == 0

        parsed = tomllib.loads((tmp_path / "telegraf.conf").read_text())
        assert len(parsed["inputs"]["opcua"]) == 1
        assert len(parsed["inputs"]["opcua_listener"]) == 1
        assert any("sampling_interval" in q for q in prompt.asked)

    def test_generate_then_send(self, tmp_path, line_xml):
        """Confirming the send uploads the freshly written file."""
        (tmp_path / "token.txt").write_text("tok")
        with patch.object(cli, "send_and_restart") as send:
            code = cli.run(_args(), _settings(tmp_path), scripted("y", "", "2", "", "y"))
        assert code == 0
        send.assert_called_once()
        assert send.call_args[0][0] == tmp_path / "telegraf.conf"
        assert send.call_args[0][1].host_and_port == "10.0.0.6:22"

    def test_parse_error(self, tmp_path):
        """Malformed XML exits 1."""
        (tmp_path / "bad.xml").write_text("<broken>")
        (tmp_path / "token.txt").write_text("tok")
        assert cli.run(_args(), _settings(tmp_path), scripted("y", "", "2", "")) == 1

    def test_undecodable_token(self, tmp_path, line_xml, caplog):
        """A token.txt that is not UTF-8 exits 1 without writing a config."""
        (tmp_path / "token.txt").write_bytes(b"\xff\xfe bad token")
        prompt = scripted("y", "", "2", "", "n")

        assert cli.run(_args(), _settings(tmp_path), prompt) == 1

        assert not (tmp_path / "telegraf.conf").exists()
        assert any("Failed to read InfluxDB token" in r.getMessage() for r in caplog.records)

    def test_send_missing_config(self, tmp_path):
        """--send without telegraf.conf exits 1."""
        assert cli.run(_args(send=True), _settings(tmp_path), scripted()) == 1

    def test_send_failure(self, tmp_path):
        """Transport errors during --send exit 1."""
        (tmp_path / "telegraf.conf").write_text("[agent]")
        with patch.object(cli, "send_and_restart", side_effect=AuthError("denied")):
            assert cli.run(_args(send=True), _settings(tmp_path), scripted()) == 1

    def test_send_success(self, tmp_path):
        """--send passes remote path and settle delay from settings."""
        (tmp_path / "telegraf.conf").write_text("[agent]")
        settings = _settings(tmp_path, settle_delay=1.0)
        with patch.object(cli, "send_and_restart") as send:
            assert cli.run(_args(send=True), settings, scripted()) == 0
        assert send.call_args.kwargs["settle_delay"] == 1.0
        assert send.call_args.kwargs["remote_path"] == "/etc/telegraf/telegraf.conf"

    @pytest.mark.parametrize("flag", ["backup_influx", "backup_grafana"])
    def test_backup_failure(self, tmp_path, flag):
        """Backup connection failures exit 1."""
        with patch.object(cli, "RemoteSession") as session_cls:
            session_cls.return_value.__enter__.side_effect = AuthError("denied")
            assert cli.run(_args(**{flag: True}), _settings(tmp_path), scripted()) == 1

    def test_backup_grafana_success(self, tmp_path):
        """Grafana backup runs over a session and exits 0."""
        with patch.object(cli, "RemoteSession") as session_cls, \
                patch.object(cli, "BackupOrchestrator") as backup_cls:
            assert cli.run(_args(backup_grafana=True), _settings(tmp_path), scripted()) == 0
        backup_cls.assert_called_once_with(session_cls.return_value.__enter__.return_value)
        backup_cls.return_value.backup_grafana.assert_called_once_with()


class TestMain:
    """Tests for argument parsing."""

    def test_flags(self):
        """Short flags map onto settings names."""
        args = cli.build_parser().parse_args(
            ["-f", "x", "-i", "1.2.3.4", "-w", "pw", "-a", "h:22", "-t", "tok", "-s"]
        )
        assert args.folder == "x"
        assert args.iot_password == "pw"
        assert args.iot_host == "h:22"
        assert args.token_folder == "tok"
        assert args.send is True
        assert args.backup_influx is False

    def test_main_validation_failure(self, tmp_path, monkeypatch):
        """main returns 1 on an invalid IP."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PROVISIONER_LOG_FILE", str(tmp_path / "logs" / "p.log"))
        monkeypatch.setattr(cli.sys, "platform", "linux")
        assert cli.main(["-f", str(tmp_path), "-i", "300.1.1.1", "-a", "10.0.0.6:22"]) == 1

    def test_main_malformed_settings_file(self, tmp_path, monkeypatch):
        """main returns 1 when provisioner.yaml cannot be parsed."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PROVISIONER_LOG_FILE", str(tmp_path / "logs" / "p.log"))
        monkeypatch.setattr(cli.sys, "platform", "linux")
        (tmp_path / "provisioner.yaml").write_text("ip: [unclosed\n")
        assert cli.main(["-f", str(tmp_path)]) == 1
