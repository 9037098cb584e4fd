"""Shared fixtures: sample address-space documents and a scripted session."""
from pathlib import Path
from typing import Optional, Union

import pytest

from telegraf_provisioner.errors import ExecError
from telegraf_provisioner.remote import CommandResult


LINE_XML = """<?xml version="1.0" encoding="utf-8"?>
<UANodeSet xmlns="http://opcfoundation.org/UA/2011/03/UANodeSet.xsd">
  <UAObject NodeId="ns=2;i=1" BrowseName="2:Line1">
    <DisplayName>Packaging Line</DisplayName>
  </UAObject>
  <UAVariable NodeId="ns=2;i=5" DataType="Float">
    <BrowseName>Temperature</BrowseName>
  </UAVariable>
  <UAVariable NodeId="ns=2;i=6" DataType="Float">
    <BrowseName>Pressure</BrowseName>
    <VariableMapping>"DB1"."Pressure_Out"</VariableMapping>
  </UAVariable>
  <UAVariable NodeId="ns=0;i=2255" DataType="String">
    <BrowseName>NamespaceArray</BrowseName>
  </UAVariable>
  <UAVariable NodeId="ns=3;i=7">
    <BrowseName>OtherNamespace</BrowseName>
  </UAVariable>
</UANodeSet>
"""

PLAIN_XML = """<?xml version="1.0"?>
<UANodeSet>
  <UAObject NodeId="ns=2;i=2">
    <DisplayName>NotTheSentinel</DisplayName>
  </UAObject>
  <UAVariable NodeId="ns=2;i=10"><BrowseName>Speed</BrowseName></UAVariable>
  <UAVariable NodeId="ns=2;i=11"><BrowseName>Torque</BrowseName></UAVariable>
</UANodeSet>
"""


@pytest.fixture
def line_xml(tmp_path) -> Path:
    path = tmp_path / "line1.xml"
    path.write_text(LINE_XML, encoding="utf-8")
    return path


@pytest.fixture
def plain_xml(tmp_path) -> Path:
    path = tmp_path / "press.xml"
    path.write_text(PLAIN_XML, encoding="utf-8")
    return path


class FakeSession:
    """Stands in for RemoteSession; records every call in order."""

    def __init__(
        self,
        outputs: Optional[dict[str, Union[str, Exception]]] = None,
        files: Optional[dict[str, bytes]] = None,
        listings: Optional[dict[str, list[str]]] = None,
    ):
        self.outputs = outputs or {}
        self.files = files or {}
        self.listings = listings or {}
        self.calls: list[tuple] = []
        self.commands: list[str] = []
        self.target_label = "10.0.0.5:22"

    def upload_file(self, local_path, remote_path, mode=0o644):
        self.calls.append(("upload", str(local_path), remote_path))
        result = self.outputs.get(f"upload:{remote_path}")
        if isinstance(result, Exception):
            raise result

    def exec_command(self, command):
        self.calls.append(("exec", command))
        self.commands.append(command)
        result = self.outputs.get(command, "")
        if isinstance(result, Exception):
            raise result
        return CommandResult(command=command, output=result, exit_status=0)

    def list_directory(self, path):
        self.calls.append(("list", path))
        return list(self.listings.get(path, []))

    def download_file(self, remote_path, local_path):
        self.calls.append(("download", remote_path, str(local_path)))
        contents = self.files.get(remote_path)
        if isinstance(contents, Exception):
            raise contents
        if contents is None:
            raise ExecError(f"missing {remote_path}")
        Path(local_path).write_bytes(contents)
        return len(contents)


@pytest.fixture
def fake_session_factory():
    return FakeSession
