"""Render ``telegraf.conf`` from extracted address spaces.

All values are emitted as TOML basic strings. Intervals, namespace numbers
and identifiers are carried as opaque text and never parsed here.
"""
import logging
from pathlib import Path
from typing import Optional, Sequence, Union

from ..address_space import NodeDescriptor, extract_address_space
from .schema import ConnectionParams, GroupDescriptor, InputMode, DEFAULT_INTERVAL

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "telegraf.conf"
OPCUA_PORT = 4840
NODE_SEPARATOR = ",\n        "

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}

PREAMBLE = """# Global tags can be specified here in key="value" format.
[global_tags]

# Configuration for telegraf agent
[agent]
  ## Default data collection interval for all inputs
  interval = "1000ms"
  round_interval = true

  metric_batch_size = 10000
  metric_buffer_limit = 100000

  collection_jitter = "0s"
  flush_interval = "10s"
  flush_jitter = "0s"
  precision = "0s"

  ## Log at debug level.
  # debug = false
  ## Log only error level messages.
  # quiet = false

  logtarget = "file"
  logfile = "/var/log/telegraf/telegraf.log"
  logfile_rotation_max_size = "25MB"
  logfile_rotation_max_archives = 4

  hostname = ""
  omit_hostname = false

# Configuration for sending metrics to InfluxDB 2.0
[[outputs.influxdb_v2]]
  urls = ["http://127.0.0.1:8086"]
  token = "{token}"
  organization = "org"
  bucket = "line"

{blocks}
"""

POLL_TEMPLATE = """
[[inputs.opcua]]
name = "opcua"
interval = "{interval}"
endpoint = "opc.tcp://{host}:{port}"
connect_timeout = "30s"
request_timeout = "10s"
security_policy = "Basic256Sha256"
security_mode = "SignAndEncrypt"
certificate = ""
private_key = ""
auth_method = "UserName"
username = "{username}"
password = "{password}"
timestamp = "source"
client_trace = false
    [[inputs.opcua.group]]
      name = "{group_name}"
      namespace = "{namespace}"
      identifier_type = "i"
      nodes = [
        {nodes}
      ]
    """

SUBSCRIBE_TEMPLATE = """
[[inputs.opcua_listener]]
name = "opcua_listener"
endpoint = "opc.tcp://{host}:{port}"
connect_fail_behavior = "ignore"
connect_timeout = "30s"
request_timeout = "10s"
session_timeout = "20m"
security_policy = "Basic256Sha256"
security_mode = "SignAndEncrypt"
certificate = ""
private_key = ""
auth_method = "UserName"
username = "{username}"
password = "{password}"
timestamp = "source"
client_trace = false
    [[inputs.opcua_listener.group]]
      name = "{group_name}"
      sampling_interval = "{interval}"
      namespace = "{namespace}"
      identifier_type = "i"
      nodes = [
        {nodes}
      ]
    """


def escape(value: str) -> str:
    """Escape a value for use inside a TOML basic string."""
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def render_node(node: NodeDescriptor) -> str:
    return f'{{name="{escape(node.name)}", identifier="{escape(node.identifier)}"}}'


def render_nodes(nodes: Sequence[NodeDescriptor]) -> str:
    """Render the inline-table list body; empty input gives an empty list."""
    return NODE_SEPARATOR.join(render_node(n) for n in nodes)


def render_group(group: GroupDescriptor, connection: ConnectionParams) -> str:
    """Render one ``[[inputs.opcua]]`` or ``[[inputs.opcua_listener]]`` block."""
    template = POLL_TEMPLATE if group.mode is InputMode.POLL else SUBSCRIBE_TEMPLATE
    return template.format(
        interval=escape(group.sampling_interval or DEFAULT_INTERVAL),
        host=escape(connection.host),
        port=OPCUA_PORT,
        username=escape(connection.username),
        password=escape(connection.password),
        group_name=escape(group.group_name),
        namespace=escape(group.namespace_number),
        nodes=render_nodes(group.nodes),
    )


def render_document(token: str, blocks: Sequence[str]) -> str:
    """Wrap rendered input blocks with the agent/output preamble."""
    return PREAMBLE.format(token=escape(token), blocks="\n\n".join(blocks))


def build_group(
    xml_path: Union[str, Path],
    namespace_number: str,
    sampling_interval: Optional[str] = None,
    mode: InputMode = InputMode.POLL,
) -> GroupDescriptor:
    """Extract one XML file into a GroupDescriptor.

    The group is named after the file stem unless the document carries a
    sentinel organizer object with a display name.

    Raises:
        ParseError: If the XML cannot be read or parsed
    """
    xml_path = Path(xml_path)
    space = extract_address_space(xml_path)
    group_name = space.group_name or xml_path.stem

    if not space.nodes:
        logger.warning(f"{xml_path.name}: no namespace-2 variables found, block will be empty")

    return GroupDescriptor(
        group_name=group_name,
        namespace_number=namespace_number,
        sampling_interval=sampling_interval or DEFAULT_INTERVAL,
        nodes=space.nodes,
        mode=mode,
    )


def render_config(
    groups: Sequence[GroupDescriptor],
    connection: ConnectionParams,
    token: str,
) -> str:
    """Render the complete ``telegraf.conf`` for all groups, in order."""
    return render_document(token, [render_group(g, connection) for g in groups])


def write_config(folder: Union[str, Path], content: str) -> Path:
    """Write ``telegraf.conf`` into ``folder``, replacing any existing file."""
    config_path = Path(folder) / CONFIG_FILENAME
    config_path.write_text(content, encoding="utf-8")
    logger.info(f"Config file generated successfully: {config_path}")
    return config_path
