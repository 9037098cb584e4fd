"""Value types fed to the Telegraf config renderer."""
from dataclasses import dataclass, field
from enum import Enum

from ..address_space import NodeDescriptor

DEFAULT_INTERVAL = "1000ms"


class InputMode(Enum):
    """How Telegraf talks to the OPC-UA server."""
    POLL = "poll"            # [[inputs.opcua]], reads every interval
    SUBSCRIBE = "subscribe"  # [[inputs.opcua_listener]], change notifications

    @property
    def plugin(self) -> str:
        return "opcua" if self is InputMode.POLL else "opcua_listener"


@dataclass(frozen=True)
class ConnectionParams:
    """OPC-UA endpoint credentials, host already validated."""
    host: str
    username: str
    password: str


@dataclass
class GroupDescriptor:
    """One input plugin block, built from one XML file."""
    group_name: str
    namespace_number: str
    sampling_interval: str = DEFAULT_INTERVAL
    nodes: list[NodeDescriptor] = field(default_factory=list)
    mode: InputMode = InputMode.POLL
