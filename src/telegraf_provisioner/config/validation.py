"""Syntactic checks for OPC-UA and gateway addresses."""
from ..errors import ValidationError
from ..remote.session import RemoteTarget


def _is_octet(part: str) -> bool:
    return part.isdecimal() and int(part) <= 255


def validate_ip(ip: str) -> str:
    """Check that ``ip`` is a dotted quad such as ``192.168.0.1``.

    Purely syntactic: four period-separated segments, each 0-255.

    Raises:
        ValidationError: If the format is wrong
    """
    parts = ip.split(".")
    if len(parts) != 4 or not all(_is_octet(p) for p in parts):
        raise ValidationError(
            f"Invalid IP address format for '{ip}', expecting something like: 192.168.0.1"
        )
    return ip


def parse_remote_target(host_and_port: str, username: str, password: str) -> RemoteTarget:
    """Build a RemoteTarget from a ``host:port`` string.

    Requires exactly one colon and a port in 1-65535.

    Raises:
        ValidationError: If the format is wrong
    """
    parts = host_and_port.split(":")
    valid = (
        len(parts) == 2
        and bool(parts[0])
        and parts[1].isdecimal()
        and 0 < int(parts[1]) <= 65535
    )
    if not valid:
        raise ValidationError(
            f"Invalid IOT host format for '{host_and_port}', "
            "expecting something like: 192.168.0.1:22"
        )
    return RemoteTarget(host_and_port=host_and_port, username=username, password=password)
