"""Telegraf configuration rendering.

Usage:
    from telegraf_provisioner.telegraf import build_group, render_config, write_config

    group = build_group("line1.xml", namespace_number="2", mode=InputMode.POLL)
    content = render_config([group], ConnectionParams("10.0.0.5", "opc", "pw"), token)
    write_config(folder, content)
"""
from .schema import ConnectionParams, GroupDescriptor, InputMode, DEFAULT_INTERVAL
from .renderer import (
    CONFIG_FILENAME,
    build_group,
    escape,
    render_config,
    render_document,
    render_group,
    render_nodes,
    write_config,
)

__all__ = [
    "ConnectionParams",
    "GroupDescriptor",
    "InputMode",
    "DEFAULT_INTERVAL",
    "CONFIG_FILENAME",
    "build_group",
    "escape",
    "render_config",
    "render_document",
    "render_group",
    "render_nodes",
    "write_config",
]
