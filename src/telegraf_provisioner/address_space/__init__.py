"""OPC-UA address-space document parsing."""
from .extractor import (
    AddressSpace,
    NodeDescriptor,
    SENTINEL_NODE_ID,
    discover_xml_files,
    extract_address_space,
    parse_document,
)

__all__ = [
    "AddressSpace",
    "NodeDescriptor",
    "SENTINEL_NODE_ID",
    "discover_xml_files",
    "extract_address_space",
    "parse_document",
]
