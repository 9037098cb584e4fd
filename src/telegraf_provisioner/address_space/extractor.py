"""Extract Telegraf node descriptors from OPC-UA address-space XML exports.

The vendor export is a UANodeSet-like document. Only two things matter:

- the ``UAObject`` with the sentinel node id, whose ``DisplayName`` names the
  Telegraf group
- every ``UAVariable`` in namespace 2, which becomes one node entry

Tags are matched by local name, so a default XML namespace on the document
does not change the result.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from lxml import etree

from ..errors import ParseError

logger = logging.getLogger(__name__)

# Root-level organizer of the vendor namespace
SENTINEL_NODE_ID = "ns=2;i=1"
NODE_ID_PREFIX = "ns=2;i="


@dataclass(frozen=True)
class NodeDescriptor:
    """One OPC-UA variable as Telegraf sees it."""
    name: str
    identifier: str


@dataclass
class AddressSpace:
    """Result of extracting one document."""
    group_name: Optional[str] = None
    nodes: list[NodeDescriptor] = field(default_factory=list)


def _by_local_name(element, tag: str) -> list:
    return element.xpath(f".//*[local-name()='{tag}']")


def _first_text(element, tag: str) -> Optional[str]:
    """Text of the first descendant named ``tag``, None if absent or empty."""
    matches = _by_local_name(element, tag)
    if not matches:
        return None
    return matches[0].text


def parse_document(xml_path: Union[str, Path]):
    """Parse an XML file into an lxml tree.

    Raises:
        ParseError: If the file cannot be read or is not well-formed
    """
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        return etree.parse(str(xml_path), parser)
    except OSError as e:
        raise ParseError(f"Unable to read {xml_path}: {e}") from e
    except etree.XMLSyntaxError as e:
        raise ParseError(f"Unable to parse XML in {xml_path}: {e}") from e


def _find_group_name(root, source: str) -> Optional[str]:
    group_name = None
    for obj in _by_local_name(root, "UAObject"):
        if obj.get("NodeId") != SENTINEL_NODE_ID:
            continue
        found = _first_text(obj, "DisplayName")
        if found is None:
            continue
        if group_name is not None:
            logger.warning(
                f"{source}: another {SENTINEL_NODE_ID} object found, "
                f"replacing group name '{group_name}' with '{found}'"
            )
        logger.info(f"##BrowseName for {SENTINEL_NODE_ID}: {found}")
        group_name = found
    return group_name


def _node_label(variable) -> str:
    mapping = _first_text(variable, "VariableMapping")
    if mapping is not None:
        return mapping.replace('"', "")

    return _first_text(variable, "BrowseName") or ""


def _extract_nodes(root) -> list[NodeDescriptor]:
    nodes = []
    for variable in _by_local_name(root, "UAVariable"):
        node_id = variable.get("NodeId")
        if node_id is None or not node_id.startswith(NODE_ID_PREFIX):
            continue
        identifier = node_id.split("=")[2]
        nodes.append(NodeDescriptor(name=_node_label(variable), identifier=identifier))
    return nodes


def extract_address_space(xml_path: Union[str, Path]) -> AddressSpace:
    """Extract the group name override and node list from one document.

    Nodes keep document order. Duplicate identifiers are kept as-is.

    Raises:
        ParseError: If the file cannot be read or is not well-formed
    """
    tree = parse_document(xml_path)
    root = tree.getroot()
    source = Path(xml_path).name

    group_name = _find_group_name(root, source)
    nodes = _extract_nodes(root)
    logger.debug(f"{source}: {len(nodes)} namespace-2 variables, group={group_name!r}")
    return AddressSpace(group_name=group_name, nodes=nodes)


def discover_xml_files(folder: Union[str, Path]) -> list[Path]:
    """List the ``.xml`` files directly inside ``folder``, sorted by name."""
    folder = Path(folder)
    return sorted(
        p for p in folder.iterdir()
        if p.is_file() and p.suffix == ".xml"
    )
