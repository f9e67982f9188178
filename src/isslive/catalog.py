"""Telemetry item catalog loaded from the ISS Live PUI list."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from collections.abc import Iterator, Mapping
from dataclasses import asdict, dataclass, field
from pathlib import Path

import structlog

logger = structlog.get_logger()

DEFAULT_ITEMS: tuple[str, ...] = (
    "STATUS_ORIGIN",
    "NODE_2_POWER",
    "NODE_3_POWER",
    "ISS_ATTITUDE_ROLL",
    "ISS_ATTITUDE_PITCH",
    "ISS_ATTITUDE_YAW",
    "TIME_TO_SUNRISE",
    "TIME_TO_SUNSET",
    "AIRLOCK000001",
    "AIRLOCK000002",
    "NODE_2_SOLAR_BETA",
)

# Used when the PUI list exists but cannot be read.
FALLBACK_ITEMS: tuple[str, ...] = DEFAULT_ITEMS[:6]

ROOT_TAG = "ISSLivePUIList"

# Descriptor attribute -> element name inside <Symbol>.
SYMBOL_FIELDS: dict[str, str] = {
    "description": "Description",
    "ops_nom": "OPS_NOM",
    "eng_nom": "ENG_NOM",
    "units": "UNITS",
    "min_value": "MIN",
    "max_value": "MAX",
    "enum_values": "ENUM",
    "format_spec": "Format_Spec",
}

_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")


class CatalogUnavailable(RuntimeError):
    """Raised when the PUI list cannot be read or parsed."""


@dataclass(frozen=True)
class Descriptor:
    description: str = ""
    ops_nom: str = ""
    eng_nom: str = ""
    units: str = ""
    min_value: str = ""
    max_value: str = ""
    enum_values: str = ""
    format_spec: str = ""

    def as_dict(self) -> dict[str, str]:
        return asdict(self)


EMPTY_DESCRIPTOR = Descriptor()


@dataclass(frozen=True)
class Catalog:
    """Subscribed item names plus their static metadata."""

    items: tuple[str, ...]
    descriptors: Mapping[str, Descriptor] = field(default_factory=dict)
    source: str = "default"

    def descriptor_for(self, key: str) -> Descriptor:
        return self.descriptors.get(key, EMPTY_DESCRIPTOR)

    def __contains__(self, key: object) -> bool:
        return key in self.descriptors

    def __iter__(self) -> Iterator[str]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


def _symbol_descriptor(symbol: ET.Element) -> Descriptor:
    values = {attr: symbol.findtext(tag, default="") or "" for attr, tag in SYMBOL_FIELDS.items()}
    return Descriptor(**values)


def parse_pui_list(text: str) -> tuple[list[str], dict[str, Descriptor]]:
    """Extract item keys and descriptors from PUI list XML text."""
    try:
        root = ET.fromstring(_XML_DECLARATION.sub("", text.lstrip("\ufeff"), count=1))
    except ET.ParseError as e:
        raise CatalogUnavailable(f"Malformed PUI list: {e}") from e

    items: list[str] = []
    descriptors: dict[str, Descriptor] = {}
    if root.tag != ROOT_TAG:
        return items, descriptors

    for discipline in root.findall("Discipline"):
        for symbol in discipline.findall("Symbol"):
            key = (symbol.findtext("Public_PUI") or "").strip()
            if not key:
                continue
            if key not in descriptors:
                items.append(key)
            descriptors[key] = _symbol_descriptor(symbol)

    return items, descriptors


def _read_pui_list(path: Path, encoding: str) -> str:
    try:
        return path.read_text(encoding=encoding)
    except (OSError, UnicodeError) as e:
        raise CatalogUnavailable(f"Cannot read PUI list: {e}") from e


def load_catalog(path: str | Path, encoding: str = "utf-16-le") -> Catalog:
    """Load the catalog, falling back to the default item list on any problem."""
    path = Path(path)
    if not path.exists():
        logger.info("PUI list not found, using default items", path=str(path))
        return Catalog(items=DEFAULT_ITEMS)

    try:
        items, descriptors = parse_pui_list(_read_pui_list(path, encoding))
    except CatalogUnavailable as e:
        logger.error("Error parsing PUI list, using fallback items", path=str(path), error=str(e))
        return Catalog(items=FALLBACK_ITEMS)

    if not items:
        logger.info("No items found in PUI list, using default items", path=str(path))
        return Catalog(items=DEFAULT_ITEMS)

    logger.info("Loaded PUI list", path=str(path), items=len(items))
    return Catalog(items=tuple(items), descriptors=descriptors, source=str(path))
