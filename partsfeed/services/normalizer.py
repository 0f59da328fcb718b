"""PIES / ACES feed normalization.

Both parsers are pure: bytes in, a list of frozen records out. The only
error that escapes is FeedParseError, raised when the buffer is not XML or
the dialect's root element is missing. Per-item problems are defaulted
(PIES) or dropped (ACES).

Feeds are first converted into an attribute-merged tree, so that
``<Years from="2010"/>`` and ``<Years><from>2010</from></Years>`` are read
the same way:

- an element with no attributes and no children becomes its stripped text;
- anything else becomes a dict of attributes and children by local name,
  with the element's own text (if any) under ``"_"``;
- repeated children collapse into a list.
"""
from __future__ import annotations

import html
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, Union

from partsfeed.services.types import CatalogItem, FitmentEntry
from partsfeed.utils import is_absolute_http_url, to_float, to_int

Node = Union[str, Dict[str, Any]]
# A child that may be missing, appear once, or repeat
OneOrMany = Union[None, Node, List[Node]]

TEXT_KEY = "_"
TITLE_CODE = "TLE"
SHORT_CODE = "SHO"
LONG_CODES = frozenset({"EXT", "DES"})
DEFAULT_BRAND = "Unknown Brand"
DEFAULT_CATEGORY = "Uncategorized"


class FeedParseError(ValueError):
    """The feed could not be read as a document of the expected dialect."""


# ---- Tree helpers ----
def _local(name: str) -> str:
    return name.rsplit("}", 1)[-1]


def _to_node(elem: ET.Element) -> Node:
    children = list(elem)
    # Leading/trailing whitespace is dropped from every text value; inner spacing is kept as written.
    text = (elem.text or "").strip()
    if not elem.attrib and not children:
        return text
    node: Dict[str, Any] = {_local(k): v for k, v in elem.attrib.items()}
    for child in children:
        name = _local(child.tag)
        value = _to_node(child)
        if name not in node:
            node[name] = value
        elif isinstance(node[name], list):
            node[name].append(value)
        else:
            node[name] = [node[name], value]
    if text:
        node[TEXT_KEY] = text
    return node


def parse_tree(content: bytes, root_name: str) -> Node:
    """Parse `content` and return the merged tree of its root, which must be <root_name>."""
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise FeedParseError(f"feed is not well-formed XML: {e}") from e
    found = _local(root.tag)
    if found != root_name:
        raise FeedParseError(f"expected <{root_name}> root element, found <{found}>")
    return _to_node(root)


def one_or_many(value: OneOrMany) -> List[Node]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def node_get(node: Any, *path: str) -> OneOrMany:
    # Walk dict keys; a repeated element met mid-path resolves to its first occurrence.
    cur = node
    for key in path:
        if isinstance(cur, list):
            cur = cur[0] if cur else None
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def node_text(value: Any) -> str:
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        return str(value.get(TEXT_KEY, "")).strip()
    return ""


def _first_text(node: Any, *names: str) -> str:
    for name in names:
        text = node_text(node_get(node, name))
        if text:
            return text
    return ""


# ---- PIES ----
def _descriptions(item: Node) -> List[tuple[str, str]]:
    out = []
    for d in one_or_many(node_get(item, "Descriptions", "Description")):
        code = node_text(node_get(d, "DescriptionCode")).upper()
        if code:
            out.append((code, node_text(d)))
    return out


def _first_desc(descs: List[tuple[str, str]], code: str) -> str:
    for c, text in descs:
        if c == code and text:
            return text
    return ""


def _attributes(item: Node) -> Dict[str, str]:
    attrs: Dict[str, str] = {}
    for a in one_or_many(node_get(item, "ProductAttributes", "ProductAttribute")):
        attr_id = node_text(node_get(a, "AttributeID"))
        if not attr_id:
            continue
        # last occurrence of an id wins
        attrs[attr_id] = node_text(a) or node_text(node_get(a, "Value"))
    return attrs


def _pricing(item: Node) -> Dict[str, float]:
    pricing: Dict[str, float] = {}
    for pr in one_or_many(node_get(item, "Prices", "Pricing")):
        code = node_text(node_get(pr, "PriceType"))
        value = to_float(node_text(node_get(pr, "Price")))
        if code and value is not None:
            pricing[code] = value
    return pricing


def _images(item: Node) -> List[str]:
    images = []
    for asset in one_or_many(node_get(item, "DigitalAssets", "DigitalFileInformation")):
        uri = node_text(node_get(asset, "URI"))
        if is_absolute_http_url(uri):
            images.append(uri)
    return images


def _catalog_item(item: Node) -> CatalogItem:
    sku = _first_text(item, "PartNumber", "ItemID", "BaseItemID")
    descs = _descriptions(item)
    short_desc = _first_desc(descs, SHORT_CODE)
    title = _first_desc(descs, TITLE_CODE) or short_desc or f"Part {sku}".strip()
    long_desc = "".join(
        f"<p>{html.escape(text, quote=False)}</p>\n" for code, text in descs if code in LONG_CODES and text
    )

    pkg = node_get(item, "Packages", "Package")
    dims = node_get(pkg, "Dimensions")
    length = _first_text(dims, "ShippingLength", "Length")
    width = _first_text(dims, "ShippingWidth", "Width")
    height = _first_text(dims, "ShippingHeight", "Height")

    return CatalogItem(
        title=title,
        sku=sku,
        vendor=_first_text(item, "BrandLabel") or DEFAULT_BRAND,
        short_desc=short_desc,
        long_desc=long_desc,
        attributes=_attributes(item),
        pricing=_pricing(item),
        qty_available=to_int(node_text(node_get(pkg, "QuantityofEaches")), 1),
        weight=node_text(node_get(pkg, "Weights", "Weight")),
        dimensions=f"{length}x{width}x{height}",
        category=_first_text(item, "PartTypeName", "PartTerminologyID") or DEFAULT_CATEGORY,
        pies_segment=_first_text(item, "PIESSegment"),
        pies_base=_first_text(item, "PIESBase"),
        pies_sub=_first_text(item, "PIESSub"),
        images=_images(item),
    )


def parse_pies(content: bytes) -> List[CatalogItem]:
    """Normalize a PIES item feed into CatalogItems, in document order.

    Items with no sku are still returned; callers drop them before storage.
    Only empty <Item/> nodes are skipped here.
    """
    root = parse_tree(content, "PIES")
    return [_catalog_item(item) for item in one_or_many(node_get(root, "Items", "Item")) if item]


# ---- ACES ----
def _fitment_entry(app: Node) -> Optional[FitmentEntry]:
    part_number = node_text(node_get(app, "Part"))
    make = node_text(node_get(app, "Make", "id"))
    model = node_text(node_get(app, "Model", "id"))
    year_from = node_text(node_get(app, "Years", "from"))
    year_to = node_text(node_get(app, "Years", "to"))
    if not (part_number and make and model and year_from and year_to):
        return None
    return FitmentEntry(
        part_number=part_number,
        make=make,
        model=model,
        year_from=year_from,
        year_to=year_to,
        part_type=node_text(node_get(app, "PartType", "id")),
        position=node_text(node_get(app, "Position", "id")),
    )


def parse_aces(content: bytes) -> List[FitmentEntry]:
    """Normalize an ACES fitment feed; applications missing any key field are dropped."""
    root = parse_tree(content, "ACES")
    entries = []
    for app in one_or_many(node_get(root, "App")):
        entry = _fitment_entry(app) if app else None
        if entry is not None:
            entries.append(entry)
    return entries
