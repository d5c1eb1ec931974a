# eyewear_catalog/utils/normalization.py
"""Turns untyped source records into ``CategoryNode`` objects.

Every field has an entry in ``NODE_DEFAULTS``; nothing here raises on a
missing or badly typed value. Only an explicit false-like ``is_active``
hides a node, absence means active.
"""
import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional
import pytz
from ..models.category import CategoryLevel, CategoryNode, CategoryProduct

RawNode = Dict[str, Any]

NODE_DEFAULTS: Dict[str, Any] = {
    "id": 0,
    "name": "",
    "slug": "",
    "description": None,
    "image": None,
    "is_active": True,
    "sort_order": 0,
    "parent_id": None,
    "category_id": None,
}

REQUIRED_FIELDS = ("id", "name", "slug")

_FALSE_STRINGS = {"false", "0", "no", "off"}

# Keys under which a payload may embed the next level down
EMBEDDED_CHILD_KEYS = ("subcategories", "children")


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


def coerce_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def coerce_str(value: Any, default: Optional[str] = "") -> Optional[str]:
    if isinstance(value, str):
        value = value.strip()
        return value if value else default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def coerce_active(value: Any) -> bool:
    """False only for an explicit false-like flag"""
    if value is None:
        return NODE_DEFAULTS["is_active"]
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return NODE_DEFAULTS["is_active"]


def coerce_datetime(value: Any, fallback: datetime) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else pytz.utc.localize(value)
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return fallback
        return parsed if parsed.tzinfo else pytz.utc.localize(parsed)
    return fallback


def is_malformed(raw: RawNode) -> bool:
    if coerce_int(raw.get("id"), None) is None:
        return True
    return any(coerce_str(raw.get(field), None) is None for field in ("name", "slug"))


def normalize_product(raw: Any) -> Optional[CategoryProduct]:
    if not isinstance(raw, dict):
        return None

    images = raw.get("images")
    if isinstance(images, str):
        try:
            images = json.loads(images)
        except ValueError:
            images = []
    if not isinstance(images, list):
        images = []

    try:
        price = Decimal(str(raw.get("price", 0)))
    except InvalidOperation:
        price = Decimal(0)
    if not price.is_finite():
        price = Decimal(0)

    return CategoryProduct(
        id=coerce_int(raw.get("id")),
        name=coerce_str(raw.get("name")),
        slug=coerce_str(raw.get("slug")),
        price=price,
        images=[image for image in images if isinstance(image, str)],
    )


def normalize_node(
    raw: RawNode,
    level: CategoryLevel,
    *,
    parent_id: Optional[int] = None,
    category_id: Optional[int] = None,
    include_products: bool = False,
    now: Optional[datetime] = None,
) -> CategoryNode:
    """Build a childless ``CategoryNode`` from a raw record.

    ``parent_id`` and ``category_id`` are inherited only when the record
    lacks them. Category nodes never carry either. Children are left empty;
    the resolver attaches them.
    """
    if not isinstance(raw, dict):
        raw = {}
    now = now or utc_now()

    if level == CategoryLevel.CATEGORY:
        node_parent_id = None
        node_category_id = None
    else:
        node_category_id = coerce_int(raw.get("category_id"), None)
        if node_category_id is None:
            node_category_id = category_id
        node_parent_id = coerce_int(raw.get("parent_id"), None)
        if node_parent_id is None and level == CategoryLevel.SUB_SUBCATEGORY:
            node_parent_id = parent_id

    products: List[CategoryProduct] = []
    if include_products and level == CategoryLevel.CATEGORY and isinstance(raw.get("products"), list):
        products = [p for p in map(normalize_product, raw["products"]) if p is not None]

    return CategoryNode(
        id=coerce_int(raw.get("id"), NODE_DEFAULTS["id"]),
        name=coerce_str(raw.get("name"), NODE_DEFAULTS["name"]),
        slug=coerce_str(raw.get("slug"), NODE_DEFAULTS["slug"]),
        level=level,
        description=coerce_str(raw.get("description"), NODE_DEFAULTS["description"]),
        image=coerce_str(raw.get("image"), NODE_DEFAULTS["image"]),
        is_active=coerce_active(raw.get("is_active")),
        parent_id=node_parent_id,
        category_id=node_category_id,
        sort_order=coerce_int(raw.get("sort_order"), NODE_DEFAULTS["sort_order"]),
        malformed=is_malformed(raw),
        created_at=coerce_datetime(raw.get("created_at"), now),
        updated_at=coerce_datetime(raw.get("updated_at"), now),
        products=products,
    )


def embedded_children(raw: Any) -> List[RawNode]:
    """Child records a payload carries inline, if any"""
    if not isinstance(raw, dict):
        return []
    for key in EMBEDDED_CHILD_KEYS:
        value = raw.get(key)
        if isinstance(value, list) and value:
            return [item for item in value if isinstance(item, dict)]
    return []


def filter_active(nodes: Iterable[CategoryNode]) -> List[CategoryNode]:
    return [node for node in nodes if node.is_active]


def sort_siblings(nodes: Iterable[CategoryNode]) -> List[CategoryNode]:
    """Ascending sort_order; sorted() is stable so ties keep source order"""
    return sorted(nodes, key=lambda node: node.sort_order)
