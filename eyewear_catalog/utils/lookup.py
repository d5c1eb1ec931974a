# eyewear_catalog/utils/lookup.py
"""Slug and id lookups over lists of category nodes.

Works on anything shaped like ``CategoryNode`` (``id``, ``slug``,
``children``, ``is_lookupable``) so the models can use it without a
circular import.
"""
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple


def normalize_slug(slug: Optional[str]) -> str:
    """Comparison key for slugs: stripped and lower-cased"""
    if not isinstance(slug, str):
        return ""
    return slug.strip().lower()


def slugs_match(left: Optional[str], right: Optional[str]) -> bool:
    key = normalize_slug(left)
    return bool(key) and key == normalize_slug(right)


def find_by_slug(nodes: Iterable[Any], slug: Optional[str]) -> Optional[Any]:
    """First lookupable node by source order whose slug matches"""
    key = normalize_slug(slug)
    if not key:
        return None
    for node in nodes:
        if node.is_lookupable and normalize_slug(node.slug) == key:
            return node
    return None


def find_by_id(nodes: Iterable[Any], node_id: Optional[int]) -> Optional[Any]:
    if node_id is None:
        return None
    for node in nodes:
        if node.id == node_id:
            return node
    return None


def iter_tree(nodes: Iterable[Any], depth: int = 0) -> Iterator[Tuple[int, Any]]:
    for node in nodes:
        yield depth, node
        yield from iter_tree(node.children, depth + 1)


def duplicate_slugs(siblings: Iterable[Any]) -> Dict[str, List[Any]]:
    """Group siblings sharing a slug (case-insensitive), empty slugs ignored.

    Only groups with more than one member are returned; members keep
    source order so the first entry is the one lookups resolve to.
    """
    groups: Dict[str, List[Any]] = {}
    for node in siblings:
        key = normalize_slug(node.slug)
        if key:
            groups.setdefault(key, []).append(node)
    return {key: group for key, group in groups.items() if len(group) > 1}
