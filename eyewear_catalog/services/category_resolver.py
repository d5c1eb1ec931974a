# eyewear_catalog/services/category_resolver.py
import asyncio
import logging
from typing import Any, Dict, List, Optional, Set, Tuple
from ..config import Config
from ..models.category import (
    CategoryLevel,
    CategoryNode,
    CategoryTree,
    DataQualityIssue,
    IssueKind,
)
from ..utils.lookup import duplicate_slugs, find_by_slug, normalize_slug, slugs_match
from ..utils.normalization import (
    coerce_int,
    embedded_children,
    filter_active,
    normalize_node,
    sort_siblings,
    utc_now,
)
from .category_source import SourceError

RawNode = Dict[str, Any]
NodeWithRaw = Tuple[CategoryNode, RawNode]


class _Resolution:
    """Per-call state: fan-out limit, collected issues, one clock reading"""

    def __init__(self, resolver: "CategoryHierarchyResolver"):
        self.resolver = resolver
        self.semaphore = asyncio.Semaphore(resolver.max_concurrency)
        self.issues: List[DataQualityIssue] = []
        self.now = utc_now()

    async def fetch(self, what: str, call, *args):
        """Run one source call; ``None`` when it failed or timed out"""
        async with self.semaphore:
            try:
                result = await asyncio.wait_for(call(*args), self.resolver.timeout)
            except SourceError as e:
                self.resolver.logger.warning("Fetching %s failed: %s", what, e)
                return None
            except asyncio.TimeoutError:
                self.resolver.logger.warning(
                    "Fetching %s timed out after %ss", what, self.resolver.timeout
                )
                return None
            except Exception as e:
                self.resolver.logger.warning("Fetching %s raised %r", what, e, exc_info=True)
                return None
        self.resolver.trace("Fetched %s: %s", what, _describe(result))
        return result

    def report(self, kind: IssueKind, node_id: Optional[int], message: str):
        self.issues.append(DataQualityIssue(kind=kind, node_id=node_id, message=message))
        self.resolver.logger.warning("Data quality (%s): %s", kind.value, message)

    def check_malformed(self, nodes: List[CategoryNode]):
        for node in nodes:
            if node.malformed:
                self.report(
                    IssueKind.MALFORMED_NODE, node.id,
                    f"{node.level.value} {node.id} is missing id, name or slug "
                    f"(name={node.name!r}, slug={node.slug!r})"
                )

    def check_parent(self, node: CategoryNode, parent_id: int) -> CategoryNode:
        """Re-home a node under the parent it was fetched through"""
        declared = node.expected_parent
        if declared == parent_id:
            return node
        self.report(
            IssueKind.PARENT_MISMATCH, node.id,
            f"{node.level.value} {node.id} declares parent {declared} "
            f"but was fetched under {parent_id}"
        )
        field = "category_id" if node.level == CategoryLevel.SUBCATEGORY else "parent_id"
        return node.model_copy(update={field: parent_id})

    def finalize(self, nodes: List[CategoryNode],
                 seen: Optional[Set[Tuple[bool, int]]] = None) -> List[CategoryNode]:
        """Sequential pass in output order: duplicate slugs, duplicate nodes.

        Categories and the two lower levels live in different id spaces,
        so a node is a duplicate only within its own space. Id 0 marks a
        malformed node and is never deduplicated.
        """
        seen = set() if seen is None else seen
        for slug, group in duplicate_slugs(nodes).items():
            self.report(
                IssueKind.DUPLICATE_SLUG, group[0].id,
                f"slug {slug!r} shared by {group[0].level.value} ids "
                f"{[node.id for node in group]}"
            )

        kept = []
        for node in nodes:
            key = (node.level == CategoryLevel.CATEGORY, node.id)
            if node.id and key in seen:
                self.report(
                    IssueKind.DUPLICATE_NODE, node.id,
                    f"{node.level.value} {node.id} already placed under another parent, dropped"
                )
                continue
            if node.id:
                seen.add(key)
            if node.children:
                node = node.model_copy(update={"children": self.finalize(node.children, seen)})
            kept.append(node)
        return kept


def _describe(result) -> str:
    if isinstance(result, list):
        return f"{len(result)} record(s)"
    return "1 record" if result else "nothing"


def _active_sorted(pairs: List[NodeWithRaw]) -> List[NodeWithRaw]:
    return sorted((pair for pair in pairs if pair[0].is_active), key=lambda pair: pair[0].sort_order)


def _is_nested_subcategory(raw: RawNode) -> bool:
    return coerce_int(raw.get("parent_id"), None) not in (None, 0)


class CategoryHierarchyResolver:
    """Assembles the Category -> Subcategory -> Sub-subcategory tree.

    ``source`` is anything with the ``CategorySourceClient`` fetch methods.
    Subcategories are always re-fetched and a category's embedded list is
    only a fallback. Children embedded in a subcategory payload are used
    as-is and fetched only when absent. Source failures never
    escape: each failed fetch counts as an empty result at that node.
    """

    def __init__(self, source, logger: Optional[logging.Logger] = None,
                 debug: Optional[bool] = None, timeout: Optional[float] = None,
                 max_concurrency: Optional[int] = None):
        self.source = source
        self.logger = logger or logging.getLogger(__name__)
        self.debug = Config.DEBUG if debug is None else debug
        self.timeout = Config.REQUEST_TIMEOUT if timeout is None else timeout
        self.max_concurrency = max_concurrency or Config.MAX_CONCURRENCY

    def trace(self, message: str, *args):
        if self.debug:
            self.logger.debug(message, *args)

    async def resolve_tree(self, include_products: bool = False) -> CategoryTree:
        """Resolve the whole active tree; an empty tree if the source is down"""
        run = _Resolution(self)
        raw_categories = await run.fetch(
            "top-level categories", self.source.fetch_top_level_categories, include_products, True
        )
        if not raw_categories:
            self.trace("No categories available, resolving to an empty tree")
            return CategoryTree()

        pairs = [
            (normalize_node(raw, CategoryLevel.CATEGORY, include_products=include_products, now=run.now), raw)
            for raw in raw_categories
        ]
        run.check_malformed([node for node, _ in pairs])
        pairs = _active_sorted(pairs)
        self.trace("Keeping %d of %d categories", len(pairs), len(raw_categories))

        categories = await asyncio.gather(
            *(self._resolve_category(run, node, raw) for node, raw in pairs)
        )
        return CategoryTree(categories=run.finalize(list(categories)), issues=run.issues)

    async def _resolve_category(self, run: _Resolution, category: CategoryNode,
                                raw: RawNode) -> CategoryNode:
        raw_subcategories = None
        if category.id > 0:
            raw_subcategories = await run.fetch(
                f"subcategories of category {category.id}",
                self.source.fetch_subcategories_by_category_id, category.id
            )
        if not raw_subcategories:
            raw_subcategories = embedded_children(raw)
            if raw_subcategories:
                self.trace(
                    "Using %d embedded subcategories for category %s",
                    len(raw_subcategories), category.id
                )

        pairs = []
        for raw_subcategory in raw_subcategories:
            # Nested records leaking into this level belong under their own parent
            if _is_nested_subcategory(raw_subcategory):
                self.trace("Skipping nested record %s at subcategory level", raw_subcategory.get("id"))
                continue
            node = normalize_node(
                raw_subcategory, CategoryLevel.SUBCATEGORY, category_id=category.id, now=run.now
            )
            pairs.append((run.check_parent(node, category.id), raw_subcategory))
        run.check_malformed([node for node, _ in pairs])
        pairs = _active_sorted(pairs)

        subcategories = await asyncio.gather(
            *(self._resolve_subcategory(run, node, raw) for node, raw in pairs)
        )
        return category.model_copy(update={"children": list(subcategories)})

    async def _resolve_subcategory(self, run: _Resolution, subcategory: CategoryNode,
                                   raw: RawNode) -> CategoryNode:
        raw_children = embedded_children(raw)
        if not raw_children and subcategory.id > 0:
            raw_children = await run.fetch(
                f"children of subcategory {subcategory.id}",
                self.source.fetch_sub_subcategories_by_parent_id, subcategory.id
            ) or []
        children = self._normalize_children(
            run, raw_children, subcategory.id, subcategory.category_id
        )
        return subcategory.model_copy(update={"children": children})

    def _normalize_children(self, run: _Resolution, raw_children: List[RawNode],
                            parent_id: int, category_id: Optional[int]) -> List[CategoryNode]:
        nodes = [
            run.check_parent(
                normalize_node(
                    raw, CategoryLevel.SUB_SUBCATEGORY,
                    parent_id=parent_id, category_id=category_id, now=run.now
                ),
                parent_id,
            )
            for raw in raw_children
            if isinstance(raw, dict)
        ]
        run.check_malformed(nodes)
        return sort_siblings(filter_active(nodes))

    async def resolve_children_of(self, parent_id: int) -> List[CategoryNode]:
        """Fresh, normalized children of one subcategory"""
        run = _Resolution(self)
        raw_children = await run.fetch(
            f"children of subcategory {parent_id}",
            self.source.fetch_sub_subcategories_by_parent_id, parent_id
        )
        raw_children = raw_children or []
        category_id = None
        if any(isinstance(raw, dict) and raw.get("category_id") is None for raw in raw_children):
            category_id = await self._owning_category_id(run, parent_id)
        children = self._normalize_children(run, raw_children, parent_id, category_id)
        return run.finalize(children)

    async def _owning_category_id(self, run: _Resolution, subcategory_id: int) -> Optional[int]:
        raw = await run.fetch(
            f"subcategory {subcategory_id}", self.source.fetch_node_by_id,
            CategoryLevel.SUBCATEGORY, subcategory_id
        )
        if not raw:
            return None
        parent = normalize_node(raw, CategoryLevel.SUBCATEGORY, now=run.now)
        return parent.category_id if parent.id == subcategory_id else None

    async def resolve_by_slug(self, slug: str, level: CategoryLevel = CategoryLevel.CATEGORY,
                              parent_id: Optional[int] = None) -> Optional[CategoryNode]:
        """Find an active node by slug, case-insensitively.

        The slug endpoint is asked first. If it fails or has no match, the
        sibling list (top-level categories, or the hinted parent's children)
        is scanned and the first match by source order wins. A parent hint
        that disagrees with the node's own parent is logged, not enforced.
        """
        level = CategoryLevel(level)
        if not normalize_slug(slug):
            return None
        run = _Resolution(self)

        candidate = None
        raw = await run.fetch(
            f"{level.value} by slug {slug!r}", self.source.fetch_node_by_slug, level, normalize_slug(slug)
        )
        if raw:
            node = normalize_node(raw, level, now=run.now)
            if node.is_lookupable and slugs_match(node.slug, slug):
                candidate = node
        if candidate is None:
            candidate = find_by_slug(await self._lookup_siblings(run, level, parent_id), slug)

        if candidate is None or not candidate.is_active:
            self.trace("No active %s with slug %r", level.value, slug)
            return None
        if parent_id is not None and candidate.expected_parent not in (None, parent_id):
            run.report(
                IssueKind.PARENT_MISMATCH, candidate.id,
                f"{level.value} {slug!r} belongs to {candidate.expected_parent}, "
                f"not the requested parent {parent_id}"
            )
        return candidate

    async def _lookup_siblings(self, run: _Resolution, level: CategoryLevel,
                               parent_id: Optional[int]) -> List[CategoryNode]:
        if level == CategoryLevel.CATEGORY:
            raws = await run.fetch(
                "top-level categories", self.source.fetch_top_level_categories, False, False
            )
        elif parent_id is None:
            return []
        elif level == CategoryLevel.SUBCATEGORY:
            raws = await run.fetch(
                f"subcategories of category {parent_id}",
                self.source.fetch_subcategories_by_category_id, parent_id
            )
        else:
            raws = await run.fetch(
                f"children of subcategory {parent_id}",
                self.source.fetch_sub_subcategories_by_parent_id, parent_id
            )

        category_id = parent_id if level == CategoryLevel.SUBCATEGORY else None
        child_parent = parent_id if level == CategoryLevel.SUB_SUBCATEGORY else None
        return [
            normalize_node(raw, level, parent_id=child_parent, category_id=category_id, now=run.now)
            for raw in raws or []
        ]

    async def resolve_by_id(self, node_id: int,
                            level: CategoryLevel = CategoryLevel.CATEGORY) -> Optional[CategoryNode]:
        level = CategoryLevel(level)
        run = _Resolution(self)
        raw = await run.fetch(
            f"{level.value} {node_id}", self.source.fetch_node_by_id, level, node_id
        )
        if not raw:
            return None
        node = normalize_node(raw, level, now=run.now)
        if node.id != node_id or not node.is_active:
            self.trace("Discarding %s %s (id=%s, active=%s)", level.value, node_id, node.id, node.is_active)
            return None
        return node
