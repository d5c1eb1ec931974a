# eyewear_catalog/models/category.py
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple
from pydantic import BaseModel
from .base import TimeStampedModel
from ..utils.lookup import find_by_id, find_by_slug, iter_tree


class CategoryLevel(str, Enum):
    """The three fixed levels of the classification tree"""
    CATEGORY = "category"
    SUBCATEGORY = "subcategory"
    SUB_SUBCATEGORY = "sub_subcategory"

    @property
    def depth(self) -> int:
        return list(CategoryLevel).index(self)

    @property
    def child(self) -> Optional["CategoryLevel"]:
        levels = list(CategoryLevel)
        index = levels.index(self)
        return levels[index + 1] if index + 1 < len(levels) else None


class IssueKind(str, Enum):
    """Data-quality conditions surfaced while resolving"""
    DUPLICATE_SLUG = "duplicate_slug"
    DUPLICATE_NODE = "duplicate_node"
    PARENT_MISMATCH = "parent_mismatch"
    MALFORMED_NODE = "malformed_node"


class CategoryProduct(BaseModel):
    """Product summary embedded in a category when products are requested"""
    id: int
    name: str
    slug: str
    price: Decimal = Decimal(0)
    images: List[str] = []


class CategoryNode(TimeStampedModel):
    """Normalized node at any of the three levels"""
    id: int
    name: str
    slug: str
    level: CategoryLevel
    description: Optional[str] = None
    image: Optional[str] = None
    is_active: bool = True
    parent_id: Optional[int] = None
    category_id: Optional[int] = None
    sort_order: int = 0

    # Set when id, name or slug were missing from the source
    malformed: bool = False

    children: List['CategoryNode'] = []
    products: List[CategoryProduct] = []

    @property
    def is_lookupable(self) -> bool:
        return not self.malformed and bool(self.slug)

    @property
    def expected_parent(self) -> Optional[int]:
        """Id of the node this one hangs under, by level"""
        if self.level == CategoryLevel.SUBCATEGORY:
            return self.category_id
        if self.level == CategoryLevel.SUB_SUBCATEGORY:
            return self.parent_id
        return None


class DataQualityIssue(BaseModel):
    """Non-fatal inconsistency found in source data"""
    kind: IssueKind
    node_id: Optional[int] = None
    message: str


class CategoryTree(BaseModel):
    """Ordered categories, each carrying its sorted subtree"""
    categories: List[CategoryNode] = []
    issues: List[DataQualityIssue] = []

    def __iter__(self) -> Iterator[CategoryNode]:
        return iter(self.categories)

    def __len__(self) -> int:
        return len(self.categories)

    def __getitem__(self, index: int) -> CategoryNode:
        return self.categories[index]

    def iter_nodes(self) -> Iterator[Tuple[int, CategoryNode]]:
        """Depth-first walk yielding (depth, node)"""
        return iter_tree(self.categories)

    def find_by_slug(self, slug: str, level: Optional[CategoryLevel] = None) -> Optional[CategoryNode]:
        nodes = [node for _, node in self.iter_nodes() if level is None or node.level == level]
        return find_by_slug(nodes, slug)

    def find_by_id(self, node_id: int) -> Optional[CategoryNode]:
        return find_by_id([node for _, node in self.iter_nodes()], node_id)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


CategoryNode.model_rebuild()
