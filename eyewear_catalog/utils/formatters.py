# eyewear_catalog/utils/formatters.py
from datetime import datetime
from typing import Iterable, List
import pytz
from ..config import Config
from ..models.category import CategoryNode, CategoryTree

def format_datetime(dt: datetime) -> str:
    """Render a timestamp in the configured timezone"""
    tz = pytz.timezone(Config.TIMEZONE)
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S")

def format_node(node: CategoryNode) -> str:
    """One-line summary of a node"""
    line = f"{node.name or '<unnamed>'} ({node.slug or '-'}) #{node.id} order={node.sort_order}"
    if node.malformed:
        line += " [malformed]"
    if node.products:
        line += f" products={len(node.products)}"
    return line

def format_nodes(nodes: Iterable[CategoryNode], depth: int = 0) -> List[str]:
    lines = []
    for node in nodes:
        lines.append("  " * depth + "- " + format_node(node))
        lines.extend(format_nodes(node.children, depth + 1))
    return lines

def format_tree(tree: CategoryTree) -> str:
    """Indented text rendering of a resolved tree, issues last"""
    if not len(tree):
        return "No categories available."
    lines = format_nodes(tree)
    if tree.issues:
        lines.append("")
        lines.append(f"Data quality issues ({len(tree.issues)}):")
        lines.extend(f"  * [{issue.kind.value}] {issue.message}" for issue in tree.issues)
    return "\n".join(lines)
