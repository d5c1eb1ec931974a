# main.py
import argparse
import asyncio
import json
import logging
from eyewear_catalog.config import setup_logging
from eyewear_catalog.models.category import CategoryLevel
from eyewear_catalog.services import CategoryHierarchyResolver, CategorySourceClient
from eyewear_catalog.utils.formatters import format_datetime, format_node, format_nodes, format_tree

def build_parser() -> argparse.ArgumentParser:
    output = argparse.ArgumentParser(add_help=False)
    output.add_argument("--json", action="store_true", help="print JSON instead of text")

    parser = argparse.ArgumentParser(description="Resolve the eyewear catalog category tree")
    commands = parser.add_subparsers(dest="command", required=True)

    tree = commands.add_parser("tree", parents=[output], help="resolve the full category tree")
    tree.add_argument("--with-products", action="store_true")

    levels = [level.value for level in CategoryLevel]
    slug = commands.add_parser("slug", parents=[output], help="look a node up by slug")
    slug.add_argument("slug")
    slug.add_argument("--level", choices=levels, default=CategoryLevel.CATEGORY.value)
    slug.add_argument("--parent-id", type=int)

    by_id = commands.add_parser("id", parents=[output], help="look a node up by id")
    by_id.add_argument("node_id", type=int)
    by_id.add_argument("--level", choices=levels, default=CategoryLevel.CATEGORY.value)

    children = commands.add_parser("children", parents=[output], help="list the children of a subcategory")
    children.add_argument("parent_id", type=int)
    return parser

async def run_command(args, resolver: CategoryHierarchyResolver) -> str:
    """Execute one parsed command and return its printable output"""
    if args.command == "tree":
        tree = await resolver.resolve_tree(include_products=args.with_products)
        return json.dumps(tree.to_dict(), indent=2) if args.json else format_tree(tree)

    if args.command == "children":
        nodes = await resolver.resolve_children_of(args.parent_id)
        if args.json:
            return json.dumps([node.model_dump(mode="json") for node in nodes], indent=2)
        return "\n".join(format_nodes(nodes)) if nodes else "No children found."

    if args.command == "slug":
        node = await resolver.resolve_by_slug(args.slug, CategoryLevel(args.level), args.parent_id)
    else:
        node = await resolver.resolve_by_id(args.node_id, CategoryLevel(args.level))
    if node is None:
        return "Not found."
    if args.json:
        return json.dumps(node.model_dump(mode="json"), indent=2)
    return f"{format_node(node)}\nUpdated: {format_datetime(node.updated_at)}"

async def main(argv=None):
    args = build_parser().parse_args(argv)

    # Setup logging
    setup_logging()
    logger = logging.getLogger(__name__)

    try:
        async with CategorySourceClient() as client:
            resolver = CategoryHierarchyResolver(client)
            print(await run_command(args, resolver))
    except Exception as e:
        logger.error(f"Error running {args.command}: {e}", exc_info=True)
        raise

if __name__ == "__main__":
    asyncio.run(main())
