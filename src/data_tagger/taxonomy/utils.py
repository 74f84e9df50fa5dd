"""
Tag Utilities

Helper functions for inspecting and displaying tag sets.
"""

from typing import Dict, List

from .schemas import Tag
from .tags import flatten_tags

_LEVEL_LABELS = {1: "TAG", 2: "SUBTAG", 3: "DETAIL"}


def print_tag_hierarchy(tags: List[Tag], indent: int = 0) -> None:
    """
    Print the tag hierarchy in a readable format.

    Args:
        tags: Tags at the current level
        indent: Current indentation level (used recursively)

    Example output:
        [TAG] Service
          [SUBTAG] Speed (2 examples)
          [SUBTAG] Friendliness
        [TAG] Shipping
    """
    prefix = "  " * indent
    label = _LEVEL_LABELS.get(indent + 1, f"LEVEL-{indent + 1}")

    for tag in tags:
        suffix = f" ({len(tag.examples)} examples)" if tag.examples else ""
        print(f"{prefix}[{label}] {tag.name or '(unnamed)'}{suffix}")
        if tag.children:
            print_tag_hierarchy(tag.children, indent + 1)


def get_tag_stats(tags: List[Tag]) -> Dict[str, int]:
    """
    Get statistics about the tag set.

    Args:
        tags: Root tags

    Returns:
        Dict with counts: top_level, nested, total, with_description,
        with_examples, examples, max_depth
    """
    flat = flatten_tags(tags)
    top_level = sum(1 for t in flat if t.level == 1)

    return {
        "top_level": top_level,
        "nested": len(flat) - top_level,
        "total": len(flat),
        "with_description": sum(1 for t in flat if t.description),
        "with_examples": sum(1 for t in flat if t.examples),
        "examples": sum(len(t.examples) for t in flat),
        "max_depth": max((t.level for t in flat), default=0),
    }
