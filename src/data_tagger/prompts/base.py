"""
Prompt Building Utilities

Shared formatting functions used by the prompt builder.
"""

from typing import List

from ..taxonomy.schemas import FlatTag

NO_DESCRIPTION = "No description provided"


def format_tag_definition(index: int, tag: FlatTag) -> str:
    """
    Format one numbered tag definition.

    Output format:
        2. "Speed"
           Parent: Service
           Description: How quickly the team responded
           Examples: "Took forever", "Answered in minutes"

    The Parent line appears only for nested tags; the Examples line only
    when the tag has at least one non-blank example.

    Args:
        index: 1-based position in the list
        tag: FlatTag to describe

    Returns:
        Formatted definition block
    """
    lines = [f'{index}. "{tag.name}"']

    if tag.level > 1:
        lines.append(f"   Parent: {' > '.join(tag.path[:-1])}")

    lines.append(f"   Description: {tag.description.strip() or NO_DESCRIPTION}")

    examples = [ex.strip() for ex in tag.examples if ex and ex.strip()]
    if examples:
        lines.append("   Examples: " + ", ".join(f'"{ex}"' for ex in examples))

    return "\n".join(lines)


def format_tag_definitions(tags: List[FlatTag]) -> str:
    """
    Format all tag definitions, separated by blank lines.

    Args:
        tags: Flattened tags in prompt order

    Returns:
        Formatted definitions section
    """
    return "\n\n".join(format_tag_definition(i, tag) for i, tag in enumerate(tags, 1))


def format_rules_section(rules: List[str]) -> str:
    """
    Format instructions as a bulleted list.

    Args:
        rules: List of rule strings

    Returns:
        Formatted list, one "- rule" per line
    """
    return "\n".join(f"- {rule}" for rule in rules)


def get_tag_names_list(tags: List[FlatTag]) -> str:
    """Comma-separated list of quoted tag names."""
    return ", ".join(f'"{tag.name}"' for tag in tags)
