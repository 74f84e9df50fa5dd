"""
Classification Prompt Builder

Assembles the per-row classification prompt from flattened tags.

This is pure Python templating - NO LLM required! The same prompt is sent
to every provider.

Usage:
    from data_tagger.prompts import build_prompt, build_prompt_function
    from data_tagger.taxonomy import flatten_tags, load_tags

    flat = flatten_tags(load_tags("tags.json"))

    # One-off
    prompt = build_prompt("Shipping was slow.", flat)

    # Or pre-render tag definitions once and reuse for every row
    classify_prompt = build_prompt_function(flat)
    prompt = classify_prompt("Shipping was slow.")
"""

from typing import Callable, List, Optional

from ..taxonomy.schemas import FlatTag
from .base import format_rules_section, format_tag_definitions

# =============================================================================
# Instructions
# =============================================================================

DEFAULT_RULES = [
    "Read the comment carefully",
    "Compare it against each tag's description and examples",
    "A comment can have MULTIPLE tags, ONE tag, or NO tags",
    "Return ONLY the tag names that apply, separated by commas",
    "Tag names must match EXACTLY as listed above (capitalization does not matter)",
    'If no tags apply, return an empty response or the single word "None"',
]


# =============================================================================
# Prompt Template
# =============================================================================

CLASSIFY_TEMPLATE = """You are a survey response classifier. Your task is to analyze a comment and determine which tags apply.

AVAILABLE TAGS:
{tags}

IMPORTANT INSTRUCTIONS:
{rules}

COMMENT TO ANALYZE:
"{comment}"

YOUR RESPONSE (comma-separated tag names only):"""


# =============================================================================
# Builders
# =============================================================================


def build_prompt_function(
    tags: List[FlatTag],
    rules: Optional[List[str]] = None,
) -> Callable[[str], str]:
    """
    Build a function that renders the prompt for a single comment.

    Tag definitions and rules are formatted once; the returned function only
    substitutes the comment.

    Args:
        tags: Flattened tags in prompt order
        rules: Custom instruction bullets (default: DEFAULT_RULES)

    Returns:
        Function (comment: str) -> str
    """
    tags_section = format_tag_definitions(tags)
    rules_section = format_rules_section(rules or DEFAULT_RULES)

    def classify_prompt(comment: str) -> str:
        return CLASSIFY_TEMPLATE.format(
            tags=tags_section,
            rules=rules_section,
            comment=comment,
        ).strip()

    return classify_prompt


def build_prompt(comment: str, tags: List[FlatTag], rules: Optional[List[str]] = None) -> str:
    """
    Render the classification prompt for one comment.

    Args:
        comment: The text to classify (callers skip blank comments)
        tags: Flattened tags in prompt order
        rules: Custom instruction bullets (default: DEFAULT_RULES)

    Returns:
        Prompt string
    """
    return build_prompt_function(tags, rules)(comment)
