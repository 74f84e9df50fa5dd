"""
Prompts Module

Pure Python templating for the classification prompt.

Submodules:
    - base: Shared formatting utilities
    - classify: The classification template and builders
"""

from .base import (
    NO_DESCRIPTION,
    format_rules_section,
    format_tag_definition,
    format_tag_definitions,
    get_tag_names_list,
)
from .classify import CLASSIFY_TEMPLATE, DEFAULT_RULES, build_prompt, build_prompt_function

__all__ = [
    "build_prompt",
    "build_prompt_function",
    "CLASSIFY_TEMPLATE",
    "DEFAULT_RULES",
    "NO_DESCRIPTION",
    "format_tag_definition",
    "format_tag_definitions",
    "format_rules_section",
    "get_tag_names_list",
]
