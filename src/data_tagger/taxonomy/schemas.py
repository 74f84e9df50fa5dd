"""
Tag Schemas

Pydantic models for tag definitions:
    - Tag: A classification label as edited by the user (nested up to 3 levels)
    - FlatTag: A tag projected into prompt-ready form with its resolved path
"""

import uuid
from typing import List, Optional

from pydantic import BaseModel, Field

MAX_TAG_LEVEL = 3
"""Deepest allowed nesting level (root tags are level 1)."""


def generate_tag_id() -> str:
    """Return a fresh opaque tag id."""
    return uuid.uuid4().hex


# =============================================================================
# Tag
# =============================================================================


class Tag(BaseModel):
    """
    A named classification label.

    Attributes:
        id: Opaque stable identifier, never reused
        name: Label used both in the prompt and as an output column key
        description: Free text explaining when the tag applies
        examples: Sample comments that should receive this tag
        children: Nested sub-tags
    """

    id: str = Field(default_factory=generate_tag_id, description="Opaque stable identifier")
    name: str = Field(default="", description="Tag name (prompt token and column key)")
    description: str = Field(default="", description="When this tag applies")
    examples: List[str] = Field(default_factory=list, description="Example comments")
    children: List["Tag"] = Field(default_factory=list, description="Nested sub-tags")


# =============================================================================
# Flattened Tag
# =============================================================================


class FlatTag(BaseModel):
    """
    A tag in pre-order position with its ancestry resolved.

    Attributes:
        id: The tag's own id
        level: Depth in the hierarchy (root tags are 1)
        name: Trimmed tag name
        description: Tag description (may be empty)
        examples: Tag examples
        children: Direct children of the tag
        path: Ancestor names followed by this tag's name
        id_path: Ancestor ids followed by this tag's id
        path_label: Path joined with " > "
        ancestors: Labels of each ancestor prefix ("A", "A > B", ...)
        parent_id: Id of the direct parent, None for root tags
    """

    id: str
    level: int
    name: str
    description: str = ""
    examples: List[str] = Field(default_factory=list)
    children: List[Tag] = Field(default_factory=list)
    path: List[str]
    id_path: List[str]
    path_label: str
    ancestors: List[str] = Field(default_factory=list)
    parent_id: Optional[str] = None

    @property
    def root_name(self) -> str:
        """Name of the top-level tag this entry belongs to."""
        return self.path[0]

    @property
    def is_top_level(self) -> bool:
        return self.level == 1
