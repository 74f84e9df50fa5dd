"""
Result Assembler

Builds the annotated output row for one input row: the original fields,
AI_Tags, one 0/1 column per top-level tag, and AI_Error when the row failed.
"""

from typing import Dict, List, Mapping, Optional, Sequence

from ..taxonomy.schemas import FlatTag
from .schemas import AI_ERROR_COLUMN, AI_TAGS_COLUMN, Row

TAG_SEPARATOR = ", "

QUOTA_ERROR_MESSAGE = "Processing stopped due to API quota/rate limit"


def build_root_lookup(flat_tags: Sequence[FlatTag]) -> Dict[str, str]:
    """Map every flattened tag name to the name of its top-level tag."""
    return {flat.name: flat.root_name for flat in flat_tags}


def assemble_row(
    row: Mapping[str, object],
    matched: Sequence[str],
    top_level_names: Sequence[str],
    root_lookup: Mapping[str, str],
    error: Optional[str] = None,
) -> Row:
    """
    Merge classification results onto a copy of the input row.

    A top-level column is 1 when that tag or any of its descendants was
    matched.

    Args:
        row: Original input row (not modified)
        matched: Matched tag names (canonical casing, any level)
        top_level_names: Names that receive a 0/1 column
        root_lookup: Tag name -> top-level tag name
        error: Error message; when set, AI_Error is added

    Returns:
        New row dict
    """
    hit_roots = {root_lookup.get(name, name) for name in matched}

    new_row: Row = dict(row)
    new_row[AI_TAGS_COLUMN] = TAG_SEPARATOR.join(matched)
    for name in top_level_names:
        new_row[name] = 1 if name in hit_roots else 0
    if error is not None:
        new_row[AI_ERROR_COLUMN] = error
    return new_row


def assemble_error_row(
    row: Mapping[str, object],
    top_level_names: Sequence[str],
    error: str,
) -> Row:
    """Row with empty AI_Tags, all-zero tag columns and AI_Error set."""
    return assemble_row(row, [], top_level_names, {}, error=error)


def assemble_remaining_error_rows(
    rows: Sequence[Mapping[str, object]],
    start: int,
    top_level_names: Sequence[str],
    error: str = QUOTA_ERROR_MESSAGE,
) -> List[Row]:
    """Error rows for rows[start:], used when a run ends on a fatal error."""
    return [assemble_error_row(row, top_level_names, error) for row in rows[start:]]
