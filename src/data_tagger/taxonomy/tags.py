"""
Tag Model Operations

Normalizes, cleans and flattens tag definitions.

None of these functions raise: tag editing happens mid-input, so partial or
malformed data is expected and the best-effort result is always returned.

Usage:
    from data_tagger.taxonomy import normalize_tags, clean_tags, flatten_tags

    tags = clean_tags(normalize_tags(raw_json))
    flat = flatten_tags(tags)
    names = [t.name for t in flat]
"""

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from .schemas import MAX_TAG_LEVEL, FlatTag, Tag, generate_tag_id


def _ensure_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _as_mapping(node: Any) -> Optional[Dict[str, Any]]:
    if isinstance(node, Tag):
        return node.model_dump()
    if isinstance(node, dict):
        return node
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


# =============================================================================
# Normalization
# =============================================================================


def _normalize_node(node: Any, level: int = 1) -> Optional[Tag]:
    data = _as_mapping(node)
    if data is None:
        return None

    children: List[Tag] = []
    if level < MAX_TAG_LEVEL:
        for child in _ensure_list(data.get("children")):
            normalized = _normalize_node(child, level + 1)
            if normalized is not None:
                children.append(normalized)

    return Tag(
        id=_text(data.get("id")) or generate_tag_id(),
        name=_text(data.get("name")),
        description=_text(data.get("description")),
        examples=[_text(example) for example in _ensure_list(data.get("examples"))],
        children=children,
    )


def normalize_tags(raw: Any) -> List[Tag]:
    """
    Coerce raw (possibly legacy or malformed) tag data into Tag objects.

    - Missing ids are assigned
    - Nesting deeper than MAX_TAG_LEVEL is dropped
    - Non-string examples become strings (None becomes "")
    - Non-object nodes are dropped
    - Legacy flat lists (first entry has no "children" key) are read flat

    Args:
        raw: List of dicts / Tag objects, or anything else

    Returns:
        List of Tag objects (empty when raw is not a list)
    """
    if not isinstance(raw, list):
        return []

    first = _as_mapping(raw[0]) if raw else None
    if first is not None and "children" not in first:
        # Legacy flat format: ignore any stray nesting
        flattened = []
        for node in raw:
            data = _as_mapping(node)
            if data is None:
                continue
            flattened.append({**data, "children": []})
        raw = flattened

    tags = []
    for node in raw:
        normalized = _normalize_node(node, 1)
        if normalized is not None:
            tags.append(normalized)
    return tags


def clean_tags(tags: Iterable[Any], level: int = 1) -> List[Tag]:
    """
    Post-edit cleanup pass.

    Trims names and descriptions, drops tags whose trimmed name is empty,
    drops blank examples, and recurses into children with the same rules.
    Children past MAX_TAG_LEVEL are dropped.

    Args:
        tags: Tags (or tag dicts) to clean
        level: Level of the given tags (used during recursion)

    Returns:
        Cleaned list; every tag has a non-empty trimmed name
    """
    if not isinstance(tags, (list, tuple)):
        return []

    cleaned = []
    for node in tags:
        data = _as_mapping(node)
        if data is None:
            continue

        name = _text(data.get("name")).strip()
        if not name:
            continue

        raw_examples = _ensure_list(data.get("examples"))
        examples = [_text(ex).strip() for ex in raw_examples if ex is not None]
        children: List[Tag] = []
        if level < MAX_TAG_LEVEL:
            children = clean_tags(_ensure_list(data.get("children")), level + 1)

        cleaned.append(
            Tag(
                id=_text(data.get("id")) or generate_tag_id(),
                name=name,
                description=_text(data.get("description")).strip(),
                examples=[ex for ex in examples if ex],
                children=children,
            )
        )
    return cleaned


def create_empty_tag() -> Tag:
    """Return a blank tag with a fresh id, ready for editing."""
    return Tag()


# =============================================================================
# Flattening
# =============================================================================


def flatten_tags(
    tags: Iterable[Tag],
    parent_path: Optional[List[str]] = None,
    parent_id_path: Optional[List[str]] = None,
) -> List[FlatTag]:
    """
    Flatten a tag tree depth-first (pre-order).

    Every tag with a non-empty name is emitted, immediately followed by its
    descendants. Tags with blank names are skipped along with their subtree.

    Args:
        tags: Root tags (or children during recursion)
        parent_path: Ancestor names (used during recursion)
        parent_id_path: Ancestor ids (used during recursion)

    Returns:
        List of FlatTag in pre-order
    """
    if not isinstance(tags, (list, tuple)):
        return []

    parent_path = parent_path or []
    parent_id_path = parent_id_path or []
    nodes: List[FlatTag] = []

    for tag in tags:
        name = (tag.name or "").strip()
        if not name:
            continue

        path = [*parent_path, name]
        id_path = [*parent_id_path, tag.id]

        nodes.append(
            FlatTag(
                id=tag.id,
                level=len(path),
                name=name,
                description=tag.description or "",
                examples=list(tag.examples),
                children=list(tag.children),
                path=path,
                id_path=id_path,
                path_label=" > ".join(path),
                ancestors=[" > ".join(parent_path[: i + 1]) for i in range(len(parent_path))],
                parent_id=parent_id_path[-1] if parent_id_path else None,
            )
        )

        if tag.children:
            nodes.extend(flatten_tags(tag.children, path, id_path))

    return nodes


# =============================================================================
# Lookup
# =============================================================================


def find_tag_by_id_path(tags: List[Tag], id_path: List[str]) -> Optional[Tag]:
    """
    Resolve a nested tag from its id-path.

    Returns:
        The tag at the end of the path, or None if any id is missing
    """
    if not isinstance(tags, list) or not isinstance(id_path, list) or not id_path:
        return None

    current_list = tags
    current: Optional[Tag] = None
    for tag_id in id_path:
        current = next((tag for tag in current_list if tag.id == tag_id), None)
        if current is None:
            return None
        current_list = current.children
    return current


def find_duplicate_names(flat_tags: List[FlatTag]) -> List[str]:
    """
    Find names that occur more than once across the flattened set.

    Comparison is case-insensitive; each duplicate is reported once using the
    casing of its first occurrence.
    """
    seen: "OrderedDict[str, str]" = OrderedDict()
    duplicates: List[str] = []
    for flat in flat_tags:
        key = flat.name.lower()
        if key in seen:
            if seen[key] not in duplicates:
                duplicates.append(seen[key])
        else:
            seen[key] = flat.name
    return duplicates


def get_top_level_names(tags: List[Tag]) -> List[str]:
    """Names of root tags after trimming, blanks skipped."""
    return [tag.name.strip() for tag in tags if (tag.name or "").strip()]
