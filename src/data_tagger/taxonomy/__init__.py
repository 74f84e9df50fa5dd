"""
Taxonomy Module

Tools for working with tag definitions:
    - Tag / FlatTag schemas
    - Normalizing, cleaning and flattening nested tags (max 3 levels)
    - Loading and saving tag files, importing tags from CSV

Submodules:
    - schemas: Tag and FlatTag models
    - tags: normalize / clean / flatten / lookup
    - tag_files: JSON, YAML and CSV tag files
    - utils: Inspection and display helpers

Usage:
    from data_tagger.taxonomy import load_tags, flatten_tags

    tags = load_tags("tags.json")
    for flat in flatten_tags(tags):
        print(flat.path_label)
"""

from .schemas import MAX_TAG_LEVEL, FlatTag, Tag, generate_tag_id
from .tag_files import (
    TAG_CSV_TEMPLATE,
    load_tags,
    save_tags,
    tags_from_csv,
    tags_from_rows,
)
from .tags import (
    clean_tags,
    create_empty_tag,
    find_duplicate_names,
    find_tag_by_id_path,
    flatten_tags,
    get_top_level_names,
    normalize_tags,
)
from .utils import get_tag_stats, print_tag_hierarchy

__all__ = [
    # Schemas
    "Tag",
    "FlatTag",
    "MAX_TAG_LEVEL",
    "generate_tag_id",
    # Tag operations
    "normalize_tags",
    "clean_tags",
    "flatten_tags",
    "create_empty_tag",
    "find_tag_by_id_path",
    "find_duplicate_names",
    "get_top_level_names",
    # Tag files
    "load_tags",
    "save_tags",
    "tags_from_csv",
    "tags_from_rows",
    "TAG_CSV_TEMPLATE",
    # Utilities
    "get_tag_stats",
    "print_tag_hierarchy",
]
