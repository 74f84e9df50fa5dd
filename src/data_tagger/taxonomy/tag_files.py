"""
Tag Files

Reading and writing tag definitions:
    - JSON / YAML tag files (nested structure, as produced by save_tags)
    - Tag CSV import (Tag, Description, Example columns; one example per row)

Usage:
    from data_tagger.taxonomy import load_tags, save_tags, tags_from_csv

    tags = tags_from_csv("tags.csv")
    save_tags(tags, "tags.json")
    tags = load_tags("tags.json")
"""

import json
from collections import OrderedDict
from pathlib import Path
from typing import IO, Any, Dict, Iterable, List, Union

import pandas as pd
import yaml

from ..errors import TagImportError
from .schemas import Tag
from .tags import clean_tags, normalize_tags

TAG_CSV_COLUMNS = ("tag", "description", "example")

TAG_CSV_TEMPLATE = (
    "Tag,Description,Example\n"
    'Positive Feedback,Use when the response is positive,"I love how easy this tool is to use."\n'
    "Negative Feedback,Use when the response expresses dissatisfaction,"
    '"Support took too long to respond."\n'
    'Feature Request,Use when someone suggests new functionality,"Can you add dark mode?"'
)


# =============================================================================
# JSON / YAML
# =============================================================================


def load_tags(path: Union[str, Path]) -> List[Tag]:
    """
    Load tags from a JSON or YAML file, then normalize and clean them.

    The file may hold either a list of tags or a mapping with a "tags" key.
    A .csv path is routed to tags_from_csv().

    Args:
        path: Path to .json, .yaml/.yml or .csv file

    Returns:
        Cleaned list of Tag objects
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".csv":
        return tags_from_csv(path)

    text = path.read_text(encoding="utf-8")
    if suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)

    if isinstance(data, dict):
        data = data.get("tags", [])

    return clean_tags(normalize_tags(data))


def save_tags(tags: List[Tag], path: Union[str, Path]) -> None:
    """
    Save tags to JSON or YAML (chosen by file extension).

    Args:
        tags: Tags to save
        path: Output path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [tag.model_dump() for tag in tags]

    if path.suffix.lower() in (".yaml", ".yml"):
        path.write_text(
            yaml.safe_dump({"tags": payload}, sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )
    else:
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


# =============================================================================
# CSV Import
# =============================================================================


def _cell(row: Dict[str, Any], column: str) -> str:
    value = row.get(column)
    if value is None:
        return ""
    return str(value).strip()


def tags_from_rows(rows: Iterable[Dict[str, Any]]) -> List[Tag]:
    """
    Group Tag/Description/Example rows into tags.

    Rows sharing a tag name are merged in first-seen order: the first
    non-empty description wins and every non-empty example is appended.
    Rows without a tag name are skipped. Column lookup is case-insensitive.

    Args:
        rows: Mappings with tag/description/example keys (any casing)

    Returns:
        List of Tag objects (without children)
    """
    grouped: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()

    for raw in rows:
        row = {str(key).strip().lower(): value for key, value in raw.items()}
        name = _cell(row, "tag")
        if not name:
            continue

        description = _cell(row, "description")
        example = _cell(row, "example")

        entry = grouped.setdefault(name, {"description": "", "examples": []})
        if description and not entry["description"]:
            entry["description"] = description
        if example:
            entry["examples"].append(example)

    return [
        Tag(name=name, description=entry["description"], examples=entry["examples"])
        for name, entry in grouped.items()
    ]


def tags_from_csv(source: Union[str, Path, IO[str]]) -> List[Tag]:
    """
    Import tags from a 3-column CSV (Tag, Description, Example).

    Args:
        source: Path or readable text buffer

    Returns:
        List of Tag objects

    Raises:
        TagImportError: If the CSV cannot be parsed, lacks required columns,
            or yields no tags
    """
    try:
        df = pd.read_csv(source, dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise TagImportError(
            "There was a problem parsing the CSV. Please check the file and try again."
        ) from e

    headers = {str(column).strip().lower() for column in df.columns}
    missing = [column for column in TAG_CSV_COLUMNS if column not in headers]
    if missing:
        raise TagImportError("Your CSV must include columns named Tag, Description, and Example.")

    tags = tags_from_rows(df.to_dict(orient="records"))
    if not tags:
        raise TagImportError(
            "No valid tags were found in the CSV. Please ensure each row has a Tag value."
        )
    return tags
