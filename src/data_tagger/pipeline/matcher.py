"""
Response Tag Matcher

Turns free-text model output into a validated list of known tag names.
Never raises: a malformed reply simply yields fewer matches.
"""

import logging
from typing import Dict, List, Sequence

logger = logging.getLogger(__name__)

NONE_TOKEN = "none"
QUOTE_CHARS = "\"'`“”‘’"


def split_response(raw_text: str) -> List[str]:
    """
    Split a comma-separated reply into cleaned tokens.

    Each segment is trimmed and stripped of wrapping quotes; empty segments
    and the literal "None" (any casing) are discarded.
    """
    if not raw_text:
        return []

    tokens = []
    for segment in str(raw_text).split(","):
        token = segment.strip().strip(QUOTE_CHARS).strip()
        if token and token.lower() != NONE_TOKEN:
            tokens.append(token)
    return tokens


def match_tags(raw_text: str, known_tag_names: Sequence[str]) -> List[str]:
    """
    Match a model reply against the known tag names.

    Matching is case-insensitive and exact; matches are returned with the
    canonical (stored) casing, de-duplicated in first-seen order. Tokens
    that match nothing are dropped and logged at INFO.

    Example:
        >>> match_tags('Positive, none, Shipping', ['Positive', 'Shipping', 'Negative'])
        ['Positive', 'Shipping']

    Args:
        raw_text: Completion text from the provider
        known_tag_names: Valid tag names

    Returns:
        Ordered subset of known_tag_names
    """
    lookup: Dict[str, str] = {}
    for name in known_tag_names:
        lookup.setdefault(name.lower(), name)

    matched: List[str] = []
    unmatched: List[str] = []
    for token in split_response(raw_text):
        canonical = lookup.get(token.lower())
        if canonical is None:
            unmatched.append(token)
        elif canonical not in matched:
            matched.append(canonical)

    if unmatched:
        logger.info("Ignoring tags not in tag list: %s", ", ".join(unmatched))

    return matched
