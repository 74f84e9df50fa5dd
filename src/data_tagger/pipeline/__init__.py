"""
Pipeline Module

Row-by-row classification:
    - matcher: Model reply -> known tag names
    - control: Job states and the pause / resume / stop token
    - assembler: Annotated output rows
    - engine: ClassificationJob state machine and convenience functions

Usage:
    from data_tagger.pipeline import create_job, print_results_summary

    job = create_job(rows, "comment", tags, config=config)
    result = job.run()
    print_results_summary(result)
"""

from .assembler import (
    QUOTA_ERROR_MESSAGE,
    TAG_SEPARATOR,
    assemble_error_row,
    assemble_row,
    build_root_lookup,
)
from .control import JobState, RunControl
from .engine import (
    ClassificationJob,
    create_job,
    get_classification_stats,
    print_results_summary,
)
from .matcher import match_tags, split_response
from .schemas import AI_ERROR_COLUMN, AI_TAGS_COLUMN, ClassificationResult, ProgressEvent

__all__ = [
    # Engine
    "ClassificationJob",
    "create_job",
    "get_classification_stats",
    "print_results_summary",
    # Control
    "JobState",
    "RunControl",
    # Schemas
    "ClassificationResult",
    "ProgressEvent",
    "AI_TAGS_COLUMN",
    "AI_ERROR_COLUMN",
    # Matching and assembly
    "match_tags",
    "split_response",
    "assemble_row",
    "assemble_error_row",
    "build_root_lookup",
    "TAG_SEPARATOR",
    "QUOTA_ERROR_MESSAGE",
]
