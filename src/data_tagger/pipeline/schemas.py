"""
Pipeline Schemas

    - ProgressEvent: Published after each row and on every state change
    - ClassificationResult: Final outcome of a run, handed back to the caller
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .control import JobState

AI_TAGS_COLUMN = "AI_Tags"
AI_ERROR_COLUMN = "AI_Error"

Row = Dict[str, Any]


class ProgressEvent(BaseModel):
    """
    Progress snapshot for UI rendering.

    Attributes:
        rows_done: Rows appended to the output so far
        total_rows: Rows in the dataset
        status_text: Human-readable status line
        state: Job state at the time of the event
    """

    rows_done: int
    total_rows: int
    status_text: str
    state: JobState

    @property
    def fraction(self) -> float:
        """Completed share of the dataset, 0.0 - 1.0."""
        if self.total_rows <= 0:
            return 1.0
        return self.rows_done / self.total_rows


class ClassificationResult(BaseModel):
    """
    Final outcome of a classification run.

    Attributes:
        rows: Annotated rows in input order
        state: Terminal state (COMPLETED, STOPPED or FATAL)
        total_rows: Rows in the input dataset
        rows_processed: Rows completed by the loop, row-level errors included
            (error rows synthesized after a fatal error are not counted)
        message: Final status message for the user
        error: Error text for FATAL runs
    """

    rows: List[Row] = Field(default_factory=list)
    state: JobState
    total_rows: int
    rows_processed: int
    message: str
    error: Optional[str] = None

    @property
    def partial(self) -> bool:
        """True when the output does not cover every input row."""
        return len(self.rows) < self.total_rows

    @property
    def error_count(self) -> int:
        return sum(1 for row in self.rows if row.get(AI_ERROR_COLUMN))
