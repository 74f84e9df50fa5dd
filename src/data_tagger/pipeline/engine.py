"""
Classification Engine

Row-by-row tagging of a dataset against a tag set, one provider call per
non-blank row, strictly in input order.

The engine handles the full run:
    1. Skip blank comments (all-zero tags, no network call)
    2. Build the prompt and call the provider, retrying rate-limit failures
       with exponential backoff (1s, 2s, 4s by default)
    3. Match the reply against the known tag names and assemble the row
    4. Pause between rows; honor pause / resume / stop requests
    5. End as COMPLETED, STOPPED (rows done so far) or FATAL (rate limiting
       outlived the retry budget; remaining rows carry AI_Error)

Usage:
    from data_tagger.pipeline import create_job
    from data_tagger.config import load_config

    job = create_job(rows, "comment", tags, config=load_config("config.yaml"))

    # Blocking
    result = job.run()

    # Or in the background, with controls
    job.start()
    job.request_pause()
    job.request_resume()
    result = job.wait()

    df = results_to_dataframe(result.rows)
"""

import logging
import threading
from collections import Counter
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..config import RunSettings, TaggerConfig
from ..errors import ConfigurationError, FatalRunError, ProviderError
from ..prompts.classify import build_prompt_function
from ..providers.base import ClassificationProvider, get_registry
from ..taxonomy.schemas import FlatTag, Tag
from ..taxonomy.tags import clean_tags, find_duplicate_names, flatten_tags, normalize_tags
from .assembler import (
    TAG_SEPARATOR,
    assemble_error_row,
    assemble_remaining_error_rows,
    assemble_row,
    build_root_lookup,
)
from .control import JobState, RunControl
from .matcher import match_tags
from .schemas import AI_ERROR_COLUMN, AI_TAGS_COLUMN, ClassificationResult, ProgressEvent, Row

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]

STOPPED_BY_USER = "Processing stopped by user"
STOPPED_BY_API_ERROR = "Processing stopped due to API error"
COMPLETED = "Processing complete!"


class _StopRequested(Exception):
    """Raised internally when a stop arrives during retry backoff."""


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return str(value).strip() == ""


def _column_clashes(flat_tags: Sequence[FlatTag], rows: Sequence[Mapping[str, Any]]) -> List[str]:
    """Top-level tag names that would overwrite an existing output field."""
    taken = {AI_TAGS_COLUMN.lower(), AI_ERROR_COLUMN.lower()}
    for row in rows:
        taken.update(str(column).lower() for column in row.keys())
    return [flat.name for flat in flat_tags if flat.is_top_level and flat.name.lower() in taken]


class ClassificationJob:
    """
    One classification run over one dataset.

    A job runs exactly once. Control requests may come from any thread;
    the loop itself is the only writer of job state.

    Attributes:
        rows: Input rows (never modified)
        target_column: Column holding the text to classify
        tags: Cleaned root tags
        flat_tags: Pre-order flattened tags (all levels)
        known_tag_names: Names accepted from the model (all levels)
        top_level_names: Names that receive a 0/1 output column
        provider: Backend used for every row
        settings: Pacing and retry policy
        control: Pause / resume / stop token
        output: Annotated rows produced so far
        result: Final ClassificationResult once the run ends
    """

    def __init__(
        self,
        rows: Sequence[Mapping[str, Any]],
        target_column: str,
        tags: List[Tag],
        provider: ClassificationProvider,
        settings: Optional[RunSettings] = None,
        control: Optional[RunControl] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        """
        Validate inputs and prepare the run.

        Args:
            rows: Input rows (mapping of column name to value)
            target_column: Column holding the text to classify
            tags: Cleaned tags (see create_job() for raw input)
            provider: Configured provider
            settings: Pacing and retry policy (default: RunSettings())
            control: Control token (default: new RunControl)
            on_progress: Called with a ProgressEvent after each row and on
                every state change

        Raises:
            ConfigurationError: Missing column, no tags, duplicate tag names,
                tag names containing commas, or a top-level tag named like an
                existing column
        """
        if not target_column:
            raise ConfigurationError("A target column is required")
        if rows and not any(target_column in row for row in rows):
            available = ", ".join(str(column) for column in rows[0].keys())
            raise ConfigurationError(
                f"Column '{target_column}' not found. Available: {available}"
            )

        flat_tags = flatten_tags(tags)
        if not flat_tags:
            raise ConfigurationError("At least one tag with a name is required")
        duplicates = find_duplicate_names(flat_tags)
        if duplicates:
            raise ConfigurationError(
                "Tag names must be unique (case-insensitive) across all levels. "
                f"Duplicates: {', '.join(duplicates)}"
            )
        with_commas = [flat.name for flat in flat_tags if "," in flat.name]
        if with_commas:
            raise ConfigurationError(
                "Tag names cannot contain commas (replies are comma-separated). "
                f"Rename: {'; '.join(with_commas)}"
            )
        clashes = _column_clashes(flat_tags, rows)
        if clashes:
            raise ConfigurationError(
                "Top-level tag names must not match an input column, "
                f"{AI_TAGS_COLUMN} or {AI_ERROR_COLUMN}. Conflicts: {', '.join(clashes)}"
            )

        self.rows = list(rows)
        self.target_column = target_column
        self.tags = tags
        self.flat_tags = flat_tags
        self.known_tag_names = [flat.name for flat in flat_tags]
        self.top_level_names = [flat.name for flat in flat_tags if flat.is_top_level]
        self.provider = provider
        self.settings = settings or RunSettings()
        self.control = control or RunControl(poll_interval=self.settings.poll_interval)
        self.on_progress = on_progress

        self.output: List[Row] = []
        self.result: Optional[ClassificationResult] = None

        self._build_prompt = build_prompt_function(flat_tags)
        self._root_lookup = build_root_lookup(flat_tags)
        self._state = JobState.IDLE
        self._status = "Initializing..."
        self._thread: Optional[threading.Thread] = None

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def status_text(self) -> str:
        return self._status

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    @property
    def current_index(self) -> int:
        """Index of the next row to process (== rows in output while running)."""
        return len(self.output)

    # -------------------------------------------------------------------------
    # Controls
    # -------------------------------------------------------------------------

    def request_pause(self) -> None:
        self.control.request_pause()

    def request_resume(self) -> None:
        self.control.request_resume()

    def request_stop(self) -> None:
        self.control.request_stop()

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    def _emit(self, status: Optional[str] = None) -> None:
        if status is not None:
            self._status = status
        if self.on_progress is None:
            return
        event = ProgressEvent(
            rows_done=len(self.output),
            total_rows=self.total_rows,
            status_text=self._status,
            state=self._state,
        )
        try:
            self.on_progress(event)
        except Exception:
            logger.exception("Progress callback failed")

    def _set_state(self, state: JobState, status: str) -> None:
        logger.debug("Job state %s -> %s", self._state.value, state.value)
        self._state = state
        self._emit(status)

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(self) -> ClassificationResult:
        """
        Process every row and return the final result.

        Returns:
            ClassificationResult in a terminal state

        Raises:
            RuntimeError: If the job was already started
        """
        if self._state is not JobState.IDLE:
            raise RuntimeError("A classification job can only be run once")

        total = self.total_rows
        logger.info(
            "Starting classification: %d rows, %d tags, provider=%s, model=%s",
            total,
            len(self.flat_tags),
            getattr(self.provider, "name", type(self.provider).__name__),
            getattr(self.provider, "model", "?"),
        )
        self._set_state(JobState.RUNNING, "Initializing...")

        while len(self.output) < total:
            index = len(self.output)

            if self.control.stop_requested:
                return self._finish_stopped()

            if self.control.pause_requested:
                self._set_state(JobState.PAUSED, "Paused")
                if not self.control.wait_while_paused():
                    return self._finish_stopped()
                self._set_state(JobState.RUNNING, f"Resuming at row {index + 1} of {total}...")

            row = self.rows[index]
            comment = row.get(self.target_column)
            done_status = f"Completed row {index + 1} of {total}"

            if _is_blank(comment):
                logger.debug("Row %d: empty comment, skipping", index + 1)
                self.output.append(
                    assemble_row(row, [], self.top_level_names, self._root_lookup)
                )
                self._emit(done_status)
                continue

            self._emit(f"Processing row {index + 1} of {total}...")

            try:
                text = self._call_with_retry(str(comment), index)
            except _StopRequested:
                return self._finish_stopped()
            except ProviderError as exc:
                if exc.is_rate_limit:
                    return self._finish_fatal(index, exc)
                logger.warning("Row %d failed: %s", index + 1, exc)
                self.output.append(assemble_error_row(row, self.top_level_names, str(exc)))
            except Exception as exc:
                # Any other provider failure is local to the row
                logger.warning("Row %d failed: %s", index + 1, exc, exc_info=True)
                self.output.append(assemble_error_row(row, self.top_level_names, str(exc)))
            else:
                matched = match_tags(text, self.known_tag_names)
                logger.debug(
                    "Row %d: %s", index + 1, TAG_SEPARATOR.join(matched) if matched else "NONE"
                )
                self.output.append(
                    assemble_row(row, matched, self.top_level_names, self._root_lookup)
                )

            self._emit(done_status)

            if len(self.output) < total:
                self.control.sleep(self.settings.inter_row_delay)

        return self._finish_completed()

    def _call_with_retry(self, comment: str, index: int) -> str:
        """Call the provider, retrying only rate-limit failures."""
        prompt = self._build_prompt(comment)
        max_retries = self.settings.max_retries
        attempt = 0

        while True:
            try:
                return self.provider.classify(prompt)
            except ProviderError as exc:
                if not exc.is_rate_limit or attempt >= max_retries:
                    raise
                delay = self.settings.backoff_base * (2 ** attempt)
                attempt += 1
                logger.warning(
                    "Rate limit hit on row %d, retrying in %gs (attempt %d/%d)",
                    index + 1, delay, attempt, max_retries,
                )
                self._emit(f"Rate limited. Retrying row {index + 1} in {delay:g}s...")
                if not self.control.sleep(delay, interrupt_on_pause=False):
                    raise _StopRequested() from exc

    # -------------------------------------------------------------------------
    # Terminal states
    # -------------------------------------------------------------------------

    def _finish(self, state: JobState, message: str, error: Optional[str] = None,
                rows_processed: Optional[int] = None) -> ClassificationResult:
        self.result = ClassificationResult(
            rows=list(self.output),
            state=state,
            total_rows=self.total_rows,
            rows_processed=len(self.output) if rows_processed is None else rows_processed,
            message=message,
            error=error,
        )
        self._set_state(state, message)
        return self.result

    def _finish_completed(self) -> ClassificationResult:
        logger.info("Classification complete: %d rows", len(self.output))
        return self._finish(JobState.COMPLETED, COMPLETED)

    def _finish_stopped(self) -> ClassificationResult:
        done = len(self.output)
        logger.info("Classification stopped by user after %d of %d rows", done, self.total_rows)
        message = (
            f"{STOPPED_BY_USER}. Output contains the {done} of {self.total_rows} "
            "rows completed before the stop."
        )
        return self._finish(JobState.STOPPED, message)

    def _finish_fatal(self, index: int, exc: ProviderError) -> ClassificationResult:
        fatal = FatalRunError(index, exc)
        logger.error("Critical API error (quota/rate limit): %s", fatal)
        self.output.extend(
            assemble_remaining_error_rows(self.rows, index, self.top_level_names)
        )
        return self._finish(
            JobState.FATAL,
            STOPPED_BY_API_ERROR,
            error=f"API Error: {fatal}",
            rows_processed=index,
        )

    # -------------------------------------------------------------------------
    # Background execution
    # -------------------------------------------------------------------------

    def start(self) -> threading.Thread:
        """Run the job on a daemon thread; collect the outcome with wait()."""
        if self._thread is not None:
            raise RuntimeError("A classification job can only be run once")
        self._thread = threading.Thread(target=self.run, name="data-tagger-job", daemon=True)
        self._thread.start()
        return self._thread

    def wait(self, timeout: Optional[float] = None) -> Optional[ClassificationResult]:
        """
        Block until a background run ends.

        Returns:
            The final result, or None if the timeout expired first
        """
        if self._thread is not None:
            self._thread.join(timeout)
        return self.result


# =============================================================================
# Convenience Functions
# =============================================================================


def create_job(
    rows: Sequence[Mapping[str, Any]],
    target_column: Optional[str],
    tags: Any,
    config: Optional[TaggerConfig] = None,
    provider: Optional[ClassificationProvider] = None,
    control: Optional[RunControl] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> ClassificationJob:
    """
    Create a fully configured job.

    Args:
        rows: Input rows
        target_column: Column to classify (falls back to config.target_column)
        tags: Raw tag data (dicts) or Tag objects; normalized and cleaned here
        config: TaggerConfig with provider and run settings
        provider: Pre-built provider; when given, config.provider is ignored
        control: Optional shared control token
        on_progress: Optional progress callback

    Returns:
        ClassificationJob ready to run

    Raises:
        ConfigurationError: Unknown provider, missing key/model/column, bad tags
    """
    config = config or TaggerConfig()
    tag_list = clean_tags(normalize_tags(list(tags or [])))

    if provider is None:
        settings = config.provider
        settings.require_complete()
        params: Dict[str, Any] = {
            "api_key": settings.api_key.get_secret_value(),
            "model": settings.model,
            "temperature": settings.temperature,
            "max_output_tokens": settings.max_output_tokens,
            "timeout": config.run.request_timeout,
        }
        if settings.provider == "openrouter":
            params.update(referer=settings.referer, app_title=settings.app_title)
        provider = get_registry().create(settings.provider, params)

    return ClassificationJob(
        rows,
        target_column or config.target_column or "",
        tag_list,
        provider,
        settings=config.run,
        control=control,
        on_progress=on_progress,
    )


def get_classification_stats(result: ClassificationResult) -> dict:
    """
    Get statistics about a run.

    Args:
        result: ClassificationResult

    Returns:
        Dict with row counts and per-tag frequencies
    """
    tag_counts: Counter = Counter()
    tagged = 0
    errors = 0

    for row in result.rows:
        if row.get(AI_ERROR_COLUMN):
            errors += 1
            continue
        names = [name for name in str(row.get(AI_TAGS_COLUMN, "")).split(TAG_SEPARATOR) if name]
        if names:
            tagged += 1
            tag_counts.update(names)

    return {
        "state": result.state.value,
        "total_rows": result.total_rows,
        "output_rows": len(result.rows),
        "tagged_rows": tagged,
        "untagged_rows": len(result.rows) - tagged - errors,
        "error_rows": errors,
        "tag_distribution": dict(tag_counts.most_common()),
    }


def print_results_summary(result: ClassificationResult, max_display: int = 10) -> None:
    """
    Print a summary of a run.

    Args:
        result: ClassificationResult
        max_display: Maximum number of errored rows to list
    """
    stats = get_classification_stats(result)

    print("\n" + "=" * 70)
    print("CLASSIFICATION SUMMARY")
    print("=" * 70)

    print(f"\n{result.message}")
    if result.error:
        print(f"⚠️  {result.error}")

    print(f"\nRows: {stats['output_rows']} of {stats['total_rows']}")
    print(f"  Tagged: {stats['tagged_rows']}")
    print(f"  No tags: {stats['untagged_rows']}")
    print(f"  Errors: {stats['error_rows']}")

    if stats["tag_distribution"]:
        print("\nTag distribution:")
        for name, count in stats["tag_distribution"].items():
            pct = 100 * count / stats["output_rows"] if stats["output_rows"] else 0
            print(f"  {name}: {count} ({pct:.1f}%)")

    errored = [(i, row) for i, row in enumerate(result.rows, 1) if row.get(AI_ERROR_COLUMN)]
    if errored:
        print("\n" + "-" * 70)
        print(f"ERRORS (first {min(len(errored), max_display)})")
        print("-" * 70)
        for i, row in errored[:max_display]:
            print(f"  Row {i}: {row[AI_ERROR_COLUMN]}")
