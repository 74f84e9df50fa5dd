"""
Command-line interface for data-tagger.

Usage:
    # Tag a CSV with Gemini (key from GEMINI_API_KEY)
    data-tagger classify survey.csv --column "Comment" --tags tags.json

    # Another provider, custom output, first 20 rows only
    data-tagger classify survey.csv --column "Comment" --tags tags.yaml \
        --provider openai --model gpt-4o-mini --output tagged.csv --limit 20

    # Inspect a tag file
    data-tagger tags show tags.json

    # Convert a Tag/Description/Example CSV into a tag file
    data-tagger tags import tags.csv --output tags.json

    # Print the exact prompt for one comment
    data-tagger prompt tags.json --comment "Shipping took two weeks"

Ctrl-C during classify stops after the current row and still writes the rows
completed so far; a second Ctrl-C aborts without writing.

Exit codes:
    0   completed
    1   stopped on an API quota / rate-limit error (or unexpected failure)
    2   configuration error
    130 stopped by user
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .config import SUPPORTED_PROVIDERS, load_config
from .data_io import default_output_path, preview_rows, read_dataset, write_results
from .errors import ConfigurationError, TagImportError, log_exception
from .logging_config import configure_quiet_mode, enable_debug_mode
from .pipeline import JobState, ProgressEvent, create_job, print_results_summary
from .prompts import build_prompt, get_tag_names_list
from .taxonomy import (
    flatten_tags,
    get_tag_stats,
    load_tags,
    print_tag_hierarchy,
    save_tags,
    tags_from_csv,
)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2
EXIT_STOPPED = 130

_EXIT_CODES = {
    JobState.COMPLETED: EXIT_OK,
    JobState.FATAL: EXIT_FATAL,
    JobState.STOPPED: EXIT_STOPPED,
}


# =============================================================================
# classify
# =============================================================================


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be 0 or greater, got {number}")
    return number


def _print_progress(event: ProgressEvent) -> None:
    print(f"  [{event.rows_done}/{event.total_rows}] {event.status_text}", flush=True)


def _cmd_classify(args: argparse.Namespace) -> int:
    config = load_config(
        args.config,
        overrides={
            "provider": {
                "provider": args.provider,
                "model": args.model,
                "api_key": args.api_key,
            },
            "run": {"inter_row_delay": args.delay},
            "target_column": args.column,
        },
    )
    column = config.target_column
    if not column:
        raise ConfigurationError(
            "A target column is required (--column or target_column in config)"
        )

    rows = read_dataset(args.input, target_column=column)
    if args.limit is not None:
        rows = rows[: args.limit]
    print(f"✓ Loaded {len(rows)} rows from {args.input}")
    if args.verbose:
        preview_rows(rows, column)

    tags = load_tags(args.tags)
    print(f"✓ Loaded {len(flatten_tags(tags))} tags from {args.tags}")

    job = create_job(rows, column, tags, config=config, on_progress=_print_progress)
    print(f"\nClassifying with {config.provider.provider} / {config.provider.model}...")
    print("(Ctrl-C to stop after the current row)\n")

    thread = job.start()
    stop_sent = False
    while thread.is_alive():
        try:
            thread.join(0.2)
        except KeyboardInterrupt:
            if stop_sent:
                raise
            stop_sent = True
            print("\n⚠️  Stopping after the current row... (Ctrl-C again to abort)", flush=True)
            job.request_stop()

    result = job.result
    if result is None:
        raise RuntimeError("Classification ended without a result")

    if result.rows:
        output = Path(args.output) if args.output else default_output_path(args.input)
        write_results(result.rows, output)
        print(f"\n✓ Saved: {output}")

    print_results_summary(result)
    return _EXIT_CODES.get(result.state, EXIT_FATAL)


# =============================================================================
# tags
# =============================================================================


def _cmd_tags_show(args: argparse.Namespace) -> int:
    tags = load_tags(args.tags)
    print_tag_hierarchy(tags)

    stats = get_tag_stats(tags)
    print("\n" + "-" * 40)
    print(f"Top-level tags: {stats['top_level']}")
    print(f"Nested tags:    {stats['nested']}")
    print(f"Total:          {stats['total']}")
    print(f"With descriptions: {stats['with_description']}")
    print(f"With examples:     {stats['with_examples']} ({stats['examples']} examples)")
    print(f"Max depth:      {stats['max_depth']}")
    print(f"\nNames: {get_tag_names_list(flatten_tags(tags))}")
    return EXIT_OK


def _cmd_tags_import(args: argparse.Namespace) -> int:
    tags = tags_from_csv(args.csv)
    save_tags(tags, args.output)
    print(f"✓ Imported {len(tags)} tags")
    print(f"✓ Saved: {args.output}")
    return EXIT_OK


# =============================================================================
# prompt
# =============================================================================


def _cmd_prompt(args: argparse.Namespace) -> int:
    flat = flatten_tags(load_tags(args.tags))
    if not flat:
        raise ConfigurationError(f"No tags found in {args.tags}")
    print(build_prompt(args.comment, flat))
    return EXIT_OK


# =============================================================================
# Entry point
# =============================================================================


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="data-tagger",
        description="Tag free-text survey responses with an LLM, one row at a time.",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # classify
    classify = subparsers.add_parser("classify", parents=[common], help="Classify a dataset")
    classify.add_argument("input", help="Input .csv or .xlsx file")
    classify.add_argument("--column", help="Column containing the text to classify")
    classify.add_argument("--tags", required=True, help="Tag file (.json, .yaml or .csv)")
    classify.add_argument("--provider", choices=SUPPORTED_PROVIDERS, help="LLM provider")
    classify.add_argument("--model", help="Model identifier")
    classify.add_argument("--api-key", help="API key (default: provider environment variable)")
    classify.add_argument("--config", help="YAML config file")
    classify.add_argument("--output", help="Output CSV (default: <input>_tagged.csv)")
    classify.add_argument("--limit", type=_non_negative_int, help="Only classify the first N rows")
    classify.add_argument("--delay", type=float, help="Seconds between requests (default: 0.5)")
    classify.set_defaults(func=_cmd_classify)

    # tags
    tags = subparsers.add_parser("tags", help="Inspect or import tag files")
    tags_sub = tags.add_subparsers(dest="tags_command", required=True)

    show = tags_sub.add_parser("show", parents=[common], help="Print hierarchy and stats")
    show.add_argument("tags", help="Tag file")
    show.set_defaults(func=_cmd_tags_show)

    import_ = tags_sub.add_parser("import", parents=[common], help="Convert a tag CSV")
    import_.add_argument("csv", help="Tag CSV file")
    import_.add_argument("--output", required=True, help="Output tag file (.json or .yaml)")
    import_.set_defaults(func=_cmd_tags_import)

    # prompt
    prompt = subparsers.add_parser("prompt", parents=[common], help="Print one prompt")
    prompt.add_argument("tags", help="Tag file")
    prompt.add_argument("--comment", required=True, help="Comment text")
    prompt.set_defaults(func=_cmd_prompt)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        enable_debug_mode()
    else:
        configure_quiet_mode()

    try:
        return args.func(args)
    except (ConfigurationError, TagImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
        return EXIT_STOPPED
    except Exception as e:
        log_path = log_exception(e, f"data-tagger {args.command}")
        print(f"Error: {e}", file=sys.stderr)
        print(f"Full traceback written to {log_path}", file=sys.stderr)
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
