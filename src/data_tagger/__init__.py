"""
Data Tagger

Tags free-text comments in tabular data with user-defined labels using a
hosted LLM, one row at a time.

Architecture:
    1. TAG DEFINITION
       - Tags with descriptions and examples, nested up to 3 levels
       - Loaded from JSON / YAML tag files or imported from a tag CSV

    2. CLASSIFICATION RUN
       - One prompt per non-blank row, sent to Google, OpenAI or OpenRouter
       - Reply matched against the known tag names
       - Rate limits retried with backoff; pause / resume / stop at row boundaries

    3. OUTPUT
       - Original columns + AI_Tags + one 0/1 column per top-level tag
       - AI_Error on rows that failed

Subpackages:
    - taxonomy: Tag model, normalization, tag files
    - prompts: Classification prompt (pure Python)
    - providers: HTTP backends
    - pipeline: Matcher, run control, engine

Quick Start:
    from data_tagger import create_job, load_config, load_tags, read_dataset

    config = load_config("config.yaml")
    rows = read_dataset("survey.csv", target_column="Comment")
    tags = load_tags("tags.json")

    job = create_job(rows, "Comment", tags, config=config)
    result = job.run()

    write_results(result.rows, "survey_tagged.csv")
"""

# =============================================================================
# Configuration and Errors
# =============================================================================
from .config import (
    DEFAULT_MODELS,
    SUPPORTED_PROVIDERS,
    ProviderSettings,
    RunSettings,
    TaggerConfig,
    load_config,
)
from .data_io import read_dataset, results_to_dataframe, write_results
from .errors import (
    ConfigurationError,
    DataTaggerError,
    FatalRunError,
    ProviderError,
    TagImportError,
)

# =============================================================================
# Pipeline
# =============================================================================
from .pipeline import (
    AI_ERROR_COLUMN,
    AI_TAGS_COLUMN,
    ClassificationJob,
    ClassificationResult,
    JobState,
    ProgressEvent,
    RunControl,
    create_job,
    get_classification_stats,
    match_tags,
    print_results_summary,
)

# =============================================================================
# Prompt Building (pure Python)
# =============================================================================
from .prompts import build_prompt, build_prompt_function

# =============================================================================
# Providers
# =============================================================================
from .providers import ClassificationProvider, classify, get_registry

# =============================================================================
# Tags
# =============================================================================
from .taxonomy import (
    FlatTag,
    Tag,
    clean_tags,
    flatten_tags,
    load_tags,
    normalize_tags,
    save_tags,
    tags_from_csv,
)

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "TaggerConfig",
    "ProviderSettings",
    "RunSettings",
    "load_config",
    "DEFAULT_MODELS",
    "SUPPORTED_PROVIDERS",
    # Errors
    "DataTaggerError",
    "ConfigurationError",
    "ProviderError",
    "FatalRunError",
    "TagImportError",
    # Data
    "read_dataset",
    "results_to_dataframe",
    "write_results",
    # Tags
    "Tag",
    "FlatTag",
    "normalize_tags",
    "clean_tags",
    "flatten_tags",
    "load_tags",
    "save_tags",
    "tags_from_csv",
    # Prompts
    "build_prompt",
    "build_prompt_function",
    # Providers
    "ClassificationProvider",
    "classify",
    "get_registry",
    # Pipeline
    "ClassificationJob",
    "ClassificationResult",
    "JobState",
    "ProgressEvent",
    "RunControl",
    "create_job",
    "match_tags",
    "get_classification_stats",
    "print_results_summary",
    "AI_TAGS_COLUMN",
    "AI_ERROR_COLUMN",
]
