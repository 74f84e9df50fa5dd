"""
Logging configuration for data-tagger.

Library modules only create loggers; the CLI decides how loud to be.
"""

import logging
import sys

_NOISY_LOGGERS = ("urllib3", "requests", "charset_normalizer")


def configure_quiet_mode(quiet: bool = True):
    """
    Keep HTTP client chatter out of the console.

    Args:
        quiet: If True, only warnings from data_tagger and errors from
            HTTP libraries are shown.
    """
    level = logging.ERROR if quiet else logging.INFO
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level)

    tagger_logger = logging.getLogger("data_tagger")
    if tagger_logger.level == logging.NOTSET:
        tagger_logger.setLevel(logging.WARNING if quiet else logging.INFO)

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.WARNING,
            format="%(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    logging.getLogger("data_tagger").setLevel(logging.DEBUG)
    # urllib3 at DEBUG prints every connection; INFO is enough
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO)
