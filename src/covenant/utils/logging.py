"""Logging configuration for Covenant.

Covenant modules log through `logging.getLogger(__name__)` and never
configure handlers on import. Applications that want Covenant's defaults
call :func:`configure_logging` once at startup.
"""

import logging
import os
import sys


def configure_logging(level=None, format_string=None):
    """Configure logging for Covenant.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_string: Custom format string for log messages
    """
    # Get level from environment or use default
    if level is None:
        level = os.environ.get("COVENANT_LOG_LEVEL", "INFO")

    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    if format_string is None:
        if numeric_level == logging.DEBUG:
            format_string = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        else:
            format_string = "%(asctime)s %(levelname)s: %(message)s"

    logging.basicConfig(
        level=numeric_level,
        format=format_string,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,  # Replace any existing configuration
    )

    # Server engines are chatty at INFO
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    if numeric_level == logging.DEBUG:
        logging.getLogger("covenant").setLevel(logging.DEBUG)
    else:
        # Request-time failures are reported by the pipeline, binding by the module
        logging.getLogger("covenant.pipeline").setLevel(logging.INFO)
        logging.getLogger("covenant.module").setLevel(logging.INFO)
        logging.getLogger("covenant.engines").setLevel(logging.WARNING)
