"""
logging.py — Application-Wide Logging Configuration

One format for the API server, the store mirrors and the maintenance scripts,
so a line from a server log can be matched against a later migration run.

What gets logged:
- WARNING when a cloud mirror write or delete fails (collection, id, operation);
  the local copy is already committed at that point
- WARNING when proof/QR uploads fall back to local disk, and when a signed
  URL cannot be issued
- WARNING for duplicate payment submissions (refused or allowed per settings)
- INFO for rejected bearer tokens (reason only, never the token)
- INFO for record lifecycle (event created, payment approved or rejected)
- INFO per collection from the migration tool (reused, created and updated
  counts, merged duplicate organizations); ERROR for its failed cloud writes

Format: timestamp | level | module | message
"""

import logging

# -----------------------------------------------------------------------------
# Log Format
# -----------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# -----------------------------------------------------------------------------
# Root Logger Initialization
# -----------------------------------------------------------------------------

def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging settings.

    Parameters:
        level (str): "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"

    Called once by the app factory or a script's main().
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )

    logging.getLogger(__name__).info("Logging initialized with level %s", level)

# -----------------------------------------------------------------------------
# Logger Access Helper
# -----------------------------------------------------------------------------

def get_logger(name: str) -> logging.Logger:
    """
    Return a logger instance to be used in any module.

        from campuspay.core.logging import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)
