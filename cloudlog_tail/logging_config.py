"""
Logging setup for the agent.

Everything goes to stderr. The ``journal`` format prefixes each line with its
syslog priority (``<3>``, ``<6>``...) which systemd-journald strips and uses
as the entry's level when the agent runs as a service.
"""

import logging
import sys

LOGGER_NAME = "cloudlog_tail"

SYSLOG_PRIORITIES = {
    logging.CRITICAL: 2,
    logging.ERROR: 3,
    logging.WARNING: 4,
    logging.INFO: 6,
    logging.DEBUG: 7,
}


class JournalFormatter(logging.Formatter):
    def __init__(self):
        super().__init__("%(name)s: %(message)s")

    def format(self, record):
        priority = SYSLOG_PRIORITIES.get(record.levelno)
        if priority is None:
            # custom levels: use the nearest standard level below
            priority = next(
                (p for level, p in sorted(SYSLOG_PRIORITIES.items(), reverse=True)
                 if record.levelno >= level),
                7,
            )
        return f"<{priority}>{super().format(record)}"


def setup_logging(level=logging.INFO, fmt: str = "plain", stream=None) -> logging.Logger:
    """
    Attach a single stderr handler to the ``cloudlog_tail`` logger.

    Calling it again replaces the handler installed by the previous call
    instead of stacking a second one.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        if getattr(handler, "_cloudlog_tail", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler._cloudlog_tail = True
    if fmt == "journal":
        handler.setFormatter(JournalFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    logger.addHandler(handler)
    return logger
