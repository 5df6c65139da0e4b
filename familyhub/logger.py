"""
Structured Logging

Every storage failure in this package is absorbed and logged rather
than raised, so the log is the only place failures become visible.

Loggers are structlog loggers rendering JSON through the stdlib
logging machinery.
"""

import logging

import structlog


def configure_logging(debug: bool = False) -> None:
    """
    Configure structlog for local logging.

    Only the first call configures anything; later calls keep the
    existing setup.
    """
    if structlog.is_configured():
        return
    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if debug else logging.INFO,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named logger."""
    return structlog.get_logger(name)
