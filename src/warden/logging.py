import logging

import structlog

# Driver internals that flood INFO/DEBUG with topology and pool chatter
QUIET_LOGGERS = ("pymongo", "pymongo.topology", "pymongo.connection", "pymongo.serverSelection", "pymongo.command")


def _renderer(debug: bool) -> structlog.types.Processor:
    if debug:
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer(sort_keys=True)


def setup_logging(debug: bool) -> None:
    """Route structlog through stdlib logging; console output in debug, JSON lines otherwise."""
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format="%(message)s")
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _renderer(debug),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
