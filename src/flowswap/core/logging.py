# src/flowswap/core/logging.py
"""Structured logging for flowswap.

flowswap usually runs inside the process of the dataflow runtime it
reconfigures, so LoggingSettings.scope picks who owns the output:

- ``root``: flowswap formats every stdlib logger in the process. Records the
  host emits through logging.getLogger(__name__) are rendered through the
  same structlog chain (ProcessorFormatter), so JSON output stays JSON.
- ``flowswap``: only the ``flowswap`` logger tree gets a handler and stops
  propagating. The host's own handlers and levels are left alone.

Update lines carry ``attempt_id`` (bound by the orchestrator) and
``logger``, so drain, reload and rollback lines can be told apart.
"""

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.stdlib import ProcessorFormatter

from flowswap.core.config import LoggingSettings

# Handler name used to find and replace our own handler on reconfiguration
_HANDLER_NAME = "flowswap"

_PACKAGE_LOGGER = "flowswap"

# Dependencies flowswap drives that flood DEBUG output: history store
# statement echo and tracing SDK internals
_CHATTY_LOGGERS: tuple[str, ...] = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "opentelemetry",
)


def _pre_chain() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _renderer_chain(json_output: bool, stream: TextIO) -> list[Any]:
    if json_output:
        return [
            ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        ProcessorFormatter.remove_processors_meta,
        structlog.dev.ConsoleRenderer(colors=stream.isatty()),
    ]


def _detach(logger: logging.Logger) -> None:
    for handler in [h for h in logger.handlers if h.name == _HANDLER_NAME]:
        logger.removeHandler(handler)


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Configure structlog and stdlib logging from settings.

    Safe to call again: the handler installed by an earlier call is replaced,
    never stacked.

    Args:
        settings: Level, output format, stream and scope. Defaults to
            console output at INFO on stdout for the whole process.
    """
    if settings is None:
        settings = LoggingSettings()
    level = logging.getLevelNamesMapping()[settings.level]
    stream = sys.stderr if settings.stream == "stderr" else sys.stdout
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Off so a second configure_logging() call takes effect
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        ProcessorFormatter(
            processors=_renderer_chain(settings.json_output, stream),
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    package = logging.getLogger(_PACKAGE_LOGGER)
    _detach(package)

    if settings.scope == "flowswap":
        _detach(root)
        package.addHandler(handler)
        package.setLevel(level)
        package.propagate = False
    else:
        root.handlers = [handler]
        root.setLevel(level)
        package.setLevel(logging.NOTSET)
        package.propagate = True

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger for a module (typically ``__name__``)."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
