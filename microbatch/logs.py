"""
microbatch logging setup (structlog over the stdlib logging tree).

Library modules only ever log through logging.getLogger(__name__); nothing is
configured on import. Hosts that want output call configure_logging() once:

- human (default): structlog console renderer on stderr, colored on a tty.
- JSON (log_json=True): one JSON object per line on stderr.
"""
import logging
import sys

import structlog


def configure_logging(*, verbose=False, log_json=False):
    """
    Install a structlog ProcessorFormatter on the root logger.

    Parameters
    - verbose: DEBUG for the "microbatch" logger tree, else WARNING.
    - log_json: render JSON lines instead of the console format.
    """
    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger("microbatch").setLevel(logging.DEBUG if verbose else logging.WARNING)


def bind_contextvars(**values):
    """
    Attach values (command, run id...) to every log line of this run.
    """
    structlog.contextvars.bind_contextvars(**values)


def clear_contextvars():
    structlog.contextvars.clear_contextvars()


__all__ = (
    "configure_logging",
    "bind_contextvars",
    "clear_contextvars",
)
