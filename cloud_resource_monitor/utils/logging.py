"""
Structured logging configuration for the monitoring service.
"""

import os
import sys

import structlog


def should_use_human_readable() -> bool:
    """Determine if we should use human-readable output"""
    # LOG_FORMAT wins; otherwise follow whether stdout is a terminal
    log_format = os.getenv("LOG_FORMAT")
    if log_format == "json":
        return False
    if log_format == "human":
        return True

    return sys.stdout.isatty()


def configure_logging(
    level: str = "INFO", format_type: str = "auto", component: str = None
) -> None:
    """
    Configure structlog for console or log-shipper output

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Output format ("auto", "json", "human")
        component: Optional component name bound to every event
    """
    if format_type == "auto":
        use_human = should_use_human_readable()
    else:
        use_human = format_type == "human"

    processors = [
        structlog.processors.TimeStamper(fmt="%H:%M:%S" if use_human else "ISO"),
        structlog.processors.add_log_level,
    ]

    if component:

        def add_component(logger, method_name, event_dict):
            event_dict.setdefault("component", component)
            return event_dict

        processors.append(add_component)

    processors.append(structlog.processors.StackInfoRenderer())
    if use_human:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())

    level_map = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}
    log_level = level_map.get(level.upper(), 20)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None):
    """Get a configured logger instance"""
    return structlog.get_logger(name)

