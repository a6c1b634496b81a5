"""
Structured logging configuration using structlog.

Event names are snake_case and carry tenant context as Datadog-style
dotted attributes so one organization's traffic can be filtered out of
shared logs:

    from apps.core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("organization_resolved", source="subdomain", identifier="acme")

Context bound per request (see apps.core.middleware):
    - trace_id: Request correlation ID
    - http.method / http.url_details.path: Request line
    - http.host: Host header the tenant was resolved from
    - usr.id: Caller's local user ID
    - organization.slug: Resolved organization slug
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

# Keyword arguments that are renamed to their dotted attribute names, so
# call sites can write org_slug="acme" instead of **{"organization.slug": "acme"}.
_FIELD_ALIASES = {
    "correlation_id": "trace_id",
    "org_slug": "organization.slug",
    "org_id": "organization.id",
    "user_id": "usr.id",
}


def _rename_aliased_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Rewrite short keyword names to the attribute names dashboards expect."""
    for alias, name in _FIELD_ALIASES.items():
        if alias in event_dict:
            value = event_dict.pop(alias)
            event_dict[name] = None if value is None else str(value)
    return event_dict


def _drop_empty_tenant_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Remove organization.* keys bound as None for untenanted requests."""
    for key in [k for k in event_dict if k.startswith("organization.")]:
        if event_dict[key] in (None, ""):
            del event_dict[key]
    return event_dict


def configure_logging(json_format: bool = True, log_level: str = "INFO") -> None:
    """
    Configure structlog for the application.

    Uses stdlib integration so Django's own loggers render through the same
    formatter.

    Args:
        json_format: If True, output JSON (production). If False, pretty console output.
        log_level: Minimum log level to output.
    """
    log_level_int = getattr(logging, log_level.upper(), logging.INFO)

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _rename_aliased_fields,
        _drop_empty_tenant_fields,
    ]

    if json_format:
        renderer: Processor = structlog.processors.JSONRenderer()
        pre_chain.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level_int)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, typically with ``__name__``."""
    return structlog.get_logger(name)


def bind_contextvars(**kwargs: Any) -> None:
    """
    Bind key-value pairs to the current request/task context.

    Dotted keys must be passed with dict unpacking:
        bind_contextvars(**{"organization.slug": "acme"})
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_contextvars() -> None:
    """Clear all bound context variables at the end of a request."""
    structlog.contextvars.clear_contextvars()
