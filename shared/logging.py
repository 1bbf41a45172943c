"""
Shared logging configuration for the guild permissions service.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, List, Optional
from contextvars import ContextVar

# Context variables for correlation IDs
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
guild_id_var: ContextVar[Optional[str]] = ContextVar('guild_id', default=None)
operator_id_var: ContextVar[Optional[str]] = ContextVar('operator_id', default=None)


def build_processors(service_name: str) -> List[Any]:
    """Processor chain for JSON log lines tagged with the service name."""

    def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
        add_correlation_context,
        structlog.processors.JSONRenderer()
    ]


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""

    structlog.configure(
        processors=build_processors(service_name),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add correlation context to log events."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    guild_id = guild_id_var.get()
    if guild_id:
        event_dict["guild_id"] = guild_id

    operator_id = operator_id_var.get()
    if operator_id:
        event_dict["operator_id"] = operator_id

    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_command_context(guild_id: Optional[str] = None, operator_id: Optional[str] = None):
    """Set guild and operator context in logging."""
    if guild_id:
        guild_id_var.set(guild_id)
    if operator_id:
        operator_id_var.set(operator_id)


def clear_context():
    """Clear all context variables."""
    request_id_var.set(None)
    guild_id_var.set(None)
    operator_id_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
