"""
Structured logger with traceId support.
Emits JSON single-line logs: level, event, traceId, pdb_id, stage and optional fields.
"""
import logging
import json
import os
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from contextvars import ContextVar

trace_id_var: ContextVar[Optional[str]] = ContextVar('trace_id', default=None)

class StructuredFormatter(logging.Formatter):
    """Formatter that emits JSON single-line logs."""

    def format(self, record: logging.LogRecord) -> str:
        trace_id = trace_id_var.get() or getattr(record, 'traceId', None)

        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "event": getattr(record, 'event', record.name),
            "message": record.getMessage(),
        }

        if trace_id:
            log_entry["traceId"] = trace_id

        for field in ('stage', 'pdb_id'):
            value = getattr(record, field, None)
            if value:
                log_entry[field] = value

        if hasattr(record, 'extra_fields'):
            log_entry.update(record.extra_fields)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)

def setup_logger(name: str = "pdb_data", level: str = "INFO") -> logging.Logger:
    """Setup structured logger with JSON formatter."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logger.addHandler(handler)

    logger.propagate = False

    return logger

_logger = None

def get_logger() -> logging.Logger:
    """Get or create the global logger instance."""
    global _logger
    if _logger is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")
        _logger = setup_logger("pdb_data", log_level)
    return _logger

def set_trace_id(trace_id: Optional[str]) -> None:
    """Set traceId in context for current request."""
    trace_id_var.set(trace_id)

def get_trace_id() -> Optional[str]:
    """Get traceId from context."""
    return trace_id_var.get()

def log_event(level: str, event: str, message: str, pdb_id: Optional[str] = None, stage: Optional[str] = None, exc_info: bool = False, **kwargs) -> None:
    """
    Log a structured event with traceId and optional pdb_id and stage.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        event: Event name (e.g., "pdb_fetch", "cache_write_failed", "dispatch")
        message: Log message
        pdb_id: Optional PDB id the event relates to
        stage: Optional stage name (e.g., "fetch", "parse", "cache", "persistence")
        exc_info: Attach the current exception traceback
        **kwargs: Additional fields to include in the log line
    """
    logger = get_logger()
    log_method = getattr(logger, level.lower(), logger.info)

    extra: Dict[str, Any] = {'event': event}
    if kwargs:
        extra['extra_fields'] = kwargs
    if pdb_id:
        extra['pdb_id'] = pdb_id
    if stage:
        extra['stage'] = stage

    log_method(message, extra=extra, exc_info=exc_info)

# Convenience functions
def log_info(event: str, message: str, pdb_id: Optional[str] = None, stage: Optional[str] = None, **kwargs) -> None:
    """Log INFO level event."""
    log_event("INFO", event, message, pdb_id, stage, **kwargs)

def log_warning(event: str, message: str, pdb_id: Optional[str] = None, stage: Optional[str] = None, **kwargs) -> None:
    """Log WARNING level event."""
    log_event("WARNING", event, message, pdb_id, stage, **kwargs)

def log_error(event: str, message: str, pdb_id: Optional[str] = None, stage: Optional[str] = None, **kwargs) -> None:
    """Log ERROR level event."""
    log_event("ERROR", event, message, pdb_id, stage, **kwargs)

def log_debug(event: str, message: str, pdb_id: Optional[str] = None, stage: Optional[str] = None, **kwargs) -> None:
    """Log DEBUG level event."""
    log_event("DEBUG", event, message, pdb_id, stage, **kwargs)
