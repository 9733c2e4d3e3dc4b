"""
Structured logging for form passes - actions, references and relationship writes.
"""

import logging
from typing import Any, Dict, List

from ..core.config import LOG_LEVEL


class StructuredLogger:
    """Structured logger for form-action lifecycle and relationship reconciliation."""

    def __init__(self, name: str = "formactions", level: str = LOG_LEVEL):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level.upper())

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "rejected"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_action(self, phase: str, action_name: str, kind: str, status: str = "success", details: Dict[str, Any] = None):
        """Log one Action invocation within a load/validate/make pass."""
        log_details = {"action": action_name, "kind": kind}
        if details:
            log_details.update(details)

        self.log_operation(f"action.{phase}", status, log_details)

    def log_reference_unresolved(self, action_name: str, referenced: str, kind: str):
        """Log a reference to an Action that has produced no entity (yet)."""
        log_details = {
            "action": action_name,
            "referenced": referenced,
            "kind": kind
        }
        self.log_operation("reference.unresolved", "skipped", log_details)

    def log_relationship_instruction(self, action_name: str, op: str, type_id: int, related_contact_id: int,
                                     relationship_id: int = None, offset: int = None):
        """Log the update/create decision taken for one relationship declaration."""
        log_details = {
            "action": action_name,
            "op": op,
            "type_id": type_id,
            "related_contact_id": related_contact_id
        }
        if relationship_id is not None:
            log_details["relationship_id"] = relationship_id
        if offset is not None:
            log_details["offset"] = offset

        self.log_operation("relationship.reconcile", "decided", log_details)

    def log_persistence_failure(self, entity: str, error: Any, payload: Dict[str, Any] = None):
        """Log a rejected CRM write with sanitized payload."""
        log_details = {"entity": entity, "error": str(error)[:200]}
        if payload:
            log_details["payload"] = sanitize_payload(payload)

        self.log_operation(f"crm.{entity}.write", "failed", log_details)

    def log_validation_error(self, action_name: str, message: str):
        """Log a user-visible validation failure attached to an Action."""
        log_details = {
            "action": action_name,
            "message": message[:100]
        }
        self.log_operation("action.validate", "rejected", log_details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for logging."""
    if sensitive_fields is None:
        sensitive_fields = ['email', 'phone', 'note', 'password', 'secret']

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
