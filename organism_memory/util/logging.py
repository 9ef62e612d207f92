"""
Structured logging for vector store, persistence and compression operations.
"""

import logging
from typing import Any, Dict, Optional


class StructuredLogger:
    """Structured logger for vector, persistence and compression operations."""

    def __init__(self, name: str = "organism_memory", level: Optional[str] = None):
        self.logger = logging.getLogger(name)
        if level is None:
            from ..core.config import get_log_level
            level = get_log_level()
        self.logger.setLevel(getattr(logging, level.upper(), logging.INFO))

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_vector_operation(self, operation: str, record_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector operation."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        level = logging.INFO if status == "success" else logging.WARNING
        self.log_operation(f"vector.{operation}", status, log_details, level=level)

    def log_persistence(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log an index/map load or save."""
        if status == "failed":
            level = logging.ERROR
        elif status in ("fallback", "recovered"):
            level = logging.WARNING
        else:
            level = logging.INFO
        self.log_operation(f"persistence.{operation}", status, details, level=level)

    def log_compression(self, strategy: str, removed_count: int, reduction_percentage: float, budget_met: bool, details: Dict[str, Any] = None):
        """Log the outcome of a memory compression run."""
        log_details = {
            "strategy": strategy,
            "removed_count": removed_count,
            "reduction_percentage": reduction_percentage,
        }
        if details:
            log_details.update(details)

        self.log_operation("memory.compress", "success" if budget_met else "partial", log_details)

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
