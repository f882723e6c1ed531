"""
Structured logging utilities for the coffee price oracle.
Provides JSON-formatted logging for quote resolution, price validation and
revenue projection events.
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pathlib import Path
import structlog


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = True
) -> structlog.BoundLogger:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output
        json_format: If True, output logs in JSON format

    Returns:
        Configured structlog logger
    """
    level = getattr(logging, log_level.upper())

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=[logging.StreamHandler(sys.stderr)]
    )

    # Add file handler if specified
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        logging.getLogger().addHandler(file_handler)

    # Configure structlog processors
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PricingLogger:
    """
    Specialized logger for pricing operations.
    Provides structured events for quotes, validations and projections.
    """

    def __init__(self, logger: Optional[structlog.BoundLogger] = None):
        self.logger = logger or structlog.get_logger()

    def log_quote(
        self,
        operation: str,
        variety: str,
        grade: int,
        base_price: float,
        is_stale: bool,
        cached: bool = False,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log a resolved quote."""
        log_method = self.logger.warning if is_stale else self.logger.info
        log_method(
            "quote_resolved",
            event_type="quote",
            operation=operation,
            variety=variety,
            grade=grade,
            base_price=base_price,
            is_stale=is_stale,
            cached=cached,
            timestamp=_now(),
            **(metadata or {})
        )

    def log_validation(
        self,
        variety: str,
        grade: int,
        proposed_price: float,
        market_price: float,
        is_valid: bool,
        is_stale: bool,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log a sale price validation."""
        self.logger.info(
            "price_validation",
            event_type="validation",
            variety=variety,
            grade=grade,
            proposed_price=proposed_price,
            market_price=market_price,
            is_valid=is_valid,
            is_stale=is_stale,
            reason=reason,
            timestamp=_now(),
            **(metadata or {})
        )

    def log_projection(
        self,
        grove_token: str,
        variety: str,
        grade: int,
        yield_kg: float,
        harvest_month: int,
        projected_revenue: float,
        is_stale: bool,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log a revenue projection."""
        log_method = self.logger.warning if is_stale else self.logger.info
        log_method(
            "revenue_projection",
            event_type="projection",
            grove_token=grove_token,
            variety=variety,
            grade=grade,
            yield_kg=yield_kg,
            harvest_month=harvest_month,
            projected_revenue=projected_revenue,
            is_stale=is_stale,
            timestamp=_now(),
            **(metadata or {})
        )

    def log_fetch_failure(
        self,
        operation: str,
        error_message: str,
        variety: Optional[str] = None,
        grade: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log a failed quote source call."""
        self.logger.error(
            "fetch_failure",
            event_type="fetch",
            operation=operation,
            variety=variety,
            grade=grade,
            error_message=error_message,
            timestamp=_now(),
            **(metadata or {})
        )


def get_pricing_logger(name: str = "coffeeprice") -> PricingLogger:
    """Get a configured pricing logger instance."""
    return PricingLogger(structlog.get_logger(name))
