# ============================================================================
# MODULE CONTEXT - LOGGING
# ============================================================================
# STATUS: Core Infrastructure - Structured logging
# PURPOSE: JSON-only structured logging for Azure Functions with Application Insights
# EXPORTS: ComponentType, LogLevel, LogContext, LoggerFactory, JSONFormatter, ContextLoggerAdapter
# INTERFACES: Dataclass models, enums, factory, JSON formatter, context adapter
# DEPENDENCIES: enum, dataclasses, typing, datetime, logging, json (stdlib only!)
# SCOPE: Every component logger in the application
# PATTERNS: JSON-only output, Azure Functions integration, LoggerAdapter for correlation ids
# ENTRY_POINTS: LoggerFactory.create_logger(), LoggerFactory.create_with_context()
# ============================================================================

"""
Unified Logger System

Component loggers for the village atlas service. Every record is written as
one JSON object per line so Application Insights can lift the fields into
customDimensions without a parsing rule.

Design Principles:
- Strong typing with dataclasses (stdlib only)
- Enum safety for component categories
- Component-specific loggers with correlation context
- No global logger instances

Usage:
    logger = LoggerFactory.create_logger(ComponentType.SERVICE, "ShapefileIngestService")
    logger.info("Upload received", extra={'custom_dimensions': {'file_count': 4}})
"""

from enum import Enum
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from dataclasses import dataclass
import logging
import os
import sys
import json


# ============================================================================
# COMPONENT TYPES
# ============================================================================

class ComponentType(Enum):
    """
    Component types aligned with the service layers.
    """
    SERVICE = "service"        # Business logic layer
    REPOSITORY = "repository"  # Data access layer
    TRIGGER = "trigger"        # HTTP entry point layer
    PIPELINE = "pipeline"      # Streaming ingestion stages (reader, transformer, ingestor)
    VALIDATOR = "validator"    # Pre-flight validation (component sets, query params)


# ============================================================================
# LOG LEVELS
# ============================================================================

class LogLevel(Enum):
    """
    Standard Python log levels as enum for type safety.
    """
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_python_level(self) -> int:
        """Convert to Python logging level constant."""
        return getattr(logging, self.value)

    @classmethod
    def from_string(cls, level: str) -> 'LogLevel':
        """Create from string, case-insensitive."""
        return cls[level.upper()]


# ============================================================================
# LOG CONTEXT - Correlation and tracking
# ============================================================================

@dataclass
class LogContext:
    """
    Context for log correlation across one upload or one query request.
    """
    upload_id: Optional[str] = None       # One id per ingestion call
    request_id: Optional[str] = None      # HTTP request id
    client_address: Optional[str] = None  # Caller address (rate limiting)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            k: v for k, v in {
                'upload_id': self.upload_id,
                'request_id': self.request_id,
                'client_address': self.client_address
            }.items() if v is not None
        }


# ============================================================================
# COMPONENT CONFIGURATION
# ============================================================================

@dataclass
class ComponentConfig:
    """
    Configuration for component-specific logging.
    """
    component_type: ComponentType
    log_level: LogLevel = LogLevel.INFO


# ============================================================================
# JSON FORMATTER - Structured logging for Azure Functions
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging in Azure Functions.
    Outputs logs in a format that Application Insights can automatically parse.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON for Application Insights.

        Args:
            record: Python LogRecord to format

        Returns:
            JSON string with structured log data
        """
        log_obj = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name,
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if hasattr(record, 'custom_dimensions'):
            log_obj['customDimensions'] = record.custom_dimensions

        if record.exc_info:
            log_obj['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': self.formatException(record.exc_info)
            }

        return json.dumps(log_obj, default=str)


# ============================================================================
# LOGGER FACTORY - Creates component-specific loggers
# ============================================================================

class LoggerFactory:
    """
    Factory for creating component-specific loggers.

    Example:
        logger = LoggerFactory.create_logger(
            ComponentType.PIPELINE,
            "BatchIngestor"
        )
        logger.info("Flushed batch")
    """

    # DEBUG_LOGGING=true lowers every component to DEBUG
    default_level = LogLevel.DEBUG if os.getenv('DEBUG_LOGGING', '').lower() == 'true' else LogLevel.INFO

    DEFAULT_CONFIGS = {
        ComponentType.SERVICE: ComponentConfig(ComponentType.SERVICE, default_level),
        ComponentType.REPOSITORY: ComponentConfig(ComponentType.REPOSITORY, LogLevel.DEBUG),
        ComponentType.TRIGGER: ComponentConfig(ComponentType.TRIGGER, default_level),
        ComponentType.PIPELINE: ComponentConfig(ComponentType.PIPELINE, default_level),
        ComponentType.VALIDATOR: ComponentConfig(ComponentType.VALIDATOR, default_level),
    }

    @classmethod
    def create_logger(
        cls,
        component_type: ComponentType,
        name: str,
        config: Optional[ComponentConfig] = None
    ) -> logging.Logger:
        """
        Create a logger for a specific component.

        Args:
            component_type: Type of component
            name: Component name (e.g., "FeatureStreamReader")
            config: Optional custom configuration

        Returns:
            Configured Python logger
        """
        if config is None:
            config = cls.DEFAULT_CONFIGS.get(
                component_type,
                ComponentConfig(component_type=component_type)
            )

        logger_name = f"{component_type.value}.{name}"
        logger = logging.getLogger(logger_name)

        # Named loggers are process-wide; configure and wrap each one once
        if getattr(logger, "_component_wrapped", False):
            return logger

        if isinstance(config.log_level, str):
            log_level = LogLevel.from_string(config.log_level).to_python_level()
        else:
            log_level = config.log_level.to_python_level()
        logger.setLevel(log_level)

        # Remove existing handlers to avoid duplicates
        logger.handlers.clear()

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)

        # Allow propagation to Azure's root logger for Application Insights
        logger.propagate = True

        original_log = logger._log

        def log_with_context(level, msg, args, exc_info=None, extra=None, stack_info=False, stacklevel=1):
            """Wrapper to inject the component as custom dimensions."""
            if extra is None:
                extra = {}

            custom_dims = {
                'component_type': component_type.value,
                'component_name': name
            }

            if 'custom_dimensions' in extra:
                custom_dims.update(extra['custom_dimensions'])

            extra['custom_dimensions'] = custom_dims

            original_log(level, msg, args, exc_info=exc_info, extra=extra,
                         stack_info=stack_info, stacklevel=stacklevel)

        logger._log = log_with_context
        logger._component_wrapped = True

        return logger

    @classmethod
    def create_with_context(
        cls,
        component_type: ComponentType,
        name: str,
        upload_id: Optional[str] = None,
        request_id: Optional[str] = None,
        client_address: Optional[str] = None
    ) -> logging.LoggerAdapter:
        """
        Wrap a component logger with upload/request correlation context.

        The context lives on the adapter, not on the shared logger, so
        concurrent uploads never see each other's ids.

        Args:
            component_type: Type of component
            name: Component name
            upload_id: Optional ingestion correlation id
            request_id: Optional HTTP request id
            client_address: Optional caller address

        Returns:
            ContextLoggerAdapter over the component logger
        """
        context = LogContext(
            upload_id=upload_id,
            request_id=request_id,
            client_address=client_address
        )
        return ContextLoggerAdapter(cls.create_logger(component_type, name), context)


# ============================================================================
# CONTEXT ADAPTER - Per-call correlation ids
# ============================================================================

class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Merges a LogContext into each record's custom dimensions.

    Explicit custom_dimensions passed by the caller win over the context.
    """

    def __init__(self, logger: logging.Logger, context: LogContext):
        super().__init__(logger, context.to_dict())
        self.context = context

    def process(self, msg, kwargs):
        extra = dict(kwargs.get('extra') or {})
        custom_dims = dict(self.extra)
        custom_dims.update(extra.get('custom_dimensions', {}))
        extra['custom_dimensions'] = custom_dims
        kwargs['extra'] = extra
        return msg, kwargs
