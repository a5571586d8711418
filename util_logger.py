# ============================================================================
# MODULE CONTEXT - LOGGING
# ============================================================================
# STATUS: Shared infrastructure - used by every layer of the app
# PURPOSE: JSON-only structured logging for Azure Functions with Application Insights
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: ComponentType, LogLevel, LogContext, ComponentConfig, JSONFormatter, LoggerFactory, ContextLogger, log_exceptions
# INTERFACES: Dataclass models, enums, factory, JSON formatter, exception decorator
# DEPENDENCIES: enum, dataclasses, typing, datetime, logging, json, traceback, threading (stdlib only!)
# SOURCE: Application architecture layers define component types
# SCOPE: Foundation and factory layers for all logging in the application
# PATTERNS: JSON-only output, Azure Functions integration, Exception decorator pattern
# ENTRY_POINTS: LoggerFactory.create_logger(), @log_exceptions decorator
# ============================================================================

"""
Unified Logger System - Schemas and Factory

Component-specific loggers that emit one JSON object per line so that
Application Insights can index the custom dimensions attached to each call
(layer key, query pass, pagination offset, ...).

Design Principles:
- Strong typing with dataclasses (stdlib only)
- Enum safety for categories
- Component-specific loggers
- Clean factory pattern
- No external dependencies
"""

from enum import Enum
from typing import Optional, Dict, Any, Union
from datetime import datetime, timezone
from dataclasses import dataclass
import logging
import os
import threading
import sys
import json
import traceback
from functools import wraps


# ============================================================================
# COMPONENT TYPES - Aligned with the query engine architecture
# ============================================================================

class ComponentType(Enum):
    """
    Component types aligned with the engine's layers.

    Each layer has specific logging needs and levels.
    """
    TRIGGER = "trigger"            # HTTP entry point layer
    SERVICE = "service"            # Business logic layer
    COORDINATOR = "coordinator"    # Per-layer query state machine
    FETCHER = "fetcher"            # Paginated feature retrieval
    EVALUATOR = "evaluator"        # Containment / distance evaluation
    CLIENT = "client"              # External HTTP integration layer
    REGISTRY = "registry"          # Layer catalog loading


# ============================================================================
# LOG LEVELS - Standard Python levels with enum safety
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
    Context for log correlation across one context query.

    A multi-layer request shares a request_id; each layer's coordinator
    adds its layer_key.
    """
    request_id: Optional[str] = None      # HTTP request correlation ID
    correlation_id: Optional[str] = None  # Upstream correlation ID
    layer_key: Optional[str] = None       # Logical layer being queried
    query_pass: Optional[str] = None      # "containment" or "proximity"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            k: v for k, v in {
                'request_id': self.request_id,
                'correlation_id': self.correlation_id,
                'layer_key': self.layer_key,
                'query_pass': self.query_pass
            }.items() if v is not None
        }


# ============================================================================
# COMPONENT CONFIGURATION - Per-component settings
# ============================================================================

@dataclass
class ComponentConfig:
    """
    Configuration for component-specific logging.

    Each component type can have different settings.
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
                'traceback': self.formatException(record.exc_info) if record.exc_info else None
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
            ComponentType.FETCHER,
            "PaginatedFetcher"
        )
        logger.info("Fetching batch", extra={'custom_dimensions': {'offset': 2000}})
    """

    default_level = LogLevel.DEBUG if os.getenv('DEBUG_LOGGING', '').lower() == 'true' else LogLevel.INFO

    DEFAULT_CONFIGS = {
        ComponentType.TRIGGER: ComponentConfig(
            component_type=ComponentType.TRIGGER,
            log_level=default_level
        ),
        ComponentType.SERVICE: ComponentConfig(
            component_type=ComponentType.SERVICE,
            log_level=default_level
        ),
        ComponentType.COORDINATOR: ComponentConfig(
            component_type=ComponentType.COORDINATOR,
            log_level=default_level
        ),
        ComponentType.FETCHER: ComponentConfig(
            component_type=ComponentType.FETCHER,
            log_level=default_level
        ),
        ComponentType.EVALUATOR: ComponentConfig(
            component_type=ComponentType.EVALUATOR,
            log_level=default_level
        ),
        ComponentType.CLIENT: ComponentConfig(
            component_type=ComponentType.CLIENT,
            log_level=default_level
        ),
        ComponentType.REGISTRY: ComponentConfig(
            component_type=ComponentType.REGISTRY,
            log_level=default_level
        )
    }

    _configure_lock = threading.Lock()

    @classmethod
    def _configure(cls, component_type: ComponentType, name: str, config: ComponentConfig) -> logging.Logger:
        """Attach the JSON handler and dimension injection once per logger name."""
        logger_name = f"{component_type.value}.{name}"
        logger = logging.getLogger(logger_name)

        if isinstance(config.log_level, str):
            log_level = LogLevel.from_string(config.log_level).to_python_level()
        else:
            log_level = config.log_level.to_python_level()

        with cls._configure_lock:
            logger.setLevel(log_level)
            if getattr(logger, '_json_configured', False):
                return logger

            handler = logging.StreamHandler(sys.stdout)
            handler.setLevel(log_level)
            handler.setFormatter(JSONFormatter())
            logger.addHandler(handler)

            # Allow propagation to Azure's root logger for Application Insights
            logger.propagate = True

            original_log = logger._log

            def log_with_dimensions(level, msg, args, exc_info=None, extra=None, stack_info=False, stacklevel=1):
                """Wrapper to inject component dimensions."""
                extra = dict(extra) if extra else {}
                custom_dims = {
                    'component_type': component_type.value,
                    'component_name': name
                }
                if 'custom_dimensions' in extra:
                    custom_dims.update(extra['custom_dimensions'])
                extra['custom_dimensions'] = custom_dims

                original_log(level, msg, args, exc_info=exc_info, extra=extra,
                             stack_info=stack_info, stacklevel=stacklevel)

            logger._log = log_with_dimensions
            logger._json_configured = True

        return logger

    @classmethod
    def create_logger(
        cls,
        component_type: ComponentType,
        name: str,
        context: Optional[LogContext] = None,
        config: Optional[ComponentConfig] = None
    ) -> Union[logging.Logger, 'ContextLogger']:
        """
        Create a logger for a specific component.

        The underlying logger is shared per component name and configured
        once. Context is never stored on it: when ``context`` is given the
        result is a ContextLogger bound to that context only.

        Args:
            component_type: Type of component
            name: Component name (e.g., "QueryCoordinator")
            context: Optional log context for correlation
            config: Optional custom configuration

        Returns:
            Configured Python logger, or a ContextLogger wrapping it
        """
        if config is None:
            config = cls.DEFAULT_CONFIGS.get(
                component_type,
                ComponentConfig(component_type=component_type)
            )

        logger = cls._configure(component_type, name, config)
        if context is None:
            return logger
        return ContextLogger(logger, context)

    @classmethod
    def create_with_context(
        cls,
        component_type: ComponentType,
        name: str,
        request_id: Optional[str] = None,
        layer_key: Optional[str] = None
    ) -> 'ContextLogger':
        """
        Create logger with request/layer context.

        Safe to call concurrently: each call gets its own ContextLogger.

        Args:
            component_type: Type of component
            name: Component name
            request_id: Optional request correlation ID
            layer_key: Optional layer key

        Returns:
            ContextLogger carrying the context
        """
        context = LogContext(request_id=request_id, layer_key=layer_key)
        return cls.create_logger(
            component_type=component_type,
            name=name,
            context=context
        )


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that adds one LogContext to every record's custom dimensions.

    Per-call ``custom_dimensions`` win over context values with the same key.
    """

    def __init__(self, logger: logging.Logger, context: LogContext):
        super().__init__(logger, {})
        self.context = context

    def process(self, msg, kwargs):
        extra = dict(kwargs.get('extra') or {})
        custom_dims = self.context.to_dict()
        custom_dims.update(extra.get('custom_dimensions') or {})
        extra['custom_dimensions'] = custom_dims
        kwargs['extra'] = extra
        return msg, kwargs


# ============================================================================
# EXCEPTION DECORATOR - Automatic exception logging with context
# ============================================================================

def log_exceptions(component_type: Optional[ComponentType] = None,
                   component_name: Optional[str] = None,
                   logger: Optional[logging.Logger] = None):
    """
    Decorator to automatically log exceptions with full context.

    Can be used in three ways:
    1. With existing logger: @log_exceptions(logger=my_logger)
    2. With component info: @log_exceptions(ComponentType.REGISTRY, "LayerRegistry")
    3. Simple: @log_exceptions() - uses function module and name

    The exception is always re-raised.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if logger:
                log = logger
            elif component_type and component_name:
                log = LoggerFactory.create_logger(component_type, component_name)
            else:
                log = LoggerFactory.create_logger(
                    ComponentType.SERVICE,
                    func.__module__ or "unknown"
                )

            try:
                return func(*args, **kwargs)
            except Exception as e:
                log.error(
                    f"Exception in {func.__name__}",
                    exc_info=True,
                    extra={
                        'custom_dimensions': {
                            'function_name': func.__name__,
                            'function_module': func.__module__,
                            'exception_type': type(e).__name__,
                            'exception_message': str(e),
                            'function_args': str(args)[:500],
                            'function_kwargs': str(kwargs)[:500],
                            'traceback': traceback.format_exc()
                        }
                    }
                )
                raise
        return wrapper
    return decorator
