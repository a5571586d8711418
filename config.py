# ============================================================================
# MODULE CONTEXT - APPLICATION CONFIGURATION
# ============================================================================
# STATUS: Core Infrastructure - Configuration Management
# PURPOSE: Centralized configuration for upstream feature service access
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: AppConfig, get_app_config, validate_configuration
# DEPENDENCIES: pydantic-settings
# SOURCE: Environment variables, optional .env file
# PATTERNS: Singleton pattern for config
# ============================================================================

"""
Application Configuration Module

Provides app-wide settings shared by every API module:
- HTTP settings for the upstream ArcGIS feature service client
- Location of an optional layer catalog file
- Debug logging switch

Engine tuning (page size, record ceiling, batch delay) lives in the
standalone spatial_query.config module so the engine can be moved to another
Function App without this file.

Usage:
    from config import get_app_config

    config = get_app_config()
    client = FeatureServiceClient(timeout=config.feature_service_timeout)
"""

import logging
from typing import Optional
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator

logger = logging.getLogger(__name__)


# ============================================================================
# Application Configuration
# ============================================================================

class AppConfig(BaseSettings):
    """
    Application-wide configuration loaded from environment variables.

    Attributes:
        app_name: Name reported by health checks
        feature_service_timeout: Per-request timeout for upstream services (seconds)
        feature_service_user_agent: User-Agent header sent upstream
        layer_catalog_path: Optional JSON file with additional layer definitions
        debug_logging: Lower default log level to DEBUG
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = Field(default="geocontext", description="Application name")
    feature_service_timeout: float = Field(
        default=30.0,
        description="Upstream feature service request timeout in seconds"
    )
    feature_service_user_agent: str = Field(
        default="geocontext/1.0",
        description="User-Agent header for upstream requests"
    )
    layer_catalog_path: Optional[str] = Field(
        default=None,
        description="Path to a JSON layer catalog merged over the built-in layers"
    )
    debug_logging: bool = Field(default=False, description="Enable DEBUG level logging")

    @field_validator('feature_service_timeout')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Timeout must be positive."""
        if v <= 0:
            raise ValueError("FEATURE_SERVICE_TIMEOUT must be greater than 0")
        return v


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """
    Get singleton application configuration instance.

    Returns:
        AppConfig: Validated configuration object

    Raises:
        ValidationError: If environment variables are invalid
    """
    return AppConfig()


# ============================================================================
# Configuration Validation
# ============================================================================

def validate_configuration() -> bool:
    """
    Validate configuration on application startup.

    Returns:
        bool: True if configuration is valid

    Raises:
        Exception: If configuration validation fails
    """
    try:
        config = get_app_config()
        logger.info("Configuration validation:")
        logger.info(f"  App: {config.app_name}")
        logger.info(f"  Feature service timeout: {config.feature_service_timeout}s")
        logger.info(f"  Layer catalog: {config.layer_catalog_path or '(built-in only)'}")
        logger.info(f"  Debug logging: {config.debug_logging}")

        from spatial_query.config import get_spatial_query_config
        engine_config = get_spatial_query_config()
        logger.info(
            f"  Engine: page_size={engine_config.page_size}, "
            f"max_records={engine_config.max_records}, "
            f"batch_delay_ms={engine_config.batch_delay_ms}"
        )

        logger.info("✅ Configuration validated successfully")
        return True

    except Exception as e:
        logger.error(f"❌ Configuration validation failed: {e}")
        raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    validate_configuration()
