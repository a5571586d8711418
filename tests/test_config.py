"""Tests for application and engine configuration."""

import pytest
from pydantic import ValidationError

from config import AppConfig
from spatial_query.config import SpatialQueryConfig


class TestSpatialQueryConfig:
    """Tests for environment-driven engine settings."""

    def test_defaults(self, monkeypatch):
        for name in ("SPATIAL_PAGE_SIZE", "SPATIAL_MAX_RECORDS", "SPATIAL_BATCH_DELAY_MS"):
            monkeypatch.delenv(name, raising=False)

        config = SpatialQueryConfig()

        assert config.page_size == 2000
        assert config.max_records == 100000
        assert config.batch_delay_seconds == pytest.approx(0.1)

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("SPATIAL_PAGE_SIZE", "500")
        monkeypatch.setenv("SPATIAL_MAX_RECORDS", "1500")
        monkeypatch.setenv("SPATIAL_BATCH_DELAY_MS", "250")
        monkeypatch.setenv("SPATIAL_INCLUDE_GEOMETRY", "true")

        config = SpatialQueryConfig()

        assert config.page_size == 500
        assert config.max_records == 1500
        assert config.batch_delay_seconds == pytest.approx(0.25)
        assert config.include_geometry

    def test_ceiling_below_page_size(self):
        with pytest.raises(ValidationError, match="max_records"):
            SpatialQueryConfig(page_size=1000, max_records=10)

    def test_page_size_bounds(self):
        with pytest.raises(ValidationError):
            SpatialQueryConfig(page_size=0)


class TestAppConfig:
    """Tests for application settings."""

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("FEATURE_SERVICE_TIMEOUT", "12.5")
        monkeypatch.setenv("LAYER_CATALOG_PATH", "/tmp/layers.json")

        config = AppConfig()

        assert config.feature_service_timeout == 12.5
        assert config.layer_catalog_path == "/tmp/layers.json"

    def test_timeout_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("FEATURE_SERVICE_TIMEOUT", "0")
        with pytest.raises(ValidationError):
            AppConfig()
