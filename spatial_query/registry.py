# ============================================================================
# MODULE CONTEXT - LAYER REGISTRY
# ============================================================================
# STATUS: Configuration - layer lookup for triggers and health checks
# PURPOSE: Built-in catalog merged with an optional JSON catalog file
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: LayerRegistry, LayerNotFoundError, load_catalog_file, get_layer_registry
# DEPENDENCIES: pydantic, json, util_logger
# PATTERNS: Registry, Singleton via cached function
# ============================================================================

"""
Layer Registry.

Catalog file format (LAYER_CATALOG_PATH)::

    [
      {"key": "my-layer", "title": "...", "service_url": "https://.../FeatureServer",
       "layer_id": 0, "geometry_kind": "polygon", "radius_cap_miles": 5}
    ]

A top-level ``{"layers": [...]}`` object is accepted as well. File entries
override built-in layers with the same key.
"""

import json
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from util_logger import LoggerFactory, ComponentType, log_exceptions

from .catalog import BUILTIN_LAYERS
from .models import LayerConfig

logger = LoggerFactory.create_logger(ComponentType.REGISTRY, "LayerRegistry")


class LayerNotFoundError(ValueError):
    """No layer is registered under the requested key."""


class LayerRegistry:
    """LayerConfig records keyed by layer key, in registration order."""

    def __init__(self, layers: Optional[Iterable[LayerConfig]] = None):
        self._layers: Dict[str, LayerConfig] = {}
        for layer in layers or []:
            self.register(layer)

    def register(self, layer: LayerConfig) -> None:
        if layer.key in self._layers:
            logger.info(f"Layer '{layer.key}' overridden", extra={'custom_dimensions': {'layer_key': layer.key}})
        self._layers[layer.key] = layer

    def get(self, key: str) -> LayerConfig:
        """
        Raises:
            LayerNotFoundError: Unknown layer key
        """
        try:
            return self._layers[key]
        except KeyError:
            raise LayerNotFoundError(f"Layer '{key}' not found") from None

    def resolve(self, keys: Optional[Iterable[str]] = None) -> List[LayerConfig]:
        """Layers for ``keys`` in the given order (all layers when None), duplicates removed."""
        if keys is None:
            return self.list_layers()
        seen = set()
        layers = []
        for key in keys:
            if key not in seen:
                seen.add(key)
                layers.append(self.get(key))
        return layers

    def list_layers(self) -> List[LayerConfig]:
        return list(self._layers.values())

    def keys(self) -> List[str]:
        return list(self._layers.keys())

    def __len__(self) -> int:
        return len(self._layers)

    def __contains__(self, key: str) -> bool:
        return key in self._layers

    @classmethod
    def builtin(cls) -> "LayerRegistry":
        return cls(LayerConfig(**entry) for entry in BUILTIN_LAYERS)


def _parse_entries(entries: List[Dict[str, Any]], source: str) -> List[LayerConfig]:
    layers = []
    for index, entry in enumerate(entries):
        try:
            layers.append(LayerConfig(**entry))
        except (TypeError, ValidationError) as e:
            raise ValueError(f"Invalid layer #{index} in {source}: {e}") from e
    return layers


@log_exceptions(ComponentType.REGISTRY, "LayerRegistry")
def load_catalog_file(path: str) -> List[LayerConfig]:
    """
    Read layer definitions from a JSON catalog file.

    Raises:
        ValueError: File is unreadable, not JSON, or holds invalid entries
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ValueError(f"Cannot read layer catalog {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"Layer catalog {path} is not valid JSON: {e}") from e

    if isinstance(data, dict):
        data = data.get("layers")
    if not isinstance(data, list):
        raise ValueError(f"Layer catalog {path} must be a list of layers or {{\"layers\": [...]}}")

    layers = _parse_entries(data, path)
    logger.info(f"Loaded {len(layers)} layer(s) from {path}")
    return layers


def build_registry(catalog_path: Optional[str] = None) -> LayerRegistry:
    """Built-in layers plus, when given, the layers of ``catalog_path``."""
    registry = LayerRegistry.builtin()
    if catalog_path:
        for layer in load_catalog_file(catalog_path):
            registry.register(layer)
    return registry


_registry_cache: Optional[LayerRegistry] = None


def get_layer_registry() -> LayerRegistry:
    """
    Get singleton layer registry.

    Raises:
        ValueError: The configured catalog file is invalid
    """
    global _registry_cache

    if _registry_cache is None:
        from config import get_app_config
        _registry_cache = build_registry(get_app_config().layer_catalog_path)
        logger.info(f"Layer registry ready with {len(_registry_cache)} layer(s)")

    return _registry_cache
