# ============================================================================
# MODULE CONTEXT - FIELD ALIAS RESOLUTION
# ============================================================================
# STATUS: Core Engine - attribute normalization
# PURPOSE: Declarative field-alias lookup over inconsistently named service attributes
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: resolve_field, normalize_attributes, resolve_feature_id
# DEPENDENCIES: hashlib, json
# ============================================================================

"""
Field Alias Resolution.

Services disagree on attribute naming (``UNITNAME`` vs ``unitName`` vs
``UnitName``). Each layer declares an alias table instead::

    {"name": ["UNITNAME", "unitName", "UnitName"], "acres": ["GISACRES", "Acres"]}

and ``normalize_attributes`` turns raw attributes into a stable record.
"""

import hashlib
import json
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from .models import RawFeature


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def resolve_field(
    attributes: Optional[Mapping[str, Any]],
    aliases: Iterable[str],
    default: Any = None
) -> Any:
    """
    Return the first alias with a non-empty value.

    Exact attribute names are tried first, in alias order; only when none
    matches is a case-insensitive pass made.
    """
    if not attributes:
        return default

    aliases = list(aliases)
    for alias in aliases:
        value = attributes.get(alias)
        if _has_value(value):
            return value

    for alias in aliases:
        wanted = alias.lower()
        for name, value in attributes.items():
            if name.lower() == wanted and _has_value(value):
                return value

    return default


def normalize_attributes(
    attributes: Optional[Mapping[str, Any]],
    alias_table: Mapping[str, Sequence[str]]
) -> Dict[str, Any]:
    """
    Map raw attributes onto normalized property names.

    With an empty alias table the raw attributes are returned as a copy.
    """
    if not alias_table:
        return dict(attributes or {})
    return {
        name: resolve_field(attributes, aliases)
        for name, aliases in alias_table.items()
    }


def resolve_feature_id(feature: RawFeature, id_fields: Sequence[str]) -> str:
    """
    Stable identifier for a feature.

    Uses the first id alias present; otherwise a digest of attributes and
    geometry, so the same feature hashes identically in both query passes.
    """
    value = resolve_field(feature.attributes, id_fields)
    if value is not None:
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value)

    payload = json.dumps(
        {"attributes": feature.attributes, "geometry": feature.geometry},
        sort_keys=True,
        default=str,
        separators=(",", ":")
    )
    return "synthetic-" + hashlib.sha1(payload.encode("utf-8")).hexdigest()[:16]
